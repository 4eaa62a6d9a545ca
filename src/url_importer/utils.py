"""
Utilities
=========

This module provides utility functions that are used across the importer
but do not belong to a more specific domain like classification or the
pipeline itself.

It contains a `retry` decorator for handling transient errors with
exponential backoff and jitter, a filename sanitizer used when persisting
notes, and a helper that scrubs secrets out of error text before it is
logged.
"""
import logging
import random
import re
import time
from functools import wraps
from typing import Callable, Type, TypeVar

log = logging.getLogger(__name__)
T = TypeVar("T")

RESERVED_DEVICE_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_INVALID_FILENAME_CHARS_RE = re.compile(r'[/\\:*?"<>|]')
_EDGE_JUNK_RE = re.compile(r"^[.\s-]+|[.\s-]+$")


def retry(
    retryable_exceptions: tuple[Type[Exception], ...],
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    A decorator that retries a method call on specific exceptions.

    The decorated method's instance must expose ``settings`` with
    ``MAX_RETRIES`` and ``MAX_RETRY_BACKOFF_SECONDS``.

    Args:
        retryable_exceptions: A tuple of exception types that should trigger a retry.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self, *args, **kwargs) -> T:
            settings = self.settings
            if settings.MAX_RETRIES < 1:
                raise ValueError("MAX_RETRIES must be >= 1")
            for attempt in range(1, settings.MAX_RETRIES + 1):
                try:
                    return func(self, *args, **kwargs)
                except retryable_exceptions as e:
                    if attempt == settings.MAX_RETRIES:
                        log.warning(
                            "%s failed after %d attempts",
                            func.__name__,
                            attempt,
                        )
                        raise
                    log.warning(
                        "%s failed (%s) - retry %d/%d",
                        func.__name__,
                        type(e).__name__,
                        attempt,
                        settings.MAX_RETRIES,
                    )
                    _sleep_backoff(attempt, settings)
            # This part should be unreachable if MAX_RETRIES > 0
            raise RuntimeError("Retry loop exited unexpectedly.")

        return wrapper

    return decorator


def _sleep_backoff(attempt: int, settings) -> None:
    """Sleep with exponential backoff and jitter, capped by the settings."""
    delay = min(
        (2**attempt) * random.uniform(0.8, 1.2),
        float(settings.MAX_RETRY_BACKOFF_SECONDS),
    )
    log.info(
        "Sleeping %.1f s before retry %d/%d",
        delay,
        attempt,
        settings.MAX_RETRIES,
    )
    time.sleep(delay)


def sanitize_filename(value: str, max_length: int = 100) -> str:
    """
    Make a note title safe to use as a filename on Windows, macOS and Linux.

    Reserved characters are dropped, whitespace is collapsed, leading and
    trailing dots/dashes are trimmed, reserved device names get a ``_``
    prefix and the result is capped at ``max_length`` characters.
    """
    # Tabs and newlines separate words.
    sanitized = _CONTROL_CHARS_RE.sub(" ", value or "")
    sanitized = _INVALID_FILENAME_CHARS_RE.sub("", sanitized)
    sanitized = " ".join(sanitized.split())
    sanitized = _EDGE_JUNK_RE.sub("", sanitized)

    if len(sanitized) > max_length:
        sanitized = _EDGE_JUNK_RE.sub("", sanitized[:max_length])

    if sanitized.upper() in RESERVED_DEVICE_NAMES:
        sanitized = f"_{sanitized}"

    return sanitized or "untitled"


def redact_secret(text: str, secret: str | None) -> str:
    """Replace every occurrence of ``secret`` in ``text`` with ``[REDACTED]``."""
    if not secret or len(secret) < 4:
        return text
    return text.replace(secret, "[REDACTED]")
