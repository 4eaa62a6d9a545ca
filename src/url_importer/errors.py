"""
Importer Errors
===============

Exception hierarchy shared by the classifier, the handlers, the generation
backend and the pipeline.

Every error may carry a ``user_message``: a short sentence that is safe to
show to the person who submitted the URL. The exception text itself is for
logs only.
"""

from __future__ import annotations

import re

_USERINFO_RE = re.compile(r"//[^/@\s]*@")


def strip_credentials(url: str) -> str:
    """Drop a ``user:password@`` part from ``url``."""
    return _USERINFO_RE.sub("//", url)


class ImporterError(Exception):
    """Base class for all importer errors."""

    def __init__(self, message: str = "", *, user_message: str | None = None):
        super().__init__(message or user_message or self.__class__.__name__)
        self.user_message = user_message


# --- Classifier ---


class InvalidUrlFormat(ImporterError):
    """The URL could not be parsed as an absolute http(s) URL."""

    def __init__(self, url: str, reason: str = "malformed URL"):
        super().__init__(
            f"Invalid URL format ({reason}): {strip_credentials(url)!r}",
            user_message="Invalid URL format. Enter a full http:// or https:// address.",
        )
        self.url = url


class UnsupportedUrl(InvalidUrlFormat):
    """The URL is well-formed but points somewhere we refuse to fetch."""

    def __init__(self, url: str, reason: str):
        ImporterError.__init__(
            self,
            f"Unsupported URL ({reason}): {strip_credentials(url)!r}",
            user_message="This URL is not supported. Only public web addresses can be imported.",
        )
        self.url = url


class NoHandlerFound(ImporterError):
    """No registered handler accepts the URL and no fallback is registered."""

    def __init__(self, url: str):
        super().__init__(
            f"Could not determine content type for {strip_credentials(url)!r}",
            user_message="This URL is not supported: no content handler could process it.",
        )
        self.url = url


class ContentFetchFailed(ImporterError):
    """Fetching or classifying page content during detection failed."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            f"Failed to fetch content for detection of {strip_credentials(url)!r}: {reason}",
            user_message="Could not load the page to determine its content type.",
        )
        self.url = url


# --- Pipeline stages ---


class DownloadFailed(ImporterError):
    """A handler could not fetch or extract the content."""


class ContentUnavailable(DownloadFailed):
    """The source exists but the content we need (e.g. a transcript) does not."""


class GenerationFailed(ImporterError):
    """The generation backend failed for an unknown reason."""


class AuthFailure(GenerationFailed):
    """The generation backend rejected our credentials."""

    def __init__(self, message: str = ""):
        super().__init__(
            message,
            user_message="The AI provider rejected the API key. Check your API key settings.",
        )


class NetworkFailure(ImporterError):
    """A network-level failure talking to a remote service (page host or AI provider)."""


class ValidationFailed(ImporterError):
    """Generated output did not pass the handler's validation."""


class PersistenceFailed(ImporterError):
    """The note could not be stored."""
