"""URL parsing and acceptability checks."""

from __future__ import annotations

import ipaddress
from urllib.parse import SplitResult, urlsplit

from .errors import InvalidUrlFormat, UnsupportedUrl

ALLOWED_SCHEMES = ("http", "https")


def parse_url(url: str) -> SplitResult:
    """
    Parse ``url`` as an absolute http(s) URL.

    Raises InvalidUrlFormat for anything without an http(s) scheme and a host.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrlFormat(str(url), "empty URL")
    if any(ch.isspace() for ch in url.strip()):
        raise InvalidUrlFormat(url, "URL contains whitespace")
    try:
        parts = urlsplit(url.strip())
        # Accessing .port validates the port component.
        parts.port
    except ValueError as e:
        raise InvalidUrlFormat(url, str(e)) from e
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidUrlFormat(url, "scheme must be http or https")
    if not parts.hostname:
        raise InvalidUrlFormat(url, "missing host")
    return parts


def is_external_host(hostname: str) -> bool:
    """Return False for localhost and loopback, private or link-local IPs."""
    host = (hostname or "").strip().lower().rstrip(".")
    if not host or host == "localhost" or host.endswith(".localhost"):
        return False
    try:
        ip = ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return True
    return not (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_unspecified
        or ip.is_reserved
    )


def validate_url(url: str, *, allow_private: bool = False) -> SplitResult:
    """
    Validate a URL submitted for import.

    The URL must be well-formed and, unless ``allow_private`` is set, point at
    a public host.
    """
    parts = parse_url(url)
    if not allow_private and not is_external_host(parts.hostname or ""):
        raise UnsupportedUrl(url, f"host {parts.hostname!r} is not public")
    return parts
