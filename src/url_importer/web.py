"""
Web Page Client
===============

This module fetches web pages for content detection and for the handlers'
own content extraction. It wraps a ``requests.Session`` with a browser-like
user agent and retries transient network errors.

It also contains the BeautifulSoup helpers used to turn raw HTML into the
plain text and metadata that prompts are built from.
"""

from __future__ import annotations

import json
import re

import requests
import structlog
from bs4 import BeautifulSoup

from .config import Settings
from .utils import retry

log = structlog.get_logger(__name__)

MAX_CONTENT_LENGTH = 10000

RETRYABLE_REQUEST_EXCEPTIONS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)

_NON_CONTENT_TAGS = ["script", "style", "noscript", "template", "svg"]
_CHROME_TAGS = ["nav", "footer", "header", "aside", "form"]


class WebClient:
    """Fetches page bodies over HTTP."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._session = requests.Session()
        self._session.headers.update(
            {
                "User-Agent": settings.USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.5",
            }
        )

    @retry(retryable_exceptions=RETRYABLE_REQUEST_EXCEPTIONS)
    def _get(self, *args, **kwargs) -> requests.Response:
        """A retriable version of session.get."""
        return self._session.get(*args, **kwargs)

    def fetch_text(self, url: str) -> str:
        """
        Download ``url`` and return the decoded body.

        Raises ``requests.RequestException`` for network failures and non-2xx
        responses.
        """
        response = self._get(
            url, timeout=self.settings.REQUEST_TIMEOUT, allow_redirects=True
        )
        response.raise_for_status()
        log.debug(
            "Fetched page",
            url=url,
            status=response.status_code,
            bytes=len(response.content),
        )
        return response.text

    def close(self) -> None:
        self._session.close()


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def truncate_text(text: str, max_chars: int) -> str:
    """Cut ``text`` to ``max_chars`` characters, marking the cut with ``...``."""
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def extract_main_text(html: str, max_chars: int = MAX_CONTENT_LENGTH) -> str:
    """
    Extract readable text from an HTML page.

    Scripts, styles and page chrome are removed; the ``<article>`` or
    ``<main>`` element is preferred when present. Whitespace is collapsed and
    the result is truncated to ``max_chars``.
    """
    soup = _soup(html)
    for element in soup.find_all(_NON_CONTENT_TAGS):
        element.decompose()

    main = soup.find("article") or soup.find("main")
    if main is None:
        for element in soup.find_all(_CHROME_TAGS):
            element.decompose()
        main = soup.find("body") or soup

    text = _normalize_whitespace(main.get_text(separator=" "))
    return truncate_text(text, max_chars)


def _meta_content(soup: BeautifulSoup, **attrs) -> str | None:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    value = tag.get("content")
    return value.strip() if value and value.strip() else None


def extract_metadata(html: str) -> dict:
    """
    Extract title, author, published date, main image and description.

    Missing values are returned as None.
    """
    soup = _soup(html)

    title_tag = soup.find("title")
    h1_tag = soup.find("h1")
    title = (
        _meta_content(soup, property="og:title")
        or _meta_content(soup, name="twitter:title")
        or (title_tag.get_text(strip=True) if title_tag else None)
        or (h1_tag.get_text(strip=True) if h1_tag else None)
    )

    author_rel = soup.find("a", rel="author")
    author = (
        _meta_content(soup, name="author")
        or _meta_content(soup, property="article:author")
        or (author_rel.get_text(strip=True) if author_rel else None)
    )
    if author:
        author = re.sub(r"^by\s+", "", author, flags=re.I).strip() or None

    time_tag = soup.find("time", attrs={"datetime": True})
    published = _meta_content(soup, property="article:published_time") or (
        time_tag.get("datetime") if time_tag else None
    )

    return {
        "title": title or None,
        "author": author,
        "published_date": published[:10] if published else None,
        "image_url": _meta_content(soup, property="og:image")
        or _meta_content(soup, name="twitter:image"),
        "description": _meta_content(soup, property="og:description")
        or _meta_content(soup, name="description"),
    }


def find_json_ld(html: str) -> list:
    """Return every JSON-LD object embedded in the page, flattening ``@graph``."""
    objects = []
    for script in _soup(html).find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            log.debug("Skipping unparseable JSON-LD block")
            continue
        for item in data if isinstance(data, list) else [data]:
            if not isinstance(item, dict):
                continue
            graph = item.get("@graph")
            if isinstance(graph, list):
                objects.extend(node for node in graph if isinstance(node, dict))
            else:
                objects.append(item)
    return objects
