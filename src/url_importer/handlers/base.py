"""
Content Handler Interface
=========================

A handler knows how to recognise, fetch and transform one kind of content.
The classifier only uses the identification half of the interface
(``can_handle_url`` and ``requires_content_sniff``); the pipeline drives the
rest for the handler the classifier picked.

`WebPageHandler` is a convenience base for handlers whose content is an
ordinary HTML page. It reuses raw page content the classifier may already
have downloaded.
"""

from __future__ import annotations

import datetime as dt
import json
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import SplitResult

import requests
import structlog

from ..errors import ContentUnavailable, DownloadFailed, NetworkFailure
from ..models import ContentRecord
from ..web import WebClient, extract_main_text, extract_metadata

log = structlog.get_logger(__name__)

UNTITLED = "Untitled Content"


class Handler(ABC):
    """Abstract base class for content handlers."""

    #: Unique identifier, also offered to the model during content detection.
    type_tag: str = ""
    #: One-line human description of the content type.
    description: str = ""
    #: Folder (relative to the note root) notes of this type are written to.
    folder_name: str = ""

    def can_handle_url(self, url: SplitResult) -> bool:
        """Return True if the URL alone identifies this content type."""
        return False

    def requires_content_sniff(self) -> bool:
        """Return True if this handler should be offered during content detection."""
        return False

    @abstractmethod
    def fetch(self, url: str, cached_raw_content: str | None = None) -> ContentRecord:
        raise NotImplementedError

    @abstractmethod
    def build_prompt(self, record: ContentRecord) -> str:
        raise NotImplementedError

    @abstractmethod
    def parse_generated_text(self, text: str) -> Any:
        raise NotImplementedError

    @abstractmethod
    def validate_output(self, output: Any) -> bool:
        raise NotImplementedError

    @abstractmethod
    def render(self, generated_text: str, record: ContentRecord) -> str:
        raise NotImplementedError

    def folder_for(self, record: ContentRecord | None = None) -> str:
        return self.folder_name or self.type_tag.title()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} type_tag={self.type_tag!r}>"


class WebPageHandler(Handler):
    """Base for handlers that extract their content from an HTML page."""

    def __init__(self, web_client: WebClient):
        self.web_client = web_client

    def fetch(self, url: str, cached_raw_content: str | None = None) -> ContentRecord:
        """
        Build a content record for ``url``.

        ``cached_raw_content`` is used instead of downloading the page again
        when the classifier already fetched it.
        """
        if cached_raw_content:
            log.debug("Using cached page content", url=url, type_tag=self.type_tag)
            html = cached_raw_content
        else:
            html = self._download(url)
        return self.extract(url, html)

    def _download(self, url: str) -> str:
        try:
            return self.web_client.fetch_text(url)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise NetworkFailure(f"Could not reach {url}: {e}") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "unknown"
            raise DownloadFailed(f"HTTP {status} while downloading {url}") from e
        except requests.exceptions.RequestException as e:
            raise DownloadFailed(f"Request for {url} failed: {e}") from e

    def extract(self, url: str, html: str) -> ContentRecord:
        """
        Turn page HTML into a content record. Subclasses may add ``extra`` fields.

        Raises ContentUnavailable when the page yields no text, description or
        extra fields to work from.
        """
        metadata = extract_metadata(html)
        record = ContentRecord(
            title=metadata["title"] or UNTITLED,
            url=url,
            content=extract_main_text(html),
            author=metadata["author"],
            published_date=metadata["published_date"],
            image_url=metadata["image_url"],
            description=metadata["description"],
            extra=self.extract_extra(html),
        )
        if not (record.content or record.description or record.extra):
            raise ContentUnavailable(f"No readable content on {url}")
        return record

    def extract_extra(self, html: str) -> dict:
        return {}


def frontmatter(fields: dict) -> str:
    """
    Render a YAML frontmatter block.

    Values are emitted as JSON scalars and flow sequences, which YAML parses
    unchanged. ``None`` and empty values are skipped.
    """
    lines = ["---"]
    for key, value in fields.items():
        if value is None or value == "" or value == []:
            continue
        lines.append(f"{key}: {json.dumps(value, ensure_ascii=False)}")
    lines.append("---")
    return "\n".join(lines)


def note_frontmatter(record: ContentRecord, type_tag: str, **extra_fields) -> str:
    """Frontmatter shared by all notes: source, type and import date."""
    fields = {
        "title": record.title,
        "source": record.url,
        "type": type_tag,
        "author": record.author,
        "published": record.published_date,
        "image": record.image_url,
        "imported": dt.date.today().isoformat(),
    }
    fields.update(extra_fields)
    return frontmatter(fields)


def require_fields(record: ContentRecord, *names: str) -> None:
    """Raise ValueError if any of ``names`` is empty on the record."""
    missing = [name for name in names if not record.get(name)]
    if missing:
        raise ValueError(f"Content record is missing required fields: {', '.join(missing)}")
