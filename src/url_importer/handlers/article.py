"""
Article handler.

Claims URLs on well-known publishing platforms outright and is otherwise
offered to the model during content detection for blog posts and news
stories hosted elsewhere.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from urllib.parse import SplitResult

import structlog

from ..models import ContentRecord
from ..parsing import coerce_str_list, extract_json
from .base import WebPageHandler, note_frontmatter, require_fields

log = structlog.get_logger(__name__)

ARTICLE_HOSTS = frozenset(
    (
        "medium.com",
        "substack.com",
        "dev.to",
        "hashnode.dev",
        "hackernoon.com",
    )
)

ARTICLE_PROMPT_TEMPLATE = """
You are reading an article titled "{title}"{byline}.
Source: {url}

Return only a JSON object with these keys:
- "summary": a 3-5 sentence summary of the article.
- "highlights": a list of the 3 to 7 most important takeaways.
- "topics": a list of short topic tags (one to three words each).

Article text:
{content}
""".strip()


@dataclass
class ArticleNotes:
    summary: str
    highlights: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)


def _matches_host(hostname: str, hosts) -> bool:
    hostname = hostname.lower().rstrip(".")
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return any(hostname == host or hostname.endswith("." + host) for host in hosts)


class ArticleHandler(WebPageHandler):
    type_tag = "article"
    description = "A blog post, news story or other long-form written article"
    folder_name = "Articles"

    def can_handle_url(self, url: SplitResult) -> bool:
        return bool(url.hostname) and _matches_host(url.hostname, ARTICLE_HOSTS)

    def requires_content_sniff(self) -> bool:
        return True

    def build_prompt(self, record: ContentRecord) -> str:
        require_fields(record, "title", "url", "content")
        byline = f" by {record.author}" if record.author else ""
        return ARTICLE_PROMPT_TEMPLATE.format(
            title=record.title, byline=byline, url=record.url, content=record.content
        )

    def parse_generated_text(self, text: str) -> ArticleNotes | None:
        try:
            data = extract_json(text)
        except json.JSONDecodeError:
            log.warning("Article output is not valid JSON", preview=text[:200])
            return None
        if not isinstance(data, dict):
            return None
        return ArticleNotes(
            summary=str(data.get("summary") or "").strip(),
            highlights=coerce_str_list(data.get("highlights")),
            topics=coerce_str_list(data.get("topics")),
        )

    def validate_output(self, output: ArticleNotes | None) -> bool:
        return isinstance(output, ArticleNotes) and bool(output.summary)

    def render(self, generated_text: str, record: ContentRecord) -> str:
        notes = self.parse_generated_text(generated_text) or ArticleNotes(summary="")
        tags = [topic.lower().replace(" ", "-") for topic in notes.topics]
        parts = [
            note_frontmatter(record, self.type_tag, tags=tags),
            f"# {record.title}",
            "## Summary",
            notes.summary,
        ]
        if notes.highlights:
            parts.append("## Highlights")
            parts.append("\n".join(f"- {item}" for item in notes.highlights))
        return "\n\n".join(parts) + "\n"
