"""
Generic web page handler.

Registered under the ``generic`` type tag, this handler is the classifier's
last resort: it never claims a URL on its own, but any page can be turned
into a summary note with key points and key concepts.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..models import ContentRecord
from ..parsing import parse_markdown_list, parse_markdown_sections
from .base import WebPageHandler, note_frontmatter, require_fields

FALLBACK_TYPE_TAG = "generic"

GENERIC_PROMPT_TEMPLATE = """
Summarise the following web page titled "{title}".
Source: {url}

Reply in Markdown using exactly these sections:

## Summary
A concise summary of the page in 3-5 sentences.

## Key Points
- 3 to 7 bullet points with the most important facts or arguments.

## Key Concepts
- The main concepts, names or terms a reader should remember.

Page content:
{content}
""".strip()


@dataclass
class SummaryOutput:
    summary: str
    key_points: list[str] = field(default_factory=list)
    key_concepts: list[str] = field(default_factory=list)


def parse_summary_markdown(markdown: str) -> SummaryOutput:
    """Parse ``## Summary`` / ``## Key Points`` / ``## Key Concepts`` sections."""
    sections = parse_markdown_sections(markdown)
    return SummaryOutput(
        summary=sections.get("summary", ""),
        key_points=parse_markdown_list(sections.get("key points", "")),
        key_concepts=parse_markdown_list(sections.get("key concepts", "")),
    )


class GenericHandler(WebPageHandler):
    type_tag = FALLBACK_TYPE_TAG
    description = "Any web page that does not fit a more specific type"
    folder_name = "Web"

    def build_prompt(self, record: ContentRecord) -> str:
        require_fields(record, "title", "url")
        content = record.content or record.description
        if not content:
            raise ValueError("Content record has no text to summarise")
        return GENERIC_PROMPT_TEMPLATE.format(
            title=record.title, url=record.url, content=content
        )

    def parse_generated_text(self, text: str) -> SummaryOutput:
        return parse_summary_markdown(text)

    def validate_output(self, output: SummaryOutput) -> bool:
        if not isinstance(output, SummaryOutput):
            return False
        if not output.summary.strip() or not output.key_points:
            return False
        if output.key_concepts is None:
            output.key_concepts = []
        return True

    def render(self, generated_text: str, record: ContentRecord) -> str:
        header = note_frontmatter(record, self.type_tag, description=record.description)
        return f"{header}\n\n# {record.title}\n\n{generated_text.strip()}\n"
