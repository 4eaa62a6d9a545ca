"""
Model Output Parsing
====================

Helpers shared by the handlers to turn raw generated text into structured
values: JSON objects (possibly wrapped in prose or code fences) and Markdown
documents organised under ``## Heading`` sections.
"""

from __future__ import annotations

import json
import re

_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+(.*)$")
_HEADING_RE = re.compile(r"^##(?!#)[ \t]*(.+?)[ \t#]*$", re.MULTILINE)


def extract_json(text: str) -> dict:
    """Parse JSON from raw model output, trimming surrounding text if needed."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end <= start:
            raise
        return json.loads(text[start : end + 1])


def parse_markdown_sections(markdown: str) -> dict[str, str]:
    """
    Split a Markdown document into ``{heading: body}`` by level-two headings.

    Heading keys are lowercased and whitespace-normalized. Text before the
    first heading is ignored.
    """
    sections: dict[str, str] = {}
    matches = list(_HEADING_RE.finditer(markdown or ""))
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(markdown)
        key = " ".join(match.group(1).lower().split())
        sections[key] = markdown[match.end() : end].strip()
    return sections


def parse_markdown_list(section: str) -> list[str]:
    """
    Parse bullet or numbered list items from a section body.

    A section without list markers that consists of a single line is treated
    as a one-item list.
    """
    if not section or not section.strip():
        return []
    lines = section.strip().splitlines()
    items = []
    for line in lines:
        match = _LIST_ITEM_RE.match(line)
        if match and match.group(1).strip():
            items.append(match.group(1).strip())
    if not items and len(lines) == 1:
        items.append(lines[0].strip())
    return items


def coerce_str_list(value) -> list[str]:
    """Normalize a JSON value that should be a list of strings."""
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return []
