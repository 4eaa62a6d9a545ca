import json

import pytest

from url_importer.parsing import (
    coerce_str_list,
    extract_json,
    parse_markdown_list,
    parse_markdown_sections,
)


def test_extract_json_plain():
    assert extract_json('{"summary": "ok"}') == {"summary": "ok"}


def test_extract_json_trims_surrounding_text():
    text = 'Sure! Here it is:\n```json\n{"summary": "ok", "topics": ["a"]}\n```\nEnjoy.'

    assert extract_json(text) == {"summary": "ok", "topics": ["a"]}


def test_extract_json_raises_without_object():
    with pytest.raises(json.JSONDecodeError):
        extract_json("no json here")


def test_parse_markdown_sections():
    markdown = """Intro text is ignored.

## Summary
A short summary.

## Key Points
- First
- Second

### Detail
Still part of key points.

##   Key   Concepts  ##
1. Alpha
2) Beta
"""
    sections = parse_markdown_sections(markdown)

    assert list(sections) == ["summary", "key points", "key concepts"]
    assert sections["summary"] == "A short summary."
    assert "### Detail" in sections["key points"]
    assert sections["key concepts"] == "1. Alpha\n2) Beta"


def test_parse_markdown_list():
    assert parse_markdown_list("- one\n* two\n+ three\n1. four\n-  \nplain") == [
        "one",
        "two",
        "three",
        "four",
    ]
    assert parse_markdown_list("Just one line") == ["Just one line"]
    assert parse_markdown_list("Two lines\nwithout bullets") == []
    assert parse_markdown_list("") == []


def test_coerce_str_list():
    assert coerce_str_list([" a ", "", 3]) == ["a", "3"]
    assert coerce_str_list("single") == ["single"]
    assert coerce_str_list(None) == []
