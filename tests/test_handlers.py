from unittest.mock import MagicMock
from urllib.parse import urlsplit

import pytest
import requests

from url_importer.errors import ContentUnavailable, DownloadFailed, NetworkFailure
from url_importer.handlers import (
    ArticleHandler,
    GenericHandler,
    RecipeHandler,
    default_handlers,
)
from url_importer.handlers.base import frontmatter
from url_importer.handlers.generic import SummaryOutput
from url_importer.models import ContentRecord
from url_importer.web import WebClient

PAGE_HTML = """
<html><head>
<meta property="og:title" content="Interesting Page">
<meta name="author" content="Ann Author">
</head><body><main><p>Some interesting words.</p></main></body></html>
"""

RECIPE_HTML = """
<html><head><title>Tomato Soup</title>
<script type="application/ld+json">
{
  "@context": "https://schema.org",
  "@type": ["Recipe"],
  "name": "Tomato Soup",
  "recipeYield": ["4 servings"],
  "totalTime": "PT30M",
  "recipeIngredient": ["4 tomatoes", " 1 onion ", ""],
  "recipeInstructions": [
    {"@type": "HowToStep", "text": "Chop everything."},
    {"@type": "HowToSection", "itemListElement": [
      {"@type": "HowToStep", "text": "Simmer for 20 minutes."}
    ]},
    "Blend."
  ]
}
</script></head>
<body><article><p>The best soup.</p></article></body></html>
"""

GENERIC_OUTPUT = """## Summary
A page with interesting words.

## Key Points
- Words are interesting
- Pages have words

## Key Concepts
- Words
"""


@pytest.fixture
def web_client():
    return MagicMock(spec=WebClient)


def _record(**overrides):
    values = {
        "title": "Interesting Page",
        "url": "https://example.com/page",
        "content": "Some interesting words.",
    }
    values.update(overrides)
    return ContentRecord(**values)


def test_default_handlers_order_puts_fallback_last(web_client):
    tags = [handler.type_tag for handler in default_handlers(web_client)]

    assert tags == ["article", "recipe", "generic"]


def test_fetch_uses_cached_content_without_downloading(web_client):
    handler = GenericHandler(web_client)

    record = handler.fetch("https://example.com/page", PAGE_HTML)

    web_client.fetch_text.assert_not_called()
    assert record.title == "Interesting Page"
    assert record.author == "Ann Author"
    assert record.content == "Some interesting words."
    assert record.url == "https://example.com/page"


def test_fetch_downloads_when_not_cached(web_client):
    web_client.fetch_text.return_value = "<html><body><p>Hi</p></body></html>"
    handler = GenericHandler(web_client)

    record = handler.fetch("https://example.com/page")

    web_client.fetch_text.assert_called_once_with("https://example.com/page")
    assert record.title == "Untitled Content"
    assert record.content == "Hi"


def test_fetch_of_page_without_readable_content(web_client):
    handler = GenericHandler(web_client)

    with pytest.raises(ContentUnavailable):
        handler.fetch("https://example.com/blank", "<html><body><script>x()</script></body></html>")


def test_fetch_over_http(settings, requests_mock):
    requests_mock.get("https://example.com/page", text=PAGE_HTML)
    handler = GenericHandler(WebClient(settings))

    assert handler.fetch("https://example.com/page").title == "Interesting Page"


@pytest.mark.parametrize(
    "error, expected",
    [
        (requests.exceptions.ConnectionError("refused"), NetworkFailure),
        (requests.exceptions.Timeout("slow"), NetworkFailure),
        (requests.exceptions.HTTPError("404 Client Error"), DownloadFailed),
        (requests.exceptions.TooManyRedirects("loop"), DownloadFailed),
    ],
)
def test_fetch_maps_request_errors(web_client, error, expected):
    web_client.fetch_text.side_effect = error
    handler = GenericHandler(web_client)

    with pytest.raises(expected):
        handler.fetch("https://example.com/page")


def test_generic_prompt_requires_text(web_client):
    handler = GenericHandler(web_client)

    assert "Some interesting words." in handler.build_prompt(_record())
    assert "Just a description" in handler.build_prompt(
        _record(content="", description="Just a description")
    )
    with pytest.raises(ValueError):
        handler.build_prompt(_record(content=""))
    with pytest.raises(ValueError):
        handler.build_prompt(_record(title=""))


def test_generic_parse_and_validate(web_client):
    handler = GenericHandler(web_client)

    output = handler.parse_generated_text(GENERIC_OUTPUT)

    assert output.summary == "A page with interesting words."
    assert output.key_points == ["Words are interesting", "Pages have words"]
    assert output.key_concepts == ["Words"]
    assert handler.validate_output(output)


def test_generic_validate_fills_missing_concepts(web_client):
    handler = GenericHandler(web_client)
    output = SummaryOutput(summary="S", key_points=["P"], key_concepts=None)

    assert handler.validate_output(output)
    assert output.key_concepts == []


def test_generic_validate_rejects_incomplete_output(web_client):
    handler = GenericHandler(web_client)

    assert not handler.validate_output(handler.parse_generated_text("## Summary\nOnly this"))
    assert not handler.validate_output(handler.parse_generated_text("no sections"))
    assert not handler.validate_output(None)


def test_generic_render(web_client):
    handler = GenericHandler(web_client)
    record = _record(author="Ann Author", description='Says "hi"')

    note = handler.render(GENERIC_OUTPUT, record)

    assert note.startswith("---\ntitle: \"Interesting Page\"\n")
    assert 'source: "https://example.com/page"' in note
    assert 'type: "generic"' in note
    assert 'author: "Ann Author"' in note
    assert 'description: "Says \\"hi\\""' in note
    assert "published:" not in note
    assert "# Interesting Page\n\n## Summary" in note
    assert handler.folder_for(record) == "Web"


def test_frontmatter_skips_empty_values():
    assert frontmatter({"a": "x", "b": None, "c": [], "d": ["t1", "t2"]}) == (
        '---\na: "x"\nd: ["t1", "t2"]\n---'
    )


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://medium.com/@someone/post-123", True),
        ("https://engineering.medium.com/post", True),
        ("https://www.medium.com/post", True),
        ("https://someone.substack.com/p/essay", True),
        ("https://dev.to/someone/post", True),
        ("https://notmedium.com/post", False),
        ("https://example.com/medium.com", False),
    ],
)
def test_article_can_handle_url(web_client, url, expected):
    assert ArticleHandler(web_client).can_handle_url(urlsplit(url)) is expected


def test_article_and_recipe_request_content_sniffing(web_client):
    assert ArticleHandler(web_client).requires_content_sniff()
    assert RecipeHandler(web_client).requires_content_sniff()
    assert not GenericHandler(web_client).requires_content_sniff()
    assert not GenericHandler(web_client).can_handle_url(urlsplit("https://example.com"))


def test_article_parse_validate_and_render(web_client):
    handler = ArticleHandler(web_client)
    text = 'Here you go: {"summary": "Great post.", "highlights": ["One", "Two"], "topics": ["Machine Learning"]}'

    output = handler.parse_generated_text(text)
    note = handler.render(text, _record(author="Ann"))

    assert output.summary == "Great post."
    assert output.highlights == ["One", "Two"]
    assert handler.validate_output(output)
    assert 'tags: ["machine-learning"]' in note
    assert "## Summary\n\nGreat post." in note
    assert "## Highlights\n\n- One\n- Two" in note
    assert handler.folder_for() == "Articles"


def test_article_rejects_invalid_output(web_client):
    handler = ArticleHandler(web_client)

    assert handler.parse_generated_text("not json at all") is None
    assert not handler.validate_output(None)
    assert not handler.validate_output(handler.parse_generated_text('{"summary": ""}'))


def test_article_prompt_requires_content(web_client):
    handler = ArticleHandler(web_client)

    assert "by Ann" in handler.build_prompt(_record(author="Ann"))
    with pytest.raises(ValueError, match="content"):
        handler.build_prompt(_record(content=""))


def test_recipe_fetch_extracts_json_ld(web_client):
    handler = RecipeHandler(web_client)

    record = handler.fetch("https://food.example/soup", RECIPE_HTML)

    assert record.title == "Tomato Soup"
    assert record.get("ingredients") == ["4 tomatoes", "1 onion"]
    assert record.get("instructions") == [
        "Chop everything.",
        "Simmer for 20 minutes.",
        "Blend.",
    ]
    assert record.get("recipe_yield") == "4 servings"
    assert record.get("total_time") == "PT30M"


def test_recipe_prompt_includes_structured_data(web_client):
    handler = RecipeHandler(web_client)
    record = handler.fetch("https://food.example/soup", RECIPE_HTML)

    prompt = handler.build_prompt(record)

    assert "- 4 tomatoes" in prompt
    assert "2. Simmer for 20 minutes." in prompt


def test_recipe_validate_and_render(web_client):
    handler = RecipeHandler(web_client)
    record = handler.fetch("https://food.example/soup", RECIPE_HTML)
    text = """## Summary
A warming soup.

## Ingredients
- tomatoes

## Instructions
1. Cook it.

## Tips
- Serve hot.
"""

    assert handler.validate_output(handler.parse_generated_text(text))
    assert not handler.validate_output(handler.parse_generated_text("## Summary\nSoup"))

    note = handler.render(text, record)

    assert 'servings: "4 servings"' in note
    assert "## Ingredients\n\n- 4 tomatoes\n- 1 onion" in note
    assert "1. Chop everything.\n2. Simmer for 20 minutes.\n3. Blend." in note
    assert "## Tips\n\n- Serve hot." in note
    assert handler.folder_for(record) == "Recipes"


def test_recipe_without_json_ld_uses_generated_lists(web_client):
    handler = RecipeHandler(web_client)
    record = _record(title="Soup")
    text = "## Ingredients\n- water\n\n## Instructions\n1. Boil."

    note = handler.render(text, record)

    assert "- water" in note
    assert "1. Boil." in note
