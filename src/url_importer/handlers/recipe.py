"""
Recipe handler.

Recipe pages rarely have a recognisable URL, so this handler relies on
content detection. When the page publishes schema.org ``Recipe`` JSON-LD,
ingredients and steps are taken from it verbatim and the model only writes
the summary and tips.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..models import ContentRecord
from ..parsing import parse_markdown_list, parse_markdown_sections
from ..web import find_json_ld
from .base import WebPageHandler, note_frontmatter, require_fields

RECIPE_PROMPT_TEMPLATE = """
Turn the following recipe page titled "{title}" into a clean recipe note.
Source: {url}
{structured}
Reply in Markdown using exactly these sections:

## Summary
One or two sentences describing the dish.

## Ingredients
- One ingredient per bullet, with quantities.

## Instructions
1. One step per numbered item.

## Tips
- Optional serving suggestions, substitutions or storage notes.

Page content:
{content}
""".strip()


@dataclass
class RecipeNotes:
    summary: str
    ingredients: list[str] = field(default_factory=list)
    instructions: list[str] = field(default_factory=list)
    tips: list[str] = field(default_factory=list)


def _is_recipe(node: dict) -> bool:
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return "Recipe" in node_type
    return node_type == "Recipe"


def _instruction_texts(value) -> list[str]:
    """Flatten ``recipeInstructions``: strings, HowToStep and HowToSection nodes."""
    if isinstance(value, str):
        return [line.strip() for line in value.splitlines() if line.strip()]
    steps = []
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str) and item.strip():
                steps.append(item.strip())
            elif isinstance(item, dict):
                if "itemListElement" in item:
                    steps.extend(_instruction_texts(item["itemListElement"]))
                elif item.get("text"):
                    steps.append(str(item["text"]).strip())
    return steps


def extract_recipe_data(html: str) -> dict:
    """Return ingredients, instructions, yield and total time from JSON-LD."""
    for node in find_json_ld(html):
        if not _is_recipe(node):
            continue
        recipe_yield = node.get("recipeYield")
        if isinstance(recipe_yield, list):
            recipe_yield = recipe_yield[0] if recipe_yield else None
        return {
            "ingredients": [
                str(item).strip() for item in node.get("recipeIngredient") or [] if str(item).strip()
            ],
            "instructions": _instruction_texts(node.get("recipeInstructions")),
            "recipe_yield": str(recipe_yield) if recipe_yield else None,
            "total_time": node.get("totalTime"),
        }
    return {}


class RecipeHandler(WebPageHandler):
    type_tag = "recipe"
    description = "A cooking recipe with ingredients and preparation steps"
    folder_name = "Recipes"

    def requires_content_sniff(self) -> bool:
        return True

    def extract_extra(self, html: str) -> dict:
        return extract_recipe_data(html)

    def build_prompt(self, record: ContentRecord) -> str:
        require_fields(record, "title", "url")
        content = record.content or record.description
        if not content and not record.get("ingredients"):
            raise ValueError("Content record has no recipe text")

        structured = ""
        if record.get("ingredients"):
            structured = "\nStructured data from the page:\nIngredients:\n"
            structured += "\n".join(f"- {item}" for item in record.get("ingredients"))
            if record.get("instructions"):
                structured += "\nInstructions:\n"
                structured += "\n".join(
                    f"{index}. {step}" for index, step in enumerate(record.get("instructions"), 1)
                )
            structured += "\n"
        return RECIPE_PROMPT_TEMPLATE.format(
            title=record.title, url=record.url, structured=structured, content=content or ""
        )

    def parse_generated_text(self, text: str) -> RecipeNotes:
        sections = parse_markdown_sections(text)
        return RecipeNotes(
            summary=sections.get("summary", ""),
            ingredients=parse_markdown_list(sections.get("ingredients", "")),
            instructions=parse_markdown_list(sections.get("instructions", "")),
            tips=parse_markdown_list(sections.get("tips", "")),
        )

    def validate_output(self, output: RecipeNotes) -> bool:
        if not isinstance(output, RecipeNotes):
            return False
        return bool(output.ingredients) and bool(output.instructions)

    def render(self, generated_text: str, record: ContentRecord) -> str:
        notes = self.parse_generated_text(generated_text)
        ingredients = list(record.get("ingredients") or notes.ingredients)
        instructions = list(record.get("instructions") or notes.instructions)

        parts = [
            note_frontmatter(
                record,
                self.type_tag,
                servings=record.get("recipe_yield"),
                total_time=record.get("total_time"),
            ),
            f"# {record.title}",
        ]
        if notes.summary:
            parts.append(notes.summary)
        parts.append("## Ingredients")
        parts.append("\n".join(f"- {item}" for item in ingredients))
        parts.append("## Instructions")
        parts.append("\n".join(f"{index}. {step}" for index, step in enumerate(instructions, 1)))
        if notes.tips:
            parts.append("## Tips")
            parts.append("\n".join(f"- {tip}" for tip in notes.tips))
        return "\n\n".join(parts) + "\n"
