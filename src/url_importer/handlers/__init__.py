"""Content handlers shipped with the importer."""

from .article import ArticleHandler
from .base import Handler, WebPageHandler
from .generic import FALLBACK_TYPE_TAG, GenericHandler
from .recipe import RecipeHandler

__all__ = [
    "ArticleHandler",
    "FALLBACK_TYPE_TAG",
    "GenericHandler",
    "Handler",
    "RecipeHandler",
    "WebPageHandler",
    "default_handlers",
]


def default_handlers(web_client) -> list[Handler]:
    """Return the built-in handlers in registration order, fallback last."""
    return [
        ArticleHandler(web_client),
        RecipeHandler(web_client),
        GenericHandler(web_client),
    ]
