"""
Content-Type Classifier
=======================

Resolves a URL to exactly one registered handler.

Detection runs in two phases. Phase 1 asks every handler, in registration
order, whether the URL alone identifies its content type; this is free and
needs no network access. Only when no handler claims the URL does phase 2
download the page and ask the generation backend to pick one of the handlers
that opted into content sniffing. Anything that cannot be placed ends up with
the ``generic`` fallback handler when one is registered.

Detected type tags and downloaded page bodies are cached per exact URL
string for the life of the classifier so the handler's own fetch step can
reuse the page instead of downloading it twice.
"""

from __future__ import annotations

import re
import threading
from urllib.parse import SplitResult

import requests
import structlog

from .errors import ContentFetchFailed, NoHandlerFound
from .handlers.base import Handler
from .handlers.generic import FALLBACK_TYPE_TAG
from .llm import GenerationBackend
from .registry import HandlerRegistry
from .urls import parse_url
from .web import WebClient, extract_main_text, truncate_text

log = structlog.get_logger(__name__)

DEFAULT_EXCERPT_CHARS = 3000
CLASSIFICATION_TEMPERATURE = 0.2

CLASSIFICATION_SYSTEM_PROMPT = (
    "You are a content classifier. You answer with a single content type "
    "identifier from the list you are given and nothing else."
)

CLASSIFICATION_PROMPT_TEMPLATE = """
Decide which content type best describes the web page below.

URL: {url}

Page excerpt:
{excerpt}

Content types:
{candidates}

Answer with exactly one of the identifiers above. If none of them fit,
answer "{fallback}".
""".strip()

_ANSWER_PREFIXES = (
    "i think this is",
    "i believe this is",
    "this appears to be",
    "this looks like",
    "the content type is",
    "content type:",
    "answer:",
    "this is",
    "it is",
    "it's",
)
_ARTICLE_RE = re.compile(r"^(?:a|an)\s+")
_EDGE_PUNCTUATION = "\"'`*.,:;!?()[]{}<> "


def normalize_answer(answer: str) -> str:
    """
    Reduce a free-form model answer to a bare identifier candidate.

    Keeps the first non-empty line, lowercases it, and strips conversational
    prefixes, a leading article and surrounding quotes or punctuation.
    """
    line = next((line for line in (answer or "").splitlines() if line.strip()), "")
    text = line.strip().lower().strip(_EDGE_PUNCTUATION)
    for prefix in _ANSWER_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):].strip()
            break
    text = _ARTICLE_RE.sub("", text)
    return text.strip(_EDGE_PUNCTUATION)


def match_candidate(answer: str, candidates: list[str]) -> str | None:
    """Match a normalized answer against candidate type tags."""
    if answer in candidates:
        return answer
    if "-" in answer:
        bare = answer.replace("-", "")
        for candidate in candidates:
            if candidate.replace("-", "") == bare:
                return candidate
    return None


class ContentClassifier:
    """
    Two-phase URL classifier with per-URL detection and raw-content caches.

    Instances are safe to share between threads. Cache lookups and writes
    hold a lock only around the dictionary operation; network calls happen
    outside it, so two concurrent phase-2 resolutions of one URL may both
    fetch and the last write wins.
    """

    def __init__(
        self,
        registry: HandlerRegistry | None = None,
        backend: GenerationBackend | None = None,
        web_client: WebClient | None = None,
        *,
        excerpt_chars: int = DEFAULT_EXCERPT_CHARS,
        content_detection: bool = True,
    ):
        self.registry = registry if registry is not None else HandlerRegistry()
        self.backend = backend
        self.web_client = web_client
        self.excerpt_chars = excerpt_chars
        self.content_detection = content_detection

        self._cache_lock = threading.Lock()
        self._type_cache: dict[str, str] = {}
        self._content_cache: dict[str, str] = {}

    # --- Registry pass-throughs ---

    def register(self, handler: Handler) -> None:
        self.registry.register(handler)

    def handlers(self) -> list[Handler]:
        return self.registry.handlers()

    def get_handler(self, type_tag: str) -> Handler | None:
        return self.registry.get(type_tag)

    # --- Caches ---

    def get_cached_content(self, url: str) -> str | None:
        with self._cache_lock:
            return self._content_cache.get(url)

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._type_cache.clear()
            self._content_cache.clear()
        log.debug("Cleared classifier caches")

    def cache_size(self) -> int:
        """Number of URLs with a cached detection result."""
        with self._cache_lock:
            return len(self._type_cache)

    def _remember(self, url: str, handler: Handler) -> Handler:
        with self._cache_lock:
            self._type_cache[url] = handler.type_tag
        return handler

    # --- Resolution ---

    def resolve(self, url: str) -> Handler:
        """
        Return the handler responsible for ``url``.

        Raises:
            InvalidUrlFormat: the URL is not an absolute http(s) URL.
            ContentFetchFailed: content detection failed and no fallback
                handler is registered.
            NoHandlerFound: nothing matched and no fallback handler is
                registered.
        """
        parsed = parse_url(url)

        with self._cache_lock:
            cached_tag = self._type_cache.get(url)
        if cached_tag is not None:
            handler = self.registry.get(cached_tag)
            if handler is not None:
                log.debug("Content type cache hit", url=url, type_tag=cached_tag)
                return handler
            log.info("Ignoring stale content type cache entry", url=url, type_tag=cached_tag)

        handlers = self.registry.handlers()

        handler = self._match_url(parsed, handlers)
        if handler is not None:
            log.info("Content type detected from URL", url=url, type_tag=handler.type_tag)
            return self._remember(url, handler)

        detection_error: ContentFetchFailed | None = None
        try:
            handler = self._detect_from_content(url, handlers)
        except ContentFetchFailed as e:
            log.warning("Content detection failed", url=url, error=str(e))
            detection_error = e
            handler = None
        if handler is not None:
            log.info("Content type detected from page content", url=url, type_tag=handler.type_tag)
            return self._remember(url, handler)

        fallback = self.registry.get(FALLBACK_TYPE_TAG)
        if fallback is not None:
            log.info("Using fallback content handler", url=url, type_tag=fallback.type_tag)
            return self._remember(url, fallback)

        if detection_error is not None:
            raise detection_error
        raise NoHandlerFound(url)

    def _match_url(self, parsed: SplitResult, handlers: list[Handler]) -> Handler | None:
        for handler in handlers:
            try:
                if handler.can_handle_url(parsed):
                    return handler
            except Exception:
                log.exception(
                    "Handler URL check raised; treating as no match",
                    type_tag=handler.type_tag,
                    url=parsed.geturl(),
                )
        return None

    def _detect_from_content(self, url: str, handlers: list[Handler]) -> Handler | None:
        """
        Phase 2: ask the backend to pick among content-sniffing handlers.

        Returns None when phase 2 does not apply or the answer matches no
        candidate. Raises ContentFetchFailed when fetching the page or the
        backend call fails, whatever the backend raised.
        """
        candidates = [
            handler
            for handler in handlers
            if handler.type_tag != FALLBACK_TYPE_TAG and handler.requires_content_sniff()
        ]
        if not candidates or not self.content_detection or self.backend is None:
            return None

        html = self._page_content(url)
        excerpt = truncate_text(extract_main_text(html), self.excerpt_chars)
        prompt = CLASSIFICATION_PROMPT_TEMPLATE.format(
            url=url,
            excerpt=excerpt or "(no readable text)",
            candidates="\n".join(f"- {h.type_tag}: {h.description}" for h in candidates),
            fallback=FALLBACK_TYPE_TAG,
        )

        try:
            answer = self.backend.generate(
                prompt,
                system_prompt=CLASSIFICATION_SYSTEM_PROMPT,
                temperature=CLASSIFICATION_TEMPERATURE,
            )
        except Exception as e:
            log.warning("Classification request failed", url=url, error=str(e))
            raise ContentFetchFailed(url, f"classification request failed: {e}") from e

        normalized = normalize_answer(answer)
        by_tag = {handler.type_tag: handler for handler in candidates}
        tag = match_candidate(normalized, list(by_tag))
        if tag is None:
            log.info("Unrecognized classification answer", url=url, answer=normalized)
            return None
        return by_tag[tag]

    def _page_content(self, url: str) -> str:
        cached = self.get_cached_content(url)
        if cached is not None:
            return cached
        if self.web_client is None:
            raise ContentFetchFailed(url, "no web client configured")

        try:
            html = self.web_client.fetch_text(url)
        except requests.exceptions.RequestException as e:
            raise ContentFetchFailed(url, str(e)) from e

        with self._cache_lock:
            self._content_cache[url] = html
        return html
