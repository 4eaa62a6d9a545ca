"""
Data shapes passed between the classifier, handlers and the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

# Pipeline stage names, in execution order.
STAGE_VALIDATING_URL = "validating_url"
STAGE_DETECTING_CONTENT_TYPE = "detecting_content_type"
STAGE_DOWNLOADING_CONTENT = "downloading_content"
STAGE_PROCESSING_WITH_LLM = "processing_with_llm"
STAGE_WRITING_NOTE = "writing_note"
STAGE_COMPLETED = "completed"

PIPELINE_STAGES = (
    STAGE_VALIDATING_URL,
    STAGE_DETECTING_CONTENT_TYPE,
    STAGE_DOWNLOADING_CONTENT,
    STAGE_PROCESSING_WITH_LLM,
    STAGE_WRITING_NOTE,
)
TOTAL_STEPS = len(PIPELINE_STAGES)


@dataclass(frozen=True)
class ContentRecord:
    """
    Normalized result of a handler's fetch step.

    ``title`` and ``url`` are always present; the optional fields are filled
    when the handler can extract them. Handler-specific values live in
    ``extra``, which is exposed read-only.
    """

    title: str
    url: str
    content: str = ""
    author: str | None = None
    published_date: str | None = None
    image_url: str | None = None
    description: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a standard field or, failing that, an ``extra`` field."""
        if key in _RECORD_FIELDS:
            value = getattr(self, key)
            return default if value is None else value
        return self.extra.get(key, default)


_RECORD_FIELDS = frozenset(
    ("title", "url", "content", "author", "published_date", "image_url", "description")
)


@dataclass(frozen=True)
class StageProgress:
    stage: str
    message: str
    step: int
    total_steps: int = TOTAL_STEPS
    content_type: str | None = None

    @property
    def percent(self) -> int:
        return round(self.step / self.total_steps * 100)


@dataclass(frozen=True)
class CompletedProgress:
    stored_document_id: str
    message: str
    stage: str = STAGE_COMPLETED


@dataclass(frozen=True)
class PipelineFailure:
    """
    Failure report delivered to error listeners.

    ``user_message`` is safe to display. ``cause`` is the original exception
    and is meant for logging only.
    """

    stage: str
    user_message: str
    cause: BaseException | None = None
