"""
URL Importer
============

Turn arbitrary web URLs into Markdown notes: detect what kind of content a
URL points to, extract it, summarise it with an OpenAI-compatible model and
write the note into a vault directory.
"""

from .classifier import ContentClassifier
from .errors import ImporterError
from .handlers import Handler, default_handlers
from .models import CompletedProgress, ContentRecord, PipelineFailure, StageProgress
from .orchestrator import ImportPipeline
from .registry import HandlerRegistry

__all__ = [
    "CompletedProgress",
    "ContentClassifier",
    "ContentRecord",
    "Handler",
    "HandlerRegistry",
    "ImportPipeline",
    "ImporterError",
    "PipelineFailure",
    "StageProgress",
    "default_handlers",
]
