"""
Import Pipeline
===============

`ImportPipeline.run` takes one URL through five stages:

1. ``validating_url``: syntax and external-URL policy checks.
2. ``detecting_content_type``: the classifier picks a handler.
3. ``downloading_content``: the handler builds a content record, reusing any
   page body the classifier already downloaded.
4. ``processing_with_llm``: prompt, generate, parse, validate.
5. ``writing_note``: render the note and hand it to the persistence sink.

A progress event is emitted on entering each stage and a completion event at
the end. The first failing stage stops the run; its error is logged with the
original cause and reported to error listeners as a single user-facing
sentence. `run` itself never raises.
"""

from __future__ import annotations

import errno
from typing import Any, Callable

import openai
import requests
import structlog

from .classifier import ContentClassifier
from .config import Settings
from .errors import (
    ContentUnavailable,
    NetworkFailure,
    ValidationFailed,
    strip_credentials,
)
from .handlers.base import Handler
from .llm import GenerationBackend
from .models import (
    STAGE_DETECTING_CONTENT_TYPE,
    STAGE_DOWNLOADING_CONTENT,
    STAGE_PROCESSING_WITH_LLM,
    STAGE_VALIDATING_URL,
    STAGE_WRITING_NOTE,
    CompletedProgress,
    ContentRecord,
    PipelineFailure,
    StageProgress,
)
from .notes import PersistenceSink
from .urls import validate_url
from .utils import sanitize_filename

log = structlog.get_logger(__name__)

NOTE_SYSTEM_PROMPT = (
    "You turn web content into accurate, well-structured Markdown notes. "
    "Follow the requested output format exactly and do not invent facts."
)

NETWORK_ERROR_MESSAGE = (
    "A network error occurred. Please check your internet connection and try again."
)
PERMISSION_ERROR_MESSAGE = "Permission denied while writing the note."
CONTENT_UNAVAILABLE_MESSAGE = "The content is not available for this URL."
VALIDATION_ERROR_MESSAGE = (
    "AI processing failed: the generated output was incomplete or invalid."
)

STAGE_ERROR_MESSAGES = {
    STAGE_VALIDATING_URL: "Invalid or unsupported URL.",
    STAGE_DOWNLOADING_CONTENT: (
        "Failed to download content. Please check your network connection or the source URL."
    ),
    STAGE_PROCESSING_WITH_LLM: "AI processing failed. Please try again later.",
    STAGE_WRITING_NOTE: "Failed to write the note. Please check your file system permissions.",
}
UNKNOWN_ERROR_MESSAGE = "An unexpected error occurred."

NETWORK_EXCEPTIONS = (
    NetworkFailure,
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    openai.APIConnectionError,
    ConnectionError,
    TimeoutError,
)

ProgressListener = Callable[[Any], None]
ErrorListener = Callable[[PipelineFailure], None]
CompleteListener = Callable[[str], None]


def _is_permission_error(error: BaseException) -> bool:
    if isinstance(error, PermissionError):
        return True
    return isinstance(error, OSError) and error.errno in (errno.EACCES, errno.EPERM)


def user_message_for(stage: str, error: BaseException) -> str:
    """Translate an exception raised in ``stage`` into one user-facing sentence."""
    user_message = getattr(error, "user_message", None)
    if user_message:
        return user_message
    if isinstance(error, NETWORK_EXCEPTIONS):
        return NETWORK_ERROR_MESSAGE
    if _is_permission_error(error):
        return PERMISSION_ERROR_MESSAGE
    if isinstance(error, ContentUnavailable):
        return CONTENT_UNAVAILABLE_MESSAGE
    if isinstance(error, ValidationFailed):
        return VALIDATION_ERROR_MESSAGE
    return STAGE_ERROR_MESSAGES.get(stage, UNKNOWN_ERROR_MESSAGE)


class _StageFailed(Exception):
    def __init__(self, stage: str, cause: BaseException):
        super().__init__(stage)
        self.stage = stage
        self.cause = cause


class ImportPipeline:
    """
    Runs the import of one URL at a time per call; separate `run` calls are
    independent and may execute concurrently on different threads.
    """

    def __init__(
        self,
        settings: Settings,
        classifier: ContentClassifier,
        backend: GenerationBackend,
        sink: PersistenceSink,
    ):
        self.settings = settings
        self.classifier = classifier
        self.backend = backend
        self.sink = sink

        self._progress_listeners: list[ProgressListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._complete_listeners: list[CompleteListener] = []

    # --- Listener registration ---

    def on_progress(self, callback: ProgressListener) -> None:
        self._progress_listeners.append(callback)

    def on_error(self, callback: ErrorListener) -> None:
        self._error_listeners.append(callback)

    def on_complete(self, callback: CompleteListener) -> None:
        self._complete_listeners.append(callback)

    def _notify(self, listeners: list, payload, channel: str) -> None:
        for callback in list(listeners):
            try:
                callback(payload)
            except Exception:
                log.exception("Pipeline listener raised", channel=channel)

    def _progress(self, stage: str, message: str, step: int, content_type: str | None = None):
        event = StageProgress(stage=stage, message=message, step=step, content_type=content_type)
        log.debug("Pipeline progress", stage=stage, step=step, content_type=content_type)
        self._notify(self._progress_listeners, event, "progress")

    # --- Run ---

    def run(self, url: str) -> None:
        """Import ``url``. Never raises; outcomes are reported to listeners."""
        log_ctx = log.bind(url=strip_credentials(url))
        # Holds the stage a failure at this point is reported under.
        current_stage = [STAGE_VALIDATING_URL]
        try:
            document_id = self._run_stages(url, current_stage)
        except _StageFailed as failure:
            self._fail(log_ctx, failure.stage, failure.cause)
            return
        except Exception as e:
            self._fail(log_ctx, current_stage[0], e)
            return

        log_ctx.info("Import completed", document_id=document_id)
        self._notify(
            self._progress_listeners,
            CompletedProgress(stored_document_id=document_id, message="Import complete"),
            "progress",
        )
        self._notify(self._complete_listeners, document_id, "complete")

    def _fail(self, log_ctx, stage: str, cause: BaseException) -> None:
        log_ctx.error(
            "Import failed",
            stage=stage,
            error_type=type(cause).__name__,
            exc_info=(type(cause), cause, cause.__traceback__),
        )
        failure = PipelineFailure(
            stage=stage, user_message=user_message_for(stage, cause), cause=cause
        )
        self._notify(self._error_listeners, failure, "error")

    def _enter(
        self,
        current_stage: list,
        stage: str,
        message: str,
        step: int,
        content_type: str | None = None,
        *,
        report_as: str | None = None,
    ) -> None:
        current_stage[0] = report_as or stage
        self._progress(stage, message, step, content_type)

    def _run_stages(self, url: str, current_stage: list) -> str:
        self._enter(current_stage, STAGE_VALIDATING_URL, "Validating URL", 1)
        try:
            validate_url(url, allow_private=self.settings.ALLOW_PRIVATE_URLS)
        except Exception as e:
            raise _StageFailed(STAGE_VALIDATING_URL, e) from e

        # Classification failures are reported as URL validation failures.
        self._enter(
            current_stage,
            STAGE_DETECTING_CONTENT_TYPE,
            "Detecting content type",
            2,
            report_as=STAGE_VALIDATING_URL,
        )
        try:
            handler = self.classifier.resolve(url)
        except Exception as e:
            raise _StageFailed(STAGE_VALIDATING_URL, e) from e

        self._enter(
            current_stage,
            STAGE_DOWNLOADING_CONTENT,
            f"Downloading {handler.type_tag} content",
            3,
            content_type=handler.type_tag,
        )
        try:
            record = handler.fetch(url, self.classifier.get_cached_content(url))
        except Exception as e:
            raise _StageFailed(STAGE_DOWNLOADING_CONTENT, e) from e

        self._enter(current_stage, STAGE_PROCESSING_WITH_LLM, "Processing with AI", 4)
        try:
            generated_text = self._generate(handler, record)
        except Exception as e:
            raise _StageFailed(STAGE_PROCESSING_WITH_LLM, e) from e

        self._enter(current_stage, STAGE_WRITING_NOTE, "Writing note", 5)
        try:
            return self._write(handler, record, generated_text)
        except Exception as e:
            raise _StageFailed(STAGE_WRITING_NOTE, e) from e

    def _generate(self, handler: Handler, record: ContentRecord) -> str:
        prompt = handler.build_prompt(record)
        text = self.backend.generate(prompt, system_prompt=NOTE_SYSTEM_PROMPT)
        output = handler.parse_generated_text(text)
        if not handler.validate_output(output):
            raise ValidationFailed(f"{handler.type_tag} handler rejected the generated output")
        return text

    def _write(self, handler: Handler, record: ContentRecord, generated_text: str) -> str:
        folder = "/".join(
            part.strip("/")
            for part in (self.settings.DEFAULT_FOLDER, handler.folder_for(record))
            if part and part.strip("/")
        )
        filename = sanitize_filename(record.title, self.settings.MAX_FILENAME_LENGTH) + ".md"
        body = handler.render(generated_text, record)
        return self.sink.write(folder, filename, body)
