"""
URL Importer Entrypoint
=======================

Imports one or more URLs into the note vault::

    url-importer https://example.com/post https://example.com/recipe

URLs can also be read from a file (one per line, ``#`` comments allowed) with
``--file``. Configuration comes from environment variables, see
`url_importer.config.Settings`.

The process exit status is 0 when every URL was imported and 1 otherwise.
"""

from __future__ import annotations

import argparse
import sys
import threading

import structlog

from .batch import run_many
from .classifier import ContentClassifier
from .config import Settings, setup_libraries
from .handlers import default_handlers
from .llm import OpenAIGenerationBackend
from .logging_config import configure_logging
from .models import PipelineFailure
from .notes import NoteWriter
from .orchestrator import ImportPipeline
from .registry import HandlerRegistry
from .web import WebClient

log = structlog.get_logger(__name__)


def build_pipeline(settings: Settings) -> tuple[ImportPipeline, WebClient]:
    """Wire the default handlers, classifier, backend and note writer."""
    web_client = WebClient(settings)
    backend = OpenAIGenerationBackend(settings)
    registry = HandlerRegistry(default_handlers(web_client))
    classifier = ContentClassifier(
        registry,
        backend,
        web_client,
        excerpt_chars=settings.DETECTION_EXCERPT_CHARS,
        content_detection=settings.CONTENT_DETECTION,
    )
    pipeline = ImportPipeline(settings, classifier, backend, NoteWriter(settings.VAULT_PATH))
    return pipeline, web_client


def read_urls(args: argparse.Namespace) -> list[str]:
    urls = list(args.urls)
    if args.file:
        with open(args.file, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#"):
                    urls.append(line)
    return urls


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="url-importer",
        description="Import web pages as Markdown notes.",
    )
    parser.add_argument("urls", nargs="*", help="URLs to import")
    parser.add_argument("-f", "--file", help="Read additional URLs from a file, one per line")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        settings = Settings()
        configure_logging(settings)
        setup_libraries(settings)
    except ValueError as e:
        structlog.get_logger(__name__).error("Configuration error", error=str(e))
        return 2

    try:
        urls = read_urls(args)
    except OSError as e:
        log.error("Could not read URL file", path=args.file, error=str(e))
        return 2
    if not urls:
        log.error("No URLs given")
        return 2

    log.info(
        "Starting import",
        url_count=len(urls),
        llm_provider=settings.LLM_PROVIDER,
        models=settings.AI_MODELS,
        workers=settings.WORKERS,
        folder=settings.DEFAULT_FOLDER,
    )

    pipeline, web_client = build_pipeline(settings)

    lock = threading.Lock()
    failures: list[PipelineFailure] = []

    def on_error(failure: PipelineFailure) -> None:
        with lock:
            failures.append(failure)
        log.error("Import error", stage=failure.stage, message=failure.user_message)

    pipeline.on_progress(
        lambda event: log.info("Progress", stage=event.stage, message=event.message)
    )
    pipeline.on_error(on_error)
    pipeline.on_complete(lambda document_id: log.info("Note saved", document_id=document_id))

    try:
        run_many(pipeline, urls, settings.WORKERS)
    except KeyboardInterrupt:
        log.info("Ctrl-C received; exiting")
        return 130
    finally:
        web_client.close()

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
