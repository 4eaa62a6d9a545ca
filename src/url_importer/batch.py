"""
Batch Runner
============

Runs several imports concurrently in a thread pool. All runs share the
pipeline, and with it the classifier caches; `ImportPipeline.run` never
raises, so one failing URL cannot affect the others.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable

import structlog

from .orchestrator import ImportPipeline

log = structlog.get_logger(__name__)


def run_many(pipeline: ImportPipeline, urls: Iterable[str], max_workers: int) -> None:
    """
    Import every URL in ``urls`` using up to ``max_workers`` threads.

    Duplicate URLs are imported once. Blocks until all runs finished.
    """
    unique_urls = list(dict.fromkeys(url.strip() for url in urls if url and url.strip()))
    if not unique_urls:
        log.info("No URLs to import")
        return

    max_workers = max(1, min(int(max_workers), len(unique_urls)))
    log.info("Processing batch", url_count=len(unique_urls), max_workers=max_workers)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_url = {executor.submit(pipeline.run, url): url for url in unique_urls}
        for future in as_completed(future_to_url):
            url = future_to_url[future]
            try:
                future.result()
            except Exception:
                log.exception("Import run crashed", url=url)
