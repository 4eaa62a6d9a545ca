"""
Note persistence.

`NoteWriter` is the reference persistence sink: it writes rendered notes as
Markdown files below a vault directory and returns the vault-relative path as
the stored-document id.
"""

from __future__ import annotations

import os
from typing import Protocol

import structlog

from .errors import PersistenceFailed

log = structlog.get_logger(__name__)

MAX_NAME_ATTEMPTS = 1000


class PersistenceSink(Protocol):
    def write(self, folder: str, filename: str, content: str) -> str: ...


class NoteWriter:
    """
    Write notes into ``vault_path``.

    Existing files are never overwritten; a clashing name gets a numeric
    suffix (``Title 1.md``, ``Title 2.md``, ...). `PermissionError` propagates
    unchanged; any other filesystem error becomes `PersistenceFailed`.
    """

    def __init__(self, vault_path: str):
        self.vault_path = vault_path

    def write(self, folder: str, filename: str, content: str) -> str:
        try:
            return self._write(folder, filename, content)
        except PermissionError:
            raise
        except OSError as e:
            raise PersistenceFailed(f"Could not write {filename!r} to {folder!r}: {e}") from e

    def _write(self, folder: str, filename: str, content: str) -> str:
        directory = os.path.join(self.vault_path, *[p for p in folder.split("/") if p])
        os.makedirs(directory, exist_ok=True)

        stem, ext = os.path.splitext(filename)
        for attempt in range(MAX_NAME_ATTEMPTS):
            name = filename if attempt == 0 else f"{stem} {attempt}{ext}"
            path = os.path.join(directory, name)
            try:
                with open(path, "x", encoding="utf-8") as f:
                    f.write(content)
            except FileExistsError:
                continue
            document_id = "/".join(p for p in (folder.strip("/"), name) if p)
            log.info("Wrote note", path=path, document_id=document_id, chars=len(content))
            return document_id

        raise PersistenceFailed(f"No free file name for {filename!r} in {directory}")
