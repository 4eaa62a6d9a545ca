"""
Pytest configuration.

Why this exists:

The project uses a ``src/`` layout (package code lives in ``src/url_importer``).
Normally, developers run tests after installing the package (e.g. ``pip install -e .``).

Editable installs in dot-prefixed virtualenv folders (like ``.venv``) can end up
with a hidden ``.pth`` file on some macOS setups, and Python's ``site`` module
skips hidden ``.pth`` files. When that happens, ``import url_importer`` fails
even though the source tree is present.

This file adds ``src/`` to ``sys.path`` only when the package cannot be
imported normally, and provides the fixtures most test modules share.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest


def _ensure_src_on_path() -> None:
    try:
        import url_importer  # noqa: F401
        return
    except ModuleNotFoundError:
        pass

    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    sys.path.insert(0, str(src_dir))


_ensure_src_on_path()


@pytest.fixture
def settings(mocker, tmp_path):
    """Settings with a test API key, no retries and a temporary vault."""
    from url_importer.config import Settings

    mocker.patch.dict(
        os.environ,
        {
            "OPENAI_API_KEY": "sk-test-key-1234",
            "AI_MODELS": "gpt-primary,gpt-fallback",
            "MAX_RETRIES": "1",
            "VAULT_PATH": str(tmp_path),
        },
        clear=True,
    )
    return Settings()

