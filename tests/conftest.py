"""Test configuration and fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from assetflow.orchestrator.config import BuildConfig


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[..., Path]:
    """Write a file below the temporary project root and return its path."""

    def _write(rel: str, content: str | bytes = "") -> Path:
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def default_config(tmp_path: Path) -> BuildConfig:
    """The built-in bindings rooted at the temporary project."""
    return BuildConfig.from_dict({"root": str(tmp_path)})
