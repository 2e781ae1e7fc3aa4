"""Verbatim copy of matched files (already minified assets, PHP, JSON)."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Iterable

from ..orchestrator import Output, Task, task_kind
from ..orchestrator.sources import SourceFile


def _copy(source: SourceFile, data: bytes, target: PurePosixPath) -> list[Output]:
    return [Output(target, data)]


@task_kind("copy")
def make_copy_task(
    name: str,
    src: Iterable[str],
    dest: Path | str = "./dist",
    base: str | None = None,
    *,
    root: Path | str = ".",
    strict: bool = False,
) -> Task:
    return Task(
        name, src, dest, kind="copy", transform=_copy, base=base, root=root, strict=strict
    )
