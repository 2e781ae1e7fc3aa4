"""Locale task: compile gettext `.po` catalogs into binary `.mo` files."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Iterable

import polib

from ..orchestrator import Output, Task, task_kind
from ..orchestrator.errors import TransformError
from ..orchestrator.sources import SourceFile
from ..orchestrator.utils import extname


def _locale(source: SourceFile, data: bytes, target: PurePosixPath) -> list[Output]:
    text = data.decode("utf-8-sig")
    try:
        catalog = polib.pofile(text)
    except (IOError, ValueError) as e:
        raise TransformError(source.path, str(e)) from e
    return [Output(target, catalog.to_binary())]


@task_kind("locale")
def make_locale_task(
    name: str,
    src: Iterable[str],
    dest: Path | str = "./dist",
    base: str | None = None,
    *,
    root: Path | str = ".",
    strict: bool = False,
) -> Task:
    return Task(
        name,
        src,
        dest,
        kind="locale",
        transform=_locale,
        base=base,
        root=root,
        rename=extname(".mo"),
        strict=strict,
    )
