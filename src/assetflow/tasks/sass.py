"""Sass task: compile `.scss` with libsass, then the same steps as the CSS task.

Partials (`_name.scss`) are only compiled through the files importing them.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Iterable

import sass

from ..orchestrator import Output, Task, task_kind
from ..orchestrator.errors import TransformError
from ..orchestrator.sources import SourceFile
from ..orchestrator.utils import extname, is_partial
from .css import stylesheet_outputs


def _not_partial(relpath: PurePosixPath) -> bool:
    return not is_partial(relpath)


def _sass(source: SourceFile, data: bytes, target: PurePosixPath) -> list[Output]:
    text = data.decode("utf-8-sig")
    try:
        css = sass.compile(
            string=text,
            output_style="expanded",
            include_paths=[str(source.path.parent)],
        )
    except sass.CompileError as e:
        raise TransformError(source.path, str(e).strip()) from e
    return stylesheet_outputs(source, text, css, target)


@task_kind("sass")
def make_sass_task(
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
        kind="sass",
        transform=_sass,
        base=base,
        root=root,
        rename=extname(".min.css"),
        accepts=_not_partial,
        strict=strict,
    )
