"""CSS task: vendor-prefix, minify, rename to `.min.css`, write with a source map."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Iterable

import rcssmin

from ..orchestrator import Output, Task, task_kind
from ..orchestrator.errors import TransformError
from ..orchestrator.sources import SourceFile
from ..orchestrator.utils import extname
from ..transforms.prefix import CSSSyntaxError, autoprefix
from ..transforms.sourcemap import build_map, css_map_comment, map_path


def minify_css(source: SourceFile, css: str) -> str:
    try:
        prefixed = autoprefix(css)
    except CSSSyntaxError as e:
        raise TransformError(source.path, f"invalid CSS at {e}") from e
    return rcssmin.cssmin(prefixed, keep_bang_comments=True)


def stylesheet_outputs(
    source: SourceFile, original: str, css: str, target: PurePosixPath
) -> list[Output]:
    """Minified stylesheet plus its map, shared by the CSS and Sass tasks."""
    minified = minify_css(source, css)
    return [
        Output(target, (minified + css_map_comment(target)).encode("utf-8")),
        Output(map_path(target), build_map(target, source.relpath, minified, original)),
    ]


def _css(source: SourceFile, data: bytes, target: PurePosixPath) -> list[Output]:
    text = data.decode("utf-8-sig")
    return stylesheet_outputs(source, text, text, target)


@task_kind("css")
def make_css_task(
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
        kind="css",
        transform=_css,
        base=base,
        root=root,
        rename=extname(".min.css"),
        strict=strict,
    )
