"""JavaScript task: minify with rjsmin, rename to `.min.js`, write with a source map."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Iterable

import rjsmin

from ..orchestrator import Output, Task, task_kind
from ..orchestrator.sources import SourceFile
from ..orchestrator.utils import extname
from ..transforms.sourcemap import build_map, js_map_comment, map_path


def _js(source: SourceFile, data: bytes, target: PurePosixPath) -> list[Output]:
    text = data.decode("utf-8-sig")
    minified = rjsmin.jsmin(text, keep_bang_comments=True)
    return [
        Output(target, (minified + js_map_comment(target)).encode("utf-8")),
        Output(map_path(target), build_map(target, source.relpath, minified, text)),
    ]


@task_kind("js")
def make_js_task(
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
        kind="js",
        transform=_js,
        base=base,
        root=root,
        rename=extname(".min.js"),
        strict=strict,
    )
