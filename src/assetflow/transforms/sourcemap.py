"""Source map v3 artifacts written next to minified outputs.

The maps are line level: every generated line points at the start of the
source file, and the original text travels in `sourcesContent` so devtools
can always show it.
"""

from __future__ import annotations

import json
import posixpath
from pathlib import PurePosixPath


def map_path(target: PurePosixPath) -> PurePosixPath:
    return target.with_name(target.name + ".map")


def build_map(target: PurePosixPath, source: PurePosixPath, generated: str, original: str) -> bytes:
    """Return the JSON bytes of a map for `target` built from `source`.

    Both paths are relative to the destination root; the `sources` entry is
    written relative to the map's own directory.
    """
    source_ref = posixpath.relpath(str(source), str(target.parent) or ".")
    lines = generated.count("\n") + 1
    payload = {
        "version": 3,
        "file": target.name,
        "sources": [source_ref],
        "sourcesContent": [original],
        "names": [],
        "mappings": ";".join(["AAAA"] * lines),
    }
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def css_map_comment(target: PurePosixPath) -> str:
    return f"\n/*# sourceMappingURL={map_path(target).name} */\n"


def js_map_comment(target: PurePosixPath) -> str:
    return f"\n//# sourceMappingURL={map_path(target).name}\n"
