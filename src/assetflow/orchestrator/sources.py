"""Glob sets with gulp-style semantics and source file expansion.

`*` and `?` stay within one path segment, `**` spans any number of
directories (including none) and a leading `!` excludes whatever the include
patterns before it matched. Patterns are POSIX paths relative to the project
root.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator

from .logging import get_logger


logger = get_logger("assetflow.sources")

_MAGIC = re.compile(r"[*?\[]")


def _normalize(pattern: str) -> str:
    pattern = pattern.replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern


def glob_parent(pattern: str) -> PurePosixPath:
    """Leading directory components of `pattern` that contain no glob magic."""
    parts = PurePosixPath(_normalize(pattern)).parts
    static: list[str] = []
    for part in parts[:-1]:
        if _MAGIC.search(part):
            break
        static.append(part)
    else:
        # The last segment only counts when the whole pattern is literal.
        if parts and not _MAGIC.search(parts[-1]):
            return PurePosixPath(*parts[:-1]) if len(parts) > 1 else PurePosixPath(".")
    return PurePosixPath(*static) if static else PurePosixPath(".")


def compile_glob(pattern: str) -> re.Pattern:
    pattern = _normalize(pattern)
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                if pattern.startswith("/", i + 2):
                    out.append("(?:.*/)?")
                    i += 3
                else:
                    out.append(".*")
                    i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = pattern.find("]", i + 2)
            if j == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : j]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = j + 1
                continue
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


@dataclass(frozen=True)
class SourceFile:
    path: Path  # absolute path on disk
    relpath: PurePosixPath  # path relative to the base, used for the target layout


class GlobSet:
    """Ordered include/exclude patterns."""

    def __init__(self, patterns: Iterable[str]):
        self.patterns = [str(p) for p in patterns]
        self._compiled: list[tuple[bool, str, re.Pattern]] = []
        for p in self.patterns:
            negated = p.startswith("!")
            body = _normalize(p[1:] if negated else p)
            self._compiled.append((negated, body, compile_glob(body)))
        if not self.includes:
            raise ValueError(f"Glob set has no include pattern: {self.patterns}")

    def __repr__(self) -> str:
        return f"GlobSet({self.patterns!r})"

    @property
    def includes(self) -> list[str]:
        return [body for negated, body, _ in self._compiled if not negated]

    def _excluded_after(self, index: int, rel: str) -> bool:
        return any(
            negated and rx.match(rel)
            for negated, _, rx in self._compiled[index + 1 :]
        )

    def match_index(self, rel: str) -> int | None:
        """Index of the first include pattern that claims `rel`, if any."""
        rel = _normalize(rel)
        for idx, (negated, _, rx) in enumerate(self._compiled):
            if negated or not rx.match(rel):
                continue
            if not self._excluded_after(idx, rel):
                return idx
        return None

    def matches(self, rel: str) -> bool:
        return self.match_index(rel) is not None

    def watch_dirs(self) -> list[PurePosixPath]:
        return sorted({glob_parent(body) for body in self.includes}, key=str)

    def expand(self, root: Path, base: str | None = None) -> list[SourceFile]:
        """Files under `root` matched by this set, each listed once, sorted."""
        root = Path(root)
        base_dir = PurePosixPath(_normalize(base)) if base else None
        seen: set[str] = set()
        found: list[SourceFile] = []
        for idx, (negated, body, _) in enumerate(self._compiled):
            if negated:
                continue
            parent = glob_parent(body)
            for rel in _walk(root, parent):
                if rel in seen or self.match_index(rel) != idx:
                    continue
                seen.add(rel)
                anchor = base_dir if base_dir is not None else parent
                try:
                    relpath = PurePosixPath(os.path.relpath(rel, str(anchor)).replace(os.sep, "/"))
                except ValueError:
                    relpath = PurePosixPath(rel)
                if relpath.parts and relpath.parts[0] == "..":
                    # Outside the base: fall back to the path relative to the root.
                    relpath = PurePosixPath(rel)
                found.append(SourceFile(path=root / rel, relpath=relpath))
        found.sort(key=lambda s: str(s.relpath))
        return found


def _walk_error(err: OSError) -> None:
    # A glob parent that does not exist simply matches nothing
    if isinstance(err, (FileNotFoundError, NotADirectoryError)):
        return
    logger.error("Skipped %s (read error): %s", err.filename, err.strerror or err)


def _walk(root: Path, parent: PurePosixPath) -> Iterator[str]:
    start = root / parent
    for dirpath, dirnames, filenames in os.walk(start, onerror=_walk_error):
        dirnames.sort()
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        for name in sorted(filenames):
            yield name if rel_dir == "." else f"{rel_dir}/{name}"
