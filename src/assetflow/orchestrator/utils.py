from __future__ import annotations

"""Small helpers for naming build targets."""

from pathlib import PurePosixPath
from typing import Callable


def extname(ext: str) -> Callable[[PurePosixPath], PurePosixPath]:
    """Rename helper replacing the last extension, e.g. `a.css` -> `a.min.css`."""

    def rename(relpath: PurePosixPath) -> PurePosixPath:
        if relpath.suffix:
            return relpath.with_suffix(ext)
        return relpath.with_name(relpath.name + ext)

    return rename


def is_partial(relpath: PurePosixPath) -> bool:
    return relpath.name.startswith("_")
