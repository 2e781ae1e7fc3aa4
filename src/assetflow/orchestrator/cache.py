"""Content-based change detection for destination files.

A destination is rewritten only when it is missing or its bytes differ from
the candidate output. Modification times are never consulted.
"""

from __future__ import annotations

import hashlib
import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .errors import DestinationWriteError


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def file_digest(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


@dataclass(frozen=True)
class ChangeRecord:
    path: Path
    existed: bool
    changed: bool


def compare_contents(path: Path, data: bytes) -> ChangeRecord:
    try:
        st = path.stat()
    except (FileNotFoundError, NotADirectoryError):
        return ChangeRecord(path=path, existed=False, changed=True)
    if not path.is_file():
        # A directory squatting on the target; let the write report it.
        return ChangeRecord(path=path, existed=True, changed=True)
    if st.st_size != len(data):
        return ChangeRecord(path=path, existed=True, changed=True)
    try:
        same = file_digest(path) == sha256_bytes(data)
    except OSError:
        same = False
    return ChangeRecord(path=path, existed=True, changed=not same)


def _target_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except OSError:
        return 0o644


def write_if_changed(path: Path, data: bytes) -> ChangeRecord:
    """Write `data` to `path` unless the file already holds identical bytes."""
    try:
        record = compare_contents(path, data)
    except OSError as e:
        raise DestinationWriteError(path, e.strerror or str(e)) from e
    if not record.changed:
        return record
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp_name, _target_mode(path))
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise DestinationWriteError(path, e.strerror or str(e)) from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    return record
