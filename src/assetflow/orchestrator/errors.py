from __future__ import annotations

from pathlib import Path


class AssetflowError(Exception):
    """Base class for all assetflow errors."""


class ConfigError(AssetflowError):
    pass


class FileError(AssetflowError):
    """An error tied to a single file within a task batch."""

    kind = "file"

    def __init__(self, path: Path | str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = Path(path)
        self.message = message


class SourceReadError(FileError):
    kind = "read"


class TransformError(FileError):
    kind = "transform"


class DestinationWriteError(FileError):
    kind = "write"


class WatchSetupError(AssetflowError):
    pass
