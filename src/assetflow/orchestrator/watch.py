"""Filesystem watch bindings.

Every binding pairs a glob set with the node to re-run. A binding runs on its
own single worker, so runs for one glob set never overlap while different
bindings react concurrently. Events arriving while a run is still queued are
folded into that run.
"""

from __future__ import annotations

import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .errors import WatchSetupError
from .logging import get_logger
from .sources import GlobSet


logger = get_logger("assetflow.watch")

_RELEVANT_EVENTS = {
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
}


class WatchBinding:
    def __init__(self, name: str, globs: GlobSet, target: Callable[[], Any]):
        self.name = name
        self.globs = globs
        self.target = target
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"watch-{name}"
        )
        self._lock = threading.Lock()
        self._queued: Optional[Future] = None

    def __repr__(self) -> str:
        return f"WatchBinding({self.name!r}, {self.globs.patterns!r})"

    def matches(self, rel: str) -> bool:
        return self.globs.matches(rel)

    def trigger(self) -> Future:
        with self._lock:
            queued = self._queued
            if queued is not None and not queued.running() and not queued.done():
                return queued
            fut = self._executor.submit(self._run)
            self._queued = fut
            return fut

    def _run(self):
        logger.info("Change detected, running %s", self.name)
        try:
            result = self.target()
        except Exception:  # noqa: BLE001
            # Keep the watcher alive; the next change gets another attempt.
            logger.exception("Watch run failed: %s", self.name)
            return None
        if getattr(result, "ok", True):
            logger.info("Watch run finished: %s", self.name)
        else:
            logger.error("Watch run finished with errors: %s", self.name)
        return result

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class _Handler(FileSystemEventHandler):
    def __init__(self, watcher: "Watcher"):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _RELEVANT_EVENTS:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        for p in paths:
            self.watcher.dispatch(os.fsdecode(p))


def _collapse(dirs: Iterable[Path]) -> list[Path]:
    """Drop directories already covered by a recursive watch on an ancestor."""
    kept: list[Path] = []
    for d in sorted(set(dirs), key=lambda p: len(p.parts)):
        if not any(d == k or k in d.parents for k in kept):
            kept.append(d)
    return kept


class Watcher:
    def __init__(
        self,
        bindings: Iterable[WatchBinding],
        root: Path | str,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self.bindings = list(bindings)
        self.root = Path(root).absolute()
        self._observer_factory = observer_factory
        self._observer = None

    def relative(self, path: str | Path) -> Optional[str]:
        p = Path(path)
        if not p.is_absolute():
            p = self.root / p
        try:
            return p.relative_to(self.root).as_posix()
        except ValueError:
            return None

    def dispatch(self, path: str | Path) -> list[Future]:
        """Trigger every binding whose glob set matches `path`."""
        rel = self.relative(path)
        if rel is None:
            return []
        return [b.trigger() for b in self.bindings if b.matches(rel)]

    def watch_dirs(self) -> list[Path]:
        dirs = []
        for b in self.bindings:
            for parent in b.globs.watch_dirs():
                d = self.root / parent
                # Watch the closest existing ancestor so new directories are seen.
                while not d.is_dir() and d != self.root and self.root in d.parents:
                    d = d.parent
                dirs.append(d)
        return _collapse(dirs)

    def start(self) -> None:
        if not self.root.is_dir():
            raise WatchSetupError(f"Watch root does not exist: {self.root}")
        observer = self._observer_factory()
        handler = _Handler(self)
        try:
            for d in self.watch_dirs():
                observer.schedule(handler, str(d), recursive=True)
                logger.debug("Watching %s", d)
            observer.start()
        except Exception as e:  # noqa: BLE001
            try:
                observer.stop()
            except Exception:  # noqa: BLE001
                pass
            raise WatchSetupError(f"Cannot watch {self.root}: {e}") from e
        self._observer = observer
        logger.info(
            "Watching %d binding(s): %s",
            len(self.bindings),
            ", ".join(b.name for b in self.bindings),
        )

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        for b in self.bindings:
            b.close()

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Start watching and block until `stop_event` is set or interrupted."""
        stop_event = stop_event or threading.Event()
        self.start()
        try:
            while not stop_event.wait(0.5):
                pass
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping watch")
        finally:
            self.stop()
