from __future__ import annotations

import importlib
import pkgutil
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Iterator, List, Union

from .cache import write_if_changed
from .errors import (
    DestinationWriteError,
    FileError,
    SourceReadError,
    TransformError,
)
from .logging import get_logger
from .sources import GlobSet, SourceFile


@dataclass
class Output:
    relpath: PurePosixPath
    data: bytes


# transform(source, raw bytes, renamed relative target) -> outputs
Transform = Callable[[SourceFile, bytes, PurePosixPath], List[Output]]


@dataclass
class FileFailure:
    path: str
    kind: str
    message: str
    fatal: bool

    @classmethod
    def from_error(cls, err: FileError, fatal: bool) -> "FileFailure":
        return cls(path=str(err.path), kind=err.kind, message=err.message, fatal=fatal)


@dataclass
class TaskReport:
    name: str
    written: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)
    error: str | None = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None and not any(f.fatal for f in self.failures)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": "task",
            "status": "ok" if self.ok else "error",
            "written": self.written,
            "unchanged": self.unchanged,
            "failures": [f.__dict__ for f in self.failures],
            "error": self.error,
            "duration": round(self.duration, 4),
        }


@dataclass
class GroupResult:
    name: str
    kind: str
    members: list[Union[TaskReport, "GroupResult"]] = field(default_factory=list)
    not_run: list[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return all(m.ok for m in self.members) and not self.not_run

    def reports(self) -> Iterator[TaskReport]:
        for m in self.members:
            if isinstance(m, GroupResult):
                yield from m.reports()
            else:
                yield m

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.kind,
            "status": "ok" if self.ok else "error",
            "members": [m.to_dict() for m in self.members],
            "not_run": self.not_run,
            "duration": round(self.duration, 4),
        }


def _identity(relpath: PurePosixPath) -> PurePosixPath:
    return relpath


def _accept_all(relpath: PurePosixPath) -> bool:
    return True


class Task:
    """A named, zero-argument unit of work over the files matched by `src`.

    Each matched file is read, transformed and written through the change
    check. Per-file errors are contained: the failing file is logged and
    recorded in the report, the rest of the batch proceeds. Only write errors
    (or any error, when `strict`) make the report fail.
    """

    def __init__(
        self,
        name: str,
        src: Iterable[str],
        dest: Path | str,
        *,
        kind: str,
        transform: Transform,
        base: str | None = None,
        root: Path | str = ".",
        rename: Callable[[PurePosixPath], PurePosixPath] | None = None,
        accepts: Callable[[PurePosixPath], bool] | None = None,
        strict: bool = False,
    ):
        self.name = name
        self.kind = kind
        self.globs = GlobSet(src)
        self.dest = Path(dest)
        self.base = base
        self.root = Path(root)
        self.transform = transform
        self.rename = rename or _identity
        self.accepts = accepts or _accept_all
        self.strict = strict
        # destination -> task that owns it when several tasks claim it
        self.deferred: dict[Path, str] = {}
        self.logger = get_logger(f"assetflow.task.{name}")

    def __repr__(self) -> str:
        return f"Task({self.name!r}, kind={self.kind!r}, src={self.globs.patterns!r})"

    @property
    def renames(self) -> bool:
        return self.rename is not _identity

    @property
    def dest_dir(self) -> Path:
        return self.dest if self.dest.is_absolute() else self.root / self.dest

    def iter_tasks(self) -> Iterator["Task"]:
        yield self

    def sources(self) -> list[SourceFile]:
        return [
            s
            for s in self.globs.expand(self.root, self.base)
            if self.accepts(s.relpath)
        ]

    def planned_outputs(self) -> list[Path]:
        return [self.dest_dir / self.rename(s.relpath) for s in self.sources()]

    def _produce(self, source: SourceFile, target: PurePosixPath) -> list[Output]:
        try:
            data = source.path.read_bytes()
        except OSError as e:
            raise SourceReadError(source.path, e.strerror or str(e)) from e
        try:
            return list(self.transform(source, data, target))
        except TransformError:
            raise
        except Exception as e:  # noqa: BLE001
            raise TransformError(source.path, f"{type(e).__name__}: {e}") from e

    def __call__(self) -> TaskReport:
        started = time.monotonic()
        report = TaskReport(name=self.name)
        sources = self.sources()
        self.logger.debug("Run: %s (%d files)", self.name, len(sources))
        dest_dir = self.dest_dir
        for source in sources:
            target = self.rename(source.relpath)
            owner = self.deferred.get(dest_dir / target)
            if owner is not None:
                self.logger.debug("Skipped %s: %s is written by %s", source.path, target, owner)
                continue
            try:
                outputs = self._produce(source, target)
            except (SourceReadError, TransformError) as e:
                self.logger.error("Skipped %s (%s error): %s", source.path, e.kind, e.message)
                report.failures.append(FileFailure.from_error(e, fatal=self.strict))
                continue
            for out in outputs:
                path = dest_dir / out.relpath
                try:
                    record = write_if_changed(path, out.data)
                except DestinationWriteError as e:
                    self.logger.error("Write failed for %s: %s", path, e.message)
                    report.failures.append(FileFailure.from_error(e, fatal=True))
                    continue
                if record.changed:
                    report.written.append(str(path))
                else:
                    report.unchanged.append(str(path))
        report.duration = time.monotonic() - started
        self.logger.info(
            "Finished %s: %d written, %d unchanged, %d failed (%.2fs)",
            self.name,
            len(report.written),
            len(report.unchanged),
            len(report.failures),
            report.duration,
        )
        return report


Node = Union[Task, "TaskGroup"]


def run_node(node: Node) -> Union[TaskReport, GroupResult]:
    """Run `node`, turning a crash into a failed report."""
    try:
        return node()
    except Exception as e:  # noqa: BLE001
        get_logger("assetflow.pipeline").exception("Task crashed: %s", node.name)
        return TaskReport(name=node.name, error=f"{type(e).__name__}: {e}")


class TaskGroup:
    """Parallel or series composition of tasks and other groups."""

    def __init__(self, kind: str, members: Iterable[Node], name: str | None = None):
        if kind not in ("parallel", "series"):
            raise ValueError(f"Unknown group kind: {kind}")
        self.kind = kind
        self.members = list(members)
        self.name = name or f"{kind}({', '.join(m.name for m in self.members)})"

    def __repr__(self) -> str:
        return f"TaskGroup({self.kind!r}, {[m.name for m in self.members]!r})"

    def iter_tasks(self) -> Iterator[Task]:
        for m in self.members:
            yield from m.iter_tasks()

    def __call__(self) -> GroupResult:
        started = time.monotonic()
        result = GroupResult(name=self.name, kind=self.kind)
        if self.kind == "series":
            for idx, member in enumerate(self.members):
                outcome = run_node(member)
                result.members.append(outcome)
                if not outcome.ok:
                    result.not_run = [m.name for m in self.members[idx + 1 :]]
                    break
        elif self.members:
            done: dict[int, Union[TaskReport, GroupResult]] = {}
            with ThreadPoolExecutor(max_workers=len(self.members)) as executor:
                futures = {
                    executor.submit(run_node, m): i
                    for i, m in enumerate(self.members)
                }
                for fut in as_completed(futures):
                    done[futures[fut]] = fut.result()
            result.members = [done[i] for i in range(len(self.members))]
        result.duration = time.monotonic() - started
        return result


def parallel(*members: Node, name: str | None = None) -> TaskGroup:
    return TaskGroup("parallel", members, name=name)


def series(*members: Node, name: str | None = None) -> TaskGroup:
    return TaskGroup("series", members, name=name)


def task_kind(kind: str):
    """Decorator to register a task factory under a config `kind`.

    The factory is called as `factory(name, src, dest, base=..., root=..., strict=...)`
    and must return a `Task`.
    """

    def deco(factory: Callable[..., Task]):
        setattr(factory, "_task_kind", kind)
        return factory

    return deco


def discover_task_kinds(package: str = "assetflow.tasks") -> dict[str, Callable[..., Task]]:
    """Import all modules in the tasks package and collect registered factories."""
    log = get_logger("assetflow.pipeline")
    kinds: dict[str, Callable[..., Task]] = {}
    pkg = importlib.import_module(package)
    for m in pkgutil.iter_modules(pkg.__path__, prefix=f"{package}."):
        try:
            mod = importlib.import_module(m.name)
        except Exception as e:  # noqa: BLE001
            log.warning("Failed to import %s: %s", m.name, e)
            continue
        for attr_name in dir(mod):
            obj = getattr(mod, attr_name)
            kind = getattr(obj, "_task_kind", None)
            if isinstance(kind, str):
                kinds[kind] = obj
    return kinds


def topo_sort(nodes: Iterable[str], edges: Iterable[tuple[str, str]]) -> list[str]:
    nodes = list(nodes)
    incoming = {n: set() for n in nodes}
    outgoing = {n: set() for n in nodes}
    for u, v in edges:
        if u not in incoming or v not in incoming:
            raise ValueError(f"Edge references unknown node: {(u, v)}")
        outgoing[u].add(v)
        incoming[v].add(u)
    ordered: list[str] = []
    roots = sorted((n for n in nodes if not incoming[n]), reverse=True)
    while roots:
        n = roots.pop()
        ordered.append(n)
        for m in sorted(outgoing[n]):
            incoming[m].discard(n)
            outgoing[n].discard(m)
            if not incoming[m]:
                roots.append(m)
    if any(incoming[n] for n in nodes):
        raise ValueError("Cycle detected in group definitions")
    return ordered
