from __future__ import annotations

import json
import sys
import threading
import time
from collections import defaultdict
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from .config import BuildConfig
from .core import (
    GroupResult,
    Node,
    Task,
    TaskGroup,
    TaskReport,
    discover_task_kinds,
    parallel,
    run_node,
    series,
    topo_sort,
)
from .errors import ConfigError
from .logging import get_logger
from .sources import GlobSet
from .watch import WatchBinding, Watcher


class State(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    BUILT = "built"
    BUILD_FAILED = "build_failed"
    WATCHING = "watching"
    REACTING = "reacting_to_change"
    STOPPED = "stopped"


class Pipeline:
    """Wires the configured asset tasks into groups and runs build/watch."""

    def __init__(
        self,
        config: BuildConfig,
        kinds: Optional[Dict[str, Callable[..., Task]]] = None,
        name: str = "build",
    ):
        self.name = name
        self.config = config
        self.kinds = kinds if kinds is not None else discover_task_kinds()
        self.logger = get_logger("assetflow.pipeline")
        self.tasks = self._make_tasks()
        self.nodes = self._make_nodes()
        for member in config.build:
            self.node(member)
        self.state = State.IDLE
        self._lock = threading.Lock()
        self._active = 0
        self._claims_lock = threading.Lock()
        self._reported: set[Path] = set()

    def _make_tasks(self) -> Dict[str, Task]:
        tasks: Dict[str, Task] = {}
        for name, spec in self.config.assets.items():
            factory = self.kinds.get(spec.kind)
            if factory is None:
                raise ConfigError(
                    f"Asset {name!r} uses unknown kind {spec.kind!r} "
                    f"(known: {', '.join(sorted(self.kinds))})"
                )
            tasks[name] = factory(
                name,
                spec.src,
                spec.dest or self.config.dest,
                base=spec.base,
                root=self.config.root,
                strict=self.config.strict,
            )
        return tasks

    def _make_nodes(self) -> Dict[str, Node]:
        groups = self.config.groups
        names = list(self.tasks) + list(groups)
        edges = []
        for group, members in groups.items():
            for member in members:
                if member not in self.tasks and member not in groups:
                    raise ConfigError(f"Group {group!r} references unknown {member!r}")
                edges.append((member, group))
        try:
            order = topo_sort(names, edges)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        nodes: Dict[str, Node] = dict(self.tasks)
        for name in order:
            if name in groups:
                nodes[name] = parallel(*(nodes[m] for m in groups[name]), name=name)
        return nodes

    def node(self, name: str) -> Node:
        try:
            return self.nodes[name]
        except KeyError:
            raise ConfigError(f"Unknown task or group: {name}") from None

    def build_node(self) -> TaskGroup:
        return parallel(*(self.node(n) for n in self.config.build), name=self.name)

    def _set_state(self, state: State) -> None:
        if state is not self.state:
            self.logger.debug("State: %s -> %s", self.state.value, state.value)
        self.state = state

    def _claimants(self, node: Optional[Node]) -> list[Task]:
        tasks: Dict[str, Task] = {}
        for group in (self.build_node(), node):
            if group is None:
                continue
            for task in group.iter_tasks():
                tasks.setdefault(task.name, task)
        return list(tasks.values())

    def check_overlaps(self, node: Optional[Node] = None) -> Dict[Path, list[str]]:
        """Destinations claimed by more than one task, handled per `on_overlap`.

        The build's tasks are always considered, so running one member alone
        still respects the claims of the others. Each contested destination
        gets one owner: a task that keeps file names (a copy of an already
        minified file) wins over one that renames, then build order decides.
        The other claimants skip that destination.
        """
        with self._claims_lock:
            tasks = self._claimants(node)
            claims: Dict[Path, list[str]] = defaultdict(list)
            for task in tasks:
                for out in task.planned_outputs():
                    claims[out].append(task.name)
            overlaps = {p: names for p, names in claims.items() if len(names) > 1}
            if overlaps and self.config.on_overlap == "error":
                lines = [f"{p} <- {', '.join(names)}" for p, names in sorted(overlaps.items())]
                raise ConfigError("Overlapping destinations:\n  " + "\n  ".join(lines))

            by_name = {t.name: t for t in tasks}
            deferred: Dict[str, Dict[Path, str]] = {t.name: {} for t in tasks}
            for path, names in sorted(overlaps.items()):
                owner = min(names, key=lambda n: (by_name[n].renames, names.index(n)))
                for name in names:
                    if name != owner:
                        deferred[name][path] = owner
                if self.config.on_overlap == "warn" and path not in self._reported:
                    self._reported.add(path)
                    self.logger.warning(
                        "Overlapping destination: %s <- %s (written by %s)",
                        path,
                        ", ".join(names),
                        owner,
                    )
            for task in tasks:
                task.deferred = deferred[task.name]
            return overlaps

    def build(self) -> GroupResult:
        node = self.build_node()
        self.check_overlaps(node)
        self._set_state(State.BUILDING)
        self.logger.info("Build: %s", ", ".join(m.name for m in node.members))
        result = node()
        self._set_state(State.BUILT if result.ok else State.BUILD_FAILED)
        self._log_summary(result)
        return result

    def run_one(self, name: str) -> Union[TaskReport, GroupResult]:
        node = self.node(name)
        self.check_overlaps(node)
        self.logger.info("Run: %s", name)
        return run_node(node)

    def _log_summary(self, result: GroupResult) -> None:
        reports = list(result.reports())
        written = sum(len(r.written) for r in reports)
        unchanged = sum(len(r.unchanged) for r in reports)
        failed = [r.name for r in reports if not r.ok]
        if failed:
            self.logger.error(
                "Build failed in %.2fs (failed: %s)", result.duration, ", ".join(failed)
            )
        else:
            self.logger.info(
                "Build finished in %.2fs: %d written, %d unchanged",
                result.duration,
                written,
                unchanged,
            )

    def _reacting(self, node: Node) -> Callable[[], Union[TaskReport, GroupResult]]:
        def run():
            with self._lock:
                self._active += 1
                self._set_state(State.REACTING)
            try:
                self.check_overlaps(node)
                return node()
            finally:
                with self._lock:
                    self._active -= 1
                    if self._active == 0 and self.state is State.REACTING:
                        self._set_state(State.WATCHING)

        return run

    def watch_bindings(self) -> list[WatchBinding]:
        """One binding per asset task, unless the config lists explicit ones."""
        if self.config.watch:
            bindings = []
            for idx, spec in enumerate(self.config.watch):
                nodes = [self.node(n) for n in spec.run]
                target = nodes[0] if len(nodes) == 1 else series(*nodes)
                bindings.append(
                    WatchBinding(
                        f"watch{idx}:{target.name}",
                        GlobSet(spec.src),
                        self._reacting(target),
                    )
                )
            return bindings
        return [
            WatchBinding(name, task.globs, self._reacting(series(task, name=name)))
            for name, task in self.tasks.items()
        ]

    def watcher(self, observer_factory: Optional[Callable] = None) -> Watcher:
        kwargs = {"observer_factory": observer_factory} if observer_factory else {}
        return Watcher(self.watch_bindings(), self.config.root, **kwargs)

    def watch(
        self,
        stop_event: Optional[threading.Event] = None,
        observer_factory: Optional[Callable] = None,
    ) -> None:
        """Re-run bound tasks on changes until stopped or interrupted."""
        watcher = self.watcher(observer_factory)
        self._set_state(State.WATCHING)
        try:
            watcher.run(stop_event)
        except Exception:
            watcher.stop()
            raise
        finally:
            self._set_state(State.STOPPED)

    def run_default(
        self,
        stop_event: Optional[threading.Event] = None,
        observer_factory: Optional[Callable] = None,
    ) -> GroupResult:
        """Build once, then watch if the build succeeded."""
        result = self.build()
        if result.ok:
            self.watch(stop_event, observer_factory)
        return result


def write_report(path: Path, result: Union[TaskReport, GroupResult], pipeline: Pipeline) -> None:
    state = {
        "pipeline": pipeline.name,
        "state": pipeline.state.value,
        "finished_at": time.strftime("%Y-%m-%dT%H:%M:%S"),
        "python": sys.version,
        "result": result.to_dict(),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(state, f, indent=2)
