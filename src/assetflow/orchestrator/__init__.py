"""Task and group primitives, change detection, watch bindings and the CLI
behind the asset build.
"""

from .core import (  # re-export for convenience
    GroupResult,
    Output,
    Task,
    TaskGroup,
    TaskReport,
    parallel,
    series,
    task_kind,
)
from .config import BuildConfig, load_config
from .pipeline import Pipeline, State

__all__ = [
    "BuildConfig",
    "GroupResult",
    "Output",
    "Pipeline",
    "State",
    "Task",
    "TaskGroup",
    "TaskReport",
    "load_config",
    "parallel",
    "series",
    "task_kind",
]
