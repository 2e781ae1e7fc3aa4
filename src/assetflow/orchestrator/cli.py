from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from .config import load_config
from .errors import ConfigError, WatchSetupError
from .logging import get_logger, set_level
from .pipeline import Pipeline, write_report


app = typer.Typer(
    add_completion=False,
    help="Build plugin assets (JS, CSS, Sass, locales) into dist/ and watch for changes.",
)
log = get_logger("assetflow.cli")


@dataclass
class Context:
    config: Optional[str]
    root: Optional[str]


def _pipeline(ctx: typer.Context, strict: bool = False) -> Pipeline:
    opts: Context = ctx.obj
    try:
        config = load_config(opts.config, root=opts.root, strict=strict or None)
        return Pipeline(config)
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=2)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, help="Path to YAML config (defaults are built in)"),
    root: Optional[str] = typer.Option(None, help="Project root the globs are relative to"),
    log_file: Optional[Path] = typer.Option(None, help="Also log to this rotating file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    """Without a command: build once, then watch."""
    if verbose:
        set_level("DEBUG")
    if log_file:
        get_logger("assetflow", log_file=log_file)
    ctx.obj = Context(config=config, root=root)
    if ctx.invoked_subcommand is None:
        pipe = _pipeline(ctx)
        try:
            result = pipe.run_default()
        except (ConfigError, WatchSetupError) as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=2)
        if not result.ok:
            raise typer.Exit(code=1)


@app.command()
def build(
    ctx: typer.Context,
    strict: bool = typer.Option(False, help="Fail on unreadable or malformed sources too"),
    report: Optional[Path] = typer.Option(None, help="Write a JSON run summary here"),
):
    """Run every task group once."""
    pipe = _pipeline(ctx, strict=strict)
    try:
        result = pipe.build()
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=2)
    if report:
        write_report(report, result, pipe)
    if not result.ok:
        raise typer.Exit(code=1)


@app.command()
def watch(ctx: typer.Context):
    """Re-run the affected task whenever a matched file changes."""
    pipe = _pipeline(ctx)
    try:
        pipe.watch()
    except WatchSetupError as e:
        typer.echo(f"Watch error: {e}", err=True)
        raise typer.Exit(code=2)


@app.command("list")
def list_tasks(ctx: typer.Context):
    """List asset tasks, groups and the build members."""
    pipe = _pipeline(ctx)
    typer.echo("Tasks:")
    for name, task in pipe.tasks.items():
        base = f" (base: {task.base})" if task.base else ""
        typer.echo(f"- {name} [{task.kind}] {' '.join(task.globs.patterns)}{base}")
    if pipe.config.groups:
        typer.echo("Groups:")
        for name, members in pipe.config.groups.items():
            typer.echo(f"- {name}: {', '.join(members)}")
    typer.echo(f"Build: {', '.join(pipe.config.build)}")
    typer.echo(f"Kinds: {', '.join(sorted(pipe.kinds))}")


@app.command()
def run_task(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Task or group name to run"),
    strict: bool = typer.Option(False, help="Fail on unreadable or malformed sources too"),
):
    """Run a single task or group by name."""
    pipe = _pipeline(ctx, strict=strict)
    try:
        result = pipe.run_one(name)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)
    if not result.ok:
        raise typer.Exit(code=1)


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
