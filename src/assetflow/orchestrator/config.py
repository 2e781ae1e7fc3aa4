"""Build configuration.

The defaults below are the plugin's static glob-to-task bindings. A YAML file
may replace any top-level key; the result is one `BuildConfig` built at
startup and handed to the pipeline.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .errors import ConfigError


SRC_JS_RAW = ["src/**/*.js", "!src/**/*.min.js"]
SRC_JS_MIN = ["src/**/*.min.js"]
SRC_SASS = ["src/**/*.scss"]
SRC_CSS_RAW = ["src/**/*.css", "!src/**/*.min.css"]
SRC_CSS_MIN = ["src/**/*.min.css"]
SRC_PHP = ["src/**/*.php"]
SRC_PO = ["src/languages/**/*.po"]
SRC_JSON = ["src/languages/**/*.json"]
DEST = "./dist"

DEFAULT_CONFIG: dict = {
    "root": ".",
    "dest": DEST,
    "on_overlap": "warn",
    "strict": False,
    "assets": {
        "js_raw": {"kind": "js", "src": SRC_JS_RAW, "base": "src"},
        "js_min": {"kind": "copy", "src": SRC_JS_MIN},
        "sass": {"kind": "sass", "src": SRC_SASS},
        "css_raw": {"kind": "css", "src": SRC_CSS_RAW, "base": "src"},
        "css_min": {"kind": "copy", "src": SRC_CSS_MIN},
        "php": {"kind": "copy", "src": SRC_PHP},
        "po": {"kind": "locale", "src": SRC_PO, "base": "src"},
        "json": {"kind": "copy", "src": SRC_JSON, "base": "src"},
    },
    "groups": {
        "js": ["js_raw", "js_min"],
        "css": ["css_raw", "css_min"],
    },
    "build": ["js", "sass", "css", "php", "po", "json"],
    "watch": [],
}

OVERLAP_POLICIES = ("warn", "error", "ignore")


def _names(value) -> List[str]:
    """A single string or a list of strings, as a list."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"Expected a name or a list of names, got {value!r}")
    return [str(v) for v in value]


@dataclass(frozen=True)
class AssetSpec:
    name: str
    kind: str
    src: tuple
    base: Optional[str] = None
    dest: Optional[str] = None


@dataclass(frozen=True)
class WatchSpec:
    src: tuple
    run: tuple


@dataclass
class BuildConfig:
    root: Path
    dest: Path
    assets: Dict[str, AssetSpec]
    groups: Dict[str, List[str]] = field(default_factory=dict)
    build: List[str] = field(default_factory=list)
    watch: List[WatchSpec] = field(default_factory=list)
    on_overlap: str = "warn"
    strict: bool = False

    @classmethod
    def from_dict(cls, raw: dict, base_dir: Path | None = None) -> "BuildConfig":
        """Validate a raw mapping (defaults merged in) into a `BuildConfig`.

        Relative `root` values resolve against `base_dir`, normally the
        directory of the YAML file.
        """
        data = copy.deepcopy(DEFAULT_CONFIG)
        for key, value in (raw or {}).items():
            if key not in DEFAULT_CONFIG:
                raise ConfigError(f"Unknown config key: {key}")
            data[key] = value

        root = Path(str(data["root"]))
        if base_dir is not None and not root.is_absolute():
            root = base_dir / root

        assets: Dict[str, AssetSpec] = {}
        if not isinstance(data["assets"], dict) or not data["assets"]:
            raise ConfigError("`assets` must be a non-empty mapping")
        for name, entry in data["assets"].items():
            if not isinstance(entry, dict) or "kind" not in entry or "src" not in entry:
                raise ConfigError(f"Asset {name!r} needs `kind` and `src`")
            src = _names(entry["src"])
            if not src or not any(not str(p).startswith("!") for p in src):
                raise ConfigError(f"Asset {name!r} has no include pattern")
            assets[name] = AssetSpec(
                name=name,
                kind=str(entry["kind"]),
                src=tuple(src),
                base=entry.get("base"),
                dest=entry.get("dest"),
            )

        if not isinstance(data["groups"] or {}, dict):
            raise ConfigError("`groups` must be a mapping of name to members")
        groups = {str(k): _names(v) for k, v in (data["groups"] or {}).items()}
        clash = set(groups) & set(assets)
        if clash:
            raise ConfigError(f"Names used for both assets and groups: {sorted(clash)}")

        watch = []
        for entry in data["watch"] or []:
            if not isinstance(entry, dict) or "src" not in entry or "run" not in entry:
                raise ConfigError("Each `watch` entry needs `src` and `run`")
            watch.append(
                WatchSpec(src=tuple(_names(entry["src"])), run=tuple(_names(entry["run"])))
            )

        if data["on_overlap"] not in OVERLAP_POLICIES:
            raise ConfigError(
                f"`on_overlap` must be one of {', '.join(OVERLAP_POLICIES)}"
            )

        return cls(
            root=root,
            dest=Path(str(data["dest"])),
            assets=assets,
            groups=groups,
            build=_names(data["build"]),
            watch=watch,
            on_overlap=data["on_overlap"],
            strict=bool(data["strict"]),
        )


def load_config(path: str | Path | None = None, **overrides) -> BuildConfig:
    """Load the YAML config at `path` (or the built-in defaults) plus overrides."""
    raw: dict = {}
    base_dir = None
    if path is not None:
        p = Path(path)
        try:
            with open(p, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read config {p}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {p}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config {p} must contain a mapping")
        base_dir = p.parent
    if overrides.get("root") is not None:
        # Command-line roots are relative to the working directory, not the file.
        overrides["root"] = str(Path(overrides["root"]).absolute())
    raw.update({k: v for k, v in overrides.items() if v is not None})
    return BuildConfig.from_dict(raw, base_dir=base_dir)
