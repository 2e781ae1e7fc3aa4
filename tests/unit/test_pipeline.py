"""Unit tests for configuration loading and the build pipeline."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from assetflow.orchestrator import BuildConfig, Pipeline, State, load_config
from assetflow.orchestrator.config import DEFAULT_CONFIG
from assetflow.orchestrator.core import Task
from assetflow.orchestrator.errors import ConfigError
from assetflow.orchestrator.pipeline import write_report


def test_default_config_mirrors_static_bindings(default_config: BuildConfig) -> None:
    assert set(default_config.assets) == set(DEFAULT_CONFIG["assets"])
    assert default_config.assets["css_raw"].src == ("src/**/*.css", "!src/**/*.min.css")
    assert default_config.assets["css_raw"].base == "src"
    assert default_config.groups["css"] == ["css_raw", "css_min"]
    assert default_config.build == ["js", "sass", "css", "php", "po", "json"]


def test_load_yaml_config(tmp_path: Path) -> None:
    cfg = tmp_path / "assets.yaml"
    cfg.write_text(
        "dest: build\n"
        "assets:\n"
        "  styles: {kind: css, src: 'src/**/*.css', base: src}\n"
        "build: [styles]\n"
        "on_overlap: error\n",
        encoding="utf-8",
    )
    config = load_config(cfg)
    assert config.root == tmp_path / "."
    assert config.dest == Path("build")
    assert config.assets["styles"].src == ("src/**/*.css",)
    assert config.groups == DEFAULT_CONFIG["groups"]
    assert config.on_overlap == "error"


@pytest.mark.parametrize(
    "raw",
    [
        {"unknown": 1},
        {"assets": {}},
        {"assets": {"a": {"kind": "css"}}},
        {"assets": {"a": {"kind": "css", "src": ["!src/*.css"]}}},
        {"on_overlap": "explode"},
        {"watch": [{"src": "src/*.css"}]},
        {"groups": ["js_raw"]},
        {"build": 5},
    ],
)
def test_invalid_config(raw: dict) -> None:
    with pytest.raises(ConfigError):
        BuildConfig.from_dict(raw)


def test_single_names_become_lists() -> None:
    config = BuildConfig.from_dict(
        {
            "groups": {"css": "css_raw", "js": ["js_raw", "js_min"]},
            "build": "css",
            "watch": [{"src": "src/**/*.scss", "run": "sass"}],
        }
    )
    assert config.groups == {"css": ["css_raw"], "js": ["js_raw", "js_min"]}
    assert config.build == ["css"]
    assert config.watch[0].src == ("src/**/*.scss",)
    assert config.watch[0].run == ("sass",)


def test_unknown_kind_is_rejected(tmp_path: Path) -> None:
    config = BuildConfig.from_dict(
        {"root": str(tmp_path), "assets": {"a": {"kind": "coffee", "src": ["src/*.coffee"]}}, "groups": {}, "build": ["a"]}
    )
    with pytest.raises(ConfigError, match="unknown kind"):
        Pipeline(config)


def test_group_cycle_is_rejected(tmp_path: Path) -> None:
    config = BuildConfig.from_dict(
        {
            "root": str(tmp_path),
            "assets": {"a": {"kind": "copy", "src": ["src/*"]}},
            "groups": {"g1": ["a", "g2"], "g2": ["g1"]},
            "build": ["g1"],
        }
    )
    with pytest.raises(ConfigError, match="Cycle"):
        Pipeline(config)


def test_unknown_build_member_is_rejected(tmp_path: Path) -> None:
    config = BuildConfig.from_dict({"root": str(tmp_path), "build": ["js", "images"]})
    with pytest.raises(ConfigError, match="images"):
        Pipeline(config)


def test_build_default_tree(tmp_path: Path, write_file, default_config: BuildConfig) -> None:
    write_file("src/assets/js/media-picker.js", "function a(x) {\n  return x;\n}\n")
    write_file("src/assets/js/lib.min.js", "var lib=1;")
    write_file("src/assets/css/field.css", ".f { appearance: none; }")
    write_file("src/field.php", "<?php\n")
    write_file("src/languages/plugin-ja.json", '{"x": 1}')

    pipe = Pipeline(default_config)
    result = pipe.build()

    assert result.ok
    assert pipe.state is State.BUILT
    dist = tmp_path / "dist"
    assert (dist / "assets/js/media-picker.min.js").exists()
    assert (dist / "assets/js/lib.min.js").read_text() == "var lib=1;"
    assert (dist / "assets/css/field.min.css").exists()
    assert (dist / "field.php").read_text() == "<?php\n"
    assert (dist / "languages/plugin-ja.json").read_text() == '{"x": 1}'

    again = pipe.build()
    assert sum(len(r.written) for r in again.reports()) == 0


def test_build_failure_sets_state(tmp_path: Path, write_file, default_config: BuildConfig) -> None:
    write_file("src/field.php", "<?php\n")
    write_file("dist", "not a directory")

    pipe = Pipeline(default_config)
    result = pipe.build()

    assert not result.ok
    assert pipe.state is State.BUILD_FAILED
    assert [r.name for r in result.reports() if not r.ok] == ["php"]


def test_raw_and_preminified_css_are_routed_separately(
    tmp_path: Path, write_file, default_config: BuildConfig
) -> None:
    write_file("src/a.css", ".a {\n  color: red;\n}\n")
    write_file("src/b.min.css", ".b{color:blue}")
    pipe = Pipeline(default_config)

    assert [str(s.relpath) for s in pipe.tasks["css_raw"].sources()] == ["a.css"]
    assert [str(s.relpath) for s in pipe.tasks["css_min"].sources()] == ["b.min.css"]
    assert pipe.check_overlaps() == {}

    pipe.build()
    dist = tmp_path / "dist"
    assert (dist / "a.min.css").read_text().startswith(".a{color:red}")
    assert (dist / "b.min.css").read_text() == ".b{color:blue}"
    assert not (dist / "a.min.min.css").exists()
    assert not (dist / "b.min.min.css").exists()


def test_same_logical_name_is_reported_as_overlap(tmp_path: Path, write_file) -> None:
    write_file("src/a.css", ".a { color: red; }")
    write_file("src/a.min.css", ".a{color:red}")

    warn = Pipeline(BuildConfig.from_dict({"root": str(tmp_path)}))
    overlaps = warn.check_overlaps()
    assert overlaps == {tmp_path / "dist" / "a.min.css": ["css_raw", "css_min"]}

    strict = Pipeline(BuildConfig.from_dict({"root": str(tmp_path), "on_overlap": "error"}))
    with pytest.raises(ConfigError, match="a.min.css"):
        strict.build()
    assert not (tmp_path / "dist").exists()


def test_run_one_runs_single_task(tmp_path: Path, write_file, default_config: BuildConfig) -> None:
    write_file("src/a.css", ".a { color: red; }")
    write_file("src/field.php", "<?php\n")

    result = Pipeline(default_config).run_one("css")

    assert result.ok
    assert (tmp_path / "dist/a.min.css").exists()
    assert not (tmp_path / "dist/field.php").exists()


def test_write_report(tmp_path: Path, write_file, default_config: BuildConfig) -> None:
    write_file("src/field.php", "<?php\n")
    pipe = Pipeline(default_config)
    result = pipe.build()

    out = tmp_path / "runs" / "state.json"
    write_report(out, result, pipe)

    data = json.loads(out.read_text())
    assert data["state"] == "built"
    assert data["result"]["status"] == "ok"
    names = [m["name"] for m in data["result"]["members"]]
    assert names == ["js", "sass", "css", "php", "po", "json"]


def test_preminified_file_owns_contested_destination(
    tmp_path: Path, write_file, default_config: BuildConfig
) -> None:
    write_file("src/a.css", ".a { color: red; }")
    write_file("src/a.min.css", ".a{color:blue}")
    target = tmp_path / "dist" / "a.min.css"
    pipe = Pipeline(default_config)

    first = pipe.build()

    assert first.ok
    assert target.read_text() == ".a{color:blue}"
    assert not (tmp_path / "dist" / "a.min.css.map").exists()
    assert pipe.tasks["css_raw"].deferred == {target: "css_min"}
    assert pipe.tasks["css_min"].deferred == {}

    again = pipe.build()
    assert [p for r in again.reports() for p in r.written] == []

    alone = pipe.run_one("css_raw")
    assert alone.ok and alone.written == []
    assert target.read_text() == ".a{color:blue}"


class ExplodingTask(Task):
    def __call__(self):
        raise RuntimeError("disk on fire")


def _exploding(name, src, dest, base=None, *, root=".", strict=False):
    return ExplodingTask(
        name, src, dest, kind="boom", transform=lambda *args: [], base=base, root=root
    )


def test_run_one_contains_task_crash(tmp_path: Path) -> None:
    config = BuildConfig.from_dict(
        {
            "root": str(tmp_path),
            "assets": {"a": {"kind": "boom", "src": "src/*.txt"}},
            "groups": {},
            "build": ["a"],
        }
    )

    result = Pipeline(config, kinds={"boom": _exploding}).run_one("a")

    assert not result.ok
    assert result.error == "RuntimeError: disk on fire"
