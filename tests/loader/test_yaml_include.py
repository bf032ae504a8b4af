"""Tests for YAML layering and the include: directive."""

import sys

import pytest

from histfmt.core.config import State
from histfmt.core.yaml_settings import YamlWithIncludesSettingsSource


@pytest.fixture
def load(mock_argv, tmp_path, monkeypatch):
    """Load every YAML layer with yaml_file as the extra file; runs in
    an empty directory so no ./histfmt.yaml is picked up."""
    monkeypatch.chdir(tmp_path)
    sys.argv = ["histfmt"]

    def _load(yaml_file):
        return YamlWithIncludesSettingsSource(State, yaml_file=str(yaml_file))()

    return _load


def test_defaults_always_loaded(load, tmp_path):
    extra = tmp_path / "extra.yaml"
    extra.write_text("config:\n  interactive: false\n")

    data = load(extra)

    assert data["config"]["interactive"] is False
    assert "rebase_todo" in data["config"]["commands"]["git"]


def test_deep_merge_keeps_siblings(load, tmp_path):
    extra = tmp_path / "extra.yaml"
    extra.write_text(
        "config:\n"
        "  commands:\n"
        "    git:\n"
        "      status: git status --porcelain\n"
    )

    data = load(extra)

    git = data["config"]["commands"]["git"]
    assert git["status"] == "git status --porcelain"
    assert "rebase_todo" in git


def test_include_directive(load, tmp_path):
    (tmp_path / "formatter.yaml").write_text(
        "config:\n  format:\n    command: black -q\n    targets: [src]\n"
    )
    main = tmp_path / "main.yaml"
    main.write_text(
        "include: formatter.yaml\n"
        "config:\n  format:\n    targets: [src, tests]\n"
    )

    data = load(main)

    assert data["config"]["format"]["command"] == "black -q"
    # The including file wins
    assert data["config"]["format"]["targets"] == ["src", "tests"]
    assert "include" not in data


def test_nested_includes_relative_to_file(load, tmp_path):
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "leaf.yaml").write_text("config:\n  format:\n    verify: false\n")
    (sub / "middle.yaml").write_text("include: [leaf.yaml]\n")
    top = tmp_path / "top.yaml"
    top.write_text("include: sub/middle.yaml\n")

    data = load(top)

    assert data["config"]["format"]["verify"] is False


def test_circular_include_detected(load, tmp_path):
    (tmp_path / "a.yaml").write_text("include: b.yaml\n")
    (tmp_path / "b.yaml").write_text("include: a.yaml\n")

    with pytest.raises(ValueError, match="Circular include"):
        load(tmp_path / "a.yaml")


def test_missing_include_raises(load, tmp_path):
    main = tmp_path / "main.yaml"
    main.write_text("include: nonexistent.yaml\n")

    with pytest.raises(FileNotFoundError):
        load(main)


def test_project_file_layer(load, tmp_path):
    (tmp_path / "histfmt.yaml").write_text(
        "config:\n  format:\n    command: ruff format\n"
    )
    extra = tmp_path / "extra.yaml"
    extra.write_text("config:\n  interactive: false\n")

    data = load(extra)

    assert data["config"]["format"]["command"] == "ruff format"


def test_cli_include_applied_last(load, tmp_path):
    (tmp_path / "cli.yaml").write_text("config:\n  interactive: true\n")
    extra = tmp_path / "extra.yaml"
    extra.write_text("config:\n  interactive: false\n")
    sys.argv = ["histfmt", "--include", str(tmp_path / "cli.yaml")]

    data = load(extra)

    assert data["config"]["interactive"] is True
