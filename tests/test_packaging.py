"""Checks on pyproject.toml metadata."""

from pathlib import Path

import pytest

tomllib = pytest.importorskip("tomllib")

_PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def test_readme_points_at_an_existing_file():
    project = tomllib.loads(_PYPROJECT.read_text(encoding="utf-8"))["project"]
    readme = project.get("readme")
    if readme is not None:
        assert (_PYPROJECT.parent / readme).is_file()
        assert readme != "SPEC_FULL.md"


def test_console_script_targets_cli():
    project = tomllib.loads(_PYPROJECT.read_text(encoding="utf-8"))["project"]
    assert project["scripts"]["passgate"] == "main:main"
