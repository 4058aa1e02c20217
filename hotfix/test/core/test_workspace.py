"""Tests for hotfix.core.workspace module."""

from __future__ import annotations

from pathlib import Path

from hotfix.core.result import Err, Ok
from hotfix.core.workspace import detect_workspace, is_workspace_root


def test_compose_file_marks_root(tmp_path: Path) -> None:
    (tmp_path / "docker-compose.yml").write_text("services: {}\n", encoding="utf-8")
    assert is_workspace_root(tmp_path)


def test_detect_searches_upward(tmp_path: Path) -> None:
    (tmp_path / "hotfix.toml").write_text("", encoding="utf-8")
    nested = tmp_path / "content" / "2024"
    nested.mkdir(parents=True)

    result = detect_workspace(start=nested, environ={})

    assert isinstance(result, Ok)
    assert result.value.root == tmp_path.resolve()


def test_env_override_wins(tmp_path: Path) -> None:
    other = tmp_path / "other"
    other.mkdir()

    result = detect_workspace(start=tmp_path, environ={"HOTFIX_ROOT": str(other)})

    assert isinstance(result, Ok)
    assert result.value.root == other.resolve()


def test_env_override_must_exist(tmp_path: Path) -> None:
    result = detect_workspace(environ={"HOTFIX_ROOT": str(tmp_path / "missing")})
    assert isinstance(result, Err)


def test_not_found_has_hint(tmp_path: Path) -> None:
    result = detect_workspace(start=tmp_path, environ={})
    assert isinstance(result, Err)
    assert result.error.hint is not None
