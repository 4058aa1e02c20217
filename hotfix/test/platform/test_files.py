"""Tests for hotfix.platform.files module."""

from __future__ import annotations

from pathlib import Path

from hotfix.platform.files import atomic_write_text, iter_files, read_token


class TestAtomicWriteText:
    def test_creates_parents(self, tmp_path: Path) -> None:
        target = tmp_path / "deploy-state" / "frontend_active"
        atomic_write_text(target, "green\n")
        assert target.read_text(encoding="utf-8") == "green\n"

    def test_overwrites_and_leaves_no_temp_files(self, tmp_path: Path) -> None:
        target = tmp_path / "state"
        atomic_write_text(target, "blue\n")
        atomic_write_text(target, "green\n")

        assert target.read_text(encoding="utf-8") == "green\n"
        assert [p.name for p in tmp_path.iterdir()] == ["state"]


class TestReadToken:
    def test_strips_all_whitespace(self, tmp_path: Path) -> None:
        path = tmp_path / "token"
        path.write_text(" gre en\r\n\t", encoding="utf-8")
        assert read_token(path) == "green"

    def test_missing_file(self, tmp_path: Path) -> None:
        assert read_token(tmp_path / "missing") is None


def test_iter_files_sorted_and_skips_git(tmp_path: Path) -> None:
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "2.md").write_text("", encoding="utf-8")
    (tmp_path / "a.md").write_text("", encoding="utf-8")
    (tmp_path / ".git").write_text("gitdir: ../.git/modules/content\n", encoding="utf-8")
    (tmp_path / ".gitkeep").write_text("", encoding="utf-8")

    names = [p.relative_to(tmp_path).as_posix() for p in iter_files(tmp_path)]

    assert names == ["a.md", "b/2.md"]
