"""Tests for hotfix.release.classifier module."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from hotfix.core.config import Config
from hotfix.core.result import Err, Ok
from hotfix.git.repository import Repository
from hotfix.output.console import MockConsole
from hotfix.platform.process import run
from hotfix.release.classifier import (
    ChangeClassifier,
    DiffBase,
    collect_changed_paths,
    resolve_diff_base,
)
from hotfix.release.model import Classification
from hotfix.test.release.fakes import FakeRepository


@pytest.fixture
def classifier() -> ChangeClassifier:
    config = Config()
    return ChangeClassifier(config.classifier.server_patterns, config.content_patterns)


class TestClassify:
    def test_content_only(self, classifier: ChangeClassifier) -> None:
        paths = ["content/a.md", "content/b.md"]
        assert classifier.classify(paths) is Classification.CONTENT_ONLY

    def test_server_change_wins_over_content(self, classifier: ChangeClassifier) -> None:
        paths = ["content/a.md", "src/app/page.tsx"]
        assert classifier.classify(paths) is Classification.FULL_RELEASE

    @pytest.mark.parametrize(
        "path",
        ["package.json", "package-lock.json", "next.config.mjs", "public/logo.svg", "scripts/x.js"],
    )
    def test_server_paths(self, classifier: ChangeClassifier, path: str) -> None:
        assert classifier.classify([path]) is Classification.FULL_RELEASE

    def test_unrecognized_is_ambiguous(self, classifier: ChangeClassifier) -> None:
        assert classifier.classify(["README.md", "docs/ops.md"]) is Classification.AMBIGUOUS

    def test_empty_is_ambiguous(self, classifier: ChangeClassifier) -> None:
        assert classifier.classify(["", "  "]) is Classification.AMBIGUOUS

    def test_content_prefix_is_anchored(self, classifier: ChangeClassifier) -> None:
        assert classifier.classify(["contentful/notes.md"]) is Classification.AMBIGUOUS


class TestResolveDiffBase:
    def test_prefers_orig_head(self) -> None:
        repo = FakeRepository(revs={"ORIG_HEAD", "HEAD@{1}"})
        assert resolve_diff_base(repo) == DiffBase(rev="ORIG_HEAD")  # type: ignore[arg-type]

    def test_reflog_fallback(self) -> None:
        repo = FakeRepository(revs={"HEAD@{1}"})
        assert resolve_diff_base(repo) == DiffBase(rev="HEAD@{1}", fallback=True)  # type: ignore[arg-type]

    def test_none(self) -> None:
        assert resolve_diff_base(FakeRepository(revs=set())) is None  # type: ignore[arg-type]


class TestCollectChangedPaths:
    def test_committed_only(self) -> None:
        repo = FakeRepository(committed=["content/b.md", "content/a.md"])
        console = MockConsole()

        result = collect_changed_paths(repo, "ORIG_HEAD", console)  # type: ignore[arg-type]

        assert result == Ok(["content/a.md", "content/b.md"])
        assert not console.has_warning()

    def test_includes_worktree_with_warning(self) -> None:
        repo = FakeRepository(committed=["content/a.md"], worktree=["src/app.ts", "content/a.md"])
        console = MockConsole()

        result = collect_changed_paths(repo, "ORIG_HEAD", console)  # type: ignore[arg-type]

        assert result == Ok(["content/a.md", "src/app.ts"])
        assert console.has_warning()

    def test_diff_failure(self) -> None:
        repo = FakeRepository(failing={"diff"})

        result = collect_changed_paths(repo, "ORIG_HEAD", MockConsole())  # type: ignore[arg-type]

        assert isinstance(result, Err)
        assert result.error.kind == "diff_failed"


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_non_ascii_article_is_content_only(tmp_path: Path, classifier: ChangeClassifier) -> None:
    def git(*args: str) -> None:
        cmd = ["git", "-c", "user.name=hotfix", "-c", "user.email=hotfix@example.invalid",
               "-c", "commit.gpgsign=false", *args]
        assert isinstance(run(cmd, cwd=tmp_path), Ok)

    (tmp_path / "content").mkdir()
    (tmp_path / "content" / "index.md").write_text("index\n", encoding="utf-8")
    git("init", "-q")
    git("add", "-A")
    git("commit", "-q", "-m", "base")
    (tmp_path / "content" / "市场评论.md").write_text("评论\n", encoding="utf-8")
    git("add", "-A")
    git("commit", "-q", "-m", "article")

    result = collect_changed_paths(Repository(tmp_path), "HEAD~1", MockConsole())

    assert result == Ok(["content/市场评论.md"])
    assert classifier.classify(result.unwrap()) is Classification.CONTENT_ONLY
