"""Unit tests for the git pre-commit hook installer."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from imgbudget.errors import HookInstallError
from imgbudget.hooks import HOOK_MARKER, install_pre_commit_hook, render_pre_commit_hook


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    (tmp_path / ".git").mkdir()
    return tmp_path


def test_render_pre_commit_hook_runs_compress_with_budget() -> None:
    script = render_pre_commit_hook(300, "./public")

    assert script.startswith("#!/bin/bash\n")
    assert HOOK_MARKER in script
    assert "MAX_SIZE_KB=300" in script
    assert "IMAGE_DIR=./public" in script
    assert 'imgbudget compress --max-size "$MAX_SIZE_KB" --dir "$IMAGE_DIR"' in script
    assert "git commit --no-verify" in script
    assert "\\033[0;31m" in script


def test_render_pre_commit_hook_quotes_directory() -> None:
    script = render_pre_commit_hook(500, "my images")

    assert "IMAGE_DIR='my images'" in script


def test_install_writes_executable_hook(repo: Path) -> None:
    hook = install_pre_commit_hook(repo, max_size_kb=400, image_dir="static")

    assert hook == repo / ".git" / "hooks" / "pre-commit"
    assert hook.read_text(encoding="utf-8") == render_pre_commit_hook(400, "static")
    if os.name == "posix":
        assert hook.stat().st_mode & stat.S_IXUSR


def test_install_requires_git_directory(tmp_path: Path) -> None:
    with pytest.raises(HookInstallError, match="Not a git repository"):
        install_pre_commit_hook(tmp_path)


def test_install_rejects_non_positive_budget(repo: Path) -> None:
    with pytest.raises(HookInstallError, match="max size must be > 0"):
        install_pre_commit_hook(repo, max_size_kb=0)


def test_install_replaces_its_own_hook(repo: Path) -> None:
    install_pre_commit_hook(repo, max_size_kb=400)
    hook = install_pre_commit_hook(repo, max_size_kb=200)

    assert "MAX_SIZE_KB=200" in hook.read_text(encoding="utf-8")


def test_install_keeps_foreign_hook_unless_forced(repo: Path) -> None:
    hooks_dir = repo / ".git" / "hooks"
    hooks_dir.mkdir()
    foreign = hooks_dir / "pre-commit"
    foreign.write_text("#!/bin/sh\nrun-linters\n", encoding="utf-8")

    with pytest.raises(HookInstallError, match="--force"):
        install_pre_commit_hook(repo)
    assert foreign.read_text(encoding="utf-8") == "#!/bin/sh\nrun-linters\n"

    install_pre_commit_hook(repo, force=True)
    assert HOOK_MARKER in foreign.read_text(encoding="utf-8")


def test_install_follows_gitdir_file_of_a_submodule(tmp_path: Path) -> None:
    """In a submodule .git is a file naming the real git directory."""

    real_git = tmp_path / "super" / ".git" / "modules" / "assets"
    real_git.mkdir(parents=True)
    checkout = tmp_path / "super" / "assets"
    checkout.mkdir()
    (checkout / ".git").write_text("gitdir: ../.git/modules/assets\n", encoding="utf-8")

    hook = install_pre_commit_hook(checkout)

    assert hook.resolve() == (real_git / "hooks" / "pre-commit").resolve()
    assert HOOK_MARKER in hook.read_text(encoding="utf-8")


def test_install_uses_common_dir_of_a_worktree(tmp_path: Path) -> None:
    """A worktree's hooks live in the main repository's shared git directory."""

    main_git = tmp_path / "main" / ".git"
    worktree_git = main_git / "worktrees" / "feature"
    worktree_git.mkdir(parents=True)
    (worktree_git / "commondir").write_text("../..\n", encoding="utf-8")
    checkout = tmp_path / "feature"
    checkout.mkdir()
    (checkout / ".git").write_text(f"gitdir: {worktree_git}\n", encoding="utf-8")

    hook = install_pre_commit_hook(checkout)

    assert hook.resolve() == (main_git / "hooks" / "pre-commit").resolve()


def test_install_rejects_git_file_without_gitdir(tmp_path: Path) -> None:
    (tmp_path / ".git").write_text("not a pointer\n", encoding="utf-8")

    with pytest.raises(HookInstallError, match="no gitdir line"):
        install_pre_commit_hook(tmp_path)
