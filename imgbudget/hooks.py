"""Git pre-commit hook that keeps oversized images out of commits."""

from __future__ import annotations

from pathlib import Path
import logging
import shlex

from .errors import HookInstallError


logger = logging.getLogger(__name__)

HOOK_MARKER = "# installed by imgbudget"

_HOOK_TEMPLATE = """#!/bin/bash
{marker}
#
# Pre-commit hook: image size check.
# Compresses oversized images and rejects the commit if any stay over budget.

set -e

MAX_SIZE_KB={max_size_kb}
IMAGE_DIR={image_dir}

if ! command -v imgbudget &> /dev/null; then
  echo "⚠️  imgbudget not found on PATH. Skipping image compression check."
  exit 0
fi

echo "🔍 Checking image sizes before commit..."

if ! imgbudget compress --max-size "$MAX_SIZE_KB" --dir "$IMAGE_DIR" 2>&1; then
  echo ""
  echo -e "\\033[0;31m❌ Commit rejected: Images exceed size limit\\033[0m"
  echo "   Run: imgbudget compress --max-size $MAX_SIZE_KB --dir $IMAGE_DIR"
  echo "   Or use: git commit --no-verify (not recommended)"
  exit 1
fi

echo -e "\\033[0;32m✓ All images within size limits\\033[0m"
"""


def render_pre_commit_hook(max_size_kb: int, image_dir: str) -> str:
    return _HOOK_TEMPLATE.format(
        marker=HOOK_MARKER,
        max_size_kb=int(max_size_kb),
        image_dir=shlex.quote(str(image_dir)),
    )


def _resolve_git_dir(repo_root: Path) -> Path:
    """
    Return the git directory whose hooks/ git actually runs.

    In worktrees and submodules .git is a file ("gitdir: <path>"); a worktree's
    gitdir also has a "commondir" file pointing at the shared directory.
    """
    dot_git = repo_root / ".git"
    if dot_git.is_dir():
        return dot_git

    if not dot_git.is_file():
        raise HookInstallError(f"Not a git repository: {repo_root} (no .git directory or file)")

    first_line = dot_git.read_text(encoding="utf-8", errors="replace").strip().splitlines()[:1]
    if not first_line or not first_line[0].startswith("gitdir:"):
        raise HookInstallError(f"Not a git repository: {dot_git} has no gitdir line")

    git_dir = Path(first_line[0][len("gitdir:"):].strip())
    if not git_dir.is_absolute():
        git_dir = repo_root / git_dir

    commondir = git_dir / "commondir"
    if commondir.is_file():
        common = Path(commondir.read_text(encoding="utf-8").strip())
        git_dir = common if common.is_absolute() else git_dir / common

    if not git_dir.is_dir():
        raise HookInstallError(f"Not a git repository: {dot_git} points at missing {git_dir}")
    return git_dir


def install_pre_commit_hook(
    repo_root: Path,
    max_size_kb: int = 500,
    image_dir: str = "./public",
    force: bool = False,
) -> Path:
    """
    Write the pre-commit hook for the repository at repo_root and return its path.

    A hook that was not written by us is left alone unless force=True.
    """
    repo_root = Path(repo_root)
    git_dir = _resolve_git_dir(repo_root)

    if max_size_kb <= 0:
        raise HookInstallError(f"max size must be > 0 KB (got {max_size_kb})")

    hooks_dir = git_dir / "hooks"
    hooks_dir.mkdir(parents=True, exist_ok=True)
    hook_path = hooks_dir / "pre-commit"

    if hook_path.exists() and not force:
        existing = hook_path.read_text(encoding="utf-8", errors="replace")
        if HOOK_MARKER not in existing:
            raise HookInstallError(
                f"{hook_path} already exists and was not installed by imgbudget (use --force to replace it)"
            )

    hook_path.write_text(render_pre_commit_hook(max_size_kb, image_dir), encoding="utf-8")
    hook_path.chmod(0o755)
    logger.debug("wrote pre-commit hook to %s", hook_path)
    return hook_path
