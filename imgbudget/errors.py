"""Domain exceptions for batch runs and hook installation."""

from __future__ import annotations

from pathlib import Path


class ImageBudgetError(Exception):
    """Base class for errors that abort a command."""


class ImageDirectoryNotFound(ImageBudgetError):
    """Raised when the batch root is missing or is not a directory."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Directory not found: {path}")
        self.path = path


class HookInstallError(ImageBudgetError):
    """Raised when the pre-commit hook cannot be installed."""
