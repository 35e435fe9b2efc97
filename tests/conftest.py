"""Shared pytest fixtures for the imgbudget test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, Tuple

import pytest

from imgbudget import engine
from tests.image_helpers import KB


SizeFor = Callable[[Path, str, Optional[int]], int]


class FakeEncoder:
    """Stand-in for `engine.encode_image` with scripted output sizes (in KB)."""

    def __init__(self, size_for: SizeFor, error: Optional[Exception] = None) -> None:
        self.size_for = size_for
        self.error = error
        self.calls: List[Tuple[Path, str, Optional[int]]] = []

    def __call__(self, src_path, dst_path, fmt, quality, settings) -> None:
        self.calls.append((Path(src_path), fmt, quality))
        if self.error is not None:
            Path(dst_path).write_bytes(b"partial")
            raise self.error
        Path(dst_path).write_bytes(b"\0" * (self.size_for(Path(src_path), fmt, quality) * KB))

    @property
    def qualities(self) -> List[Optional[int]]:
        return [quality for _, _, quality in self.calls]


@pytest.fixture
def fake_encoder(monkeypatch: pytest.MonkeyPatch) -> Callable[..., FakeEncoder]:
    """Install a FakeEncoder over the Pillow encode step and return it."""

    def install(size_for: Optional[SizeFor] = None, error: Optional[Exception] = None) -> FakeEncoder:
        encoder = FakeEncoder(size_for or (lambda src, fmt, quality: 1), error=error)
        monkeypatch.setattr(engine, "encode_image", encoder)
        return encoder

    return install
