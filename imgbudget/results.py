from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class Outcome(str, Enum):
    UNCHANGED = "unchanged"  # already within budget
    COMPRESSED = "compressed"
    UNSUPPORTED = "unsupported"
    FAILED = "failed"
    STILL_OVERSIZED = "still_oversized"


def size_kb(n_bytes: int) -> int:
    """Whole kilobytes, rounding half up (1536 bytes -> 2KB)."""
    return (n_bytes + 512) // 1024


@dataclass(frozen=True)
class ProcessResult:
    """
    Output of evaluating a single image against the budget.

    out_bytes is the on-disk size after a successful compression, the size of
    the last rejected candidate for STILL_OVERSIZED, and the untouched source
    size for everything else.
    """
    src_path: Path
    outcome: Outcome
    src_bytes: int
    out_bytes: int
    budget_kb: int
    fmt: Optional[str] = None
    quality: Optional[int] = None  # ladder level that fit
    attempts: int = 0  # encoder calls made
    reason: Optional[str] = None

    @property
    def src_kb(self) -> int:
        return size_kb(self.src_bytes)

    @property
    def out_kb(self) -> int:
        return size_kb(self.out_bytes)

    @property
    def ok(self) -> bool:
        return self.outcome in (Outcome.UNCHANGED, Outcome.COMPRESSED)

    @property
    def saved_bytes(self) -> int:
        if self.outcome is not Outcome.COMPRESSED:
            return 0
        return max(0, self.src_bytes - self.out_bytes)

    @property
    def saved_percent(self) -> float:
        if self.src_bytes <= 0:
            return 0.0
        return (self.saved_bytes / self.src_bytes) * 100.0

    def status_line(self) -> str:
        p = self.src_path
        if self.outcome is Outcome.UNCHANGED:
            return f"✓ {p}: {self.src_kb}KB (within limit)"
        if self.outcome is Outcome.COMPRESSED:
            return f"✓ {p}: {self.src_kb}KB → {self.out_kb}KB"
        if self.outcome is Outcome.UNSUPPORTED:
            return f"⊘ {p}: Unsupported format"
        if self.outcome is Outcome.STILL_OVERSIZED:
            return f"✗ {p}: {self.out_kb}KB (still exceeds {self.budget_kb}KB limit after compression)"
        return f"✗ {p}: {self.reason}"
