from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple
import logging

from .engine import evaluate
from .errors import ImageDirectoryNotFound
from .results import Outcome, ProcessResult
from .settings import CompressSettings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchSummary:
    total_files: int
    compressed: int
    unchanged: int
    unsupported: int
    errors: int
    oversized: Tuple[ProcessResult, ...]
    total_src_bytes: int
    total_out_bytes: int

    @property
    def failed(self) -> int:
        """Every file that did not end up within budget."""
        return self.unsupported + self.errors + len(self.oversized)

    @property
    def saved_bytes(self) -> int:
        return max(0, self.total_src_bytes - self.total_out_bytes)

    @property
    def saved_percent(self) -> float:
        if self.total_src_bytes <= 0:
            return 0.0
        return (self.saved_bytes / self.total_src_bytes) * 100.0


def iter_images(root: Path, s: CompressSettings) -> Iterable[Path]:
    """
    Yield candidate images under root, depth first, in name order.

    Directories named in s.excluded_dirs are not entered at any depth, and
    symlinked directories are never followed.
    """
    entries = sorted(Path(root).iterdir(), key=lambda p: p.name)

    for p in entries:
        if p.is_dir():
            if p.is_symlink() or p.name in s.excluded_dirs:
                continue
            yield from iter_images(p, s)
        elif p.is_file() and p.suffix.lower() in s.extensions:
            yield p


def process_batch(
    root: Path,
    settings: CompressSettings,
    on_result: Optional[Callable[[ProcessResult], None]] = None,
) -> tuple[List[ProcessResult], BatchSummary]:
    root = Path(root)
    if not root.is_dir():
        raise ImageDirectoryNotFound(root)

    results: List[ProcessResult] = []

    counts = {outcome: 0 for outcome in Outcome}
    oversized: List[ProcessResult] = []
    total_src = 0
    total_out = 0

    image_list = list(iter_images(root, settings))
    logger.debug("found %d candidate images under %s", len(image_list), root)

    for img_path in image_list:
        r = evaluate(img_path, settings)
        results.append(r)

        if on_result:
            on_result(r)

        counts[r.outcome] += 1
        total_src += r.src_bytes
        # Only a compressed file changed on disk.
        total_out += r.out_bytes if r.outcome is Outcome.COMPRESSED else r.src_bytes

        if r.outcome is Outcome.STILL_OVERSIZED:
            oversized.append(r)

    summary = BatchSummary(
        total_files=len(results),
        compressed=counts[Outcome.COMPRESSED],
        unchanged=counts[Outcome.UNCHANGED],
        unsupported=counts[Outcome.UNSUPPORTED],
        errors=counts[Outcome.FAILED],
        oversized=tuple(oversized),
        total_src_bytes=total_src,
        total_out_bytes=total_out,
    )
    return results, summary
