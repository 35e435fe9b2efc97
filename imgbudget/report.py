from __future__ import annotations

import csv
import json
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .batch import BatchSummary
from .results import ProcessResult
from .settings import CompressSettings


RULE = "=" * 70


@dataclass(frozen=True)
class FileReport:
    src_path: str
    outcome: str
    fmt: Optional[str]
    src_bytes: int
    out_bytes: int
    saved_bytes: int
    saved_percent: float
    quality: Optional[int]
    attempts: int
    reason: Optional[str]


@dataclass(frozen=True)
class BatchReport:
    created_utc: str
    max_size_kb: int
    summary: dict
    files: List[FileReport]


def format_report(summary: BatchSummary, settings: CompressSettings) -> str:
    lines = [
        "",
        RULE,
        "📊 IMAGE COMPRESSION REPORT",
        RULE,
        f"Total images checked: {summary.total_files}",
        f"Compressed: {summary.compressed}",
        f"Within limit: {summary.unchanged}",
        f"Failed: {summary.failed}",
        f"Saved: {summary.saved_bytes} bytes ({summary.saved_percent:.1f}%)",
    ]

    if summary.oversized:
        lines.append("")
        lines.append(f"⚠️  Images still exceeding {settings.max_size_kb}KB limit:")
        for r in summary.oversized:
            # The original is left in place, so its size is what is on disk.
            lines.append(f"  • {r.src_path}: {r.src_kb}KB")

    lines.append(RULE)
    lines.append("")
    return "\n".join(lines)


def build_report(results: List[ProcessResult], summary: BatchSummary, settings: CompressSettings) -> BatchReport:
    created_utc = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")

    files: List[FileReport] = []
    for r in results:
        files.append(
            FileReport(
                src_path=str(r.src_path),
                outcome=r.outcome.value,
                fmt=r.fmt,
                src_bytes=r.src_bytes,
                out_bytes=r.out_bytes,
                saved_bytes=r.saved_bytes,
                saved_percent=round(r.saved_percent, 2),
                quality=r.quality,
                attempts=r.attempts,
                reason=r.reason,
            )
        )

    summary_dict = {
        "total_files": summary.total_files,
        "compressed": summary.compressed,
        "unchanged": summary.unchanged,
        "unsupported": summary.unsupported,
        "errors": summary.errors,
        "failed": summary.failed,
        "oversized": [str(r.src_path) for r in summary.oversized],
        "total_src_bytes": summary.total_src_bytes,
        "total_out_bytes": summary.total_out_bytes,
        "saved_bytes": summary.saved_bytes,
        "saved_percent": round(summary.saved_percent, 2),
    }

    return BatchReport(
        created_utc=created_utc,
        max_size_kb=settings.max_size_kb,
        summary=summary_dict,
        files=files,
    )


def save_report_json(report: BatchReport, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        json.dump(asdict(report), f, indent=2, ensure_ascii=False)


def save_report_csv(report: BatchReport, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    columns = [f.name for f in fields(FileReport)]
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        for row in report.files:
            writer.writerow(asdict(row))
