from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional
import logging
import os
import tempfile

from PIL import Image, ImageOps

from .results import Outcome, ProcessResult, size_kb
from .settings import CompressSettings


logger = logging.getLogger(__name__)

# Extensions we can re-encode. Anything else the batch driver hands us is
# reported as unsupported.
EXT_TO_FORMAT = {
    ".jpg": "jpeg",
    ".jpeg": "jpeg",
    ".png": "png",
    ".webp": "webp",
}

# Formats whose encoder takes a quality parameter. PNG is lossless and gets
# exactly one attempt.
LADDER_FORMATS = {"jpeg", "webp"}


def quality_ladder(s: CompressSettings) -> Iterator[int]:
    """
    Yield quality levels to try, highest first.

    Starts at initial_quality (raised to the floor if it is below it), steps
    down by quality_step, and stops after max_iterations levels or before
    going under min_quality.
    """
    quality = max(s.initial_quality, s.min_quality)
    for _ in range(s.max_iterations):
        if quality < s.min_quality:
            return
        yield quality
        quality -= s.quality_step


def evaluate(src_path: Path, s: CompressSettings) -> ProcessResult:
    src_path = Path(src_path)
    budget = s.max_size_kb
    if budget <= 0:
        raise ValueError(f"max size must be > 0 KB (got {budget})")

    src_bytes = src_path.stat().st_size

    if size_kb(src_bytes) <= budget:
        return ProcessResult(
            src_path=src_path,
            outcome=Outcome.UNCHANGED,
            src_bytes=src_bytes,
            out_bytes=src_bytes,
            budget_kb=budget,
        )

    fmt = EXT_TO_FORMAT.get(src_path.suffix.lower())
    if fmt is None:
        return ProcessResult(
            src_path=src_path,
            outcome=Outcome.UNSUPPORTED,
            src_bytes=src_bytes,
            out_bytes=src_bytes,
            budget_kb=budget,
            fmt=src_path.suffix.lower().lstrip(".") or "other",
        )

    levels: list[Optional[int]]
    if fmt in LADDER_FORMATS:
        levels = list(quality_ladder(s))
    else:
        levels = [None]

    attempts = 0
    last_bytes = src_bytes
    tmp_path: Optional[Path] = None

    try:
        for quality in levels:
            tmp_path = _make_scratch(src_path)
            attempts += 1
            logger.debug("%s: attempt %d (%s, quality=%s)", src_path, attempts, fmt, quality)

            encode_image(src_path, tmp_path, fmt, quality, s)
            last_bytes = _file_size(tmp_path)

            # First fit wins; a candidate must also be strictly smaller.
            if size_kb(last_bytes) <= budget and last_bytes < src_bytes:
                replace_file(tmp_path, src_path)
                tmp_path = None
                return ProcessResult(
                    src_path=src_path,
                    outcome=Outcome.COMPRESSED,
                    src_bytes=src_bytes,
                    out_bytes=last_bytes,
                    budget_kb=budget,
                    fmt=fmt,
                    quality=quality,
                    attempts=attempts,
                )

            logger.debug("%s: candidate is %dKB, over %dKB", src_path, size_kb(last_bytes), budget)
            _discard(tmp_path)
            tmp_path = None

    except Exception as ex:
        logger.debug("%s: encode failed", src_path, exc_info=True)
        return ProcessResult(
            src_path=src_path,
            outcome=Outcome.FAILED,
            src_bytes=src_bytes,
            out_bytes=src_bytes,
            budget_kb=budget,
            fmt=fmt,
            attempts=attempts,
            reason=str(ex) or type(ex).__name__,
        )
    finally:
        if tmp_path is not None:
            _discard(tmp_path)

    return ProcessResult(
        src_path=src_path,
        outcome=Outcome.STILL_OVERSIZED,
        src_bytes=src_bytes,
        out_bytes=last_bytes,
        budget_kb=budget,
        fmt=fmt,
        attempts=attempts,
    )


def encode_image(
    src_path: Path,
    dst_path: Path,
    fmt: str,
    quality: Optional[int],
    s: CompressSettings,
) -> None:
    """Re-encode src_path into dst_path with Pillow. quality is None for PNG."""
    with Image.open(src_path) as im:
        im.load()

        # Stripping EXIF would also drop the orientation tag, so bake it in.
        if s.auto_orient:
            im = ImageOps.exif_transpose(im)

        im = _prepare_mode(im, fmt)
        save_kwargs = _build_save_kwargs(im, s, fmt, quality)

        # Pillow chooses encoder by format=..., the scratch name has no image extension
        im.save(dst_path, format=fmt.upper(), **save_kwargs)


def replace_file(tmp_path: Path, dst_path: Path) -> None:
    """
    Move tmp_path over dst_path.

    Tries an atomic replace first. If the platform refuses, the original is
    parked under a backup name while the candidate moves in, and put back if
    that move fails.
    """
    try:
        tmp_path.replace(dst_path)
        return
    except OSError as ex:
        logger.debug("atomic replace of %s failed (%s), swapping via backup", dst_path, ex)

    backup = _next_available_name(dst_path.with_name(dst_path.name + ".bak"))
    dst_path.rename(backup)
    try:
        tmp_path.rename(dst_path)
    except OSError:
        backup.rename(dst_path)
        raise
    backup.unlink()


def _make_scratch(src_path: Path) -> Path:
    # Same directory as the original so the final replace stays on one filesystem
    fd, tmp_name = tempfile.mkstemp(prefix=f".{src_path.stem}.", suffix=".tmp", dir=str(src_path.parent))
    os.close(fd)
    return Path(tmp_name)


def _discard(tmp_path: Path) -> None:
    try:
        tmp_path.unlink(missing_ok=True)
    except OSError as ex:
        logger.warning("could not remove scratch file %s: %s", tmp_path, ex)


def _next_available_name(path: Path) -> Path:
    # photo.jpg.bak -> photo.jpg (1).bak
    base = path.with_suffix("")
    ext = path.suffix
    candidate = path
    i = 1
    while candidate.exists():
        candidate = Path(f"{base} ({i}){ext}")
        i += 1
    return candidate


def _prepare_mode(im: Image.Image, fmt: str) -> Image.Image:
    if fmt == "jpeg":
        if _has_alpha(im):
            return _flatten_alpha(im, (255, 255, 255))
        if im.mode not in ("RGB", "L", "CMYK"):
            return im.convert("RGB")
    elif fmt == "webp":
        if im.mode not in ("RGB", "RGBA"):
            return im.convert("RGBA" if _has_alpha(im) else "RGB")
    return im


def _build_save_kwargs(im: Image.Image, s: CompressSettings, fmt: str, quality: Optional[int]) -> dict:
    kwargs: dict = {}

    # Without exif / icc_profile kwargs Pillow writes no metadata at all.
    if not s.strip_metadata:
        exif = im.info.get("exif")
        if exif is not None:
            kwargs["exif"] = exif

        icc = im.info.get("icc_profile")
        if icc is not None:
            kwargs["icc_profile"] = icc

    if fmt == "jpeg":
        kwargs["quality"] = int(quality)
        kwargs["optimize"] = bool(s.jpeg_optimize)
        kwargs["progressive"] = bool(s.jpeg_progressive)

    elif fmt == "png":
        kwargs["compress_level"] = int(s.png_compress_level)
        kwargs["optimize"] = True

    elif fmt == "webp":
        kwargs["quality"] = int(quality)
        kwargs["alpha_quality"] = int(quality)
        kwargs["method"] = int(s.webp_method)

    return kwargs


def _flatten_alpha(im: Image.Image, background_rgb: tuple[int, int, int]) -> Image.Image:
    rgba = im.convert("RGBA")
    bg = Image.new("RGBA", rgba.size, background_rgb + (255,))
    comp = Image.alpha_composite(bg, rgba)
    return comp.convert("RGB")


def _has_alpha(im: Image.Image) -> bool:
    if im.mode in ("RGBA", "LA", "PA"):
        return True
    if im.mode == "P" and "transparency" in im.info:
        return True
    return False


def _file_size(p: Path) -> int:
    try:
        return p.stat().st_size
    except FileNotFoundError:
        return 0
