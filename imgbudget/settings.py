from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Mapping


DEFAULT_EXCLUDED_DIRS = frozenset({"node_modules", ".next", ".git", "dist", "build"})

# .gif is scanned (and reported) but has no encoder path.
DEFAULT_EXTENSIONS = frozenset({".webp", ".png", ".jpg", ".jpeg", ".gif"})

_FALSE_WORDS = {"false", "0", "no", "off"}


@dataclass(frozen=True)
class CompressSettings:
    """
    Everything a compression run needs to know.

    Built once by the CLI (flags > environment > defaults) and passed
    explicitly to the engine and the batch driver.
    """

    # ----- Budget -----
    max_size_kb: int = 500

    # ----- Quality ladder (webp / jpeg only) -----
    initial_quality: int = 60
    quality_step: int = 5
    min_quality: int = 20
    max_iterations: int = 5

    # ----- Batch -----
    image_dir: Path = Path("./public")
    fail_on_error: bool = True
    excluded_dirs: FrozenSet[str] = field(default=DEFAULT_EXCLUDED_DIRS)
    extensions: FrozenSet[str] = field(default=DEFAULT_EXTENSIONS)

    # ----- Metadata -----
    strip_metadata: bool = True
    auto_orient: bool = True

    # ----- Encoder knobs -----
    # Pillow's PNG "compress_level" (0-9); 9 is the smallest lossless output.
    png_compress_level: int = 9
    jpeg_progressive: bool = True
    jpeg_optimize: bool = True
    webp_method: int = 4  # 0-6, higher = smaller but slower


def validate_settings(s: CompressSettings) -> None:
    if s.max_size_kb <= 0:
        raise ValueError(f"max size must be > 0 KB (got {s.max_size_kb})")
    if not 0 <= s.initial_quality <= 100:
        raise ValueError(f"quality must be between 0 and 100 (got {s.initial_quality})")
    if not 0 <= s.min_quality <= 100:
        raise ValueError(f"minimum quality must be between 0 and 100 (got {s.min_quality})")
    if s.quality_step <= 0:
        raise ValueError(f"quality step must be > 0 (got {s.quality_step})")
    if s.max_iterations < 1:
        raise ValueError(f"max iterations must be >= 1 (got {s.max_iterations})")


def parse_bool(text: str) -> bool:
    return text.strip().lower() not in _FALSE_WORDS


def _parse_int(name: str, text: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {text!r})") from None


def settings_from_env(environ: Mapping[str, str]) -> Dict[str, object]:
    """
    Read CompressSettings overrides from environment variables.

    Only variables that are set (and non-empty) end up in the result, so the
    caller can layer command-line flags on top and fall back to the
    dataclass defaults for the rest.
    """
    overrides: Dict[str, object] = {}

    max_size = environ.get("IMAGE_MAX_SIZE", "")
    if max_size.strip():
        overrides["max_size_kb"] = _parse_int("IMAGE_MAX_SIZE", max_size)

    quality = environ.get("IMAGE_QUALITY", "")
    if quality.strip():
        overrides["initial_quality"] = _parse_int("IMAGE_QUALITY", quality)

    image_dir = environ.get("IMAGE_DIR", "")
    if image_dir.strip():
        overrides["image_dir"] = Path(image_dir.strip())

    fail = environ.get("FAIL_ON_ERROR", "")
    if fail.strip():
        overrides["fail_on_error"] = parse_bool(fail)

    return overrides
