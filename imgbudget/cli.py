from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from .batch import process_batch
from .errors import HookInstallError, ImageDirectoryNotFound
from .hooks import install_pre_commit_hook
from .report import build_report, format_report, save_report_csv, save_report_json
from .settings import (
    DEFAULT_EXCLUDED_DIRS,
    CompressSettings,
    settings_from_env,
    validate_settings,
)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="imgbudget",
        description="Compress images that exceed a size budget before they are committed",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Log every encode attempt")
    sub = p.add_subparsers(dest="command", required=True)

    comp = sub.add_parser("compress", help="Compress oversized images under a directory")
    comp.add_argument(
        "--max-size",
        type=int,
        default=None,
        help="Maximum image size in KB (env IMAGE_MAX_SIZE, default 500)",
    )
    comp.add_argument(
        "--quality",
        type=int,
        default=None,
        help="Starting quality 0-100 for JPEG/WebP (env IMAGE_QUALITY, default 60)",
    )
    comp.add_argument(
        "--dir",
        default=None,
        help="Directory to scan (env IMAGE_DIR, default ./public)",
    )

    # Exit status policy
    fail = comp.add_mutually_exclusive_group()
    fail.add_argument(
        "--no-fail",
        dest="fail_on_error",
        action="store_false",
        default=None,
        help="Exit 0 even if images stay over the limit",
    )
    fail.add_argument(
        "--fail",
        dest="fail_on_error",
        action="store_true",
        default=None,
        help="Exit 1 if images stay over the limit (env FAIL_ON_ERROR, default on)",
    )

    comp.add_argument(
        "--exclude",
        action="append",
        default=None,
        metavar="NAME",
        help="Extra directory name to skip, repeatable",
    )
    comp.add_argument("--report", default=None, help="Write a run report (.json or .csv)")

    hook = sub.add_parser("install-hook", help="Install a git pre-commit hook that runs compress")
    hook.add_argument("--repo", default=".", help="Repository root (default: current directory)")
    hook.add_argument("--max-size", type=int, default=None, help="Maximum image size in KB")
    hook.add_argument("--dir", default=None, help="Directory the hook scans")
    hook.add_argument("--force", action="store_true", help="Replace an existing foreign pre-commit hook")

    return p


def build_settings(args: argparse.Namespace, environ: Mapping[str, str]) -> CompressSettings:
    """Layer command-line flags over environment variables over defaults."""
    overrides = settings_from_env(environ)

    if args.max_size is not None:
        overrides["max_size_kb"] = int(args.max_size)
    if args.quality is not None:
        overrides["initial_quality"] = int(args.quality)
    if args.dir is not None:
        overrides["image_dir"] = Path(args.dir)
    if args.fail_on_error is not None:
        overrides["fail_on_error"] = bool(args.fail_on_error)
    if args.exclude:
        overrides["excluded_dirs"] = DEFAULT_EXCLUDED_DIRS | frozenset(args.exclude)

    settings = CompressSettings(**overrides)
    validate_settings(settings)
    return settings


def main(argv: list[str] | None = None, environ: Optional[Mapping[str, str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if environ is None:
        environ = os.environ

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "compress":
        try:
            settings = build_settings(args, environ)
        except ValueError as ex:
            parser.error(str(ex))

        print(f"🔄 Compressing images (max size: {settings.max_size_kb}KB)...\n")

        try:
            results, summary = process_batch(
                settings.image_dir,
                settings,
                on_result=lambda r: print(r.status_line()),
            )
        except ImageDirectoryNotFound as ex:
            print(f"❌ {ex}", file=sys.stderr)
            return 1
        except OSError as ex:
            print(f"❌ Cannot read {settings.image_dir}: {ex}", file=sys.stderr)
            return 1

        print(format_report(summary, settings))

        if args.report:
            report_path = Path(args.report)
            report = build_report(results, summary, settings)
            if report_path.suffix.lower() == ".csv":
                save_report_csv(report, report_path)
            else:
                save_report_json(report, report_path)
            print("Report written:", report_path)

        if summary.oversized and settings.fail_on_error:
            return 1
        return 0

    if args.command == "install-hook":
        try:
            overrides = settings_from_env(environ)
        except ValueError as ex:
            parser.error(str(ex))

        defaults = CompressSettings(**overrides)
        max_size_kb = args.max_size if args.max_size is not None else defaults.max_size_kb
        image_dir = args.dir if args.dir is not None else str(defaults.image_dir)

        try:
            hook_path = install_pre_commit_hook(
                Path(args.repo),
                max_size_kb=max_size_kb,
                image_dir=image_dir,
                force=bool(args.force),
            )
        except HookInstallError as ex:
            print(f"❌ {ex}", file=sys.stderr)
            return 1

        print(f"✓ Pre-commit hook installed at {hook_path}")
        print("  git commit --no-verify    - Skip image check (not recommended)")
        return 0

    parser.print_help()
    return 2
