#!/usr/bin/env -S uv run --script
# /// script
# dependencies = ["beautifulsoup4"]
# ///
"""
Build Artifact Comparison Tool

Compares a baseline build output against a freshly built ("reactor") one, file by
file, choosing a content comparator by file extension. Javadoc HTML is compared
modulo generator churn; other text is compared modulo line endings; everything
else byte-for-byte.

Usage:
    uv run scripts/compare_artifacts.py <baseline> <reactor>
    uv run scripts/compare_artifacts.py test
"""

from __future__ import annotations

import argparse
import fnmatch
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

from artifact_comparator import (
    ArtifactDelta,
    BinaryComparator,
    ComparatorInputStream,
    ComparisonData,
    ContentsComparator,
    HtmlComparator,
    TextComparator,
)

# ANSI color codes for TTY output
IS_TTY = sys.stdout.isatty()
RED = "\033[91m" if IS_TTY else ""
GREEN = "\033[92m" if IS_TTY else ""
RESET = "\033[0m" if IS_TTY else ""


def log(msg: str = "") -> None:
    """Print a message and flush stdout immediately."""
    print(msg, flush=True)


# =============================================================================
# Comparator Registry
# =============================================================================


def register_comparators() -> dict[str, ContentsComparator]:
    """Build the hint -> comparator mapping used for every comparison."""
    return {
        HtmlComparator.HINT: HtmlComparator(),
        TextComparator.HINT: TextComparator(),
    }


DEFAULT_COMPARATOR = BinaryComparator()


def select_comparator(
    comparators: dict[str, ContentsComparator], rel_path: str
) -> tuple[str, ContentsComparator]:
    """Pick the first comparator matching the file's extension, else the binary one."""
    path = Path(rel_path)
    extension = path.suffix[1:] if path.suffix else path.name
    for hint, comparator in comparators.items():
        if comparator.matches(extension):
            return hint, comparator
    return BinaryComparator.HINT, DEFAULT_COMPARATOR


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class FileComparisonResult:
    """Result of comparing a single file."""

    file_path: str
    comparator: str = ""
    delta: ArtifactDelta | None = None
    error: str | None = None
    elapsed_ms: float = 0.0


# =============================================================================
# Comparison
# =============================================================================


def is_ignored(rel_path: str, patterns: list[str]) -> bool:
    return any(fnmatch.fnmatch(rel_path, pattern) for pattern in patterns)


def collect_files(directory: Path, ignored_patterns: list[str]) -> set[str]:
    """Recursively collect all files in directory as relative POSIX paths."""
    files: set[str] = set()
    for path in directory.rglob("*"):
        if path.is_file():
            rel_path = path.relative_to(directory).as_posix()
            if not is_ignored(rel_path, ignored_patterns):
                files.add(rel_path)
    return files


def compare_directories(
    baseline_dir: Path, reactor_dir: Path, ignored_patterns: list[str]
) -> tuple[set[str], set[str], set[str]]:
    """
    Compare file inventories of two directories.

    Returns:
        Tuple of (only in baseline, only in reactor, in both)
    """
    baseline_files = collect_files(baseline_dir, ignored_patterns)
    reactor_files = collect_files(reactor_dir, ignored_patterns)
    return (
        baseline_files - reactor_files,
        reactor_files - baseline_files,
        baseline_files & reactor_files,
    )


def compare_files(
    baseline: Path,
    reactor: Path,
    rel_path: str,
    comparators: dict[str, ContentsComparator],
    data: ComparisonData,
) -> FileComparisonResult:
    """Compare one baseline/reactor file pair."""
    start_time = time.perf_counter()
    hint, comparator = select_comparator(comparators, rel_path)
    result = FileComparisonResult(file_path=rel_path, comparator=hint)

    try:
        result.delta = comparator.get_delta(
            ComparatorInputStream.from_path(baseline),
            ComparatorInputStream.from_path(reactor),
            data,
        )
    except Exception as e:
        result.error = str(e) or type(e).__name__

    result.elapsed_ms = (time.perf_counter() - start_time) * 1000
    return result


# =============================================================================
# Reporting
# =============================================================================


def print_file_report(result: FileComparisonResult, verbose: bool = False) -> bool:
    """
    Print a single file's comparison report.

    Returns:
        True if the file differs or could not be compared
    """
    if result.error is not None:
        log(f"\n{'=' * 60}")
        log(f"{RED}ERROR{RESET}: {result.file_path} ({result.elapsed_ms:.1f}ms)")
        log("=" * 60)
        log(f"  {result.error}")
        return True

    if result.delta is None:
        if verbose:
            log(f"  {GREEN}OK{RESET}: {result.file_path} [{result.comparator}]")
        return False

    log(f"\n{'=' * 60}")
    log(f"{RED}DIFFERENT{RESET}: {result.file_path} [{result.comparator}] ({result.elapsed_ms:.1f}ms)")
    log("=" * 60)
    log(f"  {result.delta.message}")
    if result.delta.detailed_message:
        for line in result.delta.detailed_message.splitlines():
            log(f"    {line}")
    return True


def print_summary(
    total_files: int,
    files_different: int,
    files_with_errors: int,
    files_only_in_baseline: int,
    files_only_in_reactor: int,
    total_elapsed_ms: float,
) -> None:
    """Print the final summary."""
    log("\n" + "=" * 60)
    log(f"SUMMARY ({total_elapsed_ms:.1f}ms)")
    log("=" * 60)
    log(f"  Files compared: {total_files}")
    log(f"  Files identical: {total_files - files_different - files_with_errors}")
    log(f"  Files different: {files_different}")
    log(f"  Files with errors: {files_with_errors}")
    log(f"  Files only in baseline: {files_only_in_baseline}")
    log(f"  Files only in reactor: {files_only_in_reactor}")


def run_file_compare(args: argparse.Namespace, data: ComparisonData) -> int:
    """Compare a single baseline file against a single reactor file."""
    result = compare_files(
        args.baseline, args.reactor, args.reactor.name, register_comparators(), data
    )
    if print_file_report(result, verbose=True):
        return 1
    return 0


def main(args: argparse.Namespace | None = None) -> int:
    """Main comparison function."""
    if args is None:
        args = build_parser().parse_args(["compare", *sys.argv[1:]])

    data = ComparisonData(
        ignored_patterns=list(args.ignore or []),
        show_diff_details=args.show_diff,
    )

    if args.baseline.is_file() or args.reactor.is_file():
        for path in (args.baseline, args.reactor):
            if not path.is_file():
                print(f"Error: {path} is not a file", file=sys.stderr)
                return 1
        return run_file_compare(args, data)

    if not args.baseline.is_dir():
        print(f"Error: {args.baseline} is not a directory", file=sys.stderr)
        return 1
    if not args.reactor.is_dir():
        print(f"Error: {args.reactor} is not a directory", file=sys.stderr)
        return 1

    total_start = time.perf_counter()
    log(f"Comparing {args.baseline} vs {args.reactor}")

    only_baseline, only_reactor, in_both = compare_directories(
        args.baseline, args.reactor, data.ignored_patterns
    )
    log(f"  Files in both: {len(in_both)}")
    log(f"  Files only in baseline: {len(only_baseline)}")
    log(f"  Files only in reactor: {len(only_reactor)}")

    has_errors = False
    if only_baseline:
        log("\n" + "=" * 60)
        log("FILES ONLY IN BASELINE:")
        log("=" * 60)
        for f in sorted(only_baseline):
            log(f"  {f}")
        has_errors = True

    if only_reactor:
        log("\n" + "=" * 60)
        log("FILES ONLY IN REACTOR:")
        log("=" * 60)
        for f in sorted(only_reactor):
            log(f"  {f}")
        has_errors = True

    comparators = register_comparators()
    files_different = 0
    files_with_errors = 0
    files_compared = 0

    # Sort file paths for deterministic output order
    sorted_files = sorted(in_both)
    results_by_path: dict[str, FileComparisonResult] = {}
    next_to_print = 0

    try:
        with ThreadPoolExecutor(max_workers=args.jobs) as executor:
            futures = {
                executor.submit(
                    compare_files,
                    args.baseline / file_path,
                    args.reactor / file_path,
                    file_path,
                    comparators,
                    data,
                ): file_path
                for file_path in sorted_files
            }

            for future in as_completed(futures):
                results_by_path[futures[future]] = future.result()

                # Print all consecutive results that are ready, in sorted order
                while next_to_print < len(sorted_files):
                    next_path = sorted_files[next_to_print]
                    if next_path not in results_by_path:
                        break

                    res = results_by_path.pop(next_path)
                    if print_file_report(res, args.verbose):
                        has_errors = True
                        if res.error is not None:
                            files_with_errors += 1
                        else:
                            files_different += 1
                    files_compared += 1
                    next_to_print += 1

    except KeyboardInterrupt:
        log("\n\nInterrupted! Cancelling pending tasks...")
        executor.shutdown(wait=False, cancel_futures=True)
        log(f"Processed {files_compared} of {len(sorted_files)} files before interrupt.")
        return 130  # Standard exit code for SIGINT

    total_elapsed = (time.perf_counter() - total_start) * 1000
    print_summary(
        total_files=files_compared,
        files_different=files_different,
        files_with_errors=files_with_errors,
        files_only_in_baseline=len(only_baseline),
        files_only_in_reactor=len(only_reactor),
        total_elapsed_ms=total_elapsed,
    )

    return 1 if has_errors else 0


# =============================================================================
# Self Tests
# =============================================================================

JAVADOC_HEAD = """<!DOCTYPE HTML>
<html lang="{lang}">
<head>
<!-- Generated by javadoc (17) -->
<title>Foo</title>
{extra}
</head>
<body>
<main>{body}</main>
</body>
</html>
"""


def javadoc_page(body: str = "<p>Foo</p>", lang: str = "en", extra: str = "") -> str:
    return JAVADOC_HEAD.format(body=body, lang=lang, extra=extra)


def run_tests() -> int:
    """Run self tests for HtmlComparator."""
    passed = 0
    failed = 0
    comparator = HtmlComparator()

    def test(name: str, old_html: str, new_html: str, expected_equal: bool) -> None:
        nonlocal passed, failed

        delta = comparator.get_delta(
            ComparatorInputStream(old_html.encode("utf-8")),
            ComparatorInputStream(new_html.encode("utf-8")),
            ComparisonData(),
        )
        is_equal = delta is None

        if is_equal == expected_equal:
            log(f"  {GREEN}PASS{RESET}: {name}")
            passed += 1
        else:
            log(f"  {RED}FAIL{RESET}: {name}")
            log(f"    Expected: {'EQUAL' if expected_equal else 'DIFFERENT'}")
            log(f"    Got: {'EQUAL' if is_equal else 'DIFFERENT'}")
            log(f"    Old: {old_html!r}")
            log(f"    New: {new_html!r}")
            failed += 1

    log("Running HtmlComparator tests...\n")

    test("identical content", javadoc_page(), javadoc_page(), expected_equal=True)

    test(
        "script added to head",
        javadoc_page(),
        javadoc_page(extra='<script type="text/javascript" src="script.js"></script>'),
        expected_equal=True,
    )

    test(
        "stylesheet added to head",
        javadoc_page(),
        javadoc_page(extra='<LINK rel="stylesheet" href="stylesheet.css">'),
        expected_equal=True,
    )

    test(
        "meta changed",
        javadoc_page(extra='<meta name="dc.created" content="2023-01-01">'),
        javadoc_page(extra='<meta name="dc.created" content="2024-06-30">'),
        expected_equal=True,
    )

    test(
        "uppercase META is kept",
        javadoc_page(),
        javadoc_page(extra='<META name="generator" content="javadoc">'),
        expected_equal=False,
    )

    test(
        "lang changed",
        javadoc_page(lang="en"),
        javadoc_page(lang="de"),
        expected_equal=True,
    )

    test(
        "whitespace between tags",
        javadoc_page(body="<p>Foo</p>\n    <p>Bar</p>"),
        javadoc_page(body="<p>Foo</p><p>Bar</p>"),
        expected_equal=True,
    )

    test(
        "body text changed",
        javadoc_page(body="<p>Foo</p>"),
        javadoc_page(body="<p>Bar</p>"),
        expected_equal=False,
    )

    test(
        "not javadoc, script added",
        "<html><head><title>x</title></head><body></body></html>",
        "<html><head><title>x</title><script></script></head><body></body></html>",
        expected_equal=False,
    )

    log(f"\n{passed} passed, {failed} failed")
    return 1 if failed else 0


# =============================================================================
# CLI
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build Artifact Comparison Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Compare command (default)
    compare_parser = subparsers.add_parser(
        "compare", help="Compare two files or two build output directories"
    )
    compare_parser.add_argument("baseline", type=Path, help="Baseline file or directory")
    compare_parser.add_argument("reactor", type=Path, help="Reactor file or directory")
    compare_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show identical files too"
    )
    compare_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=8,
        help="Number of parallel jobs (default: 8)",
    )
    compare_parser.add_argument(
        "--ignore",
        action="append",
        metavar="PATTERN",
        help="Glob of relative paths to skip (repeatable)",
    )
    compare_parser.add_argument(
        "--show-diff",
        action="store_true",
        help="Include a unified diff for each difference",
    )

    # Test command
    subparsers.add_parser("test", help="Run self tests for HtmlComparator")

    return parser


def main_cli() -> int:
    """Main CLI entry point with subcommand support."""
    # If first arg is not a known command or flag, assume it's a path and prepend "compare"
    if len(sys.argv) > 1 and sys.argv[1] not in ("compare", "test", "-h", "--help"):
        sys.argv.insert(1, "compare")

    parser = build_parser()
    args = parser.parse_args()

    if args.command == "test":
        return run_tests()
    elif args.command == "compare":
        return main(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main_cli())
