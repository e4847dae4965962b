#!/usr/bin/env python3
"""Test runner script for QueryCore.

Wraps pytest with the marker selections used by the suite and runs the
lint and type checks configured for the project.
"""

import argparse
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Marker expressions selectable with --type
TEST_SELECTIONS = {
    "all": None,
    "unit": "unit",
    "database": "database",
    "network": "network",
    "offline": "not network and not integration",
}


def run_command(cmd: List[str], *, cwd: Optional[Path] = None) -> int:
    """Run command and return its exit code."""
    print(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, cwd=cwd or PROJECT_ROOT)
    return result.returncode


def run_tests(
    test_type: str = "all",
    *,
    coverage: bool = False,
    verbose: bool = False,
    fail_fast: bool = False,
    html_report: bool = False,
    keyword: Optional[str] = None,
) -> int:
    """Run pytest for a marker selection.

    Args:
        test_type: Key of ``TEST_SELECTIONS``
        coverage: Enable coverage reporting (needs pytest-cov)
        verbose: Enable verbose output
        fail_fast: Stop on first failure
        html_report: Also write an HTML coverage report
        keyword: Optional ``-k`` expression

    Returns:
        Exit code from pytest
    """
    cmd = [sys.executable, "-m", "pytest"]

    marker = TEST_SELECTIONS[test_type]
    if marker:
        cmd.extend(["-m", marker])

    if keyword:
        cmd.extend(["-k", keyword])

    if coverage:
        cmd.extend([
            "--cov=src/querycore",
            "--cov-report=term-missing:skip-covered",
            "--cov-report=xml:coverage.xml",
        ])
        if html_report:
            cmd.append("--cov-report=html:htmlcov")

    if verbose:
        cmd.append("-v")
    if fail_fast:
        cmd.append("-x")

    cmd.append("--durations=10")
    return run_command(cmd)


def run_quality_checks() -> int:
    """Run lint and type checks; returns 0 only if all pass."""
    checks = [
        ([sys.executable, "-m", "flake8", "src", "tests"], "Code linting (flake8)"),
        ([sys.executable, "-m", "mypy", "src/querycore"], "Type checking (mypy)"),
    ]

    failed_checks = []
    for cmd, description in checks:
        print(f"\n{'=' * 60}\nRunning {description}\n{'=' * 60}")
        if run_command(cmd) != 0:
            failed_checks.append(description)

    if failed_checks:
        print("\nQuality checks failed:")
        for check in failed_checks:
            print(f"  - {check}")
        return 1

    print("\nAll quality checks passed.")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="QueryCore test runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                       # Run all tests
  %(prog)s --type unit           # Run unit tests only
  %(prog)s --type offline -x     # Skip network tests, stop on first failure
  %(prog)s --coverage --html     # Run with coverage and HTML report
  %(prog)s --quality             # Run lint and type checks only
        """,
    )
    parser.add_argument(
        "--type", "-t",
        choices=sorted(TEST_SELECTIONS),
        default="all",
        help="Marker selection to run (default: all)",
    )
    parser.add_argument("--coverage", "-c", action="store_true", help="Enable coverage reporting")
    parser.add_argument("--html", action="store_true", help="Generate HTML coverage report")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--fail-fast", "-x", action="store_true", help="Stop on first failure")
    parser.add_argument("--keyword", "-k", help="Only run tests matching this expression")
    parser.add_argument("--quality", "-q", action="store_true", help="Run lint and type checks")

    args = parser.parse_args()

    if args.quality:
        return run_quality_checks()

    return run_tests(
        test_type=args.type,
        coverage=args.coverage,
        verbose=args.verbose,
        fail_fast=args.fail_fast,
        html_report=args.html,
        keyword=args.keyword,
    )


if __name__ == "__main__":
    sys.exit(main())
