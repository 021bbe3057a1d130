#!/usr/bin/env python3
"""
Development tasks for Zai CLI.

Usage: python scripts/build.py [check|build|clean|test|unit|lint]
"""

import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable, Dict, List

ROOT = Path(__file__).resolve().parent.parent
SOURCES = ["src/", "tests/"]

CLEAN_PATTERNS = [
    "build",
    "dist",
    "*.egg-info",
    "src/*.egg-info",
    ".pytest_cache",
    ".mypy_cache",
    ".ruff_cache",
    "htmlcov",
    ".coverage",
]


def run_command(command: List[str]) -> int:
    """Run a command from the project root and return its exit code."""
    print(f"$ {' '.join(command)}")
    return subprocess.run(command, cwd=ROOT).returncode


def run_steps(steps: List[List[str]]) -> int:
    for step in steps:
        code = run_command(step)
        if code != 0:
            print(f"❌ Failed: {' '.join(step)}")
            return code
    return 0


def check() -> int:
    """Lint, type check and run the whole test suite."""
    print("🔍 Checking Zai CLI...")
    code = run_steps([
        ["ruff", "check", *SOURCES],
        ["ruff", "format", "--check", *SOURCES],
        ["mypy", "src/"],
        ["pytest", "tests/"],
    ])
    if code == 0:
        print("✅ All checks passed")
    return code


def build_package() -> int:
    """Run the checks, then build sdist and wheel."""
    code = check()
    if code != 0:
        return code

    print("\n📦 Building package...")
    return run_command([sys.executable, "-m", "build"])


def clean() -> int:
    """Remove build, cache and coverage artifacts."""
    print("🧹 Cleaning build artifacts...")

    for pattern in CLEAN_PATTERNS:
        for path in ROOT.glob(pattern):
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()

    for cache in ROOT.rglob("__pycache__"):
        shutil.rmtree(cache, ignore_errors=True)

    print("✅ Clean completed!")
    return 0


def test() -> int:
    """Run all tests with coverage."""
    return run_command([
        "pytest",
        "tests/",
        "--cov=zai_cli",
        "--cov-report=term-missing",
    ])


def unit() -> int:
    """Run the unit tests only (no HTTP mocking or CLI runs)."""
    return run_command(["pytest", "tests/unit", "-q"])


def lint() -> int:
    """Fix lint findings and reformat."""
    return run_steps([
        ["ruff", "check", "--fix", *SOURCES],
        ["ruff", "format", *SOURCES],
    ])


TASKS: Dict[str, Callable[[], int]] = {
    "check": check,
    "build": build_package,
    "clean": clean,
    "test": test,
    "unit": unit,
    "lint": lint,
}


def main() -> None:
    if len(sys.argv) != 2 or sys.argv[1] not in TASKS:
        print(f"Usage: python scripts/build.py [{'|'.join(TASKS)}]")
        sys.exit(1)

    sys.exit(TASKS[sys.argv[1]]())


if __name__ == "__main__":
    main()
