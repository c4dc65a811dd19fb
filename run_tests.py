#!/usr/bin/env python3
"""
Test runner script with common testing commands.

Usage: python run_tests.py <command>
"""

import shutil
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).parent

PYTEST = [sys.executable, "-m", "pytest"]

SUITES = {
    "core": ("tests/test_core/", "Running checker, scheduler and background tests"),
    "services": ("tests/test_services/", "Running provider, notifier and service tests"),
    "models": ("tests/test_models/", "Running alert model tests"),
    "ormdb": ("tests/test_ormdb/", "Running alert store tests"),
    "config": ("tests/test_config/", "Running settings tests"),
}


def run_command(cmd, description):
    """Run a command and print the description."""
    print(f"\n🧪 {description}")
    print("=" * 50)
    print(f"Running: {' '.join(cmd)}")
    print()

    result = subprocess.run(cmd, cwd=ROOT)
    return result.returncode == 0


def clean():
    print("\n🧹 Cleaning test artifacts...")
    for name in (".coverage", "htmlcov", ".pytest_cache"):
        path = ROOT / name
        if path.is_dir():
            shutil.rmtree(path)
        elif path.exists():
            path.unlink()
    for cache in ROOT.rglob("__pycache__"):
        shutil.rmtree(cache, ignore_errors=True)
    print("✅ Test artifacts cleaned!")


def print_usage():
    print("Usage: python run_tests.py <command>")
    print("\nAvailable commands:")
    print("  all        - Run all tests with coverage")
    print("  unit       - Run unit tests only")
    for name, (_, description) in SUITES.items():
        print(f"  {name:<10} - {description}")
    print("  fast       - Run tests without coverage")
    print("  coverage   - Generate coverage report")
    print("  clean      - Clean test artifacts")


def main():
    """Main test runner."""
    if len(sys.argv) < 2:
        print_usage()
        return

    command = sys.argv[1].lower()

    if command == "clean":
        clean()
        return

    if command == "all":
        success = run_command(
            PYTEST + ["tests/", "--cov=ratewatch", "--cov-report=html", "-v"],
            "Running all tests with coverage",
        )
    elif command == "unit":
        success = run_command(
            PYTEST + ["tests/", "-m", "not integration", "-v"],
            "Running unit tests only",
        )
    elif command in SUITES:
        path, description = SUITES[command]
        success = run_command(PYTEST + [path, "-v"], description)
    elif command == "fast":
        success = run_command(
            PYTEST + ["tests/", "-q"], "Running tests without coverage (fast)"
        )
    elif command == "coverage":
        success = run_command(
            PYTEST
            + ["tests/", "--cov=ratewatch", "--cov-report=html", "--cov-report=term"],
            "Generating coverage report",
        )
        if success:
            print("\n📊 Coverage report generated!")
            print("   - HTML report: htmlcov/index.html")
    else:
        print(f"❌ Unknown command: {command}")
        print_usage()
        return

    if success:
        print(f"\n✅ {command.title()} tests completed successfully!")
    else:
        print(f"\n❌ {command.title()} tests failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
