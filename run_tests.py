"""Test runner script for the alias engine.

Runs the pytest suite, optionally with a coverage report over the
engine packages.
"""
import sys
import subprocess

PACKAGES = ["app", "config", "core", "index", "matching", "services", "storage"]


def run_tests():
    """Run all tests with pytest."""
    print("=" * 70)
    print("Running Alias Engine Tests")
    print("=" * 70)
    print()

    cmd = [
        sys.executable,
        "-m",
        "pytest",
        "tests/",
        "-v",
        "--tb=short",
        "--color=yes",
    ]

    try:
        result = subprocess.run(cmd, check=False)
        return result.returncode
    except FileNotFoundError:
        print("ERROR: pytest not found. Install it with: pip install -e .[test]")
        return 1


def run_tests_with_coverage():
    """Run tests with coverage reporting."""
    print("=" * 70)
    print("Running Tests with Coverage Report")
    print("=" * 70)
    print()

    cmd = [sys.executable, "-m", "pytest", "tests/"]
    cmd += [f"--cov={package}" for package in PACKAGES]
    cmd += ["--cov-report=term-missing", "--cov-report=html", "-v"]

    try:
        result = subprocess.run(cmd, check=False)
        if result.returncode == 0:
            print()
            print("=" * 70)
            print("Coverage report generated in htmlcov/index.html")
            print("=" * 70)
        return result.returncode
    except FileNotFoundError:
        print("ERROR: pytest-cov not found. Install it with: pip install -e .[test]")
        return 1


if __name__ == "__main__":
    if "--coverage" in sys.argv or "-c" in sys.argv:
        exit_code = run_tests_with_coverage()
    else:
        exit_code = run_tests()

    sys.exit(exit_code)
