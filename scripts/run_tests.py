"""Test runner script for the Pacesetter test suite.

This script provides convenient ways to run different test categories.
"""

import argparse
import subprocess
import sys
from pathlib import Path


def run_tests(test_type="all", verbose=False, coverage=False):
    """Run tests with specified options."""

    # Try to use virtual environment Python first
    venv_python = Path(".venv/Scripts/python.exe")
    if not venv_python.exists():
        venv_python = Path(".venv/bin/python")
    python_cmd = str(venv_python) if venv_python.exists() else sys.executable

    cmd = [python_cmd, "-m", "pytest"]

    if verbose:
        cmd.extend(["-v", "-s"])

    if coverage:
        cmd.extend(["--cov=pacesetter", "--cov-report=html", "--cov-report=term"])

    if test_type == "fast":
        cmd.extend(["-m", "not slow"])
    elif test_type == "slow":
        cmd.extend(["-m", "slow"])
    elif test_type == "integration":
        cmd.extend(["-m", "integration"])
    elif test_type == "unit":
        cmd.extend(["-m", "not integration and not slow"])

    cmd.append("pacesetter/tests")

    print(f"Running command: {' '.join(cmd)}")
    return subprocess.run(cmd).returncode


def main():
    parser = argparse.ArgumentParser(description="Pacesetter Test Runner")
    parser.add_argument(
        "test_type",
        choices=["all", "fast", "slow", "unit", "integration"],
        default="all",
        nargs="?",
        help="Type of tests to run",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("-c", "--coverage", action="store_true", help="Run with coverage")

    args = parser.parse_args()

    print("Pacesetter Test Runner")
    print(f"Running {args.test_type} tests...")
    print()

    exit_code = run_tests(args.test_type, args.verbose, args.coverage)
    print("All tests passed!" if exit_code == 0 else "Some tests failed!")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
