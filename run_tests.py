"""
Simple test runner script.
Run with: python run_tests.py

Runs the tests/ directory with verbose output; extra arguments are passed
through to pytest (e.g. ``python run_tests.py -k settle``).
"""

import subprocess
import sys

if __name__ == "__main__":
    result = subprocess.run(
        [
            sys.executable, "-m", "pytest",
            "-v",              # Verbose output
            "--tb=short",      # Short traceback format
            "tests/",
            *sys.argv[1:],
        ],
        cwd="."
    )
    sys.exit(result.returncode)
