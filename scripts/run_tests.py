#!/usr/bin/env python3
"""Test runner for the extension recommender.

This script runs the test suites by category with coverage reporting.
"""

import argparse
import subprocess
import sys
import time
from pathlib import Path
from typing import Dict, List


class TestRunner:
    """Test runner with coverage analysis."""

    def __init__(self, project_root: Path):
        self.project_root = project_root
        self.test_dir = project_root / "tests"
        self.coverage_dir = project_root / "htmlcov"

    def run_unit_tests(self, verbose: bool = False) -> bool:
        """Run unit tests with coverage."""
        print("🧪 Running unit tests...")

        cmd = [
            sys.executable, "-m", "pytest",
            str(self.test_dir),
            "-v" if verbose else "-q",
            "--cov=src",
            "--cov-report=term-missing",
            "-m", "not integration",
        ]

        return self._run_command(cmd, "Unit tests")

    def run_integration_tests(self, verbose: bool = False) -> bool:
        """Run end-to-end tests of the service and CLI."""
        print("🔗 Running integration tests...")

        cmd = [
            sys.executable, "-m", "pytest",
            str(self.test_dir),
            "-v" if verbose else "-q",
            "--cov=src",
            "--cov-append",
            "-m", "integration",
        ]

        return self._run_command(cmd, "Integration tests")

    def run_notification_tests(self, verbose: bool = False) -> bool:
        """Run the notification state machine tests with a strict coverage gate."""
        print("🔔 Running notification tests...")

        notification_test_files = [
            "test_notification_models.py",
            "test_prompt_manager.py",
        ]

        cmd = [
            sys.executable, "-m", "pytest",
            *[str(self.test_dir / f) for f in notification_test_files],
            "-v" if verbose else "-q",
            "--cov=src/notification",
            "--cov-report=term-missing",
            "--cov-fail-under=95",
        ]

        return self._run_command(cmd, "Notification tests")

    def run_all_tests(self, verbose: bool = False) -> Dict[str, bool]:
        """Run all test suites and return results."""
        print("🚀 Running full test suite...")

        results = {}
        test_suites = [
            ("notification", self.run_notification_tests),
            ("unit", self.run_unit_tests),
            ("integration", self.run_integration_tests),
        ]

        for suite_name, test_function in test_suites:
            print(f"\n{'='*60}")
            results[suite_name] = test_function(verbose)
            if results[suite_name]:
                print(f"✅ {suite_name.title()} tests passed!")
            else:
                print(f"❌ {suite_name.title()} tests failed!")

        return results

    def generate_coverage_report(self) -> bool:
        """Generate an HTML coverage report."""
        print("📊 Generating coverage report...")

        cmd = [
            sys.executable, "-m", "coverage", "html",
            "--directory", str(self.coverage_dir),
            "--title", "Extension Recommender Coverage Report",
        ]

        success = self._run_command(cmd, "Coverage HTML report")
        if success:
            print(f"📈 Coverage report generated at: {self.coverage_dir / 'index.html'}")
        return success

    def _run_command(self, cmd: List[str], description: str) -> bool:
        """Run a command and return success status."""
        start_time = time.time()
        result = subprocess.run(cmd, cwd=self.project_root)
        duration = time.time() - start_time

        if result.returncode == 0:
            print(f"✅ {description} completed in {duration:.2f}s")
            return True
        print(f"❌ {description} failed after {duration:.2f}s")
        return False


def main():
    """Main test runner entry point."""
    parser = argparse.ArgumentParser(description="Extension Recommender Test Runner")

    parser.add_argument(
        "--suite",
        choices=["unit", "integration", "notification", "all"],
        default="all",
        help="Test suite to run",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--coverage-only",
        action="store_true",
        help="Only generate coverage report",
    )

    args = parser.parse_args()
    project_root = Path(__file__).parent.parent
    runner = TestRunner(project_root)

    if args.coverage_only:
        sys.exit(0 if runner.generate_coverage_report() else 1)

    if args.suite == "unit":
        success = runner.run_unit_tests(args.verbose)
    elif args.suite == "integration":
        success = runner.run_integration_tests(args.verbose)
    elif args.suite == "notification":
        success = runner.run_notification_tests(args.verbose)
    else:
        results = runner.run_all_tests(args.verbose)
        success = all(results.values())

        print(f"\n{'='*60}")
        runner.generate_coverage_report()

        print(f"\n{'='*60}")
        print("📋 TEST SUMMARY")
        print(f"{'='*60}")
        for suite_name, result in results.items():
            status = "✅ PASSED" if result else "❌ FAILED"
            print(f"{suite_name.title():15} {status}")

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
