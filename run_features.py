#!/usr/bin/env python3
"""
Feature Suite Runner
====================

Runs every feature file of an acceptance suite in its own worker process.

Usage:
    python run_features.py --config suite.yaml
    python run_features.py --config suite.yaml -p 4 --tags @smoke --strict

Exit codes:
    0  every scenario passed
    1  one or more scenarios or steps failed
    2  one or more features failed to parse (missing result or undefined steps)
    3  configuration error
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from feature_forks.config import load_suite_config
from feature_forks.errors import ConfigError, FeatureParseError
from feature_forks.orchestrator import SuiteOrchestrator

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_PARSE_ERROR = 2
EXIT_CONFIG_ERROR = 3


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run feature files in parallel, one worker process per feature",
    )
    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to the suite YAML file",
    )
    parser.add_argument(
        "--max-parallel-forks",
        "-p",
        type=int,
        default=None,
        help="Maximum concurrent worker processes (overrides config)",
    )
    parser.add_argument(
        "--tags",
        action="append",
        default=None,
        help="Tag filter passed to the engine; repeat for several",
    )
    parser.add_argument("--strict", action="store_true", default=None, help="Treat undefined/pending steps as failures")
    parser.add_argument("--dry-run", action="store_true", default=None, help="Check step definitions without running them")
    parser.add_argument("--junit", action="store_true", default=None, help="Also write a JUnit XML report per feature")
    parser.add_argument("--verbose", "-v", action="store_true", default=False, help="Debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    level = "DEBUG" if args.verbose else os.environ.get("FEATURE_FORKS_LOG_LEVEL", "INFO")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    try:
        config = load_suite_config(Path(args.config))
        cli_overrides = {
            "max_parallel_forks": args.max_parallel_forks,
            "tags": args.tags,
            "strict": args.strict,
            "dry_run": args.dry_run,
            "junit_report": args.junit,
        }
        cli_overrides = {k: v for k, v in cli_overrides.items() if v is not None}
        if cli_overrides:
            config = config.with_options(**cli_overrides)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr, flush=True)
        return EXIT_CONFIG_ERROR

    orchestrator = SuiteOrchestrator(config.options)
    try:
        passed = orchestrator.run(config.work_source(), config.results_dir, config.reports_dir)
    except FeatureParseError as e:
        print(f"Error: {e}", file=sys.stderr, flush=True)
        return EXIT_PARSE_ERROR
    except KeyboardInterrupt:
        print("\n\nInterrupted by user", flush=True)
        return 130

    return EXIT_PASSED if passed else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
