"""
Worker Arguments
================

Builds the command-line arguments handed to the test engine for one
feature. Composition order is fixed:

    --glue <root>            one pair per glue root
    --plugin json:<file>     primary result
    --plugin junit:<file>    only with junit_report
    --dry-run / --monochrome / --strict
    --tags <a,b>             only with tags
    --snippets <style>
    <feature path>
"""

from __future__ import annotations

from pathlib import Path
from typing import NamedTuple

from .models import FeatureFile, RunOptions

PLUGIN = "--plugin"


class OutputPaths(NamedTuple):
    results_file: Path
    junit_file: Path
    out_log_file: Path
    err_log_file: Path


def output_paths_for(feature: FeatureFile, results_dir: Path) -> OutputPaths:
    """Per-feature output files, unique because logical names are unique."""
    results_dir = Path(results_dir).absolute()
    return OutputPaths(
        results_file=results_dir / f"{feature.name}.json",
        junit_file=results_dir / f"{feature.name}.xml",
        out_log_file=results_dir / f"{feature.name}-out.log",
        err_log_file=results_dir / f"{feature.name}-err.log",
    )


def _apply_glue(args: list[str], options: RunOptions) -> None:
    for root in options.glue:
        args.extend(["--glue", root])


def _apply_plugins(args: list[str], options: RunOptions, results_file: Path, junit_file: Path) -> None:
    args.extend([PLUGIN, f"json:{Path(results_file).absolute()}"])
    if options.junit_report:
        args.extend([PLUGIN, f"junit:{Path(junit_file).absolute()}"])


def _apply_flags(args: list[str], options: RunOptions) -> None:
    if options.dry_run:
        args.append("--dry-run")
    if options.monochrome:
        args.append("--monochrome")
    if options.strict:
        args.append("--strict")


def _apply_tags(args: list[str], options: RunOptions) -> None:
    if options.tags:
        args.extend(["--tags", ",".join(options.tags)])


def _apply_snippets(args: list[str], options: RunOptions) -> None:
    args.extend(["--snippets", options.snippets.value])


def build_arguments(
    feature: FeatureFile,
    options: RunOptions,
    results_file: Path,
    junit_file: Path,
) -> list[str]:
    """Build the engine argument list for ``feature``.

    Pure: the same inputs always produce an identical list.
    """
    args: list[str] = []
    _apply_glue(args, options)
    _apply_plugins(args, options, results_file, junit_file)
    _apply_flags(args, options)
    _apply_tags(args, options)
    _apply_snippets(args, options)
    args.append(str(Path(feature.path).absolute()))
    return args
