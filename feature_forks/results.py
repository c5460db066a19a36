"""
Result Collection
=================

Reads the Cucumber-style JSON document a worker leaves behind and folds
it into the suite counters.

Two ways a feature becomes a structural parse failure:
- the JSON result is missing or is not a well-formed result document
- a reported feature has undefined steps (it is still counted first)

Undefined steps abort the suite on purpose: a step without a definition
is handled like a feature that never ran.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from .counters import SuiteCounters
from .models import FeatureResult, WorkerInvocation

logger = logging.getLogger(__name__)

PASSED = "passed"
FAILED = "failed"
SKIPPED = "skipped"
PENDING = "pending"
UNDEFINED = "undefined"

# Element types that carry shared steps rather than a scenario of their own
_NON_SCENARIO_TYPES = {"background"}


class MalformedResultError(ValueError):
    """The result document does not have the expected shape."""
    pass


@dataclass
class FeatureOutcome:
    """What one worker invocation contributed to the suite."""

    feature_name: str
    results: list[FeatureResult] = field(default_factory=list)
    parse_failure: bool = False
    reason: str = ""


def _status_of(entry: Any) -> str:
    if not isinstance(entry, dict):
        raise MalformedResultError(f"Expected an object, got {type(entry).__name__}")
    result = entry.get("result") or {}
    if not isinstance(result, dict):
        raise MalformedResultError("'result' must be an object")
    return str(result.get("status", UNDEFINED)).lower()


def _as_list(value: Any, what: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedResultError(f"'{what}' must be a list")
    return value


def create_result(feature: dict, non_failing_statuses: Iterable[str] = ()) -> FeatureResult:
    """Count scenarios and steps of one feature object.

    A scenario fails when any of its steps or hooks has a status other than
    passed that is not listed in ``non_failing_statuses``.
    """
    if not isinstance(feature, dict):
        raise MalformedResultError("Feature entry must be an object")
    tolerated = {s.lower() for s in non_failing_statuses}

    passed_scenarios = failed_scenarios = 0
    step_counts = {PASSED: 0, FAILED: 0, SKIPPED: 0, PENDING: 0, UNDEFINED: 0}

    for element in _as_list(feature.get("elements"), "elements"):
        if not isinstance(element, dict):
            raise MalformedResultError("Element entry must be an object")

        step_statuses = [_status_of(s) for s in _as_list(element.get("steps"), "steps")]
        hook_statuses = [
            _status_of(h)
            for key in ("before", "after")
            for h in _as_list(element.get(key), key)
        ]

        for status in step_statuses:
            # Unknown statuses (e.g. "ambiguous") count as failed
            step_counts[status if status in step_counts else FAILED] += 1

        if element.get("type") in _NON_SCENARIO_TYPES:
            continue
        failing = [s for s in step_statuses + hook_statuses if s != PASSED and s not in tolerated]
        if failing:
            failed_scenarios += 1
        else:
            passed_scenarios += 1

    return FeatureResult(
        name=str(feature.get("name") or feature.get("uri") or ""),
        total_scenarios=passed_scenarios + failed_scenarios,
        failed_scenarios=failed_scenarios,
        total_steps=step_counts[PASSED] + step_counts[FAILED],
        failed_steps=step_counts[FAILED],
        skipped_steps=step_counts[SKIPPED],
        pending_steps=step_counts[PENDING],
        undefined_steps=step_counts[UNDEFINED],
    )


def parse_result_file(path: Path, non_failing_statuses: Iterable[str] = ()) -> list[FeatureResult]:
    """Parse a JSON result document into one FeatureResult per feature.

    Raises:
        MalformedResultError: document is not a list of feature objects
        OSError: file cannot be read
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise MalformedResultError(f"Invalid JSON in {path}: {e}") from e

    if isinstance(document, dict):
        document = [document]
    if not isinstance(document, list):
        raise MalformedResultError(f"{path} must contain a list of features")
    tolerated = list(non_failing_statuses)
    return [create_result(feature, tolerated) for feature in document]


def _read_log(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""


class ResultCollector:
    """Turns a finished worker's artifacts into counter updates."""

    def __init__(self, counters: SuiteCounters, non_failing_statuses: Iterable[str] = ()):
        self.counters = counters
        self.non_failing_statuses = tuple(non_failing_statuses)

    def collect(self, invocation: WorkerInvocation) -> FeatureOutcome:
        name = invocation.feature.name
        outcome = FeatureOutcome(feature_name=name)

        if not invocation.results_file.exists():
            outcome.parse_failure = True
            outcome.reason = "no result file"
            self.counters.record_parse_failure(name)
            logger.error("%s produced no result file:\n%s", name, _read_log(invocation.err_log_file))
            return outcome

        try:
            results = parse_result_file(invocation.results_file, self.non_failing_statuses)
        except (MalformedResultError, OSError) as e:
            outcome.parse_failure = True
            outcome.reason = str(e)
            self.counters.record_parse_failure(name)
            logger.error("%s left an unusable result file: %s\n%s", name, e, _read_log(invocation.err_log_file))
            return outcome

        if not results:
            # Everything filtered out by tags; the feature ran and had nothing to do
            results = [FeatureResult(name=name)]

        for result in results:
            logger.debug("Logging result for %s", result.name or name)
            self.counters.after_feature(result)
            outcome.results.append(result)

            if result.undefined_steps > 0:
                outcome.parse_failure = True
                outcome.reason = f"{result.undefined_steps} undefined step(s)"
            if result.had_failures or result.undefined_steps > 0:
                logger.error("%s:\n%s", name, _read_log(invocation.out_log_file))

        return outcome
