"""
Suite Counters
==============

Thread-safe aggregate of feature results for one suite run.

Lifecycle: ``before_suite`` once, then any number of concurrent
``after_feature`` / ``record_parse_failure`` calls, then ``after_suite``
once. Totals are plain sums so the order features complete in never
changes the outcome.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum

from pydantic import BaseModel, ConfigDict

from .errors import CounterStateError
from .models import FeatureResult

logger = logging.getLogger(__name__)


class _Phase(str, Enum):
    NEW = "new"
    RUNNING = "running"
    FINISHED = "finished"


class SuiteTotals(BaseModel):
    """Immutable snapshot of the aggregate."""

    model_config = ConfigDict(frozen=True)

    features_expected: int = 0
    features_completed: int = 0
    features_failed: int = 0
    parse_failures: int = 0
    total_scenarios: int = 0
    failed_scenarios: int = 0
    total_steps: int = 0
    failed_steps: int = 0
    skipped_steps: int = 0
    pending_steps: int = 0
    undefined_steps: int = 0

    @property
    def had_failures(self) -> bool:
        return self.failed_scenarios > 0 or self.failed_steps > 0


class SuiteCounters:
    """Accumulates FeatureResults from concurrently completing workers."""

    def __init__(self):
        self._lock = threading.Lock()
        self._phase = _Phase.NEW
        self._totals = SuiteTotals()

    def before_suite(self, expected_count: int) -> None:
        if expected_count < 0:
            raise ValueError("expected_count must be >= 0")
        with self._lock:
            if self._phase is _Phase.FINISHED:
                raise CounterStateError("Suite already finished")
            self._phase = _Phase.RUNNING
            self._totals = SuiteTotals(features_expected=expected_count)
        logger.info("Running %d feature(s)", expected_count)

    def after_feature(self, result: FeatureResult) -> None:
        with self._lock:
            self._require_running("after_feature")
            t = self._totals
            self._totals = t.model_copy(update={
                "features_completed": t.features_completed + 1,
                "features_failed": t.features_failed + (1 if result.had_failures else 0),
                "total_scenarios": t.total_scenarios + result.total_scenarios,
                "failed_scenarios": t.failed_scenarios + result.failed_scenarios,
                "total_steps": t.total_steps + result.total_steps,
                "failed_steps": t.failed_steps + result.failed_steps,
                "skipped_steps": t.skipped_steps + result.skipped_steps,
                "pending_steps": t.pending_steps + result.pending_steps,
                "undefined_steps": t.undefined_steps + result.undefined_steps,
            })
            done = self._totals.features_completed + self._totals.parse_failures
            expected = self._totals.features_expected
        logger.debug("Feature %s finished (%d/%d)", result.name or "<unnamed>", done, expected)

    def record_parse_failure(self, feature_name: str) -> None:
        """Count a feature that produced no usable result."""
        with self._lock:
            self._require_running("record_parse_failure")
            self._totals = self._totals.model_copy(
                update={"parse_failures": self._totals.parse_failures + 1}
            )
        logger.debug("Feature %s recorded as parse failure", feature_name)

    def after_suite(self) -> SuiteTotals:
        with self._lock:
            self._require_running("after_suite")
            self._phase = _Phase.FINISHED
            totals = self._totals

        logger.info(
            "%d scenarios (%d failed), %d steps (%d failed, %d skipped, %d pending, %d undefined)",
            totals.total_scenarios, totals.failed_scenarios,
            totals.total_steps, totals.failed_steps, totals.skipped_steps,
            totals.pending_steps, totals.undefined_steps,
        )
        return totals

    def had_failures(self) -> bool:
        with self._lock:
            return self._totals.had_failures

    def snapshot(self) -> SuiteTotals:
        with self._lock:
            return self._totals

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._phase is _Phase.FINISHED

    def _require_running(self, operation: str) -> None:
        if self._phase is _Phase.NEW:
            raise CounterStateError(f"{operation} called before before_suite")
        if self._phase is _Phase.FINISHED:
            raise CounterStateError(f"{operation} called after after_suite")
