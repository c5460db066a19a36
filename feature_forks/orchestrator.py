"""
Suite Orchestrator
==================

Runs every discovered feature file in its own worker process, at most
``max_parallel_forks`` at a time, and turns the collected results into a
single verdict.

States:
    IDLE -> DISCOVERING -> DISPATCHING -> COLLECTING -> FINALIZED
                                                   \\-> ABORTED

A structural parse failure in one feature never cancels its siblings.
Every dispatched worker is allowed to finish; only then does the run
either return the verdict or raise FeatureParseError.

Usage:
    orchestrator = SuiteOrchestrator(options)
    ok = orchestrator.run(work_source, Path("build/results"), Path("build/reports"))
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from .arguments import build_arguments, output_paths_for
from .counters import SuiteCounters, SuiteTotals
from .discovery import FileWalker, find_features, walk_files
from .errors import FeatureForksError, FeatureParseError
from .launcher import WorkerProcessLauncher
from .models import FeatureFile, RunOptions, WorkerInvocation, WorkSource
from .results import FeatureOutcome, ResultCollector

logger = logging.getLogger(__name__)

SUMMARY_FILE = "summary.json"


class OrchestratorState(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    DISPATCHING = "dispatching"
    COLLECTING = "collecting"
    FINALIZED = "finalized"
    ABORTED = "aborted"


class SuiteOrchestrator:
    """Discovers, dispatches and judges one suite run."""

    def __init__(
        self,
        options: RunOptions,
        counters: SuiteCounters | None = None,
        launcher: WorkerProcessLauncher | None = None,
        collector: ResultCollector | None = None,
        walk: FileWalker = walk_files,
    ):
        """
        Args:
            options: Run configuration, read-only for the whole run
            counters: Aggregate to fold results into (fresh one if None)
            launcher: Worker launcher; built from the work source in run() if None
            collector: Result collector; built around ``counters`` if None
            walk: File enumeration used for discovery
        """
        self.options = options
        self.counters = counters or SuiteCounters()
        self.launcher = launcher
        self.collector = collector or ResultCollector(self.counters, options.non_failing_statuses)
        self.walk = walk

        self._lock = threading.Lock()
        self._state = OrchestratorState.IDLE
        self._parse_failures: list[str] = []
        self.outcomes: list[FeatureOutcome] = []

    @property
    def state(self) -> OrchestratorState:
        with self._lock:
            return self._state

    def _set_state(self, state: OrchestratorState) -> None:
        with self._lock:
            old, self._state = self._state, state
        logger.debug("Orchestrator %s -> %s", old.value, state.value)

    @property
    def parse_failures(self) -> list[str]:
        with self._lock:
            return sorted(self._parse_failures)

    def build_invocation(self, feature: FeatureFile, results_dir: Path) -> WorkerInvocation:
        paths = output_paths_for(feature, results_dir)
        args = build_arguments(feature, self.options, paths.results_file, paths.junit_file)
        return WorkerInvocation(feature=feature, args=args, **paths._asdict())

    def _run_one(self, invocation: WorkerInvocation) -> FeatureOutcome:
        """Pool task: run one worker, then collect what it left behind.

        Any error while launching or collecting turns the feature into a
        structural parse failure, so every feature still gets one outcome.
        """
        if self.launcher is None:
            raise FeatureForksError("No worker launcher configured")
        name = invocation.feature.name
        try:
            self.launcher.execute(invocation)
            outcome = self.collector.collect(invocation)
        except Exception as e:
            logger.exception("Worker task for %s failed", name)
            self.counters.record_parse_failure(name)
            outcome = FeatureOutcome(feature_name=name, parse_failure=True, reason=f"{type(e).__name__}: {e}")
        with self._lock:
            self.outcomes.append(outcome)
            if outcome.parse_failure:
                self._parse_failures.append(outcome.feature_name)
        return outcome

    def run(self, work_source: WorkSource, results_dir: Path, reports_dir: Path) -> bool:
        """Run the suite.

        Returns:
            True when every scenario and step passed, False on ordinary failures.

        Raises:
            FeatureParseError: a feature left no usable result or had undefined
                steps. Raised after all workers have finished.
        """
        with self._lock:
            if self._state is not OrchestratorState.IDLE:
                raise FeatureForksError(f"Orchestrator already used (state: {self._state.value})")
        results_dir = Path(results_dir)
        reports_dir = Path(reports_dir)
        results_dir.mkdir(parents=True, exist_ok=True)
        reports_dir.mkdir(parents=True, exist_ok=True)

        self._set_state(OrchestratorState.DISCOVERING)
        features = find_features(work_source.resource_roots, self.options.feature_roots, self.walk)

        self._set_state(OrchestratorState.DISPATCHING)
        self.counters.before_suite(len(features))
        invocations = [self.build_invocation(f, results_dir) for f in features]
        if self.launcher is None:
            self.launcher = WorkerProcessLauncher(
                work_source,
                system_properties=self.options.system_properties,
                timeout=self.options.worker_timeout,
            )

        logger.info(
            "Dispatching %d feature(s) across %d worker(s)",
            len(invocations), self.options.max_parallel_forks,
        )
        self._dispatch(invocations)

        failures = self.parse_failures
        if failures:
            self._set_state(OrchestratorState.ABORTED)
            raise FeatureParseError(failures, self.counters.snapshot())

        totals = self.counters.after_suite()
        self._set_state(OrchestratorState.FINALIZED)
        self._write_summary(reports_dir, totals)
        return not self.counters.had_failures()

    def _dispatch(self, invocations: list[WorkerInvocation]) -> None:
        """Feed invocations through the bounded pool and wait for all of them."""
        if not invocations:
            self._set_state(OrchestratorState.COLLECTING)
            return

        executor = ThreadPoolExecutor(
            max_workers=self.options.max_parallel_forks,
            thread_name_prefix="feature-worker",
        )
        try:
            futures = {executor.submit(self._run_one, inv): inv for inv in invocations}
            self._set_state(OrchestratorState.COLLECTING)
            errors: list[BaseException] = []
            for future in as_completed(futures):
                exc = future.exception()
                if exc is not None:
                    # Keep draining; siblings are never abandoned mid-flight
                    logger.error("Worker task for %s failed: %s", futures[future].feature.name, exc)
                    errors.append(exc)
            if errors:
                raise errors[0]
        except KeyboardInterrupt:
            logger.warning("Interrupted, stopping running workers")
            executor.shutdown(wait=False, cancel_futures=True)
            if self.launcher is not None:
                self.launcher.stop_all()
            raise
        finally:
            executor.shutdown(wait=True)

    def _write_summary(self, reports_dir: Path, totals: SuiteTotals) -> None:
        summary = {
            "finished_at": datetime.now(timezone.utc).isoformat(),
            "passed": not totals.had_failures,
            "totals": totals.model_dump(),
            "features": sorted(
                (
                    {
                        "name": o.feature_name,
                        "failed": any(r.had_failures for r in o.results),
                    }
                    for o in self.outcomes
                ),
                key=lambda f: f["name"],
            ),
        }
        path = reports_dir / SUMMARY_FILE
        with open(path, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2)
        logger.debug("Wrote suite summary to %s", path)
