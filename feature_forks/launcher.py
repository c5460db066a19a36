"""
Worker Process Launcher
=======================

Runs the test engine for a single feature in its own process.

Output streams go to the invocation's ``-out.log`` and ``-err.log`` files,
which are always created and always overwritten. The exit code is logged
but is not a verdict: whether the JSON result exists afterwards decides
what happened to the feature.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .models import WorkerInvocation, WorkSource
from .process_utils import kill_process_tree

logger = logging.getLogger(__name__)

# Environment variable the engine resolves step definitions and support code from
RUNTIME_PATH_VAR = "PYTHONPATH"


@dataclass
class WorkerExit:
    """How a worker process ended."""

    feature_name: str
    returncode: int | None
    timed_out: bool = False
    launch_error: str | None = None


class WorkerProcessLauncher:
    """Starts one engine process per invocation and waits for it.

    Safe to call ``execute`` from several pool threads at once; the only
    shared state is the table of live processes used by ``stop_all``.
    """

    def __init__(
        self,
        work_source: WorkSource,
        system_properties: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ):
        """
        Args:
            work_source: Engine command and runtime path for every worker
            system_properties: Forwarded verbatim into each worker's environment
            timeout: Seconds before a worker is killed. None waits forever.
        """
        self.work_source = work_source
        self.system_properties = dict(system_properties or {})
        self.timeout = timeout

        self._lock = threading.Lock()
        self._running: dict[int, subprocess.Popen] = {}

    def build_command(self, invocation: WorkerInvocation) -> list[str]:
        return [*self.work_source.engine_command, *invocation.args]

    def build_env(self) -> dict[str, str]:
        env = {**os.environ, **self.system_properties}
        entries = [str(Path(p).absolute()) for p in self.work_source.runtime_path]
        existing = env.get(RUNTIME_PATH_VAR)
        if existing:
            entries.append(existing)
        if entries:
            env[RUNTIME_PATH_VAR] = os.pathsep.join(entries)
        return env

    def execute(self, invocation: WorkerInvocation) -> WorkerExit:
        """Run the worker for ``invocation`` to completion."""
        name = invocation.feature.name
        cmd = self.build_command(invocation)
        invocation.out_log_file.parent.mkdir(parents=True, exist_ok=True)
        invocation.err_log_file.parent.mkdir(parents=True, exist_ok=True)
        # A result left by an earlier run must not stand in for this one
        invocation.results_file.unlink(missing_ok=True)
        invocation.junit_file.unlink(missing_ok=True)

        with open(invocation.out_log_file, "w", encoding="utf-8") as out_log, \
                open(invocation.err_log_file, "w", encoding="utf-8") as err_log:
            # stdin=DEVNULL prevents an engine prompt from blocking the pool slot
            popen_kwargs: dict[str, Any] = {
                "stdin": subprocess.DEVNULL,
                "stdout": out_log,
                "stderr": err_log,
                "env": self.build_env(),
            }
            if sys.platform == "win32":
                popen_kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW

            try:
                proc = subprocess.Popen(cmd, **popen_kwargs)
            except OSError as e:
                msg = f"Failed to start worker for {name}: {e}"
                err_log.write(msg + "\n")
                logger.error(msg)
                return WorkerExit(feature_name=name, returncode=None, launch_error=str(e))

            with self._lock:
                self._running[proc.pid] = proc
            logger.debug("Started worker PID %d for %s", proc.pid, name)

            timed_out = False
            try:
                proc.wait(timeout=self.timeout)
            except subprocess.TimeoutExpired:
                timed_out = True
                result = kill_process_tree(proc)
                logger.error(
                    "Worker for %s exceeded %ss, killed (status=%s, children=%d)",
                    name, self.timeout, result.status, result.children_found,
                )
            finally:
                with self._lock:
                    self._running.pop(proc.pid, None)

        logger.debug("Worker for %s exited with code %s", name, proc.returncode)
        return WorkerExit(feature_name=name, returncode=proc.returncode, timed_out=timed_out)

    def running_count(self) -> int:
        with self._lock:
            return len(self._running)

    def stop_all(self) -> None:
        """Kill every live worker process tree."""
        with self._lock:
            procs = list(self._running.values())
        for proc in procs:
            result = kill_process_tree(proc, timeout=2.0)
            logger.warning("Killed worker PID %d (status=%s)", proc.pid, result.status)
