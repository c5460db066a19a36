"""Process tree cleanup for worker processes, built on psutil."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

import psutil

logger = logging.getLogger(__name__)


@dataclass
class KillResult:
    """Outcome of a kill_process_tree call."""

    status: str  # "success", "partial", "already_exited"
    parent_pid: int
    children_found: int = 0
    children_terminated: int = 0
    children_killed: int = 0


def kill_process_tree(proc: subprocess.Popen, timeout: float = 5.0) -> KillResult:
    """Terminate a worker and every descendant it spawned.

    Children are collected before the parent dies so grandchildren that get
    re-parented are still reached. SIGTERM first, SIGKILL after ``timeout``.
    """
    result = KillResult(status="success", parent_pid=proc.pid)
    try:
        parent = psutil.Process(proc.pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        result.status = "already_exited"
        return result

    result.children_found = len(children)
    for child in children:
        try:
            child.terminate()
        except psutil.NoSuchProcess:
            pass

    _gone, alive = psutil.wait_procs(children, timeout=timeout)
    result.children_terminated = len(children) - len(alive)
    for child in alive:
        try:
            child.kill()
            result.children_killed += 1
        except psutil.NoSuchProcess:
            pass

    try:
        proc.terminate()
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()
    except OSError as e:
        logger.debug("Failed to terminate PID %d: %s", proc.pid, e)
        result.status = "partial"

    if alive and result.children_killed < len(alive):
        result.status = "partial"
    return result
