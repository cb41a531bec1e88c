from __future__ import annotations

import logging
import os
import queue
import shlex
import signal
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Dict, List, Optional, Tuple

from .cancel import CancelToken
from .diagnostics import CommandCancelled, ProcessError
from .logging import get_logger


GRACE_PERIOD_S = 15.0

_EXITED = "exited"
_CANCELLED = "cancelled"


@dataclass(frozen=True)
class CommandInvocation:
    cmd: List[str]
    cwd: Path
    env: Dict[str, str] = field(default_factory=dict)
    stdout: Optional[IO[str]] = None

    def describe(self) -> str:
        return shlex.join(self.cmd)


@dataclass(frozen=True)
class CommandResult:
    cmd: List[str]
    returncode: int
    elapsed_s: float


def run_command(
    invocation: CommandInvocation,
    cancel: CancelToken,
    *,
    grace_period_s: float = GRACE_PERIOD_S,
    logger: Optional[logging.Logger] = None,
) -> CommandResult:
    """Run ``invocation`` to completion unless ``cancel`` fires first.

    On cancellation the process group gets SIGTERM, then SIGKILL once
    ``grace_period_s`` has elapsed; the call returns only after the process
    has exited and raises the token's error. A non-zero exit raises
    ``ProcessError``. The child's stderr is inherited, never captured.
    """
    logger = logger or get_logger()
    cancel.raise_if_cancelled()
    logger.info("Executing command: %s (cwd=%s)", invocation.describe(), invocation.cwd)

    stdout_target, needs_pump = _stdout_target(invocation.stdout)
    start = time.time()
    try:
        proc = subprocess.Popen(
            invocation.cmd,
            cwd=invocation.cwd,
            env=dict(invocation.env),
            stdin=subprocess.DEVNULL,
            stdout=stdout_target,
            stderr=None,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=os.name != "nt",
        )
    except OSError as exc:
        raise ProcessError(invocation.cmd, None, f"failed to start {invocation.cmd}: {exc}") from exc

    outcomes: "queue.Queue[str]" = queue.Queue()
    exited = threading.Event()

    def _wait() -> None:
        proc.wait()
        exited.set()
        outcomes.put(_EXITED)

    waiter = threading.Thread(target=_wait, name=f"wait-{proc.pid}", daemon=True)
    waiter.start()
    pump = None
    if needs_pump and proc.stdout is not None and invocation.stdout is not None:
        pump = threading.Thread(
            target=_pump, args=(proc.stdout, invocation.stdout), name=f"stdout-{proc.pid}", daemon=True
        )
        pump.start()

    unregister = cancel.on_cancel(lambda: outcomes.put(_CANCELLED))
    try:
        outcome = outcomes.get()
    except BaseException:
        _stop(proc, exited, grace_period_s, logger)
        _join(waiter, pump)
        raise
    finally:
        unregister()

    if outcome == _CANCELLED:
        _stop(proc, exited, grace_period_s, logger)
        _join(waiter, pump)
        logger.info("Command cancelled: %s", invocation.describe())
        raise cancel.error or CommandCancelled()

    _join(waiter, pump)
    elapsed = time.time() - start
    if proc.returncode != 0:
        raise ProcessError(invocation.cmd, proc.returncode)
    return CommandResult(cmd=list(invocation.cmd), returncode=proc.returncode, elapsed_s=elapsed)


def _stdout_target(sink: Optional[IO[str]]) -> Tuple[object, bool]:
    if sink is None:
        return subprocess.DEVNULL, False
    try:
        sink.fileno()
    except (AttributeError, OSError, ValueError):
        return subprocess.PIPE, True
    sink.flush()
    return sink, False


def _pump(source: IO[str], sink: IO[str]) -> None:
    with source:
        for line in source:
            sink.write(line)
            sink.flush()


def _stop(proc: subprocess.Popen, exited: threading.Event, grace_period_s: float, logger: logging.Logger) -> None:
    if exited.is_set():
        return
    _signal(proc, force=False)
    if not exited.wait(grace_period_s):
        logger.warning("Process %s still running after %.1fs, killing it", proc.pid, grace_period_s)
        _signal(proc, force=True)
        exited.wait()


def _signal(proc: subprocess.Popen, force: bool) -> None:
    if proc.returncode is not None:
        return
    if os.name != "nt":
        try:
            os.killpg(proc.pid, signal.SIGKILL if force else signal.SIGTERM)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            pass
    if force:
        proc.kill()
    else:
        proc.terminate()


def _join(waiter: threading.Thread, pump: Optional[threading.Thread]) -> None:
    waiter.join()
    if pump is not None:
        pump.join()
