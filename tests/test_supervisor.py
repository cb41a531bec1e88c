from __future__ import annotations

import io
import os
import sys
import threading
import time
from pathlib import Path

import pytest

from restqlcli.core.cancel import CancelToken
from restqlcli.core.diagnostics import CommandCancelled, DeadlineExceeded, ProcessError
from restqlcli.core.supervisor import CommandInvocation, run_command

posix_only = pytest.mark.skipif(os.name == "nt", reason="relies on POSIX signals")


def _python(tmp_path: Path, code: str, stdout=None, env=None) -> CommandInvocation:
    return CommandInvocation(
        cmd=[sys.executable, "-c", code],
        cwd=tmp_path,
        env=env if env is not None else dict(os.environ),
        stdout=stdout,
    )


def _cancel_when(path: Path, token: CancelToken) -> threading.Thread:
    def _watch() -> None:
        deadline = time.monotonic() + 30
        while not path.exists() and time.monotonic() < deadline:
            time.sleep(0.01)
        token.cancel()

    thread = threading.Thread(target=_watch, daemon=True)
    thread.start()
    return thread


def test_success_routes_stdout_to_sink(tmp_path):
    out = io.StringIO()
    result = run_command(_python(tmp_path, "print('hello')", stdout=out), CancelToken())
    assert result.returncode == 0
    assert out.getvalue() == "hello\n"


def test_runs_in_working_directory_with_environment(tmp_path):
    out = io.StringIO()
    env = dict(os.environ, RESTQL_PROBE="42")
    code = "import os; print(os.getcwd()); print(os.environ['RESTQL_PROBE'])"
    run_command(_python(tmp_path, code, stdout=out, env=env), CancelToken())
    cwd, probe = out.getvalue().splitlines()
    assert Path(cwd).resolve() == tmp_path.resolve()
    assert probe == "42"


def test_non_zero_exit_raises_process_error(tmp_path):
    with pytest.raises(ProcessError) as excinfo:
        run_command(_python(tmp_path, "import sys; sys.exit(3)"), CancelToken())
    assert excinfo.value.returncode == 3
    assert "exited with status 3" in str(excinfo.value)


def test_missing_program_raises_process_error(tmp_path):
    invocation = CommandInvocation(cmd=[str(tmp_path / "no-such-go")], cwd=tmp_path, env={})
    with pytest.raises(ProcessError) as excinfo:
        run_command(invocation, CancelToken())
    assert excinfo.value.returncode is None


def test_cancelled_token_never_starts_process(tmp_path):
    marker = tmp_path / "started"
    token = CancelToken()
    token.cancel()
    with pytest.raises(CommandCancelled):
        run_command(_python(tmp_path, f"open({str(marker)!r}, 'w').close()"), token)
    assert not marker.exists()


@posix_only
def test_cancellation_stops_process_gracefully(tmp_path):
    ready = tmp_path / "ready"
    code = f"import time; open({str(ready)!r}, 'w').close(); time.sleep(60)"
    token = CancelToken()
    _cancel_when(ready, token)
    start = time.monotonic()
    with pytest.raises(CommandCancelled):
        run_command(_python(tmp_path, code), token, grace_period_s=10)
    assert time.monotonic() - start < 10


@posix_only
def test_process_ignoring_sigterm_is_killed_after_grace_window(tmp_path):
    ready = tmp_path / "ready"
    code = (
        "import os, signal, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        f"open({str(ready)!r}, 'w').write(str(os.getpid()))\n"
        "time.sleep(60)\n"
    )
    token = CancelToken()
    _cancel_when(ready, token)
    start = time.monotonic()
    with pytest.raises(CommandCancelled):
        run_command(_python(tmp_path, code), token, grace_period_s=0.5)
    elapsed = time.monotonic() - start
    assert 0.5 <= elapsed < 30

    pid = int(ready.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


@posix_only
def test_deadline_error_is_returned(tmp_path):
    token = CancelToken(timeout=0.2)
    with pytest.raises(DeadlineExceeded):
        run_command(_python(tmp_path, "import time; time.sleep(60)"), token, grace_period_s=5)
