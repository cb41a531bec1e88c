from __future__ import annotations

import json
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

import pytest

from restqlcli.core.config import Settings


FAKE_GO_SOURCE = '''
import json
import os
import sys
import time
from pathlib import Path

args = sys.argv[1:]
log = os.environ.get("FAKE_GO_LOG")
if log:
    env = {k: v for k, v in os.environ.items() if k.startswith(("GO", "CGO", "RESTQL"))}
    with open(log, "a", encoding="utf-8") as handle:
        handle.write(json.dumps({"args": args, "cwd": os.getcwd(), "env": env}) + "\\n")

if args[:2] == ["mod", "init"]:
    Path("go.mod").write_text("module " + args[2] + "\\n", encoding="utf-8")
elif args[:2] == ["list", "-m"]:
    if len(args) == 2:
        print(os.environ.get("FAKE_GO_MODULE", "github.com/user/plugin"))
    else:
        print(args[2] + " " + os.environ.get("FAKE_GO_VERSION", "v4.1.0"))
elif args and args[0] == "build":
    output = args[args.index("-o") + 1]
    Path(output).write_text("binary " + args[args.index("-ldflags") + 1], encoding="utf-8")
elif args and args[0] == "run":
    print("restql running on " + os.environ.get("RESTQL_PORT", "?"))
    ready = os.environ.get("FAKE_GO_RUN_READY")
    if ready:
        sys.stdout.flush()
        Path(ready).write_text(str(os.getpid()), encoding="utf-8")
        time.sleep(60)

fail = os.environ.get("FAKE_GO_FAIL")
if fail and " ".join(args).startswith(fail):
    sys.stderr.write("fake go: forced failure\\n")
    sys.exit(1)
'''


@dataclass
class FakeGo:
    script: Path
    log: Path
    settings: Settings

    def calls(self) -> List[Dict[str, Any]]:
        if not self.log.exists():
            return []
        lines = self.log.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line]

    def commands(self) -> List[str]:
        return [" ".join(call["args"]) for call in self.calls()]


@pytest.fixture
def fake_go(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeGo:
    tools = tmp_path / "tools"
    tools.mkdir()
    script = tools / "fake_go.py"
    script.write_text(FAKE_GO_SOURCE, encoding="utf-8")
    log = tools / "calls.jsonl"
    monkeypatch.setenv("FAKE_GO_LOG", str(log))
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    for var in ("GOOS", "CGO_ENABLED", "RESTQL_PORT", "RESTQL_HEALTH_PORT", "RESTQL_DEBUG_PORT",
                "RESTQL_ENV", "RESTQL_CONFIG", "RESTQL_CLI_SETTINGS", "FAKE_GO_FAIL",
                "FAKE_GO_RUN_READY"):
        monkeypatch.delenv(var, raising=False)
    settings = Settings(
        go_command=[sys.executable, str(script)],
        grace_period_s=1.0,
        temp_prefix="restql-test-",
    )
    return FakeGo(script=script, log=log, settings=settings)
