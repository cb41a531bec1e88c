from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

from .core.builder import build_restql
from .core.cancel import CancelToken
from .core.config import load_settings
from .core.dev import run_restql
from .core.diagnostics import CommandCancelled, RestqlCliError
from .core.logging import get_logger
from .core.version import __version__


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="restql",
        description="Builds custom binaries for RestQL with the given plugins",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--settings", required=False, help="YAML, TOML or JSON settings file")
    parser.add_argument("--timeout", type=float, required=False, help="abort after this many seconds")
    parser.add_argument("--log-dir", required=False, help="also write logs to <dir>/restql.log")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="compile a RestQL binary with plugins")
    build.add_argument(
        "-w",
        "--with",
        dest="plugins",
        action="append",
        default=[],
        help="plugin module, optionally with version and replace path: "
        "github.com/user/plugin[@version][=../replace/path]",
    )
    build.add_argument("-o", "--output", default="./", help="where the final binary is placed")
    build.add_argument("restql_version", nargs="?", default="")

    run = sub.add_parser("run", help="run RestQL with the plugin under development")
    run.add_argument("-c", "--config", required=False, help="RestQL configuration file")
    run.add_argument("-p", "--plugin", default=".", help="plugin source directory")
    run.add_argument("--race", action="store_true", help="enable the race detector")
    run.add_argument("restql_version", nargs="?", default="")

    args = parser.parse_args(argv)

    logger = get_logger(
        logs_dir=Path(args.log_dir) if args.log_dir else None,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )
    cancel = CancelToken(args.timeout)
    _install_signal_handlers(cancel)

    try:
        settings = load_settings(Path(args.settings) if args.settings else None)
        if args.command == "build":
            output = build_restql(
                args.plugins,
                args.restql_version,
                args.output,
                cancel=cancel,
                settings=settings,
                logger=logger,
            )
            logger.info("Binary written to %s", output)
            return

        if args.command == "run":
            run_restql(
                args.restql_version,
                args.config,
                args.plugin,
                args.race,
                cancel=cancel,
                settings=settings,
                logger=logger,
            )
            return
    except RestqlCliError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        raise SystemExit(1)
    finally:
        cancel.close()


def _install_signal_handlers(cancel: CancelToken) -> None:
    # Cancel off the main thread; it may hold the locks the callbacks need.
    def _handler(signum, frame):
        error = CommandCancelled(f"interrupted by {signal.Signals(signum).name}")
        threading.Thread(target=cancel.cancel, args=(error,), daemon=True).start()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


if __name__ == "__main__":
    main()
