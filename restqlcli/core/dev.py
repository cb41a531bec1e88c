from __future__ import annotations

import io
import logging
import os
import sys
from pathlib import Path
from typing import IO, Optional

from .cancel import CancelToken
from .config import Settings
from .diagnostics import InputError, RestqlCliError
from .logging import get_logger
from .overlay import VariableOverlay
from .plugins import PluginDirective
from .supervisor import CommandInvocation, run_command
from .workspace import Workspace


PORT_VAR = "RESTQL_PORT"
HEALTH_PORT_VAR = "RESTQL_HEALTH_PORT"
DEBUG_PORT_VAR = "RESTQL_DEBUG_PORT"
ENV_NAME_VAR = "RESTQL_ENV"
CONFIG_VAR = "RESTQL_CONFIG"


def run_restql(
    version: str,
    config_path: str | Path | None,
    plugin_dir: str | Path,
    race: bool = False,
    *,
    cancel: Optional[CancelToken] = None,
    settings: Optional[Settings] = None,
    overlay: Optional[VariableOverlay] = None,
    logger: Optional[logging.Logger] = None,
    cwd: Optional[Path] = None,
    stdout: Optional[IO[str]] = None,
) -> None:
    """Run RestQL in place with the plugin under development.

    The environment directory persists across runs: ``setup`` only happens
    when it is absent, and it is never cleaned automatically.
    """
    settings = settings or Settings()
    logger = logger or get_logger()
    cancel = cancel or CancelToken()
    overlay = overlay if overlay is not None else VariableOverlay.from_environ()

    plugin_location = _absolute(plugin_dir)
    if not plugin_location.is_dir():
        raise InputError(f"plugin directory not found: {plugin_location}")
    plugin = plugin_from_source(plugin_location, cancel, settings=settings, overlay=overlay, logger=logger)

    env_dir = (cwd or Path.cwd()) / settings.dev_dir_name
    workspace = Workspace(
        env_dir, [plugin], version, settings=settings, overlay=overlay, logger=logger
    )
    if workspace.exists:
        logger.info("Reusing development environment at %s", env_dir)
    else:
        try:
            workspace.setup(cancel)
        except RestqlCliError:
            logger.error("Setup of %s failed; remove it before running again", env_dir)
            raise

    configure_dev_overlay(
        workspace.overlay,
        settings,
        _absolute(config_path) if config_path else None,
        race,
    )
    args = ["run", "-race", "main.go"] if race else ["run", "main.go"]
    invocation = workspace.new_command(*args, stdout=stdout or sys.stdout)
    workspace.run_command(invocation, cancel)


def plugin_from_source(
    plugin_location: Path,
    cancel: CancelToken,
    *,
    settings: Settings,
    overlay: VariableOverlay,
    logger: logging.Logger,
) -> PluginDirective:
    out = io.StringIO()
    invocation = CommandInvocation(
        cmd=[*settings.go_command, "list", "-m"],
        cwd=plugin_location,
        env=overlay.snapshot(),
        stdout=out,
    )
    run_command(invocation, cancel, grace_period_s=settings.grace_period_s, logger=logger)
    module_path = out.getvalue().strip()
    if not module_path:
        raise InputError(f"no module found in {plugin_location}")
    return PluginDirective(module_path=module_path, replace_path=str(plugin_location))


def configure_dev_overlay(
    overlay: VariableOverlay,
    settings: Settings,
    config_path: Optional[Path],
    race: bool,
) -> None:
    overlay.set_if_not_present(PORT_VAR, settings.dev_port)
    overlay.set_if_not_present(HEALTH_PORT_VAR, settings.dev_health_port)
    overlay.set_if_not_present(DEBUG_PORT_VAR, settings.dev_debug_port)
    overlay.set_if_not_present(ENV_NAME_VAR, settings.dev_env_name)
    if config_path is not None:
        overlay.set_if_not_present(CONFIG_VAR, config_path)
    if race:
        overlay.set_if_not_present("CGO_ENABLED", 1)


def _absolute(path: str | Path) -> Path:
    try:
        return Path(os.path.abspath(path))
    except OSError as exc:
        raise InputError(f"invalid path {path!s}: {exc}") from exc
