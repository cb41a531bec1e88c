from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from .cancel import CancelToken
from .config import Settings
from .diagnostics import InputError, RestqlCliError, WorkspaceError
from .logging import get_logger
from .overlay import VariableOverlay
from .plugins import check_plugin_descriptor, parse_plugin_descriptors
from .workspace import Workspace


def build_restql(
    plugin_descriptors: Sequence[str],
    version: str,
    output: str | Path,
    *,
    cancel: Optional[CancelToken] = None,
    settings: Optional[Settings] = None,
    overlay: Optional[VariableOverlay] = None,
    logger: Optional[logging.Logger] = None,
) -> Path:
    """Compile a RestQL binary with the given plugins into ``output``.

    The workspace is temporary and always removed afterwards; a failure to
    remove it is logged and never replaces the build outcome.
    """
    settings = settings or Settings()
    logger = logger or get_logger()
    cancel = cancel or CancelToken()
    output_path = resolve_output_path(output)

    for descriptor in plugin_descriptors:
        for diagnostic in check_plugin_descriptor(descriptor).warnings():
            logger.warning("%s: %s", diagnostic.code, diagnostic.message)
    plugins = parse_plugin_descriptors(plugin_descriptors)

    workspace = Workspace.ephemeral(
        plugins, version, settings=settings, overlay=overlay, logger=logger
    )
    try:
        workspace.setup(cancel)
        compile_binary(workspace, output_path, cancel)
    finally:
        try:
            workspace.clean()
        except WorkspaceError as exc:
            logger.error("An error occurred when cleaning: %s", exc)
    return output_path


def compile_binary(workspace: Workspace, output_path: Path, cancel: CancelToken) -> None:
    resolved_version = workspace.resolver.resolved_version(workspace.core_module_path, cancel)
    logger = workspace.logger
    logger.info("Building %s %s", workspace.core_module_path, resolved_version)

    workspace.set_if_not_present("GOOS", workspace.settings.target_os)
    workspace.set_if_not_present("CGO_ENABLED", 0)
    invocation = workspace.new_command(
        "build",
        "-o",
        str(output_path),
        "-ldflags",
        f"-s -w -extldflags -static -X main.build={resolved_version}",
        "-tags",
        "netgo",
    )

    existed = output_path.exists()
    try:
        workspace.run_command(invocation, cancel)
    except RestqlCliError:
        if not existed and output_path.is_file():
            logger.info("Removing incomplete artifact %s", output_path)
            output_path.unlink()
        elif existed and output_path.is_file():
            logger.warning("Build failed; %s still holds an older artifact", output_path)
        raise


def resolve_output_path(output: str | Path) -> Path:
    try:
        output_path = Path(os.path.abspath(output))
    except OSError as exc:
        raise InputError(f"invalid output path {output!s}: {exc}") from exc
    if not output_path.parent.is_dir():
        raise InputError(f"output directory does not exist: {output_path.parent}")
    return output_path
