from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import IO, Any, List, Optional, Sequence

from .cancel import CancelToken
from .config import Settings
from .diagnostics import WorkspaceError
from .entrypoint import ENTRYPOINT_FILENAME, render_entrypoint
from .logging import get_logger
from .overlay import VariableOverlay
from .plugins import PluginDirective
from .resolver import DependencyResolver
from .supervisor import CommandInvocation, CommandResult, run_command


class Workspace:
    """Directory holding the generated entry point and module manifest.

    The directory is owned by this object: it is created by ``setup`` and
    removed by ``clean``. Every toolchain command runs inside it with a
    snapshot of ``overlay`` taken when the command is created.
    """

    def __init__(
        self,
        directory: Path,
        plugins: Sequence[PluginDirective],
        core_module_version: str = "",
        *,
        settings: Optional[Settings] = None,
        overlay: Optional[VariableOverlay] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.directory = Path(directory)
        self.settings = settings or Settings()
        self.overlay = overlay if overlay is not None else VariableOverlay.from_environ()
        self.core_module_path = self.settings.core_module_path
        self.core_module_version = core_module_version
        self.plugins: List[PluginDirective] = list(plugins)
        self.logger = logger or get_logger()
        self.resolver = DependencyResolver(
            self,
            self.core_module_path,
            self.core_module_version,
            self.plugins,
            manifest_module_name=self.settings.manifest_module_name,
            logger=self.logger,
        )

    @classmethod
    def ephemeral(
        cls,
        plugins: Sequence[PluginDirective],
        core_module_version: str = "",
        *,
        settings: Optional[Settings] = None,
        overlay: Optional[VariableOverlay] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "Workspace":
        settings = settings or Settings()
        try:
            directory = tempfile.mkdtemp(prefix=settings.temp_prefix)
        except OSError as exc:
            raise WorkspaceError(f"cannot create temporary workspace: {exc}") from exc
        return cls(
            Path(directory),
            plugins,
            core_module_version,
            settings=settings,
            overlay=overlay,
            logger=logger,
        )

    @property
    def exists(self) -> bool:
        return self.directory.exists()

    @property
    def entrypoint_path(self) -> Path:
        return self.directory / ENTRYPOINT_FILENAME

    def set(self, key: str, value: Any) -> None:
        self.overlay.set(key, value)

    def set_if_not_present(self, key: str, value: Any) -> None:
        self.overlay.set_if_not_present(key, value)

    def get(self, key: str) -> Optional[str]:
        return self.overlay.get(key)

    def setup(self, cancel: CancelToken) -> None:
        self._initialize_dir()
        self._write_entrypoint()
        self.resolver.init_manifest(cancel)
        self.resolver.resolve(cancel)

    def clean(self) -> None:
        if not self.directory.exists():
            return
        try:
            shutil.rmtree(self.directory)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise WorkspaceError(f"cannot remove workspace {self.directory}: {exc}") from exc

    def new_command(self, *args: str, stdout: Optional[IO[str]] = None) -> CommandInvocation:
        return CommandInvocation(
            cmd=[*self.settings.go_command, *args],
            cwd=self.directory,
            env=self.overlay.snapshot(),
            stdout=stdout,
        )

    def run_command(self, invocation: CommandInvocation, cancel: CancelToken) -> CommandResult:
        return run_command(
            invocation,
            cancel,
            grace_period_s=self.settings.grace_period_s,
            logger=self.logger,
        )

    def _initialize_dir(self) -> None:
        try:
            self.directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceError(f"cannot create workspace {self.directory}: {exc}") from exc

    def _write_entrypoint(self) -> None:
        content = render_entrypoint(self.core_module_path, self.plugins)
        self.logger.info("Writing main file to: %s", self.entrypoint_path)
        try:
            self.entrypoint_path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise WorkspaceError(f"cannot write {self.entrypoint_path}: {exc}") from exc
