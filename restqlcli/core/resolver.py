from __future__ import annotations

import io
import logging
import os
from typing import IO, Optional, Protocol, Sequence

from .cancel import CancelToken
from .diagnostics import ProcessError, ResolutionError
from .logging import get_logger
from .plugins import PluginDirective, eligible_plugins
from .supervisor import CommandInvocation, CommandResult


class CommandRunner(Protocol):
    def new_command(self, *args: str, stdout: Optional[IO[str]] = None) -> CommandInvocation: ...

    def run_command(self, invocation: CommandInvocation, cancel: CancelToken) -> CommandResult: ...


def module_query(module_path: str, version: str = "") -> str:
    return f"{module_path}@{version}" if version else module_path


class DependencyResolver:
    """Drives the toolchain's module commands against a workspace manifest.

    Replacements are always registered before any version is pinned, so a
    replaced module resolves from local sources instead of the registry.
    """

    def __init__(
        self,
        runner: CommandRunner,
        core_module_path: str,
        core_module_version: str,
        plugins: Sequence[PluginDirective],
        *,
        manifest_module_name: str = "restql",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.runner = runner
        self.core_module_path = core_module_path
        self.core_module_version = core_module_version
        self.plugins = eligible_plugins(plugins)
        self.manifest_module_name = manifest_module_name
        self.logger = logger or get_logger()

    def init_manifest(self, cancel: CancelToken) -> None:
        self._run(self.manifest_module_name, cancel, "mod", "init", self.manifest_module_name)

    def resolve(self, cancel: CancelToken) -> None:
        self.register_replacements(cancel)
        self.pin_versions(cancel)

    def register_replacements(self, cancel: CancelToken) -> None:
        for plugin in self.plugins:
            if not plugin.is_replaced:
                continue
            try:
                abs_replace_path = os.path.abspath(plugin.replace_path)
            except OSError as exc:
                raise ResolutionError(plugin.module_path, f"cannot resolve replace path: {exc}") from exc

            self.logger.info("Replace dependency %s => %s", plugin.module_path, abs_replace_path)
            replace_arg = f"{plugin.module_path}={abs_replace_path}"
            self._run(plugin.module_path, cancel, "mod", "edit", "-replace", replace_arg)

    def pin_versions(self, cancel: CancelToken) -> None:
        self.logger.info("Pinning versions")
        self.pin(self.core_module_path, self.core_module_version, cancel)
        for plugin in self.plugins:
            if plugin.is_replaced:
                continue
            self.pin(plugin.module_path, plugin.version, cancel)

    def pin(self, module_path: str, version: str, cancel: CancelToken) -> None:
        self._run(module_path, cancel, "get", "-d", "-v", module_query(module_path, version))

    def resolved_version(self, module_path: str, cancel: CancelToken) -> str:
        out = io.StringIO()
        self._run(module_path, cancel, "list", "-m", module_path, stdout=out)
        fields = out.getvalue().split()
        if len(fields) < 2:
            raise ResolutionError(module_path, "failed to fetch module version from build environment")
        return fields[1]

    def _run(self, module: str, cancel: CancelToken, *args: str, stdout: Optional[IO[str]] = None) -> None:
        invocation = self.runner.new_command(*args, stdout=stdout)
        try:
            self.runner.run_command(invocation, cancel)
        except ProcessError as exc:
            raise ResolutionError(module, str(exc)) from exc
