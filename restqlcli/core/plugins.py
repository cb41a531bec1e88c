from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from .diagnostics import Diagnostic, Diagnostics


VERSION_SEPARATOR = "@"
REPLACE_SEPARATOR = "="


@dataclass(frozen=True)
class PluginDirective:
    module_path: str = ""
    version: str = ""
    replace_path: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.module_path

    @property
    def is_replaced(self) -> bool:
        return bool(self.replace_path)


def parse_plugin_descriptor(descriptor: str) -> PluginDirective:
    """Parse ``<module>[@<version>][=<replace path>]``.

    Never fails. The first ``=`` splits off the replace path, and the first
    ``@`` before it splits off the version. An empty descriptor yields the
    empty directive.
    """
    if not descriptor:
        return PluginDirective()

    head, _, replace_path = descriptor.partition(REPLACE_SEPARATOR)
    module_path, _, version = head.partition(VERSION_SEPARATOR)
    return PluginDirective(module_path=module_path, version=version, replace_path=replace_path)


def parse_plugin_descriptors(descriptors: Iterable[str]) -> List[PluginDirective]:
    return [parse_plugin_descriptor(descriptor) for descriptor in descriptors]


def eligible_plugins(plugins: Iterable[PluginDirective]) -> List[PluginDirective]:
    return [plugin for plugin in plugins if not plugin.is_empty]


def check_plugin_descriptor(descriptor: str) -> Diagnostics:
    diagnostics = Diagnostics()
    directive = parse_plugin_descriptor(descriptor)
    if directive.is_empty:
        diagnostics.add(
            Diagnostic(
                code="W-PLUGIN-EMPTY",
                message=f"Plugin descriptor {descriptor!r} has no module path and is ignored",
                severity="WARNING",
                location=descriptor,
            )
        )
        return diagnostics

    if VERSION_SEPARATOR in directive.version:
        diagnostics.add(
            Diagnostic(
                code="W-PLUGIN-AMBIGUOUS",
                message=f"Plugin version {directive.version!r} contains a separator",
                severity="WARNING",
                location=descriptor,
                hints=["format: <module>[@<version>][=<replace path>]"],
            )
        )
    if REPLACE_SEPARATOR in directive.replace_path or VERSION_SEPARATOR in directive.replace_path:
        diagnostics.add(
            Diagnostic(
                code="W-PLUGIN-AMBIGUOUS",
                message=f"Plugin replace path {directive.replace_path!r} contains a separator",
                severity="WARNING",
                location=descriptor,
                hints=["everything after the first '=' is taken as the replace path"],
            )
        )
    return diagnostics
