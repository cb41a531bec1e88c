from __future__ import annotations

from string import Template
from typing import Iterable

from .plugins import PluginDirective, eligible_plugins


ENTRYPOINT_FILENAME = "main.go"

# Plugins are blank imports: loaded only so their init() registration runs.
MAIN_FILE_TEMPLATE = Template(
    """package main

import (
	restqlcmd "${core_module_path}/cmd"

	// add RestQL plugins here
${plugin_imports})

var build string

func main() {
	restqlcmd.Start()
}
"""
)


def render_entrypoint(core_module_path: str, plugins: Iterable[PluginDirective]) -> str:
    imports = "".join(f'\t_ "{plugin.module_path}"\n' for plugin in eligible_plugins(plugins))
    return MAIN_FILE_TEMPLATE.substitute(core_module_path=core_module_path, plugin_imports=imports)
