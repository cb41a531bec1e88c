from __future__ import annotations

import pytest

from restqlcli.core.plugins import (
    PluginDirective,
    check_plugin_descriptor,
    eligible_plugins,
    parse_plugin_descriptor,
    parse_plugin_descriptors,
)


@pytest.mark.parametrize(
    "descriptor, expected",
    [
        ("", PluginDirective()),
        ("github.com/user/plugin", PluginDirective(module_path="github.com/user/plugin")),
        (
            "github.com/user/plugin@1.9.0",
            PluginDirective(module_path="github.com/user/plugin", version="1.9.0"),
        ),
        (
            "github.com/user/plugin=../replace/path",
            PluginDirective(module_path="github.com/user/plugin", replace_path="../replace/path"),
        ),
        (
            "github.com/user/plugin@1.9.0=../replace/path",
            PluginDirective(
                module_path="github.com/user/plugin",
                version="1.9.0",
                replace_path="../replace/path",
            ),
        ),
    ],
)
def test_parse_plugin_descriptor(descriptor, expected):
    assert parse_plugin_descriptor(descriptor) == expected


def test_first_separator_wins():
    directive = parse_plugin_descriptor("github.com/a/b@v1@v2=../x=y@z")
    assert directive.module_path == "github.com/a/b"
    assert directive.version == "v1@v2"
    assert directive.replace_path == "../x=y@z"


def test_missing_module_path_yields_empty_directive():
    directive = parse_plugin_descriptor("=../only/path")
    assert directive.is_empty
    assert directive.replace_path == "../only/path"


def test_eligible_plugins_keeps_order_and_drops_empty():
    plugins = parse_plugin_descriptors(["b.io/one", "", "a.io/two@v1", "@v2"])
    assert [p.module_path for p in eligible_plugins(plugins)] == ["b.io/one", "a.io/two"]


def test_check_plugin_descriptor_warnings():
    assert len(check_plugin_descriptor("github.com/user/plugin@1.9.0=../replace/path")) == 0

    empty = check_plugin_descriptor("")
    assert [d.code for d in empty] == ["W-PLUGIN-EMPTY"]
    assert not empty.has_errors()

    ambiguous = check_plugin_descriptor("github.com/user/plugin@1@2=../a=b")
    assert [d.code for d in ambiguous] == ["W-PLUGIN-AMBIGUOUS", "W-PLUGIN-AMBIGUOUS"]
    assert all(d.severity == "WARNING" for d in ambiguous)
