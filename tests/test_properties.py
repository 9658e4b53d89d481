from __future__ import annotations

import json

import pytest

from sonarmodel.analysis import find_cycles
from sonarmodel.model import parent_path, path_segments
from sonarmodel.properties import (
    SonarProperty,
    convert_key,
    is_inheritable,
    is_root_only,
    join_csv,
    module_prefix,
    split_csv,
)
from sonarmodel.renderer.properties import render, to_json, to_properties, write_properties


# -----------------------------------------------------------------------------
# Keys
# -----------------------------------------------------------------------------
def test_module_paths():
    assert path_segments(":a:b") == ["a", "b"]
    assert path_segments(":") == []
    assert parent_path(":a:b") == ":a"
    assert parent_path(":a") == ":"
    assert parent_path(":") is None


def test_module_prefix_and_convert_key():
    assert module_prefix(":") == ""
    assert module_prefix(":module:submodule") == "module.submodule"
    assert convert_key("sonar.sources", "") == "sonar.sources"
    assert convert_key("sonar.sources", "a.b") == "a.b.sonar.sources"


@pytest.mark.parametrize(
    "key, prefix, name",
    [
        ("sonar.sources", "", "sonar.sources"),
        ("a.b.sonar.java.test.binaries", "a.b", "sonar.java.test.binaries"),
        ("module.sonar.binaries", "module", "sonar.binaries"),
    ],
)
def test_parse_qualified_key(key, prefix, name):
    """The longest known property name wins as the key suffix."""
    assert SonarProperty.parse(key) == SonarProperty(prefix, name)
    assert str(SonarProperty.parse(key)) == key


def test_parse_unknown_key():
    assert SonarProperty.parse("sonar.something.custom") is None
    assert SonarProperty.parse("") is None


def test_key_scopes():
    assert is_root_only("sonar.host.url")
    assert is_root_only("sonar.scanner.metadataFilePath")
    assert not is_root_only("sonar.exclusions")
    assert is_inheritable("sonar.exclusions")
    assert not is_inheritable("sonar.sources")
    assert not is_inheritable("sonar.projectKey")


# -----------------------------------------------------------------------------
# CSV values
# -----------------------------------------------------------------------------
def test_csv_quotes_values_with_commas():
    """Paths containing commas are quoted and split back intact."""
    joined = join_csv(["/a,b", "/c"])
    assert joined == '"/a,b",/c'
    assert split_csv(joined) == ["/a,b", "/c"]


def test_split_csv_plain():
    assert split_csv("") == []
    assert split_csv("a,b") == ["a", "b"]


# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------
def test_properties_escaping():
    """Keys and values are escaped the way Java properties files expect."""
    text = to_properties({"b": "x y", "a": "c:\\dir", "k e:y": "1", "n": "caf\u00e9"})
    assert text.splitlines() == [
        "a=c:\\\\dir",
        "b=x y",
        "k\\ e\\:y=1",
        "n=caf\\u00e9",
    ]


def test_empty_map_renders_empty():
    assert to_properties({}) == ""


def test_json_is_sorted():
    assert list(json.loads(to_json({"b": "1", "a": "2"}))) == ["a", "b"]


def test_unknown_format():
    with pytest.raises(ValueError, match="yaml"):
        render({}, "yaml")


def test_write_properties_creates_parent(tmp_path):
    target = tmp_path / "build" / "sonar" / "sonar-project.properties"
    write_properties({"sonar.projectKey": "demo"}, target)
    assert target.read_text(encoding="ascii") == "sonar.projectKey=demo\n"


# -----------------------------------------------------------------------------
# Project graph
# -----------------------------------------------------------------------------
def test_find_cycles():
    edges = {":a": [":b"], ":b": [":a"], ":c": [":c"], ":d": [":a", ":x"]}
    assert find_cycles(edges) == [[":a", ":b"], [":c"]]


def test_find_cycles_none():
    assert find_cycles({":a": [":b"], ":b": []}) == []
