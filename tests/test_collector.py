from __future__ import annotations

from pathlib import Path

import pytest

from sonarmodel.collector import SourceCollector, collect_all_sources, is_test_file
from sonarmodel.properties import split_csv


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("x")
    return path


@pytest.mark.parametrize(
    "relative, expected",
    [
        ("src/test/foo.py", True),
        ("tests/e2e.py", True),
        ("mytests/run.sh", True),
        ("latest/notes.md", False),
        ("contest/rules.md", False),
        ("docs/testament.txt", False),
        ("src/main/app.py", False),
    ],
)
def test_is_test_file(tmp_path, relative, expected):
    """Only "test" as a token marks a file as a test, not English words."""
    assert is_test_file(tmp_path, tmp_path / relative) is expected


@pytest.fixture
def scan_tree(root_dir: Path) -> Path:
    for relative in (
        "Other.kt",
        "lib.jar",
        "docs/readme.md",
        "scripts/deploy.sh",
        "src/main/java/App.java",
        "build/out.txt",
        ".git/config",
        ".env",
        "tests/e2e.py",
    ):
        _touch(root_dir / relative)
    return root_dir


def _base_properties(root_dir: Path, scan_all: str = "true") -> dict[str, str]:
    return {
        "sonar.gradle.scanAll": scan_all,
        "sonar.projectBaseDir": str(root_dir),
        "sonar.sources": str(root_dir / "src" / "main" / "java"),
    }


def test_scan_all_appends_uncovered_files(scan_tree):
    """Files outside module sources are added, tests separately."""
    result = collect_all_sources(_base_properties(scan_tree))
    assert split_csv(result["sonar.sources"]) == [
        str(scan_tree / "src" / "main" / "java"),
        str(scan_tree / "docs" / "readme.md"),
        str(scan_tree / "scripts" / "deploy.sh"),
    ]
    assert split_csv(result["sonar.tests"]) == [str(scan_tree / "tests" / "e2e.py")]


def test_scan_all_disabled_leaves_map_alone(scan_tree):
    properties = _base_properties(scan_tree, scan_all="false")
    assert collect_all_sources(properties) is properties


def test_scan_all_skips_binaries_and_report_files(scan_tree):
    """Binary dirs and report files named by the map are not collected."""
    (scan_tree / "classes").mkdir()
    _touch(scan_tree / "classes" / "App.txt")
    _touch(scan_tree / "reports" / "lint.xml")
    properties = _base_properties(scan_tree)
    properties["sonar.java.binaries"] = str(scan_tree / "classes")
    properties["sonar.androidLint.reportPaths"] = "reports/lint.xml"
    sources = split_csv(collect_all_sources(properties)["sonar.sources"])
    assert str(scan_tree / "classes" / "App.txt") not in sources
    assert str(scan_tree / "reports" / "lint.xml") not in sources


def test_collector_can_keep_jvm_sources(scan_tree):
    """JVM sources are collected only on request."""
    collector = SourceCollector(set(), collect_jvm_sources=True)
    found = collector.collect(scan_tree)
    assert scan_tree / "Other.kt" in found
    assert scan_tree / "src" / "main" / "java" / "App.java" in found
    assert scan_tree / "lib.jar" not in found
    assert scan_tree / ".env" not in found
