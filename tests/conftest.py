"""
Global Pytest Configuration and Fixtures.

Builds small on-disk module layouts under ``tmp_path`` and the read-only
snapshots that describe them.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

# -----------------------------------------------------------------------------
# Path Configuration
# -----------------------------------------------------------------------------
_SRC_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)

from sonarmodel.model import (  # noqa: E402
    DeclaredSourceSet,
    ModuleDescriptor,
    ProjectSnapshot,
    path_segments,
)


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------
def make_java_module(
    root: Path,
    path: str,
    *,
    plugins: tuple[str, ...] = ("java",),
    create: bool = True,
    project_dir: Path | None = None,
    **kwargs: Any,
) -> ModuleDescriptor:
    """Return a Java module with conventional main/test dirs, created on disk."""
    segments = path_segments(path)
    project_dir = project_dir or root.joinpath(*segments)
    name = kwargs.pop("name", segments[-1] if segments else root.name)
    main_src = project_dir / "src" / "main" / "java"
    test_src = project_dir / "src" / "test" / "java"
    main_out = project_dir / "build" / "classes" / "java" / "main"
    test_out = project_dir / "build" / "classes" / "java" / "test"
    project_dir.mkdir(parents=True, exist_ok=True)
    if create:
        for d in (main_src, test_src, main_out, test_out):
            d.mkdir(parents=True, exist_ok=True)
    return ModuleDescriptor(
        path=path,
        name=name,
        project_dir=project_dir,
        plugins=list(plugins),
        source_sets=[
            DeclaredSourceSet("main", "java", [main_src], [], [main_out]),
            DeclaredSourceSet("test", "java", [test_src], [], [test_out]),
        ],
        **kwargs,
    )


def make_aggregator(root: Path, path: str, **kwargs: Any) -> ModuleDescriptor:
    """Return a module with no language plugin and no source sets."""
    segments = path_segments(path)
    project_dir = root.joinpath(*segments)
    project_dir.mkdir(parents=True, exist_ok=True)
    return ModuleDescriptor(
        path=path,
        name=segments[-1] if segments else root.name,
        project_dir=project_dir,
        **kwargs,
    )


def snapshot_of(*modules: ModuleDescriptor, **kwargs: Any) -> ProjectSnapshot:
    return ProjectSnapshot(modules={m.path: m for m in modules}, **kwargs)


# -----------------------------------------------------------------------------
# Shared Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def root_dir(tmp_path: Path) -> Path:
    """Root directory of the analyzed project."""
    d = tmp_path / "project"
    d.mkdir()
    return d


@pytest.fixture
def java_module(root_dir: Path) -> Callable[..., ModuleDescriptor]:
    def _make(path: str, **kwargs: Any) -> ModuleDescriptor:
        return make_java_module(root_dir, path, **kwargs)

    return _make


@pytest.fixture
def aggregator(root_dir: Path) -> Callable[..., ModuleDescriptor]:
    def _make(path: str, **kwargs: Any) -> ModuleDescriptor:
        return make_aggregator(root_dir, path, **kwargs)

    return _make


@pytest.fixture
def skipped_tree_snapshot(java_module) -> ProjectSnapshot:
    """
    Root with ``module:submodule`` and a skipped ``skippedModule`` whose own
    child ``skippedModule:skippedSubmodule`` is not skipped.
    """
    return snapshot_of(
        java_module(":", group="org.sonar.tests", version="0.1"),
        java_module(":module"),
        java_module(":module:submodule"),
        java_module(":skippedModule", skip=True),
        java_module(":skippedModule:skippedSubmodule"),
    )


@pytest.fixture
def maven_repo(tmp_path: Path) -> Path:
    """A local Maven-layout repository holding a couple of jars."""
    repo = tmp_path / "repo"
    for group, artifact, version in (
        ("junit", "junit", "4.13"),
        ("com.acme", "util", "1.0"),
    ):
        d = repo.joinpath(*group.split("."), artifact, version)
        d.mkdir(parents=True)
        (d / f"{artifact}-{version}.jar").write_bytes(b"PK")
    return repo


@pytest.fixture
def write_json(tmp_path: Path) -> Callable[[dict], Path]:
    def _write(data: dict, name: str = "snapshot.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write
