"""Pick the snapshot loader for a project path."""

from __future__ import annotations

import logging
from pathlib import Path

from sonarmodel.errors import SnapshotError
from sonarmodel.loaders.gradle import is_gradle_project, load_gradle_project
from sonarmodel.loaders.snapshot import load_json_snapshot, load_yaml_snapshot
from sonarmodel.model import ProjectSnapshot

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def load_snapshot(path: Path) -> ProjectSnapshot:
    """Load *path*: a JSON or YAML snapshot dump, or a Gradle project directory."""
    if path.is_file() and path.suffix == ".json":
        logger.debug("Reading JSON snapshot %s", path)
        return load_json_snapshot(path)
    if path.is_file() and path.suffix in YAML_SUFFIXES:
        logger.debug("Reading YAML snapshot %s", path)
        return load_yaml_snapshot(path)
    if path.is_dir() and is_gradle_project(path):
        logger.debug("Reading Gradle build scripts under %s", path)
        return load_gradle_project(path)
    raise SnapshotError(
        f"{path} is neither a snapshot file nor a directory containing a Gradle build"
    )
