"""Flatten deferred classpath references into the final property map.

Runs once, single-threaded, after every module has been resolved and the
tree has been reduced.  Nothing here touches worker threads.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from sonarmodel import properties as props
from sonarmodel.errors import DependencyResolutionError
from sonarmodel.model import (
    ClasspathItem,
    ProjectOutputRef,
    ProjectSnapshot,
    ProjectTree,
    PropertyMap,
    SourceRole,
    TaskOutputRef,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingValue:
    """A path-list value that still holds deferred references."""

    module: str
    entries: tuple[ClasspathItem, ...]


ReducedMap = dict[str, "str | PendingValue"]


def existing_paths(paths: list[Path] | tuple[Path, ...]) -> list[Path]:
    """Keep paths that exist (or hold wildcards), first occurrence wins."""
    out: list[Path] = []
    for p in paths:
        if p in out:
            continue
        if props.has_wildcard(str(p)) or p.exists():
            out.append(p)
    return out


class Materializer:
    def __init__(self, snapshot: ProjectSnapshot, tree: ProjectTree) -> None:
        self.snapshot = snapshot
        self.tree = tree

    def flatten(self, value: PendingValue) -> list[Path]:
        paths: list[Path] = []
        for entry in value.entries:
            if isinstance(entry, TaskOutputRef):
                outputs = self.snapshot.task_outputs.get(entry.task_path)
                if outputs is None:
                    raise DependencyResolutionError(
                        value.module, str(entry), "no outputs recorded for task"
                    )
                paths.extend(outputs)
            elif isinstance(entry, ProjectOutputRef):
                node = self.tree.get(entry.project_path)
                if node is None or node.resolution is None:
                    raise DependencyResolutionError(
                        value.module, str(entry), "project was not resolved"
                    )
                paths.extend(node.resolution.dirs(SourceRole.MAIN, "output_dirs"))
            else:
                paths.append(entry)
        return existing_paths(paths)

    def materialize(self, reduced: Mapping[str, str | PendingValue]) -> PropertyMap:
        result: PropertyMap = {}
        pending = 0
        for key, value in reduced.items():
            if isinstance(value, PendingValue):
                pending += 1
                value = props.join_csv([str(p) for p in self.flatten(value)])
            if value:
                result[key] = value
        if pending:
            logger.debug("Materialized %d deferred classpath values", pending)
        return result


def materialize(
    reduced: Mapping[str, str | PendingValue],
    snapshot: ProjectSnapshot,
    tree: ProjectTree,
) -> PropertyMap:
    return Materializer(snapshot, tree).materialize(reduced)
