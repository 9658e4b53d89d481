"""Orchestrator: snapshot → tree → property map → scanner."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from sonarmodel import properties as props
from sonarmodel.collector import collect_all_sources
from sonarmodel.config import AnalysisConfig, load_config
from sonarmodel.detect import load_snapshot
from sonarmodel.materialize import materialize
from sonarmodel.model import ProjectSnapshot, ProjectTree, PropertyMap
from sonarmodel.reducer import reduce_tree
from sonarmodel.resolvers import default_resolvers
from sonarmodel.scanner import ScannerEngine, SonarScannerCli, run_analysis
from sonarmodel.walker import ModuleTreeWalker, SkipPolicy

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    tree: ProjectTree
    properties: PropertyMap

    @property
    def has_modules(self) -> bool:
        return any(not node.skipped for node in self.tree)


def compute_properties(
    snapshot: ProjectSnapshot,
    config: AnalysisConfig | None = None,
    overrides: Mapping[str, str] | None = None,
) -> AnalysisResult:
    """Walk, reduce and materialize *snapshot* into the final property map."""
    config = config or AnalysisConfig()
    if config.repositories:
        snapshot.repositories = [*config.repositories, *snapshot.repositories]

    walker = ModuleTreeWalker(
        snapshot,
        resolvers=default_resolvers(config.android_variants, config.android_variant),
        policy=SkipPolicy(frozenset(config.skip), frozenset(config.excluded_kinds)),
        max_workers=config.max_workers,
    )
    tree = walker.walk()

    reduced = reduce_tree(tree, overrides=overrides, root_declarations=config.declarations())
    properties = collect_all_sources(materialize(reduced, snapshot, tree))
    logger.debug("Final property map has %d keys", len(properties))
    return AnalysisResult(tree, properties)


def run(
    project: Path,
    *,
    overrides: Mapping[str, str] | None = None,
    config: AnalysisConfig | None = None,
    engine: ScannerEngine | None = None,
) -> int:
    """Run the full analysis of *project* and return the engine's exit status.

    *project* is a Gradle project directory or a JSON/YAML snapshot file.
    """
    project = project.resolve()
    if config is None:
        config = load_config(project if project.is_dir() else project.parent)

    snapshot = load_snapshot(project)
    result = compute_properties(snapshot, config, overrides)

    if not result.has_modules:
        logger.warning("Every module is skipped, nothing to analyze")
        return 0

    if engine is None:
        work_dir = Path(
            result.properties.get(props.WORKING_DIRECTORY)
            or snapshot.root_module.build_dir / "sonar"
        )
        engine = SonarScannerCli(config.scanner_command, work_dir)
    return run_analysis(engine, result.properties)
