"""Module tree walker: snapshot → ordered ProjectNode tree with resolved facts."""

from __future__ import annotations

import logging
import os
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from sonarmodel import properties as props
from sonarmodel.analysis import find_cycles, project_references
from sonarmodel.classpath import ArtifactResolver, ClasspathCollector
from sonarmodel.errors import DependencyResolutionError, DuplicateModuleError, SnapshotError
from sonarmodel.model import (
    ModuleDescriptor,
    ModuleKind,
    ModuleResolution,
    ProjectNode,
    ProjectSnapshot,
    ProjectTree,
    parent_path,
    path_segments,
)
from sonarmodel.resolvers import (
    SourceSetResolver,
    classify,
    default_resolvers,
    resolve_source_sets,
)

logger = logging.getLogger(__name__)


@dataclass
class SkipPolicy:
    """Decides whether a module emits its own properties.

    Skipping never stops traversal: descendants of a skipped module are
    still visited and emit their own properties unless skipped themselves.
    """

    skip_paths: frozenset[str] = frozenset()
    excluded_kinds: frozenset[ModuleKind] = field(
        default_factory=lambda: frozenset({ModuleKind.AGGREGATOR})
    )

    def is_skipped(self, node: ProjectNode) -> bool:
        descriptor = node.descriptor
        if descriptor.skip or node.path in self.skip_paths:
            return True
        if any(props.is_true(d.values.get(props.SKIP)) for d in descriptor.properties):
            return True
        # The root carries project-wide identity and is never excluded by kind.
        return not node.is_root and node.kind in self.excluded_kinds


def _sort_key(path: str) -> list[str]:
    return path_segments(path)


def build_tree(snapshot: ProjectSnapshot, policy: SkipPolicy | None = None) -> ProjectTree:
    """Build the preorder tree from *snapshot*, ordered by module path."""
    policy = policy or SkipPolicy()
    if snapshot.root not in snapshot.modules:
        raise SnapshotError(f"Root module {snapshot.root!r} missing from snapshot")

    children: dict[str, list[ModuleDescriptor]] = {path: [] for path in snapshot.modules}
    for path, descriptor in snapshot.modules.items():
        if descriptor.path != path:
            raise SnapshotError(
                f"Module registered as {path!r} declares path {descriptor.path!r}"
            )
        if path == snapshot.root:
            continue
        parent = parent_path(path)
        if parent is None or parent not in snapshot.modules:
            raise SnapshotError(f"Module {path!r} has no parent module {parent!r}")
        children[parent].append(descriptor)

    # ":x.y" and ":x:y" would otherwise write each other's keys.
    prefixes: dict[str, str] = {}
    for path in sorted(snapshot.modules):
        prefix = props.module_prefix(path)
        if prefix in prefixes:
            raise DuplicateModuleError(path, prefixes[prefix], prefix)
        prefixes[prefix] = path

    tree = ProjectTree()
    stack: list[tuple[ModuleDescriptor, ProjectNode | None]] = [
        (snapshot.root_module, None)
    ]
    while stack:
        descriptor, parent_node = stack.pop()
        node = tree.add(descriptor, parent_node)
        node.capabilities, node.kind = classify(descriptor)
        node.skipped = policy.is_skipped(node)
        ordered = sorted(children[descriptor.path], key=lambda d: _sort_key(d.path))
        # Reversed so the first child is popped first.
        stack.extend((child, node) for child in reversed(ordered))

    if len(tree) != len(snapshot.modules):
        raise SnapshotError("Snapshot contains modules unreachable from the root")

    skipped = [n.path for n in tree if n.skipped]
    if skipped:
        logger.debug("Skipping collecting properties on: %s", ", ".join(skipped))
    return tree


class ModuleTreeWalker:
    """Builds the tree and resolves every module on a bounded worker pool.

    The tree is fully built before any resolution starts, so each parent node
    exists before its children are resolved.  Results are attached to nodes
    only after all workers have joined.
    """

    def __init__(
        self,
        snapshot: ProjectSnapshot,
        *,
        resolvers: list[SourceSetResolver] | None = None,
        artifacts: ArtifactResolver | None = None,
        policy: SkipPolicy | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.snapshot = snapshot
        self.resolvers = resolvers if resolvers is not None else default_resolvers()
        self.collector = ClasspathCollector(
            snapshot, artifacts or ArtifactResolver(snapshot.repositories)
        )
        self.policy = policy or SkipPolicy()
        self.max_workers = max_workers or os.cpu_count() or 1

    def walk(self) -> ProjectTree:
        tree = build_tree(self.snapshot, self.policy)

        cycles = find_cycles(project_references(self.snapshot))
        if cycles:
            cycle = cycles[0]
            raise DependencyResolutionError(
                cycle[0],
                " -> ".join(cycle + [cycle[0]]),
                "circular project dependency",
            )

        results = self._resolve_all(tree)
        for node in tree:
            node.resolution = results[node.index]
        return tree

    def _resolve_node(self, node: ProjectNode) -> ModuleResolution:
        resolution = resolve_source_sets(node, self.resolvers)
        # Source sets of skipped modules are still needed by project references.
        if not node.skipped:
            resolution.classpaths = self.collector.collect(node, resolution)
        return resolution

    def _resolve_all(self, tree: ProjectTree) -> dict[int, ModuleResolution]:
        workers = min(self.max_workers, len(tree)) or 1
        logger.debug("Resolving %d modules with %d workers", len(tree), workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures: dict[Future[ModuleResolution], ProjectNode] = {
                pool.submit(self._resolve_node, node): node for node in tree
            }
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            failed = sorted(
                (f for f in done if f.exception() is not None),
                key=lambda f: futures[f].index,
            )
            if failed:
                for f in pending:
                    f.cancel()
                raise failed[0].exception()  # type: ignore[misc]
        return {futures[f].index: f.result() for f in futures}
