from __future__ import annotations

import pytest

from conftest import snapshot_of
from sonarmodel.errors import DependencyResolutionError, DuplicateModuleError, SnapshotError
from sonarmodel.model import DependencySpec, ModuleKind, ProjectOutputRef, PropertyDeclaration
from sonarmodel.resolvers import JvmSourceSetResolver
from sonarmodel.walker import ModuleTreeWalker, SkipPolicy, build_tree


class _ExplodingResolver:
    """Fails while resolving one module."""

    def __init__(self, path: str) -> None:
        self.path = path

    def can_handle(self, node) -> bool:
        return node.path == self.path

    def resolve(self, node, resolution) -> None:
        raise DependencyResolutionError(node.path, "broken", "boom")


# -----------------------------------------------------------------------------
# Tree construction
# -----------------------------------------------------------------------------
def test_tree_is_preorder_with_parents_first(skipped_tree_snapshot):
    """Every node's parent precedes it and siblings are sorted by path."""
    tree = build_tree(skipped_tree_snapshot)
    assert [n.path for n in tree] == [
        ":",
        ":module",
        ":module:submodule",
        ":skippedModule",
        ":skippedModule:skippedSubmodule",
    ]
    for node in tree:
        if node.parent_index is not None:
            assert node.parent_index < node.index


def test_tree_order_ignores_snapshot_insertion_order(java_module):
    """Module registration order does not change the traversal order."""
    modules = [java_module(p) for p in (":", ":b", ":a", ":a:z", ":a:c")]
    forward = build_tree(snapshot_of(*modules))
    backward = build_tree(snapshot_of(modules[0], *reversed(modules[1:])))
    assert [n.path for n in forward] == [n.path for n in backward]
    assert [n.path for n in forward] == [":", ":a", ":a:c", ":a:z", ":b"]


def test_missing_parent_is_rejected(java_module):
    """A module whose parent is not in the snapshot is an error."""
    with pytest.raises(SnapshotError, match="no parent"):
        build_tree(snapshot_of(java_module(":"), java_module(":a:b")))


def test_missing_root_is_rejected(java_module):
    """The snapshot must contain its root module."""
    with pytest.raises(SnapshotError, match="Root module"):
        build_tree(snapshot_of(java_module(":a")))


def test_registered_path_must_match_descriptor(java_module):
    """The modules mapping key must equal the descriptor path."""
    snapshot = snapshot_of(java_module(":"))
    snapshot.modules[":other"] = java_module(":module")
    with pytest.raises(SnapshotError, match="declares path"):
        build_tree(snapshot)


def test_modules_sharing_a_key_prefix_are_rejected(java_module, aggregator):
    """A dotted project name cannot shadow a nested module's key prefix."""
    snapshot = snapshot_of(
        java_module(":"), java_module(":x.y"), aggregator(":x"), java_module(":x:y")
    )
    with pytest.raises(DuplicateModuleError, match="prefix 'x.y'") as exc:
        build_tree(snapshot)
    assert (exc.value.other, exc.value.path) == (":x.y", ":x:y")


def test_dotted_project_name_without_collision(java_module):
    tree = build_tree(snapshot_of(java_module(":"), java_module(":x.y")))
    assert [n.path for n in tree] == [":", ":x.y"]


# -----------------------------------------------------------------------------
# Skip policy
# -----------------------------------------------------------------------------
def test_aggregators_are_skipped_except_the_root(aggregator, java_module):
    """Modules without a language plugin are skipped unless they are the root."""
    tree = build_tree(snapshot_of(aggregator(":"), aggregator(":a"), java_module(":a:core")))
    assert tree.get(":").kind is ModuleKind.AGGREGATOR
    assert not tree.get(":").skipped
    assert tree.get(":a").skipped
    assert not tree.get(":a:core").skipped


def test_skip_sources(java_module):
    """Skip comes from the descriptor flag, a declaration or the policy."""
    snapshot = snapshot_of(
        java_module(":"),
        java_module(":flag", skip=True),
        java_module(
            ":declared",
            properties=[PropertyDeclaration("build.gradle", {"sonar.skip": "true"})],
        ),
        java_module(":configured"),
        java_module(":kept"),
    )
    tree = build_tree(snapshot, SkipPolicy(skip_paths=frozenset({":configured"})))
    assert [n.path for n in tree if n.skipped] == [":configured", ":declared", ":flag"]


def test_skip_does_not_stop_traversal(skipped_tree_snapshot):
    """Descendants of a skipped module are still visited and resolved."""
    tree = ModuleTreeWalker(skipped_tree_snapshot, max_workers=2).walk()
    child = tree.get(":skippedModule:skippedSubmodule")
    assert tree.get(":skippedModule").skipped
    assert not child.skipped
    assert child.resolution is not None
    assert child.resolution.classpaths


# -----------------------------------------------------------------------------
# Resolution
# -----------------------------------------------------------------------------
def test_every_node_is_resolved_with_a_pool(java_module):
    """All modules receive a resolution regardless of worker count."""
    modules = [java_module(":")] + [java_module(f":m{i}") for i in range(12)]
    tree = ModuleTreeWalker(snapshot_of(*modules), max_workers=4).walk()
    assert all(node.resolution is not None for node in tree)
    assert all(node.resolution.source_sets for node in tree)


def test_skipped_nodes_have_source_sets_but_no_classpaths(skipped_tree_snapshot):
    """Skipped modules keep source sets for project references only."""
    tree = ModuleTreeWalker(skipped_tree_snapshot).walk()
    skipped = tree.get(":skippedModule")
    assert skipped.resolution.source_sets
    assert skipped.resolution.classpaths == {}


def test_resolver_failure_aborts_the_walk(java_module):
    """One module failing fails the whole walk."""
    snapshot = snapshot_of(java_module(":"), java_module(":a"), java_module(":b"))
    walker = ModuleTreeWalker(
        snapshot,
        resolvers=[JvmSourceSetResolver(), _ExplodingResolver(":b")],
        max_workers=3,
    )
    with pytest.raises(DependencyResolutionError) as exc:
        walker.walk()
    assert exc.value.module == ":b"


def test_project_dependency_cycle_is_rejected(java_module):
    """Modules depending on each other abort before any resolution."""
    snapshot = snapshot_of(
        java_module(":"),
        java_module(":a", configurations={"compile": [DependencySpec("project", ":b")]}),
        java_module(":b", configurations={"compile": [DependencySpec("project", ":a")]}),
    )
    with pytest.raises(DependencyResolutionError, match="circular project dependency") as exc:
        ModuleTreeWalker(snapshot).walk()
    assert exc.value.notation == ":a -> :b -> :a"


def test_test_classpath_back_reference_is_allowed(java_module):
    """A test classpath pointing back at a dependant module is not a build cycle."""
    snapshot = snapshot_of(
        java_module(":"),
        java_module(":a", configurations={"compile": [DependencySpec("project", ":b")]}),
        java_module(":b", configurations={"testCompile": [DependencySpec("project", ":a")]}),
    )
    tree = ModuleTreeWalker(snapshot).walk()
    assert tree.get(":a").resolution.classpaths["compile"].entries == (ProjectOutputRef(":b"),)
    assert ProjectOutputRef(":a") in tree.get(":b").resolution.classpaths["testCompile"].entries


def test_runtime_cycle_is_rejected(java_module):
    snapshot = snapshot_of(
        java_module(":"),
        java_module(":a", configurations={"runtimeClasspath": [DependencySpec("project", ":b")]}),
        java_module(":b", configurations={"compile": [DependencySpec("project", ":a")]}),
    )
    with pytest.raises(DependencyResolutionError, match="circular project dependency"):
        ModuleTreeWalker(snapshot).walk()
