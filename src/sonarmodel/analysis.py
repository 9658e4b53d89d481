"""Checks over the project graph run before resolution is dispatched."""

from __future__ import annotations

from typing import Iterator

from sonarmodel.classpath import COMPILE, RUNTIME, canonical_configuration
from sonarmodel.model import ProjectSnapshot

# Only main classpaths need the referenced project built first; a test
# classpath pointing back at a dependant does not close a build cycle.
MAIN_CONFIGURATIONS = (COMPILE, RUNTIME)


def project_references(snapshot: ProjectSnapshot) -> dict[str, list[str]]:
    """Map each module path to the modules its main classpaths reference."""
    edges: dict[str, list[str]] = {}
    for path, module in snapshot.modules.items():
        targets: list[str] = []
        specs = [
            s
            for name, specs in module.configurations.items()
            if canonical_configuration(name) in MAIN_CONFIGURATIONS
            for s in specs
        ]
        if module.android is not None:
            specs.extend(s for v in module.android.variants for s in v.compile)
        for spec in specs:
            if spec.kind == "project" and spec.notation not in targets:
                targets.append(spec.notation)
        edges[path] = targets
    return edges


def find_cycles(edges: dict[str, list[str]]) -> list[list[str]]:
    """Return dependency cycles as strongly-connected components.

    Each returned list is a sorted group of module paths that reference each
    other through project dependencies.  A module referencing itself is
    reported as a single-element cycle.  References to paths outside *edges*
    are ignored.
    """
    index: dict[str, int] = {}
    low: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    cycles: list[list[str]] = []
    # (module, remaining references) frames; explicit so deep trees don't recurse
    work: list[tuple[str, Iterator[str]]] = []

    def _enter(v: str) -> None:
        index[v] = low[v] = len(index)
        stack.append(v)
        on_stack.add(v)
        work.append((v, iter(edges[v])))

    for start in sorted(edges):
        if start in index:
            continue
        _enter(start)
        while work:
            v, targets = work[-1]
            for w in targets:
                if w not in edges:
                    continue
                if w not in index:
                    _enter(w)
                    break
                if w in on_stack:
                    low[v] = min(low[v], index[w])
            else:
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[v])
                if low[v] != index[v]:
                    continue
                component: list[str] = []
                while True:
                    w = stack.pop()
                    on_stack.discard(w)
                    component.append(w)
                    if w == v:
                        break
                if len(component) >= 2 or v in edges[v]:
                    cycles.append(sorted(component))

    return cycles
