"""Source sets contributed by JVM-language plugins (Java, Kotlin, Groovy)."""

from __future__ import annotations

import logging
from pathlib import Path

from sonarmodel.model import (
    Capability,
    DeclaredSourceSet,
    ModuleResolution,
    ProjectNode,
    SourceRole,
    SourceSet,
)
from sonarmodel.resolvers.base import clean_dirs

logger = logging.getLogger(__name__)

_JVM_CAPABILITIES = (
    Capability.JAVA | Capability.KOTLIN | Capability.GROOVY | Capability.MULTIPLATFORM
)


def source_role(name: str) -> SourceRole | None:
    """Classify a source-set name: ``main``/``jvmMain`` are main, ``*test`` are tests."""
    lowered = name.lower()
    if lowered.endswith("test"):
        return SourceRole.TEST
    if lowered.endswith("main"):
        return SourceRole.MAIN
    return None


class JvmSourceSetResolver:
    """Union every JVM language's directories per source-set name.

    Kotlin or Groovy layered on top of Java add directories to ``main`` and
    ``test`` rather than replacing the Java ones.
    """

    def can_handle(self, node: ProjectNode) -> bool:
        if node.capabilities & Capability.ANDROID:
            return False
        return bool(node.capabilities & _JVM_CAPABILITIES) or bool(
            node.descriptor.source_sets
        )

    def resolve(self, node: ProjectNode, resolution: ModuleResolution) -> None:
        grouped: dict[str, list[DeclaredSourceSet]] = {}
        for declared in node.descriptor.source_sets:
            grouped.setdefault(declared.name, []).append(declared)

        for name, declared_sets in grouped.items():
            role = source_role(name)
            if role is None:
                logger.debug(
                    "Source set %r of %s is neither main nor test, ignored",
                    name,
                    node.path,
                )
                continue

            languages: list[str] = []
            sources: list[Path] = []
            resources: list[Path] = []
            outputs: list[Path] = []
            for declared in declared_sets:
                if declared.language not in languages:
                    languages.append(declared.language)
                sources.extend(declared.source_dirs)
                resources.extend(declared.resource_dirs)
                outputs.extend(declared.output_dirs)

            resolution.source_sets.append(
                SourceSet(
                    name=name,
                    role=role,
                    language="+".join(languages),
                    source_dirs=clean_dirs(node.path, sources),
                    resource_dirs=clean_dirs(node.path, resources),
                    output_dirs=clean_dirs(node.path, outputs),
                )
            )
            logger.debug(
                "%s: source set %s (%s) with %d source dirs",
                node.path,
                name,
                "+".join(languages),
                len(sources),
            )
