"""Source-set resolvers and module classification."""

from __future__ import annotations

from sonarmodel.model import (
    Capability,
    ModuleDescriptor,
    ModuleKind,
    ModuleResolution,
    ProjectNode,
)
from sonarmodel.resolvers.android import AndroidSourceSetResolver
from sonarmodel.resolvers.base import SourceSetResolver
from sonarmodel.resolvers.jvm import JvmSourceSetResolver

__all__ = [
    "AndroidSourceSetResolver",
    "JvmSourceSetResolver",
    "SourceSetResolver",
    "classify",
    "resolve_source_sets",
]

_PLUGIN_CAPABILITIES: dict[str, Capability] = {
    "java": Capability.JAVA,
    "java-library": Capability.JAVA,
    "application": Capability.JAVA,
    "org.gradle.java": Capability.JAVA,
    "groovy": Capability.GROOVY | Capability.JAVA,
    "org.jetbrains.kotlin.jvm": Capability.KOTLIN,
    "kotlin": Capability.KOTLIN,
    "kotlin-android": Capability.KOTLIN,
    "org.jetbrains.kotlin.android": Capability.KOTLIN,
    "org.jetbrains.kotlin.multiplatform": Capability.KOTLIN | Capability.MULTIPLATFORM,
}

_ANDROID_KINDS: dict[str, ModuleKind] = {
    "com.android.application": ModuleKind.ANDROID_APPLICATION,
    "com.android.library": ModuleKind.ANDROID_LIBRARY,
    "com.android.test": ModuleKind.ANDROID_TEST,
    "com.android.feature": ModuleKind.ANDROID_DYNAMIC_FEATURE,
    "com.android.dynamic-feature": ModuleKind.ANDROID_DYNAMIC_FEATURE,
}


def classify(descriptor: ModuleDescriptor) -> tuple[Capability, ModuleKind]:
    """Derive capability flags and the closed module kind from applied plugins."""
    caps = Capability.NONE
    android_kind: ModuleKind | None = None
    for plugin in descriptor.plugins:
        caps |= _PLUGIN_CAPABILITIES.get(plugin, Capability.NONE)
        if plugin in _ANDROID_KINDS and android_kind is None:
            android_kind = _ANDROID_KINDS[plugin]
    if descriptor.android is not None and android_kind is None:
        android_kind = _ANDROID_KINDS.get(
            descriptor.android.plugin, ModuleKind.ANDROID_APPLICATION
        )
    for ss in descriptor.source_sets:
        if ss.language == "kotlin":
            caps |= Capability.KOTLIN
        elif ss.language == "groovy":
            caps |= Capability.GROOVY
        else:
            caps |= Capability.JAVA

    if android_kind is not None:
        return caps | Capability.ANDROID, android_kind
    if caps & Capability.MULTIPLATFORM:
        return caps, ModuleKind.KOTLIN_MULTIPLATFORM
    if caps & Capability.KOTLIN:
        return caps, ModuleKind.KOTLIN_MIXED
    if caps & Capability.GROOVY:
        return caps, ModuleKind.GROOVY
    if caps & Capability.JAVA:
        return caps, ModuleKind.JVM
    return caps, ModuleKind.AGGREGATOR


def default_resolvers(
    android_variants: dict[str, str] | None = None,
    default_android_variant: str | None = None,
) -> list[SourceSetResolver]:
    return [
        JvmSourceSetResolver(),
        AndroidSourceSetResolver(android_variants, default_android_variant),
    ]


def resolve_source_sets(
    node: ProjectNode,
    resolvers: list[SourceSetResolver],
    resolution: ModuleResolution | None = None,
) -> ModuleResolution:
    """Run every applicable resolver for *node* and return the combined result."""
    resolution = resolution or ModuleResolution()
    for resolver in resolvers:
        if resolver.can_handle(node):
            resolver.resolve(node, resolution)
    return resolution
