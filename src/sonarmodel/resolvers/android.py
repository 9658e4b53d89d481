"""Source sets for Android modules, one group per active build variant."""

from __future__ import annotations

import logging

from sonarmodel import properties as props
from sonarmodel.errors import ConfigurationError
from sonarmodel.model import (
    AndroidConfig,
    AndroidVariant,
    Capability,
    ModuleResolution,
    ProjectNode,
    SourceRole,
    SourceSet,
)
from sonarmodel.resolvers.base import clean_dirs

logger = logging.getLogger(__name__)

ANDROID_TEST_PLUGIN = "com.android.test"


def select_variants(
    module: str, android: AndroidConfig, requested: str | None
) -> list[AndroidVariant]:
    """Return the active variants of an Android module.

    *requested* is a comma-separated list of variant names.  Without one the
    first variant of the test build type is used (release variants may be
    obfuscated, and tests usually run in debug), falling back to the first
    variant of any type.
    """
    candidates = android.variants
    if not candidates:
        return []

    if requested:
        by_name = {v.name: v for v in candidates}
        selected: list[AndroidVariant] = []
        for name in (n.strip() for n in requested.split(",")):
            if not name:
                continue
            if name not in by_name:
                raise ConfigurationError(
                    f"Unable to find variant '{name}' to use for analysis of "
                    f"{module}. Candidates are: "
                    + ", ".join(v.name for v in candidates)
                )
            selected.append(by_name[name])
        return selected

    for v in candidates:
        if android.test_build_type is not None and v.build_type == android.test_build_type:
            chosen = v
            break
    else:
        chosen = candidates[0]
    logger.info("No variant name specified for %s. Default to '%s'", module, chosen.name)
    return [chosen]


def android_properties(
    android: AndroidConfig, variants: list[AndroidVariant], user_selected: bool
) -> dict[str, str]:
    result = {props.ANDROID_DETECTED: "true"}
    if user_selected:
        sdks = [v.min_sdk for v in variants if v.min_sdk is not None]
    else:
        sdks = [s for s in [android.min_sdk, *android.flavor_min_sdks] if s is not None]
    if sdks:
        result[props.ANDROID_MIN_SDK_MIN] = str(min(sdks))
        result[props.ANDROID_MIN_SDK_MAX] = str(max(sdks))
    return result


class AndroidSourceSetResolver:
    """Enumerate per-variant source sets, keeping main and test roles distinct."""

    def __init__(
        self,
        variants: dict[str, str] | None = None,
        default_variant: str | None = None,
    ) -> None:
        self._variants = variants or {}
        self._default_variant = default_variant

    def can_handle(self, node: ProjectNode) -> bool:
        return bool(node.capabilities & Capability.ANDROID) and (
            node.descriptor.android is not None
        )

    def _requested(self, node: ProjectNode) -> str | None:
        android = node.descriptor.android
        return (
            self._variants.get(node.path)
            or (android.variant if android else None)
            or self._default_variant
        )

    def resolve(self, node: ProjectNode, resolution: ModuleResolution) -> None:
        android = node.descriptor.android
        if android is None:
            return
        requested = self._requested(node)
        variants = select_variants(node.path, android, requested)
        if not variants:
            logger.warning(
                "No variant found for '%s'. No android specific configuration will be done",
                node.name,
            )
            return

        resolution.android_properties.update(
            android_properties(android, variants, user_selected=bool(requested))
        )
        resolution.active_variants.extend(v.name for v in variants)

        for variant in variants:
            if android.plugin == ANDROID_TEST_PLUGIN:
                # Instrumentation tests only
                resolution.source_sets.append(
                    SourceSet(
                        name=variant.name,
                        role=SourceRole.TEST,
                        source_dirs=clean_dirs(node.path, variant.source_dirs),
                        output_dirs=clean_dirs(node.path, variant.output_dirs),
                        variant=variant.name,
                    )
                )
                continue

            resolution.source_sets.append(
                SourceSet(
                    name=variant.name,
                    role=SourceRole.MAIN,
                    source_dirs=clean_dirs(node.path, variant.source_dirs),
                    output_dirs=clean_dirs(node.path, variant.output_dirs),
                    variant=variant.name,
                )
            )
            if variant.unit_test_dirs or variant.unit_test_output_dirs:
                resolution.source_sets.append(
                    SourceSet(
                        name=variant.name + "UnitTest",
                        role=SourceRole.TEST,
                        source_dirs=clean_dirs(node.path, variant.unit_test_dirs),
                        output_dirs=clean_dirs(node.path, variant.unit_test_output_dirs),
                        variant=variant.name,
                    )
                )
            if variant.android_test_dirs or variant.android_test_output_dirs:
                resolution.source_sets.append(
                    SourceSet(
                        name=variant.name + "AndroidTest",
                        role=SourceRole.TEST,
                        source_dirs=clean_dirs(node.path, variant.android_test_dirs),
                        output_dirs=clean_dirs(
                            node.path, variant.android_test_output_dirs
                        ),
                        variant=variant.name,
                    )
                )
