from __future__ import annotations

import logging

import pytest

from conftest import snapshot_of
from sonarmodel.errors import ConfigurationError
from sonarmodel.model import (
    AndroidConfig,
    AndroidVariant,
    Capability,
    DeclaredSourceSet,
    ModuleDescriptor,
    ModuleKind,
    ModuleResolution,
    SourceRole,
)
from sonarmodel.resolvers import (
    AndroidSourceSetResolver,
    JvmSourceSetResolver,
    classify,
    resolve_source_sets,
)
from sonarmodel.resolvers.jvm import source_role
from sonarmodel.walker import build_tree


def _resolve(module: ModuleDescriptor, *resolvers):
    node = build_tree(snapshot_of(module)).root
    return resolve_source_sets(node, list(resolvers) or [JvmSourceSetResolver()])


def _variant(root, name: str, build_type: str, min_sdk: int | None = None) -> AndroidVariant:
    return AndroidVariant(
        name=name,
        build_type=build_type,
        min_sdk=min_sdk,
        source_dirs=[root / "src" / "main" / "java", root / "src" / build_type / "java"],
        unit_test_dirs=[root / "src" / "test" / "java"],
        android_test_dirs=[root / "src" / "androidTest" / "java"],
        output_dirs=[root / "build" / "intermediates" / "javac" / name / "classes"],
    )


def _android_module(root, plugin: str = "com.android.application", **kwargs) -> ModuleDescriptor:
    android = AndroidConfig(
        plugin=plugin,
        variants=[_variant(root, "debug", "debug", 21), _variant(root, "release", "release", 24)],
        min_sdk=21,
        flavor_min_sdks=[19],
        **kwargs,
    )
    return ModuleDescriptor(path=":", name="app", project_dir=root, plugins=[plugin], android=android)


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------
@pytest.mark.parametrize(
    "plugins, kind",
    [
        (["java"], ModuleKind.JVM),
        (["java-library", "org.jetbrains.kotlin.jvm"], ModuleKind.KOTLIN_MIXED),
        (["groovy"], ModuleKind.GROOVY),
        (["org.jetbrains.kotlin.multiplatform"], ModuleKind.KOTLIN_MULTIPLATFORM),
        (["com.android.library", "kotlin-android"], ModuleKind.ANDROID_LIBRARY),
        (["com.android.test"], ModuleKind.ANDROID_TEST),
        ([], ModuleKind.AGGREGATOR),
    ],
)
def test_classify_by_plugins(tmp_path, plugins, kind):
    """The module kind follows the applied plugins."""
    descriptor = ModuleDescriptor(path=":", name="x", project_dir=tmp_path, plugins=plugins)
    assert classify(descriptor)[1] is kind


def test_classify_combines_capabilities(tmp_path):
    """Groovy implies Java and Android modules carry the Android flag."""
    caps, _ = classify(ModuleDescriptor(path=":", name="x", project_dir=tmp_path, plugins=["groovy"]))
    assert caps & Capability.JAVA and caps & Capability.GROOVY
    caps, _ = classify(_android_module(tmp_path))
    assert caps & Capability.ANDROID


def test_source_role():
    assert source_role("main") is SourceRole.MAIN
    assert source_role("jvmTest") is SourceRole.TEST
    assert source_role("integrationTest") is SourceRole.TEST
    assert source_role("docs") is None


# -----------------------------------------------------------------------------
# JVM source sets
# -----------------------------------------------------------------------------
def test_kotlin_adds_to_java_source_sets(java_module, root_dir):
    """Java and Kotlin directories of one source set are unioned, not replaced."""
    module = java_module(":", plugins=("java", "org.jetbrains.kotlin.jvm"))
    kotlin_main = root_dir / "src" / "main" / "kotlin"
    kotlin_main.mkdir(parents=True)
    module.source_sets.append(DeclaredSourceSet("main", "kotlin", [kotlin_main]))

    resolution = _resolve(module)
    assert resolution.dirs(SourceRole.MAIN) == [root_dir / "src" / "main" / "java", kotlin_main]
    assert [ss.name for ss in resolution.source_sets] == ["main", "test"]
    assert resolution.source_sets[0].language == "java+kotlin"


def test_missing_directories_are_kept(java_module, root_dir):
    """Declared directories that do not exist yet stay in the source set."""
    resolution = _resolve(java_module(":", create=False))
    assert resolution.dirs(SourceRole.MAIN) == [root_dir / "src" / "main" / "java"]


def test_duplicate_directories_are_listed_once(java_module, root_dir):
    """A directory declared twice appears once."""
    module = java_module(":")
    main_src = root_dir / "src" / "main" / "java"
    module.source_sets.append(DeclaredSourceSet("main", "groovy", [main_src]))
    assert _resolve(module).dirs(SourceRole.MAIN) == [main_src]


def test_symlink_loop_is_dropped_with_warning(java_module, root_dir, caplog):
    """A directory that is a symbolic link loop is ignored."""
    loop = root_dir / "loop"
    loop.symlink_to(loop)
    module = java_module(":")
    module.source_sets.append(DeclaredSourceSet("main", "java", [loop]))

    with caplog.at_level(logging.WARNING, logger="sonarmodel"):
        resolution = _resolve(module)
    assert loop not in resolution.dirs(SourceRole.MAIN)
    assert "symbolic link loop" in caplog.text


# -----------------------------------------------------------------------------
# Android source sets
# -----------------------------------------------------------------------------
def test_android_default_variant_uses_test_build_type(tmp_path):
    """Without a requested variant the debug variant is analyzed."""
    resolution = _resolve(_android_module(tmp_path), AndroidSourceSetResolver())
    assert resolution.active_variants == ["debug"]
    assert [(ss.name, ss.role) for ss in resolution.source_sets] == [
        ("debug", SourceRole.MAIN),
        ("debugUnitTest", SourceRole.TEST),
        ("debugAndroidTest", SourceRole.TEST),
    ]
    assert resolution.android_properties == {
        "sonar.android.detected": "true",
        "sonar.android.minsdkversion.min": "19",
        "sonar.android.minsdkversion.max": "21",
    }


def test_android_variants_keep_roles_distinct(tmp_path):
    """Main and test directories of selected variants never mix."""
    resolution = _resolve(
        _android_module(tmp_path), AndroidSourceSetResolver(default_variant="debug,release")
    )
    assert resolution.active_variants == ["debug", "release"]
    main = resolution.dirs(SourceRole.MAIN)
    tests = resolution.dirs(SourceRole.TEST)
    assert tmp_path / "src" / "release" / "java" in main
    assert not set(main) & set(tests)
    assert resolution.android_properties["sonar.android.minsdkversion.min"] == "21"
    assert resolution.android_properties["sonar.android.minsdkversion.max"] == "24"


def test_android_per_module_variant_wins(tmp_path):
    """A variant configured for the module path beats the default."""
    resolver = AndroidSourceSetResolver({":": "release"}, default_variant="debug")
    assert _resolve(_android_module(tmp_path), resolver).active_variants == ["release"]


def test_android_unknown_variant_is_a_configuration_error(tmp_path):
    """Requesting a variant the module does not have fails."""
    with pytest.raises(ConfigurationError, match="Candidates are: debug, release"):
        _resolve(_android_module(tmp_path, variant="staging"), AndroidSourceSetResolver())


def test_android_test_module_has_only_test_source_sets(tmp_path):
    """Instrumentation-test modules contribute test sources only."""
    resolution = _resolve(_android_module(tmp_path, "com.android.test"), AndroidSourceSetResolver())
    assert resolution.source_sets
    assert all(ss.role is SourceRole.TEST for ss in resolution.source_sets)


def test_android_plugin_without_android_block_is_left_alone(tmp_path):
    """A module applying the plugin but exporting no Android facts gets no variants."""
    module = ModuleDescriptor(
        path=":", name="app", project_dir=tmp_path, plugins=["com.android.application"]
    )
    node = build_tree(snapshot_of(module)).root
    resolver = AndroidSourceSetResolver()
    resolution = ModuleResolution()
    assert not resolver.can_handle(node)
    resolver.resolve(node, resolution)
    assert resolution == ModuleResolution()
