"""Build a :class:`ProjectSnapshot` from a Gradle project on disk, without Gradle.

Module layout follows the Gradle conventions for each applied plugin; only
what the build scripts state declaratively is taken into account.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from sonarmodel.classpath import (
    COMPILE,
    DEFAULT_REPOSITORIES,
    RUNTIME,
    TEST_COMPILE,
    TEST_RUNTIME,
)
from sonarmodel.errors import SnapshotError
from sonarmodel.loaders.gradle.build_script import (
    AndroidBlock,
    BuildScript,
    find_build_file,
    parse_cross_project_blocks,
    read_build_script,
)
from sonarmodel.loaders.gradle.catalog import find_catalog
from sonarmodel.loaders.gradle.settings import SETTINGS_FILES, parse_settings
from sonarmodel.model import (
    ROOT_PATH,
    AndroidConfig,
    AndroidVariant,
    DeclaredSourceSet,
    DependencySpec,
    ModuleDescriptor,
    ProjectSnapshot,
    PropertyDeclaration,
    Reports,
    path_segments,
)

logger = logging.getLogger(__name__)

__all__ = ["is_gradle_project", "load_gradle_project"]

# Which declared configurations feed each resolvable classpath.
_CLASSPATH_MEMBERS: dict[str, frozenset[str]] = {
    COMPILE: frozenset({"implementation", "api", "compileOnly", "compileOnlyApi", "compile", "shadow"}),
    RUNTIME: frozenset({"implementation", "api", "runtimeOnly", "compile", "runtime"}),
    TEST_COMPILE: frozenset(
        {
            "implementation",
            "api",
            "compileOnlyApi",
            "compile",
            "testImplementation",
            "testCompileOnly",
            "testApi",
            "testCompile",
            "androidTestImplementation",
        }
    ),
    TEST_RUNTIME: frozenset(
        {
            "implementation",
            "api",
            "runtimeOnly",
            "compile",
            "runtime",
            "testImplementation",
            "testRuntimeOnly",
            "testCompile",
            "testRuntime",
        }
    ),
}

_LANGUAGE_PLUGINS = {
    "java": ("java",),
    "java-library": ("java",),
    "application": ("java",),
    "groovy": ("java", "groovy"),
    "org.jetbrains.kotlin.jvm": ("java", "kotlin"),
    "kotlin": ("java", "kotlin"),
}
_MULTIPLATFORM = "org.jetbrains.kotlin.multiplatform"
_ANDROID_PREFIX = "com.android."


def is_gradle_project(project_dir: Path) -> bool:
    return any(
        (project_dir / name).exists()
        for name in (*SETTINGS_FILES, "build.gradle.kts", "build.gradle")
    )


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def jvm_source_sets(project_dir: Path, build_dir: Path, plugins: list[str]) -> list[DeclaredSourceSet]:
    languages: list[str] = []
    for plugin in plugins:
        for language in _LANGUAGE_PLUGINS.get(plugin, ()):
            if language not in languages:
                languages.append(language)

    source_sets: list[DeclaredSourceSet] = []
    if _MULTIPLATFORM in plugins:
        for name, target in (
            ("commonMain", None),
            ("commonTest", None),
            ("jvmMain", "main"),
            ("jvmTest", "test"),
        ):
            source_sets.append(
                DeclaredSourceSet(
                    name=name,
                    language="kotlin",
                    source_dirs=[project_dir / "src" / name / "kotlin"],
                    resource_dirs=[project_dir / "src" / name / "resources"],
                    output_dirs=[build_dir / "classes" / "kotlin" / "jvm" / target] if target else [],
                )
            )

    for name in ("main", "test"):
        for language in languages:
            source_sets.append(
                DeclaredSourceSet(
                    name=name,
                    language=language,
                    source_dirs=[project_dir / "src" / name / language],
                    resource_dirs=[project_dir / "src" / name / "resources"],
                    output_dirs=[build_dir / "classes" / language / name],
                )
            )
    return source_sets


def _android_sdk() -> Path | None:
    for var in ("ANDROID_HOME", "ANDROID_SDK_ROOT"):
        value = os.environ.get(var)
        if value:
            return Path(value)
    return None


def android_config(
    plugin: str,
    block: AndroidBlock,
    project_dir: Path,
    build_dir: Path,
    dependencies: dict[str, list[DependencySpec]],
    requested_variant: str | None,
) -> AndroidConfig:
    """Expand build types and product flavors into variants with conventional dirs."""
    src = project_dir / "src"
    flavors: list[str | None] = list(block.flavors) or [None]
    variants: list[AndroidVariant] = []
    for flavor in flavors:
        for build_type in block.build_types:
            name = flavor + _capitalize(build_type) if flavor else build_type
            dims = [d for d in ("main", flavor, build_type, name if flavor else None) if d]
            source_dirs = [src / d / lang for d in dims for lang in ("java", "kotlin")]
            test_dims = ["test", *(f"test{_capitalize(d)}" for d in dims[1:])]
            android_test_dims = ["androidTest", *(f"androidTest{_capitalize(d)}" for d in dims[1:])]
            compile_deps: list[DependencySpec] = []
            for d in dims[1:]:
                for suffix in ("Implementation", "Api", "CompileOnly"):
                    compile_deps.extend(dependencies.get(d + suffix, []))
            variants.append(
                AndroidVariant(
                    name=name,
                    build_type=build_type,
                    min_sdk=(block.flavors.get(flavor) if flavor else None) or block.min_sdk,
                    source_dirs=source_dirs,
                    unit_test_dirs=[src / d / lang for d in test_dims for lang in ("java", "kotlin")],
                    android_test_dirs=[
                        src / d / lang for d in android_test_dims for lang in ("java", "kotlin")
                    ],
                    output_dirs=[
                        build_dir / "intermediates" / "javac" / name / "classes",
                        build_dir / "tmp" / "kotlin-classes" / name,
                    ],
                    unit_test_output_dirs=[
                        build_dir / "intermediates" / "javac" / f"{name}UnitTest" / "classes",
                        build_dir / "tmp" / "kotlin-classes" / f"{name}UnitTest",
                    ],
                    android_test_output_dirs=[
                        build_dir / "intermediates" / "javac" / f"{name}AndroidTest" / "classes",
                        build_dir / "tmp" / "kotlin-classes" / f"{name}AndroidTest",
                    ],
                    compile=compile_deps,
                )
            )
            logger.debug("%s: Android variant %s", project_dir, name)

    boot_classpath: list[Path] = []
    sdk = _android_sdk()
    if sdk is not None and block.compile_sdk is not None:
        boot_classpath.append(sdk / "platforms" / f"android-{block.compile_sdk}" / "android.jar")

    return AndroidConfig(
        plugin=plugin,
        variants=variants,
        test_build_type=block.test_build_type,
        variant=requested_variant,
        boot_classpath=boot_classpath,
        min_sdk=block.min_sdk,
        flavor_min_sdks=[s for s in block.flavors.values() if s is not None],
    )


def _classpaths(dependencies: dict[str, list[DependencySpec]]) -> dict[str, list[DependencySpec]]:
    configurations: dict[str, list[DependencySpec]] = {}
    for classpath, members in _CLASSPATH_MEMBERS.items():
        specs: list[DependencySpec] = []
        for config, declared in dependencies.items():
            if config in members:
                specs.extend(s for s in declared if s not in specs)
        if specs:
            configurations[classpath] = specs
    return configurations


def _module(
    path: str,
    name: str,
    project_dir: Path,
    root_dir: Path,
    inherited: list[BuildScript],
) -> ModuleDescriptor:
    build_file = find_build_file(project_dir)
    catalog = find_catalog(project_dir, root_dir)
    if build_file is not None:
        script, _ = read_build_script(build_file, catalog)
    else:
        script = BuildScript()

    plugins = list(dict.fromkeys([p for s in inherited for p in s.plugins] + script.plugins))
    group = script.group or next((s.group for s in reversed(inherited) if s.group), "")
    version = script.version or next((s.version for s in reversed(inherited) if s.version), None)
    build_dir = project_dir / "build"

    dependencies: dict[str, list[DependencySpec]] = {}
    for s in [*inherited, script]:
        for config, specs in s.dependencies.items():
            dependencies.setdefault(config, []).extend(specs)

    android: AndroidConfig | None = None
    android_plugin = next((p for p in plugins if p.startswith(_ANDROID_PREFIX)), None)
    if android_plugin is not None:
        android = android_config(
            android_plugin,
            script.android or AndroidBlock(),
            project_dir,
            build_dir,
            dependencies,
            script.android_variant,
        )

    source = build_file.name if build_file is not None else "build"
    compiler = script.compiler
    for s in inherited:
        compiler.source = compiler.source or s.compiler.source
        compiler.target = compiler.target or s.compiler.target
        compiler.release = compiler.release or s.compiler.release
        compiler.encoding = compiler.encoding or s.compiler.encoding

    return ModuleDescriptor(
        path=path,
        name=name,
        project_dir=project_dir,
        build_dir=build_dir,
        build_file=build_file,
        group=group,
        version=version or "unspecified",
        description=script.description,
        plugins=plugins,
        skip=script.skip,
        source_sets=[] if android else jvm_source_sets(project_dir, build_dir, plugins),
        configurations=_classpaths(dependencies),
        compiler=compiler,
        reports=Reports(
            junit=build_dir / "test-results" / "test",
            jacoco_xml=(
                build_dir / "reports" / "jacoco" / "test" / "jacocoTestReport.xml"
                if "jacoco" in plugins
                else None
            ),
        ),
        android=android,
        properties=[PropertyDeclaration(source, values) for values in script.sonar_blocks],
    )


def load_gradle_project(root_dir: Path) -> ProjectSnapshot:
    """Read settings and build scripts under *root_dir* into a snapshot."""
    root_dir = root_dir.resolve()
    if not is_gradle_project(root_dir):
        raise SnapshotError(f"No Gradle build found in {root_dir}")

    settings = parse_settings(root_dir)
    root_build = find_build_file(root_dir)
    cross = None
    if root_build is not None:
        try:
            text = root_build.read_text(encoding="utf-8")
        except OSError as e:
            raise SnapshotError(f"Cannot read {root_build}: {e}") from e
        cross = parse_cross_project_blocks(text, find_catalog(root_dir, root_dir))

    modules: dict[str, ModuleDescriptor] = {}
    root_inherited = [cross.allprojects] if cross else []
    modules[ROOT_PATH] = _module(ROOT_PATH, settings.root_name, root_dir, root_dir, root_inherited)
    child_inherited = [cross.allprojects, cross.subprojects] if cross else []
    for path in settings.includes:
        project_dir = settings.project_dir(path)
        if not project_dir.is_dir():
            logger.warning("Project directory %s of %s does not exist", project_dir, path)
        modules[path] = _module(
            path, path_segments(path)[-1], project_dir, root_dir, child_inherited
        )

    logger.debug("Loaded %d Gradle projects from %s", len(modules), root_dir)
    return ProjectSnapshot(
        modules=modules,
        root=ROOT_PATH,
        repositories=list(DEFAULT_REPOSITORIES),
    )
