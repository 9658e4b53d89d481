"""Static reading of ``build.gradle(.kts)`` files.

Only declarative forms are recognised: plugin ids, coordinates, ``sonar``
blocks and the Android DSL basics.  Anything computed at configuration time
is invisible here.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from sonarmodel.errors import SnapshotError
from sonarmodel.loaders.gradle.catalog import VersionCatalog
from sonarmodel.loaders.gradle.script import (
    STRING_RE,
    child_blocks,
    find_blocks,
    literal,
    remove_blocks,
    strip_comments,
)
from sonarmodel.model import CompilerSettings, DependencySpec

logger = logging.getLogger(__name__)

BUILD_FILES = ("build.gradle.kts", "build.gradle")

_PLUGIN_ID_RE = re.compile(r"""\bid\s*\(?\s*["']([^"']+)["']""")
_KOTLIN_PLUGIN_RE = re.compile(r"""\bkotlin\s*\(\s*["']([^"']+)["']\s*\)""")
_CORE_PLUGIN_RE = re.compile(
    r"^\s*`?(java|java-library|java-platform|application|groovy|jacoco)`?\s*$",
    re.MULTILINE,
)
_APPLY_PLUGIN_RE = re.compile(r"""\bapply\s*\(?\s*plugin\s*[:=]\s*["']([^"']+)["']""")

_GROUP_RE = re.compile(r"""^\s*group\s*=\s*["']([^"']+)["']""", re.MULTILINE)
_VERSION_RE = re.compile(r"""^\s*version\s*=\s*["']([^"']+)["']""", re.MULTILINE)
_DESCRIPTION_RE = re.compile(r"""^\s*description\s*=\s*["']([^"']+)["']""", re.MULTILINE)

_VALUE = r"""("[^"\n]*"|'[^'\n]*'|[\w.\-]+)"""
_SONAR_PROPERTY_RE = re.compile(
    r"""\bproperty\s*\(?\s*["']([^"']+)["']\s*,\s*""" + _VALUE
)
_SONAR_INDEXED_RE = re.compile(
    r"""\bproperties\s*\[\s*["']([^"']+)["']\s*\]\s*=\s*""" + _VALUE
)
_SKIP_PROJECT_RE = re.compile(r"\b(?:is)?[sS]kipProject\s*=\s*true\b")
_ANDROID_VARIANT_RE = re.compile(r"""\bandroidVariant\s*=\s*["']([^"']+)["']""")

_DEP_LINE_RE = re.compile(r"^\s*([a-z]\w*)\s*(?:\((.*)\)|\s+(.+?))\s*$", re.MULTILINE)
_DEP_CONFIG_SUFFIXES = ("Implementation", "Api", "CompileOnly", "RuntimeOnly", "CompileOnlyApi")
_BASE_DEP_CONFIGS = frozenset(
    {
        "implementation",
        "api",
        "compileOnly",
        "compileOnlyApi",
        "runtimeOnly",
        "shadow",
        "compile",
        "runtime",
        "testCompile",
        "testRuntime",
    }
)
_PROJECT_DEP_RE = re.compile(r"""\bproject\s*\(\s*(?:path\s*[:=]\s*)?["']([^"']+)["']""")
_FILES_DEP_RE = re.compile(r"\bfiles\s*\((.*)\)")
_CATALOG_DEP_RE = re.compile(r"\b(libs\.[A-Za-z0-9_.]+)")
_MAP_DEP_RE = re.compile(
    r"""group\s*:\s*["']([^"']+)["']\s*,\s*name\s*:\s*["']([^"']+)["']"""
    r"""(?:\s*,\s*version\s*:\s*["']([^"']+)["'])?"""
)
_IGNORED_DEP_PREFIXES = ("platform(", "enforcedPlatform(", "kotlin(", "fileTree(", "gradleApi(")

_JAVA_VERSION_RE = r"""(?:JavaVersion\.VERSION_|JavaVersion\.toVersion\(\s*)?["']?([\d._]+)["']?"""
_SOURCE_COMPAT_RE = re.compile(r"\bsourceCompatibility\s*=\s*" + _JAVA_VERSION_RE)
_TARGET_COMPAT_RE = re.compile(r"\btargetCompatibility\s*=\s*" + _JAVA_VERSION_RE)
_TOOLCHAIN_RE = re.compile(r"\blanguageVersion\s*(?:\.set\s*\(|=)\s*JavaLanguageVersion\.of\(\s*(\d+)")
_RELEASE_RE = re.compile(r"\brelease\s*(?:\.set\s*\(|=)\s*(\d+)")
_ENCODING_RE = re.compile(r"""\bencoding\s*=\s*["']([^"']+)["']""")

_MIN_SDK_RE = re.compile(r"\bminSdk(?:Version)?\s*(?:=\s*|\(\s*|\s+)(\d+)")
_COMPILE_SDK_RE = re.compile(r"\bcompileSdk(?:Version)?\s*(?:=\s*|\(\s*|\s+)(\d+)")
_TEST_BUILD_TYPE_RE = re.compile(r"""\btestBuildType\s*=?\s*["']([^"']+)["']""")

DEFAULT_BUILD_TYPES = ("debug", "release")


@dataclass
class AndroidBlock:
    build_types: list[str] = field(default_factory=lambda: list(DEFAULT_BUILD_TYPES))
    flavors: dict[str, int | None] = field(default_factory=dict)  # name -> minSdk
    min_sdk: int | None = None
    compile_sdk: int | None = None
    test_build_type: str = "debug"


@dataclass
class BuildScript:
    plugins: list[str] = field(default_factory=list)
    group: str | None = None
    version: str | None = None
    description: str | None = None
    sonar_blocks: list[dict[str, str]] = field(default_factory=list)
    skip: bool = False
    android_variant: str | None = None
    dependencies: dict[str, list[DependencySpec]] = field(default_factory=dict)
    compiler: CompilerSettings = field(default_factory=CompilerSettings)
    android: AndroidBlock | None = None


@dataclass
class CrossProjectBlocks:
    """Contents of the root script's ``allprojects {}`` and ``subprojects {}``."""

    allprojects: BuildScript = field(default_factory=BuildScript)
    subprojects: BuildScript = field(default_factory=BuildScript)


def find_build_file(project_dir: Path) -> Path | None:
    for name in BUILD_FILES:
        p = project_dir / name
        if p.exists():
            return p
    return None


def parse_plugins(text: str) -> list[str]:
    plugins: list[str] = []
    for body in find_blocks(text, "plugins"):
        plugins.extend(_PLUGIN_ID_RE.findall(body))
        plugins.extend(f"org.jetbrains.kotlin.{k}" for k in _KOTLIN_PLUGIN_RE.findall(body))
        plugins.extend(_CORE_PLUGIN_RE.findall(body))
    plugins.extend(_APPLY_PLUGIN_RE.findall(text))
    return list(dict.fromkeys(plugins))


def parse_sonar_blocks(text: str) -> tuple[list[dict[str, str]], bool, str | None]:
    blocks: list[dict[str, str]] = []
    skip = False
    variant: str | None = None
    for name in ("sonar", "sonarqube"):
        for body in find_blocks(text, name):
            values: dict[str, str] = {}
            for key, value in _SONAR_PROPERTY_RE.findall(body):
                values[key] = literal(value)
            for key, value in _SONAR_INDEXED_RE.findall(body):
                values[key] = literal(value)
            if values:
                blocks.append(values)
            skip = skip or bool(_SKIP_PROJECT_RE.search(body))
            m = _ANDROID_VARIANT_RE.search(body)
            if m:
                variant = m.group(1)
    return blocks, skip, variant


def is_dependency_configuration(name: str) -> bool:
    return name in _BASE_DEP_CONFIGS or name.endswith(_DEP_CONFIG_SUFFIXES)


def _strip_template_version(coordinate: str) -> str:
    parts = coordinate.split(":")
    if len(parts) >= 3 and "$" in parts[2]:
        logger.debug("Version of %s is computed, using the latest local one", coordinate)
        return ":".join(parts[:2])
    return coordinate


def parse_dependency(argument: str, catalog: VersionCatalog) -> list[DependencySpec]:
    """Parse the argument of one ``configuration(...)`` call."""
    argument = argument.strip()
    if argument.startswith(_IGNORED_DEP_PREFIXES):
        return []
    m = _PROJECT_DEP_RE.search(argument)
    if m:
        return [DependencySpec("project", m.group(1))]
    m = _FILES_DEP_RE.match(argument)
    if m:
        return [DependencySpec("file", f) for f in STRING_RE.findall(m.group(1))]
    m = _MAP_DEP_RE.search(argument)
    if m:
        group, name, version = m.groups()
        return [DependencySpec("module", f"{group}:{name}:{version}" if version else f"{group}:{name}")]
    m = _CATALOG_DEP_RE.match(argument)
    if m:
        resolved = catalog.resolve(m.group(1))
        if resolved is None:
            raise SnapshotError(f"Unknown version catalog reference {m.group(1)!r}")
        return [DependencySpec("module", c) for c in resolved]
    m = STRING_RE.match(argument)
    if m:
        return [DependencySpec("module", _strip_template_version(m.group(1)))]
    logger.debug("Unrecognised dependency notation %r ignored", argument)
    return []


def parse_dependencies(text: str, catalog: VersionCatalog) -> dict[str, list[DependencySpec]]:
    deps: dict[str, list[DependencySpec]] = {}
    for body in find_blocks(text, "dependencies"):
        for m in _DEP_LINE_RE.finditer(body):
            config = m.group(1)
            if not is_dependency_configuration(config):
                continue
            argument = m.group(2) if m.group(2) is not None else m.group(3)
            specs = parse_dependency(argument, catalog)
            if specs:
                deps.setdefault(config, []).extend(specs)
    return deps


def parse_compiler(text: str) -> CompilerSettings:
    settings = CompilerSettings()
    m = _SOURCE_COMPAT_RE.search(text)
    if m:
        settings.source = m.group(1).replace("_", ".")
    m = _TARGET_COMPAT_RE.search(text)
    if m:
        settings.target = m.group(1).replace("_", ".")
    m = _RELEASE_RE.search(text) or _TOOLCHAIN_RE.search(text)
    if m:
        settings.release = m.group(1)
    m = _ENCODING_RE.search(text)
    if m:
        settings.encoding = m.group(1)
    settings.enable_preview = "--enable-preview" in text
    return settings


def parse_android(text: str) -> AndroidBlock | None:
    bodies = find_blocks(text, "android")
    if not bodies:
        return None
    body = "\n".join(bodies)
    android = AndroidBlock()

    for default_config in find_blocks(body, "defaultConfig"):
        m = _MIN_SDK_RE.search(default_config)
        if m:
            android.min_sdk = int(m.group(1))
    m = _COMPILE_SDK_RE.search(body)
    if m:
        android.compile_sdk = int(m.group(1))
    m = _TEST_BUILD_TYPE_RE.search(body)
    if m:
        android.test_build_type = m.group(1)

    for build_types in find_blocks(body, "buildTypes"):
        for name in child_blocks(build_types):
            if name not in android.build_types:
                android.build_types.append(name)
    for flavors in find_blocks(body, "productFlavors"):
        for name, flavor_body in child_blocks(flavors).items():
            m = _MIN_SDK_RE.search(flavor_body)
            android.flavors[name] = int(m.group(1)) if m else None
    return android


def parse_build_script(text: str, catalog: VersionCatalog | None = None) -> BuildScript:
    catalog = catalog or VersionCatalog()
    text = remove_blocks(
        strip_comments(text), "buildscript", "pluginManagement", "allprojects", "subprojects"
    )
    script = BuildScript()
    script.plugins = parse_plugins(text)
    for attr, pattern in (
        ("group", _GROUP_RE),
        ("version", _VERSION_RE),
        ("description", _DESCRIPTION_RE),
    ):
        m = pattern.search(text)
        # Templated values are computed by Gradle and unknown here.
        if m and "$" not in m.group(1):
            setattr(script, attr, m.group(1))
    script.sonar_blocks, script.skip, script.android_variant = parse_sonar_blocks(text)
    script.dependencies = parse_dependencies(text, catalog)
    script.compiler = parse_compiler(text)
    script.android = parse_android(text)
    return script


def parse_cross_project_blocks(text: str, catalog: VersionCatalog | None = None) -> CrossProjectBlocks:
    text = strip_comments(text)
    blocks = CrossProjectBlocks()
    for name in ("allprojects", "subprojects"):
        bodies = find_blocks(text, name)
        if bodies:
            setattr(blocks, name, parse_build_script("\n".join(bodies), catalog))
    return blocks


def read_build_script(path: Path, catalog: VersionCatalog | None = None) -> tuple[BuildScript, str]:
    """Parse *path*, returning the script and its raw text."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SnapshotError(f"Cannot read {path}: {e}") from e
    return parse_build_script(text, catalog), text
