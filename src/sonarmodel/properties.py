"""Property key names and helpers for module-scoped keys and CSV values.

Key names are a stable contract with the analysis engine.  A module-scoped
key is written ``<prefix>.<property>`` where the prefix is the module path
with ``:`` separators turned into dots (``:module:submodule`` becomes
``module.submodule``).  Root keys carry no prefix.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from sonarmodel.model import path_segments

SKIP = "sonar.skip"
GRADLE_SCAN_ALL = "sonar.gradle.scanAll"
VERBOSE = "sonar.verbose"

# Project structure
PROJECT_KEY = "sonar.projectKey"
MODULE_KEY = "sonar.moduleKey"
MODULES = "sonar.modules"
PROJECT_NAME = "sonar.projectName"
PROJECT_DESCRIPTION = "sonar.projectDescription"
PROJECT_VERSION = "sonar.projectVersion"
PROJECT_BASE_DIR = "sonar.projectBaseDir"
WORKING_DIRECTORY = "sonar.working.directory"

# Sources and tests
PROJECT_SOURCE_DIRS = "sonar.sources"
PROJECT_TEST_DIRS = "sonar.tests"
SOURCE_ENCODING = "sonar.sourceEncoding"

# Java
JAVA_SOURCE = "sonar.java.source"
JAVA_TARGET = "sonar.java.target"
JAVA_ENABLE_PREVIEW = "sonar.java.enablePreview"
JAVA_JDK_HOME = "sonar.java.jdkHome"
JAVA_BINARIES = "sonar.java.binaries"
JAVA_LIBRARIES = "sonar.java.libraries"
JAVA_TEST_BINARIES = "sonar.java.test.binaries"
JAVA_TEST_LIBRARIES = "sonar.java.test.libraries"
LIBRARIES = "sonar.libraries"  # deprecated mirror of JAVA_LIBRARIES
BINARIES = "sonar.binaries"  # deprecated mirror of JAVA_BINARIES

GROOVY_BINARIES = "sonar.groovy.binaries"
KOTLIN_GRADLE_PROJECT_ROOT = "sonar.kotlin.gradleProjectRoot"

# Reports
JUNIT_REPORT_PATHS = "sonar.junit.reportPaths"
JUNIT_REPORTS_PATH = "sonar.junit.reportsPath"  # deprecated
SUREFIRE_REPORTS_PATH = "sonar.surefire.reportsPath"  # deprecated
JACOCO_XML_REPORT_PATHS = "sonar.coverage.jacoco.xmlReportPaths"

# Android
ANDROID_DETECTED = "sonar.android.detected"
ANDROID_MIN_SDK_MIN = "sonar.android.minsdkversion.min"
ANDROID_MIN_SDK_MAX = "sonar.android.minsdkversion.max"

ALL_PROPERTIES = frozenset(
    {
        SKIP,
        GRADLE_SCAN_ALL,
        VERBOSE,
        PROJECT_KEY,
        MODULE_KEY,
        MODULES,
        PROJECT_NAME,
        PROJECT_DESCRIPTION,
        PROJECT_VERSION,
        PROJECT_BASE_DIR,
        WORKING_DIRECTORY,
        PROJECT_SOURCE_DIRS,
        PROJECT_TEST_DIRS,
        SOURCE_ENCODING,
        JAVA_SOURCE,
        JAVA_TARGET,
        JAVA_ENABLE_PREVIEW,
        JAVA_JDK_HOME,
        JAVA_BINARIES,
        JAVA_LIBRARIES,
        JAVA_TEST_BINARIES,
        JAVA_TEST_LIBRARIES,
        LIBRARIES,
        BINARIES,
        GROOVY_BINARIES,
        KOTLIN_GRADLE_PROJECT_ROOT,
        JUNIT_REPORT_PATHS,
        JUNIT_REPORTS_PATH,
        SUREFIRE_REPORTS_PATH,
        JACOCO_XML_REPORT_PATHS,
        ANDROID_DETECTED,
        ANDROID_MIN_SDK_MIN,
        ANDROID_MIN_SDK_MAX,
    }
)

# Keys that exist once for the whole analysis.
ROOT_ONLY_KEYS = frozenset(
    {
        PROJECT_KEY,
        WORKING_DIRECTORY,
        VERBOSE,
        GRADLE_SCAN_ALL,
        "sonar.host.url",
        "sonar.token",
        "sonar.login",
        "sonar.password",
        "sonar.organization",
    }
)
ROOT_ONLY_PREFIXES = ("sonar.scanner.", "sonar.branch.", "sonar.pullrequest.", "sonar.scm.")

# Structural keys describe one module and never flow down to descendants.
NON_INHERITABLE_KEYS = frozenset(
    {
        SKIP,
        PROJECT_KEY,
        MODULE_KEY,
        MODULES,
        PROJECT_NAME,
        PROJECT_DESCRIPTION,
        PROJECT_BASE_DIR,
        PROJECT_SOURCE_DIRS,
        PROJECT_TEST_DIRS,
        JAVA_BINARIES,
        JAVA_LIBRARIES,
        JAVA_TEST_BINARIES,
        JAVA_TEST_LIBRARIES,
        LIBRARIES,
        BINARIES,
        GROOVY_BINARIES,
    }
)

_WILDCARD_TOKENS = ("*", "?", "${")


def is_root_only(key: str) -> bool:
    return key in ROOT_ONLY_KEYS or key.startswith(ROOT_ONLY_PREFIXES)


def is_inheritable(key: str) -> bool:
    return key not in NON_INHERITABLE_KEYS and not is_root_only(key)


def has_wildcard(value: str) -> bool:
    return any(token in value for token in _WILDCARD_TOKENS)


def module_prefix(path: str) -> str:
    """Return the key prefix for a module path (``""`` for the root)."""
    return ".".join(path_segments(path))


def convert_key(key: str, prefix: str) -> str:
    return f"{prefix}.{key}" if prefix else key


@dataclass(frozen=True)
class SonarProperty:
    """A fully qualified key split into module prefix and property name.

    Module prefixes may themselves contain dots, so parsing works by matching
    a known property name as the suffix.
    """

    prefix: str
    name: str

    @classmethod
    def parse(cls, key: str) -> SonarProperty | None:
        if not key:
            return None
        # Longest names first so "sonar.java.test.binaries" beats "sonar.binaries".
        for prop in sorted(ALL_PROPERTIES, key=len, reverse=True):
            if key == prop:
                return cls("", prop)
            if key.endswith("." + prop):
                prefix = key[: -len(prop) - 1]
                if prefix:
                    return cls(prefix, prop)
        return None

    def __str__(self) -> str:
        return convert_key(self.name, self.prefix)


def escape_path(value: str) -> str:
    """Wrap a value containing a comma in double quotes."""
    if "," in value:
        return '"' + value.replace('"', '\\"') + '"'
    return value


def join_csv(values: list[str] | tuple[str, ...]) -> str:
    return ",".join(escape_path(v) for v in values)


def split_csv(joined: str) -> list[str]:
    """Inverse of :func:`join_csv`; quoted items may contain commas."""
    if '"' not in joined:
        return [v for v in joined.split(",") if v] if joined else []
    items: list[str] = []
    for m in _CSV_ITEM_RE.finditer(joined):
        quoted, plain = m.group(1), m.group(2)
        items.append(quoted.replace('\\"', '"') if quoted is not None else plain)
    return items


_CSV_ITEM_RE = re.compile(r'\s*(?:"((?:[^"\\]|\\.)*)"|([^,]+))\s*(?:,|$)')


def is_true(value: str | None) -> bool:
    return value is not None and value.strip().lower() == "true"
