"""Collect files outside any module's sources for ``sonar.gradle.scanAll``."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path

from sonarmodel import properties as props

logger = logging.getLogger(__name__)

EXCLUDED_DIRECTORIES = frozenset(
    {"bin", "build", "dist", "nbbuild", "nbdist", "out", "target", "tmp"}
)

EXCLUDED_EXTENSIONS = (
    ".jar", ".war", ".class", ".ear", ".nar",
    # archives
    ".ds_store", ".zip", ".7z", ".rar", ".gz", ".tar", ".xz",
    ".log",
    # temp files
    ".bak", ".tmp", ".swp",
    # IDE files
    ".iml", ".ipr", ".iws", ".nib",
)

# Handled by the language analyzers through module sources.
JVM_EXTENSIONS = (".java", ".jav", ".kt")

# "test" as a path token, but not inside English words such as
# attest, contest, detest, latest, protest, testament or testimony.
TEST_FILE_PATH_RE = re.compile(
    r"(?<!at)(?<!con)(?<!de)(?<!la)(?<!pro)"
    r"test(?!ate|ator|atrix|ament|imonial|imony|iness|y)",
    re.IGNORECASE,
)

_REPORT_PATH_KEY_RE = re.compile(r"^(.*\.)?sonar\..*\.reportPaths?$")
_BINARY_KEYS = (props.JAVA_BINARIES, props.JAVA_TEST_BINARIES, props.GROOVY_BINARIES)


def is_test_file(project_dir: Path, path: Path) -> bool:
    return TEST_FILE_PATH_RE.search(str(path.relative_to(project_dir))) is not None


def _values_of(properties: Mapping[str, str], names: tuple[str, ...]) -> set[Path]:
    out: set[Path] = set()
    for key, value in properties.items():
        parsed = props.SonarProperty.parse(key)
        if parsed is not None and parsed.name in names:
            out.update(Path(v).absolute() for v in props.split_csv(value))
    return out


def _report_paths(properties: Mapping[str, str], base_dir: Path) -> set[Path]:
    out: set[Path] = set()
    for key, value in properties.items():
        if _REPORT_PATH_KEY_RE.match(key.strip()):
            for item in props.split_csv(value):
                path = Path(item.strip())
                out.add(path if path.is_absolute() else base_dir / path)
    return out


class SourceCollector:
    """Walk *base_dir* and collect files not covered by existing sources."""

    def __init__(
        self,
        existing_sources: set[Path],
        directories_to_ignore: set[Path] | None = None,
        excluded_files: set[Path] | None = None,
        collect_jvm_sources: bool = False,
    ) -> None:
        self.existing_sources = existing_sources
        self.directories_to_ignore = directories_to_ignore or set()
        self.excluded_files = excluded_files or set()
        self.excluded_extensions = (
            EXCLUDED_EXTENSIONS if collect_jvm_sources else EXCLUDED_EXTENSIONS + JVM_EXTENSIONS
        )

    def _skip_directory(self, path: Path) -> bool:
        return (
            path.name.startswith(".")
            or path.name.lower() in EXCLUDED_DIRECTORIES
            or path in self.directories_to_ignore
            or path in self.existing_sources
        )

    def _accept_file(self, path: Path) -> bool:
        if path.name.startswith(".") or path.is_symlink():
            return False
        if path in self.excluded_files or path in self.existing_sources:
            return False
        return not path.name.lower().endswith(self.excluded_extensions)

    def collect(self, base_dir: Path) -> list[Path]:
        collected: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(base_dir):
            current = Path(dirpath)
            dirnames[:] = sorted(d for d in dirnames if not self._skip_directory(current / d))
            for name in sorted(filenames):
                path = current / name
                if self._accept_file(path):
                    collected.append(path)
        return collected


def collect_all_sources(properties: dict[str, str]) -> dict[str, str]:
    """Append uncovered files under the root base dir to root sources/tests.

    Only applies when the root declares ``sonar.gradle.scanAll=true``.
    """
    if not props.is_true(properties.get(props.GRADLE_SCAN_ALL)):
        return properties
    base = properties.get(props.PROJECT_BASE_DIR)
    if not base:
        logger.warning("%s is set but no project base dir is known", props.GRADLE_SCAN_ALL)
        return properties

    base_dir = Path(base).absolute()
    existing = _values_of(properties, (props.PROJECT_SOURCE_DIRS, props.PROJECT_TEST_DIRS))
    ignored = _values_of(properties, _BINARY_KEYS)
    working = properties.get(props.WORKING_DIRECTORY)
    if working:
        ignored.add(Path(working).absolute())
    collector = SourceCollector(existing, ignored, _report_paths(properties, base_dir))
    files = collector.collect(base_dir)

    sources = [f for f in files if not is_test_file(base_dir, f)]
    tests = [f for f in files if is_test_file(base_dir, f)]
    logger.info(
        "Parameter %s is enabled: adding %d source and %d test files",
        props.GRADLE_SCAN_ALL,
        len(sources),
        len(tests),
    )

    result = dict(properties)
    for key, extra in ((props.PROJECT_SOURCE_DIRS, sources), (props.PROJECT_TEST_DIRS, tests)):
        if not extra:
            continue
        current = props.split_csv(result.get(key, ""))
        current.extend(str(f) for f in extra if str(f) not in current)
        result[key] = props.join_csv(current)
    return result
