"""Resolve declared dependency configurations into ordered classpaths."""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path

from sonarmodel.errors import DependencyResolutionError
from sonarmodel.model import (
    Classpath,
    ClasspathItem,
    DependencySpec,
    ModuleResolution,
    ProjectNode,
    ProjectOutputRef,
    ProjectSnapshot,
    TaskOutputRef,
)

logger = logging.getLogger(__name__)

COMPILE = "compile"
RUNTIME = "runtime"
TEST_COMPILE = "testCompile"
TEST_RUNTIME = "testRuntime"
CONFIGURATIONS = (COMPILE, RUNTIME, TEST_COMPILE, TEST_RUNTIME)

# Gradle resolvable configuration names and spelled-out variants.
CONFIGURATION_ALIASES = {
    "compileClasspath": COMPILE,
    "runtimeClasspath": RUNTIME,
    "testCompileClasspath": TEST_COMPILE,
    "testRuntimeClasspath": TEST_RUNTIME,
    "test-compile": TEST_COMPILE,
    "test-runtime": TEST_RUNTIME,
}

DEFAULT_REPOSITORIES = (
    Path.home() / ".m2" / "repository",
    Path.home() / ".gradle" / "caches" / "modules-2" / "files-2.1",
)

# group:artifact[:version[:classifier]][@extension]
_COORDINATE_RE = re.compile(
    r"^(?P<group>[^:@\s]+):(?P<artifact>[^:@\s]+)"
    r"(?::(?P<version>[^:@\s]*))?(?::(?P<classifier>[^:@\s]+))?"
    r"(?:@(?P<ext>\w+))?$"
)


def canonical_configuration(name: str) -> str:
    return CONFIGURATION_ALIASES.get(name, name)


def _version_key(version: str) -> tuple:
    parts: list[tuple[int, int | str]] = []
    for token in re.split(r"[.\-+_]", version):
        if token.isdigit():
            parts.append((1, int(token)))
        else:
            parts.append((0, token))
    return tuple(parts)


class ArtifactResolver:
    """Locate artifacts in local Maven-layout and Gradle-cache-layout repositories.

    Lookups are cached and safe to call from worker threads.
    """

    def __init__(self, repositories: list[Path] | None = None) -> None:
        self.repositories = list(repositories or DEFAULT_REPOSITORIES)
        self._cache: dict[str, Path | None] = {}
        self._lock = threading.Lock()

    def resolve(self, coordinate: str) -> Path | None:
        with self._lock:
            if coordinate in self._cache:
                return self._cache[coordinate]
        found = self._lookup(coordinate)
        with self._lock:
            self._cache[coordinate] = found
        return found

    def _lookup(self, coordinate: str) -> Path | None:
        m = _COORDINATE_RE.match(coordinate.strip())
        if not m:
            return None
        group, artifact = m.group("group"), m.group("artifact")
        version = m.group("version") or None
        classifier = m.group("classifier")
        ext = m.group("ext") or "jar"

        for repo in self.repositories:
            for base in (repo / Path(*group.split(".")) / artifact, repo / group / artifact):
                if not base.is_dir():
                    continue
                ver = version or self._latest_version(base)
                if ver is None:
                    continue
                file_name = f"{artifact}-{ver}{'-' + classifier if classifier else ''}.{ext}"
                candidate = base / ver / file_name
                if candidate.is_file():
                    return candidate
                # Gradle cache keeps each file under a checksum directory.
                version_dir = base / ver
                if version_dir.is_dir():
                    for hashed in sorted(version_dir.iterdir()):
                        if (hashed / file_name).is_file():
                            return hashed / file_name
        return None

    @staticmethod
    def _latest_version(base: Path) -> str | None:
        versions = [p.name for p in base.iterdir() if p.is_dir()]
        if not versions:
            return None
        latest = max(versions, key=_version_key)
        logger.debug("No version declared for %s, using %s", base, latest)
        return latest


class ClasspathCollector:
    """Build the compile/runtime/test classpaths of one module.

    Project and task references are recorded as deferred references and are
    only flattened when the property map is materialized.
    """

    def __init__(self, snapshot: ProjectSnapshot, artifacts: ArtifactResolver) -> None:
        self.snapshot = snapshot
        self.artifacts = artifacts

    def collect(self, node: ProjectNode, resolution: ModuleResolution) -> dict[str, Classpath]:
        descriptor = node.descriptor
        declared: dict[str, list[DependencySpec]] = {}
        for name, specs in descriptor.configurations.items():
            declared.setdefault(canonical_configuration(name), []).extend(specs)

        extra_compile: list[ClasspathItem] = []
        if descriptor.android is not None:
            extra_compile.extend(descriptor.android.boot_classpath)
            active = set(resolution.active_variants)
            for variant in descriptor.android.variants:
                if variant.name in active:
                    for spec in variant.compile:
                        extra_compile.extend(self._entries(node, spec))

        classpaths: dict[str, Classpath] = {}
        for config in CONFIGURATIONS:
            entries: list[ClasspathItem] = []
            if config in (COMPILE, TEST_COMPILE):
                entries.extend(extra_compile)
            for spec in declared.get(config, []):
                entries.extend(self._entries(node, spec))
            classpaths[config] = Classpath(config, tuple(_unique(entries)))
            logger.debug(
                "%s: %s classpath has %d entries", node.path, config, len(classpaths[config].entries)
            )
        return classpaths

    def _entries(self, node: ProjectNode, spec: DependencySpec) -> list[ClasspathItem]:
        if spec.kind == "file":
            path = Path(spec.notation)
            if not path.is_absolute():
                path = node.descriptor.project_dir / path
            return [path]
        if spec.kind == "project":
            if spec.notation not in self.snapshot.modules:
                raise DependencyResolutionError(
                    node.path, str(spec), "no such project in the build"
                )
            return [ProjectOutputRef(spec.notation)]
        if spec.kind == "task":
            return [TaskOutputRef(spec.notation)]
        if spec.kind == "module":
            found = self.artifacts.resolve(spec.notation)
            if found is None:
                raise DependencyResolutionError(
                    node.path, spec.notation, "artifact not found in any repository"
                )
            return [found]
        raise DependencyResolutionError(
            node.path, str(spec), f"unknown dependency kind {spec.kind!r}"
        )


def _unique(entries: list[ClasspathItem]) -> list[ClasspathItem]:
    seen: set[ClasspathItem] = set()
    out: list[ClasspathItem] = []
    for entry in entries:
        if entry not in seen:
            seen.add(entry)
            out.append(entry)
    return out
