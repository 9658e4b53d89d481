"""Property reducer: resolved tree → one flat, module-prefixed property map.

Precedence for a module-scoped key, lowest first:

1. computed defaults (source sets, classpaths, compiler settings, reports)
2. keys declared on an ancestor module (inheritable keys only)
3. keys declared on the module itself

Explicit overrides (``-D`` on the command line) are applied last, verbatim,
to fully qualified keys.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path

from sonarmodel import properties as props
from sonarmodel.classpath import COMPILE, TEST_COMPILE
from sonarmodel.errors import ConflictingConfigurationError
from sonarmodel.materialize import PendingValue, ReducedMap, existing_paths
from sonarmodel.model import (
    Capability,
    ClasspathItem,
    ModuleResolution,
    ProjectNode,
    ProjectTree,
    PropertyDeclaration,
    SourceRole,
    path_segments,
)

logger = logging.getLogger(__name__)

_TEST_RESULT_FILE_RE = re.compile(r"TESTS?-.*\.xml")

_JVM = Capability.JAVA | Capability.KOTLIN | Capability.GROOVY

RawValue = str | PendingValue


def compute_project_key(tree: ProjectTree) -> str:
    root = tree.root
    group = root.descriptor.group
    return f"{group}:{root.name}" if group else root.name


def merge_declarations(
    module: str, declarations: list[PropertyDeclaration]
) -> dict[str, str]:
    """Merge one module's declarations, failing on cross-source disagreement.

    Repeated declarations from the same source apply in order.
    """
    merged: dict[str, str] = {}
    owner: dict[str, str] = {}
    for decl in declarations:
        for key, value in decl.values.items():
            value = "" if value is None else str(value)
            previous = owner.get(key)
            if previous is not None and previous != decl.source and merged[key] != value:
                raise ConflictingConfigurationError(module, key, [previous, decl.source])
            merged[key] = value
            owner[key] = decl.source
    return merged


def _has_test_results(module: str, directory: Path | None) -> bool:
    if directory is None or not directory.is_dir():
        return False
    try:
        return any(_TEST_RESULT_FILE_RE.fullmatch(p.name) for p in directory.iterdir())
    except OSError as e:
        logger.warning("Cannot list test results %s of module %s: %s", directory, module, e)
        return False


def _path_value(module: str, entries: list[ClasspathItem]) -> RawValue:
    if any(not isinstance(e, Path) for e in entries):
        return PendingValue(module, tuple(entries))
    return props.join_csv([str(p) for p in existing_paths(entries)])  # type: ignore[arg-type]


def common_base_dir(dirs: list[Path]) -> Path:
    """Deepest directory containing every entry of *dirs* (first entry wins ties)."""
    base = Path(os.path.abspath(dirs[0]))
    for d in dirs[1:]:
        candidate = Path(os.path.abspath(d))
        if candidate.anchor != base.anchor:
            continue
        base = Path(os.path.commonpath([base, candidate]))
    return base


class PropertyReducer:
    """Reduce a fully resolved :class:`ProjectTree` into a property map.

    Must only run after every node's resolution has been attached.
    """

    def __init__(
        self,
        tree: ProjectTree,
        *,
        overrides: Mapping[str, str] | None = None,
        root_declarations: list[PropertyDeclaration] | None = None,
    ) -> None:
        self.tree = tree
        self.overrides = dict(overrides or {})
        self.root_declarations = list(root_declarations or [])
        self._declared: dict[int, dict[str, str]] = {}
        self._inherited: dict[int, dict[str, str]] = {}

    # ------------------------------------------------------------------
    # Declared and inherited keys
    # ------------------------------------------------------------------

    def _declarations(self, node: ProjectNode) -> list[PropertyDeclaration]:
        if node.is_root:
            return self.root_declarations + node.declared
        return node.declared

    def declared(self, node: ProjectNode) -> dict[str, str]:
        if node.index not in self._declared:
            merged = merge_declarations(node.path, self._declarations(node))
            if not node.is_root:
                for key in [k for k in merged if props.is_root_only(k)]:
                    logger.warning(
                        "Property '%s' can only be set on the root project, "
                        "ignored on %s",
                        key,
                        node.path,
                    )
                    del merged[key]
            self._declared[node.index] = merged
        return self._declared[node.index]

    def inherited(self, node: ProjectNode) -> dict[str, str]:
        """Inheritable keys declared on ancestors, nearest ancestor winning."""
        if node.index not in self._inherited:
            parent = self.tree.parent(node)
            values: dict[str, str] = {}
            if parent is not None:
                values.update(self.inherited(parent))
                values.update(
                    (k, v) for k, v in self.declared(parent).items() if props.is_inheritable(k)
                )
            self._inherited[node.index] = values
        return self._inherited[node.index]

    # ------------------------------------------------------------------
    # Computed defaults
    # ------------------------------------------------------------------

    def computed(self, node: ProjectNode, project_key: str) -> dict[str, RawValue]:
        descriptor = node.descriptor
        resolution = node.resolution or ModuleResolution()
        root_dir = self.tree.root.descriptor.project_dir
        values: dict[str, RawValue] = {
            props.PROJECT_NAME: node.name,
            props.PROJECT_BASE_DIR: str(descriptor.project_dir),
            props.KOTLIN_GRADLE_PROJECT_ROOT: str(os.path.abspath(root_dir)),
        }
        if descriptor.description:
            values[props.PROJECT_DESCRIPTION] = descriptor.description
        if descriptor.version and descriptor.version != "unspecified":
            values[props.PROJECT_VERSION] = descriptor.version

        if node.is_root:
            values[props.PROJECT_KEY] = project_key
            values[props.WORKING_DIRECTORY] = str(descriptor.build_dir / "sonar")
        else:
            values[props.MODULE_KEY] = project_key + node.path

        sources = resolution.dirs(SourceRole.MAIN)
        if descriptor.build_file is not None and descriptor.build_file.suffix == ".kts":
            sources.append(descriptor.build_file)
        settings_kts = descriptor.project_dir / "settings.gradle.kts"
        if settings_kts.is_file():
            sources.append(settings_kts)
        tests = resolution.dirs(SourceRole.TEST)
        values[props.PROJECT_SOURCE_DIRS] = props.join_csv(
            [str(p) for p in existing_paths(sources)]
        )
        values[props.PROJECT_TEST_DIRS] = props.join_csv(
            [str(p) for p in existing_paths(tests)]
        )
        has_code = bool(values[props.PROJECT_SOURCE_DIRS] or values[props.PROJECT_TEST_DIRS])

        if node.capabilities & _JVM:
            self._java_properties(node, resolution, values, has_code)
        values.update(resolution.android_properties)
        return values

    def _java_properties(
        self,
        node: ProjectNode,
        resolution: ModuleResolution,
        values: dict[str, RawValue],
        has_code: bool,
    ) -> None:
        descriptor = node.descriptor
        compiler = descriptor.compiler
        if compiler.jdk_home:
            values[props.JAVA_JDK_HOME] = compiler.jdk_home
        if compiler.release:
            values[props.JAVA_SOURCE] = compiler.release
            values[props.JAVA_TARGET] = compiler.release
        else:
            if compiler.source:
                values[props.JAVA_SOURCE] = compiler.source
            if compiler.target:
                values[props.JAVA_TARGET] = compiler.target
        if node.capabilities & Capability.JAVA:
            values[props.JAVA_ENABLE_PREVIEW] = "true" if compiler.enable_preview else "false"

        if has_code:
            if compiler.encoding:
                values[props.SOURCE_ENCODING] = compiler.encoding
            junit = descriptor.reports.junit
            if _has_test_results(node.path, junit):
                for key in (
                    props.JUNIT_REPORT_PATHS,
                    props.JUNIT_REPORTS_PATH,
                    props.SUREFIRE_REPORTS_PATH,
                ):
                    values[key] = str(junit)
            jacoco = descriptor.reports.jacoco_xml
            if jacoco is not None:
                if jacoco.is_file():
                    values[props.JACOCO_XML_REPORT_PATHS] = str(jacoco)
                else:
                    logger.info(
                        "JaCoCo XML report of %s was not produced, coverage will "
                        "not be reported",
                        node.path,
                    )

        binaries: list[ClasspathItem] = list(resolution.dirs(SourceRole.MAIN, "output_dirs"))
        test_binaries: list[ClasspathItem] = list(resolution.dirs(SourceRole.TEST, "output_dirs"))
        compile_cp = resolution.classpaths.get(COMPILE)
        test_cp = resolution.classpaths.get(TEST_COMPILE)
        libraries: list[ClasspathItem] = list(compile_cp.entries) if compile_cp else []
        test_libraries: list[ClasspathItem] = list(binaries)
        if test_cp is not None:
            test_libraries.extend(e for e in test_cp.entries if e not in test_libraries)

        values[props.JAVA_BINARIES] = _path_value(node.path, binaries)
        values[props.BINARIES] = values[props.JAVA_BINARIES]
        if node.capabilities & Capability.GROOVY:
            values[props.GROOVY_BINARIES] = values[props.JAVA_BINARIES]
        values[props.JAVA_LIBRARIES] = _path_value(node.path, libraries)
        values[props.LIBRARIES] = values[props.JAVA_LIBRARIES]
        values[props.JAVA_TEST_BINARIES] = _path_value(node.path, test_binaries)
        values[props.JAVA_TEST_LIBRARIES] = _path_value(node.path, test_libraries)

    # ------------------------------------------------------------------
    # Tree reduction
    # ------------------------------------------------------------------

    def project_key(self) -> str:
        if props.PROJECT_KEY in self.overrides:
            return self.overrides[props.PROJECT_KEY]
        declared = self.declared(self.tree.root).get(props.PROJECT_KEY)
        return declared or compute_project_key(self.tree)

    def attached_modules(self, node: ProjectNode) -> list[ProjectNode]:
        """Nearest emitting descendants of *node*, in tree order."""
        out: list[ProjectNode] = []
        for child in self.tree.children(node):
            if child.skipped:
                out.extend(self.attached_modules(child))
            else:
                out.append(child)
        return out

    def module_values(self, node: ProjectNode, project_key: str) -> dict[str, RawValue]:
        values: dict[str, RawValue] = dict(self.computed(node, project_key))
        values.update(self.inherited(node))
        values.update(self.declared(node))
        return values

    def _root_identity(self, project_key: str) -> dict[str, RawValue]:
        root = self.tree.root
        values: dict[str, RawValue] = {
            props.PROJECT_KEY: project_key,
            props.PROJECT_NAME: root.name,
            props.PROJECT_BASE_DIR: str(root.descriptor.project_dir),
            props.WORKING_DIRECTORY: str(root.descriptor.build_dir / "sonar"),
            props.SKIP: "true",
        }
        values.update(
            (k, v) for k, v in self.declared(root).items() if props.is_root_only(k)
        )
        return values

    def reduce(self) -> ReducedMap:
        project_key = self.project_key()
        reduced: ReducedMap = {}
        base_dirs: list[Path] = []

        for node in self.tree:
            if node.skipped and not node.is_root:
                continue
            prefix = props.module_prefix(node.path)
            if node.skipped:
                logger.info("Root project is skipped, analysis will be skipped")
                values = self._root_identity(project_key)
            else:
                values = self.module_values(node, project_key)
                base_dirs.append(Path(str(values[props.PROJECT_BASE_DIR])))

            attached = self.attached_modules(node)
            if attached:
                depth = len(path_segments(node.path))
                values[props.MODULES] = ",".join(
                    ".".join(path_segments(child.path)[depth:]) for child in attached
                )

            for key, value in values.items():
                if isinstance(value, str) and not value:
                    continue
                reduced[props.convert_key(key, prefix)] = value

        if base_dirs and props.PROJECT_BASE_DIR in reduced:
            root_base = Path(str(reduced[props.PROJECT_BASE_DIR]))
            reduced[props.PROJECT_BASE_DIR] = str(common_base_dir([root_base, *base_dirs]))

        for key, value in self.overrides.items():
            reduced[key] = value

        logger.debug("Reduced %d modules into %d properties", len(self.tree), len(reduced))
        return dict(sorted(reduced.items()))


def reduce_tree(
    tree: ProjectTree,
    *,
    overrides: Mapping[str, str] | None = None,
    root_declarations: list[PropertyDeclaration] | None = None,
) -> ReducedMap:
    return PropertyReducer(
        tree, overrides=overrides, root_declarations=root_declarations
    ).reduce()
