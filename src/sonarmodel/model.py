"""Data model: the read-only project snapshot and the resolved module tree."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from sonarmodel.errors import DuplicateModuleError

ROOT_PATH = ":"

# Flat configuration handed to the external engine.
PropertyMap = dict[str, str]


class Capability(enum.Flag):
    """Language/platform plugins applied to a module."""

    NONE = 0
    JAVA = enum.auto()
    KOTLIN = enum.auto()
    GROOVY = enum.auto()
    ANDROID = enum.auto()
    MULTIPLATFORM = enum.auto()


class ModuleKind(enum.Enum):
    JVM = "jvm"
    KOTLIN_MIXED = "kotlin-mixed"
    KOTLIN_MULTIPLATFORM = "kotlin-multiplatform"
    GROOVY = "groovy"
    ANDROID_APPLICATION = "android-application"
    ANDROID_LIBRARY = "android-library"
    ANDROID_TEST = "android-test"
    ANDROID_DYNAMIC_FEATURE = "android-dynamic-feature"
    AGGREGATOR = "aggregator"  # no language plugin, no sources


class SourceRole(enum.Enum):
    MAIN = "main"
    TEST = "test"


# ---------------------------------------------------------------------------
# Deferred classpath references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskOutputRef:
    """Output of a build step that may not have run yet, e.g. ``:writeToResources``."""

    task_path: str

    def __str__(self) -> str:
        return f"task({self.task_path})"


@dataclass(frozen=True)
class ProjectOutputRef:
    """Main output directories of another module in the same build."""

    project_path: str

    def __str__(self) -> str:
        return f"project({self.project_path})"


DeferredRef = Union[TaskOutputRef, ProjectOutputRef]
ClasspathItem = Union[Path, DeferredRef]


# ---------------------------------------------------------------------------
# Snapshot (input boundary)
# ---------------------------------------------------------------------------


@dataclass
class DependencySpec:
    """One declared dependency, as written in the build."""

    kind: str  # "module", "file", "project", "task"
    notation: str

    def __str__(self) -> str:
        return f"{self.kind}:{self.notation}" if self.kind != "module" else self.notation


@dataclass
class DeclaredSourceSet:
    """A source set as declared by a JVM-language plugin."""

    name: str
    language: str = "java"  # "java", "kotlin", "groovy"
    source_dirs: list[Path] = field(default_factory=list)
    resource_dirs: list[Path] = field(default_factory=list)
    output_dirs: list[Path] = field(default_factory=list)


@dataclass
class AndroidVariant:
    name: str
    build_type: str | None = None
    min_sdk: int | None = None
    source_dirs: list[Path] = field(default_factory=list)
    unit_test_dirs: list[Path] = field(default_factory=list)
    android_test_dirs: list[Path] = field(default_factory=list)
    output_dirs: list[Path] = field(default_factory=list)
    unit_test_output_dirs: list[Path] = field(default_factory=list)
    android_test_output_dirs: list[Path] = field(default_factory=list)
    compile: list[DependencySpec] = field(default_factory=list)


@dataclass
class AndroidConfig:
    plugin: str  # e.g. "com.android.application"
    variants: list[AndroidVariant] = field(default_factory=list)
    test_build_type: str | None = "debug"
    variant: str | None = None  # user-configured variant name
    boot_classpath: list[Path] = field(default_factory=list)
    min_sdk: int | None = None  # defaultConfig
    flavor_min_sdks: list[int] = field(default_factory=list)


@dataclass
class CompilerSettings:
    source: str | None = None
    target: str | None = None
    release: str | None = None
    encoding: str | None = None
    jdk_home: str | None = None
    enable_preview: bool = False


@dataclass
class Reports:
    junit: Path | None = None
    jacoco_xml: Path | None = None


@dataclass
class PropertyDeclaration:
    """Key/value overrides contributed by one configuration source."""

    source: str
    values: dict[str, str] = field(default_factory=dict)


@dataclass
class ModuleDescriptor:
    """Read-only snapshot of one module of the host build."""

    path: str
    name: str
    project_dir: Path
    build_dir: Path | None = None
    build_file: Path | None = None
    group: str = ""
    version: str = "unspecified"
    description: str | None = None
    plugins: list[str] = field(default_factory=list)
    skip: bool = False
    source_sets: list[DeclaredSourceSet] = field(default_factory=list)
    configurations: dict[str, list[DependencySpec]] = field(default_factory=dict)
    compiler: CompilerSettings = field(default_factory=CompilerSettings)
    reports: Reports = field(default_factory=Reports)
    android: AndroidConfig | None = None
    properties: list[PropertyDeclaration] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.build_dir is None:
            self.build_dir = self.project_dir / "build"


@dataclass
class ProjectSnapshot:
    """Everything the core needs, captured once per analysis invocation."""

    modules: dict[str, ModuleDescriptor]
    root: str = ROOT_PATH
    repositories: list[Path] = field(default_factory=list)
    task_outputs: dict[str, list[Path]] = field(default_factory=dict)

    @property
    def root_module(self) -> ModuleDescriptor:
        return self.modules[self.root]


# ---------------------------------------------------------------------------
# Resolved tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceSet:
    """Directories for one role of one module; tuples are ordered and unique."""

    name: str
    role: SourceRole
    language: str = "java"
    source_dirs: tuple[Path, ...] = ()
    resource_dirs: tuple[Path, ...] = ()
    output_dirs: tuple[Path, ...] = ()
    variant: str | None = None


@dataclass(frozen=True)
class Classpath:
    configuration: str  # "compile", "runtime", "testCompile", "testRuntime"
    entries: tuple[ClasspathItem, ...] = ()


@dataclass
class ModuleResolution:
    """Per-module facts produced by the resolvers."""

    source_sets: list[SourceSet] = field(default_factory=list)
    classpaths: dict[str, Classpath] = field(default_factory=dict)
    android_properties: dict[str, str] = field(default_factory=dict)
    active_variants: list[str] = field(default_factory=list)

    def dirs(self, role: SourceRole, attr: str = "source_dirs") -> list[Path]:
        out: list[Path] = []
        for ss in self.source_sets:
            if ss.role is role:
                for d in getattr(ss, attr):
                    if d not in out:
                        out.append(d)
        return out


@dataclass
class ProjectNode:
    """One module in the tree; ``parent_index`` refers into ``ProjectTree.nodes``."""

    index: int
    path: str
    name: str
    descriptor: ModuleDescriptor
    parent_index: int | None = None
    children: list[int] = field(default_factory=list)
    skipped: bool = False
    kind: ModuleKind = ModuleKind.AGGREGATOR
    capabilities: Capability = Capability.NONE
    resolution: ModuleResolution | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_index is None

    @property
    def declared(self) -> list[PropertyDeclaration]:
        return self.descriptor.properties


@dataclass
class ProjectTree:
    """Module tree in depth-first preorder (parents before children)."""

    nodes: list[ProjectNode] = field(default_factory=list)
    _by_path: dict[str, int] = field(default_factory=dict, repr=False)

    def add(self, descriptor: ModuleDescriptor, parent: ProjectNode | None) -> ProjectNode:
        if descriptor.path in self._by_path:
            raise DuplicateModuleError(descriptor.path)
        node = ProjectNode(
            index=len(self.nodes),
            path=descriptor.path,
            name=descriptor.name,
            descriptor=descriptor,
            parent_index=parent.index if parent is not None else None,
        )
        self.nodes.append(node)
        self._by_path[node.path] = node.index
        if parent is not None:
            parent.children.append(node.index)
        return node

    @property
    def root(self) -> ProjectNode:
        return self.nodes[0]

    def get(self, path: str) -> ProjectNode | None:
        idx = self._by_path.get(path)
        return self.nodes[idx] if idx is not None else None

    def parent(self, node: ProjectNode) -> ProjectNode | None:
        if node.parent_index is None:
            return None
        return self.nodes[node.parent_index]

    def children(self, node: ProjectNode) -> list[ProjectNode]:
        return [self.nodes[i] for i in node.children]

    def __iter__(self):
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)


def path_segments(path: str) -> list[str]:
    """Split a module path like ``:a:b`` into ``["a", "b"]``."""
    return [p for p in path.split(":") if p]


def parent_path(path: str) -> str | None:
    segments = path_segments(path)
    if not segments:
        return None
    return ":" + ":".join(segments[:-1]) if len(segments) > 1 else ROOT_PATH
