"""Load a :class:`ProjectSnapshot` from a JSON or YAML document dumped by the build."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from sonarmodel.classpath import DEFAULT_REPOSITORIES
from sonarmodel.errors import DuplicateModuleError, SnapshotError
from sonarmodel.model import (
    ROOT_PATH,
    AndroidConfig,
    AndroidVariant,
    CompilerSettings,
    DeclaredSourceSet,
    DependencySpec,
    ModuleDescriptor,
    ProjectSnapshot,
    PropertyDeclaration,
    Reports,
)

logger = logging.getLogger(__name__)

_DEPENDENCY_KINDS = ("module", "file", "project", "task")


def _paths(base: Path, values: list[str] | None) -> list[Path]:
    return [_path(base, v) for v in values or []]


def _path(base: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else base / path


def _optional_path(base: Path, value: str | None) -> Path | None:
    return _path(base, value) if value else None


def _dependency(module: str, raw: Any) -> DependencySpec:
    if isinstance(raw, str):
        return DependencySpec("module", raw)
    if isinstance(raw, dict) and len(raw) == 1:
        kind, notation = next(iter(raw.items()))
        if kind in _DEPENDENCY_KINDS:
            return DependencySpec(kind, str(notation))
    raise SnapshotError(f"Module {module}: unrecognised dependency entry {raw!r}")


def _variant(module: str, base: Path, raw: dict) -> AndroidVariant:
    return AndroidVariant(
        name=raw["name"],
        build_type=raw.get("build_type"),
        min_sdk=raw.get("min_sdk"),
        source_dirs=_paths(base, raw.get("source_dirs")),
        unit_test_dirs=_paths(base, raw.get("unit_test_dirs")),
        android_test_dirs=_paths(base, raw.get("android_test_dirs")),
        output_dirs=_paths(base, raw.get("output_dirs")),
        unit_test_output_dirs=_paths(base, raw.get("unit_test_output_dirs")),
        android_test_output_dirs=_paths(base, raw.get("android_test_output_dirs")),
        compile=[_dependency(module, d) for d in raw.get("compile", [])],
    )


def _android(module: str, base: Path, raw: dict | None) -> AndroidConfig | None:
    if raw is None:
        return None
    return AndroidConfig(
        plugin=raw.get("plugin", "com.android.application"),
        variants=[_variant(module, base, v) for v in raw.get("variants", [])],
        test_build_type=raw.get("test_build_type", "debug"),
        variant=raw.get("variant"),
        boot_classpath=_paths(base, raw.get("boot_classpath")),
        min_sdk=raw.get("min_sdk"),
        flavor_min_sdks=list(raw.get("flavor_min_sdks", [])),
    )


def module_from_dict(raw: dict, base_dir: Path) -> ModuleDescriptor:
    """Build one :class:`ModuleDescriptor`; relative paths resolve against its project dir."""
    try:
        path = raw["path"]
        project_dir = _path(base_dir, raw["project_dir"])
    except KeyError as e:
        raise SnapshotError(f"Module entry is missing {e.args[0]!r}: {raw!r}") from None

    source_sets = [
        DeclaredSourceSet(
            name=ss["name"],
            language=ss.get("language", "java"),
            source_dirs=_paths(project_dir, ss.get("source_dirs")),
            resource_dirs=_paths(project_dir, ss.get("resource_dirs")),
            output_dirs=_paths(project_dir, ss.get("output_dirs")),
        )
        for ss in raw.get("source_sets", [])
    ]
    configurations = {
        name: [_dependency(path, d) for d in deps]
        for name, deps in raw.get("configurations", {}).items()
    }
    compiler_raw = raw.get("compiler") or {}
    compiler = CompilerSettings(
        source=compiler_raw.get("source"),
        target=compiler_raw.get("target"),
        release=compiler_raw.get("release"),
        encoding=compiler_raw.get("encoding"),
        jdk_home=compiler_raw.get("jdk_home"),
        enable_preview=bool(compiler_raw.get("enable_preview", False)),
    )
    reports_raw = raw.get("reports") or {}
    reports = Reports(
        junit=_optional_path(project_dir, reports_raw.get("junit")),
        jacoco_xml=_optional_path(project_dir, reports_raw.get("jacoco_xml")),
    )
    declarations = [
        PropertyDeclaration(
            source=d.get("source", "build"),
            values={str(k): "" if v is None else str(v) for k, v in d.get("values", {}).items()},
        )
        for d in raw.get("properties", [])
    ]
    return ModuleDescriptor(
        path=path,
        name=raw.get("name") or (path.rsplit(":", 1)[-1] or project_dir.name),
        project_dir=project_dir,
        build_dir=_optional_path(project_dir, raw.get("build_dir")),
        build_file=_optional_path(project_dir, raw.get("build_file")),
        group=raw.get("group") or "",
        version=str(raw.get("version") or "unspecified"),
        description=raw.get("description"),
        plugins=list(raw.get("plugins", [])),
        skip=bool(raw.get("skip", False)),
        source_sets=source_sets,
        configurations=configurations,
        compiler=compiler,
        reports=reports,
        android=_android(path, project_dir, raw.get("android")),
        properties=declarations,
    )


def snapshot_from_dict(data: dict, base_dir: Path) -> ProjectSnapshot:
    if not isinstance(data, dict) or not isinstance(data.get("modules"), list):
        raise SnapshotError("Snapshot must be an object with a 'modules' list")

    modules: dict[str, ModuleDescriptor] = {}
    for raw in data["modules"]:
        try:
            module = module_from_dict(raw, base_dir)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SnapshotError(f"Malformed module entry: {e}") from e
        if module.path in modules:
            raise DuplicateModuleError(module.path)
        modules[module.path] = module

    repositories = _paths(base_dir, data.get("repositories")) or list(DEFAULT_REPOSITORIES)
    task_outputs = {
        task: _paths(base_dir, outputs)
        for task, outputs in (data.get("task_outputs") or {}).items()
    }
    return ProjectSnapshot(
        modules=modules,
        root=data.get("root", ROOT_PATH),
        repositories=repositories,
        task_outputs=task_outputs,
    )


def load_json_snapshot(path: Path) -> ProjectSnapshot:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Invalid JSON in snapshot {path}: {e}") from e
    snapshot = snapshot_from_dict(data, path.parent.resolve())
    logger.debug("Loaded %d modules from %s", len(snapshot.modules), path)
    return snapshot


def load_yaml_snapshot(path: Path) -> ProjectSnapshot:
    """Same document as :func:`load_json_snapshot`, written as YAML."""
    import yaml

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e
    except yaml.YAMLError as e:
        raise SnapshotError(f"Invalid YAML in snapshot {path}: {e}") from e
    snapshot = snapshot_from_dict(data, path.parent.resolve())
    logger.debug("Loaded %d modules from %s", len(snapshot.modules), path)
    return snapshot
