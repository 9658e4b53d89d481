"""Gradle version catalogs (``gradle/libs.versions.toml``)."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class VersionCatalog:
    libraries: dict[str, str] = field(default_factory=dict)  # alias -> coordinate
    bundles: dict[str, list[str]] = field(default_factory=dict)  # name -> aliases

    @classmethod
    def load(cls, catalog_path: Path) -> VersionCatalog:
        catalog = cls()
        try:
            with open(catalog_path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Could not parse version catalog %s: %s", catalog_path, e)
            return catalog

        versions: dict[str, str] = {}
        for alias, ver in data.get("versions", {}).items():
            if isinstance(ver, str):
                versions[alias] = ver
            elif isinstance(ver, dict):
                versions[alias] = ver.get("strictly", ver.get("require", ver.get("prefer", "")))

        for alias, spec in data.get("libraries", {}).items():
            if isinstance(spec, str):
                catalog.libraries[alias] = spec
                continue
            if not isinstance(spec, dict):
                continue
            module = spec.get("module") or f"{spec.get('group', '')}:{spec.get('name', '')}"
            ver_ref = spec.get("version", "")
            if isinstance(ver_ref, dict):
                ver = versions.get(ver_ref.get("ref", ""), "")
            else:
                ver = str(ver_ref)
            catalog.libraries[alias] = f"{module}:{ver}" if ver else module

        for bundle_name, members in data.get("bundles", {}).items():
            if isinstance(members, list):
                catalog.bundles[bundle_name] = members
        logger.debug(
            "Version catalog %s: %d libraries, %d bundles",
            catalog_path,
            len(catalog.libraries),
            len(catalog.bundles),
        )
        return catalog

    @staticmethod
    def _matches(alias: str, accessor: str) -> bool:
        # TOML aliases use '-' or '_' where the Kotlin accessor uses '.'
        return alias.replace("-", ".").replace("_", ".") == accessor

    def resolve(self, ref: str) -> list[str] | None:
        """Resolve ``libs.foo.bar`` or ``libs.bundles.foo`` to coordinates."""
        prefix, _, remainder = ref.partition(".")
        if prefix != "libs" or not remainder:
            return None

        if remainder.startswith("bundles."):
            bundle = remainder[len("bundles.") :]
            members = next(
                (m for name, m in self.bundles.items() if self._matches(name, bundle)), None
            )
            if members is None:
                return None
            return [self.libraries.get(alias, alias) for alias in members]

        for alias, coordinate in self.libraries.items():
            if self._matches(alias, remainder):
                return [coordinate]
        return None


def find_catalog(project_dir: Path, root_dir: Path) -> VersionCatalog:
    """Use the nearest ``gradle/libs.versions.toml`` from *project_dir* up to *root_dir*."""
    candidates = [project_dir, *project_dir.parents]
    for directory in candidates:
        catalog_path = directory / "gradle" / "libs.versions.toml"
        if catalog_path.exists():
            logger.debug("Using version catalog: %s", catalog_path)
            return VersionCatalog.load(catalog_path)
        if directory == root_dir:
            break
    return VersionCatalog()
