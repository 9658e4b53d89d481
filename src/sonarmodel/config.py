"""Optional analysis settings read from ``.sonarmodel.toml`` or ``pyproject.toml``."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from sonarmodel.errors import ConfigurationError
from sonarmodel.model import ModuleKind, PropertyDeclaration

logger = logging.getLogger(__name__)

CONFIG_SOURCE = "config"


@dataclass
class AnalysisConfig:
    max_workers: int | None = None
    scanner_command: list[str] = field(default_factory=lambda: ["sonar-scanner"])
    android_variant: str | None = None
    android_variants: dict[str, str] = field(default_factory=dict)
    skip: list[str] = field(default_factory=list)
    excluded_kinds: list[ModuleKind] = field(default_factory=lambda: [ModuleKind.AGGREGATOR])
    repositories: list[Path] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)

    def declarations(self) -> list[PropertyDeclaration]:
        if not self.properties:
            return []
        return [PropertyDeclaration(CONFIG_SOURCE, dict(self.properties))]


def _read_table(project_dir: Path) -> dict | None:
    # Try .sonarmodel.toml first
    own = project_dir / ".sonarmodel.toml"
    if own.exists():
        try:
            with open(own, "rb") as f:
                return tomllib.load(f).get("sonarmodel", {})
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.debug("Ignoring unreadable %s: %s", own, e)

    # Fall back to [tool.sonarmodel] in pyproject.toml
    pyproject = project_dir / "pyproject.toml"
    if pyproject.exists():
        try:
            with open(pyproject, "rb") as f:
                data = tomllib.load(f)
            table = data.get("tool", {}).get("sonarmodel")
            if table is not None:
                return table
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.debug("Ignoring unreadable %s: %s", pyproject, e)

    return None


def _kind(name: str) -> ModuleKind:
    try:
        return ModuleKind(name)
    except ValueError:
        choices = ", ".join(k.value for k in ModuleKind)
        raise ConfigurationError(
            f"Unknown module kind {name!r} in excluded_kinds (choose from {choices})"
        ) from None


def config_from_table(table: dict, base_dir: Path) -> AnalysisConfig:
    config = AnalysisConfig()
    if "max_workers" in table:
        config.max_workers = int(table["max_workers"])
    command = table.get("scanner_command")
    if isinstance(command, str):
        config.scanner_command = command.split()
    elif command:
        config.scanner_command = [str(c) for c in command]
    config.android_variant = table.get("android_variant")
    config.android_variants = {
        str(k): str(v) for k, v in table.get("android_variants", {}).items()
    }
    config.skip = [str(p) for p in table.get("skip", [])]
    if "excluded_kinds" in table:
        config.excluded_kinds = [_kind(k) for k in table["excluded_kinds"]]
    config.repositories = [
        (base_dir / Path(r).expanduser()) for r in table.get("repositories", [])
    ]
    config.properties = {str(k): str(v) for k, v in table.get("properties", {}).items()}
    return config


def load_config(project_dir: Path) -> AnalysisConfig:
    """Return the configuration found in *project_dir*, or defaults."""
    table = _read_table(project_dir)
    if table is None:
        return AnalysisConfig()
    logger.debug("Loaded sonarmodel configuration from %s", project_dir)
    return config_from_table(table, project_dir)
