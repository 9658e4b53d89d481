"""Scanner invocation boundary: hand the final map to the analysis engine."""

from __future__ import annotations

import logging
import subprocess
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from sonarmodel import properties as props
from sonarmodel.renderer.properties import render, write_properties

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "sonar-project.properties"


class ScannerEngine(Protocol):
    """Anything that can run an analysis from a flat property map."""

    def analyze(self, properties: Mapping[str, str]) -> int:
        """Run the analysis and return its exit status unchanged."""
        ...


class SonarScannerCli:
    """Run the scanner command line with the map as its project settings file."""

    def __init__(self, command: list[str], work_dir: Path) -> None:
        self.command = list(command)
        self.work_dir = work_dir

    def analyze(self, properties: Mapping[str, str]) -> int:
        settings = self.work_dir / SETTINGS_FILE_NAME
        write_properties(properties, settings)
        cmd = [*self.command, f"-Dproject.settings={settings}"]
        logger.info("Running %s", " ".join(cmd))
        result = subprocess.run(cmd, cwd=properties.get(props.PROJECT_BASE_DIR))
        logger.debug("Scanner exited with status %d", result.returncode)
        return result.returncode


class PropertiesDump:
    """Write the map instead of analyzing (``-`` writes to stdout)."""

    def __init__(self, path: Path | str, fmt: str = "properties") -> None:
        self.path = path
        self.fmt = fmt

    def analyze(self, properties: Mapping[str, str]) -> int:
        if str(self.path) == "-":
            sys.stdout.write(render(properties, self.fmt))
        else:
            write_properties(properties, Path(self.path), self.fmt)
            logger.info("Wrote %d properties to %s", len(properties), self.path)
        return 0


def run_analysis(engine: ScannerEngine, properties: Mapping[str, str]) -> int:
    """Invoke *engine* unless the map asks for the analysis to be skipped."""
    if props.is_true(properties.get(props.SKIP)):
        logger.warning("Sonar analysis skipped (%s=true)", props.SKIP)
        return 0
    return engine.analyze(properties)
