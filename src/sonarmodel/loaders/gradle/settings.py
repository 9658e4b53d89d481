"""Parse ``settings.gradle(.kts)``: root project name, includes and project dirs."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from sonarmodel.errors import SnapshotError
from sonarmodel.loaders.gradle.script import STRING_RE, strip_comments
from sonarmodel.model import path_segments

logger = logging.getLogger(__name__)

SETTINGS_FILES = ("settings.gradle.kts", "settings.gradle")

_ROOT_NAME_RE = re.compile(r"""rootProject\.name\s*=\s*["']([^"']+)["']""")
_INCLUDE_RE = re.compile(r"""^\s*include\b\s*(\(?)(.*)$""", re.MULTILINE)
_PROJECT_DIR_RE = re.compile(
    r"""project\(\s*["']([^"']+)["']\s*\)\.projectDir\s*=\s*"""
    r"""(?:file\(\s*)?["']([^"']+)["']"""
)


@dataclass
class Settings:
    root_dir: Path
    root_name: str
    settings_file: Path | None = None
    includes: list[str] = field(default_factory=list)  # module paths, ":a:b"
    project_dirs: dict[str, Path] = field(default_factory=dict)

    def project_dir(self, path: str) -> Path:
        if path in self.project_dirs:
            return self.project_dirs[path]
        return self.root_dir.joinpath(*path_segments(path))


def find_settings_file(root_dir: Path) -> Path | None:
    for name in SETTINGS_FILES:
        candidate = root_dir / name
        if candidate.exists():
            return candidate
    return None


def _normalize(path: str) -> str:
    return ":" + ":".join(path_segments(path.strip()))


def _include_arguments(text: str) -> list[str]:
    paths: list[str] = []
    for m in _INCLUDE_RE.finditer(text):
        rest = m.group(2)
        if m.group(1):
            # include(...) may span several lines
            end = text.find(")", m.start(2))
            rest = text[m.start(2) : end if end >= 0 else len(text)]
        paths.extend(STRING_RE.findall(rest))
    return paths


def parse_settings(root_dir: Path) -> Settings:
    settings_file = find_settings_file(root_dir)
    settings = Settings(root_dir=root_dir, root_name=root_dir.name, settings_file=settings_file)
    if settings_file is None:
        return settings

    try:
        text = strip_comments(settings_file.read_text(encoding="utf-8"))
    except OSError as e:
        raise SnapshotError(f"Cannot read {settings_file}: {e}") from e

    m = _ROOT_NAME_RE.search(text)
    if m:
        settings.root_name = m.group(1)

    seen: set[str] = set()
    for raw in _include_arguments(text):
        path = _normalize(raw)
        if path == ":" or path in seen:
            continue
        # Including ":a:b" implicitly includes ":a"
        segments = path_segments(path)
        for depth in range(1, len(segments) + 1):
            partial = ":" + ":".join(segments[:depth])
            if partial not in seen:
                seen.add(partial)
                settings.includes.append(partial)

    for m in _PROJECT_DIR_RE.finditer(text):
        settings.project_dirs[_normalize(m.group(1))] = (root_dir / m.group(2)).resolve()

    logger.debug(
        "%s: root project %r with %d included projects",
        settings_file,
        settings.root_name,
        len(settings.includes),
    )
    return settings
