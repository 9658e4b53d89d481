"""Source-set resolver protocol and directory checks shared by the resolvers."""

from __future__ import annotations

import errno
import logging
import os
from pathlib import Path
from typing import Protocol

from sonarmodel.model import ModuleResolution, ProjectNode

logger = logging.getLogger(__name__)


class SourceSetResolver(Protocol):
    """Protocol for per-module source-set discovery."""

    def can_handle(self, node: ProjectNode) -> bool:
        """Return True if this resolver applies to the given module."""
        ...

    def resolve(self, node: ProjectNode, resolution: ModuleResolution) -> None:
        """Append the module's source sets to *resolution*."""
        ...


def _unusable_reason(path: Path) -> str | None:
    try:
        path.stat()
    except FileNotFoundError:
        # Missing directories are kept; existence is filtered during reduction.
        return None
    except OSError as e:
        if e.errno == errno.ELOOP:
            return "symbolic link loop"
        return e.strerror or str(e)
    if path.is_dir() and not os.access(path, os.R_OK | os.X_OK):
        return "not readable"
    return None


def clean_dirs(module: str, dirs: list[Path]) -> tuple[Path, ...]:
    """Deduplicate *dirs* in order, dropping unusable ones with a warning.

    Two entries that alias the same real directory are kept once.
    """
    seen: set[str] = set()
    out: list[Path] = []
    for d in dirs:
        path = Path(os.path.abspath(d))
        reason = _unusable_reason(path)
        if reason is not None:
            logger.warning(
                "Ignoring directory %s of module %s: %s", path, module, reason
            )
            continue
        real = os.path.realpath(path)
        if real in seen:
            logger.debug("Directory %s of module %s already listed", path, module)
            continue
        seen.add(real)
        out.append(path)
    return tuple(out)
