"""Error taxonomy for snapshot loading, resolution and reduction."""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for failures that must prevent the scanner from running."""


class SnapshotError(AnalysisError):
    """The project snapshot could not be loaded or is malformed."""


class DuplicateModuleError(SnapshotError):
    """Two modules share the same path, or the same property key prefix."""

    def __init__(self, path: str, other: str | None = None, prefix: str | None = None) -> None:
        if other is None:
            message = f"Duplicate module path in project tree: {path!r}"
        else:
            message = (
                f"Modules {other!r} and {path!r} both map to the property key "
                f"prefix {prefix!r}"
            )
        super().__init__(message)
        self.path = path
        self.other = other
        self.prefix = prefix


class DependencyResolutionError(AnalysisError):
    """A classpath entry could not be resolved to a concrete location."""

    def __init__(self, module: str, notation: str, reason: str) -> None:
        super().__init__(
            f"Dependency resolution failed for module {module!r}: "
            f"{notation} ({reason})"
        )
        self.module = module
        self.notation = notation
        self.reason = reason


class ConfigurationError(AnalysisError):
    """The analysis configuration is invalid for this project."""


class ConflictingConfigurationError(ConfigurationError):
    """The same key was declared with different values at equal precedence."""

    def __init__(self, module: str, key: str, sources: list[str]) -> None:
        super().__init__(
            f"Conflicting configuration for {key!r} on module {module!r}: "
            f"declared with different values by {', '.join(sources)}"
        )
        self.module = module
        self.key = key
        self.sources = sources
