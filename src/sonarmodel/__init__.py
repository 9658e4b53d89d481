"""sonarmodel: reduce a Gradle project model to a flat scanner property map."""

__version__ = "0.1.0"
