"""Loaders that turn a build on disk into a read-only :class:`ProjectSnapshot`."""
