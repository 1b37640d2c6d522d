"""Exception hierarchy for plantuml-exporter.

Every failure the exporter can detect is an :class:`ExporterError` so that
callers (the plugin, the CLI) can catch one type at the boundary and turn
it into a user-facing notification.
"""

from __future__ import annotations


class ExporterError(Exception):
    """Base class for all plantuml-exporter errors."""


class EncodingError(ExporterError):
    """A diagram payload (or token) could not be encoded (or decoded)."""


class StoreError(ExporterError):
    """A document-store read, write or create was rejected."""


class SettingsError(ExporterError):
    """The settings file could not be read or written."""


class RenderError(ExporterError):
    """The rendering server did not return an image."""
