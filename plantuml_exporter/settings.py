"""Exporter settings and their JSON persistence.

Three values are configurable:

- ``server_url``: base URL of the PlantUML server.
- ``output_format``: image format requested from the server.
- ``write_mode``: write the result to a sibling ``-exported`` file or
  overwrite the source file.

Settings are stored as a small JSON object.  Loading merges the stored
values over :data:`DEFAULT_SETTINGS`, so a partial or older file still
yields a complete :class:`Settings`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from plantuml_exporter.errors import SettingsError

_log = logging.getLogger("settings")

DEFAULT_SERVER_URL = "http://www.plantuml.com/plantuml"

AUTO_SETTINGS_FILENAME = ".plantuml-exporter.json"
"""Settings file looked up in the working directory by the CLI."""


class OutputFormat(str, Enum):
    """Image format requested from the PlantUML server."""

    PNG = "png"
    SVG = "svg"


class WriteMode(str, Enum):
    """Where the transformed document is written."""

    NEW_FILE = "new-file"
    """Write ``<basename>-exported<ext>`` next to the source."""

    IN_PLACE = "in-place"
    """Overwrite the source document."""


@dataclass(frozen=True)
class Settings:
    """Exporter configuration.

    Immutable: use :meth:`with_changes` to derive an updated copy.
    """

    server_url: str = DEFAULT_SERVER_URL
    output_format: OutputFormat = OutputFormat.PNG
    write_mode: WriteMode = WriteMode.NEW_FILE

    @classmethod
    def from_dict(cls, data: dict) -> Settings:
        """Merge *data* over the defaults.

        Unknown keys are ignored.  Values that do not parse fall back to
        the default with a warning.  An empty ``server_url`` falls back
        to :data:`DEFAULT_SERVER_URL`.
        """
        defaults = cls()
        server_url = data.get("server_url") or defaults.server_url
        if not isinstance(server_url, str):
            _log.warning("Ignoring non-string server_url: %r", server_url)
            server_url = defaults.server_url
        return cls(
            server_url=server_url,
            output_format=_parse_enum(
                OutputFormat, data.get("output_format"), defaults.output_format,
            ),
            write_mode=_parse_enum(
                WriteMode, data.get("write_mode"), defaults.write_mode,
            ),
        )

    def to_dict(self) -> dict:
        return {
            "server_url": self.server_url,
            "output_format": self.output_format.value,
            "write_mode": self.write_mode.value,
        }

    def with_changes(self, **changes: object) -> Settings:
        """Return a copy with *changes* applied, parsed like stored values.

        Raises:
            SettingsError: If a key is unknown or a value is invalid.
        """
        unknown = set(changes) - set(SETTING_KEYS)
        if unknown:
            raise SettingsError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        parsed: dict[str, object] = {}
        for key, value in changes.items():
            if key == "server_url":
                parsed[key] = str(value) if value else DEFAULT_SERVER_URL
            elif key == "output_format":
                parsed[key] = _require_enum(OutputFormat, key, value)
            else:
                parsed[key] = _require_enum(WriteMode, key, value)
        return replace(self, **parsed)


SETTING_KEYS = ("server_url", "output_format", "write_mode")
"""Names of all settings, in display order."""

DEFAULT_SETTINGS = Settings()


def _parse_enum(enum_cls, value, default):
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        _log.warning(
            "Ignoring invalid %s %r (expected one of: %s), using %s",
            enum_cls.__name__, value,
            ", ".join(m.value for m in enum_cls), default.value,
        )
        return default


def _require_enum(enum_cls, key: str, value):
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise SettingsError(
            f"Invalid {key} {value!r} (expected one of: "
            f"{', '.join(m.value for m in enum_cls)})"
        ) from exc


class SettingsFile:
    """JSON file holding one :class:`Settings` value."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Settings:
        """Read settings from disk.

        A missing file yields :data:`DEFAULT_SETTINGS`.

        Raises:
            SettingsError: If the file exists but is not a JSON object.
        """
        if not self._path.exists():
            _log.debug("No settings file at %s, using defaults", self._path)
            return DEFAULT_SETTINGS
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SettingsError(f"Cannot read settings from {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise SettingsError(
                f"Settings file {self._path} must contain a JSON object, "
                f"got {type(data).__name__}"
            )
        return Settings.from_dict(data)

    def save(self, settings: Settings) -> None:
        """Write *settings* to disk, creating parent directories."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(settings.to_dict(), indent=2) + "\n",
                encoding="utf-8",
            )
        except OSError as exc:
            raise SettingsError(f"Cannot write settings to {self._path}: {exc}") from exc
        _log.debug("Saved settings to %s", self._path)
