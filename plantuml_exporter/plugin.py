"""Plugin lifecycle and host integration.

:class:`ExporterPlugin` is a plain object that talks to its host through
the :class:`Host` protocol: on :meth:`~ExporterPlugin.start` it loads its
settings and registers the export command as a callback, on
:meth:`~ExporterPlugin.stop` it removes it again.  Settings are persisted
after every change.

:class:`HeadlessHost` is an in-process host (used by the CLI and the
tests): it keeps a command table, an active document, a document store
and a :class:`LogNotifier`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from plantuml_exporter.exporter import ExportResult, Notifier, export_diagrams
from plantuml_exporter.settings import DEFAULT_SETTINGS, Settings, SettingsFile
from plantuml_exporter.store import Document, DocumentStore

_log = logging.getLogger("plugin")

EXPORT_COMMAND_ID = "export-plantuml-diagrams"
EXPORT_COMMAND_NAME = "Export PlantUML diagrams to images"


@runtime_checkable
class Host(Protocol):
    """What the plugin needs from the application hosting it."""

    @property
    def store(self) -> DocumentStore:
        ...

    @property
    def notifier(self) -> Notifier:
        ...

    def active_document(self) -> Document | None:
        """Currently open document, or ``None``."""
        ...

    def add_command(self, command_id: str, name: str, callback: Callable[[], object]) -> None:
        ...

    def remove_command(self, command_id: str) -> None:
        ...


class LogNotifier:
    """Notification channel that logs each message and remembers it."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("notice")
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)
        self._logger.info("%s", message)


@dataclass
class _Command:
    name: str
    callback: Callable[[], object]


@dataclass
class HeadlessHost:
    """Minimal in-process :class:`Host`."""

    store: DocumentStore
    notifier: Notifier = field(default_factory=LogNotifier)
    document: Document | None = None
    """Document returned by :meth:`active_document`."""

    commands: dict[str, _Command] = field(default_factory=dict)

    def active_document(self) -> Document | None:
        return self.document

    def add_command(self, command_id: str, name: str, callback: Callable[[], object]) -> None:
        self.commands[command_id] = _Command(name, callback)

    def remove_command(self, command_id: str) -> None:
        self.commands.pop(command_id, None)

    def run_command(self, command_id: str) -> object:
        """Invoke a registered command and return its result.

        Raises:
            KeyError: If no command is registered under *command_id*.
        """
        try:
            command = self.commands[command_id]
        except KeyError:
            raise KeyError(f"Unknown command: {command_id}") from None
        return command.callback()


class ExporterPlugin:
    """PlantUML exporter plugin.

    Usage::

        host = HeadlessHost(FileSystemStore(vault), document=Document("a.md"))
        plugin = ExporterPlugin(host, SettingsFile(vault / ".plantuml-exporter.json"))
        plugin.start()
        result = host.run_command(EXPORT_COMMAND_ID)
        plugin.stop()
    """

    def __init__(self, host: Host, settings_file: SettingsFile | None = None) -> None:
        self._host = host
        self._settings_file = settings_file
        self._settings: Settings = DEFAULT_SETTINGS
        self._started = False

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def started(self) -> bool:
        return self._started

    # -- lifecycle ----------------------------------------------------------

    def start(self) -> None:
        """Load settings and register the export command."""
        self.load_config()
        self._host.add_command(EXPORT_COMMAND_ID, EXPORT_COMMAND_NAME, self.export)
        self._started = True
        _log.debug("PlantUML exporter started")

    def stop(self) -> None:
        """Unregister the export command."""
        self._host.remove_command(EXPORT_COMMAND_ID)
        self._started = False
        _log.debug("PlantUML exporter stopped")

    def load_config(self) -> Settings:
        """Load settings from the settings file (defaults when there is none)."""
        if self._settings_file is not None:
            self._settings = self._settings_file.load()
        return self._settings

    def save_config(self) -> None:
        """Persist the current settings (no-op without a settings file)."""
        if self._settings_file is not None:
            self._settings_file.save(self._settings)

    def update_settings(self, **changes: object) -> Settings:
        """Apply *changes* and persist them immediately.

        Raises:
            SettingsError: If a key or value is invalid (nothing is saved).
        """
        self._settings = self._settings.with_changes(**changes)
        self.save_config()
        return self._settings

    def override_settings(self, **changes: object) -> Settings:
        """Apply *changes* for this session only (not persisted).

        Raises:
            SettingsError: If a key or value is invalid.
        """
        self._settings = self._settings.with_changes(**changes)
        return self._settings

    # -- command ------------------------------------------------------------

    def export(self) -> ExportResult:
        """Export the diagrams of the host's active document."""
        return export_diagrams(
            self._host.active_document(),
            self._host.store,
            self._settings,
            self._host.notifier,
        )
