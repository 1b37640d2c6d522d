"""Export PlantUML blocks of a markdown document as image references.

One invocation runs through a small state machine::

    Idle -> Scanning -> NoBlocksFound      (notify, no write)
                     -> NoChangesApplied   (notify, no write)
                     -> Writing -> Done    (notify success or failure)

:func:`transform` is the pure part: it rewrites every ```` ```plantuml ````
block into ``![PlantUML Diagram](<server>/<format>/<token>)``.
:func:`route_output` decides where the result goes, based on
:class:`~plantuml_exporter.settings.WriteMode`.  :func:`export_diagrams`
ties both to a document store and a notification channel.

Every failure is caught where it is detected and reported through the
notifier; :func:`export_diagrams` never raises for document-store or
encoding problems and never retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Protocol, runtime_checkable

from plantuml_exporter.encoder import encode
from plantuml_exporter.errors import StoreError
from plantuml_exporter.fences import PLANTUML_FENCE, Block, BlockFailure, FenceDef, replace_blocks
from plantuml_exporter.references import image_reference
from plantuml_exporter.settings import Settings, WriteMode
from plantuml_exporter.store import Document, DocumentStore

_log = logging.getLogger("exporter")

EXPORTED_SUFFIX = "-exported"
"""Inserted between the basename and the extension of the generated file."""


@runtime_checkable
class Notifier(Protocol):
    """User-facing notification channel (fire and forget)."""

    def notify(self, message: str) -> None:
        ...


class Outcome(str, Enum):
    """Terminal state of one export invocation."""

    NO_ACTIVE_DOCUMENT = "no-active-document"
    READ_FAILED = "read-failed"
    NO_BLOCKS_FOUND = "no-blocks-found"
    NO_CHANGES_APPLIED = "no-changes-applied"
    WRITTEN = "written"
    WRITE_FAILED = "write-failed"


@dataclass
class TransformResult:
    """Result of :func:`transform`.

    Invariant: ``encoded <= matched``.
    """

    text: str
    matched: int
    encoded: int
    failures: list[BlockFailure] = field(default_factory=list)


@dataclass
class ExportResult:
    """Result of :func:`export_diagrams` (or :func:`route_output`)."""

    outcome: Outcome
    matched: int = 0
    encoded: int = 0
    target: Document | None = None
    """Document that was written, ``None`` when nothing was written."""

    message: str = ""
    """Final message sent to the notifier."""

    @property
    def ok(self) -> bool:
        """``True`` for outcomes that are not errors."""
        return self.outcome in (Outcome.WRITTEN, Outcome.NO_BLOCKS_FOUND)


def _send(notifier: Notifier | None, message: str) -> str:
    if notifier is not None:
        notifier.notify(message)
    return message


# ---------------------------------------------------------------------------
# Transformation
# ---------------------------------------------------------------------------


def transform(
    text: str,
    settings: Settings,
    notifier: Notifier | None = None,
    fence: FenceDef = PLANTUML_FENCE,
) -> TransformResult:
    """Replace every diagram block in *text* with an image reference.

    Blocks whose payload cannot be encoded are left untouched and
    reported through *notifier*, one message per block.

    Args:
        text: Markdown document body.
        settings: Provides the server URL and output format.
        notifier: Optional notification channel for per-block failures.
        fence: Block delimiter definition.
    """
    server_url = settings.server_url
    output_format = settings.output_format.value

    def _reference(block: Block) -> str:
        return image_reference(server_url, output_format, encode(block.payload))

    def _report(failure: BlockFailure) -> None:
        _log.error(
            "Cannot encode block at offset %d: %s",
            failure.block.start, failure.error,
        )
        _send(notifier, f"Error processing PlantUML block: {failure.error}")

    result = replace_blocks(text, _reference, fence=fence, on_failure=_report)
    return TransformResult(
        text=result.text,
        matched=result.matched,
        encoded=result.replaced,
        failures=result.failures,
    )


# ---------------------------------------------------------------------------
# Output routing
# ---------------------------------------------------------------------------


def exported_path(document: Document) -> str:
    """Path of the generated sibling document for *document*.

    >>> exported_path(Document("notes/design.md"))
    'notes/design-exported.md'
    """
    name = f"{document.basename}{EXPORTED_SUFFIX}{document.extension}"
    if not document.parent:
        return name
    return str(PurePosixPath(document.parent) / name)


def route_output(
    write_mode: WriteMode,
    document: Document,
    text: str,
    store: DocumentStore,
    notifier: Notifier | None = None,
    count: int = 0,
) -> ExportResult:
    """Write *text* according to *write_mode*.

    - :attr:`WriteMode.NEW_FILE`: write to :func:`exported_path`,
      overwriting that document if it already exists.  The source
      document is never touched.
    - :attr:`WriteMode.IN_PLACE`: overwrite *document*.  No document is
      created.

    Store failures are caught, reported and returned as
    :attr:`Outcome.WRITE_FAILED`.

    Args:
        count: Number of exported blocks, used in the summary message.
    """
    try:
        if write_mode is WriteMode.IN_PLACE:
            store.write(document, text)
            target = document
            message = f"Exported {count} PlantUML diagram(s) in place: {document.name}"
        else:
            path = exported_path(document)
            existing = store.exists(path)
            if existing is not None:
                store.write(existing, text)
                target = existing
                message = f"Exported {count} PlantUML diagram(s) to existing file: {target.name}"
            else:
                target = store.create(path, text)
                message = f"Exported {count} PlantUML diagram(s) to new file: {target.name}"
    except StoreError as exc:
        _log.error("Error writing exported file: %s", exc)
        return ExportResult(
            Outcome.WRITE_FAILED,
            message=_send(notifier, f"Error saving exported file: {exc}"),
        )

    _log.info("Saved: %s", target.path)
    return ExportResult(Outcome.WRITTEN, target=target, message=_send(notifier, message))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def export_diagrams(
    document: Document | None,
    store: DocumentStore,
    settings: Settings,
    notifier: Notifier | None = None,
) -> ExportResult:
    """Export the PlantUML blocks of *document* and write the result.

    Args:
        document: The active document, or ``None`` when nothing is open.
        store: Document store used for the read and the write.
        settings: Configuration snapshot for this invocation.  Not
            modified.
        notifier: Receives every user-facing message.

    Returns:
        :class:`ExportResult` describing the terminal state.
    """
    if document is None:
        return ExportResult(
            Outcome.NO_ACTIVE_DOCUMENT,
            message=_send(notifier, "No active Markdown file found."),
        )

    _log.debug("Scanning %s", document.path)
    try:
        text = store.read(document)
    except StoreError as exc:
        _log.error("Error reading %s: %s", document.path, exc)
        return ExportResult(
            Outcome.READ_FAILED,
            message=_send(notifier, f"Error reading file: {exc}"),
        )

    result = transform(text, settings, notifier)
    _log.debug(
        "  %d block(s) matched, %d encoded", result.matched, result.encoded,
    )

    if result.matched == 0:
        return ExportResult(
            Outcome.NO_BLOCKS_FOUND,
            message=_send(notifier, "No PlantUML code blocks found in the current file."),
        )
    if result.encoded == 0:
        return ExportResult(
            Outcome.NO_CHANGES_APPLIED,
            matched=result.matched,
            message=_send(
                notifier,
                f"No PlantUML diagrams could be exported "
                f"({result.matched} block(s) failed).",
            ),
        )

    routed = route_output(
        settings.write_mode, document, result.text, store, notifier,
        count=result.encoded,
    )
    routed.matched = result.matched
    routed.encoded = result.encoded
    return routed
