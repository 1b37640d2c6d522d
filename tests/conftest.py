"""Shared test fixtures and helpers for plantuml-exporter tests."""

from __future__ import annotations

import pytest

from plantuml_exporter.errors import StoreError
from plantuml_exporter.store import Document


def make_block(payload: str) -> str:
    """Build a ```` ```plantuml ```` block around *payload*."""
    body = f"{payload}\n" if payload else ""
    return f"```plantuml\n{body}```"


BAD_PAYLOAD = "A -> B: \ud800"
"""Payload that cannot be UTF-8 encoded (lone surrogate)."""


class RecordingNotifier:
    """Notifier that keeps every message."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


class MemoryStore:
    """In-memory DocumentStore with failure injection.

    Attributes:
        files: Path -> text.
        created: Paths passed to :meth:`create`, in call order.
        written: Paths passed to :meth:`write`, in call order.
    """

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files: dict[str, str] = dict(files or {})
        self.created: list[str] = []
        self.written: list[str] = []
        self.fail_reads = False
        self.fail_writes = False
        self.fail_creates = False

    def read(self, document: Document) -> str:
        if self.fail_reads or document.path not in self.files:
            raise StoreError(f"Cannot read {document.path}")
        return self.files[document.path]

    def write(self, document: Document, text: str) -> None:
        if self.fail_writes:
            raise StoreError("write denied")
        if document.path not in self.files:
            raise StoreError(f"Cannot write {document.path}: no such file")
        self.written.append(document.path)
        self.files[document.path] = text

    def exists(self, path: str) -> Document | None:
        return Document(path) if path in self.files else None

    def create(self, path: str, text: str) -> Document:
        if self.fail_creates:
            raise StoreError("create denied")
        if path in self.files:
            raise StoreError(f"Cannot create {path}: file already exists")
        self.created.append(path)
        self.files[path] = text
        return Document(path)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()
