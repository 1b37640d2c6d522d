"""Document store: the file API the exporter reads from and writes to.

:class:`DocumentStore` is the contract the exporter depends on.
:class:`FileSystemStore` implements it over a directory on disk (the
"vault"); documents are addressed by POSIX-style paths relative to that
root.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

from plantuml_exporter.errors import StoreError

_log = logging.getLogger("store")


@dataclass(frozen=True)
class Document:
    """A document addressed by its store-relative *path*."""

    path: str
    """POSIX-style path relative to the store root, e.g. ``"notes/a.md"``."""

    @property
    def name(self) -> str:
        """Last path component, e.g. ``"a.md"``."""
        return PurePosixPath(self.path).name

    @property
    def basename(self) -> str:
        """Name without its extension, e.g. ``"a"``."""
        return PurePosixPath(self.path).stem

    @property
    def extension(self) -> str:
        """Extension including the dot (``".md"``), or ``""``."""
        return PurePosixPath(self.path).suffix

    @property
    def parent(self) -> str:
        """Containing folder path, ``""`` for the store root."""
        parent = str(PurePosixPath(self.path).parent)
        return "" if parent == "." else parent


@runtime_checkable
class DocumentStore(Protocol):
    """File API used by the exporter.

    Each call is atomic from the exporter's point of view.  Failures are
    raised as :class:`~plantuml_exporter.errors.StoreError`.
    """

    def read(self, document: Document) -> str:
        """Return the full text of *document*."""
        ...

    def write(self, document: Document, text: str) -> None:
        """Replace the content of an existing *document*."""
        ...

    def exists(self, path: str) -> Document | None:
        """Return the document at *path*, or ``None`` if there is none."""
        ...

    def create(self, path: str, text: str) -> Document:
        """Create a new document at *path* holding *text*."""
        ...


class FileSystemStore:
    """:class:`DocumentStore` backed by a directory on disk.

    Paths may not escape *root*.  Text is read and written as UTF-8
    without newline translation, so a document round-trips byte for byte.
    """

    def __init__(self, root: Path) -> None:
        self._root = root.resolve()

    @property
    def root(self) -> Path:
        return self._root

    def document_for(self, file_path: Path) -> Document:
        """Address an on-disk *file_path* located under the root.

        Raises:
            StoreError: If *file_path* lies outside the root.
        """
        resolved = file_path.resolve()
        try:
            rel = resolved.relative_to(self._root)
        except ValueError as exc:
            raise StoreError(f"{file_path} is outside {self._root}") from exc
        return Document(rel.as_posix())

    def file_path(self, path: str) -> Path:
        """Absolute filesystem path for a store-relative *path*."""
        target = (self._root / PurePosixPath(path)).resolve()
        if target != self._root and self._root not in target.parents:
            raise StoreError(f"Path escapes the store root: {path}")
        return target

    # -- DocumentStore ------------------------------------------------------

    def read(self, document: Document) -> str:
        try:
            with self.file_path(document.path).open(encoding="utf-8", newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreError(f"Cannot read {document.path}: {exc}") from exc

    def write(self, document: Document, text: str) -> None:
        target = self.file_path(document.path)
        if not target.is_file():
            raise StoreError(f"Cannot write {document.path}: no such file")
        self._write_text(target, text)
        _log.debug("Wrote %s (%d chars)", document.path, len(text))

    def exists(self, path: str) -> Document | None:
        if self.file_path(path).is_file():
            return Document(path)
        return None

    def create(self, path: str, text: str) -> Document:
        target = self.file_path(path)
        if target.exists():
            raise StoreError(f"Cannot create {path}: file already exists")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"Cannot create {path}: {exc}") from exc
        self._write_text(target, text)
        _log.debug("Created %s (%d chars)", path, len(text))
        return Document(path)

    @staticmethod
    def _write_text(target: Path, text: str) -> None:
        """Write *text* to a temp file beside *target*, then rename it over.

        A failed write leaves *target* as it was.
        """
        try:
            fd, temp_path = tempfile.mkstemp(
                dir=str(target.parent),
                prefix=".tmp_",
                suffix=target.suffix,
            )
        except OSError as exc:
            raise StoreError(f"Cannot write {target}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            if target.exists():
                shutil.copymode(str(target), temp_path)
            Path(temp_path).replace(target)
        except OSError as exc:
            temp = Path(temp_path)
            if temp.exists():
                temp.unlink()
            raise StoreError(f"Cannot write {target}: {exc}") from exc
