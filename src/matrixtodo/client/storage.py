"""Durable local storage for the task document.

This module provides:
- DocumentBackend: Abstract key -> text document storage
- FileBackend: One JSON file per key in the data directory
- MemoryBackend: Key-value fallback for hosts without a filesystem (and tests)
- LocalStore: Load/save of the TaskCollection document

The store has no business logic: it reads the whole document and rewrites the
whole document. File I/O runs in a worker thread so the event loop is never
blocked.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path

from matrixtodo.core.config import TODOS_FILE
from matrixtodo.core.errors import ParseError, StorageError
from matrixtodo.core.models import TaskCollection, next_modified_timestamp

logger = logging.getLogger(__name__)


class DocumentNotFoundError(Exception):
    """Raised when a document does not exist in the backend yet."""


class DocumentBackend(ABC):
    """Abstract interface for document storage."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of where documents are stored."""

    @abstractmethod
    def path_for(self, key: str) -> str:
        """Return where the document ``key`` lives."""

    @abstractmethod
    def read(self, key: str) -> str:
        """Read a document.

        Raises:
            DocumentNotFoundError: If the document doesn't exist.
            OSError: On any other I/O failure.
        """

    @abstractmethod
    def write(self, key: str, text: str) -> None:
        """Replace a document with ``text``.

        Raises:
            OSError: On I/O failure.
        """


class FileBackend(DocumentBackend):
    """Documents stored as UTF-8 files inside one directory."""

    def __init__(self, base_dir: Path | str) -> None:
        """Initialize file storage.

        Args:
            base_dir: Directory holding the documents (created on first write).
        """
        self._base_dir = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        """Directory holding the documents."""
        return self._base_dir

    @property
    def location(self) -> str:
        """Return the local storage path."""
        return f"Local filesystem: {self._base_dir}"

    def path_for(self, key: str) -> str:
        """Return the file path of a document."""
        return str(self._base_dir / key)

    def read(self, key: str) -> str:
        """Read a document file."""
        path = self._base_dir / key
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise DocumentNotFoundError(f"Document not found: {path}") from None

    def write(self, key: str, text: str) -> None:
        """Write a document file atomically (temp file + rename)."""
        self._base_dir.mkdir(parents=True, exist_ok=True)
        path = self._base_dir / key
        fd, tmp_name = tempfile.mkstemp(dir=self._base_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class MemoryBackend(DocumentBackend):
    """In-memory key-value storage."""

    def __init__(self, documents: dict[str, str] | None = None) -> None:
        self.documents: dict[str, str] = dict(documents or {})

    @property
    def location(self) -> str:
        return "In-memory storage"

    def path_for(self, key: str) -> str:
        return f"memory://{key}"

    def read(self, key: str) -> str:
        try:
            return self.documents[key]
        except KeyError:
            raise DocumentNotFoundError(f"Document not found: {key}") from None

    def write(self, key: str, text: str) -> None:
        self.documents[key] = text


class LocalStore:
    """Load and save the task document.

    Usage:
        store = LocalStore(FileBackend(get_data_dir()))
        collection = await store.load()
        collection = await store.save(collection)
    """

    def __init__(self, backend: DocumentBackend, key: str = TODOS_FILE) -> None:
        """Initialize the store.

        Args:
            backend: Where documents are kept.
            key: Name of the task document in the backend.
        """
        self._backend = backend
        self._key = key

    @property
    def backend(self) -> DocumentBackend:
        """Underlying document backend."""
        return self._backend

    @property
    def path(self) -> str:
        """Location of the task document."""
        return self._backend.path_for(self._key)

    async def load(self) -> TaskCollection:
        """Load the task document.

        Returns:
            The stored collection, or an empty one if nothing was saved yet.

        Raises:
            ParseError: If the document is not a valid task document.
            StorageError: If the document cannot be read.
        """
        try:
            text = await asyncio.to_thread(self._backend.read, self._key)
        except DocumentNotFoundError:
            logger.debug(f"No task document at {self.path}, starting empty")
            return TaskCollection()
        except OSError as e:
            logger.error(f"Failed to load todos: {e}")
            raise StorageError(f"Failed to read {self.path}: {e}") from e

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Task document {self.path} is not valid JSON: {e}") from e
        return TaskCollection.from_dict(data)

    async def load_or_empty(self) -> TaskCollection:
        """Load for bootstrap: a malformed document yields an empty collection."""
        try:
            return await self.load()
        except ParseError as e:
            logger.warning(f"Ignoring unreadable task document: {e}")
            return TaskCollection()

    async def save(self, collection: TaskCollection) -> TaskCollection:
        """Write the whole document, stamping lastModified.

        Args:
            collection: Collection to persist.

        Returns:
            The collection as written (with its new lastModified).

        Raises:
            StorageError: If the document cannot be written.
        """
        stamped = replace(
            collection,
            tasks=list(collection.tasks),
            last_modified=next_modified_timestamp(collection.last_modified),
        )
        text = json.dumps(stamped.to_dict(), indent=2, ensure_ascii=False)
        try:
            await asyncio.to_thread(self._backend.write, self._key, text)
        except OSError as e:
            logger.error(f"Failed to save todos: {e}")
            raise StorageError(f"Failed to write {self.path}: {e}") from e
        logger.debug(f"Saved {len(stamped.tasks)} todos to {self.path}")
        return stamped
