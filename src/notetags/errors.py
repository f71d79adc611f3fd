"""Exception hierarchy for notetags."""

from __future__ import annotations


class NotetagsError(Exception):
    """Base class for every error raised by the tag subsystem."""


class StorageError(NotetagsError):
    """A file-store path could not be resolved or read."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class PersistenceError(NotetagsError):
    """The serialized index could not be written to the key/value store."""
