"""Exception types raised by the migration tool."""
from __future__ import annotations


class MigrationError(Exception):
    """Base class for migration failures."""


class MalformedDocument(MigrationError):
    """The pipeline document or replacement fragment has an unusable shape.

    Raised before any mutation happens, so callers can discard the document
    and move on to the next file.
    """


class GitError(MigrationError):
    """A git command failed."""

    def __init__(self, message: str, returncode: int = 1) -> None:
        super().__init__(message)
        self.returncode = returncode
