"""
Exceptions raised by PostgMem.

Database errors from asyncpg are not wrapped; they propagate to the
caller unchanged.
"""


class PostgMemError(Exception):
    """Base class for all PostgMem errors."""


class MigrationError(PostgMemError):
    """A schema migration could not be discovered or applied."""

    def __init__(self, message: str, version: int | None = None):
        super().__init__(message)
        self.version = version


class UnknownRelationshipType(PostgMemError, ValueError):
    """A relationship type outside the supported vocabulary."""

    def __init__(self, value: str):
        super().__init__(f"Unknown relationship type: {value}")
        self.value = value
