# xsslab/errors.py
from __future__ import annotations


class LabError(Exception):
    """Base class for every error raised by the activity core."""


class ValidationError(LabError):
    """Malformed filter, category or input; raised before storage is touched."""


class StorageUnavailable(LabError):
    """The database could not be reached or the statement failed."""


class StorageTimeout(StorageUnavailable):
    """A storage round-trip exceeded its timeout."""


class NotFound(LabError):
    """Lookup by id returned no row."""

    def __init__(self, kind: str, ident: int):
        super().__init__(f"{kind} {ident} not found")
        self.kind = kind
        self.ident = ident
