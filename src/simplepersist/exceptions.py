"""Custom exception hierarchy for simplepersist."""

from __future__ import annotations


class SimplePersistError(Exception):
    """Base exception for all simplepersist errors."""


class PersistConfigError(SimplePersistError):
    """Store or options cannot support persistence.

    Raised synchronously while attaching, before any storage I/O.  This is
    a programming error and is never caught internally.
    """


class PersistRestoreError(SimplePersistError):
    """A persisted record could not be decoded into a snapshot.

    Serializers raise this for malformed or incompatible records.  The
    original decoder error is chained as ``__cause__``.
    """


class PersistStateError(SimplePersistError):
    """Operation attempted on an attachment that has already been disposed."""
