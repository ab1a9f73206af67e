"""
hscstore Exceptions
===================

Error types raised by the store engine and its middleware.

Most failures inside the store are recovered locally (see ``hscstore.composer``
and ``hscstore.persist``); these classes exist so that the recovery paths and
callers can tell the failure kinds apart.
"""


class HscStoreError(Exception):
    """Base class for all hscstore errors."""

    pass


class CircularDependencyError(HscStoreError):
    """Raised when computed values depend on each other in a cycle."""

    pass


class ComputationError(HscStoreError):
    """Raised when a computed value fails to evaluate."""

    def __init__(self, name: str, cause: BaseException):
        super().__init__(f"Computed value '{name}' failed: {cause}")
        self.name = name
        self.cause = cause


class MigrationError(HscStoreError):
    """Raised when a persisted record cannot be migrated into a usable state."""

    pass


class StorageError(HscStoreError):
    """Raised by storage backends when a record cannot be read or written."""

    pass


class ValidationError(HscStoreError):
    """A failed schema check, listing every field violation."""

    def __init__(self, errors):
        messages = ", ".join(f"{e.key}: {e.message}" for e in errors)
        super().__init__(f"State validation failed ({messages})")
        self.errors = list(errors)
