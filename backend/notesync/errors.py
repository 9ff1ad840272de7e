"""Domain exceptions raised by the service layer.

Routers never translate these by hand: ``notesync.main`` registers one
exception handler per class that maps it onto an HTTP status code.
"""


class NoteSyncError(Exception):
    """Base exception for all service-layer errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(NoteSyncError):
    """Raised when a required field is missing or malformed."""

    status_code = 400


class NotFound(NoteSyncError):
    """Raised when an entity is absent or owned by another user."""

    status_code = 404

    def __init__(self, kind: str, entity_id=None):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found")


class VersionConflict(NoteSyncError):
    """Raised when an optimistic write targets a stale ``sync_version``."""

    status_code = 409

    def __init__(self, kind: str, entity_id: int, expected: int, actual: int):
        self.kind = kind
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"{kind} {entity_id} is at version {actual}, expected {expected}")


class ConflictItemError(NoteSyncError):
    """Raised for a single item of a conflict batch.

    Never escapes :func:`notesync.services.conflict_resolution.resolve_batch`;
    it is recorded in that item's result instead.
    """

    status_code = 422


class StorageError(NoteSyncError):
    """Raised when the database rejects or cannot complete a write."""

    status_code = 503

    def __init__(self, operation: str, cause: Exception = None):
        self.operation = operation
        self.cause = cause
        message = f"Storage failure during {operation}"
        if cause:
            message += f": {cause}"
        super().__init__(message)


__all__ = [
    "NoteSyncError",
    "ValidationError",
    "NotFound",
    "VersionConflict",
    "ConflictItemError",
    "StorageError",
]
