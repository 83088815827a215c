"""
Custom exceptions for the renovation local store.

Both backends (SQLite database and flat JSON store) raise these
exceptions so callers handle failures the same way on either path.
"""


class LocalStoreError(Exception):
    """Base exception for all local store errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ProbeError(LocalStoreError):
    """Raised when the transactional database cannot be opened."""

    def __init__(self, db_path: str, cause: Exception | None = None):
        details = {"db_path": db_path}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Local database unavailable: {db_path}", details)
        self.db_path = db_path
        self.cause = cause


class ItemNotFoundError(LocalStoreError):
    """Raised when an update targets an id that is not stored."""

    def __init__(self, item_id: str, collection: str | None = None):
        details = {"item_id": item_id}
        if collection:
            details["collection"] = collection
        message = f"Item not found: {item_id}"
        if collection:
            message += f" (in {collection})"
        super().__init__(message, details)
        self.item_id = item_id
        self.collection = collection


class ItemExistsError(LocalStoreError):
    """Raised when inserting an id that is already stored."""

    def __init__(self, item_id: str, collection: str | None = None):
        details = {"item_id": item_id}
        if collection:
            details["collection"] = collection
        super().__init__(f"Item already exists: {item_id}", details)
        self.item_id = item_id
        self.collection = collection


class StoreNotFoundError(LocalStoreError):
    """Raised when a collection is not declared in the database schema."""

    def __init__(self, store_name: str):
        super().__init__(f"Unknown object store: {store_name}", {"store_name": store_name})
        self.store_name = store_name


class StorageIOError(LocalStoreError):
    """Raised when a read, write or serialization operation fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class SyncError(LocalStoreError):
    """Raised when reconciling a flat-store snapshot into the database fails."""

    def __init__(self, collection: str, cause: Exception | None = None):
        details: dict = {"collection": collection}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Synchronization failed for {collection}", details)
        self.collection = collection
        self.cause = cause


class ValidationError(LocalStoreError):
    """Raised when data validation fails."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value
