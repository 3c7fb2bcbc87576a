"""
Catalog error taxonomy.

Every failure the catalog core reports is a `CatalogError`. The HTTP layer maps
`code` and `status_code` straight into the response body.
"""

from __future__ import annotations


class CatalogError(RuntimeError):
    code = "E_CATALOG"
    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class StorageError(CatalogError):
    """Transport or transaction failure. Safe for the caller to retry."""

    code = "E_DATABASE"
    status_code = 500

    def __init__(self, message: str = "Storage is unavailable, please contact the administrator.") -> None:
        super().__init__(message)


class MappingError(CatalogError):
    """Stored kind and payload disagree. Data corruption, not retryable."""

    code = "E_MAPPING"
    status_code = 500

    def __init__(self, message: str = "Data corrupted, please contact the administrator.") -> None:
        super().__init__(message)


class CatalogEntryNotFound(CatalogError):
    code = "E_NOT_FOUND"
    status_code = 404

    def __init__(self, entry_id: object) -> None:
        super().__init__(f"Catalog entry {entry_id} not found.")
        self.entry_id = str(entry_id)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CatalogEntryNotFound) and other.entry_id == self.entry_id

    def __hash__(self) -> int:
        return hash((type(self), self.entry_id))


class CatalogBadRequest(CatalogError):
    """A declared reference does not exist or belongs to another owner."""

    code = "E_BAD_REQUEST"
    status_code = 400


class BulkReferenceNotExist(CatalogError):
    code = "E_BULK_ACTION"
    status_code = 400

    def __init__(self, alias: str) -> None:
        super().__init__(f"Bulk reference {alias} was never defined.")
        self.alias = alias


class BulkReferenceCycle(CatalogError):
    code = "E_BULK_ACTION"
    status_code = 400

    def __init__(self, aliases: list[str]) -> None:
        super().__init__(f"Bulk references form a cycle: {', '.join(aliases)}.")
        self.aliases = list(aliases)
