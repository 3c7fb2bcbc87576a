"""
Storage port for the catalog core.

The core only talks to persistence through `CatalogStorage`. Every call is
scoped by owner; `list` receives a compiled `QueryPlan` whose first predicate
is always the owner scope.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

if TYPE_CHECKING:
    from .query import QueryPlan


@dataclass(frozen=True)
class CatalogObjectRow:
    """
    Persisted representation: one kind tag plus its schemaless payload.
    """

    id: UUID
    owner: str
    kind: str
    payload: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> CatalogObjectRow:
        return cls(
            id=record["id"],
            owner=str(record["owner"]),
            kind=str(record["kind"]),
            payload=record.get("payload"),
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )


class CatalogStorage(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[CatalogStorage]:
        """
        Unit of work. Yields a storage bound to the transaction; commits on
        normal exit and rolls back when the block raises.
        """
        ...

    async def insert(self, *, owner: str, kind: str, payload: dict[str, Any]) -> CatalogObjectRow: ...

    async def read(self, entry_id: UUID, *, owner: str) -> CatalogObjectRow | None: ...

    async def exists(self, entry_id: UUID, *, owner: str, kind: str | None = None) -> bool: ...

    async def update(
        self,
        entry_id: UUID,
        *,
        owner: str,
        kind: str,
        payload: dict[str, Any],
    ) -> CatalogObjectRow | None: ...

    async def list(self, plan: QueryPlan) -> list[CatalogObjectRow]: ...

    async def increase_available_units(self, entry_id: UUID, *, owner: str, delta: int) -> bool:
        """
        Atomically add `delta` to a Variation's `available_units`.
        Returns False when no (id, owner) Variation row exists; raises
        `CatalogBadRequest` when the result would leave the int32 range.
        """
        ...
