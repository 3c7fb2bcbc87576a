"""
Catalog business logic.

Scope:
- single-record create/read/update/exists with owner-scoped reference checks
- filtered listing (query compiler -> storage -> codec)
- bulk creation with alias resolution
- commands (atomic field-level mutations)
"""

from __future__ import annotations

from typing import Sequence
from uuid import UUID

from . import bulk, codec, commands
from .errors import CatalogBadRequest, CatalogEntryNotFound
from .models import (
    CatalogKind,
    CatalogObject,
    CatalogObjectBulkDocument,
    CatalogObjectDocument,
    combination_refs,
    parent_ref,
)
from .query import CatalogQuery, compile_query
from .storage import CatalogStorage


class CatalogService:
    def __init__(self, storage: CatalogStorage) -> None:
        self.storage = storage

    async def _check_references(self, storage: CatalogStorage, owner: str, obj: CatalogObject) -> None:
        parent = parent_ref(obj)
        if parent is not None and not await storage.exists(parent, owner=owner, kind=CatalogKind.ITEM.value):
            raise CatalogBadRequest(f"Parent item {parent} does not exist.")
        for target in combination_refs(obj):
            if not await storage.exists(target, owner=owner):
                raise CatalogBadRequest(f"Combination target {target} does not exist.")

    async def create(self, owner: str, obj: CatalogObject) -> CatalogObjectDocument:
        kind, payload = codec.encode(obj)
        async with self.storage.transaction() as tx:
            await self._check_references(tx, owner, obj)
            row = await tx.insert(owner=owner, kind=kind, payload=payload)
            return codec.to_document(row)

    async def exists(self, owner: str, entry_id: UUID) -> bool:
        return await self.storage.exists(entry_id, owner=owner)

    async def read(self, owner: str, entry_id: UUID) -> CatalogObjectDocument:
        row = await self.storage.read(entry_id, owner=owner)
        if row is None:
            raise CatalogEntryNotFound(entry_id)
        return codec.to_document(row)

    async def update(self, owner: str, entry_id: UUID, obj: CatalogObject) -> CatalogObjectDocument:
        """
        Replace the whole payload. The stored kind must match `obj`.
        """
        kind, payload = codec.encode(obj)
        async with self.storage.transaction() as tx:
            await self._check_references(tx, owner, obj)
            row = await tx.update(entry_id, owner=owner, kind=kind, payload=payload)
            if row is None:
                raise CatalogEntryNotFound(entry_id)
            return codec.to_document(row)

    async def list(self, owner: str, query: CatalogQuery) -> list[CatalogObjectDocument]:
        rows = await self.storage.list(compile_query(owner, query))
        return [codec.to_document(row) for row in rows]

    async def bulk_create(
        self,
        owner: str,
        documents: Sequence[CatalogObjectBulkDocument],
    ) -> list[CatalogObjectDocument]:
        return await bulk.bulk_create(self.create, owner, documents)

    async def cmd(self, owner: str, command: commands.CatalogCommand) -> None:
        await commands.execute(self.storage, owner, command)
