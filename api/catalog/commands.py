"""
Catalog commands: named, field-level mutations applied as one conditional
read-modify-write statement inside a transaction.
"""

from __future__ import annotations

import logging
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from .errors import CatalogEntryNotFound
from .models import INT32_MAX, INT32_MIN
from .storage import CatalogStorage

logger = logging.getLogger(__name__)


class IncreaseItemVariationUnitsPayload(BaseModel):
    id: UUID
    # Signed delta; negative values decrease stock and may go below zero.
    units: int = Field(..., ge=INT32_MIN, le=INT32_MAX)


class IncreaseItemVariationUnits(BaseModel):
    type: Literal["IncreaseItemVariationUnits"] = "IncreaseItemVariationUnits"
    data: IncreaseItemVariationUnitsPayload


CatalogCommand = IncreaseItemVariationUnits


async def increase_item_variation_units(
    storage: CatalogStorage,
    owner: str,
    payload: IncreaseItemVariationUnitsPayload,
) -> None:
    async with storage.transaction() as tx:
        updated = await tx.increase_available_units(payload.id, owner=owner, delta=payload.units)
        if not updated:
            raise CatalogEntryNotFound(payload.id)
    logger.info("variation_units_adjusted id=%s owner=%s delta=%s", payload.id, owner, payload.units)


async def execute(storage: CatalogStorage, owner: str, command: CatalogCommand) -> None:
    await increase_item_variation_units(storage, owner, command.data)
