"""
Test doubles and factories for the catalog core.
"""

from __future__ import annotations

import asyncio
import itertools
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Callable
from uuid import UUID, uuid4

from catalog.errors import CatalogBadRequest, StorageError
from catalog.models import (
    INT32_MAX,
    INT32_MIN,
    ControlEntry,
    DeliveryEntry,
    Dimensions,
    Form,
    FormControl,
    FormField,
    FormFieldKind,
    Item,
    ItemCategory,
    ItemControl,
    ItemDelivery,
    ItemEntry,
    ItemModification,
    ItemVariation,
    Matrix,
    MatrixControl,
    MatrixProp,
    MeasurementUnits,
    ModificationEntry,
    Price,
    TimeDuration,
    TimeUnit,
    VariationEntry,
)
from catalog.query import QueryPlan
from catalog.storage import CatalogObjectRow

OWNER = "account"
OTHER_OWNER = "someone-else"

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)
_names = itertools.count(1)


Undo = dict[UUID, CatalogObjectRow | None]


class InMemoryCatalogStorage:
    """
    `CatalogStorage` over a dict.

    Every call yields to the event loop before touching state, like a network
    round trip would, so multi-call read-modify-write sequences can interleave.
    Writes made through a transaction are journaled per transaction, so a
    rollback only undoes that transaction's own rows.
    """

    def __init__(self) -> None:
        self.rows: dict[UUID, CatalogObjectRow] = {}
        self.inserts = 0
        self.fail_insert: Callable[[str, dict[str, Any]], bool] | None = None
        self._clock = itertools.count(1)

    def _now(self) -> datetime:
        return _EPOCH + timedelta(seconds=next(self._clock))

    def _put(self, row: CatalogObjectRow, undo: Undo | None) -> None:
        if undo is not None:
            undo.setdefault(row.id, self.rows.get(row.id))
        self.rows[row.id] = row

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryTransaction]:
        tx = InMemoryTransaction(self)
        try:
            yield tx
        except BaseException:
            tx.rollback()
            raise

    async def insert(
        self,
        *,
        owner: str,
        kind: str,
        payload: dict[str, Any],
        undo: Undo | None = None,
    ) -> CatalogObjectRow:
        await asyncio.sleep(0)
        if self.fail_insert is not None and self.fail_insert(kind, payload):
            raise StorageError()
        now = self._now()
        row = CatalogObjectRow(
            id=uuid4(),
            owner=owner,
            kind=kind,
            payload=payload,
            created_at=now,
            updated_at=now,
        )
        self._put(row, undo)
        self.inserts += 1
        return row

    async def read(self, entry_id: UUID, *, owner: str) -> CatalogObjectRow | None:
        await asyncio.sleep(0)
        row = self.rows.get(entry_id)
        if row is None or row.owner != owner:
            return None
        return row

    async def exists(self, entry_id: UUID, *, owner: str, kind: str | None = None) -> bool:
        row = await self.read(entry_id, owner=owner)
        return row is not None and (kind is None or row.kind == kind)

    async def update(
        self,
        entry_id: UUID,
        *,
        owner: str,
        kind: str,
        payload: dict[str, Any],
        undo: Undo | None = None,
    ) -> CatalogObjectRow | None:
        row = await self.read(entry_id, owner=owner)
        if row is None or row.kind != kind:
            return None
        updated = CatalogObjectRow(
            id=row.id,
            owner=row.owner,
            kind=row.kind,
            payload=payload,
            created_at=row.created_at,
            updated_at=self._now(),
        )
        self._put(updated, undo)
        return updated

    async def list(self, plan: QueryPlan) -> list[CatalogObjectRow]:
        await asyncio.sleep(0)
        return plan.apply(self.rows.values())

    async def increase_available_units(
        self,
        entry_id: UUID,
        *,
        owner: str,
        delta: int,
        undo: Undo | None = None,
    ) -> bool:
        await asyncio.sleep(0)
        # From here on no awaits: the mutation is one atomic step.
        row = self.rows.get(entry_id)
        if row is None or row.owner != owner or row.kind != "Variation":
            return False
        payload = dict(row.payload or {})
        units = int(payload.get("available_units") or 0) + delta
        if not INT32_MIN <= units <= INT32_MAX:
            # Postgres int4 arithmetic fails the same way.
            raise CatalogBadRequest(f"Available units of {entry_id} would leave the int32 range.")
        payload["available_units"] = units
        self._put(
            CatalogObjectRow(
                id=row.id,
                owner=row.owner,
                kind=row.kind,
                payload=payload,
                created_at=row.created_at,
                updated_at=self._now(),
            ),
            undo,
        )
        return True


class InMemoryTransaction:
    """
    Unit of work over an `InMemoryCatalogStorage`; remembers the prior version
    of every row it writes.
    """

    def __init__(self, store: InMemoryCatalogStorage) -> None:
        self.store = store
        self.undo: Undo = {}

    def transaction(self) -> AbstractAsyncContextManager[InMemoryTransaction]:
        return self.store.transaction()

    def rollback(self) -> None:
        for entry_id, prior in self.undo.items():
            if prior is None:
                self.store.rows.pop(entry_id, None)
            else:
                self.store.rows[entry_id] = prior
        self.undo.clear()

    async def insert(self, *, owner: str, kind: str, payload: dict[str, Any]) -> CatalogObjectRow:
        return await self.store.insert(owner=owner, kind=kind, payload=payload, undo=self.undo)

    async def read(self, entry_id: UUID, *, owner: str) -> CatalogObjectRow | None:
        return await self.store.read(entry_id, owner=owner)

    async def exists(self, entry_id: UUID, *, owner: str, kind: str | None = None) -> bool:
        return await self.store.exists(entry_id, owner=owner, kind=kind)

    async def update(
        self,
        entry_id: UUID,
        *,
        owner: str,
        kind: str,
        payload: dict[str, Any],
    ) -> CatalogObjectRow | None:
        return await self.store.update(entry_id, owner=owner, kind=kind, payload=payload, undo=self.undo)

    async def list(self, plan: QueryPlan) -> list[CatalogObjectRow]:
        return await self.store.list(plan)

    async def increase_available_units(self, entry_id: UUID, *, owner: str, delta: int) -> bool:
        return await self.store.increase_available_units(entry_id, owner=owner, delta=delta, undo=self.undo)


def usd(amount: float) -> Price:
    return Price(amount=amount, asset_name="USD", asset_scale=2)


def fake_item(**overrides: Any) -> ItemEntry:
    n = next(_names)
    fields: dict[str, Any] = {
        "name": f"Item {n}",
        "description": "world",
        "category": ItemCategory.SHOP,
        "tags": [f"tag-{n}", "catalog", "fixture"],
    }
    fields.update(overrides)
    return ItemEntry(data=Item(**fields))


def fake_variation(item_id: Any, ref_type: type = UUID, **overrides: Any) -> VariationEntry:
    n = next(_names)
    fields: dict[str, Any] = {
        "item_id": item_id,
        "name": f"Variation {n}",
        "sku": f"SKU-{n}",
        "measurement_units": MeasurementUnits.AREA,
        "available_units": 10,
        "price": usd(100.0 + n),
        "processing_time": TimeDuration(amount=2, unit=TimeUnit.DAYS),
        "warranty_time": TimeDuration(amount=1, unit=TimeUnit.YEARS),
    }
    fields.update(overrides)
    return VariationEntry[ref_type](data=ItemVariation[ref_type](**fields))


def fake_modification(item_id: Any, ref_type: type = UUID, **overrides: Any) -> ModificationEntry:
    n = next(_names)
    fields: dict[str, Any] = {
        "item_id": item_id,
        "name": f"Modification {n}",
        "price": usd(5.0),
    }
    fields.update(overrides)
    return ModificationEntry[ref_type](data=ItemModification[ref_type](**fields))


def fake_delivery(item_id: Any, ref_type: type = UUID, **overrides: Any) -> DeliveryEntry:
    fields: dict[str, Any] = {
        "item_id": item_id,
        "name": "Express",
        "price": usd(12.5),
        "dimensions": Dimensions(width=10, height=5, length=20, weight=1.5),
        "processing_time": TimeDuration(amount=24, unit=TimeUnit.HOURS),
    }
    fields.update(overrides)
    return DeliveryEntry[ref_type](data=ItemDelivery[ref_type](**fields))


def fake_matrix_control(
    item_id: Any,
    combinations: dict[str, Any] | None = None,
    ref_type: type = UUID,
) -> ControlEntry:
    matrix = Matrix[ref_type](
        props=[
            MatrixProp(name="color", options=["Red", "Blue"]),
            MatrixProp(name="size", options=["M", "L"]),
        ],
        key_template=":color-:size",
        combinations=combinations or {},
    )
    return ControlEntry[ref_type](
        data=ItemControl[ref_type](item_id=item_id, control=MatrixControl[ref_type](data=matrix))
    )


def fake_form_control(item_id: Any, ref_type: type = UUID) -> ControlEntry:
    form = Form(
        fields=[
            FormField(name="engraving", label="Engraving", kind=FormFieldKind.TEXT),
            FormField(name="gift", label="Gift wrap", kind=FormFieldKind.CHECKBOX),
            FormField(name="size", kind=FormFieldKind.SELECT, required=True, options=["S", "M"]),
        ]
    )
    return ControlEntry[ref_type](data=ItemControl[ref_type](item_id=item_id, control=FormControl(data=form)))
