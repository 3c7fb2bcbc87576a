"""
Catalog persistence (raw SQL).

Postgres implementation of the `CatalogStorage` port. All catalog records live
in one table; `kind` selects how `payload` (jsonb) is decoded.

Schema comes from the dbmate migration:
- catalog_objects(id uuid, owner, kind, payload jsonb, created_at, updated_at)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from functools import singledispatch
from typing import Any, AsyncIterator
from uuid import UUID

import asyncpg

from core import db

from .errors import CatalogBadRequest, StorageError
from .models import CatalogKind
from .query import (
    AllOf,
    NameContains,
    Order,
    OrderField,
    Ordering,
    OwnerIs,
    Predicate,
    PriceAtLeast,
    PriceAtMost,
    QueryPlan,
    TagsContain,
)
from .storage import CatalogObjectRow

logger = logging.getLogger(__name__)

TABLE = "catalog_objects"
COLUMNS = "id, owner, kind, payload, created_at, updated_at"

# NULL unless the row is a Variation with a numeric price.amount.
PRICE_EXPR = (
    "(CASE WHEN kind = 'Variation' AND jsonb_typeof(payload #> '{price,amount}') = 'number' "
    "THEN (payload #>> '{price,amount}')::float8 END)"
)

_STORAGE_FAILURES = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class SqlArgs:
    """
    Collects positional arguments and hands out their `$n` placeholders.
    """

    def __init__(self) -> None:
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


@singledispatch
def render_predicate(predicate: Predicate, args: SqlArgs) -> str:
    raise TypeError(f"Unsupported predicate: {type(predicate).__name__}")


@render_predicate.register
def _(predicate: OwnerIs, args: SqlArgs) -> str:
    return f"owner = {args.add(predicate.owner)}"


@render_predicate.register
def _(predicate: NameContains, args: SqlArgs) -> str:
    kinds = args.add([kind.value for kind in predicate.kinds])
    text = args.add(predicate.text)
    return f"(kind = ANY({kinds}::text[]) AND strpos(payload ->> 'name', {text}) > 0)"


@render_predicate.register
def _(predicate: TagsContain, args: SqlArgs) -> str:
    tags = args.add(list(predicate.tags))
    return (
        f"(kind = '{CatalogKind.ITEM.value}' "
        f"AND jsonb_typeof(payload -> 'tags') = 'array' "
        f"AND payload -> 'tags' @> {tags}::jsonb)"
    )


@render_predicate.register
def _(predicate: PriceAtLeast, args: SqlArgs) -> str:
    return f"{PRICE_EXPR} >= {args.add(float(predicate.amount))}::float8"


@render_predicate.register
def _(predicate: PriceAtMost, args: SqlArgs) -> str:
    return f"{PRICE_EXPR} <= {args.add(float(predicate.amount))}::float8"


@render_predicate.register
def _(predicate: AllOf, args: SqlArgs) -> str:
    if not predicate.predicates:
        return "TRUE"
    return " AND ".join(render_predicate(p, args) for p in predicate.predicates)


def render_ordering(ordering: Ordering) -> str:
    expr = PRICE_EXPR if ordering.field is OrderField.PRICE else "created_at"
    direction = "DESC" if ordering.direction is Order.DESC else "ASC"
    return f"{expr} {direction} NULLS LAST"


def build_list_sql(plan: QueryPlan) -> tuple[str, list[Any]]:
    """
    Render a query plan into (sql, args) for asyncpg.
    """
    if not plan.predicate.predicates or not isinstance(plan.predicate.predicates[0], OwnerIs):
        raise ValueError("Catalog list queries must be scoped by owner.")

    args = SqlArgs()
    sql = f"SELECT {COLUMNS}\nFROM {TABLE}\nWHERE {render_predicate(plan.predicate, args)}"
    if plan.ordering is not None:
        sql += f"\nORDER BY {render_ordering(plan.ordering)}"
    if plan.limit is not None:
        sql += f"\nLIMIT {args.add(plan.limit)}"
    return sql, args.values


@asynccontextmanager
async def _storage_errors(operation: str) -> AsyncIterator[None]:
    try:
        yield
    except _STORAGE_FAILURES as exc:
        logger.warning("catalog_storage_failed operation=%s error=%s", operation, type(exc).__name__)
        raise StorageError() from exc


def _to_row(record: dict[str, Any] | None) -> CatalogObjectRow | None:
    return CatalogObjectRow.from_record(record) if record is not None else None


class PostgresCatalogStorage:
    """
    `CatalogStorage` over the shared asyncpg pool.

    Bound to a connection when created by `transaction()`; otherwise each call
    borrows a pooled connection.
    """

    def __init__(self, conn: asyncpg.Connection | None = None) -> None:
        self._conn = conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresCatalogStorage]:
        async with _storage_errors("transaction"):
            async with db.transaction(self._conn) as conn:
                yield PostgresCatalogStorage(conn)

    async def insert(self, *, owner: str, kind: str, payload: dict[str, Any]) -> CatalogObjectRow:
        async with _storage_errors("insert"):
            record = await db.fetch_one(
                f"""
                INSERT INTO {TABLE} (owner, kind, payload)
                VALUES ($1, $2, $3::jsonb)
                RETURNING {COLUMNS}
                """,
                owner,
                kind,
                payload,
                conn=self._conn,
            )
        row = _to_row(record)
        if row is None:
            raise StorageError("Failed to insert catalog entry.")
        return row

    async def read(self, entry_id: UUID, *, owner: str) -> CatalogObjectRow | None:
        async with _storage_errors("read"):
            record = await db.fetch_one(
                f"""
                SELECT {COLUMNS}
                FROM {TABLE}
                WHERE id = $1
                  AND owner = $2
                """,
                entry_id,
                owner,
                conn=self._conn,
            )
        return _to_row(record)

    async def exists(self, entry_id: UUID, *, owner: str, kind: str | None = None) -> bool:
        async with _storage_errors("exists"):
            record = await db.fetch_one(
                f"""
                SELECT 1 AS ok
                FROM {TABLE}
                WHERE id = $1
                  AND owner = $2
                  AND ($3::text IS NULL OR kind = $3::text)
                LIMIT 1
                """,
                entry_id,
                owner,
                kind,
                conn=self._conn,
            )
        return record is not None

    async def update(
        self,
        entry_id: UUID,
        *,
        owner: str,
        kind: str,
        payload: dict[str, Any],
    ) -> CatalogObjectRow | None:
        async with _storage_errors("update"):
            record = await db.fetch_one(
                f"""
                UPDATE {TABLE}
                SET payload = $4::jsonb,
                    updated_at = now()
                WHERE id = $1
                  AND owner = $2
                  AND kind = $3
                RETURNING {COLUMNS}
                """,
                entry_id,
                owner,
                kind,
                payload,
                conn=self._conn,
            )
        return _to_row(record)

    async def list(self, plan: QueryPlan) -> list[CatalogObjectRow]:
        sql, args = build_list_sql(plan)
        async with _storage_errors("list"):
            records = await db.fetch_all(sql, *args, conn=self._conn)
        return [CatalogObjectRow.from_record(record) for record in records]

    async def increase_available_units(self, entry_id: UUID, *, owner: str, delta: int) -> bool:
        # Single statement read-modify-write; the row lock serializes concurrent deltas.
        async with _storage_errors("increase_available_units"):
            try:
                record = await db.fetch_one(
                    f"""
                    UPDATE {TABLE}
                    SET payload = jsonb_set(
                          payload,
                          '{{available_units}}',
                          to_jsonb(COALESCE((payload ->> 'available_units')::int, 0) + $3::int)
                        ),
                        updated_at = now()
                    WHERE id = $1
                      AND owner = $2
                      AND kind = '{CatalogKind.VARIATION.value}'
                    RETURNING id
                    """,
                    entry_id,
                    owner,
                    delta,
                    conn=self._conn,
                )
            except asyncpg.exceptions.NumericValueOutOfRangeError as exc:
                raise CatalogBadRequest(f"Available units of {entry_id} would leave the int32 range.") from exc
        return record is not None
