"""
Query compiler.

Turns a partially-populated `CatalogQuery` into a `QueryPlan`: a conjunction of
predicates over the schemaless payloads (owner scope always first), an optional
ordering and an optional limit. Absent filter fields contribute nothing.

Predicates know how to evaluate themselves against a row (`matches`); the
Postgres repository renders the same plan to SQL.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, Field

from .models import CatalogKind
from .storage import CatalogObjectRow

MAX_LIMIT = 65535


class OrderField(str, Enum):
    CREATED_AT = "CreatedAt"
    PRICE = "Price"


class Order(str, Enum):
    ASC = "Asc"
    DESC = "Desc"


class OrderBy(BaseModel):
    field: OrderField
    direction: Order = Order.ASC


class CatalogQuery(BaseModel):
    name: str | None = None
    tags: list[str] | None = None
    min_price: float | None = None
    max_price: float | None = None
    order_by: OrderBy | None = None
    limit: int | None = Field(default=None, ge=0, le=MAX_LIMIT)


def _payload(row: CatalogObjectRow) -> dict[str, Any]:
    return row.payload if isinstance(row.payload, dict) else {}


def variation_price(row: CatalogObjectRow) -> float | None:
    """
    `price.amount` of a Variation row; None for every other row.
    """
    if row.kind != CatalogKind.VARIATION.value:
        return None
    price = _payload(row).get("price")
    if not isinstance(price, dict):
        return None
    amount = price.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return None
    return float(amount)


class Predicate:
    def matches(self, row: CatalogObjectRow) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class OwnerIs(Predicate):
    owner: str

    def matches(self, row: CatalogObjectRow) -> bool:
        return row.owner == self.owner


@dataclass(frozen=True)
class NameContains(Predicate):
    """
    Case-sensitive substring over `name` of Item OR Variation payloads.
    """

    text: str
    kinds: tuple[CatalogKind, ...] = (CatalogKind.ITEM, CatalogKind.VARIATION)

    def matches(self, row: CatalogObjectRow) -> bool:
        if row.kind not in {kind.value for kind in self.kinds}:
            return False
        name = _payload(row).get("name")
        return isinstance(name, str) and self.text in name


@dataclass(frozen=True)
class TagsContain(Predicate):
    """
    Item tags must contain every requested tag (array containment).
    """

    tags: tuple[str, ...]

    def matches(self, row: CatalogObjectRow) -> bool:
        if row.kind != CatalogKind.ITEM.value:
            return False
        tags = _payload(row).get("tags")
        if not isinstance(tags, list):
            return False
        return set(self.tags).issubset(tags)


@dataclass(frozen=True)
class PriceAtLeast(Predicate):
    amount: float

    def matches(self, row: CatalogObjectRow) -> bool:
        price = variation_price(row)
        return price is not None and price >= self.amount


@dataclass(frozen=True)
class PriceAtMost(Predicate):
    amount: float

    def matches(self, row: CatalogObjectRow) -> bool:
        price = variation_price(row)
        return price is not None and price <= self.amount


@dataclass(frozen=True)
class AllOf(Predicate):
    predicates: tuple[Predicate, ...]

    def matches(self, row: CatalogObjectRow) -> bool:
        return all(p.matches(row) for p in self.predicates)


@dataclass(frozen=True)
class Ordering:
    field: OrderField
    direction: Order

    def key(self, row: CatalogObjectRow) -> Any:
        if self.field is OrderField.PRICE:
            return variation_price(row)
        return row.created_at

    def sort(self, rows: Iterable[CatalogObjectRow]) -> list[CatalogObjectRow]:
        """
        Stable sort; rows without a sort key always go last.
        """
        keyed = [(self.key(row), row) for row in rows]
        present = [(k, row) for (k, row) in keyed if k is not None]
        missing = [row for (k, row) in keyed if k is None]
        present.sort(key=lambda pair: pair[0], reverse=self.direction is Order.DESC)
        return [row for (_, row) in present] + missing


@dataclass(frozen=True)
class QueryPlan:
    owner: str
    predicate: AllOf
    ordering: Ordering | None = None
    limit: int | None = None

    def apply(self, rows: Iterable[CatalogObjectRow]) -> list[CatalogObjectRow]:
        """
        Reference evaluation of the plan over in-memory rows.
        """
        selected = [row for row in rows if self.predicate.matches(row)]
        if self.ordering is not None:
            selected = self.ordering.sort(selected)
        if self.limit is not None:
            selected = selected[: self.limit]
        return selected


def compile_query(owner: str, query: CatalogQuery) -> QueryPlan:
    if not owner:
        raise ValueError("Owner scope is required to list catalog entries.")

    optional: list[Predicate | None] = [
        NameContains(query.name) if query.name is not None else None,
        TagsContain(tuple(query.tags)) if query.tags is not None else None,
        PriceAtLeast(query.min_price) if query.min_price is not None else None,
        PriceAtMost(query.max_price) if query.max_price is not None else None,
    ]
    predicates: tuple[Predicate, ...] = (OwnerIs(owner),) + tuple(p for p in optional if p is not None)

    ordering = None
    if query.order_by is not None:
        ordering = Ordering(field=query.order_by.field, direction=query.order_by.direction)

    return QueryPlan(owner=owner, predicate=AllOf(predicates), ordering=ordering, limit=query.limit)
