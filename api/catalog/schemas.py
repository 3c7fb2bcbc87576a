"""
Pydantic schemas for catalog endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, RootModel

from .commands import CatalogCommand
from .models import CatalogObject, CatalogObjectBulkDocument
from .query import MAX_LIMIT, CatalogQuery, Order, OrderBy, OrderField


class CatalogObjectBody(RootModel[CatalogObject]):
    pass


class BulkCreateBody(RootModel[list[CatalogObjectBulkDocument]]):
    pass


class CatalogCommandBody(RootModel[CatalogCommand]):
    pass


class ListCatalogParams(BaseModel):
    """
    Flat query-string form of `CatalogQuery` (`order_by_` prefixed ordering).
    """

    name: str | None = None
    tags: list[str] | None = None
    min_price: float | None = None
    max_price: float | None = None
    order_by_field: OrderField | None = None
    order_by_direction: Order = Order.ASC
    limit: int | None = Field(default=None, ge=0, le=MAX_LIMIT)

    def to_query(self, *, default_limit: int | None = None) -> CatalogQuery:
        tags = None
        if self.tags is not None:
            # Accept both ?tags=a&tags=b and ?tags=a,b
            tags = [tag.strip() for raw in self.tags for tag in raw.split(",") if tag.strip()]

        order_by = None
        if self.order_by_field is not None:
            order_by = OrderBy(field=self.order_by_field, direction=self.order_by_direction)

        limit = self.limit if self.limit is not None else default_limit
        return CatalogQuery(
            name=self.name,
            tags=tags,
            min_price=self.min_price,
            max_price=self.max_price,
            order_by=order_by,
            limit=None if limit is None else min(limit, MAX_LIMIT),
        )
