"""
Catalog API endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from auth import dependencies as auth_dependencies
from core import settings

from . import schemas
from .errors import CatalogError
from .query import MAX_LIMIT, Order, OrderField
from .repository import PostgresCatalogStorage
from .service import CatalogService

router = APIRouter(prefix="/catalog")


def get_catalog_service() -> CatalogService:
    return CatalogService(PostgresCatalogStorage())


async def catalog_error_handler(_: Request, exc: CatalogError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.code,
            "error_message": exc.message,
        },
    )


def list_params(
    name: str | None = Query(default=None, max_length=500),
    tags: list[str] | None = Query(default=None),
    min_price: float | None = Query(default=None),
    max_price: float | None = Query(default=None),
    order_by_field: OrderField | None = Query(default=None),
    order_by_direction: Order = Query(default=Order.ASC),
    limit: int | None = Query(default=None, ge=0, le=MAX_LIMIT),
) -> schemas.ListCatalogParams:
    return schemas.ListCatalogParams(
        name=name,
        tags=tags,
        min_price=min_price,
        max_price=max_price,
        order_by_field=order_by_field,
        order_by_direction=order_by_direction,
        limit=limit,
    )


@router.get("")
async def list_catalog(
    params: schemas.ListCatalogParams = Depends(list_params),
    owner: str = Depends(auth_dependencies.get_current_owner),
    service: CatalogService = Depends(get_catalog_service),
) -> dict:
    query = params.to_query(default_limit=settings.catalog_list_max_limit())
    documents = await service.list(owner, query)
    return {
        "documents": [document.model_dump(mode="json") for document in documents],
        "count": len(documents),
    }


@router.post("")
async def create_catalog_object(
    body: schemas.CatalogObjectBody,
    owner: str = Depends(auth_dependencies.get_current_owner),
    service: CatalogService = Depends(get_catalog_service),
) -> dict:
    document = await service.create(owner, body.root)
    return document.model_dump(mode="json")


@router.post("/_bulk")
async def bulk_create_catalog_objects(
    body: schemas.BulkCreateBody,
    owner: str = Depends(auth_dependencies.get_current_owner),
    service: CatalogService = Depends(get_catalog_service),
) -> dict:
    """
    Create a batch whose records reference each other by alias.

    Not atomic: on failure, records created before the failing one remain.
    """
    documents = await service.bulk_create(owner, body.root)
    return {
        "documents": [document.model_dump(mode="json") for document in documents],
        "count": len(documents),
    }


@router.post("/cmd")
async def run_catalog_command(
    body: schemas.CatalogCommandBody,
    owner: str = Depends(auth_dependencies.get_current_owner),
    service: CatalogService = Depends(get_catalog_service),
) -> dict:
    await service.cmd(owner, body.root)
    return {"success": True}


@router.get("/{entry_id}")
async def read_catalog_object(
    entry_id: UUID,
    owner: str = Depends(auth_dependencies.get_current_owner),
    service: CatalogService = Depends(get_catalog_service),
) -> dict:
    document = await service.read(owner, entry_id)
    return document.model_dump(mode="json")


@router.put("/{entry_id}")
async def update_catalog_object(
    entry_id: UUID,
    body: schemas.CatalogObjectBody,
    owner: str = Depends(auth_dependencies.get_current_owner),
    service: CatalogService = Depends(get_catalog_service),
) -> dict:
    document = await service.update(owner, entry_id, body.root)
    return document.model_dump(mode="json")
