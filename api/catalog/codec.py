"""
Row codec: the single place where a kind tag drives polymorphic decoding.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from .errors import MappingError
from .models import CatalogKind, CatalogObject, CatalogObjectDocument, kind_of
from .storage import CatalogObjectRow

_catalog_object = TypeAdapter(CatalogObject)


def encode(obj: BaseModel) -> tuple[str, dict[str, Any]]:
    """
    Split a catalog object into its kind tag and JSON payload.
    """
    return kind_of(obj).value, obj.data.model_dump(mode="json")  # type: ignore[attr-defined]


def decode_payload(kind: str, payload: Any) -> CatalogObject:
    try:
        catalog_kind = CatalogKind(kind)
    except ValueError as exc:
        raise MappingError(f"Unknown catalog kind {kind!r}.") from exc

    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise MappingError(f"Payload of kind {kind} is not valid JSON.") from exc

    if not isinstance(payload, dict):
        raise MappingError(f"Missing payload for kind {kind}.")

    try:
        return _catalog_object.validate_python({"type": catalog_kind.value, "data": payload})
    except ValidationError as exc:
        raise MappingError(f"Payload does not match kind {kind}.") from exc


def decode(row: CatalogObjectRow) -> CatalogObject:
    return decode_payload(row.kind, row.payload)


def to_document(row: CatalogObjectRow) -> CatalogObjectDocument:
    return CatalogObjectDocument(
        id=row.id,
        owner=row.owner,
        created_at=row.created_at,
        updated_at=row.updated_at,
        catalog_object=decode(row),
    )
