"""
Catalog object model.

A catalog record is a tagged union serialized as `{"type": <tag>, "data": {...}}`.
Records other than `Item` point at their parent item through `item_id`; Matrix
controls additionally point at sibling records through `combinations`.

Reference-carrying models are generic over the reference type so the same
shapes serve durable objects (`UUID`) and bulk input (`str` aliases).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Generic, Literal, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel, Field, SerializerFunctionWrapHandler, model_serializer, model_validator

RefT = TypeVar("RefT")

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class CatalogKind(str, Enum):
    ITEM = "Item"
    VARIATION = "Variation"
    MODIFICATION = "Modification"
    DELIVERY = "Delivery"
    CONTROL = "Control"


class ItemCategory(str, Enum):
    SHOP = "Shop"
    RESTAURANT = "Restaurant"
    LIQUOR = "Liquor"
    BEAUTY = "Beauty"
    FASHION_AND_ACCESSORIES = "FashionAndAccessories"
    TECHNOLOGY = "Technology"
    HOME = "Home"
    PHARMACY_AND_HEALTH = "PharmacyAndHealth"
    VEHICLES_AND_ACCESSORIES = "VehiclesAndAccessories"
    SPORTS = "Sports"
    PETS = "Pets"
    ART_AND_CRAFTS = "ArtAndCrafts"
    TOOLS_AND_GARDEN = "ToolsAndGarden"
    BABIES_AND_KIDS = "BabiesAndKids"
    ENTERTAINMENT = "Entertainment"
    TOYS_AND_GAMES = "ToysAndGames"
    BUSINESSES_AND_SUPPLIES = "BusinessesAndSupplies"
    ADULT_SHOP = "AdultShop"
    PAPER_WORK = "PaperWork"


class MeasurementUnits(str, Enum):
    TIME = "Time"
    AREA = "Area"
    CUSTOM = "Custom"
    GENERIC = "Generic"
    UNITS = "Units"
    LENGTH = "Length"
    VOLUME = "Volume"
    WEIGHT = "Weight"


class TimeUnit(str, Enum):
    MINUTES = "Minutes"
    HOURS = "Hours"
    DAYS = "Days"
    WEEKS = "Weeks"
    MONTHS = "Months"
    YEARS = "Years"


class FormFieldKind(str, Enum):
    TEXT = "Text"
    NUMBER = "Number"
    SELECT = "Select"
    CHECKBOX = "Checkbox"
    DATE = "Date"


class Image(BaseModel):
    url: str = Field(..., min_length=1)


class Price(BaseModel):
    type: Literal["Fixed"] = "Fixed"
    amount: float
    asset_name: str = Field(..., min_length=1, max_length=16)
    asset_scale: int = Field(default=2, ge=0, le=18)


class TimeDuration(BaseModel):
    amount: int = Field(..., ge=0)
    unit: TimeUnit


class Dimensions(BaseModel):
    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)
    length: float = Field(..., ge=0)
    weight: float = Field(..., ge=0)


class Item(BaseModel):
    name: str
    description: str = ""
    category: ItemCategory
    tags: list[str] = Field(default_factory=list)
    images: list[Image] = Field(default_factory=list)
    enabled: bool = True


class ItemVariation(BaseModel, Generic[RefT]):
    item_id: RefT
    name: str
    sku: str
    upc: str | None = None
    images: list[Image] = Field(default_factory=list)
    enabled: bool = True
    measurement_units: MeasurementUnits = MeasurementUnits.UNITS
    available_units: int = Field(default=0, ge=INT32_MIN, le=INT32_MAX)
    price: Price
    processing_time: TimeDuration | None = None
    warranty_time: TimeDuration | None = None


class ItemModification(BaseModel, Generic[RefT]):
    item_id: RefT
    name: str
    images: list[Image] = Field(default_factory=list)
    price: Price
    enabled: bool = True


class ItemDelivery(BaseModel, Generic[RefT]):
    item_id: RefT
    name: str
    price: Price
    dimensions: Dimensions | None = None
    processing_time: TimeDuration | None = None
    enabled: bool = True


class MatrixProp(BaseModel):
    name: str = Field(..., min_length=1)
    options: list[str] = Field(default_factory=list)


class Matrix(BaseModel, Generic[RefT]):
    props: list[MatrixProp] = Field(default_factory=list)
    # e.g. ":color-:size"; each ":<prop>" placeholder is replaced by an option
    key_template: str
    combinations: dict[str, RefT] = Field(default_factory=dict)


class FormField(BaseModel):
    name: str = Field(..., min_length=1)
    label: str = ""
    kind: FormFieldKind = FormFieldKind.TEXT
    required: bool = False
    options: list[str] = Field(default_factory=list)


class Form(BaseModel):
    fields: list[FormField] = Field(default_factory=list)


class MatrixControl(BaseModel, Generic[RefT]):
    type: Literal["Matrix"] = "Matrix"
    data: Matrix[RefT]


class FormControl(BaseModel):
    type: Literal["Form"] = "Form"
    data: Form


class ItemControl(BaseModel, Generic[RefT]):
    item_id: RefT
    # The literal `type` on each member keeps the union unambiguous.
    control: Union[MatrixControl[RefT], FormControl]


class ItemEntry(BaseModel):
    type: Literal["Item"] = "Item"
    data: Item


class VariationEntry(BaseModel, Generic[RefT]):
    type: Literal["Variation"] = "Variation"
    data: ItemVariation[RefT]


class ModificationEntry(BaseModel, Generic[RefT]):
    type: Literal["Modification"] = "Modification"
    data: ItemModification[RefT]


class DeliveryEntry(BaseModel, Generic[RefT]):
    type: Literal["Delivery"] = "Delivery"
    data: ItemDelivery[RefT]


class ControlEntry(BaseModel, Generic[RefT]):
    type: Literal["Control"] = "Control"
    data: ItemControl[RefT]


CatalogObject = Annotated[
    Union[
        ItemEntry,
        VariationEntry[UUID],
        ModificationEntry[UUID],
        DeliveryEntry[UUID],
        ControlEntry[UUID],
    ],
    Field(discriminator="type"),
]

# Same shapes, references still unresolved strings.
BulkCatalogObject = Annotated[
    Union[
        ItemEntry,
        VariationEntry[str],
        ModificationEntry[str],
        DeliveryEntry[str],
        ControlEntry[str],
    ],
    Field(discriminator="type"),
]


def _lift_catalog_object(value: Any) -> Any:
    # Wire form is flat: {"id": ..., "type": ..., "data": ...}.
    if isinstance(value, dict) and "catalog_object" not in value and "type" in value:
        value = dict(value)
        value["catalog_object"] = {"type": value.pop("type"), "data": value.pop("data", None)}
    return value


class CatalogObjectDocument(BaseModel):
    id: UUID
    owner: str
    created_at: datetime
    updated_at: datetime
    catalog_object: CatalogObject

    @model_validator(mode="before")
    @classmethod
    def lift_catalog_object(cls, value: Any) -> Any:
        return _lift_catalog_object(value)

    @model_serializer(mode="wrap")
    def flatten_catalog_object(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        data.update(data.pop("catalog_object"))
        return data


class CatalogObjectBulkDocument(BaseModel):
    """
    Bulk-create input unit. `id` is an optional caller alias, not a durable id.
    """

    id: str | None = None
    catalog_object: BulkCatalogObject

    @model_validator(mode="before")
    @classmethod
    def lift_catalog_object(cls, value: Any) -> Any:
        return _lift_catalog_object(value)


def kind_of(obj: BaseModel) -> CatalogKind:
    return CatalogKind(obj.type)  # type: ignore[attr-defined]


def parent_ref(obj: BaseModel) -> object | None:
    """
    Parent item reference of a catalog object, None for `Item`.
    """
    if isinstance(obj, ItemEntry):
        return None
    return obj.data.item_id  # type: ignore[attr-defined]


def combination_refs(obj: BaseModel) -> list[object]:
    if isinstance(obj, ControlEntry) and isinstance(obj.data.control, MatrixControl):
        return list(obj.data.control.data.combinations.values())
    return []

