from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PropertyImage(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    url: str
    title: str | None = None
    cover: bool | None = None
    floorplan: bool | None = None


class PropertyFeature(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str


class PropertyPayload(BaseModel):
    """A listing as sent by the dashboard. Unknown keys are kept as they are."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    price: float | None = Field(default=None, allow_inf_nan=False)
    type: str | None = None
    currency: str | None = None
    date: str | None = None
    images: list[PropertyImage] | None = None
    features: list[PropertyFeature] | None = None

    def document(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        # Whole-number prices stay integers in the store.
        if isinstance(data.get("price"), float) and data["price"].is_integer():
            data["price"] = int(data["price"])
        return data


class AdminPropertyFilters(BaseModel):
    page: int = Field(default=1, ge=1)
    id: str | None = None
    type: str | None = None
    town: str | None = None
    province: str | None = None
    country: str | None = None
    agencia: str | None = None
    minPrice: int | None = None
    maxPrice: int | None = None
    minBeds: int | None = None
    maxBeds: int | None = None
    minBaths: int | None = None
    maxBaths: int | None = None
    min_surface_area: int | None = None
    max_surface_area: int | None = None
    pool: int | None = None
    new_build: int | None = None
    part_ownership: int | None = None
    leasehold: int | None = None
    energy_rating: str | None = None


class FieldUpdateRequest(BaseModel):
    propertyId: str
    fieldName: str
    newValue: Any = None


class BatchChange(BaseModel):
    propertyId: str | None = None
    fieldName: str | None = None
    newValue: Any = None
    oldValue: Any = None


class BatchUpdateRequest(BaseModel):
    changes: list[BatchChange] = Field(min_length=1)


class PropertiesPayload(BaseModel):
    properties: list[Any] = Field(min_length=1)
