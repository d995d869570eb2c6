"""Write-time validation schemas for products, suppliers, and certificates.

These pydantic models guard data on the way in. In particular the
tier/parent rule (Tier 1 has no parent, Tier 2 and 3 must have one) is
enforced here; the hierarchy builder trusts stored data and does not
re-check it on read.
"""

from __future__ import annotations

import re
from datetime import date

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def is_valid_uuid(value: str) -> bool:
    """Return True if *value* has the canonical 8-4-4-4-12 UUID shape."""
    return isinstance(value, str) and bool(_UUID_RE.match(value))


def _require_uuid(value: str | None, label: str) -> str | None:
    if value is not None and not is_valid_uuid(value):
        raise ValueError(f"{label} must be a valid UUID")
    return value


def validation_messages(exc: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into "field: message" strings."""
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages


class MaterialComponentIn(BaseModel):
    """One material composition line."""

    model_config = ConfigDict(str_strip_whitespace=True)

    material: str = Field(..., min_length=1)
    percent: float = Field(..., ge=0, le=100)


class ProductCreate(BaseModel):
    """Request body for creating or updating a product."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=3, max_length=255)
    sku: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    care_instructions: str | None = Field(default=None, max_length=2000)
    end_of_life_options: str | None = Field(default=None, max_length=1000)
    image_url: str | None = None
    material_composition: list[MaterialComponentIn] | None = None


class SupplierCreate(BaseModel):
    """Request body for adding a supplier to a product's supply chain."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=3, max_length=255)
    tier: int = Field(..., ge=1, le=3)
    location: str = Field(..., min_length=2, max_length=255)
    product_id: str
    parent_supplier_id: str | None = Field(default=None, validate_default=True)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator("product_id")
    @classmethod
    def _check_product_id(cls, value: str) -> str:
        return _require_uuid(value, "Product ID")

    @field_validator("parent_supplier_id")
    @classmethod
    def _check_parent_id(cls, value: str | None, info: ValidationInfo) -> str | None:
        # Declared after ``tier``, so a valid tier is already in info.data.
        value = _require_uuid(value or None, "Parent supplier ID")
        tier = info.data.get("tier")
        if tier == 1 and value:
            raise ValueError("Tier 1 suppliers cannot have a parent supplier")
        if tier in (2, 3) and not value:
            raise ValueError("Tier 2 and 3 suppliers must have a parent supplier")
        return value


class SupplierUpdate(BaseModel):
    """Request body for updating a supplier's descriptive fields."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=3, max_length=255)
    location: str | None = Field(default=None, min_length=2, max_length=255)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class CertificateCreate(BaseModel):
    """Request body for attaching a certificate to a supplier."""

    model_config = ConfigDict(str_strip_whitespace=True)

    supplier_id: str
    name: str = Field(..., min_length=2, max_length=255)
    type: str = Field(..., min_length=2, max_length=100)
    issued_date: date

    @field_validator("supplier_id")
    @classmethod
    def _check_supplier_id(cls, value: str) -> str:
        return _require_uuid(value, "Supplier ID")
