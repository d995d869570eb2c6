"""loomtrace data models for supply-chain transparency.

Defines domain models for brands, products, tiered suppliers, and
supplier certificates, plus the composite read models consumed by the
dashboard and the Digital Product Passport (DPP). All models use
dataclasses with serialization support and UUID-based ID generation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SupplierTier(int, Enum):
    """Position of a supplier relative to the brand.

    Tier 1 supplies the brand directly, Tier 2 supplies a Tier 1 node,
    Tier 3 supplies a Tier 2 node.
    """

    ONE = 1
    TWO = 2
    THREE = 3


def _parse_datetime(value: Any) -> datetime:
    """Accept either a datetime or an ISO-8601 string."""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class Brand:
    """A fashion brand that owns products.

    Attributes:
        id: Unique identifier (UUID string).
        name: Display name.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    id: str
    name: str
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @staticmethod
    def generate_id() -> str:
        """Generate a unique brand ID."""
        return str(uuid.uuid4())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Brand:
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            name=data["name"],
            created_at=_parse_datetime(data["created_at"]),
            updated_at=_parse_datetime(data["updated_at"]),
        )


@dataclass
class MaterialComponent:
    """One line of a product's material composition (e.g. 95% cotton)."""

    material: str
    percent: float

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {"material": self.material, "percent": self.percent}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MaterialComponent:
        """Deserialize from dictionary."""
        return cls(material=data["material"], percent=float(data["percent"]))


@dataclass
class Product:
    """A product sold by a brand.

    Attributes:
        id: Unique identifier (UUID string).
        name: Product name.
        brand_id: Owning brand ID.
        image_url: Optional product image.
        sku: Optional stock keeping unit.
        description: Free-text description.
        care_instructions: Washing and care guidance.
        end_of_life_options: Repair, resale, or recycling guidance.
        material_composition: Materials and their percentages.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    id: str
    name: str
    brand_id: str
    image_url: str | None = None
    sku: str | None = None
    description: str | None = None
    care_instructions: str | None = None
    end_of_life_options: str | None = None
    material_composition: list[MaterialComponent] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @staticmethod
    def generate_id() -> str:
        """Generate a unique product ID."""
        return str(uuid.uuid4())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "brand_id": self.brand_id,
            "image_url": self.image_url,
            "sku": self.sku,
            "description": self.description,
            "care_instructions": self.care_instructions,
            "end_of_life_options": self.end_of_life_options,
            "material_composition": [m.to_dict() for m in self.material_composition],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Product:
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            name=data["name"],
            brand_id=data["brand_id"],
            image_url=data.get("image_url"),
            sku=data.get("sku"),
            description=data.get("description"),
            care_instructions=data.get("care_instructions"),
            end_of_life_options=data.get("end_of_life_options"),
            material_composition=[
                MaterialComponent.from_dict(m) for m in data.get("material_composition") or []
            ],
            created_at=_parse_datetime(data["created_at"]),
            updated_at=_parse_datetime(data["updated_at"]),
        )


_SUPPLIER_FIELDS = frozenset(
    {
        "id",
        "name",
        "tier",
        "location",
        "latitude",
        "longitude",
        "brand_id",
        "parent_supplier_id",
        "created_at",
        "updated_at",
    }
)


@dataclass
class Supplier:
    """A supplier in a brand's supply chain.

    Attributes:
        id: Unique identifier (UUID string).
        name: Display name.
        tier: Supplier tier (1, 2, or 3).
        location: Human-readable location (city, country).
        latitude: Optional map coordinate.
        longitude: Optional map coordinate.
        brand_id: Owning brand ID.
        parent_supplier_id: Supplier this one delivers to, None for Tier 1.
        extra: Free-form fields carried through unchanged.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    id: str
    name: str
    tier: SupplierTier
    location: str = ""
    latitude: float | None = None
    longitude: float | None = None
    brand_id: str | None = None
    parent_supplier_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        self.tier = SupplierTier(self.tier)

    @staticmethod
    def generate_id() -> str:
        """Generate a unique supplier ID."""
        return str(uuid.uuid4())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary, merging ``extra`` back in."""
        result = dict(self.extra)
        result.update(
            {
                "id": self.id,
                "name": self.name,
                "tier": self.tier.value,
                "location": self.location,
                "latitude": self.latitude,
                "longitude": self.longitude,
                "brand_id": self.brand_id,
                "parent_supplier_id": self.parent_supplier_id,
                "created_at": self.created_at.isoformat(),
                "updated_at": self.updated_at.isoformat(),
            }
        )
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Supplier:
        """Deserialize from dictionary.

        Keys outside the known supplier columns are kept in ``extra``.
        Timestamps are optional so that raw query rows can be passed in.
        """
        now = datetime.now()
        created_at = data.get("created_at")
        updated_at = data.get("updated_at")
        return cls(
            id=data["id"],
            name=data["name"],
            tier=SupplierTier(data["tier"]),
            location=data.get("location") or "",
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            brand_id=data.get("brand_id"),
            parent_supplier_id=data.get("parent_supplier_id"),
            extra={k: v for k, v in data.items() if k not in _SUPPLIER_FIELDS},
            created_at=_parse_datetime(created_at) if created_at else now,
            updated_at=_parse_datetime(updated_at) if updated_at else now,
        )


@dataclass
class Certificate:
    """A certification held by a supplier (e.g. GOTS, OEKO-TEX).

    Attributes:
        id: Unique identifier (UUID string).
        supplier_id: Certified supplier ID.
        name: Certificate name.
        type: Certificate category.
        issued_date: Issue date as an ISO date string.
        verified_at: When the certificate was verified, if ever.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    id: str
    supplier_id: str
    name: str
    type: str
    issued_date: str
    verified_at: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @staticmethod
    def generate_id() -> str:
        """Generate a unique certificate ID."""
        return str(uuid.uuid4())

    @property
    def is_verified(self) -> bool:
        """True once the certificate carries a verification timestamp."""
        return self.verified_at is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "name": self.name,
            "type": self.type,
            "issued_date": self.issued_date,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Certificate:
        """Deserialize from dictionary."""
        verified_at = data.get("verified_at")
        if verified_at:
            verified_at = _parse_datetime(verified_at)
        return cls(
            id=data["id"],
            supplier_id=data["supplier_id"],
            name=data["name"],
            type=data["type"],
            issued_date=data["issued_date"],
            verified_at=verified_at,
            created_at=_parse_datetime(data["created_at"]),
            updated_at=_parse_datetime(data["updated_at"]),
        )


@dataclass
class ProductWithSuppliers:
    """A product with its brand and every linked supplier (dashboard view)."""

    product: Product
    brand: Brand
    suppliers: list[Supplier] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        result = self.product.to_dict()
        result["brand"] = self.brand.to_dict()
        result["suppliers"] = [s.to_dict() for s in self.suppliers]
        return result


@dataclass
class SupplierWithCertificates:
    """A supplier bundled with its certificates for the public passport."""

    supplier: Supplier
    certificates: list[Certificate] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        result = self.supplier.to_dict()
        result["certificates"] = [c.to_dict() for c in self.certificates]
        return result


@dataclass
class DppData:
    """Everything the Digital Product Passport page shows for a product.

    Suppliers are ordered Tier 3 first so the journey reads from raw
    material to finished garment.
    """

    product: Product
    brand: Brand
    suppliers: list[SupplierWithCertificates] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        product = self.product.to_dict()
        product["brand"] = self.brand.to_dict()
        return {
            "product": product,
            "suppliers": [s.to_dict() for s in self.suppliers],
        }
