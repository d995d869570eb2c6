"""Shared fixtures for loomtrace tests."""

from __future__ import annotations

from datetime import datetime

import pytest

from loomtrace.src.models import (
    Brand,
    Certificate,
    MaterialComponent,
    Product,
    Supplier,
    SupplierTier,
)
from loomtrace.src.storage import SupplyChainStorage
from loomtrace.src.supply_chain import SupplyChainManager

BRAND_ID = "0b6f2a52-3c1e-4d8e-9a57-0f1d2c3b4a51"
PRODUCT_ID = "5e0c8d1a-7b2f-4c3d-8e9f-1a2b3c4d5e61"
TIER1_ID = "a1a1a1a1-0000-4000-8000-000000000001"
TIER2_ID = "b2b2b2b2-0000-4000-8000-000000000002"
TIER3_ID = "c3c3c3c3-0000-4000-8000-000000000003"


@pytest.fixture
def memory_store() -> SupplyChainStorage:
    """In-memory SupplyChainStorage with schema initialized."""
    store = SupplyChainStorage(":memory:")
    store.initialize_schema()
    return store


@pytest.fixture
def sample_brand() -> Brand:
    """A sample brand for testing."""
    return Brand(id=BRAND_ID, name="Northwind Apparel")


@pytest.fixture
def sample_product(sample_brand: Brand) -> Product:
    """A sample product for testing."""
    return Product(
        id=PRODUCT_ID,
        name="Organic Cotton Tee",
        brand_id=sample_brand.id,
        sku="NW-TEE-001",
        description="Heavyweight crew neck tee",
        care_instructions="Wash cold, line dry",
        material_composition=[
            MaterialComponent(material="Organic cotton", percent=95),
            MaterialComponent(material="Elastane", percent=5),
        ],
        created_at=datetime(2024, 3, 1, 9, 0, 0),
        updated_at=datetime(2024, 3, 1, 9, 0, 0),
    )


@pytest.fixture
def supplier_chain(sample_brand: Brand) -> list[Supplier]:
    """A Tier 1 -> Tier 2 -> Tier 3 chain."""
    garment = Supplier(
        id=TIER1_ID,
        name="Porto Garments",
        tier=SupplierTier.ONE,
        location="Porto, Portugal",
        latitude=41.15,
        longitude=-8.61,
        brand_id=sample_brand.id,
    )
    fabric = Supplier(
        id=TIER2_ID,
        name="Braga Weaving",
        tier=SupplierTier.TWO,
        location="Braga, Portugal",
        brand_id=sample_brand.id,
        parent_supplier_id=garment.id,
    )
    fibre = Supplier(
        id=TIER3_ID,
        name="Izmir Cotton Ginning",
        tier=SupplierTier.THREE,
        location="Izmir, Turkey",
        brand_id=sample_brand.id,
        parent_supplier_id=fabric.id,
    )
    return [garment, fabric, fibre]


@pytest.fixture
def sample_certificate() -> Certificate:
    """A GOTS certificate for the Tier 1 supplier."""
    return Certificate(
        id="d4d4d4d4-0000-4000-8000-000000000004",
        supplier_id=TIER1_ID,
        name="GOTS Scope Certificate",
        type="GOTS",
        issued_date="2024-01-15",
    )


@pytest.fixture
def populated_store(
    memory_store: SupplyChainStorage,
    sample_brand: Brand,
    sample_product: Product,
    supplier_chain: list[Supplier],
) -> SupplyChainStorage:
    """Memory store with one brand, one product, and a linked three-tier chain."""
    memory_store.create_brand(sample_brand)
    memory_store.create_product(sample_product)
    for supplier in supplier_chain:
        memory_store.create_supplier(supplier)
        memory_store.link_supplier_to_product(sample_product.id, supplier.id)
    return memory_store


@pytest.fixture
def manager(populated_store: SupplyChainStorage) -> SupplyChainManager:
    """SupplyChainManager over the populated store."""
    return SupplyChainManager(populated_store)
