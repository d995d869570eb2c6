"""Tests for SupplyChainManager: validated edits to a product's supply chain."""

from __future__ import annotations

import pytest

from loomtrace.src.models import SupplierTier
from loomtrace.src.supply_chain import SupplyChainError, SupplyChainManager
from loomtrace.tests.conftest import BRAND_ID, PRODUCT_ID, TIER1_ID, TIER2_ID, TIER3_ID

GHOST_ID = "00000000-0000-4000-8000-000000000000"

# ===================================================================
# Brands and products
# ===================================================================


class TestBrandsAndProducts:
    """Tests for register_brand and create_product."""

    def test_register_brand(self, memory_store) -> None:
        mgr = SupplyChainManager(memory_store)
        brand = mgr.register_brand("  Fjord Knitwear ")
        assert brand.name == "Fjord Knitwear"
        assert memory_store.get_brand(brand.id) is not None

    def test_register_blank_brand_raises(self, memory_store) -> None:
        with pytest.raises(SupplyChainError, match="cannot be empty"):
            SupplyChainManager(memory_store).register_brand("   ")

    def test_create_product(self, manager: SupplyChainManager) -> None:
        product = manager.create_product(
            BRAND_ID,
            "Merino Beanie",
            sku="NW-BEA-7",
            material_composition=[{"material": "Merino wool", "percent": 100}],
        )
        assert product.brand_id == BRAND_ID
        assert product.material_composition[0].material == "Merino wool"
        assert product.material_composition[0].percent == 100

    def test_create_product_missing_brand(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Brand not found"):
            manager.create_product(GHOST_ID, "Merino Beanie")

    def test_create_product_invalid(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Invalid product"):
            manager.create_product(BRAND_ID, "X")

    def test_create_product_bad_percent(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="percent"):
            manager.create_product(
                BRAND_ID,
                "Merino Beanie",
                material_composition=[{"material": "Wool", "percent": 140}],
            )


# ===================================================================
# Adding suppliers
# ===================================================================


class TestAddSupplier:
    """Tests for add_supplier."""

    def test_add_tier_one(self, manager: SupplyChainManager) -> None:
        supplier = manager.add_supplier(
            BRAND_ID, PRODUCT_ID, "Lisbon Cut & Sew", 1, "Lisbon, Portugal"
        )
        assert supplier.tier == SupplierTier.ONE
        assert supplier.parent_supplier_id is None
        h = manager.get_hierarchy(PRODUCT_ID)
        assert h.find(supplier.id) is not None
        assert h.find(supplier.id).is_root

    def test_add_tier_two_under_tier_one(self, manager: SupplyChainManager) -> None:
        supplier = manager.add_supplier(
            BRAND_ID,
            PRODUCT_ID,
            "Covilha Spinners",
            2,
            "Covilha, Portugal",
            parent_supplier_id=TIER1_ID,
            latitude=40.28,
            longitude=-7.5,
        )
        node = manager.get_hierarchy(PRODUCT_ID).find(supplier.id)
        assert node.depth == 1
        assert node.path == [TIER1_ID]

    def test_extra_fields_kept(self, manager: SupplyChainManager) -> None:
        supplier = manager.add_supplier(
            BRAND_ID, PRODUCT_ID, "Audit Mill", 1, "Braga", extra={"audit_score": 91}
        )
        assert manager.get_hierarchy(PRODUCT_ID).find(supplier.id).supplier.extra == {
            "audit_score": 91
        }

    def test_tier_two_requires_parent(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="must have a parent supplier"):
            manager.add_supplier(BRAND_ID, PRODUCT_ID, "Loose Weaver", 2, "Braga")

    def test_tier_one_rejects_parent(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="cannot have a parent supplier"):
            manager.add_supplier(
                BRAND_ID, PRODUCT_ID, "Top Maker", 1, "Porto", parent_supplier_id=TIER2_ID
            )

    def test_tier_out_of_range(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="tier"):
            manager.add_supplier(BRAND_ID, PRODUCT_ID, "Deep Farm", 4, "Izmir")

    def test_short_name(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="name"):
            manager.add_supplier(BRAND_ID, PRODUCT_ID, "AB", 1, "Porto")

    def test_invalid_product_id(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Product ID must be a valid UUID"):
            manager.add_supplier(BRAND_ID, "prod-1", "Top Maker", 1, "Porto")

    def test_invalid_parent_id(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Parent supplier ID must be a valid UUID"):
            manager.add_supplier(
                BRAND_ID, PRODUCT_ID, "Weaver", 2, "Braga", parent_supplier_id="abc"
            )

    def test_missing_product(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Product not found"):
            manager.add_supplier(BRAND_ID, GHOST_ID, "Top Maker", 1, "Porto")

    def test_product_of_other_brand(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="belongs to brand"):
            manager.add_supplier(GHOST_ID, PRODUCT_ID, "Top Maker", 1, "Porto")

    def test_parent_outside_product(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="not part of product"):
            manager.add_supplier(
                BRAND_ID, PRODUCT_ID, "Weaver", 2, "Braga", parent_supplier_id=GHOST_ID
            )

    def test_parent_on_wrong_tier(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="needs a tier 2 parent"):
            manager.add_supplier(
                BRAND_ID, PRODUCT_ID, "Cotton Farm", 3, "Izmir", parent_supplier_id=TIER1_ID
            )

    def test_failed_add_leaves_no_rows(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError):
            manager.add_supplier(BRAND_ID, PRODUCT_ID, "Loose Weaver", 2, "Braga")
        assert manager.get_hierarchy(PRODUCT_ID).total_suppliers == 3


# ===================================================================
# Reads
# ===================================================================


class TestHierarchyReads:
    """Hierarchy views built from storage."""

    def test_get_hierarchy(self, manager: SupplyChainManager) -> None:
        h = manager.get_hierarchy(PRODUCT_ID)
        assert h.total_suppliers == 3
        assert h.max_depth == 2
        assert [n.id for n in h.root_nodes] == [TIER1_ID]

    def test_unknown_product_is_empty(self, manager: SupplyChainManager) -> None:
        h = manager.get_hierarchy(GHOST_ID)
        assert h.total_suppliers == 0
        assert h.max_depth == 0

    def test_potential_parents(self, manager: SupplyChainManager) -> None:
        assert [n.id for n in manager.get_potential_parents(PRODUCT_ID, 2)] == [TIER1_ID]
        assert [n.id for n in manager.get_potential_parents(PRODUCT_ID, 3)] == [TIER2_ID]
        assert manager.get_potential_parents(PRODUCT_ID, 1) == []

    def test_potential_parents_bad_tier(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Tier must be 1, 2, or 3"):
            manager.get_potential_parents(PRODUCT_ID, 5)

    def test_stats(self, manager: SupplyChainManager) -> None:
        stats = manager.get_hierarchy_stats(PRODUCT_ID)
        assert stats.total_suppliers == 3
        assert stats.root_suppliers == 1
        assert stats.suppliers_with_children == 2
        assert stats.leaf_suppliers == 1

    def test_supplier_path(self, manager: SupplyChainManager) -> None:
        assert manager.get_supplier_path(PRODUCT_ID, TIER3_ID) == [
            "Porto Garments",
            "Braga Weaving",
            "Izmir Cotton Ginning",
        ]


# ===================================================================
# Updating and moving
# ===================================================================


class TestUpdateSupplier:
    """Tests for update_supplier."""

    def test_update_fields(self, manager: SupplyChainManager, populated_store) -> None:
        manager.update_supplier(TIER2_ID, name="Braga Weaving Mill", latitude=41.55)
        fetched = populated_store.get_supplier(TIER2_ID)
        assert fetched.name == "Braga Weaving Mill"
        assert fetched.latitude == pytest.approx(41.55)
        assert fetched.location == "Braga, Portugal"

    def test_update_invalid_latitude(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="latitude"):
            manager.update_supplier(TIER2_ID, latitude=123.0)

    def test_update_missing(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Supplier not found"):
            manager.update_supplier(GHOST_ID, name="Nobody Inc")


class TestSetParent:
    """Tests for set_parent."""

    def test_move_under_new_parent(self, manager: SupplyChainManager) -> None:
        lisbon = manager.add_supplier(BRAND_ID, PRODUCT_ID, "Lisbon Cut", 1, "Lisbon")
        manager.set_parent(PRODUCT_ID, TIER2_ID, lisbon.id)
        h = manager.get_hierarchy(PRODUCT_ID)
        assert h.find(TIER2_ID).path == [lisbon.id]
        assert h.find(TIER3_ID).path == [lisbon.id, TIER2_ID]
        assert h.find(TIER1_ID).children == []

    def test_tier_one_cannot_move(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Tier 1"):
            manager.set_parent(PRODUCT_ID, TIER1_ID, TIER2_ID)

    def test_self_parent(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="own parent"):
            manager.set_parent(PRODUCT_ID, TIER2_ID, TIER2_ID)

    def test_wrong_tier_parent(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="needs a tier 1 parent"):
            manager.set_parent(PRODUCT_ID, TIER2_ID, TIER3_ID)

    def test_missing_supplier(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Supplier not found"):
            manager.set_parent(PRODUCT_ID, GHOST_ID, TIER1_ID)

    def test_supplier_from_other_product_rejected(
        self, manager: SupplyChainManager, populated_store
    ) -> None:
        second = manager.create_product(BRAND_ID, "Second Tee")
        garment = manager.add_supplier(BRAND_ID, second.id, "Lisbon Cut", 1, "Lisbon")
        weaver = manager.add_supplier(
            BRAND_ID,
            second.id,
            "Guimaraes Weaving",
            2,
            "Guimaraes",
            parent_supplier_id=garment.id,
        )
        with pytest.raises(SupplyChainError, match="is not part of product"):
            manager.set_parent(PRODUCT_ID, weaver.id, TIER1_ID)
        assert populated_store.get_supplier(weaver.id).parent_supplier_id == garment.id
        assert manager.get_hierarchy(second.id).find(weaver.id).depth == 1


# ===================================================================
# Removing
# ===================================================================


class TestRemoveSupplier:
    """Tests for remove_supplier."""

    def test_remove_leaf(self, manager: SupplyChainManager, populated_store) -> None:
        manager.remove_supplier(TIER3_ID)
        assert populated_store.get_supplier(TIER3_ID) is None
        assert manager.get_hierarchy(PRODUCT_ID).total_suppliers == 2

    def test_remove_with_children_requires_reassignment(
        self, manager: SupplyChainManager
    ) -> None:
        with pytest.raises(SupplyChainError, match="has 1 children"):
            manager.remove_supplier(TIER1_ID)

    def test_remove_with_reassignment(self, manager: SupplyChainManager, populated_store) -> None:
        lisbon = manager.add_supplier(BRAND_ID, PRODUCT_ID, "Lisbon Cut", 1, "Lisbon")
        manager.remove_supplier(TIER1_ID, reassign_children_to=lisbon.id)
        assert populated_store.get_supplier(TIER1_ID) is None
        assert populated_store.get_supplier(TIER2_ID).parent_supplier_id == lisbon.id
        assert manager.get_supplier_path(PRODUCT_ID, TIER3_ID)[0] == "Lisbon Cut"

    def test_reassign_to_other_tier_rejected(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="must be reassigned"):
            manager.remove_supplier(TIER1_ID, reassign_children_to=TIER2_ID)

    def test_reassign_to_self_rejected(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="must be reassigned"):
            manager.remove_supplier(TIER1_ID, reassign_children_to=TIER1_ID)

    def test_reassign_to_other_brand_rejected(
        self, manager: SupplyChainManager, populated_store
    ) -> None:
        rival = manager.register_brand("Rival Brand")
        rival_product = manager.create_product(rival.id, "Rival Tee")
        rival_garment = manager.add_supplier(
            rival.id, rival_product.id, "Rival Garments", 1, "Milan"
        )
        with pytest.raises(SupplyChainError, match="belongs to another brand"):
            manager.remove_supplier(TIER1_ID, reassign_children_to=rival_garment.id)
        assert populated_store.get_supplier(TIER1_ID) is not None
        assert populated_store.get_supplier(TIER2_ID).parent_supplier_id == TIER1_ID

    def test_reassign_to_supplier_outside_childs_product_rejected(
        self, manager: SupplyChainManager, populated_store
    ) -> None:
        second = manager.create_product(BRAND_ID, "Second Tee")
        lisbon = manager.add_supplier(BRAND_ID, second.id, "Lisbon Cut", 1, "Lisbon")
        with pytest.raises(SupplyChainError, match=f"not linked to product\\(s\\) {PRODUCT_ID}"):
            manager.remove_supplier(TIER1_ID, reassign_children_to=lisbon.id)
        assert populated_store.get_supplier(TIER2_ID).parent_supplier_id == TIER1_ID

    def test_remove_missing(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Supplier not found"):
            manager.remove_supplier(GHOST_ID)


# ===================================================================
# Certificates
# ===================================================================


class TestAddCertificate:
    """Tests for add_certificate."""

    def test_add_certificate(self, manager: SupplyChainManager, populated_store) -> None:
        cert = manager.add_certificate(TIER3_ID, "Organic Content Standard", "OCS", "2023-11-30")
        assert cert.issued_date == "2023-11-30"
        stored = populated_store.get_certificates_for_supplier(TIER3_ID)
        assert [c.id for c in stored] == [cert.id]

    def test_bad_date(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="issued_date"):
            manager.add_certificate(TIER3_ID, "Organic Content Standard", "OCS", "30/11/2023")

    def test_missing_supplier(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Supplier not found"):
            manager.add_certificate(GHOST_ID, "Organic Content Standard", "OCS", "2023-11-30")

    def test_invalid_supplier_id(self, manager: SupplyChainManager) -> None:
        with pytest.raises(SupplyChainError, match="Supplier ID must be a valid UUID"):
            manager.add_certificate("s-1", "Organic Content Standard", "OCS", "2023-11-30")
