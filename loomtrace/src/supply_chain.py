"""Context-aware supplier management for a product's supply chain.

Wraps SupplyChainStorage with the rules the dashboard relies on when a
brand edits its supply chain: suppliers are validated on the way in,
a new Tier N supplier may only hang off a Tier N-1 supplier of the same
product, and suppliers with children cannot be removed without
reassigning those children.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from loomtrace.src.hierarchy import (
    HierarchyNode,
    HierarchyStats,
    SupplierHierarchy,
    build_supplier_hierarchy,
    get_hierarchy_stats,
    get_potential_parents,
    get_supplier_path,
)
from loomtrace.src.models import (
    Brand,
    Certificate,
    MaterialComponent,
    Product,
    Supplier,
    SupplierTier,
)
from loomtrace.src.schemas import (
    CertificateCreate,
    ProductCreate,
    SupplierCreate,
    SupplierUpdate,
    validation_messages,
)
from loomtrace.src.storage import SupplyChainStorage

logger = logging.getLogger(__name__)


class SupplyChainError(Exception):
    """Raised for invalid supply chain operations."""


class SupplyChainManager:
    """Engine for editing a brand's tiered supply chain.

    Args:
        storage: SupplyChainStorage instance for persistence.

    Example::

        manager = SupplyChainManager(storage)
        mill = manager.add_supplier(brand_id, product_id, "Acme Mill", 1, "Porto, PT")
        manager.add_supplier(
            brand_id, product_id, "Beta Spinning", 2, "Izmir, TR",
            parent_supplier_id=mill.id,
        )
        stats = manager.get_hierarchy_stats(product_id)
    """

    def __init__(self, storage: SupplyChainStorage) -> None:
        self._storage = storage

    # --- Reads ---

    def get_hierarchy(self, product_id: str) -> SupplierHierarchy:
        """Build the supplier hierarchy for a product from storage."""
        return build_supplier_hierarchy(self._storage.get_suppliers_for_product(product_id))

    def get_potential_parents(self, product_id: str, tier: int) -> list[HierarchyNode]:
        """Suppliers of the product that a new Tier *tier* supplier may attach to."""
        return get_potential_parents(self._parse_tier(tier), self.get_hierarchy(product_id))

    def get_hierarchy_stats(self, product_id: str) -> HierarchyStats:
        """Statistics for the product's supplier hierarchy."""
        return get_hierarchy_stats(self.get_hierarchy(product_id))

    def get_supplier_path(self, product_id: str, supplier_id: str) -> list[str]:
        """Names from the top of the chain down to *supplier_id*."""
        return get_supplier_path(supplier_id, self.get_hierarchy(product_id))

    # --- Writes ---

    def register_brand(self, name: str) -> Brand:
        """Create a brand profile.

        Raises:
            SupplyChainError: If the name is blank.
        """
        name = name.strip()
        if not name:
            raise SupplyChainError("Brand name cannot be empty")
        brand = Brand(id=Brand.generate_id(), name=name)
        self._storage.create_brand(brand)
        return brand

    def create_product(self, brand_id: str, name: str, **fields: Any) -> Product:
        """Create a product for a brand.

        Args:
            brand_id: Owning brand.
            name: Product name.
            **fields: Optional ProductCreate fields (sku, description,
                care_instructions, end_of_life_options, image_url,
                material_composition).

        Returns:
            The created Product.

        Raises:
            SupplyChainError: If validation fails or brand not found.
        """
        try:
            body = ProductCreate(name=name, **fields)
        except ValidationError as exc:
            raise SupplyChainError(
                "Invalid product:\n- " + "\n- ".join(validation_messages(exc))
            ) from exc
        if self._storage.get_brand(brand_id) is None:
            raise SupplyChainError(f"Brand not found: {brand_id}")

        product = Product(
            id=Product.generate_id(),
            name=body.name,
            brand_id=brand_id,
            image_url=body.image_url,
            sku=body.sku,
            description=body.description,
            care_instructions=body.care_instructions,
            end_of_life_options=body.end_of_life_options,
            material_composition=[
                MaterialComponent(material=m.material, percent=m.percent)
                for m in body.material_composition or []
            ],
        )
        self._storage.create_product(product)
        return product

    def add_supplier(
        self,
        brand_id: str,
        product_id: str,
        name: str,
        tier: int,
        location: str,
        parent_supplier_id: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
        extra: dict[str, Any] | None = None,
    ) -> Supplier:
        """Create a supplier and link it to a product.

        Args:
            brand_id: Brand that owns the product.
            product_id: Product the supplier works on.
            name: Supplier display name.
            tier: 1, 2, or 3.
            location: Human-readable location.
            parent_supplier_id: Required for Tier 2 and 3, forbidden for Tier 1.
            latitude: Optional map coordinate.
            longitude: Optional map coordinate.
            extra: Free-form fields stored with the supplier.

        Returns:
            The created Supplier.

        Raises:
            SupplyChainError: If validation fails, the product is not the
                brand's, or the parent is not an eligible supplier.
        """
        try:
            body = SupplierCreate(
                name=name,
                tier=tier,
                location=location,
                product_id=product_id,
                parent_supplier_id=parent_supplier_id,
                latitude=latitude,
                longitude=longitude,
            )
        except ValidationError as exc:
            raise SupplyChainError(
                "Invalid supplier:\n- " + "\n- ".join(validation_messages(exc))
            ) from exc

        self._require_product(brand_id, body.product_id)
        if body.parent_supplier_id is not None:
            self._validate_parent(body.product_id, body.tier, body.parent_supplier_id)

        supplier = Supplier(
            id=Supplier.generate_id(),
            name=body.name,
            tier=SupplierTier(body.tier),
            location=body.location,
            latitude=body.latitude,
            longitude=body.longitude,
            brand_id=brand_id,
            parent_supplier_id=body.parent_supplier_id,
            extra=dict(extra or {}),
        )
        self._storage.create_supplier(supplier)
        self._storage.link_supplier_to_product(body.product_id, supplier.id)
        logger.info(
            "Added tier %d supplier %s to product %s", supplier.tier.value, supplier.id, product_id
        )
        return supplier

    def update_supplier(
        self,
        supplier_id: str,
        name: str | None = None,
        location: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> Supplier:
        """Update a supplier's descriptive fields.

        Only provided (non-None) fields are changed.

        Raises:
            SupplyChainError: If supplier not found or values invalid.
        """
        supplier = self._require_supplier(supplier_id)
        try:
            body = SupplierUpdate(
                name=name, location=location, latitude=latitude, longitude=longitude
            )
        except ValidationError as exc:
            raise SupplyChainError(
                "Invalid supplier update:\n- " + "\n- ".join(validation_messages(exc))
            ) from exc

        if body.name is not None:
            supplier.name = body.name
        if body.location is not None:
            supplier.location = body.location
        if body.latitude is not None:
            supplier.latitude = body.latitude
        if body.longitude is not None:
            supplier.longitude = body.longitude
        self._storage.update_supplier(supplier)
        return supplier

    def set_parent(self, product_id: str, supplier_id: str, parent_id: str) -> Supplier:
        """Move a Tier 2 or 3 supplier under a different parent.

        Args:
            product_id: Product whose hierarchy the move happens in.
            supplier_id: Supplier to move.
            parent_id: New parent, one tier up.

        Returns:
            The updated Supplier.

        Raises:
            SupplyChainError: If not found, not linked to the product,
                Tier 1, self-parenting, wrong parent tier, or the move would
                create a cycle.
        """
        supplier = self._require_supplier(supplier_id)
        if supplier.tier == SupplierTier.ONE:
            raise SupplyChainError("Tier 1 suppliers cannot have a parent supplier")
        if parent_id == supplier_id:
            raise SupplyChainError("Cannot set supplier as its own parent")

        hierarchy = self._validate_parent(product_id, supplier.tier, parent_id)
        if hierarchy.find(supplier_id) is None:
            raise SupplyChainError(
                f"Supplier {supplier_id} is not part of product {product_id}"
            )
        if supplier_id in self._ancestor_ids(parent_id, hierarchy):
            raise SupplyChainError(
                f"Circular reference: {parent_id} is a descendant of {supplier_id}"
            )

        supplier.parent_supplier_id = parent_id
        self._storage.update_supplier(supplier)
        return supplier

    def remove_supplier(
        self,
        supplier_id: str,
        reassign_children_to: str | None = None,
    ) -> None:
        """Remove a supplier from the supply chain.

        Args:
            supplier_id: Supplier to remove.
            reassign_children_to: Same-tier supplier that adopts the
                children first.

        Raises:
            SupplyChainError: If not found, has children without
                reassignment, or the reassignment target is on another
                tier, belongs to another brand, or is missing from a
                product one of the children is linked to.
        """
        supplier = self._require_supplier(supplier_id)
        children = self._storage.get_supplier_children(supplier_id)
        if children:
            if reassign_children_to is None:
                raise SupplyChainError(
                    f"Supplier {supplier_id} has {len(children)} children. "
                    "Provide reassign_children_to or remove children first."
                )
            target = self._require_supplier(reassign_children_to)
            if target.id == supplier_id or target.tier != supplier.tier:
                raise SupplyChainError(
                    f"Children of tier {supplier.tier.value} supplier {supplier_id} "
                    f"must be reassigned to another tier {supplier.tier.value} supplier"
                )
            if target.brand_id != supplier.brand_id:
                raise SupplyChainError(
                    f"Reassignment target {target.id} belongs to another brand"
                )
            target_products = set(self._storage.get_supplier_product_ids(target.id))
            for child in children:
                missing = set(self._storage.get_supplier_product_ids(child.id)) - target_products
                if missing:
                    raise SupplyChainError(
                        f"Reassignment target {target.id} is not linked to product(s) "
                        f"{', '.join(sorted(missing))} of child {child.id}"
                    )
            for child in children:
                child.parent_supplier_id = target.id
                self._storage.update_supplier(child)
        self._storage.delete_supplier(supplier_id)
        logger.info("Removed supplier %s (%d children reassigned)", supplier_id, len(children))

    def add_certificate(
        self,
        supplier_id: str,
        name: str,
        type: str,
        issued_date: str,
    ) -> Certificate:
        """Attach a certificate to a supplier.

        Raises:
            SupplyChainError: If validation fails or supplier not found.
        """
        try:
            body = CertificateCreate(
                supplier_id=supplier_id, name=name, type=type, issued_date=issued_date
            )
        except ValidationError as exc:
            raise SupplyChainError(
                "Invalid certificate:\n- " + "\n- ".join(validation_messages(exc))
            ) from exc
        self._require_supplier(body.supplier_id)

        cert = Certificate(
            id=Certificate.generate_id(),
            supplier_id=body.supplier_id,
            name=body.name,
            type=body.type,
            issued_date=body.issued_date.isoformat(),
        )
        self._storage.create_certificate(cert)
        return cert

    # --- Private helpers ---

    @staticmethod
    def _parse_tier(tier: int) -> SupplierTier:
        try:
            return SupplierTier(tier)
        except ValueError as exc:
            raise SupplyChainError(f"Tier must be 1, 2, or 3, got {tier!r}") from exc

    def _require_product(self, brand_id: str, product_id: str) -> None:
        product = self._storage.get_product(product_id)
        if product is None:
            raise SupplyChainError(f"Product not found: {product_id}")
        if product.brand_id != brand_id:
            raise SupplyChainError(
                f"Product {product_id} belongs to brand {product.brand_id}, not {brand_id}"
            )

    def _require_supplier(self, supplier_id: str) -> Supplier:
        supplier = self._storage.get_supplier(supplier_id)
        if supplier is None:
            raise SupplyChainError(f"Supplier not found: {supplier_id}")
        return supplier

    def _validate_parent(
        self, product_id: str, tier: SupplierTier | int, parent_id: str
    ) -> SupplierHierarchy:
        """Check that *parent_id* is an eligible parent within the product.

        Returns:
            The hierarchy the check was made against.

        Raises:
            SupplyChainError: If the parent is missing from the product or
                sits on the wrong tier.
        """
        hierarchy = self.get_hierarchy(product_id)
        tier = self._parse_tier(tier)
        candidates = {n.id for n in get_potential_parents(tier, hierarchy)}
        if parent_id not in candidates:
            parent = hierarchy.find(parent_id)
            if parent is None:
                raise SupplyChainError(
                    f"Parent supplier {parent_id} is not part of product {product_id}"
                )
            raise SupplyChainError(
                f"A tier {tier.value} supplier needs a tier {tier.value - 1} parent; "
                f"{parent_id} is tier {parent.tier.value}"
            )
        return hierarchy

    @staticmethod
    def _ancestor_ids(supplier_id: str, hierarchy: SupplierHierarchy) -> set[str]:
        node = hierarchy.find(supplier_id)
        if node is None:
            return set()
        return set(node.path) | {supplier_id}
