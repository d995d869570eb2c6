"""SQLite-backed storage for loomtrace data models.

Provides CRUD operations for brands, products, suppliers, and
certificates, the product/supplier link table, and the composite reads
used by the dashboard and the Digital Product Passport.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from loomtrace.src.models import (
    Brand,
    Certificate,
    DppData,
    MaterialComponent,
    Product,
    ProductWithSuppliers,
    Supplier,
    SupplierTier,
    SupplierWithCertificates,
)
from loomtrace.src.schemas import is_valid_uuid

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS brands (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS products (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    brand_id TEXT NOT NULL,
    image_url TEXT,
    sku TEXT,
    description TEXT,
    care_instructions TEXT,
    end_of_life_options TEXT,
    material_composition_json TEXT DEFAULT '[]',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (brand_id) REFERENCES brands(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS suppliers (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    tier INTEGER NOT NULL CHECK (tier IN (1, 2, 3)),
    location TEXT NOT NULL DEFAULT '',
    latitude REAL,
    longitude REAL,
    brand_id TEXT,
    parent_supplier_id TEXT,
    extra_json TEXT DEFAULT '{}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (brand_id) REFERENCES brands(id) ON DELETE CASCADE,
    FOREIGN KEY (parent_supplier_id) REFERENCES suppliers(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS product_suppliers (
    product_id TEXT NOT NULL,
    supplier_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (product_id, supplier_id),
    FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE CASCADE,
    FOREIGN KEY (supplier_id) REFERENCES suppliers(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS certificates (
    id TEXT PRIMARY KEY,
    supplier_id TEXT NOT NULL,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    issued_date TEXT NOT NULL,
    verified_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (supplier_id) REFERENCES suppliers(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_products_brand
    ON products(brand_id);
CREATE INDEX IF NOT EXISTS idx_suppliers_brand
    ON suppliers(brand_id);
CREATE INDEX IF NOT EXISTS idx_suppliers_parent
    ON suppliers(parent_supplier_id);
CREATE INDEX IF NOT EXISTS idx_product_suppliers_supplier
    ON product_suppliers(supplier_id);
CREATE INDEX IF NOT EXISTS idx_certificates_supplier
    ON certificates(supplier_id);
"""


class SupplyChainStorageError(Exception):
    """Raised for storage-level errors (duplicates, not found, etc.)."""


class SupplyChainStorage:
    """SQLite-backed storage for loomtrace domain models.

    Args:
        db_path: Path to SQLite database file, or ':memory:' for in-memory.
        check_same_thread: Passed to sqlite3; disable when one connection
            is shared by worker threads.

    Example::

        with SupplyChainStorage("loomtrace.db") as store:
            store.initialize_schema()
            store.create_brand(brand)
    """

    def __init__(self, db_path: str | Path = ":memory:", check_same_thread: bool = True) -> None:
        self._db_path = str(db_path)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=check_same_thread)
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.row_factory = sqlite3.Row

    def __enter__(self) -> SupplyChainStorage:
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Close the database connection."""
        self.close()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def initialize_schema(self) -> None:
        """Create all tables and indexes if they don't exist."""
        self._conn.executescript(_SCHEMA_SQL)
        self._conn.commit()

    # ---------------------------------------------------------------
    # Brands
    # ---------------------------------------------------------------

    def create_brand(self, brand: Brand) -> Brand:
        """Insert a new brand.

        Raises:
            SupplyChainStorageError: If a brand with the same ID exists.
        """
        try:
            self._conn.execute(
                "INSERT INTO brands (id, name, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (
                    brand.id,
                    brand.name,
                    brand.created_at.isoformat(),
                    brand.updated_at.isoformat(),
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            raise SupplyChainStorageError(f"Brand already exists: {brand.id}") from exc
        logger.info("Created brand %s (%s)", brand.id, brand.name)
        return brand

    def get_brand(self, brand_id: str) -> Brand | None:
        """Fetch a brand by ID, or None if not found."""
        row = self._conn.execute("SELECT * FROM brands WHERE id = ?", (brand_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_brand(row)

    def update_brand(self, brand: Brand) -> Brand:
        """Update an existing brand.

        Raises:
            SupplyChainStorageError: If brand does not exist.
        """
        brand.updated_at = datetime.now()
        cursor = self._conn.execute(
            "UPDATE brands SET name = ?, updated_at = ? WHERE id = ?",
            (brand.name, brand.updated_at.isoformat(), brand.id),
        )
        if cursor.rowcount == 0:
            raise SupplyChainStorageError(f"Brand not found: {brand.id}")
        self._conn.commit()
        return brand

    def delete_brand(self, brand_id: str) -> bool:
        """Delete a brand and, by cascade, its products and suppliers."""
        cursor = self._conn.execute("DELETE FROM brands WHERE id = ?", (brand_id,))
        self._conn.commit()
        return cursor.rowcount > 0

    # ---------------------------------------------------------------
    # Products
    # ---------------------------------------------------------------

    def create_product(self, product: Product) -> Product:
        """Insert a new product.

        Args:
            product: Product to insert.

        Returns:
            The inserted product.

        Raises:
            SupplyChainStorageError: On duplicate ID or missing brand.
        """
        try:
            self._conn.execute(
                "INSERT INTO products (id, name, brand_id, image_url, sku, description, "
                "care_instructions, end_of_life_options, material_composition_json, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    product.id,
                    product.name,
                    product.brand_id,
                    product.image_url,
                    product.sku,
                    product.description,
                    product.care_instructions,
                    product.end_of_life_options,
                    json.dumps([m.to_dict() for m in product.material_composition]),
                    product.created_at.isoformat(),
                    product.updated_at.isoformat(),
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            raise SupplyChainStorageError(f"Cannot create product {product.id}: {exc}") from exc
        logger.info("Created product %s for brand %s", product.id, product.brand_id)
        return product

    def get_product(self, product_id: str) -> Product | None:
        """Fetch a product by ID, or None if not found."""
        row = self._conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_product(row)

    def get_brand_products(self, brand_id: str) -> list[Product]:
        """Get all products for a brand, newest first."""
        rows = self._conn.execute(
            "SELECT * FROM products WHERE brand_id = ? ORDER BY created_at DESC, id",
            (brand_id,),
        ).fetchall()
        return [self._row_to_product(r) for r in rows]

    def update_product(self, product: Product) -> Product:
        """Update an existing product.

        Raises:
            SupplyChainStorageError: If product does not exist.
        """
        product.updated_at = datetime.now()
        cursor = self._conn.execute(
            "UPDATE products SET name = ?, image_url = ?, sku = ?, description = ?, "
            "care_instructions = ?, end_of_life_options = ?, material_composition_json = ?, "
            "updated_at = ? WHERE id = ?",
            (
                product.name,
                product.image_url,
                product.sku,
                product.description,
                product.care_instructions,
                product.end_of_life_options,
                json.dumps([m.to_dict() for m in product.material_composition]),
                product.updated_at.isoformat(),
                product.id,
            ),
        )
        if cursor.rowcount == 0:
            raise SupplyChainStorageError(f"Product not found: {product.id}")
        self._conn.commit()
        return product

    def delete_product(self, product_id: str) -> bool:
        """Delete a product by ID. Returns False if not found."""
        cursor = self._conn.execute("DELETE FROM products WHERE id = ?", (product_id,))
        self._conn.commit()
        return cursor.rowcount > 0

    # ---------------------------------------------------------------
    # Suppliers
    # ---------------------------------------------------------------

    def create_supplier(self, supplier: Supplier) -> Supplier:
        """Insert a new supplier.

        Tier/parent consistency is validated upstream; the database only
        checks that a referenced parent row exists.

        Raises:
            SupplyChainStorageError: On duplicate ID or broken reference.
        """
        try:
            self._conn.execute(
                "INSERT INTO suppliers (id, name, tier, location, latitude, longitude, "
                "brand_id, parent_supplier_id, extra_json, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    supplier.id,
                    supplier.name,
                    supplier.tier.value,
                    supplier.location,
                    supplier.latitude,
                    supplier.longitude,
                    supplier.brand_id,
                    supplier.parent_supplier_id,
                    json.dumps(supplier.extra),
                    supplier.created_at.isoformat(),
                    supplier.updated_at.isoformat(),
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            raise SupplyChainStorageError(f"Cannot create supplier {supplier.id}: {exc}") from exc
        logger.info(
            "Created tier %d supplier %s (parent=%s)",
            supplier.tier.value,
            supplier.id,
            supplier.parent_supplier_id,
        )
        return supplier

    def get_supplier(self, supplier_id: str) -> Supplier | None:
        """Fetch a supplier by ID, or None if not found."""
        row = self._conn.execute(
            "SELECT * FROM suppliers WHERE id = ?", (supplier_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_supplier(row)

    def get_suppliers_for_brand(self, brand_id: str) -> list[Supplier]:
        """Get every supplier owned by a brand, by tier then name."""
        rows = self._conn.execute(
            "SELECT * FROM suppliers WHERE brand_id = ? ORDER BY tier, name",
            (brand_id,),
        ).fetchall()
        return [self._row_to_supplier(r) for r in rows]

    def get_supplier_children(self, supplier_id: str) -> list[Supplier]:
        """Get suppliers whose parent is *supplier_id*, across all products."""
        rows = self._conn.execute(
            "SELECT * FROM suppliers WHERE parent_supplier_id = ? ORDER BY name",
            (supplier_id,),
        ).fetchall()
        return [self._row_to_supplier(r) for r in rows]

    def update_supplier(self, supplier: Supplier) -> Supplier:
        """Update an existing supplier, including its parent link.

        Raises:
            SupplyChainStorageError: If supplier does not exist or the
                parent reference is broken.
        """
        supplier.updated_at = datetime.now()
        try:
            cursor = self._conn.execute(
                "UPDATE suppliers SET name = ?, location = ?, latitude = ?, longitude = ?, "
                "parent_supplier_id = ?, extra_json = ?, updated_at = ? WHERE id = ?",
                (
                    supplier.name,
                    supplier.location,
                    supplier.latitude,
                    supplier.longitude,
                    supplier.parent_supplier_id,
                    json.dumps(supplier.extra),
                    supplier.updated_at.isoformat(),
                    supplier.id,
                ),
            )
        except sqlite3.IntegrityError as exc:
            raise SupplyChainStorageError(f"Cannot update supplier {supplier.id}: {exc}") from exc
        if cursor.rowcount == 0:
            raise SupplyChainStorageError(f"Supplier not found: {supplier.id}")
        self._conn.commit()
        return supplier

    def delete_supplier(self, supplier_id: str) -> bool:
        """Delete a supplier by ID. Returns False if not found."""
        cursor = self._conn.execute("DELETE FROM suppliers WHERE id = ?", (supplier_id,))
        self._conn.commit()
        return cursor.rowcount > 0

    # ---------------------------------------------------------------
    # Product / supplier links
    # ---------------------------------------------------------------

    def link_supplier_to_product(self, product_id: str, supplier_id: str) -> None:
        """Attach a supplier to a product.

        Raises:
            SupplyChainStorageError: If already linked or either side is missing.
        """
        try:
            self._conn.execute(
                "INSERT INTO product_suppliers (product_id, supplier_id, created_at) "
                "VALUES (?, ?, ?)",
                (product_id, supplier_id, datetime.now().isoformat()),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            raise SupplyChainStorageError(
                f"Cannot link supplier {supplier_id} to product {product_id}: {exc}"
            ) from exc

    def unlink_supplier_from_product(self, product_id: str, supplier_id: str) -> bool:
        """Detach a supplier from a product. Returns False if not linked."""
        cursor = self._conn.execute(
            "DELETE FROM product_suppliers WHERE product_id = ? AND supplier_id = ?",
            (product_id, supplier_id),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def get_suppliers_for_product(self, product_id: str) -> list[Supplier]:
        """Get the flat supplier rows of a product, in link order.

        This is the input to ``build_supplier_hierarchy``.
        """
        rows = self._conn.execute(
            "SELECT s.* FROM suppliers s "
            "JOIN product_suppliers ps ON ps.supplier_id = s.id "
            "WHERE ps.product_id = ? ORDER BY ps.rowid",
            (product_id,),
        ).fetchall()
        return [self._row_to_supplier(r) for r in rows]

    def get_supplier_product_ids(self, supplier_id: str) -> list[str]:
        """Get the IDs of every product a supplier is linked to."""
        rows = self._conn.execute(
            "SELECT product_id FROM product_suppliers WHERE supplier_id = ? ORDER BY rowid",
            (supplier_id,),
        ).fetchall()
        return [r["product_id"] for r in rows]

    # ---------------------------------------------------------------
    # Certificates
    # ---------------------------------------------------------------

    def create_certificate(self, certificate: Certificate) -> Certificate:
        """Insert a new certificate.

        Raises:
            SupplyChainStorageError: On duplicate ID or missing supplier.
        """
        try:
            self._conn.execute(
                "INSERT INTO certificates (id, supplier_id, name, type, issued_date, "
                "verified_at, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    certificate.id,
                    certificate.supplier_id,
                    certificate.name,
                    certificate.type,
                    certificate.issued_date,
                    certificate.verified_at.isoformat() if certificate.verified_at else None,
                    certificate.created_at.isoformat(),
                    certificate.updated_at.isoformat(),
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            raise SupplyChainStorageError(
                f"Cannot create certificate {certificate.id}: {exc}"
            ) from exc
        return certificate

    def get_certificate(self, certificate_id: str) -> Certificate | None:
        """Fetch a certificate by ID, or None if not found."""
        row = self._conn.execute(
            "SELECT * FROM certificates WHERE id = ?", (certificate_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_certificate(row)

    def get_certificates_for_supplier(self, supplier_id: str) -> list[Certificate]:
        """Get a supplier's certificates, most recently issued first."""
        rows = self._conn.execute(
            "SELECT * FROM certificates WHERE supplier_id = ? ORDER BY issued_date DESC, name",
            (supplier_id,),
        ).fetchall()
        return [self._row_to_certificate(r) for r in rows]

    def mark_certificate_verified(
        self, certificate_id: str, verified_at: datetime | None = None
    ) -> Certificate:
        """Stamp a certificate as verified.

        Raises:
            SupplyChainStorageError: If certificate not found.
        """
        stamp = verified_at or datetime.now()
        now = datetime.now()
        cursor = self._conn.execute(
            "UPDATE certificates SET verified_at = ?, updated_at = ? WHERE id = ?",
            (stamp.isoformat(), now.isoformat(), certificate_id),
        )
        if cursor.rowcount == 0:
            raise SupplyChainStorageError(f"Certificate not found: {certificate_id}")
        self._conn.commit()
        cert = self.get_certificate(certificate_id)
        if cert is None:
            raise SupplyChainStorageError(f"Certificate not found: {certificate_id}")
        return cert

    def delete_certificate(self, certificate_id: str) -> bool:
        """Delete a certificate by ID. Returns False if not found."""
        cursor = self._conn.execute("DELETE FROM certificates WHERE id = ?", (certificate_id,))
        self._conn.commit()
        return cursor.rowcount > 0

    # ---------------------------------------------------------------
    # Composite reads
    # ---------------------------------------------------------------

    def get_product_with_suppliers(
        self, product_id: str, brand_id: str
    ) -> ProductWithSuppliers | None:
        """Fetch a brand's product with every linked supplier.

        Args:
            product_id: Product to fetch.
            brand_id: Brand that must own the product.

        Returns:
            ProductWithSuppliers with suppliers ordered by tier, or None
            when either ID is malformed, the product is missing, or it
            belongs to another brand.
        """
        if not is_valid_uuid(product_id) or not is_valid_uuid(brand_id):
            logger.warning("Invalid ID format: product=%r brand=%r", product_id, brand_id)
            return None

        product = self.get_product(product_id)
        if product is None or product.brand_id != brand_id:
            logger.info("Product not found or not owned by brand: %s", product_id)
            return None
        brand = self.get_brand(brand_id)
        if brand is None:
            return None

        suppliers = sorted(self.get_suppliers_for_product(product_id), key=lambda s: s.tier)
        return ProductWithSuppliers(product=product, brand=brand, suppliers=suppliers)

    def get_dpp_data(self, product_id: str) -> DppData | None:
        """Assemble the public Digital Product Passport data for a product.

        Returns:
            DppData with suppliers ordered Tier 3 first, or None when the
            ID is malformed or the product does not exist.
        """
        if not is_valid_uuid(product_id):
            logger.warning("Invalid product ID format: %r", product_id)
            return None

        product = self.get_product(product_id)
        if product is None:
            logger.info("Product not found: %s", product_id)
            return None
        brand = self.get_brand(product.brand_id)
        if brand is None:
            return None

        suppliers = sorted(
            self.get_suppliers_for_product(product_id),
            key=lambda s: s.tier,
            reverse=True,
        )
        bundles = [
            SupplierWithCertificates(
                supplier=s, certificates=self.get_certificates_for_supplier(s.id)
            )
            for s in suppliers
        ]
        return DppData(product=product, brand=brand, suppliers=bundles)

    # ---------------------------------------------------------------
    # Row-to-model helpers
    # ---------------------------------------------------------------

    @staticmethod
    def _row_to_brand(row: sqlite3.Row) -> Brand:
        """Convert a database row to a Brand."""
        return Brand(
            id=row["id"],
            name=row["name"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_product(row: sqlite3.Row) -> Product:
        """Convert a database row to a Product."""
        return Product(
            id=row["id"],
            name=row["name"],
            brand_id=row["brand_id"],
            image_url=row["image_url"],
            sku=row["sku"],
            description=row["description"],
            care_instructions=row["care_instructions"],
            end_of_life_options=row["end_of_life_options"],
            material_composition=[
                MaterialComponent.from_dict(m)
                for m in json.loads(row["material_composition_json"] or "[]")
            ],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_supplier(row: sqlite3.Row) -> Supplier:
        """Convert a database row to a Supplier."""
        return Supplier(
            id=row["id"],
            name=row["name"],
            tier=SupplierTier(row["tier"]),
            location=row["location"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            brand_id=row["brand_id"],
            parent_supplier_id=row["parent_supplier_id"],
            extra=json.loads(row["extra_json"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_certificate(row: sqlite3.Row) -> Certificate:
        """Convert a database row to a Certificate."""
        verified_at = row["verified_at"]
        if verified_at:
            verified_at = datetime.fromisoformat(verified_at)
        return Certificate(
            id=row["id"],
            supplier_id=row["supplier_id"],
            name=row["name"],
            type=row["type"],
            issued_date=row["issued_date"],
            verified_at=verified_at,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
