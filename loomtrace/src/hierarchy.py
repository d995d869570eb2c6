"""
Supplier hierarchy builder.

Turns the flat supplier rows of a product into a forest of Tier 1/2/3
nodes with depth, ancestor paths, per-tier groupings, and summary
statistics for the dashboard tree view and the supplier creation flow.

Building never fails on inconsistent data. A parent reference that does
not resolve (or that would close a cycle) leaves the supplier untethered:
depth 0, empty path, and absent from the traversal roots.
"""

from __future__ import annotations

import logging
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from loomtrace.src.models import Supplier, SupplierTier

logger = logging.getLogger(__name__)

UNKNOWN_SUPPLIER_NAME = "Unknown"

# Root collation order of ASCII punctuation and symbols.
_PUNCTUATION_ORDER = "_-,;:!?.'\"()[]{}@*/\\&#%`^+<=>|~$"

_CharWeight = tuple[int, int, str]


def _char_weight(ch: str) -> _CharWeight:
    """Primary weight of one folded character.

    Whitespace sorts first, then punctuation and symbols, then digits,
    then letters.
    """
    if ch.isspace():
        return (0, 0, "")
    if ch.isdigit():
        return (2, 0, ch)
    if ch.isalpha():
        return (3, 0, ch)
    position = _PUNCTUATION_ORDER.find(ch)
    return (1, position if position >= 0 else len(_PUNCTUATION_ORDER), ch)


def name_sort_key(name: str) -> tuple[tuple[_CharWeight, ...], str, str]:
    """Collation key approximating a default locale-aware compare.

    Accents and case are ignored at the first level, with punctuation
    ahead of digits and digits ahead of letters ("a-b" < "a1" < "ab").
    Accents break ties next, and lowercase sorts before uppercase last
    ("apex" < "Apex" < "banana").
    """
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    primary = tuple(_char_weight(ch) for ch in base.casefold())
    return (primary, decomposed.casefold(), name.swapcase())


def _by_name(node: HierarchyNode) -> tuple[tuple[_CharWeight, ...], str, str]:
    return name_sort_key(node.name)


@dataclass
class HierarchyNode:
    """
    A supplier positioned in the hierarchy.

    Wraps the stored supplier record unchanged and adds the derived
    tree attributes:
    - children: direct children, sorted by name
    - depth: 0 for roots and untethered suppliers
    - is_root: the supplier has no parent reference at all
    - path: ancestor IDs from the top-most resolved ancestor down to
      (not including) this node
    """

    supplier: Supplier
    children: list[HierarchyNode] = field(default_factory=list)
    depth: int = 0
    is_root: bool = False
    path: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.supplier.id

    @property
    def name(self) -> str:
        return self.supplier.name

    @property
    def tier(self) -> SupplierTier:
        return self.supplier.tier

    @property
    def parent_supplier_id(self) -> str | None:
        return self.supplier.parent_supplier_id

    @property
    def has_children(self) -> bool:
        """True when at least one supplier is attached below this one."""
        return len(self.children) > 0

    def to_dict(self, include_children: bool = True) -> dict[str, Any]:
        """
        Convert to dictionary for JSON export.

        Args:
            include_children: If True, nest the whole subtree;
                otherwise only the IDs of direct children.
        """
        result = self._flat_dict()
        if not include_children:
            result["children"] = [child.id for child in self.children]
            return result

        stack = [(self, result)]
        while stack:
            node, out = stack.pop()
            out["children"] = []
            for child in node.children:
                child_out = child._flat_dict()
                out["children"].append(child_out)
                stack.append((child, child_out))
        return result

    def _flat_dict(self) -> dict[str, Any]:
        result = self.supplier.to_dict()
        result.update(
            {
                "depth": self.depth,
                "has_children": self.has_children,
                "is_root": self.is_root,
                "path": list(self.path),
            }
        )
        return result

    def __repr__(self) -> str:
        return (
            f"<HierarchyNode {self.id} '{self.name[:40]}' "
            f"tier={self.tier.value} depth={self.depth} children={len(self.children)}>"
        )


@dataclass
class TierGroup:
    """All suppliers of one tier.

    ``root_suppliers`` means "top of the tier" in the display sense: for
    Tier 1 the suppliers without a parent, for Tier 2 and 3 the suppliers
    that carry a parent link, whether or not that link resolved.
    """

    tier: SupplierTier
    suppliers: list[HierarchyNode] = field(default_factory=list)
    root_suppliers: list[HierarchyNode] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.suppliers)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier.value,
            "supplier_ids": [n.id for n in self.suppliers],
            "root_supplier_ids": [n.id for n in self.root_suppliers],
            "total_count": self.total_count,
        }


@dataclass
class SupplierHierarchy:
    """
    The assembled hierarchy for one set of suppliers.

    Rebuilt from scratch on every call to ``build_supplier_hierarchy``;
    nothing in this module mutates it afterwards.
    """

    tiers: dict[SupplierTier, TierGroup]
    all_suppliers: list[HierarchyNode] = field(default_factory=list)
    root_nodes: list[HierarchyNode] = field(default_factory=list)
    max_depth: int = 0
    _index: dict[str, HierarchyNode] = field(default_factory=dict, repr=False, compare=False)

    @property
    def total_suppliers(self) -> int:
        return len(self.all_suppliers)

    def find(self, supplier_id: str) -> HierarchyNode | None:
        """Find a node by supplier ID (first occurrence wins)."""
        return self._index.get(supplier_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert the whole hierarchy to a JSON-ready dictionary."""
        return {
            "tiers": {tier.value: group.to_dict() for tier, group in self.tiers.items()},
            "all_suppliers": [n.to_dict(include_children=False) for n in self.all_suppliers],
            "roots": [n.to_dict(include_children=True) for n in self.root_nodes],
            "max_depth": self.max_depth,
            "total_suppliers": self.total_suppliers,
        }

    def __repr__(self) -> str:
        return f"<SupplierHierarchy suppliers={self.total_suppliers} depth={self.max_depth}>"


@dataclass
class HierarchyStats:
    """Counts shown in the hierarchy stats panel."""

    total_suppliers: int
    max_depth: int
    tier_counts: dict[SupplierTier, int]
    root_suppliers: int
    suppliers_with_children: int
    leaf_suppliers: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_suppliers": self.total_suppliers,
            "max_depth": self.max_depth,
            "tier_counts": {tier.value: count for tier, count in self.tier_counts.items()},
            "root_suppliers": self.root_suppliers,
            "suppliers_with_children": self.suppliers_with_children,
            "leaf_suppliers": self.leaf_suppliers,
        }


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------


def build_supplier_hierarchy(suppliers: Iterable[Supplier]) -> SupplierHierarchy:
    """Build a complete hierarchy from a flat supplier list.

    Strategy:
    1. Wrap every supplier in a node and index them by ID
    2. Attach each supplier to its parent, in input order, refusing
       links that do not resolve or that would close a cycle
    3. Walk down from every unattached node to assign depth and path
    4. Sort children and roots by name
    5. Group nodes by tier

    Args:
        suppliers: Supplier records in any order.

    Returns:
        SupplierHierarchy with one node per input record.
    """
    nodes = [
        HierarchyNode(supplier=s, is_root=s.parent_supplier_id is None) for s in suppliers
    ]

    index_by_id: dict[str, int] = {}
    for i, node in enumerate(nodes):
        index_by_id.setdefault(node.id, i)

    parent_index: list[int | None] = [None] * len(nodes)
    root_nodes: list[HierarchyNode] = []

    for i, node in enumerate(nodes):
        parent_id = node.parent_supplier_id
        if not parent_id:
            root_nodes.append(node)
            continue

        p = index_by_id.get(parent_id)
        if p is None:
            logger.debug("Supplier %s references unknown parent %s", node.id, parent_id)
            continue
        if _closes_cycle(i, p, parent_index):
            logger.warning(
                "Supplier %s would close a parent cycle through %s; leaving it untethered",
                node.id,
                parent_id,
            )
            continue

        parent_index[i] = p
        nodes[p].children.append(node)

    for i, node in enumerate(nodes):
        if parent_index[i] is None:
            _assign_depths(node)

    for node in nodes:
        node.children.sort(key=_by_name)
    root_nodes.sort(key=_by_name)

    max_depth = max((n.depth for n in nodes), default=0)
    tiers = {tier: _create_tier_group(tier, nodes) for tier in SupplierTier}

    return SupplierHierarchy(
        tiers=tiers,
        all_suppliers=nodes,
        root_nodes=root_nodes,
        max_depth=max_depth,
        _index={supplier_id: nodes[i] for supplier_id, i in index_by_id.items()},
    )


def _closes_cycle(child: int, parent: int, parent_index: list[int | None]) -> bool:
    """Check whether linking child -> parent would make child its own ancestor.

    The links attached so far form a forest, so the upward walk ends.
    """
    current: int | None = parent
    while current is not None:
        if current == child:
            return True
        current = parent_index[current]
    return False


def _assign_depths(top: HierarchyNode) -> None:
    """Propagate depth and path from an unattached node to its subtree."""
    stack = [top]
    while stack:
        current = stack.pop()
        for child in current.children:
            child.depth = current.depth + 1
            child.path = [*current.path, current.id]
            stack.append(child)


def _create_tier_group(tier: SupplierTier, nodes: list[HierarchyNode]) -> TierGroup:
    """Collect the nodes of one tier, in input order."""
    members = [n for n in nodes if n.tier == tier]
    if tier == SupplierTier.ONE:
        roots = [n for n in members if n.is_root]
    else:
        roots = [n for n in members if n.parent_supplier_id is not None]
    return TierGroup(tier=tier, suppliers=members, root_suppliers=roots)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def get_child_suppliers(parent_id: str, hierarchy: SupplierHierarchy) -> list[HierarchyNode]:
    """Get the direct children of a supplier.

    Args:
        parent_id: ID of the parent supplier.
        hierarchy: Complete hierarchy structure.

    Returns:
        Name-sorted children, or an empty list if the ID is unknown.
    """
    parent = hierarchy.find(parent_id)
    if parent is None:
        return []
    return parent.children


def get_potential_parents(
    tier: SupplierTier | int, hierarchy: SupplierHierarchy
) -> list[HierarchyNode]:
    """Get the suppliers a new supplier of ``tier`` may attach to.

    Args:
        tier: Tier of the supplier being created (2 or 3).
        hierarchy: Complete hierarchy structure.

    Returns:
        All suppliers one tier up. Tier 1 has no parent tier, so the
        list is empty.
    """
    tier = SupplierTier(tier)
    if tier == SupplierTier.ONE:
        return []
    return hierarchy.tiers[SupplierTier(tier.value - 1)].suppliers


def has_children_in_next_tier(supplier_id: str, hierarchy: SupplierHierarchy) -> bool:
    """Check whether a supplier has anyone attached below it."""
    node = hierarchy.find(supplier_id)
    return node.has_children if node is not None else False


def get_supplier_path(supplier_id: str, hierarchy: SupplierHierarchy) -> list[str]:
    """Get the names from the top-most ancestor down to a supplier.

    Example: ["Acme Spinning", "Beta Weaving", "Gamma Dye House"]

    Args:
        supplier_id: ID of the target supplier.
        hierarchy: Complete hierarchy structure.

    Returns:
        Ancestor names followed by the supplier's own name, with
        "Unknown" standing in for any ancestor that cannot be found.
        Empty if the supplier itself is unknown.
    """
    node = hierarchy.find(supplier_id)
    if node is None:
        return []

    names = []
    for ancestor_id in node.path:
        ancestor = hierarchy.find(ancestor_id)
        names.append(ancestor.name if ancestor is not None else UNKNOWN_SUPPLIER_NAME)
    names.append(node.name)
    return names


def group_suppliers_by_parent(
    nodes: Iterable[HierarchyNode],
) -> dict[str | None, list[HierarchyNode]]:
    """Group nodes under their immediate parent ID (None for no parent).

    Groups appear in order of first appearance; each group is sorted by
    name.
    """
    groups: dict[str | None, list[HierarchyNode]] = {}
    for node in nodes:
        groups.setdefault(node.parent_supplier_id, []).append(node)

    for group in groups.values():
        group.sort(key=_by_name)

    return groups


def get_hierarchy_stats(hierarchy: SupplierHierarchy) -> HierarchyStats:
    """Calculate hierarchy statistics for display."""
    with_children = sum(1 for n in hierarchy.all_suppliers if n.has_children)
    return HierarchyStats(
        total_suppliers=hierarchy.total_suppliers,
        max_depth=hierarchy.max_depth,
        tier_counts={tier: group.total_count for tier, group in hierarchy.tiers.items()},
        root_suppliers=len(hierarchy.tiers[SupplierTier.ONE].root_suppliers),
        suppliers_with_children=with_children,
        leaf_suppliers=hierarchy.total_suppliers - with_children,
    )
