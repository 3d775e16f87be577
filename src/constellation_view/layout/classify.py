"""Connection classification based on hierarchy and group membership."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from ..items import Item, ItemTree

logger = logging.getLogger(__name__)


class ConnectionType(Enum):
    """Classification of a connection between two items."""

    PARENT_CHILD = "parent-child"  # One endpoint is the other's parent
    INTRA_GROUP = "intra-group"  # Both endpoints in the same group
    CROSS_GROUP = "cross-group"  # Endpoints in different groups
    SEMANTIC = "semantic"  # No group on either side


@dataclass(frozen=True)
class Connection:
    """An immutable edge between two items."""

    source: str
    target: str
    type: ConnectionType
    importance: int  # 1..5

    @property
    def endpoints(self) -> tuple[str, str]:
        return (self.source, self.target)

    def touches(self, item_id: str | None) -> bool:
        return item_id is not None and item_id in (self.source, self.target)


def _is_parent_child(a: Item, b: Item) -> bool:
    return a.parent_id == b.id or b.parent_id == a.id


def classify_connection(a: Item, b: Item) -> ConnectionType:
    """Classify the relationship between two items.

    Parent/child wins over group membership.
    """
    if _is_parent_child(a, b):
        return ConnectionType.PARENT_CHILD
    if a.group_id is None and b.group_id is None:
        return ConnectionType.SEMANTIC
    if a.group_id == b.group_id:
        return ConnectionType.INTRA_GROUP
    return ConnectionType.CROSS_GROUP


def connection_importance(a: Item, b: Item) -> int:
    """Connection strength from 1 to 5.

    Starts at 1; +2 when either end is a group center, +half the average item
    importance (floored), +1 for parent/child.
    """
    importance = 1
    if a.is_center or b.is_center:
        importance += 2
    importance += int((a.importance + b.importance) / 2 // 2)
    if _is_parent_child(a, b):
        importance += 1
    return min(5, importance)


def build_connections(
    tree: ItemTree,
    extra_edges: Iterable["tuple[str, str] | Connection"] = (),
    warnings: list[str] | None = None,
) -> list[Connection]:
    """Build the connection list once at load time.

    Includes every parent -> child edge, an edge from each top-level grouped
    item to its group center, and the extra edges. Pairs are de-duplicated
    regardless of direction; the first occurrence wins.

    Args:
        tree: Item tree.
        extra_edges: ``(a, b)`` id pairs (classified here) or ready-made
            Connection objects (kept as given).
        warnings: Optional list receiving data-integrity warnings.

    Returns:
        List of connections in a stable order.
    """
    connections: list[Connection] = []
    seen: set[frozenset[str]] = set()

    def warn(message: str) -> None:
        logger.warning(message)
        if warnings is not None:
            warnings.append(message)

    def add(a: str, b: str, existing: Connection | None = None) -> None:
        if a == b:
            warn(f"Ignoring self connection: {a}")
            return
        if a not in tree or b not in tree:
            missing = a if a not in tree else b
            warn(f"Ignoring connection to unknown item: {a} -> {b} ({missing})")
            return
        key = frozenset((a, b))
        if key in seen:
            return
        seen.add(key)
        if existing is not None:
            connections.append(existing)
            return
        item_a, item_b = tree.items[a], tree.items[b]
        connections.append(
            Connection(
                source=a,
                target=b,
                type=classify_connection(item_a, item_b),
                importance=connection_importance(item_a, item_b),
            )
        )

    for item in tree:
        parent = tree.parents.get(item.id)
        if parent is not None:
            add(parent, item.id)
        elif not item.is_center:
            center = tree.center_of(item.group_id)
            if center is not None:
                add(item.id, center.id)

    for edge in extra_edges:
        if isinstance(edge, Connection):
            add(edge.source, edge.target, edge)
        else:
            a, b = edge
            add(a, b)

    return connections
