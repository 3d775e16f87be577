"""Item model and hierarchy arena for the constellation view."""

import logging
from collections import deque
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum

import networkx as nx

logger = logging.getLogger(__name__)

# Bound on any ancestor/descendant walk
MAX_TRAVERSAL_DEPTH = 256

# Loader limits for nested group data
MAX_VISIBLE_CHILDREN = 10


class ItemRole(Enum):
    """Kind of node in the constellation hierarchy."""

    CENTER = "center"  # group center ("constellation" hub)
    FOLDER = "folder"
    LEAF = "leaf"
    OVERFLOW = "overflow"  # "+N more" placeholder for truncated folders

    @property
    def expandable(self) -> bool:
        return self in (ItemRole.CENTER, ItemRole.FOLDER)


@dataclass(frozen=True)
class Item:
    """A single node of the item collection.

    ``angle`` (degrees) and ``distance`` place the item relative to its parent
    (or its group center for root items) when no explicit world coordinates
    are stored.
    """

    id: str
    role: ItemRole = ItemRole.LEAF
    parent_id: str | None = None
    group_id: str | None = None
    angle: float = 0.0
    distance: float = 0.0
    world_x: float | None = None
    world_y: float | None = None
    importance: int = 3
    title: str = ""
    color: str | None = None

    @property
    def is_center(self) -> bool:
        return self.role is ItemRole.CENTER

    @property
    def expandable(self) -> bool:
        return self.role.expandable

    @property
    def has_world_position(self) -> bool:
        return self.world_x is not None and self.world_y is not None


@dataclass
class ItemTree:
    """Arena of items indexed by id, with a guarded children index.

    Build with :meth:`ItemTree.build`. Items whose parent chain is cyclic are
    placed in ``detached`` together with their descendants and are never
    reached by traversal.
    """

    items: dict[str, Item] = field(default_factory=dict)
    parents: dict[str, str | None] = field(default_factory=dict)  # Effective parent
    children: dict[str, list[str]] = field(default_factory=dict)
    roots: list[str] = field(default_factory=list)
    detached: set[str] = field(default_factory=set)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def build(cls, items: Iterable[Item]) -> "ItemTree":
        """Index a flat item list.

        Args:
            items: Items in provider order. Duplicate ids keep the first item.

        Returns:
            The populated tree. Data-integrity problems (duplicate ids, unknown
            parents, parent cycles) are recorded in ``warnings``.
        """
        from .layout.radial import ROOT_NODE, build_hierarchy_graph, find_parent_cycles

        tree = cls()
        for item in items:
            if item.id in tree.items:
                tree._warn(f"Duplicate item id: {item.id} (keeping first)")
                continue
            tree.items[item.id] = item

        for item in tree.items.values():
            parent = item.parent_id
            if parent is not None and parent not in tree.items:
                tree._warn(f"Unknown parent: {item.id} -> {parent} (treated as root)")
                parent = None
            if parent == item.id:
                tree._warn(f"Item is its own parent: {item.id} (treated as root)")
                parent = None
            tree.parents[item.id] = parent

        for cycle in find_parent_cycles(tree.parents):
            path = " -> ".join(cycle + [cycle[0]])
            tree._warn(f"Parent cycle: {path} (excluded)")

        graph = build_hierarchy_graph(tree.parents)
        reachable = nx.descendants(graph, ROOT_NODE)
        tree.detached = set(tree.items) - reachable
        tree.roots = [node for node in graph.successors(ROOT_NODE)]
        for node in tree.items:
            if node in tree.detached:
                continue
            tree.children[node] = list(graph.successors(node))

        return tree

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.items

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Item]:
        return iter(self.items.values())

    def get(self, item_id: str | None) -> Item | None:
        if item_id is None:
            return None
        return self.items.get(item_id)

    def is_attached(self, item_id: str | None) -> bool:
        """Whether the item exists and is reachable from a root."""
        return item_id in self.items and item_id not in self.detached

    def ancestors(self, item_id: str) -> list[str]:
        """Ancestor ids ordered root first. Empty for roots and detached items."""
        if not self.is_attached(item_id):
            return []
        chain: list[str] = []
        visited = {item_id}
        current = self.parents.get(item_id)
        while current is not None and len(chain) < MAX_TRAVERSAL_DEPTH:
            if current in visited:
                # Unreachable after build(), kept as a guard for hand-built trees
                self._warn(f"Parent cycle reached from {item_id} at {current}")
                return []
            visited.add(current)
            chain.append(current)
            current = self.parents.get(current)
        chain.reverse()
        return chain

    def chain(self, item_id: str) -> list[str]:
        """Root-to-item path, inclusive. Empty if the item is not attached."""
        if not self.is_attached(item_id):
            return []
        return self.ancestors(item_id) + [item_id]

    def descendants(self, item_id: str, expandable_only: bool = False) -> list[str]:
        """Breadth-first descendants of an item (not including the item)."""
        found: list[str] = []
        if not self.is_attached(item_id):
            return found
        visited = {item_id}
        queue: deque[tuple[str, int]] = deque([(item_id, 0)])
        while queue:
            node, depth = queue.popleft()
            if depth >= MAX_TRAVERSAL_DEPTH:
                continue
            for child in self.children.get(node, []):
                if child in visited:
                    continue
                visited.add(child)
                queue.append((child, depth + 1))
                if not expandable_only or self.items[child].expandable:
                    found.append(child)
        return found

    def is_ancestor(self, ancestor_id: str, item_id: str) -> bool:
        return ancestor_id in self.ancestors(item_id)

    def hierarchy_level(self, item_id: str) -> int:
        """Distance from the item's root (roots are level 0)."""
        return len(self.ancestors(item_id))

    def group_ids(self) -> list[str]:
        """Distinct group ids in first-seen order."""
        seen: dict[str, None] = {}
        for item in self.items.values():
            if item.group_id is not None:
                seen.setdefault(item.group_id, None)
        return list(seen)

    def center_of(self, group_id: str | None) -> Item | None:
        if group_id is None:
            return None
        for item in self.items.values():
            if item.is_center and item.group_id == group_id:
                return item
        return None

    def group_members(self, group_id: str) -> list[str]:
        return [item.id for item in self.items.values() if item.group_id == group_id]


def _polar(origin: tuple[float, float], angle: float, distance: float) -> tuple[float, float]:
    from .layout.radial import polar_offset

    return polar_offset(origin, angle, distance)


def world_positions(
    tree: ItemTree,
    overrides: Mapping[str, tuple[float, float]] | None = None,
) -> dict[str, tuple[float, float]]:
    """Compute the world position of every item.

    Priority: an override (e.g. from dragging), then explicit world
    coordinates, then polar placement relative to the parent, the group
    center for root items, or the world origin.

    Args:
        tree: The item tree.
        overrides: Optional item id -> (x, y) positions set by the user.

    Returns:
        Mapping from item id to (x, y).
    """
    overrides = overrides or {}
    positions: dict[str, tuple[float, float]] = {}

    def place(item: Item, origin: tuple[float, float]) -> tuple[float, float]:
        if item.id in overrides:
            return overrides[item.id]
        if item.has_world_position:
            return (float(item.world_x), float(item.world_y))
        return _polar(origin, item.angle, item.distance)

    # Centers first so root members of a group can orbit them
    for item in tree.items.values():
        if item.is_center and tree.parents.get(item.id) is None:
            positions[item.id] = place(item, (0.0, 0.0))

    queue: deque[str] = deque()
    for root in tree.roots:
        if root not in positions:
            item = tree.items[root]
            center = tree.center_of(item.group_id)
            origin = positions.get(center.id, (0.0, 0.0)) if center else (0.0, 0.0)
            positions[root] = place(item, origin)
        queue.append(root)

    while queue:
        node = queue.popleft()
        for child in tree.children.get(node, []):
            if child in positions:
                continue
            positions[child] = place(tree.items[child], positions[node])
            queue.append(child)

    # Detached items still get a position so renderers never miss a key
    for item in tree.items.values():
        if item.id not in positions:
            positions[item.id] = place(item, (0.0, 0.0))

    return positions


def _role_from_dict(data: Mapping) -> ItemRole:
    if "role" in data:
        return ItemRole(data["role"])
    if data.get("overflow"):
        return ItemRole.OVERFLOW
    if data.get("type") == "folder" or data.get("is_folder") or data.get("children"):
        return ItemRole.FOLDER
    return ItemRole.LEAF


def _place_children(
    parent: Item,
    parent_pos: tuple[float, float],
    children: list[Mapping],
    group: Mapping,
    items: list[Item],
    depth: int,
) -> None:
    """Recursively place nested children on a ring around their parent."""
    from .layout.radial import ring_angles, ring_radius

    if depth >= MAX_TRAVERSAL_DEPTH:
        logger.warning("Nested children of %s exceed the traversal bound", parent.id)
        return

    shown = children[:MAX_VISIBLE_CHILDREN]
    remaining = len(children) - len(shown)
    radius = ring_radius(depth)
    angles = ring_angles(len(shown) + (1 if remaining > 0 else 0))

    for index, data in enumerate(shown):
        angle = angles[index]
        x, y = _polar(parent_pos, angle, radius)
        child = Item(
            id=data["id"],
            role=_role_from_dict(data),
            parent_id=parent.id,
            group_id=group["id"],
            angle=angle,
            distance=radius,
            world_x=x,
            world_y=y,
            importance=data.get("importance", 3),
            title=data.get("title", data["id"]),
            color=data.get("color", group.get("color")),
        )
        items.append(child)
        if data.get("children"):
            _place_children(child, (x, y), list(data["children"]), group, items, depth + 1)

    if remaining > 0:
        angle = angles[len(shown)]
        x, y = _polar(parent_pos, angle, radius)
        items.append(
            Item(
                id=f"{parent.id}_more",
                role=ItemRole.OVERFLOW,
                parent_id=parent.id,
                group_id=group["id"],
                angle=angle,
                distance=radius,
                world_x=x,
                world_y=y,
                importance=3,
                title=f"+{remaining} more",
                color=group.get("color"),
            )
        )


def items_from_groups(groups: Iterable[Mapping]) -> list[Item]:
    """Flatten nested group data into a list of items.

    Each group mapping has ``id``, optional ``name``, ``color``,
    ``center_x``/``center_y`` and ``items``; item mappings have ``id`` and
    optional ``title``, ``type``/``role``, ``importance``, ``overflow`` and
    nested ``children``. Top-level items are spread evenly on a ring around the
    group center; each folder shows at most ten children and gets a
    ``<folder>_more`` overflow node for the rest.

    Args:
        groups: Group mappings, typically parsed from JSON or YAML.

    Returns:
        Flat list of items, centers first within each group.
    """
    from .layout.radial import ring_angles, ring_radius

    items: list[Item] = []
    for group in groups:
        center_pos = (float(group.get("center_x", 0.0)), float(group.get("center_y", 0.0)))
        items.append(
            Item(
                id=f"{group['id']}_center",
                role=ItemRole.CENTER,
                group_id=group["id"],
                world_x=center_pos[0],
                world_y=center_pos[1],
                importance=6,
                title=group.get("name", group["id"]),
                color=group.get("color"),
            )
        )

        members = list(group.get("items", []))
        # Overflow placeholders go after the regular members on the ring
        ordered = [m for m in members if not m.get("overflow")]
        ordered += [m for m in members if m.get("overflow")]
        angles = ring_angles(len(ordered))
        radius = ring_radius(0)

        for index, data in enumerate(ordered):
            angle = angles[index]
            x, y = _polar(center_pos, angle, radius)
            item = Item(
                id=data["id"],
                role=_role_from_dict(data),
                group_id=group["id"],
                angle=angle,
                distance=radius,
                world_x=x,
                world_y=y,
                importance=data.get("importance", 3),
                title=data.get("title", data["id"]),
                color=data.get("color", group.get("color")),
            )
            items.append(item)
            if data.get("children"):
                _place_children(item, (x, y), list(data["children"]), group, items, 0)

    return items
