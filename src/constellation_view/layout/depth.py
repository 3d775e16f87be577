"""Depth layer assignment for the expansion state.

Layers are breadth-first distances measured from the deepest revealed
generation of each spotlight branch, so every generation along a branch gets
its own layer and successive generations never alternate.
"""

import logging
from collections import deque
from dataclasses import dataclass, field

from ..items import ItemTree
from ..state import ExpansionState, open_set

logger = logging.getLogger(__name__)

# Sentinel layer for items whose parent chain is collapsed
HIDDEN = 999.0

CENTER_LAYER = 0.0
ROOT_LAYER = 1.0
LEAF_LAYER = 1.5  # Spotlight leaf with nothing open below its children

HIDDEN_Z = -2000.0
LAYER_Z_STEP = -150.0
LEAF_Z = -100.0


@dataclass
class DepthResult:
    """Resolved layers for every item in the tree."""

    layers: dict[str, float]  # Every item; HIDDEN when not shown
    visible: set[str]
    spotlight_leaves: set[str] = field(default_factory=set)  # Active and pinned
    warnings: list[str] = field(default_factory=list)

    def layer(self, item_id: str) -> float:
        return self.layers.get(item_id, HIDDEN)


def label_branch(
    tree: ItemTree,
    leaf: str,
    revealed: set[str] | frozenset[str],
    offset: float = 0.0,
) -> dict[str, float]:
    """Label one spotlight branch by distance from its deepest revealed generation.

    Generation ``g`` below the leaf (children are 1) is revealed when its
    parent is in ``revealed``. With ``D`` the deepest revealed generation and
    ``b = max(D - 1, 0)``, generation ``g`` gets ``b - (g - 1)``, the leaf
    ``b + 1.5`` and the ancestor ``j`` steps above the leaf ``b + 1 + j``.

    Args:
        tree: Item tree.
        leaf: Leaf of the branch.
        revealed: Ids whose children are revealed below the leaf.
        offset: Added to every label (pinned branches sit further back).

    Returns:
        Mapping from item id to layer for the chain and revealed descendants.
    """
    chain = tree.chain(leaf)
    if not chain:
        return {}

    generations: dict[str, int] = {}
    queue: deque[tuple[str, int]] = deque([(leaf, 0)])
    visited = {leaf}
    while queue:
        node, generation = queue.popleft()
        if generation > 0 and node not in revealed:
            continue
        for child in tree.children.get(node, []):
            if child in visited:
                continue
            visited.add(child)
            generations[child] = generation + 1
            queue.append((child, generation + 1))

    deepest = max(generations.values(), default=0)
    base = max(deepest - 1, 0)

    labels: dict[str, float] = {}
    for node, generation in generations.items():
        labels[node] = base - (generation - 1) + offset
    labels[leaf] = base + LEAF_LAYER + offset
    for steps, ancestor in enumerate(reversed(chain[:-1]), start=1):
        labels[ancestor] = base + 1 + steps + offset
    return labels


def _keep_parents_behind(tree: ItemTree, labels: dict[str, float]) -> None:
    """Push labeled parents back until each sits behind its labeled children.

    Overlapping branches keep whichever label came first, which can leave a
    parent level with or in front of its child. Walking deepest first lets
    one push ripple up to the root.
    """
    for node in sorted(labels, key=tree.hierarchy_level, reverse=True):
        parent = tree.parents.get(node)
        if parent in labels and labels[parent] <= labels[node]:
            labels[parent] = labels[node] + 1


def resolve_depths(
    tree: ItemTree,
    state: ExpansionState,
    promote_descendant_peeks: bool = False,
) -> DepthResult:
    """Assign a depth layer to every item.

    Priority: explicit focus (layer 0), the active spotlight branch, pinned
    branches (most recent first, each one layer further back), then inline
    peeks and plain expansions below their parent. Roots default to layer 1
    (group centers 0). Anything with a collapsed ancestor is HIDDEN, focused
    or not. Open children of a focused item are placed from its layer 0.

    Args:
        tree: Item tree.
        state: Current expansion state.
        promote_descendant_peeks: Treat inline peeks below a spotlight leaf as
            part of the branch instead of receding behind their parent.

    Returns:
        DepthResult with a layer for every item.
    """
    warnings: list[str] = []
    revealed = set(state.expanded)
    if promote_descendant_peeks:
        revealed |= state.inline_expanded

    leaves: list[str] = []
    for leaf in state.chain_leaves():
        if not tree.is_attached(leaf):
            message = f"Spotlight leaf is not in the tree: {leaf}"
            warnings.append(message)
            logger.warning(message)
            continue
        leaves.append(leaf)

    labels: dict[str, float] = {}
    chain_members: set[str] = set()
    for leaf in leaves:
        chain_members.update(tree.chain(leaf))

    for rank, leaf in enumerate(state.chain_leaves()):
        if leaf not in leaves:
            continue
        # A spotlight leaf below this one stays revealed inside this branch
        branch_revealed = set(revealed)
        for other in leaves:
            if other != leaf and tree.is_ancestor(leaf, other):
                branch_revealed.update(tree.chain(other))
        # rank 0 is the active leaf when there is one
        offset = float(rank) if state.active is not None else float(rank + 1)
        for node, layer in label_branch(tree, leaf, branch_revealed, offset).items():
            labels.setdefault(node, layer)
    _keep_parents_behind(tree, labels)

    focused: set[str] = set()
    for item_id in sorted(state.focused):
        if not tree.is_attached(item_id):
            message = f"Focused item is not in the tree: {item_id}"
            warnings.append(message)
            logger.warning(message)
            continue
        focused.add(item_id)

    opened = open_set(state, tree)
    layers: dict[str, float] = {}
    queue: deque[str] = deque()
    for root in tree.roots:
        if root in focused:
            layers[root] = 0.0
        elif root in labels:
            layers[root] = labels[root]
        elif tree.items[root].is_center:
            layers[root] = CENTER_LAYER
        else:
            layers[root] = ROOT_LAYER
        queue.append(root)

    while queue:
        node = queue.popleft()
        if node not in opened:
            continue
        parent_layer = layers[node]
        for child in tree.children.get(node, []):
            if child in layers:
                continue
            if child in focused:
                layers[child] = 0.0
            elif child in labels:
                layers[child] = labels[child]
            elif node in chain_members:
                # Siblings of a branch node share their generation's layer
                layers[child] = max(parent_layer - 1, 0.0)
            else:
                layers[child] = parent_layer + 1
            queue.append(child)

    hidden_focus = sorted(focused - set(layers))
    if hidden_focus:
        logger.debug("Focused items behind a collapsed folder: %s", ", ".join(hidden_focus))

    visible = set(layers)
    for item_id in tree.items:
        layers.setdefault(item_id, HIDDEN)

    return DepthResult(layers=layers, visible=visible, spotlight_leaves=set(leaves), warnings=warnings)


def depth_scale(layer: float, is_center: bool = False, base: float = 1.0) -> float:
    """Size multiplier for a layer; centers decay more slowly."""
    if is_center:
        return max(0.75, base * 0.9 ** (layer - 1))
    return max(0.3, base * 0.8 ** (layer - 1))


def depth_opacity(layer: float, is_center: bool = False, base: float = 1.0) -> float:
    if layer >= HIDDEN:
        return 0.0
    if is_center:
        return min(1.0, max(0.6, base * 0.9 ** (layer - 1)))
    return min(1.0, max(0.0, base * 0.85 ** (layer - 1)))


def depth_blur(layer: float) -> float:
    """Blur radius in pixels, starting one layer behind the baseline."""
    return min(6.0, max(0.0, layer - 1) * 0.5)


def depth_z(layer: float, global_offset: float = 0.0, group_offset: float = 0.0) -> float:
    """World Z for a layer, including the global and group offsets."""
    if layer >= HIDDEN:
        return HIDDEN_Z
    base = LEAF_Z if layer == LEAF_LAYER else LAYER_Z_STEP * layer
    return global_offset + group_offset + base
