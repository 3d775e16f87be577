"""Expansion state and the operations that replace it.

Every operation is a pure function taking the current :class:`ExpansionState`
and returning a new one; nothing is mutated in place. Operations are total:
unknown ids, detached items and non-expandable items leave the state
unchanged.
"""

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum

from .items import ItemTree

logger = logging.getLogger(__name__)

DEFAULT_MAX_PINNED = 3
DEFAULT_MAX_FOCUS_LEVEL = 3

# Group focus offsets (world Z)
GROUP_FOCUS_BASE = 1500.0
GROUP_FOCUS_GROWTH = 1.8
GROUP_PUSHBACK = -600.0


class CascadeAction(Enum):
    """Action applied by :func:`cascade` to an item and its visible folders."""

    EXPAND = "expand"
    COLLAPSE = "collapse"


@dataclass(frozen=True)
class ExpansionState:
    """What is expanded, spotlighted, pinned or peeked.

    ``active`` and each entry of ``pinned`` name the leaf of a root-to-leaf
    path; the ancestor chains are derived from the tree.
    """

    expanded: frozenset[str] = frozenset()
    inline_expanded: frozenset[str] = frozenset()  # Hover peeks
    active: str | None = None  # Spotlight leaf
    pinned: tuple[str, ...] = ()  # Oldest first
    focused: frozenset[str] = frozenset()  # Forced to the foreground
    group_depth_offsets: dict[str, float] = field(default_factory=dict)
    group_focus_levels: dict[str, int] = field(default_factory=dict)
    # (item id, state before the last toggle_expand) for the immediate round trip
    undo: "tuple[str, ExpansionState] | None" = field(
        default=None, compare=False, repr=False
    )

    def cache_key(self) -> tuple:
        """Hashable key covering every field that affects depth resolution."""
        return (
            self.expanded,
            self.inline_expanded,
            self.active,
            self.pinned,
            self.focused,
        )

    def chain_leaves(self) -> list[str]:
        """Active leaf followed by pinned leaves, most recent first."""
        leaves = [self.active] if self.active is not None else []
        leaves.extend(reversed(self.pinned))
        return leaves


def group_focus_offset(
    level: int,
    base: float = GROUP_FOCUS_BASE,
    growth: float = GROUP_FOCUS_GROWTH,
) -> float:
    """Forward Z offset for a group at the given focus level (level >= 1)."""
    return base * growth ** (level - 1)


def _expandable(tree: ItemTree, item_id: str) -> bool:
    item = tree.get(item_id)
    return item is not None and item.expandable and tree.is_attached(item_id)


def open_set(state: ExpansionState, tree: ItemTree) -> set[str]:
    """Ids whose children are revealed.

    The union of explicit expansions, inline peeks and every node on the
    active and pinned chains.
    """
    opened = set(state.expanded) | set(state.inline_expanded)
    for leaf in state.chain_leaves():
        opened.update(tree.chain(leaf))
    return opened


def visible_ids(state: ExpansionState, tree: ItemTree) -> set[str]:
    """Attached items whose every ancestor is open."""
    opened = open_set(state, tree)
    visible: set[str] = set()
    queue = deque(tree.roots)
    while queue:
        node = queue.popleft()
        if node in visible:
            continue
        visible.add(node)
        if node in opened:
            queue.extend(tree.children.get(node, []))
    return visible


def is_visible(state: ExpansionState, tree: ItemTree, item_id: str) -> bool:
    if not tree.is_attached(item_id):
        return False
    opened = open_set(state, tree)
    return all(ancestor in opened for ancestor in tree.ancestors(item_id))


def _collapse_subtree(state: ExpansionState, tree: ItemTree, item_id: str) -> ExpansionState:
    """Remove ``item_id`` and everything below it from every open set.

    Pins inside the subtree are dropped. If the active leaf was inside, the
    most recent remaining pin becomes active.
    """
    subtree = {item_id, *tree.descendants(item_id)}
    pinned = tuple(pin for pin in state.pinned if pin not in subtree)
    active = state.active if state.active not in subtree else None
    if active is None and pinned:
        active, pinned = pinned[-1], pinned[:-1]
        logger.debug("Promoted pinned branch %s to active", active)

    return replace(
        state,
        expanded=state.expanded - subtree,
        inline_expanded=state.inline_expanded - subtree,
        active=active,
        pinned=pinned,
        undo=None,
    )


def _promote_peeks(
    state: ExpansionState,
    tree: ItemTree,
    leaf: str,
    promote_descendant_peeks: bool,
) -> ExpansionState:
    """Move inline peeks absorbed by the branch ending at ``leaf`` into expanded."""
    absorbed = {node for node in tree.chain(leaf) if node in state.inline_expanded}

    if promote_descendant_peeks:
        # Only peeks reachable through open folders below the leaf
        queue = deque([leaf])
        while queue:
            node = queue.popleft()
            for child in tree.children.get(node, []):
                if child in state.inline_expanded:
                    absorbed.add(child)
                    queue.append(child)
                elif child in state.expanded:
                    queue.append(child)

    if not absorbed:
        return state
    logger.debug("Promoted inline peeks into spotlight: %s", sorted(absorbed))
    return replace(
        state,
        expanded=state.expanded | absorbed,
        inline_expanded=state.inline_expanded - absorbed,
    )


def _push_pin(pinned: Iterable[str], item_id: str, max_pinned: int) -> tuple[str, ...]:
    """Append as most recent, de-duplicated, keeping the newest ``max_pinned``."""
    stack = [pin for pin in pinned if pin != item_id]
    stack.append(item_id)
    if max_pinned <= 0:
        return ()
    return tuple(stack[-max_pinned:])


def toggle_expand(
    state: ExpansionState,
    tree: ItemTree,
    item_id: str,
    max_pinned: int = DEFAULT_MAX_PINNED,
    promote_descendant_peeks: bool = False,
) -> ExpansionState:
    """Expand ``item_id`` as the new spotlight, or collapse it.

    Only the expanded active leaf collapses. Any other folder becomes the
    spotlight: the current leaf is pinned, unless it lies on the new chain.
    A current leaf below ``item_id`` folds its path into ``expanded`` so the
    new branch reveals it. Toggling the same id twice in a row restores the
    original state.

    Args:
        state: Current expansion state.
        tree: Item tree.
        item_id: Folder or group center to toggle.
        max_pinned: Bound on the pinned stack (oldest dropped).
        promote_descendant_peeks: Also absorb inline peeks below the new leaf.

    Returns:
        The new state (``state`` itself for a no-op).
    """
    if state.undo is not None and state.undo[0] == item_id:
        logger.debug("Reverting toggle of %s", item_id)
        return replace(state.undo[1], undo=None)

    if not _expandable(tree, item_id):
        return state

    previous = replace(state, undo=None)

    if item_id == state.active and item_id in state.expanded:
        logger.debug("Collapsing %s", item_id)
        new_state = _collapse_subtree(previous, tree, item_id)
        return replace(new_state, undo=(item_id, previous))

    pinned: tuple[str, ...] = tuple(p for p in state.pinned if p != item_id)
    expanded = state.expanded | {item_id}
    current = state.active
    if current is not None and current != item_id:
        if tree.is_ancestor(item_id, current):
            old_chain = tree.chain(current)
            expanded |= set(old_chain[old_chain.index(item_id):])
        elif not tree.is_ancestor(current, item_id):
            # A descendant of the current leaf extends its chain instead of replacing it
            pinned = _push_pin(pinned, current, len(pinned) + 1)

    # Pins on the new chain are subsumed by the spotlight
    chain = set(tree.chain(item_id))
    pinned = tuple(p for p in pinned if p not in chain)
    pinned = pinned[-max_pinned:] if max_pinned > 0 else ()

    new_state = replace(
        previous,
        expanded=expanded,
        active=item_id,
        pinned=pinned,
    )
    new_state = _promote_peeks(new_state, tree, item_id, promote_descendant_peeks)
    logger.debug("Spotlight %s -> %s (pinned: %s)", current, item_id, new_state.pinned)
    return replace(new_state, undo=(item_id, previous))


def pin(
    state: ExpansionState,
    tree: ItemTree,
    item_id: str,
    max_pinned: int = DEFAULT_MAX_PINNED,
) -> ExpansionState:
    """Keep the branch ending at ``item_id`` open as the most recent pin.

    Pinning the active leaf demotes it, leaving no active spotlight.
    """
    if not _expandable(tree, item_id):
        return state
    if state.pinned and state.pinned[-1] == item_id and item_id in state.expanded:
        return replace(state, undo=None)

    active = None if state.active == item_id else state.active
    new_state = replace(
        state,
        expanded=state.expanded | {item_id},
        active=active,
        pinned=_push_pin(state.pinned, item_id, max_pinned),
        undo=None,
    )
    return _promote_peeks(new_state, tree, item_id, False)


def unpin(state: ExpansionState, tree: ItemTree, item_id: str) -> ExpansionState:
    """Close a pinned or active branch.

    Unpinning the active leaf promotes the most recent remaining pin.
    """
    if item_id != state.active and item_id not in state.pinned:
        return state
    if not tree.is_attached(item_id):
        # Stale entry; drop it without touching the rest
        return replace(
            state,
            active=None if state.active == item_id else state.active,
            pinned=tuple(p for p in state.pinned if p != item_id),
            undo=None,
        )
    return _collapse_subtree(state, tree, item_id)


def toggle_inline_peek(state: ExpansionState, tree: ItemTree, item_id: str) -> ExpansionState:
    """Flip a hover peek. Folders already expanded are left alone."""
    if not _expandable(tree, item_id) or item_id in state.expanded:
        return state
    if item_id in state.inline_expanded:
        inline = state.inline_expanded - {item_id}
    else:
        inline = state.inline_expanded | {item_id}
    return replace(state, inline_expanded=inline, undo=None)


def cascade(
    state: ExpansionState,
    tree: ItemTree,
    item_id: str,
    action: "CascadeAction | str",
) -> ExpansionState:
    """Apply ``action`` to ``item_id`` and every visible descendant folder at once.

    Raises:
        ValueError: If ``action`` is not a :class:`CascadeAction` value.
    """
    action = CascadeAction(action)

    if not _expandable(tree, item_id):
        return state

    if action is CascadeAction.COLLAPSE:
        return _collapse_subtree(state, tree, item_id)

    visible = visible_ids(state, tree)
    targets = {item_id}
    targets.update(d for d in tree.descendants(item_id, expandable_only=True) if d in visible)
    logger.debug("Cascade expand %s: %d folders", item_id, len(targets))
    return replace(
        state,
        expanded=state.expanded | targets,
        inline_expanded=state.inline_expanded - targets,
        undo=None,
    )


def toggle_focus(state: ExpansionState, tree: ItemTree, item_id: str) -> ExpansionState:
    """Flip the explicit foreground override of an item."""
    if not tree.is_attached(item_id):
        return state
    if item_id in state.focused:
        focused = state.focused - {item_id}
    else:
        focused = state.focused | {item_id}
    return replace(state, focused=focused, undo=None)


def focus_group(
    state: ExpansionState,
    group_ids: Iterable[str],
    group_id: str,
    max_focus_level: int = DEFAULT_MAX_FOCUS_LEVEL,
    base: float = GROUP_FOCUS_BASE,
    growth: float = GROUP_FOCUS_GROWTH,
    pushback: float = GROUP_PUSHBACK,
) -> ExpansionState:
    """Bring a group one focus level forward, cycling back to neutral.

    Unfocused groups are pushed back while any group is focused.
    """
    group_ids = list(group_ids)
    if group_id not in group_ids:
        return state

    levels = dict(state.group_focus_levels)
    offsets = dict(state.group_depth_offsets)
    next_level = levels.get(group_id, 0) + 1

    if next_level > max_focus_level:
        levels.pop(group_id, None)
        offsets.pop(group_id, None)
        if not levels:
            offsets.clear()
        logger.debug("Group %s returned to neutral depth", group_id)
    else:
        levels[group_id] = next_level
        offsets[group_id] = group_focus_offset(next_level, base, growth)
        for other in group_ids:
            if other != group_id and levels.get(other, 0) == 0:
                offsets[other] = pushback
        logger.debug("Group %s focus level %d", group_id, next_level)

    return replace(state, group_focus_levels=levels, group_depth_offsets=offsets, undo=None)


def reset_group_focus(state: ExpansionState) -> ExpansionState:
    return replace(state, group_focus_levels={}, group_depth_offsets={}, undo=None)
