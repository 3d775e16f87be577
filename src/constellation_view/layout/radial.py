"""Hierarchy graph construction and ring placement around parents."""

import math

import networkx as nx

# Synthetic root node name
ROOT_NODE = "__root__"

# Ring radius for direct children, and growth per nesting level
BASE_CHILD_RADIUS = 140.0
CHILD_RADIUS_STEP = 45.0


def build_hierarchy_graph(parents: dict[str, str | None]) -> nx.DiGraph:
    """Build the parent -> child tree graph.

    Contains:
    - __root__ -> every item without a parent
    - parent -> child for every other item

    Items on a parent cycle (and everything below them) are present as nodes
    but unreachable from __root__.

    Args:
        parents: Mapping from item id to its parent id (None for roots).

    Returns:
        NetworkX DiGraph with successor order following ``parents`` order.
    """
    G = nx.DiGraph()
    G.add_node(ROOT_NODE)

    for node in parents:
        G.add_node(node)

    for node, parent in parents.items():
        if parent is None:
            G.add_edge(ROOT_NODE, node)
        else:
            G.add_edge(parent, node)

    return G


def find_parent_cycles(parents: dict[str, str | None]) -> list[list[str]]:
    """Find cycles in the child -> parent relation.

    Each cycle is rotated to start at its smallest id so results are stable.

    Args:
        parents: Mapping from item id to its parent id (None for roots).

    Returns:
        List of cycles, each a list of item ids in child -> parent order.
    """
    G = nx.DiGraph()
    for node, parent in parents.items():
        if parent is not None:
            G.add_edge(node, parent)

    cycles: list[list[str]] = []
    for cycle in nx.simple_cycles(G):
        start = cycle.index(min(cycle))
        cycles.append(cycle[start:] + cycle[:start])

    cycles.sort()
    return cycles


def ring_radius(depth: int) -> float:
    """Radius of the ring holding children at the given nesting depth."""
    return BASE_CHILD_RADIUS + depth * CHILD_RADIUS_STEP


def ring_angles(count: int) -> list[float]:
    """Evenly spaced angles in degrees, starting at 0.

    A single node sits at angle 0.
    """
    if count <= 0:
        return []
    if count == 1:
        return [0.0]
    step = 360.0 / count
    return [step * i for i in range(count)]


def normalize_degrees(angle: float) -> float:
    """Normalize angle to [0, 360) range."""
    angle = angle % 360.0
    if angle >= 360.0:  # -1e-20 % 360 rounds up to 360.0
        angle = 0.0
    return angle


def polar_offset(
    origin: tuple[float, float],
    angle: float,
    distance: float,
) -> tuple[float, float]:
    """Point at ``distance`` from ``origin`` in direction ``angle`` (degrees)."""
    radians = math.radians(angle)
    return (
        origin[0] + math.cos(radians) * distance,
        origin[1] + math.sin(radians) * distance,
    )
