"""Edge styling and screen-space bundling of visible connections."""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from ..items import ItemTree
from .classify import Connection, ConnectionType
from .filter import FilterResult

Point = tuple[float, float]

DEFAULT_BUNDLE_RADIUS = 50.0
BUNDLE_OPACITY = 0.6
BUNDLE_COLOR = "#64b5f6"
HIGHLIGHT_COLOR = "#fbbf24"

DASH_STYLES: dict[ConnectionType, str] = {
    ConnectionType.PARENT_CHILD: "0",  # Solid
    ConnectionType.INTRA_GROUP: "3,2",
    ConnectionType.CROSS_GROUP: "5,3",
    ConnectionType.SEMANTIC: "2,4",  # Dotted
}

TYPE_COLORS: dict[ConnectionType, str] = {
    ConnectionType.PARENT_CHILD: "#64b5f6",
    ConnectionType.INTRA_GROUP: "#64b5f6",
    ConnectionType.CROSS_GROUP: "#9ca3af",
    ConnectionType.SEMANTIC: "#8b5cf6",
}

# Base edge opacity by rounded average layer
LAYER_OPACITY = {0: 0.6, 1: 0.4, 2: 0.2, 3: 0.1}
FAR_LAYER_OPACITY = 0.05


@dataclass
class EdgeVisual:
    """Render instructions for one connection."""

    source: str
    target: str
    type: ConnectionType
    visible: bool
    bundled: bool = False
    stroke_width: float = 0.0
    opacity: float = 0.0
    dash_style: str = "0"
    endpoints: tuple[Point, Point] | None = None  # Screen space
    reason: str | None = None  # Why the filter hid the edge
    color: str | None = None
    highlighted: bool = False


@dataclass
class EdgeBundle:
    """One merged stroke standing in for several nearby connections."""

    connections: list[Connection] = field(default_factory=list)
    endpoints: tuple[Point, Point] = ((0.0, 0.0), (0.0, 0.0))  # Averaged
    total_importance: int = 0
    stroke_width: float = 3.0
    opacity: float = BUNDLE_OPACITY
    color: str = BUNDLE_COLOR


def layer_opacity(avg_layer: float) -> float:
    """Base opacity for an edge whose endpoints average ``avg_layer``."""
    return LAYER_OPACITY.get(math.floor(avg_layer + 0.5), FAR_LAYER_OPACITY)


def bundle_width(total_importance: float) -> float:
    return min(8.0, max(3.0, total_importance * 0.5))


def bundle_connections(
    connections: Sequence[Connection],
    screen_positions: Mapping[str, Point],
    radius: float = DEFAULT_BUNDLE_RADIUS,
) -> list[list[Connection]]:
    """Greedily group connections with nearby endpoints.

    Walking the list in order, each unprocessed connection collects every
    later unprocessed connection whose source and target are each strictly
    within ``radius`` pixels of its own.

    Returns:
        Groups in input order; singletons for unbundled connections.
    """
    groups: list[list[Connection]] = []
    processed: set[int] = set()

    for index, connection in enumerate(connections):
        if index in processed:
            continue
        processed.add(index)
        a1 = screen_positions[connection.source]
        b1 = screen_positions[connection.target]
        group = [connection]

        for other_index in range(index + 1, len(connections)):
            if other_index in processed:
                continue
            other = connections[other_index]
            a2 = screen_positions[other.source]
            b2 = screen_positions[other.target]
            if math.dist(a1, a2) < radius and math.dist(b1, b2) < radius:
                group.append(other)
                processed.add(other_index)

        groups.append(group)

    return groups


def _average(points: list[Point]) -> Point:
    return (
        sum(p[0] for p in points) / len(points),
        sum(p[1] for p in points) / len(points),
    )


def connection_color(
    connection: Connection,
    tree: ItemTree | None = None,
    highlighted: bool = False,
) -> str:
    """Stroke color: parent's color for parent/child, group color within a group."""
    if highlighted:
        return HIGHLIGHT_COLOR
    default = TYPE_COLORS[connection.type]
    if tree is None:
        return default

    source = tree.get(connection.source)
    target = tree.get(connection.target)
    if connection.type is ConnectionType.PARENT_CHILD and source and target:
        parent = target if source.parent_id == target.id else source
        return parent.color or default
    if connection.type is ConnectionType.INTRA_GROUP and source:
        return source.color or default
    return default


def style_connections(
    result: FilterResult,
    screen_positions: Mapping[str, Point],
    layers: Mapping[str, float],
    highlight_id: str | None = None,
    bundling: bool = False,
    radius: float = DEFAULT_BUNDLE_RADIUS,
    tree: ItemTree | None = None,
) -> tuple[list[EdgeVisual], list[EdgeBundle]]:
    """Turn a filter result into edge visuals and bundles.

    Args:
        result: Output of ``filter_connections``.
        screen_positions: Item id -> projected screen (x, y).
        layers: Item id -> resolved depth layer.
        highlight_id: Hovered or selected item; its edges render solid and wider.
        bundling: Merge nearby visible edges into bundles.
        radius: Bundling radius in pixels.
        tree: Item tree, used for per-item stroke colors.

    Returns:
        (edges, bundles). Every input connection has one EdgeVisual; edges
        absorbed into a bundle are marked ``bundled`` and not ``visible``;
        the bundle draws them.
    """
    edges: list[EdgeVisual] = []
    bundles: list[EdgeBundle] = []

    groups = (
        bundle_connections(result.kept, screen_positions, radius)
        if bundling
        else [[connection] for connection in result.kept]
    )

    for group in groups:
        if len(group) > 1:
            total = sum(c.importance for c in group)
            sources = [screen_positions[c.source] for c in group]
            targets = [screen_positions[c.target] for c in group]
            bundles.append(
                EdgeBundle(
                    connections=list(group),
                    endpoints=(_average(sources), _average(targets)),
                    total_importance=total,
                    stroke_width=bundle_width(total),
                )
            )
            for connection in group:
                edges.append(
                    EdgeVisual(
                        source=connection.source,
                        target=connection.target,
                        type=connection.type,
                        visible=False,
                        bundled=True,
                        dash_style=DASH_STYLES[connection.type],
                        endpoints=(
                            screen_positions[connection.source],
                            screen_positions[connection.target],
                        ),
                        color=BUNDLE_COLOR,
                    )
                )
            continue

        connection = group[0]
        highlighted = connection.touches(highlight_id)
        avg_layer = (layers[connection.source] + layers[connection.target]) / 2
        opacity = min(1.0, layer_opacity(avg_layer) * (0.3 + 0.2 * connection.importance))
        width = connection.importance + 1 if highlighted else max(1.0, connection.importance * 0.8)
        edges.append(
            EdgeVisual(
                source=connection.source,
                target=connection.target,
                type=connection.type,
                visible=True,
                stroke_width=float(width),
                opacity=opacity,
                dash_style="0" if highlighted else DASH_STYLES[connection.type],
                endpoints=(
                    screen_positions[connection.source],
                    screen_positions[connection.target],
                ),
                color=connection_color(connection, tree, highlighted),
                highlighted=highlighted,
            )
        )

    for connection, reason in result.dropped.items():
        edges.append(
            EdgeVisual(
                source=connection.source,
                target=connection.target,
                type=connection.type,
                visible=False,
                dash_style=DASH_STYLES[connection.type],
                reason=reason,
            )
        )

    return edges, bundles
