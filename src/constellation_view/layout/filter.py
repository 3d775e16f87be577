"""Connection visibility filtering by distance, zoom, focus, type and depth."""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .classify import Connection, ConnectionType
from .depth import HIDDEN

# Drop reasons, in the order the checks run
HIDDEN_ENDPOINT = "hidden-endpoint"
TOO_FAR = "too-far"
LOW_ZOOM = "low-zoom"
OUT_OF_FOCUS = "out-of-focus"
HIDDEN_TYPE = "hidden-type"
TOO_WEAK = "too-weak"
DEPTH_SPAN = "depth-span"


@dataclass(frozen=True)
class FilterOptions:
    """User-controlled connection filters."""

    focus_mode: bool = False  # Only edges touching focus_id
    focus_id: str | None = None  # Focused or hovered item
    hidden_types: frozenset[ConnectionType] = frozenset()
    min_strength: int = 1
    max_distance: float = 800.0  # World units at zoom 1
    max_layer_span: float = 2.0


@dataclass
class FilterResult:
    """Result of filtering a connection list."""

    kept: list[Connection] = field(default_factory=list)
    dropped: dict[Connection, str] = field(default_factory=dict)  # Connection -> reason
    warnings: list[str] = field(default_factory=list)


def _drop_reason(
    connection: Connection,
    world_positions: Mapping[str, tuple[float, float]],
    layers: Mapping[str, float],
    zoom: float,
    options: FilterOptions,
) -> str | None:
    layer_a = layers.get(connection.source, HIDDEN)
    layer_b = layers.get(connection.target, HIDDEN)
    if layer_a >= HIDDEN or layer_b >= HIDDEN:
        return HIDDEN_ENDPOINT

    ax, ay = world_positions[connection.source]
    bx, by = world_positions[connection.target]
    if math.hypot(bx - ax, by - ay) > options.max_distance * zoom:
        return TOO_FAR

    if zoom < 0.5 and connection.importance < 3:
        return LOW_ZOOM
    if zoom < 0.3 and connection.importance < 4:
        return LOW_ZOOM

    if options.focus_mode and not connection.touches(options.focus_id):
        return OUT_OF_FOCUS

    if connection.type in options.hidden_types:
        return HIDDEN_TYPE

    if connection.importance < options.min_strength:
        return TOO_WEAK

    if abs(layer_a - layer_b) > options.max_layer_span:
        return DEPTH_SPAN

    return None


def filter_connections(
    connections: Iterable[Connection],
    world_positions: Mapping[str, tuple[float, float]],
    layers: Mapping[str, float],
    zoom: float,
    options: FilterOptions | None = None,
) -> FilterResult:
    """Decide which connections are visible.

    Args:
        connections: Candidate connections.
        world_positions: Item id -> world (x, y).
        layers: Item id -> resolved depth layer (HIDDEN when not shown).
        zoom: Current camera zoom.
        options: Filters; defaults show everything.

    Returns:
        FilterResult with kept connections in input order and a drop reason
        for every other connection.
    """
    options = options or FilterOptions()
    result = FilterResult()

    for connection in connections:
        missing = [i for i in connection.endpoints if i not in world_positions]
        if missing:
            result.warnings.append(f"No position for connection endpoint: {', '.join(missing)}")
            result.dropped[connection] = HIDDEN_ENDPOINT
            continue

        reason = _drop_reason(connection, world_positions, layers, zoom, options)
        if reason is None:
            result.kept.append(connection)
        else:
            result.dropped[connection] = reason

    return result
