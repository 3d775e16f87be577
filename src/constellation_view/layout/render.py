"""Pyvis rendering of a projected frame."""

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..session import Frame

DEFAULT_NODE_COLOR = "#64b5f6"
CENTER_NODE_COLOR = "#fbbf24"

# Pixel size of a unit-scale item in the preview
NODE_SIZE_FACTOR = 1.0


def _rgba(color: str | None, opacity: float, fallback: str = DEFAULT_NODE_COLOR) -> str:
    """Convert ``#rrggbb`` plus opacity to a CSS rgba() string.

    Args:
        color: Hex color, or None for the fallback.
        opacity: Alpha in [0, 1].
        fallback: Hex color used when ``color`` is missing or malformed.

    Returns:
        CSS color string.
    """
    value = (color or fallback).lstrip("#")
    if len(value) != 6:
        value = fallback.lstrip("#")
    r, g, b = (int(value[i : i + 2], 16) for i in (0, 2, 4))
    return f"rgba({r},{g},{b},{max(0.0, min(1.0, opacity)):.3f})"


def _dashes(dash_style: str) -> bool | list[float]:
    """Map an SVG dash array to the vis.js ``dashes`` option."""
    if dash_style in ("", "0"):
        return False
    return [float(part) for part in dash_style.split(",")]


def render_frame(frame: "Frame", output_path: Path, title: str | None = None) -> None:
    """Render a frame with pyvis at its projected screen positions.

    Items are drawn back to front in frame order with fixed positions, sized
    by their depth scale and faded by their depth opacity. Visible edges keep
    their width, color and dash style; each bundle is drawn once between the
    endpoints of its first connection.

    Args:
        frame: Frame produced by ``ConstellationSession.frame()``.
        output_path: Path to write the HTML file.
        title: Optional heading for the page.
    """
    from pyvis.network import Network

    net = Network(
        height="100vh",
        width="100%",
        bgcolor="#0b1020",
        font_color="#e2e8f0",
        heading=title or "",
        cdn_resources="remote",  # "local" copies vis.js into the working directory
    )
    net.toggle_physics(False)

    added: set[str] = set()
    for visual in frame.items:
        fallback = CENTER_NODE_COLOR if visual.is_center else DEFAULT_NODE_COLOR
        net.add_node(
            visual.item_id,
            label=visual.title or visual.item_id,
            title=f"{visual.title or visual.item_id}\nlayer {visual.depth_layer:g}",
            x=visual.screen_x,
            y=visual.screen_y,
            fixed=True,
            size=max(1.0, visual.size * visual.scale * NODE_SIZE_FACTOR),
            color=_rgba(visual.color, visual.opacity, fallback),
            shape="dot",
            font={"size": 10 if visual.is_center else 8},
        )
        added.add(visual.item_id)

    for edge in frame.edges:
        if not edge.visible:
            continue
        if edge.source not in added or edge.target not in added:
            continue
        net.add_edge(
            edge.source,
            edge.target,
            width=edge.stroke_width,
            color=_rgba(edge.color, edge.opacity),
            dashes=_dashes(edge.dash_style),
            title=edge.type.value,
        )

    for bundle in frame.bundles:
        first = bundle.connections[0]
        if first.source not in added or first.target not in added:
            continue
        net.add_edge(
            first.source,
            first.target,
            width=bundle.stroke_width,
            color=_rgba(bundle.color, bundle.opacity),
            title=f"{len(bundle.connections)} connections",
        )

    net.set_options("""
    {
        "physics": {"enabled": false},
        "interaction": {
            "zoomView": true,
            "dragView": true,
            "hover": true,
            "tooltipDelay": 100
        },
        "edges": {
            "smooth": false,
            "selectionWidth": 1.5,
            "hoverWidth": 1.5
        },
        "nodes": {
            "borderWidth": 0,
            "borderWidthSelected": 2
        }
    }
    """)

    net.save_graph(str(output_path))
