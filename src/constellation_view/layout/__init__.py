"""Depth, connection and placement layout for the constellation view.

Depth layers are resolved from the expansion state; connections are
classified once, then filtered and bundled per frame.
"""

from .bundle import EdgeBundle, EdgeVisual, bundle_connections, layer_opacity, style_connections
from .classify import Connection, ConnectionType, build_connections, classify_connection
from .depth import HIDDEN, DepthResult, depth_blur, depth_opacity, depth_scale, depth_z, resolve_depths
from .filter import FilterOptions, FilterResult, filter_connections
from .radial import build_hierarchy_graph, find_parent_cycles, ring_angles, ring_radius
from .render import render_frame

__all__ = [
    "HIDDEN",
    "DepthResult",
    "resolve_depths",
    "depth_scale",
    "depth_opacity",
    "depth_blur",
    "depth_z",
    "ConnectionType",
    "Connection",
    "classify_connection",
    "build_connections",
    "FilterOptions",
    "FilterResult",
    "filter_connections",
    "EdgeVisual",
    "EdgeBundle",
    "layer_opacity",
    "bundle_connections",
    "style_connections",
    "build_hierarchy_graph",
    "find_parent_cycles",
    "ring_angles",
    "ring_radius",
    "render_frame",
]
