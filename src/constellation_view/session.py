"""Interactive session: owns the view state and builds render frames.

All mutation goes through :class:`ConstellationSession`. Each operation
computes the new camera or expansion state completely before assigning it,
so a frame never observes a half-applied change.
"""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum

from . import state as expansion
from .config import ViewConfig
from .items import Item, ItemRole, ItemTree, world_positions
from .layout.bundle import EdgeBundle, EdgeVisual, style_connections
from .layout.classify import Connection, build_connections
from .layout.depth import (
    HIDDEN,
    DepthResult,
    depth_blur,
    depth_opacity,
    depth_scale,
    depth_z,
    resolve_depths,
)
from .layout.filter import FilterOptions, filter_connections
from .state import CascadeAction, ExpansionState
from .transform import (
    CameraState,
    pan_camera,
    project,
    rotate_camera,
    unproject,
    update_camera,
    wheel_zoom_multiplier,
    zoom_camera,
)

logger = logging.getLogger(__name__)

CENTER_SIZE = 20.0
BASE_ITEM_SIZE = 8.0

# Items this deep or deeper cannot be picked
MAX_HIT_LAYER = 3.0

# Bound on memoised depth maps
DEPTH_CACHE_SIZE = 64


class InteractionMode(Enum):
    """What the pointer is currently doing."""

    IDLE = "idle"
    DRAG = "drag"  # Moving one item or a selected group
    ROTATE = "rotate"
    PAN = "pan"
    DEPTH = "depth"  # Vertical motion shifts the global depth offset


@dataclass(frozen=True)
class DragState:
    """An item drag in progress."""

    item_id: str
    captured_z: float  # World Z fixed for the whole gesture
    members: frozenset[str]  # Items moved together


@dataclass
class ItemVisual:
    """Render instructions for one visible item."""

    item_id: str
    screen_x: float
    screen_y: float
    depth_layer: float
    scale: float
    opacity: float
    blur_px: float
    z: float  # World Z used for projection
    z_order_key: float  # Larger draws later (closer)
    size: float  # Unscaled radius in pixels
    title: str = ""
    color: str | None = None
    is_center: bool = False


@dataclass
class Frame:
    """Everything a renderer needs for one state."""

    items: list[ItemVisual] = field(default_factory=list)  # Back to front
    edges: list[EdgeVisual] = field(default_factory=list)
    bundles: list[EdgeBundle] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def item_size(item: Item) -> float:
    """Unscaled radius: fixed for centers, growing with importance otherwise."""
    if item.is_center:
        return CENTER_SIZE
    return BASE_ITEM_SIZE + item.importance / 5 * 6


class ConstellationSession:
    """Mutable view over an immutable item collection.

    Args:
        items: Flat item list from the provider.
        extra_edges: ``(a, b)`` id pairs or Connection objects.
        config: Tunables; defaults to :class:`ViewConfig`.
        camera: Initial camera; defaults to :class:`CameraState`.
    """

    def __init__(
        self,
        items: Iterable[Item],
        extra_edges: Iterable["tuple[str, str] | Connection"] = (),
        config: ViewConfig | None = None,
        camera: CameraState | None = None,
    ):
        self.config = config or ViewConfig()
        self.tree = ItemTree.build(items)
        self.warnings: list[str] = list(self.tree.warnings)
        self.connections = build_connections(self.tree, extra_edges, self.warnings)
        self.camera = camera or CameraState()
        self.state = ExpansionState()
        self.position_overrides: dict[str, tuple[float, float]] = {}
        self.connection_options = FilterOptions(
            max_distance=self.config.max_connection_distance,
            max_layer_span=self.config.max_layer_span,
        )
        self.bundling = False
        self.mode = InteractionMode.IDLE
        self.drag: DragState | None = None
        self.hovered: str | None = None
        self.group_selection: frozenset[str] = frozenset()
        self._depth_cache: dict[tuple, DepthResult] = {}

        logger.debug(
            "Session with %d items, %d connections", len(self.tree), len(self.connections)
        )

    # Expansion

    def _commit(self, new_state: ExpansionState) -> ExpansionState:
        self.state = new_state
        return new_state

    def toggle_expand(self, item_id: str) -> ExpansionState:
        return self._commit(
            expansion.toggle_expand(
                self.state,
                self.tree,
                item_id,
                max_pinned=self.config.max_pinned,
                promote_descendant_peeks=self.config.promote_descendant_peeks,
            )
        )

    def pin(self, item_id: str) -> ExpansionState:
        return self._commit(
            expansion.pin(self.state, self.tree, item_id, max_pinned=self.config.max_pinned)
        )

    def unpin(self, item_id: str) -> ExpansionState:
        return self._commit(expansion.unpin(self.state, self.tree, item_id))

    def toggle_inline_peek(self, item_id: str) -> ExpansionState:
        return self._commit(expansion.toggle_inline_peek(self.state, self.tree, item_id))

    def cascade(self, item_id: str, action: "CascadeAction | str") -> ExpansionState:
        return self._commit(expansion.cascade(self.state, self.tree, item_id, action))

    def toggle_focus(self, item_id: str) -> ExpansionState:
        return self._commit(expansion.toggle_focus(self.state, self.tree, item_id))

    def focus_group(self, group_or_item_id: str) -> ExpansionState:
        """Advance the focus level of a group, given its id or one of its items."""
        item = self.tree.get(group_or_item_id)
        group_id = item.group_id if item is not None else group_or_item_id
        if group_id is None:
            return self.state
        return self._commit(
            expansion.focus_group(
                self.state,
                self.tree.group_ids(),
                group_id,
                max_focus_level=self.config.max_focus_level,
                base=self.config.group_focus_base,
                growth=self.config.group_focus_growth,
                pushback=self.config.group_pushback,
            )
        )

    def reset_group_focus(self) -> ExpansionState:
        return self._commit(expansion.reset_group_focus(self.state))

    # Depth

    def depths(self) -> DepthResult:
        """Resolved layers for the current state, memoised by state key."""
        key = (self.state.cache_key(), self.config.promote_descendant_peeks)
        cached = self._depth_cache.get(key)
        if cached is not None:
            return cached
        result = resolve_depths(
            self.tree, self.state, promote_descendant_peeks=self.config.promote_descendant_peeks
        )
        if len(self._depth_cache) >= DEPTH_CACHE_SIZE:
            self._depth_cache.clear()
        self._depth_cache[key] = result
        return result

    def item_z(self, item_id: str, layer: float | None = None) -> float:
        """World Z of an item, including the global and group offsets."""
        if layer is None:
            layer = self.depths().layer(item_id)
        item = self.tree.items[item_id]
        group_offset = self.state.group_depth_offsets.get(item.group_id, 0.0)
        return depth_z(layer, self.camera.global_depth_offset, group_offset)

    def world_positions(self) -> dict[str, tuple[float, float]]:
        return world_positions(self.tree, self.position_overrides)

    # Camera

    def _limits(self) -> dict[str, float]:
        return {
            "min_zoom": self.config.min_zoom,
            "max_zoom": self.config.max_zoom,
            "max_pitch": self.config.max_pitch,
            "max_depth_offset": self.config.max_global_depth,
        }

    def set_camera(self, **changes: float) -> CameraState:
        """Replace camera fields; limits are enforced.

        Raises:
            TypeError: If a change names an unknown camera field.
        """
        self.camera = update_camera(self.camera, **self._limits(), **changes)
        return self.camera

    def wheel(self, delta_x: float, delta_y: float, delta_mode: int = 0) -> CameraState:
        multiplier = wheel_zoom_multiplier(
            delta_x,
            delta_y,
            delta_mode,
            intensity=self.config.wheel_intensity,
            max_magnitude=self.config.wheel_max_magnitude,
        )
        self.camera = zoom_camera(self.camera, multiplier, **self._limits())
        return self.camera

    def adjust_global_depth(self, delta: float) -> CameraState:
        return self.set_camera(global_depth_offset=self.camera.global_depth_offset + delta)

    def reset_global_depth(self) -> CameraState:
        return self.set_camera(global_depth_offset=0.0)

    # Pointer gestures

    def begin_rotate(self) -> None:
        self.drag = None
        self.mode = InteractionMode.ROTATE

    def begin_pan(self) -> None:
        self.drag = None
        self.mode = InteractionMode.PAN

    def begin_depth_drag(self) -> None:
        self.drag = None
        self.mode = InteractionMode.DEPTH

    def begin_drag(self, item_id: str) -> float | None:
        """Start dragging an item and capture its world Z for the gesture.

        A member of the current group selection drags the whole group.

        Returns:
            The captured Z, or None if the item is unknown or hidden.
        """
        if item_id not in self.tree:
            return None
        layer = self.depths().layer(item_id)
        if layer >= HIDDEN:
            return None

        captured_z = self.item_z(item_id, layer)
        if item_id in self.group_selection:
            members = self.group_selection
        else:
            members = frozenset({item_id})
        self.drag = DragState(item_id=item_id, captured_z=captured_z, members=members)
        self.mode = InteractionMode.DRAG
        logger.debug("Drag %s (%d items) at z=%s", item_id, len(members), captured_z)
        return captured_z

    def apply_drag(
        self,
        item_id: str,
        screen_delta: tuple[float, float],
        captured_z: float,
    ) -> None:
        """Move the dragged item so it follows the pointer by ``screen_delta``.

        The item's current screen position is shifted by the delta and
        unprojected at ``captured_z``; the resulting world delta is applied to
        every member of the drag. No-op without a matching drag in progress.
        """
        if self.mode is not InteractionMode.DRAG or self.drag is None:
            return
        if self.drag.item_id != item_id:
            return

        positions = self.world_positions()
        wx, wy = positions[item_id]
        start = project(
            wx, wy, captured_z, self.camera, self.config.focal_length, self.config.near_plane
        )
        nx, ny = unproject(
            start.screen_x + screen_delta[0],
            start.screen_y + screen_delta[1],
            captured_z,
            self.camera,
            self.config.focal_length,
            self.config.near_plane,
        )
        dx, dy = nx - wx, ny - wy

        overrides = dict(self.position_overrides)
        for member in self.drag.members:
            mx, my = positions[member]
            overrides[member] = (mx + dx, my + dy)
        self.position_overrides = overrides

    def apply_pointer_delta(self, dx: float, dy: float) -> None:
        """Route a pointer move to the active gesture."""
        if self.mode is InteractionMode.ROTATE:
            self.camera = rotate_camera(self.camera, dx, dy, **self._limits())
        elif self.mode is InteractionMode.PAN:
            self.camera = pan_camera(self.camera, dx, dy)
        elif self.mode is InteractionMode.DEPTH:
            self.adjust_global_depth(-dy * self.config.global_depth_step)
        elif self.mode is InteractionMode.DRAG and self.drag is not None:
            self.apply_drag(self.drag.item_id, (dx, dy), self.drag.captured_z)

    def end_drag(self) -> None:
        """Pointer release or focus loss: always back to idle."""
        if self.mode is not InteractionMode.IDLE:
            logger.debug("End %s", self.mode.value)
        self.drag = None
        self.mode = InteractionMode.IDLE

    # Selection and connection options

    def select_group(self, item_id: str) -> frozenset[str]:
        """Select a folder with its descendants, or a group center with its group."""
        item = self.tree.get(item_id)
        if item is None:
            return self.group_selection
        if item.is_center and item.group_id is not None:
            members = set(self.tree.group_members(item.group_id))
        elif item.role is ItemRole.FOLDER:
            members = {item_id, *self.tree.descendants(item_id)}
        else:
            return self.group_selection
        self.group_selection = frozenset(members)
        return self.group_selection

    def clear_group_selection(self) -> None:
        self.group_selection = frozenset()

    def set_connection_options(self, bundling: bool | None = None, **changes) -> FilterOptions:
        """Update connection filters; ``bundling`` toggles edge bundling.

        Raises:
            TypeError: If a change names an unknown option.
        """
        if "hidden_types" in changes:
            changes["hidden_types"] = frozenset(changes["hidden_types"])
        self.connection_options = replace(self.connection_options, **changes)
        if bundling is not None:
            self.bundling = bundling
        return self.connection_options

    def set_hovered(self, item_id: str | None) -> None:
        self.hovered = item_id if item_id in self.tree else None

    # Output

    def hit_test(self, x: float, y: float) -> str | None:
        """Frontmost visible item under a screen point, if any."""
        frame_items = self._item_visuals(self.depths(), self.world_positions())
        for visual in reversed(frame_items):
            if visual.depth_layer >= MAX_HIT_LAYER:
                continue
            item = self.tree.items[visual.item_id]
            buffer = (
                self.config.folder_hit_buffer
                if item.role is ItemRole.FOLDER
                else self.config.item_hit_buffer
            )
            radius = visual.size * visual.scale + buffer
            if math.hypot(x - visual.screen_x, y - visual.screen_y) <= radius:
                return visual.item_id
        return None

    def _item_visuals(
        self,
        depth: DepthResult,
        positions: dict[str, tuple[float, float]],
    ) -> list[ItemVisual]:
        visuals: list[ItemVisual] = []
        for item_id in depth.visible:
            item = self.tree.items[item_id]
            layer = depth.layers[item_id]
            z = self.item_z(item_id, layer)
            wx, wy = positions[item_id]
            projected = project(
                wx, wy, z, self.camera, self.config.focal_length, self.config.near_plane
            )
            visuals.append(
                ItemVisual(
                    item_id=item_id,
                    screen_x=projected.screen_x,
                    screen_y=projected.screen_y,
                    depth_layer=layer,
                    scale=depth_scale(layer, item.is_center, self.config.base_scale),
                    opacity=depth_opacity(layer, item.is_center, self.config.base_opacity),
                    blur_px=depth_blur(layer),
                    z=z,
                    z_order_key=projected.depth,
                    size=item_size(item),
                    title=item.title,
                    color=item.color,
                    is_center=item.is_center,
                )
            )
        visuals.sort(key=lambda v: (v.z_order_key, v.item_id))
        return visuals

    def frame(self) -> Frame:
        """Compute every item and edge visual for the current state."""
        depth = self.depths()
        positions = self.world_positions()
        visuals = self._item_visuals(depth, positions)
        screen_positions = {v.item_id: (v.screen_x, v.screen_y) for v in visuals}

        options = self.connection_options
        if options.focus_id is None and self.hovered is not None:
            options = replace(options, focus_id=self.hovered)
        result = filter_connections(
            self.connections, positions, depth.layers, self.camera.zoom, options
        )
        edges, bundles = style_connections(
            result,
            screen_positions,
            depth.layers,
            highlight_id=self.hovered,
            bundling=self.bundling,
            radius=self.config.bundle_radius,
            tree=self.tree,
        )

        return Frame(
            items=visuals,
            edges=edges,
            bundles=bundles,
            warnings=self.warnings + depth.warnings + result.warnings,
        )
