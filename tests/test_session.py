"""Tests for session.py module."""

import math

import pytest

from constellation_view.config import ViewConfig
from constellation_view.items import Item, ItemRole
from constellation_view.layout.classify import ConnectionType
from constellation_view.layout.depth import HIDDEN
from constellation_view.layout.filter import HIDDEN_ENDPOINT, HIDDEN_TYPE, OUT_OF_FOCUS
from constellation_view.session import (
    CENTER_SIZE,
    ConstellationSession,
    InteractionMode,
    item_size,
)
from constellation_view.state import ExpansionState
from constellation_view.transform import project


def _visual(frame, item_id):
    return next(v for v in frame.items if v.item_id == item_id)


class TestFrame:
    """Tests for ConstellationSession.frame."""

    def test_initial_frame(self, session):
        frame = session.frame()

        assert {v.item_id for v in frame.items} == {"g1_center", "A", "B", "g2_center", "C"}
        assert frame.warnings == []

    def test_items_back_to_front(self, session):
        session.toggle_expand("A")
        session.toggle_expand("A1")
        frame = session.frame()

        keys = [v.z_order_key for v in frame.items]
        assert keys == sorted(keys)
        # Equal depth falls back to the id
        assert [v.item_id for v in frame.items] == [
            "A", "A2", "B", "C", "A1", "A1a", "A1b", "g1_center", "g2_center",
        ]

    def test_center_projects_to_screen_center(self, session):
        visual = _visual(session.frame(), "g1_center")

        assert (visual.screen_x, visual.screen_y) == pytest.approx((400.0, 300.0))
        assert visual.depth_layer == 0
        assert visual.size == CENTER_SIZE
        assert visual.opacity == 1.0

    def test_item_visual_derived_from_layer(self, session):
        visual = _visual(session.frame(), "A")

        assert visual.depth_layer == 1
        assert visual.z == -150.0
        assert visual.scale == pytest.approx(1.0)
        assert visual.blur_px == 0.0
        assert visual.screen_x == pytest.approx(400.0 + 100.0 * 800.0 / 950.0)

    def test_visible_edges(self, session):
        frame = session.frame()
        visible = {(e.source, e.target) for e in frame.edges if e.visible}

        assert visible == {("A", "g1_center"), ("B", "g1_center"), ("C", "g2_center")}
        assert len(frame.edges) == len(session.connections)
        hidden = [e for e in frame.edges if not e.visible]
        assert {e.reason for e in hidden} == {HIDDEN_ENDPOINT}

    def test_expanding_reveals_children(self, session):
        session.toggle_expand("A")
        frame = session.frame()
        ids = {v.item_id for v in frame.items}

        assert {"A1", "A2"} <= ids
        assert "A1a" not in ids
        assert _visual(frame, "A").depth_layer == 1.5
        assert _visual(frame, "A1").depth_layer == 0

    def test_pinned_branch_recedes(self, session):
        session.toggle_expand("A")
        session.toggle_expand("A1")
        session.toggle_expand("C")
        depth = session.depths()

        assert session.state.pinned == ("A1",)
        assert depth.layers["A1"] == 2.5
        assert depth.layers["C1"] == 0

    def test_warnings_collected(self):
        items = [
            Item(id="A", role=ItemRole.FOLDER),
            Item(id="X", parent_id="missing"),
        ]
        session = ConstellationSession(items, extra_edges=[("A", "ghost")])
        frame = session.frame()

        assert any("missing" in w for w in frame.warnings)
        assert any("ghost" in w for w in frame.warnings)

    def test_item_size(self):
        assert item_size(Item(id="c", role=ItemRole.CENTER)) == CENTER_SIZE
        assert item_size(Item(id="i", importance=5)) == pytest.approx(14.0)


class TestExpansionOperations:
    """Tests for the expansion methods on the session."""

    def test_toggle_round_trip(self, session):
        session.toggle_expand("B")
        session.toggle_expand("B")

        assert session.state == ExpansionState()

    def test_pin_and_unpin(self, session):
        session.pin("B")
        assert session.state.pinned == ("B",)
        assert "B1" in session.depths().visible

        session.unpin("B")
        assert session.state.pinned == ()
        assert "B1" not in session.depths().visible

    def test_inline_peek(self, session):
        session.toggle_inline_peek("B")
        depth = session.depths()

        assert depth.layers["B1"] == 2
        assert depth.layers["B"] == 1

    def test_cascade(self, session):
        session.toggle_expand("A")
        session.toggle_inline_peek("A1")
        session.cascade("A", "expand")

        assert session.state.expanded == {"A", "A1", "A1b"}

        session.cascade("A", "collapse")
        assert session.state.expanded == frozenset()

    def test_cascade_bad_action(self, session):
        with pytest.raises(ValueError):
            session.cascade("A", "sideways")

    def test_toggle_focus(self, session):
        session.toggle_focus("B")
        assert _visual(session.frame(), "B").depth_layer == 0

        # Focus does not reveal an item behind a collapsed folder
        session.toggle_focus("C1")
        assert "C1" not in {v.item_id for v in session.frame().items}

        session.toggle_expand("C")
        assert _visual(session.frame(), "C1").depth_layer == 0

    def test_max_pinned_from_config(self, sample_items):
        session = ConstellationSession(sample_items, config=ViewConfig(max_pinned=1))
        for item_id in ("A", "B", "C"):
            session.toggle_expand(item_id)

        assert session.state.pinned == ("B",)

    def test_focus_group_by_item(self, session):
        session.focus_group("C1")

        assert session.state.group_focus_levels == {"g2": 1}
        assert session.state.group_depth_offsets == {"g2": 1500.0, "g1": -600.0}
        assert session.item_z("C") == pytest.approx(1500.0 - 150.0)
        assert session.item_z("A") == pytest.approx(-600.0 - 150.0)

    def test_focus_group_unknown(self, session):
        before = session.state
        session.focus_group("nowhere")

        assert session.state is before

    def test_reset_group_focus(self, session):
        session.focus_group("g1")
        session.reset_group_focus()

        assert session.state.group_depth_offsets == {}

    def test_depths_memoised(self, session):
        first = session.depths()
        assert session.depths() is first

        session.toggle_expand("A")
        assert session.depths() is not first
        session.toggle_expand("A")
        assert session.depths() is first


class TestCamera:
    """Tests for camera control through the session."""

    def test_set_camera_clamps(self, session):
        camera = session.set_camera(zoom=10.0, rotation_x=-200.0)

        assert camera.zoom == 5.0
        assert camera.rotation_x == -90.0
        assert session.camera is camera

    def test_set_camera_unknown_field(self, session):
        with pytest.raises(TypeError):
            session.set_camera(tilt=1.0)

    def test_config_limits(self, sample_items):
        session = ConstellationSession(sample_items, config=ViewConfig(max_zoom=2.0))

        assert session.set_camera(zoom=3.0).zoom == 2.0

    def test_wheel(self, session):
        session.wheel(0.0, -100.0)

        assert session.camera.zoom == pytest.approx(math.exp(0.06))

    def test_global_depth(self, session):
        session.adjust_global_depth(100.0)
        assert session.camera.global_depth_offset == 100.0
        assert session.item_z("A") == pytest.approx(-50.0)

        session.adjust_global_depth(5000.0)
        assert session.camera.global_depth_offset == 2000.0

        session.reset_global_depth()
        assert session.camera.global_depth_offset == 0.0


class TestPointerGestures:
    """Tests for rotate, pan, depth and drag gestures."""

    def test_rotate(self, session):
        session.begin_rotate()
        session.apply_pointer_delta(10.0, 5.0)

        assert session.mode is InteractionMode.ROTATE
        assert session.camera.rotation_x == pytest.approx(1.0)
        assert session.camera.rotation_y == pytest.approx(3.0)

    def test_pan(self, session):
        session.begin_pan()
        session.apply_pointer_delta(4.0, -2.0)

        assert (session.camera.pan_x, session.camera.pan_y) == (4.0, -2.0)

    def test_depth_drag(self, session):
        session.begin_depth_drag()
        session.apply_pointer_delta(0.0, -10.0)

        assert session.camera.global_depth_offset == 50.0

    def test_idle_ignores_motion(self, session):
        camera = session.camera
        session.apply_pointer_delta(10.0, 10.0)

        assert session.camera is camera
        assert session.position_overrides == {}

    def test_end_drag_always_idle(self, session):
        session.begin_rotate()
        session.end_drag()
        assert session.mode is InteractionMode.IDLE

        session.begin_drag("A")
        session.end_drag()
        assert session.mode is InteractionMode.IDLE
        assert session.drag is None

        session.end_drag()
        assert session.mode is InteractionMode.IDLE


class TestItemDrag:
    """Tests for dragging items."""

    def test_begin_drag_captures_z(self, session):
        captured = session.begin_drag("A")

        assert captured == -150.0
        assert session.mode is InteractionMode.DRAG
        assert session.drag.members == {"A"}

    def test_begin_drag_hidden_or_unknown(self, session):
        assert session.begin_drag("A1") is None
        assert session.begin_drag("nope") is None
        assert session.mode is InteractionMode.IDLE

    @pytest.mark.parametrize(
        "camera",
        [
            {},
            {"rotation_x": 30.0, "rotation_y": 45.0},
            {"rotation_x": -50.0, "rotation_y": 200.0, "zoom": 2.0, "pan_x": 40.0},
        ],
    )
    def test_item_follows_pointer(self, session, camera):
        """The dragged item stays under the cursor for any camera."""
        session.set_camera(**camera)
        before = _visual(session.frame(), "A")

        captured = session.begin_drag("A")
        session.apply_drag("A", (12.0, -7.0), captured)
        after = _visual(session.frame(), "A")

        assert after.screen_x == pytest.approx(before.screen_x + 12.0, abs=1e-6)
        assert after.screen_y == pytest.approx(before.screen_y - 7.0, abs=1e-6)

    def test_pointer_delta_drives_drag(self, session):
        before = _visual(session.frame(), "B")
        session.begin_drag("B")
        session.apply_pointer_delta(-20.0, 0.0)
        session.apply_pointer_delta(-5.0, 3.0)
        after = _visual(session.frame(), "B")

        assert after.screen_x == pytest.approx(before.screen_x - 25.0)
        assert after.screen_y == pytest.approx(before.screen_y + 3.0)

    def test_drag_uses_captured_z(self, session):
        """The new world position is solved on the captured Z plane."""
        captured = session.begin_drag("A")
        session.apply_drag("A", (10.0, 0.0), captured)
        x, y = session.position_overrides["A"]
        screen = project(x, y, captured, session.camera)

        assert screen.screen_x == pytest.approx(400.0 + 100.0 * 800.0 / 950.0 + 10.0)

    def test_apply_drag_without_gesture_is_noop(self, session):
        session.apply_drag("A", (10.0, 0.0), -150.0)
        assert session.position_overrides == {}

        session.begin_drag("A")
        session.apply_drag("B", (10.0, 0.0), -150.0)
        assert session.position_overrides == {}

    def test_group_drag_moves_selection(self, session):
        session.toggle_expand("A")
        selection = session.select_group("A")
        before = session.world_positions()

        captured = session.begin_drag("A")
        session.apply_drag("A", (15.0, 5.0), captured)
        after = session.world_positions()

        assert set(session.position_overrides) == selection
        dx = after["A"][0] - before["A"][0]
        dy = after["A"][1] - before["A"][1]
        assert dx != 0
        for member in selection:
            assert after[member][0] - before[member][0] == pytest.approx(dx)
            assert after[member][1] - before[member][1] == pytest.approx(dy)
        assert after["B"] == before["B"]

    def test_drag_outside_selection_moves_one(self, session):
        session.select_group("g2_center")
        captured = session.begin_drag("A")
        session.apply_drag("A", (15.0, 5.0), captured)

        assert set(session.position_overrides) == {"A"}


class TestSelection:
    """Tests for group selection."""

    def test_select_center_selects_group(self, session):
        assert session.select_group("g2_center") == {"g2_center", "C", "C1"}

    def test_select_folder_selects_subtree(self, session):
        assert session.select_group("B") == {"B", "B1", "B1a", "B2"}

    def test_select_leaf_keeps_selection(self, session):
        session.select_group("B")

        assert session.select_group("A2") == {"B", "B1", "B1a", "B2"}
        assert session.select_group("nope") == {"B", "B1", "B1a", "B2"}

    def test_clear(self, session):
        session.select_group("B")
        session.clear_group_selection()

        assert session.group_selection == frozenset()


class TestHitTest:
    """Tests for ConstellationSession.hit_test."""

    def test_hits_center(self, session):
        assert session.hit_test(400.0, 300.0) == "g1_center"
        assert session.hit_test(415.0, 310.0) == "g1_center"

    def test_hits_folder_with_buffer(self, session):
        visual = _visual(session.frame(), "A")

        assert session.hit_test(visual.screen_x, visual.screen_y) == "A"
        # Folder radius 11.6 plus a 15px buffer
        assert session.hit_test(visual.screen_x, visual.screen_y + 26.0) == "A"
        assert session.hit_test(visual.screen_x, visual.screen_y + 27.0) is None

    def test_miss(self, session):
        assert session.hit_test(0.0, 0.0) is None

    def test_front_item_wins(self, sample_items):
        items = sample_items + [Item(id="over", group_id="g1", world_x=0.0, world_y=0.0)]
        session = ConstellationSession(items)

        # "over" sits behind the center at the same world x/y
        assert session.hit_test(400.0, 300.0) == "g1_center"

    def test_deep_items_not_pickable(self, session):
        for item_id in ("A", "A1", "A1b"):
            session.toggle_expand(item_id)
        depth = session.depths()
        assert depth.layers["A"] == 3

        visual = _visual(session.frame(), "A")
        assert session.hit_test(visual.screen_x, visual.screen_y) != "A"

    def test_hidden_items_not_pickable(self, session):
        assert session.depths().layers["C1"] == HIDDEN
        c1 = project(650.0, 40.0, -150.0, session.camera)

        assert session.hit_test(c1.screen_x, c1.screen_y) is None


class TestConnectionOptions:
    """Tests for connection filter options on the session."""

    def test_hide_type(self, session):
        session.set_connection_options(hidden_types=[ConnectionType.INTRA_GROUP])
        frame = session.frame()

        assert not any(e.visible for e in frame.edges)
        assert HIDDEN_TYPE in {e.reason for e in frame.edges}
        assert isinstance(session.connection_options.hidden_types, frozenset)

    def test_unknown_option(self, session):
        with pytest.raises(TypeError):
            session.set_connection_options(nonsense=1)

    def test_hover_focus(self, session):
        session.set_connection_options(focus_mode=True)
        session.set_hovered("A")
        frame = session.frame()
        visible = [e for e in frame.edges if e.visible]

        assert [(e.source, e.target) for e in visible] == [("A", "g1_center")]
        assert visible[0].highlighted
        assert OUT_OF_FOCUS in {e.reason for e in frame.edges}

    def test_unknown_hover_ignored(self, session):
        session.set_hovered("ghost")

        assert session.hovered is None

    def test_bundling(self):
        items = [
            Item(id="p", world_x=0.0, world_y=0.0),
            Item(id="q", world_x=10.0, world_y=0.0),
            Item(id="r", world_x=300.0, world_y=0.0),
            Item(id="s", world_x=310.0, world_y=0.0),
        ]
        session = ConstellationSession(items, extra_edges=[("p", "r"), ("q", "s")])
        assert not session.frame().bundles

        session.set_connection_options(bundling=True)
        frame = session.frame()

        assert session.bundling
        (bundle,) = frame.bundles
        assert [(c.source, c.target) for c in bundle.connections] == [("p", "r"), ("q", "s")]
        assert all(e.bundled and not e.visible for e in frame.edges)
