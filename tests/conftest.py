"""Pytest fixtures for constellation view tests."""

import pytest

from constellation_view.items import Item, ItemRole, ItemTree
from constellation_view.session import ConstellationSession

FOLDER = ItemRole.FOLDER
LEAF = ItemRole.LEAF
CENTER = ItemRole.CENTER


def _item(item_id, role, parent, group, x, y, importance=3):
    return Item(
        id=item_id,
        role=role,
        parent_id=parent,
        group_id=group,
        world_x=x,
        world_y=y,
        importance=importance,
        title=item_id,
    )


@pytest.fixture
def sample_items() -> list[Item]:
    """Two groups.

    g1: g1_center, A -> (A1 -> (A1a, A1b -> A1b_x), A2), B -> (B1 -> B1a, B2)
    g2: g2_center, C -> C1
    """
    return [
        _item("g1_center", CENTER, None, "g1", 0.0, 0.0, importance=6),
        _item("A", FOLDER, None, "g1", 100.0, 0.0),
        _item("A1", FOLDER, "A", "g1", 160.0, 40.0),
        _item("A1a", LEAF, "A1", "g1", 200.0, 60.0),
        _item("A1b", FOLDER, "A1", "g1", 200.0, 20.0),
        _item("A1b_x", LEAF, "A1b", "g1", 240.0, 20.0),
        _item("A2", LEAF, "A", "g1", 160.0, -40.0),
        _item("B", FOLDER, None, "g1", -100.0, 0.0),
        _item("B1", FOLDER, "B", "g1", -160.0, 40.0),
        _item("B1a", LEAF, "B1", "g1", -200.0, 60.0),
        _item("B2", LEAF, "B", "g1", -160.0, -40.0),
        _item("g2_center", CENTER, None, "g2", 500.0, 0.0, importance=6),
        _item("C", FOLDER, None, "g2", 600.0, 0.0),
        _item("C1", LEAF, "C", "g2", 650.0, 40.0),
    ]


@pytest.fixture
def tree(sample_items) -> ItemTree:
    return ItemTree.build(sample_items)


@pytest.fixture
def session(sample_items) -> ConstellationSession:
    return ConstellationSession(sample_items)


@pytest.fixture
def cyclic_items() -> list[Item]:
    """P and Q are each other's parent; R hangs below Q; S is a normal root."""
    return [
        Item(id="S", role=FOLDER),
        Item(id="P", role=FOLDER, parent_id="Q"),
        Item(id="Q", role=FOLDER, parent_id="P"),
        Item(id="R", role=LEAF, parent_id="Q"),
    ]


@pytest.fixture
def nested_groups() -> list[dict]:
    """Group data as a provider would hand it over, with an oversized folder."""
    return [
        {
            "id": "work",
            "name": "Work",
            "color": "#3b82f6",
            "center_x": 0,
            "center_y": 0,
            "items": [
                {
                    "id": "projects",
                    "title": "Projects",
                    "type": "folder",
                    "children": [{"id": f"p{i}", "title": f"Project {i}"} for i in range(12)],
                },
                {"id": "notes", "title": "Notes", "importance": 5},
                {"id": "archive_more", "title": "+3 more", "overflow": True},
            ],
        },
        {
            "id": "home",
            "name": "Home",
            "center_x": 800,
            "center_y": 0,
            "items": [{"id": "recipes", "title": "Recipes"}],
        },
    ]
