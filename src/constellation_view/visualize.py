"""Export a rendered frame."""

import csv
import json
from dataclasses import asdict
from pathlib import Path

from .layout import render_frame
from .session import Frame


def _edge_record(edge) -> dict:
    record = asdict(edge)
    record["type"] = edge.type.value
    return record


def generate_json(frame: Frame, output_file: Path) -> None:
    """Write a frame as JSON.

    Args:
        frame: Frame from ``ConstellationSession.frame()``.
        output_file: Path to write the JSON file.
    """
    data = {
        "items": [asdict(item) for item in frame.items],
        "edges": [_edge_record(edge) for edge in frame.edges],
        "bundles": [
            {
                "connections": [[c.source, c.target] for c in bundle.connections],
                "endpoints": bundle.endpoints,
                "total_importance": bundle.total_importance,
                "stroke_width": bundle.stroke_width,
                "opacity": bundle.opacity,
                "color": bundle.color,
            }
            for bundle in frame.bundles
        ],
        "warnings": list(frame.warnings),
    }

    with open(output_file, "w") as f:
        json.dump(data, f, indent=2)


def generate_csv(frame: Frame, output_file: Path) -> None:
    """Write one row per visible item, back to front.

    Args:
        frame: Frame from ``ConstellationSession.frame()``.
        output_file: Path to write the CSV file.
    """
    fieldnames = [
        "item_id", "screen_x", "screen_y", "depth_layer", "scale", "opacity",
        "blur_px", "z", "z_order_key", "size", "title", "color", "is_center",
    ]

    with open(output_file, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for item in frame.items:
            writer.writerow(asdict(item))


def generate_html(frame: Frame, output_file: Path, title: str | None = None) -> None:
    """Generate an interactive HTML preview of a frame using pyvis.

    Args:
        frame: Frame from ``ConstellationSession.frame()``.
        output_file: Path to write the HTML file.
        title: Optional page heading.
    """
    render_frame(frame, output_file, title=title)
