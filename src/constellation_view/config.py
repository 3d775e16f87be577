"""Tunable constants for the constellation view."""

from dataclasses import dataclass, fields
from pathlib import Path


@dataclass(frozen=True)
class ViewConfig:
    """All tunables in one place. Defaults reproduce the stock view."""

    # Projection
    focal_length: float = 800.0
    near_plane: float = 100.0

    # Camera limits
    min_zoom: float = 0.1
    max_zoom: float = 5.0
    max_pitch: float = 90.0
    max_global_depth: float = 2000.0
    global_depth_step: float = 5.0  # World Z per pixel of depth drag

    # Wheel zoom
    wheel_intensity: float = 0.0006
    wheel_max_magnitude: float = 600.0

    # Expansion
    max_pinned: int = 3
    promote_descendant_peeks: bool = False

    # Group focus
    max_focus_level: int = 3
    group_focus_base: float = 1500.0
    group_focus_growth: float = 1.8
    group_pushback: float = -600.0

    # Depth visuals
    base_scale: float = 1.0
    base_opacity: float = 1.0

    # Connections
    max_connection_distance: float = 800.0  # Multiplied by zoom
    max_layer_span: float = 2.0
    bundle_radius: float = 50.0

    # Hit testing
    folder_hit_buffer: float = 15.0
    item_hit_buffer: float = 8.0


def config_from_dict(data: dict | None) -> ViewConfig:
    """Build a config from a mapping with dashed or underscored keys.

    Raises:
        ValueError: On an unknown key.
    """
    if not data:
        return ViewConfig()

    known = {f.name for f in fields(ViewConfig)}
    values = {}
    for key, value in data.items():
        name = str(key).replace("-", "_")
        if name not in known:
            raise ValueError(f"Unknown config key: {key}")
        values[name] = value
    return ViewConfig(**values)


def load_config(config_path: Path) -> ViewConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to the YAML config file.

    Returns:
        The view configuration; missing keys keep their defaults.
    """
    try:
        import yaml
    except ImportError as err:
        raise ImportError("PyYAML required for config files: pip install pyyaml") from err

    with open(config_path) as f:
        data = yaml.safe_load(f)
    if data is not None and not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")
    return config_from_dict(data)
