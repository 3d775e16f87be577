"""Perspective camera transform between world and screen space.

World points are panned, re-centered on the camera pivot, rotated about the Y
then the X axis, perspective-projected with a fixed focal length, zoomed and
finally translated to the screen center. ``unproject`` is the exact inverse of
that pipeline for a known world Z.
"""

import logging
import math
from dataclasses import dataclass, fields, replace

from .layout.radial import normalize_degrees

logger = logging.getLogger(__name__)

FOCAL_LENGTH = 800.0
NEAR_PLANE = 100.0  # Denominators at or below this use a clamped scale

MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
MAX_PITCH = 90.0
MAX_GLOBAL_DEPTH = 2000.0

# Pointer sensitivity for rotate gestures (degrees per pixel)
PITCH_PER_PIXEL = 0.2
YAW_PER_PIXEL = 0.3

# Wheel delta normalisation
DOM_DELTA_LINE = 1
DOM_DELTA_PAGE = 2
LINE_HEIGHT_PX = 16
PAGE_HEIGHT_PX = 800


@dataclass(frozen=True)
class CameraState:
    """View parameters. Replace wholesale via :func:`update_camera`."""

    rotation_x: float = 0.0  # Pitch, degrees, clamped to [-90, 90]
    rotation_y: float = 0.0  # Yaw, degrees, wrapped to [0, 360)
    pan_x: float = 0.0
    pan_y: float = 0.0
    zoom: float = 1.0
    center_x: float = 400.0  # Screen center
    center_y: float = 300.0
    pivot_x: float = 0.0  # World point the camera rotates about
    pivot_y: float = 0.0
    global_depth_offset: float = 0.0  # World-Z bias applied to every item


@dataclass(frozen=True)
class ProjectedPoint:
    """Screen position plus the rotated depth used for z-ordering."""

    screen_x: float
    screen_y: float
    depth: float

    @property
    def position(self) -> tuple[float, float]:
        return (self.screen_x, self.screen_y)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def update_camera(
    camera: CameraState,
    min_zoom: float = MIN_ZOOM,
    max_zoom: float = MAX_ZOOM,
    max_pitch: float = MAX_PITCH,
    max_depth_offset: float = MAX_GLOBAL_DEPTH,
    **changes: float,
) -> CameraState:
    """Return a new camera with ``changes`` applied and limits enforced.

    Raises:
        TypeError: If a change names a field CameraState does not have.
    """
    known = {f.name for f in fields(CameraState)}
    unknown = set(changes) - known
    if unknown:
        raise TypeError(f"Unknown camera field(s): {', '.join(sorted(unknown))}")

    updated = replace(camera, **changes)
    return replace(
        updated,
        rotation_x=_clamp(updated.rotation_x, -max_pitch, max_pitch),
        rotation_y=normalize_degrees(updated.rotation_y),
        zoom=_clamp(updated.zoom, min_zoom, max_zoom),
        global_depth_offset=_clamp(
            updated.global_depth_offset, -max_depth_offset, max_depth_offset
        ),
    )


def rotate_camera(camera: CameraState, dx: float, dy: float, **limits: float) -> CameraState:
    """Apply a pointer rotate gesture: vertical motion pitches, horizontal yaws."""
    return update_camera(
        camera,
        rotation_x=camera.rotation_x + dy * PITCH_PER_PIXEL,
        rotation_y=camera.rotation_y + dx * YAW_PER_PIXEL,
        **limits,
    )


def pan_camera(camera: CameraState, dx: float, dy: float) -> CameraState:
    return replace(camera, pan_x=camera.pan_x + dx, pan_y=camera.pan_y + dy)


def zoom_camera(camera: CameraState, multiplier: float, **limits: float) -> CameraState:
    return update_camera(camera, zoom=camera.zoom * multiplier, **limits)


def wheel_zoom_multiplier(
    delta_x: float,
    delta_y: float,
    delta_mode: int = 0,
    intensity: float = 0.0006,
    max_magnitude: float = 600.0,
) -> float:
    """Convert a wheel event into an exponential zoom multiplier.

    The dominant axis is used; line and page delta modes are converted to
    pixels first. Values > 1 zoom in, values < 1 zoom out.
    """
    delta = delta_y if abs(delta_y) >= abs(delta_x) else delta_x
    if delta_mode == DOM_DELTA_LINE:
        delta *= LINE_HEIGHT_PX
    elif delta_mode == DOM_DELTA_PAGE:
        delta *= PAGE_HEIGHT_PX

    clamped = _clamp(delta, -max_magnitude, max_magnitude)
    return math.exp(-clamped * intensity)


def perspective_scale(
    depth: float,
    focal_length: float = FOCAL_LENGTH,
    near_plane: float = NEAR_PLANE,
) -> float:
    """Projection scale for a rotated depth.

    A denominator at or below ``near_plane`` would blow up or flip the sign of
    the projection, so the scale is clamped to ``focal_length / near_plane``.
    """
    denominator = focal_length - depth
    if denominator <= near_plane:
        return focal_length / near_plane
    return focal_length / denominator


def project(
    world_x: float,
    world_y: float,
    world_z: float,
    camera: CameraState,
    focal_length: float = FOCAL_LENGTH,
    near_plane: float = NEAR_PLANE,
) -> ProjectedPoint:
    """Project a world point to the screen.

    Args:
        world_x: World X coordinate.
        world_y: World Y coordinate.
        world_z: World Z, already including layer and group offsets.
        camera: Camera parameters.
        focal_length: Perspective focal length.
        near_plane: Denominator threshold below which the scale is clamped.

    Returns:
        Screen position and rotated depth (larger is closer to the viewer).
    """
    tx = world_x + camera.pan_x - camera.pivot_x
    ty = world_y + camera.pan_y - camera.pivot_y
    tz = world_z

    rot_x = math.radians(camera.rotation_x)
    rot_y = math.radians(camera.rotation_y)
    cos_x, sin_x = math.cos(rot_x), math.sin(rot_x)
    cos_y, sin_y = math.cos(rot_y), math.sin(rot_y)

    # Rotate around Y (affects X and Z), then around X (affects Y and Z)
    rotated_x = tx * cos_y + tz * sin_y
    rotated_z = -tx * sin_y + tz * cos_y
    final_y = ty * cos_x - rotated_z * sin_x
    final_z = ty * sin_x + rotated_z * cos_x

    scale = perspective_scale(final_z, focal_length, near_plane) * camera.zoom
    return ProjectedPoint(
        screen_x=rotated_x * scale + camera.center_x,
        screen_y=final_y * scale + camera.center_y,
        depth=final_z,
    )


def _solve_2x2(
    a11: float, a12: float, a21: float, a22: float, b1: float, b2: float
) -> tuple[float, float] | None:
    """Cramer's rule; None for a (near) singular system."""
    det = a11 * a22 - a12 * a21
    if abs(det) < 1e-12:
        return None
    return ((b1 * a22 - a12 * b2) / det, (a11 * b2 - b1 * a21) / det)


def unproject(
    screen_x: float,
    screen_y: float,
    world_z: float,
    camera: CameraState,
    focal_length: float = FOCAL_LENGTH,
    near_plane: float = NEAR_PLANE,
) -> tuple[float, float]:
    """Invert :func:`project` for a point whose world Z is known.

    With Z fixed, multiplying the perspective division through by its
    denominator leaves two equations that are linear in the re-centered world
    X/Y, so the inverse is exact rather than an approximation.

    Args:
        screen_x: Screen X coordinate.
        screen_y: Screen Y coordinate.
        world_z: Assumed world Z (capture it once per drag gesture).
        camera: Camera parameters.
        focal_length: Perspective focal length.
        near_plane: Denominator threshold below which the scale is clamped.

    Returns:
        World (x, y).
    """
    px = (screen_x - camera.center_x) / camera.zoom
    py = (screen_y - camera.center_y) / camera.zoom
    z = world_z

    rot_x = math.radians(camera.rotation_x)
    rot_y = math.radians(camera.rotation_y)
    cos_x, sin_x = math.cos(rot_x), math.sin(rot_x)
    cos_y, sin_y = math.cos(rot_y), math.sin(rot_y)

    # In terms of the re-centered tx, ty:
    #   rotated_x = tx*cos_y + z*sin_y
    #   rotated_z = a*tx + b      with a = -sin_y, b = z*cos_y
    #   final_y   = -a*sin_x*tx + cos_x*ty - b*sin_x
    #   final_z   =  a*cos_x*tx + sin_x*ty + b*cos_x
    a = -sin_y
    b = z * cos_y
    f = focal_length

    def final_z(tx: float, ty: float) -> float:
        return a * cos_x * tx + sin_x * ty + b * cos_x

    # px*(f - final_z) = f*rotated_x and py*(f - final_z) = f*final_y
    solution = _solve_2x2(
        -px * a * cos_x - f * cos_y,
        -px * sin_x,
        -py * a * cos_x + f * a * sin_x,
        -py * sin_x - f * cos_x,
        -(px * f - px * b * cos_x - f * z * sin_y),
        -(py * f - py * b * cos_x + f * b * sin_x),
    )

    if solution is None or f - final_z(*solution) <= near_plane:
        # Inside the clamp region the scale is constant
        k = f / near_plane
        clamped = _solve_2x2(
            cos_y,
            0.0,
            -a * sin_x,
            cos_x,
            px / k - z * sin_y,
            py / k + b * sin_x,
        )
        if clamped is not None and f - final_z(*clamped) <= near_plane:
            solution = clamped

    if solution is None:
        logger.debug("Singular unproject at (%s, %s); using transposed rotation", screen_x, screen_y)
        ratio = (f - z) / f
        ux, uy = px * ratio, py * ratio
        tx = ux * cos_y - z * sin_y
        temp_z = ux * sin_y + z * cos_y
        ty = uy * cos_x + temp_z * sin_x
        solution = (tx, ty)

    tx, ty = solution
    return (tx + camera.pivot_x - camera.pan_x, ty + camera.pivot_y - camera.pan_y)
