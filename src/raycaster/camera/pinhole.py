"""Pinhole camera model for perspective projection ray generation.

This module turns a Camera description into primary rays. setup_camera()
computes the camera's orthonormal basis and projection constants on the
Python side and stores them in fields; get_ray() reads them inside kernels.

Pixel (0, 0) is the top-left corner of the image. A pixel covers the
square [x, x + 1) x [y, y + 1) and the jitter (jx, jy) in [0, 1)^2 selects
the point inside that square; (0.5, 0.5) is the pixel center. The
normalized device coordinates of that point are

    ndc_x = (2 * (x + jx) / width - 1) * aspect * tan(vfov / 2)
    ndc_y = (1 - 2 * (y + jy) / height) * tan(vfov / 2)

and the ray direction is normalize(forward + ndc_x * right + ndc_y * up).
Primary rays accept hits from near_clip out to T_MAX; far_clip bounds the
projection only and does not cull geometry such as a large ground sphere
seen toward the horizon.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raycaster.camera.view import Camera
    >>> from raycaster.camera.pinhole import generate_ray
    >>> ray = generate_ray(Camera(), 320, 240, (640, 480))
    >>> # The center pixel looks straight down the forward axis
"""

import math
from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from raycaster.core.ray import T_MAX, Ray, make_ray, vec2, vec3

from .view import Camera

# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis vectors
_camera_forward = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_right = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_up = ti.Vector.field(3, dtype=ti.f32, shape=())

# Projection constants
_aspect_ratio = ti.field(dtype=ti.f32, shape=())
_tan_half_fov = ti.field(dtype=ti.f32, shape=())
_near_clip = ti.field(dtype=ti.f32, shape=())


# =============================================================================
# Camera Setup (Python-side, called at a frame boundary)
# =============================================================================


def setup_camera(camera: Camera, width: int, height: int) -> None:
    """Initialize camera state for an image of the given size.

    Args:
        camera: Camera description.
        width: Render width in pixels.
        height: Render height in pixels.

    Raises:
        ValueError: If the resolution is not positive.

    Note:
        This function writes to Taichi fields and should be called from
        Python (not from within a Taichi kernel), never while a frame is
        rendering.
    """
    aspect = camera.aspect_ratio(width, height)
    forward, right, up = camera.basis()

    _camera_origin[None] = list(camera.position)
    _camera_forward[None] = forward.tolist()
    _camera_right[None] = right.tolist()
    _camera_up[None] = up.tolist()

    _aspect_ratio[None] = aspect
    _tan_half_fov[None] = math.tan(math.radians(camera.vfov) / 2.0)
    _near_clip[None] = camera.near_clip


# =============================================================================
# Ray Generation
# =============================================================================


@ti.func
def get_ray(pixel_x: ti.i32, pixel_y: ti.i32, width: ti.i32, height: ti.i32, jitter: vec2) -> Ray:
    """Generate the primary ray through a point of a pixel.

    Args:
        pixel_x: Pixel column (0 = left).
        pixel_y: Pixel row (0 = top).
        width: Image width in pixels.
        height: Image height in pixels.
        jitter: Position inside the pixel in [0, 1)^2. (0.5, 0.5) is the
            pixel center.

    Returns:
        A Ray from the camera position with range [near_clip, T_MAX].
    """
    tan_half = _tan_half_fov[None]
    sx = (ti.cast(pixel_x, ti.f32) + jitter.x) / ti.cast(width, ti.f32)
    sy = (ti.cast(pixel_y, ti.f32) + jitter.y) / ti.cast(height, ti.f32)
    ndc_x = (2.0 * sx - 1.0) * _aspect_ratio[None] * tan_half
    ndc_y = (1.0 - 2.0 * sy) * tan_half

    direction = tm.normalize(
        _camera_forward[None] + ndc_x * _camera_right[None] + ndc_y * _camera_up[None]
    )
    return make_ray(_camera_origin[None], direction, _near_clip[None], T_MAX)


@ti.func
def get_camera_origin() -> vec3:
    return _camera_origin[None]


# =============================================================================
# Utility Functions
# =============================================================================


@dataclass
class RayInfo:
    """A primary ray read back to Python."""

    origin: tuple[float, float, float]
    direction: tuple[float, float, float]
    t_min: float
    t_max: float


_generated_ray = Ray.field(shape=())


@ti.kernel
def _generate_into(pixel_x: ti.i32, pixel_y: ti.i32, width: ti.i32, height: ti.i32, jitter: vec2):
    _generated_ray[None] = get_ray(pixel_x, pixel_y, width, height, jitter)


def generate_ray(
    camera: Camera,
    pixel_x: int,
    pixel_y: int,
    resolution: tuple[int, int],
    jitter: tuple[float, float] = (0.5, 0.5),
) -> RayInfo:
    """Generate one primary ray from Python.

    Configures the camera fields for ``camera`` and ``resolution`` first, so
    do not call this while a frame is rendering.

    Args:
        camera: Camera description.
        pixel_x: Pixel column (0 = left).
        pixel_y: Pixel row (0 = top).
        resolution: (width, height) of the image.
        jitter: Position inside the pixel in [0, 1)^2.

    Returns:
        The generated ray. Deterministic for a fixed jitter.
    """
    width, height = resolution
    setup_camera(camera, width, height)
    _generate_into(pixel_x, pixel_y, width, height, vec2(jitter[0], jitter[1]))
    ray = _generated_ray[None]
    return RayInfo(
        origin=(float(ray.origin[0]), float(ray.origin[1]), float(ray.origin[2])),
        direction=(float(ray.direction[0]), float(ray.direction[1]), float(ray.direction[2])),
        t_min=float(ray.t_min),
        t_max=float(ray.t_max),
    )


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, forward, right and up.
    """
    info = {}
    for name, field in (
        ("origin", _camera_origin),
        ("forward", _camera_forward),
        ("right", _camera_right),
        ("up", _camera_up),
    ):
        v = field[None]
        info[name] = (float(v[0]), float(v[1]), float(v[2]))
    return info
