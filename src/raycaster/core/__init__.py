"""Core rendering module.

This module contains the fundamental building blocks for ray casting:

Components:
    ray: Ray data structure, range handling and vector utilities
    sampler: Hash-based random numbers for reproducible jitter
    settings: Render settings and render-scale resolution helpers
    shading: Sky gradient, direct lighting and reflection bounces
    renderer: Tiled parallel rendering of one frame
    accumulation: Running average of frames while nothing changes
    progressive: Frame loop tying snapshots, rendering and accumulation

All compute-intensive operations use Taichi kernels running in parallel
over tiles of the image.
"""

from .ray import (
    RAY_EPSILON,
    T_MAX,
    Ray,
    is_finite,
    length_squared,
    make_ray,
    near_zero,
    offset_ray_origin,
    ray_at,
    reflect,
    smoothstep,
    vec2,
    vec3,
    with_t_max,
)
from .settings import RenderSettings, scaled_resolution

# Note: shading, renderer, accumulation and progressive declare Taichi fields
# and are NOT imported here, so importing the package never allocates fields
# before ti.init(). Import them directly, e.g.:
#   from raycaster.core.progressive import ProgressiveRenderer

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "with_t_max",
    "vec2",
    "vec3",
    "length_squared",
    "reflect",
    "smoothstep",
    "near_zero",
    "is_finite",
    "offset_ray_origin",
    "RAY_EPSILON",
    "T_MAX",
    "RenderSettings",
    "scaled_resolution",
]
