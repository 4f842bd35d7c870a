"""Geometry module for shape primitives and bounding volumes.

This module provides geometric primitives and intersection algorithms:

Components:
    sphere: Sphere primitive with ray-sphere intersection, shared HitRecord
    triangle: Triangle primitive with Moller-Trumbore intersection
    aabb: Axis-Aligned Bounding Box and slab test for triangle rejection

All intersection routines are implemented as Taichi functions (@ti.func)
and take a Ray carrying its own [t_min, t_max] range:
    record = hit_shape(ray, shape)
"""

from .aabb import AABB_DIRECTION_EPSILON, Aabb, compute_aabb, hit_aabb
from .sphere import HitRecord, Sphere, hit_sphere, make_miss
from .triangle import (
    TRIANGLE_DETERMINANT_EPSILON,
    Triangle,
    hit_triangle,
    interpolate_normal,
    triangle_centroid,
)

__all__ = [
    "Sphere",
    "HitRecord",
    "hit_sphere",
    "make_miss",
    "Triangle",
    "hit_triangle",
    "interpolate_normal",
    "triangle_centroid",
    "TRIANGLE_DETERMINANT_EPSILON",
    "Aabb",
    "compute_aabb",
    "hit_aabb",
    "AABB_DIRECTION_EPSILON",
]
