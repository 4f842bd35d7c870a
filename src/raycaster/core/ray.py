"""Ray data structure and vector utilities for parallel ray casting.

This module provides the fundamental Ray dataclass and the vector helpers
shared by the geometry, shading and camera modules. All functions are Taichi
functions and must be called from within kernels.

A ray carries its own valid parametric range [t_min, t_max]. Intersection
routines only report hits inside that range, and the scene intersector
tightens t_max as closer hits are found.

Numeric constants:
    RAY_EPSILON: Distance a secondary ray origin is pushed along the surface
        normal. Prevents a shadow or reflection ray from re-hitting the surface
        it starts on ("shadow acne").
    T_MAX: Upper bound of the range used for primary and secondary rays.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raycaster.core.ray import make_ray, ray_at, vec3
    >>> @ti.kernel
    ... def point_on_ray() -> vec3:
    ...     ray = make_ray(vec3(0.0), vec3(0.0, 0.0, -1.0), 0.0, 100.0)
    ...     return ray_at(ray, 5.0)
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3
vec2 = tm.vec2

# Offset applied to secondary ray origins along the surface normal
RAY_EPSILON = 1e-4

# Range used for shadow and reflection rays
T_MAX = 1e10


@ti.dataclass
class Ray:
    """A ray with an origin, a unit direction and a valid parametric range.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction of the ray (vec3). Expected to be unit length;
            the camera and scatter functions always produce normalized
            directions.
        t_min: Smallest accepted hit distance.
        t_max: Largest accepted hit distance.
    """

    origin: vec3
    direction: vec3
    t_min: ti.f32
    t_max: ti.f32


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3, t_min: ti.f32, t_max: ti.f32) -> Ray:
    """Create a ray from origin, direction and valid range."""
    return Ray(origin=origin, direction=direction, t_min=t_min, t_max=t_max)


@ti.func
def with_t_max(ray: Ray, t_max: ti.f32) -> Ray:
    """Return a copy of the ray with a tighter upper bound."""
    return Ray(origin=ray.origin, direction=ray.direction, t_min=ray.t_min, t_max=t_max)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length_squared(v: vec3) -> ti.f32:
    return tm.dot(v, v)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The reflected direction vector.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def smoothstep(edge0: ti.f32, edge1: ti.f32, t: ti.f32) -> ti.f32:
    """Hermite interpolation between two edges.

    Returns 0 below edge0, 1 at or above edge1 and the cubic
    x * x * (3 - 2 * x) of the normalized position in between.
    """
    result = 0.0
    if t >= edge1:
        result = 1.0
    elif t > edge0:
        x = (t - edge0) / (edge1 - edge0)
        result = x * x * (3.0 - 2.0 * x)
    return result


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """Check if a vector is near zero in all components.

    Args:
        v: The vector to check.

    Returns:
        1 if all components are near zero, 0 otherwise.
    """
    s = 1e-8
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


@ti.func
def is_finite(v: vec3) -> ti.i32:
    """Return 1 if no component of v is NaN or infinite."""
    finite = 1
    for c in ti.static(range(3)):
        if tm.isnan(v[c]) or tm.isinf(v[c]):
            finite = 0
    return finite


@ti.func
def offset_ray_origin(point: vec3, normal: vec3, direction: vec3) -> vec3:
    """Offset ray origin to avoid self-intersection.

    Pushes the point RAY_EPSILON along the normal, on the side the new ray
    travels toward.

    Args:
        point: The intersection point.
        normal: The surface normal at the point.
        direction: The direction of the ray leaving the surface.

    Returns:
        The offset origin point.
    """
    offset_dir = normal
    if tm.dot(direction, normal) < 0.0:
        offset_dir = -normal
    return point + RAY_EPSILON * offset_dir
