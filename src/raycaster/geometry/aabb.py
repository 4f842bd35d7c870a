"""Axis-aligned bounding boxes and the ray-box slab test.

Every triangle stored in the scene carries one AABB, computed once when the
scene is uploaded. The intersector runs the cheap box test first and only
calls the exact triangle test when the box is hit. There is no hierarchy:
the win is replacing most Moller-Trumbore evaluations with a few
multiply-adds.

The box test must never reject a ray that hits the triangle inside it (a
false negative would drop geometry from the image). Two measures keep it
conservative:

- The box is the exact component-wise min/max of the vertices, so a ray
  hitting the triangle passes through the closed box.
- The far slab distance is scaled by 1 + 2 * gamma(3), the rounding bound of
  the three f32 operations that produce it ("Physically Based Rendering",
  section 6.8.2), so rounding cannot make t_enter > t_exit for a ray that
  grazes a face or hits a zero-thickness box of an axis-aligned triangle.

False positives (box hit, triangle miss) only cost the exact test.
"""

import taichi as ti
import taichi.math as tm

from raycaster.core.ray import Ray

from .triangle import Triangle

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Direction components below this are treated as parallel to the slab
AABB_DIRECTION_EPSILON = 1e-12

# f32 unit roundoff and gamma(3) = 3u / (1 - 3u)
_F32_UNIT_ROUNDOFF = 2.0**-24
_GAMMA_3 = 3.0 * _F32_UNIT_ROUNDOFF / (1.0 - 3.0 * _F32_UNIT_ROUNDOFF)
AABB_SLAB_TOLERANCE = 1.0 + 2.0 * _GAMMA_3


@ti.dataclass
class Aabb:
    """An axis-aligned box given by its minimum and maximum corners."""

    min_corner: vec3
    max_corner: vec3


@ti.func
def compute_aabb(triangle: Triangle) -> Aabb:
    """Tight bounding box of a triangle (component-wise min/max of vertices)."""
    return Aabb(
        min_corner=ti.min(ti.min(triangle.v0, triangle.v1), triangle.v2),
        max_corner=ti.max(ti.max(triangle.v0, triangle.v1), triangle.v2),
    )


@ti.func
def hit_aabb(ray: Ray, box: Aabb) -> ti.i32:
    """Slab test between a ray and a box.

    For each axis the entry and exit distances of the slab
    [min_corner, max_corner] are intersected with the running interval,
    which starts as [ray.t_min, ray.t_max].

    Args:
        ray: The ray to test, including its valid range.
        box: The box to test.

    Returns:
        1 if the ray overlaps the box inside its range, 0 otherwise.
    """
    t_enter = ray.t_min
    t_exit = ray.t_max
    inside = 1

    for axis in ti.static(range(3)):
        origin = ray.origin[axis]
        direction = ray.direction[axis]
        slab_min = box.min_corner[axis]
        slab_max = box.max_corner[axis]

        if ti.abs(direction) < AABB_DIRECTION_EPSILON:
            # Parallel to this slab: the origin must already lie within it
            if origin < slab_min or origin > slab_max:
                inside = 0
        else:
            inv_direction = 1.0 / direction
            t_near = (slab_min - origin) * inv_direction
            t_far = (slab_max - origin) * inv_direction
            if t_near > t_far:
                temp = t_near
                t_near = t_far
                t_far = temp
            t_far *= AABB_SLAB_TOLERANCE
            t_enter = ti.max(t_enter, t_near)
            t_exit = ti.min(t_exit, t_far)

    result = 0
    if inside == 1 and t_enter <= t_exit:
        result = 1
    return result
