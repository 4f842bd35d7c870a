"""Triangle primitive with Moller-Trumbore ray-triangle intersection.

A triangle is defined by three vertices v0, v1, v2. Its geometric normal is
normalize(cross(v1 - v0, v2 - v0)), following the right-hand rule over the
vertex order.

Moller-Trumbore solves

    origin + t * direction = (1 - u - v) * v0 + u * v1 + v * v2

directly for (t, u, v) with Cramer's rule, without computing the plane
equation first. The hit is accepted when u >= 0, v >= 0, u + v <= 1 and t lies
inside the ray range.

Degenerate (collinear) triangles have a zero cross product, so every ray falls
under the determinant guard and reports no hit.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raycaster.geometry.triangle import Triangle, hit_triangle
    >>> tri = Triangle(
    ...     v0=ti.math.vec3(-1, -1, -3),
    ...     v1=ti.math.vec3(1, -1, -3),
    ...     v2=ti.math.vec3(0, 1, -3),
    ... )
    >>> # Use hit_triangle within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from raycaster.core.ray import Ray

from .sphere import HitRecord, make_miss

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Rays with |det| below this are parallel to the triangle plane
TRIANGLE_DETERMINANT_EPSILON = 1e-8


@ti.dataclass
class Triangle:
    """A triangle defined by three vertices.

    Attributes:
        v0: First vertex (vec3).
        v1: Second vertex (vec3).
        v2: Third vertex (vec3).
    """

    v0: vec3
    v1: vec3
    v2: vec3


@ti.func
def hit_triangle(ray: Ray, triangle: Triangle) -> HitRecord:
    """Test for ray-triangle intersection (Moller-Trumbore).

    Args:
        ray: The ray to test, including its valid range.
        triangle: The triangle to test intersection against.

    Returns:
        A HitRecord. On a hit, barycentric holds (1 - u - v, u, v) and normal
        is the geometric normal flipped to face the incoming ray.
    """
    edge1 = triangle.v1 - triangle.v0
    edge2 = triangle.v2 - triangle.v0

    p_vec = tm.cross(ray.direction, edge2)
    det = tm.dot(edge1, p_vec)

    result = make_miss()

    if ti.abs(det) > TRIANGLE_DETERMINANT_EPSILON:
        inv_det = 1.0 / det
        t_vec = ray.origin - triangle.v0
        u = tm.dot(t_vec, p_vec) * inv_det

        if u >= 0.0 and u <= 1.0:
            q_vec = tm.cross(t_vec, edge1)
            v = tm.dot(ray.direction, q_vec) * inv_det

            if v >= 0.0 and u + v <= 1.0:
                t = tm.dot(edge2, q_vec) * inv_det

                if t >= ray.t_min and t <= ray.t_max:
                    geometric_normal = tm.normalize(tm.cross(edge1, edge2))

                    front_face = 1
                    normal = geometric_normal
                    if tm.dot(ray.direction, geometric_normal) > 0.0:
                        front_face = 0
                        normal = -geometric_normal

                    result = HitRecord(
                        hit=1,
                        t=t,
                        point=ray.origin + t * ray.direction,
                        normal=normal,
                        front_face=front_face,
                        barycentric=vec3(1.0 - u - v, u, v),
                    )

    return result


@ti.func
def interpolate_normal(barycentric: vec3, n0: vec3, n1: vec3, n2: vec3, facing: vec3) -> vec3:
    """Blend per-vertex normals and orient the result like ``facing``.

    Args:
        barycentric: Vertex weights from hit_triangle.
        n0: Normal at v0.
        n1: Normal at v1.
        n2: Normal at v2.
        facing: The ray-facing geometric normal of the hit.

    Returns:
        The unit shading normal, on the same side of the surface as facing.
        Falls back to facing if the blend cancels out.
    """
    blended = barycentric.x * n0 + barycentric.y * n1 + barycentric.z * n2
    result = facing
    if tm.dot(blended, blended) > 1e-12:
        result = tm.normalize(blended)
        if tm.dot(result, facing) < 0.0:
            result = -result
    return result


@ti.func
def triangle_centroid(triangle: Triangle) -> vec3:
    return (triangle.v0 + triangle.v1 + triangle.v2) / 3.0
