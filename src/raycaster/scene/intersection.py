"""Scene-level primitive storage and intersection testing.

This module stores the primitives of the current frame in Taichi fields and
finds the closest hit of a ray against all of them, returning it together
with the material and primitive identity.

Storage is a Structure of Arrays arena: flat preallocated fields indexed by
primitive id, filled at a frame boundary and read-only while a frame renders.
Every triangle also stores its axis-aligned bounding box, computed once when
the triangle is added. The intersector runs the box test first and only calls
the exact triangle test when the box is hit.

Traversal order is fixed: all spheres in index order, then all triangles in
index order. The closest t found so far is passed as t_max to every later
test, and a later primitive replaces the current hit only when it is
strictly closer. Two primitives at exactly the same distance therefore
resolve to the one evaluated first.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raycaster.scene.intersection import (
    ...     add_sphere, add_triangle, clear_scene, find_closest_hit
    ... )
    >>> clear_scene()
    >>> add_sphere((0, 0, -5), 1.0, material_id=0)
    0
    >>> hit = find_closest_hit((0, 0, 0), (0, 0, -1))
    >>> round(hit.t, 4)
    4.0
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from raycaster.core.ray import T_MAX, Ray, make_ray, with_t_max
from raycaster.geometry.aabb import Aabb, compute_aabb, hit_aabb
from raycaster.geometry.sphere import HitRecord, Sphere, hit_sphere
from raycaster.geometry.triangle import Triangle, hit_triangle, interpolate_normal

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


class PrimitiveKind(IntEnum):
    """Closed set of primitive kinds stored in the scene."""

    NONE = -1
    SPHERE = 0
    TRIANGLE = 1


_KIND_NONE = int(PrimitiveKind.NONE)
_KIND_SPHERE = int(PrimitiveKind.SPHERE)
_KIND_TRIANGLE = int(PrimitiveKind.TRIANGLE)


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Extends the basic HitRecord with the identity of the hit primitive.

    Attributes:
        hit: Whether the ray intersected any primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
            Only valid if hit == 1.
        point: The 3D point where the ray intersected the surface.
            Only valid if hit == 1.
        normal: The unit shading normal, facing the incoming ray. For
            triangles with vertex normals this is the interpolated normal.
            Only valid if hit == 1.
        front_face: Whether the ray hit the front face (1) or back face (0).
            Only valid if hit == 1.
        barycentric: Barycentric weights of the hit for triangles, zero for
            spheres.
        material_id: The material ID of the hit primitive, -1 on a miss.
        primitive_kind: A PrimitiveKind value, NONE on a miss.
        primitive_id: Index of the hit primitive within its kind, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    barycentric: vec3
    material_id: ti.i32
    primitive_kind: ti.i32
    primitive_id: ti.i32


# Maximum number of primitives supported in the scene
MAX_SPHERES = 1024
MAX_TRIANGLES = 8192

# Sphere storage: Structure of Arrays layout
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Triangle storage: vertices, optional vertex normals and precomputed bounds
triangle_v0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_v1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_v2 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_n0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_n1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_n2 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_has_normals = ti.field(dtype=ti.i32, shape=MAX_TRIANGLES)
triangle_material_ids = ti.field(dtype=ti.i32, shape=MAX_TRIANGLES)
triangle_aabb_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_aabb_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
num_triangles = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear all primitives from the scene.

    Resets the primitive counts to zero. The actual field data is not
    cleared but will be overwritten when new primitives are added.
    """
    num_spheres[None] = 0
    num_triangles[None] = 0


def add_sphere(center: Sequence[float], radius: float, material_id: int = 0) -> int:
    """Add a sphere to the scene.

    Args:
        center: The center point of the sphere.
        radius: The radius of the sphere (should be positive).
        material_id: The material ID to associate with this sphere.

    Returns:
        The index of the added sphere.

    Raises:
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    sphere_centers[idx] = vec3(center[0], center[1], center[2])
    sphere_radii[idx] = radius
    sphere_material_ids[idx] = material_id
    num_spheres[None] = idx + 1
    return idx


def add_triangle(
    v0: Sequence[float],
    v1: Sequence[float],
    v2: Sequence[float],
    material_id: int = 0,
    normals: Sequence[Sequence[float]] | None = None,
) -> int:
    """Add a triangle to the scene and compute its bounding box.

    Args:
        v0: First vertex.
        v1: Second vertex.
        v2: Third vertex.
        material_id: The material ID to associate with this triangle.
        normals: Optional unit normals at (v0, v1, v2) for smooth shading.

    Returns:
        The index of the added triangle.

    Raises:
        RuntimeError: If the maximum number of triangles is exceeded.
    """
    idx = num_triangles[None]
    if idx >= MAX_TRIANGLES:
        raise RuntimeError(f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded")
    triangle_v0[idx] = vec3(v0[0], v0[1], v0[2])
    triangle_v1[idx] = vec3(v1[0], v1[1], v1[2])
    triangle_v2[idx] = vec3(v2[0], v2[1], v2[2])
    if normals is not None:
        n0, n1, n2 = normals
        triangle_n0[idx] = vec3(n0[0], n0[1], n0[2])
        triangle_n1[idx] = vec3(n1[0], n1[1], n1[2])
        triangle_n2[idx] = vec3(n2[0], n2[1], n2[2])
        triangle_has_normals[idx] = 1
    else:
        triangle_has_normals[idx] = 0
    triangle_material_ids[idx] = material_id
    num_triangles[None] = idx + 1
    _compute_triangle_bounds(idx, idx + 1)
    return idx


@ti.kernel
def _upload_spheres(
    start: ti.i32,
    centers: ti.types.ndarray(),
    radii: ti.types.ndarray(),
    material_ids: ti.types.ndarray(),
):
    for i in range(radii.shape[0]):
        idx = start + i
        sphere_centers[idx] = vec3(centers[i, 0], centers[i, 1], centers[i, 2])
        sphere_radii[idx] = radii[i]
        sphere_material_ids[idx] = material_ids[i]


@ti.kernel
def _upload_triangles(
    start: ti.i32,
    vertices: ti.types.ndarray(),
    normals: ti.types.ndarray(),
    has_normals: ti.types.ndarray(),
    material_ids: ti.types.ndarray(),
):
    for i in range(material_ids.shape[0]):
        idx = start + i
        triangle_v0[idx] = vec3(vertices[i, 0, 0], vertices[i, 0, 1], vertices[i, 0, 2])
        triangle_v1[idx] = vec3(vertices[i, 1, 0], vertices[i, 1, 1], vertices[i, 1, 2])
        triangle_v2[idx] = vec3(vertices[i, 2, 0], vertices[i, 2, 1], vertices[i, 2, 2])
        triangle_n0[idx] = vec3(normals[i, 0, 0], normals[i, 0, 1], normals[i, 0, 2])
        triangle_n1[idx] = vec3(normals[i, 1, 0], normals[i, 1, 1], normals[i, 1, 2])
        triangle_n2[idx] = vec3(normals[i, 2, 0], normals[i, 2, 1], normals[i, 2, 2])
        triangle_has_normals[idx] = has_normals[i]
        triangle_material_ids[idx] = material_ids[i]


@ti.kernel
def _compute_triangle_bounds(start: ti.i32, end: ti.i32):
    for idx in range(start, end):
        box = compute_aabb(
            Triangle(v0=triangle_v0[idx], v1=triangle_v1[idx], v2=triangle_v2[idx])
        )
        triangle_aabb_min[idx] = box.min_corner
        triangle_aabb_max[idx] = box.max_corner


def add_spheres(centers: np.ndarray, radii: np.ndarray, material_ids: np.ndarray) -> int:
    """Append many spheres in one kernel launch.

    Args:
        centers: (n, 3) array of centers.
        radii: (n,) array of radii.
        material_ids: (n,) array of material IDs.

    Returns:
        The index of the first added sphere.

    Raises:
        RuntimeError: If the maximum number of spheres would be exceeded.
        ValueError: If the array shapes disagree.
    """
    centers = np.ascontiguousarray(centers, dtype=np.float32).reshape(-1, 3)
    radii = np.ascontiguousarray(radii, dtype=np.float32).reshape(-1)
    material_ids = np.ascontiguousarray(material_ids, dtype=np.int32).reshape(-1)
    count = radii.shape[0]
    if centers.shape[0] != count or material_ids.shape[0] != count:
        raise ValueError(
            f"Mismatched sphere arrays: {centers.shape[0]} centers, {count} radii, "
            f"{material_ids.shape[0]} material ids"
        )
    start = num_spheres[None]
    if start + count > MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    if count > 0:
        _upload_spheres(start, centers, radii, material_ids)
        num_spheres[None] = start + count
    return start


def add_triangles(
    vertices: np.ndarray,
    material_ids: np.ndarray,
    normals: np.ndarray | None = None,
    has_normals: np.ndarray | None = None,
) -> int:
    """Append many triangles in one kernel launch and compute their bounds.

    Args:
        vertices: (n, 3, 3) array, vertices[i, k] is vertex k of triangle i.
        material_ids: (n,) array of material IDs.
        normals: Optional (n, 3, 3) array of vertex normals.
        has_normals: Optional (n,) array flagging which rows of normals are
            used. Defaults to all ones when normals are given.

    Returns:
        The index of the first added triangle.

    Raises:
        RuntimeError: If the maximum number of triangles would be exceeded.
        ValueError: If the array shapes disagree.
    """
    vertices = np.ascontiguousarray(vertices, dtype=np.float32).reshape(-1, 3, 3)
    material_ids = np.ascontiguousarray(material_ids, dtype=np.int32).reshape(-1)
    count = vertices.shape[0]
    if material_ids.shape[0] != count:
        raise ValueError(
            f"Mismatched triangle arrays: {count} triangles, {material_ids.shape[0]} material ids"
        )
    if normals is None:
        normals = np.zeros((count, 3, 3), dtype=np.float32)
        has_normals = np.zeros(count, dtype=np.int32)
    else:
        normals = np.ascontiguousarray(normals, dtype=np.float32).reshape(-1, 3, 3)
        if normals.shape[0] != count:
            raise ValueError(f"Expected normals for {count} triangles, got {normals.shape[0]}")
        if has_normals is None:
            has_normals = np.ones(count, dtype=np.int32)
    has_normals = np.ascontiguousarray(has_normals, dtype=np.int32).reshape(-1)

    start = num_triangles[None]
    if start + count > MAX_TRIANGLES:
        raise RuntimeError(f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded")
    if count > 0:
        _upload_triangles(start, vertices, normals, has_normals, material_ids)
        num_triangles[None] = start + count
        _compute_triangle_bounds(start, start + count)
    return start


def get_sphere_count() -> int:
    """Get the number of spheres in the scene."""
    return int(num_spheres[None])


def get_triangle_count() -> int:
    """Get the number of triangles in the scene."""
    return int(num_triangles[None])


def get_triangle_bounds(index: int) -> tuple[np.ndarray, np.ndarray]:
    """Return the stored (min_corner, max_corner) of a triangle."""
    if not (0 <= index < num_triangles[None]):
        raise IndexError(f"Triangle index {index} out of range")
    return (
        triangle_aabb_min[index].to_numpy().astype(np.float32),
        triangle_aabb_max[index].to_numpy().astype(np.float32),
    )


@ti.func
def _make_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        barycentric=vec3(0.0, 0.0, 0.0),
        material_id=-1,
        primitive_kind=_KIND_NONE,
        primitive_id=-1,
    )


@ti.func
def _to_scene_hit_record(
    rec: HitRecord, normal: vec3, material_id: ti.i32, kind: ti.i32, primitive_id: ti.i32
) -> SceneHitRecord:
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=normal,
        front_face=rec.front_face,
        barycentric=rec.barycentric,
        material_id=material_id,
        primitive_kind=kind,
        primitive_id=primitive_id,
    )


@ti.func
def _get_triangle(i: ti.i32) -> Triangle:
    return Triangle(v0=triangle_v0[i], v1=triangle_v1[i], v2=triangle_v2[i])


@ti.func
def _get_triangle_box(i: ti.i32) -> Aabb:
    return Aabb(min_corner=triangle_aabb_min[i], max_corner=triangle_aabb_max[i])


@ti.func
def intersect_scene(ray: Ray) -> SceneHitRecord:
    """Find the closest intersection of a ray with the scene.

    Tests all spheres, then all triangles (bounding box first), tracking the
    closest hit inside [ray.t_min, ray.t_max].

    Args:
        ray: The ray to test, including its valid range.

    Returns:
        A SceneHitRecord containing the closest intersection, or a miss
        record if no intersection was found.
    """
    closest_t = ray.t_max
    found = 0
    result = _make_miss_record()

    n_spheres = num_spheres[None]
    for i in range(n_spheres):
        sphere = Sphere(center=sphere_centers[i], radius=sphere_radii[i])
        rec = hit_sphere(with_t_max(ray, closest_t), sphere)
        if rec.hit == 1 and (found == 0 or rec.t < closest_t):
            found = 1
            closest_t = rec.t
            result = _to_scene_hit_record(
                rec, rec.normal, sphere_material_ids[i], _KIND_SPHERE, i
            )

    n_triangles = num_triangles[None]
    for i in range(n_triangles):
        bounded_ray = with_t_max(ray, closest_t)
        if hit_aabb(bounded_ray, _get_triangle_box(i)) == 1:
            rec = hit_triangle(bounded_ray, _get_triangle(i))
            if rec.hit == 1 and (found == 0 or rec.t < closest_t):
                found = 1
                closest_t = rec.t
                normal = rec.normal
                if triangle_has_normals[i] == 1:
                    normal = interpolate_normal(
                        rec.barycentric,
                        triangle_n0[i],
                        triangle_n1[i],
                        triangle_n2[i],
                        rec.normal,
                    )
                result = _to_scene_hit_record(
                    rec, normal, triangle_material_ids[i], _KIND_TRIANGLE, i
                )

    return result


@ti.func
def intersect_scene_any(ray: Ray) -> ti.i32:
    """Test if a ray hits any primitive in the scene (shadow ray query).

    Skips remaining primitives once a hit is found, useful for shadow rays
    where we only need to know if anything blocks the ray.

    Args:
        ray: The ray to test, including its valid range.

    Returns:
        1 if any primitive was hit, 0 otherwise.
    """
    hit_any = 0

    n_spheres = num_spheres[None]
    for i in range(n_spheres):
        if hit_any == 0:
            sphere = Sphere(center=sphere_centers[i], radius=sphere_radii[i])
            if hit_sphere(ray, sphere).hit == 1:
                hit_any = 1

    n_triangles = num_triangles[None]
    for i in range(n_triangles):
        if hit_any == 0:
            if hit_aabb(ray, _get_triangle_box(i)) == 1:
                if hit_triangle(ray, _get_triangle(i)).hit == 1:
                    hit_any = 1

    return hit_any


# =============================================================================
# Python-side queries
# =============================================================================


@dataclass
class HitInfo:
    """Closest hit of a single ray, as returned by find_closest_hit()."""

    t: float
    point: tuple[float, float, float]
    normal: tuple[float, float, float]
    front_face: bool
    barycentric: tuple[float, float, float]
    material_id: int
    primitive_kind: PrimitiveKind
    primitive_id: int


_query_result = SceneHitRecord.field(shape=())
_query_any = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _query_closest(origin: vec3, direction: vec3, t_min: ti.f32, t_max: ti.f32):
    for _ in range(1):
        _query_result[None] = intersect_scene(make_ray(origin, direction, t_min, t_max))


@ti.kernel
def _query_any_hit(origin: vec3, direction: vec3, t_min: ti.f32, t_max: ti.f32):
    for _ in range(1):
        _query_any[None] = intersect_scene_any(make_ray(origin, direction, t_min, t_max))


def _to_tuple(v) -> tuple[float, float, float]:
    return (float(v[0]), float(v[1]), float(v[2]))


def _normalized(direction: Sequence[float]) -> vec3:
    d = np.asarray(direction, dtype=np.float64)
    length = np.linalg.norm(d)
    if length == 0.0:
        raise ValueError("Ray direction must not be zero")
    d = d / length
    return vec3(d[0], d[1], d[2])


def find_closest_hit(
    origin: Sequence[float],
    direction: Sequence[float],
    t_min: float = 0.0,
    t_max: float = T_MAX,
) -> HitInfo | None:
    """Run the scene intersector for one ray from Python.

    Args:
        origin: Ray origin.
        direction: Ray direction; normalized before tracing.
        t_min: Smallest accepted hit distance.
        t_max: Largest accepted hit distance.

    Returns:
        HitInfo for the closest hit, or None on a miss.

    Raises:
        ValueError: If direction is zero.
    """
    _query_closest(vec3(origin[0], origin[1], origin[2]), _normalized(direction), t_min, t_max)
    rec = _query_result[None]
    if rec.hit == 0:
        return None
    return HitInfo(
        t=float(rec.t),
        point=_to_tuple(rec.point),
        normal=_to_tuple(rec.normal),
        front_face=bool(rec.front_face),
        barycentric=_to_tuple(rec.barycentric),
        material_id=int(rec.material_id),
        primitive_kind=PrimitiveKind(int(rec.primitive_kind)),
        primitive_id=int(rec.primitive_id),
    )


def is_occluded(
    origin: Sequence[float],
    direction: Sequence[float],
    t_min: float = 0.0,
    t_max: float = T_MAX,
) -> bool:
    """Run the any-hit query for one ray from Python."""
    _query_any_hit(vec3(origin[0], origin[1], origin[2]), _normalized(direction), t_min, t_max)
    return bool(_query_any[None])
