"""Spheres and the hit record shared by every primitive.

hit_sphere() solves the ray-sphere quadratic with the cancellation-free root
pair q / a and c / q (Ray Tracing Gems, chapter 7). The textbook formula
loses most of its precision when the ray passes far from the sphere center,
which shows up as speckled silhouettes on large or distant spheres.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raycaster.geometry.sphere import Sphere, hit_sphere
    >>> sphere = Sphere(center=ti.math.vec3(0, 0, -5), radius=1.0)
    >>> # hit_sphere(ray, sphere) is called from kernels
"""

import taichi as ti
import taichi.math as tm

from raycaster.core.ray import Ray

vec3 = tm.vec3

# Rays whose squared direction length falls below this are treated as invalid
DIRECTION_EPSILON = 1e-12


@ti.dataclass
class Sphere:
    """Sphere stored as center and radius.

    Attributes:
        center: Sphere center in world space.
        radius: Sphere radius. Non-positive radii never hit.
    """

    center: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        hit: 1 if the ray hit the primitive inside its range, 0 otherwise.
            The remaining fields are meaningful only when hit == 1.
        t: Ray parameter of the hit.
        point: World-space hit position.
        normal: Unit surface normal, flipped to face the incoming ray.
        front_face: 1 when the ray arrived from the outside, 0 from inside.
        barycentric: Barycentric weights of the hit point for triangles,
            in vertex order. Zero for spheres.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    barycentric: vec3


@ti.func
def make_miss() -> HitRecord:
    """HitRecord with hit == 0 and zeroed fields."""
    return HitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        barycentric=vec3(0.0, 0.0, 0.0),
    )


@ti.func
def _sphere_roots(h: ti.f32, a: ti.f32, c: ti.f32, root: ti.f32):
    """Both roots of a*t^2 + 2*h*t + c = 0, smaller first.

    Args:
        h: Half the linear coefficient.
        a: Quadratic coefficient.
        c: Constant coefficient.
        root: sqrt(h^2 - a*c).
    """
    q = -(h + ti.select(h < 0.0, -root, root))

    near = 0.0
    far = 0.0
    if ti.abs(q) < 1e-10:
        # Both roots are ~0; the textbook form is exact enough here
        near = (-h - root) / a
        far = (-h + root) / a
    else:
        near = q / a
        far = c / q

    return ti.min(near, far), ti.max(near, far)


@ti.func
def hit_sphere(ray: Ray, sphere: Sphere) -> HitRecord:
    """Closest intersection of a ray with a sphere inside the ray's range.

    With oc = origin - center the hit condition |oc + t*d|^2 = r^2 becomes

        (d.d) t^2 + 2 (d.oc) t + (oc.oc - r^2) = 0

    The nearer root is preferred; if it lies outside [ray.t_min, ray.t_max]
    the farther one is tried, which is how rays starting inside the sphere
    find its back side. A negative discriminant, a non-positive radius or a
    zero-length direction is a miss.

    Args:
        ray: The ray, carrying its own valid range.
        sphere: The sphere to test.

    Returns:
        HitRecord for the hit; hit == 0 if there is none.
    """
    oc = ray.origin - sphere.center

    a = tm.dot(ray.direction, ray.direction)
    h = tm.dot(ray.direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    discriminant = h * h - a * c

    result = make_miss()

    if sphere.radius > 0.0 and a > DIRECTION_EPSILON and discriminant >= 0.0:
        near, far = _sphere_roots(h, a, c, ti.sqrt(discriminant))

        t = near
        in_range = ray.t_min <= t and t <= ray.t_max
        if not in_range:
            t = far
            in_range = ray.t_min <= t and t <= ray.t_max

        if in_range:
            point = ray.origin + t * ray.direction
            outward = (point - sphere.center) / sphere.radius

            front_face = 1
            normal = outward
            if tm.dot(ray.direction, outward) > 0.0:
                front_face = 0
                normal = -outward

            result = HitRecord(
                hit=1,
                t=t,
                point=point,
                normal=normal,
                front_face=front_face,
                barycentric=vec3(0.0, 0.0, 0.0),
            )

    return result
