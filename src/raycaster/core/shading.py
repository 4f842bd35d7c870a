"""Local shading model: sky gradient, direct lighting and reflections.

The shader turns the closest hit of a ray into a color:

    color = emission + albedo * (ambient + sum over lights of
            max(0, n . L) * light_radiance * visibility)

where visibility is 0 when shadows are enabled and a shadow ray toward the
light is blocked, and 1 otherwise. Rays that hit nothing take the color of
the sky gradient in their direction.

Metallic surfaces continue with one reflected ray per bounce. The local term
is then weighted by (1 - metallic) and the reflected ray's color by
metallic * albedo. The number of ray casts per sample is bounded by the
max_bounces shading knob, itself capped by MAX_BOUNCES_LIMIT, so tracing
always terminates.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raycaster.core.shading import shade_ray
    >>> shade_ray((0, 0, 0), (0, 1, 0))  # Straight up: zenith color
"""

import numpy as np
import taichi as ti
import taichi.math as tm

from raycaster.core.ray import T_MAX, Ray, make_ray, offset_ray_origin, smoothstep
from raycaster.core.settings import MAX_BOUNCES_LIMIT
from raycaster.materials.surface import (
    get_albedo,
    get_emission,
    get_metallic,
    get_roughness,
    scatter_reflection,
)
from raycaster.scene.environment import (
    ambient_strength,
    light_directions,
    light_radiances,
    max_bounces,
    num_lights,
    shadows_enabled,
    sky_ground,
    sky_horizon,
    sky_zenith,
)
from raycaster.scene.intersection import intersect_scene, intersect_scene_any

# Type alias for 3D vectors
vec3 = tm.vec3

# Elevation (direction.y) at which the sky reaches the zenith color
SKY_ZENITH_BLEND = 0.4

# Depression (-direction.y) at which the sky reaches the ground color
SKY_GROUND_BLEND = 0.01


@ti.func
def sky_color(direction: vec3) -> vec3:
    """Color of the sky gradient for a unit direction.

    Blends from the horizon color at y = 0 to the zenith color above, and to
    the ground color below.
    """
    y = direction.y
    result = sky_horizon[None]
    if y >= 0.0:
        result = tm.mix(sky_horizon[None], sky_zenith[None], smoothstep(0.0, SKY_ZENITH_BLEND, y))
    else:
        result = tm.mix(sky_horizon[None], sky_ground[None], smoothstep(0.0, SKY_GROUND_BLEND, -y))
    return result


@ti.func
def direct_lighting(point: vec3, normal: vec3, material_id: ti.i32) -> vec3:
    """Local lighting term of a surface point.

    Args:
        point: The hit point.
        normal: The unit shading normal, facing the incoming ray.
        material_id: Material of the hit surface.

    Returns:
        Emission plus ambient and Lambertian diffuse light reflected by the
        material's albedo.
    """
    ambient = ambient_strength[None]
    irradiance = vec3(ambient, ambient, ambient)

    for i in range(num_lights[None]):
        to_light = light_directions[i]
        n_dot_l = ti.max(0.0, tm.dot(normal, to_light))
        if n_dot_l > 0.0:
            visibility = 1.0
            if shadows_enabled[None] == 1:
                shadow_origin = offset_ray_origin(point, normal, to_light)
                if intersect_scene_any(make_ray(shadow_origin, to_light, 0.0, T_MAX)) == 1:
                    visibility = 0.0
            irradiance += n_dot_l * visibility * light_radiances[i]

    return get_emission(material_id) + get_albedo(material_id) * irradiance


@ti.func
def trace_ray(ray: Ray, state: ti.u32):
    """Compute the color seen along a ray.

    Args:
        ray: The primary ray, including its valid range.
        state: Random state of the pixel sample, consumed by rough
            reflections.

    Returns:
        A tuple of (color, new_state). A primary ray that misses the scene
        returns exactly sky_color(ray.direction).
    """
    origin = ray.origin
    direction = ray.direction
    t_min = ray.t_min
    t_max = ray.t_max
    rng = state

    color = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    bounces = max_bounces[None]

    # Active flag for continuation (no break in ti.func loops)
    active = 1

    for depth in range(MAX_BOUNCES_LIMIT):
        if active == 1 and depth < bounces:
            rec = intersect_scene(make_ray(origin, direction, t_min, t_max))

            if rec.hit == 0:
                color += throughput * sky_color(direction)
                active = 0
            else:
                material_id = rec.material_id
                local = direct_lighting(rec.point, rec.normal, material_id)
                metallic = get_metallic(material_id)

                reflected = 0
                if metallic > 0.0 and depth + 1 < bounces:
                    scattered, did_scatter, rng = scatter_reflection(
                        get_roughness(material_id), direction, rec.normal, rng
                    )
                    if did_scatter == 1:
                        reflected = 1
                        color += throughput * (1.0 - metallic) * local
                        throughput *= metallic * get_albedo(material_id)
                        origin = offset_ray_origin(rec.point, rec.normal, scattered)
                        direction = scattered
                        t_min = 0.0
                        t_max = T_MAX

                if reflected == 0:
                    color += throughput * local
                    active = 0

    return color, rng


# =============================================================================
# Python-side helpers
# =============================================================================

_shade_result = ti.Vector.field(3, dtype=ti.f32, shape=())


@ti.kernel
def _shade_single_ray(origin: vec3, direction: vec3, t_min: ti.f32, t_max: ti.f32, state: ti.u32):
    for _ in range(1):
        color, _state = trace_ray(make_ray(origin, direction, t_min, t_max), state)
        _shade_result[None] = color


@ti.kernel
def _evaluate_sky(direction: vec3):
    _shade_result[None] = sky_color(direction)


def _unit(direction: tuple[float, float, float]) -> vec3:
    d = np.asarray(direction, dtype=np.float64)
    length = np.linalg.norm(d)
    if length == 0.0:
        raise ValueError("Ray direction must not be zero")
    d = d / length
    return vec3(d[0], d[1], d[2])


def shade_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    t_min: float = 0.0,
    t_max: float = T_MAX,
    state: int = 0,
) -> tuple[float, float, float]:
    """Trace one ray against the current scene from Python.

    Uses the scene, materials and environment currently stored in the
    fields.

    Args:
        origin: Ray origin.
        direction: Ray direction; normalized before tracing.
        t_min: Smallest accepted hit distance.
        t_max: Largest accepted hit distance.
        state: Random state for rough reflections.

    Returns:
        Tuple of (R, G, B) color values.
    """
    d = _unit(direction)
    _shade_single_ray(vec3(origin[0], origin[1], origin[2]), d, t_min, t_max, state)
    color = _shade_result[None]
    return (float(color[0]), float(color[1]), float(color[2]))


def evaluate_sky(direction: tuple[float, float, float]) -> tuple[float, float, float]:
    """Sky gradient color for a direction, from Python."""
    d = _unit(direction)
    _evaluate_sky(d)
    color = _shade_result[None]
    return (float(color[0]), float(color[1]), float(color[2]))
