"""Global lighting state: sky gradient, directional lights, shading knobs.

These values are shared by every pixel of a frame. They are written from
Python at a frame boundary and read by the shader inside kernels.
"""

import taichi as ti
import taichi.math as tm

from raycaster.core.settings import MAX_BOUNCES_LIMIT

from .snapshot import DEFAULT_SKY, DirectionalLight, Sky

vec3 = tm.vec3

MAX_LIGHTS = 16

# Sky gradient
sky_zenith = ti.Vector.field(3, dtype=ti.f32, shape=())
sky_horizon = ti.Vector.field(3, dtype=ti.f32, shape=())
sky_ground = ti.Vector.field(3, dtype=ti.f32, shape=())

# Directional lights; light_directions point toward the light, light_radiances
# are color * intensity
light_directions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
light_radiances = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())

# Shading parameters
ambient_strength = ti.field(dtype=ti.f32, shape=())
shadows_enabled = ti.field(dtype=ti.i32, shape=())
max_bounces = ti.field(dtype=ti.i32, shape=())


def set_sky(sky: Sky) -> None:
    sky_zenith[None] = vec3(*sky.zenith)
    sky_horizon[None] = vec3(*sky.horizon)
    sky_ground[None] = vec3(*sky.ground)


def clear_lights() -> None:
    num_lights[None] = 0


def add_light(light: DirectionalLight) -> int:
    """Add a directional light.

    Args:
        light: The light. Its direction is already normalized.

    Returns:
        The index of the added light.

    Raises:
        RuntimeError: If the maximum number of lights is exceeded.
    """
    idx = num_lights[None]
    if idx >= MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")
    light_directions[idx] = vec3(*light.direction)
    light_radiances[idx] = vec3(*light.color) * light.intensity
    num_lights[None] = idx + 1
    return idx


def get_light_count() -> int:
    return int(num_lights[None])


def set_shading_params(ambient: float, shadows: bool, bounces: int) -> None:
    """Write the shading knobs read by the shader.

    Raises:
        ValueError: If bounces is outside [1, MAX_BOUNCES_LIMIT] or ambient
            is negative.
    """
    if not (1 <= bounces <= MAX_BOUNCES_LIMIT):
        raise ValueError(f"bounces must be in [1, {MAX_BOUNCES_LIMIT}], got {bounces}")
    if ambient < 0.0:
        raise ValueError(f"ambient must be non-negative, got {ambient}")
    ambient_strength[None] = ambient
    shadows_enabled[None] = 1 if shadows else 0
    max_bounces[None] = bounces


def reset_environment() -> None:
    """Restore the default sky, remove all lights and reset shading knobs."""
    set_sky(DEFAULT_SKY)
    clear_lights()
    set_shading_params(ambient=0.05, shadows=True, bounces=4)
