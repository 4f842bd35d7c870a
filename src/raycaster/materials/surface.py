"""Surface material registry and metallic reflection sampling.

Every primitive references one material by id. A material combines a base
color (albedo) used by the local lighting term, a metallic fraction and a
roughness that control the reflected ray, and an emitted color that is
added independently of any light.

The reflection formula is:
    R = I - 2(I . N)N

For rough surfaces the reflected direction is perturbed by a random unit
vector scaled by the roughness, modeling microfacet scattering.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raycaster.materials.surface import add_material, clear_materials
    >>> clear_materials()
    >>> mirror = add_material(albedo=(0.9, 0.9, 0.9), roughness=0.0, metallic=1.0)
    >>> # Use scatter_reflection within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from raycaster.core.ray import reflect
from raycaster.core.sampler import random_unit_vector
from raycaster.scene.snapshot import MaterialInfo

# Type alias for 3D vectors
vec3 = tm.vec3

# Maximum number of materials in the scene
MAX_MATERIALS = 256

# Storage for material properties (Structure of Arrays)
material_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_roughnesses = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_metallics = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
# Emissive color already multiplied by its intensity
material_emissions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Clear all materials.

    Resets the material count to zero. Existing data in the fields will be
    overwritten when new materials are added.
    """
    num_materials[None] = 0


def add_material(
    albedo: tuple[float, float, float],
    roughness: float = 1.0,
    metallic: float = 0.0,
    emission: tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> int:
    """Add a material to the registry.

    Args:
        albedo: The base color as (R, G, B) tuple, each component in [0, 1].
        roughness: The reflection roughness in [0, 1]. 0 = perfect mirror.
        metallic: The reflected fraction in [0, 1]. 0 = purely diffuse.
        emission: The emitted radiance as (R, G, B), non-negative. Values can
            exceed 1.0.

    Returns:
        The id of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any parameter is out of range.
    """
    for i, component in enumerate(albedo):
        if component < 0.0 or component > 1.0:
            raise ValueError(
                f"Albedo component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )
    if roughness < 0.0 or roughness > 1.0:
        raise ValueError(f"Roughness = {roughness} is outside [0, 1]")
    if metallic < 0.0 or metallic > 1.0:
        raise ValueError(f"Metallic = {metallic} is outside [0, 1]")
    for i, component in enumerate(emission):
        if component < 0.0:
            raise ValueError(f"Emission component {i} = {component} is negative")

    idx = num_materials[None]
    if idx >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

    material_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    material_roughnesses[idx] = roughness
    material_metallics[idx] = metallic
    material_emissions[idx] = vec3(emission[0], emission[1], emission[2])
    num_materials[None] = idx + 1
    return idx


def add_material_info(material: MaterialInfo) -> int:
    """Add a material described by a snapshot entry."""
    return add_material(
        albedo=material.albedo,
        roughness=material.roughness,
        metallic=material.metallic,
        emission=material.emission,
    )


def get_material_count() -> int:
    """Get the number of materials in the registry."""
    return int(num_materials[None])


@ti.func
def get_albedo(material_id: ti.i32) -> vec3:
    return material_albedos[material_id]


@ti.func
def get_roughness(material_id: ti.i32) -> ti.f32:
    return material_roughnesses[material_id]


@ti.func
def get_metallic(material_id: ti.i32) -> ti.f32:
    return material_metallics[material_id]


@ti.func
def get_emission(material_id: ti.i32) -> vec3:
    return material_emissions[material_id]


@ti.func
def scatter_reflection(
    roughness: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    state: ti.u32,
):
    """Sample the reflected ray direction of a metallic surface.

    Reflects the incident ray about the surface normal, then perturbs the
    reflected direction by roughness times a random unit vector. The ray is
    absorbed if the perturbed direction ends up below the surface.

    Args:
        roughness: The surface roughness in [0, 1]. 0 = perfect mirror.
        incident_direction: The incoming ray direction (normalized).
        normal: The surface normal facing the incoming ray (normalized).
        state: Random state of the current pixel sample.

    Returns:
        A tuple of (scattered_direction, did_scatter, new_state) where
        did_scatter is 1 if the ray leaves above the surface and 0 if absorbed.
    """
    reflected = reflect(incident_direction, normal)
    fuzz, new_state = random_unit_vector(state)
    perturbed = reflected + roughness * fuzz

    scattered_direction = vec3(0.0, 0.0, 0.0)
    did_scatter = 0
    if tm.dot(perturbed, perturbed) > 1e-12:
        scattered_direction = tm.normalize(perturbed)
        if tm.dot(scattered_direction, normal) > 0.0:
            did_scatter = 1

    return scattered_direction, did_scatter, new_state
