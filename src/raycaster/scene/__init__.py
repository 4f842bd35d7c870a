"""Scene module for scene descriptions and GPU-side scene storage.

Components:
    snapshot: Immutable scene description (materials, spheres, triangles,
        sky, lights)
    presets: Ready-made scenes
    intersection: Primitive storage and the closest-hit / any-hit intersector
    environment: Sky gradient, directional lights and shading knobs
    manager: Uploads snapshots into the fields at frame boundaries

Only the pure-Python modules are imported here. intersection, environment
and manager declare Taichi fields; import them after ti.init():
    from raycaster.scene.manager import SceneManager
"""

from .presets import box_triangles, create_default_scene, create_single_sphere_scene
from .snapshot import (
    BLACK_SKY,
    DEFAULT_SKY,
    DEGENERATE_AREA_EPSILON,
    DirectionalLight,
    MaterialInfo,
    SceneSnapshot,
    Sky,
    SphereInfo,
    TriangleInfo,
)

__all__ = [
    "SceneSnapshot",
    "MaterialInfo",
    "SphereInfo",
    "TriangleInfo",
    "Sky",
    "DirectionalLight",
    "DEFAULT_SKY",
    "BLACK_SKY",
    "DEGENERATE_AREA_EPSILON",
    "create_default_scene",
    "create_single_sphere_scene",
    "box_triangles",
]
