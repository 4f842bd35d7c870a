"""Scene manager that uploads immutable snapshots into Taichi fields.

The renderer never reads a SceneSnapshot directly inside kernels. Instead
the SceneManager copies a snapshot into the primitive, material and
environment fields between frames. Because the fields are only written
here, and only from the render thread at a frame boundary, the scene is
read-only for the whole duration of a frame.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from raycaster.scene.manager import SceneManager
    >>> from raycaster.scene.presets import create_default_scene
    >>> snapshot, camera = create_default_scene()
    >>> manager = SceneManager()
    >>> manager.apply(snapshot)
    >>> manager.get_primitive_count()
    5
"""

import logging

import numpy as np

from raycaster.core.settings import RenderSettings
from raycaster.materials.surface import (
    MAX_MATERIALS,
    add_material_info,
    clear_materials,
    get_material_count,
)
from raycaster.scene.environment import (
    MAX_LIGHTS,
    add_light,
    clear_lights,
    get_light_count,
    set_shading_params,
    set_sky,
)
from raycaster.scene.intersection import (
    MAX_SPHERES,
    MAX_TRIANGLES,
    add_spheres,
    add_triangles,
    clear_scene,
    get_sphere_count,
    get_triangle_count,
)
from raycaster.scene.snapshot import SceneSnapshot

logger = logging.getLogger(__name__)


class SceneManager:
    """Owns the GPU-side copy of the current scene.

    Attributes:
        snapshot: The snapshot currently stored in the fields, or None before
            the first apply().
        upload_count: Number of snapshots uploaded so far.
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.snapshot: SceneSnapshot | None = None
        self.upload_count = 0
        self._clear_all()

    def _clear_all(self) -> None:
        """Clear primitive, material and light fields."""
        clear_scene()
        clear_materials()
        clear_lights()

    def clear(self) -> None:
        """Remove everything from the scene."""
        self._clear_all()
        self.snapshot = None

    def apply(self, snapshot: SceneSnapshot) -> None:
        """Replace the stored scene with ``snapshot``.

        Must only be called between frames.

        Args:
            snapshot: The validated scene to upload.

        Raises:
            RuntimeError: If the snapshot exceeds a field capacity. The
                previously stored scene is left untouched in that case.
        """
        self._check_capacity(snapshot)
        self._clear_all()

        for material in snapshot.materials:
            add_material_info(material)

        if snapshot.spheres:
            add_spheres(
                centers=np.array([s.center for s in snapshot.spheres], dtype=np.float32),
                radii=np.array([s.radius for s in snapshot.spheres], dtype=np.float32),
                material_ids=np.array([s.material_id for s in snapshot.spheres], dtype=np.int32),
            )

        if snapshot.triangles:
            vertices = np.array(
                [(t.v0, t.v1, t.v2) for t in snapshot.triangles], dtype=np.float32
            )
            normals = np.zeros_like(vertices)
            has_normals = np.zeros(len(snapshot.triangles), dtype=np.int32)
            for i, triangle in enumerate(snapshot.triangles):
                if triangle.normals is not None:
                    normals[i] = triangle.normals
                    has_normals[i] = 1
            add_triangles(
                vertices=vertices,
                material_ids=np.array(
                    [t.material_id for t in snapshot.triangles], dtype=np.int32
                ),
                normals=normals,
                has_normals=has_normals,
            )

        set_sky(snapshot.sky)
        for light in snapshot.lights:
            add_light(light)

        self.snapshot = snapshot
        self.upload_count += 1
        logger.debug(
            "Uploaded scene: %d materials, %d spheres, %d triangles, %d lights",
            len(snapshot.materials),
            len(snapshot.spheres),
            len(snapshot.triangles),
            len(snapshot.lights),
        )

    def apply_settings(self, settings: RenderSettings) -> None:
        """Copy the shading knobs of ``settings`` into the environment fields."""
        set_shading_params(
            ambient=settings.ambient,
            shadows=settings.shadows,
            bounces=settings.max_bounces,
        )

    @staticmethod
    def _check_capacity(snapshot: SceneSnapshot) -> None:
        limits = (
            ("materials", len(snapshot.materials), MAX_MATERIALS),
            ("spheres", len(snapshot.spheres), MAX_SPHERES),
            ("triangles", len(snapshot.triangles), MAX_TRIANGLES),
            ("lights", len(snapshot.lights), MAX_LIGHTS),
        )
        for name, count, limit in limits:
            if count > limit:
                raise RuntimeError(f"Maximum number of {name} ({limit}) exceeded: {count}")

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_sphere_count(self) -> int:
        """Get the number of spheres in the scene."""
        return get_sphere_count()

    def get_triangle_count(self) -> int:
        """Get the number of triangles in the scene."""
        return get_triangle_count()

    def get_primitive_count(self) -> int:
        """Get the total number of primitives in the scene."""
        return self.get_sphere_count() + self.get_triangle_count()

    def get_material_count(self) -> int:
        return get_material_count()

    def get_light_count(self) -> int:
        return get_light_count()
