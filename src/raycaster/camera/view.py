"""Camera description used by the editor and the ray generator.

Camera is plain Python data, so it can be created and compared before
Taichi is initialized. raycaster.camera.pinhole turns it into field values
at a frame boundary.

The camera looks along ``forward``. Its orthonormal basis is built from
forward and the world ``up`` hint:

- forward: unit view direction
- right: normalize(cross(forward, up))
- up: cross(right, forward), the true up of the image plane

Example:
    >>> camera = Camera.look_at((0.0, 1.0, 5.0), (0.0, 0.0, 0.0))
    >>> camera.vfov
    45.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

import numpy as np

Vec3 = tuple[float, float, float]

# Forward and up closer to parallel than this cannot span an image plane
PARALLEL_EPSILON = 1e-6


@dataclass(frozen=True)
class Camera:
    """A perspective camera.

    Attributes:
        position: Camera position in world space.
        forward: View direction. Normalized on construction.
        up: Up hint for orientation. Must not be parallel to forward.
        vfov: Vertical field of view in degrees, in (0, 180).
        near_clip: Smallest accepted hit distance for primary rays.
        far_clip: Far plane of the view frustum for display-side projection.
            Ray hits beyond it are still rendered.
    """

    position: Vec3 = (0.0, 0.0, 6.0)
    forward: Vec3 = (0.0, 0.0, -1.0)
    up: Vec3 = (0.0, 1.0, 0.0)
    vfov: float = 45.0
    near_clip: float = 0.1
    far_clip: float = 100.0

    def __post_init__(self) -> None:
        position = np.asarray(self.position, dtype=np.float64)
        forward = np.asarray(self.forward, dtype=np.float64)
        up = np.asarray(self.up, dtype=np.float64)
        for name, value in (("position", position), ("forward", forward), ("up", up)):
            if value.shape != (3,) or not np.all(np.isfinite(value)):
                raise ValueError(f"Camera {name} must be 3 finite numbers, got {value}")

        forward_length = np.linalg.norm(forward)
        if forward_length == 0.0:
            raise ValueError("Camera forward direction must not be zero")
        up_length = np.linalg.norm(up)
        if up_length == 0.0:
            raise ValueError("Camera up vector must not be zero")
        forward = forward / forward_length
        if np.linalg.norm(np.cross(forward, up / up_length)) < PARALLEL_EPSILON:
            raise ValueError("Camera forward direction is parallel to the up vector")

        if not (0.0 < self.vfov < 180.0):
            raise ValueError(f"Vertical field of view must be in (0, 180), got {self.vfov}")
        if not (0.0 <= self.near_clip < self.far_clip) or not math.isfinite(self.far_clip):
            raise ValueError(
                f"Clip range must satisfy 0 <= near < far, got [{self.near_clip}, {self.far_clip}]"
            )

        object.__setattr__(self, "position", tuple(float(c) for c in position))
        object.__setattr__(self, "forward", tuple(float(c) for c in forward))
        object.__setattr__(self, "up", tuple(float(c) for c in up))
        object.__setattr__(self, "vfov", float(self.vfov))
        object.__setattr__(self, "near_clip", float(self.near_clip))
        object.__setattr__(self, "far_clip", float(self.far_clip))

    @classmethod
    def look_at(
        cls,
        position: Vec3,
        target: Vec3,
        up: Vec3 = (0.0, 1.0, 0.0),
        vfov: float = 45.0,
    ) -> Camera:
        """Camera at ``position`` looking toward ``target``.

        Raises:
            ValueError: If position equals target or the view is parallel to up.
        """
        direction = np.asarray(target, dtype=np.float64) - np.asarray(position, dtype=np.float64)
        return cls(position=position, forward=tuple(direction), up=up, vfov=vfov)

    def basis(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return the orthonormal (forward, right, up) basis as float64 arrays."""
        forward = np.asarray(self.forward, dtype=np.float64)
        right = np.cross(forward, np.asarray(self.up, dtype=np.float64))
        right = right / np.linalg.norm(right)
        true_up = np.cross(right, forward)
        return forward, right, true_up

    def moved(self, offset: Vec3) -> Camera:
        """Copy of the camera translated by ``offset``."""
        return replace(
            self,
            position=(
                self.position[0] + offset[0],
                self.position[1] + offset[1],
                self.position[2] + offset[2],
            ),
        )

    def aspect_ratio(self, width: int, height: int) -> float:
        if width < 1 or height < 1:
            raise ValueError(f"Resolution must be positive, got {width}x{height}")
        return width / height
