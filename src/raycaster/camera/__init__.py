"""Camera module for primary ray generation.

Components:
    view: Camera description (position, orientation, field of view, clip
        range)
    pinhole: Camera fields and the get_ray() kernel function

pinhole declares Taichi fields and is not imported here:
    from raycaster.camera.pinhole import setup_camera, get_ray
"""

from .view import Camera

__all__ = ["Camera"]
