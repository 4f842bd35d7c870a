"""raycaster: a progressive CPU ray caster built on Taichi.

The package renders scenes of spheres and triangles with a local lighting
model and averages successive frames while the scene and camera stay still.

Subpackages:
    core: Rays, sampling, shading, tiled rendering, accumulation and the
        progressive frame loop
    geometry: Sphere and triangle primitives, bounding boxes
    scene: Immutable scene snapshots, presets and the GPU-side scene store
    materials: Surface material registry
    camera: Camera description and primary ray generation
    preview: Conversion of accumulated images for display

Taichi must be initialized (ti.init) before importing any module that
declares fields, i.e. everything beyond core.ray, core.settings,
scene.snapshot, scene.presets and camera.view.
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
