"""Tiled parallel rendering of a single frame.

The image is split into square tiles of RenderSettings.tile_size pixels. One
Taichi kernel walks the tiles in a parallel loop whose thread count comes from
RenderSettings.workers; inside a tile the pixels are processed serially. Every
pixel is written by exactly one tile, so workers never touch the same slot of
the frame buffer.

Each pixel sample draws its random numbers from a hash of (pixel, frame index,
seed) rather than from per-thread generator state. With Taichi initialized
with fast_math=False the rendered frame is therefore bit-identical for any
tile size and any number of workers. Each worker count compiles its own
kernel, and under fast math the serial and parallel variants may round
differently, so rendering with fast math enabled logs a warning once.

A pixel whose color comes out NaN or infinite is replaced with SENTINEL_COLOR
and counted; negative components are clamped to zero. A bad pixel never
aborts the frame.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, fast_math=False)
    >>> from raycaster.core.renderer import render_frame
    >>> from raycaster.core.settings import RenderSettings
    >>> from raycaster.scene.presets import create_default_scene
    >>> snapshot, camera = create_default_scene()
    >>> image = render_frame(snapshot, camera, (160, 120), settings=RenderSettings())
    >>> image.shape
    (120, 160, 3)
"""

import logging

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm
from taichi.lang import impl

from raycaster.camera.pinhole import get_ray, setup_camera
from raycaster.camera.view import Camera
from raycaster.core.ray import is_finite, vec2
from raycaster.core.sampler import next_float, pixel_seed
from raycaster.core.settings import RenderSettings
from raycaster.core.shading import trace_ray
from raycaster.scene.manager import SceneManager
from raycaster.scene.snapshot import SceneSnapshot

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# Color written for pixels whose computation produced NaN or Inf (magenta)
SENTINEL_COLOR = (1.0, 0.0, 1.0)

# =============================================================================
# Frame Buffer Storage
# =============================================================================

# Maximum supported render resolution
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Colors of the last rendered frame, indexed [x, y] with y = 0 at the top
_frame_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Number of pixels of the last frame replaced by the sentinel color
_invalid_pixel_count = ti.field(dtype=ti.i32, shape=())

# Set once the fast-math warning has been logged
_fast_math_warned = False


def check_resolution(width: int, height: int) -> None:
    """Validate a render resolution against the preallocated buffers.

    Raises:
        ValueError: If a dimension is below 1 or above the maximum.
    """
    if width < 1 or height < 1:
        raise ValueError(f"Resolution must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Resolution {width}x{height} exceeds maximum {MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT}"
        )


def strict_math_enabled() -> bool:
    """Whether Taichi runs with fast_math=False."""
    return not impl.current_cfg().fast_math


def _warn_if_fast_math() -> None:
    global _fast_math_warned
    if _fast_math_warned or strict_math_enabled():
        return
    _fast_math_warned = True
    logger.warning(
        "Taichi was initialized with fast_math=True; frames may differ between "
        "worker counts. Call ti.init(..., fast_math=False) for reproducible output"
    )


# =============================================================================
# Per-pixel Work
# =============================================================================


@ti.func
def render_pixel(
    pixel_x: ti.i32,
    pixel_y: ti.i32,
    width: ti.i32,
    height: ti.i32,
    frame_index: ti.i32,
    seed: ti.i32,
    jitter_enabled: ti.i32,
) -> vec3:
    """Compute one sample of a pixel.

    Args:
        pixel_x: Pixel column (0 = left).
        pixel_y: Pixel row (0 = top).
        width: Image width in pixels.
        height: Image height in pixels.
        frame_index: Index of the frame within the current accumulation.
        seed: Global seed.
        jitter_enabled: 1 to jitter the sample inside the pixel, 0 to use the
            pixel center.

    Returns:
        The sample color, or the sentinel color if it was not finite.
    """
    state = pixel_seed(pixel_x, pixel_y, width, frame_index, seed)

    jitter = vec2(0.5, 0.5)
    if jitter_enabled == 1:
        jx, state = next_float(state)
        jy, state = next_float(state)
        jitter = vec2(jx, jy)

    color, state = trace_ray(get_ray(pixel_x, pixel_y, width, height, jitter), state)

    result = vec3(SENTINEL_COLOR[0], SENTINEL_COLOR[1], SENTINEL_COLOR[2])
    if is_finite(color) == 1:
        result = ti.max(color, vec3(0.0, 0.0, 0.0))
    else:
        ti.atomic_add(_invalid_pixel_count[None], 1)
    return result


@ti.kernel
def _render_tiles(
    width: ti.i32,
    height: ti.i32,
    tile_size: ti.i32,
    frame_index: ti.i32,
    seed: ti.i32,
    jitter_enabled: ti.i32,
    workers: ti.template(),
):
    """Render all tiles of a frame into the frame buffer.

    The outer loop over tiles is the parallel loop; its thread count is the
    compile-time ``workers`` value.
    """
    tiles_x = (width + tile_size - 1) // tile_size
    tiles_y = (height + tile_size - 1) // tile_size

    ti.loop_config(parallelize=workers)
    for tile in range(tiles_x * tiles_y):
        x0 = (tile % tiles_x) * tile_size
        y0 = (tile // tiles_x) * tile_size
        x1 = ti.min(x0 + tile_size, width)
        y1 = ti.min(y0 + tile_size, height)
        for y in range(y0, y1):
            for x in range(x0, x1):
                _frame_buffer[x, y] = render_pixel(
                    x, y, width, height, frame_index, seed, jitter_enabled
                )


@ti.kernel
def _copy_frame(width: ti.i32, height: ti.i32, out: ti.types.ndarray()):
    for x, y in ti.ndrange(width, height):
        color = _frame_buffer[x, y]
        for c in ti.static(range(3)):
            out[y, x, c] = color[c]


# =============================================================================
# Public Rendering API
# =============================================================================


def render_frame_buffer(
    width: int,
    height: int,
    frame_index: int,
    settings: RenderSettings,
) -> int:
    """Render one frame of the current scene into the frame buffer.

    The scene, environment and camera fields must already be set up for this
    resolution.

    Args:
        width: Render width in pixels.
        height: Render height in pixels.
        frame_index: Index of the frame within the current accumulation.
        settings: Tile size, worker count, seed and jitter.

    Returns:
        The number of pixels replaced by SENTINEL_COLOR.

    Raises:
        ValueError: If the resolution is out of range.
    """
    check_resolution(width, height)
    _warn_if_fast_math()
    _invalid_pixel_count[None] = 0
    _render_tiles(
        width,
        height,
        settings.tile_size,
        frame_index,
        settings.seed,
        1 if settings.jitter else 0,
        settings.resolve_workers(),
    )
    return int(_invalid_pixel_count[None])


def frame_to_numpy(width: int, height: int) -> npt.NDArray[np.float32]:
    """Copy the active region of the frame buffer.

    Returns:
        NumPy array of shape (height, width, 3), row 0 at the top.
    """
    check_resolution(width, height)
    out = np.zeros((height, width, 3), dtype=np.float32)
    _copy_frame(width, height, out)
    return out


def render_frame(
    scene: SceneSnapshot,
    camera: Camera,
    resolution: tuple[int, int],
    *,
    settings: RenderSettings | None = None,
    frame_index: int = 0,
) -> npt.NDArray[np.float32]:
    """Upload a scene and render a single frame of it.

    Args:
        scene: The scene to render.
        camera: The camera to render from.
        resolution: (width, height) in pixels.
        settings: Render settings. Defaults to RenderSettings().
        frame_index: Index of the frame; selects the jitter pattern.

    Returns:
        NumPy array of shape (height, width, 3) with dtype float32.

    Raises:
        ValueError: If the resolution is out of range.
        RuntimeError: If the scene exceeds a field capacity.
    """
    if settings is None:
        settings = RenderSettings()
    width, height = resolution
    check_resolution(width, height)

    manager = SceneManager()
    manager.apply(scene)
    manager.apply_settings(settings)
    setup_camera(camera, width, height)

    invalid = render_frame_buffer(width, height, frame_index, settings)
    if invalid > 0:
        logger.warning("%d pixel(s) produced non-finite colors in frame %d", invalid, frame_index)
    return frame_to_numpy(width, height)


def get_invalid_pixel_count() -> int:
    """Number of sentinel pixels in the last rendered frame."""
    return int(_invalid_pixel_count[None])
