"""Running average of rendered frames.

While the scene and camera stay unchanged, every new frame is merged into a
per-pixel running average:

    avg_n = avg_{n-1} + (x_n - avg_{n-1}) / n

One sample count is shared by all pixels: a frame is always merged as a
whole, so every pixel has seen the same number of samples.

The buffer is backed by preallocated module-level fields, like the frame
buffer it reads from, so only one AccumulationBuffer should be alive at a
time. All mutating and reading operations hold the buffer's lock; a reader
never observes a half-merged frame.

Example:
    >>> buffer = AccumulationBuffer(64, 48)
    >>> buffer.integrate(np.ones((48, 64, 3), dtype=np.float32))
    >>> buffer.sample_count
    1
"""

import logging
import threading

import numpy as np
import numpy.typing as npt
import taichi as ti

from raycaster.core.renderer import (
    MAX_IMAGE_HEIGHT,
    MAX_IMAGE_WIDTH,
    _frame_buffer,
    check_resolution,
)

logger = logging.getLogger(__name__)

# Running average, indexed [x, y] with y = 0 at the top
_accum_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))


@ti.kernel
def _clear_region(width: ti.i32, height: ti.i32):
    for x, y in ti.ndrange(width, height):
        _accum_buffer[x, y] = ti.Vector([0.0, 0.0, 0.0])


@ti.kernel
def _integrate_frame_buffer(width: ti.i32, height: ti.i32, n: ti.i32):
    inv_n = 1.0 / ti.cast(n, ti.f32)
    for x, y in ti.ndrange(width, height):
        _accum_buffer[x, y] += (_frame_buffer[x, y] - _accum_buffer[x, y]) * inv_n


@ti.kernel
def _integrate_array(width: ti.i32, height: ti.i32, n: ti.i32, frame: ti.types.ndarray()):
    inv_n = 1.0 / ti.cast(n, ti.f32)
    for x, y in ti.ndrange(width, height):
        sample = ti.Vector([frame[y, x, 0], frame[y, x, 1], frame[y, x, 2]])
        _accum_buffer[x, y] += (sample - _accum_buffer[x, y]) * inv_n


@ti.kernel
def _copy_average(width: ti.i32, height: ti.i32, out: ti.types.ndarray()):
    for x, y in ti.ndrange(width, height):
        color = _accum_buffer[x, y]
        for c in ti.static(range(3)):
            out[y, x, c] = color[c]


class AccumulationBuffer:
    """Per-pixel running average with a single shared sample count.

    Attributes:
        width: Active width in pixels.
        height: Active height in pixels.
    """

    def __init__(self, width: int, height: int) -> None:
        """Initialize an empty buffer.

        Args:
            width: Image width in pixels (max 2048).
            height: Image height in pixels (max 2048).

        Raises:
            ValueError: If dimensions are out of range.
        """
        check_resolution(width, height)
        self._lock = threading.Lock()
        self._width = width
        self._height = height
        self._sample_count = 0
        _clear_region(width, height)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def sample_count(self) -> int:
        """Number of frames merged since the last reset."""
        with self._lock:
            return self._sample_count

    def integrate(self, frame_colors: npt.NDArray[np.float32]) -> None:
        """Merge a finished frame into the running average.

        Args:
            frame_colors: Array of shape (height, width, 3).

        Raises:
            ValueError: If the frame shape does not match the buffer.
        """
        frame = np.ascontiguousarray(frame_colors, dtype=np.float32)
        if frame.shape != (self._height, self._width, 3):
            raise ValueError(
                f"Frame shape {frame.shape} does not match buffer "
                f"({self._height}, {self._width}, 3)"
            )
        with self._lock:
            self._sample_count += 1
            _integrate_array(self._width, self._height, self._sample_count, frame)

    def integrate_frame_buffer(self) -> None:
        """Merge the renderer's frame buffer (same resolution) into the average."""
        with self._lock:
            self._sample_count += 1
            _integrate_frame_buffer(self._width, self._height, self._sample_count)

    def reset(self) -> None:
        """Discard all accumulated samples."""
        with self._lock:
            self._reset_locked()

    def resize(self, width: int, height: int) -> None:
        """Change the active resolution. Always resets.

        Raises:
            ValueError: If dimensions are out of range.
        """
        check_resolution(width, height)
        with self._lock:
            self._width = width
            self._height = height
            self._reset_locked()
        logger.debug("Accumulation buffer resized to %dx%d", width, height)

    def current_average(self) -> npt.NDArray[np.float32]:
        """Copy of the running average.

        Returns:
            NumPy array of shape (height, width, 3), row 0 at the top. All
            zeros before the first frame.
        """
        with self._lock:
            out = np.zeros((self._height, self._width, 3), dtype=np.float32)
            _copy_average(self._width, self._height, out)
            return out

    def _reset_locked(self) -> None:
        self._sample_count = 0
        _clear_region(self._width, self._height)

    def __repr__(self) -> str:
        return (
            f"AccumulationBuffer(width={self._width}, height={self._height}, "
            f"samples={self._sample_count})"
        )
