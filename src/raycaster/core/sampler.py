"""Stateless hash-based random numbers for reproducible sampling.

Taichi's built-in ``ti.random`` draws from per-thread generator state, so the
values a pixel receives depend on which worker thread happens to process it.
Progressive rendering needs the opposite: the same pixel in the same frame
must always get the same jitter, whatever the tile size or thread count.

Every pixel therefore derives its own 32-bit state from
(pixel index, frame index, seed) with the PCG hash, and threads that state
explicitly through the functions below. A function that consumes randomness
takes the state and returns the advanced state alongside its value.

Example:
    >>> @ti.kernel
    ... def sample(x: ti.i32, y: ti.i32) -> ti.f32:
    ...     state = pixel_seed(x, y, 640, 0, 0)
    ...     value, state = next_float(state)
    ...     return value
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# 2^-24: maps the top 24 bits of a hash to [0, 1) without rounding to 1.0
_INV_2_POW_24 = 1.0 / 16777216.0


@ti.func
def pcg_hash(value) -> ti.u32:
    """PCG-style integer hash ("Hash Functions for GPU Rendering", JCGT 2020).

    All arithmetic wraps modulo 2^32.
    """
    state = ti.cast(value, ti.u32) * ti.u32(747796405) + ti.u32(2891336453)
    shift = (state >> ti.u32(28)) + ti.u32(4)
    word = ((state >> shift) ^ state) * ti.u32(277803737)
    return (word >> ti.u32(22)) ^ word


@ti.func
def pixel_seed(pixel_x: ti.i32, pixel_y: ti.i32, width: ti.i32, frame_index: ti.i32, seed: ti.i32) -> ti.u32:
    """Derive the initial random state of one pixel sample.

    Args:
        pixel_x: Pixel column.
        pixel_y: Pixel row.
        width: Image width in pixels.
        frame_index: Index of the accumulated frame (0 after a reset).
        seed: Global seed from the render settings.

    Returns:
        A 32-bit state that depends only on the arguments.
    """
    frame_hash = pcg_hash(ti.cast(frame_index, ti.u32) + pcg_hash(seed))
    return pcg_hash(ti.cast(pixel_y * width + pixel_x, ti.u32) ^ frame_hash)


@ti.func
def next_float(state: ti.u32):
    """Draw a float in [0, 1).

    Returns:
        Tuple of (value, new_state).
    """
    new_state = pcg_hash(state)
    value = ti.cast(new_state >> ti.u32(8), ti.f32) * _INV_2_POW_24
    return value, new_state


@ti.func
def random_unit_vector(state: ti.u32):
    """Random unit vector from a normalized point of the [-1, 1]^3 cube.

    A zero-length draw (vanishingly rare) yields +Y instead of NaN.

    Returns:
        Tuple of (direction, new_state).
    """
    x, s1 = next_float(state)
    y, s2 = next_float(s1)
    z, s3 = next_float(s2)
    p = vec3(x * 2.0 - 1.0, y * 2.0 - 1.0, z * 2.0 - 1.0)
    direction = vec3(0.0, 1.0, 0.0)
    if tm.dot(p, p) > 1e-12:
        direction = tm.normalize(p)
    return direction, s3
