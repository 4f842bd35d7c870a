"""Render settings and render-scale helpers.

RenderSettings groups every knob of the frame loop that is not part of the
scene itself. Settings are immutable; use dataclasses.replace() to derive a
modified copy and hand it to ProgressiveRenderer.update_settings().

Settings can also be read from the environment, which is convenient for
example scripts and benchmarks:

    RAYCASTER_RENDER_SCALE=0.5 RAYCASTER_WORKERS=4 python examples/render_default_scene.py

Example:
    >>> settings = RenderSettings(render_scale=0.5, tile_size=32)
    >>> scaled_resolution(800, 600, settings.render_scale)
    (400, 300)
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, fields

# Hard cap on ray casts per primary sample; sizes the bounce loop in kernels
MAX_BOUNCES_LIMIT = 8

ENV_PREFIX = "RAYCASTER_"


@dataclass(frozen=True)
class RenderSettings:
    """Configuration of the progressive frame loop.

    Attributes:
        render_scale: Multiplier in (0, 1] applied to the display resolution.
            Lower values trade image quality for speed. Default 0.75.
        tile_size: Edge length in pixels of the square work units handed to
            worker threads.
        workers: Number of CPU worker threads per frame. 0 uses
            os.cpu_count().
        seed: Global seed mixed into every pixel's random state.
        jitter: Whether primary rays are jittered inside the pixel footprint
            (progressive anti-aliasing). Without jitter every ray passes
            through the pixel center.
        max_bounces: Maximum ray casts per primary sample, counting the
            primary ray. 1 disables reflections.
        shadows: Whether direct lighting casts shadow rays.
        ambient: Ambient floor added to every lit surface, as a fraction of
            its albedo.
    """

    render_scale: float = 0.75
    tile_size: int = 16
    workers: int = 0
    seed: int = 0
    jitter: bool = True
    max_bounces: int = 4
    shadows: bool = True
    ambient: float = 0.05

    def __post_init__(self) -> None:
        if not (0.0 < self.render_scale <= 1.0) or not math.isfinite(self.render_scale):
            raise ValueError(f"render_scale must be in (0, 1], got {self.render_scale}")
        if self.tile_size < 1:
            raise ValueError(f"tile_size must be positive, got {self.tile_size}")
        if self.workers < 0:
            raise ValueError(f"workers must be >= 0, got {self.workers}")
        if not (1 <= self.max_bounces <= MAX_BOUNCES_LIMIT):
            raise ValueError(
                f"max_bounces must be in [1, {MAX_BOUNCES_LIMIT}], got {self.max_bounces}"
            )
        if self.ambient < 0.0 or not math.isfinite(self.ambient):
            raise ValueError(f"ambient must be a non-negative number, got {self.ambient}")
        if not (0 <= self.seed < 2**31):
            raise ValueError(f"seed must be in [0, 2**31), got {self.seed}")

    def resolve_workers(self) -> int:
        """Number of worker threads to launch (never 0)."""
        if self.workers > 0:
            return self.workers
        return os.cpu_count() or 1

    def shading_key(self) -> tuple[int, bool, float, bool, int]:
        """Settings whose change invalidates accumulated samples."""
        return (self.max_bounces, self.shadows, self.ambient, self.jitter, self.seed)

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> RenderSettings:
        """Build settings from environment variables.

        Each field maps to ``<prefix><FIELD_NAME>`` (e.g. RAYCASTER_TILE_SIZE).
        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable cannot be parsed or is out of range.
        """
        overrides: dict[str, object] = {}
        for f in fields(cls):
            raw = os.getenv(prefix + f.name.upper())
            if raw is None:
                continue
            if f.type in ("bool", bool):
                overrides[f.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            elif f.type in ("int", int):
                overrides[f.name] = int(raw)
            else:
                overrides[f.name] = float(raw)
        return cls(**overrides)  # type: ignore[arg-type]


def scaled_resolution(display_width: int, display_height: int, render_scale: float) -> tuple[int, int]:
    """Render resolution for a display size and render scale.

    Truncates like the display integration does and never returns less than
    one pixel per axis.

    Raises:
        ValueError: If the display size is not positive.
    """
    if display_width < 1 or display_height < 1:
        raise ValueError(
            f"Display size must be positive, got {display_width}x{display_height}"
        )
    width = max(1, int(display_width * render_scale))
    height = max(1, int(display_height * render_scale))
    return width, height
