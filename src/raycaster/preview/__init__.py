"""Preview module for handing rendered images to a display.

Components:
    display: Tone mapping, gamma encoding, 8-bit RGBA conversion and an
        optional Matplotlib preview

Example:
    >>> from raycaster.preview import to_rgba8
    >>> pixels = to_rgba8(renderer.get_image_numpy())
"""

from raycaster.preview.display import (
    ToneMapMethod,
    apply_gamma,
    compute_rmse,
    image_to_uint8,
    process_image_for_display,
    show_preview,
    tone_map_exposure,
    tone_map_reinhard,
    to_rgba8,
)

__all__ = [
    "show_preview",
    # Tone mapping
    "tone_map_reinhard",
    "tone_map_exposure",
    "apply_gamma",
    "process_image_for_display",
    "ToneMapMethod",
    # Conversion
    "image_to_uint8",
    "to_rgba8",
    "compute_rmse",
]
