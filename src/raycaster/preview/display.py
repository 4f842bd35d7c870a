"""Conversion of accumulated linear images for display.

The renderer produces linear colors in [0, inf). A display surface wants
8-bit values, so the accumulated image goes through:

1. Exposure scaling and an optional tone mapping curve
2. Gamma encoding (sRGB approximation, 2.2)
3. Clamping and quantization to uint8

to_rgba8() runs the whole chain and adds an opaque alpha channel, which is
the layout texture uploads usually expect. show_preview() draws the image
with Matplotlib, which is an optional dependency (``pip install
raycaster[preview]``).

Example:
    >>> image = renderer.get_image_numpy()
    >>> pixels = to_rgba8(image, tone_map="reinhard")
    >>> pixels.shape[-1]
    4
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

import numpy as np
import numpy.typing as npt

if TYPE_CHECKING:
    from raycaster.core.progressive import ProgressiveRenderer


# Type alias for tone mapping options
ToneMapMethod = Literal["none", "reinhard", "exposure"]


def tone_map_reinhard(image: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Reinhard curve c / (1 + c), mapping [0, inf) onto [0, 1)."""
    image = np.maximum(image, 0.0)
    return (image / (1.0 + image)).astype(np.float32)


def tone_map_exposure(
    image: npt.NDArray[np.float32],
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Exponential curve 1 - exp(-c * exposure).

    Args:
        image: Linear image array of shape (H, W, 3).
        exposure: Brightness multiplier. Higher values brighten the image.

    Returns:
        Tone mapped image in [0, 1).
    """
    image = np.maximum(image, 0.0)
    return (1.0 - np.exp(-image * exposure)).astype(np.float32)


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Gamma-encode a linear image in [0, 1].

    Values are clamped to [0, 1] first so the power never sees a negative
    base.

    Raises:
        ValueError: If gamma is not positive.
    """
    if gamma <= 0.0:
        raise ValueError(f"Gamma must be positive, got {gamma}")
    image = np.clip(image, 0.0, 1.0)
    if gamma == 1.0:
        return image.astype(np.float32)
    return np.power(image, 1.0 / gamma).astype(np.float32)


def process_image_for_display(
    image: npt.NDArray[np.float32],
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Run the display pipeline on a linear image.

    With tone_map="none" the exposure is applied as a plain multiplier;
    with "exposure" it parameterizes the exponential curve.

    Args:
        image: Linear image array of shape (H, W, 3).
        tone_map: Tone mapping method ("none", "reinhard", or "exposure").
        gamma: Gamma value (2.2 for sRGB displays, 1.0 to stay linear).
        exposure: Exposure value.

    Returns:
        Image in [0, 1] ready for quantization.

    Raises:
        ValueError: If the tone mapping method is unknown.
    """
    result = np.asarray(image, dtype=np.float32)

    if tone_map == "reinhard":
        result = tone_map_reinhard(result * exposure)
    elif tone_map == "exposure":
        result = tone_map_exposure(result, exposure)
    elif tone_map == "none":
        result = result * exposure
    else:
        raise ValueError(f"Unknown tone mapping method: {tone_map}")

    return apply_gamma(result, gamma)


def image_to_uint8(
    image: npt.NDArray[np.float32],
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> npt.NDArray[np.uint8]:
    """Convert a linear image to 8-bit RGB.

    Returns:
        Array of shape (H, W, 3) with dtype uint8. Rounds to nearest.
    """
    processed = process_image_for_display(image, tone_map=tone_map, gamma=gamma, exposure=exposure)
    return np.rint(processed * 255.0).astype(np.uint8)


def to_rgba8(
    image: npt.NDArray[np.float32],
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> npt.NDArray[np.uint8]:
    """Convert a linear image to opaque 8-bit RGBA.

    Returns:
        Array of shape (H, W, 4) with dtype uint8 and alpha 255.
    """
    rgb = image_to_uint8(image, tone_map=tone_map, gamma=gamma, exposure=exposure)
    alpha = np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([rgb, alpha], axis=-1)


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Root mean squared error between two images of the same shape.

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")
    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))


def show_preview(
    renderer: ProgressiveRenderer,
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
    title: str | None = None,
    figsize: tuple[float, float] = (8, 6),
    block: bool = True,
) -> None:
    """Show the current running average in a Matplotlib figure.

    Args:
        renderer: The ProgressiveRenderer instance to display.
        tone_map: Tone mapping method.
        gamma: Gamma value.
        exposure: Exposure value.
        title: Custom title (default shows the sample count).
        figsize: Figure size in inches (width, height).
        block: Whether to block execution until the figure is closed.
    """
    import matplotlib.pyplot as plt

    display_image = process_image_for_display(
        renderer.get_image_numpy(),
        tone_map=tone_map,
        gamma=gamma,
        exposure=exposure,
    )

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    ax.imshow(display_image)
    ax.axis("off")
    if title is None:
        title = (
            f"{renderer.width}x{renderer.height} - {renderer.sample_count} frames"
        )
    ax.set_title(title)

    plt.tight_layout()
    plt.show(block=block)
