"""Tone mapping and Matplotlib preview of the display buffer.

The radiance buffer is unbounded, so it is normalized against the
brightest channel of all finished rows. That maximum, scaled by the
scene's saturation factor, becomes the display ceiling and maps to 255.
A pixel whose own maximum channel exceeds the ceiling is scaled down as a
whole, which keeps its hue instead of clipping it towards white.

Example:
    >>> from vpltrace.preview.display import show_preview
    >>> tracer.trace_scanline_pair()
    >>> show_preview(tracer)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt

if TYPE_CHECKING:
    from vpltrace.core.integrator import PathTracer

# Supported byte orders of the display buffer
CHANNEL_ORDERS = ("rgb", "bgr")


def tone_map_saturation(
    radiance: npt.NDArray[np.floating],
    rows: int,
    saturation: float = 1.0,
    channel_order: str = "rgb",
) -> npt.NDArray[np.uint8]:
    """Normalize the first rows of a radiance buffer into display bytes.

    Args:
        radiance: Accumulated radiance of shape (H, W, 3), RGB.
        rows: Number of finished rows, counted from the top. Later rows are
            left zero.
        saturation: Scale applied to the brightest channel to obtain the
            display ceiling. Values below 1 brighten the image.
        channel_order: "rgb" or "bgr" byte order of the result.

    Returns:
        Array of shape (H, W, 3) with dtype uint8. Values are truncated, not
        rounded.

    Raises:
        ValueError: If channel_order is not supported.
    """
    if channel_order not in CHANNEL_ORDERS:
        raise ValueError(f"Unknown channel order: {channel_order}")

    height, width = radiance.shape[:2]
    result = np.zeros((height, width, 3), dtype=np.uint8)
    rows = min(max(rows, 0), height)
    if rows == 0:
        return result

    active = radiance[:rows].astype(np.float64)
    ceiling = float(active.max()) * saturation
    if ceiling <= 0.0:
        return result

    pixel_max = active.max(axis=2, keepdims=True)
    multiplier = np.full(pixel_max.shape, 255.0 / ceiling)

    # Compress over-bright pixels uniformly across channels
    over = pixel_max > ceiling
    multiplier[over] *= ceiling / pixel_max[over]

    values = np.clip(active * multiplier, 0.0, 255.0).astype(np.uint8)
    if channel_order == "bgr":
        values = values[..., ::-1]
    result[:rows] = values
    return result


def to_rgb(image: npt.NDArray[np.uint8], channel_order: str) -> npt.NDArray[np.uint8]:
    """Return a display buffer in RGB order."""
    if channel_order == "bgr":
        return np.ascontiguousarray(image[..., ::-1])
    return image


def show_preview(
    tracer: PathTracer,
    *,
    title: str | None = None,
    figsize: tuple[float, float] = (8, 8),
    block: bool = True,
) -> None:
    """Display the tracer's current image as a Matplotlib figure.

    The display buffer is refreshed first; the title shows the progress.

    Args:
        tracer: The PathTracer to display.
        title: Custom title (default shows progress).
        figsize: Figure size in inches (width, height).
        block: Whether to block execution until the figure is closed.
    """
    import matplotlib.pyplot as plt

    image = to_rgb(tracer.update_display(), tracer.channel_order)

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    ax.imshow(image)
    ax.axis("off")

    if title is None:
        title = f"Render Preview - {tracer.progress:.0%} traced"
    ax.set_title(title)

    plt.tight_layout()
    plt.show(block=block)
