"""Image export of the tone-mapped display buffer.

Supported formats:
    - PNG (8-bit RGB via Pillow)

Example:
    >>> from vpltrace.preview.export import save_png
    >>> while tracer.is_tracing():
    ...     tracer.trace_scanline_pair()
    >>> save_png(tracer, "output.png")
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

from vpltrace.preview.display import CHANNEL_ORDERS, to_rgb

if TYPE_CHECKING:
    from vpltrace.core.integrator import PathTracer


def save_png(tracer: PathTracer, filepath: str | Path) -> None:
    """Tone map the tracer's finished rows and save them as a PNG file.

    Args:
        tracer: The PathTracer whose image to save.
        filepath: Output file path (should end in .png).
    """
    save_png_from_array(tracer.update_display(), filepath, channel_order=tracer.channel_order)


def save_png_from_array(
    image: npt.NDArray[np.uint8],
    filepath: str | Path,
    *,
    channel_order: str = "rgb",
) -> None:
    """Save a display buffer as a PNG file.

    Args:
        image: Array of shape (H, W, 3) with dtype uint8.
        filepath: Output file path (should end in .png).
        channel_order: Byte order of image, "rgb" or "bgr".

    Raises:
        ValueError: If the image is not an (H, W, 3) uint8 array or the
            channel order is unknown.
    """
    if channel_order not in CHANNEL_ORDERS:
        raise ValueError(f"Unknown channel order: {channel_order}")
    if image.ndim != 3 or image.shape[2] != 3 or image.dtype != np.uint8:
        raise ValueError(
            f"Expected an (H, W, 3) uint8 image, got shape {image.shape} and dtype {image.dtype}"
        )

    pil_image = PILImage.fromarray(np.ascontiguousarray(to_rgb(image, channel_order)))
    pil_image.save(filepath)
