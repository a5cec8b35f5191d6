"""Preview module for output and visualization.

Components:
    display: Saturation tone mapping and Matplotlib preview
    export: PNG export via Pillow
    interactive: Taichi GGUI progressive preview window

Example:
    >>> from vpltrace.preview import save_png, show_preview
    >>> tracer.trace_scanline_pair()
    >>> show_preview(tracer)
    >>> save_png(tracer, "output.png")

For the interactive GGUI preview:
    >>> from vpltrace.preview import InteractivePreview
    >>> preview = InteractivePreview(renderer.width, renderer.height)
    >>> preview.run_progressive(renderer)
"""

from vpltrace.preview.display import (
    CHANNEL_ORDERS,
    show_preview,
    to_rgb,
    tone_map_saturation,
)
from vpltrace.preview.export import save_png, save_png_from_array
from vpltrace.preview.interactive import InteractivePreview, display_to_canvas

__all__ = [
    # Interactive preview
    "InteractivePreview",
    "display_to_canvas",
    # Display functions
    "show_preview",
    "tone_map_saturation",
    "to_rgb",
    "CHANNEL_ORDERS",
    # Export functions
    "save_png",
    "save_png_from_array",
]
