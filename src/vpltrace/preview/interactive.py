"""Interactive preview window using Taichi GGUI.

The window shows the display buffer of a progressive render and refreshes
after every scanline pair. Once the image is complete it keeps showing the
final frame until the window is closed.

Example:
    >>> from vpltrace.core.progressive import ProgressiveRenderer
    >>> from vpltrace.preview.interactive import InteractivePreview
    >>>
    >>> renderer = ProgressiveRenderer.from_scene(scene, seed=1)
    >>> preview = InteractivePreview(renderer.width, renderer.height)
    >>> preview.run_progressive(renderer)
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import TYPE_CHECKING

import numpy as np
import taichi as ti

from vpltrace.preview.display import to_rgb

if TYPE_CHECKING:
    import numpy.typing as npt

    from vpltrace.core.progressive import ProgressiveRenderer


def display_to_canvas(image: npt.NDArray[np.uint8], channel_order: str = "rgb") -> npt.NDArray[np.float32]:
    """Convert a top-down display buffer to a GGUI canvas image.

    Taichi fields use (x, y) indexing with the origin at the bottom-left,
    so the rows are flipped and the axes transposed.

    Args:
        image: Display buffer of shape (height, width, 3), uint8.
        channel_order: Byte order of image, "rgb" or "bgr".

    Returns:
        Float32 array of shape (width, height, 3) in [0, 1].
    """
    rgb = to_rgb(image, channel_order).astype(np.float32) / 255.0
    return np.ascontiguousarray(np.transpose(np.flipud(rgb), (1, 0, 2)))


class InteractivePreview:
    """GGUI window that follows a ProgressiveRenderer.

    The Taichi field ``display_image`` holds the canvas image as (x, y)
    float RGB. The window itself is only opened by ``run_progressive`` so
    the preview can be built and fed images on a headless machine.
    """

    def __init__(self, width: int, height: int, *, title: str = "vpltrace - Progressive Preview") -> None:
        self.width = width
        self.height = height
        self._title = title
        self._progress = 0.0
        self._is_initialized = False
        self._window: ti.ui.Window | None = None
        self._canvas: ti.ui.Canvas | None = None
        self.display_image = ti.Vector.field(3, dtype=ti.f32, shape=(width, height))

    def _open(self) -> ti.ui.Window:
        if not self._is_initialized:
            self._window = ti.ui.Window(name=self._title, res=(self.width, self.height), vsync=True)
            self._canvas = self._window.get_canvas()
            self._is_initialized = True
        assert self._window is not None
        return self._window

    @property
    def progress(self) -> float:
        """Progress reported by the last traced step."""
        return self._progress

    def update_image(self, image: npt.NDArray[np.uint8], channel_order: str = "rgb") -> None:
        """Copy a (height, width, 3) display buffer into ``display_image``.

        Raises:
            ValueError: If the buffer does not match the window size.
        """
        expected = (self.height, self.width, 3)
        if image.shape != expected:
            raise ValueError(f"Display buffer of shape {image.shape} doesn't match expected {expected}")
        self.display_image.from_numpy(display_to_canvas(image, channel_order))

    def run_progressive(self, renderer: ProgressiveRenderer) -> None:
        """Trace one scanline pair per frame until the window is closed.

        The finished image stays on screen. Pressing ``p`` writes the
        current image to a timestamped PNG.
        """
        window = self._open()
        order = renderer.tracer.channel_order

        while window.running:
            if not renderer.is_complete:
                self._progress = renderer.step()
                self.update_image(renderer.tracer.display_buffer(), order)

            if any(event.key == "p" for event in window.get_events(ti.ui.PRESS)):
                self._export_png(renderer)

            self._canvas.set_image(self.display_image)
            window.show()

    def close(self) -> None:
        if self._window is not None:
            self._window.running = False

    def _export_png(self, renderer: ProgressiveRenderer) -> None:
        filename = f"vpltrace_{datetime.now():%Y%m%d_%H%M%S}.png"
        renderer.save_image(filename)
        print(f"Exported: {filename} ({self._progress:.0%} traced)")

    @staticmethod
    def is_display_available() -> bool:
        """Whether a window can be opened (False on headless machines)."""
        if os.name == "nt":
            return True
        if os.uname().sysname == "Darwin":
            # Remote shells only get a window through X forwarding
            return not (os.environ.get("SSH_CONNECTION") and not os.environ.get("DISPLAY"))
        return any(os.environ.get(name) for name in ("DISPLAY", "WAYLAND_DISPLAY"))
