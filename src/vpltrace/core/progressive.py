"""Progressive renderer driving a PathTracer scanline pair by scanline pair.

This module provides a convenient wrapper around the path tracer that
supports:
- Stepping one scanline pair at a time, refreshing the display buffer
- Running to completion with a progress callback
- A generator form for integration with UI or event loops
- Reset and PNG export

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from vpltrace.core.progressive import ProgressiveRenderer
    >>> from vpltrace.scene.cornell_box import create_cornell_box_scene
    >>>
    >>> renderer = ProgressiveRenderer.from_scene(create_cornell_box_scene(), seed=1)
    >>> renderer.render(lambda progress: print(f"{progress:.0%}"))
    >>> renderer.save_image("cornell.png")
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import numpy as np
import numpy.typing as npt

from vpltrace.core.integrator import PathTracer
from vpltrace.preview.export import save_png
from vpltrace.scene.intersection import SceneModel
from vpltrace.scene.model import Scene

# Type alias for progress callback
# Callback receives the fraction of rows traced so far
ProgressCallback = Callable[[float], None]


class ProgressiveRenderer:
    """Drive a PathTracer to completion, one scanline pair per step.

    Attributes:
        tracer: The wrapped PathTracer.
    """

    def __init__(self, tracer: PathTracer) -> None:
        self.tracer = tracer

    @classmethod
    def from_scene(cls, scene: Scene, seed: int | None = None, **options: Any) -> ProgressiveRenderer:
        """Build the scene model and tracer for a scene.

        Args:
            scene: The scene to render.
            seed: Seed for the render's random generator.
            **options: Further PathTracer keyword options.

        Raises:
            SceneValidationError: If the scene is not renderable.
        """
        return cls(PathTracer(SceneModel(scene), seed, **options))

    @property
    def width(self) -> int:
        return self.tracer.width

    @property
    def height(self) -> int:
        return self.tracer.height

    @property
    def progress(self) -> float:
        """Fraction of rows traced, in [0, 1]."""
        return self.tracer.progress

    @property
    def is_complete(self) -> bool:
        return not self.tracer.is_tracing()

    def step(self) -> float:
        """Trace the next scanline pair and refresh the display buffer.

        Returns:
            The progress after the step.
        """
        self.tracer.trace_scanline_pair()
        self.tracer.update_display()
        return self.tracer.progress

    def render(self, callback: ProgressCallback | None = None) -> None:
        """Trace the remaining rows of the image.

        Args:
            callback: Optional function called with the progress after
                every scanline pair.

        Example:
            >>> renderer.render(lambda p: print(f"Progress: {p:.0%}"))
        """
        while self.tracer.is_tracing():
            progress = self.step()
            if callback is not None:
                callback(progress)

    def render_progressive(self) -> Generator[float, None, None]:
        """Trace the remaining rows, yielding the progress after each step.

        This is a generator-based alternative to render() with callbacks;
        stopping iteration leaves a valid partial image.

        Yields:
            The fraction of rows traced so far.
        """
        while self.tracer.is_tracing():
            yield self.step()

    def reset(self) -> None:
        """Clear the image and restart from the first row."""
        self.tracer.reset()

    def get_image_uint8(self) -> npt.NDArray[np.uint8]:
        """The current display buffer, shape (height, width, 3)."""
        return self.tracer.update_display()

    def save_image(self, filepath: str | Path) -> None:
        """Save the current image as a PNG file."""
        save_png(self.tracer, filepath)

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"progress={self.progress:.2f})"
        )
