"""Tests for the progressive renderer.

This module tests the ProgressiveRenderer class including:
- Construction from a scene
- Stepping scanline pairs and progress reporting
- Progress callbacks and generators
- Reset functionality
- Image output

Note: Imports are done inside test methods to avoid Taichi initialization issues.
The conftest.py fixture initializes Taichi before tests run.
"""

import numpy as np
import pytest


class TestProgressiveRendererInit:
    """Test ProgressiveRenderer construction."""

    def test_from_scene(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(width=6, height=4), seed=1)

        assert renderer.width == 6
        assert renderer.height == 4
        assert renderer.progress == 0.0
        assert not renderer.is_complete

    def test_from_scene_forwards_options(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(
            make_floor_and_light_scene(), seed=1, channel_order="bgr"
        )
        assert renderer.tracer.channel_order == "bgr"

    def test_from_invalid_scene_raises(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer
        from vpltrace.scene.model import SceneValidationError

        scene = make_floor_and_light_scene()
        scene.settings.rays_per_pixel = 0
        with pytest.raises(SceneValidationError):
            ProgressiveRenderer.from_scene(scene)


class TestProgressiveRendererStep:
    """Test single steps and full renders."""

    def test_step_returns_progress(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(height=8), seed=1)

        assert renderer.step() == 0.25
        assert renderer.step() == 0.5
        assert renderer.progress == 0.5

    def test_step_refreshes_display(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(), seed=1)
        renderer.step()
        renderer.step()

        display = renderer.tracer.display_buffer()
        assert display[1:3, 1:3].max() > 0

    def test_render_to_completion(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(height=6), seed=1)
        renderer.render()

        assert renderer.is_complete
        assert renderer.progress == 1.0


class TestProgressiveRendererCallbacks:
    """Test progress callbacks and the generator form."""

    def test_callback_receives_progress(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(height=5), seed=1)
        progress_values = []
        renderer.render(progress_values.append)

        assert progress_values == [0.4, 0.8, 1.0]

    def test_render_progressive_yields_progress(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(), seed=1)
        assert list(renderer.render_progressive()) == [0.5, 1.0]

    def test_render_progressive_interruptible(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(height=8), seed=1)
        for progress in renderer.render_progressive():
            if progress >= 0.5:
                break

        assert renderer.progress == 0.5
        assert not renderer.is_complete

        # Resuming continues from the next row
        renderer.render()
        assert renderer.is_complete

    def test_render_on_complete_image_does_nothing(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(), seed=1)
        renderer.render()
        calls = []
        renderer.render(calls.append)
        assert calls == []


class TestProgressiveRendererReset:
    def test_reset_restarts(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(), seed=1)
        renderer.render()
        renderer.reset()

        assert renderer.progress == 0.0
        assert not renderer.is_complete
        assert np.all(renderer.get_image_uint8() == 0)


class TestProgressiveRendererImageOutput:
    def test_get_image_uint8(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(width=6), seed=1)
        renderer.render()
        image = renderer.get_image_uint8()

        assert image.shape == (4, 6, 3)
        assert image.dtype == np.uint8

    def test_save_image(self, make_floor_and_light_scene, tmp_path):
        from PIL import Image as PILImage

        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(), seed=1)
        renderer.render()
        filepath = tmp_path / "render.png"
        renderer.save_image(filepath)

        assert filepath.exists()
        with PILImage.open(filepath) as img:
            assert img.size == (4, 4)
            assert img.mode == "RGB"

    def test_repr_shows_state(self, make_floor_and_light_scene):
        from vpltrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer.from_scene(make_floor_and_light_scene(), seed=1)
        renderer.step()
        assert repr(renderer) == "ProgressiveRenderer(width=4, height=4, progress=0.50)"
