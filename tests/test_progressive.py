"""Tests for the progressive renderer.

This module tests the ProgressiveRenderer class including:
- Render resolution from display size and render scale
- Accumulation across frames of an unchanged scene
- Resets on scene, camera, resolution and shading changes
- Discarding frames invalidated mid-render
- Progress callbacks and generators
- Image output for display

Note: Imports are done inside test methods to avoid Taichi initialization issues.
The conftest.py fixture initializes Taichi before tests run.
"""

import dataclasses

import numpy as np
import pytest

from raycaster.core.settings import RenderSettings
from raycaster.scene.presets import create_default_scene, create_single_sphere_scene

FULL_SCALE = RenderSettings(render_scale=1.0)


def _make_renderer(width=16, height=16, settings=FULL_SCALE):
    from raycaster.core.progressive import ProgressiveRenderer

    renderer = ProgressiveRenderer(width, height, settings=settings)
    snapshot, camera = create_default_scene()
    renderer.submit(snapshot, camera, changed=True)
    return renderer, snapshot, camera


class TestProgressiveRendererInit:
    """Test ProgressiveRenderer initialization."""

    def test_default_render_scale(self):
        """Test that the default settings render at 75% of the display size."""
        from raycaster.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(64, 48)

        assert renderer.render_scale == 0.75
        assert (renderer.width, renderer.height) == (48, 36)
        assert renderer.sample_count == 0

    def test_explicit_render_scale(self):
        """Test render resolution with a custom scale."""
        from raycaster.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(100, 50, settings=RenderSettings(render_scale=0.5))
        assert (renderer.width, renderer.height) == (50, 25)

    def test_init_rejects_oversized_dimensions(self):
        """Test that resolutions above the buffer size are rejected."""
        from raycaster.core.progressive import ProgressiveRenderer

        with pytest.raises(ValueError, match="exceeds maximum"):
            ProgressiveRenderer(4096, 100, settings=FULL_SCALE)

    def test_render_before_submit_raises(self):
        """Test that rendering without a scene is an error."""
        from raycaster.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(16, 16)
        with pytest.raises(RuntimeError, match="No scene submitted"):
            renderer.render_frame()


class TestAccumulation:
    """Test accumulation across frames."""

    def test_render_accumulates_samples(self):
        """Test that every merged frame increments the sample count."""
        renderer, _snapshot, _camera = _make_renderer()

        assert renderer.render_frame() is True
        assert renderer.sample_count == 1

        renderer.render(4)
        assert renderer.sample_count == 5

    def test_unchanged_resubmit_keeps_samples(self):
        """Test that changed=False keeps accumulating."""
        renderer, snapshot, camera = _make_renderer()
        renderer.render(3)

        renderer.submit(snapshot, camera, changed=False)
        renderer.render_frame()

        assert renderer.sample_count == 4

    def test_moved_camera_without_changed_flag_resets(self):
        """Test that a different camera restarts accumulation even with changed=False."""
        renderer, snapshot, camera = _make_renderer()
        renderer.render(3)

        renderer.submit(snapshot, camera.moved((0.0, 2.0, 0.0)), changed=False)
        renderer.render_frame()

        assert renderer.sample_count == 1

    def test_equal_snapshot_without_changed_flag_keeps_samples(self):
        """Test that an equal rebuilt snapshot keeps accumulating."""
        renderer, _snapshot, camera = _make_renderer()
        renderer.render(3)

        rebuilt, _camera = create_default_scene()
        renderer.submit(rebuilt, camera, changed=False)
        renderer.render_frame()

        assert renderer.sample_count == 4

    def test_different_snapshot_without_changed_flag_resets(self):
        """Test that a different scene restarts accumulation even with changed=False."""
        renderer, _snapshot, camera = _make_renderer()
        renderer.render(3)

        single, _camera = create_single_sphere_scene()
        renderer.submit(single, camera, changed=False)
        renderer.render_frame()

        assert renderer.sample_count == 1

    def test_camera_change_resets(self):
        """Test that a changed camera restarts the accumulation."""
        renderer, snapshot, camera = _make_renderer()
        renderer.render(3)
        before = renderer.get_image_numpy()

        renderer.submit(snapshot, camera.moved((0.5, 0.0, 0.0)), changed=True)
        renderer.render_frame()

        assert renderer.sample_count == 1
        assert not np.array_equal(renderer.get_image_numpy(), before)

    def test_scene_change_resets(self):
        """Test that a new snapshot restarts the accumulation."""
        renderer, _snapshot, _camera = _make_renderer()
        renderer.render(3)

        single, camera = create_single_sphere_scene()
        renderer.submit(single, camera, changed=True)
        renderer.render_frame()

        assert renderer.sample_count == 1

    def test_converges_to_single_frame_without_jitter(self):
        """Test that identical frames average to that frame."""
        from raycaster.core.renderer import render_frame

        settings = RenderSettings(render_scale=1.0, jitter=False)
        renderer, snapshot, camera = _make_renderer(settings=settings)
        renderer.render(4)

        single = render_frame(snapshot, camera, (16, 16), settings=settings)
        np.testing.assert_allclose(renderer.get_image_numpy(), single, atol=1e-5)

    def test_reset_clears_samples(self):
        """Test that reset clears the count and the image."""
        renderer, _snapshot, _camera = _make_renderer()
        renderer.render(3)
        renderer.reset()

        assert renderer.sample_count == 0
        assert np.allclose(renderer.get_image_numpy(), 0.0)


class TestStaleFrames:
    """Test frames invalidated while rendering."""

    def test_change_during_frame_discards_it(self, monkeypatch):
        """Test that a frame whose scene changed mid-render is not merged."""
        import raycaster.core.progressive as progressive

        renderer, snapshot, camera = _make_renderer()
        renderer.render(2)

        real_render = progressive.render_frame_buffer
        moved = camera.moved((0.0, 0.5, 0.0))

        def render_with_edit(*args, **kwargs):
            result = real_render(*args, **kwargs)
            renderer.submit(snapshot, moved, changed=True)
            return result

        monkeypatch.setattr(progressive, "render_frame_buffer", render_with_edit)
        assert renderer.render_frame() is False
        assert renderer.frames_discarded == 1
        assert renderer.sample_count == 2

        monkeypatch.setattr(progressive, "render_frame_buffer", real_render)
        assert renderer.render_frame() is True
        assert renderer.sample_count == 1

    def test_change_during_upload_discards_frame(self, monkeypatch):
        """Test that a change landing while the previous snapshot uploads is caught."""
        renderer, snapshot, camera = _make_renderer()
        moved = camera.moved((0.0, 0.5, 0.0))
        real_reset = renderer.accumulation.reset
        submitted = []

        def reset_with_edit():
            real_reset()
            if not submitted:
                submitted.append(True)
                renderer.submit(snapshot, moved, changed=True)

        monkeypatch.setattr(renderer.accumulation, "reset", reset_with_edit)

        assert renderer.render_frame() is False
        assert renderer.frames_discarded == 1
        assert renderer.sample_count == 0

        assert renderer.render_frame() is True
        assert renderer.sample_count == 1

    def test_unchanged_submit_during_frame_keeps_it(self, monkeypatch):
        """Test that a changed=False submit does not invalidate the frame."""
        import raycaster.core.progressive as progressive

        renderer, snapshot, camera = _make_renderer()
        real_render = progressive.render_frame_buffer

        def render_with_resubmit(*args, **kwargs):
            result = real_render(*args, **kwargs)
            renderer.submit(snapshot, camera, changed=False)
            return result

        monkeypatch.setattr(progressive, "render_frame_buffer", render_with_resubmit)
        assert renderer.render_frame() is True
        assert renderer.frames_discarded == 0
        assert renderer.sample_count == 1


class TestResolutionAndSettings:
    """Test resolution and settings changes."""

    def test_render_scale_change_resizes_and_resets(self):
        """Test that a new render scale changes the buffer and resets."""
        renderer, _snapshot, _camera = _make_renderer(32, 32)
        renderer.render(2)

        renderer.set_render_scale(0.5)

        assert (renderer.width, renderer.height) == (16, 16)
        assert renderer.sample_count == 0
        renderer.render_frame()
        assert renderer.get_image_numpy().shape == (16, 16, 3)

    def test_invalid_render_scale_rejected(self):
        """Test that render scales outside (0, 1] are rejected."""
        renderer, _snapshot, _camera = _make_renderer()
        with pytest.raises(ValueError, match="render_scale"):
            renderer.set_render_scale(0.0)
        with pytest.raises(ValueError, match="render_scale"):
            renderer.set_render_scale(1.5)

    def test_resize_display(self):
        """Test that a display resize changes the render resolution."""
        renderer, _snapshot, _camera = _make_renderer(16, 16)
        renderer.render(2)

        renderer.resize_display(40, 20)

        assert (renderer.width, renderer.height) == (40, 20)
        assert renderer.sample_count == 0
        renderer.render_frame()
        assert renderer.sample_count == 1

    def test_resize_to_same_resolution_keeps_samples(self):
        """Test that a display resize with the same result is a no-op."""
        renderer, _snapshot, _camera = _make_renderer(16, 16)
        renderer.render(2)

        renderer.resize_display(16, 16)
        assert renderer.sample_count == 2

    def test_shading_change_resets(self):
        """Test that changing a shading knob restarts the accumulation."""
        renderer, _snapshot, _camera = _make_renderer()
        renderer.render(2)

        renderer.update_settings(dataclasses.replace(renderer.settings, ambient=0.2))
        assert renderer.sample_count == 0

    def test_tile_and_worker_change_keeps_samples(self):
        """Test that scheduling settings leave the accumulation alone."""
        renderer, _snapshot, _camera = _make_renderer()
        renderer.render(2)

        renderer.update_settings(dataclasses.replace(renderer.settings, tile_size=4, workers=2))
        renderer.render_frame()
        assert renderer.sample_count == 3


class TestProgressCallbacks:
    """Test batch rendering helpers."""

    def test_callback_receives_progress(self):
        """Test that the callback is called once per frame."""
        renderer, _snapshot, _camera = _make_renderer()
        calls = []

        renderer.render(3, callback=lambda done, total: calls.append((done, total)))

        assert calls == [(1, 3), (2, 3), (3, 3)]

    def test_generator_yields_progress(self):
        """Test the generator form of render()."""
        renderer, _snapshot, _camera = _make_renderer()

        progress = list(renderer.render_progressive(2))

        assert progress == [(1, 2), (2, 2)]
        assert renderer.sample_count == 2

    def test_zero_frames_does_nothing(self):
        """Test that rendering zero frames has no effect."""
        renderer, _snapshot, _camera = _make_renderer()
        renderer.render(0)
        assert renderer.sample_count == 0


class TestImageOutput:
    """Test image output formats."""

    def test_get_image_numpy(self):
        """Test the linear float image."""
        renderer, _snapshot, _camera = _make_renderer(20, 10)
        renderer.render(1)

        image = renderer.get_image_numpy()
        assert image.shape == (10, 20, 3)
        assert image.dtype == np.float32
        assert image.max() > 0.0

    def test_get_image_rgba8(self):
        """Test the 8-bit RGBA image for display surfaces."""
        renderer, _snapshot, _camera = _make_renderer(20, 10)
        renderer.render(1)

        pixels = renderer.get_image_rgba8()
        assert pixels.shape == (10, 20, 4)
        assert pixels.dtype == np.uint8
        assert np.all(pixels[..., 3] == 255)

    def test_repr(self):
        """Test the string representation."""
        renderer, _snapshot, _camera = _make_renderer(20, 10)
        assert repr(renderer) == "ProgressiveRenderer(width=20, height=10, samples=0)"
