"""Tests for tiled frame rendering.

Tests cover:
- Output shape and the center pixel of the single sphere scene
- Geometry beyond the camera far clip still rendered
- Row 0 at the top of the image
- Bit-identical frames across worker counts and tile sizes
- Strict floating-point math and the fast-math warning
- Jitter patterns selected by the frame index and seed
- Non-finite colors replaced with the sentinel and counted
- Resolution validation
"""

import logging

import numpy as np
import pytest

from raycaster.camera.view import Camera
from raycaster.core.settings import RenderSettings
from raycaster.scene.presets import create_default_scene, create_single_sphere_scene
from raycaster.scene.snapshot import (
    BLACK_SKY,
    DirectionalLight,
    MaterialInfo,
    SceneSnapshot,
    SphereInfo,
)


class TestRenderFrame:
    """Tests for single-frame rendering."""

    def test_shape_and_dtype(self):
        """Test that the frame is (height, width, 3) float32."""
        from raycaster.core.renderer import render_frame

        snapshot, camera = create_default_scene()
        image = render_frame(snapshot, camera, (40, 30), settings=RenderSettings())

        assert image.shape == (30, 40, 3)
        assert image.dtype == np.float32
        assert np.all(np.isfinite(image))
        assert np.all(image >= 0.0)

    def test_center_pixel_of_single_sphere(self):
        """Test the center pixel against albedo * (ambient + intensity)."""
        from raycaster.core.renderer import render_frame

        albedo = (0.8, 0.3, 0.3)
        snapshot, camera = create_single_sphere_scene(albedo=albedo)
        settings = RenderSettings(jitter=False, ambient=0.05)
        image = render_frame(snapshot, camera, (33, 33), settings=settings)

        expected = [a * 1.05 for a in albedo]
        np.testing.assert_allclose(image[16, 16], expected, atol=1e-5)
        # Corners see the black sky
        np.testing.assert_allclose(image[0, 0], [0.0, 0.0, 0.0])

    def test_hits_beyond_far_clip_are_rendered(self):
        """Test that far_clip does not cut off geometry behind it."""
        import dataclasses

        from raycaster.core.renderer import render_frame

        albedo = (0.8, 0.3, 0.3)
        snapshot, camera = create_single_sphere_scene(albedo=albedo)
        # The sphere surface is 4 units away
        near_camera = dataclasses.replace(camera, far_clip=2.0)
        settings = RenderSettings(jitter=False, ambient=0.05)
        image = render_frame(snapshot, near_camera, (33, 33), settings=settings)

        expected = [a * 1.05 for a in albedo]
        np.testing.assert_allclose(image[16, 16], expected, atol=1e-5)

    def test_row_zero_is_top(self):
        """Test that an object above the view axis appears in the top rows."""
        from raycaster.core.renderer import render_frame

        snapshot = SceneSnapshot(
            materials=(MaterialInfo(albedo=(1.0, 1.0, 1.0)),),
            spheres=(SphereInfo(center=(0.0, 1.5, -5.0), radius=1.0),),
            sky=BLACK_SKY,
            lights=(DirectionalLight(direction=(0.0, 0.0, 1.0)),),
        )
        camera = Camera(position=(0.0, 0.0, 0.0), forward=(0.0, 0.0, -1.0))
        image = render_frame(snapshot, camera, (32, 32), settings=RenderSettings(jitter=False))

        brightness = image.sum(axis=(1, 2))
        assert brightness[:16].sum() > 0.0
        assert brightness[16:].sum() == 0.0

    @pytest.mark.parametrize("resolution", [(0, 10), (10, 0), (4096, 10)])
    def test_invalid_resolution_raises(self, resolution):
        """Test that resolutions outside the buffers are rejected."""
        from raycaster.core.renderer import render_frame

        snapshot, camera = create_default_scene()
        with pytest.raises(ValueError):
            render_frame(snapshot, camera, resolution)


class TestDeterminism:
    """Tests for reproducible frames."""

    def test_identical_across_workers_and_tiles(self):
        """Test that worker count and tile size never change the image."""
        from raycaster.core.renderer import render_frame

        snapshot, camera = create_default_scene(with_box=True)
        reference = render_frame(
            snapshot, camera, (48, 36), settings=RenderSettings(workers=1, tile_size=16), frame_index=3
        )
        for workers, tile_size in [(4, 16), (4, 7), (2, 1), (1, 64)]:
            image = render_frame(
                snapshot,
                camera,
                (48, 36),
                settings=RenderSettings(workers=workers, tile_size=tile_size),
                frame_index=3,
            )
            np.testing.assert_array_equal(image, reference)

    def test_same_frame_index_same_image(self):
        """Test that rendering the same frame twice gives the same pixels."""
        from raycaster.core.renderer import render_frame

        snapshot, camera = create_default_scene()
        first = render_frame(snapshot, camera, (24, 24), frame_index=5)
        second = render_frame(snapshot, camera, (24, 24), frame_index=5)
        np.testing.assert_array_equal(first, second)

    def test_jitter_varies_with_frame_and_seed(self):
        """Test that frame index and seed select different jitter patterns."""
        from raycaster.core.renderer import render_frame

        snapshot, camera = create_default_scene()
        base = render_frame(snapshot, camera, (24, 24), frame_index=0)
        next_frame = render_frame(snapshot, camera, (24, 24), frame_index=1)
        other_seed = render_frame(
            snapshot, camera, (24, 24), settings=RenderSettings(seed=99), frame_index=0
        )
        assert not np.array_equal(base, next_frame)
        assert not np.array_equal(base, other_seed)

    def test_without_jitter_frames_are_identical(self):
        """Test that disabling jitter makes every frame the same."""
        from raycaster.core.renderer import render_frame

        snapshot, camera = create_default_scene()
        settings = RenderSettings(jitter=False)
        first = render_frame(snapshot, camera, (24, 24), settings=settings, frame_index=0)
        later = render_frame(snapshot, camera, (24, 24), settings=settings, frame_index=7)
        np.testing.assert_array_equal(first, later)


class TestInvalidPixels:
    """Tests for the sentinel color."""

    def test_non_finite_colors_become_sentinel(self):
        """Test that infinite radiance yields magenta pixels and a count."""
        from raycaster.camera.pinhole import setup_camera
        from raycaster.core.renderer import (
            SENTINEL_COLOR,
            frame_to_numpy,
            get_invalid_pixel_count,
            render_frame_buffer,
        )
        from raycaster.scene import environment
        from raycaster.scene.manager import SceneManager

        snapshot, camera = create_single_sphere_scene()
        settings = RenderSettings(jitter=False)
        manager = SceneManager()
        manager.apply(snapshot)
        manager.apply_settings(settings)
        setup_camera(camera, 33, 33)

        environment.light_radiances[0] = (np.inf, np.inf, np.inf)

        invalid = render_frame_buffer(33, 33, 0, settings)
        image = frame_to_numpy(33, 33)

        assert invalid > 0
        assert invalid == get_invalid_pixel_count()
        np.testing.assert_array_equal(image[16, 16], np.array(SENTINEL_COLOR, dtype=np.float32))
        # Pixels that miss the sphere are unaffected
        np.testing.assert_array_equal(image[0, 0], [0.0, 0.0, 0.0])
        magenta = np.all(image == np.array(SENTINEL_COLOR, dtype=np.float32), axis=-1)
        assert magenta.sum() == invalid

    def test_valid_frame_has_no_sentinels(self):
        """Test that an ordinary frame reports zero invalid pixels."""
        from raycaster.core.renderer import get_invalid_pixel_count, render_frame

        snapshot, camera = create_default_scene()
        render_frame(snapshot, camera, (24, 24))
        assert get_invalid_pixel_count() == 0


class TestStrictMath:
    """Tests for the floating-point mode check."""

    def test_session_runs_with_strict_math(self):
        """Test that the test session initializes Taichi without fast math."""
        from raycaster.core.renderer import strict_math_enabled

        assert strict_math_enabled() is True

    def test_fast_math_warns_once(self, monkeypatch, caplog):
        """Test that rendering under fast math logs a single warning."""
        from raycaster.core import renderer

        monkeypatch.setattr(renderer, "strict_math_enabled", lambda: False)
        monkeypatch.setattr(renderer, "_fast_math_warned", False)

        snapshot, camera = create_single_sphere_scene()
        with caplog.at_level(logging.WARNING, logger="raycaster.core.renderer"):
            renderer.render_frame(snapshot, camera, (8, 8))
            renderer.render_frame(snapshot, camera, (8, 8))

        warnings = [r for r in caplog.records if "fast_math" in r.getMessage()]
        assert len(warnings) == 1

    def test_strict_math_does_not_warn(self, monkeypatch, caplog):
        """Test that no warning is logged under strict math."""
        from raycaster.core import renderer

        monkeypatch.setattr(renderer, "_fast_math_warned", False)

        snapshot, camera = create_single_sphere_scene()
        with caplog.at_level(logging.WARNING, logger="raycaster.core.renderer"):
            renderer.render_frame(snapshot, camera, (8, 8))

        assert not [r for r in caplog.records if "fast_math" in r.getMessage()]
