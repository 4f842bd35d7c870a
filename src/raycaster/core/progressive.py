"""Progressive renderer tying scene hand-off, rendering and accumulation.

The ProgressiveRenderer is the frame loop between an external scene editor
and an external display:

- The editor calls submit() at any time, from any thread, with the latest
  immutable scene snapshot and camera. When it passes changed=True, or a
  scene or camera that differs from the previous submission, the
  accumulated image is stale.
- The render thread calls render_frame() repeatedly. At the start of each
  frame the latest submitted snapshot is uploaded into the fields and, if a
  change was signalled, the accumulation buffer is reset. Then one frame is
  rendered over tiles and merged into the running average.
- The display reads get_image_numpy() or get_image_rgba8() at any time.

If a change is submitted while a frame is rendering, that frame was computed
from an outdated scene. It is discarded instead of merged, so the running
average only ever contains whole frames of the current scene.

The render resolution is the display size times the render scale. Changing
either resizes the buffer, which resets accumulation.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, fast_math=False)
    >>> from raycaster.core.progressive import ProgressiveRenderer
    >>> from raycaster.scene.presets import create_default_scene
    >>>
    >>> snapshot, camera = create_default_scene()
    >>> renderer = ProgressiveRenderer(640, 480)
    >>> renderer.submit(snapshot, camera, changed=True)
    >>> renderer.render(16)  # Accumulate 16 frames
    >>> image = renderer.get_image_numpy()
"""

import dataclasses
import logging
import threading
from collections.abc import Callable, Generator

import numpy as np
import numpy.typing as npt

from raycaster.camera.pinhole import setup_camera
from raycaster.camera.view import Camera
from raycaster.core.accumulation import AccumulationBuffer
from raycaster.core.renderer import render_frame_buffer
from raycaster.core.settings import RenderSettings, scaled_resolution
from raycaster.preview.display import to_rgba8
from raycaster.scene.manager import SceneManager
from raycaster.scene.snapshot import SceneSnapshot

logger = logging.getLogger(__name__)

# Type alias for progress callback
# Callback receives (frames_rendered, frames_requested)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """Frame loop with temporal accumulation.

    The renderer owns the accumulation buffer and the GPU-side scene. Only
    the thread that calls render_frame() (and the resize/settings methods)
    touches Taichi fields; submit() only records the next snapshot.

    Attributes:
        settings: The active render settings.
        frames_discarded: Frames dropped because a change arrived mid-frame.
    """

    def __init__(
        self,
        display_width: int,
        display_height: int,
        settings: RenderSettings | None = None,
    ) -> None:
        """Initialize the renderer.

        Args:
            display_width: Width of the display surface in pixels.
            display_height: Height of the display surface in pixels.
            settings: Render settings. Defaults to RenderSettings().

        Raises:
            ValueError: If the scaled resolution exceeds the maximum
                supported size or the display size is not positive.
        """
        self.settings = settings if settings is not None else RenderSettings()
        self._display_width = display_width
        self._display_height = display_height
        width, height = scaled_resolution(display_width, display_height, self.settings.render_scale)
        self._buffer = AccumulationBuffer(width, height)
        self._scene_manager = SceneManager()
        self._scene_manager.apply_settings(self.settings)

        self._submit_lock = threading.Lock()
        self._pending: tuple[SceneSnapshot, Camera] | None = None
        self._pending_changed = False
        self._generation = 0
        self._submitted: tuple[SceneSnapshot, Camera] | None = None

        self._scene: SceneSnapshot | None = None
        self._camera: Camera | None = None
        self._camera_ready = False
        self.frames_discarded = 0

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def width(self) -> int:
        """Render width in pixels."""
        return self._buffer.width

    @property
    def height(self) -> int:
        """Render height in pixels."""
        return self._buffer.height

    @property
    def render_scale(self) -> float:
        return self.settings.render_scale

    @property
    def sample_count(self) -> int:
        """Number of frames in the current running average."""
        return self._buffer.sample_count

    @property
    def accumulation(self) -> AccumulationBuffer:
        return self._buffer

    # =========================================================================
    # Editor Hand-off
    # =========================================================================

    def submit(self, scene: SceneSnapshot, camera: Camera, changed: bool = True) -> None:
        """Queue a scene and camera for the next frame boundary.

        Safe to call from any thread, including while a frame renders.

        A scene or camera that differs from the previously submitted one is
        treated as changed even when ``changed`` is False, so two different
        views never share one running average.

        Args:
            scene: The scene snapshot to render from the next frame on.
            camera: The camera to render from.
            changed: Whether the scene or camera differs from what is being
                accumulated. True resets the accumulation at the next frame
                boundary and invalidates the frame in flight.
        """
        with self._submit_lock:
            if not changed and self._submitted is not None:
                last_scene, last_camera = self._submitted
                if camera != last_camera or (scene is not last_scene and scene != last_scene):
                    logger.debug("Submitted scene or camera differs; treating as changed")
                    changed = True
            self._pending = (scene, camera)
            self._submitted = (scene, camera)
            if changed:
                self._pending_changed = True
                self._generation += 1

    def _apply_pending(self) -> int:
        """Upload the queued snapshot, if any. Render thread only.

        Returns:
            The generation the uploaded state belongs to. It is read together
            with the queued snapshot, so any later change makes the frame
            stale.
        """
        with self._submit_lock:
            pending = self._pending
            changed = self._pending_changed
            generation = self._generation
            self._pending = None
            self._pending_changed = False

        if pending is not None:
            scene, camera = pending
            if changed or scene is not self._scene:
                self._scene_manager.apply(scene)
                self._scene = scene
            if changed or camera != self._camera or not self._camera_ready:
                self._camera = camera
                setup_camera(camera, self.width, self.height)
                self._camera_ready = True

        if changed:
            self._buffer.reset()
            logger.debug("Scene or camera changed; accumulation reset")
        return generation

    # =========================================================================
    # Rendering
    # =========================================================================

    def render_frame(self) -> bool:
        """Render one frame and merge it into the running average.

        Returns:
            True if the frame was merged, False if it was discarded because a
            change was submitted while it rendered.

        Raises:
            RuntimeError: If nothing has been submitted yet.
        """
        generation = self._apply_pending()
        if self._scene is None or self._camera is None:
            raise RuntimeError("No scene submitted; call submit() before rendering")
        if not self._camera_ready:
            setup_camera(self._camera, self.width, self.height)
            self._camera_ready = True

        frame_index = self._buffer.sample_count
        invalid = render_frame_buffer(self.width, self.height, frame_index, self.settings)

        with self._submit_lock:
            stale = generation != self._generation
        if stale:
            self.frames_discarded += 1
            logger.debug("Discarded frame %d: scene changed while rendering", frame_index)
            return False

        if invalid > 0:
            logger.warning(
                "%d pixel(s) produced non-finite colors in frame %d", invalid, frame_index
            )
        self._buffer.integrate_frame_buffer()
        return True

    def render(
        self,
        num_frames: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Render several frames with an optional progress callback.

        Args:
            num_frames: Number of frames to render.
            callback: Optional callback called after each frame.
                Receives (frames_rendered, num_frames).

        Example:
            >>> def progress(current, target):
            ...     print(f"Progress: {current}/{target} frames")
            >>> renderer.render(100, callback=progress)
        """
        for _ in self.render_progressive(num_frames, callback=callback):
            pass

    def render_progressive(
        self,
        num_frames: int = 1,
        callback: ProgressCallback | None = None,
    ) -> Generator[tuple[int, int], None, None]:
        """Render frames, yielding progress after each one.

        This is a generator-based alternative to render(), useful when the
        caller wants to interleave display updates or cancellation checks.

        Args:
            num_frames: Number of frames to render.
            callback: Optional callback called after each frame.

        Yields:
            Tuple of (frames_rendered, num_frames).
        """
        if num_frames <= 0:
            return
        for done in range(1, num_frames + 1):
            self.render_frame()
            if callback is not None:
                callback(done, num_frames)
            yield (done, num_frames)

    # =========================================================================
    # Resolution and Settings
    # =========================================================================

    def _resize_buffer(self, width: int, height: int) -> None:
        if (width, height) != (self.width, self.height):
            self._buffer.resize(width, height)
            self._camera_ready = False
            logger.info("Render resolution changed to %dx%d", width, height)

    def set_render_scale(self, render_scale: float) -> None:
        """Change the render scale.

        Resizes and resets the accumulation if the render resolution changes.

        Raises:
            ValueError: If render_scale is outside (0, 1].
        """
        self.settings = dataclasses.replace(self.settings, render_scale=render_scale)
        self._resize_buffer(
            *scaled_resolution(self._display_width, self._display_height, render_scale)
        )

    def resize_display(self, display_width: int, display_height: int) -> None:
        """Handle a display size change.

        Raises:
            ValueError: If the display size is not positive or the scaled
                resolution exceeds the maximum.
        """
        width, height = scaled_resolution(
            display_width, display_height, self.settings.render_scale
        )
        self._display_width = display_width
        self._display_height = display_height
        self._resize_buffer(width, height)

    def update_settings(self, settings: RenderSettings) -> None:
        """Replace the render settings.

        A change of shading knobs, seed or jitter resets the accumulation.
        A change of render scale resizes the buffer. Tile size and worker
        count do not affect the image and keep the accumulation.
        """
        old = self.settings
        self.settings = settings
        if settings.shading_key() != old.shading_key():
            self._scene_manager.apply_settings(settings)
            self._buffer.reset()
            logger.debug("Shading settings changed; accumulation reset")
        if settings.render_scale != old.render_scale:
            self._resize_buffer(
                *scaled_resolution(
                    self._display_width, self._display_height, settings.render_scale
                )
            )

    def reset(self) -> None:
        """Discard the accumulated frames."""
        self._buffer.reset()

    # =========================================================================
    # Output
    # =========================================================================

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Current running average in linear color.

        Returns:
            NumPy array of shape (height, width, 3) with dtype float32.
        """
        return self._buffer.current_average()

    def get_image_rgba8(self, exposure: float = 1.0, gamma: float = 2.2) -> npt.NDArray[np.uint8]:
        """Current running average prepared for an 8-bit display surface.

        Returns:
            NumPy array of shape (height, width, 4) with dtype uint8.
        """
        return to_rgba8(self.get_image_numpy(), exposure=exposure, gamma=gamma)

    def __repr__(self) -> str:
        """Return a string representation of the renderer state."""
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )
