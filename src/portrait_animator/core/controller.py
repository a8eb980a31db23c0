"""
Portrait controller: the only writer of PortraitState.

Runs generate/edit/animate/export through their orchestrators, enforces
the mode machine (one outstanding operation at a time), discards results
that arrive after the state was superseded, and reports cost events.

Methods block while the backend works; the UI calls them from worker
threads and listens for state changes.
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union

from ..config import EXPORT_FILENAME
from ..logging_utils import log_error, log_info, log_warning
from ..processing.animation import AnimationOrchestrator
from ..processing.editing import EditOrchestrator
from ..processing.generation import GenerationOrchestrator
from ..processing.gif_export import save_gif
from .exceptions import CameraError, PortraitBusyError
from .models import (
    DEFAULT_GRID,
    CostEvent,
    CostKind,
    GridSpec,
    ImageRef,
    PortraitMode,
    PortraitState,
    SessionContext,
    can_transition,
)

StateListener = Callable[[PortraitState], None]
CostListener = Callable[[CostEvent], None]

GENERATION_FAILED_MESSAGE = "Sorry, the character portrait could not be created."
EDIT_FAILED_MESSAGE = "Sorry, the image could not be edited."
ANIMATION_FAILED_MESSAGE = "The animation failed: {error}"
EXPORT_FAILED_MESSAGE = "Could not create the GIF."
CAMERA_FAILED_MESSAGE = "Could not access the camera. Please grant permission."
INVALID_IMAGE_MESSAGE = "That image could not be read."


def _default_camera_factory():
    from ..processing.camera import CameraStream
    return CameraStream()


class PortraitController:
    """
    Owns one PortraitState and every transition on it.

    Args:
        backend: Object providing compose_text / generate_image / edit_image.
        on_cost: Called with a CostEvent after each successful generate/edit/animate.
        camera_factory: Returns an unopened CameraStream-like object.
        grid: Sprite sheet geometry.
    """

    def __init__(
        self,
        backend,
        on_cost: Optional[CostListener] = None,
        camera_factory: Optional[Callable[[], object]] = None,
        grid: GridSpec = DEFAULT_GRID,
    ):
        self.state = PortraitState()
        self.grid = grid
        self.generation = GenerationOrchestrator(backend)
        self.editing = EditOrchestrator(backend)
        self.animation = AnimationOrchestrator(backend, grid)
        self._on_cost = on_cost
        self._camera_factory = camera_factory or _default_camera_factory
        self._camera = None
        self._listeners: List[StateListener] = []
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state)

    def _emit_cost(self, kind: CostKind) -> None:
        event = CostEvent.for_kind(kind)
        log_info(f"Cost event: {kind.value} ({event.tokens} tokens)")
        if self._on_cost is not None:
            self._on_cost(event)

    # -------------------------------------------------------------------------
    # Mode machine
    # -------------------------------------------------------------------------

    @property
    def mode(self) -> PortraitMode:
        return self.state.mode

    @property
    def is_busy(self) -> bool:
        return self.state.is_busy

    def _reject(self, action: str) -> PortraitBusyError:
        log_warning(f"Rejected {action} while {self.state.mode.value}")
        return PortraitBusyError(
            f"Cannot {action} while {self.state.mode.value}", mode=self.state.mode
        )

    def _begin(self, mode: PortraitMode, status: str) -> int:
        """Enter a working mode and return the state version the call started from."""
        with self._lock:
            if not can_transition(self.state.mode, mode):
                raise self._reject(mode.value)
            self.state.mode = mode
            self.state.status_text = status
            self.state.error_message = None
            token = self.state.version
        self._notify()
        return token

    def _is_current(self, token: int, mode: PortraitMode) -> bool:
        return self.state.version == token and self.state.mode is mode

    def _apply(self, token: int, mode: PortraitMode, mutate: Callable[[], None]) -> bool:
        """
        Apply a finished call's result unless the state moved on meanwhile.

        Returns:
            True if applied, False if the result was stale and dropped.
        """
        with self._lock:
            if not self._is_current(token, mode):
                log_warning(f"Discarding stale {mode.value} result")
                return False
            mutate()
            self.state.mode = self.state.settled_mode()
            self.state.status_text = ""
        self._notify()
        return True

    def _fail(self, token: int, mode: PortraitMode, message: str, error: Exception) -> None:
        with self._lock:
            if not self._is_current(token, mode):
                log_warning(f"Ignoring failure of stale {mode.value} call: {error}")
                return
            log_error(f"{mode.value} failed", str(error))
            self.state.mode = PortraitMode.ERROR
            self.state.error_message = message
            self.state.status_text = ""
        self._notify()

    @contextmanager
    def _operation(self, mode: PortraitMode, status: str, message: str) -> Iterator[int]:
        token = self._begin(mode, status)
        try:
            yield token
        except Exception as e:
            self._fail(token, mode, message.format(error=e), e)
            raise

    def _status_callback(self, token: int, mode: PortraitMode) -> Callable[[str], None]:
        def update(text: str) -> None:
            with self._lock:
                if not self._is_current(token, mode):
                    return
                self.state.status_text = text
            self._notify()
        return update

    # -------------------------------------------------------------------------
    # Generate / edit / animate
    # -------------------------------------------------------------------------

    def generate(self, context: SessionContext) -> Optional[ImageRef]:
        """
        Generate a fresh portrait from the narrative context.

        Returns:
            The new portrait, or None if the result was superseded.

        Raises:
            PortraitBusyError: If another operation is outstanding.
            GenerationFailedError: If the backend produced no image.
        """
        mode = PortraitMode.GENERATING
        with self._operation(mode, "Generating portrait...", GENERATION_FAILED_MESSAGE) as token:
            image = self.generation.generate(context, on_status=self._status_callback(token, mode))
        if not self._apply(token, mode, lambda: self.state.replace_image(image)):
            return None
        self._emit_cost(CostKind.GENERATION)
        return image

    def edit(self, instruction: str) -> Optional[ImageRef]:
        """
        Apply an instructed edit to the current portrait.

        An empty instruction or a missing portrait is a no-op returning None.

        Raises:
            PortraitBusyError: If another operation is outstanding.
            InvalidInputError: If the current image cannot be decomposed.
            EditFailedError: If the backend returned no image.
        """
        if not (instruction or "").strip() or self.state.current_image is None:
            return None

        mode = PortraitMode.EDITING
        with self._operation(mode, "Editing image with your instructions...", EDIT_FAILED_MESSAGE) as token:
            image = self.editing.edit(self.state.current_image, instruction)
        if image is None:
            self._apply(token, mode, lambda: None)
            return None
        if not self._apply(token, mode, lambda: self.state.replace_image(image)):
            return None
        self._emit_cost(CostKind.EDIT)
        return image

    def animate(self, instruction: str, context: SessionContext) -> Optional[int]:
        """
        Turn the current portrait into a looping sprite sheet animation.

        The still and the history are left untouched; only the sprite sheet
        and frame duration are set.

        Returns:
            The negotiated frame duration in ms, or None for a no-op or a
            superseded result.

        Raises:
            PortraitBusyError: If another operation is outstanding.
            AnimationFailedError: If no usable sprite sheet came back.
        """
        if not (instruction or "").strip() or self.state.current_image is None:
            return None

        mode = PortraitMode.ANIMATING
        with self._operation(mode, "Generating animation...", ANIMATION_FAILED_MESSAGE) as token:
            response = self.animation.animate(self.state.current_image, instruction, context)
        if response is None:
            self._apply(token, mode, lambda: None)
            return None

        def mutate():
            self.state.set_animation(response.grid_image, response.frame_duration_ms)

        if not self._apply(token, mode, mutate):
            return None
        self._emit_cost(CostKind.ANIMATION)
        return response.frame_duration_ms

    # -------------------------------------------------------------------------
    # Undo / load / export
    # -------------------------------------------------------------------------

    def undo(self) -> bool:
        """
        Restore the previous still and drop any animation.

        Returns:
            False when history is empty (nothing happens), True otherwise.

        Raises:
            PortraitBusyError: If an operation is outstanding or the camera is open.
        """
        with self._lock:
            if self.state.mode not in (PortraitMode.IDLE, PortraitMode.PLAYING, PortraitMode.ERROR):
                raise self._reject("undo")
            if not self.state.can_undo:
                return False
            self.state.restore_previous()
            self.state.mode = self.state.settled_mode()
            self.state.error_message = None
        log_info(f"Undo; {len(self.state.history)} image(s) left in history")
        self._notify()
        return True

    def load_image(self, image: Union[ImageRef, str]) -> ImageRef:
        """
        Start over from a supplied image (data URI or ImageRef).

        History and any animation are cleared, as for a fresh photo.

        Raises:
            PortraitBusyError: If an operation is outstanding.
            InvalidInputError: If a data URI cannot be decomposed; state is unchanged.
        """
        with self._lock:
            if self.state.mode not in (PortraitMode.IDLE, PortraitMode.PLAYING, PortraitMode.ERROR):
                raise self._reject("load an image")
        try:
            ref = ImageRef.coerce(image)
        except Exception as e:
            with self._lock:
                self.state.mode = PortraitMode.ERROR
                self.state.error_message = INVALID_IMAGE_MESSAGE
            log_error("load_image failed", str(e))
            self._notify()
            raise
        with self._lock:
            self.state.start_fresh(ref)
            self.state.mode = self.state.settled_mode()
            self.state.error_message = None
        self._notify()
        return ref

    def export(self, dest_dir: Path, filename: str = EXPORT_FILENAME) -> Path:
        """
        Write the current animation as a looping GIF.

        Raises:
            PortraitBusyError: If there is no animation or an operation is outstanding.
            ExportFailedError: If decoding or assembly fails; no file is left behind.
        """
        with self._lock:
            if not self.state.has_animation:
                raise PortraitBusyError("There is no animation to export", mode=self.state.mode)
            sheet = self.state.sprite_sheet
            duration = self.state.frame_duration_ms

        mode = PortraitMode.EXPORTING
        with self._operation(mode, "Exporting GIF...", EXPORT_FAILED_MESSAGE) as token:
            path = save_gif(sheet, duration, dest_dir, filename, self.grid)
        self._apply(token, mode, lambda: None)
        return path

    # -------------------------------------------------------------------------
    # Camera
    # -------------------------------------------------------------------------

    def open_camera(self) -> None:
        """
        Open the camera for a photo.

        Raises:
            PortraitBusyError: If an operation is outstanding.
            CameraError: If the device cannot be opened; nothing stays acquired.
        """
        mode = PortraitMode.CAPTURING
        token = self._begin(mode, "Camera open")
        self._release_camera()
        camera = self._camera_factory()
        try:
            camera.open()
        except Exception as e:
            camera.close()
            self._fail(token, mode, CAMERA_FAILED_MESSAGE, e)
            raise
        self._camera = camera

    def capture(self) -> ImageRef:
        """
        Take the photo, start a fresh history with it, and close the camera.

        Raises:
            PortraitBusyError: If the camera is not open.
            CameraError: If no frame could be captured (camera is still released).
        """
        with self._lock:
            if self.state.mode is not PortraitMode.CAPTURING or self._camera is None:
                raise self._reject("capture")
            token = self.state.version
        try:
            image = self._camera.capture_still()
        except Exception as e:
            self._release_camera()
            self._fail(token, PortraitMode.CAPTURING, CAMERA_FAILED_MESSAGE, e)
            raise
        self._release_camera()
        self._apply(token, PortraitMode.CAPTURING, lambda: self.state.start_fresh(image))
        log_info("Captured a new photo; history cleared")
        return image

    def close_camera(self) -> None:
        """Release the camera without taking a photo."""
        self._release_camera()
        with self._lock:
            if self.state.mode is not PortraitMode.CAPTURING:
                return
            self.state.mode = self.state.settled_mode()
            self.state.status_text = ""
        self._notify()

    @property
    def camera(self):
        """The open camera stream, or None."""
        return self._camera

    def _release_camera(self) -> None:
        camera, self._camera = self._camera, None
        if camera is not None:
            camera.close()

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def dismiss_error(self) -> None:
        with self._lock:
            if self.state.mode is not PortraitMode.ERROR:
                return
            self.state.mode = self.state.settled_mode()
            self.state.error_message = None
        self._notify()

    def dismiss(self) -> None:
        """
        Tear down: release the camera and invalidate any in-flight call.

        Backend calls cannot be cancelled; their results are dropped when
        they arrive.
        """
        self._release_camera()
        with self._lock:
            self.state.invalidate()
            self.state.mode = self.state.settled_mode()
            self.state.status_text = ""
        log_info("Portrait controller dismissed")
        self._notify()
