"""
Sprite sheet geometry checks and real-time playback.

Frames are read left-to-right, top-to-bottom from a square grid; frame 0
is the top-left tile. Playback is a cancellable repeating task on a
Tk-style scheduler (anything with after(ms, callback) and after_cancel(id)).
"""

from typing import Any, Callable, Optional, Tuple

from ..core.exceptions import InvalidInputError
from ..core.models import DEFAULT_GRID, GridSpec, ImageRef, PortraitState
from ..logging_utils import log_debug
from .image_utils import decode_image


def frame_position(frame_index: int, grid: GridSpec = DEFAULT_GRID) -> Tuple[int, int]:
    """Return (row, col) of a frame: row = i // G, col = i % G."""
    return grid.position(frame_index)


def validate_sprite_sheet(sheet: ImageRef, grid: GridSpec = DEFAULT_GRID) -> int:
    """
    Check that a sheet splits evenly into grid_size x grid_size square tiles.

    Returns:
        The tile size in pixels.

    Raises:
        InvalidInputError: If the sheet cannot be decoded or has the wrong shape.
    """
    try:
        width, height = decode_image(sheet).size
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    if width != height:
        raise InvalidInputError(f"Sprite sheet must be square, got {width}x{height}")
    if width < grid.grid_size or width % grid.grid_size:
        raise InvalidInputError(
            f"Sprite sheet width {width} does not divide into {grid.grid_size} columns"
        )
    return width // grid.grid_size


class SpriteSheetPlayer:
    """
    Drive a repeating frame counter over a sprite sheet.

    The player owns at most one pending timer. Every start/stop invalidates
    the previous timer token, so a callback belonging to a replaced sheet
    never advances the counter even if the scheduler already queued it.
    """

    def __init__(
        self,
        scheduler: Any,
        grid: GridSpec = DEFAULT_GRID,
        on_frame: Optional[Callable[[int], None]] = None,
    ):
        self._scheduler = scheduler
        self.grid = grid
        self.on_frame = on_frame
        self._sheet: Optional[ImageRef] = None
        self._duration_ms: Optional[int] = None
        self._frame = 0
        self._handle = None
        self._token = 0

    @property
    def current_frame(self) -> int:
        return self._frame

    @property
    def is_playing(self) -> bool:
        return self._handle is not None

    @property
    def sprite_sheet(self) -> Optional[ImageRef]:
        return self._sheet

    @property
    def frame_duration_ms(self) -> Optional[int]:
        return self._duration_ms

    def start(self, sheet: ImageRef, frame_duration_ms: int) -> None:
        """Start looping `sheet` from frame 0, replacing anything already playing."""
        if frame_duration_ms is None or frame_duration_ms <= 0:
            raise ValueError("frame_duration_ms must be a positive integer")
        self.stop()
        self._sheet = sheet
        self._duration_ms = int(frame_duration_ms)
        self._frame = 0
        log_debug(f"Playback started at {self._duration_ms}ms/frame")
        self._notify()
        self._schedule(self._token)

    def stop(self) -> None:
        """Cancel the pending timer and forget the sheet. Safe to call repeatedly."""
        self._token += 1
        if self._handle is not None:
            self._scheduler.after_cancel(self._handle)
            self._handle = None
        self._sheet = None
        self._duration_ms = None
        self._frame = 0

    close = stop

    def sync(self, state: PortraitState) -> None:
        """
        Follow the portrait state: play while it has an animation, stop otherwise.

        A replaced sheet or a changed duration restarts playback from frame 0.
        """
        if not state.has_animation:
            if self._sheet is not None or self._handle is not None:
                self.stop()
            return
        if state.sprite_sheet is not self._sheet or state.frame_duration_ms != self._duration_ms:
            self.start(state.sprite_sheet, state.frame_duration_ms)

    def advance(self) -> int:
        """Step to the next frame, wrapping after the last one."""
        self._frame = (self._frame + 1) % self.grid.frame_count
        self._notify()
        return self._frame

    def visible_rect(self) -> Tuple[float, float, float, float]:
        """Normalized (x, y, w, h) of the tile currently shown."""
        return self.grid.normalized_rect(self._frame)

    def _schedule(self, token: int) -> None:
        self._handle = self._scheduler.after(self._duration_ms, lambda: self._tick(token))

    def _tick(self, token: int) -> None:
        if token != self._token:
            return
        self._handle = None
        self.advance()
        # on_frame may have stopped or restarted playback
        if token == self._token:
            self._schedule(token)

    def _notify(self) -> None:
        if self.on_frame is not None:
            self.on_frame(self._frame)
