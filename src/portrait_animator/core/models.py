"""
Data models for the portrait animator.

Contains the image reference type, the read-only narrative context,
the sprite sheet grid geometry, and the mutable portrait state with
its mode machine.
"""

import base64
import binascii
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from ..config import (
    FRAME_DURATION_MAX_MS,
    FRAME_DURATION_MIN_MS,
    GRID_SIZE,
    IMAGE_ANIMATION_COST,
    IMAGE_EDIT_COST,
    IMAGE_GENERATION_COST,
    SPRITE_SHEET_SIZE,
)
from .exceptions import InvalidInputError
from .history import HistoryStack

_DATA_URI_RE = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$",
    re.DOTALL,
)


# =============================================================================
# Image references
# =============================================================================

@dataclass(frozen=True)
class ImageRef:
    """
    Self-describing image payload: mime type plus raw bytes.

    Converts to and from `data:<mime>;base64,<payload>` URIs and to the
    inline_data parts Gemini expects.
    """
    mime_type: str
    data: bytes = field(repr=False)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str = "image/png") -> "ImageRef":
        return cls(mime_type=mime_type, data=bytes(data))

    @classmethod
    def from_base64(cls, b64_data: str, mime_type: str) -> "ImageRef":
        """
        Build from a base64 string as returned by the API.

        Raises:
            InvalidInputError: If the payload is not valid base64.
        """
        try:
            raw = base64.b64decode(b64_data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidInputError(f"Invalid base64 image payload: {e}") from e
        if not raw:
            raise InvalidInputError("Image payload is empty")
        return cls(mime_type=mime_type, data=raw)

    @classmethod
    def from_data_uri(cls, uri: str) -> "ImageRef":
        """
        Decompose a data URI into mime type and bytes.

        Raises:
            InvalidInputError: If the URI cannot be split into those two parts.
        """
        match = _DATA_URI_RE.match(uri.strip()) if isinstance(uri, str) else None
        if not match:
            raise InvalidInputError("Invalid image data URI format")
        return cls.from_base64(match.group("data").strip(), match.group("mime"))

    @classmethod
    def coerce(cls, value: Union["ImageRef", str]) -> "ImageRef":
        """Accept either an ImageRef or a data URI string."""
        if isinstance(value, ImageRef):
            return value
        return cls.from_data_uri(value)

    @property
    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.b64}"

    def to_inline_part(self) -> dict:
        """Return this image as a Gemini request part."""
        return {"inline_data": {"mime_type": self.mime_type, "data": self.b64}}


@dataclass(frozen=True)
class ResponsePart:
    """One part of a Gemini reply: either text or an image."""
    text: Optional[str] = None
    image: Optional[ImageRef] = None

    @property
    def is_image(self) -> bool:
        return self.image is not None


# =============================================================================
# Narrative context (read-only input)
# =============================================================================

@dataclass(frozen=True)
class SessionContext:
    """
    Narrative context supplied by the improv session on every call.

    The portrait pipeline reads it and never mutates it.
    """
    scene_descriptions: Tuple[str, ...] = ()
    current_scene_index: int = 0
    character_rules: str = ""
    continuity_summary: str = ""

    def __post_init__(self):
        # Lists from YAML or callers are frozen into tuples
        object.__setattr__(self, "scene_descriptions", tuple(self.scene_descriptions))

    def scenes_up_to_current(self) -> List[str]:
        """Scene descriptions from the first scene through the active one."""
        if self.current_scene_index < 0:
            return []
        return list(self.scene_descriptions[: self.current_scene_index + 1])


# =============================================================================
# Sprite sheet geometry
# =============================================================================

@dataclass(frozen=True)
class GridSpec:
    """Fixed sprite sheet geometry: a square sheet of grid_size x grid_size tiles."""
    grid_size: int = GRID_SIZE
    sheet_size: int = SPRITE_SHEET_SIZE

    @property
    def frame_count(self) -> int:
        return self.grid_size * self.grid_size

    @property
    def tile_size(self) -> int:
        return self.sheet_size // self.grid_size

    def position(self, frame_index: int) -> Tuple[int, int]:
        """
        Return (row, col) for a frame; frames run left-to-right, top-to-bottom.

        Raises:
            IndexError: If frame_index is outside [0, frame_count).
        """
        if not 0 <= frame_index < self.frame_count:
            raise IndexError(f"Frame {frame_index} outside 0..{self.frame_count - 1}")
        return frame_index // self.grid_size, frame_index % self.grid_size

    def normalized_rect(self, frame_index: int) -> Tuple[float, float, float, float]:
        """Return (x, y, width, height) of a frame's tile in 0..1 sheet coordinates."""
        row, col = self.position(frame_index)
        side = 1.0 / self.grid_size
        return col * side, row * side, side, side

    def pixel_box(self, frame_index: int, tile_size: int) -> Tuple[int, int, int, int]:
        """Return the (left, upper, right, lower) crop box of a frame."""
        row, col = self.position(frame_index)
        left = col * tile_size
        upper = row * tile_size
        return left, upper, left + tile_size, upper + tile_size


DEFAULT_GRID = GridSpec()


@dataclass(frozen=True)
class AnimationResponse:
    """Parsed dual-part animation reply: negotiated duration plus the grid image."""
    frame_duration_ms: int
    grid_image: ImageRef
    duration_was_parsed: bool = True


# =============================================================================
# Cost events
# =============================================================================

class CostKind(Enum):
    GENERATION = "generation"
    EDIT = "edit"
    ANIMATION = "animation"


COSTS: Dict[CostKind, int] = {
    CostKind.GENERATION: IMAGE_GENERATION_COST,
    CostKind.EDIT: IMAGE_EDIT_COST,
    CostKind.ANIMATION: IMAGE_ANIMATION_COST,
}


@dataclass(frozen=True)
class CostEvent:
    kind: CostKind
    tokens: int

    @classmethod
    def for_kind(cls, kind: CostKind) -> "CostEvent":
        return cls(kind=kind, tokens=COSTS[kind])


# =============================================================================
# Portrait state machine
# =============================================================================

class PortraitMode(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    GENERATING = "generating"
    EDITING = "editing"
    ANIMATING = "animating"
    PLAYING = "playing"
    EXPORTING = "exporting"
    ERROR = "error"


_START_OPS = frozenset({
    PortraitMode.CAPTURING,
    PortraitMode.GENERATING,
    PortraitMode.EDITING,
    PortraitMode.ANIMATING,
})
_SETTLE = frozenset({PortraitMode.IDLE, PortraitMode.PLAYING, PortraitMode.ERROR})

TRANSITIONS: Dict[PortraitMode, FrozenSet[PortraitMode]] = {
    PortraitMode.IDLE: _START_OPS | {PortraitMode.ERROR},
    PortraitMode.PLAYING: _START_OPS | {PortraitMode.EXPORTING, PortraitMode.IDLE, PortraitMode.ERROR},
    PortraitMode.ERROR: _START_OPS | {PortraitMode.EXPORTING, PortraitMode.IDLE, PortraitMode.PLAYING},
    PortraitMode.CAPTURING: _SETTLE,
    PortraitMode.GENERATING: _SETTLE,
    PortraitMode.EDITING: _SETTLE,
    PortraitMode.ANIMATING: _SETTLE,
    PortraitMode.EXPORTING: _SETTLE,
}

BUSY_MODES: FrozenSet[PortraitMode] = frozenset({
    PortraitMode.GENERATING,
    PortraitMode.EDITING,
    PortraitMode.ANIMATING,
    PortraitMode.EXPORTING,
})


def can_transition(current: PortraitMode, target: PortraitMode) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


@dataclass
class PortraitState:
    """
    Everything the portrait pipeline owns.

    Invariants:
        - sprite_sheet and frame_duration_ms are both set or both None.
        - Replacing current_image pushes the previous image onto history first.
        - version increases on every mutation; in-flight calls compare it
          before applying their result.
    """
    current_image: Optional[ImageRef] = None
    sprite_sheet: Optional[ImageRef] = None
    frame_duration_ms: Optional[int] = None
    history: HistoryStack = field(default_factory=HistoryStack)
    mode: PortraitMode = PortraitMode.IDLE
    status_text: str = ""
    error_message: Optional[str] = None
    version: int = 0

    @property
    def has_animation(self) -> bool:
        return self.sprite_sheet is not None and self.frame_duration_ms is not None

    @property
    def is_busy(self) -> bool:
        return self.mode in BUSY_MODES

    @property
    def can_undo(self) -> bool:
        return bool(self.history)

    def settled_mode(self) -> PortraitMode:
        return PortraitMode.PLAYING if self.has_animation else PortraitMode.IDLE

    def invalidate(self) -> None:
        """Mark every in-flight call as stale."""
        self.version += 1

    def set_animation(self, sprite_sheet: ImageRef, frame_duration_ms: int) -> None:
        if sprite_sheet is None or frame_duration_ms is None:
            raise ValueError("sprite_sheet and frame_duration_ms must be set together")
        if not FRAME_DURATION_MIN_MS <= frame_duration_ms <= FRAME_DURATION_MAX_MS:
            raise ValueError(f"Frame duration {frame_duration_ms}ms outside playable range")
        self.sprite_sheet = sprite_sheet
        self.frame_duration_ms = int(frame_duration_ms)
        self.invalidate()

    def clear_animation(self) -> None:
        self.sprite_sheet = None
        self.frame_duration_ms = None
        self.invalidate()

    def replace_image(self, image: ImageRef) -> None:
        """Save the current still to history, then show `image` with no animation."""
        if self.current_image is not None:
            self.history.push(self.current_image)
        self.current_image = image
        self.clear_animation()

    def start_fresh(self, image: ImageRef) -> None:
        """Replace the still and drop all history (a new photo starts over)."""
        self.history.clear()
        self.current_image = image
        self.clear_animation()

    def restore_previous(self) -> ImageRef:
        """
        Pop the last still back into place and drop any animation.

        Raises:
            EmptyHistoryError: If there is nothing to restore.
        """
        previous = self.history.pop()
        self.current_image = previous
        self.clear_animation()
        return previous
