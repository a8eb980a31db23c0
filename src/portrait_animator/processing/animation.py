"""
Sprite sheet animation of the current portrait.

The image model is asked for a dual-part reply: a small JSON object with
the frame duration, then a square image holding a 4x4 grid of frames.
Replies may interleave text and image parts in any order, so parsing is
best-effort for the duration and strict for the image.
"""

import json
import math
import re
from typing import Iterable, Optional, Union

from ..api.exceptions import GeminiAPIError
from ..api.prompt_builders import build_animation_prompt
from ..config import DEFAULT_FRAME_DURATION_MS, FRAME_DURATION_MAX_MS, FRAME_DURATION_MIN_MS
from ..core.exceptions import AnimationFailedError, InvalidInputError
from ..core.models import (
    DEFAULT_GRID,
    AnimationResponse,
    GridSpec,
    ImageRef,
    ResponsePart,
    SessionContext,
)
from ..logging_utils import log_debug, log_generation_complete, log_generation_start, log_warning
from .sprite_sheet import validate_sprite_sheet

_FENCE_OPEN_RE = re.compile(r"^\s*```[a-zA-Z]*\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang marker and a trailing ``` marker."""
    text = _FENCE_OPEN_RE.sub("", text)
    text = _FENCE_CLOSE_RE.sub("", text)
    return text.strip()


def clamp_frame_duration(value: float) -> int:
    """
    Quantize to whole centiseconds (half rounds up) and clamp into the playable window.

    GIF delays are stored in centiseconds, so playback and export share
    exactly this value.
    """
    quantized = int(math.floor(value / 10 + 0.5)) * 10
    return min(max(quantized, FRAME_DURATION_MIN_MS), FRAME_DURATION_MAX_MS)


def parse_frame_duration(text: str) -> Optional[int]:
    """
    Read a frame duration from a text part.

    Accepts `{"frameDuration": 400}` (optionally fenced) or a bare number.

    Returns:
        The clamped duration, or None if the text holds no usable duration.
    """
    cleaned = strip_code_fences(text or "")
    if not cleaned:
        return None
    try:
        data = json.loads(cleaned)
    except ValueError:
        return None

    if isinstance(data, dict):
        value = data.get("frameDuration")
    else:
        value = data
    # bool is an int subclass; true/false are not durations
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
    except (OverflowError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return clamp_frame_duration(value)


def parse_animation_response(parts: Iterable[ResponsePart]) -> AnimationResponse:
    """
    Turn the reply parts into a typed AnimationResponse.

    Text parts are tried as durations (failures are logged and skipped);
    image parts are grid candidates and the last one wins. A missing
    duration falls back to DEFAULT_FRAME_DURATION_MS.

    Raises:
        AnimationFailedError: If no image part was present.
    """
    duration: Optional[int] = None
    grid_image: Optional[ImageRef] = None

    for part in parts:
        if part.is_image:
            grid_image = part.image
        elif part.text:
            parsed = parse_frame_duration(part.text)
            if parsed is None:
                log_warning(f"Failed to parse frameDuration from text part: {part.text[:200]!r}")
            else:
                duration = parsed

    if grid_image is None:
        raise AnimationFailedError("The image model did not return a sprite sheet image")

    if duration is None:
        log_debug(f"No frame duration in reply, using default {DEFAULT_FRAME_DURATION_MS}ms")
        return AnimationResponse(DEFAULT_FRAME_DURATION_MS, grid_image, duration_was_parsed=False)
    return AnimationResponse(duration, grid_image)


class AnimationOrchestrator:
    """Current portrait + creative direction -> sprite sheet + frame duration."""

    def __init__(self, backend, grid: GridSpec = DEFAULT_GRID):
        self.backend = backend
        self.grid = grid

    def animate(
        self,
        current_image: Union[ImageRef, str, None],
        animation_request: str,
        context: SessionContext,
    ) -> Optional[AnimationResponse]:
        """
        Request a looping micro-animation of the current portrait.

        An empty request or a missing image is a no-op and returns None.

        Raises:
            InvalidInputError: If the image reference cannot be decomposed.
            AnimationFailedError: If the backend fails, returns no image,
                or returns a sheet that does not split into the grid.
        """
        animation_request = (animation_request or "").strip()
        if not animation_request or current_image is None:
            return None

        image = ImageRef.coerce(current_image)
        log_generation_start("animation")

        prompt = build_animation_prompt(animation_request, context)
        try:
            parts = self.backend.edit_image(image, prompt)
        except GeminiAPIError as e:
            log_generation_complete("animation", False, str(e))
            raise AnimationFailedError(f"Animation request failed: {e}") from e

        try:
            response = parse_animation_response(parts)
            validate_sprite_sheet(response.grid_image, self.grid)
        except AnimationFailedError as e:
            log_generation_complete("animation", False, str(e))
            raise
        except InvalidInputError as e:
            log_generation_complete("animation", False, str(e))
            raise AnimationFailedError(f"Unusable sprite sheet: {e}") from e

        log_generation_complete(
            "animation", True,
            f"{response.frame_duration_ms}ms/frame"
            + ("" if response.duration_was_parsed else " (default)"),
        )
        return response
