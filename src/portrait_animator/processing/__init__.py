"""
Processing module for portrait generation and animation workflows.

Handles the generate/edit/animate orchestrators, sprite sheet playback,
GIF export, and camera capture.
"""

from .image_utils import (
    decode_image,
    encode_image,
    write_bytes_atomic,
)

from .generation import GenerationOrchestrator
from .editing import EditOrchestrator

from .animation import (
    AnimationOrchestrator,
    parse_animation_response,
    parse_frame_duration,
)

from .sprite_sheet import (
    SpriteSheetPlayer,
    frame_position,
    validate_sprite_sheet,
)

from .gif_export import (
    extract_frames,
    export_gif,
    save_gif,
)

__all__ = [
    # Image utilities
    "decode_image",
    "encode_image",
    "write_bytes_atomic",
    # Orchestrators
    "GenerationOrchestrator",
    "EditOrchestrator",
    "AnimationOrchestrator",
    "parse_animation_response",
    "parse_frame_duration",
    # Playback
    "SpriteSheetPlayer",
    "frame_position",
    "validate_sprite_sheet",
    # Export
    "extract_frames",
    "export_gif",
    "save_gif",
]
