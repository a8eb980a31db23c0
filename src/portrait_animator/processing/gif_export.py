"""
Frame extraction and animated GIF export.

Crops the sprite sheet into its frames using the same row/col mapping as
playback, then assembles them into a looping GIF with a uniform per-frame
duration.
"""

from io import BytesIO
from pathlib import Path
from typing import List

from PIL import Image

from ..config import EXPORT_FILENAME
from ..core.exceptions import ExportFailedError, InvalidInputError
from ..core.models import DEFAULT_GRID, GridSpec, ImageRef
from ..logging_utils import log_generation_complete, log_generation_start, log_info
from .image_utils import decode_image, write_bytes_atomic
from .sprite_sheet import validate_sprite_sheet


def gif_frame_duration(frame_duration_ms: int) -> int:
    """
    Express a frame duration in what GIF can store.

    GIF delays are whole centiseconds; the result is in milliseconds,
    rounded to the nearest 10.
    """
    return max(1, round(frame_duration_ms / 10)) * 10


def extract_frames(sheet: ImageRef, grid: GridSpec = DEFAULT_GRID) -> List[Image.Image]:
    """
    Crop a sprite sheet into grid.frame_count square frames, frame 0 first.

    Raises:
        ExportFailedError: If the sheet cannot be decoded or has the wrong shape.
    """
    try:
        tile_size = validate_sprite_sheet(sheet, grid)
        source = decode_image(sheet).convert("RGB")
    except (InvalidInputError, ValueError) as e:
        raise ExportFailedError(f"Could not load the sprite sheet: {e}") from e

    frames = []
    for i in range(grid.frame_count):
        frames.append(source.crop(grid.pixel_box(i, tile_size)))
    return frames


def export_gif(sheet: ImageRef, frame_duration_ms: int, grid: GridSpec = DEFAULT_GRID) -> bytes:
    """
    Build a looping GIF from a sprite sheet.

    Pillow folds consecutive identical frames into one longer frame, so a
    sheet with held poses can hold fewer than grid.frame_count GIF frames;
    total playback time is still frame_count x duration.

    Returns:
        The encoded GIF bytes.

    Raises:
        ExportFailedError: If decoding or GIF assembly fails.
    """
    if not frame_duration_ms or frame_duration_ms <= 0:
        raise ExportFailedError("A positive frame duration is required for export")

    log_generation_start("gif_export")
    try:
        frames = extract_frames(sheet, grid)
    except ExportFailedError as e:
        log_generation_complete("gif_export", False, str(e))
        raise

    duration = gif_frame_duration(frame_duration_ms)
    buffer = BytesIO()
    try:
        frames[0].save(
            buffer,
            format="GIF",
            save_all=True,
            append_images=frames[1:],
            duration=duration,
            loop=0,
            optimize=False,
        )
    except (OSError, ValueError) as e:
        log_generation_complete("gif_export", False, str(e))
        raise ExportFailedError(f"Could not create the GIF: {e}") from e

    data = buffer.getvalue()
    log_generation_complete(
        "gif_export", True,
        f"{len(frames)} frames of {frames[0].width}px at {duration}ms ({len(data) // 1024} KB)",
    )
    return data


def save_gif(
    sheet: ImageRef,
    frame_duration_ms: int,
    dest_dir: Path,
    filename: str = EXPORT_FILENAME,
    grid: GridSpec = DEFAULT_GRID,
) -> Path:
    """
    Export the animation to dest_dir/filename.

    The file only appears once the GIF is fully encoded and written.

    Raises:
        ExportFailedError: If encoding or writing fails.
    """
    data = export_gif(sheet, frame_duration_ms, grid)
    try:
        out_path = write_bytes_atomic(data, Path(dest_dir) / filename)
    except OSError as e:
        raise ExportFailedError(f"Could not write {filename}: {e}") from e
    log_info(f"Saved animation to {out_path}")
    return out_path
