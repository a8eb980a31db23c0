from PIL import Image

import pytest

from conftest import make_sheet, tile_color
from portrait_animator.core.exceptions import ExportFailedError
from portrait_animator.core.models import ImageRef
from portrait_animator.processing.gif_export import (
    export_gif,
    extract_frames,
    gif_frame_duration,
    save_gif,
)
from portrait_animator.processing.image_utils import encode_image


def _close(a, b, tolerance=8):
    return all(abs(x - y) <= tolerance for x, y in zip(a, b))


def test_extract_frames_uses_row_major_tiles(grid):
    frames = extract_frames(make_sheet(), grid)
    assert len(frames) == 16
    assert all(f.size == (16, 16) for f in frames)
    assert frames[0].getpixel((8, 8)) == tile_color(0)
    assert frames[6].getpixel((8, 8)) == tile_color(6)
    assert frames[15].getpixel((8, 8)) == tile_color(15)


def test_gif_frame_duration_rounds_to_centiseconds():
    assert gif_frame_duration(400) == 400
    assert gif_frame_duration(123) == 120
    assert gif_frame_duration(4) == 10


def test_saved_gif_has_sixteen_looping_frames(tmp_path, grid):
    path = save_gif(make_sheet(), 400, tmp_path, grid=grid)
    assert path == tmp_path / "improv-animation.gif"

    with Image.open(path) as gif:
        assert gif.n_frames == 16
        assert gif.info.get("loop") == 0
        assert gif.size == (16, 16)
        total = 0
        for i in range(gif.n_frames):
            gif.seek(i)
            total += gif.info["duration"]
            assert _close(gif.convert("RGB").getpixel((8, 8)), tile_color(i))
    assert total == 16 * 400


def test_export_rejects_undecodable_sheet(tmp_path, grid):
    with pytest.raises(ExportFailedError):
        save_gif(ImageRef.from_bytes(b"garbage"), 400, tmp_path, grid=grid)
    assert list(tmp_path.iterdir()) == []


def test_export_rejects_missing_duration(grid):
    with pytest.raises(ExportFailedError):
        export_gif(make_sheet(), 0, grid)


def test_held_frames_keep_total_duration(tmp_path, grid):
    held = encode_image(Image.new("RGB", (64, 64), (40, 80, 120)))
    path = save_gif(held, 400, tmp_path, grid=grid)
    with Image.open(path) as gif:
        total = 0
        for i in range(gif.n_frames):
            gif.seek(i)
            total += gif.info["duration"]
    assert total == 16 * 400
