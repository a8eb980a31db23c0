import os
import tempfile

# Log files land in a throwaway folder; must be set before the package is imported
os.environ.setdefault(
    "PORTRAIT_ANIMATOR_LOG_DIR", os.path.join(tempfile.gettempdir(), "portrait_animator_test_logs")
)

import pytest
from PIL import Image

from portrait_animator.core.models import GridSpec, ImageRef, ResponsePart, SessionContext
from portrait_animator.processing.image_utils import encode_image

SHEET_SIZE = 64
GRID = GridSpec(grid_size=4, sheet_size=SHEET_SIZE)


def tile_color(index):
    """A distinct solid color per frame."""
    return (index * 15, 255 - index * 15, (index * 40) % 256)


def make_sheet(size=SHEET_SIZE, grid_size=4):
    tile = size // grid_size
    img = Image.new("RGB", (size, size))
    for i in range(grid_size * grid_size):
        row, col = i // grid_size, i % grid_size
        img.paste(tile_color(i), (col * tile, row * tile, (col + 1) * tile, (row + 1) * tile))
    return encode_image(img)


def make_still(color=(200, 120, 80), size=32):
    return encode_image(Image.new("RGB", (size, size), color))


class FakeScheduler:
    """Tk-style after/after_cancel that only runs callbacks when told to."""

    def __init__(self):
        self.pending = {}
        self.cancelled = []
        self._next_id = 0

    def after(self, ms, callback):
        self._next_id += 1
        handle = f"after#{self._next_id}"
        self.pending[handle] = (ms, callback)
        return handle

    def after_cancel(self, handle):
        self.cancelled.append(handle)
        self.pending.pop(handle, None)

    def fire_next(self):
        handle = next(iter(self.pending))
        _ms, callback = self.pending.pop(handle)
        callback()
        return handle


class FakeBackend:
    """
    Records calls and replays canned replies.

    Hooks run inside the call, before it returns, to simulate things that
    happen while a backend request is outstanding.
    """

    def __init__(self):
        self.calls = []
        self.text_reply = "A weathered lighthouse keeper with a grey beard, close-up portrait."
        self.generated = make_still((10, 20, 30))
        self.edit_parts = [ResponsePart(image=make_still((90, 90, 90)))]
        self.animation_parts = [
            ResponsePart(text='{"frameDuration": 400}'),
            ResponsePart(image=make_sheet()),
        ]
        self.on_compose = None
        self.on_edit = None
        self.fail_with = None

    def compose_text(self, prompt):
        self.calls.append(("compose_text", prompt))
        if self.fail_with:
            raise self.fail_with
        if self.on_compose:
            self.on_compose()
        return self.text_reply

    def generate_image(self, prompt):
        self.calls.append(("generate_image", prompt))
        return self.generated

    def edit_image(self, image, instruction):
        self.calls.append(("edit_image", instruction))
        if self.fail_with:
            raise self.fail_with
        if self.on_edit:
            self.on_edit()
        if "frameDuration" in instruction:
            return list(self.animation_parts)
        return list(self.edit_parts)

    def names(self):
        return [name for name, _ in self.calls]


@pytest.fixture
def grid():
    return GRID


@pytest.fixture
def sheet():
    return make_sheet()


@pytest.fixture
def still():
    return make_still()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def context():
    return SessionContext(
        scene_descriptions=["A stormy night at the lighthouse.", "Morning after the storm."],
        current_scene_index=1,
        character_rules="The AI plays a grumpy lighthouse keeper.",
        continuity_summary="The keeper rescued a sailor.",
    )
