import pytest
from PIL import Image

from conftest import FakeBackend, make_still
from portrait_animator.core.controller import (
    EDIT_FAILED_MESSAGE,
    GENERATION_FAILED_MESSAGE,
    INVALID_IMAGE_MESSAGE,
    PortraitController,
)
from portrait_animator.core.exceptions import (
    AnimationFailedError,
    CameraError,
    EditFailedError,
    GenerationFailedError,
    InvalidInputError,
    PortraitBusyError,
)
from portrait_animator.core.models import CostKind, PortraitMode, ResponsePart
from portrait_animator.api.exceptions import GeminiAPIError


@pytest.fixture
def costs():
    return []


@pytest.fixture
def controller(backend, costs, grid):
    return PortraitController(backend, on_cost=costs.append, grid=grid)


def test_generate_edit_animate_export(controller, backend, context, costs, tmp_path):
    portrait = controller.generate(context)
    assert portrait is backend.generated
    assert backend.names() == ["compose_text", "generate_image"]
    assert "grumpy lighthouse keeper" in backend.calls[0][1]
    assert backend.calls[1][1] == backend.text_reply
    assert controller.mode is PortraitMode.IDLE
    assert len(controller.state.history) == 0

    edited = controller.edit("make them look older")
    assert controller.state.current_image is edited
    assert controller.state.history.snapshot() == [portrait]
    assert "age change" in backend.calls[-1][1]

    duration = controller.animate("slow blink", context)
    assert duration == 400
    state = controller.state
    assert controller.mode is PortraitMode.PLAYING
    assert state.current_image is edited
    assert state.history.snapshot() == [portrait]
    assert state.has_animation and state.frame_duration_ms == 400

    path = controller.export(tmp_path)
    assert path.name == "improv-animation.gif"
    with Image.open(path) as gif:
        assert gif.n_frames == 16
        total = 0
        for i in range(gif.n_frames):
            gif.seek(i)
            total += gif.info["duration"]
    assert total == 16 * duration
    assert controller.mode is PortraitMode.PLAYING

    assert [e.kind for e in costs] == [CostKind.GENERATION, CostKind.EDIT, CostKind.ANIMATION]
    assert sum(e.tokens for e in costs) == 3500


def test_status_text_walks_generation_stages(controller, context):
    seen = []
    controller.add_listener(lambda state: seen.append((state.mode, state.status_text)))
    controller.generate(context)
    texts = [text for mode, text in seen if mode is PortraitMode.GENERATING]
    assert "1/2: Writing detailed portrait prompt..." in texts
    assert "2/2: Generating portrait..." in texts
    assert seen[-1] == (PortraitMode.IDLE, "")


def test_concurrent_generate_is_rejected(controller, backend, context):
    rejected = []

    def reenter():
        assert controller.is_busy
        with pytest.raises(PortraitBusyError) as info:
            controller.generate(context)
        rejected.append(info.value.mode)

    backend.on_compose = reenter
    controller.generate(context)
    assert rejected == [PortraitMode.GENERATING]
    assert backend.names().count("compose_text") == 1


def test_result_after_dismiss_is_discarded(controller, backend, context, costs):
    backend.on_compose = controller.dismiss
    assert controller.generate(context) is None
    assert controller.state.current_image is None
    assert controller.mode is PortraitMode.IDLE
    assert costs == []


def test_stale_edit_does_not_touch_history(controller, backend, context):
    controller.load_image(make_still())
    backend.on_edit = controller.dismiss
    assert controller.edit("add a hat") is None
    assert len(controller.state.history) == 0


def test_generation_failure_keeps_state(controller, backend, context):
    controller.load_image(make_still())
    before = controller.state.current_image
    backend.fail_with = GeminiAPIError("quota")
    with pytest.raises(GenerationFailedError):
        controller.generate(context)
    assert controller.mode is PortraitMode.ERROR
    assert controller.state.error_message == GENERATION_FAILED_MESSAGE
    assert controller.state.current_image is before

    controller.dismiss_error()
    assert controller.mode is PortraitMode.IDLE
    assert controller.state.error_message is None


def test_edit_without_image_part_fails(controller, backend):
    controller.load_image(make_still())
    backend.edit_parts = [ResponsePart(text="I cannot do that.")]
    with pytest.raises(EditFailedError):
        controller.edit("make it blue")
    assert controller.state.error_message == EDIT_FAILED_MESSAGE
    assert len(controller.state.history) == 0


def test_edit_and_animate_noops(controller, backend, context):
    assert controller.edit("add a hat") is None
    controller.load_image(make_still())
    assert controller.edit("   ") is None
    assert controller.animate("", context) is None
    assert backend.calls == []
    assert controller.mode is PortraitMode.IDLE


def test_animation_failure_leaves_previous_animation(controller, backend, context):
    controller.load_image(make_still())
    controller.animate("slow blink", context)
    sheet = controller.state.sprite_sheet

    backend.animation_parts = [ResponsePart(text='{"frameDuration": 300}')]
    with pytest.raises(AnimationFailedError):
        controller.animate("wave", context)
    assert controller.state.sprite_sheet is sheet
    assert controller.state.frame_duration_ms == 400
    assert controller.state.error_message.startswith("The animation failed:")


def test_undo_restores_previous_and_drops_animation(controller, context):
    assert controller.undo() is False

    controller.generate(context)
    first = controller.state.current_image
    controller.edit("make them look older")
    controller.animate("slow blink", context)

    assert controller.undo() is True
    assert controller.state.current_image is first
    assert not controller.state.has_animation
    assert controller.mode is PortraitMode.IDLE
    assert controller.undo() is False


def test_undo_rejected_while_busy(controller, backend, context):
    errors = []

    def try_undo():
        with pytest.raises(PortraitBusyError):
            controller.undo()
        errors.append("rejected")

    backend.on_compose = try_undo
    controller.generate(context)
    assert errors == ["rejected"]


def test_load_invalid_data_uri(controller):
    controller.load_image(make_still())
    before = controller.state.current_image
    with pytest.raises(InvalidInputError):
        controller.load_image("not-a-data-uri")
    assert controller.state.current_image is before
    assert controller.mode is PortraitMode.ERROR
    assert controller.state.error_message == INVALID_IMAGE_MESSAGE


def test_load_data_uri_starts_fresh(controller, context):
    controller.generate(context)
    controller.edit("add a scarf")
    uri = make_still((1, 2, 3)).to_data_uri()
    ref = controller.load_image(uri)
    assert controller.state.current_image == ref
    assert len(controller.state.history) == 0


def test_export_requires_animation(controller, tmp_path):
    with pytest.raises(PortraitBusyError):
        controller.export(tmp_path)


class FakeCamera:
    def __init__(self, fail_open=False, fail_capture=False):
        self.fail_open = fail_open
        self.fail_capture = fail_capture
        self.opened = False
        self.closed = 0

    def open(self):
        if self.fail_open:
            raise CameraError("denied")
        self.opened = True
        return self

    def capture_still(self):
        if self.fail_capture:
            raise CameraError("no frame")
        return make_still((5, 5, 5))

    def close(self):
        self.closed += 1


def test_capture_starts_fresh_history_and_releases_camera(backend, grid, context):
    camera = FakeCamera()
    controller = PortraitController(backend, camera_factory=lambda: camera, grid=grid)
    controller.generate(context)
    controller.edit("add a hat")

    controller.open_camera()
    assert controller.mode is PortraitMode.CAPTURING
    assert controller.camera is camera
    photo = controller.capture()

    assert controller.state.current_image is photo
    assert len(controller.state.history) == 0
    assert camera.closed == 1
    assert controller.camera is None
    assert controller.mode is PortraitMode.IDLE


def test_camera_open_failure_releases_device(backend, grid):
    camera = FakeCamera(fail_open=True)
    controller = PortraitController(backend, camera_factory=lambda: camera, grid=grid)
    with pytest.raises(CameraError):
        controller.open_camera()
    assert camera.closed == 1
    assert controller.camera is None
    assert controller.mode is PortraitMode.ERROR


def test_capture_failure_still_releases(backend, grid):
    camera = FakeCamera(fail_capture=True)
    controller = PortraitController(backend, camera_factory=lambda: camera, grid=grid)
    controller.open_camera()
    with pytest.raises(CameraError):
        controller.capture()
    assert camera.closed == 1
    assert controller.mode is PortraitMode.ERROR


def test_cancel_camera_and_dismiss(backend, grid):
    camera = FakeCamera()
    controller = PortraitController(backend, camera_factory=lambda: camera, grid=grid)
    controller.open_camera()
    controller.close_camera()
    assert camera.closed == 1
    assert controller.mode is PortraitMode.IDLE

    controller.open_camera()
    controller.dismiss()
    assert camera.closed == 2
    assert controller.camera is None


def test_odd_duration_plays_and_exports_the_same_length(controller, backend, context, tmp_path):
    controller.load_image(make_still())
    backend.animation_parts[0] = ResponsePart(text='{"frameDuration": 405}')
    duration = controller.animate("slow blink", context)
    assert duration == controller.state.frame_duration_ms == 410

    path = controller.export(tmp_path)
    with Image.open(path) as gif:
        total = 0
        for i in range(gif.n_frames):
            gif.seek(i)
            total += gif.info["duration"]
    assert total == 16 * duration


class _NoopOrchestrator:
    def edit(self, *args):
        return None

    def animate(self, *args):
        return None


def test_noop_orchestrator_result_settles_mode(controller, context, costs):
    controller.load_image(make_still())
    controller.editing = _NoopOrchestrator()
    controller.animation = _NoopOrchestrator()

    assert controller.edit("add a hat") is None
    assert controller.mode is PortraitMode.IDLE
    assert controller.animate("wave", context) is None
    assert controller.mode is PortraitMode.IDLE
    assert costs == []
