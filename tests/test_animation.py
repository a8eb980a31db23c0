import pytest
from PIL import Image

from conftest import make_sheet, make_still
from portrait_animator.api.exceptions import GeminiAPIError
from portrait_animator.core.exceptions import AnimationFailedError
from portrait_animator.core.models import ResponsePart
from portrait_animator.processing.animation import (
    AnimationOrchestrator,
    parse_animation_response,
    parse_frame_duration,
    strip_code_fences,
)
from portrait_animator.processing.image_utils import encode_image


def test_parse_frame_duration_variants():
    assert parse_frame_duration('{"frameDuration": 400}') == 400
    assert parse_frame_duration('```json\n{"frameDuration": 350}\n```') == 350
    assert parse_frame_duration("250") == 250
    assert parse_frame_duration('{"frameDuration": 10}') == 50
    assert parse_frame_duration('{"frameDuration": 99999}') == 2000


def test_parse_frame_duration_quantizes_to_centiseconds():
    assert parse_frame_duration('{"frameDuration": 405}') == 410
    assert parse_frame_duration('{"frameDuration": 375}') == 380
    assert parse_frame_duration('{"frameDuration": 404.9}') == 400


@pytest.mark.parametrize("text", [
    "",
    "fast please",
    '{"frameDuration": 0}',
    '{"frameDuration": -5}',
    '{"frameDuration": true}',
    '{"frameDuration": "400"}',
    '{"speed": 400}',
    '{"frameDuration": 1' + '0' * 400 + '}',
    '1e999',
])
def test_parse_frame_duration_rejects_unusable_values(text):
    assert parse_frame_duration(text) is None


def test_strip_code_fences():
    assert strip_code_fences('```json {"a": 1} ```') == '{"a": 1}'
    assert strip_code_fences("plain") == "plain"


def test_default_duration_when_text_unparseable():
    grid = make_sheet()
    response = parse_animation_response([
        ResponsePart(text="Here is your animation!"),
        ResponsePart(image=grid),
    ])
    assert response.frame_duration_ms == 100
    assert response.grid_image is grid
    assert not response.duration_was_parsed


def test_last_image_part_wins_and_order_does_not_matter():
    first, second = make_still(), make_sheet()
    response = parse_animation_response([
        ResponsePart(image=first),
        ResponsePart(text='{"frameDuration": 300}'),
        ResponsePart(image=second),
    ])
    assert response.grid_image is second
    assert response.frame_duration_ms == 300


def test_no_image_part_fails():
    with pytest.raises(AnimationFailedError):
        parse_animation_response([ResponsePart(text='{"frameDuration": 300}')])


def test_orchestrator_noop_without_request(backend, context):
    orchestrator = AnimationOrchestrator(backend)
    assert orchestrator.animate(make_still(), "   ", context) is None
    assert orchestrator.animate(None, "blink", context) is None
    assert backend.calls == []


def test_orchestrator_returns_validated_sheet(backend, context, grid):
    response = AnimationOrchestrator(backend, grid).animate(make_still(), "slow blink", context)
    assert response.frame_duration_ms == 400
    assert backend.names() == ["edit_image"]
    assert '"slow blink"' in backend.calls[0][1]


def test_orchestrator_rejects_non_square_sheet(backend, context, grid):
    backend.animation_parts = [ResponsePart(image=encode_image(Image.new("RGB", (64, 32))))]
    with pytest.raises(AnimationFailedError):
        AnimationOrchestrator(backend, grid).animate(make_still(), "wave", context)


def test_orchestrator_wraps_backend_errors(backend, context, grid):
    backend.fail_with = GeminiAPIError("503 after retries")
    with pytest.raises(AnimationFailedError):
        AnimationOrchestrator(backend, grid).animate(make_still(), "wave", context)



def test_oversized_duration_falls_back_to_default():
    response = parse_animation_response([
        ResponsePart(text='{"frameDuration": 1' + '0' * 400 + '}'),
        ResponsePart(image=make_sheet()),
    ])
    assert response.frame_duration_ms == 100
    assert not response.duration_was_parsed
