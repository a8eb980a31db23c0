import json

import pytest
import requests

from portrait_animator.api import gemini_client
from portrait_animator.api.exceptions import (
    GeminiAPIError,
    GeminiEmptyResultError,
    GeminiSafetyError,
)
from portrait_animator.api.gemini_client import (
    GeminiBackend,
    call_gemini_image_edit,
    call_gemini_text,
    call_imagen_generate,
    extract_response_parts,
    get_api_key,
)
from portrait_animator.core.models import ImageRef


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = json.dumps(self._payload)

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        return self._payload


def _candidate(*parts, finish_reason="STOP"):
    return {"candidates": [{"content": {"parts": list(parts)}, "finishReason": finish_reason}]}


def _queue_responses(monkeypatch, *responses):
    sent = []
    queue = list(responses)

    def fake_post(url, headers=None, data=None, timeout=None):
        sent.append({"url": url, "headers": headers, "payload": json.loads(data)})
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(gemini_client.requests, "post", fake_post)
    return sent


def test_text_call_retries_transient_status(monkeypatch):
    sent = _queue_responses(
        monkeypatch,
        FakeResponse(503, {"error": "busy"}),
        FakeResponse(200, _candidate({"text": "A portrait prompt."})),
    )
    assert call_gemini_text("key", "write a prompt") == "A portrait prompt."
    assert len(sent) == 2
    assert sent[0]["headers"]["x-goog-api-key"] == "key"
    assert sent[0]["payload"]["contents"][0]["parts"][0]["text"] == "write a prompt"


def test_network_errors_exhaust_retries(monkeypatch):
    sent = _queue_responses(
        monkeypatch,
        *[requests.ConnectionError("down")] * 3,
    )
    with pytest.raises(GeminiAPIError):
        call_gemini_text("key", "x")
    assert len(sent) == 3


def test_client_errors_are_not_retried(monkeypatch):
    sent = _queue_responses(monkeypatch, FakeResponse(400, {"error": "bad request"}))
    with pytest.raises(GeminiAPIError, match="400"):
        call_gemini_text("key", "x")
    assert len(sent) == 1


def test_safety_block_is_raised(monkeypatch):
    _queue_responses(
        monkeypatch,
        FakeResponse(200, _candidate(finish_reason="IMAGE_SAFETY")),
    )
    with pytest.raises(GeminiSafetyError):
        call_gemini_image_edit("key", ImageRef.from_bytes(b"img"), "edit")


def test_empty_text_reply(monkeypatch):
    _queue_responses(monkeypatch, FakeResponse(200, _candidate()))
    with pytest.raises(GeminiEmptyResultError):
        call_gemini_text("key", "x")


def test_imagen_generate_decodes_prediction(monkeypatch):
    image = ImageRef.from_bytes(b"png-bytes", "image/png")
    sent = _queue_responses(
        monkeypatch,
        FakeResponse(200, {"predictions": [{"bytesBase64Encoded": image.b64, "mimeType": "image/png"}]}),
    )
    assert call_imagen_generate("key", "a keeper") == image
    params = sent[0]["payload"]["parameters"]
    assert params["sampleCount"] == 1
    assert params["aspectRatio"] == "1:1"


def test_imagen_without_predictions(monkeypatch):
    _queue_responses(monkeypatch, FakeResponse(200, {"predictions": []}))
    with pytest.raises(GeminiEmptyResultError):
        call_imagen_generate("key", "a keeper")


def test_image_edit_sends_image_then_text(monkeypatch):
    source = ImageRef.from_bytes(b"source", "image/jpeg")
    result = ImageRef.from_bytes(b"edited", "image/png")
    sent = _queue_responses(
        monkeypatch,
        FakeResponse(200, _candidate(
            {"text": '{"frameDuration": 300}'},
            {"inlineData": {"mimeType": "image/png", "data": result.b64}},
        )),
    )
    parts = GeminiBackend("key").edit_image(source, "animate")
    request_parts = sent[0]["payload"]["contents"][0]["parts"]
    assert request_parts[0] == source.to_inline_part()
    assert request_parts[1] == {"text": "animate"}
    assert sent[0]["payload"]["generationConfig"]["responseModalities"] == ["IMAGE"]
    assert [p.is_image for p in parts] == [False, True]
    assert parts[1].image == result


def test_extract_response_parts_accepts_snake_case_and_skips_bad_images():
    good = ImageRef.from_bytes(b"ok", "image/webp")
    data = _candidate(
        {"inline_data": {"mime_type": "image/webp", "data": good.b64}},
        {"inlineData": {"mimeType": "image/png", "data": "@@not base64@@"}},
        {"text": "done"},
    )
    parts = extract_response_parts(data)
    assert [p.image for p in parts if p.is_image] == [good]
    assert [p.text for p in parts if not p.is_image] == ["done"]


def test_get_api_key_prefers_environment(monkeypatch, tmp_path):
    monkeypatch.setattr(gemini_client, "CONFIG_PATH", tmp_path / "config.json")
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    assert get_api_key(interactive=False) == "from-env"

    monkeypatch.delenv("GEMINI_API_KEY")
    assert get_api_key(interactive=False) is None
    (tmp_path / "config.json").write_text(json.dumps({"api_key": "from-file"}))
    assert get_api_key(interactive=False) == "from-file"


def test_backend_requires_key():
    with pytest.raises(ValueError):
        GeminiBackend("")
