"""
Gemini API client for portrait generation, editing and animation.

Handles authentication, API calls, retries, and response parsing for Google Gemini.
"""

import json
import os
from typing import List, Optional

import requests

from ..config import (
    API_KEY_ENV,
    CONFIG_PATH,
    GEMINI_IMAGE_URL,
    GEMINI_MAX_RETRIES,
    GEMINI_RETRY_STATUSES,
    GEMINI_SAFETY_FINISH_REASONS,
    GEMINI_TEXT_URL,
    GEMINI_TIMEOUT_SECONDS,
    IMAGEN_ASPECT_RATIO,
    IMAGEN_OUTPUT_MIME,
    IMAGEN_URL,
)
from ..core.exceptions import InvalidInputError
from ..core.models import ImageRef, ResponsePart
from ..logging_utils import log_api_call, log_debug, log_warning
from .exceptions import GeminiAPIError, GeminiEmptyResultError, GeminiSafetyError


# =============================================================================
# Configuration Management
# =============================================================================

def load_config() -> dict:
    """
    Load configuration from CONFIG_PATH if present.

    Returns:
        Dictionary containing configuration, or empty dict if not found or unreadable.
    """
    if CONFIG_PATH.is_file():
        try:
            with CONFIG_PATH.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            log_warning(f"Could not read config {CONFIG_PATH}: {e}")
            return {}
    return {}


def save_config(config: dict) -> None:
    """
    Save configuration dictionary to CONFIG_PATH.

    Sets file permissions to 0o600 (the file holds the API key).
    """
    CONFIG_PATH.write_text(json.dumps(config, indent=2), encoding="utf-8")
    try:
        os.chmod(CONFIG_PATH, 0o600)
    except OSError:
        pass  # Permissions may not be supported on all platforms


def interactive_api_key_setup() -> str:
    """
    Prompt user for a Gemini API key on the console and save it to config.

    Raises:
        SystemExit: If no API key is entered.
    """
    print("\nIt looks like you haven't configured a Gemini API key yet.")
    print("Create one at https://aistudio.google.com/app/apikey")

    api_key = input("\nPaste your Gemini API key here and press Enter:\n> ").strip()
    if not api_key:
        raise SystemExit("No API key entered. Please rerun when you have a key.")

    config = load_config()
    config["api_key"] = api_key
    save_config(config)
    print(f"Saved API key to {CONFIG_PATH}.")
    return api_key


def get_api_key(interactive: bool = True) -> Optional[str]:
    """
    Return Gemini API key from environment variable or config file.

    Checks GEMINI_API_KEY first, then the config file, then (optionally)
    asks on the console.
    """
    env_key = os.environ.get(API_KEY_ENV)
    if env_key:
        return env_key

    config = load_config()
    if config.get("api_key"):
        return config["api_key"]

    if interactive:
        return interactive_api_key_setup()
    return None


# =============================================================================
# Response Parsing
# =============================================================================

def _check_safety(data: dict, context: str) -> None:
    """Raise GeminiSafetyError if any candidate was blocked."""
    for candidate in data.get("candidates", []):
        finish_reason = candidate.get("finishReason")
        if finish_reason in GEMINI_SAFETY_FINISH_REASONS:
            log_api_call(context, False, f"Safety blocked: {finish_reason}")
            raise GeminiSafetyError(
                f"Content blocked by safety filters ({context}): {finish_reason}",
                candidate.get("safetyRatings", []),
            )
    feedback = data.get("promptFeedback") or {}
    if feedback.get("blockReason"):
        log_api_call(context, False, f"Prompt blocked: {feedback['blockReason']}")
        raise GeminiSafetyError(
            f"Prompt blocked by safety filters ({context}): {feedback['blockReason']}",
            feedback.get("safetyRatings", []),
        )


def extract_response_parts(data: dict) -> List[ResponsePart]:
    """
    Flatten the first candidate of a generateContent reply into ordered parts.

    Handles both 'inlineData' and 'inline_data' field naming.
    """
    candidates = data.get("candidates", [])
    if not candidates:
        return []
    parts: List[ResponsePart] = []
    for part in candidates[0].get("content", {}).get("parts", []):
        blob = part.get("inlineData") or part.get("inline_data")
        if blob and blob.get("data"):
            mime = blob.get("mimeType") or blob.get("mime_type") or "image/png"
            try:
                parts.append(ResponsePart(image=ImageRef.from_base64(blob["data"], mime)))
            except InvalidInputError as e:
                log_warning(f"Skipping undecodable image part: {e}")
        elif part.get("text") is not None:
            parts.append(ResponsePart(text=part["text"]))
    return parts


def _extract_text(data: dict) -> str:
    """Join the text parts of the first candidate."""
    texts = [p.text for p in extract_response_parts(data) if p.text]
    return "\n".join(texts).strip()


def _extract_imagen_image(data: dict) -> Optional[ImageRef]:
    """Return the first generated image from an Imagen :predict reply."""
    for prediction in data.get("predictions", []) or []:
        b64 = prediction.get("bytesBase64Encoded")
        if b64:
            return ImageRef.from_base64(b64, prediction.get("mimeType") or IMAGEN_OUTPUT_MIME)
    return None


# =============================================================================
# Gemini API Calls
# =============================================================================

def _post_with_retries(api_key: str, url: str, payload: dict, context: str) -> dict:
    """
    POST a JSON payload to Gemini with retry logic.

    Handles retries for transient errors (429, 500, 502, 503, 504) and
    network failures. Safety blocks are never retried.

    Returns:
        Parsed JSON response.

    Raises:
        GeminiSafetyError: If the content was blocked.
        GeminiAPIError: If the call fails after all retries.
    """
    headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
    last_error = None

    log_debug(f"Gemini API call starting: {context}")

    for attempt in range(1, GEMINI_MAX_RETRIES + 1):
        try:
            response = requests.post(
                url,
                headers=headers,
                data=json.dumps(payload),
                timeout=GEMINI_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            last_error = str(e)
            if attempt < GEMINI_MAX_RETRIES:
                log_warning(f"Gemini call failed ({context}) attempt {attempt}: {e}")
                continue
            log_api_call(context, False, f"Failed after {GEMINI_MAX_RETRIES} attempts: {last_error}")
            raise GeminiAPIError(
                f"Gemini call failed after {GEMINI_MAX_RETRIES} attempts ({context}): {last_error}"
            ) from e

        if not response.ok:
            last_error = f"Gemini API error {response.status_code}: {response.text[:200]}"
            if response.status_code in GEMINI_RETRY_STATUSES and attempt < GEMINI_MAX_RETRIES:
                log_warning(f"Gemini API error {response.status_code} ({context}) attempt {attempt}, retrying...")
                continue
            log_api_call(context, False, f"HTTP {response.status_code}: {response.text[:200]}")
            raise GeminiAPIError(last_error)

        try:
            data = response.json()
        except ValueError as e:
            log_api_call(context, False, "Response was not JSON")
            raise GeminiAPIError(f"Gemini returned a non-JSON response ({context})") from e

        _check_safety(data, context)
        return data

    # Only reachable when GEMINI_MAX_RETRIES < 1
    raise GeminiAPIError(f"Gemini call failed ({context}): {last_error}")


def call_gemini_text(api_key: str, prompt: str) -> str:
    """
    Call the Gemini text model and return the response text.

    Raises:
        GeminiEmptyResultError: If the reply contains no text.
        GeminiAPIError: If the API call fails.
    """
    payload = {"contents": [{"parts": [{"text": prompt}]}]}
    data = _post_with_retries(api_key, GEMINI_TEXT_URL, payload, "text_generation")

    text = _extract_text(data)
    if not text:
        log_api_call("text_generation", False, "No text in response")
        raise GeminiEmptyResultError("No text in Gemini response")

    log_api_call("text_generation", True, f"Got {len(text)} chars")
    return text


def call_imagen_generate(api_key: str, prompt: str) -> ImageRef:
    """
    Generate one square image from a text prompt with Imagen.

    Raises:
        GeminiEmptyResultError: If no image came back.
        GeminiAPIError: If the API call fails.
    """
    payload = {
        "instances": [{"prompt": prompt}],
        "parameters": {
            "sampleCount": 1,
            "aspectRatio": IMAGEN_ASPECT_RATIO,
        },
    }
    data = _post_with_retries(api_key, IMAGEN_URL, payload, "image_generation")

    image = _extract_imagen_image(data)
    if image is None:
        log_debug(f"Imagen response without image data: {json.dumps(data)[:500]}")
        log_api_call("image_generation", False, "No image data in response")
        raise GeminiEmptyResultError("Imagen failed to return an image")

    log_api_call("image_generation", True, f"Image received ({len(image.data)} bytes)")
    return image


def call_gemini_image_edit(api_key: str, image: ImageRef, instruction: str) -> List[ResponsePart]:
    """
    Send an image plus instruction to the image model, image output only.

    Returns every part of the reply in order (leading text parts included);
    callers decide which parts they need.

    Raises:
        GeminiEmptyResultError: If the reply has no parts at all.
        GeminiAPIError: If the API call fails.
    """
    payload = {
        "contents": [{"parts": [image.to_inline_part(), {"text": instruction}]}],
        "generationConfig": {"responseModalities": ["IMAGE"]},
    }
    data = _post_with_retries(api_key, GEMINI_IMAGE_URL, payload, "image_edit")

    parts = extract_response_parts(data)
    if not parts:
        log_debug(f"Gemini response without parts: {json.dumps(data)[:500]}")
        log_api_call("image_edit", False, "Empty response")
        raise GeminiEmptyResultError("Gemini returned an empty response")

    images = sum(1 for p in parts if p.is_image)
    log_api_call("image_edit", True, f"{len(parts)} part(s), {images} image(s)")
    return parts


class GeminiBackend:
    """
    The generative capability set used by the orchestrators.

    Any object with compose_text / generate_image / edit_image and the same
    contracts can stand in for it.
    """

    def __init__(self, api_key: str):
        if not api_key:
            raise ValueError("A Gemini API key is required")
        self._api_key = api_key

    def compose_text(self, prompt: str) -> str:
        return call_gemini_text(self._api_key, prompt)

    def generate_image(self, prompt: str) -> ImageRef:
        return call_imagen_generate(self._api_key, prompt)

    def edit_image(self, image: ImageRef, instruction: str) -> List[ResponsePart]:
        return call_gemini_image_edit(self._api_key, image, instruction)
