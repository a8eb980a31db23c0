"""
API module for Gemini interactions.

Handles all communication with Google Gemini API including:
- Authentication and configuration
- Text, image generation and image editing calls
- Retry logic and error handling
- Prompt building
"""

from .exceptions import GeminiAPIError, GeminiEmptyResultError, GeminiSafetyError

from .gemini_client import (
    GeminiBackend,
    get_api_key,
    load_config,
    save_config,
    interactive_api_key_setup,
    call_gemini_text,
    call_imagen_generate,
    call_gemini_image_edit,
    extract_response_parts,
)

from .prompt_builders import (
    build_portrait_prompt_request,
    build_edit_instruction,
    build_animation_prompt,
    format_scene_descriptions,
)

__all__ = [
    # Exceptions
    "GeminiAPIError",
    "GeminiEmptyResultError",
    "GeminiSafetyError",
    # Client functions
    "GeminiBackend",
    "get_api_key",
    "load_config",
    "save_config",
    "interactive_api_key_setup",
    "call_gemini_text",
    "call_imagen_generate",
    "call_gemini_image_edit",
    "extract_response_parts",
    # Prompt builders
    "build_portrait_prompt_request",
    "build_edit_instruction",
    "build_animation_prompt",
    "format_scene_descriptions",
]
