"""
Portrait generation from narrative context.

Two sequential backend calls: the text model writes a descriptive portrait
prompt from the session context, then the image model renders one square
still from that prompt.
"""

from typing import Callable, Optional

from ..api.exceptions import GeminiAPIError
from ..api.prompt_builders import build_portrait_prompt_request
from ..core.exceptions import GenerationFailedError
from ..core.models import ImageRef, SessionContext
from ..logging_utils import log_debug, log_generation_complete, log_generation_start

StatusCallback = Callable[[str], None]


class GenerationOrchestrator:
    """Context -> descriptive prompt -> still portrait."""

    def __init__(self, backend):
        self.backend = backend

    def build_image_prompt(self, context: SessionContext) -> str:
        """
        Ask the text model for a visual description of the AI character.

        Raises:
            GenerationFailedError: If the backend fails or answers with nothing.
        """
        request = build_portrait_prompt_request(context)
        try:
            image_prompt = self.backend.compose_text(request)
        except GeminiAPIError as e:
            raise GenerationFailedError(f"Could not write the portrait prompt: {e}") from e
        image_prompt = (image_prompt or "").strip()
        if not image_prompt:
            raise GenerationFailedError("The text model returned an empty portrait prompt")
        log_debug(f"Portrait prompt: {image_prompt[:300]}")
        return image_prompt

    def generate(
        self,
        context: SessionContext,
        on_status: Optional[StatusCallback] = None,
    ) -> ImageRef:
        """
        Generate a new still portrait for the given context.

        Args:
            context: Narrative context for the current scene.
            on_status: Optional callback receiving stage labels.

        Returns:
            The generated image.

        Raises:
            GenerationFailedError: If either stage fails or no image comes back.
        """
        log_generation_start("portrait")
        notify = on_status or (lambda _text: None)

        notify("1/2: Writing detailed portrait prompt...")
        try:
            image_prompt = self.build_image_prompt(context)
        except GenerationFailedError as e:
            log_generation_complete("portrait", False, str(e))
            raise

        notify("2/2: Generating portrait...")
        try:
            image = self.backend.generate_image(image_prompt)
        except GeminiAPIError as e:
            log_generation_complete("portrait", False, str(e))
            raise GenerationFailedError(f"The portrait could not be created: {e}") from e
        if image is None:
            log_generation_complete("portrait", False, "no image returned")
            raise GenerationFailedError("The image model returned no image")

        log_generation_complete("portrait", True, f"{len(image.data)} bytes")
        return image
