"""
Instructed edits of the current portrait.
"""

from typing import Optional, Union

from ..api.exceptions import GeminiAPIError
from ..api.prompt_builders import build_edit_instruction
from ..core.exceptions import EditFailedError
from ..core.models import ImageRef
from ..logging_utils import log_generation_complete, log_generation_start, log_warning


class EditOrchestrator:
    """Apply a free-text instruction to the current portrait."""

    def __init__(self, backend):
        self.backend = backend

    def edit(self, current_image: Union[ImageRef, str, None], instruction: str) -> Optional[ImageRef]:
        """
        Edit the image according to `instruction`.

        An empty instruction or a missing image is a no-op and returns None
        without calling the backend.

        Returns:
            The edited image, or None for a no-op.

        Raises:
            InvalidInputError: If the image reference cannot be decomposed.
            EditFailedError: If the backend fails or returns no image part.
        """
        instruction = (instruction or "").strip()
        if not instruction or current_image is None:
            return None

        image = ImageRef.coerce(current_image)
        log_generation_start("edit")

        try:
            parts = self.backend.edit_image(image, build_edit_instruction(instruction))
        except GeminiAPIError as e:
            log_generation_complete("edit", False, str(e))
            raise EditFailedError(f"The image could not be edited: {e}") from e

        for part in parts:
            if part.is_image:
                log_generation_complete("edit", True, instruction[:80])
                return part.image

        texts = " ".join(p.text for p in parts if p.text)
        if texts:
            log_warning(f"Edit returned text without an image: {texts[:200]}")
        log_generation_complete("edit", False, "no image part in reply")
        raise EditFailedError("The image model did not return an edited image")
