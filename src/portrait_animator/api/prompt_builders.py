"""
Prompt builders for Gemini API requests.

All prompt text for portrait generation, instructed edits, and sprite sheet
animation. Builders are pure: missing context is replaced by explicit
placeholder text instead of raising.
"""

from typing import List, Optional

from ..config import (
    FRAME_COUNT,
    GRID_SIZE,
    REQUESTED_FRAME_DURATION_MAX_MS,
    REQUESTED_FRAME_DURATION_MIN_MS,
    SPRITE_SHEET_SIZE,
)
from ..core.models import SessionContext

NO_RULES_PLACEHOLDER = "No general character rules were provided."
NO_SCENES_PLACEHOLDER = "No scene descriptions were provided."
NO_SUMMARY_PLACEHOLDER = "No summary yet."


def format_scene_descriptions(scenes: List[str]) -> str:
    """
    Number scene descriptions from 1, one per line.

    Blank descriptions keep their number so scene indices stay aligned.
    """
    if not scenes:
        return NO_SCENES_PLACEHOLDER
    lines = []
    for i, description in enumerate(scenes, start=1):
        text = (description or "").strip() or "(no description)"
        lines.append(f"Scene {i} details: {text}")
    return "\n".join(lines)


def _or_placeholder(value: Optional[str], placeholder: str) -> str:
    value = (value or "").strip()
    return value or placeholder


def _context_block(context: SessionContext) -> str:
    """Shared narrative context section used by both composers."""
    rules = _or_placeholder(context.character_rules, NO_RULES_PLACEHOLDER)
    scenes = format_scene_descriptions(context.scenes_up_to_current())
    summary = _or_placeholder(context.continuity_summary, NO_SUMMARY_PLACEHOLDER)
    return (
        f"*   **AI Character / General Rules:** {rules}\n"
        f"*   **Scene Descriptions (up to the current scene):**\n{scenes}\n"
        f"*   **Story So Far (summary of previous scenes):** {summary}"
    )


def build_portrait_prompt_request(context: SessionContext) -> str:
    """
    Build the meta-prompt that asks the text model to write an image prompt.

    The text model reads the character rules, the scenes so far and the
    continuity summary, and answers with one descriptive paragraph for a
    photorealistic close-up portrait of the AI character only.
    """
    return f"""You are an expert prompt engineer for a photorealistic image generation AI. Your task is to write a detailed image prompt based on the provided context about an AI character in an improv scene.

**Instructions:**
1. Read all of the provided context: the character's general rules, the scene descriptions, and the story summary.
2. Synthesize this information into a clear visual description of the **AI character ONLY**.
3. The final result must be a single descriptive paragraph.
4. The prompt must describe a **realistic, photorealistic, close-up portrait photograph** of the character. Do not include other characters or complex backgrounds. Focus on the face and upper body.

**Provided Context:**
{_context_block(context)}

Now, based on all of the context, write the detailed image prompt."""


def build_edit_instruction(instruction: str) -> str:
    """
    Wrap the user's edit text and append the age-transformation rule.

    When the instruction implies a significant age change the model may alter
    facial structure, skin texture, wrinkle depth and hair color/density
    instead of preserving pixel-level identity. The rule applies to that
    instruction class only.
    """
    return f"""You are an expert photo editor using AI. Your task is to modify the provided image following the user's instruction.

**User Instruction:**
"{instruction.strip()}"

**Special Modification Rule:**
If the user's instruction implies a significant age change (such as "make them look older", "age them 20 years", "turn them into an elderly person"), you have explicit permission to make substantial changes to facial structure so the result is believable. This includes:
- Modifying the shape of the face.
- Adding or deepening wrinkles on the forehead, around the eyes and around the mouth.
- Changing skin texture and sagging.
- Altering the color and density of hair and eyebrows (for example, adding gray hair).
- Making any other adjustment needed for the age transformation to be effective and realistic.
This permission applies only to age transformations. For every other instruction, keep the person's identity and the rest of the image unchanged.

Apply the user's instruction to the image now."""


def build_animation_prompt(animation_request: str, context: SessionContext) -> str:
    """
    Build the sprite sheet animation prompt.

    Embeds the user's creative direction and the narrative context, the
    subtlety rules, the frame duration window, and the required two-part
    answer: a JSON duration first, then the grid image.
    """
    creative_direction = f"""Animate the character in the provided image.

**Animation Request:**
"{animation_request.strip()}"

**Character Context (for reference):**
{_context_block(context)}"""

    return f"""PRIMARY GOAL: Generate a single animated sprite sheet image and its corresponding animation speed.

You are an expert animator. Your task is to create a {FRAME_COUNT}-frame animated sprite sheet based on the user's request.

---
CREATIVE DIRECTION:
{creative_direction}

ANIMATION REQUIREMENTS:
- **SUBTLETY IS KEY:** The goal is a "living portrait" with subtle, natural micro-animations. The changes between frames MUST be minimal and gradual.
- **FOCUS ON SMALL GESTURES:** Animate small gestures like a slow blink, a slight head tilt, a gentle breath, or a subtle shift in facial expression. AVOID large, fast, or exaggerated movements.
- **SMOOTH & SEAMLESS LOOP:** The movement must be extremely smooth, and the last frame must loop back perfectly to the first frame.
- **MAINTAIN IDENTITY (CRITICAL):** The subject's identity, face, and core features must remain perfectly consistent across all {FRAME_COUNT} frames.
- **STABLE SUBJECT:** The subject's core position and scale MUST remain fixed. Imagine a static camera. Only the parts being animated move.
- The animation must contain exactly {FRAME_COUNT} frames.

FRAME DURATION LOGIC:
Based on the creative direction, choose an optimal frame duration for a natural, subtle animation.
- The animation should feel calm and realistic, like a "living photo".
- **Choose a duration between {REQUESTED_FRAME_DURATION_MIN_MS} and {REQUESTED_FRAME_DURATION_MAX_MS} milliseconds per frame.** A longer duration (e.g., 400ms) gives a slower, more thoughtful animation, which is generally preferred.
- Avoid durations under {REQUESTED_FRAME_DURATION_MIN_MS}ms unless the request explicitly calls for a fast action.

---
REQUIRED RESPONSE FORMAT:

Your response MUST be structured into two distinct parts in the following order:

PART 1: JSON Data
A single, valid JSON object containing one key: "frameDuration". The value must be a number representing the milliseconds per frame you decided on. Do not add any other text or markdown formatting (like ```json) around the JSON.
Example:
{{"frameDuration": 400}}

PART 2: Image Data
The {FRAME_COUNT}-frame sprite sheet image itself. This image MUST follow these technical specifications.

IMAGE OUTPUT REQUIREMENTS:
- The output MUST be a single, square image.
- The image MUST be precisely {SPRITE_SHEET_SIZE}x{SPRITE_SHEET_SIZE} pixels.
- The image must contain the {FRAME_COUNT} animation frames arranged in a {GRID_SIZE}x{GRID_SIZE} grid ({GRID_SIZE} rows, {GRID_SIZE} columns), read left-to-right, top-to-bottom, frame 1 at the top-left.
- Do not add numbers, labels, or borders to the individual frames within the image."""
