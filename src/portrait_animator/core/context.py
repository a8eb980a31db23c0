"""
Loading the narrative context from YAML.

Expected layout:

    character_rules: "A grumpy lighthouse keeper..."
    continuity_summary: "So far the keeper has..."
    current_scene_index: 1
    scenes:
      - "A stormy night at the lighthouse."
      - description: "Morning after the storm."
"""

from pathlib import Path
from typing import Any, Dict

import yaml

from .exceptions import InvalidInputError
from .models import SessionContext


def _scene_text(scene: Any) -> str:
    if isinstance(scene, dict):
        return str(scene.get("description") or "")
    return "" if scene is None else str(scene)


def context_from_mapping(data: Dict[str, Any]) -> SessionContext:
    """
    Build a SessionContext from a plain dict (as parsed from YAML).

    A missing current_scene_index points at the last scene.

    Raises:
        InvalidInputError: If the mapping has the wrong shape.
    """
    if not isinstance(data, dict):
        raise InvalidInputError("Session context must be a mapping")

    scenes = data.get("scenes") or []
    if not isinstance(scenes, list):
        raise InvalidInputError("'scenes' must be a list")
    descriptions = [_scene_text(s) for s in scenes]

    index = data.get("current_scene_index", len(descriptions) - 1)
    try:
        index = int(index)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Invalid current_scene_index: {index!r}") from e
    if descriptions and not 0 <= index < len(descriptions):
        raise InvalidInputError(
            f"current_scene_index {index} outside 0..{len(descriptions) - 1}"
        )

    return SessionContext(
        scene_descriptions=descriptions,
        current_scene_index=max(index, 0),
        character_rules=str(data.get("character_rules") or ""),
        continuity_summary=str(data.get("continuity_summary") or ""),
    )


def load_session_context(path: Path) -> SessionContext:
    """
    Read a session context YAML file.

    Raises:
        InvalidInputError: If the file is unreadable or malformed.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise InvalidInputError(f"Could not read session context {path}: {e}") from e
    return context_from_mapping(data)
