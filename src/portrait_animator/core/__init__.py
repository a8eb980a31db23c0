"""
Core business logic layer.

Contains the data models, the exception taxonomy and the undo history.
The PortraitController lives in core.controller and is imported from there
(it pulls in the processing layer).
"""

from .exceptions import (
    PortraitError,
    InvalidInputError,
    GenerationFailedError,
    EditFailedError,
    AnimationFailedError,
    ExportFailedError,
    EmptyHistoryError,
    CameraError,
    PortraitBusyError,
)
from .history import HistoryStack
from .models import (
    AnimationResponse,
    CostEvent,
    CostKind,
    GridSpec,
    ImageRef,
    PortraitMode,
    PortraitState,
    ResponsePart,
    SessionContext,
    DEFAULT_GRID,
)

__all__ = [
    "PortraitError",
    "InvalidInputError",
    "GenerationFailedError",
    "EditFailedError",
    "AnimationFailedError",
    "ExportFailedError",
    "EmptyHistoryError",
    "CameraError",
    "PortraitBusyError",
    "HistoryStack",
    "AnimationResponse",
    "CostEvent",
    "CostKind",
    "GridSpec",
    "ImageRef",
    "PortraitMode",
    "PortraitState",
    "ResponsePart",
    "SessionContext",
    "DEFAULT_GRID",
]
