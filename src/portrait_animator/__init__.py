"""
Improv Portrait Animator

Character portrait generator and animator for live improv sessions, using
Google Gemini / Imagen models. Turns narrative context into a portrait,
edits it on request, and animates it as a looping 4x4 sprite sheet that
can be exported as a GIF.

Package Structure:
    core/       - State machine, controller and data models
    api/        - Gemini API integration and prompt builders
    processing/ - Generation, editing, animation, playback, export, camera
    ui/         - Tkinter user interface
"""

__version__ = "1.0.0"

# Lazy imports for heavy dependencies
def __getattr__(name):
    if name == "PortraitController":
        from .core.controller import PortraitController
        return PortraitController
    if name == "SessionContext":
        from .core.models import SessionContext
        return SessionContext
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "__version__",
    "PortraitController",
    "SessionContext",
]
