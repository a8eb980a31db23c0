"""Exceptions raised by the portrait pipeline."""


class PortraitError(RuntimeError):
    """Base exception for portrait operations."""
    pass


class InvalidInputError(PortraitError):
    """Malformed image reference or missing required text."""
    pass


class GenerationFailedError(PortraitError):
    """The backend did not produce a portrait."""
    pass


class EditFailedError(PortraitError):
    """The backend did not return an edited image."""
    pass


class AnimationFailedError(PortraitError):
    """The backend did not return a usable sprite sheet."""
    pass


class ExportFailedError(PortraitError):
    """The sprite sheet could not be decoded or assembled into a GIF."""
    pass


class EmptyHistoryError(PortraitError):
    """Pop on an empty history stack."""
    pass


class CameraError(PortraitError):
    """The camera could not be opened or did not deliver a frame."""
    pass


class PortraitBusyError(PortraitError):
    """
    The operation is not allowed in the current mode.

    Attributes:
        mode: The mode the controller was in when the call was rejected.
    """
    def __init__(self, message: str, mode=None):
        super().__init__(message)
        self.mode = mode
