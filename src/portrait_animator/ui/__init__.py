"""
UI module for the portrait animator.

Tkinter window with the portrait display, animation playback and the
generate / photo / edit / animate / export controls.
"""

from .tk_common import (
    apply_dark_theme,
    center_and_clamp,
    create_camera_button,
    create_danger_button,
    create_primary_button,
    create_secondary_button,
    to_photo_image,
)

from .portrait_window import PortraitWindow, run_portrait_window

__all__ = [
    # Theme and widgets
    "apply_dark_theme",
    "center_and_clamp",
    "create_camera_button",
    "create_danger_button",
    "create_primary_button",
    "create_secondary_button",
    "to_photo_image",
    # Windows
    "PortraitWindow",
    "run_portrait_window",
]
