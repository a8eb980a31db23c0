"""
Common Tkinter utilities and layout helpers.

Shared functions for window positioning, styled buttons and image
display for the dark theme design.
"""

import tkinter as tk
from typing import Callable

from PIL import Image, ImageOps, ImageTk

from ..config import (
    ACCENT_COLOR,
    ACCENT_HOVER,
    BG_COLOR,
    BUTTON_FONT,
    CAMERA_COLOR,
    CAMERA_HOVER,
    DANGER_COLOR,
    DANGER_HOVER,
    SECONDARY_COLOR,
    SECONDARY_HOVER,
    TEXT_COLOR,
    WINDOW_MARGIN,
)


# ═══════════════════════════════════════════════════════════════════════════════
# DARK THEME APPLICATION
# ═══════════════════════════════════════════════════════════════════════════════

def apply_dark_theme(root: tk.Tk) -> None:
    """Set the window background for the dark theme."""
    root.configure(bg=BG_COLOR)
    root.option_add("*Entry.background", "#3C3C3C")
    root.option_add("*Entry.foreground", TEXT_COLOR)
    root.option_add("*Entry.insertBackground", TEXT_COLOR)


# ═══════════════════════════════════════════════════════════════════════════════
# STYLED BUTTON FACTORIES
# ═══════════════════════════════════════════════════════════════════════════════

def _create_button(
    parent: tk.Widget,
    text: str,
    command: Callable,
    bg: str,
    hover: str,
    width: int,
) -> tk.Button:
    btn = tk.Button(
        parent,
        text=text,
        command=command,
        width=width,
        bg=bg,
        fg=TEXT_COLOR,
        activebackground=hover,
        activeforeground=TEXT_COLOR,
        disabledforeground="#888888",
        font=BUTTON_FONT,
        relief="flat",
        cursor="hand2",
        bd=0,
        padx=12,
        pady=3,
    )

    # Hover effects
    btn.bind("<Enter>", lambda e: btn.configure(bg=hover))
    btn.bind("<Leave>", lambda e: btn.configure(bg=bg))
    return btn


def create_primary_button(parent: tk.Widget, text: str, command: Callable, width: int = 15) -> tk.Button:
    """Create a styled primary action button (purple accent)."""
    return _create_button(parent, text, command, ACCENT_COLOR, ACCENT_HOVER, width)


def create_secondary_button(parent: tk.Widget, text: str, command: Callable, width: int = 15) -> tk.Button:
    """Create a styled secondary button (gray, muted)."""
    return _create_button(parent, text, command, SECONDARY_COLOR, SECONDARY_HOVER, width)


def create_danger_button(parent: tk.Widget, text: str, command: Callable, width: int = 15) -> tk.Button:
    """Create a styled cancel/destructive button (red)."""
    return _create_button(parent, text, command, DANGER_COLOR, DANGER_HOVER, width)


def create_camera_button(parent: tk.Widget, text: str, command: Callable, width: int = 15) -> tk.Button:
    """Create a styled camera button (cyan)."""
    return _create_button(parent, text, command, CAMERA_COLOR, CAMERA_HOVER, width)


# ═══════════════════════════════════════════════════════════════════════════════
# UTILITIES
# ═══════════════════════════════════════════════════════════════════════════════

def to_photo_image(img: Image.Image, size: int) -> ImageTk.PhotoImage:
    """Center-crop an image to a square of `size` pixels for display."""
    fitted = ImageOps.fit(img.convert("RGB"), (size, size), Image.LANCZOS)
    return ImageTk.PhotoImage(fitted)


def center_and_clamp(root: tk.Tk) -> None:
    """
    Clamp window to screen bounds and center horizontally near top.
    """
    root.update_idletasks()
    req_w = root.winfo_reqwidth()
    req_h = root.winfo_reqheight()
    sw = root.winfo_screenwidth()
    sh = root.winfo_screenheight()

    w = min(req_w + WINDOW_MARGIN, sw - 2 * WINDOW_MARGIN)
    h = min(req_h + WINDOW_MARGIN, sh - 2 * WINDOW_MARGIN)
    x = max((sw - w) // 2, WINDOW_MARGIN)
    y = WINDOW_MARGIN  # Pin near top instead of vertical centering

    root.geometry(f"{w}x{h}+{x}+{y}")


__all__ = [
    "apply_dark_theme",
    "create_primary_button",
    "create_secondary_button",
    "create_danger_button",
    "create_camera_button",
    "to_photo_image",
    "center_and_clamp",
]
