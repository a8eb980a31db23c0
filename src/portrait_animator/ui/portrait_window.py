"""
Main portrait window.

Shows the current portrait (or its looping animation), the status of the
outstanding operation, and the controls for generate, take photo, edit,
animate, undo and GIF export. Backend calls run on worker threads; every
widget update is marshalled back to the Tk thread with root.after(0, ...).
"""

import threading
import tkinter as tk
from pathlib import Path
from tkinter import messagebox
from typing import Callable, List, Optional

from PIL import Image

from ..config import (
    APP_NAME,
    BG_COLOR,
    BG_SECONDARY,
    BODY_FONT,
    CARD_BG,
    DANGER_COLOR,
    DEFAULT_ANIMATION_PROMPT,
    PAGE_TITLE_FONT,
    PORTRAIT_DISPLAY_SIZE,
    SMALL_FONT,
    TEXT_COLOR,
    TEXT_SECONDARY,
)
from ..core.controller import PortraitController
from ..core.exceptions import PortraitError
from ..core.models import ImageRef, PortraitMode, PortraitState, SessionContext
from ..logging_utils import log_error, log_exception, log_info
from ..processing.gif_export import extract_frames
from ..processing.image_utils import decode_image
from ..processing.sprite_sheet import SpriteSheetPlayer
from .tk_common import (
    apply_dark_theme,
    center_and_clamp,
    create_camera_button,
    create_danger_button,
    create_primary_button,
    create_secondary_button,
    to_photo_image,
)

CAMERA_PREVIEW_INTERVAL_MS = 66

_SETTLED = (PortraitMode.IDLE, PortraitMode.PLAYING, PortraitMode.ERROR)


class PortraitWindow:
    """
    Tk front end for a PortraitController.

    Args:
        root: Tk root window.
        controller: The controller owning the portrait state.
        context_provider: Returns the current narrative context on each call.
        export_dir: Folder the GIF is written to.
    """

    def __init__(
        self,
        root: tk.Tk,
        controller: PortraitController,
        context_provider: Callable[[], SessionContext],
        export_dir: Path,
    ):
        self.root = root
        self.controller = controller
        self.context_provider = context_provider
        self.export_dir = Path(export_dir)

        self._photo = None
        self._frames: List[Image.Image] = []
        self._frames_sheet: Optional[ImageRef] = None
        self._preview_job = None
        self._editing_open = False
        self._closed = False

        self.player = SpriteSheetPlayer(root, controller.grid, on_frame=self._show_frame)

        self.root.title(APP_NAME)
        apply_dark_theme(self.root)
        self._build_ui()

        self.controller.add_listener(self._on_state_changed)
        self.root.protocol("WM_DELETE_WINDOW", self.close)
        self._refresh()
        center_and_clamp(self.root)

    # -------------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------------

    def _build_ui(self) -> None:
        tk.Label(
            self.root, text="Character Portrait", bg=BG_COLOR, fg=TEXT_COLOR, font=PAGE_TITLE_FONT
        ).pack(pady=(12, 6))

        card = tk.Frame(self.root, bg=CARD_BG, padx=8, pady=8)
        card.pack(padx=16, pady=6)
        self._image_label = tk.Label(
            card,
            bg=BG_SECONDARY,
            fg=TEXT_SECONDARY,
            font=BODY_FONT,
            text="No portrait yet.\nGenerate one or take a photo.",
            width=PORTRAIT_DISPLAY_SIZE // 10,
            height=PORTRAIT_DISPLAY_SIZE // 22,
        )
        self._image_label.pack()

        self._status_label = tk.Label(
            self.root, text="", bg=BG_COLOR, fg=TEXT_SECONDARY, font=SMALL_FONT
        )
        self._status_label.pack(pady=(4, 0))

        self._error_frame = tk.Frame(self.root, bg=BG_COLOR)
        self._error_label = tk.Label(
            self._error_frame, text="", bg=BG_COLOR, fg=DANGER_COLOR, font=SMALL_FONT, wraplength=480
        )
        self._error_label.pack(side="left", padx=(0, 8))
        create_secondary_button(self._error_frame, "Dismiss", self.controller.dismiss_error, width=8).pack(side="left")

        # Main actions
        self._actions = tk.Frame(self.root, bg=BG_COLOR)
        self._actions.pack(pady=8)
        self._generate_btn = create_primary_button(self._actions, "Generate", self._on_generate)
        self._generate_btn.pack(side="left", padx=4)
        self._photo_btn = create_camera_button(self._actions, "Take Photo", self._on_open_camera)
        self._photo_btn.pack(side="left", padx=4)
        self._undo_btn = create_secondary_button(self._actions, "Undo", self._on_undo, width=8)
        self._undo_btn.pack(side="left", padx=4)
        self._edit_btn = create_secondary_button(self._actions, "Edit", self._toggle_edit, width=8)
        self._edit_btn.pack(side="left", padx=4)
        self._export_btn = create_secondary_button(self._actions, "Export GIF", self._on_export)
        self._export_btn.pack(side="left", padx=4)

        # Camera controls
        self._camera_frame = tk.Frame(self.root, bg=BG_COLOR)
        create_camera_button(self._camera_frame, "Capture", self._on_capture).pack(side="left", padx=4)
        create_danger_button(self._camera_frame, "Cancel", self._on_cancel_camera).pack(side="left", padx=4)

        # Edit controls
        self._edit_frame = tk.Frame(self.root, bg=BG_COLOR)
        self._edit_entry = tk.Entry(self._edit_frame, width=44, font=BODY_FONT)
        self._edit_entry.pack(side="left", padx=4)
        self._edit_entry.bind("<Return>", lambda e: self._on_edit())
        self._apply_btn = create_primary_button(self._edit_frame, "Apply", self._on_edit, width=8)
        self._apply_btn.pack(side="left", padx=4)

        # Animate controls
        self._animate_frame = tk.Frame(self.root, bg=BG_COLOR)
        self._animate_frame.pack(pady=(0, 12))
        self._animate_entry = tk.Entry(self._animate_frame, width=44, font=BODY_FONT)
        self._animate_entry.insert(0, DEFAULT_ANIMATION_PROMPT)
        self._animate_entry.pack(side="left", padx=4)
        self._animate_entry.bind("<Return>", lambda e: self._on_animate())
        self._animate_btn = create_primary_button(self._animate_frame, "Animate", self._on_animate, width=8)
        self._animate_btn.pack(side="left", padx=4)

    # -------------------------------------------------------------------------
    # State rendering
    # -------------------------------------------------------------------------

    def _on_state_changed(self, state: PortraitState) -> None:
        # Listeners fire on worker threads
        if not self._closed:
            self.root.after(0, self._refresh)

    def _refresh(self) -> None:
        if self._closed:
            return
        state = self.controller.state
        mode = state.mode
        settled = mode in _SETTLED
        has_image = state.current_image is not None

        self._status_label.configure(text=state.status_text)
        if mode is PortraitMode.ERROR and state.error_message:
            self._error_label.configure(text=state.error_message)
            self._error_frame.pack(before=self._actions, pady=(4, 0))
        else:
            self._error_frame.pack_forget()

        def enable(widget: tk.Widget, on: bool) -> None:
            widget.configure(state="normal" if on else "disabled")

        enable(self._generate_btn, settled)
        enable(self._photo_btn, settled)
        enable(self._undo_btn, settled and state.can_undo)
        enable(self._edit_btn, settled and has_image)
        enable(self._apply_btn, settled and has_image)
        enable(self._animate_btn, settled and has_image)
        enable(self._export_btn, settled and state.has_animation)

        if mode is PortraitMode.CAPTURING:
            self._camera_frame.pack(before=self._animate_frame, pady=(0, 8))
            self._schedule_preview()
        else:
            self._camera_frame.pack_forget()
            self._cancel_preview()

        if self._editing_open and has_image and mode is not PortraitMode.CAPTURING:
            self._edit_frame.pack(before=self._animate_frame, pady=(0, 8))
        else:
            self._edit_frame.pack_forget()

        if state.has_animation and state.sprite_sheet is not self._frames_sheet:
            self._load_frames(state.sprite_sheet)
        if mode is PortraitMode.CAPTURING:
            self.player.stop()
        else:
            self.player.sync(state)

        if not self.player.is_playing and mode is not PortraitMode.CAPTURING:
            self._show_still(state.current_image)

    def _load_frames(self, sheet: ImageRef) -> None:
        try:
            self._frames = extract_frames(sheet, self.controller.grid)
        except PortraitError as e:
            log_error("Could not prepare animation frames", str(e))
            self._frames = []
        self._frames_sheet = sheet

    def _show_frame(self, index: int) -> None:
        if self._frames and index < len(self._frames):
            self._set_image(self._frames[index])

    def _show_still(self, image: Optional[ImageRef]) -> None:
        if image is None:
            self._photo = None
            self._image_label.configure(
                image="",
                text="No portrait yet.\nGenerate one or take a photo.",
                width=PORTRAIT_DISPLAY_SIZE // 10,
                height=PORTRAIT_DISPLAY_SIZE // 22,
            )
            return
        try:
            self._set_image(decode_image(image))
        except ValueError as e:
            log_error("Could not display portrait", str(e))

    def _set_image(self, img: Image.Image) -> None:
        self._photo = to_photo_image(img, PORTRAIT_DISPLAY_SIZE)
        self._image_label.configure(image=self._photo, text="", width=PORTRAIT_DISPLAY_SIZE, height=PORTRAIT_DISPLAY_SIZE)

    # -------------------------------------------------------------------------
    # Background work
    # -------------------------------------------------------------------------

    def _run_in_background(self, label: str, work: Callable[[], object], on_done: Optional[Callable] = None) -> None:
        """Run a blocking controller call off the Tk thread."""
        def runner():
            try:
                result = work()
            except PortraitError as e:
                # The controller already moved to ERROR with a user-facing message
                log_info(f"{label} did not complete: {e}")
                return
            except Exception as e:
                log_exception(f"Unexpected error during {label}: {e}")
                msg = str(e)
                self.root.after(0, lambda m=msg: messagebox.showerror("Error", f"An error occurred:\n{m}"))
                return
            if on_done is not None and not self._closed:
                self.root.after(0, lambda r=result: on_done(r))

        threading.Thread(target=runner, daemon=True).start()

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def _on_generate(self) -> None:
        context = self.context_provider()
        self._run_in_background("generate", lambda: self.controller.generate(context))

    def _toggle_edit(self) -> None:
        self._editing_open = not self._editing_open
        self._refresh()
        if self._editing_open:
            self._edit_entry.focus_set()

    def _on_edit(self) -> None:
        instruction = self._edit_entry.get().strip()
        if not instruction:
            return

        def done(result):
            if result is not None:
                self._edit_entry.delete(0, tk.END)
                self._editing_open = False
                self._refresh()

        self._run_in_background("edit", lambda: self.controller.edit(instruction), done)

    def _on_animate(self) -> None:
        instruction = self._animate_entry.get().strip()
        if not instruction:
            return
        context = self.context_provider()
        self._run_in_background("animate", lambda: self.controller.animate(instruction, context))

    def _on_undo(self) -> None:
        try:
            self.controller.undo()
        except PortraitError as e:
            log_info(f"Undo rejected: {e}")

    def _on_export(self) -> None:
        def done(path):
            messagebox.showinfo("GIF Saved", f"Saved animation to:\n{path}")

        self._run_in_background("export", lambda: self.controller.export(self.export_dir), done)

    # -------------------------------------------------------------------------
    # Camera
    # -------------------------------------------------------------------------

    def _on_open_camera(self) -> None:
        try:
            self.controller.open_camera()
        except PortraitError as e:
            log_info(f"Camera not opened: {e}")

    def _on_capture(self) -> None:
        self._cancel_preview()
        try:
            self.controller.capture()
        except PortraitError as e:
            log_info(f"Capture failed: {e}")

    def _on_cancel_camera(self) -> None:
        self._cancel_preview()
        self.controller.close_camera()

    def _schedule_preview(self) -> None:
        if self._preview_job is None:
            self._preview_job = self.root.after(CAMERA_PREVIEW_INTERVAL_MS, self._update_preview)

    def _cancel_preview(self) -> None:
        if self._preview_job is not None:
            self.root.after_cancel(self._preview_job)
            self._preview_job = None

    def _update_preview(self) -> None:
        self._preview_job = None
        camera = self.controller.camera
        if camera is None or self.controller.mode is not PortraitMode.CAPTURING:
            return
        frame = camera.read_preview()
        if frame is not None:
            self._set_image(frame)
        self._schedule_preview()

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Stop playback, release the camera, and destroy the window."""
        if self._closed:
            return
        self._closed = True
        self._cancel_preview()
        self.player.stop()
        self.controller.remove_listener(self._on_state_changed)
        self.controller.dismiss()
        log_info("Portrait window closed")
        self.root.destroy()

    def run(self) -> None:
        self.root.mainloop()


def run_portrait_window(
    controller: PortraitController,
    context_provider: Callable[[], SessionContext],
    export_dir: Path,
) -> None:
    """Create the Tk root, show the portrait window, and block until it closes."""
    root = tk.Tk()
    window = PortraitWindow(root, controller, context_provider, export_dir)
    window.run()
