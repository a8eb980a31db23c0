#!/usr/bin/env python3
"""
config.py

All global paths, constants, and static tables for the animated portrait pipeline.
"""

import os
from pathlib import Path
from typing import Tuple

# ═══════════════════════════════════════════════════════════════════════════════
# APPLICATION INFO
# ═══════════════════════════════════════════════════════════════════════════════
APP_NAME = "Improv Portrait Animator"
APP_VERSION = "1.0.0"

# Paths for configuration and logs
CONFIG_PATH = Path.home() / ".portrait_animator_config.json"
LOG_DIR_ENV = "PORTRAIT_ANIMATOR_LOG_DIR"
API_KEY_ENV = "GEMINI_API_KEY"

# ═══════════════════════════════════════════════════════════════════════════════
# GEMINI API
# ═══════════════════════════════════════════════════════════════════════════════
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

# Writes the descriptive portrait prompt from narrative context
GEMINI_TEXT_MODEL = "gemini-2.5-pro"
GEMINI_TEXT_URL = f"{GEMINI_BASE_URL}/{GEMINI_TEXT_MODEL}:generateContent"

# Still portrait generation
IMAGEN_MODEL = "imagen-4.0-generate-001"
IMAGEN_URL = f"{GEMINI_BASE_URL}/{IMAGEN_MODEL}:predict"
IMAGEN_OUTPUT_MIME = "image/png"            # assumed when a prediction omits mimeType
IMAGEN_ASPECT_RATIO = "1:1"

# Image-conditioned edits and sprite sheet animation
GEMINI_IMAGE_MODEL = "gemini-2.5-flash-image"
GEMINI_IMAGE_URL = f"{GEMINI_BASE_URL}/{GEMINI_IMAGE_MODEL}:generateContent"

GEMINI_MAX_RETRIES = 3
GEMINI_RETRY_STATUSES: Tuple[int, ...] = (429, 500, 502, 503, 504)
GEMINI_SAFETY_FINISH_REASONS: Tuple[str, ...] = ("SAFETY", "IMAGE_SAFETY", "IMAGE_OTHER")
GEMINI_TIMEOUT_SECONDS = 180

# ═══════════════════════════════════════════════════════════════════════════════
# SPRITE SHEET / ANIMATION
# ═══════════════════════════════════════════════════════════════════════════════
GRID_SIZE = 4                          # rows == columns
FRAME_COUNT = GRID_SIZE * GRID_SIZE    # 16 frames
SPRITE_SHEET_SIZE = 1024               # requested square pixel size

# The model is asked for a duration inside this window
REQUESTED_FRAME_DURATION_MIN_MS = 200
REQUESTED_FRAME_DURATION_MAX_MS = 800

# Parsed durations are clamped into this window; anything unparseable falls back
DEFAULT_FRAME_DURATION_MS = 100
FRAME_DURATION_MIN_MS = 50
FRAME_DURATION_MAX_MS = 2000

DEFAULT_ANIMATION_PROMPT = "Bring this image to life"

# ═══════════════════════════════════════════════════════════════════════════════
# COST EVENTS (tokens reported to the session ledger)
# ═══════════════════════════════════════════════════════════════════════════════
IMAGE_GENERATION_COST = 1000
IMAGE_EDIT_COST = 500
IMAGE_ANIMATION_COST = 2000

# ═══════════════════════════════════════════════════════════════════════════════
# EXPORT / CAPTURE
# ═══════════════════════════════════════════════════════════════════════════════
EXPORT_FILENAME = "improv-animation.gif"
DEFAULT_EXPORT_DIR = Path(os.environ.get("PORTRAIT_ANIMATOR_EXPORT_DIR", Path.home() / "Downloads"))

CAMERA_DEVICE_INDEX = 0
CAMERA_JPEG_QUALITY = 92

# ═══════════════════════════════════════════════════════════════════════════════
# DARK THEME COLOR SCHEME
# ═══════════════════════════════════════════════════════════════════════════════
BG_COLOR = "#2B2B2B"              # Main window background
BG_SECONDARY = "#1E1E1E"          # Darker areas (portrait frame)
CARD_BG = "#3C3C3C"               # Card/panel backgrounds

TEXT_COLOR = "#FFFFFF"            # Primary text
TEXT_SECONDARY = "#A0A0A0"        # Secondary/muted text

ACCENT_COLOR = "#8E44D9"          # Purple accent for primary buttons
ACCENT_HOVER = "#9F5BE9"
SECONDARY_COLOR = "#666666"
SECONDARY_HOVER = "#777777"
DANGER_COLOR = "#D94A4A"
DANGER_HOVER = "#E95A5A"
CAMERA_COLOR = "#1FA2B8"          # Cyan for camera actions
CAMERA_HOVER = "#2FB2C8"

# ═══════════════════════════════════════════════════════════════════════════════
# FONT DEFINITIONS
# ═══════════════════════════════════════════════════════════════════════════════
FONT_FAMILY = "Segoe UI"
PAGE_TITLE_FONT = (FONT_FAMILY, 18, "bold")
BODY_FONT = (FONT_FAMILY, 12)
SMALL_FONT = (FONT_FAMILY, 10)
BUTTON_FONT = (FONT_FAMILY, 11)

# Layout constants
WINDOW_MARGIN = 10
PORTRAIT_DISPLAY_SIZE = 512
