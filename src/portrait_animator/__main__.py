#!/usr/bin/env python3
"""
Improv Portrait Animator - Main Entry Point

Run with: python -m portrait_animator [context.yml] [--output-dir DIR] [--image FILE]

The optional YAML file carries the narrative context (scenes, current scene
index, character rules, continuity summary). It is re-read before every
generate/animate call so the session can keep updating it.
"""

import argparse
import mimetypes
import sys
from pathlib import Path
from typing import Optional

from .config import APP_NAME, APP_VERSION, DEFAULT_EXPORT_DIR
from .logging_utils import get_log_file_path, log_exception, log_info, log_warning, setup_logging


class ContextFile:
    """Reloads the session context from disk, keeping the last good copy."""

    def __init__(self, path: Optional[Path]):
        from .core.models import SessionContext
        self.path = path
        self._last = SessionContext()

    def __call__(self):
        from .core.context import load_session_context
        from .core.exceptions import InvalidInputError

        if self.path is None:
            return self._last
        try:
            self._last = load_session_context(self.path)
        except InvalidInputError as e:
            log_warning(f"Keeping previous session context: {e}")
        return self._last


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="portrait_animator", description=APP_NAME)
    parser.add_argument("context", nargs="?", type=Path, help="Session context YAML file")
    parser.add_argument(
        "--output-dir", type=Path, default=DEFAULT_EXPORT_DIR,
        help=f"Folder for exported GIFs (default: {DEFAULT_EXPORT_DIR})",
    )
    parser.add_argument("--image", type=Path, help="Start from an existing image file")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point for the portrait window."""
    from .api.gemini_client import GeminiBackend, get_api_key
    from .core.controller import PortraitController
    from .core.exceptions import PortraitError
    from .core.models import ImageRef
    from .ui.portrait_window import run_portrait_window

    args = parse_args(argv)

    # Initialize logging first thing
    setup_logging()

    print(f"\n{'=' * 60}")
    print(f"  {APP_NAME} v{APP_VERSION}")
    print(f"{'=' * 60}\n")

    api_key = get_api_key(interactive=True)

    spent = {"tokens": 0}

    def on_cost(event):
        spent["tokens"] += event.tokens
        print(f"[INFO] {event.kind.value}: {event.tokens} tokens (session total {spent['tokens']})")

    controller = PortraitController(GeminiBackend(api_key), on_cost=on_cost)

    if args.image:
        try:
            mime = mimetypes.guess_type(str(args.image))[0] or "image/png"
            controller.load_image(ImageRef.from_bytes(args.image.read_bytes(), mime))
            log_info(f"Loaded starting image {args.image}")
        except (OSError, PortraitError) as e:
            log_warning(f"Could not load {args.image}: {e}")
            print(f"[WARN] Could not load {args.image}: {e}")

    context = ContextFile(args.context)
    print(f"[INFO] Exported GIFs go to: {args.output_dir}")
    print(f"[INFO] Log file: {get_log_file_path()}")
    run_portrait_window(controller, context, args.output_dir)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        log_info("Interrupted by user.")
        print("\n[INFO] Interrupted by user.")
        sys.exit(0)
    except Exception as e:
        log_exception(f"Unhandled exception in main: {e}")
        print(f"\n[ERROR] Unhandled exception: {e}")
        sys.exit(1)
