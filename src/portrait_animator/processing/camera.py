"""
Camera capture as a scoped resource.

The device is held only between open() and close(); close() runs on every
exit path, including failed opens and failed captures.
"""

from typing import Any, Callable, Optional

import cv2
from PIL import Image

from ..config import CAMERA_DEVICE_INDEX, CAMERA_JPEG_QUALITY
from ..core.exceptions import CameraError
from ..core.models import ImageRef
from ..logging_utils import log_debug, log_info, log_warning


class CameraStream:
    """
    One camera device opened through OpenCV.

    Usage:
        with CameraStream() as camera:
            still = camera.capture_still()
    """

    def __init__(
        self,
        device_index: int = CAMERA_DEVICE_INDEX,
        capture_factory: Optional[Callable[[int], Any]] = None,
    ):
        self.device_index = device_index
        self._capture_factory = capture_factory or cv2.VideoCapture
        self._capture = None

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def open(self) -> "CameraStream":
        """
        Acquire the device.

        Raises:
            CameraError: If the device cannot be opened. Nothing stays acquired.
        """
        if self._capture is not None:
            return self
        capture = self._capture_factory(self.device_index)
        try:
            opened = capture.isOpened()
        except cv2.error as e:
            opened = False
            log_warning(f"Camera {self.device_index} check failed: {e}")
        if not opened:
            capture.release()
            raise CameraError("Could not access the camera. Please grant permission.")
        self._capture = capture
        log_info(f"Camera {self.device_index} opened")
        return self

    def capture_still(self) -> ImageRef:
        """
        Grab one frame and return it as a JPEG.

        Raises:
            CameraError: If the camera is closed or yields no frame.
        """
        if self._capture is None:
            raise CameraError("Camera is not open")
        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise CameraError(f"No frame from camera {self.device_index}")
        ok, encoded = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, CAMERA_JPEG_QUALITY])
        if not ok:
            raise CameraError("Could not encode the captured frame")
        log_debug(f"Captured {frame.shape[1]}x{frame.shape[0]} frame")
        return ImageRef(mime_type="image/jpeg", data=encoded.tobytes())

    def read_preview(self) -> Optional[Image.Image]:
        """Return the latest frame as an RGB PIL image, or None if none is ready."""
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))

    def close(self) -> None:
        """Release the device. Safe to call when already closed."""
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.release()
            log_info(f"Camera {self.device_index} released")

    def __enter__(self) -> "CameraStream":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
