"""
Image utility functions for decoding, encoding and saving portrait images.
"""

import os
import tempfile
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from ..core.models import ImageRef

_FORMAT_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}

def decode_image(image: ImageRef) -> Image.Image:
    """
    Decode an ImageRef into a fully loaded PIL image.

    Raises:
        ValueError: If the bytes are not a readable image.
    """
    try:
        img = Image.open(BytesIO(image.data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Could not decode {image.mime_type} image: {e}") from e
    return img

def encode_image(img: Image.Image, fmt: str = "PNG", **save_kwargs) -> ImageRef:
    """Encode a PIL image into an ImageRef of the given format."""
    fmt = fmt.upper()
    if fmt == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buffer = BytesIO()
    img.save(buffer, format=fmt, **save_kwargs)
    return ImageRef(mime_type=_FORMAT_MIME.get(fmt, f"image/{fmt.lower()}"), data=buffer.getvalue())

def write_bytes_atomic(data: bytes, dest: Path) -> Path:
    """
    Write bytes to dest through a temp file in the same folder.

    Either the whole file appears at dest or nothing does.
    """
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.stem}-", suffix=dest.suffix, dir=dest.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, dest)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
    return dest
