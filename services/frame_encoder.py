"""
Frame Encoder
Turns a live camera frame or an uploaded selection into a still-image data URI.
"""

import base64
import binascii
import re
from typing import Tuple

import cv2
import numpy as np

from services.errors import CaptureEncodingError, FileReadError, StreamNotReady
from services.media_source import to_data_uri


DEFAULT_JPEG_QUALITY = 0.9
DEFAULT_MAX_WIDTH = 640

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.+)$", re.DOTALL)


def parse_data_uri(uri: str) -> Tuple[str, bytes]:
    """
    Split a `data:<mimetype>;base64,<payload>` string.

    Returns:
        (mime_type, decoded bytes)
    """
    if not isinstance(uri, str):
        raise ValueError("Data URI must be a string")
    match = _DATA_URI_RE.match(uri.strip())
    if not match:
        raise ValueError("Expected format: 'data:<mimetype>;base64,<encoded_data>'")
    try:
        raw = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid Base64 payload: {e}") from e
    if not raw:
        raise ValueError("Data URI payload is empty")
    return match.group("mime").lower(), raw


def is_image_data_uri(uri: str) -> bool:
    try:
        mime_type, _ = parse_data_uri(uri)
    except ValueError:
        return False
    return mime_type.startswith("image/")


def _fit_width(frame: np.ndarray, max_width: int) -> np.ndarray:
    h, w = frame.shape[:2]
    if w <= max_width:
        return frame
    new_h = max(1, round(h * max_width / w))
    return cv2.resize(frame, (max_width, new_h), interpolation=cv2.INTER_AREA)


def encode_frame(
    frame_bgr: np.ndarray,
    quality: float = DEFAULT_JPEG_QUALITY,
    mirror: bool = True,
    max_width: int = DEFAULT_MAX_WIDTH,
) -> str:
    """Encode one BGR frame as a JPEG data URI."""
    if mirror:
        # match the mirrored live preview
        frame_bgr = cv2.flip(frame_bgr, 1)
    frame_bgr = _fit_width(frame_bgr, max_width)

    jpeg_quality = int(round(quality * 100))
    try:
        ok, buffer = cv2.imencode(".jpg", frame_bgr, [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality])
    except cv2.error as e:
        raise CaptureEncodingError(f"Could not encode the captured frame: {e}") from e
    if not ok or buffer is None or buffer.size == 0:
        raise CaptureEncodingError()
    return to_data_uri("image/jpeg", buffer.tobytes())


def capture_from_stream(
    stream,
    quality: float = DEFAULT_JPEG_QUALITY,
    mirror: bool = True,
    max_width: int = DEFAULT_MAX_WIDTH,
) -> str:
    """
    Grab a single still frame from a ready stream.

    Callers should await `wait_until_ready(stream)` first; this function does
    not wait.

    Args:
        stream: handle exposing `ready`, `dimensions` and `read()`
        quality: JPEG quality in (0, 1]
        mirror: flip horizontally
        max_width: frames wider than this are scaled down, keeping aspect ratio

    Returns:
        `data:image/jpeg;base64,...`
    """
    if stream is None or not stream.ready:
        raise StreamNotReady()
    w, h = stream.dimensions
    if w <= 0 or h <= 0:
        raise StreamNotReady()

    frame = stream.read()
    if frame is None or frame.size == 0:
        raise StreamNotReady()
    return encode_frame(frame, quality=quality, mirror=mirror, max_width=max_width)


def encode_selection(selected_image) -> str:
    """Pass through the data URI read from the uploaded file."""
    data_uri = getattr(selected_image, "data_uri", None)
    if not data_uri or not data_uri.startswith("data:image/") or not is_image_data_uri(data_uri):
        raise FileReadError("Invalid image data format for analysis.")
    return data_uri
