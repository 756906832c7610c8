"""
Media Source Adapter
Camera permission / stream lifecycle and uploaded file validation.
"""

import asyncio
import base64
import logging
import threading
import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional, Tuple

import numpy as np

from services.config import MB
from services.errors import (
    CameraAccessError,
    CameraPermissionDenied,
    CameraUnavailable,
    FileReadError,
    FileTooLarge,
    InvalidFileType,
    StreamNotReady,
)
from services.state import CameraPermissionState, SelectedImage


logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 5 * MB


class CameraNotStarted(Exception):
    """Raised by a camera opener while no stream has been started; the user was not asked yet."""


class FrameBufferStream:
    """
    Stream handle holding the most recent camera frame.
    A video processor (running on its own thread) pushes BGR frames in;
    the controller reads the latest one when it needs a still.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._stopped = False

    def push(self, frame_bgr: np.ndarray) -> None:
        with self._lock:
            if not self._stopped:
                self._frame = frame_bgr

    @property
    def active(self) -> bool:
        return not self._stopped

    @property
    def dimensions(self) -> Tuple[int, int]:
        """(width, height) of the latest frame, (0, 0) before the first one."""
        with self._lock:
            if self._frame is None:
                return 0, 0
            h, w = self._frame.shape[:2]
            return int(w), int(h)

    @property
    def ready(self) -> bool:
        w, h = self.dimensions
        return self.active and w > 0 and h > 0

    def read(self) -> Optional[np.ndarray]:
        with self._lock:
            return None if self._frame is None else self._frame.copy()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            self._frame = None


async def wait_until_ready(stream, timeout: float = 3.0, interval: float = 0.05):
    """Wait until the stream has a frame with non-zero size, else StreamNotReady."""
    if stream is None:
        raise StreamNotReady()
    deadline = time.monotonic() + timeout
    while not stream.ready:
        if not getattr(stream, "active", True) or time.monotonic() >= deadline:
            raise StreamNotReady()
        await asyncio.sleep(interval)
    return stream


def to_data_uri(mime_type: str, raw: bytes) -> str:
    encoded = base64.b64encode(raw).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


class MediaSourceAdapter:
    """
    Owns the camera stream and validates file selections.

    `camera_opener` is the boundary to the platform camera: a callable returning
    a stream handle (ready / dimensions / read() / stop()). It should raise
    PermissionError when the user refuses access, CameraNotStarted while no
    stream has been started, and any other exception when no camera is usable.
    """

    def __init__(
        self,
        camera_opener: Optional[Callable[[], Any]] = None,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ):
        self.camera_opener = camera_opener
        self.max_upload_bytes = max_upload_bytes
        self.permission = CameraPermissionState.UNKNOWN
        self.stream = None
        self._last_camera_error: Optional[CameraAccessError] = None

    # ---------- camera ----------
    @property
    def has_active_stream(self) -> bool:
        return self.stream is not None and getattr(self.stream, "active", True)

    async def request_camera_access(self, reprompt: bool = False):
        """
        Open the camera and return the stream handle.

        Repeated calls while GRANTED return the current stream. While DENIED
        the stored error is raised again unless `reprompt` is set.
        """
        if self.permission is CameraPermissionState.GRANTED and self.has_active_stream:
            return self.stream
        if self.permission is CameraPermissionState.DENIED and not reprompt:
            raise self._last_camera_error or CameraPermissionDenied()

        # drop a stale handle before asking again
        self.release_camera_access()

        if self.camera_opener is None:
            raise self._deny(CameraUnavailable("No camera source is configured."))

        try:
            stream = await asyncio.to_thread(self.camera_opener)
        except CameraNotStarted:
            # nothing was requested, so the permission state stays as it is
            logger.debug("Camera stream not started yet")
            raise
        except CameraAccessError as e:
            raise self._deny(e)
        except PermissionError as e:
            raise self._deny(CameraPermissionDenied(f"Camera permission was denied: {e}")) from e
        except Exception as e:
            raise self._deny(CameraUnavailable(f"Could not access the camera: {e}")) from e

        if stream is None:
            raise self._deny(CameraUnavailable())

        self.stream = stream
        self.permission = CameraPermissionState.GRANTED
        self._last_camera_error = None
        logger.info("Camera access granted")
        return stream

    def _deny(self, error: CameraAccessError) -> CameraAccessError:
        self.release_camera_access()
        self.permission = CameraPermissionState.DENIED
        self._last_camera_error = error
        logger.warning("Camera access failed: %s", error)
        return error

    def release_camera_access(self) -> None:
        """Stop the active stream and detach it. Safe to call at any time."""
        stream, self.stream = self.stream, None
        if stream is None:
            return
        stream.stop()
        logger.info("Camera released")

    @asynccontextmanager
    async def camera_session(self, reprompt: bool = False):
        """Scoped camera access: released on every exit path."""
        try:
            stream = await self.request_camera_access(reprompt=reprompt)
            yield stream
        finally:
            self.release_camera_access()

    # ---------- files ----------
    def validate_file(self, file) -> str:
        """Return the file's MIME type, or raise InvalidFileType / FileTooLarge."""
        mime_type = (getattr(file, "type", None) or "").lower()
        if not mime_type.startswith("image/"):
            raise InvalidFileType()

        size = getattr(file, "size", None)
        if size is None:
            raise FileReadError("Could not determine the file size.")
        if size > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes / MB
            raise FileTooLarge(f"File size exceeds {limit_mb:g}MB limit.")
        return mime_type

    async def select_file(self, file) -> SelectedImage:
        """
        Validate an uploaded file and read it into a Base64 data URI.

        Args:
            file: object with `type`, `size` and `getvalue()` (e.g. Streamlit UploadedFile)

        Returns:
            SelectedImage with the original file and its data URI
        """
        if file is None:
            raise InvalidFileType("No file was provided.")
        mime_type = self.validate_file(file)

        try:
            raw = await asyncio.to_thread(file.getvalue)
        except Exception as e:
            raise FileReadError(f"Could not read the selected file: {e}") from e
        if not raw:
            raise FileReadError("The selected file is empty.")

        return SelectedImage(raw_file=file, data_uri=to_data_uri(mime_type, raw))
