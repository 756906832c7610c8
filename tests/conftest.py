"""Shared pytest fixtures for the EmotiVision test suite."""

import asyncio
import io
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np
import pytest
from PIL import Image

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from services.errors import ClassificationCallFailed  # noqa: E402
from services.media_source import FrameBufferStream  # noqa: E402
from services.state import AnalysisResult  # noqa: E402


# =============================================================================
# Fakes
# =============================================================================

class FakeUpload:
    """Mimics streamlit's UploadedFile: name / type / size / getvalue()."""

    def __init__(self, data: bytes, mime_type: str, name: str = "face.jpg", size: Optional[int] = None,
                 read_error: Optional[Exception] = None):
        self.name = name
        self.type = mime_type
        self.size = len(data) if size is None else size
        self._data = data
        self._read_error = read_error

    def getvalue(self) -> bytes:
        if self._read_error is not None:
            raise self._read_error
        return self._data


class FakeClassifier:
    """Records every submitted data URI; optionally waits on a gate before answering."""

    def __init__(self, result: Optional[AnalysisResult] = None, error: Optional[Exception] = None,
                 gate: Optional[asyncio.Event] = None):
        self.result = result or AnalysisResult(emotion_label="happy", confidence_score=0.873)
        self.error = error
        self.gate = gate
        self.calls: List[str] = []

    async def classify(self, photo_data_uri: str) -> AnalysisResult:
        self.calls.append(photo_data_uri)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


class FakeCameraOpener:
    """Camera boundary: returns a FrameBufferStream holding one frame, or raises."""

    def __init__(self, width: int = 640, height: int = 480, error: Optional[Exception] = None):
        self.width = width
        self.height = height
        self.error = error
        self.calls = 0
        self.streams: List[FrameBufferStream] = []

    def __call__(self) -> FrameBufferStream:
        self.calls += 1
        if self.error is not None:
            raise self.error
        stream = FrameBufferStream()
        stream.push(make_frame(self.width, self.height))
        self.streams.append(stream)
        return stream


# =============================================================================
# Helpers
# =============================================================================

def make_frame(width: int = 640, height: int = 480) -> np.ndarray:
    """BGR frame with a horizontal gradient so encoding has real content."""
    row = np.linspace(0, 255, width, dtype=np.uint8)
    gray = np.tile(row, (height, 1))
    return np.dstack([gray, gray, gray])


def make_image_bytes(fmt: str = "JPEG", size=(32, 24)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(200, 120, 40)).save(buffer, format=fmt)
    return buffer.getvalue()


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def jpeg_upload() -> FakeUpload:
    return FakeUpload(make_image_bytes("JPEG"), "image/jpeg", name="face.jpg")


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def failing_classifier() -> FakeClassifier:
    return FakeClassifier(error=ClassificationCallFailed("Emotion classification failed: network down"))


@pytest.fixture
def camera_opener() -> FakeCameraOpener:
    return FakeCameraOpener()
