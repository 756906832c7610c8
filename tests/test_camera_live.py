from types import SimpleNamespace

import pytest

from conftest import make_frame
from services.media_source import CameraNotStarted, FrameBufferStream

pytest.importorskip("streamlit_webrtc")

from components.camera_live import FrameBufferProcessor, open_webrtc_stream  # noqa: E402


def make_ctx(playing: bool, processor=None):
    return SimpleNamespace(state=SimpleNamespace(playing=playing), video_processor=processor)


def test_opener_before_start_reports_not_started():
    with pytest.raises(CameraNotStarted):
        open_webrtc_stream(make_ctx(playing=False, processor=FrameBufferProcessor()))
    with pytest.raises(CameraNotStarted):
        open_webrtc_stream(make_ctx(playing=True, processor=None))


def test_opener_attaches_a_fresh_buffer_while_playing():
    processor = FrameBufferProcessor()
    buffer = open_webrtc_stream(make_ctx(playing=True, processor=processor))

    assert isinstance(buffer, FrameBufferStream)
    assert processor._buffer is buffer


def test_track_end_stops_the_attached_buffer():
    processor = FrameBufferProcessor()
    buffer = FrameBufferStream()
    processor.attach(buffer)
    buffer.push(make_frame(64, 48))

    processor.on_ended()

    assert not buffer.active
    assert buffer.read() is None
    processor.on_ended()  # nothing attached any more
