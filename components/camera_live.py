import threading
from functools import partial
from typing import Optional

import av
import cv2
import streamlit as st
from streamlit_webrtc import VideoProcessorBase, WebRtcMode, webrtc_streamer

from components.result_view import render_analyze_button
from components.session import run
from services.controller import CaptureAnalyzeController
from services.media_source import CameraNotStarted, FrameBufferStream
from services.state import CameraPermissionState


class FrameBufferProcessor(VideoProcessorBase):
    """
    Video processor for streamlit-webrtc.
    Feeds every incoming frame into the attached FrameBufferStream and returns a
    mirrored copy for the preview so it behaves like a mirror.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._buffer: Optional[FrameBufferStream] = None
        self.mirror_preview = True

    def attach(self, buffer: FrameBufferStream) -> None:
        with self._lock:
            self._buffer = buffer

    def on_ended(self):
        # track ended (STOP, page closed or session gone): stop the attached buffer
        with self._lock:
            buffer, self._buffer = self._buffer, None
        if buffer is not None:
            buffer.stop()

    def recv(self, frame: av.VideoFrame) -> av.VideoFrame:
        img_bgr = frame.to_ndarray(format="bgr24")
        with self._lock:
            buffer = self._buffer
        if buffer is not None:
            buffer.push(img_bgr)

        if not self.mirror_preview:
            return frame
        return av.VideoFrame.from_ndarray(cv2.flip(img_bgr, 1), format="bgr24")


def open_webrtc_stream(webrtc_ctx) -> FrameBufferStream:
    """Camera opener: hand out a fresh buffer once the browser is streaming."""
    processor = webrtc_ctx.video_processor
    if not webrtc_ctx.state.playing or processor is None:
        raise CameraNotStarted("Camera is not streaming. Press START and allow camera access in your browser.")
    buffer = FrameBufferStream()
    processor.attach(buffer)
    return buffer


def render_camera_live(controller: CaptureAnalyzeController):
    """
    Live camera mode: the browser streams video over WebRTC and a single
    frame is captured when the user presses Analyze.
    """
    st.subheader("Live camera")
    st.write("Press **START**, allow camera access, then press **Analyze Emotion**.")

    webrtc_ctx = webrtc_streamer(
        key="emotivision-live",
        mode=WebRtcMode.SENDRECV,
        media_stream_constraints={"video": {"facingMode": "user"}, "audio": False},
        video_processor_factory=FrameBufferProcessor,
        async_processing=True,
    )

    if webrtc_ctx.video_processor is not None:
        webrtc_ctx.video_processor.mirror_preview = controller.config.mirror_capture

    # the opener reads the context of the current rerun
    controller.media.camera_opener = partial(open_webrtc_stream, webrtc_ctx)

    if webrtc_ctx.state.playing:
        if controller.state.permission is not CameraPermissionState.GRANTED or not controller.media.has_active_stream:
            run(controller.ensure_camera(reprompt=True))
    elif controller.media.stream is not None:
        # STOP pressed, or the track already ended and stopped the buffer
        controller.release_camera()

    render_analyze_button(controller)
