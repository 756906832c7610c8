"""
Capture-Analyze Controller

Orchestrates mode switching, still capture, the classification call and the
resulting state transitions. Framework-agnostic: the Streamlit components
only read `controller.state` and call the methods below.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from services import state as transitions
from services.config import AppConfig
from services.errors import (
    CameraAccessError,
    CameraRequired,
    ClassificationCallFailed,
    EmotiVisionError,
    NoImageSelected,
    SelectionError,
)
from services.frame_encoder import capture_from_stream, encode_selection
from services.media_source import CameraNotStarted, MediaSourceAdapter, wait_until_ready
from services.state import (
    AcquisitionMode,
    AnalysisResult,
    ControllerState,
    Phase,
    SelectedImage,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """Transient toast payload."""

    title: str
    description: str
    variant: str = "default"  # or "destructive"


class CaptureAnalyzeController:
    def __init__(
        self,
        media: MediaSourceAdapter,
        classifier,
        config: Optional[AppConfig] = None,
        notify: Optional[Callable[[Notification], None]] = None,
        mode: AcquisitionMode = AcquisitionMode.STATIC_UPLOAD,
    ):
        self.media = media
        self.classifier = classifier
        self.config = config or AppConfig()
        self.notify = notify
        self.state = ControllerState(mode=AcquisitionMode(mode), permission=media.permission)

    # ---------- helpers ----------
    def _sync_permission(self) -> None:
        self.state = transitions.set_permission(self.state, self.media.permission)

    def _emit(self, title: str, description: str, variant: str = "default") -> None:
        if self.notify is not None:
            self.notify(Notification(title=title, description=description, variant=variant))

    def _emit_error(self, error: EmotiVisionError) -> None:
        self._emit(error.title, error.message, variant="destructive")

    @property
    def can_analyze(self) -> bool:
        return self.state.can_analyze

    # ---------- mode / lifecycle ----------
    async def switch_mode(self, mode: AcquisitionMode) -> ControllerState:
        """Full reset, then release or (re)acquire the camera for the new mode."""
        mode = AcquisitionMode(mode)
        previous = self.state.mode
        self.state = transitions.switch_mode(self.state, mode)
        logger.info("Mode switch %s -> %s", previous.value, mode.value)

        if mode is AcquisitionMode.STATIC_UPLOAD:
            self.media.release_camera_access()
        else:
            await self.ensure_camera(reprompt=True)
        self._sync_permission()
        return self.state

    async def ensure_camera(self, reprompt: bool = False) -> bool:
        """
        Make sure the camera is acquired while in LIVE_CAMERA mode.
        Failures are recorded as the current error; a stream that has not been
        started yet is not a failure. Returns True when granted.
        """
        if self.state.mode is not AcquisitionMode.LIVE_CAMERA:
            return False
        try:
            await self.media.request_camera_access(reprompt=reprompt)
        except CameraNotStarted:
            self._sync_permission()
            return False
        except CameraAccessError as e:
            self._sync_permission()
            if reprompt:
                self.state = transitions.record_error(self.state, e)
                self._emit_error(e)
            return False
        self._sync_permission()
        self.state = transitions.clear_camera_error(self.state)
        return True

    def release_camera(self) -> None:
        self.media.release_camera_access()
        self._sync_permission()

    def reset(self) -> ControllerState:
        """Clear result, error, selection and loading; keep mode and permission."""
        self.state = transitions.reset_state(self.state)
        logger.info("Controller reset")
        return self.state

    async def close(self) -> None:
        self.media.release_camera_access()
        self._sync_permission()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ---------- file selection ----------
    async def select_file(self, file) -> Optional[SelectedImage]:
        try:
            selected = await self.media.select_file(file)
        except SelectionError as e:
            self.state = transitions.clear_selection(self.state, error=e)
            self._emit_error(e)
            return None
        self.state = transitions.select_image(self.state, selected)
        return selected

    def clear_selection(self) -> None:
        self.state = transitions.clear_selection(self.state)

    # ---------- analyze ----------
    async def _obtain_still(self) -> str:
        if self.state.mode is AcquisitionMode.STATIC_UPLOAD:
            if self.state.selected_image is None:
                raise NoImageSelected()
            return encode_selection(self.state.selected_image)

        if not self.media.has_active_stream:
            try:
                await self.media.request_camera_access(reprompt=True)
            except CameraNotStarted as e:
                raise CameraRequired(
                    "The camera is not streaming. Press START and allow camera access, then try again."
                ) from e
            except CameraAccessError as e:
                raise CameraRequired(e.message) from e
            finally:
                self._sync_permission()

        stream = await wait_until_ready(self.media.stream, timeout=self.config.stream_ready_timeout)
        return capture_from_stream(
            stream,
            quality=self.config.jpeg_quality,
            mirror=self.config.mirror_capture,
            max_width=self.config.capture_max_width,
        )

    async def analyze(self) -> Optional[AnalysisResult]:
        """
        Capture one still and classify it. No retry on failure.

        Returns:
            the AnalysisResult when this attempt is still current and succeeded,
            otherwise None (guarded no-op, failure, or superseded attempt)
        """
        if self.state.is_loading:
            logger.debug("Analyze ignored: attempt %d still in flight", self.state.attempt_id)
            return None

        self.state = transitions.begin_attempt(self.state)
        attempt_id = self.state.attempt_id
        logger.info("Analysis attempt %d started (%s)", attempt_id, self.state.mode.value)

        error = None
        try:
            photo_data_uri = await self._obtain_still()
            self.state = transitions.enter_phase(self.state, attempt_id, Phase.SUBMITTING)
            if self.classifier is None:
                raise ClassificationCallFailed("No emotion classification service is configured.")
            result = await asyncio.wait_for(
                self.classifier.classify(photo_data_uri),
                timeout=self.config.classification_timeout,
            )
        except asyncio.TimeoutError:
            error = ClassificationCallFailed(
                f"Emotion classification timed out after {self.config.classification_timeout:g}s."
            )
        except EmotiVisionError as e:
            error = e
        except asyncio.CancelledError:
            # the attempt is over; loading must not stay set for it
            if attempt_id == self.state.attempt_id:
                self.state = transitions.fail_attempt(
                    self.state, attempt_id, ClassificationCallFailed("The analysis was cancelled.")
                )
            logger.info("Analysis attempt %d cancelled", attempt_id)
            raise
        except Exception as e:
            logger.exception("Unexpected error in analysis attempt %d", attempt_id)
            error = ClassificationCallFailed(f"Analysis failed: {e}")

        if attempt_id != self.state.attempt_id:
            logger.debug("Discarding stale completion of attempt %d", attempt_id)
            return None

        if error is not None:
            self.state = transitions.fail_attempt(self.state, attempt_id, error)
            logger.warning("Analysis attempt %d failed: %s", attempt_id, error)
            self._emit_error(error)
            return None

        self.state = transitions.complete_attempt(self.state, attempt_id, result)
        logger.info(
            "Analysis attempt %d: %s (%s)", attempt_id, result.emotion_label, result.confidence_percent
        )
        self._emit("Analysis Complete", f"Detected emotion: {result.emotion_label}")
        return result
