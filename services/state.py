"""
Controller state record and its transition functions.

State is an immutable `ControllerState`; every change goes through one of the
pure functions below so the mutual-exclusion rules between result, error and
loading can be checked without any UI.
"""

import enum
from dataclasses import dataclass, replace
from typing import Any, Optional

from services.errors import CameraAccessError, EmotiVisionError


class AcquisitionMode(str, enum.Enum):
    LIVE_CAMERA = "live_camera"
    STATIC_UPLOAD = "static_upload"


class CameraPermissionState(str, enum.Enum):
    UNKNOWN = "unknown"
    GRANTED = "granted"
    DENIED = "denied"


class Phase(str, enum.Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    SUBMITTING = "submitting"
    RESULT = "result"
    FAILED = "failed"


class UIStatus(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    RESULT = "result"


@dataclass(frozen=True)
class SelectedImage:
    raw_file: Any
    data_uri: str

    @property
    def name(self) -> Optional[str]:
        return getattr(self.raw_file, "name", None)


@dataclass(frozen=True)
class AnalysisResult:
    emotion_label: str
    confidence_score: float

    @property
    def confidence_percent(self) -> str:
        """0.873 -> '87.3%'"""
        return format_confidence(self.confidence_score)


def format_confidence(score: float) -> str:
    return f"{score * 100:.1f}%"


@dataclass(frozen=True)
class ControllerState:
    mode: AcquisitionMode = AcquisitionMode.STATIC_UPLOAD
    permission: CameraPermissionState = CameraPermissionState.UNKNOWN
    phase: Phase = Phase.IDLE
    attempt_id: int = 0
    is_loading: bool = False
    selected_image: Optional[SelectedImage] = None
    result: Optional[AnalysisResult] = None
    error: Optional[EmotiVisionError] = None

    @property
    def last_error(self) -> Optional[str]:
        return None if self.error is None else self.error.message

    @property
    def needs_camera_permission(self) -> bool:
        return isinstance(self.error, CameraAccessError)

    @property
    def status(self) -> UIStatus:
        if self.is_loading:
            return UIStatus.LOADING
        if self.error is not None:
            return UIStatus.ERROR
        if self.result is not None:
            return UIStatus.RESULT
        return UIStatus.IDLE

    @property
    def can_analyze(self) -> bool:
        if self.is_loading:
            return False
        if self.mode is AcquisitionMode.LIVE_CAMERA:
            return self.permission is CameraPermissionState.GRANTED
        return self.selected_image is not None


# ---------- transitions ----------
def begin_attempt(state: ControllerState) -> ControllerState:
    return replace(
        state,
        phase=Phase.CAPTURING,
        attempt_id=state.attempt_id + 1,
        is_loading=True,
        result=None,
        error=None,
    )


def enter_phase(state: ControllerState, attempt_id: int, phase: Phase) -> ControllerState:
    if attempt_id != state.attempt_id:
        return state
    return replace(state, phase=phase)


def complete_attempt(state: ControllerState, attempt_id: int, result: AnalysisResult) -> ControllerState:
    """Apply a successful result; stale attempts leave the state untouched."""
    if attempt_id != state.attempt_id:
        return state
    return replace(state, phase=Phase.RESULT, is_loading=False, result=result, error=None)


def fail_attempt(state: ControllerState, attempt_id: int, error: EmotiVisionError) -> ControllerState:
    if attempt_id != state.attempt_id:
        return state
    return replace(state, phase=Phase.FAILED, is_loading=False, result=None, error=error)


def reset_state(state: ControllerState) -> ControllerState:
    """Back to IDLE; mode and camera permission are kept."""
    return replace(
        state,
        phase=Phase.IDLE,
        attempt_id=state.attempt_id + 1,
        is_loading=False,
        selected_image=None,
        result=None,
        error=None,
    )


def switch_mode(state: ControllerState, mode: AcquisitionMode) -> ControllerState:
    return replace(reset_state(state), mode=AcquisitionMode(mode))


def select_image(state: ControllerState, image: SelectedImage) -> ControllerState:
    return replace(state, selected_image=image, result=None, error=None)


def clear_selection(state: ControllerState, error: Optional[EmotiVisionError] = None) -> ControllerState:
    return replace(state, selected_image=None, result=None, error=error)


def set_permission(state: ControllerState, permission: CameraPermissionState) -> ControllerState:
    return replace(state, permission=permission)


def clear_camera_error(state: ControllerState) -> ControllerState:
    """Drop a camera error once access works again."""
    if state.is_loading or not isinstance(state.error, CameraAccessError):
        return state
    return replace(state, error=None, phase=Phase.IDLE)


def record_error(state: ControllerState, error: EmotiVisionError) -> ControllerState:
    """Store an error raised outside an attempt (e.g. camera setup on mode entry)."""
    return replace(state, result=None, error=error)
