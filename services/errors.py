"""
Error taxonomy for the capture / analyze flow.
Every error carries a short `title` used for toast notifications.
"""


class EmotiVisionError(Exception):
    """Base class for every recoverable error in the app."""

    title = "Analysis Error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.default_message())

    @classmethod
    def default_message(cls) -> str:
        return "An unknown error occurred during analysis."

    @property
    def message(self) -> str:
        return str(self)


# ---------- camera ----------
class CameraAccessError(EmotiVisionError):
    """Camera could not be used. The UI asks for permission instead of a retry."""

    title = "Camera Access Required"

    @classmethod
    def default_message(cls) -> str:
        return "Camera access is required. Please allow camera access and try again."


class CameraPermissionDenied(CameraAccessError):
    @classmethod
    def default_message(cls) -> str:
        return "Camera permission was denied. Enable it in your browser settings."


class CameraUnavailable(CameraAccessError):
    @classmethod
    def default_message(cls) -> str:
        return "No camera was found or it is already in use."


class CameraRequired(CameraAccessError):
    pass


class StreamNotReady(EmotiVisionError):
    title = "Camera Not Ready"

    @classmethod
    def default_message(cls) -> str:
        return "The camera stream is not ready yet. Wait a moment and try again."


# ---------- file selection ----------
class SelectionError(EmotiVisionError):
    title = "Invalid File"


class InvalidFileType(SelectionError):
    @classmethod
    def default_message(cls) -> str:
        return "Invalid file type. Please upload an image (JPEG, PNG, GIF, WEBP)."


class FileTooLarge(SelectionError):
    @classmethod
    def default_message(cls) -> str:
        return "File size exceeds 5MB limit."


class FileReadError(SelectionError):
    @classmethod
    def default_message(cls) -> str:
        return "Could not read the selected file."


class NoImageSelected(SelectionError):
    title = "No Image Selected"

    @classmethod
    def default_message(cls) -> str:
        return "Please select an image file first."


# ---------- encoding / classification ----------
class CaptureEncodingError(EmotiVisionError):
    @classmethod
    def default_message(cls) -> str:
        return "Could not encode the captured frame."


class ClassificationError(EmotiVisionError):
    pass


class ClassificationCallFailed(ClassificationError):
    @classmethod
    def default_message(cls) -> str:
        return "The emotion classification service could not be reached."


class MalformedClassificationResponse(ClassificationError):
    @classmethod
    def default_message(cls) -> str:
        return "The emotion classification service returned an unexpected response."
