"""
App configuration loaded from environment variables (and `.env` if present).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv


ENV_PATH = Path(__file__).parent.parent / ".env"

MB = 1024 * 1024

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class AppConfig:
    max_upload_bytes: int = 5 * MB
    jpeg_quality: float = 0.9
    capture_max_width: int = 640
    mirror_capture: bool = True
    stream_ready_timeout: float = 3.0
    classification_timeout: float = 30.0
    gemini_model: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if self.max_upload_bytes <= 0:
            raise ValueError("max_upload_bytes must be positive")
        if not 0.0 < self.jpeg_quality <= 1.0:
            raise ValueError("jpeg_quality must be in (0, 1]")
        if self.capture_max_width <= 0:
            raise ValueError("capture_max_width must be positive")
        if self.stream_ready_timeout < 0:
            raise ValueError("stream_ready_timeout must not be negative")
        if self.classification_timeout <= 0:
            raise ValueError("classification_timeout must be positive")


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Build an AppConfig from the environment.

    Args:
        environ: mapping to read from; defaults to os.environ after loading `.env`

    Returns:
        AppConfig with defaults for every unset variable
    """
    if environ is None:
        if ENV_PATH.exists():
            load_dotenv(ENV_PATH)
        environ = os.environ

    def get(name: str) -> Optional[str]:
        value = environ.get(name)
        return value if value not in (None, "") else None

    # (env var, field, converter)
    fields = [
        ("EMOTIVISION_MAX_UPLOAD_MB", "max_upload_bytes", lambda raw: int(float(raw) * MB)),
        ("EMOTIVISION_JPEG_QUALITY", "jpeg_quality", float),
        ("EMOTIVISION_CAPTURE_MAX_WIDTH", "capture_max_width", int),
        ("EMOTIVISION_MIRROR_CAPTURE", "mirror_capture",
         lambda raw: _parse_bool("EMOTIVISION_MIRROR_CAPTURE", raw)),
        ("EMOTIVISION_STREAM_READY_TIMEOUT", "stream_ready_timeout", float),
        ("EMOTIVISION_CLASSIFICATION_TIMEOUT", "classification_timeout", float),
        ("GEMINI_MODEL", "gemini_model", str),
        ("EMOTIVISION_LOG_LEVEL", "log_level", lambda raw: raw.upper()),
    ]

    kwargs = {}
    for env_name, field_name, convert in fields:
        raw = get(env_name)
        if raw is not None:
            kwargs[field_name] = convert(raw)

    return AppConfig(**kwargs)


def configure_logging(level: str = "INFO") -> None:
    """Set up root logging once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
    root.setLevel(level)
