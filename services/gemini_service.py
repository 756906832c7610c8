"""
Helper functions for working with Google Gemini as the emotion classifier.
Sends a still image through a fixed prompt and validates the JSON answer.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Tuple

import google.generativeai as genai
import streamlit as st
from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from services.errors import ClassificationCallFailed, MalformedClassificationResponse
from services.frame_encoder import parse_data_uri
from services.state import AnalysisResult


logger = logging.getLogger(__name__)

# Map emotion -> emoji (case-insensitive lookup through emotion_icon)
emotion_emoji = {
    "joy": "😄",
    "happy": "😄",
    "happiness": "😄",
    "sadness": "😢",
    "sad": "😢",
    "anger": "😠",
    "angry": "😠",
    "surprise": "😲",
    "surprised": "😲",
    "fear": "😨",
    "disgust": "🤢",
    "neutral": "😐",
}

DEFAULT_EMOJI = "😐"

EMOTION_PROMPT = """You are an AI trained to detect emotions in images of faces. Analyze the image and determine the predominant emotion expressed in the faces.

Respond with only the emotion and a confidence score (0-1) of your analysis, as JSON:
{"emotion": "<emotion>", "confidence": <number between 0 and 1>}
"""


def emotion_icon(emotion: Optional[str]) -> str:
    if not emotion:
        return DEFAULT_EMOJI
    return emotion_emoji.get(emotion.strip().lower(), DEFAULT_EMOJI)


class EmotionResponse(BaseModel):
    """Shape of the JSON the model is asked to return."""

    emotion: str
    confidence: float

    @field_validator("emotion")
    @classmethod
    def _emotion_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("emotion must not be empty")
        return value

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        if value != value:  # NaN
            raise ValueError("confidence must be a number")
        # some models answer in percent
        if 1.0 < value <= 100.0:
            value = value / 100.0
        return min(max(value, 0.0), 1.0)

    def to_result(self) -> AnalysisResult:
        return AnalysisResult(emotion_label=self.emotion, confidence_score=self.confidence)


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = text.splitlines()[1:]
        if lines and lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        text = "\n".join(lines).strip()
    return text


def parse_classification_response(text: Optional[str]) -> AnalysisResult:
    """
    Parse the model's text answer into an AnalysisResult.

    Raises:
        MalformedClassificationResponse if the text is not the expected JSON object
    """
    if not text or not text.strip():
        raise MalformedClassificationResponse("The model returned an empty response.")

    body = _strip_code_fence(text)
    start, end = body.find("{"), body.rfind("}")
    if start == -1 or end < start:
        raise MalformedClassificationResponse(f"Expected a JSON object, got: {body[:200]}")

    try:
        payload = json.loads(body[start:end + 1])
    except json.JSONDecodeError as e:
        raise MalformedClassificationResponse(f"Could not parse model output: {e}") from e

    try:
        return EmotionResponse.model_validate(payload).to_result()
    except ValidationError as e:
        raise MalformedClassificationResponse(
            f"Model output is missing emotion/confidence: {e.errors()[0]['msg']}"
        ) from e


class GeminiEmotionClassifier:
    """Async client for the external emotion classification call."""

    def __init__(self, model, prompt: str = EMOTION_PROMPT, timeout: Optional[float] = None):
        self.model = model
        self.prompt = prompt
        self.timeout = timeout

    async def classify(self, photo_data_uri: str) -> AnalysisResult:
        """
        Classify the predominant emotion in a photo.

        Args:
            photo_data_uri: 'data:<mimetype>;base64,<encoded_data>'

        Returns:
            AnalysisResult with label and confidence in [0, 1]
        """
        try:
            mime_type, image_bytes = parse_data_uri(photo_data_uri)
        except ValueError as e:
            raise ClassificationCallFailed(f"Invalid image data format for analysis: {e}") from e

        contents = [self.prompt, {"mime_type": mime_type, "data": image_bytes}]
        request_options = {"timeout": self.timeout} if self.timeout else None
        try:
            response = await self.model.generate_content_async(
                contents,
                generation_config=genai.GenerationConfig(
                    response_mime_type="application/json",
                    temperature=0.0,
                ),
                request_options=request_options,
            )
        except Exception as e:
            raise ClassificationCallFailed(f"Emotion classification failed: {str(e)[:200]}") from e

        try:
            text = response.text
        except (ValueError, AttributeError) as e:
            # blocked or empty candidates
            raise MalformedClassificationResponse(f"The model returned no text: {e}") from e

        return parse_classification_response(text)


def get_gemini_api_key() -> Optional[str]:
    """Get Gemini API key from various sources."""

    # Try loading from .env file first
    env_path = Path(__file__).parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    # Try secrets first (Streamlit secrets)
    try:
        api_key = st.secrets.get("GEMINI_API_KEY")
        if api_key:
            return api_key
    except Exception:
        # no secrets.toml configured
        pass

    # Try environment variable (after .env was loaded)
    api_key = os.getenv("GEMINI_API_KEY")
    if api_key:
        return api_key

    # Try session state (user input)
    if "gemini_api_key" in st.session_state and st.session_state.gemini_api_key:
        return st.session_state.gemini_api_key

    return None


def init_gemini(api_key: str, model_name: Optional[str] = None) -> Tuple[Optional[object], str]:
    """Initialize Gemini API with API key and choose a vision-capable default model."""

    if not api_key:
        return None, "GEMINI_API_KEY is not set"

    try:
        genai.configure(api_key=api_key)
        models = genai.list_models()

        available_models = []
        for model in models:
            if "generateContent" in model.supported_generation_methods:
                model_name_clean = model.name.replace("models/", "")

                # skip experimental builds
                if "-exp" not in model_name_clean and "experimental" not in model_name_clean.lower():
                    available_models.append(model_name_clean)

        preferred_models = [
            "gemini-2.0-flash",
            "gemini-1.5-flash",
            "gemini-1.5-pro",
        ]

        selected_model = None

        if model_name and model_name in available_models:
            selected_model = model_name
        else:
            for pref_model in preferred_models:
                if pref_model in available_models:
                    selected_model = pref_model
                    break

            if not selected_model:
                flash_models = [m for m in available_models if "flash" in m]
                if flash_models:
                    selected_model = flash_models[0]

            if not selected_model and available_models:
                selected_model = available_models[0]

        if not selected_model:
            return None, "No usable Gemini model found"

        logger.info("Using Gemini model %s", selected_model)
        return genai.GenerativeModel(selected_model), selected_model
    except Exception as e:
        logger.warning("Gemini initialization failed: %s", e)
        return None, f"Error initializing Gemini API: {e}"
