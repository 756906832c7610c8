import asyncio

import pytest

from services.errors import ClassificationCallFailed, MalformedClassificationResponse
from services.frame_encoder import parse_data_uri
from services.gemini_service import (
    EMOTION_PROMPT,
    GeminiEmotionClassifier,
    emotion_icon,
    parse_classification_response,
)
from services.media_source import to_data_uri


PHOTO = to_data_uri("image/jpeg", b"\xff\xd8\xff\xe0fake-jpeg")


class FakeResponse:
    def __init__(self, text=None, error=None):
        self._text = text
        self._error = error

    @property
    def text(self):
        if self._error is not None:
            raise self._error
        return self._text


class FakeModel:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def generate_content_async(self, contents, generation_config=None, request_options=None):
        self.calls.append((contents, generation_config))
        self.request_options = request_options
        if self.error is not None:
            raise self.error
        return self.response


# =============================================================================
# Response parsing
# =============================================================================

def test_parse_plain_json():
    result = parse_classification_response('{"emotion": "Happy", "confidence": 0.873}')
    assert result.emotion_label == "Happy"
    assert result.confidence_score == pytest.approx(0.873)
    assert result.confidence_percent == "87.3%"


def test_parse_json_inside_code_fence():
    text = '```json\n{"emotion": "sad", "confidence": 0.61}\n```'
    result = parse_classification_response(text)
    assert result.emotion_label == "sad"
    assert result.confidence_score == pytest.approx(0.61)


def test_percent_confidence_is_scaled():
    result = parse_classification_response('{"emotion": "anger", "confidence": 87}')
    assert result.confidence_score == pytest.approx(0.87)


@pytest.mark.parametrize("raw,expected", [(-0.2, 0.0), (150, 1.0), (1.0, 1.0), (0, 0.0)])
def test_confidence_is_clamped(raw, expected):
    result = parse_classification_response(f'{{"emotion": "fear", "confidence": {raw}}}')
    assert result.confidence_score == pytest.approx(expected)


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "The person looks happy.",
        '{"emotion": "happy"}',
        '{"confidence": 0.5}',
        '{"emotion": "   ", "confidence": 0.5}',
        '{"emotion": "happy", "confidence": "very"}',
        '{"emotion": "happy", "confidence": 0.5',
        None,
    ],
)
def test_malformed_responses(text):
    with pytest.raises(MalformedClassificationResponse):
        parse_classification_response(text)


# =============================================================================
# Classifier
# =============================================================================

def test_classify_sends_prompt_and_inline_image():
    model = FakeModel(response=FakeResponse('{"emotion": "surprise", "confidence": 0.9}'))
    classifier = GeminiEmotionClassifier(model)

    result = asyncio.run(classifier.classify(PHOTO))

    assert result.emotion_label == "surprise"
    contents, generation_config = model.calls[0]
    assert contents[0] == EMOTION_PROMPT
    mime_type, raw = parse_data_uri(PHOTO)
    assert contents[1] == {"mime_type": mime_type, "data": raw}
    assert generation_config.response_mime_type == "application/json"


def test_classify_passes_request_timeout():
    model = FakeModel(response=FakeResponse('{"emotion": "calm", "confidence": 0.5}'))

    asyncio.run(GeminiEmotionClassifier(model, timeout=12.5).classify(PHOTO))
    assert model.request_options == {"timeout": 12.5}

    asyncio.run(GeminiEmotionClassifier(model).classify(PHOTO))
    assert model.request_options is None


def test_classify_wraps_transport_errors():
    model = FakeModel(error=ConnectionError("network unreachable"))
    with pytest.raises(ClassificationCallFailed, match="network unreachable"):
        asyncio.run(GeminiEmotionClassifier(model).classify(PHOTO))


def test_classify_rejects_bad_data_uri_without_calling_model():
    model = FakeModel(response=FakeResponse('{"emotion": "happy", "confidence": 1}'))
    with pytest.raises(ClassificationCallFailed):
        asyncio.run(GeminiEmotionClassifier(model).classify("not-a-data-uri"))
    assert model.calls == []


def test_classify_blocked_response_is_malformed():
    model = FakeModel(response=FakeResponse(error=ValueError("response was blocked")))
    with pytest.raises(MalformedClassificationResponse, match="blocked"):
        asyncio.run(GeminiEmotionClassifier(model).classify(PHOTO))


# =============================================================================
# Icons
# =============================================================================

@pytest.mark.parametrize(
    "emotion,icon",
    [("Joy", "😄"), ("HAPPY", "😄"), ("sadness", "😢"), ("Angry", "😠"),
     ("surprised", "😲"), ("fear", "😨"), ("neutral", "😐"), ("bored", "😐"), (None, "😐")],
)
def test_emotion_icon_is_case_insensitive(emotion, icon):
    assert emotion_icon(emotion) == icon
