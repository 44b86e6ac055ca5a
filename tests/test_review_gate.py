import pytest

from clinical_ai.review_gate import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    build_confidence_metadata,
    calculate_confidence_score,
    requires_review,
)


@pytest.mark.parametrize(
    "finish_reason, expected",
    [("stop", 0.85), ("length", 0.70), ("content_filter", 0.60), (None, 0.60)],
)
def test_confidence_score_mapping(finish_reason, expected):
    assert calculate_confidence_score(finish_reason) == expected


def test_review_not_required_at_threshold():
    assert requires_review(0.7, 0.7) is False


def test_review_required_below_threshold():
    assert requires_review(0.6, 0.7) is True
    assert requires_review(0.85, 0.9) is True


def test_missing_threshold_uses_default():
    assert DEFAULT_CONFIDENCE_THRESHOLD == 0.7
    assert requires_review(0.6, None) is True
    assert requires_review(0.7, None) is False


def test_metadata_shape():
    metadata = build_confidence_metadata(
        model="google/gemini-2.5-flash",
        finish_reason="length",
        processing_time_ms=1234,
        threshold=0.8,
    ).asdict()
    assert metadata == {
        "ai_generated": True,
        "ai_model_used": "google/gemini-2.5-flash",
        "ai_confidence_score": 0.70,
        "ai_processing_time_ms": 1234,
        "requires_review": True,
    }
