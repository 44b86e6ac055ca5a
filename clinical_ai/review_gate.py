"""Confidence scoring and the human-review gate for generated notes.

The score is a coarse step function of the completion finish reason and is
not calibrated against note quality.  Callers compare it with the practice's
configured threshold to decide whether a clinician must review the draft.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

FINISH_REASON_SCORES: Dict[str, float] = {
    "stop": 0.85,
    "length": 0.70,
}
DEFAULT_SCORE = 0.60
DEFAULT_CONFIDENCE_THRESHOLD = 0.7


def calculate_confidence_score(finish_reason: Optional[str]) -> float:
    """Map the provider finish reason to a confidence score."""

    return FINISH_REASON_SCORES.get(finish_reason or "", DEFAULT_SCORE)


def requires_review(score: float, threshold: Optional[float]) -> bool:
    """Return ``True`` when ``score`` falls strictly below ``threshold``."""

    if threshold is None:
        threshold = DEFAULT_CONFIDENCE_THRESHOLD
    return score < threshold


@dataclass
class ConfidenceMetadata:
    ai_model_used: str
    ai_confidence_score: float
    ai_processing_time_ms: int
    requires_review: bool
    ai_generated: bool = True

    def asdict(self) -> Dict[str, Any]:
        return {
            "ai_generated": self.ai_generated,
            "ai_model_used": self.ai_model_used,
            "ai_confidence_score": self.ai_confidence_score,
            "ai_processing_time_ms": self.ai_processing_time_ms,
            "requires_review": self.requires_review,
        }


def build_confidence_metadata(
    *,
    model: str,
    finish_reason: Optional[str],
    processing_time_ms: int,
    threshold: Optional[float],
) -> ConfidenceMetadata:
    score = calculate_confidence_score(finish_reason)
    return ConfidenceMetadata(
        ai_model_used=model,
        ai_confidence_score=score,
        ai_processing_time_ms=processing_time_ms,
        requires_review=requires_review(score, threshold),
    )


__all__ = [
    "DEFAULT_CONFIDENCE_THRESHOLD",
    "ConfidenceMetadata",
    "calculate_confidence_score",
    "requires_review",
    "build_confidence_metadata",
]
