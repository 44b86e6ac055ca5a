"""Append-only audit trail of AI generation requests."""

from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import structlog

from clinical_ai.store import ClinicalDataStore

logger = structlog.get_logger(__name__)


@dataclass
class AuditLogEntry:
    request_type: str
    model_used: str
    success: bool
    input_length: Optional[int] = None
    output_length: Optional[int] = None
    processing_time_ms: Optional[int] = None
    confidence_score: Optional[float] = None
    error_message: Optional[str] = None
    anonymized_input_hash: Optional[str] = None


def hash_input(value: Optional[str]) -> Optional[str]:
    """Return a stable SHA256 hash prefix of the request input."""

    if not value:
        return None
    digest = hashlib.sha256(value.encode("utf-8", "ignore")).hexdigest()
    return digest[:32]


def record_ai_request(store: ClinicalDataStore, entry: AuditLogEntry) -> bool:
    """Persist ``entry``; failures are logged and reported as ``False``.

    The audit write must never change the response the caller receives.
    """

    try:
        store.add_request_log(asdict(entry))
    except Exception:
        logger.exception(
            "ai_request_log_failed",
            request_type=entry.request_type,
            success=entry.success,
        )
        return False
    return True


def summarize_ai_requests(store: ClinicalDataStore) -> Dict[str, Any]:
    """Aggregate figures for the AI quality dashboard.

    Averages run over every row; a missing confidence score counts as zero.
    """

    stats = store.request_log_stats()
    total = stats["total"]
    if not total:
        return {
            "totalRequests": 0,
            "successRate": 0.0,
            "avgProcessingTime": 0.0,
            "avgConfidenceScore": 0.0,
        }
    return {
        "totalRequests": total,
        "successRate": stats["successes"] / total * 100,
        "avgProcessingTime": stats["processing_sum"] / total,
        "avgConfidenceScore": stats["confidence_sum"] / total,
    }


__all__ = ["AuditLogEntry", "hash_input", "record_ai_request", "summarize_ai_requests"]
