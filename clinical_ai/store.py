"""Data access for the note generation pipeline.

The practice-management database owns every record read here; the pipeline
only needs four queries and one append, all funnelled through
:class:`ClinicalDataStore` so the service can be handed an in-memory store in
tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy.orm import sessionmaker

from clinical_ai.db import session_scope
from clinical_ai.db import models as db_models


@dataclass(frozen=True)
class AISettings:
    """Snapshot of the ``ai_note_settings`` row used for one request."""

    enabled: bool = False
    provider: str = "lovable_ai"
    model: str = ""
    minimum_confidence_threshold: Optional[float] = None
    risk_assessment_enabled: bool = False
    suggestion_engine_enabled: bool = False


@dataclass(frozen=True)
class ClientRecord:
    id: str
    first_name: str
    last_name: str
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class TemplateRecord:
    id: str
    note_type: str
    note_format: str
    template_structure: Dict[str, Any] = field(default_factory=dict)
    ai_prompts: Any = None
    created_at: Optional[datetime] = None


class ClinicalDataStore:
    """Read settings, clients and templates; append AI request logs."""

    def __init__(self, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory

    def load_ai_settings(self) -> Optional[AISettings]:
        """Return the most recently updated settings row, if any."""

        with session_scope(self._session_factory) as session:
            row = session.execute(
                sa.select(db_models.AINoteSettings)
                .order_by(db_models.AINoteSettings.updated_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            if row is None:
                return None
            return AISettings(
                enabled=bool(row.enabled),
                provider=row.provider,
                model=row.model or "",
                minimum_confidence_threshold=row.minimum_confidence_threshold,
                risk_assessment_enabled=bool(row.risk_assessment_enabled),
                suggestion_engine_enabled=bool(row.suggestion_engine_enabled),
            )

    def get_client(self, client_id: Optional[str]) -> Optional[ClientRecord]:
        if not client_id:
            return None
        with session_scope(self._session_factory) as session:
            row = session.get(db_models.Client, client_id)
            if row is None:
                return None
            return ClientRecord(
                id=row.id,
                first_name=row.first_name,
                last_name=row.last_name,
                date_of_birth=row.date_of_birth,
                gender=row.gender,
            )

    def get_default_template(self, note_type: str, note_format: str) -> Optional[TemplateRecord]:
        """Return the newest default template for ``note_type``/``note_format``."""

        with session_scope(self._session_factory) as session:
            row = session.execute(
                sa.select(db_models.NoteTemplate)
                .where(
                    db_models.NoteTemplate.note_type == note_type,
                    db_models.NoteTemplate.note_format == note_format,
                    db_models.NoteTemplate.is_default.is_(True),
                )
                .order_by(db_models.NoteTemplate.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            if row is None:
                return None
            return TemplateRecord(
                id=row.id,
                note_type=row.note_type,
                note_format=row.note_format,
                template_structure=dict(row.template_structure or {}),
                ai_prompts=row.ai_prompts,
                created_at=row.created_at,
            )

    def add_request_log(self, values: Mapping[str, Any]) -> None:
        with session_scope(self._session_factory) as session:
            session.add(db_models.AIRequestLog(**dict(values)))

    def request_log_stats(self) -> Dict[str, Any]:
        """Return raw aggregates over ``ai_request_logs``."""

        log = db_models.AIRequestLog
        with session_scope(self._session_factory) as session:
            total, successes, processing_sum, confidence_sum = session.execute(
                sa.select(
                    sa.func.count(log.id),
                    sa.func.coalesce(sa.func.sum(sa.case((log.success.is_(True), 1), else_=0)), 0),
                    sa.func.coalesce(sa.func.sum(log.processing_time_ms), 0),
                    sa.func.coalesce(sa.func.sum(log.confidence_score), 0.0),
                )
            ).one()
        return {
            "total": int(total or 0),
            "successes": int(successes or 0),
            "processing_sum": float(processing_sum or 0),
            "confidence_sum": float(confidence_sum or 0.0),
        }


__all__ = ["AISettings", "ClientRecord", "TemplateRecord", "ClinicalDataStore"]
