"""SQLAlchemy models for the records the note pipeline reads and writes.

The tables mirror the practice-management schema: the pipeline only reads
``ai_note_settings``, ``clients`` and ``note_templates`` and appends to
``ai_request_logs``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import Boolean, Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import declarative_base


Base = declarative_base()


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class AINoteSettings(Base):
    __tablename__ = "ai_note_settings"

    id = sa.Column(String, primary_key=True, default=_uuid)
    enabled = sa.Column(Boolean, nullable=False, server_default=sa.false(), default=False)
    provider = sa.Column(String, nullable=False, server_default="lovable_ai", default="lovable_ai")
    model = sa.Column(String, nullable=False, server_default="google/gemini-2.5-flash", default="google/gemini-2.5-flash")
    minimum_confidence_threshold = sa.Column(Float, nullable=True)
    risk_assessment_enabled = sa.Column(Boolean, nullable=False, server_default=sa.false(), default=False)
    suggestion_engine_enabled = sa.Column(Boolean, nullable=False, server_default=sa.false(), default=False)
    created_at = sa.Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        default=_utcnow,
    )
    updated_at = sa.Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        default=_utcnow,
        onupdate=_utcnow,
    )


class Client(Base):
    __tablename__ = "clients"

    id = sa.Column(String, primary_key=True, default=_uuid)
    first_name = sa.Column(String, nullable=False)
    last_name = sa.Column(String, nullable=False)
    date_of_birth = sa.Column(Date, nullable=True)
    gender = sa.Column(String, nullable=True)
    diagnoses = sa.Column(sa.JSON, nullable=True)


class NoteTemplate(Base):
    __tablename__ = "note_templates"

    id = sa.Column(String, primary_key=True, default=_uuid)
    name = sa.Column(String, nullable=False)
    note_type = sa.Column(String, nullable=False)
    note_format = sa.Column(String, nullable=False)
    is_default = sa.Column(Boolean, nullable=True, default=False)
    is_active = sa.Column(Boolean, nullable=True, default=True)
    template_structure = sa.Column(sa.JSON, nullable=False)
    ai_prompts = sa.Column(sa.JSON, nullable=True)
    created_at = sa.Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        default=_utcnow,
    )

    __table_args__ = (
        sa.Index("idx_note_templates_lookup", "note_type", "note_format", "is_default"),
    )


class AIRequestLog(Base):
    __tablename__ = "ai_request_logs"

    id = sa.Column(Integer, primary_key=True, autoincrement=True)
    request_type = sa.Column(String, nullable=False)
    model_used = sa.Column(String, nullable=False)
    input_length = sa.Column(Integer, nullable=True)
    output_length = sa.Column(Integer, nullable=True)
    processing_time_ms = sa.Column(Integer, nullable=True)
    confidence_score = sa.Column(Float, nullable=True)
    success = sa.Column(Boolean, nullable=False)
    error_message = sa.Column(Text, nullable=True)
    anonymized_input_hash = sa.Column(String, nullable=True)
    created_at = sa.Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        default=_utcnow,
    )

    __table_args__ = (
        sa.Index("idx_ai_request_logs_type", "request_type", "created_at"),
    )


__all__ = ["Base", "AINoteSettings", "Client", "NoteTemplate", "AIRequestLog"]
