"""Seed data for a fresh clinical AI database.

A new practice needs one ``ai_note_settings`` row and a default progress
note template before the generation endpoints can answer.  Seeding is
idempotent: existing rows are left untouched unless ``overwrite`` is set.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import sqlalchemy as sa
import structlog
from sqlalchemy.orm import sessionmaker

from clinical_ai.db import session_scope
from clinical_ai.db import models as db_models
from clinical_ai.schemas import PROGRESS_NOTE_SCHEMA

logger = structlog.get_logger(__name__)

PROGRESS_NOTE_TYPE = "progress_note"
SOAP_FORMAT = "SOAP"

SOAP_SECTION_LABELS = {
    "subjective": "Subjective",
    "objective": "Objective",
    "assessment": "Assessment",
    "plan": "Plan",
}

SOAP_SECTION_PROMPTS = {
    "subjective": "Summarise the client's reported concerns, mood and relevant events since the last session.",
    "objective": "Record observable presentation, mental status findings and any measured scores.",
    "assessment": "Give the clinical impression, progress toward goals and any risk considerations.",
    "plan": "List next steps, homework, referrals and the follow-up interval.",
}


def progress_note_template() -> Dict[str, Any]:
    """Return the default SOAP template derived from the progress note schema."""

    keys = list(PROGRESS_NOTE_SCHEMA.parameters["properties"])
    return {
        "name": "SOAP Progress Note",
        "note_type": PROGRESS_NOTE_TYPE,
        "note_format": SOAP_FORMAT,
        "is_default": True,
        "is_active": True,
        "template_structure": {
            "sections": [{"key": key, "label": SOAP_SECTION_LABELS.get(key, key.title())} for key in keys]
        },
        "ai_prompts": {key: SOAP_SECTION_PROMPTS[key] for key in keys if key in SOAP_SECTION_PROMPTS},
    }


def seed_ai_settings(
    factory: Optional[sessionmaker] = None,
    *,
    enabled: bool = False,
    provider: str = "lovable_ai",
    model: Optional[str] = None,
    overwrite: bool = False,
) -> bool:
    """Create the AI settings row; returns ``True`` when a row was written."""

    with session_scope(factory) as session:
        existing = session.execute(sa.select(db_models.AINoteSettings).limit(1)).scalar_one_or_none()
        if existing is not None and not overwrite:
            return False
        row = existing or db_models.AINoteSettings()
        row.enabled = enabled
        row.provider = provider
        if model:
            row.model = model
        if existing is None:
            session.add(row)
    logger.info("ai_settings_seeded", enabled=enabled, provider=provider)
    return True


def seed_default_templates(factory: Optional[sessionmaker] = None, *, overwrite: bool = False) -> bool:
    values = progress_note_template()
    with session_scope(factory) as session:
        existing = session.execute(
            sa.select(db_models.NoteTemplate).where(
                db_models.NoteTemplate.note_type == values["note_type"],
                db_models.NoteTemplate.note_format == values["note_format"],
                db_models.NoteTemplate.is_default.is_(True),
            )
        ).scalars().first()
        if existing is not None and not overwrite:
            return False
        session.add(db_models.NoteTemplate(**values))
    logger.info("note_template_seeded", note_type=values["note_type"], note_format=values["note_format"])
    return True


__all__ = [
    "PROGRESS_NOTE_TYPE",
    "SOAP_FORMAT",
    "progress_note_template",
    "seed_ai_settings",
    "seed_default_templates",
]
