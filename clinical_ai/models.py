"""Request bodies accepted by the note generation endpoints.

Field names follow the camelCase wire format of the web client; the Python
attributes are snake_case and either spelling is accepted on input.  The
models only coerce and sanitise; which combinations of fields are required
is checked by :mod:`clinical_ai.notes_service` so the service can be called
directly with the same rules.
"""

from __future__ import annotations

import html
from typing import Any, Dict, Literal, Optional

import bleach
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _clean(value: Optional[str]) -> Optional[str]:
    """Strip HTML markup pasted in from other systems.

    The result feeds prompts, not a page, so the entities bleach escapes are
    turned back into the characters the clinician typed.
    """
    if value is None:
        return None
    return html.unescape(bleach.clean(str(value), tags=[], attributes={}, strip=True))


class GenerationRequest(BaseModel):
    """Body of ``POST /generate-clinical-note``."""

    session_transcript: Optional[str] = Field(default=None, alias="sessionTranscript")
    free_text_input: Optional[str] = Field(default=None, alias="freeTextInput")
    note_type: Optional[str] = Field(default=None, alias="noteType")
    note_format: Optional[str] = Field(default=None, alias="noteFormat")
    client_id: Optional[str] = Field(default=None, alias="clientId")
    appointment_id: Optional[str] = Field(default=None, alias="appointmentId")
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("session_transcript", "free_text_input")
    @classmethod
    def _sanitize_source(cls, value: Optional[str]) -> Optional[str]:
        return _clean(value)


class SectionRequest(BaseModel):
    """Body of ``POST /generate-section-content``."""

    section_type: Optional[str] = Field(default=None, alias="sectionType")
    context: str = ""
    client_id: Optional[str] = Field(default=None, alias="clientId")
    existing_data: Optional[Dict[str, Any]] = Field(default=None, alias="existingData")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("context", mode="before")
    @classmethod
    def _sanitize_context(cls, value: Any) -> str:
        return _clean(value) or ""


class SuggestionRequest(BaseModel):
    content: Optional[str] = None
    suggestion_type: Literal["diagnoses", "interventions", "both"] = Field(
        default="both", alias="suggestionType"
    )
    client_id: Optional[str] = Field(default=None, alias="clientId")
    note_type: Optional[str] = Field(default=None, alias="noteType")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("content")
    @classmethod
    def _sanitize_content(cls, value: Optional[str]) -> Optional[str]:
        return _clean(value)


__all__ = ["GenerationRequest", "SectionRequest", "SuggestionRequest"]
