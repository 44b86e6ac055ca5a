"""Error taxonomy for the note generation pipeline.

Every error carries the HTTP status the API layer should answer with so the
route handlers do not need to know which stage failed.
"""

from __future__ import annotations

from typing import Optional


class ClinicalAIError(Exception):
    """Base error for the AI note generation pipeline."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(ClinicalAIError):
    """Raised when AI features are disabled or not configured."""

    status_code = 400


class ProviderNotConfiguredError(ClinicalAIError):
    """Raised when the selected completion provider has no API key."""


class ValidationError(ClinicalAIError):
    """Raised when a request is missing required fields."""

    status_code = 400


class TemplateNotFoundError(ClinicalAIError):
    """Raised when no default note template matches the requested type/format."""

    def __init__(self, note_type: str, note_format: str) -> None:
        super().__init__(f"No template found for {note_type} in {note_format} format")
        self.note_type = note_type
        self.note_format = note_format


class UnsupportedSectionError(ClinicalAIError):
    """Raised for a section type without a registered output schema."""

    def __init__(self, section_type: str) -> None:
        super().__init__(f"Unknown section type: {section_type}")
        self.section_type = section_type


class CompletionError(ClinicalAIError):
    """Base error for failed completion provider calls."""


class CompletionProviderError(CompletionError):
    """Raised when the completion API answers with a non-2xx status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.provider_status = status_code
        self.body = body


class MalformedResponseError(CompletionError):
    """Raised when the completion body is not the structured output we asked for."""


__all__ = [
    "ClinicalAIError",
    "ConfigurationError",
    "ProviderNotConfiguredError",
    "ValidationError",
    "TemplateNotFoundError",
    "UnsupportedSectionError",
    "CompletionError",
    "CompletionProviderError",
    "MalformedResponseError",
]
