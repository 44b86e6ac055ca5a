"""Generation pipelines behind the clinical AI endpoints.

:class:`NoteGenerationService` runs each request through the same stages:
normalise the request, load the practice's AI settings, gather client
context, build prompts, call the completion provider, and record an audit
row.  Errors propagate as :class:`~clinical_ai.exceptions.ClinicalAIError`
subclasses carrying the HTTP status the API layer should use.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Optional

import structlog

from clinical_ai import prompts
from clinical_ai.audit import AuditLogEntry, hash_input, record_ai_request
from clinical_ai.completion import CompletionProvider, get_provider
from clinical_ai.config import AppConfig
from clinical_ai.exceptions import (
    ConfigurationError,
    CompletionProviderError,
    MalformedResponseError,
    TemplateNotFoundError,
    ValidationError,
)
from clinical_ai.models import GenerationRequest, SectionRequest, SuggestionRequest
from clinical_ai.review_gate import build_confidence_metadata
from clinical_ai.risk import run_risk_assessment
from clinical_ai.schemas import (
    DIAGNOSIS_SUGGESTION_SCHEMA,
    INTERVENTION_SUGGESTION_SCHEMA,
    SectionSchema,
    get_section_schema,
    missing_required,
    resolve_note_schema,
    tool_choice,
    tool_definition,
)
from clinical_ai.store import AISettings, ClientRecord, ClinicalDataStore
from clinical_ai.time_utils import calculate_age

logger = structlog.get_logger(__name__)

CLINICAL_NOTE_REQUEST = "clinical_note"
SECTION_REQUEST = "section_content"
SUGGESTION_REQUEST = "suggestion"

NOTE_MAX_TOKENS = 4000
SECTION_MAX_TOKENS = 4000
SUGGESTION_MAX_TOKENS = 2000
NOTE_TEMPERATURE = 0.3

AI_DISABLED_MESSAGE = "AI is not enabled"
SUGGESTIONS_DISABLED_MESSAGE = "AI suggestion engine is not enabled"

_SUGGESTION_SCHEMAS = {
    "diagnoses": (DIAGNOSIS_SUGGESTION_SCHEMA,),
    "interventions": (INTERVENTION_SUGGESTION_SCHEMA,),
    "both": (DIAGNOSIS_SUGGESTION_SCHEMA, INTERVENTION_SUGGESTION_SCHEMA),
}


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def _select_text_source(request: GenerationRequest) -> str:
    """Return the single non-empty text source of ``request``."""

    missing = [
        name
        for name, value in (
            ("noteType", request.note_type),
            ("noteFormat", request.note_format),
            ("clientId", request.client_id),
        )
        if not _has_text(value)
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    has_transcript = _has_text(request.session_transcript)
    has_free_text = _has_text(request.free_text_input)
    if has_transcript == has_free_text:
        raise ValidationError("Provide exactly one of sessionTranscript or freeTextInput")
    return request.session_transcript if has_transcript else request.free_text_input


def _client_age(client: Optional[ClientRecord]) -> Optional[int]:
    if client is None or client.date_of_birth is None:
        return None
    return calculate_age(client.date_of_birth)


def _failure_message(exc: Exception) -> str:
    if isinstance(exc, CompletionProviderError) and exc.provider_status is not None:
        return f"AI API error: {exc.provider_status}"
    return str(exc) or exc.__class__.__name__


class NoteGenerationService:
    """Run the clinical note, section and suggestion pipelines."""

    def __init__(self, store: ClinicalDataStore, config: AppConfig) -> None:
        self._store = store
        self._config = config

    # ------------------------------------------------------------------
    # Shared stages
    # ------------------------------------------------------------------
    def _require_settings(self, message: str = AI_DISABLED_MESSAGE) -> AISettings:
        settings = self._store.load_ai_settings()
        if settings is None or not settings.enabled:
            raise ConfigurationError(message)
        return settings

    def _provider(self, settings: AISettings) -> CompletionProvider:
        return get_provider(settings, self._config)

    def _audit(
        self,
        request_type: str,
        model: str,
        input_text: Optional[str],
        started: float,
        *,
        success: bool,
        output: Any = None,
        confidence: Optional[float] = None,
        error: Optional[Exception] = None,
    ) -> None:
        entry = AuditLogEntry(
            request_type=request_type,
            model_used=model,
            success=success,
            input_length=len(input_text) if input_text is not None else None,
            output_length=len(json.dumps(output)) if output is not None else None,
            processing_time_ms=_elapsed_ms(started),
            confidence_score=confidence,
            error_message=_failure_message(error) if error is not None else None,
            anonymized_input_hash=hash_input(input_text),
        )
        record_ai_request(self._store, entry)

    # ------------------------------------------------------------------
    # Clinical note
    # ------------------------------------------------------------------
    def generate_clinical_note(self, request: GenerationRequest) -> Dict[str, Any]:
        """Draft a full clinical note from a transcript or free text.

        Returns the parsed note ``content`` beside the risk assessment and the
        confidence metadata; the risk fields are never merged into the note.
        """

        started = time.perf_counter()
        input_text = _select_text_source(request)
        settings = self._require_settings()
        model = settings.model
        try:
            provider = self._provider(settings)
            model = provider.model
            client = self._store.get_client(request.client_id)
            template = self._store.get_default_template(request.note_type, request.note_format)
            if template is None:
                raise TemplateNotFoundError(request.note_type, request.note_format)
            schema = resolve_note_schema(request.note_type, request.note_format)

            messages = prompts.build_clinical_note_messages(
                note_type=request.note_type,
                note_format=request.note_format,
                client_name=client.full_name if client else "Unknown",
                client_age=_client_age(client),
                template_structure=template.template_structure,
                ai_prompts=template.ai_prompts,
                session_transcript=request.session_transcript or None,
                free_text_input=request.free_text_input or None,
                output_schema=schema,
            )
            completion_started = time.perf_counter()
            result = provider.complete_json(
                messages, max_tokens=NOTE_MAX_TOKENS, temperature=NOTE_TEMPERATURE
            )
            generation_ms = _elapsed_ms(completion_started)
            if schema is not None:
                missing = missing_required(schema.parameters, result.content)
                if missing:
                    raise MalformedResponseError(
                        f"AI response is missing required fields: {', '.join(missing)}"
                    )
            risk = run_risk_assessment(settings, provider, result.content, input_text)
            metadata = build_confidence_metadata(
                model=model,
                finish_reason=result.finish_reason,
                processing_time_ms=generation_ms,
                threshold=settings.minimum_confidence_threshold,
            )
        except Exception as exc:
            self._audit(CLINICAL_NOTE_REQUEST, model, input_text, started, success=False, error=exc)
            raise

        self._audit(
            CLINICAL_NOTE_REQUEST,
            model,
            input_text,
            started,
            success=True,
            output=result.content,
            confidence=metadata.ai_confidence_score,
        )
        logger.info(
            "clinical_note_generated",
            note_type=request.note_type,
            note_format=request.note_format,
            provider=provider.name,
            risk_flags=risk.flags,
            risk_severity=risk.severity,
            requires_review=metadata.requires_review,
            processing_time_ms=metadata.ai_processing_time_ms,
        )
        response: Dict[str, Any] = {"success": True, "content": result.content}
        response.update(risk.asdict())
        response["metadata"] = metadata.asdict()
        return response

    # ------------------------------------------------------------------
    # Intake sections
    # ------------------------------------------------------------------
    def _section_client_context(self, client_id: Optional[str]) -> str:
        client = self._store.get_client(client_id)
        if client is None:
            return ""
        age = _client_age(client)
        return (
            f"Client: {client.full_name}, Age: {age if age is not None else 'Unknown'}, "
            f"Gender: {client.gender or 'not specified'}"
        )

    def generate_section_content(self, request: SectionRequest) -> Dict[str, Any]:
        """Draft one intake assessment section as a forced tool call."""

        started = time.perf_counter()
        settings = self._require_settings()
        model = settings.model
        try:
            schema = get_section_schema(request.section_type or "")
            provider = self._provider(settings)
            model = provider.model
            messages = prompts.build_section_messages(
                schema,
                self._section_client_context(request.client_id),
                request.context,
                request.existing_data,
            )
            result = provider.complete_tool(
                messages,
                [tool_definition(schema)],
                tool_choice(schema),
                max_tokens=SECTION_MAX_TOKENS,
            )
        except Exception as exc:
            self._audit(SECTION_REQUEST, model, request.context, started, success=False, error=exc)
            raise

        self._audit(SECTION_REQUEST, model, request.context, started, success=True, output=result.content)
        logger.info(
            "section_content_generated",
            section_type=request.section_type,
            provider=provider.name,
            finish_reason=result.finish_reason,
        )
        return {"content": result.content}

    # ------------------------------------------------------------------
    # Diagnosis / intervention suggestions
    # ------------------------------------------------------------------
    def _suggestion_client_context(self, client_id: Optional[str]) -> str:
        client = self._store.get_client(client_id)
        if client is None:
            return ""
        age = _client_age(client)
        return (
            f"Client is {age if age is not None else 'Unknown'} years old, "
            f"gender: {client.gender or 'not specified'}."
        )

    def suggest_clinical_content(self, request: SuggestionRequest) -> Dict[str, Any]:
        """Suggest ICD-10 diagnoses and/or evidence-based interventions."""

        started = time.perf_counter()
        settings = self._store.load_ai_settings()
        if settings is None or not settings.enabled or not settings.suggestion_engine_enabled:
            raise ConfigurationError(SUGGESTIONS_DISABLED_MESSAGE)
        if not _has_text(request.content):
            raise ValidationError("Missing required fields: content")

        schemas: List[SectionSchema] = list(_SUGGESTION_SCHEMAS[request.suggestion_type])
        model = settings.model
        try:
            provider = self._provider(settings)
            model = provider.model
            messages = prompts.build_suggestion_messages(
                schemas,
                request.content,
                self._suggestion_client_context(request.client_id),
            )
            forced = tool_choice(schemas[0]) if len(schemas) == 1 else "auto"
            calls = provider.complete_tools(
                messages,
                [tool_definition(schema) for schema in schemas],
                forced,
                max_tokens=SUGGESTION_MAX_TOKENS,
                require_call=len(schemas) == 1,
            )
        except Exception as exc:
            self._audit(SUGGESTION_REQUEST, model, request.content, started, success=False, error=exc)
            raise

        suggestions: Dict[str, Any] = {}
        by_tool = {schema.tool_name: schema.name for schema in schemas}
        for name, arguments, _choice, _payload in calls:
            key = by_tool.get(name)
            if key is not None:
                suggestions[key] = arguments.get(key)

        processing_time = _elapsed_ms(started)
        self._audit(SUGGESTION_REQUEST, model, request.content, started, success=True, output=suggestions)
        logger.info(
            "suggestions_generated",
            suggestion_type=request.suggestion_type,
            note_type=request.note_type,
            processing_time_ms=processing_time,
        )
        return {"suggestions": suggestions, "processingTime": processing_time, "model": model}


__all__ = [
    "AI_DISABLED_MESSAGE",
    "SUGGESTIONS_DISABLED_MESSAGE",
    "NoteGenerationService",
]
