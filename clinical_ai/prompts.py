"""
Prompt templates for the clinical note AI agents.

These functions construct the system/user message pairs sent to the
completion providers.  The expected output shape is enforced separately by
the schemas in :mod:`clinical_ai.schemas`; the prompts only describe the
clinical task.  Deployments may append extra instructions per category (and
per note type) through ``prompt_templates.json`` or ``.yaml`` placed next to
this module.
"""

from typing import Any, Dict, List, Mapping, Optional
import json
import os
from functools import lru_cache

import yaml

from clinical_ai.schemas import RISK_ASSESSMENT_SCHEMA, SectionSchema


@lru_cache()
def _load_custom_templates() -> Dict[str, Any]:
    """Load custom prompt templates from a JSON or YAML file if present."""
    base = os.path.dirname(__file__)
    for name in ("prompt_templates.json", "prompt_templates.yaml", "prompt_templates.yml"):
        path = os.path.join(base, name)
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                if name.endswith("json"):
                    return json.load(f)
                return yaml.safe_load(f) or {}
    return {}


def _get_custom_instruction(category: str, note_type: Optional[str] = None) -> str:
    """Return additional instructions for ``category``.

    ``default`` instructions come first, followed by any ``note_type``
    override, so the base prompt is always preserved.
    """

    templates = _load_custom_templates()
    parts = []
    entry = templates.get("default", {}).get(category)
    if isinstance(entry, str):
        parts.append(entry)
    if note_type:
        override = templates.get("note_type", {}).get(note_type, {}).get(category)
        if isinstance(override, str):
            parts.append(override)
    return " ".join(parts)


def _with_extra(instructions: str, category: str, note_type: Optional[str] = None) -> str:
    extra = _get_custom_instruction(category, note_type)
    return f"{instructions} {extra}" if extra else instructions


CLINICAL_NOTE_INSTRUCTIONS = """CRITICAL INSTRUCTIONS:
1. Use professional, objective clinical language
2. Distinguish between observations and interpretations
3. Use appropriate terminology (e.g., "anxious" vs "anxiety disorder")
4. Flag any safety concerns clearly
5. Maintain clinical accuracy and avoid over-pathologizing
6. Return a JSON object with keys matching the template sections"""


def build_clinical_note_messages(
    *,
    note_type: str,
    note_format: str,
    client_name: str,
    client_age: Optional[int],
    template_structure: Mapping[str, Any],
    ai_prompts: Any,
    session_transcript: Optional[str] = None,
    free_text_input: Optional[str] = None,
    output_schema: Optional[SectionSchema] = None,
) -> List[Dict[str, str]]:
    """Build the prompt pair for a full clinical note.

    The transcript wording is used when a transcript is supplied, the free
    text wording otherwise.  When ``output_schema`` is given its JSON schema,
    ``required`` lists included, is appended to the system prompt.
    """

    sections = [
        {"key": s.get("key"), "label": s.get("label")}
        for s in (template_structure or {}).get("sections", [])
        if isinstance(s, Mapping)
    ]
    age = client_age if client_age is not None else "Unknown"
    system = (
        "You are a clinical documentation assistant for mental health professionals. \n"
        "Your role is to help generate accurate, professional clinical notes following "
        "HIPAA compliance and clinical best practices.\n\n"
        "Client Context:\n"
        f"- Name: {client_name}\n"
        f"- Age: {age}\n\n"
        f"Note Type: {note_type}\n"
        f"Note Format: {note_format}\n\n"
        f"{CLINICAL_NOTE_INSTRUCTIONS}\n\n"
        "Template Structure:\n"
        f"{json.dumps(sections, indent=2)}\n\n"
        "Section Guidelines:\n"
        f"{json.dumps(ai_prompts, indent=2)}"
    )
    if output_schema is not None:
        system += (
            f"\n\n{output_schema.instruction}\n"
            "Output Schema (every \"required\" key must be present):\n"
            f"{json.dumps(dict(output_schema.parameters), indent=2)}"
        )
    system = _with_extra(system, "clinical_note", note_type)
    if session_transcript:
        user = (
            "Based on the following session transcript, generate a clinical note:\n\n"
            f"{session_transcript}"
        )
    else:
        user = (
            "Based on the following clinical information, generate a complete note:\n\n"
            f"{free_text_input or ''}"
        )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def build_section_messages(
    schema: SectionSchema,
    client_context: str,
    context: str,
    existing_data: Any = None,
) -> List[Dict[str, str]]:
    """Build the prompt pair for one intake assessment section."""

    system = (
        f"You are a clinical assistant helping generate intake assessment content. {client_context}\n\n"
        f"{schema.instruction}"
    )
    system = _with_extra(system, "section")
    user = (
        f"Context: {context}\n\n"
        f"Existing Data: {json.dumps(existing_data or {})}\n\n"
        f"Generate appropriate clinical content for this {schema.name} section."
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def build_risk_messages(content: Any, input_text: str) -> List[Dict[str, str]]:
    """Build the prompt pair for the tool-calling risk classifier."""

    system = _with_extra(RISK_ASSESSMENT_SCHEMA.instruction, "risk")
    user = (
        "Source text:\n"
        f"{input_text or ''}\n\n"
        "Generated note content:\n"
        f"{json.dumps(content, indent=2)}\n\n"
        "Assess the clinical risks present."
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def build_suggestion_messages(
    schemas: List[SectionSchema], content: str, client_context: str = ""
) -> List[Dict[str, str]]:
    """Build the prompt pair for diagnosis and/or intervention suggestions."""

    parts = [client_context] if client_context else []
    parts.extend(schema.instruction for schema in schemas)
    system = _with_extra("\n\n".join(parts), "suggestion")
    user = f"Clinical Content:\n{content}"
    for schema in schemas:
        if schema.name == "diagnoses":
            user += "\n\nSuggest appropriate ICD-10 diagnoses."
        else:
            user += "\n\nSuggest evidence-based therapeutic interventions."
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


__all__ = [
    "build_clinical_note_messages",
    "build_section_messages",
    "build_risk_messages",
    "build_suggestion_messages",
]
