"""Structured-output schemas for AI drafted note content.

Each intake section, the SOAP progress note, the risk classifier and the
suggestion engine has one named :class:`SectionSchema`.  The ``parameters``
mapping is sent verbatim to the completion provider as a JSON schema, so
``required`` lists, enumerations and ``additionalProperties`` flags here are
the contract the note rendering UI relies on.
"""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from clinical_ai.exceptions import UnsupportedSectionError


class SectionType(str, enum.Enum):
    PRESENTING = "presenting"
    MSE = "mse"
    SAFETY = "safety"
    TREATMENT = "treatment"
    CURRENT_SYMPTOMS = "current_symptoms"
    HISTORY = "history"
    DIAGNOSIS = "diagnosis"


@dataclass(frozen=True)
class SectionSchema:
    """A named JSON schema plus the instructions that accompany it."""

    name: str
    tool_name: str
    description: str
    instruction: str
    parameters: Mapping[str, Any]

    @property
    def required(self) -> Tuple[str, ...]:
        return tuple(self.parameters.get("required", ()))

    @property
    def allows_additional_properties(self) -> bool:
        return bool(self.parameters.get("additionalProperties", False))


def _string(description: str | None = None, enum_values: List[str] | None = None) -> Dict[str, Any]:
    node: Dict[str, Any] = {"type": "string"}
    if enum_values is not None:
        node["enum"] = list(enum_values)
    if description:
        node["description"] = description
    return node


def _string_list(description: str | None = None) -> Dict[str, Any]:
    node: Dict[str, Any] = {"type": "array", "items": {"type": "string"}}
    if description:
        node["description"] = description
    return node


def _object(properties: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    node: Dict[str, Any] = {"type": "object", "properties": properties}
    node.update(extra)
    return node


# ---------------------------------------------------------------------------
# Shared vocabularies
# ---------------------------------------------------------------------------

AFFECT_RANGE = ["Full", "Restricted", "Blunted", "Flat"]
AFFECT_APPROPRIATENESS = ["Appropriate", "Inappropriate"]
AFFECT_QUALITY = ["Euthymic", "Depressed", "Anxious", "Irritable", "Euphoric", "Angry"]
SUICIDE_RISK_LEVEL = ["Low", "Moderate", "High", "Imminent"]
SYMPTOM_SEVERITY = ["Mild", "Moderate", "Severe"]
DIAGNOSIS_TYPE = ["Principal", "Secondary", "Rule Out", "Provisional"]

RISK_CATEGORIES = [
    "suicidal_ideation",
    "homicidal_ideation",
    "self_harm",
    "substance_abuse",
    "abuse_disclosure",
    "psychosis",
    "manic_symptoms",
]
RISK_SEVERITIES = ["none", "low", "medium", "high", "critical"]


# ---------------------------------------------------------------------------
# Intake assistant sections
# ---------------------------------------------------------------------------

PRESENTING_SCHEMA = SectionSchema(
    name=SectionType.PRESENTING.value,
    tool_name="generate_presenting",
    description="Generate presenting problem content",
    instruction=(
        "Generate a comprehensive presenting problem section including chief complaint, "
        "history of presenting problem, symptom details, and previous treatment attempts. "
        "Use professional clinical language."
    ),
    parameters=_object(
        {
            "chiefComplaint": _string("Brief statement of primary concern"),
            "historyOfPresentingProblem": _string("Detailed narrative"),
            "symptomOnset": _string("When symptoms started"),
            "symptomDuration": _string("How long symptoms have persisted"),
            "precipitatingFactors": _string("Triggering events"),
            "exacerbatingFactors": _string_list("What makes it worse"),
            "alleviatingFactors": _string_list("What helps"),
        },
        required=["chiefComplaint", "historyOfPresentingProblem"],
        additionalProperties=False,
    ),
)

MSE_SCHEMA = SectionSchema(
    name=SectionType.MSE.value,
    tool_name="generate_mse",
    description="Generate Mental Status Exam content",
    instruction=(
        "Generate a comprehensive Mental Status Examination. Include all standard MSE "
        "components with appropriate clinical observations."
    ),
    parameters=_object(
        {
            "appearance": _object(
                {
                    "grooming": _string(enum_values=["Well-groomed", "Disheveled", "Unkempt", "Appropriate"]),
                    "hygiene": _string(enum_values=["Good", "Fair", "Poor"]),
                    "dress": _string(enum_values=["Appropriate", "Inappropriate", "Unusual"]),
                    "physicalCondition": _string(),
                }
            ),
            "behavior": _object(
                {
                    "eyeContact": _string(enum_values=["Good", "Minimal", "Excessive", "Avoidant"]),
                    "motorActivity": _string(
                        enum_values=["Normal", "Restless", "Agitated", "Retarded", "Hyperactive"]
                    ),
                    "cooperation": _string(
                        enum_values=["Cooperative", "Guarded", "Uncooperative", "Resistant"]
                    ),
                    "rapport": _string(enum_values=["Good", "Fair", "Poor", "Difficult to establish"]),
                }
            ),
            "speech": _object(
                {
                    "rate": _string(enum_values=["Normal", "Slow", "Rapid", "Pressured"]),
                    "volume": _string(enum_values=["Normal", "Loud", "Soft", "Mute"]),
                    "fluency": _string(enum_values=["Fluent", "Dysfluent", "Stuttering"]),
                    "articulation": _string(enum_values=["Clear", "Slurred", "Mumbled"]),
                    "spontaneity": _string(enum_values=["Spontaneous", "Prompted", "Minimal"]),
                }
            ),
            "mood": _string(),
            "affect": _object(
                {
                    "range": _string(enum_values=AFFECT_RANGE),
                    "appropriateness": _string(enum_values=AFFECT_APPROPRIATENESS),
                    "mobility": _string(enum_values=["Mobile", "Fixed"]),
                    "quality": _string(enum_values=AFFECT_QUALITY),
                }
            ),
        },
        required=["appearance", "behavior", "speech", "mood", "affect"],
        additionalProperties=False,
    ),
)

SAFETY_SCHEMA = SectionSchema(
    name=SectionType.SAFETY.value,
    tool_name="generate_safety",
    description="Generate safety assessment content",
    instruction="Generate a comprehensive safety assessment. Be conservative and thorough in assessing risks.",
    parameters=_object(
        {
            "suicideRisk": _object(
                {
                    "currentIdeation": {"type": "boolean"},
                    "frequency": _string(enum_values=["Rare", "Occasional", "Frequent", "Constant"]),
                    "intensity": _string(enum_values=SYMPTOM_SEVERITY),
                    "riskLevel": _string(enum_values=SUICIDE_RISK_LEVEL),
                    "plan": {"type": "boolean"},
                    "planDetails": _string(),
                    "intent": {"type": "boolean"},
                    "interventions": _string_list(),
                }
            ),
            "homicideRisk": _object(
                {
                    "currentIdeation": {"type": "boolean"},
                    "riskLevel": _string(),
                    "dutyToWarnNotified": {"type": "boolean"},
                }
            ),
        },
        required=["suicideRisk"],
        additionalProperties=False,
    ),
)

TREATMENT_SCHEMA = SectionSchema(
    name=SectionType.TREATMENT.value,
    tool_name="generate_treatment",
    description="Generate treatment recommendations",
    instruction=(
        "Generate treatment recommendations including frequency, modality, therapeutic "
        "approaches, and initial treatment goals based on assessment data."
    ),
    parameters=_object(
        {
            "recommendedFrequency": _string(
                enum_values=["Weekly", "Biweekly", "Monthly", "As Needed", "Other"]
            ),
            "recommendedModality": _string(
                enum_values=["Individual", "Couples", "Family", "Group", "Combination"]
            ),
            "therapeuticApproach": _string_list("e.g. CBT, DBT, MI"),
            "medicationRecommendation": _object(
                {
                    "recommended": {"type": "boolean"},
                    "referralMade": {"type": "boolean"},
                    "referralTo": _string(),
                }
            ),
            "additionalRecommendations": _string_list(),
            "initialGoals": {
                "type": "array",
                "items": _object(
                    {
                        "goalDescription": _string(),
                        "targetDate": _string(),
                        "measurableOutcome": _string(),
                    }
                ),
            },
        },
        required=["recommendedFrequency", "recommendedModality"],
        additionalProperties=False,
    ),
)


def _symptom(severity_enum: bool = False) -> Dict[str, Any]:
    return _object(
        {
            "present": {"type": "boolean"},
            "severity": _string(enum_values=SYMPTOM_SEVERITY if severity_enum else None),
        }
    )


# Open schema: clinicians record symptoms beyond the five listed here.
CURRENT_SYMPTOMS_SCHEMA = SectionSchema(
    name=SectionType.CURRENT_SYMPTOMS.value,
    tool_name="generate_symptoms",
    description="Generate current symptoms",
    instruction="Generate current symptoms assessment based on clinical presentation.",
    parameters=_object(
        {
            "depression": _symptom(severity_enum=True),
            "anxiety": _symptom(),
            "irritability": _symptom(),
            "insomnia": _symptom(),
            "concentrationDifficulty": _symptom(),
        },
        additionalProperties=True,
    ),
)

HISTORY_SCHEMA = SectionSchema(
    name=SectionType.HISTORY.value,
    tool_name="generate_history",
    description="Generate comprehensive history",
    instruction=(
        "Generate comprehensive history including developmental, family, medical, "
        "substance use, and social history."
    ),
    parameters=_object(
        {
            "developmentalHistory": {"type": "object", "description": "Developmental milestones and history"},
            "familyHistory": {"type": "object", "description": "Family mental health and medical history"},
            "medicalHistory": {"type": "object", "description": "Current and past medical conditions"},
            "substanceUseHistory": {"type": "object", "description": "Substance use patterns"},
            "socialHistory": {"type": "object", "description": "Social and occupational functioning"},
        },
        additionalProperties=False,
    ),
)

DIAGNOSIS_SCHEMA = SectionSchema(
    name=SectionType.DIAGNOSIS.value,
    tool_name="generate_diagnosis",
    description="Generate diagnostic formulation",
    instruction="Generate diagnostic formulation with ICD-10 codes and clinical impression.",
    parameters=_object(
        {
            "diagnoses": {
                "type": "array",
                "items": _object(
                    {
                        "icdCode": _string(),
                        "diagnosis": _string(),
                        "type": _string(enum_values=DIAGNOSIS_TYPE),
                        "specifiers": _string(),
                    }
                ),
            },
            "clinicianImpression": _string(),
            "strengthsAndResources": _string_list(),
        },
        additionalProperties=False,
    ),
)

SECTION_SCHEMAS: Dict[SectionType, SectionSchema] = {
    SectionType.PRESENTING: PRESENTING_SCHEMA,
    SectionType.MSE: MSE_SCHEMA,
    SectionType.SAFETY: SAFETY_SCHEMA,
    SectionType.TREATMENT: TREATMENT_SCHEMA,
    SectionType.CURRENT_SYMPTOMS: CURRENT_SYMPTOMS_SCHEMA,
    SectionType.HISTORY: HISTORY_SCHEMA,
    SectionType.DIAGNOSIS: DIAGNOSIS_SCHEMA,
}


# ---------------------------------------------------------------------------
# SOAP progress note
# ---------------------------------------------------------------------------

PROGRESS_NOTE_SCHEMA = SectionSchema(
    name="progress_note",
    tool_name="create_soap_note",
    description="Create a structured SOAP progress note",
    instruction=(
        "Return a JSON object with subjective, objective, assessment and plan sections. "
        "If information is missing, note it rather than inventing details."
    ),
    parameters=_object(
        {
            "subjective": _object(
                {
                    "presentingConcerns": _string("Client reported concerns for this session"),
                    "moodReport": _string(),
                    "recentEvents": _string(),
                    "symptomsReported": _string_list(),
                    "symptomsImproved": _string_list(),
                    "symptomsWorsened": _string_list(),
                    "symptomsUnchanged": _string_list(),
                    "medicationAdherence": _string(),
                    "medicationSideEffects": {"type": "boolean"},
                    "sideEffectDetails": _string(),
                    "homeworkCompliance": _string(),
                    "homeworkReview": _string(),
                    "lifeStressors": _string(),
                    "copingStrategies": _string(),
                    "functionalImpairment": _object(
                        {
                            "work": _string(),
                            "school": _string(),
                            "relationships": _string(),
                            "selfCare": _string(),
                            "social": _string(),
                        },
                        additionalProperties=False,
                    ),
                },
                required=["presentingConcerns"],
                additionalProperties=False,
            ),
            "objective": _object(
                {
                    "behavioralObservations": _object(
                        {
                            "appearance": _string(),
                            "mood": _string(),
                            "affect": _object(
                                {
                                    "range": _string(enum_values=AFFECT_RANGE),
                                    "appropriateness": _string(enum_values=AFFECT_APPROPRIATENESS),
                                    "quality": _string(enum_values=AFFECT_QUALITY),
                                },
                                additionalProperties=False,
                            ),
                            "behavior": _string(),
                            "speech": _string(),
                            "thoughtProcess": _string(),
                            "attention": _string(),
                            "cooperation": _string(),
                            "insightJudgment": _string(),
                        },
                        additionalProperties=False,
                    ),
                    "riskAssessment": _object(
                        {
                            "suicidalIdeation": _string(),
                            "suicidalDetails": _string(),
                            "homicidalIdeation": _string(),
                            "homicidalDetails": _string(),
                            "selfHarm": _string(),
                            "substanceUse": _string(),
                            "overallRiskLevel": _string(enum_values=SUICIDE_RISK_LEVEL),
                            "interventions": _string(),
                        },
                        additionalProperties=False,
                    ),
                    "symptomsObserved": _string_list(),
                    "progressObserved": _string(),
                },
                additionalProperties=False,
            ),
            "assessment": _object(
                {
                    "progressTowardGoals": _object(
                        {
                            "overallProgress": _string(),
                            "goalProgress": {
                                "type": "array",
                                "items": _object(
                                    {
                                        "goalId": _string(),
                                        "goalDescription": _string(),
                                        "progress": _string(),
                                        "details": _string(),
                                    }
                                ),
                            },
                        },
                        additionalProperties=False,
                    ),
                    "currentDiagnoses": {
                        "type": "array",
                        "items": _object(
                            {
                                "icdCode": _string(),
                                "diagnosis": _string(),
                                "status": _string(),
                            }
                        ),
                    },
                    "clinicalImpression": _string(),
                    "changesToTreatmentPlan": {"type": "boolean"},
                    "changeDetails": _string(),
                    "medicalNecessity": _string(),
                },
                additionalProperties=False,
            ),
            "plan": _object(
                {
                    "interventionsProvided": _string_list(),
                    "interventionDetails": _string(),
                    "therapeuticTechniques": _string_list(),
                    "homework": _object(
                        {"assigned": {"type": "boolean"}, "homeworkDetails": _string()},
                        additionalProperties=False,
                    ),
                    "nextSteps": _string(),
                    "referrals": _object(
                        {
                            "referralMade": {"type": "boolean"},
                            "referralDetails": _string(),
                            "referralTo": _string(),
                            "referralReason": _string(),
                        },
                        additionalProperties=False,
                    ),
                    "additionalPlanning": _string(),
                },
                additionalProperties=False,
            ),
        },
        required=["subjective", "objective", "assessment", "plan"],
        additionalProperties=False,
    ),
)


# ---------------------------------------------------------------------------
# Risk classifier and suggestion engine tools
# ---------------------------------------------------------------------------

RISK_ASSESSMENT_SCHEMA = SectionSchema(
    name="risk_assessment",
    tool_name="assess_clinical_risks",
    description="Identify clinical safety risks present in the note and source text",
    instruction=(
        "You are a clinical risk assessment assistant for behavioral health. Review the "
        "clinical content and identify any safety concerns. Only report risks supported "
        "by the text, rate the overall severity, and explain your reasoning briefly."
    ),
    parameters=_object(
        {
            "risks": {"type": "array", "items": _string(enum_values=RISK_CATEGORIES)},
            "severity": _string(enum_values=RISK_SEVERITIES),
            "rationale": _string("Brief clinical rationale for the assessment"),
        },
        required=["risks", "severity", "rationale"],
        additionalProperties=False,
    ),
)

DIAGNOSIS_SUGGESTION_SCHEMA = SectionSchema(
    name="diagnoses",
    tool_name="suggest_diagnoses",
    description="Return ICD-10 diagnosis suggestions based on DSM-5-TR criteria",
    instruction=(
        "You are a clinical assistant helping with ICD-10 diagnosis suggestions based on "
        "DSM-5-TR criteria. Based on the clinical content provided, suggest 3-5 relevant "
        "ICD-10 diagnoses that align with DSM-5-TR criteria. Consider symptom patterns, "
        "duration, severity, and functional impairment. Provide both the ICD-10 code "
        "(e.g., F41.1) and the full diagnosis name. Provide clinical rationale for each "
        "suggestion."
    ),
    parameters=_object(
        {
            "diagnoses": {
                "type": "array",
                "items": _object(
                    {
                        "code": _string("ICD-10 code (e.g., F41.1, F32.1)"),
                        "description": _string("Full diagnosis description"),
                        "type": _string("Diagnosis type", DIAGNOSIS_TYPE),
                        "specifiers": _string(
                            "Any relevant specifiers (e.g., 'Moderate', 'With anxious distress')"
                        ),
                        "rationale": _string("Clinical rationale for this diagnosis suggestion"),
                        "confidence": _string(enum_values=["high", "medium", "low"]),
                    },
                    required=["code", "description", "type", "rationale", "confidence"],
                    additionalProperties=False,
                ),
            }
        },
        required=["diagnoses"],
        additionalProperties=False,
    ),
)

INTERVENTION_SUGGESTION_SCHEMA = SectionSchema(
    name="interventions",
    tool_name="suggest_interventions",
    description="Return evidence-based intervention suggestions",
    instruction=(
        "You are a clinical assistant helping with evidence-based intervention suggestions. "
        "Based on the clinical content and any suggested diagnoses, recommend 5-7 "
        "therapeutic interventions that are evidence-based and appropriate for the "
        "presentation. Include specific techniques, skills, or approaches."
    ),
    parameters=_object(
        {
            "interventions": {
                "type": "array",
                "items": _object(
                    {
                        "name": _string("Intervention name"),
                        "description": _string("How to apply this intervention"),
                        "evidence_level": _string(enum_values=["strong", "moderate", "emerging"]),
                        "modality": _string("Treatment modality (e.g., CBT, DBT, MI)"),
                    },
                    required=["name", "description", "evidence_level", "modality"],
                    additionalProperties=False,
                ),
            }
        },
        required=["interventions"],
        additionalProperties=False,
    ),
)


def get_section_schema(section_type: str | SectionType) -> SectionSchema:
    """Return the intake schema registered for ``section_type``."""

    try:
        key = SectionType(section_type)
    except ValueError:
        raise UnsupportedSectionError(str(section_type)) from None
    return SECTION_SCHEMAS[key]


SOAP_NOTE_FORMAT = "SOAP"


def resolve_note_schema(note_type: str, note_format: str) -> Optional[SectionSchema]:
    """Return the output schema for a full note, if one is registered.

    SOAP notes of any type are held to :data:`PROGRESS_NOTE_SCHEMA`; other
    formats are shaped by their template sections alone.
    """

    if (note_format or "").upper() == SOAP_NOTE_FORMAT:
        return PROGRESS_NOTE_SCHEMA
    return None


def missing_required(parameters: Mapping[str, Any], content: Any, prefix: str = "") -> List[str]:
    """Return dotted paths of ``required`` keys absent from ``content``.

    Nested objects are only checked when present; their absence is already
    reported by the parent's ``required`` list.
    """

    if not isinstance(content, Mapping):
        return [prefix.rstrip(".") or "<root>"]
    missing = [f"{prefix}{key}" for key in parameters.get("required", ()) if key not in content]
    for key, child in (parameters.get("properties") or {}).items():
        if isinstance(child, Mapping) and child.get("type") == "object" and key in content:
            missing.extend(missing_required(child, content[key], f"{prefix}{key}."))
    return missing


def tool_definition(schema: SectionSchema) -> Dict[str, Any]:
    """Render ``schema`` as an OpenAI-style function tool entry."""

    return {
        "type": "function",
        "function": {
            "name": schema.tool_name,
            "description": schema.description,
            "parameters": copy.deepcopy(dict(schema.parameters)),
        },
    }


def tool_choice(schema: SectionSchema) -> Dict[str, Any]:
    """Force the provider to call exactly the tool declared by ``schema``."""

    return {"type": "function", "function": {"name": schema.tool_name}}


__all__ = [
    "SectionType",
    "SectionSchema",
    "SECTION_SCHEMAS",
    "PROGRESS_NOTE_SCHEMA",
    "RISK_ASSESSMENT_SCHEMA",
    "DIAGNOSIS_SUGGESTION_SCHEMA",
    "INTERVENTION_SUGGESTION_SCHEMA",
    "RISK_CATEGORIES",
    "RISK_SEVERITIES",
    "get_section_schema",
    "resolve_note_schema",
    "missing_required",
    "tool_definition",
    "tool_choice",
]
