"""Safety risk flagging for AI drafted notes.

Two strategies exist.  The keyword scan is deterministic and always
available; the enhanced assessment asks the completion provider to classify
risks through a forced ``assess_clinical_risks`` tool call.  The enhanced path
never fails the surrounding request: any provider problem degrades to the
keyword scan with a fixed rationale.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import structlog

from clinical_ai import prompts
from clinical_ai.completion import CompletionProvider
from clinical_ai.exceptions import CompletionError
from clinical_ai.schemas import (
    RISK_ASSESSMENT_SCHEMA,
    RISK_CATEGORIES,
    RISK_SEVERITIES,
    tool_choice,
    tool_definition,
)

logger = structlog.get_logger(__name__)

AI_UNAVAILABLE_RATIONALE = "Basic keyword-based assessment (AI unavailable)"

# Checked in order; a category is reported once however many phrases match.
RISK_PATTERNS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (
        "suicidal_ideation",
        ("suicidal", "kill myself", "end my life", "want to die", "not worth living"),
    ),
    (
        "homicidal_ideation",
        ("kill someone", "hurt someone", "homicidal", "violent thoughts towards"),
    ),
    ("self_harm", ("cut myself", "self-harm", "self harm", "cutting")),
    ("substance_abuse", ("drinking heavily", "using drugs", "substance abuse", "addiction")),
    ("abuse_disclosure", ("being abused", "abuse at home", "hitting me", "sexual abuse")),
)

KEYWORD_CATEGORIES = tuple(category for category, _ in RISK_PATTERNS)


@dataclass
class RiskAssessment:
    flags: List[str] = field(default_factory=list)
    severity: str = "none"
    rationale: str = ""

    @property
    def enhanced(self) -> bool:
        return False

    def asdict(self) -> Dict[str, Any]:
        return {
            "riskFlags": list(self.flags),
            "riskSeverity": self.severity,
            "riskRationale": self.rationale,
        }


@dataclass
class EnhancedRiskAssessment(RiskAssessment):
    """Assessment produced by the LLM classifier."""

    @property
    def enhanced(self) -> bool:
        return True


@dataclass
class FallbackRiskAssessment(RiskAssessment):
    """Assessment produced by the keyword scan."""


def _combined_text(content: Any, input_text: str) -> str:
    serialized = json.dumps(content, ensure_ascii=False, separators=(",", ":"))
    return f"{serialized} {input_text or ''}".lower()


def assess_risks(content: Any, input_text: str) -> List[str]:
    """Return the keyword risk categories found in ``content`` and ``input_text``."""

    lowered = _combined_text(content, input_text)
    return [
        category
        for category, phrases in RISK_PATTERNS
        if any(phrase in lowered for phrase in phrases)
    ]


def default_severity(flags: List[str]) -> str:
    return "low" if flags else "none"


def keyword_assessment(content: Any, input_text: str, rationale: str = "") -> FallbackRiskAssessment:
    flags = assess_risks(content, input_text)
    return FallbackRiskAssessment(flags=flags, severity=default_severity(flags), rationale=rationale)


def assess_risks_enhanced(
    provider: CompletionProvider, content: Any, input_text: str
) -> RiskAssessment:
    """Classify risks with the completion provider, degrading to the keyword scan."""

    try:
        result = provider.complete_tool(
            prompts.build_risk_messages(content, input_text),
            [tool_definition(RISK_ASSESSMENT_SCHEMA)],
            tool_choice(RISK_ASSESSMENT_SCHEMA),
            max_tokens=1000,
            temperature=0.1,
        )
        return _parse_enhanced(result.content)
    except (CompletionError, ValueError) as exc:
        logger.warning("risk_assessment_degraded", provider=provider.name, error=str(exc))
        return keyword_assessment(content, input_text, AI_UNAVAILABLE_RATIONALE)


def _parse_enhanced(arguments: Dict[str, Any]) -> EnhancedRiskAssessment:
    risks = arguments.get("risks") or []
    severity = arguments.get("severity")
    rationale = arguments.get("rationale")
    if not isinstance(risks, list) or any(r not in RISK_CATEGORIES for r in risks):
        raise ValueError(f"Unexpected risk categories: {risks!r}")
    if severity not in RISK_SEVERITIES:
        raise ValueError(f"Unexpected risk severity: {severity!r}")
    if not isinstance(rationale, str):
        raise ValueError("Risk rationale missing")
    flags: List[str] = []
    for risk in risks:
        if risk not in flags:
            flags.append(risk)
    return EnhancedRiskAssessment(flags=flags, severity=severity, rationale=rationale)


def run_risk_assessment(
    settings: Any, provider: CompletionProvider | None, content: Any, input_text: str
) -> RiskAssessment:
    """Pick the strategy from ``settings.risk_assessment_enabled``."""

    if getattr(settings, "risk_assessment_enabled", False) and provider is not None:
        return assess_risks_enhanced(provider, content, input_text)
    return keyword_assessment(content, input_text)


__all__ = [
    "AI_UNAVAILABLE_RATIONALE",
    "RISK_PATTERNS",
    "KEYWORD_CATEGORIES",
    "RiskAssessment",
    "EnhancedRiskAssessment",
    "FallbackRiskAssessment",
    "assess_risks",
    "assess_risks_enhanced",
    "keyword_assessment",
    "run_risk_assessment",
]
