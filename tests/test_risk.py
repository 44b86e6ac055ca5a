import requests

from clinical_ai.completion import GatewayProvider
from clinical_ai.risk import (
    AI_UNAVAILABLE_RATIONALE,
    KEYWORD_CATEGORIES,
    EnhancedRiskAssessment,
    FallbackRiskAssessment,
    assess_risks,
    assess_risks_enhanced,
    run_risk_assessment,
)
from clinical_ai.store import AISettings

from conftest import FakeResponse, tool_completion


def _provider():
    return GatewayProvider('gateway-test', 'https://gateway.test/v1/chat/completions')


def test_keyword_scan_is_case_insensitive():
    assert assess_risks({}, "Client said: I WANT TO DIE") == ["suicidal_ideation"]


def test_keyword_scan_reads_generated_content():
    content = {"subjective": {"presentingConcerns": "Reports drinking heavily on weekends"}}
    assert assess_risks(content, "") == ["substance_abuse"]


def test_keyword_scan_is_deterministic_and_ordered():
    text = "He keeps hitting me. I have been cutting and I feel suicidal."
    first = assess_risks({}, text)
    assert first == assess_risks({}, text)
    assert first == ["suicidal_ideation", "self_harm", "abuse_disclosure"]
    assert set(first) <= set(KEYWORD_CATEGORIES)


def test_keyword_scan_never_reports_model_only_categories():
    flags = assess_risks({}, "hearing voices and racing thoughts, manic for days")
    assert "psychosis" not in flags
    assert "manic_symptoms" not in flags


def test_disabled_assessment_uses_keywords_without_rationale():
    settings = AISettings(enabled=True, risk_assessment_enabled=False)
    result = run_risk_assessment(settings, None, {}, "not worth living")
    assert isinstance(result, FallbackRiskAssessment)
    assert result.asdict() == {
        "riskFlags": ["suicidal_ideation"],
        "riskSeverity": "low",
        "riskRationale": "",
    }


def test_enhanced_assessment_parses_tool_call(fake_completion):
    fake_completion.queue(
        tool_completion(
            (
                "assess_clinical_risks",
                {"risks": ["psychosis", "psychosis"], "severity": "medium", "rationale": "Reports voices."},
            )
        )
    )
    result = assess_risks_enhanced(_provider(), {"note": "x"}, "hearing voices")
    assert isinstance(result, EnhancedRiskAssessment)
    assert result.enhanced
    assert result.flags == ["psychosis"]
    assert result.severity == "medium"
    body = fake_completion.calls[0]["json"]
    assert body["tool_choice"] == {"type": "function", "function": {"name": "assess_clinical_risks"}}
    assert body["temperature"] == 0.1


def test_enhanced_assessment_falls_back_on_provider_error(fake_completion):
    fake_completion.queue(FakeResponse(status_code=503, payload=None, text="unavailable", reason="Service Unavailable"))
    result = assess_risks_enhanced(_provider(), {}, "I want to die")
    assert isinstance(result, FallbackRiskAssessment)
    assert result.flags == ["suicidal_ideation"]
    assert result.severity == "low"
    assert result.rationale == AI_UNAVAILABLE_RATIONALE


def test_enhanced_assessment_falls_back_on_network_error(fake_completion):
    fake_completion.queue(requests.ConnectionError("boom"))
    result = assess_risks_enhanced(_provider(), {}, "a quiet session")
    assert result.flags == []
    assert result.severity == "none"
    assert result.rationale == AI_UNAVAILABLE_RATIONALE


def test_enhanced_assessment_rejects_unknown_vocabulary(fake_completion):
    fake_completion.queue(
        tool_completion(("assess_clinical_risks", {"risks": ["boredom"], "severity": "low", "rationale": "?"}))
    )
    result = assess_risks_enhanced(_provider(), {}, "")
    assert isinstance(result, FallbackRiskAssessment)
    assert result.rationale == AI_UNAVAILABLE_RATIONALE
