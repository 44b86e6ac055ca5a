"""
HTTP clients for the chat completion providers used to draft note content.

Two interchangeable providers are supported and selected per request from
the stored AI settings:

1. ``openai``: the OpenAI chat completion endpoint.  Sends
   ``max_completion_tokens`` and never a ``temperature`` (the reasoning
   models reject it).
2. anything else: the AI gateway.  Sends ``temperature`` and never a token
   limit.

Responses are requested either as a JSON object (``response_format``) or as a
single forced tool call.  A non-2xx answer raises
:class:`CompletionProviderError`; a body that is not the structured output we
asked for raises :class:`MalformedResponseError`.  Nothing is retried.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import requests
import structlog

from clinical_ai.config import AppConfig
from clinical_ai.exceptions import (
    CompletionProviderError,
    MalformedResponseError,
    ProviderNotConfiguredError,
)

logger = structlog.get_logger(__name__)

Message = Dict[str, str]


@dataclass
class CompletionResult:
    """Parsed structured output plus the metadata the review gate needs."""

    content: Dict[str, Any]
    finish_reason: Optional[str]
    model: str
    tool_name: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


class CompletionProvider:
    """Base class for chat completion backends.

    Subclasses only describe how their request body differs; transport and
    response parsing live here.
    """

    name = "base"
    default_model = ""

    def __init__(
        self,
        api_key: str,
        url: str,
        *,
        model: Optional[str] = None,
        timeout: int = 60,
    ) -> None:
        if not api_key:
            raise ProviderNotConfiguredError(f"{self.display_name} API key not configured")
        self._api_key = api_key
        self._url = url
        self.model = model or self.default_model
        self._timeout = timeout

    @property
    def display_name(self) -> str:
        return self.name

    def tuning_parameters(self, max_tokens: int, temperature: float) -> Dict[str, Any]:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def complete_json(
        self,
        messages: List[Message],
        *,
        max_tokens: int = 4000,
        temperature: float = 0.3,
    ) -> CompletionResult:
        """Request a JSON object response and return it parsed."""

        body: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "response_format": {"type": "json_object"},
        }
        body.update(self.tuning_parameters(max_tokens, temperature))
        payload = self._post(body)
        choice = _first_choice(payload)
        message = choice.get("message") or {}
        content = message.get("content")
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError("AI response did not include message content")
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(f"Failed to parse AI response as JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise MalformedResponseError("AI response JSON is not an object")
        return CompletionResult(
            content=parsed,
            finish_reason=choice.get("finish_reason"),
            model=payload.get("model") or self.model,
            raw=payload,
        )

    def complete_tool(
        self,
        messages: List[Message],
        tools: List[Dict[str, Any]],
        tool_choice: Any,
        *,
        max_tokens: int = 4000,
        temperature: float = 0.3,
    ) -> CompletionResult:
        """Request a forced tool call and return the first call's arguments."""

        calls = self.complete_tools(
            messages, tools, tool_choice, max_tokens=max_tokens, temperature=temperature
        )
        name, arguments, choice, payload = calls[0]
        return CompletionResult(
            content=arguments,
            finish_reason=choice.get("finish_reason"),
            model=payload.get("model") or self.model,
            tool_name=name,
            raw=payload,
        )

    def complete_tools(
        self,
        messages: List[Message],
        tools: List[Dict[str, Any]],
        tool_choice: Any,
        *,
        max_tokens: int = 4000,
        temperature: float = 0.3,
        require_call: bool = True,
    ) -> List[tuple]:
        """Return ``(name, arguments, choice, payload)`` for every tool call made.

        With ``tool_choice="auto"`` the model may answer without calling any
        tool; pass ``require_call=False`` to get an empty list in that case.
        """

        body: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "tools": tools,
            "tool_choice": tool_choice,
        }
        body.update(self.tuning_parameters(max_tokens, temperature))
        payload = self._post(body)
        choice = _first_choice(payload)
        tool_calls = (choice.get("message") or {}).get("tool_calls") or []
        if not tool_calls and require_call:
            raise MalformedResponseError("No tool call in AI response")
        results = []
        for call in tool_calls:
            function = call.get("function") or {}
            raw_arguments = function.get("arguments")
            try:
                arguments = (
                    raw_arguments if isinstance(raw_arguments, dict) else json.loads(raw_arguments or "")
                )
            except (TypeError, json.JSONDecodeError) as exc:
                raise MalformedResponseError(f"Failed to parse tool call arguments: {exc}") from exc
            if not isinstance(arguments, dict):
                raise MalformedResponseError("Tool call arguments are not a JSON object")
            results.append((function.get("name"), arguments, choice, payload))
        return results

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _post(self, body: Mapping[str, Any]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = requests.post(self._url, headers=headers, json=body, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.error("completion_request_failed", provider=self.name, error=str(exc))
            raise CompletionProviderError(f"AI request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            logger.error(
                "completion_provider_error",
                provider=self.name,
                status=response.status_code,
                body=response.text,
            )
            raise CompletionProviderError(
                f"AI generation failed: {response.status_code} {response.reason or ''}".strip(),
                status_code=response.status_code,
                body=response.text,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Failed to parse AI response as JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise MalformedResponseError("AI response body is not a JSON object")
        return payload


class OpenAIProvider(CompletionProvider):
    name = "openai"
    default_model = "gpt-5-2025-08-07"

    @property
    def display_name(self) -> str:
        return "OpenAI"

    def tuning_parameters(self, max_tokens: int, temperature: float) -> Dict[str, Any]:
        return {"max_completion_tokens": max_tokens}


class GatewayProvider(CompletionProvider):
    name = "lovable_ai"
    default_model = "google/gemini-2.5-flash"

    @property
    def display_name(self) -> str:
        return "Lovable AI"

    def tuning_parameters(self, max_tokens: int, temperature: float) -> Dict[str, Any]:
        return {"temperature": temperature}


def _first_choice(payload: Mapping[str, Any]) -> Dict[str, Any]:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise MalformedResponseError("AI response did not include any choices")
    return choices[0]


def get_provider(settings: Any, config: AppConfig) -> CompletionProvider:
    """Return the provider selected by ``settings.provider``.

    ``settings`` is any object exposing ``provider`` and ``model``
    attributes (normally :class:`clinical_ai.store.AISettings`).
    """

    model = getattr(settings, "model", None) or None
    if getattr(settings, "provider", None) == "openai":
        return OpenAIProvider(
            config.openai_api_key or "",
            config.openai_url,
            model=model,
            timeout=config.request_timeout,
        )
    return GatewayProvider(
        config.gateway_api_key or "",
        config.gateway_url,
        model=model,
        timeout=config.request_timeout,
    )


__all__ = [
    "CompletionResult",
    "CompletionProvider",
    "OpenAIProvider",
    "GatewayProvider",
    "get_provider",
]
