"""Transports for the triage collaborator.

The collaborator is advisory: whatever a client returns is re-validated by
``parse_classifications`` before the sweep acts on it, and every transport or
decoding failure surfaces as :class:`TriageError`.
"""
from __future__ import annotations

import inspect
import json
import logging
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx
from openai import AsyncOpenAI
from pydantic import ValidationError

from ..config import DEFAULT_TRIAGE_URL, Settings
from ..errors import TriageError
from .models import TriageRequest, TriageResponse

logger = logging.getLogger(__name__)


class TriageClient(Protocol):
    """Protocol describing the behaviour expected from any triage backend."""

    async def classify(self, request: TriageRequest) -> TriageResponse:
        ...


def _to_response(data: Any) -> TriageResponse:
    if not isinstance(data, Mapping):
        raise TriageError("Triage response was not a JSON object", data={"type": type(data).__name__})
    try:
        return TriageResponse.model_validate(dict(data))
    except ValidationError as exc:
        raise TriageError("Triage response did not match the expected shape", data={"errors": exc.errors()}) from exc


class HttpTriageClient:
    """POST the batch to the triage endpoint of the claims backend."""

    def __init__(
        self,
        url: str = DEFAULT_TRIAGE_URL,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client
        self._headers = {"Content-Type": "application/json", **(headers or {})}

    async def _post(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> httpx.Response:
        response = await client.post(self.url, json=payload, headers=self._headers)
        response.raise_for_status()
        return response

    async def classify(self, request: TriageRequest) -> TriageResponse:
        payload = request.model_dump(mode="json")
        logger.debug("Submitting triage batch", extra={"url": self.url, "fields": len(request.fields)})
        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post(client, payload)
        except httpx.HTTPStatusError as exc:
            raise TriageError(
                f"Triage request failed: {exc.response.status_code}",
                data={"status": exc.response.status_code, "body": exc.response.text[:500]},
            ) from exc
        except httpx.HTTPError as exc:
            raise TriageError(f"Triage request failed: {exc}", data={"url": self.url}) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise TriageError("Triage response was not valid JSON", data={"body": response.text[:500]}) from exc
        return _to_response(data)


_SYSTEM_PROMPT = (
    "You classify the fields of a web form for a claims autofill assistant.\n"
    "For every field return one classification with:\n"
    '  "fieldId": the id you were given,\n'
    '  "category": one of "profile" (personal data such as name, email, phone, address, date of birth),\n'
    '              "case_answer" (claim-specific facts answered by one of availableCaseAnswerKeys),\n'
    '              "user_question" (anything the claimant must answer personally, including attestations),\n'
    '              "file_upload" (document or receipt uploads), "ignore" (captcha, search boxes, honeypots),\n'
    '  "suggestedKey": a key from availableUserDataKeys or availableCaseAnswerKeys, or null,\n'
    '  "promptForUser": a short question to show the claimant when the category is user_question or file_upload,\n'
    '  "confidence": a number between 0 and 1.\n'
    'Respond with JSON only: {"classifications": [...], "method": "llm"}.'
)


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```") and cleaned.endswith("```"):
        cleaned = cleaned.strip("`").strip()
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:].lstrip()
    return cleaned.strip()


class OpenAITriageClient:
    """Classify the batch directly with an OpenAI chat model."""

    def __init__(
        self,
        *,
        model: str,
        client: Any | None = None,
        temperature: float = 0.0,
        system_prompt: str | None = None,
    ) -> None:
        self._client = client if client is not None else AsyncOpenAI()
        self._model = model
        self._temperature = temperature
        self._system_prompt = system_prompt or _SYSTEM_PROMPT

    async def classify(self, request: TriageRequest) -> TriageResponse:
        prompt = json.dumps(request.model_dump(mode="json"), ensure_ascii=False)
        logger.debug("Submitting triage batch to OpenAI", extra={"model": self._model, "fields": len(request.fields)})
        try:
            text = await self._invoke_chat_api(prompt)
        except TriageError:
            raise
        except Exception as exc:
            raise TriageError(f"OpenAI triage call failed: {exc}", data={"model": self._model}) from exc

        try:
            data = json.loads(_strip_fences(text))
        except json.JSONDecodeError as exc:
            logger.warning("Failed to parse triage response as JSON", exc_info=exc, extra={"raw_response": text[:500]})
            raise TriageError("OpenAI triage response was not valid JSON") from exc
        if isinstance(data, Mapping) and "method" not in data:
            data = {**data, "method": "llm"}
        return _to_response(data)

    async def _invoke_chat_api(self, prompt: str) -> str:
        request = {
            "model": self._model,
            "temperature": self._temperature,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": prompt},
            ],
        }
        result = self._client.chat.completions.create(**request)
        response = await result if inspect.isawaitable(result) else result

        message = response.choices[0].message
        content = getattr(message, "content", None)
        if content is None:
            raise TriageError("OpenAI chat response did not include content")
        return content


def build_triage_client(settings: Settings) -> Optional[TriageClient]:
    """Return the client selected by ``settings.triage_backend`` (``None`` for local only)."""

    if settings.triage_backend == "http":
        return HttpTriageClient(settings.triage_url, timeout=settings.triage_timeout_seconds)
    if settings.triage_backend == "openai":
        return OpenAITriageClient(model=settings.openai_model)
    return None


__all__ = [
    "HttpTriageClient",
    "OpenAITriageClient",
    "TriageClient",
    "build_triage_client",
]
