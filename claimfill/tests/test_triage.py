import asyncio
import json
from concurrent.futures import Future
import threading
from types import SimpleNamespace
from typing import Any, List

import httpx
import pytest

from claimfill.config import Settings
from claimfill.errors import TriageError
from claimfill.forms.records import AccessibleName, FieldCategory, FieldDescriptor
from claimfill.triage import (
    HttpTriageClient,
    OpenAITriageClient,
    TriageRequest,
    TriageResponse,
    build_triage_client,
    classify_locally,
    parse_classifications,
    triage_fields,
)
from claimfill.triage.models import TriageField
from claimfill.values import KnownValues


def run_async(coro):
    future: Future[Any] = Future()

    def _worker() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            result = loop.run_until_complete(coro)
        except Exception as exc:  # pragma: no cover - propagated via future
            future.set_exception(exc)
        else:
            future.set_result(result)
        finally:
            loop.close()

    thread = threading.Thread(target=_worker, daemon=True)
    thread.start()
    thread.join()
    return future.result()


def _field(field_id: str, label: str, **kwargs) -> FieldDescriptor:
    return FieldDescriptor(
        field_id=field_id,
        selector=f"#{field_id}",
        accessible_name=AccessibleName(label, "label-for"),
        **kwargs,
    )


FIELDS = [
    _field("email", "Email", input_type="email"),
    _field("units", "How many units did you buy?"),
    _field("receipt", "Receipt", input_type="file"),
    _field("agree", "I certify the above is true", input_type="checkbox"),
]

KNOWN = KnownValues.from_packet(
    {
        "userData": {"email": "jane@example.com"},
        "caseAnswers": {"q_units": "2"},
        "caseAnswerMeta": {"q_units": {"question": "How many units did you buy?"}},
    }
)


class StaticClient:
    def __init__(self, response: Any) -> None:
        self.response = response
        self.requests: List[TriageRequest] = []

    async def classify(self, request: TriageRequest) -> TriageResponse:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class SlowClient:
    async def classify(self, request: TriageRequest) -> TriageResponse:
        await asyncio.sleep(5)
        return TriageResponse()


def test_parse_classifications_drops_bad_entries():
    payload = {
        "method": "llm",
        "classifications": [
            "garbage",
            {"fieldId": "nope", "category": "profile"},
            {"fieldId": "email", "category": "weird"},
            {"fieldId": "email", "category": "profile", "suggestedKey": "email", "confidence": 7},
            {"fieldId": "email", "category": "ignore"},
            {"fieldId": "units", "category": "case_answers", "suggestedKey": "q_units", "confidence": "0.4"},
            {"fieldId": "receipt", "category": "profile", "suggestedKey": "favourite_colour"},
        ],
    }

    results = parse_classifications(payload, ["email", "units", "receipt", "agree"])

    assert set(results) == {"email", "units", "receipt"}
    assert results["email"].category == FieldCategory.PROFILE
    assert results["email"].confidence == 1.0
    assert results["email"].method == "llm"
    assert results["units"].category == FieldCategory.CASE_ANSWER
    assert results["units"].suggested_key == "q_units"
    assert results["units"].confidence == pytest.approx(0.4)
    assert results["receipt"].suggested_key is None


def test_parse_classifications_tolerates_non_lists():
    assert parse_classifications({"classifications": "nope"}, ["email"]) == {}
    assert parse_classifications(None, ["email"]) == {}
    assert parse_classifications(TriageResponse(classifications=[]), ["email"]) == {}


def test_classify_locally_routes_by_heuristics():
    by_id = {descriptor.field_id: classify_locally(descriptor, KNOWN) for descriptor in FIELDS}

    assert by_id["email"].category == FieldCategory.PROFILE
    assert by_id["units"].category == FieldCategory.CASE_ANSWER
    assert by_id["units"].suggested_key == "q_units"
    assert by_id["receipt"].category == FieldCategory.FILE_UPLOAD
    assert by_id["receipt"].prompt_for_user == "Please upload: Receipt"
    assert by_id["agree"].category == FieldCategory.USER_QUESTION
    assert all(result.method == "local" for result in by_id.values())

    unanswered = classify_locally(_field("why", "Why did you return it?"))
    assert unanswered.category == FieldCategory.USER_QUESTION
    assert unanswered.prompt_for_user == "Why did you return it?"


def test_empty_collaborator_response_falls_back_per_field():
    client = StaticClient(TriageResponse(classifications=[], method="error"))

    outcome = run_async(triage_fields(client, FIELDS, KNOWN))

    assert len(client.requests) == 1
    assert outcome.method == "local"
    assert outcome.fallback_count == len(FIELDS)
    assert outcome.classifications["receipt"].category == FieldCategory.FILE_UPLOAD


def test_partial_response_only_fills_the_gaps():
    response = TriageResponse(
        method="llm",
        classifications=[{"fieldId": "agree", "category": "user_question"}],
    )

    outcome = run_async(triage_fields(StaticClient(response), FIELDS, KNOWN))

    assert outcome.method == "llm"
    assert outcome.fallback_count == 3
    assert outcome.classifications["agree"].method == "llm"
    assert outcome.classifications["agree"].prompt_for_user == "I certify the above is true"
    assert outcome.classifications["email"].method == "local"


def test_failures_and_timeouts_never_raise():
    failing = run_async(triage_fields(StaticClient(TriageError("down")), FIELDS, KNOWN))
    slow = run_async(triage_fields(SlowClient(), FIELDS, KNOWN, timeout=0.01))
    local = run_async(triage_fields(None, FIELDS, KNOWN))

    for outcome in (failing, slow, local):
        assert outcome.method == "local"
        assert set(outcome.classifications) == {descriptor.field_id for descriptor in FIELDS}


def test_request_shape_lists_available_keys():
    client = StaticClient(TriageResponse())

    run_async(triage_fields(client, FIELDS[:1], KNOWN))

    payload = client.requests[0].model_dump(mode="json")
    assert payload["fields"][0]["fieldId"] == "email"
    assert payload["fields"][0]["type"] == "email"
    assert payload["availableUserDataKeys"] == ["email"]
    assert payload["availableCaseAnswerKeys"] == ["q_units"]
    assert payload["caseAnswerMeta"]["q_units"]["question"] == "How many units did you buy?"


def test_http_client_posts_the_batch():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"classifications": [{"fieldId": "email", "category": "profile", "suggestedKey": "email"}], "method": "llm"},
        )

    async def _call():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = HttpTriageClient("http://triage.test/api/autofill/triage-fields", client=http)
            return await client.classify(TriageRequest(fields=[TriageField(fieldId="email", label="Email")]))

    response = run_async(_call())

    assert seen["url"] == "http://triage.test/api/autofill/triage-fields"
    assert seen["body"]["fields"][0]["label"] == "Email"
    assert response.method == "llm"
    assert response.classifications[0]["suggestedKey"] == "email"


def test_http_client_maps_errors_to_triage_error():
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="maintenance")

    def not_json(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>")

    async def _call(handler):
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = HttpTriageClient("http://triage.test/x", client=http)
            return await client.classify(TriageRequest(fields=[]))

    with pytest.raises(TriageError) as excinfo:
        run_async(_call(server_error))
    assert excinfo.value.data["status"] == 503

    with pytest.raises(TriageError):
        run_async(_call(not_json))


class FakeCompletions:
    def __init__(self, content: str) -> None:
        self.content = content
        self.calls: List[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _openai(content: str):
    completions = FakeCompletions(content)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAITriageClient(model="gpt-4o-mini", client=client), completions


def test_openai_client_parses_fenced_json():
    client, completions = _openai('```json\n{"classifications": [{"fieldId": "email", "category": "profile"}]}\n```')

    response = run_async(client.classify(TriageRequest(fields=[TriageField(fieldId="email")])))

    assert response.method == "llm"
    assert response.classifications[0]["fieldId"] == "email"
    assert completions.calls[0]["response_format"] == {"type": "json_object"}
    assert completions.calls[0]["model"] == "gpt-4o-mini"


def test_openai_client_rejects_invalid_json():
    client, _ = _openai("I think the first field is an email")

    with pytest.raises(TriageError):
        run_async(client.classify(TriageRequest(fields=[])))


def test_build_triage_client_follows_settings():
    assert build_triage_client(Settings(triage_backend="none")) is None
    http = build_triage_client(Settings(triage_backend="http", triage_url="http://triage.test/x"))
    assert isinstance(http, HttpTriageClient)
    assert http.url == "http://triage.test/x"
