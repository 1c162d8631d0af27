import asyncio
from concurrent.futures import Future
import threading
from typing import Any, List, Sequence

from claimfill.autofill import AutofillEngine
from claimfill.browser.snapshot import PageSnapshot
from claimfill.browser.writers import SoupPageWriter
from claimfill.config import Settings
from claimfill.forms.descriptors import parse_html
from claimfill.forms.records import FieldCategory, PendingReason, Tier, WriteOp
from claimfill.triage.models import TriageRequest, TriageResponse
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


CLAIM_FORM = """
<form>
  <label for="email">Email</label><input id="email" type="email" autocomplete="email" required>
  <label for="addr1">Street Address</label><input id="addr1" name="addr1">
  <label for="addr-extra">Apt, Unit, Suite</label><input id="addr-extra">
  <label for="company">Company Name</label><input id="company" required>
  <label for="full">Full name</label><input id="full">
  <label for="units">How many units did you buy?</label><input id="units" type="number">
  <label for="dob">Date of birth</label><input id="dob" type="date">
  <label for="receipt">Upload receipt</label><input id="receipt" type="file">
  <label for="why">Why are you filing this claim?</label><textarea id="why"></textarea>
  <label for="phone">Phone</label><input id="phone" type="tel">
</form>
"""

KNOWN = KnownValues.from_packet(
    {
        "userData": {
            "email": "jane@example.com",
            "fullName": "Jane Doe",
            "dateOfBirth": "2999-01-01",
            "address": {"street": "1 Main St", "unit": "Apt 4"},
        },
        "caseAnswers": {"q_units": "2"},
        "caseAnswerMeta": {"q_units": {"question": "How many units did you buy?"}},
    }
)


def _settings(**overrides) -> Settings:
    overrides.setdefault("triage_backend", "none")
    return Settings(**overrides)


def _sweep(html: str = CLAIM_FORM, known: KnownValues = KNOWN, engine: AutofillEngine | None = None):
    engine = engine or AutofillEngine(settings=_settings())
    document = parse_html(html)
    writer = SoupPageWriter(document)
    context, result = run_async(engine.run_sweep(document, writer, known))
    return engine, document, writer, context, result


class StaticClient:
    def __init__(self, response: TriageResponse) -> None:
        self.response = response
        self.requests: List[TriageRequest] = []

    async def classify(self, request: TriageRequest) -> TriageResponse:
        self.requests.append(request)
        return self.response


class RecordingWriter:
    def __init__(self, outcome: bool = True) -> None:
        self.outcome = outcome
        self.batches: List[List[WriteOp]] = []

    async def apply(self, ops: Sequence[WriteOp]) -> List[bool]:
        self.batches.append(list(ops))
        return [self.outcome] * len(ops)


def test_claim_form_end_to_end():
    _, document, _, _, result = _sweep()

    filled = {record.field.field_id: record for record in result.filled}
    pending = {item.field.field_id: item.reason for item in result.pending}

    assert set(filled) == {"email", "addr1", "addr-extra", "full", "units"}
    assert pending == {
        "company": PendingReason.NO_MATCH,
        "dob": PendingReason.VALIDATION_FAILED,
        "phone": PendingReason.NO_VALUE,
    }
    assert [prompt.field.field_id for prompt in result.user_questions] == ["why"]
    assert [prompt.prompt for prompt in result.file_uploads] == ["Please upload: Upload receipt"]
    assert result.triage_method == "local"
    assert result.duplicates == []

    assert document.select_one("#email")["value"] == "jane@example.com"
    assert document.select_one("#addr-extra")["value"] == "Apt 4"
    assert document.select_one("#units")["value"] == "2"
    assert not document.select_one("#dob").has_attr("value")


def test_email_and_unit_tiers():
    _, _, _, _, result = _sweep()
    filled = {record.field.field_id: record for record in result.filled}

    email = filled["email"]
    assert (email.key, email.tier, email.confidence) == ("email", Tier.DETERMINISTIC, 1.0)
    unit = filled["addr-extra"]
    assert (unit.key, unit.tier, unit.confidence) == ("address.unit", Tier.LITERAL_LABEL, 0.9)
    assert filled["addr1"].key == "address.street"


def test_case_answers_are_routed_and_low_confidence_flagged():
    _, _, _, _, result = _sweep()
    units = next(record for record in result.filled if record.field.field_id == "units")

    assert units.category == FieldCategory.CASE_ANSWER
    assert units.provenance == "case_answers"
    assert units.key == "q_units"
    assert units.tier is None
    assert [record.field.field_id for record in result.low_confidence] == ["units"]


def test_counts_and_serialisation():
    _, _, _, context, result = _sweep()

    assert context.status() == {
        "filled": 5,
        "pending": 3,
        "lowConfidence": 1,
        "userQuestions": 1,
        "fileUploads": 1,
        "duplicates": 0,
    }
    payload = result.to_dict()
    assert payload["triageMethod"] == "local"
    assert payload["records"]["pending"][0]["reason"] == "no_match"


def test_clear_reverts_every_write_and_is_idempotent():
    engine, document, _, context, _ = _sweep()

    run_async(engine.clear(context))

    assert document.select_one("#email")["value"] == ""
    assert document.select_one("#addr-extra")["value"] == ""
    assert context.filled == []
    assert context.pending == []
    assert context.status()["userQuestions"] == 0

    run_async(engine.clear(context))
    assert context.filled == []


def test_accept_and_reject_low_confidence_records():
    _, document, _, context, result = _sweep()
    units = result.low_confidence[0]

    context.accept(units)
    assert context.result.low_confidence == []
    assert units in context.filled

    email = next(record for record in context.filled if record.key == "email")
    assert run_async(context.reject(email)) is True
    assert document.select_one("#email")["value"] == ""
    assert email not in context.filled
    assert run_async(context.reject(email)) is False


def test_duplicate_values_are_flagged_but_kept():
    html = """
    <label for="full">Full name</label><input id="full">
    <label for="first">First name</label><input id="first">
    <label><input type="checkbox" id="reg"> Did you register the product?</label>
    <label><input type="checkbox" id="kept"> Do you have the original box?</label>
    """
    known = KnownValues.from_packet(
        {
            "userData": {"fullName": "Jane Doe", "firstName": "Jane Doe"},
            "caseAnswers": {"registered": "yes", "box": "yes"},
            "caseAnswerMeta": {
                "registered": {"question": "Did you register the product?"},
                "box": {"question": "Do you have the original box?"},
            },
        }
    )

    _, document, _, context, result = _sweep(html, known)

    assert len(result.filled) == 4
    assert len(result.duplicates) == 1
    group = result.duplicates[0]
    assert group.value == "jane doe"
    assert {record.field.field_id for record in group.records} == {"full", "first"}
    assert all(context.is_suspicious(record) for record in group.records)
    checkboxes = [record for record in result.filled if record.field.is_checkbox]
    assert len(checkboxes) == 2
    assert not any(context.is_suspicious(record) for record in checkboxes)
    assert document.select_one("#first")["value"] == "Jane Doe"
    assert document.select_one("#reg").has_attr("checked")


def test_collaborator_classifications_are_used():
    response = TriageResponse(
        method="llm",
        classifications=[
            {"fieldId": "company", "category": "ignore"},
            {"fieldId": "why", "category": "user_question", "promptForUser": "Tell us what happened"},
        ],
    )
    client = StaticClient(response)
    engine = AutofillEngine(settings=_settings(), triage_client=client)

    _, _, _, _, result = _sweep(engine=engine)

    assert len(client.requests) == 1
    assert result.triage_method == "llm"
    assert "company" not in {item.field.field_id for item in result.pending}
    assert [prompt.prompt for prompt in result.user_questions] == ["Tell us what happened"]


def test_rate_limit_turns_extra_fills_into_pending():
    engine = AutofillEngine(settings=_settings(max_fills_per_sweep=2))

    _, _, _, _, result = _sweep(engine=engine)

    assert [record.field.field_id for record in result.filled] == ["email", "addr1"]
    limited = [item.field.field_id for item in result.pending if item.reason == PendingReason.RATE_LIMITED]
    assert limited == ["addr-extra", "full", "units", "dob"]


def test_writer_failures_become_pending():
    engine = AutofillEngine(settings=_settings())
    writer = RecordingWriter(outcome=False)

    context, result = run_async(engine.run_sweep(CLAIM_FORM, writer, KNOWN))

    assert len(writer.batches) == 1
    assert result.filled == []
    failed = [item for item in result.pending if item.reason == PendingReason.WRITE_FAILED]
    assert len(failed) == 5
    assert context.filled == []


def test_snapshot_sweep_uses_layout_positions():
    snapshot = PageSnapshot(
        html='<label for="zip">Where to ship</label><input id="zip">',
        boxes={"0": 0.0},
        viewport_height=800,
    )
    known = KnownValues.from_packet({"userData": {"address": {"zip": "94103"}}})
    writer = RecordingWriter()

    context, result = run_async(AutofillEngine(settings=_settings()).run_sweep(snapshot, writer, known))

    assert context.descriptors[0].position is not None
    assert [record.key for record in result.filled] == ["address.zip"]
    assert result.filled[0].tier == Tier.PATTERN
    assert writer.batches[0][0].value == "94103"


def test_empty_page_is_a_no_op():
    writer = RecordingWriter()

    _, result = run_async(AutofillEngine(settings=_settings()).run_sweep("<p>No form here</p>", writer, KNOWN))

    assert result.counts()["filled"] == 0
    assert writer.batches == []


def test_labels_sharing_one_word_with_a_profile_key_stay_empty():
    html = """
    <label for="acct">Account number</label><input id="acct" required>
    <label for="ip">IP address</label><input id="ip" required>
    <label for="user">Username</label><input id="user" required>
    <label for="tel">Phone number (include country code)</label><input id="tel" type="tel" autocomplete="tel">
    """
    known = KnownValues.from_packet(
        {
            "userData": {
                "email": "jane@example.com",
                "lastName": "Doe",
                "phone": "+1 555 010 9999",
                "address": {"unit": "Apt 4", "country": "United States"},
            }
        }
    )

    _, document, _, _, result = _sweep(html, known)

    assert [(record.field.field_id, record.key, record.tier) for record in result.filled] == [
        ("tel", "phone", Tier.DETERMINISTIC),
    ]
    assert {item.field.field_id: item.reason for item in result.pending} == {
        "acct": PendingReason.NO_MATCH,
        "ip": PendingReason.NO_MATCH,
        "user": PendingReason.NO_MATCH,
    }
    assert not document.select_one("#ip").has_attr("value")
