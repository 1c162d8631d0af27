from typing import List

import pytest

from claimfill.forms.matcher import TieredMatcher, build_matcher, is_question_field, literal_label_key
from claimfill.forms.records import AccessibleName, FieldDescriptor, Tier
from claimfill.forms.similarity import SimilarityHit


def _field(label: str = "", **kwargs) -> FieldDescriptor:
    kwargs.setdefault("field_id", "f")
    kwargs.setdefault("selector", "#f")
    return FieldDescriptor(accessible_name=AccessibleName(label, "label-for" if label else "none"), **kwargs)


class EmptyIndex:
    method = "none"

    def query(self, text: str, *, limit: int = 5) -> List[SimilarityHit]:
        return []


@pytest.fixture(scope="module")
def matcher() -> TieredMatcher:
    return TieredMatcher()


def test_autocomplete_is_deterministic(matcher):
    result = matcher.match(_field("Email", input_type="email", autocomplete="email"))

    assert result is not None
    assert result.key == "email"
    assert result.tier == Tier.DETERMINISTIC
    assert result.confidence == 1.0


def test_type_only_match_requires_a_unique_key(matcher):
    email = matcher.match(_field("Contact", input_type="email"))
    phone = matcher.match(_field("Contact", input_type="tel"))

    assert (email.key, email.tier, email.confidence) == ("email", Tier.DETERMINISTIC, 0.95)
    assert (phone.key, phone.tier, phone.confidence) == ("phone", Tier.DETERMINISTIC, 0.95)


def test_question_fields_short_circuit(matcher):
    assert matcher.match(_field("Number of attendees", input_type="tel")) is None
    assert matcher.match(_field("Did you purchase more than one unit?")) is None


def test_pattern_tier_uses_composite_score(matcher):
    result = matcher.match(_field(element_id="zip"))

    assert result.key == "address.zip"
    assert result.tier == Tier.PATTERN
    # 0.7 * 1.0 + 0.2 * pattern bonus 0.2 + 0.1 * proximity 1.0
    assert result.confidence == pytest.approx(0.84)


def test_apt_unit_suite_label_is_literal(matcher):
    result = matcher.match(_field("Apt, Unit, Suite", element_id="addr-extra", name="addr_extra"))

    assert (result.key, result.tier, result.confidence) == ("address.unit", Tier.LITERAL_LABEL, 0.9)


def test_address_line_two_never_becomes_street(matcher):
    line_two = matcher.match(_field("Address Line 2"))
    street = matcher.match(_field("Street Address"))
    autocompleted = matcher.match(_field("Street address line 2", autocomplete="address-line2"))

    assert line_two.key == "address.unit"
    assert street.key == "address.street"
    assert (autocompleted.key, autocompleted.tier) == ("address.unit", Tier.DETERMINISTIC)


def test_negative_signals_suppress_company_name(matcher):
    company = _field("Company Name", element_id="company")

    assert matcher.match(company) is None
    assert matcher.match(company, suggested_key="full_name") is None


def test_numeric_range_hint_suppresses_phone(matcher):
    assert matcher.match(_field("Phone", element_id="phone", max="10")) is None


def test_fuzzy_tier_matches_reworded_labels(matcher):
    result = matcher.match(_field("E-mail address"))
    # "e mail address" is a literal label, so misspell it to reach the fuzzy tier
    misspelled = matcher.match(_field("Emial address"))
    wrapped = matcher.match(_field("Primary e-mail address"))

    assert result.key == "email"
    assert misspelled is not None
    assert misspelled.key == "email"
    assert misspelled.tier == Tier.FUZZY
    assert 0.6 <= misspelled.confidence <= 1.0
    assert (wrapped.key, wrapped.tier) == ("email", Tier.KEYWORD)


@pytest.mark.parametrize(
    "label",
    [
        "IP address",
        "Username",
        "Account number",
        "Middle name",
        "Order number",
        "Website address",
        "Billing street address",
        "Transaction ID",
    ],
)
def test_labels_sharing_one_word_are_not_matched(matcher, label):
    assert matcher.match(_field(label)) is None


def test_deterministic_tier_wins_over_similar_labels(matcher):
    phone = matcher.match(_field("Phone number (include country code)", input_type="tel", autocomplete="tel"))
    # "First name" would be accepted literally; the autocomplete token decides
    email = matcher.match(_field("First name", input_type="email", autocomplete="email"))

    assert (phone.key, phone.tier, phone.confidence) == ("phone", Tier.DETERMINISTIC, 1.0)
    assert (email.key, email.tier) == ("email", Tier.DETERMINISTIC)


def test_keyword_tier_without_similarity_indexes():
    matcher = TieredMatcher(fuzzy_index=EmptyIndex(), ranked_index=EmptyIndex())

    result = matcher.match(_field("Home town"))

    assert (result.key, result.tier, result.confidence) == ("address.city", Tier.KEYWORD, 0.55)


def test_advisory_suggestion_is_last_resort(matcher):
    advised = matcher.match(_field("Reference code"), suggested_key="serial_number")
    unknown = matcher.match(_field("Reference code"), suggested_key="nickname")
    overridden = matcher.match(_field("Email", input_type="email", autocomplete="email"), suggested_key="phone")

    assert (advised.key, advised.tier, advised.confidence) == ("serial_number", Tier.ADVISORY, 0.5)
    assert unknown is None
    assert overridden.key == "email"


def test_explain_traces_each_decision(matcher):
    trace = matcher.explain(_field("Reference code"), suggested_key="serial_number")

    assert trace[-1]["outcome"] == "accepted"
    assert trace[-1]["tier"] == "T4"
    assert trace[-1]["key"] == "serial_number"

    suppressed = matcher.explain(_field("Company Name", element_id="company"))
    assert any(step["outcome"] == "suppressed" for step in suppressed)
    assert suppressed[-1]["outcome"] == "rejected"


def test_is_question_field():
    assert is_question_field("How many items did you buy?")
    assert is_question_field("Please describe the defect")
    assert not is_question_field("First name")
    assert not is_question_field("Phone number")
    assert not is_question_field(None)


def test_literal_label_key():
    assert literal_label_key("Zip / Postal Code") == "address.zip"
    assert literal_label_key("E-mail") == "email"
    assert literal_label_key("Apartment") == "address.unit"
    assert literal_label_key("Favourite colour") is None


def test_build_matcher_accepts_custom_weights():
    matcher = build_matcher(weights=(0.6, 0.3, 0.1))

    assert matcher.scorer.weights.text == 0.6
    with pytest.raises(ValueError):
        build_matcher(weights=(0.6, 0.6, 0.1))
