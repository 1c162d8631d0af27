import pytest

from claimfill.forms.normalization import normalize, normalize_for_display, normalize_label_key, split_identifier, tokenize


def test_normalize_splits_identifier_conventions():
    assert normalize("firstName") == "first name"
    assert normalize("first_name") == "first name"
    assert normalize("first-name") == "first name"
    assert split_identifier("HTMLEmailField") == "HTML Email Field"


def test_normalize_expands_synonyms_and_drops_stop_words():
    assert normalize("DOB") == "date birth"
    assert normalize("Zip Code") == "postal code"
    assert normalize("E-mail Address") == "email address"
    assert normalize("Please enter your phone") == "phone"


def test_normalize_strips_diacritics():
    assert normalize("Café Name") == "cafe name"


def test_normalize_handles_empty_input():
    assert normalize(None) == ""
    assert normalize("   ") == ""
    assert tokenize("") == []


@pytest.mark.parametrize(
    "text",
    [
        "Date of Birth (MM/DD/YYYY)",
        "zip",
        "ZIP / Postal code",
        "Apt, Unit, Suite",
        "tel",
        "E-mail",
        "Purchase amt.",
        "fname",
        "Número de teléfono",
        "streetAddressLine2",
    ],
)
def test_normalize_is_idempotent(text):
    once = normalize(text)
    assert normalize(once) == once


def test_normalize_for_display_only_tidies_separators():
    assert normalize_for_display("First_Name--Here") == "first name here"
    assert normalize_for_display("  Apt,   Unit ") == "apt, unit"
    assert normalize_for_display(None) == ""


def test_normalize_label_key_drops_punctuation():
    assert normalize_label_key("Apt, Unit, Suite") == "apt unit suite"
    assert normalize_label_key("Zip / Postal Code:") == "zip postal code"
