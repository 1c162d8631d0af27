from claimfill.forms.audit import find_duplicate_values, normalize_value
from claimfill.forms.records import AccessibleName, FieldCategory, FieldDescriptor, FillRecord, WriteOp


def _record(field_id: str, label: str, value, key: str = "full_name") -> FillRecord:
    descriptor = FieldDescriptor(field_id=field_id, selector=f"#{field_id}", accessible_name=AccessibleName(label, "label-for"))
    op = WriteOp(field_id=field_id, selector=descriptor.selector, action="set_value", value=str(value))
    return FillRecord(
        field=descriptor,
        key=key,
        value=value,
        confidence=0.9,
        category=FieldCategory.PROFILE,
        provenance="profile",
        write_op=op,
    )


def test_same_name_in_distinct_fields_is_flagged():
    first = _record("name", "Full name", "Jane Doe")
    second = _record("company", "Company", "  JANE   doe ")
    other = _record("city", "City", "Springfield", key="address.city")

    groups = find_duplicate_values([first, second, other])

    assert len(groups) == 1
    assert groups[0].value == "jane doe"
    assert groups[0].records == (first, second)
    assert groups[0].to_dict()["fieldIds"] == ["name", "company"]


def test_boolean_like_values_are_ignored():
    records = [_record("a", "Subscribe", "yes"), _record("b", "Agree", "Yes"), _record("c", "Ok", True)]

    assert find_duplicate_values(records) == []


def test_same_label_is_not_suspicious():
    records = [_record("email", "Email", "jane@example.com"), _record("email-confirm", "email", "jane@example.com")]

    assert find_duplicate_values(records) == []


def test_single_and_empty_values_are_not_grouped():
    assert find_duplicate_values([_record("a", "Name", "Jane")]) == []
    assert find_duplicate_values([_record("a", "Name", ""), _record("b", "Other", "")]) == []


def test_normalize_value():
    assert normalize_value("  A\tB  ") == "a b"
    assert normalize_value(False) == "false"
    assert normalize_value(None) == ""
