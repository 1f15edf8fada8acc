import json

import pytest

from inventory_search.models import PropertyRecord
from inventory_search.normalize import (
    dedupe_strings,
    normalize_document,
    parse_bedroom,
    parse_bool,
    parse_number,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        (15.5, None),
        (2.5, 2.5),
        (2.3, None),
        (0, 0.0),
        ("studio", 0.0),
        (" ST ", 0.0),
        (15, 15.0),
        ("3", 3.0),
        (-1, None),
        (99, None),
        ("abc", None),
        (None, None),
        (True, None),
    ],
)
def test_bedroom_boundaries(raw, expected):
    assert parse_bedroom(raw) == expected


def test_parse_number_handles_thousands_separators_and_junk():
    assert parse_number("1,250,000") == 1250000.0
    assert parse_number(" 450 ") == 450.0
    assert parse_number(True) is None
    assert parse_number("nan") is None
    assert parse_number("inf") is None
    assert parse_number("n/a") is None
    assert parse_number("") is None


def test_parse_bool_vocabulary():
    assert parse_bool("yes") is True
    assert parse_bool("False") is False
    assert parse_bool(1) is True
    assert parse_bool("maybe") is None
    assert parse_bool(None) is None


def test_dedupe_strings_keeps_first_spelling():
    assert dedupe_strings(["Dubai Marina", " dubai marina ", "", None, "JBR"]) == ["Dubai Marina", "JBR"]


def test_scalar_and_array_bedrooms_collapse_to_one_list():
    record = normalize_document({"bedrooms": [2, "2", "studio", 99, 2.3]})
    assert record.bedrooms == [0.0, 2.0]
    assert record.is_studio

    scalar = normalize_document({"bedrooms": "3"})
    assert scalar.bedrooms == [3.0]


def test_communities_fallback_to_scalar_community():
    assert normalize_document({"community": "JBR"}).communities == ["JBR"]
    assert normalize_document({"communities": "Marina"}).communities == ["Marina"]
    # An explicit empty list wins over the scalar key.
    assert normalize_document({"communities": [], "community": "Business Bay"}).communities == []


def test_store_row_fields_and_aliases(fixture_path):
    rows = json.loads(fixture_path.read_text(encoding="utf-8"))["rows"]
    record = normalize_document(rows[0])

    assert record.record_id == "unit-101"
    assert record.sequence_key == 101
    assert record.kind == "listing"
    assert record.property_types == ["Apartment"]
    assert record.price_aed == 1250000.0
    assert record.bathrooms == [3.0]
    assert record.description_raw == "2BR sea view, vacant on transfer"
    assert record.group_jid == "120363@g.us"
    assert record.whatsapp_participant == "971500000001@s.whatsapp.net"
    assert record.agent_phone == "+971500000001"
    assert record.updated_at == "2024-03-01T10:00:00+00:00"


def test_malformed_input_never_raises():
    record = normalize_document({"price_aed": "n/a", "bedrooms": {"x": 1}, "is_off_plan": "perhaps"})
    assert record.price_aed is None
    assert record.bedrooms == []
    assert record.is_off_plan is None

    junk = normalize_document("not a document")
    assert isinstance(junk, PropertyRecord)
    assert junk.record_id == ""
    assert junk.communities == []


def test_normalization_is_idempotent(fixture_path):
    rows = json.loads(fixture_path.read_text(encoding="utf-8"))["rows"]
    for row in rows:
        once = normalize_document(row)
        assert normalize_document(once) == once
        assert normalize_document(once.model_dump()) == once
