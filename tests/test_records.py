import logging

import pytest

from scan_items.errors import DecodeError
from scan_items.records import Record, decode_record, decode_records, log_records
from tests.conftest import make_item


def test_decode_records_preserves_every_item():
    items = [make_item(f"id{i}", f"http://a/{i}", f"http://b/{i}") for i in range(5)]

    records = decode_records(items)

    assert records == [
        Record(id=f"id{i}", url=(f"http://a/{i}", f"http://b/{i}")) for i in range(5)
    ]


def test_decode_records_empty_response():
    assert decode_records([]) == []


def test_string_set_keeps_wire_order():
    item = {"ID": {"S": "id1"}, "URL": {"SS": ["http://z", "http://a", "http://m"]}}

    assert decode_record(item).url == ("http://z", "http://a", "http://m")


@pytest.mark.parametrize(
    "item",
    [
        {"ID": {"S": "id1"}},
        {"ID": {"S": "id1"}, "URL": {"NULL": True}},
        {"ID": {"S": "id1"}, "URL": {"L": []}},
    ],
)
def test_missing_or_empty_url_decodes_to_empty(item):
    assert decode_record(item) == Record(id="id1", url=())


def test_extra_attributes_are_ignored():
    item = make_item("id1", "http://a")
    item["Owner"] = {"S": "someone"}
    item["Hits"] = {"N": "3"}

    assert decode_record(item) == Record(id="id1", url=("http://a",))


def test_missing_id_is_rejected():
    with pytest.raises(DecodeError, match="missing 'ID'"):
        decode_record({"URL": {"L": [{"S": "http://a"}]}})


def test_numeric_id_is_rejected():
    with pytest.raises(DecodeError, match="'ID' must be a string"):
        decode_record({"ID": {"N": "1"}, "URL": {"L": []}})


def test_non_string_url_element_is_rejected():
    item = {"ID": {"S": "id1"}, "URL": {"L": [{"S": "http://a"}, {"N": "7"}]}}

    with pytest.raises(DecodeError, match=r"'URL'\[1\] must be a string"):
        decode_record(item)


def test_scalar_url_is_rejected():
    with pytest.raises(DecodeError, match="'URL' must be a list"):
        decode_record({"ID": {"S": "id1"}, "URL": {"S": "http://a"}})


def test_malformed_attribute_value_is_rejected():
    with pytest.raises(DecodeError, match="not an attribute value"):
        decode_record({"ID": "id1"})


def test_decode_error_names_the_failing_item():
    items = [make_item("id1", "http://a"), {"URL": {"L": []}}]

    with pytest.raises(DecodeError, match="item 1"):
        decode_records(items)


def test_record_str():
    assert str(Record(id="id1", url=("http://a", "http://b"))) == "{id1 [http://a http://b]}"


def test_log_records_one_line_per_record_in_order(caplog):
    caplog.set_level(logging.INFO, logger="scan_items.records")
    records = [Record(id="b", url=("http://b",)), Record(id="a", url=())]

    log_records(records)

    assert [r.getMessage() for r in caplog.records] == [
        "Record : {b [http://b]}",
        "Record : {a []}",
    ]
