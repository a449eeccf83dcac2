"""
Record decoding

Converts the attribute-value maps returned by a DynamoDB Scan into Record
values. Each item is mapped field by field: ``ID`` must be a string and
``URL`` a list (or string set) of strings. Attributes other than these two
are ignored.
"""

import logging
from dataclasses import dataclass
from typing import Any

from boto3.dynamodb.types import TypeDeserializer

from scan_items.errors import DecodeError

logger = logging.getLogger(__name__)

_deserializer = TypeDeserializer()


@dataclass(frozen=True)
class Record:
    """One decoded table item."""

    id: str
    url: tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"{{{self.id} [{' '.join(self.url)}]}}"


def _deserialize(value: Any, index: int, field: str) -> Any:
    if not isinstance(value, dict) or len(value) != 1:
        raise DecodeError(f"item {index}: {field} is not an attribute value: {value!r}")
    try:
        return _deserializer.deserialize(value)
    except (TypeError, ValueError, KeyError) as e:
        raise DecodeError(f"item {index}: cannot deserialize {field}: {e}") from e


def _decode_id(item: dict[str, Any], index: int) -> str:
    if "ID" not in item:
        raise DecodeError(f"item {index}: missing 'ID' field")
    value = _deserialize(item["ID"], index, "ID")
    if not isinstance(value, str):
        raise DecodeError(
            f"item {index}: 'ID' must be a string, got {type(value).__name__}"
        )
    return value


def _decode_url(item: dict[str, Any], index: int) -> tuple[str, ...]:
    raw = item.get("URL")
    if raw is None:
        return ()

    # String sets keep the order they were sent in
    if isinstance(raw, dict) and "SS" in raw:
        values = raw["SS"]
    else:
        values = _deserialize(raw, index, "URL")
        if values is None:
            return ()
        if not isinstance(values, list):
            raise DecodeError(
                f"item {index}: 'URL' must be a list of strings, got {type(values).__name__}"
            )

    for position, value in enumerate(values):
        if not isinstance(value, str):
            raise DecodeError(
                f"item {index}: 'URL'[{position}] must be a string, got {type(value).__name__}"
            )
    return tuple(values)


def decode_record(item: dict[str, Any], index: int = 0) -> Record:
    """Decode a single attribute-value map into a Record."""
    if not isinstance(item, dict):
        raise DecodeError(f"item {index}: expected a map, got {type(item).__name__}")
    return Record(id=_decode_id(item, index), url=_decode_url(item, index))


def decode_records(items: list[dict[str, Any]]) -> list[Record]:
    """
    Decode every item of a scan response.

    Either all items decode or DecodeError is raised and nothing is returned.
    """
    records = [decode_record(item, index) for index, item in enumerate(items)]
    logger.debug(f"Decoded {len(records)} records")
    return records


def log_records(records: list[Record]) -> None:
    """Log each record on its own line, in the order given."""
    for record in records:
        logger.info(f"Record : {record}")
