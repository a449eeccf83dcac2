"""Scan a DynamoDB table, log its records and trace the call."""

from scan_items.errors import (
    ClientInitError,
    ConfigurationError,
    DecodeError,
    RequestError,
    ScanItemsError,
    SessionInitError,
)
from scan_items.records import Record, decode_records

__version__ = "0.1.0"

__all__ = [
    "ClientInitError",
    "ConfigurationError",
    "DecodeError",
    "Record",
    "RequestError",
    "ScanItemsError",
    "SessionInitError",
    "decode_records",
]
