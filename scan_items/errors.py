"""Fatal error kinds, one per pipeline stage."""


class ScanItemsError(Exception):
    """Base class for every error that aborts a run."""

    stage = "scan-items"


class ConfigurationError(ScanItemsError):
    stage = "argument parsing"


class SessionInitError(ScanItemsError):
    stage = "telemetry session"


class ClientInitError(ScanItemsError):
    stage = "client construction"


class RequestError(ScanItemsError):
    stage = "scan request"


class DecodeError(ScanItemsError):
    stage = "record decoding"
