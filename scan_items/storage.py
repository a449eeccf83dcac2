"""
DynamoDB client construction, instrumentation and the table scan.
"""

import logging
from contextlib import nullcontext
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from scan_items.errors import ClientInitError, RequestError
from scan_items.telemetry import TelemetrySession, Transaction

logger = logging.getLogger(__name__)


class TraceContextInjector:
    """
    Adds W3C trace context headers to outbound requests.

    Runs when botocore signs a request, while the instrumentation's span for
    the call is the current span.
    """

    def __init__(self, propagator):
        self.propagator = propagator

    def inject(self, request, **kwargs):
        carrier: dict[str, str] = {}
        self.propagator.inject(carrier)
        # Requests are re-signed on every attempt
        for key, value in carrier.items():
            del request.headers[key]
            request.headers[key] = value


def instrument_client(client: Any, telemetry: TelemetrySession) -> None:
    """
    Trace the client's calls through the telemetry session.

    Spans come from the OpenTelemetry botocore instrumentation and are parented
    to the transaction active when the call is made.
    """
    telemetry.instrument_aws_sdk()
    if telemetry.propagator is None:
        return

    service = client.meta.service_model.service_id.hyphenize()
    client.meta.events.register(
        f"before-sign.{service}",
        TraceContextInjector(telemetry.propagator).inject,
        unique_id="scan-items-inject-trace-context",
    )


def new_client(region: str, telemetry: TelemetrySession | None = None) -> Any:
    """
    Create a DynamoDB client for ``region`` using the default credential chain.

    When a telemetry session is given the client is instrumented with it.
    """
    try:
        session = boto3.session.Session(region_name=region)
        credentials = session.get_credentials()
        client = session.client("dynamodb")
    except (BotoCoreError, ValueError) as e:
        raise ClientInitError(f"unable to load SDK config, {e}") from e

    if credentials is None:
        raise ClientInitError("unable to load SDK config, no AWS credentials found")

    if telemetry is not None:
        instrument_client(client, telemetry)

    logger.debug(f"Created DynamoDB client for region {region}")
    return client


def scan_table(
    client: Any, table_name: str, transaction: Transaction | None = None
) -> list[dict[str, Any]]:
    """
    Issue a single Scan against ``table_name`` and return the raw items.

    The request is attributed to ``transaction`` when one is given. Only the
    first page of results is read.
    """
    activation = transaction.activate() if transaction is not None else nullcontext()
    try:
        with activation:
            response = client.scan(TableName=table_name)
    except (ClientError, BotoCoreError) as e:
        raise RequestError(f"Query API call failed: {e}") from e

    items = response.get("Items", [])
    if response.get("LastEvaluatedKey"):
        logger.warning(
            f"Scan of {table_name} returned a partial result ({len(items)} items); "
            "later pages are not read"
        )
    return items
