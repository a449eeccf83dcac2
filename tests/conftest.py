import boto3
import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from scan_items.telemetry import TelemetrySession

REGION = "us-east-1"
TABLE = "urls"


@pytest.fixture
def aws_credentials(monkeypatch):
    """Static credentials so no real credential lookup happens."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    monkeypatch.setenv("AWS_EC2_METADATA_DISABLED", "true")


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def telemetry(span_exporter):
    session = TelemetrySession(span_exporter, app_name="scan-items-test")
    yield session
    session.shutdown(1.0)


@pytest.fixture
def dynamodb_client():
    return boto3.client(
        "dynamodb",
        region_name=REGION,
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def make_item(item_id, *urls):
    return {"ID": {"S": item_id}, "URL": {"L": [{"S": url} for url in urls]}}


def scan_response(items, last_key=None):
    response = {"Items": items, "Count": len(items), "ScannedCount": len(items)}
    if last_key is not None:
        response["LastEvaluatedKey"] = last_key
    return response
