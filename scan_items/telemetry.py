"""
Telemetry session

Wraps an OpenTelemetry tracer provider that exports spans over OTLP/HTTP to
New Relic. A session is created once per run, hands out transactions (root
spans) and is flushed and shut down at the end of the run.

Environment variables read by TelemetrySession.from_environment:

    NEW_RELIC_LICENSE_KEY                   required, sent as the api-key header
    NEW_RELIC_APP_NAME                      service name when none is given
    OTEL_EXPORTER_OTLP_ENDPOINT             base URL overriding the New Relic collector
    NEW_RELIC_DISTRIBUTED_TRACING_ENABLED   true/false, defaults to true
"""

import logging
import os
import re
import socket
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlparse

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.botocore import BotocoreInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.trace import Span, SpanKind, Status, StatusCode
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from scan_items.errors import SessionInitError

DEFAULT_APP_NAME = "Python Dynamo App"
DEFAULT_OTLP_HOST = "otlp.nr-data.net"
FEDRAMP_OTLP_HOST = "gov-otlp.nr-data.net"
DEFAULT_TIMEOUT = 5.0
OTLP_PORT = 4318
OTLP_TRACES_PATH = "/v1/traces"

LICENSE_KEY_ENV = "NEW_RELIC_LICENSE_KEY"
APP_NAME_ENV = "NEW_RELIC_APP_NAME"
ENDPOINT_ENV = "OTEL_EXPORTER_OTLP_ENDPOINT"
DISTRIBUTED_TRACING_ENV = "NEW_RELIC_DISTRIBUTED_TRACING_ENABLED"

_LICENSE_REGION = re.compile(r"^(.+?)x")
_TRUE_VALUES = {"1", "t", "true"}
_FALSE_VALUES = {"0", "f", "false"}


def collector_host(license_key: str) -> str:
    """Return the OTLP host for the region encoded in a license key prefix."""
    match = _LICENSE_REGION.match(license_key)
    if match:
        region = match.group(1)
        if region.startswith("gov"):
            return FEDRAMP_OTLP_HOST
        return f"otlp.{region}.nr-data.net"
    return DEFAULT_OTLP_HOST


def parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise SessionInitError(f"invalid boolean value for {name}: {value!r}")


class Transaction:
    """A named unit of monitored work backed by a root span."""

    def __init__(self, name: str, span: Span, logger: logging.Logger):
        self.name = name
        self._span = span
        self._logger = logger
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    def add_attribute(self, key: str, value: Any) -> None:
        self._span.set_attribute(key, value)

    def activate(self):
        """Make this transaction the parent of spans started in the block."""
        return trace.use_span(
            self._span,
            end_on_exit=False,
            record_exception=False,
            set_status_on_exception=False,
        )

    def end(self, error: BaseException | None = None) -> None:
        """End the transaction, marking it failed when an error is given. Idempotent."""
        if self._ended:
            return
        if error is not None:
            self._span.record_exception(error)
            self._span.set_status(Status(StatusCode.ERROR, str(error)))
        self._span.end()
        self._ended = True
        self._logger.debug(f"Transaction {self.name} ended")

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.end(exc)
        return False



class TelemetrySession:
    """
    Scoped reporting session.

    Spans are batched in the background by the SDK and flushed on shutdown.
    The tracer provider is owned by the session and never installed as the
    global provider. Used as a context manager the session shuts down on
    every exit path, bounded by ``timeout`` seconds.
    """

    def __init__(
        self,
        exporter: SpanExporter,
        app_name: str = DEFAULT_APP_NAME,
        endpoint: str | None = None,
        info_logger: logging.Logger | None = None,
        distributed_tracing: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.app_name = app_name
        self.endpoint = endpoint
        self.logger = info_logger or logging.getLogger(__name__)
        self.distributed_tracing = distributed_tracing
        self.propagator = TraceContextTextMapPropagator() if distributed_tracing else None
        self.timeout = timeout
        self._instrumentor: BotocoreInstrumentor | None = None
        self._shut_down = False

        try:
            self._provider = TracerProvider(
                resource=Resource.create({SERVICE_NAME: app_name})
            )
            self._provider.add_span_processor(BatchSpanProcessor(exporter))
        except Exception as e:
            raise SessionInitError(f"unable to create tracer provider: {e}") from e

        self.tracer = self._provider.get_tracer("scan_items")
        self.logger.info(
            f"Telemetry session started for {app_name!r} "
            f"(distributed tracing {'enabled' if distributed_tracing else 'disabled'})"
        )

    @classmethod
    def from_environment(
        cls,
        app_name: str | None = None,
        info_logger: logging.Logger | None = None,
        distributed_tracing: bool | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        environ: Mapping[str, str] | None = None,
    ) -> "TelemetrySession":
        """
        Build a session exporting to New Relic, configured from the environment.

        ``timeout`` bounds each export attempt as well as the final flush.
        """
        env = os.environ if environ is None else environ

        license_key = env.get(LICENSE_KEY_ENV, "").strip()
        if not license_key:
            raise SessionInitError(f"license key missing: set {LICENSE_KEY_ENV}")

        if app_name is None:
            app_name = env.get(APP_NAME_ENV) or DEFAULT_APP_NAME

        if distributed_tracing is None:
            raw = env.get(DISTRIBUTED_TRACING_ENV)
            distributed_tracing = True if raw is None else parse_bool(DISTRIBUTED_TRACING_ENV, raw)

        base_url = env.get(ENDPOINT_ENV, "").strip().rstrip("/")
        if not base_url:
            base_url = f"https://{collector_host(license_key)}:{OTLP_PORT}"
        endpoint = f"{base_url}{OTLP_TRACES_PATH}"

        try:
            exporter = OTLPSpanExporter(
                endpoint=endpoint,
                headers={"api-key": license_key},
                timeout=timeout,
            )
        except Exception as e:
            raise SessionInitError(f"unable to create OTLP exporter for {endpoint}: {e}") from e

        return cls(
            exporter,
            app_name=app_name,
            endpoint=endpoint,
            info_logger=info_logger,
            distributed_tracing=distributed_tracing,
            timeout=timeout,
        )

    def wait_for_connection(self, timeout: float) -> bool:
        """
        Wait up to ``timeout`` seconds for the collector to accept a connection.

        Best effort: failures are logged and reported as False.
        """
        if not self.endpoint:
            return True

        url = urlparse(self.endpoint)
        port = url.port or (443 if url.scheme == "https" else 80)
        try:
            with socket.create_connection((url.hostname, port), timeout=timeout):
                pass
        except (OSError, ValueError) as e:
            self.logger.warning(f"Telemetry collector {url.hostname}:{port} not reachable within {timeout}s: {e}")
            return False

        self.logger.info(f"Connected to telemetry collector {url.hostname}:{port}")
        return True

    def instrument_aws_sdk(self) -> None:
        """Trace every botocore API call through this session's provider. Idempotent."""
        if self._instrumentor is not None:
            return
        self._instrumentor = BotocoreInstrumentor()
        self._instrumentor.instrument(tracer_provider=self._provider)
        self.logger.debug("AWS SDK instrumentation enabled")

    def start_transaction(self, name: str) -> Transaction:
        span = self.tracer.start_span(name, kind=SpanKind.INTERNAL)
        self.logger.debug(f"Transaction {name} started")
        return Transaction(name, span, self.logger)

    def shutdown(self, timeout: float | None = None) -> None:
        """Flush buffered spans within ``timeout`` seconds, then stop exporting. Idempotent."""
        if self._shut_down:
            return
        self._shut_down = True
        if timeout is None:
            timeout = self.timeout

        if self._instrumentor is not None:
            self._instrumentor.uninstrument()
            self._instrumentor = None

        if not self._provider.force_flush(timeout_millis=int(timeout * 1000)):
            self.logger.warning(f"Telemetry flush did not complete within {timeout}s")
        self._provider.shutdown()
        self.logger.info("Telemetry session shut down")

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def __enter__(self) -> "TelemetrySession":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.shutdown()
        return False
