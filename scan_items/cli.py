"""
Scan every item of a DynamoDB table and log it, tracing the call.

Usage:
    scan-items -table <name> -region <region>

The telemetry license key is read from NEW_RELIC_LICENSE_KEY; AWS credentials
come from the standard AWS credential chain.
"""

import argparse
import logging
import sys

from scan_items.errors import ConfigurationError, ScanItemsError, SessionInitError
from scan_items.records import Record, decode_records, log_records
from scan_items.storage import new_client, scan_table
from scan_items.telemetry import DEFAULT_TIMEOUT, TelemetrySession

logger = logging.getLogger(__name__)

TRANSACTION_NAME = "dynamoScan"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scan-items",
        description="List every item of a DynamoDB table.",
    )
    parser.add_argument(
        "-table",
        "--table",
        default="",
        help="The name of the DynamoDB table to list items from",
    )
    parser.add_argument(
        "-region",
        "--region",
        default="",
        help="The region of your AWS project",
    )
    parser.add_argument(
        "--app-name",
        default=None,
        help="Service name reported to the telemetry backend",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Seconds to wait for the telemetry connection and final flush",
    )
    parser.add_argument(
        "--no-distributed-tracing",
        dest="distributed_tracing",
        action="store_false",
        default=None,
        help="Do not propagate trace context on outbound requests",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments, printing usage when table or region is missing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.table:
        parser.print_help(sys.stderr)
        raise ConfigurationError("invalid parameters, table name required")
    if not args.region:
        parser.print_help(sys.stderr)
        raise ConfigurationError("invalid parameters, region name required")
    if args.timeout <= 0:
        parser.print_help(sys.stderr)
        raise ConfigurationError(f"invalid parameters, timeout must be positive, got {args.timeout}")
    return args


def run(args: argparse.Namespace, telemetry: TelemetrySession) -> list[Record]:
    """Scan, decode and log the table. Raises ScanItemsError on any failure."""
    # Best effort, the run continues when the collector is unreachable
    telemetry.wait_for_connection(args.timeout)

    client = new_client(args.region, telemetry)

    with telemetry.start_transaction(TRANSACTION_NAME) as transaction:
        transaction.add_attribute("table", args.table)
        items = scan_table(client, args.table, transaction)

    records = decode_records(items)
    log_records(records)
    return records


def main(argv: list[str] | None = None) -> None:
    """Main execution function."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
    )

    try:
        args = parse_arguments(argv)
    except ConfigurationError as e:
        logger.critical(f"{e.stage} failed: {e}")
        sys.exit(1)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        telemetry = TelemetrySession.from_environment(
            app_name=args.app_name,
            info_logger=logging.getLogger("scan_items.telemetry"),
            distributed_tracing=args.distributed_tracing,
            timeout=args.timeout,
        )
    except SessionInitError as e:
        print(e)
        sys.exit(1)

    # Shutdown is the last action before exit, also on failure
    with telemetry:
        try:
            run(args, telemetry)
        except ScanItemsError as e:
            logger.critical(f"{e.stage} failed: {e}")
            sys.exit(1)


if __name__ == "__main__":
    main()
