"""Console entry point for the PAN-OS firewall upgrader CLI."""

from __future__ import annotations

import argparse
import logging
from typing import List

from clients import PanosXmlClient
from config import DEFAULT_BASE_VERSION, DeviceConfig, UpgradeOptions
from log_utils import setup_logging
from models import ErrorKind
from upgrader import UpgradeSequencer

logger = logging.getLogger(__name__)

EXIT_CODES = {
    ErrorKind.TRANSPORT_ERROR: 3,
    ErrorKind.JOB_REPORTED_FAILURE: 4,
    ErrorKind.POLL_TIMEOUT: 5,
}


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Upgrade a single PAN-OS firewall to a target version",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  # Maintenance release upgrade\n"
            "  panos-upgrade --host fw1.example.com --target-version 9.0.3-h3\n\n"
            "  # Major upgrade: update content, stage the base image first\n"
            "  panos-upgrade --host fw1.example.com --upgrade-content \\\n"
            "      --download-base-version --base-version 9.0.0 --target-version 9.0.3-h3\n"
        ),
    )

    device = parser.add_argument_group("device")
    device.add_argument("--host", required=True, help="Firewall management address")
    device.add_argument("--username", help="Admin user (env PANOS_USERNAME, default admin)")
    device.add_argument("--password", help="Admin password (env PANOS_PASSWORD)")
    device.add_argument("--api-key", help="API key instead of a password (env PANOS_API_KEY)")
    device.add_argument(
        "--verify-ssl", action="store_true", help="Verify the management certificate"
    )
    device.add_argument("--request-timeout", type=int, default=60, metavar="SECONDS")
    device.add_argument(
        "--http-retries",
        type=int,
        default=0,
        metavar="N",
        help="Retries for transient HTTP errors (default: 0)",
    )

    upgrade = parser.add_argument_group("upgrade")
    upgrade.add_argument(
        "--target-version", required=True, help="Target PAN-OS version, e.g. 9.0.3-h3"
    )
    upgrade.add_argument(
        "--backup-config",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Save the running config before upgrading (default: on)",
    )
    upgrade.add_argument(
        "--backup-filename",
        help="Backup filename (default: panos-backup-<date>.xml)",
    )
    upgrade.add_argument(
        "--upgrade-content",
        action="store_true",
        help="Download and install the latest content first",
    )
    upgrade.add_argument(
        "--download-base-version",
        action="store_true",
        help="Download a base version before the target (major upgrades)",
    )
    upgrade.add_argument(
        "--base-version",
        default=DEFAULT_BASE_VERSION,
        help=f"Base version to download (default: {DEFAULT_BASE_VERSION})",
    )

    output = parser.add_argument_group("logging and output")
    output.add_argument(
        "--dry-run", action="store_true", help="Show the steps that would run and exit"
    )
    output.add_argument("--report-file", help="Write a JSON run report to this file")
    output.add_argument("--verbose", action="store_true")
    return parser


def main(argv: List[str] | None = None) -> int:
    """CLI main for console_scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(args=argv)

    setup_logging(verbose=args.verbose, log_file="panos-upgrade.log")

    try:
        options = UpgradeOptions.from_args(args)
    except ValueError as e:
        logger.error(str(e))
        return 1

    if args.dry_run:
        sequencer = UpgradeSequencer(client=None, options=options)
        logger.info(f"DRY RUN: upgrade of {args.host} to {options.target_version}")
        for index, name in enumerate(sequencer.plan(), start=1):
            logger.info(f"DRY RUN: Would run {index}. {name}")
        return 0

    device = DeviceConfig.from_args(args)
    try:
        device.validate()
    except ValueError as e:
        logger.error(str(e))
        return 1

    client = PanosXmlClient(
        host=device.host,
        username=device.username,
        password=device.password,
        api_key=device.api_key,
        verify_ssl=device.verify_ssl,
        timeout_s=device.timeout_s,
        max_retries=device.max_retries,
    )
    sequencer = UpgradeSequencer(client=client, options=options)
    result = sequencer.run()

    if args.report_file:
        sequencer.export_report(result, args.report_file)

    if result.succeeded:
        return 0
    return EXIT_CODES.get(result.error, 1)
