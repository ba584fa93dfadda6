"""
Logging utilities for the PAN-OS firewall upgrader.
"""

import logging
import sys


def setup_logging(
    verbose: bool = False, log_file: str = "panos-upgrade.log"
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        verbose: Enable verbose (DEBUG) logging
        log_file: Path to log file

    Returns:
        Logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file),
        ],
    )
    # urllib3 logs every connection at DEBUG, which drowns the step log
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logging.getLogger(__name__)
