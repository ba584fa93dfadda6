"""
PAN-OS Single Firewall Upgrade Tool.
"""

from clients import OpResponse, PanosXmlClient, cmd_xml
from config import DeviceConfig, UpgradeOptions
from errors import CommandError, TransportError
from log_utils import setup_logging
from models import ErrorKind, Job, JobOutcome, JobStatus, PollPolicy, RunResult, Step, StepOutcome
from poller import JobPoller
from upgrader import UpgradeSequencer, build_upgrade_steps

__all__ = [
    "PanosXmlClient",
    "OpResponse",
    "cmd_xml",
    "DeviceConfig",
    "UpgradeOptions",
    "CommandError",
    "TransportError",
    "setup_logging",
    "ErrorKind",
    "Job",
    "JobOutcome",
    "JobStatus",
    "PollPolicy",
    "RunResult",
    "Step",
    "StepOutcome",
    "JobPoller",
    "UpgradeSequencer",
    "build_upgrade_steps",
]
