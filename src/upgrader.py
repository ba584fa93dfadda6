"""
Upgrade sequencing for a single PAN-OS firewall.

The workflow is a fixed list of steps. Each step has a guard built from the
upgrade options; job-producing steps record a job id that the paired poll
step hands to the JobPoller. The first failing step aborts the run.
"""

import json
import logging
import time
from datetime import datetime
from typing import Dict, List, Optional

from config import UpgradeOptions
from errors import TransportError
from models import (
    ActionKind,
    ErrorKind,
    PollPolicy,
    RunResult,
    StatusResponse,
    Step,
    StepOutcome,
)
from poller import JobPoller

logger = logging.getLogger(__name__)

SETTLE_DELAY_SECONDS = 30


def _job_ok(status: StatusResponse) -> bool:
    return status.result == "OK"


def _job_failed(status: StatusResponse) -> bool:
    return status.result == "FAIL"


CONTENT_DOWNLOAD_POLICY = PollPolicy(5, 10, _job_ok, _job_failed)
CONTENT_INSTALL_POLICY = PollPolicy(10, 30, _job_ok, _job_failed)
BASE_DOWNLOAD_POLICY = PollPolicy(10, 30, _job_ok, _job_failed)
READINESS_POLICY = PollPolicy(50, 30, lambda s: s.result == "yes")


def build_upgrade_steps(options: UpgradeOptions, client) -> List[Step]:
    """
    Build the ordered upgrade step list for a device.

    Args:
        options: Resolved upgrade options
        client: DeviceClient with execute() and install_version()

    Returns:
        Steps in execution order
    """

    def submit(command: str):
        def _call() -> Optional[str]:
            return client.execute(command).job_id

        return _call

    def job_status(job_id: Optional[str]) -> StatusResponse:
        return client.execute(f'show jobs id "{job_id}"').job_status()

    def chassis_ready(_job_id: Optional[str]) -> StatusResponse:
        return client.execute("show chassis-ready").result_status()

    content = lambda: options.upgrade_content  # noqa: E731
    base = lambda: options.download_base_version  # noqa: E731
    always = lambda: True  # noqa: E731

    return [
        Step(
            name="Backup device config",
            kind=ActionKind.FIRE_AND_FORGET,
            guard=lambda: options.backup_config,
            call=lambda: client.execute(f'save config to "{options.backup_filename}"'),
        ),
        Step(
            name="Download latest content",
            kind=ActionKind.SUBMIT,
            guard=content,
            call=submit("request content upgrade download latest"),
        ),
        Step(
            name="Poll content download job",
            kind=ActionKind.POLL,
            guard=content,
            call=job_status,
            depends_on="Download latest content",
            policy=CONTENT_DOWNLOAD_POLICY,
        ),
        Step(
            name="Install latest content",
            kind=ActionKind.SUBMIT,
            guard=content,
            call=submit('request content upgrade install version "latest"'),
        ),
        Step(
            name="Poll content install job",
            kind=ActionKind.POLL,
            guard=content,
            call=job_status,
            depends_on="Install latest content",
            policy=CONTENT_INSTALL_POLICY,
        ),
        Step(
            name="Download base PAN-OS version",
            kind=ActionKind.SUBMIT,
            guard=base,
            call=submit(
                f'request system software download version "{options.base_version}"'
            ),
        ),
        Step(
            name="Poll base version download job",
            kind=ActionKind.POLL,
            guard=base,
            call=job_status,
            depends_on="Download base PAN-OS version",
            policy=BASE_DOWNLOAD_POLICY,
        ),
        Step(
            name="Install target PAN-OS version",
            kind=ActionKind.FIRE_AND_FORGET,
            guard=always,
            call=lambda: client.install_version(options.target_version, restart=True),
        ),
        Step(
            name="Wait for device restart",
            kind=ActionKind.SLEEP,
            guard=always,
            seconds=SETTLE_DELAY_SECONDS,
        ),
        Step(
            name="Check device readiness",
            kind=ActionKind.POLL,
            guard=always,
            call=chassis_ready,
            policy=READINESS_POLICY,
        ),
    ]


class UpgradeSequencer:
    """Runs the upgrade steps for one firewall in order."""

    def __init__(
        self,
        client,
        options: UpgradeOptions,
        steps: Optional[List[Step]] = None,
        poller: Optional[JobPoller] = None,
    ):
        """
        Initialize the sequencer.

        Args:
            client: DeviceClient for the firewall
            options: Resolved upgrade options
            steps: Step list override (defaults to the standard upgrade)
            poller: JobPoller override
        """
        self.client = client
        self.options = options
        self.steps = steps if steps is not None else build_upgrade_steps(options, client)
        self.poller = poller or JobPoller()

        self.outcomes: Dict[str, StepOutcome] = {}
        self.run_start_time: Optional[float] = None
        self.run_end_time: Optional[float] = None

    def plan(self) -> List[str]:
        """Names of the steps whose guards pass, without touching the device."""
        return [step.name for step in self.steps if step.guard()]

    def _prerequisite_met(self, step: Step) -> bool:
        prior = self.outcomes.get(step.depends_on)
        return prior is not None and prior.ran and prior.succeeded

    def _execute(self, step: Step) -> StepOutcome:
        """Run one step's action and record what happened."""
        start = time.time()
        outcome = StepOutcome(name=step.name, ran=True, succeeded=False)

        try:
            if step.kind is ActionKind.FIRE_AND_FORGET:
                step.call()
                outcome.succeeded = True

            elif step.kind is ActionKind.SUBMIT:
                job_id = step.call()
                if job_id:
                    outcome.job_id = job_id
                    outcome.succeeded = True
                    logger.info(f"  {step.name}: job {job_id} enqueued")
                else:
                    outcome.error = ErrorKind.TRANSPORT_ERROR
                    outcome.detail = "No job id in response"

            elif step.kind is ActionKind.POLL:
                job_id = None
                if step.depends_on:
                    job_id = self.outcomes[step.depends_on].job_id
                job = self.poller.poll(job_id, step.call, step.policy, label=step.name)
                outcome.job_id = job_id
                outcome.attempts = job.attempts
                outcome.succeeded = job.succeeded
                outcome.error = job.error
                outcome.detail = job.job.result_detail

            elif step.kind is ActionKind.SLEEP:
                logger.info(f"  Waiting {step.seconds:.0f}s")
                time.sleep(step.seconds)
                outcome.succeeded = True

        except TransportError as e:
            outcome.error = ErrorKind.TRANSPORT_ERROR
            outcome.detail = str(e)

        outcome.duration_seconds = time.time() - start
        return outcome

    def run(self) -> RunResult:
        """
        Execute the upgrade sequence.

        Returns:
            RunResult naming the first aborting step and its ErrorKind, if any
        """
        self.run_start_time = time.time()
        self.outcomes = {}

        logger.info("=" * 70)
        logger.info("PAN-OS Firewall Upgrade")
        logger.info("=" * 70)
        logger.info(f"Target version: {self.options.target_version}")
        logger.info(f"Backup config: {self.options.backup_config}")
        if self.options.backup_config:
            logger.info(f"Backup filename: {self.options.backup_filename}")
        logger.info(f"Upgrade content: {self.options.upgrade_content}")
        logger.info(f"Download base version: {self.options.download_base_version}")
        if self.options.download_base_version:
            logger.info(f"Base version: {self.options.base_version}")
        logger.info(f"Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 70)

        result = RunResult(succeeded=True)

        for index, step in enumerate(self.steps, start=1):
            if not step.guard():
                logger.info(f"[-] Step {index}: {step.name} (skipped)")
                self.outcomes[step.name] = StepOutcome(
                    name=step.name, ran=False, succeeded=False, error=ErrorKind.GUARD_SKIPPED
                )
                continue

            if step.depends_on_prior_success and not self._prerequisite_met(step):
                logger.warning(
                    f"[-] Step {index}: {step.name} (skipped, '{step.depends_on}' did not succeed)"
                )
                self.outcomes[step.name] = StepOutcome(
                    name=step.name, ran=False, succeeded=False, error=ErrorKind.GUARD_SKIPPED
                )
                continue

            logger.info(f"[>] Step {index}: {step.name}")
            outcome = self._execute(step)
            self.outcomes[step.name] = outcome

            if outcome.succeeded:
                logger.info(f"✓ {step.name} completed in {outcome.duration_seconds:.1f}s")
                continue

            if step.tolerate_failure:
                logger.warning(
                    f"{step.name} FAILED ({outcome.error.value}), continuing: {outcome.detail}"
                )
                continue

            logger.error(f"{step.name} FAILED ({outcome.error.value}): {outcome.detail}")
            result = RunResult(succeeded=False, failed_step=step.name, error=outcome.error)
            break

        result.outcomes = list(self.outcomes.values())
        self.run_end_time = time.time()
        self._print_report(result)
        return result

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            mins = int(seconds // 60)
            secs = seconds % 60
            return f"{mins}m {secs:.0f}s"
        else:
            hours = int(seconds // 3600)
            mins = int((seconds % 3600) // 60)
            secs = seconds % 60
            return f"{hours}h {mins}m {secs:.0f}s"

    def _print_report(self, result: RunResult):
        """Log per-step status and timing."""
        total_duration = self.run_end_time - self.run_start_time

        logger.info("")
        logger.info("=" * 70)
        logger.info("UPGRADE REPORT")
        logger.info("=" * 70)
        logger.info(f"{'Step':<35} {'Status':<10} {'Duration':<12} {'Attempts'}")
        logger.info("-" * 70)
        for outcome in result.outcomes:
            duration = (
                self._format_duration(outcome.duration_seconds)
                if outcome.duration_seconds is not None
                else "-"
            )
            attempts = str(outcome.attempts) if outcome.attempts else "-"
            logger.info(f"{outcome.name:<35} {outcome.status:<10} {duration:<12} {attempts}")
        logger.info("-" * 70)
        logger.info(f"Total duration:  {self._format_duration(total_duration)}")
        if result.succeeded:
            logger.info(f"✓ Upgrade to {self.options.target_version} COMPLETED")
        else:
            logger.error(f"Upgrade ABORTED at '{result.failed_step}' ({result.error.value})")
        logger.info("=" * 70)

    def export_report(self, result: RunResult, filename: str) -> None:
        """Export the run result to a JSON file."""
        report = {
            "target_version": self.options.target_version,
            "start_time": datetime.fromtimestamp(self.run_start_time).isoformat(),
            "end_time": datetime.fromtimestamp(self.run_end_time).isoformat(),
            "total_duration_seconds": self.run_end_time - self.run_start_time,
            "succeeded": result.succeeded,
            "failed_step": result.failed_step,
            "error": result.error.value if result.error else None,
            "steps": [
                {
                    "name": o.name,
                    "status": o.status,
                    "error": o.error.value if o.error else None,
                    "job_id": o.job_id,
                    "attempts": o.attempts,
                    "duration_seconds": o.duration_seconds,
                    "detail": o.detail,
                }
                for o in result.outcomes
            ],
        }

        with open(filename, "w") as f:
            json.dump(report, f, indent=2)
        logger.info(f"Detailed report exported to: {filename}")
