"""
Data models for the PAN-OS firewall upgrader.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional


class ErrorKind(Enum):
    """Why a step did not succeed."""

    TRANSPORT_ERROR = "transport_error"
    JOB_REPORTED_FAILURE = "job_reported_failure"
    POLL_TIMEOUT = "poll_timeout"
    GUARD_SKIPPED = "guard_skipped"


class JobStatus(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class ActionKind(Enum):
    """What a step does when its guard passes."""

    FIRE_AND_FORGET = "fire_and_forget"
    SUBMIT = "submit"  # returns a job id for a later POLL step
    POLL = "poll"
    SLEEP = "sleep"


@dataclass
class StatusResponse:
    """Result field of a status query, plus whatever detail the device gave."""

    result: str
    detail: str = ""


@dataclass
class Job:
    """A device job being tracked by the poller."""

    id: str
    last_status: JobStatus = JobStatus.PENDING
    result_detail: str = ""

    def mark(self, status: JobStatus, detail: str = "") -> None:
        """Move the job out of PENDING. Terminal states are final."""
        if self.last_status is not JobStatus.PENDING:
            raise ValueError(
                f"Job {self.id} already {self.last_status.value}, cannot become {status.value}"
            )
        if status is JobStatus.PENDING:
            raise ValueError("A job can only transition to SUCCESS or FAILED")
        self.last_status = status
        self.result_detail = detail


def _never(status: StatusResponse) -> bool:
    return False


@dataclass(frozen=True)
class PollPolicy:
    """Attempt budget and predicates for one poll step."""

    max_attempts: int
    delay: float
    success_predicate: Callable[[StatusResponse], bool]
    failure_predicate: Callable[[StatusResponse], bool] = _never

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must be >= 0, got {self.delay}")


@dataclass
class JobOutcome:
    """Terminal result of polling a job."""

    job: Job
    attempts: int
    error: Optional[ErrorKind] = None

    @property
    def succeeded(self) -> bool:
        return self.job.last_status is JobStatus.SUCCESS


@dataclass
class Step:
    """A named unit of work in the upgrade sequence."""

    name: str
    kind: ActionKind
    guard: Callable[[], bool]
    # FIRE_AND_FORGET: () -> None, SUBMIT: () -> job id,
    # POLL: job id (or None when self-polling) -> StatusResponse
    call: Optional[Callable] = None
    depends_on: Optional[str] = None
    policy: Optional[PollPolicy] = None
    seconds: float = 0.0
    tolerate_failure: bool = False

    @property
    def depends_on_prior_success(self) -> bool:
        return self.depends_on is not None


@dataclass
class StepOutcome:
    """Recorded result of one evaluated step."""

    name: str
    ran: bool
    succeeded: bool
    error: Optional[ErrorKind] = None
    job_id: Optional[str] = None
    detail: str = ""
    attempts: int = 0
    duration_seconds: Optional[float] = None

    @property
    def status(self) -> str:
        if not self.ran:
            return "skipped"
        return "success" if self.succeeded else "failed"


@dataclass
class RunResult:
    """Result of a whole upgrade run."""

    succeeded: bool
    failed_step: Optional[str] = None
    error: Optional[ErrorKind] = None
    outcomes: List[StepOutcome] = field(default_factory=list)
