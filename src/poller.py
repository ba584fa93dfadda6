"""
Job polling for asynchronous PAN-OS operations.

A submitted command returns a job id; the poller queries the job status at a
constant interval until the policy's success predicate holds, its failure
predicate holds, or the attempt budget runs out.
"""

import logging
import time
from typing import Callable, Optional

from errors import TransportError
from models import ErrorKind, Job, JobOutcome, JobStatus, PollPolicy, StatusResponse

logger = logging.getLogger(__name__)

StatusQuery = Callable[[Optional[str]], StatusResponse]


class JobPoller:
    """Polls a single job until it reaches a terminal state."""

    def poll(
        self,
        job_id: Optional[str],
        status_query: StatusQuery,
        policy: PollPolicy,
        label: str = "",
    ) -> JobOutcome:
        """
        Poll a job until success, reported failure or exhaustion.

        A status query that raises TransportError still consumes an attempt;
        the query itself is never retried within the attempt.

        Args:
            job_id: Job id from the submission response, or None for a
                query that polls device state directly
            status_query: Callable returning the current StatusResponse
            policy: Attempt budget, delay and predicates
            label: Name used in log lines

        Returns:
            JobOutcome with the terminal job state and attempts used
        """
        label = label or (f"job {job_id}" if job_id else "status")
        job = Job(id=job_id or "")
        last_detail = ""

        for attempt in range(1, policy.max_attempts + 1):
            if attempt > 1:
                time.sleep(policy.delay)

            try:
                status = status_query(job_id)
            except TransportError as e:
                last_detail = str(e)
                logger.warning(
                    f"{label}: status query failed, attempt {attempt}/{policy.max_attempts}: {e}"
                )
                continue

            logger.debug(
                f"{label}: result={status.result!r}, attempt {attempt}/{policy.max_attempts}"
            )

            if policy.success_predicate(status):
                job.mark(JobStatus.SUCCESS, status.detail or status.result)
                logger.info(f"{label}: completed after {attempt} attempt(s)")
                return JobOutcome(job=job, attempts=attempt)

            if policy.failure_predicate(status):
                job.mark(JobStatus.FAILED, status.detail or status.result)
                logger.error(f"{label}: device reported failure: {job.result_detail}")
                return JobOutcome(
                    job=job, attempts=attempt, error=ErrorKind.JOB_REPORTED_FAILURE
                )

            last_detail = status.detail or status.result

        job.mark(
            JobStatus.FAILED,
            f"No success after {policy.max_attempts} attempt(s)"
            + (f" (last: {last_detail})" if last_detail else ""),
        )
        logger.error(f"{label}: {job.result_detail}")
        return JobOutcome(
            job=job, attempts=policy.max_attempts, error=ErrorKind.POLL_TIMEOUT
        )
