"""
Unit tests for JobPoller.
"""

import unittest
from unittest.mock import MagicMock, patch
from errors import TransportError
from models import ErrorKind, JobStatus, PollPolicy, StatusResponse
from poller import JobPoller


def _job_policy(max_attempts=5, delay=10):
    return PollPolicy(
        max_attempts=max_attempts,
        delay=delay,
        success_predicate=lambda s: s.result == "OK",
        failure_predicate=lambda s: s.result == "FAIL",
    )


class TestJobPoller(unittest.TestCase):
    """Test JobPoller attempt and delay accounting."""

    def setUp(self):
        self.poller = JobPoller()

    @patch("poller.time.sleep")
    def test_success_on_first_attempt(self, mock_sleep):
        """Test immediate success makes one query and no delay."""
        query = MagicMock(return_value=StatusResponse(result="OK"))

        outcome = self.poller.poll("12", query, _job_policy())

        self.assertTrue(outcome.succeeded)
        self.assertIsNone(outcome.error)
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(outcome.job.id, "12")
        query.assert_called_once_with("12")
        mock_sleep.assert_not_called()

    @patch("poller.time.sleep")
    def test_success_on_attempt_k(self, mock_sleep):
        """Test success on attempt k takes k queries and k-1 delays."""
        query = MagicMock(
            side_effect=[
                StatusResponse(result="PEND"),
                StatusResponse(result="PEND"),
                StatusResponse(result="OK"),
            ]
        )

        outcome = self.poller.poll("12", query, _job_policy(max_attempts=5, delay=10))

        self.assertTrue(outcome.succeeded)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(query.call_count, 3)
        self.assertEqual(mock_sleep.call_count, 2)
        mock_sleep.assert_called_with(10)

    @patch("poller.time.sleep")
    def test_exhaustion_returns_poll_timeout(self, mock_sleep):
        """Test n attempts without success make n queries and n-1 delays."""
        query = MagicMock(return_value=StatusResponse(result="PEND"))

        outcome = self.poller.poll("12", query, _job_policy(max_attempts=5, delay=10))

        self.assertFalse(outcome.succeeded)
        self.assertEqual(outcome.error, ErrorKind.POLL_TIMEOUT)
        self.assertEqual(outcome.job.last_status, JobStatus.FAILED)
        self.assertEqual(outcome.attempts, 5)
        self.assertEqual(query.call_count, 5)
        self.assertEqual(mock_sleep.call_count, 4)

    @patch("poller.time.sleep")
    def test_reported_failure_stops_polling(self, mock_sleep):
        """Test a FAIL result ends polling immediately."""
        query = MagicMock(
            side_effect=[
                StatusResponse(result="PEND"),
                StatusResponse(result="FAIL", detail="download error"),
                StatusResponse(result="OK"),
            ]
        )

        outcome = self.poller.poll("12", query, _job_policy())

        self.assertEqual(outcome.error, ErrorKind.JOB_REPORTED_FAILURE)
        self.assertEqual(outcome.attempts, 2)
        self.assertEqual(outcome.job.result_detail, "download error")
        self.assertEqual(query.call_count, 2)
        self.assertEqual(mock_sleep.call_count, 1)

    @patch("poller.time.sleep")
    def test_transport_error_consumes_attempt(self, mock_sleep):
        """Test a failing status query counts as an attempt."""
        query = MagicMock(
            side_effect=[
                TransportError("connection refused"),
                StatusResponse(result="OK"),
            ]
        )

        outcome = self.poller.poll("12", query, _job_policy())

        self.assertTrue(outcome.succeeded)
        self.assertEqual(outcome.attempts, 2)
        self.assertEqual(mock_sleep.call_count, 1)

    @patch("poller.time.sleep")
    def test_transport_errors_until_exhaustion(self, mock_sleep):
        """Test persistent query failures end in POLL_TIMEOUT."""
        query = MagicMock(side_effect=TransportError("unreachable"))

        outcome = self.poller.poll(None, query, _job_policy(max_attempts=3))

        self.assertEqual(outcome.error, ErrorKind.POLL_TIMEOUT)
        self.assertEqual(query.call_count, 3)
        self.assertEqual(mock_sleep.call_count, 2)
        self.assertIn("unreachable", outcome.job.result_detail)

    @patch("poller.time.sleep")
    def test_single_attempt_policy_always_queries(self, mock_sleep):
        """Test a one-attempt policy still runs the query once."""
        query = MagicMock(return_value=StatusResponse(result="no"))
        policy = PollPolicy(max_attempts=1, delay=30, success_predicate=lambda s: s.result == "yes")

        outcome = self.poller.poll(None, query, policy)

        self.assertEqual(outcome.error, ErrorKind.POLL_TIMEOUT)
        query.assert_called_once_with(None)
        mock_sleep.assert_not_called()

    @patch("poller.time.sleep")
    def test_other_exceptions_propagate(self, mock_sleep):
        """Test non-transport errors are not swallowed."""
        query = MagicMock(side_effect=KeyError("job"))

        with self.assertRaises(KeyError):
            self.poller.poll("12", query, _job_policy())


if __name__ == "__main__":
    unittest.main()
