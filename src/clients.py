"""
XML API client for a PAN-OS firewall.
"""

import logging
import re
import time
from typing import Dict, Optional

import requests
import urllib3
from lxml import etree
from urllib3.exceptions import InsecureRequestWarning

from errors import CommandError, TransportError
from models import PollPolicy, StatusResponse
from poller import JobPoller

logger = logging.getLogger(__name__)

# Software download/install jobs can take a long time on smaller appliances
SOFTWARE_JOB_POLICY = PollPolicy(
    max_attempts=120,
    delay=30,
    success_predicate=lambda s: s.result == "OK",
    failure_predicate=lambda s: s.result == "FAIL",
)

_TOKEN_RE = re.compile(r'"[^"]*"|\S+')


def cmd_xml(command: str) -> str:
    """
    Convert a CLI-style operational command into PAN-OS op XML.

    Each bare word opens an element nested in the previous one; a
    double-quoted word becomes the text of the element before it:

        show jobs id "12"  ->  <show><jobs><id>12</id></jobs></show>

    Raises:
        ValueError: If the command is empty or starts with a quoted value
    """
    tokens = _TOKEN_RE.findall(command)
    if not tokens:
        raise ValueError("Empty command")

    root = None
    current = None
    for token in tokens:
        if token.startswith('"'):
            if current is None:
                raise ValueError(f"Command cannot start with a value: {command!r}")
            current.text = token[1:-1]
            continue
        if root is None:
            root = current = etree.Element(token)
        else:
            current = etree.SubElement(current, token)

    return etree.tostring(root, encoding="unicode")


class OpResponse:
    """Parsed reply to an operational command."""

    def __init__(self, command: str, root):
        self.command = command
        self.root = root

    @property
    def job_id(self) -> Optional[str]:
        """Job id of a submitted command, if the device enqueued one."""
        job = self.root.findtext("./result/job")
        return job.strip() if job and job.strip() else None

    def job_status(self) -> StatusResponse:
        """Status of a `show jobs id` reply."""
        job = self.root.find("./result/job")
        if job is None:
            return StatusResponse(result="")
        lines = [ln.strip() for ln in job.xpath("./details//text()") if ln.strip()]
        detail = (
            f"status={job.findtext('status', '')} progress={job.findtext('progress', '')}"
        )
        if lines:
            detail += f" details={' '.join(lines)}"
        return StatusResponse(result=(job.findtext("result") or "").strip(), detail=detail)

    def result_status(self) -> StatusResponse:
        """Plain-text result, e.g. the `yes` of `show chassis-ready`."""
        text = (self.root.findtext("./result") or "").strip()
        return StatusResponse(result=text)


class PanosXmlClient:
    """Client for the PAN-OS XML API of a single firewall."""

    RETRYABLE_STATUS_CODES = {429, 502, 503, 504}

    def __init__(
        self,
        host: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        api_key: Optional[str] = None,
        verify_ssl: bool = False,
        timeout_s: int = 60,
        max_retries: int = 0,
        base_delay: float = 5.0,
    ):
        """
        Initialize the PAN-OS client.

        Args:
            host: Firewall management address
            username: Admin user for key generation
            password: Admin password for key generation
            api_key: Existing API key (skips key generation)
            verify_ssl: Verify the management certificate
            timeout_s: Request timeout in seconds
            max_retries: Retries for transient HTTP errors (0 disables)
            base_delay: Base delay for exponential backoff
        """
        self.host = host
        self.username = username
        self.password = password
        self.api_key = api_key
        self.verify_ssl = verify_ssl
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.base_delay = base_delay

        if not verify_ssl:
            urllib3.disable_warnings(InsecureRequestWarning)

        self.session = requests.Session()
        self.poller = JobPoller()

    def _url(self) -> str:
        return f"https://{self.host}/api/"

    def _request_with_retry(self, data: Dict[str, str]) -> requests.Response:
        """
        POST to the XML API, retrying transient HTTP errors with backoff.

        Raises:
            TransportError: If the request fails after all retries
        """
        last_error = None

        for attempt in range(self.max_retries + 1):
            retries_left = attempt < self.max_retries
            try:
                resp = self.session.post(
                    self._url(), data=data, timeout=self.timeout_s, verify=self.verify_ssl
                )
            except requests.RequestException as e:
                last_error = str(e)
                if not retries_left:
                    break
                delay = self._calculate_delay(attempt)
                logger.warning(
                    f"Request error: {e}, attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                )
                time.sleep(delay)
                continue

            if resp.status_code in self.RETRYABLE_STATUS_CODES and retries_left:
                delay = self._calculate_delay(attempt, resp)
                logger.warning(
                    f"Retryable error {resp.status_code}, attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                )
                last_error = f"HTTP {resp.status_code}: {resp.text[:200]}"
                time.sleep(delay)
                continue

            if resp.status_code != 200:
                raise TransportError(f"HTTP {resp.status_code}: {resp.text[:200]}")
            return resp

        raise TransportError(f"Request to {self.host} failed: {last_error}")

    def _calculate_delay(self, attempt: int, resp=None) -> float:
        """
        Calculate delay with exponential backoff and jitter.

        Args:
            attempt: Current attempt number
            resp: Optional response object (to check Retry-After header)

        Returns:
            Delay in seconds
        """
        if resp is not None and "Retry-After" in resp.headers:
            try:
                return float(resp.headers["Retry-After"])
            except ValueError:
                pass

        delay = self.base_delay * (2**attempt)
        jitter = delay * 0.2 * (0.5 - time.time() % 1)
        return min(delay + jitter, 180.0)

    def _parse(self, what: str, resp: requests.Response):
        """Parse an XML API reply, raising CommandError on status="error"."""
        try:
            root = etree.fromstring(resp.content)
        except etree.XMLSyntaxError as e:
            raise TransportError(f"{what}: unparseable response: {e}") from e

        if root.get("status") != "success":
            msg = " ".join(t.strip() for t in root.xpath(".//msg//text()") if t.strip())
            raise CommandError(what, msg or f"status={root.get('status')}")
        return root

    def _get_api_key(self) -> str:
        if self.api_key:
            return self.api_key
        if not self.username or not self.password:
            raise TransportError("No API key and no username/password to generate one")

        logger.debug(f"Generating API key for {self.username}@{self.host}")
        resp = self._request_with_retry(
            {"type": "keygen", "user": self.username, "password": self.password}
        )
        root = self._parse("keygen", resp)
        key = root.findtext("./result/key")
        if not key:
            raise TransportError("keygen returned no key")
        self.api_key = key
        return key

    def execute(self, command: str) -> OpResponse:
        """
        Run an operational command.

        Args:
            command: CLI-style command, values in double quotes

        Returns:
            OpResponse for the reply

        Raises:
            TransportError: If the call fails, the device rejects it, or the
                command cannot be converted to XML
        """
        try:
            xml = cmd_xml(command)
        except ValueError as e:
            raise CommandError(command, f"cannot build op XML: {e}") from e
        logger.debug(f"op: {command}")
        resp = self._request_with_retry(
            {"type": "op", "cmd": xml, "key": self._get_api_key()}
        )
        return OpResponse(command, self._parse(command, resp))

    def running_version(self) -> str:
        """PAN-OS version currently running on the device."""
        info = self.execute("show system info")
        return (info.root.findtext("./result/system/sw-version") or "").strip()

    def is_software_downloaded(self, version: str) -> bool:
        """Whether a PAN-OS version is already on the device."""
        info = self.execute("request system software info")
        downloaded = info.root.xpath(
            ".//versions/entry[version=$version]/downloaded/text()", version=version
        )
        return bool(downloaded) and downloaded[0].strip() == "yes"

    def _run_software_job(self, command: str) -> None:
        response = self.execute(command)
        job_id = response.job_id
        if not job_id:
            raise CommandError(command, "no job id in response")

        outcome = self.poller.poll(
            job_id,
            lambda jid: self.execute(f'show jobs id "{jid}"').job_status(),
            SOFTWARE_JOB_POLICY,
            label=command,
        )
        if not outcome.succeeded:
            raise CommandError(command, f"job {job_id} failed: {outcome.job.result_detail}")

    def install_version(self, version: str, restart: bool = True) -> None:
        """
        Install a PAN-OS version, downloading it first if needed.

        Nothing is installed or restarted when the device already runs the
        requested version. The software list is refreshed before looking the
        version up, so images published since the last check can be found.

        Args:
            version: PAN-OS version, e.g. 9.0.3-h3
            restart: Reboot the device after the install

        Raises:
            TransportError: If any part of the install fails
        """
        current = self.running_version()
        if current == version:
            logger.info(f"{self.host} already running PAN-OS {version}, nothing to install")
            return
        logger.info(f"{self.host} running PAN-OS {current or 'unknown'}, target {version}")

        self.execute("request system software check")
        if self.is_software_downloaded(version):
            logger.info(f"PAN-OS {version} already downloaded")
        else:
            logger.info(f"Downloading PAN-OS {version}")
            self._run_software_job(f'request system software download version "{version}"')

        logger.info(f"Installing PAN-OS {version}")
        self._run_software_job(f'request system software install version "{version}"')

        if restart:
            logger.warning(f"Restarting {self.host}")
            self.execute("request restart system")
