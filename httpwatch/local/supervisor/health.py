import logging
import threading
import requests
from typing import Any, Dict

log = logging.getLogger(__name__)

# Extra seconds a probe may take beyond its own timeout before it is abandoned.
PROBE_DEADLINE_MARGIN = 1.0
MAX_REDIRECTS = 3


def build_probe_url(host: str, port: int) -> str:
    """Returns the root URL an application is probed at."""
    return f"http://{host}:{port}/"


def _get_status(url: str, timeout: float) -> int:
    with requests.Session() as session:
        # Go straight to the target; ignore proxies from the environment.
        session.trust_env = False
        session.max_redirects = MAX_REDIRECTS
        # Only the status line and headers are read.
        with session.get(url, timeout=timeout, stream=True) as response:
            return response.status_code


def _request_with_deadline(name: str, url: str, timeout: float) -> Dict[str, Any]:
    """
    Runs the request on a daemon thread and waits at most `timeout + PROBE_DEADLINE_MARGIN`.

    `requests` timeouts apply per socket operation, so a target that trickles
    its headers or redirects repeatedly is only cut off by this deadline.

    :return: A dict holding either `status`, `error`, or nothing if the deadline passed.
    """
    outcome: Dict[str, Any] = {}

    def _worker() -> None:
        try:
            outcome["status"] = _get_status(url, timeout)
        except Exception as e:
            outcome["error"] = e

    worker = threading.Thread(target=_worker, daemon=True, name=f"Probe-{name}")
    worker.start()
    worker.join(timeout + PROBE_DEADLINE_MARGIN)
    if worker.is_alive():
        return {}
    return outcome


def probe_http(name: str, url: str, timeout: float) -> bool:
    """
    Issues a single HTTP GET against `url` and reports whether it succeeded.

    Exactly one log record is emitted per call: debug when healthy, warning
    when the target is unreachable, timed out or answered with a non-2xx
    status, and error for anything unexpected. No exception escapes, and the
    call returns within `timeout + PROBE_DEADLINE_MARGIN` seconds.

    :param name: The application name, used for log correlation.
    :param url: The URL to probe.
    :param timeout: Connect and read timeout in seconds.
    :return: True only on a 2xx response.
    """
    outcome = _request_with_deadline(name, url, timeout)
    error = outcome.get("error")

    if not outcome or isinstance(error, requests.exceptions.Timeout):
        log.warning(f"HTTP request to {name} timed out after {timeout}s.")
        return False
    if isinstance(error, requests.exceptions.ConnectionError):
        log.warning(f"HTTP service ({name}) is not reachable at {url}.")
        return False
    if error is not None:
        log.error(f"Error checking status of {name}: {error}", exc_info=error)
        return False

    status = outcome["status"]
    if 200 <= status < 300:
        log.debug(f"HTTP service ({name}) is running.")
        return True

    log.warning(f"HTTP service ({name}) responded with status {status}.")
    return False
