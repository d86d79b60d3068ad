import time
import logging
import threading
from typing import List, Sequence

from httpwatch.local.supervisor.contract import LifecycleState, Manageable

log = logging.getLogger(__name__)


def _stop_application(app: Manageable) -> None:
    try:
        app.stop()
    except Exception as e:
        log.error(f"Error stopping {app.name}: {e}", exc_info=True)
    finally:
        app.state = LifecycleState.STOPPED


def stop_all(applications: Sequence[Manageable], timeout: float) -> List[str]:
    """
    Stops every application concurrently and waits for them, up to `timeout` seconds in total.

    A stop that has not finished by then is logged and abandoned; its thread
    is a daemon and will not keep the watchdog alive.

    :param applications: The applications to stop.
    :param timeout: The overall bound on the wait.
    :return: The names of applications whose stop did not complete in time.
    """
    if not applications:
        return []

    log.info(f"Initiating shutdown for {len(applications)} applications...")
    threads = []
    for app in applications:
        thread = threading.Thread(target=_stop_application, args=(app,), daemon=True, name=f"Stop-{app.name}")
        thread.start()
        threads.append((app, thread))

    deadline = time.monotonic() + timeout
    abandoned = []
    for app, thread in threads:
        thread.join(max(deadline - time.monotonic(), 0))
        if thread.is_alive():
            log.error(f"Stopping {app.name} did not complete within {timeout}s. Abandoning it.")
            abandoned.append(app.name)
    return abandoned
