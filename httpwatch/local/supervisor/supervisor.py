import time
import logging
import threading
from typing import Dict, Iterable, List, Optional

from httpwatch.local.errors import StartError
from httpwatch.local.supervisor import shutdown
from httpwatch.local.supervisor.contract import LifecycleState, Manageable

log = logging.getLogger(__name__)


class Supervisor:
    """
    Polls a fixed set of applications and restarts the ones that fail their probe.

    Every tick probes all applications concurrently, one thread each, so a
    hanging target only ever costs its own probe timeout. A failed probe is
    answered with exactly one `start()`. There is no backoff and no cap on
    consecutive failures: each tick is an independent retry.
    """

    def __init__(
        self,
        applications: Iterable[Manageable],
        poll_interval: float = 30.0,
        shutdown_timeout: float = 10.0,
    ) -> None:
        """
        :param applications: The applications to supervise. Names must be unique.
        :param poll_interval: Seconds between the start of one pass and the next.
        :param shutdown_timeout: Overall bound on stopping all applications at shutdown.
        """
        self.applications: List[Manageable] = list(applications)
        names = [app.name for app in self.applications]
        if len(set(names)) != len(names):
            raise ValueError(f"Application names must be unique, got {names}.")

        self.poll_interval = poll_interval
        self.shutdown_timeout = shutdown_timeout
        self.shutdown_signal_received = threading.Event()

    @property
    def states(self) -> Dict[str, LifecycleState]:
        return {app.name: app.state for app in self.applications}

    def _probe(self, app: Manageable) -> bool:
        try:
            return app.probe()
        except Exception as e:
            log.error(f"Probe for {app.name} raised unexpectedly: {e}", exc_info=True)
            return False

    def _poll_application(self, app: Manageable) -> None:
        """Probes one application and (re)starts it if the probe failed."""
        if self._probe(app):
            if app.state is not LifecycleState.RUNNING:
                log.info(f"{app.name} is up and responding.")
            app.state = LifecycleState.RUNNING
            return

        app.state = LifecycleState.UNREACHABLE
        if self.shutdown_signal_received.is_set():
            return

        try:
            app.start()
        except StartError as e:
            log.error(f"Could not start {app.name}: {e}")
            return
        except Exception as e:
            log.error(f"Unexpected error while starting {app.name}: {e}", exc_info=True)
            return
        app.state = LifecycleState.STARTING

    def _run_concurrently(self, target, thread_prefix: str) -> None:
        threads = [
            threading.Thread(target=target, args=(app,), daemon=True, name=f"{thread_prefix}-{app.name}")
            for app in self.applications
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    def tick(self) -> None:
        """Runs one polling pass over all applications and waits for it to finish."""
        self._run_concurrently(self._poll_application, "Poll")

    def check_once(self) -> Dict[str, bool]:
        """
        Probes every application once without starting anything.

        :return: A mapping of application name to probe result.
        """
        results: Dict[str, bool] = {}

        def _check(app: Manageable) -> None:
            results[app.name] = self._probe(app)

        self._run_concurrently(_check, "Check")
        return {app.name: results[app.name] for app in self.applications}

    def cancel(self) -> None:
        """Asks a running loop to stop. Safe to call from signal handlers and other threads."""
        self.shutdown_signal_received.set()

    def run(self, cancel_event: Optional[threading.Event] = None) -> None:
        """
        Runs the supervision loop until cancelled, then stops every application.

        :param cancel_event: An event owned by the host. Setting it has the same
            effect as calling `cancel()`.
        """
        if cancel_event is not None:
            if self.shutdown_signal_received.is_set():
                cancel_event.set()
            self.shutdown_signal_received = cancel_event

        log.info(f"Supervisor started. Monitoring {len(self.applications)} applications every {self.poll_interval}s.")
        while not self.shutdown_signal_received.is_set():
            started = time.monotonic()
            try:
                self.tick()
            except Exception as e:
                log.critical(f"Critical error in supervisor loop: {e}", exc_info=True)

            remaining = self.poll_interval - (time.monotonic() - started)
            self.shutdown_signal_received.wait(max(remaining, 0))

        log.info("Cancellation received. Stopping all applications...")
        shutdown.stop_all(self.applications, self.shutdown_timeout)
        log.info("Supervisor stopped.")
