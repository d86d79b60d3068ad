import logging
import threading
import subprocess
from typing import Optional

from httpwatch.local.errors import StartError
from httpwatch.local.supervisor import process_utils
from httpwatch.local.supervisor.recipe import LaunchRecipe

log = logging.getLogger(__name__)


class ProcessLifecycle:
    """
    Owns the single OS process of one managed application.

    All start/stop work for the application runs under one lock, so a slow
    stop can never overlap a start for the same application. Different
    applications have independent instances and never contend.
    """

    def __init__(self, name: str, recipe: LaunchRecipe, stop_timeout: float = 5.0, kill_grace: float = 2.0) -> None:
        """
        :param name: The application name, used for logging.
        :param recipe: How to launch the process.
        :param stop_timeout: Seconds to wait for the process tree to exit after terminate.
        :param kill_grace: Seconds to wait after force-killing survivors.
        """
        self.name = name
        self.recipe = recipe
        self.stop_timeout = stop_timeout
        self.kill_grace = kill_grace
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None

    @property
    def pid(self) -> Optional[int]:
        """PID of the current process, or None if no handle is held."""
        process = self._process
        return process.pid if process is not None else None

    def is_alive(self) -> bool:
        """Whether a handle is held and its process has not exited."""
        process = self._process
        return process is not None and process.poll() is None

    def start(self) -> None:
        """
        Spawns a new process, stopping the previous one first if it is still alive.

        Returns once the process is spawned, not once it is healthy.

        :raises StartError: If the process could not be created.
        """
        with self._lock:
            log.info(f"Attempting to start {self.name}...")
            if self._process is not None and self._process.poll() is None:
                log.info(f"Stopping existing process for {self.name}...")
            self._stop_locked()

            cwd = self.recipe.working_directory
            log.info(f"Starting new process for {self.name} in {cwd}: {self.recipe.describe()}")
            try:
                process = process_utils.spawn(self.recipe.build_args(), str(cwd))
            except (OSError, ValueError) as e:
                log.error(f"Failed to start {self.name}: {e}")
                raise StartError(self.name, str(e)) from e

            self._process = process
            process_utils.log_process_output(process, self.name)
            process_utils.watch_for_exit(process, self.name, self._on_exit)
            log.info(f"Started {self.name} with PID {process.pid}.")

    def stop(self) -> None:
        """
        Terminates the process tree if one is running. A no-op otherwise.

        Errors are logged, never raised, and the handle is released in every case.
        """
        with self._lock:
            self._stop_locked()

    def _stop_locked(self) -> None:
        process = self._process
        if process is None:
            return
        if process.poll() is not None:
            # Already gone; the exit watcher may not have run yet.
            self._process = None
            return

        log.info(f"Stopping process for {self.name} (PID {process.pid})...")
        try:
            if process_utils.terminate_process_tree(process, self.stop_timeout, self.kill_grace):
                log.info(f"Process for {self.name} stopped.")
            else:
                log.error(f"Process for {self.name} (PID {process.pid}) did not exit after being killed.")
        except Exception as e:
            log.error(f"Error stopping process for {self.name}: {e}", exc_info=True)
        finally:
            self._process = None

    def _on_exit(self, process: subprocess.Popen) -> None:
        """Called from the exit watcher thread once `process` has exited."""
        with self._lock:
            if self._process is not process:
                # Stopped or replaced on purpose.
                return
            self._process = None
        log.warning(f"Process for {self.name} exited unexpectedly with code {process.returncode}.")
