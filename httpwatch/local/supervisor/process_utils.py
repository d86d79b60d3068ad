import sys
import time
import psutil
import logging
import threading
import subprocess
from typing import IO, Any, Callable, Dict, List, Optional

log = logging.getLogger(__name__)


#* --- Process Creation ---
def get_popen_creation_flags() -> Dict[str, Any]:
    """
    Returns platform-specific keyword arguments for subprocess.Popen.

    On Windows the child gets no console window and its own process group. On
    other platforms it is placed in a new session so that terminal signals
    aimed at the watchdog do not reach it directly.
    """
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NO_WINDOW | subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def spawn(args: List[str], cwd: str) -> subprocess.Popen:
    """
    Spawns a process with captured stdout/stderr and no stdin.

    :raises OSError: If the executable or the working directory cannot be used.
    """
    return subprocess.Popen(
        args,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        stdin=subprocess.DEVNULL,
        cwd=cwd,
        **get_popen_creation_flags(),
    )


#* --- Output Capture ---
def _read_pipe(pipe: IO[bytes], process_name: str, stream: str, level: int) -> None:
    """Target function for reader threads. Reads and logs lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    extra = {"app_name": process_name, "stream": stream}
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            proc_logger.log(level, line, extra=extra)
    except (OSError, ValueError) as e:
        proc_logger.debug(f"Pipe reader for {process_name} {stream} exited: {e}")
    finally:
        pipe.close()


def log_process_output(process: subprocess.Popen, name: str) -> None:
    """
    Starts background threads that forward a process's stdout/stderr to logging.

    stdout lines are logged at INFO and stderr lines at ERROR, both on the
    `proc.<name>` logger. Draining the pipes also keeps the child from
    blocking on a full pipe buffer.
    """
    if process.stdout:
        threading.Thread(
            target=_read_pipe,
            args=(process.stdout, name, "stdout", logging.INFO),
            daemon=True,
            name=f"{name}-stdout",
        ).start()
    if process.stderr:
        threading.Thread(
            target=_read_pipe,
            args=(process.stderr, name, "stderr", logging.ERROR),
            daemon=True,
            name=f"{name}-stderr",
        ).start()


def watch_for_exit(process: subprocess.Popen, name: str, on_exit: Callable[[subprocess.Popen], None]) -> None:
    """Starts a daemon thread that calls `on_exit(process)` once the process has exited."""
    def _wait() -> None:
        process.wait()
        on_exit(process)

    threading.Thread(target=_wait, daemon=True, name=f"{name}-exit-watcher").start()


#* --- Process Termination ---
def _is_running(proc: psutil.Process) -> bool:
    """True unless the process is gone or only a zombie is left of it."""
    try:
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False


def _wait_procs(processes: List[psutil.Process], timeout: float) -> List[psutil.Process]:
    """
    Polls until every process has exited or `timeout` elapses.

    Descendants are usually not our children, so they cannot be reaped here;
    zombies count as exited.

    :return: The processes that are still running.
    """
    deadline = time.monotonic() + timeout
    alive = [p for p in processes if _is_running(p)]
    while alive and time.monotonic() < deadline:
        time.sleep(0.05)
        alive = [p for p in alive if _is_running(p)]
    return alive


def _terminate_processes(processes: List[psutil.Process]) -> None:
    """Sends SIGTERM (TerminateProcess on Windows) to every process."""
    for proc in processes:
        try:
            log.debug(f"Sending SIGTERM to PID {proc.pid}")
            proc.terminate()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            log.warning(f"Access denied while terminating PID {proc.pid}. Skipping it.")


def _forceful_kill(processes: List[psutil.Process]) -> None:
    """Forcefully kills processes that didn't terminate gracefully."""
    log.warning(f"{len(processes)} processes did not terminate gracefully. Forcing shutdown...")
    for proc in processes:
        try:
            log.warning(f"Killing stubborn process PID {proc.pid}.")
            proc.kill()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            log.warning(f"Access denied while killing PID {proc.pid}. Skipping it.")


def _wait_for_tree(
    process: subprocess.Popen,
    root: Optional[psutil.Process],
    children: List[psutil.Process],
    timeout: float,
) -> List[psutil.Process]:
    """
    Waits up to `timeout` seconds in total for the root and its descendants.

    The root is waited on through its Popen object so that it is reaped there.

    :return: The processes that are still alive.
    """
    deadline = time.monotonic() + timeout
    # Not psutil.wait_procs: it reports zombie descendants as alive until the timeout.
    alive = _wait_procs(children, timeout)
    try:
        process.wait(timeout=max(deadline - time.monotonic(), 0))
    except subprocess.TimeoutExpired:
        if root is not None:
            alive.append(root)
    return alive


def terminate_process_tree(process: subprocess.Popen, timeout: float, kill_grace: float) -> bool:
    """
    Terminates a process together with all of its descendants.

    Every process in the tree is asked to terminate, then given `timeout`
    seconds to exit. Whatever is still alive is killed and given a further
    `kill_grace` seconds.

    :param process: The Popen object of the root process.
    :param timeout: Seconds to wait after the terminate signal.
    :param kill_grace: Seconds to wait after the forced kill.
    :return: True if the whole tree is gone.
    :raises psutil.Error: If the process table could not be inspected or signalled.
    """
    try:
        root = psutil.Process(process.pid)
        children = root.children(recursive=True)
    except psutil.NoSuchProcess:
        root, children = None, []

    _terminate_processes(([root] if root is not None else []) + children)
    alive = _wait_for_tree(process, root, children, timeout)
    if not alive:
        return True

    _forceful_kill(alive)
    still_alive = _wait_for_tree(process, root, [p for p in alive if p is not root], kill_grace)
    return not still_alive
