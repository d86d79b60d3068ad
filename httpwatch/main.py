import sys
import signal
import logging
from pathlib import Path
from typing import List, Optional

# Basic console logger for messages BEFORE full setup is complete.
# This logger will be replaced by the full setup later.
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)-8s - [console] - %(message)s',
    stream=sys.stdout
)
log = logging.getLogger("httpwatch")

import setproctitle
from httpwatch.log import setup_logging
from httpwatch.local import ConfigurationError, MergedSettings
from httpwatch.local.supervisor import Supervisor
from httpwatch.local.supervisor.startup import build_applications

PROCESS_TITLE = "HttpWatch - Supervisor"
USAGE = "Usage: httpwatch [run|check] [--verbose] [--config PATH]"


def _install_signal_handlers(supervisor: Supervisor) -> None:
    """Routes termination signals to a cooperative cancel of the supervisor."""
    def _handle(signum, _frame) -> None:
        log.info(f"Received signal {signal.Signals(signum).name}. Shutting down...")
        supervisor.cancel()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
    if hasattr(signal, "SIGBREAK"):
        signal.signal(signal.SIGBREAK, _handle)


def _parse_args(argv: List[str]):
    """Returns (command, verbose, config_path) or raises ValueError on bad input."""
    args = list(argv)
    verbose = "--verbose" in args
    if verbose:
        args.remove("--verbose")

    config_path: Optional[Path] = None
    if "--config" in args:
        index = args.index("--config")
        if index + 1 >= len(args):
            raise ValueError("--config requires a path.")
        config_path = Path(args[index + 1])
        del args[index:index + 2]

    command = args.pop(0).lower() if args else "run"
    if args or command not in ("run", "check"):
        raise ValueError(f"Unknown arguments: {' '.join([command, *args])}")
    return command, verbose, config_path


def run_check(supervisor: Supervisor) -> int:
    """Probes every application once and prints the result."""
    results = supervisor.check_once()
    for name, healthy in results.items():
        print(f"{name}: {'healthy' if healthy else 'unhealthy'}")
    return 0 if all(results.values()) else 1


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point for the watchdog service."""
    try:
        command, verbose, config_path = _parse_args(sys.argv[1:] if argv is None else argv)
    except ValueError as e:
        print(f"{e}\n{USAGE}", file=sys.stderr)
        return 2

    try:
        try:
            # Only the chosen settings file is read, and a bad one is fatal here.
            config = MergedSettings(config_path)
        except ConfigurationError as e:
            log.critical(f"Invalid configuration: {e}")
            return 1

        setup_logging(logging.DEBUG if verbose else logging.INFO, config.LOG_FILE_PATH, config.LOG_RETENTION_DAYS)

        try:
            applications = build_applications(config)
        except ConfigurationError as e:
            log.critical(f"Invalid configuration: {e}")
            return 1

        supervisor = Supervisor(applications, config.POLL_INTERVAL_SECONDS, config.SHUTDOWN_TIMEOUT_SECONDS)
        if command == "check":
            return run_check(supervisor)

        if not applications:
            log.warning("No applications are enabled. Nothing to supervise.")

        setproctitle.setproctitle(PROCESS_TITLE)
        log.info("Starting service...")
        _install_signal_handlers(supervisor)
        supervisor.run()
        return 0
    except Exception as e:
        log.critical(f"Service terminated unexpectedly: {e}", exc_info=True)
        return 1
    finally:
        for handler in logging.getLogger().handlers:
            handler.flush()


if __name__ == "__main__":
    sys.exit(main())
