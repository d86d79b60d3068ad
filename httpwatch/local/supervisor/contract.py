"""
The capability set every monitored application implements.

The Supervisor only talks to applications through `Manageable`, so anything
that can be probed, started and stopped can be put under supervision.
"""
import enum
from abc import ABC, abstractmethod


class LifecycleState(enum.Enum):
    """Supervision state of a single application."""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    UNREACHABLE = "unreachable"


class Manageable(ABC):
    """
    A thing that can be health-checked, started and stopped.

    `state` belongs to the Supervisor and the process lifecycle; `probe`
    implementations must never touch it.
    """

    def __init__(self) -> None:
        self.state = LifecycleState.STOPPED

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier, used as the log correlation key."""

    @abstractmethod
    def probe(self) -> bool:
        """
        Performs one bounded health check.

        :return: True only if the application answered successfully. Never raises.
        """

    @abstractmethod
    def start(self) -> None:
        """
        Spawns the application, replacing any process that is still alive.

        :raises StartError: If the process could not be created.
        """

    @abstractmethod
    def stop(self) -> None:
        """Terminates the application if it is running. Idempotent, never raises."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name} ({self.state.value})>"
