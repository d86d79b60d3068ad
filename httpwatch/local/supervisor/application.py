from typing import Optional

from httpwatch.local.supervisor.health import build_probe_url, probe_http
from httpwatch.local.supervisor.contract import Manageable
from httpwatch.local.supervisor.lifecycle import ProcessLifecycle
from httpwatch.local.supervisor.recipe import LaunchRecipe


class ManagedApplication(Manageable):
    """
    One externally launched HTTP server under supervision.

    A single type serves every kind of application; what differs between a
    dev server and an interpreter-run server lives entirely in the recipe.
    """

    def __init__(
        self,
        name: str,
        host: str,
        port: int,
        recipe: LaunchRecipe,
        probe_timeout: float = 5.0,
        stop_timeout: float = 5.0,
        kill_grace: float = 2.0,
    ) -> None:
        super().__init__()
        self._name = name
        self.host = host
        self.port = port
        self.recipe = recipe
        self.probe_timeout = probe_timeout
        self._process = ProcessLifecycle(name, recipe, stop_timeout=stop_timeout, kill_grace=kill_grace)

    @property
    def name(self) -> str:
        return self._name

    @property
    def url(self) -> str:
        return build_probe_url(self.host, self.port)

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    def is_process_alive(self) -> bool:
        return self._process.is_alive()

    def probe(self) -> bool:
        return probe_http(self.name, self.url, self.probe_timeout)

    def start(self) -> None:
        self._process.start()

    def stop(self) -> None:
        self._process.stop()
