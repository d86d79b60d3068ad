from __future__ import annotations

import os
import socket
import sys
import time
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Keep the module-level settings singleton away from any real appsettings.json.
os.environ.setdefault("HTTPWATCH_APPSETTINGS", str(ROOT / "tests" / "fixtures" / "missing.json"))

from httpwatch.local.supervisor.recipe import LaunchRecipe, RecipeKind  # noqa: E402


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def python_recipe(tmp_path: Path) -> Callable[[str], LaunchRecipe]:
    def _factory(code: str) -> LaunchRecipe:
        return LaunchRecipe(
            kind=RecipeKind.INTERPRETER,
            working_directory=tmp_path,
            command=sys.executable,
            arguments=("-c", code),
        )

    return _factory
