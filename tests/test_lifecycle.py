from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

import psutil
import pytest

from conftest import wait_until
from httpwatch.local.errors import StartError
from httpwatch.local.supervisor import lifecycle as lifecycle_module
from httpwatch.local.supervisor.lifecycle import ProcessLifecycle
from httpwatch.local.supervisor.recipe import LaunchRecipe, RecipeKind

SLEEPER = "import time; time.sleep(60)"


def _gone(pid: int) -> bool:
    try:
        return psutil.Process(pid).status() == psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return True


@pytest.fixture
def lifecycles():
    created = []

    def _factory(recipe: LaunchRecipe, **kwargs) -> ProcessLifecycle:
        proc = ProcessLifecycle("demo", recipe, **kwargs)
        created.append(proc)
        return proc

    yield _factory
    for proc in created:
        proc.stop()


def test_stop_without_process_is_noop(python_recipe, lifecycles) -> None:
    proc = lifecycles(python_recipe(SLEEPER))

    proc.stop()
    proc.stop()

    assert proc.pid is None
    assert not proc.is_alive()


def test_start_spawns_process(python_recipe, lifecycles) -> None:
    proc = lifecycles(python_recipe(SLEEPER))

    proc.start()

    assert proc.is_alive()
    assert psutil.pid_exists(proc.pid)


def test_start_replaces_live_process(python_recipe, lifecycles) -> None:
    proc = lifecycles(python_recipe(SLEEPER))
    proc.start()
    first_pid = proc.pid

    proc.start()

    assert proc.pid != first_pid
    assert _gone(first_pid)
    assert proc.is_alive()


def test_stop_twice_clears_handle_once(python_recipe, lifecycles) -> None:
    proc = lifecycles(python_recipe(SLEEPER))
    proc.start()
    pid = proc.pid

    proc.stop()
    assert proc.pid is None
    assert _gone(pid)

    proc.stop()
    assert proc.pid is None


def test_stop_kills_descendants(python_recipe, lifecycles) -> None:
    code = (
        "import subprocess, sys, time; "
        f"subprocess.Popen([sys.executable, '-c', {SLEEPER!r}]); "
        "time.sleep(60)"
    )
    proc = lifecycles(python_recipe(code))
    proc.start()
    parent = psutil.Process(proc.pid)
    assert wait_until(lambda: len(parent.children(recursive=True)) >= 1)
    children = parent.children(recursive=True)

    proc.stop()

    assert children
    assert wait_until(lambda: all(_gone(child.pid) for child in children))


@pytest.mark.skipif(sys.platform == "win32", reason="SIGTERM cannot be ignored on Windows")
def test_stop_force_kills_after_timeout(python_recipe, lifecycles, caplog) -> None:
    code = (
        "import signal, time; "
        "signal.signal(signal.SIGTERM, signal.SIG_IGN); "
        "print('ready', flush=True); "
        "time.sleep(60)"
    )
    proc = lifecycles(python_recipe(code), stop_timeout=0.5, kill_grace=2.0)
    with caplog.at_level(logging.INFO):
        proc.start()
        assert wait_until(lambda: "ready" in caplog.text)
        pid = proc.pid

        started = time.monotonic()
        proc.stop()
        elapsed = time.monotonic() - started

    assert _gone(pid)
    assert proc.pid is None
    assert elapsed < 3.0
    assert "did not terminate gracefully" in caplog.text


def test_stop_releases_handle_when_termination_fails(python_recipe, lifecycles, monkeypatch, caplog) -> None:
    proc = lifecycles(python_recipe(SLEEPER))
    proc.start()
    pid = proc.pid

    def _fail(*args, **kwargs):
        raise psutil.AccessDenied(pid)

    monkeypatch.setattr(lifecycle_module.process_utils, "terminate_process_tree", _fail)
    with caplog.at_level(logging.ERROR):
        proc.stop()

    assert proc.pid is None
    assert "Error stopping process for demo" in caplog.text
    psutil.Process(pid).kill()


def test_start_failure_raises_start_error(tmp_path: Path, lifecycles) -> None:
    recipe = LaunchRecipe(RecipeKind.INTERPRETER, tmp_path, str(tmp_path / "no-such-binary"))
    proc = lifecycles(recipe)

    with pytest.raises(StartError):
        proc.start()

    assert proc.pid is None


def test_missing_working_directory_raises_start_error(tmp_path: Path, lifecycles) -> None:
    recipe = LaunchRecipe(RecipeKind.INTERPRETER, tmp_path / "missing", sys.executable, ("-c", "pass"))
    proc = lifecycles(recipe)

    with pytest.raises(StartError, match="demo"):
        proc.start()


def test_output_lines_are_logged_per_stream(python_recipe, lifecycles, caplog) -> None:
    code = "import sys; print('hello out', flush=True); print('hello err', file=sys.stderr, flush=True)"
    proc = lifecycles(python_recipe(code))

    with caplog.at_level(logging.DEBUG, logger="proc.demo"):
        proc.start()
        assert wait_until(lambda: len([r for r in caplog.records if r.name == "proc.demo"]) >= 2)

    records = {r.getMessage(): r for r in caplog.records if r.name == "proc.demo"}
    assert records["hello out"].levelno == logging.INFO
    assert records["hello out"].stream == "stdout"
    assert records["hello err"].levelno == logging.ERROR
    assert records["hello err"].stream == "stderr"
    assert records["hello err"].app_name == "demo"


def test_unexpected_exit_is_logged_and_clears_handle(python_recipe, lifecycles, caplog) -> None:
    proc = lifecycles(python_recipe("import sys; sys.exit(3)"))

    with caplog.at_level(logging.WARNING, logger=lifecycle_module.__name__):
        proc.start()
        assert wait_until(lambda: proc.pid is None)
        assert wait_until(lambda: "exited unexpectedly" in caplog.text)

    assert "code 3" in caplog.text


def test_requested_stop_is_not_reported_as_unexpected(python_recipe, lifecycles, caplog) -> None:
    proc = lifecycles(python_recipe(SLEEPER))

    with caplog.at_level(logging.WARNING, logger=lifecycle_module.__name__):
        proc.start()
        proc.stop()
        time.sleep(0.2)

    assert "exited unexpectedly" not in caplog.text
