"""Shared fixtures: a recording stand-in for the docker SDK client."""

import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional, Union

import pytest
from docker.errors import ImageNotFound
from requests.exceptions import ReadTimeout

from playbox.config import RelayConfig
from playbox.gateway import ContainerGateway
from playbox.session_manager import ExecutionSessionManager

Output = Union[str, bytes]
# (exit status, stdout, stderr) of a container run
RunResult = tuple[Optional[int], Output, Output]
RunHandler = Callable[[dict[str, Any]], RunResult]


def workspace_from_options(options: dict[str, Any]) -> Path:
    """Host side of the single bind mount in containers.run() options."""
    (host_path,) = options["volumes"]
    return Path(host_path)


def _as_bytes(value: Output) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


class FakeContainer:
    def __init__(self, engine: "FakeDockerClient", options: dict[str, Any], result: RunResult):
        self.engine = engine
        self.options = options
        self.name = options["name"]
        self.status_code, self.stdout, self.stderr = result
        self.killed = False
        self.removed = False
        self._stopped = threading.Event()

    def wait(self, timeout=None):
        self.engine.wait_timeouts.append(timeout)
        if self.engine.wait_times_out:
            raise ReadTimeout("Read timed out.")
        if self.engine.hang:
            # Blocks until kill() or remove() stops the container
            self._stopped.wait(5)
        return {"StatusCode": self.status_code, "Error": None}

    def logs(self, stdout=True, stderr=True):
        data = b""
        if stdout:
            data += _as_bytes(self.stdout)
        if stderr:
            data += _as_bytes(self.stderr)
        return data

    def kill(self):
        self.killed = True
        self._stopped.set()

    def remove(self, force=False):
        assert force, "containers must be force-removed"
        self.removed = True
        self._stopped.set()
        self.engine.removed.append(self.name)


class FakeImages:
    def __init__(self, engine: "FakeDockerClient"):
        self.engine = engine

    def get(self, name):
        if not self.engine.image_present:
            raise ImageNotFound(f"No such image: {name}")
        return object()

    def pull(self, repository, tag=None, **kwargs):
        self.engine.pulls.append(repository)
        time.sleep(self.engine.pull_delay)
        if self.engine.pull_error:
            raise self.engine.pull_error
        self.engine.image_present = True
        return object()


class FakeContainers:
    def __init__(self, engine: "FakeDockerClient"):
        self.engine = engine

    def run(self, **options):
        engine = self.engine
        assert options.pop("detach", False), "containers must be started detached"
        engine.runs.append(options)
        if engine.run_error:
            raise engine.run_error

        workspace = workspace_from_options(options)
        engine.workspaces_seen.append(workspace)
        assert workspace.is_dir(), "workspace must exist while the container runs"

        result = engine.on_run(options) if engine.on_run else engine.run_result
        container = FakeContainer(engine, options, result)
        engine.started.append(container)
        return container


class FakeDockerClient:
    """Answers docker SDK calls without touching a real engine.

    Calls arrive on executor threads, exactly like the real client's.
    """

    def __init__(
        self,
        version_error: Optional[Exception] = None,
        image_present: bool = True,
        pull_error: Optional[Exception] = None,
        pull_delay: float = 0.01,
        run_result: RunResult = (0, "", ""),
        run_error: Optional[Exception] = None,
        on_run: Optional[RunHandler] = None,
        wait_times_out: bool = False,
        hang: bool = False,
    ):
        self.version_error = version_error
        self.image_present = image_present
        self.pull_error = pull_error
        self.pull_delay = pull_delay
        self.run_result = run_result
        self.run_error = run_error
        self.on_run = on_run
        self.wait_times_out = wait_times_out
        self.hang = hang

        self.images = FakeImages(self)
        self.containers = FakeContainers(self)
        self.pulls: list[str] = []
        self.runs: list[dict[str, Any]] = []
        self.started: list[FakeContainer] = []
        self.workspaces_seen: list[Path] = []
        self.wait_timeouts: list[Optional[float]] = []
        self.removed: list[str] = []
        self.version_calls = 0
        self.closed = False

    def version(self):
        self.version_calls += 1
        if self.version_error:
            raise self.version_error
        return {"Version": "5.0.0", "ApiVersion": "1.41"}

    def close(self):
        self.closed = True


@pytest.fixture
def config(tmp_path) -> RelayConfig:
    return RelayConfig(workspace_root=str(tmp_path))


@pytest.fixture
def engine() -> FakeDockerClient:
    return FakeDockerClient()


@pytest.fixture
def gateway(config, engine) -> ContainerGateway:
    return ContainerGateway(config, client=engine)


@pytest.fixture
def manager(config, gateway) -> ExecutionSessionManager:
    return ExecutionSessionManager(config, gateway=gateway)
