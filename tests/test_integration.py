"""Integration tests for playbox.

These tests drive a real container engine and pull the runtime image on
first use. They are skipped unless PLAYBOX_INTEGRATION=1 is set.

Run with:
    PLAYBOX_INTEGRATION=1 DOCKER_HOST=unix:///run/user/$UID/podman/podman.sock \
        pytest tests/test_integration.py -v
"""

import asyncio
import os

import pytest

from playbox.config import RelayConfig
from playbox.models import Submission
from playbox.server import create_app
from playbox.session_manager import ExecutionSessionManager

pytestmark = pytest.mark.skipif(
    os.getenv("PLAYBOX_INTEGRATION") != "1",
    reason="set PLAYBOX_INTEGRATION=1 to run against a real container engine",
)


@pytest.fixture
def config(tmp_path):
    """Environment-driven config with a private workspace root."""
    config = RelayConfig.from_env()
    config.workspace_root = str(tmp_path)
    # First run may include an image pull
    config.pull_timeout = 300.0
    return config


@pytest.fixture
async def manager(config):
    manager = ExecutionSessionManager(config)
    status = await manager.start()
    if not status.available:
        pytest.skip(f"container engine unavailable: {status.error}")
    yield manager
    await manager.stop()


class TestExecution:
    """Real confined runs."""

    async def test_print(self, manager, tmp_path):
        result = await manager.execute(Submission.parse('print("hi")'))
        assert result.success
        assert result.output == "hi\n"
        assert result.stderr == ""
        assert result.exit_code == 0
        assert list(tmp_path.iterdir()) == []

    async def test_concurrent_runs_keep_their_output(self, manager, tmp_path):
        codes = [f'print("run {n}")' for n in range(5)]
        results = await asyncio.gather(
            *(manager.execute(Submission.parse(code)) for code in codes)
        )
        assert [r.output for r in results] == [f"run {n}\n" for n in range(5)]
        assert list(tmp_path.iterdir()) == []


class TestHttp:
    """The HTTP surface wired to a real engine."""

    async def test_execute_endpoint(self, aiohttp_client, config, manager):
        client = await aiohttp_client(create_app(config, manager))
        response = await client.post("/execute", json={"code": 'print("hi")'})
        assert response.status == 200
        assert await response.json() == {
            "success": True,
            "output": "hi\n",
            "stderr": "",
            "exitCode": 0,
        }
