import asyncio
import logging
from typing import Any, Optional

import docker
from docker.errors import ImageNotFound

from playbox.config import RelayConfig
from playbox.errors import EngineUnavailable, ExecutionTimeout, ImagePullFailed, SpawnFailed
from playbox.models import EngineStatus, ExecResult, OutcomeKind
from playbox.supervisor import ENGINE_ERRORS, ContainerSupervisor

logger = logging.getLogger(__name__)

# Exit status of coreutils `timeout` when the wrapped command ran out of time
TIMEOUT_EXIT_CODE = 124


class ContainerGateway:
    """Mediates every interaction with the host container engine.

    The engine is driven through its Docker-compatible API (docker, or
    podman's API service). Each container is started with:
    - no network interface
    - a hard memory ceiling and a fractional CPU share
    - no-new-privileges, a read-only root and a writable /tmp tmpfs
    - the session workspace bind-mounted read-only
    - a fixed non-root user
    - an in-container `timeout` around the run command
    and is force-removed once it has been waited for.
    """

    def __init__(
        self,
        config: RelayConfig,
        client: Optional[docker.DockerClient] = None,
        supervisor: Optional[ContainerSupervisor] = None,
    ):
        self.config = config
        self._client = client
        self.supervisor = supervisor or ContainerSupervisor()
        self._pull_locks: dict[str, asyncio.Lock] = {}

    def _connect(self) -> docker.DockerClient:
        timeout = int(self.config.api_timeout)
        if self.config.engine_url:
            return docker.DockerClient(base_url=self.config.engine_url, timeout=timeout)
        return docker.from_env(timeout=timeout)

    async def _get_client(self) -> docker.DockerClient:
        """Get or create the shared engine client."""
        if self._client is None:
            self._client = await asyncio.get_event_loop().run_in_executor(None, self._connect)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await asyncio.get_event_loop().run_in_executor(None, client.close)

    async def probe(self) -> EngineStatus:
        """Ask the engine for its version."""
        try:
            client = await self._get_client()
            info = await asyncio.get_event_loop().run_in_executor(None, client.version)
        except ENGINE_ERRORS as e:
            return EngineStatus(available=False, error=str(e))

        version = info.get("Version", "unknown")
        api_version = info.get("ApiVersion")
        if api_version:
            version = f"{version} (API {api_version})"
        return EngineStatus(available=True, version=version)

    async def require_engine(self) -> EngineStatus:
        """Probe the engine and raise EngineUnavailable if it is not usable."""
        status = await self.probe()
        if not status.available:
            raise EngineUnavailable(f"Container engine not available: {status.error}")
        return status

    async def image_present(self) -> bool:
        client = await self._get_client()
        try:
            await asyncio.get_event_loop().run_in_executor(
                None, lambda: client.images.get(self.config.image)
            )
        except ImageNotFound:
            return False
        except ENGINE_ERRORS as e:
            logger.warning(f"Image lookup for {self.config.image} failed: {e}")
            return False
        return True

    async def ensure_image(self) -> None:
        """Pull the runtime image unless it is already in the local cache.

        Concurrent callers for the same image share one pull.
        """
        image = self.config.image
        lock = self._pull_locks.setdefault(image, asyncio.Lock())
        async with lock:
            if await self.image_present():
                return

            logger.info(f"Pulling {image}...")
            client = await self._get_client()
            timeout = self.config.pull_timeout
            try:
                await asyncio.wait_for(
                    asyncio.get_event_loop().run_in_executor(
                        None, lambda: client.images.pull(image)
                    ),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                raise ImagePullFailed(f"Failed to pull image: timed out after {timeout}s")
            except ENGINE_ERRORS as e:
                raise ImagePullFailed(f"Failed to pull image: {e}") from e
            logger.info(f"Pulled {image}")

    def container_name(self, session_id: str) -> str:
        return f"{self.config.name_prefix}-exec-{session_id}"

    def run_options(self, workspace: str, session_id: str) -> dict[str, Any]:
        """Keyword arguments for containers.run() for one confined run."""
        config = self.config
        return {
            "image": config.image,
            "command": [
                "timeout", f"{config.inner_timeout}s",
                *config.runtime_command,
                config.code_filename,
            ],
            "name": self.container_name(session_id),
            "network_mode": "none",
            "mem_limit": config.memory_limit,
            "nano_cpus": config.nano_cpus,
            "security_opt": ["no-new-privileges"],
            "read_only": True,
            "tmpfs": {"/tmp": ""},
            "volumes": {workspace: {"bind": config.mount_path, "mode": "ro"}},
            "working_dir": config.mount_path,
            "user": config.user,
            "labels": {"playbox.session": session_id},
        }

    async def run_confined(self, workspace: str, session_id: str) -> ExecResult:
        """Run the workspace's code file in a fresh confined container.

        A non-zero exit is reported in the result, not raised. Raises
        SpawnFailed when the container cannot be started and
        ExecutionTimeout when either the inner or the outer time limit is
        hit.
        """
        name = self.container_name(session_id)
        timeout_message = f"Execution timeout ({self.config.inner_timeout} seconds)"

        try:
            client = await self._get_client()
        except ENGINE_ERRORS as e:
            raise SpawnFailed(f"Container engine execution failed: {e}") from e

        outcome = await self.supervisor.run(
            client,
            self.run_options(workspace, session_id),
            self.config.outer_timeout,
        )

        if outcome.kind == OutcomeKind.SPAWN_FAILED:
            raise SpawnFailed(f"Container engine execution failed: {outcome.error}")

        if outcome.kind == OutcomeKind.TIMED_OUT:
            raise ExecutionTimeout(timeout_message)

        if outcome.exit_code == TIMEOUT_EXIT_CODE:
            logger.warning(f"Container {name} hit the {self.config.inner_timeout}s run limit")
            raise ExecutionTimeout(timeout_message)

        return ExecResult.from_exit(outcome.exit_code, outcome.stdout, outcome.stderr)
