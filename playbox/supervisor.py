"""Supervision of one detached container from start to removal."""

import asyncio
import logging
from typing import Any

from docker.errors import APIError, DockerException, NotFound
from docker.models.containers import Container
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import ReadTimeout, RequestException

from playbox.models import RunOutcome

logger = logging.getLogger(__name__)

# Errors raised by the docker SDK when the engine rejects a call or its
# socket cannot be reached
ENGINE_ERRORS = (DockerException, RequestException)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class ContainerSupervisor:
    """Starts a container, waits for it with a hard limit, and removes it.

    Every run ends in exactly one of three outcomes: the container exited
    with a status, the limit elapsed and it was killed, or it never
    started. Once started, the container is force-removed on every path,
    including cancellation of the awaiting task.
    """

    async def run(self, client, options: dict[str, Any], timeout: float) -> RunOutcome:
        loop = asyncio.get_event_loop()
        name = options.get("name", "container")

        try:
            container = await loop.run_in_executor(
                None, lambda: client.containers.run(detach=True, **options)
            )
        except ENGINE_ERRORS as e:
            return RunOutcome.spawn_failed(str(e))

        try:
            try:
                status = await loop.run_in_executor(
                    None, lambda: container.wait(timeout=timeout)
                )
            except (ReadTimeout, RequestsConnectionError):
                logger.warning(f"Container {name} exceeded {timeout}s, killing")
                await loop.run_in_executor(None, lambda: self._kill(container))
                stdout, stderr = await self._logs(container)
                return RunOutcome.timed_out(stdout, stderr)
            except ENGINE_ERRORS as e:
                return RunOutcome.spawn_failed(f"wait failed: {e}")

            stdout, stderr = await self._logs(container)
            return RunOutcome.exited(status.get("StatusCode"), stdout, stderr)
        finally:
            # Shielded so a cancelled caller still gets its container removed
            await asyncio.shield(
                loop.run_in_executor(None, lambda: self._remove(container, name))
            )

    async def _logs(self, container: Container) -> tuple[str, str]:
        loop = asyncio.get_event_loop()
        try:
            stdout = await loop.run_in_executor(
                None, lambda: container.logs(stdout=True, stderr=False)
            )
            stderr = await loop.run_in_executor(
                None, lambda: container.logs(stdout=False, stderr=True)
            )
        except ENGINE_ERRORS as e:
            logger.warning(f"Could not read logs of container {container.name}: {e}")
            return "", ""
        return _decode(stdout), _decode(stderr)

    @staticmethod
    def _kill(container: Container) -> None:
        try:
            container.kill()
        except NotFound:
            pass
        except APIError as e:
            # Already stopped between the wait timeout and the kill
            logger.debug(f"Kill of container {container.name} failed: {e}")

    @staticmethod
    def _remove(container: Container, name: str) -> None:
        try:
            container.remove(force=True)
        except NotFound:
            logger.debug(f"Container {name} already gone")
        except ENGINE_ERRORS as e:
            logger.error(f"Failed to remove container {name}: {e}")
