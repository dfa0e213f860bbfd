import asyncio
import logging
import os
import secrets
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from playbox.config import RelayConfig
from playbox.errors import ExecutionFailed
from playbox.gateway import ContainerGateway
from playbox.models import EngineStatus, ExecResult, Submission

logger = logging.getLogger(__name__)

# 8 random bytes, rendered as 16 hex characters
SESSION_ID_BYTES = 8


@dataclass
class Session:
    """Ephemeral context of one execution request."""

    session_id: str
    workspace_path: Path
    code_file_path: Path
    created_at: float = field(default_factory=time.time)


class ExecutionSessionManager:
    """Turns one submission into one isolated, cleaned-up execution.

    Each call gets its own session id, its own workspace directory derived
    from that id, and its own container. The workspace is removed before
    execute() returns or raises, whatever the outcome of the run.
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        gateway: Optional[ContainerGateway] = None,
    ):
        self.config = config or RelayConfig()
        self.gateway = gateway or ContainerGateway(self.config)
        self.sessions: dict[str, Session] = {}
        self._stopped = False

    async def start(self) -> EngineStatus:
        """Probe the container engine. Informational; never raises."""
        self._stopped = False
        status = await self.gateway.probe()
        if status.available:
            logger.info(f"Container engine available: {status.version}")
        else:
            logger.warning(f"Container engine check failed: {status.error}")
            logger.warning(
                "Install Podman and enable its API socket "
                "(systemctl --user enable --now podman.socket), then set DOCKER_HOST"
            )
        return status

    async def stop(self) -> None:
        """Stop accepting executions. In-flight runs are not drained."""
        self._stopped = True
        if self.sessions:
            logger.warning(f"Stopping with {len(self.sessions)} execution(s) in flight")
        await self.gateway.close()
        logger.info("ExecutionSessionManager stopped")

    async def execute(self, submission: Submission) -> ExecResult:
        """Run a validated submission in a fresh confined container.

        Any failure below validation is logged and re-raised as
        ExecutionFailed carrying the underlying message.
        """
        if self._stopped:
            raise ExecutionFailed("Execution relay is shutting down")

        session_id = secrets.token_hex(SESSION_ID_BYTES)
        logger.info(f"Session {session_id}: executing {submission.length} characters")
        try:
            await self.gateway.require_engine()
            await self.gateway.ensure_image()

            session = await self._create_session(session_id, submission)
            try:
                result = await self.gateway.run_confined(
                    str(session.workspace_path), session_id
                )
            finally:
                await self._destroy_session(session)
        except Exception as e:
            logger.error(f"Execution error in session {session_id}: {e}")
            raise ExecutionFailed(str(e), reason=e) from e

        logger.info(
            f"Session {session_id} finished: success={result.success} "
            f"exit_code={result.exit_code}"
        )
        return result

    def list_sessions(self) -> list[dict]:
        """List executions currently in flight."""
        return [
            {
                "session_id": s.session_id,
                "workspace": str(s.workspace_path),
                "container": self.gateway.container_name(s.session_id),
                "created_at": s.created_at,
            }
            for s in self.sessions.values()
        ]

    def workspace_for(self, session_id: str) -> Path:
        return Path(self.config.workspace_root) / f"{self.config.name_prefix}-{session_id}"

    async def _create_session(self, session_id: str, submission: Submission) -> Session:
        workspace = self.workspace_for(session_id)
        session = Session(
            session_id=session_id,
            workspace_path=workspace,
            code_file_path=workspace / self.config.code_filename,
        )
        await asyncio.get_event_loop().run_in_executor(
            None, lambda: self._write_workspace(session, submission.code)
        )
        self.sessions[session_id] = session
        logger.debug(f"Created workspace {workspace} for session {session_id}")
        return session

    @staticmethod
    def _write_workspace(session: Session, code: str) -> None:
        """Create the workspace and write the code file (sync, runs in executor)."""
        # exist_ok=False: a collision must fail rather than share a directory
        session.workspace_path.mkdir(parents=False, exist_ok=False)
        try:
            # Readable by the container's non-root user
            os.chmod(session.workspace_path, 0o755)
            session.code_file_path.write_bytes(code.encode("utf-8"))
            os.chmod(session.code_file_path, 0o644)
        except BaseException:
            shutil.rmtree(session.workspace_path, ignore_errors=True)
            raise

    async def _destroy_session(self, session: Session) -> None:
        """Remove the workspace tree. Failures are logged, never raised."""
        self.sessions.pop(session.session_id, None)
        try:
            await asyncio.get_event_loop().run_in_executor(
                None, lambda: shutil.rmtree(session.workspace_path)
            )
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Cleanup error for session {session.session_id}: {e}")
