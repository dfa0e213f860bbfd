# playbox - a sandbox for your playground
"""
playbox - Execution relay for a browser-based language playground.

Runs untrusted snippets in short-lived, network-isolated containers and
returns their captured output.
"""

from playbox.config import RelayConfig
from playbox.errors import (
    EngineUnavailable,
    ExecutionFailed,
    ExecutionTimeout,
    ImagePullFailed,
    PlayboxError,
    SpawnFailed,
    SubmissionInvalid,
)
from playbox.gateway import ContainerGateway
from playbox.models import EngineStatus, ExecResult, Submission
from playbox.session_manager import ExecutionSessionManager, Session

__all__ = [
    "ContainerGateway",
    "ExecutionSessionManager",
    "Session",
    "RelayConfig",
    "Submission",
    "ExecResult",
    "EngineStatus",
    "PlayboxError",
    "SubmissionInvalid",
    "EngineUnavailable",
    "ImagePullFailed",
    "ExecutionTimeout",
    "SpawnFailed",
    "ExecutionFailed",
]

__version__ = "0.1.0"
