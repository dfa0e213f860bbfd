"""Relay configuration, read from environment variables."""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_IMAGE = "docker.io/javanhut/carrionlanguage:latest"


def _split(value: str, sep: str = " ") -> list[str]:
    return [part.strip() for part in value.split(sep) if part.strip()]


@dataclass
class RelayConfig:
    """Every tunable of the relay. Defaults are the reference values."""

    host: str = "0.0.0.0"
    port: int = 3001

    # Container engine API and runtime image. engine_url is a Docker API
    # endpoint (podman serves one too); None defers to DOCKER_HOST.
    engine_url: Optional[str] = None
    image: str = DEFAULT_IMAGE
    runtime_command: list[str] = field(default_factory=lambda: ["carrion"])
    code_filename: str = "main.crl"

    # Confinement
    memory_limit: str = "64m"
    cpu_limit: str = "0.5"
    user: str = "1001:1001"
    mount_path: str = "/app"

    # Timeouts (seconds). outer_timeout must exceed inner_timeout to leave
    # room for container startup and teardown.
    inner_timeout: int = 10
    outer_timeout: float = 12.0
    pull_timeout: float = 60.0
    api_timeout: float = 30.0

    # Sessions
    max_code_length: int = 10000
    workspace_root: str = field(default_factory=tempfile.gettempdir)
    name_prefix: str = "carrion"

    # HTTP
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    max_body_size: int = 10 * 1024 * 1024
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Build a config from environment variables, falling back to defaults."""
        defaults = cls()
        command = os.getenv("PLAYGROUND_COMMAND")
        origins = os.getenv("CORS_ORIGINS")
        config = cls(
            host=os.getenv("HOST", defaults.host),
            port=int(os.getenv("PORT", str(defaults.port))),
            engine_url=os.getenv("CONTAINER_ENGINE_URL", defaults.engine_url),
            image=os.getenv("PLAYGROUND_IMAGE", defaults.image),
            runtime_command=_split(command) if command else defaults.runtime_command,
            code_filename=os.getenv("PLAYGROUND_CODE_FILENAME", defaults.code_filename),
            memory_limit=os.getenv("CONTAINER_MEMORY", defaults.memory_limit),
            cpu_limit=os.getenv("CONTAINER_CPUS", defaults.cpu_limit),
            user=os.getenv("CONTAINER_USER", defaults.user),
            mount_path=os.getenv("CONTAINER_WORKDIR", defaults.mount_path),
            inner_timeout=int(os.getenv("EXEC_TIMEOUT", str(defaults.inner_timeout))),
            outer_timeout=float(os.getenv("SUPERVISOR_TIMEOUT", str(defaults.outer_timeout))),
            pull_timeout=float(os.getenv("PULL_TIMEOUT", str(defaults.pull_timeout))),
            api_timeout=float(os.getenv("ENGINE_API_TIMEOUT", str(defaults.api_timeout))),
            max_code_length=int(os.getenv("MAX_CODE_LENGTH", str(defaults.max_code_length))),
            workspace_root=os.getenv("WORKSPACE_ROOT", defaults.workspace_root),
            name_prefix=os.getenv("PLAYGROUND_PREFIX", defaults.name_prefix),
            cors_origins=_split(origins, ",") if origins else defaults.cors_origins,
            max_body_size=int(os.getenv("MAX_BODY_SIZE", str(defaults.max_body_size))),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ValueError on inconsistent settings."""
        if self.inner_timeout <= 0:
            raise ValueError("inner_timeout must be positive")
        if self.outer_timeout <= self.inner_timeout:
            raise ValueError(
                f"outer_timeout ({self.outer_timeout}s) must be greater than "
                f"inner_timeout ({self.inner_timeout}s)"
            )
        if self.pull_timeout <= 0 or self.api_timeout <= 0:
            raise ValueError("pull_timeout and api_timeout must be positive")
        if self.max_code_length < 1:
            raise ValueError("max_code_length must be at least 1")
        if not self.runtime_command:
            raise ValueError("runtime_command must not be empty")
        try:
            cpus = float(self.cpu_limit)
        except ValueError:
            raise ValueError(f"cpu_limit must be a number, got {self.cpu_limit!r}")
        if cpus <= 0:
            raise ValueError("cpu_limit must be positive")

    @property
    def nano_cpus(self) -> int:
        """cpu_limit in the engine API's unit of 1e-9 CPUs."""
        return int(float(self.cpu_limit) * 1_000_000_000)
