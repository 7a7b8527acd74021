"""Data models for the container runtime client."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from mcserve.config import settings
from mcserve.container.errors import InvalidCondition, InvalidRuntime

DEFAULT_TIMEOUT = 30.0  # seconds


class RuntimeKind(StrEnum):
    """Runtime preference accepted by the client factory."""

    PODMAN = "podman"
    DOCKER = "docker"
    AUTO = "auto"

    @classmethod
    def parse(cls, value: "str | RuntimeKind") -> "RuntimeKind":
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidRuntime(str(value)) from None


class ContainerStatus(StrEnum):
    """Well-known container lifecycle states. Runtimes may report others."""

    RUNNING = "running"
    CREATED = "created"
    STOPPED = "stopped"
    EXITED = "exited"
    PAUSED = "paused"
    UNKNOWN = "unknown"


class WaitCondition(StrEnum):
    RUNNING = "running"
    NOT_RUNNING = "not-running"
    REMOVED = "removed"

    @classmethod
    def parse(cls, value: "str | WaitCondition") -> "WaitCondition":
        try:
            return cls(value)
        except ValueError:
            raise InvalidCondition(str(value), valid=[c.value for c in cls]) from None


@dataclass(frozen=True)
class RuntimeConfig:
    """How to reach a container runtime.

    ``socket_path`` skips detection entirely. A ``timeout`` of zero or None falls
    back to the 30 second default.
    """

    runtime: RuntimeKind = RuntimeKind.AUTO
    socket_path: str | None = None
    timeout: float | None = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        object.__setattr__(self, "runtime", RuntimeKind.parse(self.runtime))
        if not self.timeout or self.timeout < 0:
            object.__setattr__(self, "timeout", DEFAULT_TIMEOUT)
        if not self.socket_path:
            object.__setattr__(self, "socket_path", None)

    @classmethod
    def from_settings(cls) -> "RuntimeConfig":
        return cls(
            runtime=RuntimeKind.parse(settings.CONTAINER_RUNTIME),
            socket_path=settings.CONTAINER_SOCKET,
            timeout=settings.CONTAINER_TIMEOUT,
        )


@dataclass(frozen=True)
class RuntimeInfo:
    """Identity of a connected runtime, captured when the connection is validated."""

    runtime: str
    version: str
    api_version: str
    rootless: bool
    socket_path: str
    os: str
    arch: str


@dataclass
class ContainerSpec:
    """Backend-agnostic description of a container to create."""

    name: str
    image: str
    env: dict[str, str] = field(default_factory=dict)
    # host port -> container port
    ports: dict[int, int] = field(default_factory=dict)
    # host path -> container path, optionally suffixed with ":ro" or ":rw"
    volumes: dict[str, str] = field(default_factory=dict)
    memory: str = ""
    cpu_quota: int = 0
    working_dir: str = ""
    command: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class ContainerState:
    """Point-in-time view of a container, always read fresh from the runtime."""

    id: str
    name: str
    status: str = ContainerStatus.UNKNOWN
    status_text: str = ""
    image: str = ""
    ports: dict[int, int] = field(default_factory=dict)
    created: datetime | None = None
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.status == ContainerStatus.RUNNING


@dataclass(frozen=True)
class RemoveOptions:
    force: bool = False
    remove_volumes: bool = False


@dataclass(frozen=True)
class ListOptions:
    all: bool = False
    # 0 means no limit
    limit: int = 0
    filters: dict[str, str] = field(default_factory=dict)
