from abc import ABC, abstractmethod

from .models import ContainerState, ListOptions, RemoveOptions, RuntimeInfo, RuntimeKind, WaitCondition
from .translator import ResolvedSpec


class BaseContainerBackend(ABC):
    """One connected runtime socket, speaking that runtime's native API.

    Backends raise their client library's own exceptions; the lifecycle client is
    the boundary that classifies them, using ``api_errors`` to know what to catch.
    """

    api_errors: tuple[type[BaseException], ...] = (OSError,)

    def __init__(self, socket_path: str, timeout: float) -> None:
        self.socket_path = socket_path
        self.timeout = timeout

    @property
    @abstractmethod
    def runtime_type(self) -> RuntimeKind:
        """Return the runtime type identifier."""

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Return a human-readable name for the runtime."""

    @abstractmethod
    def handshake(self) -> None:
        """Open the API connection and negotiate the protocol version."""

    @abstractmethod
    def info(self) -> RuntimeInfo:
        """Fetch daemon information. Also serves as the liveness ping."""

    @abstractmethod
    def container_exists(self, name: str) -> bool:
        """Check if a container exists (running or stopped)."""

    @abstractmethod
    def create_container(self, resolved: ResolvedSpec) -> str:
        """Create a stopped container and return its id."""

    @abstractmethod
    def start_container(self, container_id: str) -> None:
        """Start an existing stopped container."""

    @abstractmethod
    def stop_container(
        self, container_id: str, timeout: int | None = None, transport_timeout: float | None = None
    ) -> None:
        """Stop a running container, giving it ``timeout`` seconds to exit cleanly.

        ``transport_timeout`` bounds the API request itself and is always longer than ``timeout``.
        """

    @abstractmethod
    def restart_container(
        self, container_id: str, timeout: int | None = None, transport_timeout: float | None = None
    ) -> None:
        """Restart a container, giving it ``timeout`` seconds to exit cleanly."""

    @abstractmethod
    def remove_container(self, container_id: str, options: RemoveOptions) -> None:
        """Remove a container."""

    @abstractmethod
    def inspect_container(self, container_id: str) -> ContainerState:
        """Return the current state of one container."""

    @abstractmethod
    def list_containers(self, options: ListOptions) -> list[ContainerState]:
        """Return the containers matching ``options``."""

    @abstractmethod
    def wait_container(self, container_id: str, condition: WaitCondition) -> None:
        """Block on the runtime's native wait until ``condition`` holds."""

    @abstractmethod
    def close(self) -> None:
        """Release the API connection."""
