from typing import Iterable

from mcserve.container import messages
from mcserve.exceptions import MCServeException


class ContainerError(MCServeException):
    """Base for every failure raised by the container client.

    The runtime name and socket path are attached where they are known, so the
    rendered message always says which runtime and socket produced the failure.
    """

    default_message = "container runtime error"

    def __init__(
        self,
        detail: str | None = None,
        *,
        runtime: str | None = None,
        socket_path: str | None = None,
    ) -> None:
        self.detail = detail
        self.runtime = runtime
        self.socket_path = socket_path
        super().__init__(self._render())

    def _render(self) -> str:
        message = self.default_message
        if self.detail:
            message = f"{message}: {self.detail}"
        if self.runtime:
            message = f"{self.runtime}: {message}"
        if self.socket_path:
            message = f"{message} (socket: {self.socket_path})"
        return message

    def with_context(self, runtime: str | None, socket_path: str | None) -> "ContainerError":
        """Fill in the runtime and socket if the raiser did not know them."""
        self.runtime = self.runtime or runtime
        self.socket_path = self.socket_path or socket_path
        self.message = self._render()
        self.args = (self.message,)
        return self

    @property
    def remediation(self) -> str | None:
        return None


class ContainerRuntimeError(ContainerError):
    """A member of the closed sentinel set callers branch on."""


class DaemonNotRunning(ContainerRuntimeError):
    default_message = "container daemon is not running"

    @property
    def remediation(self) -> str:
        return messages.daemon_not_running_message(self.runtime, self.socket_path)


class SocketNotFound(ContainerRuntimeError):
    default_message = "container socket not found"

    @property
    def remediation(self) -> str:
        return messages.socket_not_found_message(self.runtime, self.socket_path)


class APIVersionMismatch(ContainerRuntimeError):
    default_message = "API version not supported"

    @property
    def remediation(self) -> str:
        return messages.api_version_message(self.runtime)


class PermissionDenied(ContainerRuntimeError):
    default_message = "permission denied accessing socket"

    @property
    def remediation(self) -> str:
        return messages.permission_denied_message(self.runtime, self.socket_path)


class NoRuntimeAvailable(ContainerRuntimeError):
    default_message = "no container runtime available"

    @property
    def remediation(self) -> str:
        return messages.no_runtime_message()


class ContainerNotFound(ContainerRuntimeError):
    default_message = "container not found"

    def __init__(self, container_id: str | None = None, **kwargs: str | None) -> None:
        self.container_id = container_id
        super().__init__(container_id, **kwargs)

    @property
    def remediation(self) -> str:
        return messages.container_not_found_message(self.container_id)


class ContainerAlreadyExists(ContainerRuntimeError):
    default_message = "container already exists"

    def __init__(self, name: str | None = None, **kwargs: str | None) -> None:
        self.name = name
        super().__init__(name, **kwargs)

    @property
    def remediation(self) -> str:
        return messages.container_already_exists_message(self.name)


class InvalidMemoryFormat(ContainerRuntimeError):
    default_message = "invalid memory format"

    def __init__(self, value: str | None = None, **kwargs: str | None) -> None:
        self.value = value
        super().__init__(value, **kwargs)

    @property
    def remediation(self) -> str:
        return messages.invalid_memory_message(self.value)


class InvalidCondition(ContainerRuntimeError):
    default_message = "invalid wait condition"

    def __init__(self, condition: str | None = None, valid: Iterable[str] = (), **kwargs: str | None) -> None:
        self.condition = condition
        self.valid = list(valid)
        detail = condition
        if self.valid:
            detail = f"{condition} (must be one of: {', '.join(self.valid)})"
        super().__init__(detail, **kwargs)


class InvalidRuntime(ContainerError):
    default_message = "invalid runtime"

    def __init__(self, runtime_value: str) -> None:
        super().__init__(f"{runtime_value!r} (must be podman, docker, or auto)")


class InvalidPort(ContainerError):
    default_message = "invalid port"

    def __init__(self, port: int | str, side: str) -> None:
        self.port = port
        self.side = side
        super().__init__(f"{side} port {port}")


class RuntimeConnectionError(ContainerError):
    default_message = "failed to connect"


class ContainerOperationError(ContainerError):
    """A backend failure that did not match any sentinel."""

    def __init__(
        self,
        action: str,
        detail: str | None = None,
        *,
        container_id: str | None = None,
        runtime: str | None = None,
        socket_path: str | None = None,
    ) -> None:
        self.action = action
        self.container_id = container_id
        self.default_message = f"failed to {action} container"
        super().__init__(detail, runtime=runtime, socket_path=socket_path)


class OperationCancelled(ContainerError):
    default_message = "operation cancelled"


class DeadlineExceeded(OperationCancelled):
    default_message = "operation deadline exceeded"


NOT_FOUND_PATTERNS = ("no such container", "no container with name or id")
ALREADY_EXISTS_PATTERNS = ("already in use", "already exists")
PERMISSION_PATTERNS = ("permission denied",)
API_VERSION_PATTERNS = ("api version", "too new", "too old")
DAEMON_DOWN_PATTERNS = ("connection refused", "timed out", "timeout", "connection aborted")


def failure_text(exc: BaseException) -> str:
    """Flatten an exception and its causes into one lowercase string."""
    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        parts.append(str(current))
        explanation = getattr(current, "explanation", None)
        if explanation:
            parts.append(str(explanation))
        current = current.__cause__ or current.__context__
    return " ".join(parts).lower()


def _matches(text: str, patterns: Iterable[str]) -> bool:
    return any(pattern in text for pattern in patterns)


def classify_failure(
    exc: BaseException,
    *,
    action: str,
    container_id: str | None,
    runtime: str,
    socket_path: str,
) -> ContainerError:
    """Convert a backend failure from a lifecycle call into the error callers branch on."""
    text = failure_text(exc)
    if _matches(text, NOT_FOUND_PATTERNS):
        return ContainerNotFound(container_id, runtime=runtime, socket_path=socket_path)
    if action == "create" and _matches(text, ALREADY_EXISTS_PATTERNS):
        return ContainerAlreadyExists(container_id, runtime=runtime, socket_path=socket_path)
    return ContainerOperationError(
        action,
        str(exc),
        container_id=container_id,
        runtime=runtime,
        socket_path=socket_path,
    )


def classify_connect_failure(exc: BaseException, *, runtime: str, socket_path: str) -> ContainerError:
    """Convert a failed handshake with a runtime socket into a connection error."""
    text = failure_text(exc)
    if isinstance(exc, PermissionError) or _matches(text, PERMISSION_PATTERNS):
        return PermissionDenied(str(exc), runtime=runtime, socket_path=socket_path)
    if _matches(text, API_VERSION_PATTERNS):
        return APIVersionMismatch(str(exc), runtime=runtime, socket_path=socket_path)
    if isinstance(exc, (ConnectionRefusedError, TimeoutError)) or _matches(text, DAEMON_DOWN_PATTERNS):
        return DaemonNotRunning(str(exc), runtime=runtime, socket_path=socket_path)
    return RuntimeConnectionError(str(exc), runtime=runtime, socket_path=socket_path)
