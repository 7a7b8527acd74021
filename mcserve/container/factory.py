import os

import structlog

from .base import BaseContainerBackend
from .client import ContainerClient
from .connector import connect_socket
from .errors import ContainerError, NoRuntimeAvailable
from .models import RuntimeConfig, RuntimeInfo, RuntimeKind

LOG = structlog.get_logger()

PODMAN_ROOTFUL_SOCKET = "/run/podman/podman.sock"
DOCKER_SOCKET = "/var/run/docker.sock"


def podman_rootless_socket(uid: int | None = None) -> str:
    if uid is None:
        uid = os.getuid()
    return f"/run/user/{uid}/podman/podman.sock"


def candidate_sockets(runtime: RuntimeKind) -> list[tuple[RuntimeKind, str]]:
    """Sockets to try for a runtime preference, most preferred first.

    Rootless Podman is preferred over rootful Podman, and Podman over Docker.
    """
    podman = [
        (RuntimeKind.PODMAN, podman_rootless_socket()),
        (RuntimeKind.PODMAN, PODMAN_ROOTFUL_SOCKET),
    ]
    docker = [(RuntimeKind.DOCKER, DOCKER_SOCKET)]

    if runtime == RuntimeKind.PODMAN:
        return podman
    if runtime == RuntimeKind.DOCKER:
        return docker
    return podman + docker


def detect_runtime(runtime: RuntimeKind, timeout: float) -> tuple[BaseContainerBackend, RuntimeInfo]:
    """Connect to the first candidate socket that validates.

    Individual failures are only logged; if nothing connects the caller gets a single
    NoRuntimeAvailable with installation guidance.
    """
    LOG.debug("Auto-detecting container runtime", preference=runtime.value)
    for kind, socket_path in candidate_sockets(runtime):
        LOG.debug("Trying container runtime socket", runtime=kind.value, socket=socket_path)
        try:
            return connect_socket(kind, socket_path, timeout)
        except ContainerError as e:
            LOG.debug("Container runtime socket unavailable", runtime=kind.value, socket=socket_path, error=str(e))

    raise NoRuntimeAvailable(runtime=None if runtime == RuntimeKind.AUTO else runtime.value)


def create_client(config: RuntimeConfig | None = None) -> ContainerClient:
    """Build a connected ContainerClient.

    Runtime selection:
        1. An explicit ``socket_path`` is used as-is. Failure is final; there is no fallback.
        2. ``podman`` tries the rootless socket, then the rootful one.
        3. ``docker`` tries the Docker socket.
        4. ``auto`` tries all of the above in that order.

    Args:
        config: Connection settings. Defaults to ``RuntimeConfig.from_settings()``.

    Returns:
        A connected client. Close it when done, or use it as a context manager.

    Raises:
        NoRuntimeAvailable: If detection found no usable socket.
        SocketNotFound, PermissionDenied, DaemonNotRunning, APIVersionMismatch:
            If an explicit socket could not be used.
    """
    if config is None:
        config = RuntimeConfig.from_settings()

    LOG.info(
        "Initializing container client",
        runtime=config.runtime.value,
        socket=config.socket_path,
        timeout=config.timeout,
    )

    if config.socket_path:
        backend, info = connect_socket(config.runtime, config.socket_path, config.timeout)
    else:
        backend, info = detect_runtime(config.runtime, config.timeout)

    return ContainerClient(backend, info, timeout=config.timeout)
