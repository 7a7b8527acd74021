"""Open and validate a connection to one runtime socket.

The order matters: a cheap stat and dial-and-close probe run before the backend
library's handshake, so a socket we are not allowed to open is diagnosed without
spending the whole connection timeout.
"""

import os
import socket

import structlog

from .base import BaseContainerBackend
from .docker import DockerBackend
from .errors import (
    DaemonNotRunning,
    PermissionDenied,
    RuntimeConnectionError,
    SocketNotFound,
    classify_connect_failure,
)
from .models import RuntimeInfo, RuntimeKind
from .podman import PodmanBackend

LOG = structlog.get_logger()

PROBE_TIMEOUT = 1.0  # seconds

BACKENDS: dict[RuntimeKind, type[BaseContainerBackend]] = {
    RuntimeKind.PODMAN: PodmanBackend,
    RuntimeKind.DOCKER: DockerBackend,
}


def resolve_backend_kind(runtime: RuntimeKind, socket_path: str) -> RuntimeKind:
    """Pick the backend for a socket. ``auto`` with an explicit socket guesses from its file name."""
    if runtime != RuntimeKind.AUTO:
        return runtime
    if "docker" in os.path.basename(socket_path):
        return RuntimeKind.DOCKER
    return RuntimeKind.PODMAN


def probe_socket(runtime: str, socket_path: str, timeout: float = PROBE_TIMEOUT) -> None:
    """Dial the socket and hang up, to surface permission problems before the handshake."""
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    try:
        sock.connect(socket_path)
    except PermissionError as e:
        raise PermissionDenied(str(e), runtime=runtime, socket_path=socket_path) from e
    except (ConnectionRefusedError, TimeoutError) as e:
        raise DaemonNotRunning(str(e), runtime=runtime, socket_path=socket_path) from e
    except OSError as e:
        raise RuntimeConnectionError(str(e), runtime=runtime, socket_path=socket_path) from e
    finally:
        sock.close()


def connect_socket(
    runtime: RuntimeKind, socket_path: str, timeout: float
) -> tuple[BaseContainerBackend, RuntimeInfo]:
    """Connect to exactly one socket and confirm the daemon answers.

    Raises SocketNotFound, PermissionDenied, DaemonNotRunning, APIVersionMismatch or
    RuntimeConnectionError, each carrying the runtime name and socket path.
    """
    kind = resolve_backend_kind(runtime, socket_path)
    name = kind.value

    if not os.path.exists(socket_path):
        raise SocketNotFound(runtime=name, socket_path=socket_path)

    probe_socket(name, socket_path, timeout=min(PROBE_TIMEOUT, timeout))

    backend = BACKENDS[kind](socket_path, timeout)
    try:
        backend.handshake()
    except backend.api_errors as e:
        backend.close()
        raise classify_connect_failure(e, runtime=name, socket_path=socket_path) from e

    try:
        info = backend.info()
    except backend.api_errors as e:
        backend.close()
        raise RuntimeConnectionError(
            f"connection test failed: {e}", runtime=name, socket_path=socket_path
        ) from e

    LOG.info("Connected to container runtime", runtime=name, socket=socket_path, version=info.version)
    return backend, info
