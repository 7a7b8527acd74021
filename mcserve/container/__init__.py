from .base import BaseContainerBackend
from .client import ContainerClient, restart_transport_timeout, stop_transport_timeout
from .context import OperationContext
from .docker import DockerBackend
from .errors import (
    APIVersionMismatch,
    ContainerAlreadyExists,
    ContainerError,
    ContainerNotFound,
    ContainerOperationError,
    ContainerRuntimeError,
    DaemonNotRunning,
    DeadlineExceeded,
    InvalidCondition,
    InvalidMemoryFormat,
    InvalidPort,
    InvalidRuntime,
    NoRuntimeAvailable,
    OperationCancelled,
    PermissionDenied,
    RuntimeConnectionError,
    SocketNotFound,
)
from .factory import candidate_sockets, create_client
from .models import (
    ContainerSpec,
    ContainerState,
    ContainerStatus,
    ListOptions,
    RemoveOptions,
    RuntimeConfig,
    RuntimeInfo,
    RuntimeKind,
    WaitCondition,
)
from .podman import PodmanBackend
from .translator import parse_memory, parse_port_mapping

__all__ = [
    "APIVersionMismatch",
    "BaseContainerBackend",
    "ContainerAlreadyExists",
    "ContainerClient",
    "ContainerError",
    "ContainerNotFound",
    "ContainerOperationError",
    "ContainerRuntimeError",
    "ContainerSpec",
    "ContainerState",
    "ContainerStatus",
    "DaemonNotRunning",
    "DeadlineExceeded",
    "DockerBackend",
    "InvalidCondition",
    "InvalidMemoryFormat",
    "InvalidPort",
    "InvalidRuntime",
    "ListOptions",
    "NoRuntimeAvailable",
    "OperationCancelled",
    "OperationContext",
    "PermissionDenied",
    "PodmanBackend",
    "RemoveOptions",
    "RuntimeConfig",
    "RuntimeConnectionError",
    "RuntimeInfo",
    "RuntimeKind",
    "SocketNotFound",
    "WaitCondition",
    "candidate_sockets",
    "create_client",
    "parse_memory",
    "parse_port_mapping",
    "stop_transport_timeout",
    "restart_transport_timeout",
]
