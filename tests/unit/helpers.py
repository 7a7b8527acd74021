"""Fakes shared by the container client tests."""

import threading

from mcserve.container import (
    BaseContainerBackend,
    ContainerState,
    ListOptions,
    RemoveOptions,
    RuntimeInfo,
    RuntimeKind,
    WaitCondition,
)
from mcserve.container.translator import ResolvedSpec

ROOTLESS_SOCKET = "/run/user/1000/podman/podman.sock"


class FakeAPIError(Exception):
    pass


class FakeBackend(BaseContainerBackend):
    """In-memory backend that records every call made through it."""

    api_errors = (FakeAPIError, OSError)
    kind = RuntimeKind.PODMAN

    def __init__(self, socket_path: str = ROOTLESS_SOCKET, timeout: float = 30.0) -> None:
        super().__init__(socket_path, timeout)
        self.calls: list[tuple] = []
        self.existing: set[str] = set()
        self.failures: dict[str, BaseException] = {}
        self.blockers: dict[str, threading.Event] = {}
        # successive statuses returned by inspect; the last one repeats
        self.statuses: list[str] = ["running"]
        self.containers: list[ContainerState] = []
        self.close_count = 0

    def _record(self, name: str, *args: object) -> None:
        self.calls.append((name, *args))
        blocker = self.blockers.get(name)
        if blocker is not None:
            blocker.wait(5)
        if name in self.failures:
            raise self.failures[name]

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    @property
    def runtime_type(self) -> RuntimeKind:
        return self.kind

    @property
    def display_name(self) -> str:
        return "Fake"

    def handshake(self) -> None:
        self._record("handshake")

    def info(self) -> RuntimeInfo:
        self._record("info")
        return make_info(self.kind.value, self.socket_path)

    def container_exists(self, name: str) -> bool:
        self._record("container_exists", name)
        return name in self.existing

    def create_container(self, resolved: ResolvedSpec) -> str:
        self._record("create_container", resolved)
        self.existing.add(resolved.name)
        return f"id-{resolved.name}"

    def start_container(self, container_id: str) -> None:
        self._record("start_container", container_id)

    def stop_container(
        self, container_id: str, timeout: int | None = None, transport_timeout: float | None = None
    ) -> None:
        self._record("stop_container", container_id, timeout, transport_timeout)

    def restart_container(
        self, container_id: str, timeout: int | None = None, transport_timeout: float | None = None
    ) -> None:
        self._record("restart_container", container_id, timeout, transport_timeout)

    def remove_container(self, container_id: str, options: RemoveOptions) -> None:
        self._record("remove_container", container_id, options)

    def inspect_container(self, container_id: str) -> ContainerState:
        self._record("inspect_container", container_id)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return ContainerState(id=container_id, name=container_id, status=status)

    def list_containers(self, options: ListOptions) -> list[ContainerState]:
        self._record("list_containers", options)
        return list(self.containers)

    def wait_container(self, container_id: str, condition: WaitCondition) -> None:
        self._record("wait_container", container_id, condition)

    def close(self) -> None:
        self.close_count += 1


def make_info(runtime: str = "podman", socket_path: str = ROOTLESS_SOCKET) -> RuntimeInfo:
    return RuntimeInfo(
        runtime=runtime,
        version="5.2.1",
        api_version="5.2.1",
        rootless=socket_path.startswith("/run/user/"),
        socket_path=socket_path,
        os="linux",
        arch="amd64",
    )


