import json
from typing import Any

import requests
import structlog
from podman import PodmanClient
from podman.errors import APIError, PodmanError

from .base import BaseContainerBackend
from .errors import RuntimeConnectionError
from .models import ContainerState, ListOptions, RemoveOptions, RuntimeInfo, RuntimeKind, WaitCondition
from .translator import ResolvedSpec, build_podman_payload, parse_created, state_from_inspect

LOG = structlog.get_logger()

# libpod has no "not-running" or "removed" state; wait on the states that imply them
_WAIT_STATES: dict[WaitCondition, list[str]] = {
    WaitCondition.NOT_RUNNING: ["stopped", "exited"],
    WaitCondition.REMOVED: ["removing"],
}


class PodmanBackend(BaseContainerBackend):
    """Podman backend talking to the libpod REST API through podman-py."""

    api_errors = (PodmanError, APIError, requests.exceptions.RequestException, OSError)

    def __init__(self, socket_path: str, timeout: float) -> None:
        super().__init__(socket_path, timeout)
        self._client: PodmanClient | None = None

    @property
    def runtime_type(self) -> RuntimeKind:
        return RuntimeKind.PODMAN

    @property
    def display_name(self) -> str:
        return "Podman"

    @property
    def client(self) -> PodmanClient:
        if self._client is None:
            raise RuntimeConnectionError("not connected", runtime="podman", socket_path=self.socket_path)
        return self._client

    def handshake(self) -> None:
        self._client = PodmanClient(base_url=f"unix://{self.socket_path}", timeout=self.timeout)
        version = self._client.version()
        LOG.debug("Podman handshake complete", api_version=version.get("ApiVersion"), socket=self.socket_path)

    def info(self) -> RuntimeInfo:
        data = self.client.info()
        host = data.get("host") or {}
        version = data.get("version") or {}
        return RuntimeInfo(
            runtime=RuntimeKind.PODMAN.value,
            version=version.get("Version", ""),
            api_version=version.get("APIVersion", ""),
            rootless=bool((host.get("security") or {}).get("rootless", False)),
            socket_path=self.socket_path,
            os=host.get("os", ""),
            arch=host.get("arch", ""),
        )

    def container_exists(self, name: str) -> bool:
        response = self.client.api.get(f"/containers/{name}/exists")
        if response.status_code == 404:
            return False
        response.raise_for_status()
        return True

    def create_container(self, resolved: ResolvedSpec) -> str:
        response = self.client.api.post(
            "/containers/create",
            headers={"content-type": "application/json"},
            data=json.dumps(build_podman_payload(resolved)),
        )
        response.raise_for_status()
        return response.json()["Id"]

    def start_container(self, container_id: str) -> None:
        response = self.client.api.post(f"/containers/{container_id}/start")
        response.raise_for_status()

    def stop_container(
        self, container_id: str, timeout: int | None = None, transport_timeout: float | None = None
    ) -> None:
        params = {"timeout": timeout} if timeout is not None else None
        response = self.client.api.post(
            f"/containers/{container_id}/stop",
            params=params,
            timeout=transport_timeout or self.timeout,
        )
        response.raise_for_status()

    def restart_container(
        self, container_id: str, timeout: int | None = None, transport_timeout: float | None = None
    ) -> None:
        params = {"t": timeout} if timeout is not None else None
        response = self.client.api.post(
            f"/containers/{container_id}/restart",
            params=params,
            timeout=transport_timeout or self.timeout,
        )
        response.raise_for_status()

    def remove_container(self, container_id: str, options: RemoveOptions) -> None:
        response = self.client.api.delete(
            f"/containers/{container_id}",
            params={"force": options.force, "v": options.remove_volumes},
        )
        response.raise_for_status()

    def inspect_container(self, container_id: str) -> ContainerState:
        response = self.client.api.get(f"/containers/{container_id}/json")
        response.raise_for_status()
        return state_from_inspect(response.json())

    def list_containers(self, options: ListOptions) -> list[ContainerState]:
        params: dict[str, Any] = {"all": options.all}
        if options.limit > 0:
            params["limit"] = options.limit
        if options.filters:
            params["filters"] = json.dumps({key: [value] for key, value in options.filters.items()})
        response = self.client.api.get("/containers/json", params=params)
        response.raise_for_status()
        return [_state_from_list_entry(entry) for entry in response.json() or []]

    def wait_container(self, container_id: str, condition: WaitCondition) -> None:
        response = self.client.api.post(
            f"/containers/{container_id}/wait",
            params={"condition": _WAIT_STATES[condition]},
            timeout=self.timeout,
        )
        response.raise_for_status()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def _state_from_list_entry(entry: dict[str, Any]) -> ContainerState:
    ports: dict[int, int] = {}
    for port in entry.get("Ports") or []:
        try:
            host_port = int(port.get("host_port") or 0)
            container_port = int(port.get("container_port") or 0)
        except (TypeError, ValueError, AttributeError):
            continue
        if host_port > 0 and container_port > 0:
            ports[host_port] = container_port

    names = entry.get("Names") or []
    status = (entry.get("State") or "unknown").lower()
    return ContainerState(
        id=entry.get("Id", ""),
        name=names[0].lstrip("/") if names else "",
        status=status,
        status_text=entry.get("Status") or status,
        image=entry.get("Image", ""),
        ports=ports,
        created=parse_created(entry.get("Created")),
        labels=entry.get("Labels") or {},
    )
