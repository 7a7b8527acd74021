from typing import Any

import docker
import requests
import structlog
from docker.errors import DockerException, NotFound

from .base import BaseContainerBackend
from .errors import RuntimeConnectionError
from .models import ContainerState, ListOptions, RemoveOptions, RuntimeInfo, RuntimeKind, WaitCondition
from .translator import ResolvedSpec, build_docker_config, parse_created, state_from_inspect

LOG = structlog.get_logger()

# the Engine API's own default grace period
DEFAULT_STOP_TIMEOUT = 10  # seconds


class DockerBackend(BaseContainerBackend):
    """Docker backend talking to the Engine API through docker-py's low-level APIClient."""

    api_errors = (DockerException, requests.exceptions.RequestException, OSError)

    def __init__(self, socket_path: str, timeout: float) -> None:
        super().__init__(socket_path, timeout)
        self._client: docker.DockerClient | None = None

    @property
    def runtime_type(self) -> RuntimeKind:
        return RuntimeKind.DOCKER

    @property
    def display_name(self) -> str:
        return "Docker"

    @property
    def api(self) -> docker.APIClient:
        if self._client is None:
            raise RuntimeConnectionError("not connected", runtime="docker", socket_path=self.socket_path)
        return self._client.api

    def handshake(self) -> None:
        # docker-py negotiates the API version while constructing the client
        self._client = docker.DockerClient(base_url=f"unix://{self.socket_path}", timeout=self.timeout)
        LOG.debug("Docker handshake complete", api_version=self._client.api.api_version, socket=self.socket_path)

    def info(self) -> RuntimeInfo:
        data = self.api.info()
        security_options = data.get("SecurityOptions") or []
        return RuntimeInfo(
            runtime=RuntimeKind.DOCKER.value,
            version=data.get("ServerVersion", ""),
            api_version=self.api.api_version,
            rootless=any("rootless" in option for option in security_options),
            socket_path=self.socket_path,
            os=data.get("OSType", ""),
            arch=data.get("Architecture", ""),
        )

    def container_exists(self, name: str) -> bool:
        try:
            self.api.inspect_container(name)
        except NotFound:
            return False
        return True

    def create_container(self, resolved: ResolvedSpec) -> str:
        config = build_docker_config(resolved)
        host_config = self.api.create_host_config(**config.host_config_kwargs)
        result = self.api.create_container(host_config=host_config, **config.create_kwargs)
        for warning in result.get("Warnings") or []:
            LOG.warning("Docker create warning", name=resolved.name, warning=warning)
        return result["Id"]

    def start_container(self, container_id: str) -> None:
        self.api.start(container_id)

    def stop_container(
        self, container_id: str, timeout: int | None = None, transport_timeout: float | None = None
    ) -> None:
        # docker-py widens its own request timeout by the grace period, so the
        # caller's transport budget is enforced by the operation context instead
        if timeout is None:
            self.api.stop(container_id)
        else:
            self.api.stop(container_id, timeout=timeout)

    def restart_container(
        self, container_id: str, timeout: int | None = None, transport_timeout: float | None = None
    ) -> None:
        self.api.restart(container_id, timeout=DEFAULT_STOP_TIMEOUT if timeout is None else timeout)

    def remove_container(self, container_id: str, options: RemoveOptions) -> None:
        self.api.remove_container(container_id, v=options.remove_volumes, force=options.force)

    def inspect_container(self, container_id: str) -> ContainerState:
        return state_from_inspect(self.api.inspect_container(container_id))

    def list_containers(self, options: ListOptions) -> list[ContainerState]:
        entries = self.api.containers(
            all=options.all,
            limit=options.limit if options.limit > 0 else -1,
            filters=dict(options.filters) or None,
        )
        return [_state_from_list_entry(entry) for entry in entries]

    def wait_container(self, container_id: str, condition: WaitCondition) -> None:
        self.api.wait(container_id, timeout=self.timeout, condition=condition.value)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def _state_from_list_entry(entry: dict[str, Any]) -> ContainerState:
    ports: dict[int, int] = {}
    for port in entry.get("Ports") or []:
        try:
            host_port = int(port.get("PublicPort") or 0)
            container_port = int(port.get("PrivatePort") or 0)
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
