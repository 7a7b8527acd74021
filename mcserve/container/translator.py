"""Translate a ContainerSpec into the payloads each runtime's create API expects.

All validation happens in ``translate`` before anything is sent to a runtime, so a
bad port or memory string never costs a round-trip.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from docker.errors import DockerException
from docker.utils import parse_bytes

from mcserve.container.errors import InvalidMemoryFormat, InvalidPort
from mcserve.container.models import ContainerSpec, ContainerState, ContainerStatus

MIN_PORT = 1
MAX_PORT = 65535

_FRACTION_RE = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class PortMapping:
    host_port: int
    container_port: int
    protocol: str = "tcp"
    host_ip: str = "0.0.0.0"


@dataclass(frozen=True)
class VolumeMount:
    source: str
    destination: str
    mode: str = "rw"

    @property
    def read_only(self) -> bool:
        return self.mode == "ro"


@dataclass
class ResolvedSpec:
    """A validated ContainerSpec with every field in its final, runtime-neutral shape."""

    name: str
    image: str
    env: dict[str, str] = field(default_factory=dict)
    ports: list[PortMapping] = field(default_factory=list)
    mounts: list[VolumeMount] = field(default_factory=list)
    memory_bytes: int | None = None
    cpu_quota: int | None = None
    working_dir: str | None = None
    command: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)


def parse_memory(value: str) -> int:
    """Parse a size such as ``2G``, ``512m`` or ``1024`` into bytes (binary multiples).

    The grammar is docker-py's ``parse_bytes``: an optional ``k``/``m``/``g`` unit with an
    optional trailing ``b``, case-insensitive. A bare number is a byte count.
    """
    text = value.strip() if value else ""
    if not text:
        raise InvalidMemoryFormat(value)
    try:
        size = parse_bytes(text)
    except (DockerException, ValueError, OverflowError):
        raise InvalidMemoryFormat(value) from None
    if size <= 0:
        raise InvalidMemoryFormat(value)
    return size


def validate_port(port: int, side: str) -> int:
    if isinstance(port, bool) or not isinstance(port, int) or not MIN_PORT <= port <= MAX_PORT:
        raise InvalidPort(port, side)
    return port


def parse_port_mapping(mapping: str) -> tuple[int, int]:
    """Parse ``"8080:80"`` into (8080, 80), or ``"80"`` into (80, 80)."""
    parts = mapping.split(":")
    if len(parts) == 1:
        port = _to_port(parts[0], "container")
        return port, port
    if len(parts) == 2:
        return _to_port(parts[0], "host"), _to_port(parts[1], "container")
    raise InvalidPort(mapping, "host")


def _to_port(text: str, side: str) -> int:
    try:
        port = int(text.strip())
    except ValueError:
        raise InvalidPort(text, side) from None
    return validate_port(port, side)


def build_port_mappings(ports: dict[int, int]) -> list[PortMapping]:
    mappings = []
    for host_port, container_port in ports.items():
        validate_port(host_port, "host")
        validate_port(container_port, "container")
        mappings.append(PortMapping(host_port=host_port, container_port=container_port))
    return mappings


def parse_volume(host_path: str, container_path: str) -> VolumeMount:
    mode = "rw"
    for suffix in (":ro", ":rw"):
        if container_path.endswith(suffix):
            container_path = container_path[: -len(suffix)]
            mode = suffix[1:]
            break
    return VolumeMount(source=host_path, destination=container_path, mode=mode)


def translate(spec: ContainerSpec) -> ResolvedSpec:
    ports = build_port_mappings(spec.ports)
    mounts = [parse_volume(host, container) for host, container in spec.volumes.items()]
    memory_bytes = parse_memory(spec.memory) if spec.memory else None
    return ResolvedSpec(
        name=spec.name,
        image=spec.image,
        env=dict(spec.env),
        ports=ports,
        mounts=mounts,
        memory_bytes=memory_bytes,
        cpu_quota=spec.cpu_quota if spec.cpu_quota > 0 else None,
        working_dir=spec.working_dir or None,
        command=list(spec.command),
        labels=dict(spec.labels),
    )


def build_podman_payload(resolved: ResolvedSpec) -> dict[str, Any]:
    """Render a libpod SpecGenerator body for ``POST /libpod/containers/create``."""
    payload: dict[str, Any] = {
        "name": resolved.name,
        "image": resolved.image,
    }
    if resolved.command:
        payload["command"] = resolved.command
    if resolved.working_dir:
        payload["work_dir"] = resolved.working_dir
    if resolved.env:
        payload["env"] = resolved.env
    if resolved.labels:
        payload["labels"] = resolved.labels
    if resolved.ports:
        payload["portmappings"] = [
            {
                "host_ip": port.host_ip,
                "host_port": port.host_port,
                "container_port": port.container_port,
                "protocol": port.protocol,
            }
            for port in resolved.ports
        ]
    if resolved.mounts:
        payload["mounts"] = [
            {
                "type": "bind",
                "source": mount.source,
                "destination": mount.destination,
                "options": [mount.mode],
            }
            for mount in resolved.mounts
        ]

    resource_limits: dict[str, Any] = {}
    if resolved.memory_bytes is not None:
        resource_limits["memory"] = {"limit": resolved.memory_bytes}
    if resolved.cpu_quota is not None:
        resource_limits["cpu"] = {"quota": resolved.cpu_quota}
    if resource_limits:
        payload["resource_limits"] = resource_limits
    return payload


@dataclass
class DockerCreateConfig:
    """Arguments for docker-py's ``APIClient.create_container`` and ``create_host_config``."""

    create_kwargs: dict[str, Any]
    host_config_kwargs: dict[str, Any]


def build_docker_config(resolved: ResolvedSpec) -> DockerCreateConfig:
    create_kwargs: dict[str, Any] = {
        "image": resolved.image,
        "name": resolved.name,
    }
    host_config_kwargs: dict[str, Any] = {}

    if resolved.command:
        create_kwargs["command"] = resolved.command
    if resolved.working_dir:
        create_kwargs["working_dir"] = resolved.working_dir
    if resolved.env:
        create_kwargs["environment"] = resolved.env
    if resolved.labels:
        create_kwargs["labels"] = resolved.labels

    if resolved.ports:
        # several host ports may publish the same container port
        bindings: dict[str, list[tuple[str, int]]] = {}
        for port in resolved.ports:
            key = f"{port.container_port}/{port.protocol}"
            bindings.setdefault(key, []).append((port.host_ip, port.host_port))
        create_kwargs["ports"] = list(dict.fromkeys((p.container_port, p.protocol) for p in resolved.ports))
        host_config_kwargs["port_bindings"] = bindings
    if resolved.mounts:
        host_config_kwargs["binds"] = [
            f"{mount.source}:{mount.destination}:{mount.mode}" for mount in resolved.mounts
        ]
    if resolved.memory_bytes is not None:
        host_config_kwargs["mem_limit"] = resolved.memory_bytes
    if resolved.cpu_quota is not None:
        host_config_kwargs["cpu_quota"] = resolved.cpu_quota

    return DockerCreateConfig(create_kwargs=create_kwargs, host_config_kwargs=host_config_kwargs)


def ports_from_network_settings(ports: dict[str, Any] | None) -> dict[int, int]:
    """Rebuild a host -> container port map from inspect ``NetworkSettings.Ports``.

    Entries look like ``{"25565/tcp": [{"HostIp": "0.0.0.0", "HostPort": "25565"}]}``.
    Unbound or malformed entries are skipped.
    """
    result: dict[int, int] = {}
    for port_proto, host_bindings in (ports or {}).items():
        if not host_bindings:
            continue
        try:
            container_port = int(str(port_proto).split("/")[0])
            host_port = int(host_bindings[0].get("HostPort") or "")
        except (ValueError, TypeError, AttributeError, IndexError, KeyError):
            continue
        result[host_port] = container_port
    return result


def parse_created(value: Any) -> datetime | None:
    """Parse a runtime timestamp (RFC 3339 with up to nanosecond precision, or unix seconds)."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # datetime only keeps microseconds
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        created = datetime.fromisoformat(text)
    except ValueError:
        return None
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def state_from_inspect(data: dict[str, Any]) -> ContainerState:
    """Build a ContainerState from a container inspect document (Docker and libpod share its shape)."""
    state = data.get("State") or {}
    config = data.get("Config") or {}
    network = data.get("NetworkSettings") or {}
    status = (state.get("Status") or ContainerStatus.UNKNOWN).lower()
    return ContainerState(
        id=data.get("Id", ""),
        name=(data.get("Name") or "").lstrip("/"),
        status=status,
        status_text=status,
        image=data.get("ImageName") or config.get("Image", ""),
        ports=ports_from_network_settings(network.get("Ports")),
        created=parse_created(data.get("Created")),
        labels=config.get("Labels") or {},
    )
