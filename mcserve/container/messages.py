"""Remediation text for container runtime failures.

Everything here is pure string building keyed on the runtime name and the shape of
the socket path, so it can be rendered next to any error without touching the host.
"""

from enum import StrEnum


class SocketShape(StrEnum):
    ROOTLESS_PODMAN = "rootless-podman"
    ROOTFUL_PODMAN = "rootful-podman"
    DOCKER = "docker"


def socket_shape(runtime: str | None, socket_path: str | None) -> SocketShape:
    if runtime == "docker" or (runtime != "podman" and socket_path and "docker" in socket_path):
        return SocketShape.DOCKER
    if socket_path and socket_path.startswith("/run/user/"):
        return SocketShape.ROOTLESS_PODMAN
    return SocketShape.ROOTFUL_PODMAN


def no_runtime_message() -> str:
    return """No container runtime available.

RECOMMENDED: install rootless Podman.
  Debian/Ubuntu: sudo apt install podman policykit-1
  Fedora/RHEL:   sudo dnf install podman
  Other systems: https://podman.io/getting-started/installation

Then enable and start the Podman socket:
  systemctl --user enable --now podman.socket

Docker is used as a fallback when its socket is reachable:
  sudo systemctl enable --now docker"""


def permission_denied_message(runtime: str | None, socket_path: str | None) -> str:
    shape = socket_shape(runtime, socket_path)
    if shape == SocketShape.ROOTLESS_PODMAN:
        return f"""Permission denied accessing Podman rootless socket at {socket_path}.
This should not happen for rootless Podman. Please check:
  1. Podman is installed: podman --version
  2. Socket is running: systemctl --user status podman.socket
  3. Try restarting: systemctl --user restart podman.socket

If the issue persists, please report a bug."""
    if shape == SocketShape.ROOTFUL_PODMAN:
        return f"""Permission denied accessing Podman rootful socket at {socket_path}.
To use rootful Podman, add your user to the podman group:
  sudo usermod -aG podman $USER

Then log out and log back in for the changes to take effect.

Alternatively, use rootless Podman (recommended):
  systemctl --user enable --now podman.socket"""
    return f"""Permission denied accessing Docker socket at {socket_path}.
To use Docker, add your user to the docker group:
  sudo usermod -aG docker $USER

Then log out and log back in for the changes to take effect.

Note: Rootless Podman is recommended instead of Docker."""


def daemon_not_running_message(runtime: str | None, socket_path: str | None = None) -> str:
    shape = socket_shape(runtime, socket_path)
    if shape == SocketShape.DOCKER:
        return """Docker daemon is not running. Start it with:
  sudo systemctl start docker

To enable automatic startup:
  sudo systemctl enable docker"""
    return """Container daemon is not running. Start it with:
  Podman (rootless): systemctl --user start podman.socket
  Podman (rootful):  sudo systemctl start podman.socket

To enable automatic startup:
  Podman (rootless): systemctl --user enable podman.socket
  Podman (rootful):  sudo systemctl enable podman.socket"""


def socket_not_found_message(runtime: str | None, socket_path: str | None) -> str:
    shape = socket_shape(runtime, socket_path)
    if shape == SocketShape.ROOTLESS_PODMAN:
        return f"""No Podman rootless socket at {socket_path}.
Enable the user socket unit:
  systemctl --user enable --now podman.socket"""
    if shape == SocketShape.ROOTFUL_PODMAN:
        return f"""No Podman rootful socket at {socket_path}.
Enable the system socket unit:
  sudo systemctl enable --now podman.socket"""
    return f"""No Docker socket at {socket_path}.
Check that Docker is installed and running:
  docker --version
  sudo systemctl enable --now docker"""


def api_version_message(runtime: str | None) -> str:
    name = "Docker" if runtime == "docker" else "Podman"
    return f"""The {name} API version reported by the socket is not supported by this client.
Upgrade {name} to a current release, or upgrade mcserve."""


def container_not_found_message(container_id: str | None) -> str:
    return f"""Container {container_id} does not exist on this runtime.
It may have been removed outside of mcserve. List known containers with:
  mcserve ps --all"""


def container_already_exists_message(name: str | None) -> str:
    return f"""A container named {name} already exists.
Remove it first or choose a different server name."""


def invalid_memory_message(value: str | None) -> str:
    return f"""Memory limit {value!r} is not a valid size.
Use a positive number with an optional K, M or G suffix, for example 2G or 512M."""
