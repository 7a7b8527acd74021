"""Tests for runtime detection and the socket connector."""

from __future__ import annotations

import socket
from pathlib import Path
from types import SimpleNamespace
from typing import Iterator
from unittest.mock import MagicMock

import pytest

from mcserve.container import (
    APIVersionMismatch,
    ContainerClient,
    ContainerError,
    DaemonNotRunning,
    NoRuntimeAvailable,
    PermissionDenied,
    RuntimeConfig,
    RuntimeConnectionError,
    RuntimeKind,
    SocketNotFound,
    candidate_sockets,
    create_client,
)
from mcserve.container import connector, factory
from mcserve.container.models import RuntimeInfo
from tests.unit.helpers import FakeAPIError, FakeBackend, make_info


@pytest.fixture
def uid(monkeypatch: pytest.MonkeyPatch) -> int:
    monkeypatch.setattr(factory.os, "getuid", lambda: 1000)
    return 1000


@pytest.fixture
def listening_socket(tmp_path: Path) -> Iterator[str]:
    path = str(tmp_path / "podman.sock")
    server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    server.bind(path)
    server.listen(1)
    yield path
    server.close()


@pytest.fixture
def dead_socket(tmp_path: Path) -> str:
    # bound but never listening: the file exists and connecting is refused
    path = str(tmp_path / "docker.sock")
    server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    server.bind(path)
    server.close()
    return path


# ---------------------------------------------------------------------------
# detector
# ---------------------------------------------------------------------------


class TestCandidates:
    def test_auto_order(self, uid: int) -> None:
        assert candidate_sockets(RuntimeKind.AUTO) == [
            (RuntimeKind.PODMAN, "/run/user/1000/podman/podman.sock"),
            (RuntimeKind.PODMAN, "/run/podman/podman.sock"),
            (RuntimeKind.DOCKER, "/var/run/docker.sock"),
        ]

    def test_single_runtime(self, uid: int) -> None:
        assert [path for _, path in candidate_sockets(RuntimeKind.PODMAN)] == [
            "/run/user/1000/podman/podman.sock",
            "/run/podman/podman.sock",
        ]
        assert candidate_sockets(RuntimeKind.DOCKER) == [(RuntimeKind.DOCKER, "/var/run/docker.sock")]


class TestDetection:
    def test_first_working_socket_wins(self, uid: int, monkeypatch: pytest.MonkeyPatch) -> None:
        attempts: list[str] = []

        def fake_connect(kind: RuntimeKind, socket_path: str, timeout: float) -> tuple[FakeBackend, RuntimeInfo]:
            attempts.append(socket_path)
            if socket_path.startswith("/run/user/"):
                raise SocketNotFound(runtime=kind.value, socket_path=socket_path)
            return FakeBackend(socket_path, timeout), make_info(kind.value, socket_path)

        monkeypatch.setattr(factory, "connect_socket", fake_connect)

        with create_client(RuntimeConfig()) as client:
            assert isinstance(client, ContainerClient)
            assert client.runtime == "podman"
            assert client.socket_path == "/run/podman/podman.sock"
            assert client.timeout == 30.0
        assert attempts == ["/run/user/1000/podman/podman.sock", "/run/podman/podman.sock"]

    def test_rootless_podman_preferred_when_all_connect(self, uid: int, monkeypatch: pytest.MonkeyPatch) -> None:
        attempts: list[str] = []

        def fake_connect(kind: RuntimeKind, socket_path: str, timeout: float) -> tuple[FakeBackend, RuntimeInfo]:
            attempts.append(socket_path)
            return FakeBackend(socket_path, timeout), make_info(kind.value, socket_path)

        monkeypatch.setattr(factory, "connect_socket", fake_connect)

        with create_client(RuntimeConfig()) as client:
            assert client.runtime == "podman"
            assert client.socket_path == "/run/user/1000/podman/podman.sock"
            assert client.info.rootless is True
        assert attempts == ["/run/user/1000/podman/podman.sock"]

    def test_all_candidates_failing_is_no_runtime(self, uid: int, monkeypatch: pytest.MonkeyPatch) -> None:
        attempts: list[str] = []

        def fake_connect(kind: RuntimeKind, socket_path: str, timeout: float) -> None:
            attempts.append(socket_path)
            raise PermissionDenied(runtime=kind.value, socket_path=socket_path)

        monkeypatch.setattr(factory, "connect_socket", fake_connect)

        with pytest.raises(NoRuntimeAvailable) as exc_info:
            create_client(RuntimeConfig(runtime=RuntimeKind.AUTO))

        assert len(attempts) == 3
        assert "sudo apt install podman" in exc_info.value.remediation

    def test_explicit_runtime_never_tries_the_other(self, uid: int, monkeypatch: pytest.MonkeyPatch) -> None:
        attempts: list[RuntimeKind] = []

        def fake_connect(kind: RuntimeKind, socket_path: str, timeout: float) -> None:
            attempts.append(kind)
            raise DaemonNotRunning(runtime=kind.value, socket_path=socket_path)

        monkeypatch.setattr(factory, "connect_socket", fake_connect)

        with pytest.raises(NoRuntimeAvailable) as exc_info:
            create_client(RuntimeConfig(runtime=RuntimeKind.DOCKER))

        assert attempts == [RuntimeKind.DOCKER]
        assert exc_info.value.runtime == "docker"

    def test_explicit_socket_has_no_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(factory, "detect_runtime", MagicMock(side_effect=AssertionError("detection ran")))
        missing = str(tmp_path / "podman.sock")

        with pytest.raises(SocketNotFound) as exc_info:
            create_client(RuntimeConfig(socket_path=missing))

        assert exc_info.value.socket_path == missing
        assert exc_info.value.runtime == "podman"
        assert missing in str(exc_info.value)

    def test_timeout_defaults_when_unset(self, uid: int, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: list[float] = []

        def fake_connect(kind: RuntimeKind, socket_path: str, timeout: float) -> tuple[FakeBackend, RuntimeInfo]:
            seen.append(timeout)
            return FakeBackend(socket_path, timeout), make_info(kind.value, socket_path)

        monkeypatch.setattr(factory, "connect_socket", fake_connect)

        create_client(RuntimeConfig(timeout=None)).close()
        assert seen == [30.0]


# ---------------------------------------------------------------------------
# connector
# ---------------------------------------------------------------------------


class TestConnector:
    def test_backend_guessed_from_socket_name(self) -> None:
        assert connector.resolve_backend_kind(RuntimeKind.AUTO, "/srv/docker.sock") == RuntimeKind.DOCKER
        assert connector.resolve_backend_kind(RuntimeKind.AUTO, "/tmp/podman.sock") == RuntimeKind.PODMAN
        assert connector.resolve_backend_kind(RuntimeKind.PODMAN, "/var/run/docker.sock") == RuntimeKind.PODMAN

    def test_probe_accepts_listening_socket(self, listening_socket: str) -> None:
        connector.probe_socket("podman", listening_socket)

    def test_probe_refused_is_daemon_not_running(self, dead_socket: str) -> None:
        with pytest.raises(DaemonNotRunning) as exc_info:
            connector.probe_socket("docker", dead_socket)
        assert exc_info.value.socket_path == dead_socket
        assert "sudo systemctl start docker" in exc_info.value.remediation

    def test_probe_permission_denied(self, monkeypatch: pytest.MonkeyPatch) -> None:
        fake_sock = MagicMock()
        fake_sock.connect.side_effect = PermissionError(13, "Permission denied")
        monkeypatch.setattr(
            connector,
            "socket",
            SimpleNamespace(socket=lambda *args: fake_sock, AF_UNIX=socket.AF_UNIX, SOCK_STREAM=socket.SOCK_STREAM),
        )

        with pytest.raises(PermissionDenied) as exc_info:
            connector.probe_socket("podman", "/run/podman/podman.sock")

        assert "sudo usermod -aG podman $USER" in exc_info.value.remediation
        fake_sock.close.assert_called_once()

    def test_connect_validates_with_info(self, listening_socket: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(connector.BACKENDS, RuntimeKind.PODMAN, FakeBackend)

        backend, info = connector.connect_socket(RuntimeKind.AUTO, listening_socket, 5.0)

        assert isinstance(backend, FakeBackend)
        assert backend.call_names() == ["handshake", "info"]
        assert info.socket_path == listening_socket
        assert backend.timeout == 5.0

    @pytest.mark.parametrize(
        ("failure", "expected"),
        [
            (FakeAPIError("permission denied while trying to connect"), PermissionDenied),
            (FakeAPIError("client version 1.40 is too new"), APIVersionMismatch),
            (ConnectionRefusedError(111, "Connection refused"), DaemonNotRunning),
            (FakeAPIError("malformed HTTP response"), RuntimeConnectionError),
        ],
    )
    def test_handshake_failures_are_classified(
        self,
        listening_socket: str,
        monkeypatch: pytest.MonkeyPatch,
        failure: BaseException,
        expected: type[ContainerError],
    ) -> None:
        created: list[FakeBackend] = []

        class BrokenHandshake(FakeBackend):
            def __init__(self, socket_path: str, timeout: float) -> None:
                super().__init__(socket_path, timeout)
                self.failures["handshake"] = failure
                created.append(self)

        monkeypatch.setitem(connector.BACKENDS, RuntimeKind.PODMAN, BrokenHandshake)

        with pytest.raises(expected) as exc_info:
            connector.connect_socket(RuntimeKind.PODMAN, listening_socket, 5.0)

        assert type(exc_info.value) is expected
        assert exc_info.value.runtime == "podman"
        assert created[0].close_count == 1

    def test_failed_ping_is_connection_test_failure(
        self, listening_socket: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        class SilentDaemon(FakeBackend):
            def __init__(self, socket_path: str, timeout: float) -> None:
                super().__init__(socket_path, timeout)
                self.failures["info"] = FakeAPIError("500 Server Error")

        monkeypatch.setitem(connector.BACKENDS, RuntimeKind.PODMAN, SilentDaemon)

        with pytest.raises(RuntimeConnectionError, match="connection test failed"):
            connector.connect_socket(RuntimeKind.PODMAN, listening_socket, 5.0)
