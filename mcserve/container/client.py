import threading
from types import TracebackType
from typing import Any, Callable, TypeVar

import structlog

from mcserve.config import settings

from .base import BaseContainerBackend
from .context import OperationContext
from .errors import (
    ContainerAlreadyExists,
    ContainerError,
    OperationCancelled,
    RuntimeConnectionError,
    classify_failure,
)
from .models import (
    ContainerSpec,
    ContainerState,
    ContainerStatus,
    ListOptions,
    RemoveOptions,
    RuntimeInfo,
    WaitCondition,
)
from .translator import translate

LOG = structlog.get_logger()

T = TypeVar("T")

# API request budget on top of the graceful shutdown window
STOP_TRANSPORT_BUFFER = 15.0  # seconds
RESTART_TRANSPORT_BUFFER = 20.0  # seconds, covers stop + start


def stop_transport_timeout(graceful: float) -> float:
    return graceful + STOP_TRANSPORT_BUFFER


def restart_transport_timeout(graceful: float) -> float:
    return graceful + RESTART_TRANSPORT_BUFFER


class ContainerClient:
    """Uniform container lifecycle operations over one connected runtime.

    Instances are built by ``mcserve.container.create_client``. The runtime, socket and
    base timeout are fixed for the life of the client, and nothing else is shared
    between calls, so one client may be used from several threads at once. Container
    state is never cached; every read goes to the runtime.

    Every operation takes an optional ``ctx``. The call runs in a child of that context
    bounded by the operation's timeout, and returns ``OperationCancelled`` as soon as
    the caller cancels it.
    """

    def __init__(
        self,
        backend: BaseContainerBackend,
        info: RuntimeInfo,
        timeout: float,
        *,
        poll_interval: float | None = None,
    ) -> None:
        self._backend = backend
        self._info = info
        self._runtime = backend.runtime_type.value
        self._socket_path = backend.socket_path
        self._timeout = timeout
        self._poll_interval = poll_interval or settings.CONTAINER_WAIT_POLL_INTERVAL
        self._close_lock = threading.Lock()
        self._closed = False

    def __repr__(self) -> str:
        return f"ContainerClient(runtime={self._runtime!r}, socket_path={self._socket_path!r})"

    def __enter__(self) -> "ContainerClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def runtime(self) -> str:
        return self._runtime

    @property
    def display_name(self) -> str:
        return self._backend.display_name

    @property
    def socket_path(self) -> str:
        return self._socket_path

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def info(self) -> RuntimeInfo:
        """Runtime identity captured when the connection was validated."""
        return self._info

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        LOG.debug("Closing container client", runtime=self._runtime, socket=self._socket_path)
        self._backend.close()

    def ping(self, ctx: OperationContext | None = None) -> None:
        self.refresh_info(ctx)

    def refresh_info(self, ctx: OperationContext | None = None) -> RuntimeInfo:
        """Ask the daemon for its current identity."""
        self._ensure_open()
        sub = (ctx or OperationContext.background()).child(self._timeout)
        try:
            return sub.run(self._backend.info)
        except OperationCancelled as e:
            raise self._cancelled(e, "ping runtime") from e
        except self._backend.api_errors as e:
            raise RuntimeConnectionError(
                f"ping failed: {e}", runtime=self._runtime, socket_path=self._socket_path
            ) from e

    def create_container(self, spec: ContainerSpec, ctx: OperationContext | None = None) -> str:
        """Create a stopped container and return the id the runtime assigned.

        The spec is validated in full before the runtime is contacted. Raises
        ContainerAlreadyExists if the name is taken, InvalidPort or InvalidMemoryFormat
        for a bad spec.
        """
        LOG.debug("Creating container", name=spec.name, image=spec.image)
        try:
            resolved = translate(spec)
        except ContainerError as e:
            e.with_context(self._runtime, self._socket_path)
            raise

        if self._call(ctx, self._timeout, "create", spec.name, self._backend.container_exists, spec.name):
            raise ContainerAlreadyExists(spec.name, runtime=self._runtime, socket_path=self._socket_path)

        container_id = self._call(ctx, self._timeout, "create", spec.name, self._backend.create_container, resolved)
        LOG.info("Container created", container_id=container_id, name=spec.name, runtime=self._runtime)
        return container_id

    def start_container(self, container_id: str, ctx: OperationContext | None = None) -> None:
        LOG.debug("Starting container", container_id=container_id)
        self._call(ctx, self._timeout, "start", container_id, self._backend.start_container, container_id)
        LOG.info("Container started", container_id=container_id)

    def stop_container(
        self,
        container_id: str,
        timeout: float | None = None,
        ctx: OperationContext | None = None,
    ) -> None:
        """Stop a container, giving it ``timeout`` seconds to shut down before it is killed.

        Without ``timeout`` the runtime's default grace period applies.
        """
        transport_timeout = self._timeout
        grace = None
        if timeout is not None:
            grace = int(timeout)
            transport_timeout = stop_transport_timeout(timeout)
            LOG.debug(
                "Adjusted API timeout for container shutdown",
                container_timeout=timeout,
                api_timeout=transport_timeout,
            )
        LOG.debug("Stopping container", container_id=container_id, timeout=timeout)
        self._call(
            ctx,
            transport_timeout,
            "stop",
            container_id,
            self._backend.stop_container,
            container_id,
            grace,
            transport_timeout,
        )
        LOG.info("Container stopped", container_id=container_id)

    def restart_container(
        self,
        container_id: str,
        timeout: float | None = None,
        ctx: OperationContext | None = None,
    ) -> None:
        transport_timeout = self._timeout
        grace = None
        if timeout is not None:
            grace = int(timeout)
            transport_timeout = restart_transport_timeout(timeout)
            LOG.debug(
                "Adjusted API timeout for container restart",
                container_timeout=timeout,
                api_timeout=transport_timeout,
            )
        LOG.debug("Restarting container", container_id=container_id, timeout=timeout)
        self._call(
            ctx,
            transport_timeout,
            "restart",
            container_id,
            self._backend.restart_container,
            container_id,
            grace,
            transport_timeout,
        )
        LOG.info("Container restarted", container_id=container_id)

    def remove_container(
        self,
        container_id: str,
        options: RemoveOptions | None = None,
        ctx: OperationContext | None = None,
    ) -> None:
        options = options or RemoveOptions()
        LOG.debug(
            "Removing container",
            container_id=container_id,
            force=options.force,
            volumes=options.remove_volumes,
        )
        self._call(ctx, self._timeout, "remove", container_id, self._backend.remove_container, container_id, options)
        LOG.info("Container removed", container_id=container_id)

    def inspect_container(self, container_id: str, ctx: OperationContext | None = None) -> ContainerState:
        LOG.debug("Inspecting container", container_id=container_id)
        return self._call(ctx, self._timeout, "inspect", container_id, self._backend.inspect_container, container_id)

    def list_containers(
        self,
        options: ListOptions | None = None,
        ctx: OperationContext | None = None,
    ) -> list[ContainerState]:
        """Return a snapshot of the containers matching ``options`` (running ones by default)."""
        options = options or ListOptions()
        LOG.debug("Listing containers", all=options.all, limit=options.limit, filters=options.filters)
        containers = self._call(ctx, self._timeout, "list", None, self._backend.list_containers, options)
        LOG.debug("Listed containers", count=len(containers))
        return containers

    def wait_for_container(
        self,
        container_id: str,
        condition: WaitCondition | str,
        ctx: OperationContext | None = None,
    ) -> None:
        """Block until the container reaches ``condition``.

        ``running`` is detected by polling inspect at a fixed interval. ``not-running``
        and ``removed`` use the runtime's own wait endpoint.
        """
        try:
            wait_condition = WaitCondition.parse(condition)
        except ContainerError as e:
            e.with_context(self._runtime, self._socket_path)
            raise
        LOG.debug("Waiting for container condition", container_id=container_id, condition=wait_condition.value)

        if wait_condition == WaitCondition.RUNNING:
            self._poll_until_running(container_id, ctx or OperationContext.background())
            return

        self._call(
            ctx,
            self._timeout,
            "wait for",
            container_id,
            self._backend.wait_container,
            container_id,
            wait_condition,
        )

    def _poll_until_running(self, container_id: str, ctx: OperationContext) -> None:
        while True:
            try:
                ctx.sleep(self._poll_interval)
            except OperationCancelled as e:
                raise self._cancelled(e, "wait for", container_id) from e
            state = self.inspect_container(container_id, ctx=ctx)
            if state.status == ContainerStatus.RUNNING:
                return

    def _call(
        self,
        ctx: OperationContext | None,
        timeout: float,
        action: str,
        container_id: str | None,
        fn: Callable[..., T],
        *args: Any,
    ) -> T:
        self._ensure_open()
        sub = (ctx or OperationContext.background()).child(timeout)
        try:
            return sub.run(fn, *args)
        except OperationCancelled as e:
            raise self._cancelled(e, action, container_id) from e
        except self._backend.api_errors as e:
            raise classify_failure(
                e,
                action=action,
                container_id=container_id,
                runtime=self._runtime,
                socket_path=self._socket_path,
            ) from e

    def _cancelled(
        self, error: OperationCancelled, action: str, container_id: str | None = None
    ) -> OperationCancelled:
        detail = f"{action} {container_id}" if container_id else action
        return type(error)(detail, runtime=self._runtime, socket_path=self._socket_path)

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeConnectionError("client is closed", runtime=self._runtime, socket_path=self._socket_path)
