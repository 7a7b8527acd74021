import logging
from dataclasses import asdict

import typer

from mcserve.container import ContainerError, ContainerState, ListOptions, RuntimeConfig, create_client
from mcserve.log import setup_logger as _setup_logger

from ._output import output, output_error

_cli_logging_configured = False


def configure_cli_logging() -> None:
    """Configure CLI log levels once at runtime (not at import time)."""
    global _cli_logging_configured
    if _cli_logging_configured:
        return
    _cli_logging_configured = True

    for logger_name in ("docker", "podman", "urllib3"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)
    _setup_logger()


cli_app = typer.Typer(
    help="""[bold]mcserve[/bold]\nInspect the container runtime used to run Minecraft servers.""",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

RuntimeOption = typer.Option(None, "--runtime", "-r", help="podman, docker or auto.")
SocketOption = typer.Option(None, "--socket", "-s", help="Connect to this socket only, skipping detection.")
TimeoutOption = typer.Option(None, "--timeout", "-t", help="Connection timeout in seconds.")
JsonOption = typer.Option(False, "--json", help="Print machine-readable JSON.")


@cli_app.callback()
def cli_callback() -> None:
    """Configure CLI logging before command execution."""
    configure_cli_logging()


def _build_config(runtime: str | None, socket: str | None, timeout: float | None) -> RuntimeConfig:
    defaults = RuntimeConfig.from_settings()
    return RuntimeConfig(
        runtime=runtime or defaults.runtime,
        socket_path=socket or defaults.socket_path,
        timeout=timeout or defaults.timeout,
    )


def _container_row(state: ContainerState) -> dict[str, str]:
    return {
        "id": state.id[:12],
        "name": state.name,
        "status": state.status_text or state.status,
        "image": state.image,
        "ports": ", ".join(f"{host}->{container}" for host, container in sorted(state.ports.items())),
        "created": state.created.isoformat(timespec="seconds") if state.created else "",
    }


@cli_app.command("runtime")
def runtime_command(
    runtime: str | None = RuntimeOption,
    socket: str | None = SocketOption,
    timeout: float | None = TimeoutOption,
    json_mode: bool = JsonOption,
) -> None:
    """Detect the container runtime and show what it reports about itself."""
    try:
        with create_client(_build_config(runtime, socket, timeout)) as client:
            info = client.info
    except ContainerError as e:
        output_error(e, action="runtime", json_mode=json_mode)
        return
    output(asdict(info), action="runtime", json_mode=json_mode)


@cli_app.command("ps")
def ps_command(
    all_containers: bool = typer.Option(False, "--all", "-a", help="Include stopped containers."),
    label: str | None = typer.Option(None, "--label", "-l", help="Only containers with this label (key or key=value)."),
    limit: int = typer.Option(0, "--limit", "-n", help="Show at most this many containers."),
    runtime: str | None = RuntimeOption,
    socket: str | None = SocketOption,
    timeout: float | None = TimeoutOption,
    json_mode: bool = JsonOption,
) -> None:
    """List containers on the detected runtime."""
    options = ListOptions(all=all_containers, limit=limit, filters={"label": label} if label else {})
    try:
        with create_client(_build_config(runtime, socket, timeout)) as client:
            containers = client.list_containers(options)
    except ContainerError as e:
        output_error(e, action="ps", json_mode=json_mode)
        return
    output(
        [_container_row(state) for state in containers],
        action="ps",
        json_mode=json_mode,
        title="Containers",
        empty_message="No containers found.",
    )
