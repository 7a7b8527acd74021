import json
from typing import Iterator

import pytest
import structlog

from mcserve import log
from mcserve.config import settings
from mcserve.container import ContainerNotFound


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


def test_add_error_processor_tags_exception_type() -> None:
    event_dict = {"event": "boom", "exc_info": ContainerNotFound("abc")}
    event = log.add_error_processor(None, "error", event_dict)  # type: ignore[arg-type]
    assert event["error_type"] == "mcserve.container.errors.ContainerNotFound"


def test_add_error_processor_ignores_plain_events() -> None:
    event = log.add_error_processor(None, "info", {"event": "ok"})  # type: ignore[arg-type]
    assert "error_type" not in event


def test_add_filename_section() -> None:
    event_dict = {"event": "x", "filename": "client.py", "lineno": 42}
    event = log.add_filename_section(None, "info", event_dict)  # type: ignore[arg-type]
    assert event["file"] == "[client.py     :42  ]"
    assert "filename" not in event


def test_json_logging(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(settings, "JSON_LOGGING", True)
    monkeypatch.setattr(settings, "LOG_LEVEL", "INFO")
    log.setup_logger()

    structlog.get_logger().debug("Trying container runtime socket", socket="/run/podman/podman.sock")
    structlog.get_logger().info("Container started", container_id="abc123")

    lines = [line for line in capsys.readouterr().err.splitlines() if line.strip()]
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["level"] == "info"
    assert record["container_id"] == "abc123"
    assert record["msg"].startswith("Container started | ")
    assert "container_id=abc123" in record["msg"]
