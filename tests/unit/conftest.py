from typing import Iterator

import pytest

from mcserve.container import ContainerClient
from tests.unit.helpers import FakeBackend, make_info


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def client(backend: FakeBackend) -> Iterator[ContainerClient]:
    container_client = ContainerClient(backend, make_info(), timeout=30.0, poll_interval=0.01)
    yield container_client
    for blocker in backend.blockers.values():
        blocker.set()
    container_client.close()
