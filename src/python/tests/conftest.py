import pytest

from http_server import running_server


@pytest.fixture
def server_factory():
    return running_server
