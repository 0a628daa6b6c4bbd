import os
import pytest


@pytest.fixture(scope="session")
def host():
    return os.getenv("HS2_HOST")


@pytest.fixture(scope="session")
def port():
    return int(os.getenv("HS2_PORT", "10000"))


@pytest.fixture(scope="session")
def username():
    return os.getenv("HS2_USER")


@pytest.fixture(scope="session")
def log_strategy():
    return os.getenv("HS2_LOG_STRATEGY")


@pytest.fixture(scope="session")
def connection_details(host, port, username, log_strategy):
    if not host:
        pytest.skip("HS2_HOST is not set")
    return {
        "host": host,
        "port": port,
        "username": username,
        "log_strategy": log_strategy,
    }
