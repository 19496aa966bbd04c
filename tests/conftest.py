"""
Top-level pytest configuration for the b2-client project.

Collects the fixtures needed across multiple test modules: an in-process fake B2 server,
an httpx client talking to it, and the session/API objects wired up against that client.
Storing them here in the top-level ensures that the imports work correctly.
"""

import logging
import os
from pathlib import Path

# Point the settings at throwaway paths before client_config creates its module level settings instance,
# so no test ever reads or writes the config or session cache of whoever runs the tests.
os.environ["B2_CONFIG_PATH"] = "tests/fixtures/tmp/config.yaml"
os.environ["B2_CACHE_PATH"] = "tests/fixtures/tmp/cache.json"
for variable in ("B2_NO_CACHE", "B2_KEY_ID", "B2_KEY_SECRET", "B2_AUTHORIZATION_URL"):
    os.environ.pop(variable, None)

import httpx  # noqa: E402
import pytest  # noqa: E402
import stamina  # noqa: E402
from pydantic import SecretStr  # noqa: E402

from b2_client.api_client import B2APIClient  # noqa: E402
from b2_client.session_manager import B2Credentials, SessionManager  # noqa: E402
from b2_client.session_store import InMemorySessionStore  # noqa: E402
from tests.helpers.fake_b2_server import KEY_ID, KEY_SECRET, FakeB2Server  # noqa: E402

logger = logging.getLogger(__name__)

START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def no_retry_backoff():
    """
    Put stamina in testing mode so retries never sleep.
    Tests that exercise retries call stamina.set_testing(True, attempts=N) themselves.
    """
    stamina.set_testing(True)
    yield
    stamina.set_testing(False)


@pytest.fixture(autouse=True, scope="function")
def clean_tmp_config_cache_dir():
    """
    Remove any config or session cache file a test created at the default (testing) paths,
    so tests do not leak state into each other.
    """
    test_config_path = Path(os.environ["B2_CONFIG_PATH"])
    test_cache_path = Path(os.environ["B2_CACHE_PATH"])
    yield
    for path in (test_config_path, test_cache_path):
        if path.exists():
            path.unlink()


@pytest.fixture
def fake_b2_server() -> FakeB2Server:
    return FakeB2Server(recommended_part_size=6)


@pytest.fixture
def http_client(fake_b2_server):
    with httpx.Client(transport=fake_b2_server.transport()) as client:
        yield client


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credentials() -> B2Credentials:
    return B2Credentials(key_id=KEY_ID, key_secret=SecretStr(KEY_SECRET))


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def session_manager(session_store, credentials, http_client, fake_b2_server, fake_clock) -> SessionManager:
    return SessionManager(
        store=session_store,
        credentials=credentials,
        http_client=http_client,
        authorization_url=fake_b2_server.authorization_url,
        clock=fake_clock,
    )


@pytest.fixture
def api_client(session_manager, http_client) -> B2APIClient:
    return B2APIClient(session_manager=session_manager, http_client=http_client)


@pytest.fixture
def make_test_file(tmp_path):
    """Factory writing 'content' to a file in tmp_path and returning its path."""

    def _make_test_file(content: bytes, name: str = "upload.bin") -> Path:
        file_path = tmp_path / name
        file_path.write_bytes(content)
        return file_path

    return _make_test_file
