import sys
from pathlib import Path

import pytest

# Ensure local source package (src/netify) is importable before tests collect
_PROJECT_ROOT: Path = Path(__file__).resolve().parents[1]
_SRC_PATH: Path = _PROJECT_ROOT / "src"
if _SRC_PATH.exists():
    sys.path.insert(0, str(_SRC_PATH))

from netify import (  # noqa: E402
    BackoffParameters,
    BackoffStrategy,
    LogLevel,
    NetifyConfiguration,
)
from tests.utils.transport import ScriptedTransport  # noqa: E402


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clean environment variables before each test."""
    for name in (
        "NETIFY_BASE_URL",
        "NETIFY_ACCESS_TOKEN",
        "NETIFY_TIMEOUT",
        "NETIFY_MAX_RETRY_COUNT",
        "NETIFY_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def base_url() -> str:
    return "https://api.example.com"


@pytest.fixture
def access_token() -> str:
    return "secret-access-token"


@pytest.fixture
def no_backoff() -> BackoffParameters:
    return BackoffParameters(strategy=BackoffStrategy.FIXED, initial_delay=0)


@pytest.fixture
def configuration(base_url: str, no_backoff: BackoffParameters) -> NetifyConfiguration:
    return NetifyConfiguration(
        base_url=base_url, backoff=no_backoff, log_level=LogLevel.OFF
    )


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()
