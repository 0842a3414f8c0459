from typing import AsyncIterator, Iterator

from unittest.mock import MagicMock, patch
import httpx
import pytest

from ontrack.infrastructure.auth.credential_store import CredentialStore
from ontrack.infrastructure.http.api_client import ApiClient
from ontrack.infrastructure.http.resilience import RetryPolicy
from ontrack.infrastructure.storage import DurableStore
from ontrack.enums import IdentityRole

BASE_URL = "http://ontrack.test"


# Configure anyio to only use asyncio backend
@pytest.fixture
def anyio_backend() -> str:
    """Force tests to use asyncio backend only."""
    return "asyncio"


@pytest.fixture(autouse=True, scope="session")
def mock_logger() -> Iterator[MagicMock]:
    with patch("ontrack.logging._logger", MagicMock()) as mock_logger:
        mock_logger.log.return_value = None
        yield mock_logger


@pytest.fixture
def store() -> DurableStore:
    """In-memory durable store."""
    return DurableStore()


@pytest.fixture
def student_credentials(store: DurableStore) -> CredentialStore:
    credentials = CredentialStore(store, IdentityRole.STUDENT)
    credentials.save("test-token", {"id": "u1", "name": "Ada"})
    return credentials


@pytest.fixture
async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def sleeps() -> list:
    """Records backoff delays instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps: list):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def auth_client(
    http_client: httpx.AsyncClient, student_credentials: CredentialStore, fake_sleep
) -> ApiClient:
    return ApiClient(
        http_client,
        credentials=student_credentials,
        read_policy=RetryPolicy(max_attempts=2),
        request_timeout=5,
        sleep=fake_sleep,
    )


@pytest.fixture
def public_client(http_client: httpx.AsyncClient, fake_sleep) -> ApiClient:
    return ApiClient(
        http_client,
        read_policy=RetryPolicy(max_attempts=3),
        request_timeout=5,
        sleep=fake_sleep,
    )
