import pytest
import pytest_asyncio

from cryptoearn.config import Settings
from cryptoearn.service import LedgerService
from cryptoearn.storage import InMemoryStorage


# Cheap hashing and a short settlement window keep the suite fast.
TEST_SETTINGS = Settings(
    jwt_secret="test-secret-for-hs256-signing-0123456789",
    bcrypt_rounds=4,
    settlement_delay_seconds=0.05,
    price_update_seconds=0,
    log_requests=False,
)


@pytest.fixture
def settings() -> Settings:
    return TEST_SETTINGS


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest_asyncio.fixture
async def service(storage, settings):
    service = LedgerService(storage=storage, settings=settings)
    yield service
    await service.shutdown()
