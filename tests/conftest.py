import pytest

from src.config import Settings
from src.factories import build_services
from src.shared.infrastructure.locks import InMemoryKeyedLocks
from src.shared.roles import Role
from tests.fakes import FakeGateway, FakeStore, FakeUnitOfWork, add_user


@pytest.fixture
def settings():
    return Settings(
        TESTING=True,
        JWT_SECRET="test-secret-that-is-long-enough-for-hs256",
        ADMISSION_WAIT_SECONDS=2.0,
        INSTANCE_QUEUE_WAIT_SECONDS=2.0,
        STATUS_FAILURE_THRESHOLD=3,
        CONNECTING_TIMEOUT_SECONDS=0,
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def locks():
    return InMemoryKeyedLocks()


@pytest.fixture
def services(settings, store, gateway, locks):
    return build_services(settings, uow_factory=lambda: FakeUnitOfWork(store), gateway=gateway, locks=locks)


@pytest.fixture
def admin(store):
    return add_user(store, role=Role.ADMIN, name="Operator")


@pytest.fixture
def client_actor(store):
    return add_user(store, name="Client One", max_instances=2, max_messages_per_day=2)
