"""
Repositories and unit of work against a real (SQLite) database.
"""
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.factories import build_services, make_uow_factory
from src.gateway.domain.protocols import MessageKind
from src.identity.domain.entities.user import User, UserLimits
from src.identity.domain.exceptions import EmailTakenError
from src.instances.domain.entities.instance import Instance, InstanceSettings, InstanceState
from src.instances.domain.entities.message_record import MessageRecord, MessageStatus
from src.instances.domain.exceptions import DuplicateInstanceNameError
from src.shared.database.database import build_engine, create_all_tables
from src.shared.exceptions import QuotaExceededError
from src.shared.roles import Actor
from src.shared.timeutils import utcnow


@pytest.fixture
async def uow_factory(tmp_path, settings):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}", settings)
    await create_all_tables(engine)
    yield make_uow_factory(async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False))
    await engine.dispose()


@pytest.fixture
async def owner(uow_factory):
    user = User(name="Store Owner", email="owner@example.com")
    async with uow_factory() as uow:
        await uow.users.add(user)
        await uow.limits.save(UserLimits(user_id=user.id, max_instances=1, max_messages_per_day=2))
        await uow.commit()
    return user


async def test_user_and_limits_roundtrip(uow_factory, owner):
    async with uow_factory() as uow:
        user = await uow.users.get_by_email("OWNER@example.com")
        limits = await uow.limits.get(owner.id)
    assert user.id == owner.id
    assert (limits.max_instances, limits.max_messages_per_day) == (1, 2)

    async with uow_factory() as uow:
        await uow.limits.save(limits.with_changes(max_instances=3))
        await uow.commit()
    async with uow_factory() as uow:
        assert (await uow.limits.get(owner.id)).max_instances == 3


async def test_duplicate_email(uow_factory, owner):
    with pytest.raises(EmailTakenError):
        async with uow_factory() as uow:
            await uow.users.add(User(name="Copy Cat", email="owner@example.com"))
            await uow.commit()


async def test_user_update_list_and_delete(uow_factory, owner):
    other = User(name="Second Owner", email="second@example.com")
    async with uow_factory() as uow:
        await uow.users.add(other)
        await uow.commit()

    async with uow_factory() as uow:
        assert await uow.users.count() == 2
        first_page = await uow.users.list_all(offset=0, limit=1)
        second_page = await uow.users.list_all(offset=1, limit=1)
    assert {u.id for u in first_page + second_page} == {owner.id, other.id}

    other.name = "Renamed Owner"
    other.is_active = False
    async with uow_factory() as uow:
        await uow.users.update(other)
        await uow.commit()
    async with uow_factory() as uow:
        stored = await uow.users.get(other.id)
    assert (stored.name, stored.is_active) == ("Renamed Owner", False)

    other.email = owner.email
    with pytest.raises(EmailTakenError):
        async with uow_factory() as uow:
            await uow.users.update(other)
            await uow.commit()

    async with uow_factory() as uow:
        assert await uow.limits.delete(owner.id) is True
        assert await uow.users.delete(owner.id) is True
        await uow.commit()
    async with uow_factory() as uow:
        assert await uow.users.get(owner.id) is None
        assert await uow.limits.get(owner.id) is None
        assert await uow.users.delete(owner.id) is False
        assert await uow.users.count() == 1


async def test_instance_roundtrip_and_update(uow_factory, owner):
    instance = Instance(
        owner_id=owner.id,
        name="sales",
        pairing_token="tok",
        settings=InstanceSettings(always_online=True, msg_call="later"),
    )
    async with uow_factory() as uow:
        await uow.instances.add(instance)
        await uow.commit()

    instance.state = InstanceState.CONNECTED
    instance.phone_number = "5511999990000"
    async with uow_factory() as uow:
        await uow.instances.update(instance)
        await uow.commit()

    async with uow_factory() as uow:
        stored = await uow.instances.get(instance.id)
        connected = await uow.instances.list_by_state(InstanceState.CONNECTED)
        count = await uow.instances.count_by_owner(owner.id)
    assert stored.state == InstanceState.CONNECTED
    assert stored.settings == instance.settings
    assert stored.state_changed_at.tzinfo is not None
    assert [i.id for i in connected] == [instance.id]
    assert count == 1


async def test_uncommitted_changes_are_discarded(uow_factory, owner):
    async with uow_factory() as uow:
        await uow.instances.add(Instance(owner_id=owner.id, name="draft"))
    async with uow_factory() as uow:
        assert await uow.instances.get_by_name("draft") is None


async def test_duplicate_instance_name(uow_factory, owner):
    async with uow_factory() as uow:
        await uow.instances.add(Instance(owner_id=owner.id, name="sales"))
        await uow.commit()
    with pytest.raises(DuplicateInstanceNameError):
        async with uow_factory() as uow:
            await uow.instances.add(Instance(owner_id=owner.id, name="sales"))
            await uow.commit()


async def test_message_records_outlive_instance(uow_factory, owner):
    instance = Instance(owner_id=owner.id, name="sales")
    now = utcnow()
    async with uow_factory() as uow:
        await uow.instances.add(instance)
        for ts in (now - timedelta(days=2), now - timedelta(minutes=1), now):
            await uow.messages.add(
                MessageRecord(
                    instance_id=instance.id, user_id=owner.id, to="5511", sender="unknown",
                    body="hi", status=MessageStatus.SENT, type=MessageKind.TEXT, timestamp=ts,
                )
            )
        await uow.commit()

    async with uow_factory() as uow:
        assert await uow.instances.delete(instance.id) is True
        await uow.commit()

    async with uow_factory() as uow:
        assert await uow.instances.delete(instance.id) is False
        assert await uow.messages.count_since(owner.id, now - timedelta(hours=1)) == 2
        history = await uow.messages.list_for_instance(instance.id)
    assert len(history) == 3
    assert history[0].timestamp >= history[-1].timestamp

    async with uow_factory() as uow:
        assert await uow.messages.delete_for_user(owner.id) == 3
        await uow.commit()
    async with uow_factory() as uow:
        assert await uow.messages.list_for_instance(instance.id) == []


async def test_services_over_real_store(uow_factory, owner, settings, gateway):
    services = build_services(settings, uow_factory=uow_factory, gateway=gateway)
    actor = Actor(user_id=owner.id)

    view = await services.orchestrator.create_instance(actor, name="sales")
    with pytest.raises(QuotaExceededError):
        await services.orchestrator.create_instance(actor, name="support")

    await services.orchestrator.connect(actor, view.instance.id)
    gateway.reported["sales"] = "open"
    status = await services.orchestrator.get_status(actor, view.instance.id)
    assert status.instance.state == InstanceState.CONNECTED

    await services.orchestrator.send_message(actor, view.instance.id, to="5511", body="1")
    await services.orchestrator.send_message(actor, view.instance.id, to="5511", body="2")
    with pytest.raises(QuotaExceededError):
        await services.orchestrator.send_message(actor, view.instance.id, to="5511", body="3")

    usage = await services.quota_ledger.usage(owner.id)
    assert usage["messages_per_day"].current == 2
    assert usage["instances"].current == 1
    await services.aclose()
