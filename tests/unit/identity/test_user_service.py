from datetime import datetime, timezone
from uuid import uuid4

import pytest

from src.gateway.domain.exceptions import GatewayUnreachableError
from src.identity.domain.exceptions import EmailTakenError, UserNotFoundError
from src.instances.domain.entities.instance import InstanceState
from src.instances.domain.entities.message_record import MessageRecord, MessageStatus
from src.shared.exceptions import ForbiddenError, ValidationError
from src.shared.roles import Role
from tests.fakes import add_user, seed_instance


@pytest.fixture
def users(services):
    return services.user_service


async def test_admin_creates_client_with_defaults(users, store, admin, settings):
    user, limits = await users.create_user(admin, name="Acme Ltd", email="Ops@Acme.io")
    assert user.email == "ops@acme.io"
    assert store.users[user.id].role == Role.CLIENT
    assert store.limits[user.id] == limits
    assert limits.max_instances == settings.DEFAULT_MAX_INSTANCES


async def test_explicit_limits_override_defaults(users, admin):
    _, limits = await users.create_user(
        admin, name="Acme Ltd", email="ops@acme.io", limits={"max_instances": 5, "can_use_webhooks": True}
    )
    assert limits.max_instances == 5
    assert limits.can_use_webhooks is True
    assert limits.max_messages_per_day == 1000


async def test_admin_role_gets_elevated_defaults(users, admin):
    _, limits = await users.create_user(admin, name="Second Op", email="op2@acme.io", role=Role.ADMIN)
    assert limits.max_instances == 999
    assert limits.can_use_integrations is True


async def test_client_cannot_create_users(users, client_actor):
    with pytest.raises(ForbiddenError):
        await users.create_user(client_actor, name="Sneaky", email="s@x.io")


async def test_duplicate_email(users, admin):
    await users.create_user(admin, name="Acme Ltd", email="ops@acme.io")
    with pytest.raises(EmailTakenError):
        await users.create_user(admin, name="Acme Again", email="OPS@acme.io")


async def test_invalid_ceiling_rejected(users, admin):
    with pytest.raises(ValidationError):
        await users.create_user(admin, name="Acme Ltd", email="ops@acme.io", limits={"max_instances": 0})


async def test_update_limits_upserts(users, store, admin, client_actor):
    updated = await users.update_limits(admin, client_actor.user_id, max_messages_per_day=50, max_groups=None)
    assert updated.max_messages_per_day == 50
    assert updated.max_instances == 2
    assert store.limits[client_actor.user_id] == updated

    with pytest.raises(ForbiddenError):
        await users.update_limits(client_actor, client_actor.user_id, max_instances=10)


async def test_limits_visibility(users, admin, client_actor, store):
    assert (await users.get_limits(client_actor, client_actor.user_id)).max_instances == 2
    with pytest.raises(ForbiddenError):
        await users.get_limits(client_actor, admin.user_id)
    with pytest.raises(UserNotFoundError):
        await users.get_limits(admin, uuid4())


def _sent(owner, instance):
    return MessageRecord(
        instance_id=instance.id, user_id=owner.user_id, to="5511999990001", sender="unknown", body="hi",
        status=MessageStatus.SENT, timestamp=datetime.now(timezone.utc),
    )


async def test_list_users_paginates_with_effective_limits(users, store, admin, client_actor):
    add_user(store, name="Third User")

    first = await users.list_users(admin, page=1, limit=2)
    second = await users.list_users(admin, page=2, limit=2)

    assert first.total == 3
    assert first.pages == 2
    assert len(first.items) == 2
    assert len(second.items) == 1
    listed = {user.id: limits for user, limits in first.items + second.items}
    assert set(listed) == {admin.user_id, client_actor.user_id, *store.users}
    assert listed[client_actor.user_id].max_instances == 2
    # no explicit record: role defaults
    assert listed[admin.user_id].max_instances == 999

    with pytest.raises(ForbiddenError):
        await users.list_users(client_actor)


async def test_update_user_fields(users, store, admin, client_actor):
    user, limits = await users.update_user(
        admin, client_actor.user_id, name="Renamed Client", email="New@Example.com", is_active=False
    )
    assert user.name == "Renamed Client"
    assert user.email == "new@example.com"
    assert user.is_active is False
    assert user.role == Role.CLIENT
    assert limits.max_instances == 2

    stored = store.users[client_actor.user_id]
    assert (stored.name, stored.email, stored.is_active) == ("Renamed Client", "new@example.com", False)
    assert stored.updated_at >= stored.created_at


async def test_update_user_keeps_own_email_and_rejects_taken_one(users, store, admin, client_actor):
    own = store.users[client_actor.user_id].email
    user, _ = await users.update_user(admin, client_actor.user_id, email=own.upper(), role=Role.ADMIN)
    assert user.email == own
    assert user.role == Role.ADMIN

    with pytest.raises(EmailTakenError):
        await users.update_user(admin, client_actor.user_id, email=store.users[admin.user_id].email)


async def test_update_user_validation_and_access(users, admin, client_actor):
    with pytest.raises(ValidationError):
        await users.update_user(admin, client_actor.user_id, name="x")
    with pytest.raises(UserNotFoundError):
        await users.update_user(admin, uuid4(), name="Nobody Here")
    with pytest.raises(ForbiddenError):
        await users.update_user(client_actor, client_actor.user_id, role=Role.ADMIN)


async def test_delete_user_removes_everything_they_own(users, store, gateway, admin, client_actor):
    other = add_user(store, name="Other Client")
    mine = [
        seed_instance(store, client_actor, "mine-1", state=InstanceState.CONNECTED),
        seed_instance(store, client_actor, "mine-2"),
    ]
    theirs = seed_instance(store, other, "theirs", state=InstanceState.CONNECTED)
    store.messages.extend([_sent(client_actor, mine[0]), _sent(other, theirs)])
    gateway.fail("delete", GatewayUnreachableError("gateway down"))

    await users.delete_user(admin, client_actor.user_id)

    assert client_actor.user_id not in store.users
    assert client_actor.user_id not in store.limits
    assert set(store.instances) == {theirs.id}
    assert [m.user_id for m in store.messages] == [other.user_id]
    # removed at the gateway on a best-effort basis
    assert sorted(name for op, name in gateway.calls if op == "delete") == ["mine-1", "mine-2"]
    assert other.user_id in store.users


async def test_delete_user_access_and_unknown(users, store, gateway, admin, client_actor):
    seed_instance(store, client_actor, "mine")
    with pytest.raises(ForbiddenError):
        await users.delete_user(client_actor, client_actor.user_id)
    with pytest.raises(UserNotFoundError):
        await users.delete_user(admin, uuid4())
    assert client_actor.user_id in store.users
    assert gateway.calls == []
