import asyncio
from datetime import timedelta

import pytest
from structlog.testing import capture_logs

from src.gateway.domain.exceptions import (
    GatewayRejectedError,
    GatewayUnexpectedError,
    GatewayUnreachableError,
)
from src.instances.domain.entities.instance import InstanceSettings, InstanceState
from src.instances.domain.exceptions import (
    DuplicateInstanceNameError,
    InstanceBusyError,
    InstanceNotFoundError,
    InvalidTransitionError,
)
from src.factories import build_services
from src.shared.exceptions import ResourceBusyError, StorageFailureError
from src.shared.timeutils import utcnow
from tests.fakes import FakeUnitOfWork, seed_instance

S = InstanceState


@pytest.fixture
def sm(services):
    return services.state_machine


async def test_create_persists_disconnected_with_token(sm, store, gateway, client_actor):
    instance, qr = await sm.create(client_actor.user_id, "sales-line")

    stored = store.instances[instance.id]
    assert stored.state == S.DISCONNECTED
    assert stored.pairing_token == "tok-sales-line"
    assert qr is not None
    assert gateway.count("create") == 1


async def test_create_duplicate_name_never_reaches_gateway(sm, store, gateway, client_actor):
    seed_instance(store, client_actor, "taken")
    with pytest.raises(DuplicateInstanceNameError):
        await sm.create(client_actor.user_id, "taken")
    assert gateway.count("create") == 0


async def test_create_storage_failure_compensates_at_gateway(sm, store, gateway, client_actor):
    store.fail_commits = 1
    with pytest.raises(StorageFailureError):
        await sm.create(client_actor.user_id, "orphan")
    assert gateway.count("delete") == 1
    assert store.instances == {}


async def test_create_gateway_failure_persists_nothing(sm, store, gateway, client_actor):
    gateway.fail("create", GatewayRejectedError("name in use at gateway", gateway_status=403))
    with pytest.raises(GatewayRejectedError):
        await sm.create(client_actor.user_id, "nope")
    assert store.instances == {}


async def test_same_name_create_in_flight_is_busy_not_duplicate(settings, store, gateway, locks, client_actor):
    short = settings.model_copy(update={"INSTANCE_QUEUE_WAIT_SECONDS": 0.05})
    sm = build_services(short, uow_factory=lambda: FakeUnitOfWork(store), gateway=gateway, locks=locks).state_machine
    entered, release = gateway.block("create")

    first = asyncio.create_task(sm.create(client_actor.user_id, "sales"))
    await entered.wait()
    with pytest.raises(ResourceBusyError) as exc:
        await sm.create(client_actor.user_id, "sales")
    assert not isinstance(exc.value, DuplicateInstanceNameError)
    assert exc.value.details == {"name": "sales"}

    release.set()
    instance, _ = await first
    assert store.instances[instance.id].name == "sales"
    assert gateway.count("create") == 1


@pytest.mark.parametrize(
    "start,op,call",
    [
        (S.CONNECTING, "connect", "connect"),
        (S.CONNECTED, "connect", "connect"),
        (S.DISCONNECTED, "disconnect", "disconnect"),
        (S.CONNECTING, "disconnect", "disconnect"),
        (S.FAILED, "disconnect", "disconnect"),
    ],
)
async def test_invalid_transition_makes_no_gateway_call(sm, store, gateway, client_actor, start, op, call):
    instance = seed_instance(store, client_actor, "inst", state=start)
    with pytest.raises(InvalidTransitionError):
        await getattr(sm, op)(instance.id)
    assert gateway.count(call) == 0
    assert store.instances[instance.id].state == start


async def test_connect_moves_to_connecting(sm, store, client_actor):
    instance = seed_instance(store, client_actor, "inst", state=S.FAILED)
    updated, result = await sm.connect(instance.id)
    assert updated.state == S.CONNECTING
    assert result.pairing_code == "WXYZ-1234"
    assert store.instances[instance.id].state == S.CONNECTING


@pytest.mark.parametrize("error", [GatewayUnreachableError("down"), GatewayRejectedError("bad", gateway_status=400)])
async def test_gateway_failure_during_connect_marks_failed(sm, store, gateway, client_actor, error):
    instance = seed_instance(store, client_actor, "inst")
    gateway.fail("connect", error)
    with pytest.raises(type(error)):
        await sm.connect(instance.id)
    stored = store.instances[instance.id]
    assert stored.state == S.FAILED
    assert stored.last_error == error.message


async def test_disconnect_and_restart(sm, store, client_actor):
    instance = seed_instance(store, client_actor, "inst", state=S.CONNECTED)
    assert (await sm.disconnect(instance.id)).state == S.DISCONNECTED
    assert (await sm.restart(instance.id)).state == S.CONNECTING


async def test_restart_while_connecting_resets_the_connecting_clock(sm, store, client_actor):
    instance = seed_instance(store, client_actor, "inst", state=S.CONNECTING)
    instance.state_changed_at = utcnow() - timedelta(minutes=10)
    instance.status_failures = 2

    restarted = await sm.restart(instance.id)

    assert restarted.state == S.CONNECTING
    assert restarted.connecting_for() < 60
    assert store.instances[instance.id].status_failures == 0
    assert (await sm.expire(instance.id, older_than=60)).state == S.CONNECTING


async def test_unknown_instance(sm):
    from uuid import uuid4

    with pytest.raises(InstanceNotFoundError):
        await sm.connect(uuid4())


async def test_second_connect_while_in_flight_is_busy(sm, store, gateway, client_actor):
    instance = seed_instance(store, client_actor, "inst")
    entered, release = gateway.block("connect")

    first = asyncio.create_task(sm.connect(instance.id))
    await entered.wait()
    with pytest.raises(InstanceBusyError):
        await sm.connect(instance.id)
    with pytest.raises(InstanceBusyError):
        await sm.restart(instance.id)

    release.set()
    updated, _ = await first
    assert updated.state == S.CONNECTING
    assert gateway.count("connect") == 1
    assert gateway.count("restart") == 0


async def test_delete_waits_for_in_flight_operation(sm, store, gateway, client_actor):
    instance = seed_instance(store, client_actor, "inst")
    entered, release = gateway.block("connect")

    connecting = asyncio.create_task(sm.connect(instance.id))
    await entered.wait()
    deleting = asyncio.create_task(sm.delete(instance.id))
    await asyncio.sleep(0.01)
    assert not deleting.done()

    release.set()
    await connecting
    await deleting
    assert instance.id not in store.instances
    assert [op for op, _ in gateway.calls] == ["connect", "delete"]


async def test_delete_removes_record_even_if_gateway_fails(sm, store, gateway, client_actor):
    instance = seed_instance(store, client_actor, "inst", state=S.CONNECTED)
    gateway.fail("delete", GatewayUnreachableError("down"))
    await sm.delete(instance.id)
    assert instance.id not in store.instances


async def test_caller_cancellation_does_not_abort_locked_unit(sm, store, gateway, client_actor):
    instance = seed_instance(store, client_actor, "inst")
    entered, release = gateway.block("connect")

    caller = asyncio.create_task(sm.connect(instance.id))
    await entered.wait()
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    release.set()
    await sm.drain()
    assert store.instances[instance.id].state == S.CONNECTING


class TestRefreshStatus:
    async def test_open_report_connects_and_records_phone(self, sm, store, gateway, client_actor):
        instance = seed_instance(store, client_actor, "inst", state=S.CONNECTING)
        gateway.reported["inst"] = "open"
        gateway.phones["inst"] = "5511999990000"

        updated, report = await sm.refresh_status(instance.id)

        assert report.state == "open"
        assert updated.state == S.CONNECTED
        assert store.instances[instance.id].phone_number == "5511999990000"

    async def test_unknown_report_fails_instance(self, sm, store, gateway, client_actor):
        instance = seed_instance(store, client_actor, "inst", state=S.CONNECTING)
        gateway.reported["inst"] = "qr-timeout-weird"

        with capture_logs() as logs:
            updated, _ = await sm.refresh_status(instance.id)

        assert updated.state == S.FAILED
        assert "qr-timeout-weird" in updated.last_error
        anomaly = next(e for e in logs if e["event"] == "instance_status_anomaly")
        assert anomaly["log_level"] == "warning"
        assert anomaly["from_state"] == "CONNECTING"
        assert anomaly["reported_state"] == "qr-timeout-weird"

    async def test_rejection_while_connecting_fails_immediately(self, sm, store, gateway, client_actor):
        instance = seed_instance(store, client_actor, "inst", state=S.CONNECTING)
        gateway.fail("status", GatewayRejectedError("instance does not exist", gateway_status=404))

        with pytest.raises(GatewayRejectedError):
            await sm.refresh_status(instance.id)
        assert store.instances[instance.id].state == S.FAILED

    async def test_transient_failures_fail_after_threshold(self, sm, store, gateway, client_actor, settings):
        instance = seed_instance(store, client_actor, "inst", state=S.CONNECTING)
        gateway.fail("status", GatewayUnreachableError("down"))

        for attempt in range(1, settings.STATUS_FAILURE_THRESHOLD + 1):
            with pytest.raises(GatewayUnreachableError):
                await sm.refresh_status(instance.id)
            stored = store.instances[instance.id]
            assert stored.status_failures == attempt
            expected = S.FAILED if attempt == settings.STATUS_FAILURE_THRESHOLD else S.CONNECTING
            assert stored.state == expected

    async def test_failures_outside_connecting_keep_state(self, sm, store, gateway, client_actor):
        instance = seed_instance(store, client_actor, "inst", state=S.CONNECTED)
        gateway.fail("status", GatewayUnexpectedError("garbage"))
        for _ in range(5):
            with pytest.raises(GatewayUnexpectedError):
                await sm.refresh_status(instance.id)
        assert store.instances[instance.id].state == S.CONNECTED

    async def test_success_resets_failure_count(self, sm, store, gateway, client_actor):
        instance = seed_instance(store, client_actor, "inst", state=S.CONNECTING)
        gateway.fail("status", GatewayUnreachableError("down"))
        with pytest.raises(GatewayUnreachableError):
            await sm.refresh_status(instance.id)
        gateway.heal("status")
        gateway.reported["inst"] = "connecting"
        updated, _ = await sm.refresh_status(instance.id)
        assert updated.status_failures == 0
        assert updated.state == S.CONNECTING


async def test_expire_only_fails_stale_connecting(sm, store, client_actor):
    fresh = seed_instance(store, client_actor, "fresh", state=S.CONNECTING)
    stale = seed_instance(store, client_actor, "stale", state=S.CONNECTING)
    stale.state_changed_at = utcnow() - timedelta(minutes=10)
    done = seed_instance(store, client_actor, "done", state=S.CONNECTED)

    assert (await sm.expire(fresh.id, older_than=60)).state == S.CONNECTING
    assert (await sm.expire(stale.id, older_than=60)).state == S.FAILED
    assert (await sm.expire(done.id, older_than=60)).state == S.CONNECTED


async def test_update_settings(sm, store, client_actor):
    instance = seed_instance(store, client_actor, "inst")
    updated = await sm.update_settings(instance.id, InstanceSettings(reject_call=True, msg_call="busy"))
    assert store.instances[instance.id].settings == updated.settings
    assert updated.settings.to_gateway()["rejectCall"] is True
