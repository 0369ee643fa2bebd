"""
In-memory collaborators for service-level tests.

FakeStore keeps committed state; each FakeUnitOfWork stages its writes and
applies them on commit, and hands out copies so nothing is shared between
units of work.
"""
from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from src.gateway.domain.protocols import (
    ConnectResult,
    CreatedInstance,
    GatewayStatus,
    MessageKind,
    NumberCheck,
)
from src.identity.domain.entities.user import User, UserLimits
from src.identity.domain.exceptions import EmailTakenError, UserNotFoundError
from src.instances.domain.entities.instance import Instance, InstanceState
from src.instances.domain.entities.message_record import MessageRecord
from src.instances.domain.exceptions import DuplicateInstanceNameError, InstanceNotFoundError
from src.shared.exceptions import StorageFailureError
from src.shared.roles import Actor, Role
from src.shared.timeutils import as_utc


@dataclass
class FakeStore:
    users: Dict[UUID, User] = field(default_factory=dict)
    limits: Dict[UUID, UserLimits] = field(default_factory=dict)
    instances: Dict[UUID, Instance] = field(default_factory=dict)
    messages: List[MessageRecord] = field(default_factory=list)
    fail_commits: int = 0
    commits: int = 0


class _Repo:
    def __init__(self, uow: "FakeUnitOfWork") -> None:
        self._uow = uow

    @property
    def _store(self) -> FakeStore:
        return self._uow.store

    def _stage(self, fn: Callable[[], None]) -> None:
        self._uow.pending.append(fn)


class FakeUserRepository(_Repo):
    async def get(self, user_id: UUID) -> Optional[User]:
        return copy.deepcopy(self._store.users.get(user_id))

    async def get_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for user in self._store.users.values():
            if user.email == email:
                return copy.deepcopy(user)
        return None

    async def add(self, user: User) -> User:
        if await self.get_by_email(user.email) is not None:
            raise EmailTakenError(user.email)
        snapshot = copy.deepcopy(user)
        self._stage(lambda: self._store.users.__setitem__(snapshot.id, snapshot))
        return user

    async def update(self, user: User) -> User:
        if user.id not in self._store.users:
            raise UserNotFoundError("User not found", details={"user_id": str(user.id)})
        holder = await self.get_by_email(user.email)
        if holder is not None and holder.id != user.id:
            raise EmailTakenError(user.email)
        snapshot = copy.deepcopy(user)
        self._stage(lambda: self._store.users.__setitem__(snapshot.id, snapshot))
        return user

    async def delete(self, user_id: UUID) -> bool:
        existed = user_id in self._store.users
        self._stage(lambda: self._store.users.pop(user_id, None))
        return existed

    async def list_all(self, *, offset: int = 0, limit: int = 10) -> List[User]:
        items = sorted(self._store.users.values(), key=lambda u: (u.created_at, u.email), reverse=True)
        return copy.deepcopy(items[offset : offset + limit])

    async def count(self) -> int:
        return len(self._store.users)


class FakeUserLimitsRepository(_Repo):
    async def get(self, user_id: UUID) -> Optional[UserLimits]:
        return self._store.limits.get(user_id)

    async def save(self, limits: UserLimits) -> UserLimits:
        self._stage(lambda: self._store.limits.__setitem__(limits.user_id, limits))
        return limits

    async def delete(self, user_id: UUID) -> bool:
        existed = user_id in self._store.limits
        self._stage(lambda: self._store.limits.pop(user_id, None))
        return existed


class FakeInstanceRepository(_Repo):
    async def get(self, instance_id: UUID) -> Optional[Instance]:
        return copy.deepcopy(self._store.instances.get(instance_id))

    async def get_by_name(self, name: str) -> Optional[Instance]:
        for instance in self._store.instances.values():
            if instance.name == name:
                return copy.deepcopy(instance)
        return None

    async def add(self, instance: Instance) -> Instance:
        if await self.get_by_name(instance.name) is not None:
            raise DuplicateInstanceNameError(instance.name)
        snapshot = copy.deepcopy(instance)
        self._stage(lambda: self._store.instances.__setitem__(snapshot.id, snapshot))
        return instance

    async def update(self, instance: Instance) -> Instance:
        if instance.id not in self._store.instances:
            raise InstanceNotFoundError(instance.id)
        snapshot = copy.deepcopy(instance)
        self._stage(lambda: self._store.instances.__setitem__(snapshot.id, snapshot))
        return instance

    async def delete(self, instance_id: UUID) -> bool:
        existed = instance_id in self._store.instances
        self._stage(lambda: self._store.instances.pop(instance_id, None))
        return existed

    def _owned(self, owner_id: Optional[UUID]) -> List[Instance]:
        items = [i for i in self._store.instances.values() if owner_id is None or i.owner_id == owner_id]
        return sorted(items, key=lambda i: (i.created_at, i.name), reverse=True)

    async def list_by_owner(self, owner_id: Optional[UUID], *, offset: int = 0, limit: int = 50) -> List[Instance]:
        return copy.deepcopy(self._owned(owner_id)[offset : offset + limit])

    async def count_by_owner(self, owner_id: Optional[UUID]) -> int:
        return len(self._owned(owner_id))

    async def list_by_state(self, state: InstanceState, *, limit: int = 100) -> List[Instance]:
        items = [i for i in self._store.instances.values() if i.state == state]
        return copy.deepcopy(sorted(items, key=lambda i: i.state_changed_at)[:limit])


class FakeMessageRepository(_Repo):
    async def add(self, record: MessageRecord) -> MessageRecord:
        self._stage(lambda: self._store.messages.append(record))
        return record

    async def count_since(self, user_id: UUID, since: datetime) -> int:
        return sum(1 for m in self._store.messages if m.user_id == user_id and as_utc(m.timestamp) >= since)

    async def list_for_instance(self, instance_id: UUID, *, limit: int = 50) -> List[MessageRecord]:
        items = [m for m in self._store.messages if m.instance_id == instance_id]
        return sorted(items, key=lambda m: m.timestamp, reverse=True)[:limit]

    async def delete_for_user(self, user_id: UUID) -> int:
        doomed = sum(1 for m in self._store.messages if m.user_id == user_id)

        def apply() -> None:
            self._store.messages[:] = [m for m in self._store.messages if m.user_id != user_id]

        self._stage(apply)
        return doomed


class FakeUnitOfWork:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.pending: List[Callable[[], None]] = []
        self.users = FakeUserRepository(self)
        self.limits = FakeUserLimitsRepository(self)
        self.instances = FakeInstanceRepository(self)
        self.messages = FakeMessageRepository(self)

    async def __aenter__(self) -> "FakeUnitOfWork":
        self.pending = []
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.pending = []

    async def commit(self) -> None:
        if self.store.fail_commits > 0:
            self.store.fail_commits -= 1
            self.pending = []
            raise StorageFailureError("Simulated storage failure")
        for apply in self.pending:
            apply()
        self.pending = []
        self.store.commits += 1

    async def rollback(self) -> None:
        self.pending = []


class FakeGateway:
    """
    Scripted gateway.

    - `reported` holds the raw state get_status answers per instance name
    - `fail(op, exc)` makes every call of `op` raise `exc`
    - `block(op, name=None)` parks calls of `op` (for one instance name, or
      for all) until the returned release event is set
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str]] = []
        self.reported: Dict[str, str] = {}
        self.phones: Dict[str, str] = {}
        self.sent: List[Dict[str, Any]] = []
        self._failures: Dict[str, Exception] = {}
        self._gates: Dict[Any, Tuple[asyncio.Event, asyncio.Event]] = {}
        self.closed = False

    def fail(self, op: str, exc: Exception) -> None:
        self._failures[op] = exc

    def heal(self, op: str) -> None:
        self._failures.pop(op, None)

    def block(self, op: str, name: Optional[str] = None) -> Tuple[asyncio.Event, asyncio.Event]:
        entered, release = asyncio.Event(), asyncio.Event()
        self._gates[(op, name) if name is not None else op] = (entered, release)
        return entered, release

    def count(self, op: str) -> int:
        return sum(1 for called, _ in self.calls if called == op)

    async def _call(self, op: str, name: str) -> None:
        self.calls.append((op, name))
        gate = self._gates.get((op, name)) or self._gates.get(op)
        if gate is not None:
            entered, release = gate
            entered.set()
            await release.wait()
        if op in self._failures:
            raise self._failures[op]

    async def create_instance(self, name, integration, settings) -> CreatedInstance:
        await self._call("create", name)
        return CreatedInstance(pairing_token=f"tok-{name}", qr_code="data:image/png;base64,QR")

    async def get_status(self, name, token) -> GatewayStatus:
        await self._call("status", name)
        return GatewayStatus(state=self.reported.get(name, "close"), phone_number=self.phones.get(name))

    async def connect(self, name, token) -> ConnectResult:
        await self._call("connect", name)
        return ConnectResult(qr_code="data:image/png;base64,QR", pairing_code="WXYZ-1234")

    async def disconnect(self, name, token) -> None:
        await self._call("disconnect", name)

    async def restart(self, name, token) -> None:
        await self._call("restart", name)

    async def delete(self, name, token) -> None:
        await self._call("delete", name)

    async def send_message(self, name, token, *, to, body, kind=MessageKind.TEXT, media_url=None) -> str:
        await self._call("send", name)
        self.sent.append({"name": name, "to": to, "body": body, "kind": kind, "media_url": media_url})
        return f"MSG{len(self.sent)}"

    async def check_number(self, name, token, number) -> NumberCheck:
        await self._call("check_number", name)
        return NumberCheck(number=number, exists=True, jid=f"{number}@s.whatsapp.net")

    async def close(self) -> None:
        self.closed = True


def add_user(store: FakeStore, *, role: Role = Role.CLIENT, name: str = "Client One", **limits: Any) -> Actor:
    """Seed a user (with explicit limits when given) and return it as an actor."""
    user = User(name=name, email=f"{name.replace(' ', '.').lower()}@example.com", role=role)
    store.users[user.id] = user
    if limits:
        store.limits[user.id] = UserLimits(user_id=user.id, **limits)
    return Actor(user_id=user.id, role=role)


def seed_instance(store: FakeStore, owner: Actor, name: str, state: InstanceState = InstanceState.DISCONNECTED) -> Instance:
    instance = Instance(owner_id=owner.user_id, name=name, pairing_token=f"tok-{name}", state=state)
    store.instances[instance.id] = instance
    return instance
