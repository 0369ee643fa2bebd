"""Unit of Work protocol shared by the lifecycle and quota services."""
from typing import Any, Protocol

from src.identity.domain.repositories.user_repository import UserLimitsRepository, UserRepository
from src.instances.domain.protocols.instance_repository_protocol import InstanceRepositoryProtocol
from src.instances.domain.protocols.message_repository_protocol import MessageRepositoryProtocol


class ControlPlaneUnitOfWorkProtocol(Protocol):
    """
    Transaction boundary over all control-plane repositories.

    A fresh context is opened per operation; nothing is cached across
    contexts, so every operation re-reads current state from the store.
    """

    users: UserRepository
    limits: UserLimitsRepository
    instances: InstanceRepositoryProtocol
    messages: MessageRepositoryProtocol

    async def __aenter__(self) -> "ControlPlaneUnitOfWorkProtocol":
        ...

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...
