"""Instance repository protocol."""
from typing import List, Optional, Protocol, Sequence
from uuid import UUID

from src.instances.domain.entities.instance import Instance, InstanceState


class InstanceRepositoryProtocol(Protocol):
    """Persistence contract for instances. Implementations never commit."""

    async def get(self, instance_id: UUID) -> Optional[Instance]:
        ...

    async def get_by_name(self, name: str) -> Optional[Instance]:
        ...

    async def add(self, instance: Instance) -> Instance:
        """
        Raises:
            DuplicateInstanceNameError: If the name is already taken
        """
        ...

    async def update(self, instance: Instance) -> Instance:
        ...

    async def delete(self, instance_id: UUID) -> bool:
        """Remove the instance; False when it did not exist."""
        ...

    async def list_by_owner(
        self, owner_id: Optional[UUID], *, offset: int = 0, limit: int = 50
    ) -> Sequence[Instance]:
        """Instances of `owner_id`, or of everyone when it is None, newest first."""
        ...

    async def count_by_owner(self, owner_id: Optional[UUID]) -> int:
        ...

    async def list_by_state(self, state: InstanceState, *, limit: int = 100) -> List[Instance]:
        ...
