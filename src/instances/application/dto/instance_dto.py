"""Results returned by the orchestrator to request handlers."""
from dataclasses import dataclass, field
from typing import List, Optional

from src.instances.domain.entities.instance import Instance


@dataclass(frozen=True)
class CreatedInstanceView:
    instance: Instance
    qr_code: Optional[str] = None


@dataclass(frozen=True)
class ConnectView:
    instance: Instance
    qr_code: Optional[str] = None
    pairing_code: Optional[str] = None


@dataclass(frozen=True)
class StatusView:
    instance: Instance
    gateway_state: Optional[str] = None
    qr_code: Optional[str] = None


@dataclass(frozen=True)
class InstancePage:
    items: List[Instance] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0
