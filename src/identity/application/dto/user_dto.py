"""Results returned by the user service to request handlers."""
from dataclasses import dataclass, field
from typing import List, Tuple

from src.identity.domain.entities.user import User, UserLimits


@dataclass(frozen=True)
class UserPage:
    items: List[Tuple[User, UserLimits]] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0
