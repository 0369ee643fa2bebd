from .instance_repository import InstanceRepository
from .message_repository import MessageRepository

__all__ = ["InstanceRepository", "MessageRepository"]
