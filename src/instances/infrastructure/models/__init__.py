from .instance_model import InstanceModel
from .message_model import MessageModel

__all__ = ["InstanceModel", "MessageModel"]
