from .instance_mapper import InstanceMapper, MessageMapper

__all__ = ["InstanceMapper", "MessageMapper"]
