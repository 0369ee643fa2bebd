"""Instances Domain Entities"""
from src.instances.domain.entities.instance import (
    Instance,
    InstanceSettings,
    InstanceState,
    Integration,
    validate_instance_name,
)
from src.instances.domain.entities.message_record import MessageRecord, MessageStatus

__all__ = [
    "Instance",
    "InstanceSettings",
    "InstanceState",
    "Integration",
    "MessageRecord",
    "MessageStatus",
    "validate_instance_name",
]
