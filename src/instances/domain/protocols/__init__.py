from src.instances.domain.protocols.instance_repository_protocol import InstanceRepositoryProtocol
from src.instances.domain.protocols.message_repository_protocol import MessageRepositoryProtocol
from src.instances.domain.protocols.unit_of_work_protocol import ControlPlaneUnitOfWorkProtocol

__all__ = [
    "InstanceRepositoryProtocol",
    "MessageRepositoryProtocol",
    "ControlPlaneUnitOfWorkProtocol",
]
