from src.instances.application.dto.instance_dto import (
    ConnectView,
    CreatedInstanceView,
    InstancePage,
    StatusView,
)

__all__ = ["ConnectView", "CreatedInstanceView", "InstancePage", "StatusView"]
