"""Instance lifecycle exceptions."""
from uuid import UUID

from src.shared.exceptions import ConflictError, NotFoundError, ResourceBusyError


class InstanceNotFoundError(NotFoundError):
    code = "instance_not_found"

    def __init__(self, instance_id: UUID) -> None:
        super().__init__("Instance not found", details={"instance_id": str(instance_id)})


class DuplicateInstanceNameError(ConflictError):
    code = "instance_name_taken"

    def __init__(self, name: str) -> None:
        super().__init__(f"Instance name '{name}' already exists", details={"name": name})
        self.name = name


class InvalidTransitionError(ConflictError):
    """The operation is not defined from the instance's current state."""
    code = "invalid_transition"

    def __init__(self, state: str, operation: str) -> None:
        super().__init__(
            f"Cannot {operation} an instance in state {state}",
            details={"state": state, "operation": operation},
        )
        self.state = state
        self.operation = operation


class InstanceBusyError(ResourceBusyError):
    """Another state-changing operation is in flight for the same instance."""
    code = "instance_busy"

    def __init__(self, instance_id: UUID) -> None:
        super().__init__(
            "Another operation is in progress for this instance",
            details={"instance_id": str(instance_id)},
        )
