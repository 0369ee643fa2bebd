from src.instances.application.services.instance_orchestrator import InstanceOrchestrator
from src.instances.application.services.instance_state_machine import InstanceStateMachine

__all__ = ["InstanceOrchestrator", "InstanceStateMachine"]
