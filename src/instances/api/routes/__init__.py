from src.instances.api.routes.instances import router as instances_router
from src.instances.api.routes.test_console import router as test_console_router

__all__ = ["instances_router", "test_console_router"]
