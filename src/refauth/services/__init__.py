from refauth.services.coordinator import AuthCoordinator
from refauth.services.hooks import AuthHooks

__all__ = ["AuthCoordinator", "AuthHooks"]
