"""External collaborators: token movement and authorization."""

from predamm.collaborators.base import Authorizer, Capability, TokenLedger
from predamm.collaborators.memory import ENGINE_ACCOUNT, InMemoryToken, RoleRegistry

__all__ = ["Authorizer", "Capability", "TokenLedger", "ENGINE_ACCOUNT", "InMemoryToken", "RoleRegistry"]
