"""Protocols for the external collaborators the engine depends on (token movement, authorization)."""

from __future__ import annotations

from enum import Enum
from typing import Protocol


class Capability(str, Enum):
    """Capabilities checked by the engine. ADMIN implies every other capability."""

    CREATE_MARKET = "CREATE_MARKET"
    RESOLVE_MARKET = "RESOLVE_MARKET"
    VALIDATE_MARKET = "VALIDATE_MARKET"
    ADMIN = "ADMIN"


class TokenLedger(Protocol):
    """Fungible token bound to the engine's own account. Both calls are fallible (False or raise)."""

    def transfer(self, to: str, amount: int) -> bool: ...

    def transfer_from(self, sender: str, to: str, amount: int) -> bool: ...


class Authorizer(Protocol):
    """Capability check. The engine never inspects roles directly."""

    def is_authorized(self, caller: str, capability: Capability) -> bool: ...
