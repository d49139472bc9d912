"""In-memory token and role registry used by the CLI, API server, simulations and tests."""

from __future__ import annotations

from threading import Lock

import structlog

from predamm.collaborators.base import Capability

log = structlog.get_logger(__name__)

ENGINE_ACCOUNT = "engine"


class InMemoryToken:
    """Balance map with the TokenLedger interface. transfer() spends from `holder` (the engine)."""

    def __init__(self, holder: str = ENGINE_ACCOUNT) -> None:
        self.holder = holder
        self.balances: dict[str, int] = {}
        self._lock = Lock()

    def mint(self, account: str, amount: int) -> None:
        with self._lock:
            self.balances[account] = self.balances.get(account, 0) + amount

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def _move(self, sender: str, to: str, amount: int) -> bool:
        with self._lock:
            if amount < 0 or self.balances.get(sender, 0) < amount:
                log.debug("token_transfer_rejected", sender=sender, to=to, amount=amount)
                return False
            self.balances[sender] = self.balances.get(sender, 0) - amount
            self.balances[to] = self.balances.get(to, 0) + amount
        return True

    def transfer(self, to: str, amount: int) -> bool:
        return self._move(self.holder, to, amount)

    def transfer_from(self, sender: str, to: str, amount: int) -> bool:
        return self._move(sender, to, amount)


class RoleRegistry:
    """Owner plus per-account capability grants. The owner and ADMIN holders pass every check."""

    def __init__(self, owner: str) -> None:
        self.owner = owner
        self._grants: dict[str, set[Capability]] = {}

    def grant(self, account: str, *capabilities: Capability) -> None:
        self._grants.setdefault(account, set()).update(capabilities)

    def revoke(self, account: str, capability: Capability) -> None:
        self._grants.get(account, set()).discard(capability)

    def capabilities_of(self, account: str) -> set[Capability]:
        if account == self.owner:
            return set(Capability)
        return set(self._grants.get(account, set()))

    def is_authorized(self, caller: str, capability: Capability) -> bool:
        if caller == self.owner:
            return True
        granted = self._grants.get(caller, set())
        return Capability.ADMIN in granted or capability in granted
