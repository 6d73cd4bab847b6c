"""
Kami Token Ledger

Implements a capped, mintable, owned fungible token with:
  - ERC-20–style interface (transfer, approve, transfer_from, balance_of)
  - Owner-only minting bounded by a supply cap
  - Owner-only cap updates (never below current supply)
  - Owner-authorized minters (e.g. a staking engine paying rewards)

The same class backs both the stake token and the reward token.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from ..constants import DEFAULT_TOKEN_DECIMALS, ZERO_ADDRESS
from ..exceptions import (
    AllowanceExceededError,
    AlreadyInitializedError,
    CapBelowSupplyError,
    CapExceededError,
    InsufficientBalanceError,
    InvalidAmountError,
    NotInitializedError,
    TokenError,
    UnauthorizedError,
)
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every successful transfer, mint and burn."""
    token_symbol: str
    sender: str
    recipient: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ApprovalEvent:
    """Emitted on every successful approve."""
    token_symbol: str
    owner: str
    spender: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Approval",
            "token": self.token_symbol,
            "owner": self.owner,
            "spender": self.spender,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  KAMI TOKEN
# ══════════════════════════════════════════════════════════════════════

class KamiToken:
    """
    Capped, mintable, owned fungible token.

    Mirrors ERC-20 semantics:
        - balance_of(address) → int
        - transfer(sender, recipient, amount)
        - approve(owner, spender, amount)
        - transfer_from(spender, sender, recipient, amount)
        - total_supply → int

    Owner-gated operations:
        - mint(caller, amount, recipient=None)
        - update_cap(caller, new_cap)
        - add_minter / remove_minter

    Balances are plain integers in the token's smallest unit.
    """

    def __init__(
        self,
        name: str,
        symbol: str,
        decimals: int = DEFAULT_TOKEN_DECIMALS,
        address: str = "",
    ):
        """
        Args:
            name: Human-readable token name
            symbol: Short ticker (e.g. "KAMI")
            decimals: Fractional digits
            address: Ledger address (defaults to a symbol-derived id)
        """
        if not name:
            raise TokenError("Token name cannot be empty")
        if not symbol:
            raise TokenError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise TokenError(f"Decimals must be 0-18, got {decimals}")

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.address = address or f"token:{symbol}"

        self._owner: Optional[str] = None
        self._cap = 0
        self._total_supply = 0

        # Balances & allowances
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}  # (owner, spender)

        # Owner-authorized minters
        self._minters: Set[str] = set()

        # Event log
        self._events: List[Any] = []

    # ── Initialization ────────────────────────────────────────────────

    def initialize(self, caller: str, cap: int) -> None:
        """
        One-time initialization: *caller* becomes owner, supply starts at zero.

        Raises:
            AlreadyInitializedError: On a second call
            InvalidAmountError: If cap is negative
        """
        if self._owner is not None:
            raise AlreadyInitializedError(f"Token {self.symbol} is already initialized")
        if cap < 0:
            raise InvalidAmountError("Cap cannot be negative")

        self._owner = caller
        self._cap = cap
        logger.info(f"Token initialized: {self.symbol} ({self.name}) owner={caller} cap={cap}")

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    @property
    def is_initialized(self) -> bool:
        return self._owner is not None

    @property
    def total_supply(self) -> int:
        return self._total_supply

    @property
    def cap(self) -> int:
        return self._cap

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def is_minter(self, address: str) -> bool:
        return address == self._owner or address in self._minters

    def mintable(self) -> int:
        """Headroom left under the cap."""
        return self._cap - self._total_supply

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    # ── State guards ──────────────────────────────────────────────────

    def _require_initialized(self):
        if self._owner is None:
            raise NotInitializedError(f"Token {self.symbol} is not initialized")

    def _require_owner(self, caller: str, action: str):
        self._require_initialized()
        if caller != self._owner:
            logger.warning(f"Rejected {action} on {self.symbol}: {caller} is not owner")
            raise UnauthorizedError(caller, action)

    @staticmethod
    def _require_non_negative(amount: int, what: str = "Amount"):
        if amount < 0:
            raise InvalidAmountError(f"{what} cannot be negative")

    # ── Core ERC-20 operations ────────────────────────────────────────

    def _move(self, sender: str, recipient: str, amount: int) -> TransferEvent:
        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(sender, bal, amount)

        self._balances[sender] = bal - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

        event = TransferEvent(
            token_symbol=self.symbol,
            sender=sender,
            recipient=recipient,
            amount=amount,
        )
        self._events.append(event)
        return event

    async def transfer(
        self,
        sender: str,
        recipient: str,
        amount: int,
    ) -> TransferEvent:
        """
        Transfer tokens from *sender* to *recipient*.

        Raises:
            InvalidAmountError: If amount is negative
            InsufficientBalanceError: If sender balance is too low
        """
        self._require_initialized()
        self._require_non_negative(amount)

        event = self._move(sender, recipient, amount)
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return event

    async def approve(
        self,
        owner: str,
        spender: str,
        amount: int,
    ) -> ApprovalEvent:
        """Set spender allowance, overwriting any previous value."""
        self._require_initialized()
        self._require_non_negative(amount, "Allowance amount")

        self._allowances[(owner, spender)] = amount

        event = ApprovalEvent(
            token_symbol=self.symbol,
            owner=owner,
            spender=spender,
            amount=amount,
        )
        self._events.append(event)
        logger.debug(f"Approve: {owner} → {spender} allowance={amount} {self.symbol}")
        return event

    async def transfer_from(
        self,
        spender: str,
        sender: str,
        recipient: str,
        amount: int,
    ) -> TransferEvent:
        """
        Transfer on behalf of *sender* using spender's allowance.

        The allowance is checked before the balance; nothing changes unless
        both checks pass.

        Raises:
            AllowanceExceededError: If spender allowance is too low
            InsufficientBalanceError: If sender balance is too low
        """
        self._require_initialized()
        self._require_non_negative(amount)

        allow = self.allowance(sender, spender)
        if allow < amount:
            raise AllowanceExceededError(allow, amount)

        event = self._move(sender, recipient, amount)
        self._allowances[(sender, spender)] = allow - amount
        logger.debug(
            f"transferFrom: spender={spender} {sender} → {recipient} {amount} {self.symbol}"
        )
        return event

    # ── Supply management (owner) ─────────────────────────────────────

    def add_minter(self, caller: str, minter: str):
        """Authorize an address to mint within the cap."""
        self._require_owner(caller, "add_minter")
        self._minters.add(minter)
        logger.info(f"Minter added: {minter} for {self.symbol}")

    def remove_minter(self, caller: str, minter: str):
        self._require_owner(caller, "remove_minter")
        self._minters.discard(minter)
        logger.info(f"Minter removed: {minter} for {self.symbol}")

    async def mint(
        self,
        caller: str,
        amount: int,
        recipient: Optional[str] = None,
    ) -> TransferEvent:
        """
        Mint new tokens to *recipient* (the caller by default).

        Raises:
            UnauthorizedError: If caller is neither owner nor authorized minter
            CapExceededError: If the resulting supply would exceed the cap
        """
        self._require_initialized()
        if not self.is_minter(caller):
            logger.warning(f"Rejected mint on {self.symbol}: {caller} is not a minter")
            raise UnauthorizedError(caller, "mint")
        self._require_non_negative(amount, "Mint amount")

        new_supply = self._total_supply + amount
        if new_supply > self._cap:
            raise CapExceededError(self._cap, new_supply)

        to = recipient or caller
        self._total_supply = new_supply
        self._balances[to] = self._balances.get(to, 0) + amount

        event = TransferEvent(
            token_symbol=self.symbol,
            sender=ZERO_ADDRESS,
            recipient=to,
            amount=amount,
        )
        self._events.append(event)
        logger.info(f"Mint: {amount} {self.symbol} → {to} (supply={new_supply}/{self._cap})")
        return event

    def update_cap(self, caller: str, new_cap: int) -> None:
        """
        Replace the supply cap.

        Raises:
            UnauthorizedError: If caller is not the owner
            CapBelowSupplyError: If new_cap is lower than the current supply
        """
        self._require_owner(caller, "update_cap")
        if new_cap < self._total_supply:
            raise CapBelowSupplyError(new_cap, self._total_supply)

        old_cap = self._cap
        self._cap = new_cap
        logger.info(f"Cap updated: {self.symbol} {old_cap} → {new_cap}")

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "address": self.address,
            "owner": self._owner,
            "cap": self._cap,
            "totalSupply": self._total_supply,
            "holders": len([b for b in self._balances.values() if b > 0]),
            "minters": sorted(self._minters),
        }

    def __repr__(self) -> str:
        return f"<KamiToken {self.symbol} supply={self._total_supply} cap={self._cap}>"
