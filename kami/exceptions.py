"""
Kami Exceptions

Custom exception classes for the Kami token ledger and staking engine.
Every exception carries a human-readable reason string.
"""


class KamiException(Exception):
    """Base exception for Kami."""
    pass


class ConfigurationError(KamiException):
    """Configuration error."""
    pass


# ── Shared by the ledger and the staking engine ──────────────────────

class InvalidAmountError(KamiException):
    """Raised when an operation is given a zero or negative amount."""
    def __init__(self, message: str = None):
        super().__init__(message or "Amount must be greater than 0")


class UnauthorizedError(KamiException):
    """Raised when a non-owner calls an owner-only operation."""
    def __init__(self, caller: str, action: str = "this operation"):
        self.caller = caller
        super().__init__(f"Caller {caller} is not authorized to perform {action}")


class AlreadyInitializedError(KamiException):
    """Raised when initialize is called twice."""
    def __init__(self, message: str = None):
        super().__init__(message or "Contract is already initialized")


class NotInitializedError(KamiException):
    """Raised when an operation runs before initialize."""
    def __init__(self, message: str = None):
        super().__init__(message or "Contract is not initialized")


# ── Ledger ───────────────────────────────────────────────────────────

class TokenError(KamiException):
    """Base exception for ledger operations."""
    pass


class InsufficientBalanceError(TokenError):
    """Raised when sender balance is too low."""
    def __init__(self, account: str, balance: int, amount: int):
        self.account = account
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"ERC20: transfer amount exceeds balance ({account} holds {balance}, needs {amount})"
        )


class AllowanceExceededError(TokenError):
    """Raised when spender allowance is too low."""
    def __init__(self, allowance: int, amount: int):
        self.allowance = allowance
        self.amount = amount
        super().__init__(
            f"ERC20: transfer amount exceeds allowance (allowance {allowance}, needs {amount})"
        )


class CapExceededError(TokenError):
    """Raised when a mint would push supply past the cap."""
    def __init__(self, cap: int, resulting_supply: int):
        self.cap = cap
        self.resulting_supply = resulting_supply
        super().__init__(f"ERC20Capped: cap exceeded ({resulting_supply} > {cap})")


class CapBelowSupplyError(TokenError):
    """Raised when a new cap would sit below the current supply."""
    def __init__(self, new_cap: int, total_supply: int):
        self.new_cap = new_cap
        self.total_supply = total_supply
        super().__init__(
            f"New cap is lower than total supply ({new_cap} < {total_supply})"
        )


# ── Staking engine ───────────────────────────────────────────────────

class StakingError(KamiException):
    """Base exception for staking operations."""
    pass


class ExceedsStakeError(StakingError):
    """Raised when a withdrawal is larger than the caller's stake."""
    def __init__(self, staked: int, amount: int):
        self.staked = staked
        self.amount = amount
        super().__init__(f"Amount exceeds stake amount ({amount} > {staked})")


class InsufficientRewardReserveError(StakingError):
    """Raised when the engine cannot fund a reward claim."""
    def __init__(self, reserve: int, amount: int):
        self.reserve = reserve
        self.amount = amount
        super().__init__(
            f"Insufficient reward reserve: {reserve} available, {amount} owed"
        )
