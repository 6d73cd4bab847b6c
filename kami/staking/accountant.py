"""
Kami Stake Accountant

Tracks total stake, per-participant stake and reward bookkeeping with a
single cumulative reward-per-stake accumulator.

Each block emits ``rate_at(block)`` reward units shared pro-rata among all
stake in the pool. Instead of crediting every participant every block, the
accountant advances one accumulator,

    reward_per_stake += emission * PRECISION // total_staked

and each participant's owed reward is derived lazily from the difference
between the accumulator and the checkpoint stored on their account:

    owed = staked_amount * (reward_per_stake - checkpoint) // PRECISION

Settling is therefore O(1) per operation however many participants exist
or however long an account has been dormant.
"""

import copy
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..constants import PRECISION
from ..exceptions import StakingError
from .emission import EmissionSchedule


class DepositClockPolicy(Enum):
    """How a new deposit moves the participant's fee reference instant."""
    RESET = "reset"         # Whole stake restarts vesting at the new deposit
    WEIGHTED = "weighted"   # Stake-weighted average of old instant and now


@dataclass
class StakeAccount:
    """
    Per-participant staking record.

    Attributes:
        staked_amount: Current stake
        accumulator_checkpoint: reward_per_stake at the last settlement
        accrued_unclaimed: Reward earned but not yet paid out
        deposit_instant: Reference timestamp for the withdrawal fee
    """
    staked_amount: int = 0
    accumulator_checkpoint: int = 0
    accrued_unclaimed: int = 0
    deposit_instant: int = 0

    @property
    def is_staked(self) -> bool:
        return self.staked_amount > 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakeAccount":
        return cls(**{k: int(data.get(k, 0)) for k in cls.__dataclass_fields__})


@dataclass
class PoolState:
    """Pool-level accumulator state."""
    total_staked: int = 0
    reward_per_stake: int = 0
    last_accrual_block: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolState":
        return cls(**{k: int(data.get(k, 0)) for k in cls.__dataclass_fields__})


@dataclass
class AccountantSnapshot:
    pool: PoolState
    accounts: Dict[str, StakeAccount] = field(default_factory=dict)


class StakeAccountant:
    """
    Reward accounting state machine.

    Every mutation of a participant's stake must be preceded by
    ``settle_account`` for that participant at the current block.
    """

    def __init__(self, schedule: EmissionSchedule, pool: Optional[PoolState] = None):
        self.schedule = schedule
        self.pool = pool or PoolState(last_accrual_block=schedule.start_block)
        self._accounts: Dict[str, StakeAccount] = {}

    # ── Views ─────────────────────────────────────────────────────────

    @property
    def total_staked(self) -> int:
        return self.pool.total_staked

    @property
    def reward_per_stake(self) -> int:
        return self.pool.reward_per_stake

    @property
    def participants(self):
        return list(self._accounts.keys())

    def account(self, participant: str) -> StakeAccount:
        """Stored account, or a blank one for unknown participants (not stored)."""
        return self._accounts.get(participant) or StakeAccount()

    def _account_for_update(self, participant: str) -> StakeAccount:
        acct = self._accounts.get(participant)
        if acct is None:
            acct = StakeAccount(accumulator_checkpoint=self.pool.reward_per_stake)
            self._accounts[participant] = acct
        return acct

    # ── Settlement ────────────────────────────────────────────────────

    def _accumulator_delta(self, current_block: int) -> int:
        if self.pool.total_staked == 0 or current_block <= self.pool.last_accrual_block:
            return 0
        emitted = self.schedule.emission_between(self.pool.last_accrual_block, current_block)
        return emitted * PRECISION // self.pool.total_staked

    def settle(self, current_block: int) -> int:
        """
        Advance the accumulator to *current_block*.

        Emission for blocks in which nothing was staked is forfeited.

        Returns:
            The new reward_per_stake value
        """
        if current_block <= self.pool.last_accrual_block:
            return self.pool.reward_per_stake
        self.pool.reward_per_stake += self._accumulator_delta(current_block)
        self.pool.last_accrual_block = current_block
        return self.pool.reward_per_stake

    def settle_account(self, participant: str, current_block: int) -> StakeAccount:
        """Settle the pool, then move the participant's owed reward into accrued_unclaimed."""
        acc = self.settle(current_block)
        acct = self._account_for_update(participant)
        acct.accrued_unclaimed += self._owed(acct, acc)
        acct.accumulator_checkpoint = acc
        return acct

    @staticmethod
    def _owed(acct: StakeAccount, reward_per_stake: int) -> int:
        return acct.staked_amount * (reward_per_stake - acct.accumulator_checkpoint) // PRECISION

    # ── Dry-run settlement ────────────────────────────────────────────

    def preview_reward_per_stake(self, current_block: int) -> int:
        """Accumulator value settle() would produce, without mutating."""
        return self.pool.reward_per_stake + self._accumulator_delta(current_block)

    def preview_pending(self, participant: str, current_block: int) -> int:
        """accrued_unclaimed settle_account() would produce, without mutating."""
        acct = self._accounts.get(participant)
        if acct is None:
            return 0
        return acct.accrued_unclaimed + self._owed(acct, self.preview_reward_per_stake(current_block))

    # ── Stake mutation (callers settle first) ─────────────────────────

    def credit(self, participant: str, amount: int) -> StakeAccount:
        acct = self._account_for_update(participant)
        acct.staked_amount += amount
        self.pool.total_staked += amount
        return acct

    def debit(self, participant: str, amount: int) -> StakeAccount:
        acct = self._account_for_update(participant)
        if amount > acct.staked_amount:
            raise ValueError(f"Cannot debit {amount} from stake of {acct.staked_amount}")
        acct.staked_amount -= amount
        self.pool.total_staked -= amount
        return acct

    def update_deposit_instant(
        self,
        participant: str,
        now: int,
        amount: int,
        policy: DepositClockPolicy,
    ) -> int:
        """
        Move the fee reference instant for a deposit of *amount* at *now*.

        Must run before the deposit is credited so the weighted policy sees
        the pre-deposit stake.
        """
        acct = self._account_for_update(participant)
        if policy is DepositClockPolicy.WEIGHTED and acct.staked_amount > 0:
            total = acct.staked_amount + amount
            acct.deposit_instant = (acct.deposit_instant * acct.staked_amount + now * amount) // total
        else:
            acct.deposit_instant = now
        return acct.deposit_instant

    def take_reward(self, participant: str) -> int:
        acct = self._accounts.get(participant)
        if acct is None:
            return 0
        amount = acct.accrued_unclaimed
        acct.accrued_unclaimed = 0
        return amount

    # ── Snapshot / restore (for revert) ───────────────────────────────

    def snapshot(self) -> AccountantSnapshot:
        """Capture current state for potential revert."""
        return AccountantSnapshot(
            pool=copy.copy(self.pool),
            accounts={k: copy.copy(v) for k, v in self._accounts.items()},
        )

    def restore(self, snapshot: AccountantSnapshot) -> None:
        """Restore state from snapshot."""
        self.pool = snapshot.pool
        self._accounts = snapshot.accounts

    # ── Invariants ────────────────────────────────────────────────────

    def check_invariants(self) -> None:
        """Raise StakingError if stake or checkpoint bookkeeping is inconsistent."""
        staked = sum(a.staked_amount for a in self._accounts.values())
        if staked != self.pool.total_staked:
            raise StakingError(
                f"sum(staked_amount)={staked} != total_staked={self.pool.total_staked}"
            )
        for participant, acct in self._accounts.items():
            if acct.accumulator_checkpoint > self.pool.reward_per_stake:
                raise StakingError(f"{participant} checkpoint ahead of accumulator")

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool": self.pool.to_dict(),
            "accounts": {k: v.to_dict() for k, v in self._accounts.items()},
        }

    @classmethod
    def from_dict(cls, schedule: EmissionSchedule, data: Dict[str, Any]) -> "StakeAccountant":
        accountant = cls(schedule, PoolState.from_dict(data.get("pool", {})))
        accountant._accounts = {
            k: StakeAccount.from_dict(v) for k, v in data.get("accounts", {}).items()
        }
        return accountant
