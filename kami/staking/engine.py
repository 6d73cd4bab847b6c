"""
Kami Stake Rewards Engine

Orchestrates the staking pool:
- Deposits pull stake token from the participant (pre-approved allowance)
- Withdrawals return stake token minus a time-decaying early-exit fee
- Claims pay accrued reward token from the engine's reserve (or by minting)
- Read-only queries dry-run settlement without touching state

Every state-changing operation settles the accumulator first, runs under a
single asyncio.Lock, and is all-or-nothing: on failure the accounting
snapshot taken at entry is restored before the error propagates.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..chain import ChainContext
from ..exceptions import (
    AlreadyInitializedError,
    ExceedsStakeError,
    InsufficientRewardReserveError,
    InvalidAmountError,
    NotInitializedError,
    UnauthorizedError,
)
from ..logger import get_logger
from ..tokens.ledger import KamiToken
from .accountant import DepositClockPolicy, StakeAccount, StakeAccountant
from .emission import EmissionSchedule, TailPolicy
from .fees import FeeSchedule

logger = get_logger(__name__)

DEFAULT_ENGINE_ADDRESS = "0x" + "5a" * 20


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DepositEvent:
    who: str
    amount: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Deposit",
            "who": self.who,
            "amount": self.amount,
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class WithdrawEvent:
    who: str
    amount: int
    fee: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Withdraw",
            "who": self.who,
            "amount": self.amount,
            "fee": self.fee,
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class ClaimedEvent:
    who: str
    amount: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Claimed",
            "who": self.who,
            "amount": self.amount,
            "blockNumber": self.block_number,
        }


# ══════════════════════════════════════════════════════════════════════
#  ENGINE
# ══════════════════════════════════════════════════════════════════════

class StakeRewardsEngine:
    """
    Single-pool staking rewards engine.

    Holds references to (does not own) the stake and reward ledgers; owns
    the accountant, the fee schedule and the retained-fee balance.
    """

    def __init__(
        self,
        chain: ChainContext,
        address: str = DEFAULT_ENGINE_ADDRESS,
        fee_schedule: Optional[FeeSchedule] = None,
        deposit_clock_policy: DepositClockPolicy = DepositClockPolicy.RESET,
    ):
        """
        Args:
            chain: Host chain supplying block height and timestamp
            address: Account the engine holds tokens under
            fee_schedule: Early-withdrawal fee parameters
            deposit_clock_policy: How deposits move the fee reference instant
        """
        self.chain = chain
        self.address = address
        self.fee_schedule = fee_schedule or FeeSchedule()
        self.deposit_clock_policy = deposit_clock_policy
        self._lock = asyncio.Lock()

        self._owner: Optional[str] = None
        self.stake_token: Optional[KamiToken] = None
        self.reward_token: Optional[KamiToken] = None
        self._accountant: Optional[StakeAccountant] = None

        self._fees_collected = 0
        self._events: List[Any] = []

    @classmethod
    def from_config(
        cls,
        chain: ChainContext,
        config,
        owner: str,
        stake_token: KamiToken,
        reward_token: KamiToken,
        address: str = DEFAULT_ENGINE_ADDRESS,
    ) -> "StakeRewardsEngine":
        """Construct and initialize an engine from a ``kami.config.KamiConfig``."""
        engine = cls(
            chain,
            address=address,
            fee_schedule=FeeSchedule.from_config(config.fees),
            deposit_clock_policy=DepositClockPolicy(config.staking.deposit_clock_policy),
        )
        engine.initialize(
            owner,
            stake_token,
            reward_token,
            config.staking.epoch_length_blocks,
            config.staking.epoch_rates,
            tail_policy=TailPolicy(config.staking.tail_policy),
        )
        return engine

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    def initialize(
        self,
        caller: str,
        stake_token: KamiToken,
        reward_token: KamiToken,
        epoch_length_blocks: int,
        epoch_rates: Sequence[int],
        tail_policy: TailPolicy = TailPolicy.HOLD,
    ) -> None:
        """
        One-time pool setup. The emission schedule starts at the current block
        and *caller* becomes the owner.

        Raises:
            AlreadyInitializedError: On a second call
            ConfigurationError: On invalid schedule parameters
        """
        if self._owner is not None:
            raise AlreadyInitializedError("Staking pool is already initialized")

        schedule = EmissionSchedule(
            epoch_length_blocks=epoch_length_blocks,
            epoch_rates=tuple(epoch_rates),
            start_block=self.chain.block_number,
            tail_policy=tail_policy,
        )
        self._accountant = StakeAccountant(schedule)
        self.stake_token = stake_token
        self.reward_token = reward_token
        self._owner = caller

        logger.info(
            f"Staking pool initialized: stake={stake_token.symbol} reward={reward_token.symbol} "
            f"epochs={list(schedule.epoch_rates)} x {epoch_length_blocks} blocks "
            f"from block {schedule.start_block}"
        )

    # =========================================================================
    # GUARDS
    # =========================================================================

    def _require_initialized(self):
        if self._owner is None:
            raise NotInitializedError("Staking pool is not initialized")

    def _require_owner(self, caller: str, action: str):
        self._require_initialized()
        if caller != self._owner:
            logger.warning(f"Rejected {action}: {caller} is not owner")
            raise UnauthorizedError(caller, action)

    @asynccontextmanager
    async def _operation(self, name: str):
        """Serialize one state-changing operation and roll back on failure."""
        self._require_initialized()
        async with self._lock:
            snapshot = self._accountant.snapshot()
            fees_collected = self._fees_collected
            try:
                yield
            except Exception as e:
                self._accountant.restore(snapshot)
                self._fees_collected = fees_collected
                logger.warning(f"{name} reverted: {e}")
                raise

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    @property
    def is_initialized(self) -> bool:
        return self._owner is not None

    @property
    def schedule(self) -> EmissionSchedule:
        self._require_initialized()
        return self._accountant.schedule

    @property
    def fees_collected(self) -> int:
        """Withdrawal fees retained by the pool and not yet swept."""
        return self._fees_collected

    @property
    def reward_per_stake(self) -> int:
        self._require_initialized()
        return self._accountant.reward_per_stake

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def balance_of(self, participant: str) -> int:
        self._require_initialized()
        return self._accountant.account(participant).staked_amount

    def total_supply(self) -> int:
        self._require_initialized()
        return self._accountant.total_staked

    def user_details(self, participant: str) -> StakeAccount:
        """Copy of the participant's stored record."""
        self._require_initialized()
        acct = self._accountant.account(participant)
        return StakeAccount(**acct.to_dict())

    def pending_reward(self, participant: str) -> int:
        """
        Reward *participant* would hold after settling at the current block.

        Read-only: the accumulator advance is computed, not persisted.
        """
        self._require_initialized()
        return self._accountant.preview_pending(participant, self.chain.block_number)

    def withdrawal_fee(self, participant: str, amount: int) -> int:
        """Fee that withdrawing *amount* would incur at the current timestamp."""
        self._require_initialized()
        acct = self._accountant.account(participant)
        return self.fee_schedule.fee_for(self.chain.timestamp - acct.deposit_instant, amount)

    def reward_reserve(self) -> int:
        """Reward-token balance available for claims."""
        self._require_initialized()
        balance = self.reward_token.balance_of(self.address)
        if self.reward_token is self.stake_token:
            # Principal and retained fees are never paid out as rewards
            balance -= self._accountant.total_staked + self._fees_collected
        return max(0, balance)

    # =========================================================================
    # STAKING OPERATIONS
    # =========================================================================

    async def deposit(self, caller: str, amount: int) -> DepositEvent:
        """
        Stake *amount* of the stake token.

        Raises:
            InvalidAmountError: If amount is not positive
            AllowanceExceededError: If the engine is not approved for amount
            InsufficientBalanceError: If the caller lacks the stake token
        """
        self._require_initialized()
        if amount <= 0:
            raise InvalidAmountError()

        async with self._operation("deposit"):
            block = self.chain.block_number
            self._accountant.settle_account(caller, block)

            await self.stake_token.transfer_from(self.address, caller, self.address, amount)

            self._accountant.update_deposit_instant(
                caller, self.chain.timestamp, amount, self.deposit_clock_policy
            )
            acct = self._accountant.credit(caller, amount)

            event = DepositEvent(who=caller, amount=amount, block_number=block)
            self._events.append(event)

        logger.info(
            f"Deposit: {caller} staked {amount} {self.stake_token.symbol} "
            f"(stake={acct.staked_amount}, pool={self._accountant.total_staked})"
        )
        return event

    async def withdraw(self, caller: str, amount: int) -> WithdrawEvent:
        """
        Unstake *amount*; the caller receives amount minus the early-exit fee.

        Raises:
            InvalidAmountError: If amount is not positive
            ExceedsStakeError: If amount is larger than the caller's stake
        """
        self._require_initialized()
        if amount <= 0:
            raise InvalidAmountError()

        async with self._operation("withdraw"):
            staked = self._accountant.account(caller).staked_amount
            if amount > staked:
                raise ExceedsStakeError(staked, amount)

            block = self.chain.block_number
            acct = self._accountant.settle_account(caller, block)
            fee = self.fee_schedule.fee_for(self.chain.timestamp - acct.deposit_instant, amount)

            self._accountant.debit(caller, amount)
            self._fees_collected += fee
            await self.stake_token.transfer(self.address, caller, amount - fee)

            event = WithdrawEvent(who=caller, amount=amount, fee=fee, block_number=block)
            self._events.append(event)

        logger.info(
            f"Withdraw: {caller} unstaked {amount} {self.stake_token.symbol} "
            f"(fee={fee}, stake={acct.staked_amount}, pool={self._accountant.total_staked})"
        )
        return event

    async def claim_rewards(self, caller: str) -> ClaimedEvent:
        """
        Pay out everything the caller has accrued.

        Raises:
            InsufficientRewardReserveError: If the reserve (plus any mint
                allowance) cannot cover the claim
        """
        async with self._operation("claim_rewards"):
            block = self.chain.block_number
            self._accountant.settle_account(caller, block)
            amount = self._accountant.take_reward(caller)

            if amount > 0:
                await self._pay_reward(caller, amount)

            event = ClaimedEvent(who=caller, amount=amount, block_number=block)
            self._events.append(event)

        logger.info(f"Claimed: {caller} received {amount} {self.reward_token.symbol}")
        return event

    async def _pay_reward(self, recipient: str, amount: int) -> None:
        """
        Pay from the reserve first, minting any shortfall when the engine is
        an authorized minter. All checks run before the first ledger call.
        """
        reserve = self.reward_reserve()
        from_reserve = min(reserve, amount)
        shortfall = amount - from_reserve

        if shortfall > 0:
            can_mint = (
                self.reward_token.is_minter(self.address)
                and shortfall <= self.reward_token.mintable()
            )
            if not can_mint:
                raise InsufficientRewardReserveError(reserve, amount)

        if from_reserve > 0:
            await self.reward_token.transfer(self.address, recipient, from_reserve)
        if shortfall > 0:
            await self.reward_token.mint(self.address, shortfall, recipient)

    # =========================================================================
    # OWNER CONFIGURATION
    # =========================================================================

    def set_fee_schedule(self, caller: str, fee_schedule: FeeSchedule) -> None:
        self._require_owner(caller, "set_fee_schedule")
        self.fee_schedule = fee_schedule
        logger.info(f"Fee schedule updated: {fee_schedule.to_dict()}")

    def set_deposit_clock_policy(self, caller: str, policy: DepositClockPolicy) -> None:
        self._require_owner(caller, "set_deposit_clock_policy")
        self.deposit_clock_policy = policy
        logger.info(f"Deposit clock policy updated: {policy.value}")

    async def sweep_fees(self, caller: str, recipient: str) -> int:
        """
        Pay retained withdrawal fees to *recipient*. Staked principal is
        never touched.

        Returns:
            Amount swept
        """
        self._require_owner(caller, "sweep_fees")
        async with self._operation("sweep_fees"):
            amount = self._fees_collected
            if amount > 0:
                self._fees_collected = 0
                await self.stake_token.transfer(self.address, recipient, amount)

        logger.info(f"Swept {amount} {self.stake_token.symbol} in fees to {recipient}")
        return amount

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """Persisted state layout: pool record, per-participant records, parameters."""
        self._require_initialized()
        return {
            "address": self.address,
            "owner": self._owner,
            "stakeToken": self.stake_token.address,
            "rewardToken": self.reward_token.address,
            "schedule": self._accountant.schedule.to_dict(),
            "feeSchedule": self.fee_schedule.to_dict(),
            "depositClockPolicy": self.deposit_clock_policy.value,
            "feesCollected": self._fees_collected,
            "state": self._accountant.to_dict(),
        }

    @classmethod
    def from_dict(
        cls,
        chain: ChainContext,
        stake_token: KamiToken,
        reward_token: KamiToken,
        data: Dict[str, Any],
    ) -> "StakeRewardsEngine":
        """Rebuild an engine from ``to_dict`` output and live ledger references."""
        engine = cls(
            chain,
            address=data["address"],
            fee_schedule=FeeSchedule.from_dict(data["feeSchedule"]),
            deposit_clock_policy=DepositClockPolicy(data["depositClockPolicy"]),
        )
        schedule = EmissionSchedule.from_dict(data["schedule"])
        engine._accountant = StakeAccountant.from_dict(schedule, data["state"])
        engine.stake_token = stake_token
        engine.reward_token = reward_token
        engine._owner = data["owner"]
        engine._fees_collected = int(data.get("feesCollected", 0))
        return engine

    def __repr__(self) -> str:
        if self._owner is None:
            return "<StakeRewardsEngine uninitialized>"
        return (
            f"<StakeRewardsEngine staked={self._accountant.total_staked} "
            f"participants={len(self._accountant.participants)}>"
        )
