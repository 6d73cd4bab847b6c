"""
Kami Staking Rewards

Provides:
  - EmissionSchedule   : block height → per-block reward rate, stepping down per epoch
  - FeeSchedule        : time-decaying early-withdrawal fee
  - StakeAccountant    : reward-per-stake accumulator and per-participant records
  - StakeRewardsEngine : deposit / withdraw / claim orchestration over two ledgers
"""

from .emission import EmissionSchedule, TailPolicy
from .fees import FeeCurve, FeeSchedule
from .accountant import (
    DepositClockPolicy,
    PoolState,
    StakeAccount,
    StakeAccountant,
)
from .engine import (
    ClaimedEvent,
    DepositEvent,
    StakeRewardsEngine,
    WithdrawEvent,
)

__all__ = [
    # Emission
    "EmissionSchedule",
    "TailPolicy",
    # Fees
    "FeeCurve",
    "FeeSchedule",
    # Accounting
    "DepositClockPolicy",
    "PoolState",
    "StakeAccount",
    "StakeAccountant",
    # Engine
    "StakeRewardsEngine",
    "DepositEvent",
    "WithdrawEvent",
    "ClaimedEvent",
]
