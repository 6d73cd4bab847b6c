"""
Kami Early-Withdrawal Fee Schedule

A pure function of (seconds since the reference deposit, withdrawal size)
to a fee. The fee rate decays from ``max_bps`` towards ``floor_bps`` over
the vesting window and stays at the floor afterwards.

Two decay shapes are supported:

    LINEAR:  rate falls linearly from max_bps at t=0 to floor_bps at the window
    STEPPED: rate is taken from a table of (elapsed_seconds, bps) tiers
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple

from ..constants import (
    BPS_DENOMINATOR,
    DEFAULT_FLOOR_FEE_BPS,
    DEFAULT_MAX_FEE_BPS,
    DEFAULT_VESTING_WINDOW_SECONDS,
)
from ..exceptions import ConfigurationError


class FeeCurve(Enum):
    """Shape of the fee decay inside the vesting window."""
    LINEAR = "linear"
    STEPPED = "stepped"


@dataclass(frozen=True)
class FeeSchedule:
    """
    Early-withdrawal fee parameters.

    Attributes:
        vesting_window_seconds: Holding time after which only the floor applies
        floor_bps: Fee rate once vested (100 = 1%)
        max_bps: Fee rate at the instant of deposit (LINEAR curve)
        curve: Decay shape
        steps: (elapsed_seconds, bps) tiers for the STEPPED curve, ascending
    """
    vesting_window_seconds: int = DEFAULT_VESTING_WINDOW_SECONDS
    floor_bps: int = DEFAULT_FLOOR_FEE_BPS
    max_bps: int = DEFAULT_MAX_FEE_BPS
    curve: FeeCurve = FeeCurve.LINEAR
    steps: Tuple[Tuple[int, int], ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.vesting_window_seconds <= 0:
            raise ConfigurationError("vesting_window_seconds must be positive")
        if not 0 <= self.floor_bps <= BPS_DENOMINATOR:
            raise ConfigurationError(f"floor_bps must be 0-{BPS_DENOMINATOR}, got {self.floor_bps}")

        steps = tuple((int(t), int(b)) for t, b in self.steps)
        object.__setattr__(self, "steps", steps)

        if self.curve is FeeCurve.LINEAR:
            if not self.floor_bps < self.max_bps <= BPS_DENOMINATOR:
                raise ConfigurationError(
                    f"max_bps must be above floor_bps ({self.floor_bps}) and at most "
                    f"{BPS_DENOMINATOR}, got {self.max_bps}"
                )
        else:
            self._validate_steps(steps)

    def _validate_steps(self, steps: Tuple[Tuple[int, int], ...]) -> None:
        if not steps:
            raise ConfigurationError("STEPPED fee curve needs at least one tier")
        if steps[0][0] != 0:
            raise ConfigurationError("First fee tier must start at elapsed time 0")

        prev_threshold, prev_bps = -1, BPS_DENOMINATOR
        for threshold, bps in steps:
            if threshold <= prev_threshold:
                raise ConfigurationError("Fee tier thresholds must be strictly ascending")
            if threshold >= self.vesting_window_seconds:
                raise ConfigurationError("Fee tiers must start inside the vesting window")
            if bps > prev_bps:
                raise ConfigurationError("Fee tier rates must be non-increasing")
            if bps <= self.floor_bps:
                raise ConfigurationError("Fee tier rates must stay above floor_bps")
            prev_threshold, prev_bps = threshold, bps

    # ── Evaluation ────────────────────────────────────────────────────

    def fee_for(self, elapsed_seconds: int, amount: int) -> int:
        """
        Fee charged on withdrawing *amount* after *elapsed_seconds*.

        The result is rounded down and never exceeds *amount*.
        """
        if amount <= 0:
            return 0
        elapsed = max(0, elapsed_seconds)
        window = self.vesting_window_seconds

        if elapsed >= window:
            return amount * self.floor_bps // BPS_DENOMINATOR

        if self.curve is FeeCurve.STEPPED:
            return amount * self._tier_bps(elapsed) // BPS_DENOMINATOR

        # Linear: floor + (max - floor) * remaining / window, one division
        remaining = window - elapsed
        numerator = amount * (self.floor_bps * window + (self.max_bps - self.floor_bps) * remaining)
        return numerator // (BPS_DENOMINATOR * window)

    def _tier_bps(self, elapsed: int) -> int:
        bps = self.steps[0][1]
        for threshold, tier_bps in self.steps:
            if threshold > elapsed:
                break
            bps = tier_bps
        return bps

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vesting_window_seconds": self.vesting_window_seconds,
            "floor_bps": self.floor_bps,
            "max_bps": self.max_bps,
            "curve": self.curve.value,
            "steps": [list(s) for s in self.steps],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeeSchedule":
        return cls(
            vesting_window_seconds=int(data.get("vesting_window_seconds", DEFAULT_VESTING_WINDOW_SECONDS)),
            floor_bps=int(data.get("floor_bps", DEFAULT_FLOOR_FEE_BPS)),
            max_bps=int(data.get("max_bps", DEFAULT_MAX_FEE_BPS)),
            curve=FeeCurve(data.get("curve", FeeCurve.LINEAR.value)),
            steps=tuple(tuple(s) for s in data.get("steps", ())),
        )

    @classmethod
    def from_config(cls, fees) -> "FeeSchedule":
        """Build from a ``kami.config.FeeSectionConfig``."""
        return cls.from_dict(fees.to_dict())
