"""
Kami Emission Schedule

Maps block height to a per-block reward rate. The rate is constant within
an epoch of fixed length and steps to the next entry of the rate table at
each epoch boundary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

from ..exceptions import ConfigurationError


class TailPolicy(Enum):
    """Emission once the rate table is exhausted."""
    HOLD = "hold"   # Keep emitting at the last epoch's rate
    STOP = "stop"   # Emit nothing


@dataclass(frozen=True)
class EmissionSchedule:
    """
    Piecewise-constant emission schedule.

    Attributes:
        epoch_length_blocks: Blocks per epoch
        epoch_rates: Reward units per block for epochs 0..N-1
        start_block: Block at which epoch 0 begins
        tail_policy: Behaviour past the last defined epoch
    """
    epoch_length_blocks: int
    epoch_rates: Tuple[int, ...]
    start_block: int = 0
    tail_policy: TailPolicy = field(default=TailPolicy.HOLD)

    def __post_init__(self):
        if self.epoch_length_blocks <= 0:
            raise ConfigurationError(
                f"epoch_length_blocks must be positive, got {self.epoch_length_blocks}"
            )
        if not self.epoch_rates:
            raise ConfigurationError("epoch_rates cannot be empty")
        if any(r < 0 for r in self.epoch_rates):
            raise ConfigurationError("epoch_rates cannot contain negative rates")
        if self.start_block < 0:
            raise ConfigurationError("start_block cannot be negative")
        # Accept any sequence, store an immutable tuple
        object.__setattr__(self, "epoch_rates", tuple(int(r) for r in self.epoch_rates))

    @property
    def epoch_count(self) -> int:
        return len(self.epoch_rates)

    @property
    def end_block(self) -> int:
        """First block after the last defined epoch."""
        return self.start_block + self.epoch_count * self.epoch_length_blocks

    def epoch_index(self, block: int) -> int:
        return (block - self.start_block) // self.epoch_length_blocks

    def rate_at(self, block: int) -> int:
        """Reward units emitted in *block*."""
        if block < self.start_block:
            return 0
        index = self.epoch_index(block)
        if index >= self.epoch_count:
            if self.tail_policy is TailPolicy.STOP:
                return 0
            index = self.epoch_count - 1
        return self.epoch_rates[index]

    def emission_between(self, from_block: int, to_block: int) -> int:
        """
        Total reward units emitted over blocks [from_block, to_block).

        Walks epoch segments, not blocks, so the cost is bounded by the
        number of epochs crossed.
        """
        if to_block <= from_block:
            return 0

        total = 0
        block = max(from_block, self.start_block)
        while block < to_block:
            if block >= self.end_block:
                # Tail segment runs to the end of the range at a single rate
                total += self.rate_at(block) * (to_block - block)
                break
            segment_end = min(
                to_block,
                self.start_block + (self.epoch_index(block) + 1) * self.epoch_length_blocks,
            )
            total += self.rate_at(block) * (segment_end - block)
            block = segment_end
        return total

    def to_dict(self) -> dict:
        return {
            "epoch_length_blocks": self.epoch_length_blocks,
            "epoch_rates": list(self.epoch_rates),
            "start_block": self.start_block,
            "tail_policy": self.tail_policy.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EmissionSchedule":
        return cls(
            epoch_length_blocks=int(data["epoch_length_blocks"]),
            epoch_rates=tuple(data["epoch_rates"]),
            start_block=int(data.get("start_block", 0)),
            tail_policy=TailPolicy(data.get("tail_policy", TailPolicy.HOLD.value)),
        )

