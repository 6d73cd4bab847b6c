"""
Kami Host Chain Context

The ledger and the staking engine run "inside" a host chain that supplies
the current block height and block timestamp. ChainContext is that host:
operations read the block they execute in from here, and callers advance
it by mining blocks or moving time forward.
"""

from dataclasses import dataclass

from .constants import DEFAULT_BLOCK_TIME_SECONDS, DEFAULT_GENESIS_TIMESTAMP
from .logger import get_logger

logger = get_logger(__name__)


@dataclass
class ChainContext:
    """
    Block height and timestamp of the host chain.

    Attributes:
        block_number: Height of the block operations currently execute in
        timestamp: Unix timestamp (seconds) of that block
        block_time: Seconds added to the timestamp per mined block
    """
    block_number: int = 0
    timestamp: int = DEFAULT_GENESIS_TIMESTAMP
    block_time: int = DEFAULT_BLOCK_TIME_SECONDS

    def __post_init__(self):
        if self.block_number < 0:
            raise ValueError("block_number cannot be negative")
        if self.block_time < 0:
            raise ValueError("block_time cannot be negative")

    def mine(self, n: int = 1) -> int:
        """
        Produce *n* blocks.

        Returns:
            The new block number
        """
        if n < 0:
            raise ValueError("Cannot mine a negative number of blocks")
        self.block_number += n
        self.timestamp += n * self.block_time
        logger.debug(f"Mined {n} block(s): height={self.block_number} ts={self.timestamp}")
        return self.block_number

    def increase_time(self, seconds: int) -> int:
        """Move the timestamp forward without producing a block."""
        if seconds < 0:
            raise ValueError("Time cannot move backwards")
        self.timestamp += seconds
        return self.timestamp
