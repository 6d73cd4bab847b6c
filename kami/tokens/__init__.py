"""
Kami Token Ledger

Provides:
  - KamiToken      : capped, mintable, owned fungible token (ERC-20–style)
  - TransferEvent  : Transfer(from, to, amount) log entry
  - ApprovalEvent  : Approval(owner, spender, amount) log entry
"""

from .ledger import (
    KamiToken,
    TransferEvent,
    ApprovalEvent,
)

__all__ = [
    "KamiToken",
    "TransferEvent",
    "ApprovalEvent",
]
