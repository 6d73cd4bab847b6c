"""
Kami Token Ledger Test Suite

Coverage:
  - initialize / ownership
  - mint within and beyond the cap, authorized minters
  - update_cap
  - transfer, approve, transfer_from (allowance checked before balance)
  - event log and serialization
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from kami.constants import DEFAULT_TOKEN_CAP, ZERO_ADDRESS
from kami.exceptions import (
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
from kami.tokens import ApprovalEvent, KamiToken, TransferEvent


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

OWNER = "0xPQ" + "0A" * 20
ALICE = "0xPQ" + "A1" * 20
BOB = "0xPQ" + "B2" * 20
CAROL = "0xPQ" + "C3" * 20

MINT_AMOUNT = 500_000_000


def make_token(name="Kami Token", symbol="KAMI", cap=DEFAULT_TOKEN_CAP, owner=OWNER, **kwargs):
    """Helper to create an initialized token."""
    token = KamiToken(name=name, symbol=symbol, **kwargs)
    token.initialize(owner, cap)
    return token


async def make_funded_token(amount=MINT_AMOUNT, **kwargs):
    token = make_token(**kwargs)
    await token.mint(OWNER, amount)
    return token


# ══════════════════════════════════════════════════════════════════════
#  CONSTRUCTION & INITIALIZATION
# ══════════════════════════════════════════════════════════════════════


class TestTokenInitialize:

    def test_initialize_sets_owner_and_cap(self):
        token = make_token()
        assert token.owner == OWNER
        assert token.is_initialized
        assert token.cap == DEFAULT_TOKEN_CAP
        assert token.total_supply == 0

    def test_uninitialized_token_has_no_owner(self):
        token = KamiToken("Kami Token", "KAMI")
        assert token.owner is None
        assert not token.is_initialized

    def test_initialize_twice_raises(self):
        token = make_token()
        with pytest.raises(AlreadyInitializedError):
            token.initialize(ALICE, 1)
        assert token.owner == OWNER

    def test_negative_cap_raises(self):
        token = KamiToken("Kami Token", "KAMI")
        with pytest.raises(InvalidAmountError, match="Cap"):
            token.initialize(OWNER, -1)

    def test_empty_name_raises(self):
        with pytest.raises(TokenError, match="name cannot be empty"):
            KamiToken("", "KAMI")

    def test_empty_symbol_raises(self):
        with pytest.raises(TokenError, match="symbol cannot be empty"):
            KamiToken("Kami Token", "")

    def test_invalid_decimals_raises(self):
        with pytest.raises(TokenError, match="Decimals"):
            KamiToken("Kami Token", "KAMI", decimals=19)

    def test_default_address_derived_from_symbol(self):
        assert KamiToken("Kami Token", "KAMI").address == "token:KAMI"
        assert KamiToken("Kami Token", "KAMI", address=CAROL).address == CAROL

    @pytest.mark.asyncio
    async def test_operations_before_initialize_raise(self):
        token = KamiToken("Kami Token", "KAMI")
        with pytest.raises(NotInitializedError):
            await token.transfer(ALICE, BOB, 0)
        with pytest.raises(NotInitializedError):
            await token.mint(ALICE, 1)
        with pytest.raises(NotInitializedError):
            token.update_cap(ALICE, 10)


# ══════════════════════════════════════════════════════════════════════
#  MINT & CAP
# ══════════════════════════════════════════════════════════════════════


class TestTokenMint:

    @pytest.mark.asyncio
    async def test_mint_to_owner(self):
        token = make_token(cap=700_000_000)
        await token.mint(OWNER, MINT_AMOUNT)
        assert token.total_supply == MINT_AMOUNT
        assert token.balance_of(OWNER) == MINT_AMOUNT

    @pytest.mark.asyncio
    async def test_mint_to_recipient(self):
        token = make_token()
        await token.mint(OWNER, 100, ALICE)
        assert token.balance_of(ALICE) == 100
        assert token.balance_of(OWNER) == 0

    @pytest.mark.asyncio
    async def test_mint_emits_transfer_from_zero_address(self):
        token = make_token()
        event = await token.mint(OWNER, 42, BOB)
        assert isinstance(event, TransferEvent)
        assert event.sender == ZERO_ADDRESS
        assert event.recipient == BOB
        assert event.amount == 42
        assert token.events[-1] is event

    @pytest.mark.asyncio
    async def test_mint_up_to_cap_exactly(self):
        token = make_token(cap=1000)
        await token.mint(OWNER, 1000)
        assert token.mintable() == 0

    @pytest.mark.asyncio
    async def test_mint_past_cap_raises(self):
        token = make_token(cap=1000)
        await token.mint(OWNER, 900)
        with pytest.raises(CapExceededError, match="cap exceeded"):
            await token.mint(OWNER, 101)
        assert token.total_supply == 900

    @pytest.mark.asyncio
    async def test_mint_by_non_owner_raises(self):
        token = make_token()
        with pytest.raises(UnauthorizedError):
            await token.mint(ALICE, 1)
        assert token.total_supply == 0

    @pytest.mark.asyncio
    async def test_mint_negative_raises(self):
        token = make_token()
        with pytest.raises(InvalidAmountError):
            await token.mint(OWNER, -5)

    @pytest.mark.asyncio
    async def test_authorized_minter_can_mint(self):
        token = make_token()
        token.add_minter(OWNER, ALICE)
        assert token.is_minter(ALICE)
        await token.mint(ALICE, 10, BOB)
        assert token.balance_of(BOB) == 10

    @pytest.mark.asyncio
    async def test_removed_minter_cannot_mint(self):
        token = make_token()
        token.add_minter(OWNER, ALICE)
        token.remove_minter(OWNER, ALICE)
        assert not token.is_minter(ALICE)
        with pytest.raises(UnauthorizedError):
            await token.mint(ALICE, 10)

    def test_add_minter_by_non_owner_raises(self):
        token = make_token()
        with pytest.raises(UnauthorizedError):
            token.add_minter(ALICE, ALICE)


class TestTokenUpdateCap:

    @pytest.mark.asyncio
    async def test_raise_cap(self):
        token = await make_funded_token()
        token.update_cap(OWNER, 800_000_000)
        assert token.cap == 800_000_000
        await token.mint(OWNER, 300_000_000)
        assert token.total_supply == 800_000_000

    @pytest.mark.asyncio
    async def test_lower_cap_to_supply(self):
        token = await make_funded_token()
        token.update_cap(OWNER, MINT_AMOUNT)
        assert token.cap == MINT_AMOUNT
        assert token.mintable() == 0

    @pytest.mark.asyncio
    async def test_cap_below_supply_raises(self):
        token = await make_funded_token()
        with pytest.raises(CapBelowSupplyError, match="New cap is lower than total supply"):
            token.update_cap(OWNER, MINT_AMOUNT - 1)
        assert token.cap == DEFAULT_TOKEN_CAP

    def test_update_cap_by_non_owner_raises(self):
        token = make_token()
        with pytest.raises(UnauthorizedError):
            token.update_cap(ALICE, 1)


# ══════════════════════════════════════════════════════════════════════
#  TRANSFERS & ALLOWANCES
# ══════════════════════════════════════════════════════════════════════


class TestTokenTransfer:

    @pytest.mark.asyncio
    async def test_basic_transfer(self):
        token = await make_funded_token()
        event = await token.transfer(OWNER, ALICE, 100)
        assert isinstance(event, TransferEvent)
        assert token.balance_of(OWNER) == MINT_AMOUNT - 100
        assert token.balance_of(ALICE) == 100
        assert token.total_supply == MINT_AMOUNT

    @pytest.mark.asyncio
    async def test_transfer_insufficient_balance(self):
        token = await make_funded_token(amount=10)
        with pytest.raises(InsufficientBalanceError, match="exceeds balance"):
            await token.transfer(OWNER, ALICE, 11)
        assert token.balance_of(OWNER) == 10
        assert token.balance_of(ALICE) == 0

    @pytest.mark.asyncio
    async def test_transfer_zero_is_allowed(self):
        token = make_token()
        await token.transfer(ALICE, BOB, 0)
        assert token.balance_of(BOB) == 0

    @pytest.mark.asyncio
    async def test_transfer_negative_raises(self):
        token = await make_funded_token()
        with pytest.raises(InvalidAmountError):
            await token.transfer(OWNER, ALICE, -1)

    @pytest.mark.asyncio
    async def test_self_transfer_keeps_balance(self):
        token = await make_funded_token(amount=50)
        await token.transfer(OWNER, OWNER, 20)
        assert token.balance_of(OWNER) == 50


class TestTokenAllowance:

    @pytest.mark.asyncio
    async def test_approve_sets_allowance(self):
        token = make_token()
        event = await token.approve(ALICE, BOB, 300)
        assert isinstance(event, ApprovalEvent)
        assert token.allowance(ALICE, BOB) == 300
        assert token.allowance(BOB, ALICE) == 0

    @pytest.mark.asyncio
    async def test_approve_overwrites(self):
        token = make_token()
        await token.approve(ALICE, BOB, 300)
        await token.approve(ALICE, BOB, 7)
        assert token.allowance(ALICE, BOB) == 7

    @pytest.mark.asyncio
    async def test_transfer_from_consumes_allowance(self):
        token = await make_funded_token(amount=1000)
        await token.approve(OWNER, BOB, 400)
        await token.transfer_from(BOB, OWNER, CAROL, 150)
        assert token.balance_of(CAROL) == 150
        assert token.balance_of(OWNER) == 850
        assert token.allowance(OWNER, BOB) == 250

    @pytest.mark.asyncio
    async def test_transfer_from_without_allowance(self):
        token = await make_funded_token(amount=1000)
        with pytest.raises(AllowanceExceededError, match="transfer amount exceeds allowance"):
            await token.transfer_from(BOB, OWNER, BOB, 100)
        assert token.balance_of(OWNER) == 1000

    @pytest.mark.asyncio
    async def test_allowance_checked_before_balance(self):
        token = make_token()
        # Neither allowance nor balance: allowance reason wins
        with pytest.raises(AllowanceExceededError):
            await token.transfer_from(BOB, ALICE, BOB, 100)

    @pytest.mark.asyncio
    async def test_transfer_from_insufficient_balance_keeps_allowance(self):
        token = await make_funded_token(amount=50)
        await token.approve(OWNER, BOB, 100)
        with pytest.raises(InsufficientBalanceError):
            await token.transfer_from(BOB, OWNER, BOB, 100)
        assert token.allowance(OWNER, BOB) == 100
        assert token.balance_of(OWNER) == 50

    @pytest.mark.asyncio
    async def test_negative_approve_raises(self):
        token = make_token()
        with pytest.raises(InvalidAmountError):
            await token.approve(ALICE, BOB, -1)


# ══════════════════════════════════════════════════════════════════════
#  INVARIANTS & SERIALIZATION
# ══════════════════════════════════════════════════════════════════════


class TestTokenInvariants:

    @pytest.mark.asyncio
    async def test_balances_sum_to_supply(self):
        token = await make_funded_token(amount=10_000)
        await token.transfer(OWNER, ALICE, 3_000)
        await token.transfer(ALICE, BOB, 1_000)
        await token.mint(OWNER, 500, CAROL)
        holders = (OWNER, ALICE, BOB, CAROL)
        assert sum(token.balance_of(h) for h in holders) == token.total_supply
        assert token.total_supply <= token.cap

    @pytest.mark.asyncio
    async def test_events_are_copied(self):
        token = await make_funded_token(amount=10)
        events = token.events
        events.clear()
        assert len(token.events) == 1

    @pytest.mark.asyncio
    async def test_event_to_dict(self):
        token = await make_funded_token(amount=10)
        d = token.events[0].to_dict()
        assert d["event"] == "Transfer"
        assert d["from"] == ZERO_ADDRESS
        assert d["to"] == OWNER
        assert d["amount"] == 10

    @pytest.mark.asyncio
    async def test_to_dict(self):
        token = await make_funded_token()
        token.add_minter(OWNER, ALICE)
        d = token.to_dict()
        assert d["symbol"] == "KAMI"
        assert d["totalSupply"] == MINT_AMOUNT
        assert d["cap"] == DEFAULT_TOKEN_CAP
        assert d["holders"] == 1
        assert d["minters"] == [ALICE]

    def test_repr(self):
        assert "KAMI" in repr(make_token())
