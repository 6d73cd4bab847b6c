"""
Kami Host Chain & Logging Test Suite

Coverage:
  - ChainContext block production and time travel
  - LogManager singleton, format validation, terminal sanitization
"""

import logging
import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from kami.chain import ChainContext
from kami.constants import DEFAULT_GENESIS_TIMESTAMP, LOG_DATE_FORMAT, LOG_FORMAT
from kami.logger import LogManager, TerminalSafeFormatter, get_logger


class TestChainContext:

    def test_defaults(self):
        chain = ChainContext()
        assert chain.block_number == 0
        assert chain.timestamp == DEFAULT_GENESIS_TIMESTAMP
        assert chain.block_time == 1

    def test_mine_advances_height_and_time(self):
        chain = ChainContext(block_time=12)
        assert chain.mine() == 1
        assert chain.mine(4) == 5
        assert chain.timestamp == DEFAULT_GENESIS_TIMESTAMP + 5 * 12

    def test_increase_time_keeps_height(self):
        chain = ChainContext()
        chain.increase_time(3600)
        assert chain.block_number == 0
        assert chain.timestamp == DEFAULT_GENESIS_TIMESTAMP + 3600

    def test_mine_zero_blocks(self):
        chain = ChainContext(block_number=7)
        assert chain.mine(0) == 7

    def test_rejects_going_backwards(self):
        chain = ChainContext()
        with pytest.raises(ValueError):
            chain.mine(-1)
        with pytest.raises(ValueError):
            chain.increase_time(-1)

    def test_rejects_invalid_construction(self):
        with pytest.raises(ValueError):
            ChainContext(block_number=-1)
        with pytest.raises(ValueError):
            ChainContext(block_time=-1)


class TestLogManager:

    def test_singleton(self):
        assert LogManager() is LogManager()
        assert LogManager().is_configured

    def test_get_logger_returns_named_logger(self):
        logger = get_logger("kami.tests")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "kami.tests"

    def test_invalid_log_format_falls_back(self):
        assert LogManager.validate_log_format("%(nope)s") == LOG_FORMAT.default()

    def test_valid_log_format_kept(self):
        fmt = "%(levelname)s %(message)s"
        assert LogManager.validate_log_format(fmt) == fmt

    def test_invalid_date_format_falls_back(self):
        assert LogManager.validate_date_format("not a date") == LOG_DATE_FORMAT.default()

    def test_valid_date_format_kept(self):
        assert LogManager.validate_date_format("%Y-%m-%d") == "%Y-%m-%d"

    def test_sanitize_strips_escape_sequences(self):
        dirty = "Deposit \x1b[31mred\x1b[0m\r by 0xabc\x07"
        assert TerminalSafeFormatter.sanitize(dirty) == "Deposit red by 0xabc"
