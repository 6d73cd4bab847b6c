"""
Kami Staking Constants

This module consolidates all global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast

from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: CHANGING THE VALUES BELOW ALTERS REWARD ACCOUNTING. A POOL WHOSE STATE WAS
# PRODUCED WITH ONE PRECISION CANNOT BE RESTORED UNDER ANOTHER.

# ==================================================================================
# FIXED-POINT ARITHMETIC
# ==================================================================================
PRECISION = 10 ** 18  # Scale of the reward-per-stake accumulator
BPS_DENOMINATOR = 10_000  # Basis points in 100%


# ==================================================================================
# LEDGER PARAMETERS
# ==================================================================================
ZERO_ADDRESS = "0x" + "00" * 20  # Counterparty of mint/burn transfer events
DEFAULT_TOKEN_DECIMALS = 18
DEFAULT_TOKEN_CAP = 700_000_000


# ==================================================================================
# EMISSION PARAMETERS
# ==================================================================================
DEFAULT_EPOCH_LENGTH_BLOCKS = 100
DEFAULT_EPOCH_RATES = (1000, 100, 10, 1)  # reward units per block, per epoch


# ==================================================================================
# EARLY-WITHDRAWAL FEE PARAMETERS
# ==================================================================================
SECONDS_PER_DAY = 60 * 60 * 24
DEFAULT_VESTING_WINDOW_SECONDS = 3 * SECONDS_PER_DAY
DEFAULT_FLOOR_FEE_BPS = 100  # 1% once fully vested
DEFAULT_MAX_FEE_BPS = 500  # 5% at the instant of deposit


# ==================================================================================
# HOST CHAIN PARAMETERS
# ==================================================================================
DEFAULT_BLOCK_TIME_SECONDS = 1
DEFAULT_GENESIS_TIMESTAMP = 1_640_995_200  # 2022-01-01T00:00:00Z


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    def __hash__(self):
        return hash(bool(self))


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        # ast.literal_eval expects "True"/"False"
        return ast.literal_eval(s.title())
    return v

for key, default_raw in LOGGER_DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
