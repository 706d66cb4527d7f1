"""
ZWDAO Constants

This module consolidates the protocol defaults and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
import os

from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import; the process
# environment takes precedence over .env
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'True',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# TOKEN PARAMETERS
# ==================================================================================
TOKEN_NAME = 'ZeroWasteDAO'
TOKEN_SYMBOL = 'ZWD'
TOKEN_DECIMALS = 6
TOKEN_MAX_SUPPLY = 100_000_000_000_000  # minor units (1e8 ZWD at 6 decimals)


# ==================================================================================
# GOVERNANCE PARAMETERS
# ==================================================================================
# Percentage of total supply that must vote (for + against) for a valid finalization
GOVERNANCE_QUORUM_THRESHOLD = 50
GOVERNANCE_QUORUM_MAX = 100

# Voting window length in blocks (~10 days at 10 minute blocks)
GOVERNANCE_VOTING_PERIOD = 1440

# Minted to the proposer of an executed proposal. 0 disables rewards.
GOVERNANCE_PROPOSER_REWARD = 0

# Quorum failure after the deadline is terminal (REJECTED) unless disabled
GOVERNANCE_REJECT_ON_FAILED_QUORUM = True


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

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = dict(LOGGER_DEFAULTS)
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
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = os.environ.get(key, _config.get(key))
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
