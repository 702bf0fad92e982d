"""
DAO Mirror Constants

This module consolidates protocol constants and environment configuration
used throughout the reference model and the harness. Constants are organized
by category for easy reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

HARNESS_DEFAULTS = {
    'DAOMIRROR_CONFIG_PATH':           'daomirror.toml',
}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE PROTOCOL VALUES BELOW MUST MATCH THE AUTHORITATIVE DEPLOYMENT. CHANGING THEM
# WITHOUT CHANGING THE ORACLE MAKES EVERY DIFFERENTIAL CHECK MEANINGLESS.

# ==================================================================================
# FIXED-POINT AND ENCODING CONSTANTS
# ==================================================================================
PRECISION = 10 ** 18          # fixed-point unit for quorum and formula params
BPS = 10_000                  # basis points in 100%
POWER_128 = 2 ** 128          # BRR packing shift; also the bound for c and t
UINT256_MAX = 2 ** 256 - 1
TOKEN_DECIMALS = 18


# ==================================================================================
# CAMPAIGN LIMITS
# ==================================================================================
MAX_CAMPAIGN_OPTIONS = 8
MIN_CAMPAIGN_OPTIONS = 2
MAX_EPOCH_CAMPAIGNS = 10
MAX_NETWORK_FEE_BPS = BPS // 2  # network fee options must be strictly below this
NO_WINNING_OPTION = 0


# ==================================================================================
# PROTOCOL DEFAULTS
# ==================================================================================
DEFAULT_EPOCH_PERIOD = 500          # seconds
DEFAULT_MIN_CAMPAIGN_PERIOD = 50    # seconds
DEFAULT_NETWORK_FEE_BPS = 25
DEFAULT_REWARD_BPS = 3000
DEFAULT_REBATE_BPS = 2000


# ==================================================================================
# HARNESS DEFAULTS
# ==================================================================================
DEFAULT_NUM_RUNS = 5000
DEFAULT_TIME_STEP = 10              # seconds advanced per iteration
DEFAULT_NUM_STAKERS = 9
DEFAULT_STAKER_TOKENS = 10_000 * 10 ** TOKEN_DECIMALS
DEFAULT_LINK = b"https://kyberswap.com"


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
DEFAULTS = HARNESS_DEFAULTS | LOGGER_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Only known literals reach ast.literal_eval.
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
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
