"""Constants for algo-did."""

# Project marker directory
ALGO_DID_DIR = ".algo-did"

# Configuration file (inside ALGO_DID_DIR)
CONFIG_FILE = "config.yaml"

# Store-wide limits enforced by the on-chain program
MAX_BOX_SIZE = 32768
COST_PER_BYTE = 400
COST_PER_BOX = 2500

# Per-call budget: 2048 minus selector (4), owner address (32), box index (8)
# and the data length prefix (2); programs that also count the offset need 54
BASE_OPERATION_LIMIT = 2048
ENVELOPE_OVERHEAD = 4 + 32 + 8 + 2

REFERENCE_FLOOR = 8
MAX_GROUP_SIZE = 16
WRITE_OPS_PER_BATCH = 8
NOOP_PADDING = 4
ERASE_FEE = 2000

# start, end, status, tail size, owner address, reserved
METADATA_FIXED_BYTES = 8 + 8 + 1 + 8 + 32 + 8
METADATA_ABI_TYPE = "(uint64,uint64,uint8,uint64,uint64)"

# Minimum balance funded into a freshly created application account
APP_MIN_BALANCE = 100_000

# Localnet defaults
DEFAULT_ALGOD_ADDRESS = "http://localhost:4001"
DEFAULT_KMD_ADDRESS = "http://localhost:4002"
DEFAULT_TOKEN = "a" * 64
DEFAULT_WALLET_NAME = "unencrypted-default-wallet"

# Version
ALGO_DID_VERSION = "0.1.0"
