"""
Application constants.

Centralized constants for the sync service.
"""

# ========================================================================
# BLOCKCHAIN CONSTANTS
# ========================================================================

# RPC timeouts (in seconds)
BLOCKCHAIN_TIMEOUT = 30.0  # Single RPC calls (block number, get_logs)
BLOCKCHAIN_RPC_TIMEOUT = 30  # HTTP provider request timeout
BLOCKCHAIN_WS_PING_INTERVAL = 20  # Websocket keepalive

# Stored amounts are NUMERIC(AMOUNT_PRECISION, AMOUNT_SCALE). Tokens with
# more decimals would be rounded by the database, so settings reject them
AMOUNT_SCALE = 18
# 78 digits of uint256 plus the fractional digits: any raw amount fits for
# every accepted decimals value
AMOUNT_PRECISION = 78 + AMOUNT_SCALE

# ========================================================================
# SYNC DEFAULTS
# ========================================================================

DEFAULT_CONFIRMATION_LAG = 3  # Blocks held back from backfill
DEFAULT_BLOCK_WINDOW_SIZE = 2000  # Blocks per window (safe for most RPCs)
DEFAULT_WINDOW_MAX_ATTEMPTS = 5  # Window retries before escalating to supervisor
DEFAULT_RECONCILE_INTERVAL = 60.0  # Seconds between gap-closing runs

# Reconnect backoff (seconds): 1s, 2s, 4s ... capped
DEFAULT_RECONNECT_MIN_DELAY = 1.0
DEFAULT_RECONNECT_MAX_DELAY = 60.0

# Supervisor restart backoff (seconds)
SUPERVISOR_MIN_DELAY = 1.0
SUPERVISOR_MAX_DELAY = 120.0

# Window retry backoff base (seconds)
WINDOW_RETRY_DELAY_BASE = 1.0

# Pending claim is reported as anomaly after this many failed attempts
PENDING_CLAIM_ALERT_ATTEMPTS = 5

# ========================================================================
# NOTIFICATION CONSTANTS
# ========================================================================

# Message types delivered to clients
MESSAGE_TYPE_TIP_CONFIRMED = "TIP_CONFIRMED"
MESSAGE_TYPE_BOUNTY_CREATED = "BOUNTY_CREATED"
MESSAGE_TYPE_BOUNTY_CLAIMED = "BOUNTY_CLAIMED"

# Channel suffixes, combined with NOTIFICATION_CHANNEL_PREFIX
CHANNEL_ALL = "events"
CHANNEL_TRANSFERS = "transfers"
CHANNEL_BOUNTIES = "bounties"

# Per-subscriber queue bound for the in-process bus
MEMORY_BUS_QUEUE_SIZE = 1000

# ========================================================================
# PROCESS EXIT CODES
# ========================================================================

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2
