"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from functools import lru_cache

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vibesync.config.constants import (
    AMOUNT_SCALE,
    DEFAULT_BLOCK_WINDOW_SIZE,
    DEFAULT_CONFIRMATION_LAG,
    DEFAULT_RECONCILE_INTERVAL,
    DEFAULT_RECONNECT_MAX_DELAY,
    DEFAULT_RECONNECT_MIN_DELAY,
    DEFAULT_WINDOW_MAX_ATTEMPTS,
    PENDING_CLAIM_ALERT_ATTEMPTS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Chain
    chain_id: int = Field(default=5000, gt=0, description="EVM chain id (Mantle mainnet)")
    chain_name: str = "mantle"
    rpc_http_url: str
    rpc_ws_url: str | None = None

    # Contracts
    tipping_contract_address: str
    bounty_contract_address: str
    token_decimals: int = Field(
        default=18,
        ge=0,
        le=AMOUNT_SCALE,
        description="Native token decimals (at most the stored amount scale)",
    )

    # Sync
    start_block: int = Field(
        default=0, ge=0, description="First block to index on a fresh checkpoint"
    )
    confirmation_lag: int = Field(
        default=DEFAULT_CONFIRMATION_LAG,
        ge=0,
        description="Trailing blocks withheld from backfill",
    )
    block_window_size: int = Field(
        default=DEFAULT_BLOCK_WINDOW_SIZE,
        ge=1,
        le=100_000,
        description="Blocks per backfill window",
    )
    window_max_attempts: int = Field(
        default=DEFAULT_WINDOW_MAX_ATTEMPTS,
        ge=1,
        description="Attempts per backfill window before escalating",
    )
    reconnect_min_delay: float = Field(
        default=DEFAULT_RECONNECT_MIN_DELAY, gt=0, description="Seconds"
    )
    reconnect_max_delay: float = Field(
        default=DEFAULT_RECONNECT_MAX_DELAY, gt=0, description="Seconds"
    )
    reconcile_interval: float = Field(
        default=DEFAULT_RECONCILE_INTERVAL,
        gt=0,
        description="Seconds between periodic gap-closing backfills",
    )
    pending_claim_max_attempts: int = Field(
        default=PENDING_CLAIM_ALERT_ATTEMPTS,
        ge=1,
        description="Retries of a buffered claim before it is reported as an anomaly",
    )
    liveness_max_idle: float = Field(
        default=900.0,
        gt=0,
        description="Seconds without progress before /health reports unhealthy",
    )

    # Redis (notification bus and Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Notifications
    notification_backend: str = "redis"
    notification_channel_prefix: str = "megavibe"

    # Application
    environment: str = "production"
    log_level: str = "INFO"
    health_check_port: int = Field(
        default=8080, ge=1, le=65535, description="Health check HTTP server port"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode='after')
    def validate_backoff(self) -> 'Settings':
        """Reconnect delays must form a valid range."""
        if self.reconnect_max_delay < self.reconnect_min_delay:
            raise ValueError(
                'RECONNECT_MAX_DELAY must be greater than or equal to '
                'RECONNECT_MIN_DELAY'
            )
        return self

    @model_validator(mode='after')
    def warn_missing_ws(self) -> 'Settings':
        """Live subscription needs a websocket endpoint."""
        if not self.rpc_ws_url:
            logger.warning(
                'RPC_WS_URL is not set. Live subscription is disabled, '
                'the indexer will rely on periodic backfill only.'
            )
        return self

    @field_validator('tipping_contract_address', 'bounty_contract_address')
    @classmethod
    def validate_contract_address(cls, v: str) -> str:
        """Validate contract address format."""
        if not v or not v.startswith('0x') or len(v) != 42:
            raise ValueError(
                f'Invalid contract address: {v!r}. '
                'Must start with 0x and be 42 characters long.'
            )
        try:
            int(v[2:], 16)
        except ValueError as exc:
            raise ValueError(f'Invalid contract address format: {v}') from exc
        if int(v[2:], 16) == 0:
            raise ValueError('Contract address must not be the zero address')
        return v.lower()

    @field_validator('rpc_http_url')
    @classmethod
    def validate_rpc_http_url(cls, v: str) -> str:
        """Validate HTTP RPC endpoint."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('RPC_HTTP_URL must start with http:// or https://')
        return v

    @field_validator('rpc_ws_url')
    @classmethod
    def validate_rpc_ws_url(cls, v: str | None) -> str | None:
        """Validate websocket RPC endpoint."""
        if v and not v.startswith(('ws://', 'wss://')):
            raise ValueError('RPC_WS_URL must start with ws:// or wss://')
        return v or None

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(('postgresql://', 'postgresql+asyncpg://')):
            raise ValueError(
                'DATABASE_URL must start with postgresql:// or postgresql+asyncpg://'
            )
        return v

    @field_validator('notification_backend')
    @classmethod
    def validate_notification_backend(cls, v: str) -> str:
        """Only redis and in-process buses are supported."""
        backend = v.lower()
        if backend not in ('redis', 'memory'):
            raise ValueError('NOTIFICATION_BACKEND must be "redis" or "memory"')
        return backend

    @property
    def contract_addresses(self) -> list[str]:
        """Contracts whose logs are indexed."""
        return [self.tipping_contract_address, self.bounty_contract_address]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load settings once per process.

    Raises:
        pydantic.ValidationError: If required configuration is missing or invalid
    """
    return Settings()
