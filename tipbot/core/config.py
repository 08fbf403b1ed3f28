# tipbot/core/config.py
from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Telegram ---
    TELEGRAM_BOT_TOKEN: str | None = None
    WEBHOOK_URL: str | None = None
    ADMIN_USER_ID: str | None = None

    # --- Ledger (Base) ---
    BASE_RPC_URL: str | None = None
    CHAIN_ID: int = 8453
    CONTRACT_ADDRESS: str | None = None
    PRIVATE_KEY: str | None = None

    TOKEN_SYMBOL: str = "SPXP"
    TOKEN_DECIMALS: int = 18
    TIP_FRACTION_DIGITS: int = 0  # whole tokens only

    # --- Throughput / timeouts ---
    RATE_LIMIT_MIN_INTERVAL_MS: int = 1000
    CONFIRMATION_TIMEOUT_SECONDS: float = 120.0
    RPC_TIMEOUT_SECONDS: float = 15.0

    # --- Tip journal (optional) ---
    DATABASE_URL: str | None = None

    # --- UI ---
    LEADERBOARD_SIZE: int = 10
    DEFAULT_LANGUAGE: str = "en"

    LOG_LEVEL: str = "INFO"

    @property
    def bot_user_id(self) -> int | None:
        """Numeric id of the bot account, taken from the token prefix."""
        if not self.TELEGRAM_BOT_TOKEN:
            return None
        head = self.TELEGRAM_BOT_TOKEN.split(":", 1)[0]
        return int(head) if head.isdigit() else None

    @property
    def private_key_hex(self) -> str | None:
        if not self.PRIVATE_KEY:
            return None
        key = self.PRIVATE_KEY.strip()
        return key if key.startswith("0x") else f"0x{key}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
