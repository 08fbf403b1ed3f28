"""
SPXP Tip Bot - Test Fixtures

Shared pytest fixtures: settings, ledger doubles and a wired orchestrator.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from tipbot.core.config import Settings
from tipbot.mutex import TransferMutex
from tipbot.oracle import BalanceOracle
from tipbot.orchestrator import TransferOrchestrator
from tipbot.rate_limiter import RateLimiter
from tipbot.schemas import RequestContext, TransferRequest

BOT_ID = 999000
ALICE = 1001
BOB = 1002
TOKEN = 10**18
TX_HASH = "0x" + "ab" * 32


# =============================================================================
# Settings
# =============================================================================


def make_settings(**overrides) -> Settings:
    values = {
        "TELEGRAM_BOT_TOKEN": f"{BOT_ID}:TEST-ONLY-TOKEN",
        "BASE_RPC_URL": "https://mainnet.base.org",
        "CONTRACT_ADDRESS": "0x" + "11" * 20,
        "RATE_LIMIT_MIN_INTERVAL_MS": 0,
        "CONFIRMATION_TIMEOUT_SECONDS": 5.0,
        "DATABASE_URL": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


# =============================================================================
# Ledger doubles
# =============================================================================


@pytest.fixture
def mock_ledger():
    """Ledger with 5 SPXP for everyone and instant confirmation."""
    ledger = MagicMock()
    ledger.read_balance = AsyncMock(return_value=5 * TOKEN)
    ledger.submit_transfer = AsyncMock(return_value=TX_HASH)
    ledger.await_confirmation = AsyncMock(return_value={"status": 1})
    ledger.user_count = AsyncMock(return_value=0)
    ledger.read_users = AsyncMock(return_value=[])
    ledger.ping = AsyncMock(return_value=123)
    return ledger


@pytest.fixture
def limiter() -> RateLimiter:
    return RateLimiter(0)


@pytest.fixture
def oracle(mock_ledger, limiter) -> BalanceOracle:
    return BalanceOracle(mock_ledger, limiter)


@pytest.fixture
def mutex() -> TransferMutex:
    return TransferMutex()


@pytest.fixture
def orchestrator(settings, oracle, mock_ledger, limiter, mutex) -> TransferOrchestrator:
    return TransferOrchestrator(settings, oracle, mock_ledger, limiter, mutex=mutex)


# =============================================================================
# Requests
# =============================================================================


def make_request(
    amount_text: str | None = "3",
    *,
    source: int | None = ALICE,
    target: int | None = BOB,
    chat_type: str = "supergroup",
) -> TransferRequest:
    return TransferRequest(
        source_account=source,
        target_account=target,
        amount_text=amount_text,
        context=RequestContext(
            chat_id=-100123,
            chat_type=chat_type,
            reply_to_message_id=42,
            source_name="Alice A",
            target_name="Bob B",
        ),
    )
