# tipbot/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from tipbot.core.config import Settings
from tipbot.journal import TipJournal
from tipbot.ledger import LedgerClient
from tipbot.mutex import TransferMutex
from tipbot.oracle import BalanceOracle
from tipbot.orchestrator import TransferOrchestrator
from tipbot.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    limiter: RateLimiter
    ledger: LedgerClient
    oracle: BalanceOracle
    orchestrator: TransferOrchestrator
    journal: Optional[TipJournal] = None


def build_services(settings: Settings) -> Services:
    """Wire the process-wide singletons. Call once at startup."""
    limiter = RateLimiter(settings.RATE_LIMIT_MIN_INTERVAL_MS)
    ledger = LedgerClient.from_settings(settings)
    oracle = BalanceOracle(ledger, limiter)

    journal = None
    if settings.DATABASE_URL:
        journal = TipJournal.from_url(settings.DATABASE_URL)
    else:
        logger.info("DATABASE_URL missing, tip journal disabled")

    orchestrator = TransferOrchestrator(
        settings,
        oracle,
        ledger,
        limiter,
        mutex=TransferMutex(),
        journal=journal,
    )
    return Services(
        settings=settings,
        limiter=limiter,
        ledger=ledger,
        oracle=oracle,
        orchestrator=orchestrator,
        journal=journal,
    )
