# tipbot/reporter.py
"""Render structured outcomes and read-only results as chat text."""

from __future__ import annotations

from typing import Iterable

from tipbot.amounts import format_amount
from tipbot.i18n import t
from tipbot.ledger import LedgerUser
from tipbot.schemas import Outcome, OutcomeStatus

REJECTION_KEYS = {
    "private_chat": "TIP_PRIVATE_CHAT",
    "busy": "TIP_BUSY",
    "missing_source": "TIP_MISSING_SOURCE",
    "missing_target": "TIP_MISSING_TARGET",
    "bad_amount": "TIP_BAD_AMOUNT",
    "zero_amount": "TIP_ZERO_AMOUNT",
    "self_tip": "TIP_SELF",
    "bot_tip": "TIP_BOT",
    "insufficient_funds": "TIP_INSUFFICIENT",
    "query_failed": "TIP_QUERY_FAILED",
    "submit_failed": "TIP_SUBMIT_FAILED",
    "reverted": "TIP_REVERTED",
}


def render_outcome(
    outcome: Outcome,
    *,
    lang: str = "en",
    symbol: str = "SPXP",
    decimals: int = 18,
    source_name: str | None = None,
    target_name: str | None = None,
) -> str:
    fields = {
        "symbol": symbol,
        "balance_cmd": symbol.lower(),
        "amount": format_amount(outcome.amount or 0, decimals=decimals),
        "balance": format_amount(outcome.balance or 0, decimals=decimals),
        "tx_hash": outcome.tx_hash or "-",
        "source": source_name or "?",
        "target": target_name or "?",
    }

    if outcome.status is OutcomeStatus.REJECTED:
        key = REJECTION_KEYS.get(outcome.code or "", "TIP_INTERNAL_ERROR")
    elif outcome.status is OutcomeStatus.SUBMITTED:
        key = "TIP_SUBMITTED"
    elif outcome.status is OutcomeStatus.CONFIRMED:
        key = "TIP_CONFIRMED"
    else:
        key = "TIP_AMBIGUOUS" if outcome.tx_hash else "TIP_AMBIGUOUS_NO_TX"

    return t(lang, key).format(**fields)


def render_balance(balance: int, *, lang: str = "en", symbol: str = "SPXP", decimals: int = 18) -> str:
    return t(lang, "BALANCE").format(balance=format_amount(balance, decimals=decimals), symbol=symbol)


def render_leaderboard(
    users: Iterable[LedgerUser],
    *,
    lang: str = "en",
    symbol: str = "SPXP",
    decimals: int = 18,
) -> str:
    users = list(users)
    if not users:
        return t(lang, "TOP_EMPTY").format(symbol=symbol)

    lines = [t(lang, "TOP_TITLE").format(symbol=symbol)]
    for rank, u in enumerate(users, start=1):
        lines.append(
            t(lang, "TOP_ROW").format(
                rank=rank,
                name=u.username or str(u.id),
                balance=format_amount(u.balance, decimals=decimals),
                symbol=symbol,
            )
        )
    return "\n".join(lines)


def render_help(key: str = "HELP", *, lang: str = "en", symbol: str = "SPXP") -> str:
    return t(lang, key).format(symbol=symbol, balance_cmd=symbol.lower())
