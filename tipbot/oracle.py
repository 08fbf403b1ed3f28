# tipbot/oracle.py
from __future__ import annotations

from tipbot.errors import QueryError
from tipbot.ledger import LedgerClient, LedgerUser
from tipbot.rate_limiter import RateLimiter


class BalanceOracle:
    """Rate-limited, read-only view of ledger balances."""

    def __init__(self, ledger: LedgerClient, limiter: RateLimiter):
        self.ledger = ledger
        self.limiter = limiter

    async def get_balance(self, account_id: int) -> int:
        try:
            return await self.limiter.schedule(self.ledger.read_balance, account_id)
        except QueryError:
            raise
        except Exception as e:
            raise QueryError(f"balance lookup for {account_id} failed: {e!r}") from e

    async def leaderboard(self, size: int = 10) -> list[LedgerUser]:
        try:
            total = await self.limiter.schedule(self.ledger.user_count)
            if total == 0:
                return []
            users = await self.limiter.schedule(self.ledger.read_users, 0, total)
        except QueryError:
            raise
        except Exception as e:
            raise QueryError(f"leaderboard lookup failed: {e!r}") from e
        users.sort(key=lambda u: u.balance, reverse=True)
        return users[:size]
