"""
Tip transfer orchestrator.

Turns a TransferRequest into at most one on-chain transfer and always returns
exactly one terminal Outcome:

    rejected   - nothing was sent (validation, busy, balance, signing)
    confirmed  - the ledger finalized the transfer
    ambiguous  - a tx hash exists but its fate is unknown; the user has to
                 check the hash instead of retrying

Only one transfer is in flight per process (TransferMutex). There are no
automatic retries anywhere in this module.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable, Optional

from tipbot.amounts import format_amount, parse_amount
from tipbot.core.config import Settings
from tipbot.errors import BusyError, ConfirmError, QueryError, SubmitError, ValidationError
from tipbot.ledger import LedgerClient
from tipbot.mutex import TransferMutex
from tipbot.oracle import BalanceOracle
from tipbot.rate_limiter import RateLimiter
from tipbot.schemas import Outcome, OutcomeStatus, TransferRequest

if TYPE_CHECKING:
    from tipbot.journal import TipJournal

logger = logging.getLogger(__name__)

PRIVATE_CHAT_TYPES = frozenset({"private"})

ProgressCallback = Callable[[Outcome], Awaitable[None]]


class TransferOrchestrator:
    def __init__(
        self,
        settings: Settings,
        oracle: BalanceOracle,
        ledger: LedgerClient,
        limiter: RateLimiter,
        mutex: TransferMutex | None = None,
        journal: Optional["TipJournal"] = None,
        reserved_accounts: Iterable[int] = (),
    ):
        self.settings = settings
        self.oracle = oracle
        self.ledger = ledger
        self.limiter = limiter
        self.mutex = mutex or TransferMutex()
        self.journal = journal

        self.reserved_accounts = set(reserved_accounts)
        if settings.bot_user_id is not None:
            self.reserved_accounts.add(settings.bot_user_id)

    # ---------- public ----------

    async def submit_transfer(
        self,
        request: TransferRequest,
        on_submitted: Optional[ProgressCallback] = None,
    ) -> Outcome:
        try:
            outcome = await self._run(request, on_submitted)
        except Exception as e:
            # _run classifies every expected failure; this is the last-resort boundary
            logger.exception("Unexpected error in transfer orchestration")
            outcome = Outcome.rejected("internal_error", repr(e))

        self._log_outcome(request, outcome)
        self._record(request, outcome)
        return outcome

    # ---------- pipeline ----------

    async def _run(self, request: TransferRequest, on_submitted: Optional[ProgressCallback]) -> Outcome:
        if request.context.chat_type in PRIVATE_CHAT_TYPES:
            return Outcome.rejected("private_chat", "tips are only allowed in groups")

        # Peek only; nothing below suspends until try_acquire() in hold()
        if self.mutex.locked:
            return Outcome.rejected("busy", "a transfer is already pending")

        try:
            source, target, amount = self._validate(request)
        except ValidationError as e:
            return Outcome.rejected(e.code, str(e))

        try:
            with self.mutex.hold():
                return await self._transfer(source, target, amount, on_submitted)
        except BusyError as e:
            return Outcome.rejected(e.code, str(e))

    def _validate(self, request: TransferRequest) -> tuple[int, int, int]:
        source, target = request.source_account, request.target_account
        if source is None or source < 0:
            raise ValidationError("could not determine the sender", code="missing_source")
        if target is None or target < 0:
            raise ValidationError("could not determine the recipient", code="missing_target")

        amount = parse_amount(
            request.amount_text,
            decimals=self.settings.TOKEN_DECIMALS,
            fraction_digits=self.settings.TIP_FRACTION_DIGITS,
        )

        if source == target:
            raise ValidationError("cannot tip yourself", code="self_tip")
        if target in self.reserved_accounts:
            raise ValidationError("cannot tip a reserved account", code="bot_tip")
        return source, target, amount

    async def _transfer(
        self,
        source: int,
        target: int,
        amount: int,
        on_submitted: Optional[ProgressCallback],
    ) -> Outcome:
        try:
            balance = await self.oracle.get_balance(source)
        except QueryError as e:
            logger.warning("Balance check failed for %s: %s", source, e)
            return Outcome.rejected(e.code, str(e), amount=amount)

        # Fast feedback only; the contract's own debit is what prevents overspending
        if balance < amount:
            return Outcome.rejected("insufficient_funds", "insufficient balance", amount=amount, balance=balance)

        try:
            tx_hash = await self.limiter.schedule(self.ledger.submit_transfer, source, target, amount)
        except SubmitError as e:
            logger.exception("Transfer %s -> %s not submitted", source, target)
            return Outcome.rejected(e.code, str(e), amount=amount)
        except ConfirmError as e:
            # signed but the broadcast errored; the node may still have it
            return Outcome.ambiguous(e.tx_hash, str(e), code=e.code, amount=amount)

        if on_submitted is not None:
            try:
                await on_submitted(Outcome.submitted(tx_hash, amount))
            except Exception:
                logger.exception("on_submitted callback failed for %s", tx_hash)

        try:
            await self.limiter.schedule(self._await_confirmation, tx_hash)
        except ConfirmError as e:
            if e.code == "reverted":
                return Outcome.rejected("reverted", str(e), tx_hash=tx_hash, amount=amount)
            logger.exception("Transfer %s not confirmed", tx_hash)
            return Outcome.ambiguous(tx_hash, str(e), code=e.code, amount=amount)
        except Exception as e:
            logger.exception("Transfer %s not confirmed", tx_hash)
            return Outcome.ambiguous(tx_hash, repr(e), amount=amount)

        return Outcome.confirmed(tx_hash, amount)

    async def _await_confirmation(self, tx_hash: str):
        timeout = self.settings.CONFIRMATION_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(self.ledger.await_confirmation(tx_hash, timeout), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ConfirmError(
                f"{tx_hash} not confirmed within {timeout}s", tx_hash=tx_hash, code="confirm_timeout"
            ) from e

    # ---------- bookkeeping ----------

    def _log_outcome(self, request: TransferRequest, outcome: Outcome) -> None:
        amount = format_amount(outcome.amount, decimals=self.settings.TOKEN_DECIMALS) if outcome.amount else "-"
        if outcome.status is OutcomeStatus.AMBIGUOUS:
            logger.warning(
                "Tip AMBIGUOUS %s -> %s amount=%s tx=%s: %s",
                request.source_account, request.target_account, amount, outcome.tx_hash, outcome.reason,
            )
            return
        logger.info(
            "Tip %s %s -> %s amount=%s code=%s tx=%s",
            outcome.status.value, request.source_account, request.target_account, amount, outcome.code, outcome.tx_hash,
        )

    def _record(self, request: TransferRequest, outcome: Outcome) -> None:
        if self.journal is None:
            return
        try:
            self.journal.record(request, outcome)
        except Exception:
            logger.exception("Tip journal write failed (outcome unaffected)")
