"""
Tests for the tip transfer orchestrator.

Covers the validation pipeline, the single in-flight transfer guarantee and
outcome classification (rejected / confirmed / ambiguous).
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.conftest import ALICE, BOB, BOT_ID, TOKEN, TX_HASH, make_request, make_settings
from tipbot.errors import ConfirmError, QueryError, SubmitError
from tipbot.orchestrator import TransferOrchestrator
from tipbot.schemas import OutcomeStatus


def _no_ledger_calls(ledger):
    ledger.read_balance.assert_not_awaited()
    ledger.submit_transfer.assert_not_awaited()
    ledger.await_confirmation.assert_not_awaited()


# =============================================================================
# Validation (no ledger contact)
# =============================================================================


class TestValidation:
    @pytest.mark.asyncio
    async def test_private_chat_rejected(self, orchestrator, mock_ledger, mutex):
        outcome = await orchestrator.submit_transfer(make_request(chat_type="private"))

        assert outcome.status is OutcomeStatus.REJECTED
        assert outcome.code == "private_chat"
        _no_ledger_calls(mock_ledger)
        assert not mutex.locked

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["0.1212121212", "1.5", "2.0", "0.1"])
    async def test_fractional_amount_rejected_before_ledger(self, orchestrator, mock_ledger, mutex, text):
        mutex.try_acquire = MagicMock(wraps=mutex.try_acquire)

        outcome = await orchestrator.submit_transfer(make_request(text))

        assert outcome.status is OutcomeStatus.REJECTED
        assert outcome.code == "bad_amount"
        _no_ledger_calls(mock_ledger)
        mutex.try_acquire.assert_not_called()
        assert not mutex.locked

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["0", "00", "000000"])
    async def test_zero_amount_rejected_before_ledger(self, orchestrator, mock_ledger, text):
        outcome = await orchestrator.submit_transfer(make_request(text))

        assert outcome.code == "zero_amount"
        _no_ledger_calls(mock_ledger)

    @pytest.mark.asyncio
    async def test_missing_amount_rejected(self, orchestrator, mock_ledger):
        outcome = await orchestrator.submit_transfer(make_request(None))

        assert outcome.code == "bad_amount"
        _no_ledger_calls(mock_ledger)

    @pytest.mark.asyncio
    async def test_missing_source_rejected(self, orchestrator, mock_ledger):
        outcome = await orchestrator.submit_transfer(make_request(source=None))

        assert outcome.code == "missing_source"
        _no_ledger_calls(mock_ledger)

    @pytest.mark.asyncio
    async def test_missing_target_rejected(self, orchestrator, mock_ledger):
        outcome = await orchestrator.submit_transfer(make_request(target=None))

        assert outcome.code == "missing_target"
        _no_ledger_calls(mock_ledger)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("balance", [0, 1, 10**30])
    async def test_self_tip_rejected_regardless_of_balance(self, orchestrator, mock_ledger, balance):
        mock_ledger.read_balance.return_value = balance

        outcome = await orchestrator.submit_transfer(make_request(source=ALICE, target=ALICE))

        assert outcome.status is OutcomeStatus.REJECTED
        assert outcome.code == "self_tip"
        _no_ledger_calls(mock_ledger)

    @pytest.mark.asyncio
    async def test_tipping_the_bot_rejected(self, orchestrator, mock_ledger):
        outcome = await orchestrator.submit_transfer(make_request(target=BOT_ID))

        assert outcome.status is OutcomeStatus.REJECTED
        assert outcome.code == "bot_tip"
        _no_ledger_calls(mock_ledger)

    @pytest.mark.asyncio
    async def test_extra_reserved_accounts_rejected(self, settings, oracle, mock_ledger, limiter):
        orch = TransferOrchestrator(settings, oracle, mock_ledger, limiter, reserved_accounts=[7])

        outcome = await orch.submit_transfer(make_request(target=7))

        assert outcome.code == "bot_tip"

    @pytest.mark.asyncio
    async def test_fraction_digits_setting_allows_decimals(self, oracle, mock_ledger, limiter):
        orch = TransferOrchestrator(make_settings(TIP_FRACTION_DIGITS=2), oracle, mock_ledger, limiter)

        outcome = await orch.submit_transfer(make_request("1.25"))

        assert outcome.status is OutcomeStatus.CONFIRMED
        mock_ledger.submit_transfer.assert_awaited_once_with(ALICE, BOB, 125 * 10**16)


# =============================================================================
# Balance check
# =============================================================================


class TestBalanceCheck:
    @pytest.mark.asyncio
    async def test_five_tokens_tip_three_proceeds(self, orchestrator, mock_ledger, mutex):
        mock_ledger.read_balance.return_value = 5 * TOKEN

        outcome = await orchestrator.submit_transfer(make_request("3"))

        assert outcome.status is OutcomeStatus.CONFIRMED
        assert outcome.amount == 3 * TOKEN
        assert outcome.tx_hash == TX_HASH
        mock_ledger.submit_transfer.assert_awaited_once_with(ALICE, BOB, 3 * TOKEN)
        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_exact_balance_is_enough(self, orchestrator, mock_ledger):
        mock_ledger.read_balance.return_value = 3 * TOKEN

        outcome = await orchestrator.submit_transfer(make_request("3"))

        assert outcome.status is OutcomeStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_insufficient_funds_reports_oracle_balance(self, orchestrator, mock_ledger, mutex):
        mock_ledger.read_balance.return_value = 2 * TOKEN + 7

        outcome = await orchestrator.submit_transfer(make_request("3"))

        assert outcome.status is OutcomeStatus.REJECTED
        assert outcome.code == "insufficient_funds"
        assert outcome.balance == 2 * TOKEN + 7
        mock_ledger.submit_transfer.assert_not_awaited()
        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_query_failure_is_not_zero_balance(self, orchestrator, mock_ledger, mutex):
        mock_ledger.read_balance.side_effect = QueryError("rpc timeout")

        outcome = await orchestrator.submit_transfer(make_request("3"))

        assert outcome.status is OutcomeStatus.REJECTED
        assert outcome.code == "query_failed"
        assert outcome.balance is None
        mock_ledger.submit_transfer.assert_not_awaited()
        assert not mutex.locked


# =============================================================================
# Submission and confirmation
# =============================================================================


class TestOutcomeClassification:
    @pytest.mark.asyncio
    async def test_submit_error_is_rejected(self, orchestrator, mock_ledger, mutex):
        mock_ledger.submit_transfer.side_effect = SubmitError("nonce too low")

        outcome = await orchestrator.submit_transfer(make_request("3"))

        assert outcome.status is OutcomeStatus.REJECTED
        assert outcome.code == "submit_failed"
        assert outcome.tx_hash is None
        mock_ledger.await_confirmation.assert_not_awaited()
        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_failed_broadcast_is_ambiguous_with_signed_hash(self, orchestrator, mock_ledger, mutex):
        mock_ledger.submit_transfer.side_effect = ConfirmError(
            "broadcast timed out", tx_hash=TX_HASH, code="broadcast_unknown"
        )
        progress = AsyncMock()

        outcome = await orchestrator.submit_transfer(make_request("3"), on_submitted=progress)

        assert outcome.status is OutcomeStatus.AMBIGUOUS
        assert outcome.code == "broadcast_unknown"
        assert outcome.tx_hash == TX_HASH
        assert outcome.amount == 3 * TOKEN
        mock_ledger.await_confirmation.assert_not_awaited()
        progress.assert_not_awaited()
        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_confirm_error_is_ambiguous_with_hash(self, orchestrator, mock_ledger, mutex):
        mock_ledger.await_confirmation.side_effect = ConfirmError("rpc reset", tx_hash=TX_HASH)

        outcome = await orchestrator.submit_transfer(make_request("3"))

        assert outcome.status is OutcomeStatus.AMBIGUOUS
        assert outcome.tx_hash == TX_HASH
        assert outcome.code == "confirm_failed"
        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_unexpected_confirm_exception_is_ambiguous(self, orchestrator, mock_ledger, mutex):
        mock_ledger.await_confirmation.side_effect = OSError("connection reset")

        outcome = await orchestrator.submit_transfer(make_request("3"))

        assert outcome.status is OutcomeStatus.AMBIGUOUS
        assert outcome.tx_hash == TX_HASH
        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_confirmation_timeout_is_ambiguous(self, oracle, mock_ledger, limiter, mutex):
        settings = make_settings(CONFIRMATION_TIMEOUT_SECONDS=0.05)
        orch = TransferOrchestrator(settings, oracle, mock_ledger, limiter, mutex=mutex)

        async def never_confirms(tx_hash, timeout):
            await asyncio.sleep(10)

        mock_ledger.await_confirmation.side_effect = never_confirms

        outcome = await orch.submit_transfer(make_request("3"))

        assert outcome.status is OutcomeStatus.AMBIGUOUS
        assert outcome.code == "confirm_timeout"
        assert outcome.tx_hash == TX_HASH
        assert not mutex.locked
        # no automatic retry
        mock_ledger.submit_transfer.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reverted_is_rejected_with_hash(self, orchestrator, mock_ledger):
        mock_ledger.await_confirmation.side_effect = ConfirmError("reverted", tx_hash=TX_HASH, code="reverted")

        outcome = await orchestrator.submit_transfer(make_request("3"))

        assert outcome.status is OutcomeStatus.REJECTED
        assert outcome.code == "reverted"
        assert outcome.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_on_submitted_receives_hash_before_confirmation(self, orchestrator, mock_ledger):
        seen = []

        async def on_submitted(outcome):
            seen.append(outcome)
            mock_ledger.await_confirmation.assert_not_awaited()

        outcome = await orchestrator.submit_transfer(make_request("3"), on_submitted=on_submitted)

        assert outcome.status is OutcomeStatus.CONFIRMED
        assert len(seen) == 1
        assert seen[0].status is OutcomeStatus.SUBMITTED
        assert seen[0].tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_failing_progress_callback_does_not_change_outcome(self, orchestrator, mock_ledger):
        on_submitted = AsyncMock(side_effect=RuntimeError("telegram down"))

        outcome = await orchestrator.submit_transfer(make_request("3"), on_submitted=on_submitted)

        assert outcome.status is OutcomeStatus.CONFIRMED
        on_submitted.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_error_never_escapes(self, settings, mock_ledger, limiter, mutex):
        oracle = MagicMock()
        oracle.get_balance = AsyncMock(side_effect=KeyError("boom"))
        orch = TransferOrchestrator(settings, oracle, mock_ledger, limiter, mutex=mutex)

        outcome = await orch.submit_transfer(make_request("3"))

        assert outcome.status is OutcomeStatus.REJECTED
        assert outcome.code == "internal_error"
        assert not mutex.locked


# =============================================================================
# Concurrency
# =============================================================================


class TestSingleInFlightTransfer:
    @pytest.mark.asyncio
    async def test_second_request_is_busy_while_first_in_flight(self, orchestrator, mock_ledger, mutex):
        submitted = asyncio.Event()
        finish = asyncio.Event()

        async def slow_confirmation(tx_hash, timeout):
            submitted.set()
            await finish.wait()
            return {"status": 1}

        mock_ledger.await_confirmation.side_effect = slow_confirmation

        first = asyncio.create_task(orchestrator.submit_transfer(make_request("3")))
        await asyncio.wait_for(submitted.wait(), timeout=1)
        assert mutex.locked

        second = await orchestrator.submit_transfer(make_request("1", source=BOB, target=ALICE))
        assert second.status is OutcomeStatus.REJECTED
        assert second.code == "busy"

        finish.set()
        assert (await first).status is OutcomeStatus.CONFIRMED
        assert mock_ledger.submit_transfer.await_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_arrivals_never_overlap(self, orchestrator, mock_ledger):
        in_flight = 0
        peak = 0

        async def submit(source, target, amount):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            return TX_HASH

        async def confirm(tx_hash, timeout):
            nonlocal in_flight
            await asyncio.sleep(0.01)
            in_flight -= 1
            return {"status": 1}

        mock_ledger.submit_transfer.side_effect = submit
        mock_ledger.await_confirmation.side_effect = confirm

        outcomes = await asyncio.gather(*(orchestrator.submit_transfer(make_request("1")) for _ in range(5)))

        assert peak == 1
        statuses = [o.status for o in outcomes]
        assert statuses.count(OutcomeStatus.CONFIRMED) >= 1
        assert all(o.code == "busy" for o in outcomes if o.status is OutcomeStatus.REJECTED)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "setup",
        [
            lambda l: setattr(l.read_balance, "return_value", 0),
            lambda l: setattr(l.read_balance, "side_effect", QueryError("x")),
            lambda l: setattr(l.submit_transfer, "side_effect", SubmitError("x")),
            lambda l: setattr(l.await_confirmation, "side_effect", ConfirmError("x", tx_hash=TX_HASH)),
            lambda l: None,
        ],
        ids=["insufficient", "query", "submit", "confirm", "confirmed"],
    )
    async def test_mutex_free_after_every_terminal_outcome(self, orchestrator, mock_ledger, mutex, setup):
        setup(mock_ledger)
        await orchestrator.submit_transfer(make_request("3"))
        assert not mutex.locked

        # reset the double and prove the next valid request gets through
        mock_ledger.read_balance.side_effect = None
        mock_ledger.read_balance.return_value = 5 * TOKEN
        mock_ledger.submit_transfer.side_effect = None
        mock_ledger.await_confirmation.side_effect = None
        outcome = await orchestrator.submit_transfer(make_request("3"))
        assert outcome.status is OutcomeStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_orphaned_slot_blocks_all_future_transfers(self, orchestrator, mock_ledger, mutex):
        """Known weakness: a holder killed mid-transfer leaves the slot taken until restart."""
        mutex.try_acquire()

        for _ in range(3):
            outcome = await orchestrator.submit_transfer(make_request("3"))
            assert outcome.code == "busy"
        _no_ledger_calls(mock_ledger)


# =============================================================================
# Journal hook
# =============================================================================


class TestJournalHook:
    @pytest.mark.asyncio
    async def test_terminal_outcome_recorded(self, settings, oracle, mock_ledger, limiter):
        journal = MagicMock()
        orch = TransferOrchestrator(settings, oracle, mock_ledger, limiter, journal=journal)

        outcome = await orch.submit_transfer(make_request("3"))

        journal.record.assert_called_once()
        assert journal.record.call_args.args[1] == outcome

    @pytest.mark.asyncio
    async def test_journal_failure_does_not_change_outcome(self, settings, oracle, mock_ledger, limiter):
        journal = MagicMock()
        journal.record.side_effect = RuntimeError("db down")
        orch = TransferOrchestrator(settings, oracle, mock_ledger, limiter, journal=journal)

        outcome = await orch.submit_transfer(make_request("3"))

        assert outcome.status is OutcomeStatus.CONFIRMED


def test_bot_account_reserved_from_token(settings, oracle, mock_ledger, limiter):
    orch = TransferOrchestrator(settings, oracle, mock_ledger, limiter)
    assert BOT_ID in orch.reserved_accounts
