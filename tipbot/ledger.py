"""
SPXP ledger client.

Thin async wrapper over the SPXP contract on Base. Every web3/RPC failure is
translated into a tip domain error (QueryError / SubmitError / ConfirmError)
so callers never deal with web3 exception types.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TimeExhausted

from tipbot.abi import SPXP_ABI
from tipbot.core.config import Settings
from tipbot.errors import ConfirmError, QueryError, SubmitError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerUser:
    id: int
    username: str
    balance: int


class LedgerClient:
    def __init__(
        self,
        w3: AsyncWeb3,
        contract_address: str,
        *,
        account: Any = None,
        chain_id: int | None = None,
        rpc_timeout: float = 15.0,
    ):
        self.w3 = w3
        self.contract = w3.eth.contract(address=Web3.to_checksum_address(contract_address), abi=SPXP_ABI)
        self.account = account
        self.chain_id = chain_id
        self.rpc_timeout = rpc_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerClient":
        if not settings.BASE_RPC_URL:
            raise RuntimeError("BASE_RPC_URL is not set")
        if not settings.CONTRACT_ADDRESS:
            raise RuntimeError("CONTRACT_ADDRESS is not set")

        w3 = AsyncWeb3(AsyncHTTPProvider(settings.BASE_RPC_URL))
        account = Account.from_key(settings.private_key_hex) if settings.private_key_hex else None
        if account is None:
            logger.warning("PRIVATE_KEY missing, ledger client is read-only")
        else:
            logger.info("Operator account loaded: %s", account.address)
        return cls(
            w3,
            settings.CONTRACT_ADDRESS,
            account=account,
            chain_id=settings.CHAIN_ID,
            rpc_timeout=settings.RPC_TIMEOUT_SECONDS,
        )

    async def _rpc(self, coro):
        return await asyncio.wait_for(coro, timeout=self.rpc_timeout)

    # ---------- reads ----------

    async def read_balance(self, account_id: int) -> int:
        try:
            return int(await self._rpc(self.contract.functions.balanceOf(account_id).call()))
        except Exception as e:
            raise QueryError(f"balanceOf({account_id}) failed: {e!r}") from e

    async def user_count(self) -> int:
        try:
            return int(await self._rpc(self.contract.functions.userLength().call()))
        except Exception as e:
            raise QueryError(f"userLength() failed: {e!r}") from e

    async def read_users(self, from_index: int, to_index: int) -> list[LedgerUser]:
        try:
            rows = await self._rpc(self.contract.functions.users(from_index, to_index).call())
        except Exception as e:
            raise QueryError(f"users({from_index}, {to_index}) failed: {e!r}") from e
        return [LedgerUser(id=int(r[0]), username=str(r[1]), balance=int(r[2])) for r in rows]

    async def ping(self) -> int:
        try:
            return int(await self._rpc(self.w3.eth.block_number))
        except Exception as e:
            raise QueryError(f"block_number failed: {e!r}") from e

    # ---------- writes ----------

    async def submit_transfer(self, source: int, target: int, amount: int) -> str:
        """Sign and broadcast transfer(source, target, amount). Returns the tx hash.

        Failures before signing raise SubmitError (nothing left this process).
        A failed broadcast raises ConfirmError with the signed tx hash, since the
        node may have accepted the transaction before the error surfaced.
        """
        if self.account is None:
            raise SubmitError("no signing account configured")

        try:
            nonce = await self._rpc(self.w3.eth.get_transaction_count(self.account.address, "pending"))
            params: dict[str, Any] = {"from": self.account.address, "nonce": nonce}
            if self.chain_id is not None:
                params["chainId"] = self.chain_id
            tx = await self._rpc(self.contract.functions.transfer(source, target, amount).build_transaction(params))
            signed = self.account.sign_transaction(tx)
            tx_hash = Web3.to_hex(signed.hash)
        except Exception as e:
            raise SubmitError(f"transfer({source}, {target}, {amount}) not sent: {e!r}") from e

        try:
            await self._rpc(self.w3.eth.send_raw_transaction(signed.raw_transaction))
        except Exception as e:
            logger.exception("Broadcast of %s failed, delivery unknown", tx_hash)
            raise ConfirmError(
                f"broadcast of {tx_hash} failed: {e!r}", tx_hash=tx_hash, code="broadcast_unknown"
            ) from e

        return tx_hash

    async def await_confirmation(self, tx_hash: str, timeout: float) -> Any:
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except (TimeExhausted, asyncio.TimeoutError) as e:
            raise ConfirmError(
                f"{tx_hash} not confirmed within {timeout}s", tx_hash=tx_hash, code="confirm_timeout"
            ) from e
        except Exception as e:
            raise ConfirmError(f"waiting for {tx_hash} failed: {e!r}", tx_hash=tx_hash) from e

        if receipt["status"] != 1:
            raise ConfirmError(f"{tx_hash} reverted", tx_hash=tx_hash, code="reverted")
        return receipt
