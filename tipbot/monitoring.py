# tipbot/monitoring.py
from __future__ import annotations

import time
from typing import Any, Dict, List

from sqlalchemy import text

from tipbot.core.config import Settings
from tipbot.journal import TipJournal
from tipbot.ledger import LedgerClient


def _check(name: str, ok: bool, detail: str = "", extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
    row: Dict[str, Any] = {"name": name, "ok": bool(ok)}
    if detail:
        row["detail"] = detail
    if extra:
        row["extra"] = extra
    return row


async def run_selftest(
    settings: Settings,
    *,
    ledger: LedgerClient | None = None,
    journal: TipJournal | None = None,
    quick: bool = True,
) -> dict:
    checks: List[Dict[str, Any]] = []

    # --- ENV sanity ---
    checks.append(_check("env:TELEGRAM_BOT_TOKEN", bool(settings.TELEGRAM_BOT_TOKEN)))
    checks.append(_check("env:BASE_RPC_URL", bool(settings.BASE_RPC_URL)))
    checks.append(_check("env:CONTRACT_ADDRESS", bool(settings.CONTRACT_ADDRESS)))
    checks.append(_check("env:PRIVATE_KEY", bool(settings.PRIVATE_KEY), detail="required to send tips"))

    # --- Journal DB (optional) ---
    if journal is not None:
        db_ok = False
        db_err = ""
        t0 = time.time()
        try:
            with journal.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            db_ok = True
        except Exception as e:
            db_err = repr(e)
        checks.append(_check("db:select1", db_ok, detail=db_err, extra={"ms": int((time.time() - t0) * 1000)}))

    # --- RPC (deep only) ---
    if not quick:
        rpc_ok = True
        rpc_detail = "skipped (ledger client not configured)"
        if ledger is not None:
            rpc_ok = False
            t0 = time.time()
            try:
                rpc_detail = f"block={await ledger.ping()}"
                rpc_ok = True
            except Exception as e:
                rpc_detail = repr(e)
            checks.append(_check("base:rpc", rpc_ok, detail=rpc_detail, extra={"ms": int((time.time() - t0) * 1000)}))
        else:
            checks.append(_check("base:rpc", rpc_ok, detail=rpc_detail))

    status = "ok" if all(c.get("ok") for c in checks) else "degraded"
    return {"status": status, "checks": checks}
