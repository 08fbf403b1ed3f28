# tipbot/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tipbot.bot.tip_bot import initialize_bot, process_webhook
from tipbot.core.config import get_settings
from tipbot.core.logging import configure_logging
from tipbot.monitoring import run_selftest
from tipbot.services import Services, build_services

logger = logging.getLogger(__name__)

app = FastAPI(title="SPXP Tip Bot")

_services: Services | None = None


@app.on_event("startup")
async def startup_event():
    global _services
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    # ledger + journal first, then the bot on top of them
    try:
        _services = build_services(settings)
        logger.info("Services initialized")
    except Exception:
        logger.exception("Service init failed (startup). Continuing to boot app.")
        return

    try:
        await initialize_bot(settings, _services)
        logger.info("Bot initialized")
    except Exception:
        logger.exception("Bot init failed (startup). Continuing to boot app.")


@app.get("/")
async def root():
    return {"message": "SPXP Tip Bot is running"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/ready")
async def ready():
    result = await run_selftest(
        get_settings(),
        journal=(_services.journal if _services else None),
        quick=True,
    )
    return {"status": result.get("status", "unknown"), "checks": result.get("checks", [])}


@app.get("/selftest")
async def selftest():
    return await run_selftest(
        get_settings(),
        ledger=(_services.ledger if _services else None),
        journal=(_services.journal if _services else None),
        quick=False,
    )


@app.get("/tips/ambiguous")
async def ambiguous_tips(limit: int = 50):
    if not _services or not _services.journal:
        return {"enabled": False, "items": []}
    return {"enabled": True, "items": _services.journal.list_ambiguous(limit=limit)}


@app.post("/webhook/telegram")
async def telegram_webhook(request: Request):
    """
    Telegram expects fast 200 responses. Handlers run in the background, so a
    pending /tip never holds this request open.
    Even if we hit an internal exception, we return 200 to avoid retry storms.
    """
    try:
        update_dict = await request.json()
    except Exception:
        logger.warning("Webhook received invalid JSON")
        return JSONResponse({"ok": False, "error": "invalid_json"}, status_code=status.HTTP_200_OK)

    try:
        await process_webhook(update_dict)
        return JSONResponse({"ok": True}, status_code=status.HTTP_200_OK)
    except Exception:
        logger.exception("Webhook processing failed")
        return JSONResponse({"ok": False}, status_code=status.HTTP_200_OK)
