# tipbot/bot/tip_bot.py
from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Optional

from telegram import Message, Update
from telegram.ext import Application, CommandHandler, ContextTypes

from tipbot.core.config import Settings
from tipbot.errors import QueryError
from tipbot.i18n import normalize_lang, t
from tipbot.reporter import render_balance, render_help, render_leaderboard, render_outcome
from tipbot.schemas import Outcome, RequestContext, TransferRequest
from tipbot.services import Services, build_services

logger = logging.getLogger(__name__)


def _full_name(tg_user) -> Optional[str]:
    if tg_user is None:
        return None
    return f"{tg_user.first_name or ''} {tg_user.last_name or ''}".strip() or tg_user.username


def build_transfer_request(update: Update, args: list[str] | None) -> TransferRequest:
    """Map a /tip update to a TransferRequest. Missing parts stay None."""
    msg = update.effective_message
    chat = update.effective_chat
    source = update.effective_user

    reply = msg.reply_to_message if msg else None
    target = reply.from_user if reply else None

    return TransferRequest(
        source_account=(source.id if source else None),
        target_account=(target.id if target else None),
        amount_text=(args[0] if args else None),
        context=RequestContext(
            chat_id=(chat.id if chat else None),
            chat_type=(str(chat.type) if chat else "private"),
            reply_to_message_id=(reply.message_id if reply else None),
            source_name=_full_name(source),
            target_name=_full_name(target),
            language=(source.language_code if source else None),
        ),
    )


class TipBot:
    def __init__(self, services: Services):
        self.services = services
        self.settings = services.settings
        self.application: Application | None = None

    @property
    def symbol(self) -> str:
        return self.settings.TOKEN_SYMBOL

    @property
    def balance_command(self) -> str:
        return self.symbol.lower()

    def _lang(self, update: Update) -> str:
        user = update.effective_user
        if user and user.language_code:
            return normalize_lang(user.language_code)
        return normalize_lang(self.settings.DEFAULT_LANGUAGE)

    def _is_admin(self, telegram_id: int) -> bool:
        return bool(self.settings.ADMIN_USER_ID) and str(telegram_id) == str(self.settings.ADMIN_USER_ID)

    async def _reply(self, message: Message, text: str) -> None:
        # Bot API calls share the ledger's rate limiter
        await self.services.limiter.schedule(message.reply_text, text)

    def build_application(self) -> Application:
        if not self.settings.TELEGRAM_BOT_TOKEN:
            raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")

        # /spxp and /top must not wait behind a pending /tip, and a second /tip has to see busy
        app = Application.builder().token(self.settings.TELEGRAM_BOT_TOKEN).concurrent_updates(True).build()

        app.add_handler(CommandHandler("start", self.cmd_start))
        app.add_handler(CommandHandler("help", self.cmd_help))
        app.add_handler(CommandHandler(self.balance_command, self.cmd_balance))
        app.add_handler(CommandHandler("tip", self.cmd_tip))
        app.add_handler(CommandHandler("top", self.cmd_top))
        app.add_handler(CommandHandler("pending", self.cmd_pending))

        app.add_error_handler(self.on_error)

        self.application = app
        return app

    async def initialize(self) -> None:
        """Webhook mode: build, initialize and register the webhook."""
        app = self.build_application()
        await app.initialize()

        if self.settings.WEBHOOK_URL:
            url = f"{self.settings.WEBHOOK_URL.rstrip('/')}/webhook/telegram"
            await app.bot.set_webhook(url)
            logger.info(f"Webhook set: {url}")

        logger.info("TipBot initialized")

    async def on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        logger.exception("Unhandled bot error", exc_info=context.error)
        if isinstance(update, Update) and update.effective_message:
            try:
                await update.effective_message.reply_text(t(self._lang(update), "GENERIC_ERROR"))
            except Exception:
                logger.warning("Could not send error reply", exc_info=True)

    # --------- Commands ---------

    async def cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._reply(update.message, render_help("START", lang=self._lang(update), symbol=self.symbol))

    async def cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._reply(update.message, render_help("HELP", lang=self._lang(update), symbol=self.symbol))

    async def cmd_balance(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        lang = self._lang(update)
        user = update.effective_user
        if not user:
            await self._reply(update.message, t(lang, "NO_USER_ID"))
            return

        try:
            balance = await self.services.oracle.get_balance(user.id)
        except QueryError:
            logger.exception("Balance command error")
            await self._reply(update.message, t(lang, "BALANCE_ERROR"))
            return

        await self._reply(
            update.message,
            render_balance(balance, lang=lang, symbol=self.symbol, decimals=self.settings.TOKEN_DECIMALS),
        )

    async def cmd_tip(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        request = build_transfer_request(update, context.args)
        lang = self._lang(update)
        names = {"source_name": request.context.source_name, "target_name": request.context.target_name}

        def render(outcome: Outcome) -> str:
            return render_outcome(
                outcome, lang=lang, symbol=self.symbol, decimals=self.settings.TOKEN_DECIMALS, **names
            )

        async def on_submitted(outcome: Outcome) -> None:
            await self._reply(update.message, render(outcome))

        outcome = await self.services.orchestrator.submit_transfer(request, on_submitted=on_submitted)
        await self._reply(update.message, render(outcome))

    async def cmd_top(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        lang = self._lang(update)
        try:
            users = await self.services.oracle.leaderboard(self.settings.LEADERBOARD_SIZE)
        except QueryError:
            logger.exception("Leaderboard command error")
            await self._reply(update.message, t(lang, "TOP_ERROR"))
            return
        await self._reply(
            update.message,
            render_leaderboard(users, lang=lang, symbol=self.symbol, decimals=self.settings.TOKEN_DECIMALS),
        )

    async def cmd_pending(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Admin: ambiguous tips that still need a manual look."""
        if not update.effective_user or not self._is_admin(update.effective_user.id):
            return
        journal = self.services.journal
        if journal is None:
            await self._reply(update.message, "Tip journal disabled (DATABASE_URL missing).")
            return

        rows = journal.list_ambiguous(limit=20)
        if not rows:
            await self._reply(update.message, "No ambiguous tips.")
            return
        lines = ["⚠️ Ambiguous tips (latest 20):\n"]
        for r in rows:
            lines.append(f"- #{r['id']} {r['source_account']} -> {r['target_account']} | {r['code']} | tx {r['tx_hash']}")
        await self._reply(update.message, "\n".join(lines))


# --------- bootstrap ---------

_bot: TipBot | None = None

# Webhook updates run in the background so the HTTP reply never waits on a tip.
_pending_updates: set[asyncio.Task] = set()
_seen_update_ids: OrderedDict[int, None] = OrderedDict()
SEEN_UPDATES_MAX = 1000


async def initialize_bot(settings: Settings, services: Services | None = None) -> TipBot | None:
    global _bot
    if not settings.TELEGRAM_BOT_TOKEN:
        logger.warning("TELEGRAM_BOT_TOKEN missing, bot disabled")
        return None

    _bot = TipBot(services or build_services(settings))
    await _bot.initialize()
    return _bot


def _remember_update(update_id: int) -> bool:
    """False if this update_id was already dispatched (Telegram redelivery)."""
    if update_id in _seen_update_ids:
        return False
    _seen_update_ids[update_id] = None
    while len(_seen_update_ids) > SEEN_UPDATES_MAX:
        _seen_update_ids.popitem(last=False)
    return True


def _on_update_done(task: asyncio.Task) -> None:
    _pending_updates.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Webhook update processing failed", exc_info=exc)


async def process_webhook(update_dict: dict) -> Optional[asyncio.Task]:
    """Dispatch a webhook update without waiting for its handlers to finish."""
    if not _bot or not _bot.application:
        return None
    update = Update.de_json(update_dict, _bot.application.bot)
    if update is None:
        return None
    if not _remember_update(update.update_id):
        logger.info("Ignoring redelivered update %s", update.update_id)
        return None

    task = asyncio.create_task(_bot.application.process_update(update))
    _pending_updates.add(task)
    task.add_done_callback(_on_update_done)
    return task


def run_polling(settings: Settings) -> None:
    bot = TipBot(build_services(settings))
    app = bot.build_application()
    logger.info("Bot started (polling)")
    app.run_polling(allowed_updates=Update.ALL_TYPES)
