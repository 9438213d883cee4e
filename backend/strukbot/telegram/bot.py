"""
Telegram application wiring and polling lifecycle.

The bot runs inside the FastAPI event loop: `start_bot()` is awaited from
the lifespan handler and `stop_bot()` on shutdown. Updates are processed
concurrently; per-chat ordering is enforced by the session store locks.
"""
import asyncio
import logging
from typing import Optional

from telegram import error
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    filters,
)

from strukbot.agent.conversation_service import ConversationService
from strukbot.core.config import settings
from strukbot.telegram.handlers import (
    CONVERSATION_KEY,
    handle_callback,
    handle_error,
    handle_message,
    handle_profile,
    handle_start,
)
from strukbot.telegram.transport import TelegramTransport

logger = logging.getLogger(__name__)

_bot_app: Optional[Application] = None


def build_application(token: str) -> Application:
    app = Application.builder().token(token).concurrent_updates(True).build()
    app.bot_data[CONVERSATION_KEY] = ConversationService(TelegramTransport(app.bot))

    app.add_handler(CommandHandler("start", handle_start))
    app.add_handler(CommandHandler("profil", handle_profile))
    app.add_handler(CallbackQueryHandler(handle_callback))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))
    app.add_error_handler(handle_error)
    return app


async def _start_polling_with_retry(app: Application, max_retries=3, initial_backoff=2) -> bool:
    for attempt in range(max_retries):
        try:
            logger.info(f"[Telegram] Starting polling (attempt {attempt + 1}/{max_retries})...")
            await app.updater.start_polling(drop_pending_updates=True)
            logger.info("[Telegram] Polling started")
            return True
        except error.Conflict as e:
            if attempt < max_retries - 1:
                backoff = initial_backoff * (2 ** attempt)
                logger.warning(f"[Telegram] Conflict detected: {e}. Retrying in {backoff}s...")
                await asyncio.sleep(backoff)
            else:
                logger.error(f"[Telegram] Failed after {max_retries} retries. Bot disabled. Error: {e}")
    return False


async def start_bot() -> bool:
    """Initialise the application and start polling. No-op without a token."""
    global _bot_app
    if not settings.TELEGRAM_BOT_TOKEN:
        logger.warning("[Telegram] Bot disabled (no TELEGRAM_BOT_TOKEN)")
        return False

    _bot_app = build_application(settings.TELEGRAM_BOT_TOKEN)
    await _bot_app.initialize()
    await _bot_app.start()
    if not await _start_polling_with_retry(_bot_app):
        await _bot_app.stop()
        await _bot_app.shutdown()
        _bot_app = None
        return False
    return True


async def stop_bot() -> None:
    global _bot_app
    if _bot_app is None:
        return
    if _bot_app.updater and _bot_app.updater.running:
        await _bot_app.updater.stop()
    await _bot_app.stop()
    await _bot_app.shutdown()
    _bot_app = None
    logger.info("[Telegram] Bot stopped")


def is_running() -> bool:
    return _bot_app is not None
