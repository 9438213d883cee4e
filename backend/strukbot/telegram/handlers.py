"""
Telegram update handlers.

Thin adapters: pull chat id / text / callback data out of the PTB update and
hand them to the ConversationService stored in `bot_data["conversation"]`.
All conversation logic lives in strukbot.agent.
"""
import logging

from telegram import Update
from telegram.ext import ContextTypes

from strukbot.agent.conversation_service import ConversationService

logger = logging.getLogger(__name__)

CONVERSATION_KEY = "conversation"


def _service(context: ContextTypes.DEFAULT_TYPE) -> ConversationService:
    return context.application.bot_data[CONVERSATION_KEY]


# ==============================================================================
# COMMAND HANDLERS
# ==============================================================================

async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/start: welcome with role and stores."""
    if not update.effective_chat:
        return
    await _service(context).handle_command(update.effective_chat.id, "/start")


async def handle_profile(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.effective_chat:
        return
    await _service(context).handle_command(update.effective_chat.id, "/profil")


# ==============================================================================
# MESSAGE & CALLBACK HANDLERS
# ==============================================================================

async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.effective_chat or not update.message or not update.message.text:
        return
    chat_id = update.effective_chat.id
    logger.info(f"[Telegram] message from chat_id={chat_id}")
    await _service(context).handle_text(chat_id, update.message.text)


async def handle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if not query or not update.effective_chat:
        return
    chat_id = update.effective_chat.id
    message_id = query.message.message_id if query.message else None
    logger.info(f"[Telegram] callback '{query.data}' from chat_id={chat_id}")
    await _service(context).handle_callback(chat_id, query.id, message_id, query.data or "")


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error(f"[Telegram] unhandled error for update {update}: {context.error}", exc_info=context.error)
