"""
Outbound transport: what the conversation runtime may do to a chat.

`TelegramTransport` maps the transport-neutral keyboards onto
python-telegram-bot markup. Edit/delete failures on a message that is gone
or too old surface as ConcurrentEditStale.
"""
import logging
from typing import Optional, Protocol

from telegram import (
    Bot,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
)
from telegram import error
from telegram.constants import ParseMode

from strukbot.agent.effects import InlineKeyboard, RemoveKeyboard, ReplyKeyboard
from strukbot.core.exceptions import ConcurrentEditStale

logger = logging.getLogger(__name__)


class Transport(Protocol):

    async def send_message(self, chat_id: int, text: str, keyboard=None) -> int:
        """Send a message and return its message id."""

    async def edit_message_text(self, chat_id: int, message_id: int, text: str,
                                keyboard: Optional[InlineKeyboard] = None) -> None:
        ...

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        ...

    async def answer_callback(self, callback_id: str, text: Optional[str] = None,
                              show_alert: bool = False) -> None:
        ...


def to_markup(keyboard):
    """Neutral keyboard → PTB reply markup (None passes through)."""
    if keyboard is None:
        return None
    if isinstance(keyboard, InlineKeyboard):
        return InlineKeyboardMarkup([
            [InlineKeyboardButton(button.text, callback_data=button.action) for button in row]
            for row in keyboard.rows
        ])
    if isinstance(keyboard, ReplyKeyboard):
        return ReplyKeyboardMarkup(keyboard.rows, resize_keyboard=True, one_time_keyboard=keyboard.one_time)
    if isinstance(keyboard, RemoveKeyboard):
        return ReplyKeyboardRemove()
    raise TypeError(f"Unresolved keyboard: {keyboard!r}")


class TelegramTransport:

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send_message(self, chat_id: int, text: str, keyboard=None) -> int:
        message = await self.bot.send_message(
            chat_id=chat_id,
            text=text,
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=to_markup(keyboard),
        )
        return message.message_id

    async def edit_message_text(self, chat_id: int, message_id: int, text: str,
                                keyboard: Optional[InlineKeyboard] = None) -> None:
        try:
            await self.bot.edit_message_text(
                text=text,
                chat_id=chat_id,
                message_id=message_id,
                parse_mode=ParseMode.MARKDOWN,
                reply_markup=to_markup(keyboard),
            )
        except error.BadRequest as e:
            # Re-rendering identical content is not a failure
            if "not modified" in str(e).lower():
                return
            logger.info(f"[Telegram] edit failed chat_id={chat_id} message_id={message_id}: {e}")
            raise ConcurrentEditStale(str(e)) from e

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        try:
            await self.bot.delete_message(chat_id=chat_id, message_id=message_id)
        except error.BadRequest as e:
            raise ConcurrentEditStale(str(e)) from e

    async def answer_callback(self, callback_id: str, text: Optional[str] = None,
                              show_alert: bool = False) -> None:
        try:
            await self.bot.answer_callback_query(callback_query_id=callback_id, text=text, show_alert=show_alert)
        except error.BadRequest as e:
            # Callback queries expire after a while; nothing left to answer
            logger.debug(f"[Telegram] callback {callback_id} not answered: {e}")
