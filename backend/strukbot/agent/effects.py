"""
Outbound effects produced by the state machine.

The state machine never talks to Telegram or the database; it returns these
values and the conversation service carries them out in order.
"""
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from strukbot.schemas.receipt import DraftReceipt, EditDraft


# ---------------------------------------------------------------------------
# Keyboards (transport-neutral)
# ---------------------------------------------------------------------------

class Button(BaseModel):
    text: str
    action: str


class InlineKeyboard(BaseModel):
    kind: str = "inline"
    rows: List[List[Button]]


class ReplyKeyboard(BaseModel):
    kind: str = "reply"
    rows: List[List[str]]
    one_time: bool = True


class RemoveKeyboard(BaseModel):
    kind: str = "remove"


class MainMenuKeyboard(BaseModel):
    """Resolved per user (regional heads get an extra row)."""
    kind: str = "main_menu"


Keyboard = Union[InlineKeyboard, ReplyKeyboard, RemoveKeyboard, MainMenuKeyboard]


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------

class SendMessage(BaseModel):
    text: str
    keyboard: Optional[Keyboard] = None


class ShowEditMenu(BaseModel):
    """Render an edit hub: edit the stored hub message in place, else send fresh."""
    text: str
    keyboard: InlineKeyboard


class DeleteMessage(BaseModel):
    """Delete a chat message; failures are ignored."""
    message_id: Optional[int] = None


class AnswerCallback(BaseModel):
    text: Optional[str] = None
    show_alert: bool = False


class SaveReceipt(BaseModel):
    draft: DraftReceipt


class SaveEdit(BaseModel):
    invoice_number: str
    draft: EditDraft
    status_message_id: Optional[int] = None


class SearchInvoice(BaseModel):
    invoice_number: str


Effect = Union[SendMessage, ShowEditMenu, DeleteMessage, AnswerCallback, SaveReceipt, SaveEdit, SearchInvoice]


class Transition(BaseModel):
    """Result of one event: the next session (None = destroyed) and effects."""
    session: Optional[object] = None
    effects: List[Effect] = Field(default_factory=list)
