"""
Conversation state for receipt entry, receipt editing and invoice search.

One session per chat. A session is one of three variants, tagged by flow,
each carrying only the data its steps need.
"""
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from strukbot.schemas.receipt import DraftReceipt, EditDraft


class Step(str, Enum):
    """Conversation steps. The value is what gets logged."""
    # Receipt creation
    CASHIER_NAME = "CASHIER_NAME"
    ADD_ITEM = "ADD_ITEM"
    GET_TOTAL_PAYMENT = "GET_TOTAL_PAYMENT"
    PAYMENT_METHOD = "PAYMENT_METHOD"
    CONFIRM_SAVE = "CONFIRM_SAVE"

    # Invoice search
    SEARCH_TRANSACTION = "SEARCH_TRANSACTION"

    # Receipt editing: hub and its field steps
    EDIT_MENU = "EDIT_MENU"
    EDIT_CASHIER = "EDIT_CASHIER"
    EDIT_PAYMENT = "EDIT_PAYMENT"
    EDIT_ADD_ITEM = "EDIT_ADD_ITEM"
    EDIT_REMOVE_ITEM = "EDIT_REMOVE_ITEM"
    EDIT_SELECT_ITEM = "EDIT_SELECT_ITEM"

    # Receipt editing: per-item hub and its field steps
    EDIT_MENU_ITEM = "EDIT_MENU_ITEM"
    EDIT_ITEM_NAME = "EDIT_ITEM_NAME"
    EDIT_ITEM_QTY = "EDIT_ITEM_QTY"
    EDIT_ITEM_PRICE_VP = "EDIT_ITEM_PRICE_VP"
    EDIT_ITEM_TOTAL_CONSUMER = "EDIT_ITEM_TOTAL_CONSUMER"


class ReceiptSession(BaseModel):
    flow: Literal["receipt"] = "receipt"
    step: Step = Step.CASHIER_NAME
    draft: DraftReceipt = Field(default_factory=DraftReceipt)


class EditSession(BaseModel):
    flow: Literal["edit"] = "edit"
    step: Step = Step.EDIT_MENU
    draft: EditDraft
    editing_item_index: Optional[int] = None
    # Chat message showing the edit hub; edited in place while it is valid
    edit_message_id: Optional[int] = None

    @property
    def invoice_number(self) -> str:
        return self.draft.invoice_number


class SearchSession(BaseModel):
    flow: Literal["search"] = "search"
    step: Step = Step.SEARCH_TRANSACTION


Session = Union[ReceiptSession, EditSession, SearchSession]


# Reply-keyboard tokens
DONE_TOKEN = "selesai"
BACK_TOKEN = "← Kembali"
YES_TOKEN = "✅ Ya"
NO_TOKEN = "❌ Tidak"

PAYMENT_METHODS = [["💳 QRIS", "💵 Tunai"], ["🏦 Debit BCA", "🏦 Transfer"]]

# Main menu commands
MENU_NEW_RECEIPT = "📝 Buat Struk"
MENU_DAILY_REPORT = "📊 Laporan Hari Ini"
MENU_REGIONAL_REPORT = "🌍 Laporan Regional"
MENU_SEARCH = "🔍 Cari Transaksi"
MENU_RECENT = "📋 Transaksi Terakhir"
MENU_SWITCH_STORE = "🔄 Ganti Toko"

MAIN_MENU_COMMANDS = [
    MENU_NEW_RECEIPT, MENU_DAILY_REPORT, MENU_REGIONAL_REPORT,
    MENU_SEARCH, MENU_RECENT, MENU_SWITCH_STORE,
]
# Commands that act on the active store
STORE_BOUND_COMMANDS = [MENU_NEW_RECEIPT, MENU_DAILY_REPORT, MENU_SEARCH, MENU_RECENT]

MAX_CASHIER_NAME_LENGTH = 50
