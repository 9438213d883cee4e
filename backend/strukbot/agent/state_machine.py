"""
Receipt conversation state machine.

Every entry point is a pure function `(session, event) -> Transition`: the
given session is never mutated, the returned one is a fresh copy, and all
outbound work (messages, persistence, lookups) is described as effects.

Creation flow:
    CASHIER_NAME → ADD_ITEM → GET_TOTAL_PAYMENT → PAYMENT_METHOD → CONFIRM_SAVE

Edit flow (hub and spokes):
    EDIT_MENU ⇄ EDIT_CASHIER | EDIT_PAYMENT | EDIT_ADD_ITEM | EDIT_REMOVE_ITEM
    EDIT_MENU → EDIT_SELECT_ITEM → EDIT_MENU_ITEM ⇄ EDIT_ITEM_*

Invalid input raises ValidationError inside a step handler; the dispatcher
turns it into a re-prompt and keeps the untouched session.
"""
import logging
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from strukbot.agent.conversation_state import (
    BACK_TOKEN,
    DONE_TOKEN,
    MAX_CASHIER_NAME_LENGTH,
    NO_TOKEN,
    PAYMENT_METHODS,
    YES_TOKEN,
    EditSession,
    ReceiptSession,
    SearchSession,
    Session,
    Step,
)
from strukbot.agent.effects import (
    AnswerCallback,
    Button,
    DeleteMessage,
    InlineKeyboard,
    MainMenuKeyboard,
    RemoveKeyboard,
    ReplyKeyboard,
    SaveEdit,
    SaveReceipt,
    SearchInvoice,
    SendMessage,
    ShowEditMenu,
    Transition,
)
from strukbot.core.exceptions import ValidationError
from strukbot.schemas.receipt import EditDraft, ReceiptItem
from strukbot.services.formatting import LINE, format_item_list, format_rupiah
from strukbot.services.pricing_service import cart_cost, items_revenue, margin

logger = logging.getLogger(__name__)

DONE_KEYBOARD = ReplyKeyboard(rows=[["Selesai"]])
PAYMENT_KEYBOARD = ReplyKeyboard(rows=PAYMENT_METHODS + [[BACK_TOKEN]])
YES_NO_KEYBOARD = ReplyKeyboard(rows=[[YES_TOKEN, NO_TOKEN]])

ITEM_FORMAT_HINT = "`Nama, Jumlah, Unit, Modal/unit`"
EDIT_ITEM_FORMAT_HINT = "`Nama, Jumlah, Unit, Harga Modal, Total Bayar`"


# ==============================================================================
# INPUT PARSING
# ==============================================================================

def parse_amount(text: str, allow_zero: bool = False) -> int:
    """Whole Rupiah amount; `.` thousand separators are accepted (`130.000`)."""
    raw = text.strip().replace(".", "")
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError("⚠️ Masukkan angka yang valid.")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError("⚠️ Masukkan angka yang valid.")
    return value


def parse_quantity(text: str) -> int:
    try:
        qty = int(text.strip())
    except ValueError:
        raise ValidationError("⚠️ *Jumlah* harus berupa angka bulat.")
    if qty <= 0:
        raise ValidationError("⚠️ *Jumlah* harus lebih dari 0.")
    return qty


def parse_cashier_name(text: str) -> str:
    name = text.strip()
    if not name:
        raise ValidationError("⚠️ Nama kasir tidak boleh kosong.")
    if len(name) > MAX_CASHIER_NAME_LENGTH:
        raise ValidationError("⚠️ Nama kasir terlalu panjang.")
    return name


def _split_fields(text: str, count: int, hint: str):
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != count:
        raise ValidationError(f"⚠️ Format salah. Gunakan: {hint}")
    return parts


def parse_item_line(text: str) -> ReceiptItem:
    """`Nama, Jumlah, Unit, Modal/unit` → item without consumer revenue."""
    name, qty_str, unit, price_vp_str = _split_fields(text, 4, ITEM_FORMAT_HINT)
    invalid = ValidationError("⚠️ Input tidak valid. Pastikan *Jumlah* dan *Modal* adalah angka.")
    if not name or not unit:
        raise invalid
    try:
        qty = parse_quantity(qty_str)
        price_vp = parse_amount(price_vp_str, allow_zero=True)
    except ValidationError:
        raise invalid
    return ReceiptItem(name=name, qty=qty, unit=unit, price_vp=Decimal(price_vp))


def parse_edit_item_line(text: str) -> ReceiptItem:
    """`Nama, Jumlah, Unit, Harga Modal, Total Bayar` → item with its line total."""
    name, qty_str, unit, price_vp_str, total_str = _split_fields(text, 5, EDIT_ITEM_FORMAT_HINT)
    invalid = ValidationError("⚠️ Pastikan Jumlah & Harga adalah angka.")
    if not name or not unit:
        raise invalid
    try:
        qty = parse_quantity(qty_str)
        price_vp = parse_amount(price_vp_str, allow_zero=True)
        total = parse_amount(total_str, allow_zero=True)
    except ValidationError:
        raise invalid
    return ReceiptItem(
        name=name, qty=qty, unit=unit,
        price_vp=Decimal(price_vp), total_price_consumer=Decimal(total),
    )


# ==============================================================================
# RENDERING
# ==============================================================================

def render_edit_menu(draft: EditDraft) -> ShowEditMenu:
    """Edit hub. The total is recomputed from the current items every time."""
    msg = (
        f"✏️ *Mode Edit: {draft.invoice_number}*\n\n"
        f"Kasir: *{draft.cashier_name}*\n"
        f"Bayar: *{draft.payment_method}*\n"
        f"{LINE}\n"
    )
    for i, item in enumerate(draft.items, 1):
        msg += f"{i}. {item.name} ({item.qty} {item.unit}) - {format_rupiah(item.total_price_consumer)}\n"
    msg += f"{LINE}\nTOTAL: *{format_rupiah(items_revenue(draft.items))}*\n\nPilih data yang ingin diubah:"

    keyboard = InlineKeyboard(rows=[
        [Button(text="👤 Ubah Kasir", action="edit_field_cashier"),
         Button(text="💳 Ubah Pembayaran", action="edit_field_payment")],
        [Button(text="➕ Tambah Item", action="edit_field_add_item"),
         Button(text="🗑️ Hapus Item", action="edit_field_remove_item")],
        [Button(text="✏️ Ubah Item", action="edit_field_edit_item")],
        [Button(text="✅ Simpan Perubahan", action="edit_save")],
        [Button(text="❌ Batal", action="edit_cancel")],
    ])
    return ShowEditMenu(text=msg, keyboard=keyboard)


def render_item_menu(item: ReceiptItem) -> ShowEditMenu:
    msg = (
        f"✏️ *Mengubah Item: {item.name}*\n\n"
        f"*Detail Saat Ini:*\n"
        f"1. Nama: {item.name}\n"
        f"2. Jumlah: {item.qty} {item.unit}\n"
        f"3. Harga Modal/unit: {format_rupiah(item.price_vp)}\n"
        f"4. Total Bayar Konsumen: {format_rupiah(item.total_price_consumer)}\n\n"
        f"Pilih bagian yang ingin diubah:"
    )
    keyboard = InlineKeyboard(rows=[
        [Button(text="1. Nama", action="edit_item_field_name"),
         Button(text="2. Jumlah & Unit", action="edit_item_field_qty")],
        [Button(text="3. Harga Modal", action="edit_item_field_price_vp"),
         Button(text="4. Total Bayar", action="edit_item_field_total_consumer")],
        [Button(text="« Kembali ke Struk", action="edit_item_back")],
    ])
    return ShowEditMenu(text=msg, keyboard=keyboard)


def _cart_summary(items) -> str:
    msg = "✅ *Item ditambahkan:*\n"
    msg += "".join(f"{i}. {item.name}\n" for i, item in enumerate(items, 1))
    msg += f"\n*Total Modal Sementara:* {format_rupiah(cart_cost(items))}\n\nMasukkan item berikutnya atau ketik *Selesai*."
    return msg


def _confirmation_summary(session: ReceiptSession) -> str:
    draft = session.draft
    total_cost = cart_cost(draft.items)
    msg = f"📝 *KONFIRMASI TRANSAKSI*\n\nKasir: *{draft.cashier_name}*\n{LINE}\n"
    msg += "".join(f"• {item.name} ({item.qty} {item.unit})\n" for item in draft.items)
    msg += (
        f"{LINE}\n"
        f"💰 *Total Bayar:* *{format_rupiah(draft.total_consumer_payment)}*\n"
        f"📦 *Total Modal:* {format_rupiah(total_cost)}\n"
        f"📈 *Total Selisih:* *{format_rupiah(margin(draft.total_consumer_payment, total_cost))}*\n\n"
        f"*Bayar via:* *{draft.payment_method}*\n\nApakah data sudah benar?"
    )
    return msg


# ==============================================================================
# ENTRY POINTS
# ==============================================================================

def start_receipt() -> Transition:
    return Transition(
        session=ReceiptSession(),
        effects=[SendMessage(text="✏️ Masukkan *Nama Kasir*:", keyboard=RemoveKeyboard())],
    )


def start_search() -> Transition:
    return Transition(
        session=SearchSession(),
        effects=[SendMessage(text="🔍 Masukkan nomor *invoice*:", keyboard=RemoveKeyboard())],
    )


def begin_edit(draft: EditDraft, message_id: Optional[int]) -> Transition:
    """Open an edit session; the hub replaces the message the button was on."""
    session = EditSession(draft=draft, edit_message_id=message_id)
    return Transition(session=session, effects=[render_edit_menu(session.draft)])


def handle_text(session: Session, text: str) -> Transition:
    """Advance `session` with one free-text message."""
    handler = _TEXT_HANDLERS.get(session.step)
    if handler is None:
        return Transition(
            session=session,
            effects=[SendMessage(text="👆 Silakan pilih salah satu tombol pada menu di atas.")],
        )

    working = session.model_copy(deep=True)
    try:
        transition = handler(working, text)
    except ValidationError as exc:
        logger.info(f"[FSM] step={session.step.value} rejected input: {exc.message}")
        return Transition(session=session, effects=[SendMessage(text=exc.message)])

    next_step = transition.session.step.value if transition.session else "END"
    logger.info(f"[StateTransition] {session.step.value} → {next_step}")
    return transition


# ==============================================================================
# CREATION FLOW
# ==============================================================================

def _on_cashier_name(session: ReceiptSession, text: str) -> Transition:
    session.draft.cashier_name = parse_cashier_name(text)
    session.step = Step.ADD_ITEM
    return Transition(session=session, effects=[SendMessage(text=(
        f"✅ Kasir: *{session.draft.cashier_name}*\n\n"
        f"Sekarang, masukkan item pertama dengan format:\n{ITEM_FORMAT_HINT}\n\n"
        f"*Contoh:*\n`Salsavage, 30, ml, 2000`\n`Botol PX38, 1, pcs, 7000`"
    ))])


def _on_add_item(session: ReceiptSession, text: str) -> Transition:
    if text.strip().lower() == DONE_TOKEN:
        if not session.draft.items:
            raise ValidationError("⚠️ Keranjang masih kosong. Tambahkan minimal satu item.")
        session.step = Step.GET_TOTAL_PAYMENT
        msg = (
            "🛒 *Barang yang diinput:*\n"
            f"{format_item_list(session.draft.items)}"
            "\nSekarang, *berapa total uang yang dibayar oleh konsumen?*\nContoh: `130000`"
        )
        return Transition(session=session, effects=[SendMessage(text=msg, keyboard=RemoveKeyboard())])

    session.draft.items.append(parse_item_line(text))
    return Transition(
        session=session,
        effects=[SendMessage(text=_cart_summary(session.draft.items), keyboard=DONE_KEYBOARD)],
    )


def _on_total_payment(session: ReceiptSession, text: str) -> Transition:
    try:
        amount = parse_amount(text)
    except ValidationError:
        raise ValidationError("⚠️ Masukkan total bayar dalam bentuk angka yang valid.")
    session.draft.total_consumer_payment = Decimal(amount)
    session.step = Step.PAYMENT_METHOD
    return Transition(session=session, effects=[SendMessage(
        text=f"💰 Total bayar konsumen: *{format_rupiah(amount)}*.\n\nSekarang, pilih *Metode Pembayaran*",
        keyboard=PAYMENT_KEYBOARD,
    )])


def _on_payment_method(session: ReceiptSession, text: str) -> Transition:
    if text.strip() == BACK_TOKEN:
        session.draft.total_consumer_payment = None
        session.step = Step.ADD_ITEM
        return Transition(session=session, effects=[SendMessage(
            text="Kembali ke penambahan item. Masukkan item lagi atau ketik *Selesai*.",
            keyboard=DONE_KEYBOARD,
        )])

    method = text.strip()
    if not method:
        raise ValidationError("⚠️ Pilih metode pembayaran.")
    session.draft.payment_method = method
    session.step = Step.CONFIRM_SAVE
    return Transition(
        session=session,
        effects=[SendMessage(text=_confirmation_summary(session), keyboard=YES_NO_KEYBOARD)],
    )


def _on_confirm_save(session: ReceiptSession, text: str) -> Transition:
    if text.strip() == YES_TOKEN:
        return Transition(session=None, effects=[
            SendMessage(text="⏳ Menyimpan transaksi..."),
            SaveReceipt(draft=session.draft),
        ])
    return Transition(session=None, effects=[
        SendMessage(text="❌ Pembuatan struk dibatalkan.", keyboard=MainMenuKeyboard()),
    ])


def _on_search(session: SearchSession, text: str) -> Transition:
    invoice_number = text.strip()
    if not invoice_number:
        raise ValidationError("⚠️ Masukkan nomor invoice.")
    return Transition(session=None, effects=[SearchInvoice(invoice_number=invoice_number)])


# ==============================================================================
# EDIT FLOW: TEXT STEPS
# ==============================================================================

def _back_to_hub(session: EditSession) -> Transition:
    session.editing_item_index = None
    session.step = Step.EDIT_MENU
    return Transition(session=session, effects=[render_edit_menu(session.draft)])


def _back_to_item_menu(session: EditSession, item: ReceiptItem) -> Transition:
    session.step = Step.EDIT_MENU_ITEM
    return Transition(session=session, effects=[render_item_menu(item)])


def _editing_item(session: EditSession) -> Optional[ReceiptItem]:
    index = session.editing_item_index
    if index is None or not 0 <= index < len(session.draft.items):
        return None
    return session.draft.items[index]


def _on_edit_cashier(session: EditSession, text: str) -> Transition:
    session.draft.cashier_name = parse_cashier_name(text)
    return _back_to_hub(session)


def _on_edit_payment(session: EditSession, text: str) -> Transition:
    if text.strip() != BACK_TOKEN:
        method = text.strip()
        if not method:
            raise ValidationError("⚠️ Pilih metode pembayaran.")
        session.draft.payment_method = method
    return _back_to_hub(session)


def _on_edit_add_item(session: EditSession, text: str) -> Transition:
    session.draft.items.append(parse_edit_item_line(text))
    return _back_to_hub(session)


def _on_edit_remove_item(session: EditSession, text: str) -> Transition:
    try:
        index = int(text.strip()) - 1
    except ValueError:
        raise ValidationError("⚠️ Nomor item tidak valid.")
    if not 0 <= index < len(session.draft.items):
        raise ValidationError("⚠️ Nomor item tidak valid.")
    removed = session.draft.items.pop(index)
    logger.info(f"[FSM] {session.invoice_number}: removed item '{removed.name}'")
    return _back_to_hub(session)


def _on_edit_item_name(session: EditSession, text: str) -> Transition:
    item = _editing_item(session)
    if item is None:
        return _back_to_hub(session)
    name = text.strip()
    if not name:
        raise ValidationError("⚠️ Nama barang tidak boleh kosong.")
    item.name = name
    return _back_to_item_menu(session, item)


def _on_edit_item_qty(session: EditSession, text: str) -> Transition:
    item = _editing_item(session)
    if item is None:
        return _back_to_hub(session)
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 2 or not parts[1]:
        raise ValidationError("Format salah. Contoh: `30, ml`")
    try:
        qty = parse_quantity(parts[0])
    except ValidationError:
        raise ValidationError("Format salah. Contoh: `30, ml`")
    item.qty = qty
    item.unit = parts[1]
    return _back_to_item_menu(session, item)


def _on_edit_item_price_vp(session: EditSession, text: str) -> Transition:
    item = _editing_item(session)
    if item is None:
        return _back_to_hub(session)
    item.price_vp = Decimal(parse_amount(text, allow_zero=True))
    return _back_to_item_menu(session, item)


def _on_edit_item_total_consumer(session: EditSession, text: str) -> Transition:
    item = _editing_item(session)
    if item is None:
        return _back_to_hub(session)
    item.total_price_consumer = Decimal(parse_amount(text, allow_zero=True))
    return _back_to_item_menu(session, item)


_TEXT_HANDLERS: Dict[Step, Callable[..., Transition]] = {
    Step.CASHIER_NAME: _on_cashier_name,
    Step.ADD_ITEM: _on_add_item,
    Step.GET_TOTAL_PAYMENT: _on_total_payment,
    Step.PAYMENT_METHOD: _on_payment_method,
    Step.CONFIRM_SAVE: _on_confirm_save,
    Step.SEARCH_TRANSACTION: _on_search,
    Step.EDIT_CASHIER: _on_edit_cashier,
    Step.EDIT_PAYMENT: _on_edit_payment,
    Step.EDIT_ADD_ITEM: _on_edit_add_item,
    Step.EDIT_REMOVE_ITEM: _on_edit_remove_item,
    Step.EDIT_ITEM_NAME: _on_edit_item_name,
    Step.EDIT_ITEM_QTY: _on_edit_item_qty,
    Step.EDIT_ITEM_PRICE_VP: _on_edit_item_price_vp,
    Step.EDIT_ITEM_TOTAL_CONSUMER: _on_edit_item_total_consumer,
}


# ==============================================================================
# EDIT FLOW: BUTTON ACTIONS
# ==============================================================================

class EditActionKind(str, Enum):
    ITEM_FIELD = "item_field"
    ITEM_BACK = "item_back"
    ITEM_INDEX = "item_index"
    FIELD = "field"
    SAVE = "save"
    CANCEL = "cancel"
    BEGIN = "begin"


class EditAction(BaseModel):
    kind: EditActionKind
    value: str = ""


EDIT_PREFIX = "edit_"
ITEM_FIELD_PREFIX = "edit_item_field_"
ITEM_BACK_ACTION = "edit_item_back"
ITEM_INDEX_PREFIX = "edit_item_idx_"
FIELD_PREFIX = "edit_field_"
SAVE_ACTION = "edit_save"
CANCEL_ACTION = "edit_cancel"


def parse_edit_action(action_id: str) -> Optional[EditAction]:
    """Classify an `edit_*` callback.

    Order matters: the reserved prefixes are tried from most to least
    specific and "open invoice X for editing" is the fallback, so an invoice
    number can never be mistaken for a hub or item action.
    """
    if not action_id.startswith(EDIT_PREFIX):
        return None
    if action_id.startswith(ITEM_FIELD_PREFIX):
        return EditAction(kind=EditActionKind.ITEM_FIELD, value=action_id[len(ITEM_FIELD_PREFIX):])
    if action_id == ITEM_BACK_ACTION:
        return EditAction(kind=EditActionKind.ITEM_BACK)
    if action_id.startswith(ITEM_INDEX_PREFIX):
        return EditAction(kind=EditActionKind.ITEM_INDEX, value=action_id[len(ITEM_INDEX_PREFIX):])
    if action_id.startswith(FIELD_PREFIX):
        return EditAction(kind=EditActionKind.FIELD, value=action_id[len(FIELD_PREFIX):])
    if action_id == SAVE_ACTION:
        return EditAction(kind=EditActionKind.SAVE)
    if action_id == CANCEL_ACTION:
        return EditAction(kind=EditActionKind.CANCEL)
    return EditAction(kind=EditActionKind.BEGIN, value=action_id[len(EDIT_PREFIX):])


_ITEM_FIELD_PROMPTS = {
    "name": (Step.EDIT_ITEM_NAME, "✏️ Masukkan *nama barang* baru:"),
    "qty": (Step.EDIT_ITEM_QTY, "✏️ Masukkan *jumlah* dan *unit* baru (pisahkan dengan koma).\nContoh: `30, ml`"),
    "price_vp": (Step.EDIT_ITEM_PRICE_VP, "✏️ Masukkan *harga modal per unit* baru:"),
    "total_consumer": (Step.EDIT_ITEM_TOTAL_CONSUMER, "✏️ Masukkan *total harga bayar konsumen* yang baru untuk item ini:"),
}


def handle_edit_action(session: EditSession, action: EditAction, message_id: Optional[int]) -> Transition:
    """Apply a hub/item button press to an open edit session.

    `message_id` is the chat message carrying the pressed button.
    BEGIN is not handled here: opening a session needs an invoice lookup.
    """
    working = session.model_copy(deep=True)

    if action.kind == EditActionKind.ITEM_FIELD:
        if action.value not in _ITEM_FIELD_PROMPTS:
            return Transition(session=session)
        if _editing_item(working) is None:
            return _back_to_hub(working)
        step, prompt = _ITEM_FIELD_PROMPTS[action.value]
        working.step = step
        hub_message_id = working.edit_message_id
        working.edit_message_id = None
        return Transition(session=working, effects=[
            SendMessage(text=prompt),
            DeleteMessage(message_id=hub_message_id),
        ])

    if action.kind == EditActionKind.ITEM_BACK:
        return _back_to_hub(working)

    if action.kind == EditActionKind.ITEM_INDEX:
        try:
            index = int(action.value)
        except ValueError:
            index = -1
        if not 0 <= index < len(working.draft.items):
            return Transition(session=session, effects=[
                AnswerCallback(text="⚠️ Item tidak ditemukan.", show_alert=True),
            ])
        working.editing_item_index = index
        working.step = Step.EDIT_MENU_ITEM
        return Transition(session=working, effects=[
            DeleteMessage(message_id=message_id),
            render_item_menu(working.draft.items[index]),
        ])

    if action.kind == EditActionKind.FIELD:
        return _on_hub_field(session, working, action.value, message_id)

    if action.kind == EditActionKind.SAVE:
        return Transition(session=None, effects=[
            SaveEdit(
                invoice_number=working.invoice_number,
                draft=working.draft,
                status_message_id=working.edit_message_id,
            ),
        ])

    if action.kind == EditActionKind.CANCEL:
        return Transition(session=None, effects=[
            DeleteMessage(message_id=message_id),
            SendMessage(text="❌ Edit invoice dibatalkan.\n\nPilih menu selanjutnya:", keyboard=MainMenuKeyboard()),
        ])

    return Transition(session=session)


def _on_hub_field(session: EditSession, working: EditSession, field: str, message_id: Optional[int]) -> Transition:
    items = working.draft.items

    if field == "cashier":
        working.step = Step.EDIT_CASHIER
        prompt = SendMessage(text="✏️ Masukkan nama kasir baru:")
    elif field == "payment":
        working.step = Step.EDIT_PAYMENT
        prompt = SendMessage(text="💳 Pilih metode pembayaran baru:", keyboard=PAYMENT_KEYBOARD)
    elif field == "add_item":
        working.step = Step.EDIT_ADD_ITEM
        prompt = SendMessage(text=(
            "➕ Masukkan item baru:\n`Nama, Jumlah, Unit, Harga Modal, Total Bayar Konsumen`\n\n"
            "*Contoh:*\n`Baccarat, 30, ml, 2000, 90000`"
        ))
    elif field == "remove_item":
        if not items:
            return Transition(session=session, effects=[AnswerCallback(text="Tidak ada item untuk dihapus.")])
        working.step = Step.EDIT_REMOVE_ITEM
        prompt = SendMessage(text="🗑️ Ketik *nomor* item yang ingin dihapus:\n\n" + "".join(
            f"{i}. {item.name}\n" for i, item in enumerate(items, 1)
        ))
    elif field == "edit_item":
        if not items:
            return Transition(session=session, effects=[AnswerCallback(text="Tidak ada item untuk diubah.")])
        working.step = Step.EDIT_SELECT_ITEM
        prompt = SendMessage(
            text="✏️ Pilih item yang akan diubah:",
            keyboard=InlineKeyboard(rows=[
                [Button(text=f"{i + 1}. {item.name}", action=f"{ITEM_INDEX_PREFIX}{i}")]
                for i, item in enumerate(items)
            ]),
        )
    else:
        return Transition(session=session)

    working.edit_message_id = None
    return Transition(session=working, effects=[DeleteMessage(message_id=message_id), prompt])
