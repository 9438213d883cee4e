"""
Conversation runtime — executes state machine transitions for one chat.

Every inbound event goes through the same gate:
    debounce → access check → per-chat lock → main menu | state machine

The state machine decides; this module talks to the transport and the
database. Blocking SQLAlchemy work runs in worker threads so one slow
query never stalls other chats.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from strukbot.agent import state_machine
from strukbot.agent.conversation_state import (
    MAIN_MENU_COMMANDS,
    MENU_DAILY_REPORT,
    MENU_NEW_RECEIPT,
    MENU_RECENT,
    MENU_REGIONAL_REPORT,
    MENU_SEARCH,
    MENU_SWITCH_STORE,
    STORE_BOUND_COMMANDS,
    EditSession,
    ReceiptSession,
    Step,
)
from strukbot.agent.effects import (
    AnswerCallback,
    Button,
    DeleteMessage,
    InlineKeyboard,
    MainMenuKeyboard,
    ReplyKeyboard,
    SaveEdit,
    SaveReceipt,
    SearchInvoice,
    SendMessage,
    ShowEditMenu,
    Transition,
)
from strukbot.agent.session_store import SessionStore
from strukbot.core.audit import AuditLog
from strukbot.core.config import settings
from strukbot.core.exceptions import (
    AccessDenied,
    ConcurrentEditStale,
    InvoiceCollision,
    NotFound,
    PersistenceFailure,
    StorageReadFailure,
)
from strukbot.core.permissions import can_edit_transactions, can_view_regional_report
from strukbot.core.rate_limiter import RateLimiter, build_rate_limiter
from strukbot.schemas.access import Access
from strukbot.schemas.receipt import DraftReceipt
from strukbot.services.access_service import AccessResolver
from strukbot.services.formatting import (
    format_daily_report,
    format_recent_transactions,
    format_regional_report,
    format_rupiah,
    format_transaction_detail,
)
from strukbot.services.pricing_service import cart_cost, generate_invoice_number, margin
from strukbot.services.report_service import ReportService
from strukbot.services.transaction_service import TransactionStore

logger = logging.getLogger(__name__)

SET_ACTIVE_STORE_PREFIX = "set_active_store_"


class ConversationService:
    """One instance per bot; holds the session store and its collaborators."""

    def __init__(
        self,
        transport,
        sessions: Optional[SessionStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
        access_resolver: Optional[AccessResolver] = None,
        transactions: Optional[TransactionStore] = None,
        reports: Optional[ReportService] = None,
        clock: Callable[[], datetime] = datetime.now,
        invoice_prefix: str = settings.INVOICE_PREFIX,
    ):
        self.transport = transport
        self.sessions = sessions or SessionStore()
        self.rate_limiter = rate_limiter or build_rate_limiter()
        self.access_resolver = access_resolver or AccessResolver()
        self.transactions = transactions or TransactionStore(clock=clock)
        self.reports = reports or ReportService()
        self.clock = clock
        self.invoice_prefix = invoice_prefix

    # ==========================================================================
    # INBOUND EVENTS
    # ==========================================================================

    async def handle_command(self, chat_id: int, command: str) -> None:
        """`/start` and `/profil`."""
        if not self.rate_limiter.is_allowed(chat_id):
            return

        async with self.sessions.lock(chat_id):
            try:
                access = await self._require_access(chat_id)
                if command == "/start":
                    await self._send_welcome(chat_id, access)
                elif command == "/profil":
                    await self._send_profile(chat_id, access)
            except AccessDenied as exc:
                await self.transport.send_message(chat_id, exc.message)
            except (PersistenceFailure, StorageReadFailure) as exc:
                await self.transport.send_message(chat_id, exc.message)

    async def handle_text(self, chat_id: int, text: str) -> None:
        """Free text and reply-keyboard presses."""
        if not self.rate_limiter.is_allowed(chat_id):
            return
        if not text or text.startswith("/"):
            return

        async with self.sessions.lock(chat_id):
            try:
                access = await self._require_access(chat_id)

                if text in MAIN_MENU_COMMANDS:
                    self.sessions.delete(chat_id)
                    await self._handle_main_menu(chat_id, text, access)
                    return

                session = self.sessions.get(chat_id)
                if session is None:
                    await self._send(chat_id, "🤔 Perintah tidak dikenali.", MainMenuKeyboard(), access)
                    return

                transition = state_machine.handle_text(session, text)
                await self._apply(chat_id, transition, access)
            except AccessDenied as exc:
                await self.transport.send_message(chat_id, exc.message)
            except StorageReadFailure as exc:
                await self.transport.send_message(chat_id, exc.message)
            except PersistenceFailure as exc:
                self.sessions.delete(chat_id)
                await self.transport.send_message(chat_id, exc.message)

    async def handle_callback(self, chat_id: int, callback_id: str, message_id: Optional[int], action_id: str) -> None:
        """Inline keyboard presses."""
        if not self.rate_limiter.is_allowed(chat_id):
            return

        async with self.sessions.lock(chat_id):
            try:
                access = await self._require_access(chat_id)

                if action_id.startswith(SET_ACTIVE_STORE_PREFIX):
                    await self._switch_store(chat_id, callback_id, message_id, action_id, access)
                    return

                action = state_machine.parse_edit_action(action_id)
                if action is None:
                    await self.transport.answer_callback(callback_id)
                    return

                if not can_edit_transactions(access):
                    AuditLog.log_access_denied(chat_id, reason=f"edit action {action_id}")
                    await self.transport.answer_callback(
                        callback_id, "⚠️ Anda tidak punya hak akses untuk edit.", show_alert=True
                    )
                    return

                if action.kind == state_machine.EditActionKind.BEGIN:
                    transition = await self._begin_edit(action.value, message_id, access)
                    if transition is None:
                        await self.transport.answer_callback(callback_id, "❌ Transaksi tidak ditemukan.", show_alert=True)
                        return
                else:
                    session = self.sessions.get(chat_id)
                    if not isinstance(session, EditSession):
                        await self.transport.answer_callback(callback_id, "⚠️ Sesi edit sudah berakhir.")
                        return
                    transition = state_machine.handle_edit_action(session, action, message_id)

                answered = await self._apply(chat_id, transition, access, callback_id=callback_id)
                if not answered:
                    await self.transport.answer_callback(callback_id)
            except AccessDenied as exc:
                await self.transport.answer_callback(callback_id, exc.message, show_alert=True)
            except StorageReadFailure as exc:
                await self.transport.answer_callback(callback_id)
                await self.transport.send_message(chat_id, exc.message)
            except PersistenceFailure as exc:
                self.sessions.delete(chat_id)
                await self.transport.answer_callback(callback_id)
                await self.transport.send_message(chat_id, exc.message)

    # ==========================================================================
    # ACCESS
    # ==========================================================================

    async def _require_access(self, chat_id: int) -> Access:
        access = await asyncio.to_thread(self.access_resolver.resolve, chat_id)
        if not access.has_access:
            AuditLog.log_access_denied(chat_id, reason="unknown or inactive user")
            raise AccessDenied()
        return access

    def _main_menu_keyboard(self, access: Access) -> ReplyKeyboard:
        rows = [
            [MENU_NEW_RECEIPT, MENU_DAILY_REPORT],
            [MENU_SEARCH, MENU_RECENT],
            [MENU_SWITCH_STORE, "/profil"],
        ]
        if can_view_regional_report(access):
            rows.insert(1, [MENU_REGIONAL_REPORT])
        return ReplyKeyboard(rows=rows, one_time=False)

    # ==========================================================================
    # EFFECT EXECUTION
    # ==========================================================================

    async def _apply(self, chat_id: int, transition: Transition, access: Access,
                     callback_id: Optional[str] = None) -> bool:
        """Store the next session, then run the effects in order.

        Returns True when a callback answer was sent.
        """
        session = transition.session
        if session is None:
            self.sessions.delete(chat_id)
        else:
            self.sessions.set(chat_id, session)

        answered = False
        for effect in transition.effects:
            if isinstance(effect, SendMessage):
                await self._send(chat_id, effect.text, effect.keyboard, access)
            elif isinstance(effect, ShowEditMenu):
                await self._show_edit_menu(chat_id, session, effect)
            elif isinstance(effect, DeleteMessage):
                await self._delete(chat_id, effect.message_id)
            elif isinstance(effect, AnswerCallback):
                if callback_id is not None:
                    await self.transport.answer_callback(callback_id, effect.text, show_alert=effect.show_alert)
                    answered = True
            elif isinstance(effect, SaveReceipt):
                await self._save_receipt(chat_id, effect.draft, access)
            elif isinstance(effect, SaveEdit):
                await self._save_edit(chat_id, effect, access)
            elif isinstance(effect, SearchInvoice):
                await self._search(chat_id, effect.invoice_number, access)
        return answered

    async def _send(self, chat_id: int, text: str, keyboard, access: Access) -> int:
        if isinstance(keyboard, MainMenuKeyboard):
            keyboard = self._main_menu_keyboard(access)
        return await self.transport.send_message(chat_id, text, keyboard)

    async def _show_edit_menu(self, chat_id: int, session: EditSession, effect: ShowEditMenu) -> None:
        if session.edit_message_id is not None:
            try:
                await self.transport.edit_message_text(chat_id, session.edit_message_id, effect.text, effect.keyboard)
                return
            except ConcurrentEditStale:
                logger.info(f"[Conversation] chat_id={chat_id} hub message {session.edit_message_id} is stale, sending fresh")
        session.edit_message_id = await self.transport.send_message(chat_id, effect.text, effect.keyboard)

    async def _delete(self, chat_id: int, message_id: Optional[int]) -> None:
        if message_id is None:
            return
        try:
            await self.transport.delete_message(chat_id, message_id)
        except ConcurrentEditStale:
            logger.debug(f"[Conversation] chat_id={chat_id} could not delete message {message_id}")

    async def _save_receipt(self, chat_id: int, draft: DraftReceipt, access: Access) -> None:
        invoice_number = generate_invoice_number(self.clock(), self.invoice_prefix)
        draft = draft.model_copy(update={"invoice_number": invoice_number})

        try:
            result = await asyncio.to_thread(
                self.transactions.create, draft, access.active_store_id, access.user_id
            )
        except InvoiceCollision as exc:
            logger.warning(f"[Conversation] chat_id={chat_id} invoice {invoice_number} collided, awaiting re-confirm")
            self.sessions.set(chat_id, ReceiptSession(
                step=Step.CONFIRM_SAVE,
                draft=draft.model_copy(update={"invoice_number": None}),
            ))
            await self._send(chat_id, exc.message, state_machine.YES_NO_KEYBOARD, access)
            return
        except PersistenceFailure as exc:
            await self._send(chat_id, exc.message, MainMenuKeyboard(), access)
            return

        total_margin = margin(result.total_amount, cart_cost(draft.items))
        logger.info(f"[Conversation] chat_id={chat_id} saved {invoice_number} id={result.transaction_id}")
        await self._send(
            chat_id,
            f"✅ Transaksi `{invoice_number}` (Total: {format_rupiah(result.total_amount)}) "
            f"berhasil disimpan di database.\n📈 Selisih: *{format_rupiah(total_margin)}*",
            MainMenuKeyboard(),
            access,
        )

    async def _save_edit(self, chat_id: int, effect: SaveEdit, access: Access) -> None:
        if effect.status_message_id is not None:
            try:
                await self.transport.edit_message_text(
                    chat_id, effect.status_message_id,
                    f"⏳ Menyimpan perubahan untuk invoice `{effect.invoice_number}`...",
                )
            except ConcurrentEditStale:
                logger.debug(f"[Conversation] chat_id={chat_id} status message is stale")

        try:
            await asyncio.to_thread(self.transactions.update, effect.invoice_number, effect.draft, access.user_id)
        except (NotFound, PersistenceFailure) as exc:
            logger.warning(f"[Conversation] chat_id={chat_id} edit of {effect.invoice_number} failed: {exc.message}")
            await self._send(chat_id, "❌ Gagal menyimpan perubahan.", MainMenuKeyboard(), access)
            return

        await self._send(
            chat_id, f"✅ Invoice `{effect.invoice_number}` berhasil diperbarui!", MainMenuKeyboard(), access
        )

    async def _search(self, chat_id: int, invoice_number: str, access: Access) -> None:
        try:
            transaction = await asyncio.to_thread(
                self.transactions.find_by_invoice, invoice_number, access.active_store_id
            )
        except NotFound as exc:
            await self._send(chat_id, exc.message, MainMenuKeyboard(), access)
            return

        keyboard = InlineKeyboard(rows=[
            [Button(text="✏️ Edit Transaksi Ini", action=f"{state_machine.EDIT_PREFIX}{transaction.invoice_number}")]
        ])
        await self._send(chat_id, format_transaction_detail(transaction), keyboard, access)

    async def _begin_edit(self, invoice_number: str, message_id: Optional[int], access: Access) -> Optional[Transition]:
        try:
            draft = await asyncio.to_thread(
                self.transactions.find_by_invoice, invoice_number, access.active_store_id
            )
        except NotFound:
            return None
        logger.info(f"[Conversation] user_id={access.user_id} editing {invoice_number}")
        return state_machine.begin_edit(draft, message_id)

    # ==========================================================================
    # MAIN MENU
    # ==========================================================================

    async def _handle_main_menu(self, chat_id: int, text: str, access: Access) -> None:
        if text in STORE_BOUND_COMMANDS and not access.active_store_id:
            await self._send(
                chat_id,
                "⚠️ Anda belum memilih toko aktif. Gunakan *🔄 Ganti Toko* terlebih dahulu.",
                MainMenuKeyboard(),
                access,
            )
            return

        if text == MENU_NEW_RECEIPT:
            await self._apply(chat_id, state_machine.start_receipt(), access)
        elif text == MENU_SEARCH:
            await self._apply(chat_id, state_machine.start_search(), access)
        elif text == MENU_DAILY_REPORT:
            await self._send_daily_report(chat_id, access)
        elif text == MENU_REGIONAL_REPORT:
            await self._send_regional_report(chat_id, access)
        elif text == MENU_RECENT:
            await self._send_recent(chat_id, access)
        elif text == MENU_SWITCH_STORE:
            await self._send_store_picker(chat_id, access)

    async def _send_daily_report(self, chat_id: int, access: Access) -> None:
        await self.transport.send_message(chat_id, "⏳ Sedang membuat laporan harian...")
        summary = await asyncio.to_thread(
            self.reports.daily_summary, self.clock().date(), access.active_store_id
        )
        await self._send(chat_id, format_daily_report(summary), MainMenuKeyboard(), access)

    async def _send_regional_report(self, chat_id: int, access: Access) -> None:
        if not can_view_regional_report(access):
            await self._send(chat_id, "⚠️ Fitur ini hanya untuk Kepala Cabang.", MainMenuKeyboard(), access)
            return
        await self.transport.send_message(chat_id, "⏳ Sedang membuat laporan regional...")
        summary = await asyncio.to_thread(
            self.reports.regional_summary, self.clock().date(), access.region_id
        )
        await self._send(chat_id, format_regional_report(summary), MainMenuKeyboard(), access)

    async def _send_recent(self, chat_id: int, access: Access) -> None:
        store_name = await asyncio.to_thread(self.access_resolver.store_name, access.active_store_id)
        transactions = await asyncio.to_thread(self.transactions.recent, access.active_store_id)
        await self._send(
            chat_id, format_recent_transactions(store_name or "-", transactions), MainMenuKeyboard(), access
        )

    async def _send_store_picker(self, chat_id: int, access: Access) -> None:
        if not access.accessible_stores:
            await self._send(chat_id, "⚠️ Anda tidak memiliki akses ke toko lain.", MainMenuKeyboard(), access)
            return

        rows = []
        for store in access.accessible_stores:
            marker = "✅ " if store.id == access.active_store_id else ""
            rows.append([Button(text=f"{marker}{store.name}", action=f"{SET_ACTIVE_STORE_PREFIX}{store.id}")])
        await self._send(chat_id, "🔄 Pilih toko yang ingin Anda kelola:", InlineKeyboard(rows=rows), access)

    async def _switch_store(self, chat_id: int, callback_id: str, message_id: Optional[int],
                            action_id: str, access: Access) -> None:
        try:
            store_id = int(action_id[len(SET_ACTIVE_STORE_PREFIX):])
        except ValueError:
            store_id = None
        store = access.find_store(store_id) if store_id is not None else None
        if store is None:
            AuditLog.log_access_denied(chat_id, reason=f"store switch {action_id}")
            await self.transport.answer_callback(callback_id, "⚠️ Akses ke toko ini ditolak!", show_alert=True)
            return

        await asyncio.to_thread(self.access_resolver.set_active_store, access.user_id, store.id)
        access = access.model_copy(update={"active_store_id": store.id})
        text = f"✅ Berhasil! Toko aktif Anda sekarang adalah *{store.name}*."
        edited = False
        if message_id is not None:
            try:
                await self.transport.edit_message_text(chat_id, message_id, text)
                edited = True
            except ConcurrentEditStale:
                logger.debug(f"[Conversation] chat_id={chat_id} store picker is stale")
        if not edited:
            await self.transport.send_message(chat_id, text)
        await self.transport.answer_callback(callback_id)
        await self._send(chat_id, "Pilih menu selanjutnya:", MainMenuKeyboard(), access)

    # ==========================================================================
    # PROFILE
    # ==========================================================================

    async def _send_welcome(self, chat_id: int, access: Access) -> None:
        primary = await asyncio.to_thread(self.access_resolver.store_name, access.store_id)
        active = await asyncio.to_thread(self.access_resolver.store_name, access.active_store_id)
        msg = (
            f"👋 Selamat datang, *{access.full_name}*!\n\n"
            f"🎭 Jabatan: *{access.role_name or '-'}*\n"
            f"🏠 Toko utama: *{primary or '-'}*\n"
            f"🏪 Toko aktif: *{active or 'Belum dipilih'}*\n\n"
            f"Silakan pilih menu di bawah."
        )
        await self._send(chat_id, msg, MainMenuKeyboard(), access)

    async def _send_profile(self, chat_id: int, access: Access) -> None:
        active = await asyncio.to_thread(self.access_resolver.store_name, access.active_store_id)
        region = await asyncio.to_thread(self.access_resolver.region_name, access.region_id)
        msg = (
            f"👤 *PROFIL PENGGUNA*\n\n"
            f"Nama: *{access.full_name}*\n"
            f"Jabatan: *{access.role_name or '-'}*\n"
            f"Regional: *{region or '-'}*\n"
            f"Toko aktif: *{active or 'Belum dipilih'}*\n"
        )
        if access.accessible_stores:
            msg += "\n🏪 *Toko yang dapat dikelola:*\n"
            msg += "".join(f"• {store.name}\n" for store in access.accessible_stores)
        await self._send(chat_id, msg, MainMenuKeyboard(), access)
