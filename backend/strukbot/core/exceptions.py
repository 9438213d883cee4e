"""
Domain exceptions for the receipt bot.

User-facing text is kept generic for storage failures; details go to the
log. Validation errors carry the exact re-prompt shown to the cashier.
"""
import logging

logger = logging.getLogger(__name__)


class StrukBotError(Exception):
    """Base class for all bot errors."""

    user_message = "⚠️ Terjadi kesalahan. Silakan coba lagi."

    def __init__(self, message: str = ""):
        super().__init__(message or self.user_message)
        self.message = message or self.user_message

    @classmethod
    def from_error(cls, original_error: Exception, operation: str) -> "StrukBotError":
        """Log the storage error in full and return the user-safe exception."""
        logger.error(
            f"{cls.__name__} during {operation}: "
            f"{type(original_error).__name__}: {original_error}",
            exc_info=original_error,
        )
        return cls()


class AccessDenied(StrukBotError):
    """Chat identity is unknown or inactive. Short-circuits all processing."""

    user_message = "⚠️ Akses ditolak."


class ValidationError(StrukBotError):
    """
    Malformed or out-of-range user input.

    Always recoverable: the session stays on the same step with all
    previously entered data intact.
    """

    user_message = "⚠️ Input tidak valid."


class InvoiceCollision(ValidationError):
    """The generated invoice number already exists in the ledger."""

    user_message = (
        "⚠️ Nomor invoice bentrok dengan transaksi lain. "
        "Tekan *✅ Ya* sekali lagi untuk menyimpan ulang."
    )


class NotFound(StrukBotError):
    """Invoice lookup miss (or invoice belongs to another store)."""

    user_message = "❌ Transaksi tidak ditemukan."


class PersistenceFailure(StrukBotError):
    """
    Storage transaction was rolled back.

    Never retried automatically: the session is abandoned so that a
    duplicate submission cannot happen silently.
    """

    user_message = "⚠️ Gagal menyimpan transaksi. Silakan coba lagi atau hubungi admin."


class StorageReadFailure(StrukBotError):
    """
    A read-only query failed (access check, lookup, report).

    Nothing was written, so the conversation in progress is kept and the
    user can simply repeat the last input.
    """

    user_message = "⚠️ Gagal memuat data. Silakan coba lagi sebentar lagi."


class ConcurrentEditStale(StrukBotError):
    """
    Editing or deleting a chat message failed (message gone or too old).

    Recovered by sending a fresh message and updating the stored handle.
    """

    user_message = "Pesan sudah tidak bisa diubah."
