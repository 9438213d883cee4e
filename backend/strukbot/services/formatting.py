"""
Text rendering for chat replies: Rupiah amounts, Indonesian dates, reports
and transaction details. Markdown (legacy Telegram flavour).
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from strukbot.schemas.receipt import EditDraft, ReceiptItem, TransactionSummary
from strukbot.schemas.report import DailySummary, RegionalSummary

DIVIDER = "━━━━━━━━━━━━━━━━━━━━━━━━━━━━"
LINE = "------------------------------------"

_DAYS = ["Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu"]
_MONTHS = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]


def format_rupiah(amount) -> str:
    """`Rp 130.000` / `Rp 4.333,33` / `-Rp 5.000`."""
    value = Decimal(str(amount or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    whole, _, cents = f"{abs(value):.2f}".partition(".")
    grouped = f"{int(whole):,}".replace(",", ".")
    if cents != "00":
        grouped = f"{grouped},{cents}"
    return f"{sign}Rp {grouped}"


def format_day(day: date) -> str:
    """`Sabtu, 17 Oktober 2026`."""
    return f"{_DAYS[day.weekday()]}, {day.day} {_MONTHS[day.month - 1]} {day.year}"


def format_date(moment: datetime) -> str:
    """`Sabtu, 17 Oktober 2026 14.05`."""
    return f"{format_day(moment.date())} {moment.strftime('%H.%M')}"


def format_item_list(items: Iterable[ReceiptItem]) -> str:
    return "".join(f"{i}. {item.name} ({item.qty} {item.unit})\n" for i, item in enumerate(items, 1))


def format_daily_report(summary: DailySummary) -> str:
    msg = (
        f"📊 *LAPORAN PENJUALAN HARIAN*\n🏪 *{summary.store_name}*\n{DIVIDER}\n"
        f"📅 {format_day(summary.day)}\n\n"
        f"💰 *Total Pendapatan:* {format_rupiah(summary.total_sales)}\n"
        f"🧾 *Jumlah Transaksi:* {summary.total_transactions} transaksi\n"
        f"📈 *Total Selisih (Profit/Rugi):* {format_rupiah(summary.total_margin)}\n{DIVIDER}\n"
    )

    if summary.top_products:
        msg += "\n🔥 *PRODUK TERLARIS:*\n"
        for i, product in enumerate(summary.top_products, 1):
            msg += (
                f"{i}. {product.product_name}\n"
                f"   Terjual: {product.total_qty} {product.unit} | {format_rupiah(product.total_revenue)}\n"
            )
    else:
        msg += "\n_Tidak ada produk yang terjual hari ini._\n"

    if summary.payment_methods:
        msg += "\n💳 *METODE PEMBAYARAN:*\n"
        for pm in summary.payment_methods:
            msg += f"• {pm.payment_method}: {pm.count}x ({format_rupiah(pm.total)})\n"

    msg += f"\n{DIVIDER}"
    return msg


def format_regional_report(summary: RegionalSummary) -> str:
    msg = (
        f"🌍 *LAPORAN REGIONAL HARIAN*\n📍 *{summary.region_name}*\n{DIVIDER}\n"
        f"📅 {format_day(summary.day)}\n\n"
        f"💰 *Total Pendapatan:* {format_rupiah(summary.total_sales)}\n"
        f"🧾 *Total Transaksi:* {summary.total_transactions}\n"
        f"📈 *Total Selisih Regional:* {format_rupiah(summary.total_margin)}\n{DIVIDER}\n\n"
        f"📍 *BREAKDOWN PER TOKO:*\n"
    )

    if any(store.sales > 0 for store in summary.stores):
        for i, store in enumerate(summary.stores, 1):
            share = (store.sales / summary.total_sales * 100) if summary.total_sales > 0 else Decimal("0")
            msg += (
                f"\n{i}. *{store.name}*\n"
                f"   Pendapatan: {format_rupiah(store.sales)} ({share:.1f}%)\n"
                f"   Transaksi: {store.transactions}x\n"
                f"   Selisih: *{format_rupiah(store.margin)}*\n"
            )
    else:
        msg += "\n_Tidak ada penjualan di regional ini hari ini._\n"

    msg += f"\n{DIVIDER}"
    return msg


def format_transaction_detail(transaction: EditDraft) -> str:
    msg = (
        "✅ *Transaksi Ditemukan*\n\n"
        f"🧾 *Invoice:* `{transaction.invoice_number}`\n"
        f"🏪 *Toko:* {transaction.store_name}\n"
        f"👤 *Kasir:* {transaction.cashier_name}\n"
        f"📅 *Tanggal:* {format_date(transaction.transaction_date)}\n"
        f"💳 *Bayar:* {transaction.payment_method}\n"
        f"{LINE}\n"
    )
    for item in transaction.items:
        msg += f"• {item.name} ({item.qty} {item.unit}) - {format_rupiah(item.total_price_consumer)}\n"
    msg += f"{LINE}\n💰 *TOTAL:* *{format_rupiah(transaction.total_amount)}*\n"
    return msg


def format_recent_transactions(store_name: str, transactions: Iterable[TransactionSummary]) -> str:
    transactions = list(transactions)
    if not transactions:
        return f"📋 Belum ada transaksi di *{store_name}*."

    msg = f"📋 *TRANSAKSI TERAKHIR*\n🏪 *{store_name}*\n{LINE}\n"
    for trx in transactions:
        msg += (
            f"🧾 `{trx.invoice_number}`\n"
            f"   {format_date(trx.transaction_date)} | {trx.cashier_name} | "
            f"{trx.payment_method} | {format_rupiah(trx.total_amount)}\n"
        )
    msg += f"{LINE}\nGunakan *🔍 Cari Transaksi* untuk melihat detail."
    return msg
