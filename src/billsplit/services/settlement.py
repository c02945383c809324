"""Money formatting and shareable output for computed totals."""
from typing import Dict, List, Optional
from urllib.parse import quote

from ..core.config import settings
from ..models.totals import Totals, UserTotal

CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "CA$",
    "AUD": "A$",
    "NZD": "NZ$",
    "MXN": "MX$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CNY": "CN¥",
    "INR": "₹",
    "KRW": "₩",
    "ILS": "₪",
    "VND": "₫",
    "BRL": "R$",
    "PHP": "₱",
}

# ISO 4217 currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW", "VND", "CLP", "ISK", "HUF", "TWD", "UGX", "XOF", "XAF"}

# Characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"


def format_money(amount: float, currency: str = "USD") -> str:
    """Format an amount the way en-US currency formatting does: ``$1,234.50``, ``-$3.00``, ``CHF 12.00``."""
    code = (currency or settings.default_currency).upper()
    decimals = 0 if code in ZERO_DECIMAL_CURRENCIES else 2
    number = f"{abs(amount):,.{decimals}f}"
    sign = "-" if round(amount, decimals) < 0 else ""
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {number}"
    return f"{sign}{symbol}{number}"


def payment_note(user_total: UserTotal, max_length: Optional[int] = None) -> str:
    """Item descriptions joined with ", ", cut to ``max_length`` including the ellipsis."""
    max_length = max_length or settings.max_note_length
    note = ", ".join(item.description for item in user_total.items)
    if len(note) > max_length:
        note = note[: max_length - 3] + "..."
    return note


def build_payment_request_link(user_total: UserTotal) -> str:
    """Deep link asking a participant to pay their total, with their items as the note."""
    amount = f"{user_total.total:.2f}"
    note = quote(payment_note(user_total), safe=_URI_COMPONENT_SAFE)
    return f"venmo://paycharge?txn=charge&amount={amount}&note={note}"


def build_summary(totals: Totals, currency: str = "USD", charge_labels: Optional[Dict[str, str]] = None) -> str:
    """Plain-text summary of a split, ready to paste into a group chat."""
    charge_labels = charge_labels or {}
    lines: List[str] = [f"Subtotal: {format_money(totals.subtotal, currency)}"]
    for charge_id, amount in totals.total_charges.items():
        lines.append(f"{charge_labels.get(charge_id, charge_id)}: {format_money(amount, currency)}")
    lines.append(f"Total: {format_money(totals.grand_total, currency)}")
    lines.append("")
    for user in totals.display_users().values():
        lines.append(f"{user.name}: {format_money(user.total, currency)}")
    return "\n".join(lines)
