from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from urllib.parse import urlencode


UPI_PAY_BASE = "upi://pay"
DEFAULT_CURRENCY = "INR"


def format_amount(amount) -> str:
    """Two-decimal amount string as UPI apps expect it (20 -> "20.00")."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{value:.2f}"


def build_upi_pay_uri(
    *,
    payee_vpa: str,
    payee_name: str,
    amount,
    transaction_note: str,
    transaction_ref: str,
    currency: str = DEFAULT_CURRENCY,
) -> str:
    """
    Build a UPI deep link (upi://pay?...).

    Parameter order is fixed: pa, pn, am, cu, tn, tr. The query string is
    form-urlencoded, so spaces become '+' and '@' becomes '%40'.
    """
    params = [
        ("pa", payee_vpa),
        ("pn", payee_name),
        ("am", format_amount(amount)),
        ("cu", currency),
        ("tn", transaction_note),
        ("tr", transaction_ref),
    ]
    return f"{UPI_PAY_BASE}?{urlencode(params)}"
