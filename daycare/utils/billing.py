"""Invoice money math."""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from daycare.models.invoice import PricingMode

CENT = Decimal("0.01")
INVOICE_NUMBER_RE = re.compile(r"^INV-(\d{6})-(\d+)$")


def to_money(value) -> Decimal:
    """Round any numeric value to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def normalize_line_items(items: Iterable[dict]) -> list[dict]:
    """Fill in missing amounts as quantity x rate and round everything to cents.

    Returned items are JSON-safe (numbers as strings).
    """
    normalized = []
    for item in items:
        quantity = Decimal(str(item.get("quantity") if item.get("quantity") is not None else 1))
        rate = item.get("rate")
        amount = item.get("amount")
        if amount is None:
            amount = quantity * Decimal(str(rate if rate is not None else 0))
        normalized.append({
            "description": item.get("description") or "",
            "quantity": format(quantity.normalize(), "f"),
            "rate": str(to_money(rate)) if rate is not None else None,
            "amount": str(to_money(amount)),
        })
    return normalized


def calculate_invoice_totals(
    line_items: Iterable[dict],
    tax_rate: Decimal,
    tax_enabled: bool = True,
    pricing_mode: PricingMode = PricingMode.BASE_PLUS_TAX,
) -> InvoiceTotals:
    """Compute subtotal, tax and total from normalized line items.

    BASE_PLUS_TAX adds tax on top of the line sum. TOTAL_INCLUDES_TAX treats the
    line sum as the final total and backs the tax out of it.
    """
    line_sum = sum((Decimal(str(item["amount"])) for item in line_items), Decimal("0"))
    rate = Decimal(str(tax_rate)) if tax_enabled else Decimal("0")

    if pricing_mode == PricingMode.TOTAL_INCLUDES_TAX:
        total = to_money(line_sum)
        subtotal = to_money(line_sum / (1 + rate)) if rate > 0 else total
        tax_amount = total - subtotal
    else:
        subtotal = to_money(line_sum)
        tax_amount = to_money(subtotal * rate)
        total = subtotal + tax_amount

    return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total_amount=total)


def next_invoice_number(year: int, month: int, last_number: Optional[str]) -> str:
    """Next number in the INV-YYYYMM-NNN sequence for the invoice month."""
    prefix = f"INV-{year}{month:02d}"
    if not last_number:
        return f"{prefix}-001"
    match = INVOICE_NUMBER_RE.match(last_number)
    sequence = int(match.group(2)) + 1 if match else 1
    return f"{prefix}-{sequence:03d}"
