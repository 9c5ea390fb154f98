"""
Price resolution for a room, a group size and an optional time slot.

All functions here are pure: they read the room's base price and group
table and never touch the database, so the same numbers come out whether
they are computed for a quote, a slot listing or a checkout.

A slot whose per-person price differs from the room's base price is treated
as carrying a discount (or surcharge) ratio that is applied to the group's
standard price. This keeps a "20% off at 10:00" rule consistent across group
sizes even though the slot itself only stores a per-person price.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from config import DEPOSIT_RATE
from models import PaymentStatus, PaymentTerms
from schemas import GroupBreakdown, Quote


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round like a till does: halves go up, not to the nearest even."""
    quantum = Decimal(1).scaleb(-ndigits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def group_price_table(entries: Any) -> Dict[int, float]:
    """Normalize a stored group table into {players: price}."""
    if not entries:
        return {}
    if isinstance(entries, dict):
        return {int(players): float(price) for players, price in entries.items()}

    table = {}
    for entry in entries:
        if isinstance(entry, dict):
            table[int(entry["players"])] = float(entry["price"])
        else:
            table[int(entry.players)] = float(entry.price)
    return table


def standard_price(room: Any, group_size: int) -> float:
    """Exact group-table entry if there is one, else base price times size."""
    table = group_price_table(room.price_per_group)
    if group_size in table:
        return table[group_size]
    return (room.base_price or 0) * group_size


def slot_price(room: Any, group_size: int, price: Optional[float] = None) -> float:
    """Total for ``group_size`` players in a slot priced ``price`` per person."""
    standard = standard_price(room, group_size)
    if price is None:
        return standard

    base = room.base_price
    # Slots at the base price inherit group pricing untouched
    if not base or price == base:
        return standard

    return round_half_up(standard * (price / base))


def clamp_discount(pct: float) -> int:
    return int(min(100, max(0, pct)))


def discount_pct(standard: float, price: float) -> int:
    """Percentage by which ``price`` undercuts ``standard`` (0 if it doesn't)."""
    if standard <= 0 or price >= standard:
        return 0
    return int(round_half_up((standard - price) / standard * 100))


def price_for_discount(standard: float, pct: float, ndigits: int = 0) -> float:
    """Inverse of :func:`discount_pct`; out-of-range percentages are clamped."""
    pct = clamp_discount(pct)
    return round_half_up(standard * (1 - pct / 100), ndigits)


def quote(room: Any, group_size: int, price: Optional[float] = None) -> Quote:
    standard = standard_price(room, group_size)
    amount = slot_price(room, group_size, price)
    return Quote(
        amount=amount,
        standard_price=standard,
        discount_pct=discount_pct(standard, amount),
    )


def group_breakdown(room: Any, pct: float) -> List[GroupBreakdown]:
    """What each group tier pays once ``pct`` is taken off."""
    pct = clamp_discount(pct)
    rows = []
    for players, price in sorted(group_price_table(room.price_per_group).items()):
        discounted = round_half_up(price * (1 - pct / 100), 2)
        rows.append(
            GroupBreakdown(
                players=players,
                original=price,
                discounted=discounted,
                saved=round_half_up(price - discounted, 2),
            )
        )
    return rows


def payment_status_for(terms: Optional[PaymentTerms]) -> PaymentStatus:
    if terms is None:
        return PaymentStatus.na
    if terms == PaymentTerms.deposit_20:
        return PaymentStatus.deposit
    if terms == PaymentTerms.pay_on_arrival:
        return PaymentStatus.unpaid
    return PaymentStatus.paid


def deposit_for(total: float, terms: Optional[PaymentTerms], rate: float = DEPOSIT_RATE) -> Optional[float]:
    if terms != PaymentTerms.deposit_20:
        return None
    return round_half_up(total * rate, 2)
