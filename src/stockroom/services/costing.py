"""Standard cost maintenance for received stock."""

from __future__ import annotations

from decimal import Decimal


def next_standard_cost(current_cost: Decimal, incoming_unit_cost: Decimal, total_on_hand: Decimal) -> Decimal:
    """Return the item's standard cost after a receipt line has been posted.

    The latest receipt's unit cost replaces the standard cost whenever the item
    has stock on hand after the receipt. This is a last-cost rule rather than a
    weighted average; *total_on_hand* already includes the received quantity.
    """

    if total_on_hand > 0:
        return incoming_unit_cost
    return current_cost
