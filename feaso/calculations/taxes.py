"""Statutory tax calculations from tiered bracket scales."""

import logging
from decimal import Decimal
from typing import List, Optional

from ..models.lookups import (
    BracketMethod,
    DEFAULT_TAX_SCALES,
    FALLBACK_TAX_RATES,
    FOREIGN_PURCHASER_SURCHARGE,
    TaxBracket,
    TaxConfiguration,
    TaxState,
    TaxType,
)
from .utils import Number, ZERO, to_decimal

logger = logging.getLogger(__name__)


def evaluate_tax(amount: Number, brackets: List[TaxBracket]) -> Decimal:
    """Evaluate a liability against an ascending bracket scale.

    The bracket used is the first whose limit is at or above the amount,
    or the final bracket. A FLAT bracket charges its rate on the whole
    amount; a SLIDING bracket charges base + rate x (amount - previous
    limit). The first bracket always uses a zero base and zero previous
    limit.

    Args:
        amount: Dutiable value.
        brackets: Brackets ordered by ascending limit (None = open top).

    Returns:
        Liability as Decimal (zero for an empty scale).

    Example:
        >>> evaluate_tax(1_000_000, DEFAULT_TAX_SCALES[TaxState.VIC][TaxType.STAMP_DUTY])
        Decimal('55000.000')
    """
    value = to_decimal(amount)
    if not brackets:
        return ZERO

    last = len(brackets) - 1
    for i, bracket in enumerate(brackets):
        within = bracket.limit is None or value <= to_decimal(bracket.limit)
        if not (within or i == last):
            continue

        rate = to_decimal(bracket.rate)
        if bracket.method == BracketMethod.FLAT:
            return value * rate

        if i == 0:
            base = ZERO
            previous_limit = ZERO
        else:
            base = to_decimal(bracket.base)
            previous_limit = to_decimal(brackets[i - 1].limit)
        excess = max(ZERO, value - previous_limit)
        return base + excess * rate

    return ZERO


def calculate_tax(
    amount: Number,
    state: TaxState,
    tax_type: TaxType,
    scales: Optional[TaxConfiguration] = None,
) -> Decimal:
    """Look up the scale for a jurisdiction and evaluate it.

    Falls back to a flat default rate when no scale exists for the
    jurisdiction or tax type. Never raises for a missing table.
    """
    scales = DEFAULT_TAX_SCALES if scales is None else scales
    brackets = scales.get(state, {}).get(tax_type, [])
    if not brackets:
        fallback = to_decimal(FALLBACK_TAX_RATES.get(tax_type, 0.0))
        logger.warning(
            "No %s scale for %s; applying flat fallback rate %s",
            tax_type.value, state.value, fallback,
        )
        return to_decimal(amount) * fallback
    return evaluate_tax(amount, brackets)


def calculate_stamp_duty(
    price: Number,
    state: TaxState,
    is_foreign_buyer: bool = False,
    scales: Optional[TaxConfiguration] = None,
    override: Optional[Number] = None,
) -> Decimal:
    """Transfer duty on a land purchase, with foreign purchaser surcharge.

    Args:
        price: Purchase price.
        state: Jurisdiction of the land.
        is_foreign_buyer: Adds price x 8% surcharge when True.
        scales: Optional bracket table override.
        override: Fixed duty amount that replaces the calculation.

    Returns:
        Duty payable.
    """
    if override is not None:
        return to_decimal(override)

    duty = calculate_tax(price, state, TaxType.STAMP_DUTY, scales)
    if is_foreign_buyer:
        duty += to_decimal(price) * to_decimal(FOREIGN_PURCHASER_SURCHARGE)
    return duty


def calculate_land_tax(
    site_value: Number,
    state: TaxState,
    scales: Optional[TaxConfiguration] = None,
) -> Decimal:
    """Annual general land tax on the assessed site value."""
    return calculate_tax(site_value, state, TaxType.LAND_TAX_GENERAL, scales)
