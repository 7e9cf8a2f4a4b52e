from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, Overflow

from media_budget.budget.model import ZERO, BudgetChoice, round_money

logger = logging.getLogger(__name__)

# Client mode bootstraps the media budget at 80% of the all-in amount.
CLIENT_BUDGET_SEED_RATIO = Decimal("0.8")
IMPRESSIONS_PER_CPM_UNIT = Decimal("1000")


@dataclass(frozen=True)
class ResolvedInputs:
    media_budget: Decimal  # provisional in client mode
    unit_volume: int


def is_impression_unit_type(unit_type: str | None) -> bool:
    if not unit_type:
        return False
    t = unit_type.lower()
    return "impression" in t or "cpm" in t


def calculate_unit_volume(
    *,
    budget_input: Decimal,
    unit_price: Decimal | None,
    unit_type: str | None,
    media_value: Decimal | None = None,
) -> int:
    """
    Units bought by the budget, counting added-value media beyond what was paid.

    CPM-style units are priced per thousand, so the volume is in impressions. A volume
    too large to count as an integer (a near-zero price) is treated as 0.
    """
    if unit_price is None or unit_price <= 0:
        return 0
    effective_budget = budget_input
    if media_value is not None:
        effective_budget += max(ZERO, media_value - budget_input)
    try:
        volume = effective_budget / unit_price
        if is_impression_unit_type(unit_type):
            volume *= IMPRESSIONS_PER_CPM_UNIT
        volume = volume.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, Overflow):
        logger.warning("unit volume out of range (budget %s, price %s), using 0", budget_input, unit_price)
        return 0
    return max(0, int(volume))


def provisional_media_budget(budget_choice: BudgetChoice, budget_input: Decimal) -> Decimal:
    if budget_choice == BudgetChoice.CLIENT:
        return budget_input * CLIENT_BUDGET_SEED_RATIO
    return budget_input


def calculate_bonification(
    *,
    budget_choice: BudgetChoice,
    budget_input: Decimal,
    media_value: Decimal | None,
    media_budget: Decimal | None = None,
) -> Decimal:
    if media_value is None or media_value <= 0:
        return round_money(ZERO)
    if budget_choice == BudgetChoice.MEDIA:
        reference = budget_input
    else:
        # A zero reconciled media budget falls back to the entered amount.
        reference = media_budget if media_budget else budget_input
    return round_money(max(ZERO, media_value - reference))


def resolve_budget_inputs(
    *,
    budget_choice: BudgetChoice,
    budget_input: Decimal,
    unit_price: Decimal | None,
    unit_type: str | None,
    media_value: Decimal | None,
) -> ResolvedInputs:
    return ResolvedInputs(
        media_budget=provisional_media_budget(budget_choice, budget_input),
        unit_volume=calculate_unit_volume(
            budget_input=budget_input,
            unit_price=unit_price,
            unit_type=unit_type,
            media_value=media_value,
        ),
    )
