from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, Overflow
from typing import Iterable

from media_budget.budget.inputs import calculate_bonification, resolve_budget_inputs
from media_budget.budget.model import (
    ZERO,
    BudgetChoice,
    BudgetData,
    FeeAssignment,
    TableBudgetCalculations,
    round_money,
)
from media_budget.fees.cascade import FeeCascadeResult, evaluate_fee_cascade
from media_budget.fees.catalog import ClientFee

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciledBudget:
    media_budget: Decimal
    client_budget: Decimal
    cascade: FeeCascadeResult


def reconcile_budget(
    *,
    budget_choice: BudgetChoice,
    budget_input: Decimal,
    provisional_media_budget: Decimal,
    unit_volume: int,
    fees: list[ClientFee],
    assignments: Iterable[FeeAssignment],
) -> ReconciledBudget:
    """
    Settle media and client budgets against the fee cascade.

    Media mode is a single pass: client = media + fees. Client mode backs the media
    budget out of the all-in amount with exactly two passes: fees on the seeded media
    budget, then media = input - fees, then (if there were any fees) the cascade again on
    that media budget. The second pass's fees are reported, the media budget is not
    adjusted a third time, and the client budget stays equal to the input.
    """
    assignments = tuple(assignments)

    def run(media_budget: Decimal) -> FeeCascadeResult:
        return evaluate_fee_cascade(
            media_budget=media_budget,
            unit_volume=unit_volume,
            fees=fees,
            assignments=assignments,
        )

    if budget_choice == BudgetChoice.MEDIA:
        # Fees are computed on the reported (rounded) media budget.
        media_budget = round_money(provisional_media_budget)
        cascade = run(media_budget)
        return ReconciledBudget(
            media_budget=media_budget,
            client_budget=round_money(media_budget + cascade.total_fees),
            cascade=cascade,
        )

    first = run(provisional_media_budget)
    media_budget = round_money(max(ZERO, budget_input - first.total_fees))
    logger.debug(
        "client budget %s: seed media %s -> fees %s -> media %s",
        budget_input,
        provisional_media_budget,
        first.total_fees,
        media_budget,
    )
    cascade = first
    if first.total_fees > 0:
        cascade = run(media_budget)
        logger.debug("client budget %s: second pass fees %s", budget_input, cascade.total_fees)

    return ReconciledBudget(
        media_budget=media_budget,
        client_budget=round_money(budget_input),
        cascade=cascade,
    )


def calculate_budget(budget_data: BudgetData, fees: Iterable[ClientFee]) -> TableBudgetCalculations:
    """
    Full budget evaluation of one tactic.

    Pure: the same (budget_data, fees) always gives the same rounded record, so the bulk
    table and the per-tactic editor agree. A budget too large to round to cents gives an
    all-zero record instead of raising.
    """
    fees = list(fees)
    try:
        return _evaluate(budget_data, fees)
    except (InvalidOperation, Overflow):
        logger.warning("budget input %s out of range, returning zero budget", budget_data.budget_input)
        zero = round_money(ZERO)
        return TableBudgetCalculations(
            media_budget=zero,
            client_budget=zero,
            total_fees=zero,
            unit_volume=0,
            bonification=zero,
            fee_amounts={fee.id: zero for fee in fees},
        )


def _evaluate(budget_data: BudgetData, fees: list[ClientFee]) -> TableBudgetCalculations:
    resolved = resolve_budget_inputs(
        budget_choice=budget_data.budget_choice,
        budget_input=budget_data.budget_input,
        unit_price=budget_data.unit_price,
        unit_type=budget_data.unit_type,
        media_value=budget_data.media_value,
    )
    settled = reconcile_budget(
        budget_choice=budget_data.budget_choice,
        budget_input=budget_data.budget_input,
        provisional_media_budget=resolved.media_budget,
        unit_volume=resolved.unit_volume,
        fees=fees,
        assignments=budget_data.fee_assignments,
    )
    bonification = calculate_bonification(
        budget_choice=budget_data.budget_choice,
        budget_input=budget_data.budget_input,
        media_value=budget_data.media_value,
        media_budget=settled.media_budget,
    )
    return TableBudgetCalculations(
        media_budget=settled.media_budget,
        client_budget=settled.client_budget,
        total_fees=settled.cascade.total_fees,
        unit_volume=resolved.unit_volume,
        bonification=bonification,
        fee_amounts=dict(settled.cascade.fee_amounts),
        fee_details=settled.cascade.details,
    )
