"""
Fee cascade: applies a client's ordered fee list to a media budget.

Fees run in ascending `order`. A running cumulative base starts at the media budget;
percentage fees in OnPreviousFees mode are computed on it, and every positive fee
amount (whatever its mode) is added to it for the fees that follow. Each amount is
rounded to cents before it is accumulated, so the total is the exact sum of the
rounded amounts.

Malformed pieces (disabled slot, unknown option, unknown calculation type, an amount
too large to round to cents) yield a zero amount and never stop the cascade.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, Overflow
from typing import Callable, Iterable, Mapping, Tuple

from media_budget.budget.model import ZERO, FeeAssignment, FeeDetail, round_money
from media_budget.fees.catalog import CalculationMode, CalculationType, ClientFee, FeeOption, sort_fees

logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100")
_ONE = Decimal("1")


@dataclass(frozen=True)
class FeeContext:
    # Everything a calculation strategy may read for one fee.
    fee: ClientFee
    option: FeeOption
    override: Decimal | None
    media_budget: Decimal
    cumulative_base: Decimal
    unit_volume: Decimal


@dataclass(frozen=True)
class FeeCascadeResult:
    fee_amounts: dict[str, Decimal]
    total_fees: Decimal
    details: tuple[FeeDetail, ...]


# A strategy returns (base_value, applied_on, description_template); the caller applies
# the buffer and multiplies. Templates may use {pct}, {value} and {on}.
Strategy = Callable[[FeeContext], Tuple[Decimal, Decimal, str]]


def _option_value(ctx: FeeContext) -> Decimal:
    return ctx.option.value if ctx.option.value is not None else ZERO


def _percentage_budget(ctx: FeeContext) -> tuple[Decimal, Decimal, str]:
    base_value = _option_value(ctx)
    if ctx.option.editable and ctx.override is not None:
        # Overrides are typed as percent numbers (12.5 means 12.5%).
        base_value = ctx.override / _HUNDRED
    if ctx.fee.calculation_mode == CalculationMode.DIRECT_ON_MEDIA_BUDGET:
        return base_value, ctx.media_budget, "{pct}% x media budget ({on})"
    return base_value, ctx.cumulative_base, "{pct}% x cumulative base ({on})"


def _volume_unit(ctx: FeeContext) -> tuple[Decimal, Decimal, str]:
    volume = ctx.override if ctx.override is not None and ctx.override > 0 else ctx.unit_volume
    return _option_value(ctx), volume, "{value} x {on} volume units"


def _units(ctx: FeeContext) -> tuple[Decimal, Decimal, str]:
    units = ctx.override if ctx.override is not None and ctx.override > 0 else _ONE
    return _option_value(ctx), units, "{value} x {on} units"


def _fixed_fee(ctx: FeeContext) -> tuple[Decimal, Decimal, str]:
    base_value = _option_value(ctx)
    if ctx.option.editable and ctx.override is not None and ctx.override >= 0:
        base_value = ctx.override
    return base_value, _ONE, "fixed amount {value}"


CALCULATION_STRATEGIES: Mapping[CalculationType, Strategy] = {
    CalculationType.PERCENTAGE_BUDGET: _percentage_budget,
    CalculationType.VOLUME_UNIT: _volume_unit,
    CalculationType.UNITS: _units,
    CalculationType.FIXED_FEE: _fixed_fee,
}


def apply_buffer(base_value: Decimal, buffer_pct: Decimal | None) -> Decimal:
    return base_value * (_ONE + (buffer_pct or ZERO) / _HUNDRED)


def _plain(d: Decimal) -> str:
    # 50000 rather than 5E+4
    return format(d.normalize(), "f")


def _type_name(fee: ClientFee) -> str:
    return str(getattr(fee.calculation_type, "value", fee.calculation_type))


def _zero_detail(fee: ClientFee, option: FeeOption | None, reason: str) -> FeeDetail:
    return FeeDetail(
        fee_id=fee.id,
        fee_name=fee.name,
        option_id=option.id if option else None,
        option_label=option.label if option else "",
        calculation_type=_type_name(fee),
        final_value=ZERO,
        applied_on=ZERO,
        amount=round_money(ZERO),
        description=reason,
    )


def evaluate_fee_cascade(
    *,
    media_budget: Decimal,
    unit_volume: Decimal | int,
    fees: Iterable[ClientFee],
    assignments: Iterable[FeeAssignment],
) -> FeeCascadeResult:
    """
    Compute every fee amount of a tactic.

    Returns a FeeCascadeResult whose `fee_amounts` holds one entry per catalog fee
    (0.00 for fees that are disabled, unselected or not assigned at all).
    """
    by_id = {a.fee_id: a for a in assignments}
    volume = Decimal(unit_volume)
    cumulative_base = media_budget
    total = ZERO
    amounts: dict[str, Decimal] = {}
    details: list[FeeDetail] = []

    for fee in sort_fees(fees):
        assignment = by_id.get(fee.id)
        if assignment is None or not assignment.enabled or not assignment.selected_option_id:
            amounts[fee.id] = round_money(ZERO)
            details.append(_zero_detail(fee, None, "not applied"))
            continue

        option = fee.option(assignment.selected_option_id)
        if option is None:
            logger.debug("fee %s: option %s not in catalog", fee.id, assignment.selected_option_id)
            amounts[fee.id] = round_money(ZERO)
            details.append(_zero_detail(fee, None, "unknown option"))
            continue

        strategy = CALCULATION_STRATEGIES.get(fee.calculation_type)  # type: ignore[arg-type]
        if strategy is None:
            logger.warning("fee %s (%s): unknown calculation type %r", fee.id, fee.name, fee.calculation_type)
            amounts[fee.id] = round_money(ZERO)
            details.append(_zero_detail(fee, option, "unknown calculation type"))
            continue

        ctx = FeeContext(
            fee=fee,
            option=option,
            override=assignment.custom_override,
            media_budget=media_budget,
            cumulative_base=cumulative_base,
            unit_volume=volume,
        )
        try:
            base_value, applied_on, template = strategy(ctx)
            final_value = apply_buffer(base_value, option.buffer)
            amount = round_money(final_value * applied_on)
            description = template.format(
                pct=round_money(final_value * _HUNDRED),
                value=_plain(final_value),
                on=_plain(applied_on),
            )
        except (InvalidOperation, Overflow):
            # Cents of the product do not fit the decimal context.
            logger.warning("fee %s (%s): amount out of range, using 0", fee.id, fee.name)
            amounts[fee.id] = round_money(ZERO)
            details.append(_zero_detail(fee, option, "amount out of range"))
            continue

        amounts[fee.id] = amount
        total += amount
        if amount > 0:
            cumulative_base += amount

        details.append(
            FeeDetail(
                fee_id=fee.id,
                fee_name=fee.name,
                option_id=option.id,
                option_label=option.label,
                calculation_type=_type_name(fee),
                final_value=final_value,
                applied_on=applied_on,
                amount=amount,
                description=description,
            )
        )
        logger.debug("fee %s (%s): %s = %s", fee.id, fee.name, details[-1].description, amount)

    return FeeCascadeResult(fee_amounts=amounts, total_fees=round_money(total), details=tuple(details))
