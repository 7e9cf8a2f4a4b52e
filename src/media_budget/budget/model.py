from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping

MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal | None:
    """
    Coerce a raw input cell into a Decimal.

    Returns None for missing, empty, non-numeric or non-finite values so callers can
    treat them as absent instead of failing.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        # Go through repr so 0.1 stays 0.1 rather than its binary expansion.
        # float() first: numpy scalars repr as np.float64(...).
        return Decimal(repr(float(value)))
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        s = value.strip().replace(" ", "").replace(",", ".")
        if not s:
            return None
        try:
            d = Decimal(s)
        except InvalidOperation:
            return None
        return d if d.is_finite() else None
    try:
        # numpy scalars and similar
        return to_decimal(float(value))
    except (TypeError, ValueError):
        return None


def round_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    if value is None:
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


class BudgetChoice(str, Enum):
    MEDIA = "Media"
    CLIENT = "Client"

    @classmethod
    def parse(cls, value: Any) -> "BudgetChoice":
        # Anything that is not explicitly a client budget is a media budget.
        if isinstance(value, BudgetChoice):
            return value
        if to_text(value).lower() == "client":
            return cls.CLIENT
        return cls.MEDIA


@dataclass(frozen=True)
class FeeAssignment:
    # Per-tactic state of one configured fee.
    fee_id: str
    enabled: bool = False
    selected_option_id: str | None = None
    custom_override: Decimal | None = None

    @classmethod
    def from_record(cls, fee_id: str, record: Mapping[str, Any]) -> "FeeAssignment":
        option = to_text(record.get("selected_option_id", record.get("option")))
        return cls(
            fee_id=str(fee_id),
            enabled=to_bool(record.get("enabled")),
            selected_option_id=option or None,
            custom_override=to_decimal(record.get("custom_override", record.get("override"))),
        )


@dataclass(frozen=True)
class BudgetData:
    """
    Raw budget inputs of a single tactic.

    Computed values are never stored here; they come back from the engine as a
    TableBudgetCalculations record.
    """

    budget_choice: BudgetChoice = BudgetChoice.MEDIA
    budget_input: Decimal = ZERO
    unit_type: str = ""
    unit_price: Decimal | None = None
    media_value: Decimal | None = None
    fee_assignments: tuple[FeeAssignment, ...] = field(default_factory=tuple)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "BudgetData":
        """
        Build from a plain mapping (JSON object, DataFrame row as dict).

        `fee_assignments` may be a list of objects carrying `fee_id`, or a mapping of
        fee id -> object.
        """
        raw = record.get("fee_assignments") or []
        if isinstance(raw, Mapping):
            items = [(k, v) for k, v in raw.items() if isinstance(v, Mapping)]
        else:
            items = [(r.get("fee_id"), r) for r in raw if isinstance(r, Mapping) and r.get("fee_id")]
        assignments = tuple(FeeAssignment.from_record(str(k), v) for k, v in items)
        return cls(
            budget_choice=BudgetChoice.parse(record.get("budget_choice")),
            budget_input=to_decimal(record.get("budget_input")) or ZERO,
            unit_type=to_text(record.get("unit_type")),
            unit_price=to_decimal(record.get("unit_price")),
            media_value=to_decimal(record.get("media_value")),
            fee_assignments=assignments,
        )


@dataclass(frozen=True)
class FeeDetail:
    fee_id: str
    fee_name: str
    option_id: str | None
    option_label: str
    calculation_type: str
    final_value: Decimal
    applied_on: Decimal
    amount: Decimal
    description: str


@dataclass(frozen=True)
class TableBudgetCalculations:
    media_budget: Decimal
    client_budget: Decimal
    total_fees: Decimal
    unit_volume: int
    bonification: Decimal
    fee_amounts: dict[str, Decimal]
    fee_details: tuple[FeeDetail, ...] = ()

    def to_record(self) -> dict[str, Any]:
        # JSON-friendly: decimals as 2-place strings.
        return {
            "media_budget": str(self.media_budget),
            "client_budget": str(self.client_budget),
            "total_fees": str(self.total_fees),
            "unit_volume": int(self.unit_volume),
            "bonification": str(self.bonification),
            "fee_amounts": {k: str(v) for k, v in self.fee_amounts.items()},
            "fee_details": [
                {
                    "fee_id": d.fee_id,
                    "fee_name": d.fee_name,
                    "option_id": d.option_id,
                    "option_label": d.option_label,
                    "calculation_type": d.calculation_type,
                    "final_value": str(d.final_value),
                    "applied_on": str(d.applied_on),
                    "amount": str(d.amount),
                    "description": d.description,
                }
                for d in self.fee_details
            ],
        }
