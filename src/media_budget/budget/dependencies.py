from __future__ import annotations

from typing import Iterable

ROOT_FIELDS = frozenset({"budget_choice", "budget_input", "unit_price", "unit_type", "media_value"})
COMPUTED_FIELDS = ("unit_volume", "media_budget", "client_budget", "bonification", "total_fees")
FEE_INPUT_ATTRS = frozenset({"enabled", "selected_option_id", "custom_override"})


def fee_field(fee_id: str, attr: str) -> str:
    return f"fees.{fee_id}.{attr}"


def fee_amount_field(fee_id: str) -> str:
    return fee_field(fee_id, "amount")


def parse_fee_field(field: str) -> tuple[str, str] | None:
    """`fees.<fee_id>.<attr>` -> (fee_id, attr). Fee ids may contain dots."""
    if not field.startswith("fees."):
        return None
    fee_id, sep, attr = field[len("fees."):].rpartition(".")
    if not sep or not fee_id:
        return None
    return fee_id, attr


def dependent_fields(changed_field: str, fee_ids: Iterable[str] = ()) -> frozenset[str]:
    """
    Computed fields a caller has to refresh after `changed_field` was edited.

    A root input invalidates everything. A fee input invalidates the totals, both
    budgets and every fee amount, not only fees later in the cascade. Anything else
    invalidates nothing.

    Fee amount fields are only listed for the ids in `fee_ids`; with no fee ids the
    result holds the scalar computed fields alone.
    """
    fee_amounts = {fee_amount_field(f) for f in fee_ids}
    if changed_field in ROOT_FIELDS:
        return frozenset(COMPUTED_FIELDS) | fee_amounts

    parsed = parse_fee_field(changed_field)
    if parsed is not None and parsed[1] in FEE_INPUT_ATTRS:
        return frozenset({"total_fees", "media_budget", "client_budget"}) | fee_amounts
    return frozenset()


def should_recalculate(changed_field: str) -> bool:
    return bool(dependent_fields(changed_field))
