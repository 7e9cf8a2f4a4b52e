from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping

from media_budget.budget.model import ZERO, to_bool, to_decimal

logger = logging.getLogger(__name__)


class CalculationType(str, Enum):
    PERCENTAGE_BUDGET = "PercentageBudget"
    VOLUME_UNIT = "VolumeUnit"
    UNITS = "Units"
    FIXED_FEE = "FixedFee"


class CalculationMode(str, Enum):
    DIRECT_ON_MEDIA_BUDGET = "DirectOnMediaBudget"
    ON_PREVIOUS_FEES = "OnPreviousFees"


# Labels written by the fee configuration screens, mapped to canonical values.
_TYPE_ALIASES: dict[str, CalculationType] = {
    "pourcentage budget": CalculationType.PERCENTAGE_BUDGET,
    "volume d'unité": CalculationType.VOLUME_UNIT,
    "unités": CalculationType.UNITS,
    "frais fixe": CalculationType.FIXED_FEE,
}
_MODE_ALIASES: dict[str, CalculationMode] = {
    "directement sur le budget média": CalculationMode.DIRECT_ON_MEDIA_BUDGET,
    "applicable sur les frais précédents": CalculationMode.ON_PREVIOUS_FEES,
}


def parse_calculation_type(value: Any) -> CalculationType | str:
    """Unknown types are returned as the raw string; the cascade zeroes them."""
    if isinstance(value, CalculationType):
        return value
    raw = "" if value is None else str(value).strip()
    for t in CalculationType:
        if raw.lower() == t.value.lower():
            return t
    return _TYPE_ALIASES.get(raw.lower(), raw)


def parse_calculation_mode(value: Any) -> CalculationMode:
    if isinstance(value, CalculationMode):
        return value
    raw = "" if value is None else str(value).strip()
    for m in CalculationMode:
        if raw.lower() == m.value.lower():
            return m
    mode = _MODE_ALIASES.get(raw.lower())
    if mode is None:
        logger.warning("unknown calculation mode %r, using %s", raw, CalculationMode.DIRECT_ON_MEDIA_BUDGET.value)
        return CalculationMode.DIRECT_ON_MEDIA_BUDGET
    return mode


@dataclass(frozen=True)
class FeeOption:
    id: str
    label: str
    value: Decimal | None
    buffer: Decimal = ZERO  # percent, e.g. 5 means +5%
    editable: bool = False


@dataclass(frozen=True)
class ClientFee:
    id: str
    name: str
    calculation_type: CalculationType | str
    calculation_mode: CalculationMode
    order: int
    options: tuple[FeeOption, ...] = ()

    def option(self, option_id: str | None) -> FeeOption | None:
        if not option_id:
            return None
        for o in self.options:
            if o.id == option_id:
                return o
        return None


def sort_fees(fees: Iterable[ClientFee]) -> list[ClientFee]:
    # Stable, so equal orders keep catalog position.
    return sorted(fees, key=lambda f: f.order)


def _option_from_record(r: Mapping[str, Any]) -> FeeOption:
    return FeeOption(
        id=str(r.get("id", "")),
        label=str(r.get("label", r.get("FO_Option", "")) or ""),
        value=to_decimal(r.get("value", r.get("FO_Value"))),
        buffer=to_decimal(r.get("buffer", r.get("FO_Buffer"))) or ZERO,
        editable=to_bool(r.get("editable", r.get("FO_Editable", False))),
    )


def fee_from_record(r: Mapping[str, Any]) -> ClientFee:
    order = to_decimal(r.get("order", r.get("FE_Order")))
    return ClientFee(
        id=str(r.get("id", "")),
        name=str(r.get("name", r.get("FE_Name", "")) or ""),
        calculation_type=parse_calculation_type(r.get("calculation_type", r.get("FE_Calculation_Type"))),
        calculation_mode=parse_calculation_mode(r.get("calculation_mode", r.get("FE_Calculation_Mode"))),
        order=int(order) if order is not None else 0,
        options=tuple(_option_from_record(o) for o in (r.get("options") or []) if isinstance(o, Mapping)),
    )


def fee_catalog_from_records(records: Any) -> list[ClientFee]:
    if isinstance(records, Mapping):
        records = records.get("fees")
    if not isinstance(records, list):
        raise ValueError("fee catalog must be a list of fee objects (or an object with a 'fees' list)")
    bad = [i for i, r in enumerate(records) if not isinstance(r, Mapping)]
    if bad:
        raise ValueError(f"fee catalog entries must be objects; bad indexes: {bad}")
    return [fee_from_record(r) for r in records]


def load_fee_catalog(path: str) -> list[ClientFee]:
    with open(path, encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as e:
            raise ValueError(f"fee catalog {path} is not valid JSON: {e}") from e
    return fee_catalog_from_records(data)


def validate_fee_catalog(fees: Iterable[ClientFee]) -> list[str]:
    """
    Advisory checks on a fee catalog. Returns a list of human-readable problems;
    an empty list means the catalog is well formed.
    """
    fees = list(fees)
    errors: list[str] = []

    orders = Counter(f.order for f in fees)
    for order, n in sorted(orders.items()):
        if n > 1:
            errors.append(f"fee order {order} is used by {n} fees; orders must be unique")

    for f in fees:
        if not isinstance(f.calculation_type, CalculationType):
            errors.append(f"fee {f.id}: unknown calculation type {f.calculation_type!r}")
        if not f.options:
            errors.append(f"fee {f.id}: has no options")
        ids = Counter(o.id for o in f.options)
        for oid, n in ids.items():
            if n > 1:
                errors.append(f"fee {f.id}: option id {oid!r} is duplicated")
        for o in f.options:
            if o.value is None:
                errors.append(f"fee {f.id}: option {o.id} has no value")
    return errors
