from __future__ import annotations

import logging
from decimal import Decimal

from media_budget.budget.model import FeeAssignment
from media_budget.fees.cascade import apply_buffer, evaluate_fee_cascade
from media_budget.fees.catalog import CalculationMode, CalculationType, ClientFee, FeeOption

DIRECT = CalculationMode.DIRECT_ON_MEDIA_BUDGET
PREVIOUS = CalculationMode.ON_PREVIOUS_FEES


def _fee(fee_id, calc_type, mode, order, value, buffer=0, editable=False):
    return ClientFee(
        id=fee_id,
        name=fee_id.title(),
        calculation_type=calc_type,
        calculation_mode=mode,
        order=order,
        options=(FeeOption(id="o", label="Option", value=Decimal(str(value)), buffer=Decimal(buffer), editable=editable),),
    )


def _on(fee_id, override=None):
    return FeeAssignment(
        fee_id=fee_id,
        enabled=True,
        selected_option_id="o",
        custom_override=None if override is None else Decimal(str(override)),
    )


def _run(fees, assignments, media_budget="1000", unit_volume=0):
    return evaluate_fee_cascade(
        media_budget=Decimal(media_budget),
        unit_volume=unit_volume,
        fees=fees,
        assignments=assignments,
    )


def test_percentage_direct_on_media_budget():
    r = _run([_fee("a", CalculationType.PERCENTAGE_BUDGET, DIRECT, 1, "0.10")], [_on("a")])
    assert r.fee_amounts == {"a": Decimal("100.00")}
    assert r.total_fees == Decimal("100.00")


def test_percentage_on_previous_fees_uses_cumulative_base():
    fees = [
        _fee("a", CalculationType.PERCENTAGE_BUDGET, DIRECT, 1, "0.10"),
        _fee("b", CalculationType.PERCENTAGE_BUDGET, PREVIOUS, 2, "0.10"),
    ]
    r = _run(fees, [_on("a"), _on("b")])
    assert r.fee_amounts["b"] == Decimal("110.00")
    assert r.total_fees == Decimal("210.00")


def test_direct_mode_amounts_still_grow_the_cumulative_base():
    fees = [
        _fee("fixed", CalculationType.FIXED_FEE, DIRECT, 1, "50"),
        _fee("pct", CalculationType.PERCENTAGE_BUDGET, PREVIOUS, 2, "0.10"),
    ]
    r = _run(fees, [_on("fixed"), _on("pct")])
    assert r.fee_amounts["pct"] == Decimal("105.00")


def test_fees_run_in_ascending_order_regardless_of_catalog_position():
    fees = [
        _fee("late", CalculationType.PERCENTAGE_BUDGET, PREVIOUS, 9, "0.10"),
        _fee("early", CalculationType.FIXED_FEE, DIRECT, 1, "100"),
    ]
    r = _run(fees, [_on("late"), _on("early")])
    assert list(r.fee_amounts) == ["early", "late"]
    assert r.fee_amounts["late"] == Decimal("110.00")


def test_buffer_is_applied_to_the_rate():
    assert apply_buffer(Decimal("0.10"), Decimal("5")) == Decimal("0.105")
    r = _run([_fee("a", CalculationType.PERCENTAGE_BUDGET, DIRECT, 1, "0.10", buffer=5)], [_on("a")])
    assert r.fee_amounts["a"] == Decimal("105.00")


def test_percentage_override_is_a_percent_number_when_editable():
    editable = [_fee("a", CalculationType.PERCENTAGE_BUDGET, DIRECT, 1, "0.10", editable=True)]
    locked = [_fee("a", CalculationType.PERCENTAGE_BUDGET, DIRECT, 1, "0.10", editable=False)]
    assert _run(editable, [_on("a", override="12.5")]).fee_amounts["a"] == Decimal("125.00")
    assert _run(locked, [_on("a", override="12.5")]).fee_amounts["a"] == Decimal("100.00")
    # no override keeps the option rate
    assert _run(editable, [_on("a")]).fee_amounts["a"] == Decimal("100.00")


def test_fixed_fee_override_replaces_value_only_when_non_negative():
    fees = [_fee("a", CalculationType.FIXED_FEE, DIRECT, 1, "50", editable=True)]
    assert _run(fees, [_on("a", override=75)]).fee_amounts["a"] == Decimal("75.00")
    assert _run(fees, [_on("a", override=0)]).fee_amounts["a"] == Decimal("0.00")
    assert _run(fees, [_on("a", override=-1)]).fee_amounts["a"] == Decimal("50.00")


def test_volume_unit_override_replaces_the_volume_not_the_rate():
    fees = [_fee("a", CalculationType.VOLUME_UNIT, DIRECT, 1, "0.002", editable=True)]
    assert _run(fees, [_on("a")], unit_volume=50000).fee_amounts["a"] == Decimal("100.00")
    assert _run(fees, [_on("a", override=1000)], unit_volume=50000).fee_amounts["a"] == Decimal("2.00")
    assert _run(fees, [_on("a", override=0)], unit_volume=50000).fee_amounts["a"] == Decimal("100.00")


def test_units_default_to_one_unit():
    fees = [_fee("a", CalculationType.UNITS, DIRECT, 1, "25", editable=True)]
    assert _run(fees, [_on("a")]).fee_amounts["a"] == Decimal("25.00")
    assert _run(fees, [_on("a", override=4)]).fee_amounts["a"] == Decimal("100.00")


def test_disabled_fee_is_zero_and_leaves_base_unchanged():
    fees = [
        _fee("a", CalculationType.FIXED_FEE, DIRECT, 1, "50"),
        _fee("b", CalculationType.PERCENTAGE_BUDGET, PREVIOUS, 2, "0.10"),
    ]
    off = FeeAssignment(fee_id="a", enabled=False, selected_option_id="o")
    r = _run(fees, [off, _on("b")])
    assert r.fee_amounts == {"a": Decimal("0.00"), "b": Decimal("100.00")}
    assert r.total_fees == Decimal("100.00")


def test_unselected_unknown_and_unassigned_options_are_zero():
    fees = [
        _fee("a", CalculationType.FIXED_FEE, DIRECT, 1, "50"),
        _fee("b", CalculationType.FIXED_FEE, DIRECT, 2, "50"),
        _fee("c", CalculationType.FIXED_FEE, DIRECT, 3, "50"),
    ]
    assignments = [
        FeeAssignment(fee_id="a", enabled=True, selected_option_id=None),
        FeeAssignment(fee_id="b", enabled=True, selected_option_id="missing"),
    ]
    r = _run(fees, assignments)
    assert r.fee_amounts == {"a": Decimal("0.00"), "b": Decimal("0.00"), "c": Decimal("0.00")}
    assert r.total_fees == Decimal("0.00")


def test_unknown_calculation_type_logs_and_continues(caplog):
    fees = [
        _fee("odd", "Mystery", DIRECT, 1, "50"),
        _fee("b", CalculationType.PERCENTAGE_BUDGET, PREVIOUS, 2, "0.10"),
    ]
    with caplog.at_level(logging.WARNING, logger="media_budget.fees.cascade"):
        r = _run(fees, [_on("odd"), _on("b")])
    assert r.fee_amounts["odd"] == Decimal("0.00")
    assert r.fee_amounts["b"] == Decimal("100.00")
    assert "unknown calculation type" in caplog.text


def test_amounts_are_rounded_half_up_before_accumulating():
    fees = [
        _fee("a", CalculationType.PERCENTAGE_BUDGET, DIRECT, 1, "0.10"),
        _fee("b", CalculationType.PERCENTAGE_BUDGET, PREVIOUS, 2, "0.10"),
    ]
    r = _run(fees, [_on("a"), _on("b")], media_budget="333.33")
    # 33.333 -> 33.33, then 10% of 366.66 = 36.666 -> 36.67
    assert r.fee_amounts == {"a": Decimal("33.33"), "b": Decimal("36.67")}
    assert r.total_fees == Decimal("70.00")

    half = _run([_fee("h", CalculationType.PERCENTAGE_BUDGET, DIRECT, 1, "0.125")], [_on("h")], media_budget="1")
    assert half.fee_amounts["h"] == Decimal("0.13")


def test_details_describe_each_fee():
    fees = [
        _fee("a", CalculationType.PERCENTAGE_BUDGET, DIRECT, 1, "0.10"),
        _fee("b", CalculationType.VOLUME_UNIT, DIRECT, 2, "0.002"),
    ]
    r = _run(fees, [_on("a"), _on("b")], unit_volume=50000)
    a, b = r.details
    assert a.description == "10.00% x media budget (1000)"
    assert a.applied_on == Decimal("1000")
    assert b.description == "0.002 x 50000 volume units"
    assert b.calculation_type == "VolumeUnit"


def test_amount_out_of_range_is_zeroed_and_cascade_continues(caplog):
    fees = [
        _fee("a", CalculationType.UNITS, DIRECT, 1, "25"),
        _fee("b", CalculationType.FIXED_FEE, DIRECT, 2, "50"),
        _fee("c", CalculationType.PERCENTAGE_BUDGET, PREVIOUS, 3, "0.10"),
    ]
    with caplog.at_level(logging.WARNING, logger="media_budget.fees.cascade"):
        r = _run(fees, [_on("a", override="1e30"), _on("b"), _on("c")])
    assert r.fee_amounts == {"a": Decimal("0.00"), "b": Decimal("50.00"), "c": Decimal("105.00")}
    assert r.total_fees == Decimal("155.00")
    assert r.details[0].description == "amount out of range"
    assert "out of range" in caplog.text
