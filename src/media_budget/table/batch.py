from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable

import numpy as np
import pandas as pd

from media_budget.budget.model import BudgetData, FeeAssignment, TableBudgetCalculations, to_bool, to_decimal, to_text
from media_budget.budget.reconcile import calculate_budget
from media_budget.fees.catalog import ClientFee, sort_fees

logger = logging.getLogger(__name__)

INPUT_COLUMNS = ["budget_choice", "budget_input", "unit_type", "unit_price", "media_value"]
OUTPUT_COLUMNS = ["unit_volume", "media_budget", "client_budget", "bonification", "total_fees"]
TEXT_COLUMNS = ["budget_choice", "unit_type"]


def fee_column(fee_id: str, suffix: str) -> str:
    return f"fee_{fee_id}_{suffix}"


def text_columns(fees: Iterable[ClientFee]) -> list[str]:
    # Option ids must stay strings even when they look numeric.
    return TEXT_COLUMNS + [fee_column(f.id, "option") for f in fees]


def read_tactics_csv(path: str, fees: Iterable[ClientFee]) -> pd.DataFrame:
    return pd.read_csv(path, dtype={c: str for c in text_columns(fees)})


def row_to_budget_data(row: dict[str, Any], fees: Iterable[ClientFee]) -> BudgetData:
    assignments = tuple(
        FeeAssignment(
            fee_id=f.id,
            enabled=to_bool(row.get(fee_column(f.id, "enabled"))),
            selected_option_id=to_text(row.get(fee_column(f.id, "option"))) or None,
            custom_override=to_decimal(row.get(fee_column(f.id, "override"))),
        )
        for f in fees
    )
    base = BudgetData.from_record({k: row.get(k) for k in INPUT_COLUMNS})
    return replace(base, fee_assignments=assignments)


def calculate_rows(df: pd.DataFrame, fees: Iterable[ClientFee]) -> list[TableBudgetCalculations]:
    fees = sort_fees(fees)
    rows = df.to_dict(orient="records")
    return [calculate_budget(row_to_budget_data(r, fees), fees) for r in rows]


def calculate_table(df: pd.DataFrame, fees: Iterable[ClientFee]) -> pd.DataFrame:
    """
    Evaluate every tactic row of a table and append the computed columns.

    Monetary outputs are Decimal objects (two places) so written CSVs match the
    per-tactic editor exactly; `unit_volume` is int64.
    """
    fees = sort_fees(fees)
    results = calculate_rows(df, fees)

    out_df = df.copy()
    out_df["unit_volume"] = np.asarray([r.unit_volume for r in results], dtype=np.int64)
    for col in OUTPUT_COLUMNS[1:]:
        out_df[col] = pd.Series([getattr(r, col) for r in results], index=out_df.index, dtype=object)
    for f in fees:
        out_df[fee_column(f.id, "amount")] = pd.Series(
            [r.fee_amounts.get(f.id) for r in results], index=out_df.index, dtype=object
        )
    logger.info("calculated %d tactic rows against %d fees", len(out_df), len(fees))
    return out_df
