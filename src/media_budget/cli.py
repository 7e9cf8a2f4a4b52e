from __future__ import annotations

import argparse
import json
import os
from typing import Any

from media_budget.budget.dependencies import dependent_fields
from media_budget.budget.model import BudgetData
from media_budget.budget.reconcile import calculate_budget
from media_budget.fees.catalog import ClientFee, load_fee_catalog, validate_fee_catalog
from media_budget.logging_config import default_log_level, setup_logging
from media_budget.table.batch import calculate_table, read_tactics_csv


def _mkdirp(path: str) -> None:
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)


def _load_fees(path: str) -> list[ClientFee]:
    try:
        return load_fee_catalog(path)
    except (OSError, ValueError) as e:
        raise SystemExit(f"--fees: {e}") from e


def _load_tactic_json(tactic_json: str) -> dict[str, Any]:
    try:
        d = json.loads(tactic_json)
    except json.JSONDecodeError as e:
        raise SystemExit(f"--tactic-json must be valid JSON: {e}") from e
    if not isinstance(d, dict):
        raise SystemExit("--tactic-json must decode to an object/dict")
    return d


def cmd_calculate(args: argparse.Namespace) -> int:
    fees = _load_fees(args.fees)
    budget = BudgetData.from_record(_load_tactic_json(args.tactic_json))
    result = calculate_budget(budget, fees)
    out = result.to_record()
    if not args.details:
        out.pop("fee_details")
    print(json.dumps(out, indent=2, sort_keys=True))
    return 0


def cmd_calculate_table(args: argparse.Namespace) -> int:
    fees = _load_fees(args.fees)
    df = read_tactics_csv(args.csv, fees)
    out_df = calculate_table(df, fees)
    _mkdirp(args.out_csv)
    out_df.to_csv(args.out_csv, index=False)
    print(json.dumps({"out_csv": args.out_csv, "n_rows": int(len(out_df))}, indent=2, sort_keys=True))
    return 0


def cmd_dependencies(args: argparse.Namespace) -> int:
    fee_ids = [f.id for f in _load_fees(args.fees)] if args.fees else []
    fields = sorted(dependent_fields(args.field, fee_ids))
    print(json.dumps({"field": args.field, "dependent_fields": fields}, indent=2, sort_keys=True))
    return 0


def cmd_validate_fees(args: argparse.Namespace) -> int:
    problems = validate_fee_catalog(_load_fees(args.fees))
    print(json.dumps({"fees": args.fees, "problems": problems}, indent=2, sort_keys=True))
    return 1 if problems else 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="media-budget")
    p.add_argument("--log-level", default=default_log_level())
    p.add_argument("--log-json", action="store_true", default=False)
    sub = p.add_subparsers(dest="cmd", required=True)

    c = sub.add_parser("calculate", help="Compute budgets and fees for one tactic.")
    c.add_argument("--fees", required=True, help="Fee catalog JSON file.")
    c.add_argument("--tactic-json", required=True, help="Tactic budget inputs as a JSON object.")
    c.add_argument("--details", action="store_true", default=False, help="Include per-fee calculation details.")
    c.set_defaults(func=cmd_calculate)

    t = sub.add_parser("calculate-table", help="Compute budgets and fees for every row of a tactics CSV.")
    t.add_argument("--fees", required=True)
    t.add_argument("--csv", required=True)
    t.add_argument("--out-csv", required=True)
    t.set_defaults(func=cmd_calculate_table)

    d = sub.add_parser("dependencies", help="List computed fields invalidated by an edited field.")
    d.add_argument("--field", required=True)
    d.add_argument(
        "--fees",
        default=None,
        help="Fee catalog. Per-fee amount fields (fees.<id>.amount) are only listed when it is given.",
    )
    d.set_defaults(func=cmd_dependencies)

    v = sub.add_parser("validate-fees", help="Report problems in a fee catalog.")
    v.add_argument("--fees", required=True)
    v.set_defaults(func=cmd_validate_fees)

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    setup_logging(args.log_level, json_output=args.log_json)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
