from __future__ import annotations

import argparse
import json
import os

import numpy as np
import pandas as pd

FEES = [
    {
        "id": "agency",
        "name": "Agency commission",
        "calculation_type": "PercentageBudget",
        "calculation_mode": "DirectOnMediaBudget",
        "order": 1,
        "options": [
            {"id": "std", "label": "Standard", "value": 0.10, "buffer": 0, "editable": False},
            {"id": "custom", "label": "Negotiated", "value": 0.08, "buffer": 0, "editable": True},
        ],
    },
    {
        "id": "adserving",
        "name": "Ad serving",
        "calculation_type": "VolumeUnit",
        "calculation_mode": "DirectOnMediaBudget",
        "order": 2,
        "options": [{"id": "cm", "label": "Campaign manager", "value": 0.00005, "buffer": 5, "editable": True}],
    },
    {
        "id": "tech",
        "name": "Technology fee",
        "calculation_type": "PercentageBudget",
        "calculation_mode": "OnPreviousFees",
        "order": 3,
        "options": [{"id": "dsp", "label": "DSP", "value": 0.03, "buffer": 0, "editable": False}],
    },
    {
        "id": "setup",
        "name": "Setup",
        "calculation_type": "FixedFee",
        "calculation_mode": "DirectOnMediaBudget",
        "order": 4,
        "options": [{"id": "flat", "label": "Flat", "value": 250, "buffer": 0, "editable": True}],
    },
]


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--out", required=True, help="Tactics CSV path.")
    ap.add_argument("--fees-out", required=True, help="Fee catalog JSON path.")
    ap.add_argument("--rows", type=int, default=500)
    ap.add_argument("--seed", type=int, default=0)
    args = ap.parse_args()

    rng = np.random.default_rng(args.seed)
    n = args.rows

    budget_choice = rng.choice(["Media", "Client"], size=n, p=[0.7, 0.3])
    unit_type = rng.choice(["CPM", "CPC", "CPV", "Impressions"], size=n)
    budget_input = rng.lognormal(mean=9.0, sigma=0.8, size=n).round(2)

    # CPM prices are per thousand impressions, the others per unit.
    per_thousand = np.isin(unit_type, ["CPM", "Impressions"])
    unit_price = np.where(per_thousand, rng.uniform(4, 30, size=n), rng.uniform(0.2, 3, size=n)).round(2)

    # A fifth of the tactics get added-value media on top of what was bought.
    bonus = rng.random(size=n) < 0.2
    media_value = np.where(bonus, budget_input * rng.uniform(1.05, 1.4, size=n), np.nan).round(2)

    df = pd.DataFrame(
        {
            "budget_choice": budget_choice,
            "budget_input": budget_input,
            "unit_type": unit_type,
            "unit_price": unit_price,
            "media_value": media_value,
            "fee_agency_enabled": rng.random(size=n) < 0.9,
            "fee_agency_option": rng.choice(["std", "custom"], size=n, p=[0.8, 0.2]),
            "fee_agency_override": np.where(rng.random(size=n) < 0.1, 7.5, np.nan),
            "fee_adserving_enabled": rng.random(size=n) < 0.6,
            "fee_adserving_option": "cm",
            "fee_adserving_override": np.nan,
            "fee_tech_enabled": rng.random(size=n) < 0.5,
            "fee_tech_option": "dsp",
            "fee_tech_override": np.nan,
            "fee_setup_enabled": rng.random(size=n) < 0.3,
            "fee_setup_option": "flat",
            "fee_setup_override": np.nan,
        }
    )

    for path in (args.out, args.fees_out):
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    df.to_csv(args.out, index=False)
    with open(args.fees_out, "w", encoding="utf-8") as fh:
        json.dump({"fees": FEES}, fh, indent=2)
    print(f"wrote {args.out} rows={len(df)} and {args.fees_out} fees={len(FEES)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
