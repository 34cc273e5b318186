#!/usr/bin/env python3
"""Export the monthly and itemised cashflow of the example scenario to CSV.

Usage:
    python examples/export_cashflow.py [output_dir]

Writes:
- monthly_cashflow.csv: one row per month (costs, revenue, GST, debt,
  equity and surplus balances)
- itemised_cashflow.csv: one row per cost line, one column per month
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from feaso.calculations import calculate_feasibility
from run_example import get_example_site, get_sell_scenario


def main():
    output_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path.cwd()
    output_dir.mkdir(parents=True, exist_ok=True)

    result = calculate_feasibility(get_sell_scenario(), get_example_site())

    monthly = result.to_frame()
    monthly.to_csv(output_dir / "monthly_cashflow.csv")

    itemised = result.itemised_cashflow()
    itemised.to_csv(output_dir / "itemised_cashflow.csv", index=False)

    print(f"Wrote {len(monthly)} months and {len(itemised)} cost lines to {output_dir}")
    peak = monthly["senior_balance"].idxmax()
    print(f"Peak senior balance ${monthly['senior_balance'].max():,.0f} in {peak}")


if __name__ == "__main__":
    main()
