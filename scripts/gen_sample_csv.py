#!/usr/bin/env python3
"""Sample CSV generation script for volume testing.

Generates synthetic account CSV files in the format the import pipeline expects:
- Row 1: Header row with display labels ("Account Name", "Country", ...)
- Row 2+: Data rows

A configurable share of rows is deliberately broken (blank account name) so that
row-level error reporting can be exercised, and a share reuses an earlier account
name so that create-then-update is exercised within one file.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

from crm_bulk.csvio.codec import serialize_csv

HEADERS = [
    "Account Name",
    "Phone",
    "Website",
    "Industry",
    "Country",
    "Status",
    "Description",
    "Created Time",
]

INDUSTRIES = ["Software", "Manufacturing", "Retail", "Finance", "Healthcare", "Logistics"]
COUNTRIES = ["Japan", "USA", "United Kingdom", "Germany", "Singapore", "Brazil", "India"]
STATUSES = ["Active", "Inactive", "Prospect"]


def generate_accounts(
    rows: int,
    seed: int = 42,
    error_ratio: float = 0.0,
    duplicate_ratio: float = 0.0,
) -> pd.DataFrame:
    """Generate synthetic account rows keyed by the display headers.

    Args:
        rows: Number of data rows
        seed: Random seed for reproducible data
        error_ratio: Share of rows with a blank (required) account name
        duplicate_ratio: Share of rows that repeat an earlier account name

    Returns:
        DataFrame with one column per entry of HEADERS
    """
    rng = np.random.default_rng(seed)

    names = [f"Account {i:06d}" for i in range(1, rows + 1)]
    if rows > 1 and duplicate_ratio > 0:
        dup_idx = rng.choice(np.arange(1, rows), size=int((rows - 1) * duplicate_ratio), replace=False)
        for i in dup_idx:
            names[i] = names[rng.integers(0, i)]
    if error_ratio > 0:
        err_idx = rng.choice(rows, size=int(rows * error_ratio), replace=False)
        for i in err_idx:
            names[i] = ""

    created = pd.date_range("2023-01-01", "2024-12-31", periods=max(rows, 1))
    data = {
        "Account Name": names,
        "Phone": [f"+81-3-{n:04d}-{m:04d}" for n, m in rng.integers(0, 10_000, size=(rows, 2))],
        "Website": [f"www.account{i}.example.com" for i in range(1, rows + 1)],
        "Industry": rng.choice(INDUSTRIES, rows).tolist(),
        "Country": rng.choice(COUNTRIES, rows).tolist(),
        "Status": rng.choice(STATUSES, rows).tolist(),
        "Description": [f"Synthetic account {i}, generated for volume testing" for i in range(1, rows + 1)],
        "Created Time": [ts.strftime("%Y-%m-%d %H:%M:%S") for ts in created[:rows]],
    }
    return pd.DataFrame(data, columns=HEADERS)


def write_csv(df: pd.DataFrame, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    text = serialize_csv(df.to_dict(orient="records"), list(df.columns))
    output_path.write_text(text + "\n", encoding="utf-8")
    print(f"Created CSV file: {output_path}")
    print(f"  Rows: {len(df):,} (+ 1 header row)")
    print(f"  Columns: {len(df.columns)}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate synthetic account CSV files for volume testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 10k clean rows
  %(prog)s data/accounts.csv --rows 10000

  # 5%% broken rows, 10%% repeated names
  %(prog)s data/accounts_dirty.csv --rows 2500 --error-ratio 0.05 --duplicate-ratio 0.1
        """,
    )
    parser.add_argument("output", type=Path, help="Output CSV file path")
    parser.add_argument("--rows", type=int, default=10_000, help="Number of data rows (default: 10,000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--error-ratio", type=float, default=0.0, help="Share of invalid rows (0-1)")
    parser.add_argument("--duplicate-ratio", type=float, default=0.0, help="Share of repeated names (0-1)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    for flag, value in (("--error-ratio", args.error_ratio), ("--duplicate-ratio", args.duplicate_ratio)):
        if not 0.0 <= value <= 1.0:
            print(f"Error: {flag} must be between 0 and 1", file=sys.stderr)
            return 1

    df = generate_accounts(args.rows, args.seed, args.error_ratio, args.duplicate_ratio)
    write_csv(df, args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
