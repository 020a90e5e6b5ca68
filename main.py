# main.py
"""
Command-line runner: load a backtest request, obtain prices, simulate, report.

    python main.py --request request.json [--prices prices.json] [--json]
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from backtesting.backtester import run_backtest
from backtesting.models import BacktestRequest
from backtesting.reports import generate_backtest_report
from pricedata.fetch_crypto import fetch_prices


def _load_json(path: str):
    with Path(path).open(encoding="utf-8") as fh:
        return json.load(fh)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Backtest a fixed-weight crypto portfolio.")
    parser.add_argument("--request", required=True, help="Path to the request JSON.")
    parser.add_argument(
        "--prices",
        help="Path to a JSON object of asset id -> [{date, price}]. Fetched from CoinGecko when omitted.",
    )
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON.")
    parser.add_argument("--log-level", default="WARNING")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        request = BacktestRequest.from_dict(_load_json(args.request))
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    if args.prices:
        prices = _load_json(args.prices)
    else:
        prices = fetch_prices(request.asset_ids, request.start_date, request.end_date)

    result = run_backtest(request, prices)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(generate_backtest_report(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
