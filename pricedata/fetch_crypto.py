import logging
import os
import time
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests

from backtesting.models import PricePoint
from utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

BASE_URL = os.environ.get("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3")
API_KEY = os.environ.get("COINGECKO_API_KEY")
API_HEADER = os.environ.get("COINGECKO_API_HEADER", "x-cg-demo-api-key")
BINANCE_URL = "https://api.binance.com/api/v3/klines"
HEADERS = {"accept": "application/json"}
if API_KEY:
    HEADERS[API_HEADER] = API_KEY

VS_CURRENCY = "usd"
RATE_LIMIT_DELAY = 0.5
BINANCE_PAGE_LIMIT = 1000
DAY_MS = 24 * 60 * 60 * 1000

BINANCE_SYMBOLS = {
    "bitcoin": "BTCUSDT",
    "ethereum": "ETHUSDT",
    "solana": "SOLUSDT",
}
STABLECOINS = {"usd-coin", "tether"}


def _utc_day(timestamp_ms: float) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date().isoformat()


def _day_bounds_ms(start: str, end: str) -> tuple[int, int]:
    start_dt = datetime.combine(date.fromisoformat(start), datetime.min.time(), tzinfo=timezone.utc)
    end_dt = datetime.combine(date.fromisoformat(end), datetime.max.time(), tzinfo=timezone.utc)
    return int(start_dt.timestamp() * 1000), int(end_dt.timestamp() * 1000)


def bucket_daily(rows: Iterable[Sequence[float]]) -> List[PricePoint]:
    """Collapse (timestamp_ms, price) rows into one close per UTC day; later rows win."""
    by_day: Dict[str, float] = {}
    for ts, price in rows:
        by_day[_utc_day(ts)] = float(price)
    return [PricePoint(date=day, price=price) for day, price in sorted(by_day.items())]


def fetch_json(
    session: requests.Session,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    rate_limiter: Optional[RateLimiter] = None,
    max_retries: int = 5,
) -> Any:
    """GET helper that retries on HTTP 429 with exponential backoff."""
    for attempt in range(max_retries):
        if rate_limiter is not None:
            rate_limiter.wait()
        resp = session.get(url, params=params, timeout=30)
        if resp.status_code == 429:
            logger.warning("Rate limited by %s, retrying in %ss", url, 2**attempt)
            time.sleep(2**attempt)
            continue
        resp.raise_for_status()
        return resp.json()
    resp.raise_for_status()
    return resp.json()


def fetch_coingecko_daily(
    session: requests.Session,
    asset_id: str,
    start: str,
    end: str,
    rate_limiter: Optional[RateLimiter] = None,
) -> List[PricePoint]:
    start_ms, end_ms = _day_bounds_ms(start, end)
    payload = fetch_json(
        session,
        f"{BASE_URL}/coins/{asset_id}/market_chart/range",
        params={"vs_currency": VS_CURRENCY, "from": start_ms // 1000, "to": end_ms // 1000},
        rate_limiter=rate_limiter,
    )
    rows = [row for row in payload.get("prices", []) if start_ms <= row[0] <= end_ms]
    return bucket_daily(rows)


def fetch_binance_daily(
    session: requests.Session,
    asset_id: str,
    start: str,
    end: str,
    rate_limiter: Optional[RateLimiter] = None,
) -> List[PricePoint]:
    symbol = BINANCE_SYMBOLS.get(asset_id)
    if symbol is None:
        return []

    cursor, end_ms = _day_bounds_ms(start, end)
    rows: List[tuple] = []
    while cursor <= end_ms:
        klines = fetch_json(
            session,
            BINANCE_URL,
            params={
                "symbol": symbol,
                "interval": "1d",
                "startTime": cursor,
                "endTime": end_ms,
                "limit": BINANCE_PAGE_LIMIT,
            },
            rate_limiter=rate_limiter,
        )
        if not klines:
            break
        # kline: [open_time, open, high, low, close, ...]
        rows.extend((k[0], float(k[4])) for k in klines)
        next_cursor = klines[-1][0] + DAY_MS
        if next_cursor <= cursor:
            break
        cursor = next_cursor
    return bucket_daily(rows)


def synthesize_stablecoin(start: str, end: str) -> List[PricePoint]:
    first, last = date.fromisoformat(start), date.fromisoformat(end)
    days = max(0, (last - first).days)
    return [
        PricePoint(date=(first + timedelta(days=i)).isoformat(), price=1.0)
        for i in range(days + 1)
    ]


def fetch_asset_prices(
    session: requests.Session,
    asset_id: str,
    start: str,
    end: str,
    rate_limiter: Optional[RateLimiter] = None,
) -> List[PricePoint]:
    """
    Daily USD closes for one asset: CoinGecko first, then Binance for major
    pairs, then a flat $1 series for stablecoins. An empty list means no
    provider had data.
    """
    try:
        points = fetch_coingecko_daily(session, asset_id, start, end, rate_limiter)
        if points:
            return points
    except requests.RequestException as exc:
        logger.warning("CoinGecko failed for %s: %s", asset_id, exc)

    try:
        points = fetch_binance_daily(session, asset_id, start, end, rate_limiter)
        if points:
            return points
    except requests.RequestException as exc:
        logger.warning("Binance failed for %s: %s", asset_id, exc)

    if asset_id in STABLECOINS:
        logger.info("Using synthetic $1 series for %s", asset_id)
        return synthesize_stablecoin(start, end)
    return []


def dedupe_preserve_order(iterable: Sequence[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for item in iterable:
        if item and item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def fetch_prices(
    asset_ids: Sequence[str],
    start: str,
    end: str,
    session: Optional[requests.Session] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> Dict[str, List[PricePoint]]:
    """Fetch daily closes for every unique asset id in [start, end]."""
    if session is None:
        session = requests.Session()
        session.headers.update(HEADERS)
    if rate_limiter is None:
        rate_limiter = RateLimiter(RATE_LIMIT_DELAY)

    prices: Dict[str, List[PricePoint]] = {}
    for asset_id in dedupe_preserve_order(asset_ids):
        prices[asset_id] = fetch_asset_prices(session, asset_id, start, end, rate_limiter)
        logger.info("Fetched %d daily prices for %s", len(prices[asset_id]), asset_id)
    return prices
