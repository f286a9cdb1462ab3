"""
Data Ingestion - CoinGecko Collectors.

============================================================
RESPONSIBILITY
============================================================
Collects market data from the CoinGecko API.

- Ranked market snapshots (paginated)
- Global market aggregate
- Trending search list
- Historical price series (backfill only)

============================================================
DESIGN PRINCIPLES
============================================================
- Respect the free tier budget strictly: pages are spaced by
  max(page delay, 60 / rate_limit_per_minute)
- Keep what succeeded when a later page fails
- Null upstream fields stay None

============================================================
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from data_ingestion.collectors.base import (
    BaseCollector,
    SourceClient,
    opt_datetime,
    opt_float,
    opt_int,
    opt_str,
)
from data_ingestion.exceptions import FetchError, ParseError
from data_ingestion.types import GlobalAggregate, MarketSnapshot, TrendingEntry


def coingecko_headers(api_key: Optional[str]) -> Dict[str, str]:
    """Demo-tier key header; empty when no key is configured."""
    # x-cg-pro-api-key would be used for the paid tier
    return {"x-cg-demo-api-key": api_key} if api_key else {}


# =============================================================
# MARKET SNAPSHOTS
# =============================================================

class MarketSnapshotCollector(BaseCollector):
    """
    Top-N ranked assets by market cap.

    ============================================================
    WIRING
    ============================================================
    Source: CoinGecko /coins/markets
    Output: List[MarketSnapshot], ordered by rank, unique by symbol

    ============================================================
    """

    name = "coingecko-market"

    def __init__(
        self,
        *args: Any,
        pages: int = 2,
        per_page: int = 250,
        page_delay_seconds: float = 2.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._pages = pages
        self._per_page = per_page
        self._page_delay_seconds = page_delay_seconds

    @property
    def page_delay_seconds(self) -> float:
        """Delay actually applied between pages."""
        return max(self._page_delay_seconds, self._source.min_interval_seconds)

    async def collect(self) -> List[MarketSnapshot]:
        snapshots: List[MarketSnapshot] = []
        seen: set = set()

        for page in range(1, self._pages + 1):
            if page > 1:
                await self._clock.sleep(self.page_delay_seconds)

            try:
                raw = await self._get(
                    "/coins/markets",
                    params={
                        "vs_currency": "usd",
                        "order": "market_cap_desc",
                        "per_page": self._per_page,
                        "page": page,
                        "sparkline": "false",
                        "price_change_percentage": "1h,24h,7d,30d",
                    },
                )
                rows = self._require_list(raw)
            except (FetchError, ParseError) as e:
                if page == 1:
                    raise
                self._warn(
                    f"Market page {page}/{self._pages} failed, keeping "
                    f"{len(snapshots)} records from earlier pages: {e}"
                )
                break

            fetched_at = self._clock.now()
            skipped = 0
            for row in rows:
                snapshot = self._parse_row(row, fetched_at)
                if snapshot is None:
                    skipped += 1
                    continue
                if snapshot.symbol in seen:
                    continue
                seen.add(snapshot.symbol)
                snapshots.append(snapshot)

            if skipped:
                self._logger.debug(f"Page {page}: skipped {skipped} rows without a symbol")
            self._logger.info(f"Market page {page}: {len(rows)} coins")

        return snapshots

    def _parse_row(self, row: Any, fetched_at: datetime) -> Optional[MarketSnapshot]:
        if not isinstance(row, dict):
            return None
        symbol = opt_str(row.get("symbol"))
        if not symbol:
            return None

        return MarketSnapshot(
            symbol=symbol.upper(),
            name=opt_str(row.get("name")) or symbol.upper(),
            rank=opt_int(row.get("market_cap_rank")),
            price=opt_float(row.get("current_price")),
            price_change_1h=opt_float(row.get("price_change_percentage_1h_in_currency")),
            price_change_24h=opt_float(row.get("price_change_percentage_24h")),
            price_change_7d=opt_float(row.get("price_change_percentage_7d_in_currency")),
            price_change_30d=opt_float(row.get("price_change_percentage_30d_in_currency")),
            market_cap=opt_float(row.get("market_cap")),
            volume_24h=opt_float(row.get("total_volume")),
            circulating_supply=opt_float(row.get("circulating_supply")),
            total_supply=opt_float(row.get("total_supply")),
            max_supply=opt_float(row.get("max_supply")),
            ath=opt_float(row.get("ath")),
            ath_date=opt_datetime(row.get("ath_date")),
            atl=opt_float(row.get("atl")),
            atl_date=opt_datetime(row.get("atl_date")),
            last_updated=opt_datetime(row.get("last_updated")),
            fetched_at=fetched_at,
        )


# =============================================================
# GLOBAL AGGREGATE
# =============================================================

class GlobalAggregateCollector(BaseCollector):
    """Whole-market totals from CoinGecko /global."""

    name = "global-metrics"

    async def collect(self) -> GlobalAggregate:
        raw = await self._get("/global")
        data = self._require(raw, "data", dict)
        fetched_at = self._clock.now()

        total_market_cap = data.get("total_market_cap") or {}
        total_volume = data.get("total_volume") or {}
        dominance = data.get("market_cap_percentage") or {}

        # Keyed by the provider's update time so identical upstream
        # data maps onto the same row
        timestamp = opt_datetime(data.get("updated_at")) or fetched_at

        return GlobalAggregate(
            timestamp=timestamp,
            total_market_cap=opt_float(total_market_cap.get("usd")),
            total_volume_24h=opt_float(total_volume.get("usd")),
            btc_dominance=opt_float(dominance.get("btc")),
            eth_dominance=opt_float(dominance.get("eth")),
            active_cryptocurrencies=opt_int(data.get("active_cryptocurrencies")),
            markets=opt_int(data.get("markets")),
            market_cap_change_24h=opt_float(data.get("market_cap_change_percentage_24h_usd")),
            fetched_at=fetched_at,
        )


# =============================================================
# TRENDING
# =============================================================

class TrendingCollector(BaseCollector):
    """Trending search list from CoinGecko /search/trending."""

    name = "trending-coins"

    async def collect(self) -> List[TrendingEntry]:
        raw = await self._get("/search/trending")
        coins = self._require(raw, "coins", list)
        fetched_at = self._clock.now()

        entries: List[TrendingEntry] = []
        for position, wrapper in enumerate(coins, start=1):
            item = wrapper.get("item") if isinstance(wrapper, dict) else None
            if not isinstance(item, dict):
                continue
            coin_id = opt_str(item.get("id"))
            if not coin_id:
                continue
            entries.append(TrendingEntry(
                coin_id=coin_id,
                symbol=(opt_str(item.get("symbol")) or coin_id).upper(),
                name=opt_str(item.get("name")) or coin_id,
                position=position,
                market_cap_rank=opt_int(item.get("market_cap_rank")),
                fetched_at=fetched_at,
            ))

        return entries


# =============================================================
# HISTORICAL PRICES (BACKFILL)
# =============================================================

class HistoricalPriceClient(SourceClient):
    """
    Daily price history for one asset.

    Not part of the live pass; the backfill engine calls
    fetch_history() exactly once per asset.
    """

    name = "coingecko-history"

    async def fetch_history(self, coin_id: str, days: int = 365) -> List[Tuple[datetime, float]]:
        """
        Fetch (timestamp, price) points for a coin.

        Points with a null price are dropped.

        Raises:
            FetchError: On unrecoverable HTTP failures
            ParseError: If 'prices' is missing
        """
        raw = await self._get(
            f"/coins/{coin_id}/market_chart",
            params={"vs_currency": "usd", "days": days},
        )
        prices = self._require(raw, "prices", list)

        points: List[Tuple[datetime, float]] = []
        for point in prices:
            if not isinstance(point, (list, tuple)) or len(point) < 2:
                continue
            ts = opt_float(point[0])
            price = opt_float(point[1])
            if ts is None or price is None:
                continue
            points.append((opt_datetime(ts / 1000.0), price))

        return points
