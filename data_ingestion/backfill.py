"""
Data Ingestion - Historical Backfill.

============================================================
RESPONSIBILITY
============================================================
One-off (or daily) population of long-range history.

1. Fear & greed: up to N daily readings in one request, each
   upserted individually so one bad row does not lose the rest
2. Price history: exactly one request per watchlist asset,
   sampled every k-th point into index chunks

============================================================
DESIGN PRINCIPLES
============================================================
- Bounded output: ceil(points / k) chunks per asset
- Per-asset failures are logged and skipped
- Assets are spaced by a fixed delay through the clock

============================================================
"""

import logging
from typing import Any, Dict, Optional

from core.clock import ClockProtocol, SystemClock
from data_ingestion.collectors import (
    FearGreedCollector,
    HistoricalPriceClient,
    coingecko_headers,
)
from data_ingestion.config import DEFAULT_WATCHLIST, IngestionConfig
from data_ingestion.exceptions import ConfigurationError
from data_ingestion.fetcher import RateLimitedFetcher
from data_ingestion.normalizers.chunks import historical_price_chunks
from data_ingestion.sources import ALTERNATIVE_ME, COINGECKO, SourceRegistry
from data_ingestion.types import BackfillReport


class BackfillEngine:
    """
    Historical backfill runner.

    Usage:
        engine = BackfillEngine.from_config(config, registry, fetcher, sink)
        report = await engine.backfill()
    """

    def __init__(
        self,
        fear_greed: FearGreedCollector,
        history: HistoricalPriceClient,
        sink: Any,
        clock: Optional[ClockProtocol] = None,
        watchlist: Optional[Dict[str, str]] = None,
        days: int = 365,
        sample_every: int = 7,
        asset_delay_seconds: float = 2.0,
    ) -> None:
        """
        Initialize the engine.

        Args:
            fear_greed: Collector used for the sentiment history
            history: Price history client
            sink: PersistenceSink
            clock: Clock for inter-asset delays
            watchlist: coin id -> display symbol
            days: History depth requested per source
            sample_every: Keep every k-th price point
            asset_delay_seconds: Delay between assets
        """
        self._fear_greed = fear_greed
        self._history = history
        self._sink = sink
        self._clock = clock or SystemClock()
        self._watchlist = dict(watchlist or DEFAULT_WATCHLIST)
        self._days = days
        self._sample_every = sample_every
        self._asset_delay_seconds = asset_delay_seconds
        self._logger = logging.getLogger("ingestion.backfill")

    @classmethod
    def from_config(
        cls,
        config: IngestionConfig,
        registry: SourceRegistry,
        fetcher: RateLimitedFetcher,
        sink: Any,
        clock: Optional[ClockProtocol] = None,
    ) -> "BackfillEngine":
        clock = clock or SystemClock()
        return cls(
            fear_greed=FearGreedCollector(
                registry.get(ALTERNATIVE_ME), fetcher, clock, max_retries=config.max_retries,
            ),
            history=HistoricalPriceClient(
                registry.get(COINGECKO),
                fetcher,
                clock,
                max_retries=config.max_retries,
                headers=coingecko_headers(config.coingecko_api_key),
            ),
            sink=sink,
            clock=clock,
            watchlist=config.backfill_watchlist,
            days=config.backfill_days,
            sample_every=config.backfill_sample_every,
            asset_delay_seconds=config.backfill_asset_delay_seconds,
        )

    async def backfill(self) -> BackfillReport:
        """
        Run the full backfill.

        Returns:
            BackfillReport with per-asset chunk counts and failures
        """
        report = BackfillReport()
        self._logger.info(
            f"Starting historical backfill: {self._days} days, "
            f"{len(self._watchlist)} assets, sampling every {self._sample_every} points"
        )

        await self._backfill_fear_greed(report)

        for index, (coin_id, symbol) in enumerate(self._watchlist.items()):
            if index > 0:
                await self._clock.sleep(self._asset_delay_seconds)
            await self._backfill_asset(coin_id, symbol, report)

        self._logger.info(
            f"Backfill complete: {report.fear_greed_readings} fear & greed readings, "
            f"{report.total_chunks} price chunks, "
            f"{len(report.failed_assets)} failed assets"
        )
        return report

    async def _backfill_fear_greed(self, report: BackfillReport) -> None:
        try:
            readings = await self._fear_greed.fetch_history(self._days)
        except ConfigurationError:
            raise
        except Exception as e:
            self._logger.error(f"Fear & greed history backfill failed: {e}")
            report.errors.append(f"fear-greed: {e}")
            return

        for reading in readings:
            try:
                await self._sink.upsert([reading])
            except ConfigurationError:
                raise
            except Exception as e:
                report.fear_greed_failures += 1
                report.errors.append(f"fear-greed {reading.timestamp.date()}: {e}")
                continue
            report.fear_greed_readings += 1

        if report.fear_greed_failures:
            self._logger.warning(
                f"Backfilled {report.fear_greed_readings} fear & greed readings, "
                f"{report.fear_greed_failures} failed"
            )
        else:
            self._logger.info(f"Backfilled {report.fear_greed_readings} days of fear & greed history")

    async def _backfill_asset(self, coin_id: str, symbol: str, report: BackfillReport) -> None:
        try:
            points = await self._history.fetch_history(coin_id, days=self._days)
            chunks = historical_price_chunks(coin_id, symbol, points, every=self._sample_every)
            await self._sink.index_chunks(chunks)
        except ConfigurationError:
            raise
        except Exception as e:
            self._logger.error(f"{coin_id} backfill failed: {e}")
            report.failed_assets[coin_id] = str(e)
            return

        report.chunks_per_asset[coin_id] = len(chunks)
        self._logger.info(f"Backfilled {coin_id} ({symbol}): {len(chunks)} of {len(points)} points")
