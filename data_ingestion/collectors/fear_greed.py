"""
Data Ingestion - Fear & Greed Index Collector.

============================================================
RESPONSIBILITY
============================================================
Collects the crypto fear & greed sentiment index from
alternative.me.

- Live pass: the latest reading
- Backfill: up to N daily readings in a single call

============================================================
"""

from typing import Any, List, Optional

from data_ingestion.collectors.base import BaseCollector, opt_datetime, opt_int, opt_str
from data_ingestion.exceptions import ParseError
from data_ingestion.types import FearGreedReading


class FearGreedCollector(BaseCollector):
    """
    Collector for the fear & greed index.

    ============================================================
    WIRING
    ============================================================
    Source: alternative.me /fng/
    Output: FearGreedReading (natural key: timestamp)

    ============================================================
    """

    name = "fear-greed-index"

    async def collect(self) -> FearGreedReading:
        readings = await self._fetch(limit=1)
        if not readings:
            raise ParseError("Fear & greed response contained no readings", source_name=self._source.name)
        return readings[0]

    async def fetch_history(self, days: int = 365) -> List[FearGreedReading]:
        """Up to `days` daily readings, newest first, in one request."""
        return await self._fetch(limit=days)

    async def _fetch(self, limit: int) -> List[FearGreedReading]:
        raw = await self._get("/fng/", params={"limit": limit})
        rows = self._require(raw, "data", list)

        readings: List[FearGreedReading] = []
        for row in rows:
            reading = self._parse_row(row)
            if reading is not None:
                readings.append(reading)

        if rows and not readings:
            raise ParseError(
                f"None of {len(rows)} fear & greed rows could be parsed",
                source_name=self._source.name,
            )
        return readings

    def _parse_row(self, row: Any) -> Optional[FearGreedReading]:
        if not isinstance(row, dict):
            return None
        value = opt_int(row.get("value"))
        timestamp = opt_datetime(row.get("timestamp"))
        if value is None or timestamp is None:
            self._logger.debug(f"Skipping fear & greed row without value/timestamp: {row}")
            return None

        return FearGreedReading(
            timestamp=timestamp,
            value=value,
            classification=opt_str(row.get("value_classification")) or classify(value),
            time_until_update=opt_int(row.get("time_until_update")),
        )


def classify(value: int) -> str:
    """Band name for an index value, used when the provider omits it."""
    if value < 25:
        return "Extreme Fear"
    if value < 45:
        return "Fear"
    if value < 55:
        return "Neutral"
    if value < 75:
        return "Greed"
    return "Extreme Greed"
