"""
Data Ingestion - Bitcoin On-Chain Collector.

============================================================
RESPONSIBILITY
============================================================
Collects chain-level Bitcoin metrics from the free
blockchain.info endpoints.

- /stats:       24h transactions, BTC sent, hash rate, difficulty
- /latestblock: current block height

Active addresses are not exposed by the free tier and are
always reported as None.

============================================================
"""

from typing import Any, Dict

from data_ingestion.collectors.base import BaseCollector, opt_float, opt_int
from data_ingestion.exceptions import ParseError
from data_ingestion.types import OnChainSummary


SATOSHIS_PER_BTC = 100_000_000


class BitcoinOnChainCollector(BaseCollector):
    """
    Collector for Bitcoin on-chain summary metrics.

    The two endpoints are called sequentially, spaced by the
    source's minimum interval.
    """

    name = "bitcoin-onchain"

    async def collect(self) -> OnChainSummary:
        stats = self._as_object(await self._get("/stats", params={"format": "json"}))
        await self._clock.sleep(self._source.min_interval_seconds)
        latest = self._as_object(await self._get("/latestblock"))

        n_tx = opt_int(stats.get("n_tx"))
        total_sent = opt_float(stats.get("total_btc_sent"))
        avg_value = None
        if n_tx and total_sent is not None:
            avg_value = total_sent / n_tx / SATOSHIS_PER_BTC

        return OnChainSummary(
            coin="BTC",
            active_addresses_24h=None,
            transaction_count_24h=n_tx,
            avg_transaction_value=avg_value,
            hash_rate=opt_float(stats.get("hash_rate")),
            difficulty=opt_float(stats.get("difficulty")),
            block_height=opt_int(latest.get("height")),
            mempool_size=opt_int(stats.get("mempool_size")),
            fetched_at=self._clock.now(),
        )

    def _as_object(self, payload: Any) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise ParseError(
                f"Expected JSON object, got {type(payload).__name__}",
                source_name=self._source.name,
            )
        return payload
