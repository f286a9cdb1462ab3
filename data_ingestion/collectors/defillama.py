"""
Data Ingestion - DefiLlama Collectors.

============================================================
RESPONSIBILITY
============================================================
Collects DeFi protocol, chain TVL and yield data from DefiLlama.

- Protocol list, largest TVL first, capped at a configured size
- Per-chain TVL totals
- Yield pools (yields host), largest TVL first

============================================================
"""

from typing import Any, List, Optional

from data_ingestion.collectors.base import BaseCollector, opt_float, opt_str
from data_ingestion.types import ChainTvlSnapshot, DeFiProtocolSnapshot, YieldPoolSnapshot


def _tvl_sort_key(tvl: Optional[float]) -> float:
    return tvl if tvl is not None else float("-inf")


class DeFiProtocolCollector(BaseCollector):
    """
    Collector for DeFi protocol TVL snapshots.

    ============================================================
    WIRING
    ============================================================
    Source: DefiLlama /protocols
    Output: List[DeFiProtocolSnapshot] (natural key: name)

    ============================================================
    """

    name = "defi-protocols"

    def __init__(self, *args: Any, limit: int = 200, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._limit = limit

    async def collect(self) -> List[DeFiProtocolSnapshot]:
        rows = self._require_list(await self._get("/protocols"))
        fetched_at = self._clock.now()

        protocols: List[DeFiProtocolSnapshot] = []
        seen: set = set()
        for row in rows:
            if not isinstance(row, dict):
                continue
            name = opt_str(row.get("name"))
            if not name or name in seen:
                continue
            seen.add(name)

            tvl = opt_float(row.get("tvl"))
            chains = row.get("chains")
            protocols.append(DeFiProtocolSnapshot(
                name=name,
                chain=opt_str(row.get("chain")),
                tvl=tvl,
                tvl_change_24h=opt_float(row.get("change_1d")),
                tvl_change_7d=opt_float(row.get("change_7d")),
                category=opt_str(row.get("category")),
                chains=tuple(str(c) for c in chains) if isinstance(chains, list) else (),
                mcap_tvl=self._mcap_tvl(row, tvl),
                fetched_at=fetched_at,
            ))

        protocols.sort(key=lambda p: _tvl_sort_key(p.tvl), reverse=True)
        return protocols[: self._limit]

    @staticmethod
    def _mcap_tvl(row: dict, tvl: Optional[float]) -> Optional[float]:
        ratio = opt_float(row.get("mcapTvl"))
        if ratio is not None:
            return ratio
        mcap = opt_float(row.get("mcap"))
        if mcap is not None and tvl:
            return mcap / tvl
        return None


class ChainTvlCollector(BaseCollector):
    """Total value locked per chain from DefiLlama /v2/chains."""

    name = "chain-tvl"

    async def collect(self) -> List[ChainTvlSnapshot]:
        rows = self._require_list(await self._get("/v2/chains"))
        fetched_at = self._clock.now()

        chains: List[ChainTvlSnapshot] = []
        seen: set = set()
        for row in rows:
            if not isinstance(row, dict):
                continue
            name = opt_str(row.get("name"))
            if not name or name in seen:
                continue
            seen.add(name)
            chains.append(ChainTvlSnapshot(
                name=name,
                tvl=opt_float(row.get("tvl")),
                token_symbol=opt_str(row.get("tokenSymbol")),
                fetched_at=fetched_at,
            ))

        chains.sort(key=lambda c: _tvl_sort_key(c.tvl), reverse=True)
        return chains


class YieldPoolCollector(BaseCollector):
    """
    Collector for DeFi yield pools.

    ============================================================
    WIRING
    ============================================================
    Source: DefiLlama yields /pools (separate host from the TVL API)
    Output: List[YieldPoolSnapshot], largest TVL first (natural key: pool)

    ============================================================
    """

    name = "yield-pools"

    def __init__(self, *args: Any, limit: int = 100, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._limit = limit

    async def collect(self) -> List[YieldPoolSnapshot]:
        rows = self._require(await self._get("/pools"), "data", list)
        fetched_at = self._clock.now()

        pools: List[YieldPoolSnapshot] = []
        seen: set = set()
        for row in rows:
            if not isinstance(row, dict):
                continue
            pool_id = opt_str(row.get("pool"))
            if not pool_id or pool_id in seen:
                continue
            seen.add(pool_id)

            stablecoin = row.get("stablecoin")
            pools.append(YieldPoolSnapshot(
                pool=pool_id,
                project=opt_str(row.get("project")) or pool_id,
                chain=opt_str(row.get("chain")),
                symbol=opt_str(row.get("symbol")),
                tvl_usd=opt_float(row.get("tvlUsd")),
                apy=opt_float(row.get("apy")),
                apy_base=opt_float(row.get("apyBase")),
                apy_reward=opt_float(row.get("apyReward")),
                stablecoin=stablecoin if isinstance(stablecoin, bool) else None,
                fetched_at=fetched_at,
            ))

        pools.sort(key=lambda p: _tvl_sort_key(p.tvl_usd), reverse=True)
        self._logger.info(f"{len(pools)} pools, keeping top {min(self._limit, len(pools))} by TVL")
        return pools[: self._limit]
