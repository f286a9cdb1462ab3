"""
Data Ingestion - Sync Orchestrator.

============================================================
RESPONSIBILITY
============================================================
Runs one sync pass: every collector in a fixed order, each
isolated from the others' failures.

Per step:
1. Time the step with the clock
2. collector.run()
3. sink.upsert(entities)
4. Record success with the record count
5. Best-effort sink.index_chunks(chunker(output))
6. Sleep the step's configured delay

Any exception from steps 2-3 becomes SyncResult(success=False)
and the pass continues. An index failure is logged and noted
in the result's warnings only.

============================================================
STATE
============================================================
IDLE -> RUNNING(step_1) -> ... -> RUNNING(step_n) -> IDLE

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from data_ingestion.collectors import (
    BaseCollector,
    BitcoinOnChainCollector,
    ChainTvlCollector,
    DeFiProtocolCollector,
    FearGreedCollector,
    GlobalAggregateCollector,
    MarketSnapshotCollector,
    TrendingCollector,
    YieldPoolCollector,
    coingecko_headers,
)
from data_ingestion.config import IngestionConfig
from data_ingestion.exceptions import ConfigurationError
from data_ingestion.fetcher import RateLimitedFetcher
from data_ingestion.normalizers import chunks as chunkers
from data_ingestion.sources import (
    ALTERNATIVE_ME,
    BLOCKCHAIN_INFO,
    COINGECKO,
    DEFILLAMA,
    DEFILLAMA_YIELDS,
    SourceRegistry,
)
from data_ingestion.types import DataChunk, OrchestratorState, PassSummary, SyncResult


Chunker = Callable[[Any], List[DataChunk]]


@dataclass
class SyncStep:
    """One collector in the pass, with its index renderer and trailing delay."""
    collector: BaseCollector
    chunker: Optional[Chunker] = None
    delay_after_seconds: float = 0.0

    @property
    def name(self) -> str:
        return self.collector.name


class SyncOrchestrator:
    """
    Sequential, failure-isolated sync pass.

    Usage:
        orchestrator = SyncOrchestrator(steps, sink, clock)
        results = await orchestrator.run_pass()
        orchestrator.last_summary.describe()
    """

    def __init__(
        self,
        steps: Sequence[SyncStep],
        sink: Any,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            steps: Collectors in execution order
            sink: PersistenceSink (anything with async upsert / index_chunks)
            clock: Clock for timing and delays
        """
        self._steps = list(steps)
        self._sink = sink
        self._clock = clock or SystemClock()
        self._state = OrchestratorState.IDLE
        self._current_step: Optional[str] = None
        self._last_summary: Optional[PassSummary] = None
        self._passes_completed = 0
        self._logger = logging.getLogger("ingestion.orchestrator")

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def current_step(self) -> Optional[str]:
        """Name of the collector being run, None when idle."""
        return self._current_step

    @property
    def last_summary(self) -> Optional[PassSummary]:
        return self._last_summary

    @property
    def steps(self) -> List[SyncStep]:
        return list(self._steps)

    async def run_pass(self) -> List[SyncResult]:
        """
        Run every step once.

        Returns:
            One SyncResult per step, in step order

        Raises:
            RuntimeError: If a pass is already in progress
            ConfigurationError: Programming errors are not isolated
        """
        if self._state is OrchestratorState.RUNNING:
            raise RuntimeError("A sync pass is already in progress")

        self._state = OrchestratorState.RUNNING
        started_at = self._clock.now()
        results: List[SyncResult] = []
        self._logger.info(f"Starting sync pass over {len(self._steps)} sources")

        try:
            for step in self._steps:
                self._current_step = step.name
                results.append(await self._run_step(step))
                if step.delay_after_seconds > 0:
                    await self._clock.sleep(step.delay_after_seconds)
        finally:
            self._state = OrchestratorState.IDLE
            self._current_step = None

        summary = PassSummary(
            results=tuple(results),
            started_at=started_at,
            completed_at=self._clock.now(),
        )
        self._last_summary = summary
        self._passes_completed += 1

        if summary.failed_sources:
            self._logger.warning(
                f"Sync complete: {summary.describe()} "
                f"(failed: {', '.join(summary.failed_sources)})"
            )
        else:
            self._logger.info(f"Sync complete: {summary.describe()}")

        return results

    async def _run_step(self, step: SyncStep) -> SyncResult:
        started = self._clock.monotonic()

        try:
            output = await step.collector.run()
            entities = list(output) if isinstance(output, (list, tuple)) else [output]
            await self._sink.upsert(entities)
        except ConfigurationError:
            raise
        except Exception as e:
            duration_ms = self._clock.elapsed_ms(started)
            self._logger.error(f"[{step.name}] failed after {duration_ms}ms: {e}")
            return SyncResult(
                source=step.name,
                success=False,
                records_processed=0,
                duration_ms=duration_ms,
                error=str(e),
            )

        warnings = list(step.collector.last_warnings)
        chunks_indexed = 0
        if step.chunker is not None:
            try:
                chunks_indexed = await self._sink.index_chunks(step.chunker(output))
            except Exception as e:
                self._logger.warning(f"[{step.name}] index write failed: {e}")
                warnings.append(f"Index write failed: {e}")

        duration_ms = self._clock.elapsed_ms(started)
        self._logger.info(f"[{step.name}] {len(entities)} records in {duration_ms}ms")
        return SyncResult(
            source=step.name,
            success=True,
            records_processed=len(entities),
            duration_ms=duration_ms,
            chunks_indexed=chunks_indexed,
            warnings=tuple(warnings),
        )

    def status(self) -> Dict[str, Any]:
        """Health snapshot for operators."""
        return {
            "state": self._state.value,
            "current_step": self._current_step,
            "passes_completed": self._passes_completed,
            "last_summary": self._last_summary.to_dict() if self._last_summary else None,
        }


def build_default_steps(
    config: IngestionConfig,
    registry: SourceRegistry,
    fetcher: RateLimitedFetcher,
    clock: Optional[ClockProtocol] = None,
) -> List[SyncStep]:
    """
    Standard pass order:
    market -> fear/greed -> global (+delay) -> DeFi protocols
    -> chain TVL (+delay) -> yield pools -> trending -> bitcoin on-chain
    """
    clock = clock or SystemClock()
    common = {"fetcher": fetcher, "clock": clock, "max_retries": config.max_retries}
    coingecko = {
        "source": registry.get(COINGECKO),
        "headers": coingecko_headers(config.coingecko_api_key),
        **common,
    }

    def limited(render: Callable[..., List[DataChunk]], limit: int) -> Chunker:
        return lambda output: render(output, limit=limit)

    return [
        SyncStep(
            MarketSnapshotCollector(
                pages=config.market_pages,
                per_page=config.market_per_page,
                page_delay_seconds=config.page_delay_seconds,
                **coingecko,
            ),
            chunker=limited(chunkers.market_chunks, config.market_chunk_limit),
        ),
        SyncStep(
            FearGreedCollector(source=registry.get(ALTERNATIVE_ME), **common),
            chunker=chunkers.fear_greed_chunks,
        ),
        SyncStep(
            GlobalAggregateCollector(**coingecko),
            chunker=chunkers.global_chunks,
            delay_after_seconds=config.collector_delay_seconds,
        ),
        SyncStep(
            DeFiProtocolCollector(
                source=registry.get(DEFILLAMA),
                limit=config.defi_protocol_limit,
                **common,
            ),
            chunker=limited(chunkers.defi_chunks, config.defi_chunk_limit),
        ),
        SyncStep(
            ChainTvlCollector(source=registry.get(DEFILLAMA), **common),
            chunker=limited(chunkers.chain_tvl_chunks, config.chain_chunk_limit),
            delay_after_seconds=config.collector_delay_seconds,
        ),
        SyncStep(
            YieldPoolCollector(
                source=registry.get(DEFILLAMA_YIELDS),
                limit=config.yield_pool_limit,
                **common,
            ),
            chunker=limited(chunkers.yield_chunks, config.yield_chunk_limit),
        ),
        SyncStep(
            TrendingCollector(**coingecko),
            chunker=chunkers.trending_chunks,
        ),
        SyncStep(
            BitcoinOnChainCollector(source=registry.get(BLOCKCHAIN_INFO), **common),
            chunker=chunkers.onchain_chunks,
        ),
    ]
