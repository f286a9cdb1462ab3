"""
Source Registry - Static catalog of external data providers.

Provides:
- Source registration and lookup by name
- Priority ordering (for log output only)
- Per-source rate-limit budgets used by collectors to pace calls
"""

import logging
from typing import TYPE_CHECKING, Dict, Iterator, List, Mapping, Optional

from data_ingestion.exceptions import ConfigurationError
from data_ingestion.types import SourceConfig

if TYPE_CHECKING:
    from data_ingestion.config import IngestionConfig


logger = logging.getLogger(__name__)


COINGECKO = "coingecko"
ALTERNATIVE_ME = "alternative_me"
DEFILLAMA = "defillama"
DEFILLAMA_YIELDS = "defillama_yields"
BLOCKCHAIN_INFO = "blockchain_info"


DEFAULT_SOURCES: tuple = (
    # Price & market data (free tier budget)
    SourceConfig(COINGECKO, "https://api.coingecko.com/api/v3", rate_limit_per_minute=10, priority=1),
    # Sentiment
    SourceConfig(ALTERNATIVE_ME, "https://api.alternative.me", rate_limit_per_minute=100, priority=1),
    # DeFi
    SourceConfig(DEFILLAMA, "https://api.llama.fi", rate_limit_per_minute=100, priority=1),
    SourceConfig(DEFILLAMA_YIELDS, "https://yields.llama.fi", rate_limit_per_minute=100, priority=1),
    # On-chain (free public endpoints)
    SourceConfig(BLOCKCHAIN_INFO, "https://blockchain.info", rate_limit_per_minute=30, priority=2),
)


class SourceRegistry:
    """
    Registry of SourceConfig entries.

    Usage:
        registry = SourceRegistry.default()
        coingecko = registry.get("coingecko")
        coingecko.min_interval_seconds  # 6.0
    """

    def __init__(self, sources: Optional[List[SourceConfig]] = None) -> None:
        self._sources: Dict[str, SourceConfig] = {}
        for source in sources or []:
            self.register(source)

    @classmethod
    def default(cls) -> "SourceRegistry":
        """Registry holding the built-in provider catalog."""
        return cls(list(DEFAULT_SOURCES))

    @classmethod
    def from_overrides(
        cls,
        base_urls: Optional[Mapping[str, str]] = None,
        rate_limits: Optional[Mapping[str, int]] = None,
    ) -> "SourceRegistry":
        """
        Built-in catalog with per-source base URL / rate limit overrides.

        Raises:
            ConfigurationError: If an override names an unknown source
        """
        base_urls = base_urls or {}
        rate_limits = rate_limits or {}
        known = {s.name for s in DEFAULT_SOURCES}
        for name in list(base_urls) + list(rate_limits):
            if name not in known:
                raise ConfigurationError(
                    f"Override for unknown source '{name}'",
                    source_name=name,
                )

        sources = [
            SourceConfig(
                name=s.name,
                base_url=base_urls.get(s.name, s.base_url),
                rate_limit_per_minute=int(rate_limits.get(s.name, s.rate_limit_per_minute)),
                priority=s.priority,
            )
            for s in DEFAULT_SOURCES
        ]
        return cls(sources)

    @classmethod
    def from_config(cls, config: "IngestionConfig") -> "SourceRegistry":
        """Built-in catalog with the config's base URL overrides applied."""
        return cls.from_overrides(base_urls=config.base_url_overrides)

    def register(self, source: SourceConfig) -> None:
        """Register (or replace) a source."""
        if source.name in self._sources:
            logger.warning(f"Source '{source.name}' already registered, replacing")
        self._sources[source.name] = source
        logger.debug(
            f"Registered source '{source.name}' "
            f"({source.rate_limit_per_minute}/min, priority {source.priority})"
        )

    def get(self, name: str) -> SourceConfig:
        """
        Look up a source by name.

        Raises:
            ConfigurationError: If the source is not registered
        """
        try:
            return self._sources[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown data source '{name}'",
                source_name=name,
            ) from None

    def list_sources(self) -> List[SourceConfig]:
        """All sources, highest priority (lowest number) first."""
        return sorted(self._sources.values(), key=lambda s: (s.priority, s.name))

    def __contains__(self, name: object) -> bool:
        return name in self._sources

    def __iter__(self) -> Iterator[SourceConfig]:
        return iter(self.list_sources())

    def __len__(self) -> int:
        return len(self._sources)
