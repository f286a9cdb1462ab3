"""
Shared fixtures for the sync engine tests.

============================================================
FIXTURES
============================================================
- mock_clock: MockClock pinned to a fixed UTC instant
- fake_api: Scripted HTTP responses keyed by URL path
- fetcher: RateLimitedFetcher over fake_api and mock_clock
- registry: Default source catalog
- session_factory: In-memory SQLite with every table created

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.clock import MockClock
from data_ingestion.fetcher import RateLimitedFetcher
from data_ingestion.sources import SourceRegistry
from data_ingestion.types import MarketSnapshot
from storage.models import Base


FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================
# HTTP
# ============================================================

class FakeApi:
    """
    Scripted upstream APIs for httpx.MockTransport.

    Each path holds a queue of items; the last item repeats once
    the queue is down to one. An item is:
    - dict / list: 200 JSON response
    - Exception instance: raised from the transport
    - callable(request): returns an httpx.Response
    """

    def __init__(self) -> None:
        self.routes: Dict[str, List[Any]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, path: str, *items: Any) -> "FakeApi":
        self.routes.setdefault(path, []).extend(items)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get(request.url.path)
        if not queue:
            return httpx.Response(404, json={"error": f"no route for {request.url.path}"})

        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return httpx.Response(200, json=item)

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def status(code: int, payload: Any = None, text: Optional[str] = None) -> Callable:
    """Item producing a response with the given status."""
    def _respond(request: httpx.Request) -> httpx.Response:
        if text is not None:
            return httpx.Response(code, text=text)
        return httpx.Response(code, json=payload if payload is not None else {})
    return _respond


def timeout(message: str = "timed out") -> httpx.ConnectTimeout:
    return httpx.ConnectTimeout(message)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def mock_clock():
    """Create mock clock at a fixed instant."""
    return MockClock(FIXED_NOW)


@pytest.fixture
def fake_api():
    """Create an empty scripted API."""
    return FakeApi()


@pytest.fixture
def fetcher(fake_api, mock_clock):
    """Create fetcher wired to the scripted API."""
    return RateLimitedFetcher(client=fake_api.client(), clock=mock_clock)


@pytest.fixture
def registry():
    """Create default source registry."""
    return SourceRegistry.default()


@pytest.fixture
def session_factory():
    """Create in-memory SQLite session factory with all tables."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


# ============================================================
# SAMPLE DATA
# ============================================================

def make_snapshot(symbol: str = "BTC", rank: Optional[int] = 1, price: Optional[float] = 65000.0,
                  fetched_at: datetime = FIXED_NOW, **overrides: Any) -> MarketSnapshot:
    """MarketSnapshot with sensible defaults."""
    values = dict(
        symbol=symbol,
        name=overrides.pop("name", symbol.title()),
        rank=rank,
        price=price,
        price_change_1h=0.1,
        price_change_24h=2.5,
        price_change_7d=-1.0,
        price_change_30d=10.0,
        market_cap=1.2e12,
        volume_24h=3.4e10,
        circulating_supply=19_600_000.0,
        total_supply=21_000_000.0,
        max_supply=21_000_000.0,
        ath=73000.0,
        ath_date=None,
        atl=67.8,
        atl_date=None,
        last_updated=fetched_at,
        fetched_at=fetched_at,
    )
    values.update(overrides)
    return MarketSnapshot(**values)


def market_row(symbol: str, rank: int, price: Optional[float] = 100.0) -> Dict[str, Any]:
    """One CoinGecko /coins/markets row."""
    return {
        "id": symbol.lower(),
        "symbol": symbol.lower(),
        "name": symbol.title(),
        "market_cap_rank": rank,
        "current_price": price,
        "price_change_percentage_24h": 1.5,
        "price_change_percentage_1h_in_currency": 0.2,
        "price_change_percentage_7d_in_currency": -3.1,
        "price_change_percentage_30d_in_currency": None,
        "market_cap": 1.0e9,
        "total_volume": 5.0e7,
        "circulating_supply": 1000.0,
        "total_supply": None,
        "max_supply": None,
        "ath": 200.0,
        "ath_date": "2021-11-10T14:24:11.849Z",
        "atl": 1.0,
        "atl_date": "2015-10-20T00:00:00.000Z",
        "last_updated": "2024-03-01T11:59:00.000Z",
    }
