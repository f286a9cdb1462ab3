"""
Tests for the market data sync engine.

Layout mirrors the package tree:
- core: clock abstraction
- data_ingestion: fetcher, collectors, chunks, orchestrator, backfill, scheduler
- storage: models, repositories, persistence sink
- scripts: operator entry point
"""
