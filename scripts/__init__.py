"""
Scripts Package.

This package contains operational scripts for the sync engine.

Scripts:
- run_ingestion: Single pass, backfill, or continuous sync
"""

# Scripts are meant to be run directly, not imported
