"""
Storage Package.

This package manages all data persistence for the sync engine.

Modules:
- database: Engine and session management
- models/: One table per entity type plus the chunk index
- repositories/: Upsert and append data access
- sink: PersistenceSink, the single write path
"""
