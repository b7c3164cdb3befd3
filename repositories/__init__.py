# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Fingerprint store access layer
# PURPOSE: Persisted fingerprint history
# CREATED: 14 OCT 2026
# ============================================================================
"""
Repositories Module

Fingerprint store implementations. Uses psycopg3 (sync).

Usage:
    from repositories import PostgresFingerprintStore
    from infrastructure import PostgreSQLRepository

    store = PostgresFingerprintStore(PostgreSQLRepository())
    if not store.exists():
        store.create_store()
"""

from .fingerprint_repo import (
    DEFAULT_TABLE,
    fingerprint_store_model,
    PostgresFingerprintStore,
    InMemoryFingerprintStore,
)

__all__ = [
    "DEFAULT_TABLE",
    "fingerprint_store_model",
    "PostgresFingerprintStore",
    "InMemoryFingerprintStore",
]
