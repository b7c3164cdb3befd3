# ============================================================================
# FINGERPRINT HISTORY
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Fingerprint store contract and history bookkeeping
# PURPOSE: Load stored fingerprints of an owner, record new ones after upgrade
# CREATED: 14 OCT 2026
# EXPORTS: FingerprintStore, HistoryUpdate, load_fingerprints, record_fingerprints
# DEPENDENCIES: core.models.fingerprint
# ============================================================================
"""
Fingerprint History.

The engine never assumes a storage layout; it talks to a FingerprintStore.
Implementations live in repositories.fingerprint_repo.

A missing store (first run, or a pre-existing database that never had one)
reads as "no history": every model object then shows up as new.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ContextManager, Dict, Mapping, Optional, Set

from core.contracts import SchemaObjectKey
from core.models.fingerprint import FingerprintRecord

logger = logging.getLogger(__name__)


class FingerprintStore(ABC):
    """
    Named, typed fingerprint records per logical owner.

    Several owners may share one physical store; every operation is
    filtered by owner.

    Writes made inside transaction() are applied together or not at all.
    """

    @abstractmethod
    def exists(self) -> bool:
        """True if the backing store has been created."""

    @abstractmethod
    def create_store(self) -> None:
        """Create the backing store (idempotent)."""

    @abstractmethod
    def list(self, owner: str) -> Set[FingerprintRecord]:
        """All records of one owner."""

    @abstractmethod
    def upsert(self, owner: str, key: SchemaObjectKey, hash: str) -> FingerprintRecord:
        """Insert or update the record of one object."""

    @abstractmethod
    def delete(self, owner: str, key: SchemaObjectKey) -> None:
        """Remove the record of one object."""

    @abstractmethod
    def transaction(self) -> ContextManager[None]:
        """Context in which upserts and deletes commit or roll back as one unit."""

    def create_record(self, owner: str, key: SchemaObjectKey, hash: str) -> FingerprintRecord:
        """Factory for new records; override to attach store-specific fields."""
        return FingerprintRecord.create(owner, key, hash)


@dataclass
class HistoryUpdate:
    """Result of recording fingerprints."""
    owner: str
    added: int = 0
    updated: int = 0
    removed: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.removed)

    def to_dict(self) -> Dict[str, object]:
        return {
            "owner": self.owner,
            "added": self.added,
            "updated": self.updated,
            "removed": self.removed,
        }


def load_fingerprints(store: FingerprintStore, owner: str) -> Dict[SchemaObjectKey, FingerprintRecord]:
    """
    Stored fingerprints of one owner, keyed by object.

    Returns an empty dict when the store does not exist. Duplicate records
    for one key keep the oldest.
    """
    if not store.exists():
        logger.info(f"Fingerprint store not found, treating owner '{owner}' as having no history")
        return {}

    ordered = sorted(
        store.list(owner),
        key=lambda r: (r.created_at, r.id if r.id is not None else 0),
    )
    result: Dict[SchemaObjectKey, FingerprintRecord] = {}
    for record in ordered:
        if record.owner != owner:
            continue
        if record.key in result:
            logger.warning(f"Ignoring duplicate fingerprint record for {record.key} (owner={owner})")
            continue
        result[record.key] = record
    return result


def record_fingerprints(
    store: FingerprintStore,
    owner: str,
    current: Mapping[SchemaObjectKey, str],
    old: Optional[Mapping[SchemaObjectKey, FingerprintRecord]] = None,
) -> HistoryUpdate:
    """
    Bring the stored history of an owner in line with the current fingerprints.

    Must only be called after the schema upgrade succeeded. All writes run
    in one store transaction: a failure leaves the previous history intact.

    Args:
        store: Fingerprint store
        owner: Logical schema owner
        current: Freshly computed fingerprints
        old: Previously loaded records (loaded from the store when omitted)

    Returns:
        HistoryUpdate with added/updated/removed counts
    """
    if not store.exists():
        store.create_store()
        old = {}
    elif old is None:
        old = load_fingerprints(store, owner)

    update = HistoryUpdate(owner=owner)

    with store.transaction():
        for key, record in old.items():
            if key not in current:
                store.delete(owner, key)
                update.removed += 1
            elif record.hash != current[key]:
                store.upsert(owner, key, current[key])
                update.updated += 1

        for key, hash in current.items():
            if key not in old:
                store.upsert(owner, key, hash)
                update.added += 1

    logger.info(
        f"Recorded fingerprints for '{owner}': "
        f"{update.added} added, {update.updated} updated, {update.removed} removed"
    )
    return update


__all__ = [
    "FingerprintStore",
    "HistoryUpdate",
    "load_fingerprints",
    "record_fingerprints",
]
