# ============================================================================
# BASE REPOSITORY - ERROR HANDLING PATTERNS
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Infrastructure - Base repository patterns
# PURPOSE: Uniform error wrapping and operation logging for fingerprint stores
# CREATED: 14 OCT 2026
# ============================================================================
"""
Base Repository Patterns

Stores never leak driver exceptions: anything raised inside
`_error_context` surfaces as RepositoryError naming the operation and the
object it was about (a SchemaObjectKey string, an owner, a table name).
The original exception stays reachable as __cause__.
"""

import logging
from abc import ABC
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

_MAX_ENTITY_LENGTH = 48


class RepositoryError(Exception):
    """A store operation failed."""

    def __init__(self, message: str, operation: Optional[str] = None, entity_id: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.entity_id = entity_id


class ValidationError(RepositoryError):
    """A stored row could not be turned back into a record."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message, operation="decode")
        self.field = field
        self.value = value


def _short(entity_id: str) -> str:
    if len(entity_id) <= _MAX_ENTITY_LENGTH:
        return entity_id
    return entity_id[:_MAX_ENTITY_LENGTH] + "..."


class BaseRepository(ABC):
    """
    Shared plumbing for stores.

    Subclasses wrap every driver call in `_error_context` and report
    writes through `_log_operation`.
    """

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")

    @contextmanager
    def _error_context(self, operation: str, entity_id: Optional[str] = None) -> Iterator[None]:
        """
        Re-raise failures of the block as RepositoryError.

        RepositoryError (and subclasses) pass through unchanged.

        Example:
            with self._error_context("fingerprint upsert", str(key)):
                self.repo.fetch_one(query, params)
        """
        try:
            yield
        except RepositoryError:
            raise
        except Exception as e:
            target = f" for {_short(entity_id)}" if entity_id else ""
            message = f"{operation} failed{target}: {e}"
            self.logger.error(message)
            raise RepositoryError(message, operation=operation, entity_id=entity_id) from e

    def _log_operation(
        self,
        success: bool,
        operation: str,
        entity_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """DEBUG line for a successful write, WARNING for a failed one."""
        suffix = f" | {details}" if details else ""
        if success:
            self.logger.debug(f"{operation}: {_short(entity_id)}{suffix}")
        else:
            self.logger.warning(f"{operation} failed: {_short(entity_id)}{suffix}")


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "BaseRepository",
    "RepositoryError",
    "ValidationError",
]
