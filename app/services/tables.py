"""
Persistence interfaces consumed by the credential store and activity logger.
The core never reads the encrypted column; it only passes it through.
"""

from abc import ABC, abstractmethod

from app.models.broker import Platform
from app.models.database import Integration, LogEntry


class IntegrationTable(ABC):
    """Keyed table holding one integration row per (merchant, platform)."""

    @abstractmethod
    def upsert(self, merchant_id: str, platform: Platform, record: Integration) -> Integration:
        """
        Insert or replace the row for (merchant_id, platform).

        Returns:
            Stored row, including id and timestamps
        """
        pass

    @abstractmethod
    def list_by_platform(self, merchant_id: str, platform: Platform) -> list[Integration]:
        """Return every row (active or not) for the merchant and platform."""
        pass

    @abstractmethod
    def get_by_id(self, integration_id: str) -> Integration | None:
        """Return one row by id, or None."""
        pass

    @abstractmethod
    def get_active(self, merchant_id: str, platform: Platform) -> Integration | None:
        """Return the active row for (merchant_id, platform), or None."""
        pass

    @abstractmethod
    def set_active(self, integration_id: str, is_active: bool) -> Integration | None:
        """Flip the active flag on a row. Returns the updated row or None."""
        pass


class LogSink(ABC):
    """Append-only destination for activity log entries."""

    @abstractmethod
    def append(self, entry: LogEntry) -> None:
        pass
