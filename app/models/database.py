"""
Pydantic models for Supabase database tables.
These models represent the structure of data stored in Supabase.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.models.broker import IntegrationSummary, OperationResult, Platform


class Integration(BaseModel):
    """Model for integrations table. One active row per (user_id, platform)."""
    id: Optional[str] = None
    user_id: str
    platform: Platform
    store_name: str
    store_url: str
    encrypted_credentials: Optional[str] = Field(default=None, repr=False)
    is_active: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_summary(self) -> IntegrationSummary:
        """Strip the encrypted blob and present the row to the UI."""
        return IntegrationSummary(
            id=str(self.id),
            platform=self.platform,
            store_name=self.store_name,
            store_url=self.store_url,
            status="connected" if self.is_active else "disconnected",
            last_sync=self.updated_at.isoformat() if self.updated_at else None,
            error_message=None,
        )


class SaveResult(OperationResult):
    """Outcome of a credential save; the stored row on success."""
    integration: Optional[Integration] = None


class ListResult(OperationResult):
    """Outcome of an integration listing; rows carry no encrypted blob."""
    integrations: List[Integration] = Field(default_factory=list)


class LogLevel(str, Enum):
    """Activity log levels."""
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
    DEBUG = "DEBUG"


class LogEntry(BaseModel):
    """Model for integration_logs table. Append-only."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    level: LogLevel
    source: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    merchant_id: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        """Shape the entry for the integration_logs table."""
        return {
            "user_id": self.merchant_id,
            "action": f"{self.source.lower()}_operation",
            "status": self.level.value.lower(),
            "message": f"[{self.source}] {self.message}",
            "details": {"level": self.level.value, "source": self.source, "details": self.details},
            "created_at": self.timestamp.isoformat(),
        }
