"""
Data models for the deletion audit trail.

Every performed deletion is recorded as one entry holding the state of the
row before deletion, the strategy used and a checksum over the entry.
"""

import hashlib
import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import ChecksumAlgorithm
from ..entity.capabilities import DeletionStrategy


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AuditAction(str, Enum):
    """Audit actions recorded for deletions."""

    DELETE = "DELETE"
    SOFT_DELETE = "SOFT_DELETE"
    DEACTIVATE = "DEACTIVATE"
    TOMBSTONE = "TOMBSTONE"

    @classmethod
    def from_strategy(cls, strategy: DeletionStrategy) -> "AuditAction":
        """Map a deletion strategy to the action it performs."""
        return _STRATEGY_ACTIONS[DeletionStrategy(strategy)]


_STRATEGY_ACTIONS = {
    DeletionStrategy.HARD_DELETE: AuditAction.DELETE,
    DeletionStrategy.DELETED_FLAG: AuditAction.SOFT_DELETE,
    DeletionStrategy.ACTIVE_FLAG: AuditAction.DEACTIVATE,
    DeletionStrategy.DELETE_LOG: AuditAction.TOMBSTONE,
}


class DeletionAuditEntry(BaseModel):
    """
    Audit trail entry for one deletion.

    Timestamps are naive UTC so entries read back from any database compare
    and checksum equal to the entries written.
    """

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique identifier for the audit entry",
    )
    timestamp: datetime = Field(
        default_factory=_utcnow, description="UTC timestamp of the deletion"
    )

    user_id: Optional[str] = Field(None, description="ID of the deleting user")

    action: AuditAction = Field(..., description="Type of deletion performed")
    strategy: DeletionStrategy = Field(..., description="Strategy that was applied")
    entity_type: str = Field(..., description="Type of the deleted entity")
    entity_id: str = Field(..., description="ID of the deleted entity")

    snapshot: Dict[str, Any] = Field(
        default_factory=dict, description="Row values before the deletion"
    )
    application: str = Field(..., description="Application name")

    checksum: Optional[str] = Field(
        None, description="Checksum of the entry for integrity verification"
    )

    @field_validator("timestamp")
    @classmethod
    def to_naive_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @field_validator("user_id", "entity_id", mode="before")
    @classmethod
    def to_str(cls, v: Any) -> Any:
        return None if v is None else str(v)

    @field_validator("snapshot", mode="before")
    @classmethod
    def to_json_values(cls, v: Any) -> Any:
        # Stored in JSON columns; dates and decimals become strings
        return json.loads(json.dumps(dict(v or {}), default=str))

    def calculate_checksum(
        self, algorithm: Union[ChecksumAlgorithm, str] = ChecksumAlgorithm.SHA256
    ) -> str:
        """
        Calculate checksum for the audit entry.

        Args:
            algorithm: Hash algorithm to use

        Returns:
            Hex digest of the checksum

        Raises:
            ValueError: If the algorithm is not supported
        """
        algorithm = ChecksumAlgorithm(algorithm)
        data = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
            "action": self.action,
            "strategy": self.strategy,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "snapshot": self.snapshot,
            "application": self.application,
        }
        json_str = json.dumps(data, sort_keys=True, default=str)
        return hashlib.new(algorithm.value, json_str.encode()).hexdigest()

    def seal(
        self, algorithm: Union[ChecksumAlgorithm, str] = ChecksumAlgorithm.SHA256
    ) -> "DeletionAuditEntry":
        """Set the checksum of the entry and return it."""
        self.checksum = self.calculate_checksum(algorithm)
        return self

    def verify_checksum(
        self,
        expected_checksum: Optional[str] = None,
        algorithm: Union[ChecksumAlgorithm, str] = ChecksumAlgorithm.SHA256,
    ) -> bool:
        """
        Verify the integrity of the audit entry.

        Args:
            expected_checksum: Expected checksum value, defaults to the stored one
            algorithm: Hash algorithm used

        Returns:
            True if checksum matches
        """
        expected = expected_checksum or self.checksum
        if expected is None:
            return False
        return self.calculate_checksum(algorithm) == expected

    def to_log_format(self) -> str:
        """Convert to a single log line."""
        return " ".join(
            [
                f"[{self.timestamp.isoformat()}]",
                f"USER={self.user_id}",
                f"ACTION={self.action}",
                f"ENTITY={self.entity_type}:{self.entity_id}",
            ]
        )


class AuditQuery(BaseModel):
    """Query parameters for searching the audit trail."""

    entity_type: Optional[str] = Field(None, description="Filter by entity type")
    entity_id: Optional[str] = Field(None, description="Filter by entity ID")
    user_id: Optional[str] = Field(None, description="Filter by user ID")
    action: Optional[AuditAction] = Field(None, description="Filter by action")

    limit: int = Field(100, description="Maximum results to return", gt=0, le=1000)
    offset: int = Field(0, description="Result offset for pagination", ge=0)

    @field_validator("entity_id", "user_id", mode="before")
    @classmethod
    def to_str(cls, v: Any) -> Any:
        return None if v is None else str(v)

    def matches(self, entry: DeletionAuditEntry) -> bool:
        """Check if an entry passes the filters."""
        return (
            (self.entity_type is None or entry.entity_type == self.entity_type)
            and (self.entity_id is None or entry.entity_id == self.entity_id)
            and (self.user_id is None or entry.user_id == self.user_id)
            and (self.action is None or entry.action == self.action)
        )
