"""Cleanup operation model.

Represents one revoke-access run: the security groups being decommissioned,
the references scrubbed from data resources and the group deletions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class OperationMode(Enum):
    """Operation execution mode."""

    DRY_RUN = "dry-run"
    EXECUTE = "execute"


class OperationStatus(Enum):
    """Operation execution status with state transitions."""

    PLANNED = "planned"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class CleanupOperation:
    """Cleanup operation entity.

    State transitions:
        planned (dry-run, nothing mutated)
        completed (all detaches and deletions succeeded)
        partial (some deletions failed)
        failed (a detach failed, or every deletion failed)

    Attributes:
        operation_id: Unique identifier for the operation
        security_group_ids: Security groups being decommissioned
        timestamp: When operation was initiated (UTC)
        mode: dry-run or execute
        status: Final status
        references_found: Number of resources referencing the groups
        detached_count: Number of resources whose membership was rewritten
        deleted_count: Number of security groups deleted
        failed_count: Number of security groups that could not be deleted
        aws_profile: AWS profile used for credentials (optional)
        started_at: When execution started (optional)
        completed_at: When execution completed (optional)
    """

    operation_id: str
    security_group_ids: list[str]
    timestamp: datetime
    mode: OperationMode
    status: OperationStatus
    references_found: int = 0
    detached_count: int = 0
    deleted_count: int = 0
    failed_count: int = 0
    aws_profile: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    records: list = field(default_factory=list)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def validate(self) -> bool:
        """Validate operation invariants.

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if self.completed_at and self.started_at:
            if self.completed_at < self.started_at:
                raise ValueError("Completion time before start time")

        if self.mode == OperationMode.DRY_RUN:
            if self.status != OperationStatus.PLANNED:
                raise ValueError("Dry-run mode must have planned status")
            if self.detached_count or self.deleted_count:
                raise ValueError("Dry-run mode cannot mutate resources")

        if self.deleted_count + self.failed_count > len(self.security_group_ids):
            raise ValueError("More deletions than security groups")

        return True
