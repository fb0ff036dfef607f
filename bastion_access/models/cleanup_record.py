"""Cleanup record model.

Outcome of a single step of a cleanup operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class CleanupAction(Enum):
    DETACH = "detach"
    DELETE = "delete"


class CleanupStatus(Enum):
    """Individual step status."""

    PLANNED = "planned"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class CleanupRecord:
    """Cleanup record entity.

    Validation rules:
        - status=failed: requires error_code
        - status=succeeded: no error_code
        - action=delete: resource_family is "security_groups"

    Attributes:
        operation_id: Parent operation identifier
        action: detach (membership rewrite) or delete (group deletion)
        resource_identifier: Resource the action applies to
        resource_family: Resource family (e.g., "db_instances")
        status: Outcome
        timestamp: When the step finished (UTC)
        removed_security_group_ids: Groups removed from the resource (detach only)
        error_code: Canonical error name if failed (optional)
        error_message: Human-readable error if failed (optional)
    """

    operation_id: str
    action: CleanupAction
    resource_identifier: str
    resource_family: str
    status: CleanupStatus
    timestamp: datetime
    removed_security_group_ids: tuple[str, ...] = ()
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def validate(self) -> bool:
        if self.status == CleanupStatus.FAILED and not self.error_code:
            raise ValueError("Failed status requires error_code")
        if self.status == CleanupStatus.SUCCEEDED and self.error_code:
            raise ValueError("Succeeded status cannot have error_code")
        if self.action == CleanupAction.DELETE and self.resource_family != "security_groups":
            raise ValueError("Delete records must refer to security groups")
        return True
