"""Audit storage for cleanup operations.

Stores and retrieves audit logs in YAML format for compliance and troubleshooting.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

from ..models.cleanup_operation import CleanupOperation


class AuditStorage:
    """Audit log storage and retrieval.

    Stores cleanup operation audit logs as YAML files organized by year/month.

    Storage structure:
        ~/.bastion-access/audit-logs/
            2025/
                11/
                    operation-op_123.yaml

    Attributes:
        storage_dir: Base directory for audit logs
    """

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        """Initialize audit storage.

        Args:
            storage_dir: Base directory for audit logs (default: ~/.bastion-access/audit-logs)
        """
        if storage_dir is None:
            storage_dir = str(Path.home() / ".bastion-access" / "audit-logs")

        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def log_operation(self, operation: CleanupOperation) -> Path:
        """Write a cleanup operation and its records to the audit log.

        Overwrites an existing log with the same operation ID.

        Returns:
            Path of the written audit file
        """
        year_month_dir = self.storage_dir / str(operation.timestamp.year) / f"{operation.timestamp.month:02d}"
        year_month_dir.mkdir(parents=True, exist_ok=True)

        audit_data = {
            "metadata": {
                "version": "1.0",
                "log_type": "security_group_cleanup",
                "created_at": datetime.utcnow().isoformat() + "Z",
            },
            "operation": {
                "operation_id": operation.operation_id,
                "security_group_ids": list(operation.security_group_ids),
                "timestamp": operation.timestamp.isoformat() + "Z",
                "aws_profile": operation.aws_profile,
                "mode": operation.mode.value,
                "status": operation.status.value,
                "references_found": operation.references_found,
                "detached_count": operation.detached_count,
                "deleted_count": operation.deleted_count,
                "failed_count": operation.failed_count,
                "started_at": operation.started_at.isoformat() + "Z" if operation.started_at else None,
                "completed_at": operation.completed_at.isoformat() + "Z" if operation.completed_at else None,
                "duration_seconds": operation.duration_seconds,
            },
            "records": [
                {
                    "action": record.action.value,
                    "resource_identifier": record.resource_identifier,
                    "resource_family": record.resource_family,
                    "status": record.status.value,
                    "timestamp": record.timestamp.isoformat() + "Z",
                    "removed_security_group_ids": list(record.removed_security_group_ids),
                    "error_code": record.error_code,
                    "error_message": record.error_message,
                }
                for record in operation.records
            ],
        }

        audit_file = year_month_dir / f"operation-{operation.operation_id}.yaml"
        with open(audit_file, "w") as f:
            yaml.dump(audit_data, f, default_flow_style=False, sort_keys=False)
        return audit_file

    def get_operation(self, operation_id: str) -> Optional[dict]:
        """Retrieve operation audit log by ID.

        Returns:
            Audit log dictionary if found, None otherwise
        """
        for audit_file in self.storage_dir.glob(f"*/*/operation-{operation_id}.yaml"):
            with open(audit_file, "r") as f:
                return yaml.safe_load(f)
        return None

    def query_operations(self, since: Optional[datetime] = None, until: Optional[datetime] = None) -> list[dict]:
        """Query operations within date range.

        Args:
            since: Start date (inclusive), None for all
            until: End date (inclusive), None for all

        Returns:
            List of operation audit logs matching criteria, oldest first
        """
        results = []

        for audit_file in sorted(self.storage_dir.glob("*/*/operation-*.yaml")):
            with open(audit_file, "r") as f:
                audit_data = yaml.safe_load(f)

            timestamp = datetime.fromisoformat(audit_data["operation"]["timestamp"].rstrip("Z"))
            if since and timestamp < since:
                continue
            if until and timestamp > until:
                continue

            results.append(audit_data)

        return sorted(results, key=lambda data: data["operation"]["timestamp"])
