"""Security group cleanup.

This module revokes bastion access by scrubbing every reference to a set of
security groups across resource families and then deleting the groups.

Classes:
    SecurityGroupCleaner: Main orchestrator for revoke operations
    AuditStorage: Audit log storage and retrieval
"""

from __future__ import annotations

__all__ = [
    "SecurityGroupCleaner",
    "AuditStorage",
]

from .audit import AuditStorage
from .cleaner import SecurityGroupCleaner
