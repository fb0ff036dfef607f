"""Security group cleanup orchestrator.

Removes every reference to a set of security groups from database instances,
database clusters and cache replication groups, then deletes the groups.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from ..aws import ec2, elasticache, rds
from ..aws.client import AwsClient, ResourceFamily
from ..aws.errors import is_dependency_violation
from ..models.cleanup_operation import CleanupOperation, OperationMode, OperationStatus
from ..models.cleanup_record import CleanupAction, CleanupRecord, CleanupStatus
from ..models.target import SecurityGroupReference
from ..utils.retry import retry
from .audit import AuditStorage

logger = logging.getLogger(__name__)


class SecurityGroupCleaner:
    """Security group cleanup orchestrator.

    Resource families are scanned and scrubbed concurrently; within a family,
    resources are modified one at a time. Group deletion is retried while the
    provider still reports a dependency violation, since detached references
    take a while to propagate.

    Running a cleanup twice is safe: the second pass finds no references and
    no remaining groups, so it performs no mutations.

    Attributes:
        client: AWS client
        audit_storage: Audit storage for executed operations (optional)
        retry_delay: Seconds between deletion attempts
        max_retries: Deletion retries after the first attempt
    """

    DEFAULT_RETRY_DELAY = 3.0
    DEFAULT_MAX_RETRIES = 15

    def __init__(
        self,
        client: AwsClient,
        audit_storage: Optional[AuditStorage] = None,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self.client = client
        self.audit_storage = audit_storage
        self.retry_delay = retry_delay
        self.max_retries = max_retries

    async def find_references(self, security_group_ids: Iterable[str]) -> List[SecurityGroupReference]:
        """Find every resource referencing any of the security groups.

        Args:
            security_group_ids: Security groups being decommissioned

        Returns:
            References with each resource's current membership
        """
        group_ids = set(security_group_ids)
        if not group_ids:
            return []

        instances, clusters, replication_groups = await asyncio.gather(
            self._db_instance_references(group_ids),
            self._db_cluster_references(group_ids),
            self._replication_group_references(group_ids),
        )
        return instances + clusters + replication_groups

    async def _db_instance_references(self, group_ids: set[str]) -> List[SecurityGroupReference]:
        memberships = await rds.get_db_instance_memberships(self.client)
        return [
            SecurityGroupReference(identifier, ResourceFamily.DB_INSTANCES.value, security_group_ids)
            for identifier, security_group_ids in memberships
            if group_ids.intersection(security_group_ids)
        ]

    async def _db_cluster_references(self, group_ids: set[str]) -> List[SecurityGroupReference]:
        memberships = await rds.get_db_cluster_memberships(self.client)
        return [
            SecurityGroupReference(identifier, ResourceFamily.DB_CLUSTERS.value, security_group_ids)
            for identifier, security_group_ids in memberships
            if group_ids.intersection(security_group_ids)
        ]

    async def _replication_group_references(self, group_ids: set[str]) -> List[SecurityGroupReference]:
        representatives, cache_security_groups = await asyncio.gather(
            elasticache.get_replication_group_representatives(self.client),
            elasticache.get_cache_cluster_security_groups(self.client),
        )

        references = []
        for replication_group_id, member in representatives:
            # A replication group's membership is read from one member; drift
            # between members is not detected.
            if member is None or member not in cache_security_groups:
                logger.warning(f"Cannot determine security groups of replication group {replication_group_id}, skipping")
                continue

            member_groups = cache_security_groups[member]
            if group_ids.intersection(member_groups):
                references.append(
                    SecurityGroupReference(replication_group_id, ResourceFamily.REPLICATION_GROUPS.value, member_groups)
                )
        return references

    async def revoke_access(
        self,
        security_group_ids: Iterable[str],
        dry_run: bool = False,
        aws_profile: Optional[str] = None,
    ) -> CleanupOperation:
        """Detach the security groups from every resource and delete them.

        Args:
            security_group_ids: Security groups being decommissioned
            dry_run: Only report what would be changed
            aws_profile: AWS profile name recorded in the audit log (optional)

        Returns:
            CleanupOperation describing what was (or would be) done

        Raises:
            DependencyViolationError: If a group is still referenced after all retries
            AwsError: Any other canonical error, which is never retried
        """
        group_ids = sorted(set(security_group_ids))
        operation = CleanupOperation(
            operation_id=f"op_{uuid.uuid4()}",
            security_group_ids=group_ids,
            timestamp=datetime.utcnow(),
            mode=OperationMode.DRY_RUN if dry_run else OperationMode.EXECUTE,
            status=OperationStatus.PLANNED,
            aws_profile=aws_profile,
            started_at=datetime.utcnow(),
        )

        references = await self.find_references(group_ids)
        operation.references_found = len(references)

        if dry_run:
            existing = await ec2.get_existing_security_group_ids(self.client, group_ids)
            operation.records.extend(self._detach_record(operation, ref, group_ids, CleanupStatus.PLANNED) for ref in references)
            operation.records.extend(
                self._delete_record(operation, group_id, CleanupStatus.PLANNED) for group_id in sorted(existing)
            )
            operation.completed_at = datetime.utcnow()
            return operation

        failures: List[BaseException] = []
        try:
            failures = await self._scrub_references(operation, references, set(group_ids))
            if not failures:
                failures = await self._delete_existing_groups(operation, group_ids)
        except Exception as error:
            failures = [error]
            raise
        finally:
            self._finish(operation, failures)

        if failures:
            raise failures[0]
        return operation

    def _finish(self, operation: CleanupOperation, failures: List[BaseException]) -> None:
        if failures:
            operation.status = OperationStatus.PARTIAL if operation.deleted_count else OperationStatus.FAILED
        else:
            operation.status = OperationStatus.COMPLETED
        operation.completed_at = datetime.utcnow()

        if self.audit_storage is not None:
            self.audit_storage.log_operation(operation)

    async def _scrub_references(
        self,
        operation: CleanupOperation,
        references: List[SecurityGroupReference],
        group_ids: set[str],
    ) -> List[BaseException]:
        families = {}
        for reference in references:
            families.setdefault(reference.resource_family, []).append(reference)

        outcomes = await asyncio.gather(
            *(self._scrub_family(operation, family_references, group_ids) for family_references in families.values()),
            return_exceptions=True,
        )
        return [outcome for outcome in outcomes if isinstance(outcome, BaseException)]

    async def _scrub_family(
        self,
        operation: CleanupOperation,
        references: List[SecurityGroupReference],
        group_ids: set[str],
    ) -> None:
        # Sequential within a family: each resource is read-then-written once.
        for reference in references:
            remaining = [group_id for group_id in reference.security_group_ids if group_id not in group_ids]
            if len(remaining) == len(reference.security_group_ids):
                continue

            try:
                await self._modify(reference, remaining)
            except Exception as e:
                operation.records.append(self._detach_record(operation, reference, group_ids, CleanupStatus.FAILED, e))
                logger.error(f"Failed to detach security groups from {reference.resource_identifier}: {e}")
                raise

            operation.detached_count += 1
            operation.records.append(self._detach_record(operation, reference, group_ids, CleanupStatus.SUCCEEDED))

    async def _delete_existing_groups(self, operation: CleanupOperation, group_ids: List[str]) -> List[BaseException]:
        existing = sorted(await ec2.get_existing_security_group_ids(self.client, group_ids))
        outcomes = await asyncio.gather(
            *(self.delete_security_group(group_id) for group_id in existing),
            return_exceptions=True,
        )

        failures = []
        for group_id, outcome in zip(existing, outcomes):
            if isinstance(outcome, BaseException):
                failures.append(outcome)
                operation.failed_count += 1
                operation.records.append(self._delete_record(operation, group_id, CleanupStatus.FAILED, outcome))
                logger.error(f"Failed to delete security group {group_id}: {outcome}")
            else:
                operation.deleted_count += 1
                operation.records.append(self._delete_record(operation, group_id, CleanupStatus.SUCCEEDED))
        return failures

    async def _modify(self, reference: SecurityGroupReference, security_group_ids: List[str]) -> None:
        family = ResourceFamily(reference.resource_family)
        if family == ResourceFamily.DB_INSTANCES:
            await rds.modify_db_instance(self.client, reference.resource_identifier, security_group_ids)
        elif family == ResourceFamily.DB_CLUSTERS:
            await rds.modify_db_cluster(self.client, reference.resource_identifier, security_group_ids)
        else:
            await elasticache.modify_replication_group(self.client, reference.resource_identifier, security_group_ids)

    async def delete_security_group(self, group_id: str) -> None:
        """Delete a security group, retrying only on dependency violations."""
        await retry(
            lambda: ec2.delete_security_group(self.client, group_id),
            delay=self.retry_delay,
            max_retries=self.max_retries,
            should_retry=is_dependency_violation,
        )

    def _detach_record(
        self,
        operation: CleanupOperation,
        reference: SecurityGroupReference,
        group_ids: Iterable[str],
        status: CleanupStatus,
        error: Optional[BaseException] = None,
    ) -> CleanupRecord:
        return CleanupRecord(
            operation_id=operation.operation_id,
            action=CleanupAction.DETACH,
            resource_identifier=reference.resource_identifier,
            resource_family=reference.resource_family,
            status=status,
            timestamp=datetime.utcnow(),
            removed_security_group_ids=tuple(g for g in reference.security_group_ids if g in set(group_ids)),
            error_code=type(error).__name__ if error else None,
            error_message=str(error) if error else None,
        )

    def _delete_record(
        self,
        operation: CleanupOperation,
        group_id: str,
        status: CleanupStatus,
        error: Optional[BaseException] = None,
    ) -> CleanupRecord:
        return CleanupRecord(
            operation_id=operation.operation_id,
            action=CleanupAction.DELETE,
            resource_identifier=group_id,
            resource_family=ResourceFamily.SECURITY_GROUPS.value,
            status=status,
            timestamp=datetime.utcnow(),
            error_code=type(error).__name__ if error else None,
            error_message=str(error) if error else None,
        )
