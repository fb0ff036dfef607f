"""Canonical AWS error taxonomy and provider fault classification.

Every provider call goes through :func:`translate_errors`, which maps the
botocore fault code of a ``ClientError`` onto one of the canonical error
classes below. Faults that are not recognized propagate unchanged.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class AwsError(Exception):
    """Base class for canonical AWS errors."""

    default_message = "AWS request failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFoundError(AwsError):
    default_message = "Resource not found"


class AccessDeniedError(AwsError):
    default_message = "Access denied"


class DependencyViolationError(AwsError):
    """A resource is still referenced and cannot be deleted yet."""

    default_message = "Resource has a dependent object"


class TooManySecurityGroupsAttachedError(AwsError):
    default_message = "Too many security groups attached"


class MalformedResponseError(AwsError):
    """The provider response is missing a required field or has the wrong shape."""

    default_message = "Invalid response from AWS"


class ConfigurationFaultError(AwsError):
    """The environment is misconfigured (missing tag, missing security group, VPC mismatch)."""

    default_message = "Invalid configuration"


NOT_FOUND_CODES = frozenset(
    {
        # ElastiCache
        "CacheClusterNotFound",
        "CacheClusterNotFoundFault",
        "ReplicationGroupNotFoundFault",
        "CacheSubnetGroupNotFoundFault",
        # RDS
        "DBInstanceNotFound",
        "DBInstanceNotFoundFault",
        "DBClusterNotFoundFault",
        "DBSubnetGroupNotFoundFault",
        # EC2
        "InvalidGroup.NotFound",
        "InvalidGroupId.NotFound",
        "InvalidInstanceID.NotFound",
    }
)

ACCESS_DENIED_CODES = frozenset({"AccessDenied", "AccessDeniedException", "UnauthorizedOperation"})

DEPENDENCY_VIOLATION_CODES = frozenset({"DependencyViolation"})


def error_code(error: ClientError) -> str:
    """Return the provider fault code of a ClientError."""
    return error.response.get("Error", {}).get("Code", "Unknown")


def error_message(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Message", str(error))


def _mentions_security_groups(message: str) -> bool:
    # ElastiCache reports the per-resource security group limit as an
    # InvalidParameterCombination fault; the message is the only discriminator.
    return "securitygroup" in message.lower().replace(" ", "")


def classify(error: Exception) -> Exception:
    """Map a provider fault to its canonical error.

    Args:
        error: Exception raised by a boto3 call

    Returns:
        Canonical AwsError instance, or ``error`` itself when unrecognized
    """
    if not isinstance(error, ClientError):
        return error

    code = error_code(error)
    message = error_message(error)

    if code in NOT_FOUND_CODES:
        return NotFoundError(message)
    if code in ACCESS_DENIED_CODES:
        return AccessDeniedError(message)
    if code in DEPENDENCY_VIOLATION_CODES:
        return DependencyViolationError(message)
    if code == "InvalidParameterCombination" and _mentions_security_groups(message):
        return TooManySecurityGroupsAttachedError(message)

    return error


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise provider faults as canonical errors.

    Unrecognized faults are re-raised untouched so no diagnostic detail is lost.
    """
    try:
        yield
    except ClientError as error:
        canonical = classify(error)
        if canonical is error:
            raise
        logger.debug(f"Classified {error_code(error)} as {type(canonical).__name__}")
        raise canonical from error


def is_dependency_violation(error: BaseException) -> bool:
    return isinstance(error, DependencyViolationError)
