"""Protocols and shared types for converge.

Usage:
    from converge.protocols import Integration, ResourceInventory, ValidationError
"""

from converge.protocols.interfaces import (
    DatabaseClientProtocol,
    FeatureClientProtocol,
    Integration,
    LoggerProtocol,
    MailerProtocol,
    Persistence,
    PgpCodecProtocol,
    SecretStoreProtocol,
    Validation,
)
from converge.protocols.types import (
    CyclePhase,
    CycleResult,
    ResourceInventory,
    ResourceState,
    ValidationError,
    ValidationResult,
    concat_validation_errors,
)

__all__ = [
    # Interfaces
    "LoggerProtocol",
    "Integration",
    "Validation",
    "Persistence",
    "DatabaseClientProtocol",
    "SecretStoreProtocol",
    "FeatureClientProtocol",
    "MailerProtocol",
    "PgpCodecProtocol",
    # Types
    "CyclePhase",
    "CycleResult",
    "ResourceState",
    "ResourceInventory",
    "ValidationError",
    "ValidationResult",
    "concat_validation_errors",
]
