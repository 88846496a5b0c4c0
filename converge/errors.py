"""Exception hierarchy for converge.

Phase failures, durable-state failures and collaborator failures each have
their own type so the runner can log them with a stable ``error_type`` and
workflows can react to "not found" without string matching.
"""

from typing import Optional


class ConvergeError(Exception):
    """Base class for all converge errors."""
    pass


class PhaseError(ConvergeError):
    """A lifecycle phase (setup, current_state, ...) failed.

    Raised by the runners so the failing phase travels with the cause.
    """

    def __init__(self, phase: str, cause: BaseException):
        self.phase = phase
        self.cause = cause
        super().__init__(f"error during {phase}: {cause}")


# =============================================================================
# DURABLE STATE
# =============================================================================

class StateError(ConvergeError):
    """The durable state backend could not answer (transport, auth, decode)."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message)


class StateNotFoundError(StateError):
    """The requested key does not exist in durable state."""

    def __init__(self, key: str):
        super().__init__(f"state key not found: {key}", key=key)


# =============================================================================
# COLLABORATORS
# =============================================================================

class ClientError(ConvergeError):
    """An external collaborator (GraphQL, Vault, Unleash, GitHub, SMTP) failed."""
    pass


class SchemaNotAllowedError(ClientError):
    """A GraphQL response used a schema the integration is not allowed to read."""

    def __init__(self, schema: str, integration: str):
        self.schema = schema
        self.integration = integration
        super().__init__(f"usage of schema {schema} not allowed for integration {integration}")


class PgpError(ConvergeError):
    """A PGP key or message could not be decoded, decrypted or encrypted."""
    pass


__all__ = [
    "ConvergeError",
    "PhaseError",
    "StateError",
    "StateNotFoundError",
    "ClientError",
    "SchemaNotAllowedError",
    "PgpError",
]
