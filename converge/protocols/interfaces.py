"""Protocol definitions - interfaces for dependency injection.

These are typing.Protocol classes for static type checking. Runners consume
Integration and Validation; workflows consume Persistence and the
collaborator protocols. Concrete implementations live in converge.state,
converge.clients and converge.database.
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from converge.protocols.types import ResourceInventory, ValidationError


# =============================================================================
# LOGGING
# =============================================================================

@runtime_checkable
class LoggerProtocol(Protocol):
    """Structured logging interface."""

    def info(self, message: str, **kwargs: Any) -> None: ...
    def debug(self, message: str, **kwargs: Any) -> None: ...
    def warning(self, message: str, **kwargs: Any) -> None: ...
    def error(self, message: str, **kwargs: Any) -> None: ...
    def bind(self, **kwargs: Any) -> "LoggerProtocol": ...


# =============================================================================
# LIFECYCLE CONTRACTS
# =============================================================================

@runtime_checkable
class Integration(Protocol):
    """A convergence workflow driven by IntegrationRunner.

    Phases run strictly in order: setup, current_state, desired_state,
    log_diff, reconcile. Every phase of one cycle receives the same
    inventory. reconcile is skipped in dry-run mode; log_diff is not and
    must not mutate the inventory.
    """

    async def setup(self) -> None: ...
    async def current_state(self, inventory: "ResourceInventory") -> None: ...
    async def desired_state(self, inventory: "ResourceInventory") -> None: ...
    async def reconcile(self, inventory: "ResourceInventory") -> None: ...
    def log_diff(self, inventory: "ResourceInventory") -> None: ...


@runtime_checkable
class Validation(Protocol):
    """A detection-only workflow driven by ValidationRunner.

    A non-empty result is data, not an exception.
    """

    async def setup(self) -> None: ...
    async def validate(self) -> List["ValidationError"]: ...


# =============================================================================
# DURABLE STATE
# =============================================================================

@runtime_checkable
class Persistence(Protocol):
    """Key-addressed store for small serialized records.

    exists() returns False only when the key is definitely absent; backend
    failures raise StateError. get() on a missing key raises
    StateNotFoundError.
    """

    async def exists(self, key: str) -> bool: ...
    async def get(self, key: str) -> Dict[str, Any]: ...
    async def add(self, key: str, value: Any) -> None: ...
    async def rm(self, key: str) -> None: ...


@runtime_checkable
class DatabaseClientProtocol(Protocol):
    """Database client interface used by DatabaseState."""

    async def connect(self) -> None: ...
    async def disconnect(self) -> None: ...
    async def execute(self, query: str, params: Optional[Dict[str, Any]] = None) -> None: ...
    async def fetch_one(self, query: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]: ...
    async def fetch_all(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]: ...
    async def upsert(self, table: str, data: Dict[str, Any], key_columns: List[str]) -> None: ...


# =============================================================================
# COLLABORATORS
# =============================================================================

@runtime_checkable
class SecretStoreProtocol(Protocol):
    """Secret store (Vault KV) interface."""

    async def read_secret(self, path: str) -> Optional[Dict[str, Any]]: ...
    async def list_secrets(self, path: str) -> List[str]: ...
    async def write_secret(self, path: str, data: Dict[str, Any]) -> None: ...
    async def delete_secret(self, path: str) -> None: ...


@runtime_checkable
class FeatureClientProtocol(Protocol):
    """Feature toggle lookup used to gate runner execution."""

    async def is_enabled(self, name: str) -> bool: ...


@runtime_checkable
class MailerProtocol(Protocol):
    """Outbound notification channel."""

    async def send(self, recipient: str, subject: str, body: str) -> None: ...


@runtime_checkable
class PgpCodecProtocol(Protocol):
    """PGP capability: key decoding, validation and message crypto.

    All methods raise PgpError on failure.
    """

    def decode_public_key(self, encoded: str) -> Any: ...
    def test_encrypt(self, key: Any) -> None: ...
    def decrypt(self, encoded_message: str, private_key: str, passphrase: str) -> bytes: ...
    def encrypt(self, key: Any, plaintext: bytes) -> bytes: ...


__all__ = [
    "LoggerProtocol",
    "Integration",
    "Validation",
    "Persistence",
    "DatabaseClientProtocol",
    "SecretStoreProtocol",
    "FeatureClientProtocol",
    "MailerProtocol",
    "PgpCodecProtocol",
]
