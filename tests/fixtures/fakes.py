"""Fake collaborators and recording workflows.

The fakes implement the protocols in converge.protocols with plain
in-memory behavior so workflow tests can assert on side effects.
"""

import asyncio
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from converge.errors import ClientError, PgpError
from converge.integrations.queries import (
    GITHUB_ORGS_QUERY,
    PGP_REENCRYPT_SETTINGS_QUERY,
    SMTP_SETTINGS_QUERY,
    USERS_QUERY,
)
from converge.protocols import ResourceInventory, ResourceState, ValidationError


# =============================================================================
# COLLABORATORS
# =============================================================================

class FakeSecretStore:
    """SecretStoreProtocol backed by a dict of path -> data."""

    def __init__(self, secrets: Optional[Dict[str, Dict[str, Any]]] = None):
        self.secrets: Dict[str, Dict[str, Any]] = dict(secrets or {})
        self.deleted: List[str] = []
        self.fail_reads = False

    async def read_secret(self, path: str) -> Optional[Dict[str, Any]]:
        if self.fail_reads:
            raise ClientError(f"vault unavailable reading {path}")
        secret = self.secrets.get(path)
        return dict(secret) if secret is not None else None

    async def list_secrets(self, path: str) -> List[str]:
        prefix = path.rstrip("/") + "/"
        return sorted(
            key[len(prefix):] for key in self.secrets
            if key.startswith(prefix) and "/" not in key[len(prefix):]
        )

    async def write_secret(self, path: str, data: Dict[str, Any]) -> None:
        self.secrets[path] = dict(data)

    async def delete_secret(self, path: str) -> None:
        self.secrets.pop(path, None)
        self.deleted.append(path)


class FakeMailer:
    """MailerProtocol that records messages instead of sending them."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, str]] = []

    async def send(self, recipient: str, subject: str, body: str) -> None:
        self.sent.append((recipient, subject, body))

    @property
    def subjects(self) -> List[str]:
        return [subject for _, subject, _ in self.sent]


class FakeCodec:
    """PgpCodecProtocol with string-transparent 'crypto'.

    Keys starting with ``valid-`` decode; keys containing ``noencrypt``
    decode but cannot encrypt. Everything else is rejected.
    """

    def __init__(self) -> None:
        self.decrypted: List[str] = []
        self.threads: List[int] = []

    def decode_public_key(self, encoded: str) -> Any:
        self.threads.append(threading.get_ident())
        if not encoded.startswith("valid-"):
            raise PgpError("given PGP key is not a Public Key")
        return encoded

    def test_encrypt(self, key: Any) -> None:
        self.encrypt(key, b"Hello World")

    def encrypt(self, key: Any, plaintext: bytes) -> bytes:
        self.threads.append(threading.get_ident())
        if "noencrypt" in key:
            raise PgpError("error encrypting PGP message: key cannot encrypt")
        return f"{key}:".encode() + plaintext

    def decrypt(self, encoded_message: str, private_key: str, passphrase: str) -> bytes:
        self.threads.append(threading.get_ident())
        if passphrase != "service-passphrase":
            raise PgpError("error decrypting PGP message: bad passphrase")
        self.decrypted.append(encoded_message)
        return f"plain({encoded_message})".encode()


class FakeGraphQL:
    """Answers the known queries from canned data.

    ``users`` and ``compare_users`` are lists of dicts shaped like users_v1.
    """

    def __init__(
        self,
        users: Optional[List[Dict[str, Any]]] = None,
        compare_users: Optional[List[Dict[str, Any]]] = None,
        mail_address: str = "example.com",
    ):
        self.users = list(users or [])
        self.compare_users = compare_users
        self.mail_address = mail_address
        self.github_orgs: List[Dict[str, Any]] = [
            {
                "name": "app-sre",
                "token": {"path": "github/token", "field": "token"},
                "default": True,
            }
        ]
        self.queries: List[str] = []

    @property
    def has_compare(self) -> bool:
        return self.compare_users is not None

    async def query(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        compare: bool = False,
    ) -> Dict[str, Any]:
        self.queries.append(query)
        if query == USERS_QUERY:
            if compare:
                return {"users_v1": list(self.compare_users or [])}
            return {"users_v1": list(self.users)}
        if query == PGP_REENCRYPT_SETTINGS_QUERY:
            return {
                "pgp_reencrypt_settings_v1": [
                    {
                        "aws_account_output_vault_path": "output/aws",
                        "reencrypt_vault_path": "import/reencrypt",
                        "private_pgp_key_vault_path": "service/pgp",
                    }
                ]
            }
        if query == SMTP_SETTINGS_QUERY:
            return {
                "settings": [
                    {
                        "smtp": {
                            "mailAddress": self.mail_address,
                            "timeout": 30,
                            "credentials": {"path": "smtp/creds", "field": "all"},
                        }
                    }
                ]
            }
        if query == GITHUB_ORGS_QUERY:
            return {"githuborg_v1": list(self.github_orgs)}
        raise ClientError(f"unexpected query: {query[:40]}")


class FrozenClock:
    """Callable clock that tests move forward explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_user(org_username: str, **overrides: Any) -> Dict[str, Any]:
    user = {
        "path": f"/users/{org_username}.yml",
        "name": org_username.title(),
        "org_username": org_username,
        "github_username": org_username,
        "public_gpg_key": f"valid-{org_username}-key",
    }
    user.update(overrides)
    return user


# =============================================================================
# RECORDING WORKFLOWS
# =============================================================================

class RecordingIntegration:
    """Integration recording the phases it was driven through.

    ``fail_in`` names a phase that raises; ``block_in`` names a phase that
    never returns.
    """

    def __init__(self, fail_in: Optional[str] = None, block_in: Optional[str] = None):
        self.calls: List[str] = []
        self.fail_in = fail_in
        self.block_in = block_in
        self.inventories: List[ResourceInventory] = []

    async def _phase(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_in == name:
            raise RuntimeError(f"{name} exploded")
        if self.block_in == name:
            await asyncio.Event().wait()

    async def setup(self) -> None:
        await self._phase("setup")

    async def current_state(self, inventory: ResourceInventory) -> None:
        self.inventories.append(inventory)
        inventory.add("target", ResourceState(current="old"))
        await self._phase("current_state")

    async def desired_state(self, inventory: ResourceInventory) -> None:
        inventory.ensure("target").desired = "new"
        await self._phase("desired_state")

    def log_diff(self, inventory: ResourceInventory) -> None:
        self.calls.append("log_diff")
        if self.fail_in == "log_diff":
            raise RuntimeError("log_diff exploded")

    async def reconcile(self, inventory: ResourceInventory) -> None:
        await self._phase("reconcile")


class RecordingValidation:
    """Validation returning canned errors, optionally blocking forever."""

    def __init__(
        self,
        errors: Optional[List[ValidationError]] = None,
        fail_in: Optional[str] = None,
        block_in: Optional[str] = None,
    ):
        self.errors = list(errors or [])
        self.fail_in = fail_in
        self.block_in = block_in
        self.setup_called = False
        self.validate_called = False

    async def setup(self) -> None:
        self.setup_called = True
        if self.fail_in == "setup":
            raise RuntimeError("setup exploded")
        if self.block_in == "setup":
            await asyncio.Event().wait()

    async def validate(self) -> List[ValidationError]:
        self.validate_called = True
        if self.fail_in == "validate":
            raise RuntimeError("validate exploded")
        if self.block_in == "validate":
            await asyncio.Event().wait()
        return self.errors


class StaticFeatureClient:
    def __init__(self, enabled: bool = True, error: Optional[Exception] = None):
        self.enabled = enabled
        self.error = error
        self.checked: List[str] = []

    async def is_enabled(self, name: str) -> bool:
        self.checked.append(name)
        if self.error is not None:
            raise self.error
        return self.enabled


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def fake_vault():
    return FakeSecretStore()


@pytest.fixture
def fake_mailer():
    return FakeMailer()


@pytest.fixture
def fake_codec():
    return FakeCodec()


@pytest.fixture
def fake_gql():
    return FakeGraphQL()


@pytest.fixture
def frozen_clock():
    return FrozenClock(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
