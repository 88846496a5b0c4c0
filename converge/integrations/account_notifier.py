"""Account notifier - re-encrypts initial AWS console passwords.

New IAM users land in a Vault inbox with a password encrypted for the
service key. Each cycle re-encrypts the password with the user's own
public PGP key, publishes it to durable state and mails the user. Users
whose key cannot be used get a durable record so they are reminded at most
once per day to update it.

Per target (the IAM user name):
    no record or key changed          -> REENCRYPT
    same key, notified < 24h ago      -> SKIP
    same key, notified >= 24h ago     -> NOTIFY_EXPIRED
    user not in the source of truth   -> no desired state (ignored)
"""

import asyncio
import base64
import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, NoReturn, Optional

from converge.clients.mail import SmtpMailer
from converge.clients.pgp import PgpCodec
from converge.clients.qontract import QontractClient
from converge.clients.vault import VaultClient
from converge.errors import ClientError, PgpError, StateError
from converge.integrations.queries import (
    GraphQLClientProtocol,
    get_pgp_reencrypt_settings,
    get_smtp_settings,
    get_users,
)
from converge.logging import get_component_logger
from converge.protocols import (
    LoggerProtocol,
    MailerProtocol,
    Persistence,
    PgpCodecProtocol,
    ResourceInventory,
    ResourceState,
    SecretStoreProtocol,
)
from converge.state import create_state
from converge.utils.serialization import parse_datetime, utc_now

INTEGRATION_NAME = "account-notifier"

NOTIFY_INTERVAL = timedelta(hours=24)

USERFILE_URL = "https://gitlab.cee.redhat.com/service/app-interface/-/blob/master/data"
GPG_GUIDE_URL = "https://gitlab.cee.redhat.com/service/app-interface/-/tree/master/#generating-a-gpg-key"

SUBJECT_PROVISIONED = "AWS Access provisioned"
SUBJECT_EXPIRED = "Action required: Update PGP key"

_SECRET_FIELDS = ("user_name", "console_url", "encrypted_password", "account")


# =============================================================================
# STATE TYPES
# =============================================================================

class NotificationStatus(str, Enum):
    REENCRYPT = "reencrypt"
    SKIP = "skip"
    NOTIFY_EXPIRED = "notify_expired"


@dataclass
class UserSecret:
    """Inbox secret fields."""
    username: str
    console_url: str
    encrypted_password: str
    account: str


@dataclass
class Notification:
    """Current or desired state of one target. Doubles as the durable record."""
    status: NotificationStatus
    secret_path: str
    secret: UserSecret
    email: str = ""
    public_pgp_key: str = ""
    user_path: str = ""
    last_notified_at: Optional[datetime] = None

    def derive(
        self,
        status: NotificationStatus,
        public_pgp_key: str,
        email: str,
        user_path: str = "",
        last_notified_at: Optional[datetime] = None,
    ) -> "Notification":
        return dataclasses.replace(
            self,
            status=status,
            public_pgp_key=public_pgp_key,
            email=email,
            user_path=user_path,
            last_notified_at=last_notified_at or self.last_notified_at,
        )

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Notification":
        return cls(
            status=NotificationStatus(record.get("status", NotificationStatus.REENCRYPT.value)),
            secret_path=record.get("secret_path", ""),
            secret=UserSecret(**record.get("secret", {})),
            email=record.get("email", ""),
            public_pgp_key=record.get("public_pgp_key", ""),
            user_path=record.get("user_path", ""),
            last_notified_at=parse_datetime(record.get("last_notified_at")),
        )


NotificationInventory = ResourceInventory[None, Notification]


def generate_email(console_url: str, username: str, password: str) -> str:
    return f"""
You have been invited to join an AWS account!
Below you will find credentials for the first sign in.
You will be requested to change your password.

The password is encrypted with your public PGP key. To decrypt the password:

echo <password> | base64 -d | gpg -d - && echo
(you will be asked to provide your passphrase to unlock the secret)

Once you are logged in, navigate to the "Security credentials" page [1] and enable MFA [2].
Once you have enabled MFA, sign out and sign in again.

Details:

Console URL: {console_url}
Username: {username}
Encrypted password: {password}

[1] https://console.aws.amazon.com/iam/home#security_credential
[2] https://docs.aws.amazon.com/IAM/latest/UserGuide/id_credentials_mfa.html
"""


def generate_email_expired(path: str) -> str:
    return f"""
Your PGP key on the record has expired and is not valid anymore.
Changing passwords or requesting access to new AWS accounts will no longer work.
Please generate a new one following this guide [1]

Link to userfile: {USERFILE_URL}{path}

[1] {GPG_GUIDE_URL}
"""


def classify(
    record: Optional[Notification],
    public_pgp_key: str,
    now: datetime,
) -> NotificationStatus:
    """Decide what to do for a target given its durable record."""
    if record is None or record.public_pgp_key != public_pgp_key:
        return NotificationStatus.REENCRYPT
    last = record.last_notified_at
    if last is not None and now < last + NOTIFY_INTERVAL:
        return NotificationStatus.SKIP
    return NotificationStatus.NOTIFY_EXPIRED


# =============================================================================
# INTEGRATION
# =============================================================================

class AccountNotifier:
    """Integration re-encrypting inbox passwords for their users.

    Collaborators are injectable; whatever is missing is built in setup()
    from the environment.
    """

    def __init__(
        self,
        gql: Optional[GraphQLClientProtocol] = None,
        vault: Optional[SecretStoreProtocol] = None,
        state: Optional[Persistence] = None,
        codec: Optional[PgpCodecProtocol] = None,
        mailer: Optional[MailerProtocol] = None,
        clock: Callable[[], datetime] = utc_now,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._gql = gql
        self._vault = vault
        self._state = state
        self._codec = codec
        self._mailer = mailer
        self._clock = clock
        self._logger = get_component_logger("account_notifier", logger)

        self.private_pgp_key_path = ""
        self.inbox_path = ""
        self.output_path = ""
        self.mail_address = ""

    async def setup(self) -> None:
        if self._gql is None:
            self._gql = QontractClient(INTEGRATION_NAME, logger=self._logger)
        if self._vault is None:
            self._vault = VaultClient(logger=self._logger)
        if self._state is None:
            self._state = await create_state(INTEGRATION_NAME, logger=self._logger)
        if self._codec is None:
            self._codec = PgpCodec()

        settings = await get_pgp_reencrypt_settings(self._gql)
        self.private_pgp_key_path = settings.private_pgp_key_vault_path
        self.inbox_path = settings.reencrypt_vault_path
        self.output_path = settings.aws_account_output_vault_path

        smtp = await get_smtp_settings(self._gql)
        self.mail_address = smtp.mail_address
        if self._mailer is None:
            credentials = await self._vault.read_secret(smtp.credentials.path)
            if credentials is None:
                raise ClientError(f"smtp credentials not found in vault path: {smtp.credentials.path}")
            self._mailer = SmtpMailer(
                server=credentials["server"],
                port=int(credentials["port"]),
                username=credentials["username"],
                password=credentials["password"],
                timeout=float(smtp.timeout or 60),
                logger=self._logger,
            )

        self._logger.info(
            "account_notifier_setup",
            inbox_path=self.inbox_path,
            private_pgp_key_path=self.private_pgp_key_path,
        )

    def email_address(self, org_username: str) -> str:
        return f"{org_username}@{self.mail_address}"

    async def current_state(self, inventory: NotificationInventory) -> None:
        try:
            keys = await self._vault.list_secrets(self.inbox_path)
        except ClientError as e:
            raise ClientError(
                f"Error while getting list of secrets from import path {self.inbox_path}: {e}"
            ) from e

        for key in keys:
            secret_path = f"{self.inbox_path}/{key}"
            try:
                data = await self._vault.read_secret(secret_path)
            except ClientError as e:
                raise ClientError(f"Error while reading secret {secret_path}: {e}") from e
            missing = [f for f in _SECRET_FIELDS if not isinstance((data or {}).get(f), str)]
            if missing:
                raise ClientError(
                    f"Error while reading secret {secret_path}: missing fields {', '.join(missing)}"
                )

            secret = UserSecret(
                username=data["user_name"],
                console_url=data["console_url"],
                encrypted_password=data["encrypted_password"],
                account=data["account"],
            )
            inventory.add(
                secret.username,
                ResourceState(
                    current=Notification(
                        status=NotificationStatus.REENCRYPT,
                        secret_path=secret_path,
                        secret=secret,
                    )
                ),
            )

    async def desired_state(self, inventory: NotificationInventory) -> None:
        users = {u.org_username: u for u in await get_users(self._gql)}
        now = self._clock()

        for target, resource_state in inventory.items():
            user = users.get(target)
            if user is None:
                self._logger.error(
                    "user_deleted_stale_password",
                    target=target,
                    message="user was deleted, got stale password; manual fix required",
                )
                continue

            record = await self._load_record(target)
            public_pgp_key = user.public_gpg_key or ""
            status = classify(record, public_pgp_key, now)
            self._logger.debug("notification_classified", target=target, status=status.value)

            resource_state.desired = resource_state.current.derive(
                status,
                public_pgp_key,
                self.email_address(user.org_username),
                user_path=user.path,
                last_notified_at=record.last_notified_at if record else None,
            )

    def log_diff(self, inventory: NotificationInventory) -> None:
        for target, resource_state in inventory.items():
            desired = resource_state.desired
            if desired is None:
                self._logger.info("target_ignored", target=target, reason="no_desired_state")
                continue
            event = {
                NotificationStatus.REENCRYPT: "reencrypting",
                NotificationStatus.SKIP: "skipping_notification",
                NotificationStatus.NOTIFY_EXPIRED: "pgp_key_expired_notifying",
            }[desired.status]
            self._logger.info(
                event,
                account=desired.secret.account,
                username=desired.secret.username,
            )

    async def reconcile(self, inventory: NotificationInventory) -> None:
        for target, resource_state in inventory.items():
            desired = resource_state.desired
            if desired is None:
                continue
            if desired.status == NotificationStatus.REENCRYPT:
                await self._reencrypt(target, desired)
            elif desired.status == NotificationStatus.NOTIFY_EXPIRED:
                await self._notify_expired(target, desired)

    # =========================================================================
    # RECONCILE STEPS
    # =========================================================================

    async def _load_record(self, target: str) -> Optional[Notification]:
        try:
            if not await self._state.exists(target):
                return None
            return Notification.from_record(await self._state.get(target))
        except StateError as e:
            raise StateError(f"Error getting state object {target}: {e}", key=target) from e

    async def _set_failed_state(self, target: str, desired: Notification) -> None:
        await self._state.add(target, desired)

    async def _reencrypt(self, target: str, desired: Notification) -> None:
        try:
            service_key = await self._vault.read_secret(self.private_pgp_key_path)
        except ClientError as e:
            raise ClientError(f"Error while reading secret from vault: {e}") from e
        if service_key is None:
            raise ClientError(f"appsre PGP key not found in vault path: {self.private_pgp_key_path}")

        try:
            password = await asyncio.to_thread(
                self._codec.decrypt,
                desired.secret.encrypted_password,
                service_key["private_key"],
                service_key.get("passphrase", ""),
            )
        except PgpError as e:
            raise PgpError(f"Error while decrypting encrypted password: {e}") from e

        try:
            user_key = await asyncio.to_thread(self._codec.decode_public_key, desired.public_pgp_key)
        except PgpError as e:
            await self._fail_with_record(
                target, desired, "Error while decoding and armoring User Public PGP Key, setting state entry", e
            )
        try:
            ciphertext = await asyncio.to_thread(self._codec.encrypt, user_key, password)
        except PgpError as e:
            await self._fail_with_record(
                target, desired, "Error while encrypting password with User Public PGP Key", e
            )

        encoded = base64.b64encode(ciphertext).decode("ascii")
        secret = desired.secret
        output = {
            "console_url": secret.console_url,
            "encrypted_password": encoded,
            "account": secret.account,
            "user_name": secret.username,
        }
        await self._state.add(f"output/{secret.account}/{secret.username}", output)

        try:
            await self._vault.delete_secret(desired.secret_path)
        except ClientError as e:
            raise ClientError(f"Error while deleting initial password from vault: {e}") from e

        if await self._state.exists(target):
            await self._state.rm(target)

        await self._mailer.send(
            desired.email,
            SUBJECT_PROVISIONED,
            generate_email(secret.console_url, secret.username, encoded),
        )
        self._logger.info("password_reencrypted", account=secret.account, username=secret.username)

    async def _fail_with_record(
        self,
        target: str,
        desired: Notification,
        message: str,
        cause: PgpError,
    ) -> NoReturn:
        try:
            await self._set_failed_state(target, desired)
        except StateError as e:
            raise StateError(
                f"{message}: {cause}: Error while setting state entry for broken Public PGP Key: {e}",
                key=target,
            ) from e
        raise PgpError(f"{message}: {cause}") from cause

    async def _notify_expired(self, target: str, desired: Notification) -> None:
        await self._mailer.send(
            desired.email,
            SUBJECT_EXPIRED,
            generate_email_expired(desired.user_path or f"/{desired.secret.username}"),
        )
        desired.last_notified_at = self._clock()
        try:
            await self._set_failed_state(target, desired)
        except StateError as e:
            raise StateError(
                f"Error while setting state entry for broken Public PGP Key: {e}", key=target
            ) from e
        self._logger.info(
            "expired_key_notified",
            account=desired.secret.account,
            username=desired.secret.username,
        )


__all__ = [
    "INTEGRATION_NAME",
    "AccountNotifier",
    "Notification",
    "NotificationStatus",
    "UserSecret",
    "classify",
    "generate_email",
    "generate_email_expired",
]
