"""User validator - checks user files before they are merged.

Validations:
    validateUsersSinglePath - one org_username per user file
    validateUsersGithub     - the GitHub login exists and matches in case
    validatePgpKeys         - the public key decodes and can encrypt

When a comparison bundle is configured (COMPARE_SHA) only users that are
new or changed against it are validated.
"""

import asyncio
from collections import defaultdict
from typing import Dict, List, Optional

from converge.clients.github import GithubClient
from converge.clients.pgp import PgpCodec
from converge.clients.qontract import QontractClient
from converge.clients.vault import VaultClient
from converge.errors import ClientError, PgpError
from converge.fanout import validate_concurrently
from converge.integrations.queries import (
    GraphQLClientProtocol,
    User,
    get_github_orgs,
    get_users,
)
from converge.logging import get_component_logger
from converge.protocols import (
    LoggerProtocol,
    PgpCodecProtocol,
    SecretStoreProtocol,
    ValidationError,
    concat_validation_errors,
)
from converge.settings import UserValidatorSettings

INTEGRATION_NAME = "user-validator"


def find_users_to_validate(users: List[User], compare_users: List[User]) -> List[User]:
    """Users that are new or differ from the comparison bundle, keyed by path."""
    compare_by_path: Dict[str, User] = {u.path: u for u in compare_users}
    return [u for u in users if compare_by_path.get(u.path) != u]


def validate_users_single_path(users: List[User]) -> List[ValidationError]:
    paths_by_username: Dict[str, List[str]] = defaultdict(list)
    for user in users:
        paths_by_username[user.org_username].append(user.path)

    errors: List[ValidationError] = []
    for username, paths in paths_by_username.items():
        if len(paths) > 1:
            for path in paths:
                errors.append(
                    ValidationError(
                        path=path,
                        validation="validateUsersSinglePath",
                        error=f'user "{username}" has multiple user files',
                    )
                )
    return errors


class UserValidator:
    """Validation over all (or all changed) user files."""

    def __init__(
        self,
        gql: Optional[GraphQLClientProtocol] = None,
        vault: Optional[SecretStoreProtocol] = None,
        github: Optional[GithubClient] = None,
        codec: Optional[PgpCodecProtocol] = None,
        settings: Optional[UserValidatorSettings] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._gql = gql
        self._vault = vault
        self._github = github
        self._codec = codec
        self.settings = settings or UserValidatorSettings()
        self._logger = get_component_logger("user_validator", logger)

    async def setup(self) -> None:
        if self._gql is None:
            self._gql = QontractClient(INTEGRATION_NAME, logger=self._logger)
        if self._codec is None:
            self._codec = PgpCodec()
        if self._github is None:
            if self._vault is None:
                self._vault = VaultClient(logger=self._logger)
            self._github = GithubClient(await self._github_token(), logger=self._logger)

    async def _github_token(self) -> str:
        token_path = ""
        token_field = ""
        for org in await get_github_orgs(self._gql):
            if org.default:
                token_path = org.token.path
                token_field = org.token.field
        secret = await self._vault.read_secret(token_path)
        if secret is None:
            raise ClientError(f'Github Secret "{token_path}" not found')
        return secret[token_field]

    def remove_invalid_users(self, users: List[User]) -> List[User]:
        invalid = set(self.settings.invalid_user_paths)
        kept = []
        for user in users:
            if user.path in invalid:
                self._logger.debug("skipping_invalid_user", path=user.path)
            else:
                kept.append(user)
        return kept

    async def users_to_validate(self) -> List[User]:
        users = self.remove_invalid_users(await get_users(self._gql))
        if not getattr(self._gql, "has_compare", False):
            return users
        compare_users = await get_users(self._gql, compare=True)
        changed = find_users_to_validate(users, compare_users)
        self._logger.info("users_to_validate", total=len(users), changed=len(changed))
        return changed

    async def check_github_user(self, user: User) -> Optional[ValidationError]:
        if not user.github_username:
            self._logger.debug("github_username_missing", path=user.path)
            return None
        try:
            gh_user = await self._github.get_user(user.github_username)
        except ClientError as e:
            self._logger.debug("github_api_error", user=user.org_username, error=str(e))
            return ValidationError(path=user.path, validation="validateUsersGithub", error=str(e))
        login = gh_user.get("login")
        if login != user.github_username:
            return ValidationError(
                path=user.path,
                validation="validateUsersGithub",
                error=(
                    f'Github username is case sensitive in OSD. GithubUsername "{login}", '
                    f'configured Username "{user.github_username}"'
                ),
            )
        return None

    async def check_pgp_key(self, user: User) -> Optional[ValidationError]:
        if not user.public_gpg_key:
            return None
        try:
            await asyncio.to_thread(self._check_key_sync, user.public_gpg_key)
        except PgpError as e:
            return ValidationError(path=user.path, validation="validatePgpKeys", error=str(e))
        return None

    def _check_key_sync(self, encoded: str) -> None:
        key = self._codec.decode_public_key(encoded)
        self._codec.test_encrypt(key)

    async def validate_users_github(self, users: List[User]) -> List[ValidationError]:
        return await validate_concurrently(
            users,
            self.check_github_user,
            self.settings.concurrency,
            logger=self._logger,
            validation="validateUsersGithub",
            path_of=lambda u: u.path,
        )

    async def validate_pgp_keys(self, users: List[User]) -> List[ValidationError]:
        return await validate_concurrently(
            users,
            self.check_pgp_key,
            self.settings.concurrency,
            logger=self._logger,
            validation="validatePgpKeys",
            path_of=lambda u: u.path,
        )

    async def validate(self) -> List[ValidationError]:
        users = await self.users_to_validate()
        errors = validate_users_single_path(users)
        errors = concat_validation_errors(errors, await self.validate_users_github(users))
        errors = concat_validation_errors(errors, await self.validate_pgp_keys(users))
        return errors


__all__ = [
    "INTEGRATION_NAME",
    "UserValidator",
    "find_users_to_validate",
    "validate_users_single_path",
]
