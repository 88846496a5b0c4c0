"""User validator driven through the ValidationRunner."""

from typing import Dict, List
from unittest.mock import MagicMock

import pytest

from converge.clients.github import GithubClient
from converge.errors import ClientError
from converge.integrations.queries import User
from converge.integrations.user_validator import (
    UserValidator,
    find_users_to_validate,
    validate_users_single_path,
)
from converge.protocols import ValidationError
from converge.runner import ValidationRunner
from converge.settings import RunnerSettings, UserValidatorSettings
from fixtures.fakes import FakeGraphQL, make_user

pytestmark = pytest.mark.integration


class FakeGithub:
    """GitHub lookups answered from a login map; unknown logins 404."""

    def __init__(self, logins: Dict[str, str]):
        self.logins = logins
        self.queried: List[str] = []

    async def get_user(self, login: str) -> Dict[str, str]:
        self.queried.append(login)
        if login not in self.logins:
            raise ClientError(f"GET https://api.github.com/users/{login}: 404 Not Found")
        return {"login": self.logins[login]}


def _user(org: str, **overrides) -> User:
    return User.model_validate(make_user(org, **overrides))


def _validator(gql, github, fake_codec, mock_logger, **settings) -> UserValidator:
    return UserValidator(
        gql=gql,
        github=github,
        codec=fake_codec,
        settings=UserValidatorSettings(concurrency=3, **settings),
        logger=mock_logger,
    )


# =============================================================================
# Pure helpers
# =============================================================================

def test_single_path_flags_every_duplicate_file():
    users = [
        _user("alice"),
        _user("alice", path="/users/alice-2.yml"),
        _user("bob"),
    ]

    errors = validate_users_single_path(users)

    assert errors == [
        ValidationError("/users/alice.yml", "validateUsersSinglePath", 'user "alice" has multiple user files'),
        ValidationError("/users/alice-2.yml", "validateUsersSinglePath", 'user "alice" has multiple user files'),
    ]


def test_find_users_to_validate_keeps_new_and_changed():
    alice, bob, carol = _user("alice"), _user("bob"), _user("carol")
    bob_changed = _user("bob", public_gpg_key="valid-bob-new-key")

    changed = find_users_to_validate([alice, bob_changed, carol], [alice, bob])

    assert changed == [bob_changed, carol]


# =============================================================================
# Full validation
# =============================================================================

class TestValidate:

    @pytest.mark.asyncio
    async def test_clean_users_pass(self, fake_codec, mock_logger):
        gql = FakeGraphQL(users=[make_user("alice"), make_user("bob")])
        github = FakeGithub({"alice": "alice", "bob": "bob"})
        exiter = MagicMock()
        runner = ValidationRunner(
            _validator(gql, github, fake_codec, mock_logger),
            name="user-validator",
            settings=RunnerSettings(),
            logger=mock_logger,
            exiter=exiter,
        )

        result = await runner.run()

        assert result.errors == []
        exiter.assert_called_once_with(0)
        assert sorted(github.queried) == ["alice", "bob"]

    @pytest.mark.asyncio
    async def test_reports_every_kind_of_finding(self, fake_codec, mock_logger):
        gql = FakeGraphQL(
            users=[
                make_user("alice"),
                make_user("bob"),
                make_user("carol"),
                make_user("dave", public_gpg_key="broken-dave-key"),
                make_user("eve", github_username=None),
                make_user("frank"),
                make_user("frank", path="/users/frank-2.yml"),
            ]
        )
        github = FakeGithub({"alice": "alice", "bob": "Bob", "dave": "dave", "eve": "eve", "frank": "frank"})
        exiter = MagicMock()
        runner = ValidationRunner(
            _validator(gql, github, fake_codec, mock_logger),
            name="user-validator",
            settings=RunnerSettings(),
            logger=mock_logger,
            exiter=exiter,
        )

        result = await runner.run()

        exiter.assert_called_once_with(1)
        by_path = {(e.path, e.validation): e.error for e in result.errors}
        assert by_path[("/users/bob.yml", "validateUsersGithub")] == (
            'Github username is case sensitive in OSD. GithubUsername "Bob", '
            'configured Username "bob"'
        )
        assert "404 Not Found" in by_path[("/users/carol.yml", "validateUsersGithub")]
        assert by_path[("/users/dave.yml", "validatePgpKeys")] == "given PGP key is not a Public Key"
        assert ("/users/frank.yml", "validateUsersSinglePath") in by_path
        assert ("/users/frank-2.yml", "validateUsersSinglePath") in by_path
        assert not any(path == "/users/eve.yml" for path, _ in by_path)
        assert "eve" not in github.queried
        assert len(result.errors) == 5

    @pytest.mark.asyncio
    async def test_key_that_cannot_encrypt_is_reported(self, fake_codec, mock_logger):
        gql = FakeGraphQL(users=[make_user("alice", public_gpg_key="valid-noencrypt-key")])
        validator = _validator(gql, FakeGithub({"alice": "alice"}), fake_codec, mock_logger)

        errors = await validator.validate()

        assert [e.validation for e in errors] == ["validatePgpKeys"]
        assert "error encrypting PGP message" in errors[0].error

    @pytest.mark.asyncio
    async def test_invalid_users_are_skipped(self, fake_codec, mock_logger):
        gql = FakeGraphQL(users=[make_user("alice"), make_user("bob")])
        github = FakeGithub({"alice": "alice"})
        validator = _validator(
            gql, github, fake_codec, mock_logger, invalid_users="/users/bob.yml"
        )

        assert await validator.validate() == []
        assert github.queried == ["alice"]

    @pytest.mark.asyncio
    async def test_compare_bundle_limits_validation_to_changes(self, fake_codec, mock_logger):
        gql = FakeGraphQL(
            users=[make_user("alice"), make_user("bob", public_gpg_key="broken-bob-key")],
            compare_users=[make_user("alice"), make_user("bob")],
        )
        github = FakeGithub({"alice": "alice", "bob": "bob"})
        validator = _validator(gql, github, fake_codec, mock_logger)

        errors = await validator.validate()

        assert github.queried == ["bob"]
        assert [(e.path, e.validation) for e in errors] == [("/users/bob.yml", "validatePgpKeys")]

    @pytest.mark.asyncio
    async def test_github_outage_becomes_findings_not_crash(self, fake_codec, mock_logger):
        class Broken:
            async def get_user(self, login):
                raise RuntimeError("socket closed")

        gql = FakeGraphQL(users=[make_user("alice")])
        validator = _validator(gql, Broken(), fake_codec, mock_logger)

        errors = await validator.validate()

        assert errors == [ValidationError("/users/alice.yml", "validateUsersGithub", "socket closed")]


class TestSetup:

    @pytest.mark.asyncio
    async def test_builds_github_client_from_default_org_token(self, fake_vault, fake_codec):
        fake_vault.secrets["github/token"] = {"token": "gh-token"}
        validator = UserValidator(gql=FakeGraphQL(), vault=fake_vault, codec=fake_codec)

        await validator.setup()

        assert isinstance(validator._github, GithubClient)
        await validator._github.aclose()

    @pytest.mark.asyncio
    async def test_missing_token_secret_raises(self, fake_vault, fake_codec):
        validator = UserValidator(gql=FakeGraphQL(), vault=fake_vault, codec=fake_codec)

        with pytest.raises(ClientError, match='Github Secret "github/token" not found'):
            await validator.setup()
