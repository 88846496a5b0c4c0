"""GraphQL queries and result models shared by the integrations."""

from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from converge.errors import ClientError


class GraphQLClientProtocol(Protocol):
    async def query(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        compare: bool = False,
    ) -> Dict[str, Any]: ...


USERS_QUERY = """
query Users {
    users_v1 {
        path
        name
        org_username
        github_username
        slack_username
        pagerduty_username
        public_gpg_key
    }
}
"""

PGP_REENCRYPT_SETTINGS_QUERY = """
query PgpReencryptSettings {
    pgp_reencrypt_settings_v1 {
        aws_account_output_vault_path
        reencrypt_vault_path
        private_pgp_key_vault_path
    }
}
"""

SMTP_SETTINGS_QUERY = """
query SmtpSettings {
    settings: app_interface_settings_v1 {
        smtp {
            mailAddress
            timeout
            credentials {
                path
                field
                version
                format
            }
        }
    }
}
"""

GITHUB_ORGS_QUERY = """
query GithubOrgs {
    githuborg_v1 {
        name
        token {
            path
            field
            version
            format
        }
        default
    }
}
"""


# =============================================================================
# RESULT MODELS
# =============================================================================

class User(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str
    name: str = ""
    org_username: str
    github_username: Optional[str] = None
    slack_username: Optional[str] = None
    pagerduty_username: Optional[str] = None
    public_gpg_key: Optional[str] = None


class VaultSecretRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str
    field: str
    version: Optional[int] = None
    format: Optional[str] = None


class PgpReencryptSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    aws_account_output_vault_path: str
    reencrypt_vault_path: str
    private_pgp_key_vault_path: str


class SmtpSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    mail_address: str = Field(alias="mailAddress")
    timeout: Optional[int] = None
    credentials: VaultSecretRef


class GithubOrg(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    token: VaultSecretRef
    default: Optional[bool] = None


# =============================================================================
# QUERIES
# =============================================================================

async def get_users(gql: GraphQLClientProtocol, compare: bool = False) -> List[User]:
    data = await gql.query(USERS_QUERY, compare=compare)
    return [User.model_validate(u) for u in data.get("users_v1") or []]


async def get_pgp_reencrypt_settings(gql: GraphQLClientProtocol) -> PgpReencryptSettings:
    data = await gql.query(PGP_REENCRYPT_SETTINGS_QUERY)
    settings = data.get("pgp_reencrypt_settings_v1") or []
    if not settings:
        raise ClientError("no pgp_reencrypt_settings_v1 found")
    return PgpReencryptSettings.model_validate(settings[0])


async def get_smtp_settings(gql: GraphQLClientProtocol) -> SmtpSettings:
    data = await gql.query(SMTP_SETTINGS_QUERY)
    settings = data.get("settings") or []
    if not settings or not settings[0].get("smtp"):
        raise ClientError("no smtp settings found in app_interface_settings_v1")
    return SmtpSettings.model_validate(settings[0]["smtp"])


async def get_github_orgs(gql: GraphQLClientProtocol) -> List[GithubOrg]:
    data = await gql.query(GITHUB_ORGS_QUERY)
    return [GithubOrg.model_validate(o) for o in data.get("githuborg_v1") or []]


__all__ = [
    "GraphQLClientProtocol",
    "USERS_QUERY",
    "PGP_REENCRYPT_SETTINGS_QUERY",
    "SMTP_SETTINGS_QUERY",
    "GITHUB_ORGS_QUERY",
    "User",
    "VaultSecretRef",
    "PgpReencryptSettings",
    "SmtpSettings",
    "GithubOrg",
    "get_users",
    "get_pgp_reencrypt_settings",
    "get_smtp_settings",
    "get_github_orgs",
]
