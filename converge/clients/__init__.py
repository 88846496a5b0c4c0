"""Thin clients for the collaborators integrations talk to.

- QontractClient - GraphQL configuration source with schema allowlist
- VaultClient    - secret store (SecretStoreProtocol)
- UnleashClient  - feature toggles (FeatureClientProtocol)
- GithubClient   - GitHub user lookups
- SmtpMailer     - notification mail (MailerProtocol)
- PgpCodec       - PGP keys and messages (PgpCodecProtocol)
"""

from converge.clients.github import GithubClient
from converge.clients.mail import SmtpMailer
from converge.clients.pgp import PgpCodec
from converge.clients.qontract import QontractClient
from converge.clients.unleash import Feature, UnleashClient
from converge.clients.vault import VaultClient

__all__ = [
    "Feature",
    "GithubClient",
    "PgpCodec",
    "QontractClient",
    "SmtpMailer",
    "UnleashClient",
    "VaultClient",
]
