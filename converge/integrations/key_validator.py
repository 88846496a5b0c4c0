"""Key validator - validates the PGP key of a single user file."""

from pathlib import Path
from typing import List, Optional

import yaml

from converge.clients.pgp import PgpCodec
from converge.errors import PgpError
from converge.logging import get_component_logger
from converge.protocols import LoggerProtocol, PgpCodecProtocol, ValidationError
from converge.settings import KeyValidatorSettings

INTEGRATION_NAME = "key-validator"


class KeyValidator:
    def __init__(
        self,
        settings: Optional[KeyValidatorSettings] = None,
        codec: Optional[PgpCodecProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        self.settings = settings or KeyValidatorSettings()
        self._codec = codec or PgpCodec()
        self._logger = get_component_logger("key_validator", logger)

    async def setup(self) -> None:
        pass

    async def validate(self) -> List[ValidationError]:
        userfile = self.settings.userfile
        user = yaml.safe_load(Path(userfile).read_text()) or {}
        org_username = user.get("org_username", "")
        pgp_key = user.get("public_gpg_key") or ""

        if not pgp_key:
            self._logger.info("key_not_provided", user=org_username)
            return []

        try:
            key = self._codec.decode_public_key(pgp_key)
            self._codec.test_encrypt(key)
        except PgpError as e:
            return [ValidationError(path=userfile, validation="validatePgpKeys", error=str(e))]

        self._logger.info("key_valid", user=org_username)
        return []


__all__ = ["INTEGRATION_NAME", "KeyValidator"]
