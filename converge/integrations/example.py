"""Example integration - mirrors users' public keys into a directory.

One file per user, named by org_username, holding the public key. Files
of users that no longer exist are deleted.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from converge.clients.qontract import QontractClient
from converge.integrations.queries import GraphQLClientProtocol, get_users
from converge.logging import get_component_logger
from converge.protocols import LoggerProtocol, ResourceInventory, ResourceState
from converge.settings import ExampleSettings

INTEGRATION_NAME = "example"


@dataclass(frozen=True)
class UserFile:
    file_name: str
    gpg_key: str


UserFileInventory = ResourceInventory[None, UserFile]


class Example:
    def __init__(
        self,
        gql: Optional[GraphQLClientProtocol] = None,
        settings: Optional[ExampleSettings] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._gql = gql
        self.settings = settings or ExampleSettings()
        self.workdir = Path(self.settings.tempdir)
        self._logger = get_component_logger("example", logger)

    async def setup(self) -> None:
        self._logger.info("example_setup", workdir=str(self.workdir))
        self.workdir.mkdir(parents=True, exist_ok=True)
        if self._gql is None:
            self._gql = QontractClient(INTEGRATION_NAME, logger=self._logger)

    async def current_state(self, inventory: UserFileInventory) -> None:
        for path in sorted(self.workdir.iterdir()):
            if not path.is_file():
                continue
            self._logger.debug("found_file", file=str(path))
            inventory.add(
                path.name,
                ResourceState(current=UserFile(file_name=path.name, gpg_key=path.read_text())),
            )

    async def desired_state(self, inventory: UserFileInventory) -> None:
        for user in await get_users(self._gql):
            inventory.ensure(user.org_username).desired = UserFile(
                file_name=user.org_username,
                gpg_key=user.public_gpg_key or "",
            )

    def log_diff(self, inventory: UserFileInventory) -> None:
        for _, state in inventory.items():
            if state.is_orphan:
                self._logger.info("deleting", file=state.current.file_name)
            elif state.desired is not None and state.current != state.desired:
                self._logger.info("updating", file=state.desired.file_name)

    async def reconcile(self, inventory: UserFileInventory) -> None:
        for target, state in inventory.items():
            if state.is_orphan:
                (self.workdir / target).unlink(missing_ok=True)
                self._logger.info("file_deleted", file=target)
            elif state.desired is not None and state.current != state.desired:
                (self.workdir / state.desired.file_name).write_text(state.desired.gpg_key)
                self._logger.info("file_written", file=state.desired.file_name)


__all__ = ["INTEGRATION_NAME", "Example", "UserFile"]
