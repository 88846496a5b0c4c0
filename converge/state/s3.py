"""S3State - durable integration state stored as JSON objects in S3.

boto3 is synchronous; every call runs in a worker thread so the event loop
(and the cycle timeout) keeps running while S3 answers.
"""

import asyncio
from typing import Any, Dict, Optional, TYPE_CHECKING

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from converge.errors import StateError, StateNotFoundError
from converge.settings import S3StateSettings
from converge.utils.serialization import from_json, to_json, to_record

if TYPE_CHECKING:
    from converge.protocols import LoggerProtocol

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


def _is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in _NOT_FOUND_CODES or status == 404


def create_s3_client(settings: Optional[S3StateSettings] = None) -> Any:
    """Create a boto3 S3 client from settings."""
    settings = settings or S3StateSettings()
    return boto3.client(
        "s3",
        region_name=settings.region,
        endpoint_url=settings.endpoint_url,
    )


class S3State:
    """Persistence implementation using an S3 bucket.

    Objects live at ``{base_path}/{integration}/{key}``.
    """

    def __init__(
        self,
        integration: str,
        client: Any = None,
        bucket: Optional[str] = None,
        base_path: str = "state",
        logger: Optional["LoggerProtocol"] = None,
    ):
        settings = S3StateSettings() if bucket is None or client is None else None
        self._bucket = bucket if bucket is not None else settings.bucket
        self._client = client if client is not None else create_s3_client(settings)
        self._integration = integration
        self._base_path = base_path
        self._logger = logger

    def key_path(self, key: str) -> str:
        return f"{self._base_path}/{self._integration}/{key}"

    async def exists(self, key: str) -> bool:
        path = self.key_path(key)
        if self._logger:
            self._logger.debug("state_exists", key=path, bucket=self._bucket)
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=self._bucket, Key=path)
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise StateError(f"error checking state key {path}: {e}", key=key) from e
        except BotoCoreError as e:
            raise StateError(f"error checking state key {path}: {e}", key=key) from e
        return True

    async def get(self, key: str) -> Dict[str, Any]:
        path = self.key_path(key)
        if self._logger:
            self._logger.debug("state_get", key=path, bucket=self._bucket)
        try:
            resp = await asyncio.to_thread(self._client.get_object, Bucket=self._bucket, Key=path)
            body = await asyncio.to_thread(resp["Body"].read)
        except ClientError as e:
            if _is_not_found(e):
                raise StateNotFoundError(key) from e
            raise StateError(f"error reading state key {path}: {e}", key=key) from e
        except BotoCoreError as e:
            raise StateError(f"error reading state key {path}: {e}", key=key) from e
        try:
            return from_json(body)
        except ValueError as e:
            raise StateError(f"state key {path} holds invalid JSON", key=key) from e

    async def add(self, key: str, value: Any) -> None:
        path = self.key_path(key)
        if self._logger:
            self._logger.debug("state_add", key=path, bucket=self._bucket)
        body = to_json(to_record(value)).encode("utf-8")
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=path,
                Body=body,
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            raise StateError(f"error writing state key {path}: {e}", key=key) from e

    async def rm(self, key: str) -> None:
        path = self.key_path(key)
        if self._logger:
            self._logger.debug("state_rm", key=path, bucket=self._bucket)
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self._bucket, Key=path)
        except (ClientError, BotoCoreError) as e:
            raise StateError(f"error deleting state key {path}: {e}", key=key) from e
