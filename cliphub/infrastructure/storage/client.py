"""
Object storage client for clip media.

Supports Cloudflare R2 (S3-compatible) with mock mode for local development.
Using R2 instead of S3 because:
- No egress fees (important for video playback)
- Same S3 API means we could swap to actual S3 if needed

Clients never stream bytes through this service. They upload and play
back directly against the bucket using presigned URLs, so the client
here mostly signs URLs, checks for existence and deletes.

Mock mode keeps objects in memory and signs URLs with a local HMAC key,
enabling API testing without provisioning actual object storage.
"""

import asyncio
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from math import ceil
from typing import Callable, Optional
from urllib.parse import parse_qs, quote, unquote, urlsplit

from ...core.clips.interfaces import ObjectStore
from ...core.clips.models import GrantPermission, StoredObject, utc_now
from ...core.errors import BackendUnavailableError, ClipHubError, ConfigurationError

logger = logging.getLogger(__name__)


class StorageError(ClipHubError):
    """Raised when storage operations fail."""
    pass


class GrantRejectedError(StorageError):
    """Raised when a presented grant does not authorize the operation."""
    status_code = 403


@dataclass
class StorageConfig:
    """
    Configuration for R2/S3-compatible storage.

    Using a dataclass instead of raw parameters means:
    - Configuration is explicit and documented
    - Easy to validate at construction time
    - Simple to create test configurations
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    region: str = "auto"  # R2 uses 'auto' for region

    def missing_fields(self) -> list[str]:
        return [
            name for name in ("access_key_id", "secret_access_key", "bucket_name")
            if not getattr(self, name)
        ]


_CLIENT_METHODS = {
    GrantPermission.READ: "get_object",
    GrantPermission.WRITE_CREATE: "put_object",
}


def _is_missing(error) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    return code in ("404", "NoSuchKey", "NotFound", "NoSuchBucket")


class R2StorageClient:
    """
    Cloudflare R2 object storage client.

    Uses boto3 because R2 is S3-compatible. This abstraction means
    we could swap to actual S3, MinIO, or other S3-compatible storage
    with minimal changes.

    boto3 is synchronous, so network calls run in worker threads. That
    keeps the event loop free and lets concurrent deletes actually overlap.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize R2 client with boto3.

        We import boto3 here (not at module level) because mock mode
        doesn't need it.
        """
        import boto3
        from botocore.config import Config

        self._config = config

        # R2 requires v4 signatures and path-style addressing
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized R2 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    async def ensure_container(self) -> None:
        """
        Create the bucket if it does not exist.

        Safe for concurrent first callers: losing the creation race shows
        up as BucketAlreadyOwnedByYou, which counts as success.
        """
        await self._call("ensure bucket", self._ensure_bucket_sync)

    def _ensure_bucket_sync(self) -> None:
        from botocore.exceptions import ClientError

        try:
            self._s3_client.head_bucket(Bucket=self._config.bucket_name)
            return
        except ClientError as e:
            if not _is_missing(e):
                raise

        try:
            self._s3_client.create_bucket(Bucket=self._config.bucket_name)
            logger.info("Created bucket", extra={"bucket": self._config.bucket_name})
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise

    async def delete_if_exists(self, object_name: str) -> bool:
        """
        Delete one object.

        Returns False when there was nothing to delete; absence is not an
        error because deletes must be safe to repeat.
        """
        existed = await self.exists(object_name)
        if not existed:
            return False

        await self._call(
            "delete object",
            lambda: self._s3_client.delete_object(
                Bucket=self._config.bucket_name,
                Key=object_name,
            ),
            object_name=object_name,
        )
        logger.info("Deleted object", extra={"object_name": object_name})
        return True

    async def exists(self, object_name: str) -> bool:
        from botocore.exceptions import ClientError

        def head() -> bool:
            try:
                self._s3_client.head_object(
                    Bucket=self._config.bucket_name,
                    Key=object_name,
                )
                return True
            except ClientError as e:
                if _is_missing(e):
                    return False
                raise

        return await self._call("head object", head, object_name=object_name)

    async def list_objects(self, prefix: str = "") -> list[StoredObject]:
        """List every object under prefix, following pagination."""

        def list_all() -> list[StoredObject]:
            paginator = self._s3_client.get_paginator('list_objects_v2')
            found = []
            for page in paginator.paginate(Bucket=self._config.bucket_name, Prefix=prefix):
                for obj in page.get('Contents', []):
                    found.append(StoredObject(
                        name=obj['Key'],
                        size_bytes=obj.get('Size', 0),
                        last_modified=obj['LastModified'],
                    ))
            return found

        return await self._call("list objects", list_all)

    def presign(
        self,
        object_name: str,
        permission: GrantPermission,
        valid_from: datetime,
        valid_until: datetime,
        issued_at: Optional[datetime] = None,
    ) -> str:
        """
        Generate a presigned URL for exactly one operation.

        SigV4 stamps the URL with the signing time and S3 applies its own
        clock-skew tolerance, so only the expiry is encoded here.
        Signing is local: no request is made to R2.
        """
        missing = self._config.missing_fields()
        if missing:
            raise ConfigurationError(
                f"Cannot sign object URLs, storage config is missing: {', '.join(missing)}"
            )

        # ExpiresIn is relative, so count from the issuer's clock
        signed_at = issued_at if issued_at is not None else utc_now()
        expires_in = max(1, ceil((valid_until - signed_at).total_seconds()))

        try:
            return self._s3_client.generate_presigned_url(
                _CLIENT_METHODS[permission],
                Params={
                    'Bucket': self._config.bucket_name,
                    'Key': object_name,
                },
                ExpiresIn=expires_in,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"object_name": object_name, "error": str(e)}
            )
            raise StorageError(f"Presigned URL generation failed: {e}")

    async def _call(self, action: str, func: Callable, object_name: Optional[str] = None):
        """Run a blocking boto3 call in a thread and translate its failures."""
        from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError

        try:
            return await asyncio.to_thread(func)
        except EndpointConnectionError as e:
            logger.error(
                "Object storage unreachable",
                extra={"action": action, "endpoint": self._config.endpoint_url, "error": str(e)}
            )
            raise BackendUnavailableError(
                f"Object storage is unreachable at {self._config.endpoint_url}. "
                "Check R2_ENDPOINT_URL / R2_ACCOUNT_ID and network access."
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Object storage call failed",
                extra={"action": action, "object_name": object_name, "error": str(e)}
            )
            raise StorageError(f"Storage {action} failed: {e}")


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

# Microseconds are kept so the enforced window matches the grant exactly
MOCK_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class MockStorageClient:
    """
    In-memory storage for local development.

    This mock enables testing the full API flow without provisioning
    real object storage. Objects live in a dictionary and URLs are
    mock:// URIs carrying an HMAC signature over the object name,
    permission and validity window.

    put_with_grant/get_with_grant play the part of the real object store
    checking a presented URL, so tests can verify that a read grant never
    authorizes a write and vice versa.
    """

    def __init__(
        self,
        bucket_name: str = "cliphub-media",
        signing_key: Optional[bytes] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._bucket_name = bucket_name
        self._signing_key = signing_key if signing_key is not None else secrets.token_bytes(32)
        self._clock = clock
        self._container_exists = False
        # {object_name: (data, last_modified)}
        self._objects: dict[str, tuple[bytes, datetime]] = {}
        logger.info("Initialized mock storage client (in-memory)")

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    @property
    def container_exists(self) -> bool:
        return self._container_exists

    async def ensure_container(self) -> None:
        self._container_exists = True

    async def delete_if_exists(self, object_name: str) -> bool:
        existed = self._objects.pop(object_name, None) is not None
        logger.debug(
            "Deleted object from mock storage",
            extra={"object_name": object_name, "existed": existed}
        )
        return existed

    async def exists(self, object_name: str) -> bool:
        return object_name in self._objects

    async def list_objects(self, prefix: str = "") -> list[StoredObject]:
        return [
            StoredObject(name=name, size_bytes=len(data), last_modified=modified)
            for name, (data, modified) in self._objects.items()
            if name.startswith(prefix)
        ]

    def presign(
        self,
        object_name: str,
        permission: GrantPermission,
        valid_from: datetime,
        valid_until: datetime,
        issued_at: Optional[datetime] = None,
    ) -> str:
        if not self._bucket_name or not self._signing_key:
            raise ConfigurationError("Mock storage has no bucket name or signing key")

        start = valid_from.astimezone(timezone.utc).strftime(MOCK_TIME_FORMAT)
        expiry = valid_until.astimezone(timezone.utc).strftime(MOCK_TIME_FORMAT)
        signature = self._sign(object_name, permission.value, start, expiry)
        return (
            f"mock://{self._bucket_name}/{quote(object_name, safe='')}"
            f"?sp={permission.value}&st={start}&se={expiry}&sig={signature}"
        )

    def put_with_grant(self, url: str, data: bytes) -> str:
        """Write bytes the way a client would, using an upload URL."""
        object_name = self._authorize(url, required="w")
        self._objects[object_name] = (data, self._clock())
        return object_name

    def get_with_grant(self, url: str) -> bytes:
        """Read bytes the way a player would, using a playback URL."""
        object_name = self._authorize(url, required="r")
        if object_name not in self._objects:
            raise StorageError(f"Object not found: {object_name}")
        return self._objects[object_name][0]

    # Helper methods for testing
    def _put(self, object_name: str, data: bytes, last_modified: Optional[datetime] = None) -> None:
        """Place an object directly (for test setup)."""
        self._objects[object_name] = (data, last_modified or self._clock())

    def _sign(self, object_name: str, permission: str, start: str, expiry: str) -> str:
        message = "\n".join((self._bucket_name, object_name, permission, start, expiry))
        return hmac.new(self._signing_key, message.encode(), hashlib.sha256).hexdigest()

    def _authorize(self, url: str, required: str) -> str:
        parts = urlsplit(url)
        if parts.scheme != "mock" or parts.netloc != self._bucket_name:
            raise GrantRejectedError("Grant is for a different bucket")

        object_name = unquote(parts.path.lstrip("/"))
        query = {key: values[0] for key, values in parse_qs(parts.query).items()}
        try:
            permission, start, expiry, signature = (
                query["sp"], query["st"], query["se"], query["sig"]
            )
        except KeyError as e:
            raise GrantRejectedError(f"Grant is missing {e.args[0]}")

        expected = self._sign(object_name, permission, start, expiry)
        if not hmac.compare_digest(expected, signature):
            raise GrantRejectedError("Grant signature does not match")

        if required not in permission:
            raise GrantRejectedError(
                f"Grant permission '{permission}' does not allow this operation"
            )

        now = self._clock()
        valid_from = datetime.strptime(start, MOCK_TIME_FORMAT).replace(tzinfo=timezone.utc)
        valid_until = datetime.strptime(expiry, MOCK_TIME_FORMAT).replace(tzinfo=timezone.utc)
        if not valid_from <= now <= valid_until:
            raise GrantRejectedError("Grant is outside its validity window")

        return object_name


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStore:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        ObjectStore implementation (R2 or Mock)
    """
    if mock_mode:
        bucket = config.bucket_name if config else "cliphub-media"
        return MockStorageClient(bucket_name=bucket)

    if config is None:
        raise ConfigurationError("Storage config is required when not in mock mode")

    return R2StorageClient(config)
