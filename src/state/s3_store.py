from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from cryptography.fernet import Fernet, InvalidToken

from common.errors import CorruptRecordError, StoreUnavailableError, WriteConflictError

logger = logging.getLogger(__name__)


DEFAULT_PREFIX = "ledger/"

# Error codes S3 uses when a conditional write loses
_PRECONDITION_CODES = ("PreconditionFailed", "412", "ConditionalRequestConflict", "409")


def _to_fernet(key: str | bytes) -> Fernet:
    """Construct a Fernet instance from a user-provided key.

    The key must be a URL-safe base64-encoded 32-byte key (str or bytes),
    as returned by `cryptography.fernet.Fernet.generate_key()`.
    """
    if isinstance(key, str):
        key_bytes = key.encode("utf-8")
    else:
        key_bytes = key
    return Fernet(key_bytes)


def _error_code(e: ClientError) -> Optional[str]:
    return e.response.get("Error", {}).get("Code")


@dataclass
class S3ObjectRef:
    bucket: str
    key: str


class S3StateStore:
    """
    S3-backed substrate: one object per ledger key, optionally encrypted at rest.

    Usage
    - Provide an S3 bucket, an object-key prefix and optionally a Fernet key.
    - `get(key)` returns the stored bytes, or None if the object does not exist.
    - `put(key, value)` overwrites the object.
    - `get_versioned` / `put_if_match` expose the object ETag so callers can do
      an optimistic read-modify-write. With an ETag, the write uses a
      copy-based conditional update; with `if_match=None` it is a create-only
      put (`If-None-Match: *`). Either precondition failing raises
      WriteConflictError.

    Values are returned exactly as they were put; encryption is transparent.
    """

    def __init__(
        self,
        *,
        s3: Optional[object] = None,
        bucket: str,
        prefix: str = DEFAULT_PREFIX,
        fernet_key: str | bytes | None = None,
        region_name: Optional[str] = None,
    ) -> None:
        self._s3 = s3 or boto3.client("s3", region_name=region_name)
        self._bucket = bucket
        self._prefix = prefix
        self._fernet = _to_fernet(fernet_key) if fernet_key else None

    def _ref(self, key: str) -> S3ObjectRef:
        return S3ObjectRef(bucket=self._bucket, key=f"{self._prefix}{key}")

    def _seal(self, value: bytes) -> bytes:
        return self._fernet.encrypt(value) if self._fernet else value

    def _open(self, body: bytes, ref: S3ObjectRef) -> bytes:
        if not self._fernet:
            return body
        try:
            return self._fernet.decrypt(body)
        except InvalidToken as ex:
            raise CorruptRecordError(
                f"Failed to decrypt s3://{ref.bucket}/{ref.key}: invalid Fernet token"
            ) from ex

    # -------- Core operations --------
    def get(self, key: str) -> Optional[bytes]:
        value, _ = self.get_versioned(key)
        return value

    def get_versioned(self, key: str) -> Tuple[Optional[bytes], Optional[str]]:
        """Read and (if configured) decrypt the object for `key`.

        Returns: (value, etag)
        - If the object is not found, returns (None, None).
        Raises:
        - CorruptRecordError if decryption fails.
        - StoreUnavailableError for any other S3 failure.
        """
        ref = self._ref(key)
        try:
            resp = self._s3.get_object(Bucket=ref.bucket, Key=ref.key)
            body = resp["Body"].read()
        except ClientError as e:
            if _error_code(e) in ("NoSuchKey", "404"):
                return (None, None)
            raise StoreUnavailableError(f"Failed to get state for {key}") from e
        except BotoCoreError as e:
            raise StoreUnavailableError(f"Failed to get state for {key}") from e

        logger.debug(f"s3 get s3://{ref.bucket}/{ref.key} ({len(body)} bytes)")
        return (self._open(body, ref), resp.get("ETag"))

    def put(self, key: str, value: bytes) -> None:
        ref = self._ref(key)
        body = self._seal(value)
        try:
            self._s3.put_object(
                Bucket=ref.bucket,
                Key=ref.key,
                Body=body,
                ContentType="application/octet-stream",
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreUnavailableError(f"Failed to put state for {key}") from e
        logger.debug(f"s3 put s3://{ref.bucket}/{ref.key} ({len(body)} bytes)")

    def put_if_match(self, key: str, value: bytes, *, if_match: Optional[str]) -> str:
        """Encrypt (if configured) and conditionally write `value`; returns the new ETag.

        Args:
        - key: ledger key; stored at `{prefix}{key}`.
        - value: bytes to persist.
        - if_match: expected current ETag of the object. None means the object
          must not exist yet. If the precondition fails, WriteConflictError
          is raised and nothing is written.
        """
        ref = self._ref(key)
        body = self._seal(value)

        # Create-only path: the key was absent when it was read
        if if_match is None:
            try:
                resp = self._s3.put_object(
                    Bucket=ref.bucket,
                    Key=ref.key,
                    Body=body,
                    ContentType="application/octet-stream",
                    IfNoneMatch="*",
                )
            except ClientError as e:
                if _error_code(e) in _PRECONDITION_CODES:
                    raise WriteConflictError(
                        f"Object already exists at s3://{ref.bucket}/{ref.key}"
                    ) from e
                raise StoreUnavailableError(f"Failed to put state for {key}") from e
            except BotoCoreError as e:
                raise StoreUnavailableError(f"Failed to put state for {key}") from e
            logger.debug(f"s3 create s3://{ref.bucket}/{ref.key} ({len(body)} bytes)")
            return str(resp.get("ETag"))

        # Update path:
        # Upload to a temporary key, then COPY over the destination with an
        # If-Match precondition on the destination's current ETag.
        temp_key = f"{ref.key}.tmp-{uuid4().hex}"

        try:
            self._s3.put_object(
                Bucket=ref.bucket,
                Key=temp_key,
                Body=body,
                ContentType="application/octet-stream",
            )
            resp = self._s3.copy_object(
                Bucket=ref.bucket,
                Key=ref.key,
                CopySource={"Bucket": ref.bucket, "Key": temp_key},
                IfMatch=if_match,
                MetadataDirective="COPY",
            )
        except ClientError as e:
            if _error_code(e) in _PRECONDITION_CODES:
                raise WriteConflictError(
                    f"ETag mismatch for s3://{ref.bucket}/{ref.key}"
                ) from e
            raise StoreUnavailableError(f"Failed to put state for {key}") from e
        except BotoCoreError as e:
            raise StoreUnavailableError(f"Failed to put state for {key}") from e
        finally:
            self._delete_temp(ref.bucket, temp_key)

        logger.debug(f"s3 conditional put s3://{ref.bucket}/{ref.key} ({len(body)} bytes)")
        return str(resp.get("ETag"))

    def _delete_temp(self, bucket: str, temp_key: str) -> None:
        try:
            self._s3.delete_object(Bucket=bucket, Key=temp_key)
        except (ClientError, BotoCoreError) as e:
            # Orphaned temp objects are harmless; leave them for lifecycle rules
            logger.warning(f"Failed to delete temporary object s3://{bucket}/{temp_key}: {e}")
