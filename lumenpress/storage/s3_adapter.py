"""
S3-compatible object store adapter (AWS S3, Cloudflare R2, MinIO).

Directories are emulated with '/'-delimited key prefixes. The boto3 client is
created once per adapter and reused across requests. Automatic retries are
disabled so a misconfigured bucket or endpoint fails loudly on the first call.
"""
import logging
import mimetypes
from typing import Any, List, Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from lumenpress.errors import Forbidden, StorageUnavailable
from lumenpress.storage.base import FileEntry, StorageAdapter, normalize_path

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}
_DELETE_BATCH = 1000


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


def guess_content_type(path: str) -> str:
    content_type, _ = mimetypes.guess_type(path)
    return content_type or "application/octet-stream"


class S3StorageAdapter(StorageAdapter):
    """
    Object-store-backed adapter.

    Single-object PUT is atomic on S3-compatible stores, so a full-blob
    replace is never observed half-written.
    """

    backend_name = "s3"

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        client: Any = None,
        endpoint_url: Optional[str] = None,
        region_name: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ) -> None:
        self.bucket = bucket
        self.prefix = normalize_path(prefix)
        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                region_name=region_name,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                config=Config(retries={"total_max_attempts": 1, "mode": "standard"}),
            )
        self.client = client

    # Key mapping ---------------------------------------------------------------

    def _key(self, path: str) -> str:
        rel = normalize_path(path)
        if self.prefix:
            return f"{self.prefix}/{rel}" if rel else self.prefix
        return rel

    def _dir_key(self, path: str) -> str:
        key = self._key(path)
        return f"{key}/" if key else ""

    def _relative(self, key: str) -> str:
        key = key.rstrip("/")
        if self.prefix and key.startswith(self.prefix + "/"):
            return key[len(self.prefix) + 1:]
        return key

    def _unavailable(self, action: str, path: str, e: Exception) -> StorageUnavailable:
        logger.error(
            f"S3 {action} failed for s3://{self.bucket}/{self._key(path)}: {str(e)}",
            exc_info=True
        )
        return StorageUnavailable(f"S3 {action} failed: {str(e)}", path=path)

    # Contract ------------------------------------------------------------------

    def get(self, path: str) -> Optional[bytes]:
        key = self._key(path)
        if not key:
            return None
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return None
            raise self._unavailable("read", path, e) from e
        except BotoCoreError as e:
            raise self._unavailable("read", path, e) from e

    def put(self, path: str, data: Union[bytes, str], content_type: Optional[str] = None) -> bool:
        key = self._key(path)
        if not normalize_path(path):
            raise Forbidden("Cannot write to the content root itself", path=path)
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=payload,
                ContentType=content_type or guess_content_type(key),
            )
            return True
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("write", path, e) from e

    def _head(self, path: str) -> Optional[dict]:
        key = self._key(path)
        if not key:
            return None
        try:
            return self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return None
            raise self._unavailable("head", path, e) from e
        except BotoCoreError as e:
            raise self._unavailable("head", path, e) from e

    def exists(self, path: str) -> bool:
        if self._head(path) is not None:
            return True
        # No object at the key; it may still be a "directory" prefix
        try:
            response = self.client.list_objects_v2(
                Bucket=self.bucket, Prefix=self._dir_key(path), MaxKeys=1
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("list", path, e) from e
        return response.get("KeyCount", 0) > 0

    def stat(self, path: str) -> Optional[FileEntry]:
        head = self._head(path)
        if head is None:
            return None
        rel = normalize_path(path)
        return FileEntry(
            name=rel.rsplit("/", 1)[-1],
            path=rel,
            is_directory=False,
            size=int(head.get("ContentLength", 0)),
            last_modified=head.get("LastModified"),
        )

    def list(self, prefix: str) -> List[FileEntry]:
        dir_key = self._dir_key(prefix)
        entries: List[FileEntry] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            pages = paginator.paginate(Bucket=self.bucket, Prefix=dir_key, Delimiter="/")
            for page in pages:
                for common in page.get("CommonPrefixes", []):
                    name = common["Prefix"][len(dir_key):].rstrip("/")
                    if not name or name.startswith("."):
                        continue
                    entries.append(FileEntry(
                        name=name,
                        path=self._relative(common["Prefix"]),
                        is_directory=True,
                    ))
                for obj in page.get("Contents", []):
                    name = obj["Key"][len(dir_key):]
                    # Skip the directory placeholder itself and dot-files
                    if not name or "/" in name or name.startswith("."):
                        continue
                    entries.append(FileEntry(
                        name=name,
                        path=self._relative(obj["Key"]),
                        is_directory=False,
                        size=int(obj.get("Size", 0)),
                        last_modified=obj.get("LastModified"),
                    ))
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("list", prefix, e) from e
        entries.sort(key=lambda entry: entry.name)
        return entries

    def create_dir(self, path: str) -> None:
        dir_key = self._dir_key(path)
        if not dir_key:
            return
        try:
            self.client.put_object(Bucket=self.bucket, Key=dir_key, Body=b"")
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("mkdir", path, e) from e

    def delete_dir(self, path: str) -> None:
        if not normalize_path(path):
            raise Forbidden("Refusing to delete the content root", path=path)
        dir_key = self._dir_key(path)
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            keys = []
            for page in paginator.paginate(Bucket=self.bucket, Prefix=dir_key):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
            for start in range(0, len(keys), _DELETE_BATCH):
                batch = keys[start:start + _DELETE_BATCH]
                self.client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
            logger.info(f"Deleted {len(keys)} object(s) under s3://{self.bucket}/{dir_key}")
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("delete", path, e) from e

    def delete(self, path: str) -> None:
        key = self._key(path)
        if not normalize_path(path):
            raise Forbidden("Refusing to delete the content root", path=path)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return
            raise self._unavailable("delete", path, e) from e
        except BotoCoreError as e:
            raise self._unavailable("delete", path, e) from e

    def root_exists(self) -> bool:
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES or _error_code(e) == "NoSuchBucket":
                return False
            raise self._unavailable("head bucket", "", e) from e
        except BotoCoreError as e:
            raise self._unavailable("head bucket", "", e) from e
        if not self.prefix:
            return True
        # Under a prefix the root exists once any key sits below it
        try:
            response = self.client.list_objects_v2(
                Bucket=self.bucket, Prefix=f"{self.prefix}/", MaxKeys=1
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("list", "", e) from e
        return response.get("KeyCount", 0) > 0

    def describe(self) -> str:
        return f"s3://{self.bucket}/{self.prefix}" if self.prefix else f"s3://{self.bucket}"
