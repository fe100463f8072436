"""
Media storage for post uploads: inline (data URL / raw Base64) or
S3-compatible object storage (Tencent COS).
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Literal, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shared.mime import encode_base64, to_data_url

logger = logging.getLogger(__name__)


class MediaStorageError(Exception):
    pass


@dataclass
class StoredMedia:
    src: str
    storage_path: Optional[str] = None


class MediaStorage(Protocol):
    """Defines the operations the API needs for post media."""

    kind: str

    def store(
        self, post_id: str, file_name: str, data: bytes, mime_type: str
    ) -> StoredMedia:
        ...

    def resolve(self, src: str, storage_path: Optional[str]) -> str:
        ...

    def delete(self, storage_path: Optional[str]) -> None:
        ...


def media_object_path(post_id: str, file_name: str) -> str:
    safe_name = re.sub(r"[^A-Za-z0-9._-]+", "_", posixpath.basename(file_name)) or "file"
    return f"posts/{post_id}/{safe_name}"


@dataclass
class InlineMediaStorage:
    """Keeps media inside the post record itself."""

    format: Literal["data_url", "base64"] = "data_url"
    kind: str = "inline"

    def store(
        self, post_id: str, file_name: str, data: bytes, mime_type: str
    ) -> StoredMedia:
        b64_data = encode_base64(data)
        if self.format == "base64":
            return StoredMedia(src=b64_data)
        return StoredMedia(src=to_data_url(mime_type, b64_data))

    def resolve(self, src: str, storage_path: Optional[str]) -> str:
        return src

    def delete(self, storage_path: Optional[str]) -> None:
        return None


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client for Tencent COS.

    The post record keeps the object path; readers get a presigned URL.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    expires_in: int = 3600
    kind: str = "cos"

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def store(
        self, post_id: str, file_name: str, data: bytes, mime_type: str
    ) -> StoredMedia:
        path = media_object_path(post_id, file_name)
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=mime_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise MediaStorageError(f"Failed to upload {path}: {e}") from e
        logger.info("Uploaded %d bytes to %s", len(data), path)
        return StoredMedia(src=path, storage_path=path)

    def resolve(self, src: str, storage_path: Optional[str]) -> str:
        if not storage_path:
            return src
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": storage_path},
            ExpiresIn=self.expires_in,
        )

    def delete(self, storage_path: Optional[str]) -> None:
        if not storage_path:
            return
        try:
            self._client.delete_object(Bucket=self.bucket, Key=storage_path)
        except (BotoCoreError, ClientError) as e:
            raise MediaStorageError(f"Failed to delete {storage_path}: {e}") from e
