"""
Artifact stores: durable, versioned package storage keyed by logical name.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from controller.src.errors import NotFound, UploadFailure

logger = logging.getLogger(__name__)

class ArtifactStore(ABC):
    """A write must be readable by the time put() returns."""

    @abstractmethod
    async def put(self, name: str, data: bytes) -> str:
        """Store data under name, returning the new version reference."""

    @abstractmethod
    async def get(self, name: str, version: str) -> bytes:
        """Read one version of name."""

    @abstractmethod
    def location(self, name: str, version: str) -> Dict[str, str]:
        """Where a compute backend can fetch this version from."""

class InMemoryArtifactStore(ArtifactStore):
    """Versions each name v1, v2, ... in write order."""

    def __init__(self):
        self._objects: Dict[str, List[bytes]] = {}
        self._lock = asyncio.Lock()

    async def put(self, name: str, data: bytes) -> str:
        async with self._lock:
            versions = self._objects.setdefault(name, [])
            versions.append(bytes(data))
            version = f"v{len(versions)}"
        logger.debug(f"Stored {name} {version} ({len(data)} bytes)")
        return version

    async def get(self, name: str, version: str) -> bytes:
        versions = self._objects.get(name, [])
        try:
            index = int(version.lstrip("v")) - 1
        except ValueError:
            raise NotFound(f"Artifact {name} has no version {version}")
        if index < 0 or index >= len(versions):
            raise NotFound(f"Artifact {name} has no version {version}")
        return versions[index]

    def location(self, name: str, version: str) -> Dict[str, str]:
        return {"store": "memory", "key": name, "version": version}

class S3ArtifactStore(ArtifactStore):
    """Artifact store backed by a versioned S3 bucket."""

    def __init__(self, bucket: str, region: str = None, client: Any = None):
        self.bucket = bucket
        self._s3 = client or boto3.client("s3", region_name=region)

    async def put(self, name: str, data: bytes) -> str:
        return await asyncio.to_thread(self._put, name, data)

    def _put(self, name: str, data: bytes) -> str:
        try:
            response = self._s3.put_object(Bucket=self.bucket, Key=name, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise UploadFailure(f"Failed to upload s3://{self.bucket}/{name}: {e}")

        version = response.get("VersionId")
        if not version or version == "null":
            raise UploadFailure(f"Bucket {self.bucket} is not versioned")

        # Confirm the version is readable before reporting success
        try:
            self._s3.head_object(Bucket=self.bucket, Key=name, VersionId=version)
        except ClientError as e:
            raise UploadFailure(f"Uploaded s3://{self.bucket}/{name} is not readable: {e}")

        logger.info(f"Uploaded s3://{self.bucket}/{name} version {version}")
        return version

    async def get(self, name: str, version: str) -> bytes:
        return await asyncio.to_thread(self._get, name, version)

    def _get(self, name: str, version: str) -> bytes:
        try:
            response = self._s3.get_object(Bucket=self.bucket, Key=name, VersionId=version)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "NoSuchVersion", "404", "InvalidArgument"):
                raise NotFound(f"Artifact s3://{self.bucket}/{name}@{version} not found")
            raise
        return response["Body"].read()

    def location(self, name: str, version: str) -> Dict[str, str]:
        return {"store": "s3", "bucket": self.bucket, "key": name, "version": version}
