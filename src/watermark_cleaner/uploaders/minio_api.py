import asyncio
import io
import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import PurePosixPath

from humanize import naturalsize
from minio import Minio
from minio.error import S3Error

from .base import BaseUploader
from .policy import Policy
from .utils import safe_filename

_logger = logging.getLogger(__name__)

_BUCKET_EXISTS_CODES = ("BucketAlreadyOwnedByYou", "BucketAlreadyExists")


class MinioUploader(BaseUploader):
    """
    Uploads to a Minio bucket whose `uploads/` prefix is publicly readable.

    The bucket is created, and its policy set, on the first upload.
    """

    name = "minio"
    prefix = "uploads"

    def __init__(
        self,
        host: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        client: Minio | None = None,
    ) -> None:
        """Prepare the Minio client. No requests are made until the first upload."""
        self.host = host
        self.bucket_name = bucket_name
        self.client = client or Minio(host, access_key=access_key, secret_key=secret_key)
        self._bucket_ready = False
        self._bucket_lock = threading.Lock()

    def _construct_minio_url(self, object_name: str) -> str:
        return f"{self.host}/{self.bucket_name}/{object_name}"

    def _destination_name(self, filename: str) -> str:
        """Suffix the current timestamp to the filename, so uploads never overwrite each other."""
        path = PurePosixPath(safe_filename(filename))
        now = datetime.now(tz=UTC).isoformat().replace(":", "-")
        return f"{self.prefix}/{path.stem}_{now}{path.suffix}"

    def _make_bucket(self, bucket_name: str) -> None:
        try:
            self.client.make_bucket(bucket_name)
        except S3Error as e:
            if e.code not in _BUCKET_EXISTS_CODES:
                raise
            _logger.info("Bucket %s was created concurrently", bucket_name)
        else:
            _logger.info("Created bucket %s", bucket_name)

    def _create_bucket_if_not_exists(self) -> None:
        # Uploads run in worker threads, only the first one prepares the bucket
        with self._bucket_lock:
            if self._bucket_ready:
                return

            bucket_name = self.bucket_name
            if not self.client.bucket_exists(bucket_name):
                self._make_bucket(bucket_name)
            else:
                _logger.info("Bucket %s already exists, skipping creation", bucket_name)

            policy = Policy.public_read_only(bucket_name, self.prefix)
            self.client.set_bucket_policy(
                bucket_name, json.dumps(policy, separators=(",", ":"))
            )
            self._bucket_ready = True

    def _put_object(self, payload: bytes, filename: str, content_type: str) -> str:
        if not self._bucket_ready:
            self._create_bucket_if_not_exists()

        object_name = self._destination_name(filename)
        self.client.put_object(
            self.bucket_name,
            object_name,
            io.BytesIO(payload),
            length=len(payload),
            content_type=content_type,
        )
        _logger.info(
            "Uploaded %s (%s) as object %s to bucket %s",
            filename,
            naturalsize(len(payload)),
            object_name,
            self.bucket_name,
        )
        return self._construct_minio_url(object_name)

    async def _upload(self, payload: bytes, filename: str, content_type: str) -> str:
        # The Minio client is blocking
        return await asyncio.to_thread(
            self._put_object, payload, filename, content_type
        )

    def _is_public_url(self, url: str) -> bool:
        return url.startswith(f"https://{self.host}/{self.bucket_name}/{self.prefix}/")
