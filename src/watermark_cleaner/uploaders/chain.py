import logging
from collections.abc import Sequence

import httpx
import replicate
from humanize import naturalsize

from watermark_cleaner.errors import UploadExhaustedError
from watermark_cleaner.settings import Settings
from watermark_cleaner.types import UploadAttempt

from .base import BaseUploader
from .minio_api import MinioUploader
from .public_hosts import TmpfilesUploader, TransferShUploader, ZeroXZeroUploader
from .replicate_files import ReplicateFilesUploader
from .utils import DEFAULT_FILENAME

_logger = logging.getLogger(__name__)


class UploadChain:
    """
    Tries upload backends in priority order until one returns a public URL.

    Each backend gets exactly one attempt. The chain stops at the first success.
    """

    def __init__(self, uploaders: Sequence[BaseUploader]) -> None:
        """Use `uploaders` in the given order."""
        self.uploaders = list(uploaders)

    @property
    def backend_names(self) -> list[str]:
        return [uploader.name for uploader in self.uploaders]

    @staticmethod
    def _describe_failures(attempts: list[UploadAttempt]) -> str:
        if not attempts:
            return "No upload backends are configured."
        failures = "; ".join(f"{a.backend}: {a.reason}" for a in attempts)
        return f"All upload backends failed ({failures})"

    async def upload(self, payload: bytes, filename: str | None = None) -> str:
        """
        Upload the payload, returning the https URL from the first backend that succeeds.

        Raises UploadExhaustedError naming every backend tried if none succeeded.
        """
        filename = filename or DEFAULT_FILENAME
        size = naturalsize(len(payload))
        attempts: list[UploadAttempt] = []

        for ordinal, uploader in enumerate(self.uploaders, start=1):
            try:
                url = await uploader.upload(payload, filename)
            except Exception as e:  # noqa: BLE001
                attempt = UploadAttempt(
                    backend=uploader.name,
                    ordinal=ordinal,
                    reason=str(e) or type(e).__name__,
                )
                attempts.append(attempt)
                _logger.warning(
                    "Upload attempt %s: %s failed for %s (%s): %s",
                    ordinal,
                    uploader.name,
                    filename,
                    size,
                    attempt.reason,
                )
                continue

            attempt = UploadAttempt(backend=uploader.name, ordinal=ordinal, url=url)
            _logger.info(
                "Upload attempt %s: %s succeeded for %s (%s): %s",
                ordinal,
                attempt.backend,
                filename,
                size,
                attempt.url,
            )
            return url

        raise UploadExhaustedError(self._describe_failures(attempts))


def _build_uploader(
    name: str,
    settings: Settings,
    http_client: httpx.AsyncClient,
    replicate_client: replicate.Client | None,
) -> BaseUploader | None:
    """Return the uploader called `name`, or None if its configuration is missing."""
    match name:
        case "minio":
            if not settings.minio_configured:
                return None
            return MinioUploader(
                host=str(settings.MINIO_HOST),
                access_key=settings.MINIO_ACCESS_KEY.get_secret_value(),  # pyright: ignore[reportOptionalMemberAccess]
                secret_key=settings.MINIO_SECRET_KEY.get_secret_value(),  # pyright: ignore[reportOptionalMemberAccess]
                bucket_name=str(settings.MINIO_BUCKET),
            )
        case "replicate":
            if replicate_client is None:
                return None
            return ReplicateFilesUploader(replicate_client)
        case "transfer.sh":
            return TransferShUploader(http_client)
        case "0x0.st":
            return ZeroXZeroUploader(http_client)
        case "tmpfiles":
            return TmpfilesUploader(http_client)
        case _:
            msg = f"Unknown upload backend {name!r}"
            raise ValueError(msg)


def build_upload_chain(
    settings: Settings,
    http_client: httpx.AsyncClient,
    replicate_client: replicate.Client | None = None,
) -> UploadChain:
    """Build the chain in the order of `settings.UPLOAD_BACKENDS`, skipping unconfigured backends."""
    uploaders = []
    for name in settings.UPLOAD_BACKENDS:
        uploader = _build_uploader(name, settings, http_client, replicate_client)
        if uploader is None:
            _logger.info("Upload backend %s is not configured, skipping", name)
            continue
        uploaders.append(uploader)

    _logger.info("Upload chain: %s", " -> ".join(u.name for u in uploaders) or "empty")
    return UploadChain(uploaders)
