import io
from typing import TYPE_CHECKING

from .base import BaseUploader
from .utils import safe_filename

if TYPE_CHECKING:
    import replicate

REPLICATE_FILES_URL = "https://api.replicate.com/v1/files/"


class ReplicateFilesUploader(BaseUploader):
    """Uploads through Replicate's Files API, which predictions can read from directly."""

    name = "replicate"

    def __init__(self, client: "replicate.Client") -> None:
        """Use an authenticated Replicate client."""
        self.client = client

    async def _upload(
        self, payload: bytes, filename: str, content_type: str
    ) -> str | None:
        file = await self.client.files.async_create(
            io.BytesIO(payload),
            filename=safe_filename(filename),
            content_type=content_type,
        )
        return (file.urls or {}).get("get")

    def _is_public_url(self, url: str) -> bool:
        return url.startswith(REPLICATE_FILES_URL)
