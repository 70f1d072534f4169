import logging

import httpx
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from watermark_cleaner.errors import DownloadFailedError, InvalidRequestError
from watermark_cleaner.uploaders.utils import is_http_url, safe_filename

_logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_NAME = "video.mp4"


class DownloadProxy:
    """Streams a remote file back to the caller as an attachment with a chosen filename."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Use a shared httpx client."""
        self.client = client

    async def stream(self, url: str, filename: str | None = None) -> StreamingResponse:
        """
        Open `url` and return a response streaming its body.

        Raises InvalidRequestError for non-http(s) URLs, DownloadFailedError if the upstream
        cannot be reached or answers with a non-2xx status.
        """
        url = url.strip()
        if not is_http_url(url):
            msg = "Invalid URL."
            raise InvalidRequestError(msg)

        request = self.client.build_request("GET", url)
        try:
            upstream = await self.client.send(request, stream=True, follow_redirects=True)
        except httpx.HTTPError as e:
            msg = f"Failed to download {url}: {e!r}"
            raise DownloadFailedError(msg) from e

        if not upstream.is_success:
            await upstream.aclose()
            msg = f"Failed to download {url}: upstream responded with {upstream.status_code}"
            raise DownloadFailedError(msg)

        name = safe_filename(filename, default=DEFAULT_DOWNLOAD_NAME)
        _logger.info("Proxying download of %s as %s", url, name)
        return StreamingResponse(
            upstream.aiter_bytes(),
            media_type=upstream.headers.get("content-type", "application/octet-stream"),
            headers={"Content-Disposition": f'attachment; filename="{name}"'},
            background=BackgroundTask(upstream.aclose),
        )
