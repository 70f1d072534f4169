"""Anonymous public file hosts, used as fallbacks when no durable storage accepts the upload."""

import re
from urllib.parse import urlsplit, urlunsplit

import httpx

from .base import BaseUploader
from .utils import safe_filename, to_https

_TRANSFER_SH_URL = re.compile(r"https://transfer\.sh/get/[\w-]+/[^\s/]+")
_ZERO_X_ZERO_URL = re.compile(r"https://0x0\.st/[\w.-]+")
_TMPFILES_URL = re.compile(r"https://tmpfiles\.org/dl/\d+/[^\s/]+")


class TransferShUploader(BaseUploader):
    """`PUT https://transfer.sh/<name>`, answered with the file's URL as plain text."""

    name = "transfer.sh"
    upload_url = "https://transfer.sh"

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Use a shared httpx client."""
        self.client = client

    async def _upload(self, payload: bytes, filename: str, content_type: str) -> str:
        response = await self.client.put(
            f"{self.upload_url}/{safe_filename(filename)}",
            content=payload,
            headers={"Content-Type": content_type},
        )
        response.raise_for_status()
        return response.text

    def _normalize(self, url: str) -> str:
        # transfer.sh/<token>/<name> is a landing page, the bytes live under /get/
        parts = urlsplit(to_https(url))
        if parts.netloc == "transfer.sh" and not parts.path.startswith("/get/"):
            parts = parts._replace(path=f"/get{parts.path}")
        return urlunsplit(parts)

    def _is_public_url(self, url: str) -> bool:
        return _TRANSFER_SH_URL.fullmatch(url) is not None


class ZeroXZeroUploader(BaseUploader):
    """Multipart `POST https://0x0.st`, answered with the file's URL as plain text."""

    name = "0x0.st"
    upload_url = "https://0x0.st"

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Use a shared httpx client."""
        self.client = client

    async def _upload(self, payload: bytes, filename: str, content_type: str) -> str:
        response = await self.client.post(
            self.upload_url,
            files={"file": (safe_filename(filename), payload, content_type)},
        )
        response.raise_for_status()
        return response.text

    def _is_public_url(self, url: str) -> bool:
        return _ZERO_X_ZERO_URL.fullmatch(url) is not None


class TmpfilesUploader(BaseUploader):
    """
    Multipart `POST https://tmpfiles.org/api/v1/upload`.

    Answers with `{"status": "success", "data": {"url": ...}}`, where the URL points to an HTML page.
    """

    name = "tmpfiles"
    upload_url = "https://tmpfiles.org/api/v1/upload"

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Use a shared httpx client."""
        self.client = client

    async def _upload(
        self, payload: bytes, filename: str, content_type: str
    ) -> str | None:
        response = await self.client.post(
            self.upload_url,
            files={"file": (safe_filename(filename), payload, content_type)},
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict) or body.get("status") != "success":
            return None
        data = body.get("data")
        url = data.get("url") if isinstance(data, dict) else None
        return url if isinstance(url, str) else None

    def _normalize(self, url: str) -> str:
        # tmpfiles.org/<id>/<name> is a landing page, tmpfiles.org/dl/<id>/<name> serves the bytes
        parts = urlsplit(to_https(url))
        if parts.netloc == "tmpfiles.org" and not parts.path.startswith("/dl/"):
            parts = parts._replace(path=f"/dl{parts.path}")
        return urlunsplit(parts)

    def _is_public_url(self, url: str) -> bool:
        return _TMPFILES_URL.fullmatch(url) is not None
