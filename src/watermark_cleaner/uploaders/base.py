from abc import ABC, abstractmethod

from watermark_cleaner.errors import UploadFailedError

from .utils import guess_content_type, to_https


class BaseUploader(ABC):
    """Base class for backends that turn a payload into a publicly fetchable URL."""

    name: str

    @abstractmethod
    async def _upload(
        self, payload: bytes, filename: str, content_type: str
    ) -> str | None:
        """
        Upload the payload once.

        Returns the URL found in the backend's response, or None if there was none.
        Raises on transport errors and non-2xx responses.
        """

    @abstractmethod
    def _is_public_url(self, url: str) -> bool:
        """Return whether a normalized URL matches this backend's public link pattern."""

    def _normalize(self, url: str) -> str:
        """Rewrite the backend's URL to its direct download form."""
        return to_https(url)

    async def upload(self, payload: bytes, filename: str) -> str:
        """
        Upload the payload and return its public https URL.

        Raises UploadFailedError if the response has no URL or an unexpected one.
        """
        raw_url = await self._upload(payload, filename, guess_content_type(filename))
        if not raw_url or not raw_url.strip():
            msg = f"{self.name} response did not contain a URL"
            raise UploadFailedError(msg)

        url = to_https(self._normalize(raw_url.strip()))
        if not self._is_public_url(url):
            msg = f"{self.name} returned an unexpected URL: {raw_url[:200]!r}"
            raise UploadFailedError(msg)
        return url
