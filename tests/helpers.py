from typing import Any

from watermark_cleaner.uploaders.base import BaseUploader


class FakeClock:
    """A clock which only advances when `sleep` is awaited."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class StubUploader(BaseUploader):
    """Returns `url` or raises `exc`, counting calls."""

    def __init__(
        self, name: str, url: str | None = None, exc: Exception | None = None
    ) -> None:
        self.name = name
        self.url = url
        self.exc = exc
        self.calls = 0

    async def _upload(
        self, payload: bytes, filename: str, content_type: str
    ) -> str | None:
        self.calls += 1
        if self.exc:
            raise self.exc
        return self.url

    def _is_public_url(self, url: str) -> bool:
        return url.startswith(f"https://{self.name}/")


def job_json(job_id: str = "pred-1", status: str = "starting", **kwargs: Any) -> dict:
    """A prediction body as returned by Replicate."""
    return {
        "id": job_id,
        "status": status,
        "output": None,
        "error": None,
        "logs": "",
        "urls": {"get": f"https://api.replicate.com/v1/predictions/{job_id}"},
        **kwargs,
    }
