import logging
from collections.abc import Callable, Iterator
from typing import Any

import pytest
import respx

from watermark_cleaner.settings import Settings

# Enable logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.DEBUG
)

API_BASE = "https://api.replicate.com/v1"


@pytest.fixture()
def make_settings() -> Callable[..., Settings]:
    """
    Build settings independent of the environment and any `.env` file.

    Defaults to a configured Replicate model, no Minio and no polling delay.
    """

    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "REPLICATE_API_TOKEN": "r8_test",
            "REPLICATE_MODEL_VERSION": "owner/name:abc123",
            "REPLICATE_INPUT_KEY": "video",
            "REPLICATE_API_BASE": API_BASE,
            "POLL_INTERVAL_S": 0,
            "UPLOAD_BACKENDS": ["transfer.sh", "0x0.st", "tmpfiles"],
            "MINIO_HOST": None,
            "MINIO_ACCESS_KEY": None,
            "MINIO_SECRET_KEY": None,
            "MINIO_BUCKET": None,
            "LOG_LEVEL": "INFO",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)  # pyright: ignore[reportCallIssue]

    return _make


@pytest.fixture()
def replicate_api() -> Iterator[respx.MockRouter]:
    """Mock Replicate's HTTP API. Unmocked requests fail, unused routes are allowed."""
    with respx.mock(base_url=API_BASE, assert_all_called=False) as mock:
        yield mock
