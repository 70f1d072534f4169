from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from typing import Any

from watermark_cleaner.errors import ConfigurationMissingError
from watermark_cleaner.types import PredictionResult

type LogCallback = Callable[[str], Coroutine[Any, Any, None]]


class BasePredictor(ABC):
    """Base class for classes running watermark removal on an external inference API."""

    @abstractmethod
    def ensure_configured(self) -> None:
        """Raise ConfigurationMissingError if jobs cannot be submitted."""

    @property
    def configured(self) -> bool:
        try:
            self.ensure_configured()
        except ConfigurationMissingError:
            return False
        return True

    @abstractmethod
    async def run(
        self, video_url: str, log_cb: LogCallback | None = None
    ) -> PredictionResult:
        """
        Remove the watermark from the video at `video_url`, waiting until the job is done.

        `log_cb` is called with a description of every phase of the job.
        """
