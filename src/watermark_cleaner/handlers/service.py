import logging
from functools import partial

from watermark_cleaner.predictors.base import BasePredictor
from watermark_cleaner.types import PredictionResult
from watermark_cleaner.uploaders.chain import UploadChain

_logger = logging.getLogger(__name__)


async def _log_progress(progress: str, source: str) -> None:
    _logger.info("[%s] %s", source, progress)


class RemovalService:
    """Removes watermarks from videos given by URL or uploaded as files."""

    def __init__(self, uploader: UploadChain, predictor: BasePredictor) -> None:
        """Combine an upload chain for files with a predictor that does the actual work."""
        self.uploader = uploader
        self.predictor = predictor

    @property
    def configured(self) -> bool:
        return self.predictor.configured

    @property
    def upload_backends(self) -> list[str]:
        return self.uploader.backend_names

    def ensure_configured(self) -> None:
        """Raise ConfigurationMissingError if predictions cannot be run."""
        self.predictor.ensure_configured()

    async def remove_from_url(self, video_url: str) -> PredictionResult:
        """Run the prediction on a publicly reachable video URL."""
        self.ensure_configured()
        _logger.info("Removing watermark from %s", video_url)
        return await self.predictor.run(
            video_url, log_cb=partial(_log_progress, source=video_url)
        )

    async def remove_from_file(self, payload: bytes, filename: str) -> PredictionResult:
        """Upload the file through the upload chain, then run the prediction on its URL."""
        self.ensure_configured()
        url = await self.uploader.upload(payload, filename)
        _logger.info("Uploaded %s to %s", filename, url)
        return await self.remove_from_url(url)
