import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, Self

import httpx
from humanize import naturaldelta
from pydantic import SecretStr

from watermark_cleaner.errors import (
    ConfigurationMissingError,
    PredictionFailedError,
    PredictionTimeoutError,
    ProviderRequestError,
)
from watermark_cleaner.settings import Settings
from watermark_cleaner.types import ModelRef, PredictionJob, PredictionResult
from watermark_cleaner.utils.polling import poll_until

from .base import BasePredictor, LogCallback

_logger = logging.getLogger(__name__)

NOT_CONFIGURED_MSG = (
    "Server not configured. Set REPLICATE_API_TOKEN and REPLICATE_MODEL_VERSION."
)


class ReplicatePredictor(BasePredictor):
    """
    Runs the watermark removal model through Replicate's HTTP API.

    A prediction is submitted, then polled every `poll_interval` seconds until it leaves the
    `queued`/`starting`/`processing` states or `timeout` seconds have passed since submission.
    Timed out predictions are abandoned, not cancelled.
    """

    def __init__(  # noqa: PLR0913
        self,
        client: httpx.AsyncClient,
        api_token: SecretStr | None,
        model: ModelRef,
        *,
        input_key: str = "video",
        api_base: str = "https://api.replicate.com/v1",
        poll_interval: float = 2,
        timeout: float = 120,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Prepare a predictor. `sleep` and `clock` drive the polling loop."""
        self.client = client
        self.api_token = api_token
        self.model = model
        self.input_key = input_key
        self.api_base = api_base.rstrip("/")
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.sleep = sleep
        self.clock = clock

    @classmethod
    def from_settings(
        cls, client: httpx.AsyncClient, settings: Settings, **kwargs: Any
    ) -> Self:
        return cls(
            client,
            settings.REPLICATE_API_TOKEN,
            settings.replicate_model,
            input_key=settings.REPLICATE_INPUT_KEY,
            api_base=settings.REPLICATE_API_BASE,
            poll_interval=settings.POLL_INTERVAL_S,
            timeout=settings.PREDICTION_TIMEOUT_S,
            **kwargs,
        )

    def ensure_configured(self) -> None:
        if not self.api_token or not self.model.version:
            raise ConfigurationMissingError(NOT_CONFIGURED_MSG)

    def _headers(self) -> dict[str, str]:
        token = self.api_token.get_secret_value() if self.api_token else ""
        return {"Authorization": f"Bearer {token}"}

    def _submission_request(self, video_url: str) -> tuple[str, dict[str, Any]]:
        """
        Return the endpoint and body for a new prediction.

        The model/version endpoint is preferred, so a fully qualified identifier always runs
        that exact model. A bare version hash goes to the generic endpoint.
        """
        model_input = {self.input_key: video_url}
        if self.model.model:
            endpoint = f"{self.api_base}/models/{self.model.model}/versions/{self.model.version}/predictions"
            return endpoint, {"input": model_input}
        return f"{self.api_base}/predictions", {
            "version": self.model.version,
            "input": model_input,
        }

    async def _request(
        self, method: str, url: str, action: str, **kwargs: Any
    ) -> PredictionJob:
        try:
            response = await self.client.request(
                method, url, headers=self._headers(), **kwargs
            )
        except httpx.HTTPError as e:
            msg = f"Replicate prediction {action} failed: {e!r}"
            raise ProviderRequestError(msg) from e

        if not response.is_success:
            msg = f"Replicate prediction {action} failed: {response.status_code} {response.text}"
            raise ProviderRequestError(msg)

        try:
            return PredictionJob.model_validate(response.json())
        except ValueError as e:
            msg = f"Replicate prediction {action} returned an unreadable body: {response.text[:500]}"
            raise ProviderRequestError(msg) from e

    async def run(
        self, video_url: str, log_cb: LogCallback | None = None
    ) -> PredictionResult:
        """
        Submit a prediction for `video_url` and wait for it to finish.

        Returns the succeeded prediction with the events reported along the way.

        Raises ConfigurationMissingError before any request if credentials are missing,
        ProviderRequestError if Replicate rejects a request, PredictionTimeoutError if the
        prediction is still running after `timeout`, and PredictionFailedError if it ends
        in any state other than `succeeded`.
        """
        self.ensure_configured()
        events: list[str] = []

        async def report(event: str) -> None:
            events.append(event)
            _logger.debug(event)
            if log_cb:
                await log_cb(event)

        endpoint, body = self._submission_request(video_url)
        await report(f"Submitting prediction to {endpoint}, input keys: {list(body['input'])}")

        started_at = self.clock()
        job = await self._request("POST", endpoint, "start", json=body)
        prediction_id = job.id
        await report(f"Prediction {prediction_id} created: {job.status}")

        polls = 0
        last_status = job.status

        async def fetch() -> PredictionJob:
            nonlocal polls, last_status
            polls += 1
            polled = await self._request(
                "GET", f"{self.api_base}/predictions/{prediction_id}", "poll"
            )
            await report(f"Poll {polls}: prediction {prediction_id} is {polled.status}")
            if polled.status != last_status:
                await report(f"Prediction {prediction_id}: {last_status} -> {polled.status}")
                last_status = polled.status
            return polled

        try:
            job = await poll_until(
                job,
                fetch,
                lambda j: j.is_terminal,
                interval=self.poll_interval,
                timeout=self.timeout,
                started_at=started_at,
                sleep=self.sleep,
                clock=self.clock,
            )
        except TimeoutError as e:
            msg = (
                f"Prediction timed out after {naturaldelta(timedelta(seconds=self.timeout))} "
                f"(last status: {last_status})."
            )
            raise PredictionTimeoutError(msg) from e

        if job.status != "succeeded":
            msg = f"Prediction ended with status: {job.status}, error: {job.error or 'unknown'}"
            raise PredictionFailedError(msg)

        await report(f"Prediction {prediction_id} succeeded after {polls} polls")
        return PredictionResult(job=job, events=events)
