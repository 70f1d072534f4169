import json

import httpx
import pytest
import pytest_asyncio
import respx
from helpers import FakeClock, job_json
from pydantic import SecretStr

from watermark_cleaner.errors import (
    ConfigurationMissingError,
    PredictionFailedError,
    PredictionTimeoutError,
    ProviderRequestError,
)
from watermark_cleaner.predictors.replicate import ReplicatePredictor
from watermark_cleaner.settings import parse_model_version

VIDEO_URL = "https://example.com/in.mp4"
OUTPUT_URL = "https://cdn.example.com/out.mp4"
MODEL_ENDPOINT = "/models/owner/name/versions/abc123/predictions"


@pytest_asyncio.fixture()
async def client():
    async with httpx.AsyncClient() as _client:
        yield _client


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_predictor(client: httpx.AsyncClient, clock: FakeClock):
    def _make(model_version: str = "owner/name:abc123", **kwargs) -> ReplicatePredictor:
        kwargs.setdefault("api_token", SecretStr("r8_test"))
        return ReplicatePredictor(
            client,
            model=parse_model_version(model_version),
            sleep=clock.sleep,
            clock=clock,
            **kwargs,
        )

    return _make


def _poll_route(replicate_api: respx.MockRouter, *statuses: str, **kwargs) -> respx.Route:
    responses = [
        httpx.Response(200, json=job_json(status=status, **kwargs)) for status in statuses
    ]
    return replicate_api.get("/predictions/pred-1").mock(side_effect=responses)


@pytest.mark.asyncio()
async def test_immediate_success_skips_polling(replicate_api, make_predictor, clock):
    replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(201, json=job_json(status="succeeded", output=OUTPUT_URL))
    )
    poll = replicate_api.get("/predictions/pred-1")

    result = await make_predictor().run(VIDEO_URL)

    assert result.job.output == OUTPUT_URL
    assert not poll.called
    assert clock.sleeps == []


@pytest.mark.asyncio()
async def test_polls_until_succeeded(replicate_api, make_predictor, clock):
    replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(201, json=job_json(status="processing"))
    )
    poll = replicate_api.get("/predictions/pred-1").mock(
        side_effect=[
            httpx.Response(200, json=job_json(status="processing")),
            httpx.Response(
                200, json=job_json(status="succeeded", output=OUTPUT_URL, logs="done")
            ),
        ]
    )

    result = await make_predictor(poll_interval=2).run(VIDEO_URL)

    assert poll.call_count == 2
    assert clock.sleeps == [2, 2]
    assert result.job.status == "succeeded"
    assert result.job.output == OUTPUT_URL
    assert result.job.logs == "done"
    assert poll.calls.last.request.headers["authorization"] == "Bearer r8_test"


@pytest.mark.asyncio()
async def test_timeout_stops_polling(replicate_api, make_predictor, clock):
    replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(201, json=job_json(status="starting"))
    )
    poll = replicate_api.get("/predictions/pred-1").mock(
        side_effect=lambda request: httpx.Response(200, json=job_json(status="processing"))
    )

    with pytest.raises(PredictionTimeoutError, match="timed out"):
        await make_predictor(poll_interval=2, timeout=6).run(VIDEO_URL)

    # Polls at t=2, 4, 6 and 8; the budget is exhausted before a fifth
    assert poll.call_count == 4
    assert clock.sleeps == [2, 2, 2, 2]


@pytest.mark.asyncio()
async def test_queued_and_starting_are_not_terminal(replicate_api, make_predictor, clock):
    replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(201, json=job_json(status="queued"))
    )
    poll = _poll_route(replicate_api, "queued", "starting", "processing", "succeeded")

    result = await make_predictor(poll_interval=1, timeout=10).run(VIDEO_URL)

    assert result.job.status == "succeeded"
    assert poll.call_count == 4
    assert clock.sleeps == [1, 1, 1, 1]


@pytest.mark.asyncio()
async def test_model_identifier_targets_versioned_endpoint(replicate_api, make_predictor):
    route = replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(201, json=job_json(status="succeeded"))
    )

    await make_predictor("owner/name:abc123").run(VIDEO_URL)

    assert json.loads(route.calls.last.request.content) == {"input": {"video": VIDEO_URL}}


@pytest.mark.asyncio()
async def test_bare_version_targets_generic_endpoint(replicate_api, make_predictor):
    route = replicate_api.post("/predictions").mock(
        return_value=httpx.Response(201, json=job_json(status="succeeded"))
    )

    await make_predictor("abc123").run(VIDEO_URL)

    assert json.loads(route.calls.last.request.content) == {
        "version": "abc123",
        "input": {"video": VIDEO_URL},
    }


@pytest.mark.asyncio()
async def test_input_key_is_configurable(replicate_api, make_predictor):
    route = replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(201, json=job_json(status="succeeded"))
    )

    await make_predictor(input_key="video_url").run(VIDEO_URL)

    assert json.loads(route.calls.last.request.content) == {
        "input": {"video_url": VIDEO_URL}
    }


@pytest.mark.parametrize("status", ["failed", "canceled", "something-new"])
@pytest.mark.asyncio()
async def test_other_terminal_status_fails(replicate_api, make_predictor, status):
    replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(201, json=job_json(status="starting"))
    )
    poll = _poll_route(replicate_api, status, error="CUDA out of memory")

    with pytest.raises(PredictionFailedError) as exc_info:
        await make_predictor().run(VIDEO_URL)

    assert f"status: {status}" in str(exc_info.value)
    assert "CUDA out of memory" in str(exc_info.value)
    assert poll.call_count == 1


@pytest.mark.asyncio()
async def test_failed_without_error_detail(replicate_api, make_predictor):
    replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(201, json=job_json(status="failed"))
    )

    with pytest.raises(PredictionFailedError, match="error: unknown"):
        await make_predictor().run(VIDEO_URL)


@pytest.mark.asyncio()
async def test_submission_error_includes_status_and_body(replicate_api, make_predictor):
    replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(422, json={"detail": "Invalid version"})
    )

    with pytest.raises(ProviderRequestError, match="start failed: 422.*Invalid version"):
        await make_predictor().run(VIDEO_URL)


@pytest.mark.asyncio()
async def test_poll_error_is_not_retried(replicate_api, make_predictor):
    replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(201, json=job_json(status="starting"))
    )
    poll = replicate_api.get("/predictions/pred-1").mock(
        return_value=httpx.Response(500, text="upstream exploded")
    )

    with pytest.raises(ProviderRequestError, match="poll failed: 500 upstream exploded"):
        await make_predictor().run(VIDEO_URL)

    assert poll.call_count == 1


@pytest.mark.asyncio()
async def test_unreadable_submission_body(replicate_api, make_predictor):
    replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(201, text="<html>gateway</html>")
    )

    with pytest.raises(ProviderRequestError, match="unreadable body"):
        await make_predictor().run(VIDEO_URL)


@pytest.mark.asyncio()
async def test_transport_error_is_a_provider_error(replicate_api, make_predictor):
    replicate_api.post(MODEL_ENDPOINT).mock(side_effect=httpx.ConnectTimeout("timed out"))

    with pytest.raises(ProviderRequestError, match="ConnectTimeout"):
        await make_predictor().run(VIDEO_URL)


@pytest.mark.parametrize(
    ("api_token", "model_version"),
    [(None, "owner/name:abc123"), (SecretStr("r8_test"), ""), (None, "")],
)
@pytest.mark.asyncio()
async def test_not_configured_makes_no_requests(
    replicate_api, make_predictor, api_token, model_version
):
    predictor = make_predictor(model_version, api_token=api_token)

    assert not predictor.configured
    with pytest.raises(ConfigurationMissingError, match="Server not configured"):
        await predictor.run(VIDEO_URL)
    assert replicate_api.calls.call_count == 0


@pytest.mark.asyncio()
async def test_log_callback_receives_every_phase(replicate_api, make_predictor):
    replicate_api.post(MODEL_ENDPOINT).mock(
        return_value=httpx.Response(201, json=job_json(status="starting"))
    )
    _poll_route(replicate_api, "processing", "succeeded", output=OUTPUT_URL)
    received: list[str] = []

    async def log_cb(event: str) -> None:
        received.append(event)

    result = await make_predictor().run(VIDEO_URL, log_cb=log_cb)

    assert received == result.events
    assert received[0].startswith("Submitting prediction to")
    assert "Prediction pred-1 created: starting" in received
    assert "Poll 1: prediction pred-1 is processing" in received
    assert "Prediction pred-1: starting -> processing" in received
    assert "Prediction pred-1: processing -> succeeded" in received
    assert received[-1] == "Prediction pred-1 succeeded after 2 polls"
