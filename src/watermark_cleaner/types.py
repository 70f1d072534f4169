from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

type PredictionStatus = Literal[
    "queued",
    "starting",
    "processing",
    "succeeded",
    "failed",
    "canceled",
]

NON_TERMINAL_STATUSES: frozenset[str] = frozenset({"queued", "starting", "processing"})


class ModelRef(BaseModel):
    """A Replicate model identifier: `owner/name` and a version hash, either may be absent."""

    model_config = ConfigDict(frozen=True)

    model: str | None
    version: str | None


class PredictionJob(BaseModel):
    """
    A prediction as reported by Replicate.

    `status` is kept as a plain string: anything outside of `PredictionStatus` is treated as terminal.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    output: Any = None
    error: Any = None
    logs: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status not in NON_TERMINAL_STATUSES


class PredictionResult(BaseModel):
    """A succeeded prediction together with the events reported while running it."""

    job: PredictionJob
    events: list[str] = []


class UploadAttempt(BaseModel):
    """The outcome of one upload backend in the chain."""

    backend: str
    ordinal: int
    url: str | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.url is not None
