import logging

from pydantic import (
    SecretStr,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from watermark_cleaner.types import ModelRef

UPLOAD_BACKEND_NAMES = ("minio", "replicate", "transfer.sh", "0x0.st", "tmpfiles")


def parse_model_version(value: str | None) -> ModelRef:
    """
    Split a Replicate model identifier on its colon.

    `owner/name:version` gives both parts, a bare version hash gives only the version.
    """
    if not value:
        return ModelRef(model=None, version=None)
    if ":" not in value:
        return ModelRef(model=None, version=value)
    model, _, version = value.partition(":")
    return ModelRef(model=model or None, version=version or None)


class Settings(BaseSettings):
    """Process configuration, read once at startup and passed to each component."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    REPLICATE_API_TOKEN: SecretStr | None = None
    REPLICATE_MODEL_VERSION: str | None = None
    REPLICATE_INPUT_KEY: str = "video"
    REPLICATE_API_BASE: str = "https://api.replicate.com/v1"

    POLL_INTERVAL_S: float = 2
    PREDICTION_TIMEOUT_S: float = 120
    HTTP_TIMEOUT_S: float = 60
    MAX_UPLOAD_BYTES: int = 30 * 1024 * 1024

    UPLOAD_BACKENDS: list[str] = list(UPLOAD_BACKEND_NAMES)
    MINIO_HOST: str | None = None
    MINIO_ACCESS_KEY: SecretStr | None = None
    MINIO_SECRET_KEY: SecretStr | None = None
    MINIO_BUCKET: str | None = None

    HOST: str = "0.0.0.0"  # noqa: S104
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    @field_validator("LOG_LEVEL")
    @classmethod
    def _check_log_level(cls, v: str) -> str:
        if v not in logging.getLevelNamesMapping():
            msg = f"'{v}' is not a valid log level"
            raise ValueError(msg)
        return v

    @field_validator("UPLOAD_BACKENDS")
    @classmethod
    def _check_upload_backends(cls, v: list[str]) -> list[str]:
        unknown = [name for name in v if name not in UPLOAD_BACKEND_NAMES]
        if unknown:
            msg = f"Unknown upload backends {unknown}, expected any of {UPLOAD_BACKEND_NAMES}"
            raise ValueError(msg)
        return v

    @property
    def replicate_model(self) -> ModelRef:
        return parse_model_version(self.REPLICATE_MODEL_VERSION)

    @property
    def replicate_configured(self) -> bool:
        return bool(self.REPLICATE_API_TOKEN and self.replicate_model.version)

    @property
    def minio_configured(self) -> bool:
        return bool(
            self.MINIO_HOST
            and self.MINIO_ACCESS_KEY
            and self.MINIO_SECRET_KEY
            and self.MINIO_BUCKET
        )
