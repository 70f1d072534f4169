class WatermarkCleanerError(Exception):
    """
    Base class for errors surfaced to API callers.

    `code` is a machine-readable kind, `status_code` the HTTP status it maps to.
    """

    code = "server_error"
    status_code = 500


class ConfigurationMissingError(WatermarkCleanerError):
    """Replicate credentials or model version are not configured."""

    code = "not_configured"
    status_code = 500


class InvalidRequestError(WatermarkCleanerError):
    """The request carries neither a usable URL nor a usable file."""

    code = "invalid_request"
    status_code = 400


class PayloadTooLargeError(InvalidRequestError):
    """The uploaded file exceeds the configured size bound."""

    code = "payload_too_large"
    status_code = 413


class UploadFailedError(Exception):
    """A single upload backend rejected the payload or returned an unusable URL."""


class UploadExhaustedError(WatermarkCleanerError):
    """Every upload backend failed."""

    code = "upload_exhausted"
    status_code = 502


class ProviderRequestError(WatermarkCleanerError):
    """Replicate answered a submission or poll with a non-2xx status or an unreadable body."""

    code = "provider_error"
    status_code = 502


class PredictionTimeoutError(WatermarkCleanerError):
    """The prediction did not reach a terminal state within the local time budget."""

    code = "prediction_timeout"
    status_code = 504


class PredictionFailedError(WatermarkCleanerError):
    """The prediction ended in a terminal state other than `succeeded`."""

    code = "prediction_failed"
    status_code = 502


class DownloadFailedError(WatermarkCleanerError):
    """Failed to download a file through the download proxy."""

    code = "download_failed"
    status_code = 502
