"""Exceptions raised across the connector.

Pipeline steps raise these; the pipeline service turns them into a failed
``PipelineResult`` and the ingestion worker decides whether a failure is
worth retrying. Anything that is a ``ConnectorValidationError`` will fail the
same way on every attempt and is never retried.
"""


class ConnectorException(Exception):
    pass


class ConfigurationError(ConnectorException):
    pass


class ConnectorValidationError(ConnectorException):
    pass


class TokenValidationError(ConnectorValidationError):
    pass


class ContentValidationError(ConnectorValidationError):
    pass


class MimeTypeNotAllowedError(ConnectorValidationError):
    def __init__(self, mime_type: str, allowed: list[str]):
        self.mime_type = mime_type
        self.allowed = allowed
        super().__init__(
            f"MIME type {mime_type} is not allowed. Allowed types: {', '.join(allowed)}"
        )


class FileSizeLimitExceededError(ConnectorValidationError):
    def __init__(self, max_size_bytes: int):
        self.max_size_bytes = max_size_bytes
        super().__init__(f"File size exceeds maximum limit of {max_size_bytes} bytes")


class StepTimeoutError(ConnectorException):
    def __init__(self, step_name: str, timeout_ms: int):
        self.step_name = step_name
        self.timeout_ms = timeout_ms
        super().__init__(f"Step {step_name} timed out after {timeout_ms}ms")


class StorageUploadError(ConnectorException):
    def __init__(self, status_code: int, reason: str):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Upload failed with status {status_code}: {reason}")


class TokenAcquisitionError(ConnectorException):
    """The identity provider answered without a usable token; retried like any transient failure."""

    def __init__(self, provider_name: str, detail: str):
        self.provider_name = provider_name
        super().__init__(f"Failed to acquire {provider_name} token: {detail}")


class UniqueApiError(ConnectorException):
    pass


class NotReadyException(ConnectorException):
    pass


def is_retryable(error: BaseException | None) -> bool:
    return error is not None and not isinstance(error, ConnectorValidationError)
