"""Error taxonomy shared by the adapter, repository, services and API.

Every error carries the HTTP status the API layer reports for it, so the
exception handlers in ``src.api.app`` stay a single mapping.
"""

from enum import Enum

import httpx
import openai


class ServiceErrorKind(str, Enum):
    """Failure categories of an external service call."""

    RATE_LIMITED = "rate_limited"
    INVALID_CREDENTIAL = "invalid_credential"
    UNAVAILABLE = "unavailable"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


SERVICE_ERROR_MESSAGES: dict[str, dict[ServiceErrorKind, str]] = {
    "en": {
        ServiceErrorKind.RATE_LIMITED: (
            "Too many requests to the AI service. Please wait a moment and try again."
        ),
        ServiceErrorKind.INVALID_CREDENTIAL: (
            "The AI service API key is invalid. Please check the server configuration."
        ),
        ServiceErrorKind.UNAVAILABLE: (
            "The AI service is temporarily unavailable. Please try again later."
        ),
        ServiceErrorKind.NETWORK_ERROR: (
            "Network connection error. Please check your internet connection."
        ),
        ServiceErrorKind.UNKNOWN: "An error occurred while talking to the AI service.",
    },
    "ko": {
        ServiceErrorKind.RATE_LIMITED: "요청이 너무 많습니다. 잠시 후 다시 시도해주세요.",
        ServiceErrorKind.INVALID_CREDENTIAL: "API 키가 유효하지 않습니다. 서버 설정을 확인해주세요.",
        ServiceErrorKind.UNAVAILABLE: (
            "AI 서비스를 일시적으로 사용할 수 없습니다. 잠시 후 다시 시도해주세요."
        ),
        ServiceErrorKind.NETWORK_ERROR: "네트워크 연결 오류입니다. 인터넷 연결을 확인해주세요.",
        ServiceErrorKind.UNKNOWN: "대화 중 오류가 발생했습니다.",
    },
}


def service_error_message(kind: ServiceErrorKind, locale: str = "en") -> str:
    """Return the user-facing message for a service failure category.

    Unknown locales fall back to English.
    """
    table = SERVICE_ERROR_MESSAGES.get(locale, SERVICE_ERROR_MESSAGES["en"])
    return table[kind]


class ChatAppError(Exception):
    """Base class for errors the API reports as ``{"error": ...}``."""

    status_code: int = 500

    def user_message(self, locale: str = "en") -> str:
        return str(self)


class BadRequestError(ChatAppError):
    """A required field is missing or invalid."""

    status_code = 400


class UnsupportedTypeError(BadRequestError):
    """Uploaded file extension is not in the allow-list."""


class NotFoundError(ChatAppError):
    """Requested entity does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: str | int) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class PersistenceError(ChatAppError):
    """Metadata repository write or read failed."""


class ServiceError(ChatAppError):
    """External service call failed.

    Attributes:
        kind: Failure category used to pick the user-facing message.
    """

    def __init__(self, kind: ServiceErrorKind, detail: str = "") -> None:
        super().__init__(detail or kind.value)
        self.kind = kind
        self.detail = detail

    def user_message(self, locale: str = "en") -> str:
        return service_error_message(self.kind, locale)


class OperationCancelledError(ChatAppError):
    """The client went away while an external operation was being awaited."""

    status_code = 499


class UploadFailedError(ChatAppError):
    """Upload could not be imported or recorded after it was staged.

    The staged local copy is kept so the upload can be retried.
    """

    def __init__(self, filename: str, cause: Exception) -> None:
        super().__init__(f"Upload failed for {filename}: {cause}")
        self.filename = filename
        self.cause = cause

    def user_message(self, locale: str = "en") -> str:
        if isinstance(self.cause, ChatAppError):
            return self.cause.user_message(locale)
        return str(self)


def classify_error(exc: Exception) -> ServiceError:
    """Convert an SDK or transport exception into a tagged ServiceError.

    Provider SDKs and Agno expose an integer ``status_code`` on HTTP errors;
    connection failures have no status and are matched by type. Agno wraps
    SDK errors (``raise ModelProviderError(...) from exc``), so a wrapped
    SDK error is classified by the SDK exception it came from.
    """
    if isinstance(exc, ServiceError):
        return exc

    detail = str(exc) or exc.__class__.__name__

    cause = exc.__cause__
    if isinstance(cause, (openai.OpenAIError, httpx.HTTPError)):
        return ServiceError(classify_error(cause).kind, detail)

    if isinstance(exc, openai.RateLimitError):
        return ServiceError(ServiceErrorKind.RATE_LIMITED, detail)
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ServiceError(ServiceErrorKind.INVALID_CREDENTIAL, detail)
    if isinstance(
        exc, (openai.APIConnectionError, httpx.TransportError, ConnectionError, TimeoutError)
    ):
        return ServiceError(ServiceErrorKind.NETWORK_ERROR, detail)

    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        if status_code == 429:
            return ServiceError(ServiceErrorKind.RATE_LIMITED, detail)
        if status_code in (401, 403):
            return ServiceError(ServiceErrorKind.INVALID_CREDENTIAL, detail)
        if status_code >= 500:
            return ServiceError(ServiceErrorKind.UNAVAILABLE, detail)

    return ServiceError(ServiceErrorKind.UNKNOWN, detail)
