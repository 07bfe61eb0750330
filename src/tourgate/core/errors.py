"""Typed failures for the tour API gateway.

Every failure that leaves the HTTP client, gateway or aggregator is a
TourApiError carrying an ErrorKind decided where the failure happened.
Callers branch on ``err.kind`` / ``err.retryable``, never on message text.
"""

from enum import Enum


class ErrorKind(str, Enum):
    # Transport
    TIMEOUT = "timeout"
    NETWORK = "network"

    # HTTP status derived
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    HTTP_ERROR = "http_error"

    # Upstream resultCode derived
    MISSING_PARAMETER = "missing_parameter"
    INVALID_PARAMETER = "invalid_parameter"
    ACCESS_DENIED = "access_denied"
    QUOTA_EXCEEDED = "quota_exceeded"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UPSTREAM_ERROR = "upstream_error"

    # Local
    VALIDATION = "validation"
    CONTENT_NOT_FOUND = "content_not_found"
    AGGREGATE_FAILURE = "aggregate_failure"


RETRYABLE_KINDS = frozenset({
    ErrorKind.TIMEOUT,
    ErrorKind.NETWORK,
    ErrorKind.SERVER_ERROR,
    ErrorKind.SERVICE_UNAVAILABLE,
})

SUCCESS_RESULT_CODES = frozenset({"0000", "00"})

# data.go.kr common result codes
NO_DATA_RESULT_CODE = "03"
_RESULT_CODE_KINDS: dict[str, ErrorKind] = {
    "04": ErrorKind.SERVICE_UNAVAILABLE,    # HTTP_ERROR
    "05": ErrorKind.SERVICE_UNAVAILABLE,    # SERVICETIME_OUT
    "10": ErrorKind.INVALID_PARAMETER,      # INVALID_REQUEST_PARAMETER_ERROR
    "11": ErrorKind.MISSING_PARAMETER,      # NO_MANDATORY_REQUEST_PARAMETERS_ERROR
    "12": ErrorKind.SERVICE_UNAVAILABLE,    # NO_OPENAPI_SERVICE_ERROR
    "20": ErrorKind.ACCESS_DENIED,          # SERVICE_ACCESS_DENIED_ERROR
    "22": ErrorKind.QUOTA_EXCEEDED,         # LIMITED_NUMBER_OF_SERVICE_REQUESTS_EXCEEDS_ERROR
    "30": ErrorKind.ACCESS_DENIED,          # SERVICE_KEY_IS_NOT_REGISTERED_ERROR
    "31": ErrorKind.ACCESS_DENIED,          # DEADLINE_HAS_EXPIRED_ERROR
    "32": ErrorKind.ACCESS_DENIED,          # UNREGISTERED_IP_ERROR
}


def kind_for_status(status_code: int) -> ErrorKind:
    """Map a non-2xx HTTP status to an error kind."""
    if status_code == 400:
        return ErrorKind.BAD_REQUEST
    if status_code == 401:
        return ErrorKind.UNAUTHORIZED
    if status_code == 403:
        return ErrorKind.FORBIDDEN
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.HTTP_ERROR


def kind_for_result_code(result_code: str) -> ErrorKind:
    """Map an upstream header resultCode to an error kind.

    Codes come back both zero-padded ("0022") and short ("22").
    """
    code = (result_code or "").strip()
    if len(code) > 2 and code.startswith("00"):
        code = code[2:]
    return _RESULT_CODE_KINDS.get(code, ErrorKind.UPSTREAM_ERROR)


class TourApiError(Exception):
    """Base class for all gateway failures."""

    default_kind = ErrorKind.UPSTREAM_ERROR

    def __init__(self, message: str, kind: ErrorKind | None = None, *, endpoint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.endpoint = endpoint

    @property
    def retryable(self) -> bool:
        """True when retrying later could plausibly succeed."""
        return self.kind in RETRYABLE_KINDS

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class UpstreamTimeoutError(TourApiError):
    default_kind = ErrorKind.TIMEOUT


class NetworkError(TourApiError):
    default_kind = ErrorKind.NETWORK


class HttpStatusError(TourApiError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str = "", *, endpoint: str | None = None) -> None:
        super().__init__(
            f"Upstream request failed: {status_code} {reason}".strip(),
            kind_for_status(status_code),
            endpoint=endpoint,
        )
        self.status_code = status_code


class UpstreamResultError(TourApiError):
    """Upstream answered 2xx but its envelope header carries a failure code."""

    def __init__(self, result_code: str, result_msg: str = "", *, endpoint: str | None = None) -> None:
        super().__init__(
            f"Upstream error {result_code}: {result_msg}".strip(),
            kind_for_result_code(result_code),
            endpoint=endpoint,
        )
        self.result_code = result_code
        self.result_msg = result_msg

    @property
    def no_data(self) -> bool:
        return self.result_code.strip().lstrip("0") == NO_DATA_RESULT_CODE.lstrip("0")


class ValidationError(TourApiError):
    """Rejected locally before any network call."""

    default_kind = ErrorKind.VALIDATION


class ContentNotFoundError(TourApiError):
    """A single-entity lookup returned zero items (distinct from HTTP 404)."""

    default_kind = ErrorKind.CONTENT_NOT_FOUND

    def __init__(self, message: str, content_id: str = "", *, endpoint: str | None = None) -> None:
        super().__init__(message, endpoint=endpoint)
        self.content_id = content_id


class AggregateFailureError(TourApiError):
    """Every probe in a statistics fan-out failed."""

    default_kind = ErrorKind.AGGREGATE_FAILURE

    def __init__(self, scope: str, failures: list[BaseException]) -> None:
        super().__init__(f"All {len(failures)} {scope} probes failed")
        self.scope = scope
        self.failures = failures

    @property
    def retryable(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Bookmark facade
# ---------------------------------------------------------------------------

class BookmarkError(Exception):
    """Base class for bookmark facade failures."""


class AuthenticationRequiredError(BookmarkError):
    def __init__(self) -> None:
        super().__init__("Sign-in is required to change bookmarks")


class UserNotFoundError(BookmarkError):
    def __init__(self, external_id: str) -> None:
        super().__init__(f"No user record for identity {external_id!r}")
        self.external_id = external_id


# ---------------------------------------------------------------------------
# Presentation messages
# ---------------------------------------------------------------------------

_USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.TIMEOUT: "The tourism service took too long to respond. Please try again.",
    ErrorKind.NETWORK: "Could not reach the tourism service. Check your connection and try again.",
    ErrorKind.BAD_REQUEST: "The request was rejected by the tourism service.",
    ErrorKind.UNAUTHORIZED: "The tourism service rejected our credentials.",
    ErrorKind.FORBIDDEN: "Access to the tourism service is forbidden.",
    ErrorKind.NOT_FOUND: "The requested tourism resource does not exist.",
    ErrorKind.SERVER_ERROR: "The tourism service is having problems. Please try again later.",
    ErrorKind.HTTP_ERROR: "The tourism service returned an unexpected response.",
    ErrorKind.MISSING_PARAMETER: "A required search parameter is missing.",
    ErrorKind.INVALID_PARAMETER: "A search parameter is invalid.",
    ErrorKind.ACCESS_DENIED: "The service key is not authorized for this API.",
    ErrorKind.QUOTA_EXCEEDED: "Today's request quota has been used up. Please try again tomorrow.",
    ErrorKind.SERVICE_UNAVAILABLE: "The tourism service is temporarily unavailable.",
    ErrorKind.UPSTREAM_ERROR: "The tourism service reported an error.",
    ErrorKind.VALIDATION: "Please check your input and try again.",
    ErrorKind.CONTENT_NOT_FOUND: "This place could not be found.",
    ErrorKind.AGGREGATE_FAILURE: "Statistics are unavailable right now. Please try again.",
}


def user_message(kind: ErrorKind) -> str:
    """Human-readable message for an error kind."""
    return _USER_MESSAGES.get(kind, "Something went wrong.")
