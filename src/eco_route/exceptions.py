from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    VALIDATION = "validation"
    INVALID_LOCATION = "invalid_location"
    SEARCH_FAILED = "search_failed"
    REMOTE_TOO_REMOTE = "remote_too_remote"
    DISTANCE_EXCEEDS_MODE = "distance_exceeds_mode"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    NO_ROUTE_FOUND = "no_route_found"
    MALFORMED_RESPONSE = "malformed_response"
    CONFIGURATION = "configuration"


USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "Please type at least 3 characters",
    ErrorKind.INVALID_LOCATION: "The selected location has no usable coordinates.",
    ErrorKind.SEARCH_FAILED: "Search failed. Please check your connection and try again.",
    ErrorKind.REMOTE_TOO_REMOTE: (
        "One of these locations is too remote. Please try locations with better road access."
    ),
    ErrorKind.DISTANCE_EXCEEDS_MODE: (
        "Distance too far for this transport mode. Try a different mode."
    ),
    ErrorKind.RATE_LIMITED: (
        "The routing service is busy right now. Please wait a moment and try again."
    ),
    ErrorKind.TIMEOUT: "Request timed out. Please check your internet connection.",
    ErrorKind.NETWORK_ERROR: (
        "Unable to find route. Please try different locations or check your connection."
    ),
    ErrorKind.NO_ROUTE_FOUND: (
        "Unable to find route. Please try different locations or check your connection."
    ),
    ErrorKind.MALFORMED_RESPONSE: "The routing service returned an unreadable response.",
    ErrorKind.CONFIGURATION: "API configuration error",
}


class EcoRouteError(Exception):
    """Base exception for trip planning errors."""

    kind: ErrorKind = ErrorKind.NETWORK_ERROR

    def __init__(self, detail: str | None = None, *, kind: ErrorKind | None = None) -> None:
        if kind is not None:
            self.kind = kind
        self.detail = detail or self.user_message
        super().__init__(self.detail)

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]


class InvalidQueryError(EcoRouteError):
    """Raised when user input is unusable, e.g. a search query that is too short."""

    kind = ErrorKind.VALIDATION


class InvalidLocationError(InvalidQueryError):
    """Raised when a route endpoint carries no usable latitude/longitude."""

    kind = ErrorKind.INVALID_LOCATION


class SearchFailedError(EcoRouteError):
    """Raised when the geocoding provider cannot be reached or answers badly."""

    kind = ErrorKind.SEARCH_FAILED


class RouteFetchError(EcoRouteError):
    """Base for classified directions failures."""


class TransientRemoteError(RouteFetchError):
    """Raised when the directions provider keeps failing with retryable errors."""

    kind = ErrorKind.NETWORK_ERROR


class PermanentRemoteError(RouteFetchError):
    """Raised when the directions provider rejects the request for good."""

    kind = ErrorKind.NO_ROUTE_FOUND


class RequestSuperseded(Exception):
    """Raised to a caller whose request was replaced by a newer one on the same line."""
