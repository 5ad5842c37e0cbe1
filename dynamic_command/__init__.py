"""Async client for the Dynamic Solution display management API."""

from .api import (
    ApiRequestError,
    AuthenticationRejectedError,
    DynamicCommandAuthError,
    DynamicCommandClient,
    DynamicCommandError,
    FirmwareUpdateTimeoutError,
    MultipartError,
    ShortReadError,
    UnexpectedAuthenticationResponseError,
    ensure_success,
)
from .config import DynamicCommandSettings
from .multipart import MultipartBody, parse_multipart_responses

__all__ = [
    "ApiRequestError",
    "AuthenticationRejectedError",
    "DynamicCommandAuthError",
    "DynamicCommandClient",
    "DynamicCommandError",
    "DynamicCommandSettings",
    "FirmwareUpdateTimeoutError",
    "MultipartBody",
    "MultipartError",
    "ShortReadError",
    "UnexpectedAuthenticationResponseError",
    "ensure_success",
    "parse_multipart_responses",
]
