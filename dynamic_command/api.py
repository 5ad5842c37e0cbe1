"""API client for the Dynamic Solution display management server.

This module provides the exceptions, response validation helpers and the
authenticating client used to call the Dynamic Solution REST API. The
client obtains an OAuth2 password-grant token, sends it as a bearer header
and re-authenticates once when a request comes back unauthorized.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import TYPE_CHECKING, Any

import httpx
from httpx_retries import Retry, RetryTransport

from .const import (
    API_PATH,
    CLIENT_CREDENTIALS_ENCODING,
    CONTENT_TYPE_JSON,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT,
    GRANT_TYPE_PASSWORD,
    IDENTITY_PATH,
    TOKEN_PATH,
    TOKEN_SCOPE,
)
from .models import to_json_value

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from .config import DynamicCommandSettings

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
HTTP_OK = 200
HTTP_MULTIPLE_CHOICES = 300
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401


class DynamicCommandError(Exception):
    """Base exception for Dynamic Solution API client errors."""


class DynamicCommandAuthError(DynamicCommandError):
    """Exception raised when a token cannot be obtained."""


class AuthenticationRejectedError(DynamicCommandAuthError):
    """Exception raised when the token endpoint rejects the credentials."""


class UnexpectedAuthenticationResponseError(DynamicCommandAuthError):
    """Exception raised when the token endpoint answers neither 200 nor 400."""

    def __init__(self, status_code: int) -> None:
        """Initialize the error with the received status code."""
        self.status_code = status_code
        super().__init__(
            "Response should either be 200 OK or 400 Bad Request. "
            f"Received: {status_code}"
        )


class ApiRequestError(DynamicCommandError):
    """Exception raised when an API call does not return a success status."""

    def __init__(self, response: httpx.Response) -> None:
        """Initialize the error from the failed response."""
        self.response = response
        self.status_code = response.status_code
        super().__init__(
            f"Request failed: {response.status_code} {response.reason_phrase}"
        )


class MultipartError(DynamicCommandError):
    """Exception raised for malformed multipart or embedded HTTP payloads."""


class ShortReadError(DynamicCommandError):
    """Exception raised when a packaged asset is not fully read."""


class FirmwareUpdateTimeoutError(DynamicCommandError):
    """Exception raised when communicators do not reach the latest firmware."""


def encode_client_credentials(client_id: str, client_secret: str) -> str:
    """Encode client credentials for the Basic authorization header.

    Args:
        client_id: OAuth2 client identifier.
        client_secret: OAuth2 client secret.

    Returns:
        Base64 of ``client_id:client_secret`` encoded as Latin-1.

    """
    raw = f"{client_id}:{client_secret}".encode(CLIENT_CREDENTIALS_ENCODING)
    return base64.b64encode(raw).decode("ascii")


def create_token_headers(base64_client_creds: str) -> dict[str, str]:
    """Create HTTP headers for token requests.

    Args:
        base64_client_creds: Precomputed Basic credentials.

    Returns:
        Dictionary containing HTTP headers for the token endpoint.

    """
    return {
        "Authorization": f"Basic {base64_client_creds}",
        "Accept": CONTENT_TYPE_JSON,
    }


def create_token_form(username: str, password: str) -> dict[str, str]:
    """Create the form body of a resource-owner password grant."""
    return {
        "grant_type": GRANT_TYPE_PASSWORD,
        "username": username,
        "password": password,
        "scope": TOKEN_SCOPE,
    }


def create_bearer_header(access_token: str) -> str:
    """Return the Authorization header value for an access token."""
    return f"Bearer {access_token}"


def is_success(status: int) -> bool:
    """Check if HTTP status code indicates success.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is in the 2xx range, False otherwise.

    """
    return HTTP_OK <= status < HTTP_MULTIPLE_CHOICES


def is_auth_error(status: int) -> bool:
    """Check if HTTP status code indicates an expired or missing token.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is 401, False otherwise.

    """
    return status == HTTP_UNAUTHORIZED


def ensure_success(response: httpx.Response) -> httpx.Response:
    """Validate that a response has a success status.

    Args:
        response: HTTP response object to validate.

    Returns:
        The same response, for chaining.

    Raises:
        ApiRequestError: If the status code is not 2xx.

    """
    if not is_success(response.status_code):
        raise ApiRequestError(response)
    return response


def extract_access_token(data: dict[str, Any]) -> str:
    """Extract the access token from a token endpoint response."""
    return data["access_token"]


def extract_token_error(data: dict[str, Any]) -> str:
    """Extract the error code from a rejected token request."""
    return str(data.get("error", "Unknown error"))


def validate_token_response(response: httpx.Response) -> str:
    """Validate a token endpoint response and return the access token.

    Args:
        response: Response from the token endpoint.

    Returns:
        The access token.

    Raises:
        AuthenticationRejectedError: If the server answered 400.
        UnexpectedAuthenticationResponseError: For any status other than 200
            or 400.

    """
    if response.status_code == HTTP_OK:
        return extract_access_token(response.json())

    if response.status_code == HTTP_BAD_REQUEST:
        error = extract_token_error(response.json())
        rejected_error = f"400 Bad Request: {error}"
        raise AuthenticationRejectedError(rejected_error)

    raise UnexpectedAuthenticationResponseError(response.status_code)


async def _log_request(request: httpx.Request) -> None:
    if not _LOGGER.isEnabledFor(logging.DEBUG):
        return
    body = await request.aread()
    _LOGGER.debug("%s %s", request.method, request.url)
    if body:
        _LOGGER.debug("Request body: \n%s", body.decode("utf-8", errors="replace"))
    else:
        _LOGGER.debug("No request body")


async def _log_response(response: httpx.Response) -> None:
    if not _LOGGER.isEnabledFor(logging.DEBUG):
        return
    body = await response.aread()
    _LOGGER.debug("Response status: %d", response.status_code)
    if body:
        _LOGGER.debug("Response body: \n%s", body.decode("utf-8", errors="replace"))
    else:
        _LOGGER.debug("No response body")


def create_session_client(
    api_url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    retries: int = DEFAULT_RETRIES,
) -> httpx.AsyncClient:
    """Create the shared HTTP client for API calls.

    Args:
        api_url: API root that relative paths resolve against.
        timeout: Blanket timeout in seconds for every call.
        retries: Transport level retries for connection failures and
            throttling responses. ``0`` disables the retry transport.

    Returns:
        Configured httpx AsyncClient with request/response tracing.

    """
    transport = None
    if retries > 0:
        retry = Retry(total=retries, backoff_factor=0.5)
        transport = RetryTransport(transport=httpx.AsyncHTTPTransport(), retry=retry)

    return httpx.AsyncClient(
        base_url=api_url,
        headers={"Accept": CONTENT_TYPE_JSON},
        timeout=timeout,
        transport=transport,
        event_hooks={"request": [_log_request], "response": [_log_response]},
    )


class DynamicCommandClient:
    """Authenticating client for the Dynamic Solution REST API.

    Verb methods send requests relative to ``{server_url}/API/`` with the
    current bearer token. A 401 response triggers one re-authentication and
    exactly one retry of the same request; every other response, including
    a second 401, is returned to the caller unchanged.

    The token is shared by every call made through one client. Refreshes are
    serialised, and a request that fails with a token another task has
    already replaced is retried without authenticating again.
    """

    def __init__(
        self,
        server_url: str,
        client_id: str,
        client_secret: str,
        username: str,
        password: str,
        *,
        session: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
    ) -> None:
        """Initialize the client.

        Args:
            server_url: Base URL of the Dynamic Solution server.
            client_id: OAuth2 client identifier.
            client_secret: OAuth2 client secret.
            username: Resource-owner username.
            password: Resource-owner password.
            session: Optional pre-built session; its base URL should be the
                API root.
            timeout: Blanket timeout used when creating the session.
            retries: Transport retries used when creating the session.

        """
        self._identity_url = f"{server_url}{IDENTITY_PATH}"
        self._api_url = f"{server_url}{API_PATH}"
        self._username = username
        self._password = password
        self._base64_client_creds = encode_client_credentials(client_id, client_secret)
        self._session = session or create_session_client(
            self._api_url, timeout=timeout, retries=retries
        )
        self._access_token: str | None = None
        self._auth_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: DynamicCommandSettings) -> DynamicCommandClient:
        """Create a client from application settings."""
        return cls(
            settings.server_url,
            settings.client_id,
            settings.client_secret,
            settings.username,
            settings.password,
            timeout=settings.timeout_seconds,
            retries=settings.retries,
        )

    @property
    def identity_url(self) -> str:
        """Return the identity server root."""
        return self._identity_url

    @property
    def token_url(self) -> str:
        """Return the token endpoint URL."""
        return f"{self._identity_url}{TOKEN_PATH}"

    @property
    def api_url(self) -> str:
        """Return the API root that relative paths resolve against."""
        return self._api_url

    @property
    def access_token(self) -> str | None:
        """Return the current access token, if one was obtained."""
        return self._access_token

    @property
    def session(self) -> httpx.AsyncClient:
        """Return the shared HTTP session."""
        return self._session

    async def __aenter__(self) -> DynamicCommandClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the shared HTTP session."""
        await self._session.aclose()

    async def async_authenticate(self) -> str:
        """Obtain a new access token unconditionally.

        Returns:
            The new access token.

        Raises:
            AuthenticationRejectedError: If the credentials are rejected.
            UnexpectedAuthenticationResponseError: For any other failure
                status from the token endpoint.

        """
        async with self._auth_lock:
            return await self._async_authenticate()

    async def _async_authenticate(self) -> str:
        _LOGGER.debug("Requesting access token from %s", self.token_url)
        async with httpx.AsyncClient(
            base_url=self._identity_url,
            headers=create_token_headers(self._base64_client_creds),
        ) as token_client:
            response = await token_client.post(
                TOKEN_PATH,
                data=create_token_form(self._username, self._password),
            )

        access_token = validate_token_response(response)
        self._access_token = access_token
        self._session.headers["Authorization"] = create_bearer_header(access_token)
        _LOGGER.debug("Successfully authenticated with Dynamic Solution API")
        return access_token

    async def _async_refresh_token(self, stale_token: str | None) -> None:
        async with self._auth_lock:
            if self._access_token is not None and self._access_token != stale_token:
                _LOGGER.debug("Access token already refreshed, skipping authentication")
                return
            await self._async_authenticate()

    async def _async_send_authenticated(
        self,
        build_request: Callable[[], httpx.Request],
        *,
        pre_authenticate: bool,
    ) -> httpx.Response:
        if pre_authenticate:
            await self.async_authenticate()

        sent_with_token = self._access_token
        response = await self._session.send(build_request())
        if pre_authenticate or not is_auth_error(response.status_code):
            return response

        _LOGGER.info(
            "Unauthorized response for %s %s, re-authenticating",
            response.request.method,
            response.request.url,
        )
        await response.aclose()
        await self._async_refresh_token(sent_with_token)
        return await self._session.send(build_request())

    def build_request(self, method: str, path: str, **kwargs: Any) -> httpx.Request:
        """Build a request relative to the API root for use with ``send``."""
        return self._session.build_request(method, path, **kwargs)

    async def get(self, path: str, *, pre_authenticate: bool = False) -> httpx.Response:
        """Send a GET request to ``path``."""
        return await self._async_send_authenticated(
            lambda: self._session.build_request("GET", path),
            pre_authenticate=pre_authenticate,
        )

    async def post(
        self,
        path: str,
        content: Any,
        *,
        pre_authenticate: bool = False,
    ) -> httpx.Response:
        """Send ``content`` as JSON in a POST request to ``path``."""
        payload = to_json_value(content)
        return await self._async_send_authenticated(
            lambda: self._session.build_request("POST", path, json=payload),
            pre_authenticate=pre_authenticate,
        )

    async def put(
        self,
        path: str,
        content: Any,
        *,
        pre_authenticate: bool = False,
    ) -> httpx.Response:
        """Send ``content`` as JSON in a PUT request to ``path``."""
        payload = to_json_value(content)
        return await self._async_send_authenticated(
            lambda: self._session.build_request("PUT", path, json=payload),
            pre_authenticate=pre_authenticate,
        )

    async def delete(
        self, path: str, *, pre_authenticate: bool = False
    ) -> httpx.Response:
        """Send a DELETE request to ``path``."""
        return await self._async_send_authenticated(
            lambda: self._session.build_request("DELETE", path),
            pre_authenticate=pre_authenticate,
        )

    async def send(
        self,
        request: httpx.Request,
        *,
        pre_authenticate: bool = False,
    ) -> httpx.Response:
        """Send a prebuilt request.

        The session's default headers and the current bearer token are
        applied to ``request`` before every attempt.

        Args:
            request: Request with an absolute URL.
            pre_authenticate: Authenticate before sending, for endpoints that
                never answer 401 themselves.

        Returns:
            The HTTP response.

        """

        def prepare() -> httpx.Request:
            for key, value in self._session.headers.items():
                if key not in request.headers:
                    request.headers[key] = value
            if self._access_token is not None:
                request.headers["Authorization"] = create_bearer_header(
                    self._access_token
                )
            return request

        return await self._async_send_authenticated(
            prepare, pre_authenticate=pre_authenticate
        )
