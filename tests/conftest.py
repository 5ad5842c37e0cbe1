"""Pytest configuration and fixtures for the Dynamic Solution client tests."""

from typing import Any

import pytest
from pytest_httpx import HTTPXMock

from dynamic_command.api import DynamicCommandClient

SERVER_URL = "https://dynamic.example.test"
TOKEN_URL = f"{SERVER_URL}/Identity/connect/token"
API_URL = f"{SERVER_URL}/API/"
BATCH_URL = f"{API_URL}api/batch"

CLIENT_ID = "new_client_id"
CLIENT_SECRET = "client_secret"  # noqa: S105
USERNAME = "admin@localhost"
PASSWORD = "password"  # noqa: S105

ACCESS_TOKEN = "access-token-1"  # noqa: S105


def create_batch_response_content(
    boundary: str,
    responses: list[tuple[int, str, bytes]],
) -> bytes:
    """Create a multipart/mixed body of embedded HTTP responses.

    Args:
        boundary: Multipart boundary.
        responses: (status code, reason phrase, JSON body) per part.

    Returns:
        Encoded multipart body.

    """
    chunks = []
    for status_code, reason, body in responses:
        head = f"HTTP/1.1 {status_code} {reason}\r\n"
        if body:
            head += (
                "Content-Type: application/json; charset=utf-8\r\n"
                f"Content-Length: {len(body)}\r\n"
            )
        chunks.append(
            f"--{boundary}\r\n"
            "Content-Type: application/http; msgtype=response\r\n"
            "\r\n"
            f"{head}\r\n".encode("latin-1")
            + body
            + b"\r\n"
        )
    return b"".join(chunks) + f"--{boundary}--\r\n".encode("latin-1")


@pytest.fixture
def client() -> DynamicCommandClient:
    """Fixture providing a client for the test server."""
    return DynamicCommandClient(
        SERVER_URL,
        CLIENT_ID,
        CLIENT_SECRET,
        USERNAME,
        PASSWORD,
    )


@pytest.fixture
def add_token_response(httpx_mock: HTTPXMock) -> Any:
    """Fixture registering successful token endpoint responses.

    Returns:
        Function that registers one token response per call.

    """

    def _add(access_token: str = ACCESS_TOKEN) -> None:
        httpx_mock.add_response(
            url=TOKEN_URL,
            method="POST",
            json={
                "access_token": access_token,
                "expires_in": 3600,
                "token_type": "Bearer",
                "scope": "basic_api",
            },
        )

    return _add


@pytest.fixture
def sample_users_response() -> list[dict[str, Any]]:
    """Fixture providing a sample users API response."""
    return [
        {"UserName": "admin@localhost", "Email": "admin@localhost", "Id": "1"},
        {"UserName": "operator", "Email": "operator@example.test", "Id": "2"},
    ]


@pytest.fixture
def sample_communicator_response() -> dict[str, Any]:
    """Fixture providing a sample communicator API response."""
    return {
        "SerialNumber": "C0001",
        "Mode": "Online",
        "MACAddress": "00:11:22:33:44:55",
        "IPAddress": "10.0.0.5",
        "NetworkConfig": {
            "Method": 1,
            "IPAddress": "10.0.0.5",
            "PrefixLength": 24,
            "DefaultGateway": "10.0.0.1",
        },
        "NetworkID": "4242",
        "Status": 1,
        "LocationName": "Location_001",
        "ClientID": 0,
        "Enabled": True,
        "Channel": 3,
        "FirmwareVersion": "2.1.0",
        "KeepCommunicatorNetworkId": False,
    }


@pytest.fixture
def sample_clear_pages_response() -> dict[str, Any]:
    """Fixture providing a sample clear product pages API response."""
    return {
        "ClearObjectPagesResponse": [
            {
                "ObjectIds": ["P1"],
                "PageResults": [
                    {"Page": 1, "ClearIssued": True},
                    {"Page": 2, "ClearIssued": False},
                ],
            },
        ],
    }
