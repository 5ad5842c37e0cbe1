"""Multipart bodies for batch requests and image uploads.

The batch endpoint takes a multipart/mixed body whose parts are complete
HTTP requests (``application/http; msgtype=request``) and answers with a
multipart/mixed body holding one embedded HTTP response per request, in
the order the requests were sent.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from email import policy
from email.parser import BytesParser
from typing import TYPE_CHECKING, Any

import httpx

from .api import MultipartError
from .const import CONTENT_TYPE_JSON
from .models import to_json_value

if TYPE_CHECKING:
    from .api import DynamicCommandClient

_LOGGER = logging.getLogger(__name__)

CRLF = b"\r\n"
HTTP_VERSION = "HTTP/1.1"
CONTENT_TYPE_HTTP_REQUEST = "application/http; msgtype=request"
CONTENT_TYPE_JSON_UTF8 = f"{CONTENT_TYPE_JSON}; charset=utf-8"
MULTIPART_SUBTYPES = ("mixed", "related")


@dataclass
class BodyPart:
    """One part of a multipart body."""

    content: bytes
    headers: dict[str, str] = field(default_factory=dict)

    def encode(self) -> bytes:
        """Return the part headers, a blank line and the content."""
        lines = [
            f"{name}: {value}".encode("latin-1") for name, value in self.headers.items()
        ]
        return CRLF.join([*lines, b"", self.content])


def encode_json(value: Any) -> bytes:
    """Serialise a model or plain value as UTF-8 JSON."""
    return json.dumps(to_json_value(value)).encode("utf-8")


def encode_http_request(method: str, url: str, content: Any = None) -> bytes:
    """Serialise a request as an embedded HTTP/1.1 message.

    Args:
        method: HTTP method.
        url: Absolute request URL.
        content: Optional model or JSON value sent as the request body.

    Returns:
        Request line, headers, blank line and body.

    """
    target = httpx.URL(url)
    request_target = target.raw_path.decode("ascii")
    lines = [
        f"{method.upper()} {request_target} {HTTP_VERSION}",
        f"Host: {target.netloc.decode('ascii')}",
    ]
    body = b""
    if content is not None:
        body = encode_json(content)
        lines.append(f"Content-Type: {CONTENT_TYPE_JSON_UTF8}")
        lines.append(f"Content-Length: {len(body)}")
    head = "\r\n".join(lines).encode("latin-1")
    return head + CRLF + CRLF + body


class MultipartBody:
    """Builder for multipart/mixed and multipart/related bodies."""

    def __init__(self, subtype: str = "mixed", boundary: str | None = None) -> None:
        """Initialize an empty body.

        Args:
            subtype: Multipart subtype, ``mixed`` or ``related``.
            boundary: Part boundary; a ``batch_<uuid>`` value by default.

        """
        if subtype not in MULTIPART_SUBTYPES:
            subtype_error = f"Unsupported multipart subtype: {subtype}"
            raise MultipartError(subtype_error)
        self.subtype = subtype
        self.boundary = boundary or f"batch_{uuid.uuid4()}"
        self.parts: list[BodyPart] = []

    def __len__(self) -> int:
        return len(self.parts)

    @property
    def content_type(self) -> str:
        """Return the Content-Type header value including the boundary."""
        return f'multipart/{self.subtype}; boundary="{self.boundary}"'

    def add_json(self, value: Any) -> None:
        """Add a JSON part."""
        self.parts.append(
            BodyPart(encode_json(value), {"Content-Type": CONTENT_TYPE_JSON_UTF8})
        )

    def add_bytes(self, content: bytes, content_type: str) -> None:
        """Add a binary part such as an image."""
        self.parts.append(BodyPart(content, {"Content-Type": content_type}))

    def add_request(self, method: str, url: str, content: Any = None) -> None:
        """Add an embedded HTTP request part."""
        self.parts.append(
            BodyPart(
                encode_http_request(method, url, content),
                {"Content-Type": CONTENT_TYPE_HTTP_REQUEST},
            )
        )

    def encode(self) -> bytes:
        """Return the encoded body."""
        delimiter = b"--" + self.boundary.encode("ascii")
        chunks = [delimiter + CRLF + part.encode() + CRLF for part in self.parts]
        return b"".join(chunks) + delimiter + b"--" + CRLF

    def build_request(
        self,
        client: DynamicCommandClient,
        url: str,
        method: str = "POST",
    ) -> httpx.Request:
        """Build a request carrying this body.

        Args:
            client: Client whose API root resolves relative URLs.
            url: Absolute URL or path relative to the API root.
            method: HTTP method.

        Returns:
            Request ready for ``DynamicCommandClient.send``.

        """
        return client.build_request(
            method,
            url,
            content=self.encode(),
            headers={"Content-Type": self.content_type},
        )


def _split_head(message: bytes) -> tuple[bytes, bytes]:
    for separator in (CRLF + CRLF, b"\n\n"):
        head, found, body = message.partition(separator)
        if found:
            return head, body
    return message, b""


def parse_http_response(message: bytes) -> httpx.Response:
    """Parse an embedded HTTP response message.

    Args:
        message: Status line, headers, blank line and body.

    Returns:
        The decoded response.

    Raises:
        MultipartError: If the status line is malformed.

    """
    head, body = _split_head(message.lstrip(b"\r\n"))
    status_line, _, header_block = head.partition(b"\n")
    parts = status_line.decode("latin-1").strip().split(" ", 2)
    min_status_parts = 2
    if len(parts) < min_status_parts or not parts[0].startswith("HTTP/"):
        status_error = f"Invalid embedded status line: {status_line!r}"
        raise MultipartError(status_error)

    try:
        status_code = int(parts[1])
    except ValueError as err:
        status_error = f"Invalid embedded status code: {parts[1]!r}"
        raise MultipartError(status_error) from err

    headers = BytesParser(policy=policy.HTTP).parsebytes(
        header_block.strip(b"\r\n") + CRLF + CRLF, headersonly=True
    )
    return httpx.Response(
        status_code,
        headers=[(name, str(value)) for name, value in headers.items()],
        content=body,
    )


def parse_multipart_responses(response: httpx.Response) -> list[httpx.Response]:
    """Extract the embedded responses from a batch response.

    Args:
        response: multipart/mixed response from the batch endpoint.

    Returns:
        One response per part, in part order.

    Raises:
        MultipartError: If the body is not multipart.

    """
    content_type = response.headers.get("Content-Type", "")
    if not content_type.lower().startswith("multipart/"):
        type_error = f"Expected a multipart response, got: {content_type or 'none'}"
        raise MultipartError(type_error)

    envelope = f"Content-Type: {content_type}\r\n\r\n".encode("latin-1")
    message = BytesParser(policy=policy.HTTP).parsebytes(envelope + response.content)
    if not message.is_multipart():
        boundary_error = "Multipart response has no parts"
        raise MultipartError(boundary_error)

    responses = [
        parse_http_response(part.get_payload(decode=True) or b"")
        for part in message.iter_parts()
    ]
    _LOGGER.debug("Extracted %d responses from batch response", len(responses))
    return responses
