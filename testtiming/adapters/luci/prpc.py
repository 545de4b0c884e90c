"""pRPC transport shared by the Buildbucket and ResultDB adapters.

pRPC is gRPC over plain HTTP: each call is a POST of the JSON-encoded
request message to /prpc/<service>/<method>. JSON replies start with
an XSSI guard line that must be stripped before decoding.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

import httpx

from testtiming.core.errors import RemoteServiceError, ResponseFormatError

logger = logging.getLogger(__name__)

XSSI_PREFIX = ")]}'"

_FRACTION = re.compile(r"\.(\d+)")


def strip_xssi(text: str) -> str:
    """Remove the XSSI guard line that prefixes LUCI JSON replies."""
    if text.startswith(XSSI_PREFIX):
        return text[len(XSSI_PREFIX):].lstrip("\n")
    return text


def decode_json(service: str, text: str) -> dict[str, Any]:
    """Decode a JSON object reply.

    Raises:
        ResponseFormatError: If the reply is not a JSON object.
    """
    try:
        data = json.loads(strip_xssi(text))
    except json.JSONDecodeError as e:
        raise ResponseFormatError(f"{service}: invalid JSON reply: {e}") from e
    if not isinstance(data, dict):
        raise ResponseFormatError(f"{service}: reply is not a JSON object")
    return data


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a protobuf JSON timestamp (RFC 3339, up to nanoseconds)."""
    if not value:
        return None
    # fromisoformat accepts at most microseconds
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ResponseFormatError(f"invalid timestamp: {value}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a datetime as a protobuf JSON timestamp in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_duration(value: str | None) -> float:
    """Parse a protobuf JSON duration such as "1.5s" into seconds."""
    if not value:
        return 0.0
    if not value.endswith("s"):
        raise ResponseFormatError(f"invalid duration: {value}")
    try:
        return float(value[:-1])
    except ValueError as e:
        raise ResponseFormatError(f"invalid duration: {value}") from e


def camel_case(path: str) -> str:
    """Convert a snake_case field path to its JSON name."""
    head, *rest = path.split("_")
    return head + "".join(part.title() for part in rest)


class PRPCClient:
    """Calls pRPC methods of one LUCI host."""

    def __init__(
        self,
        host: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the pRPC client.

        Args:
            host: Service hostname, e.g. cr-buildbucket.appspot.com.
            timeout: Request timeout in seconds.
            client: Optional preconfigured httpx client (used by tests).
        """
        self.host = host
        self.client = client or httpx.AsyncClient(
            base_url=f"https://{host}",
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    async def __aenter__(self) -> "PRPCClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the httpx client and clean up resources."""
        await self.client.aclose()

    async def call(
        self, service: str, method: str, request: dict[str, Any]
    ) -> dict[str, Any]:
        """Invoke service.method with a JSON request message.

        Returns:
            The decoded JSON reply message.

        Raises:
            RemoteServiceError: If the host is unreachable or the call fails.
            ResponseFormatError: If the reply cannot be decoded.
        """
        name = f"{self.host}/{service}.{method}"
        try:
            response = await self.client.post(
                f"/prpc/{service}/{method}",
                content=json.dumps(request),
            )
        except httpx.HTTPError as e:
            logger.error(f"pRPC call {name} failed: {e}")
            raise RemoteServiceError(name, str(e)) from e

        if response.status_code != 200:
            code = response.headers.get("X-Prpc-Grpc-Code", "")
            message = response.text.strip()
            logger.error(
                f"pRPC call {name} returned HTTP {response.status_code} "
                f"(grpc code {code or 'unknown'}): {message}"
            )
            raise RemoteServiceError(
                name,
                f"HTTP {response.status_code}: {message}",
                status_code=response.status_code,
            )
        return decode_json(name, response.text)
