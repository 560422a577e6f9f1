"""
HTTP helpers for registry token endpoints.

All token exchanges go through fetch_token() so providers share one
error contract: anything other than a 200 response carrying a token
raises AuthenticationError.
"""

import aiohttp
import asyncio
import base64
import binascii
import logging
from typing import Optional, Dict, Tuple

from config.settings import get_registry_timeout
from registries.errors import AuthenticationError

logger = logging.getLogger(__name__)


def encode_basic_auth(username: str, password: str) -> str:
    """
    Encode username:password as Basic authentication header.

    Returns:
        Basic auth header string (e.g., "Basic dXNlcjpwYXNz")
    """
    credentials = f"{username or ''}:{password or ''}"
    encoded = base64.b64encode(credentials.encode()).decode()
    return f"Basic {encoded}"


def decode_basic_auth(auth: str) -> Tuple[str, str]:
    """
    Decode a base64 "username:password" value (docker config.json style).

    Raises:
        ValueError: If the value is not base64 or has no colon
    """
    try:
        decoded = base64.b64decode(auth, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError("must be a base64 encoded username:password") from e
    if ":" not in decoded:
        raise ValueError("must be a base64 encoded username:password")
    username, password = decoded.split(":", 1)
    return username, password


async def fetch_token(
    url: str,
    headers: Optional[Dict[str, str]] = None,
    provider: Optional[str] = None,
) -> str:
    """
    GET a registry token endpoint and return the raw token.

    Args:
        url: Full token endpoint URL including query string
        headers: Extra request headers (usually a Basic Authorization)
        provider: Provider id, used in error messages

    Returns:
        Token string (without "Bearer " prefix)

    Raises:
        AuthenticationError: On transport errors, non-200 status, or a
            response without a token field
    """
    request_headers = {"Accept": "application/json"}
    if headers:
        request_headers.update(headers)

    timeout = aiohttp.ClientTimeout(total=get_registry_timeout())

    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url, headers=request_headers) as response:
                if response.status != 200:
                    response_text = await response.text()
                    logger.error(f"Token request to {url} failed with status {response.status}: {response_text[:200]}")
                    raise AuthenticationError(
                        f"Token request to {url} failed with status {response.status}",
                        provider=provider,
                        status=response.status,
                    )
                data = await response.json(content_type=None)
    except asyncio.TimeoutError as e:
        logger.warning(f"Timeout fetching token from {url}")
        raise AuthenticationError(f"Timeout fetching token from {url}", provider=provider) from e
    except aiohttp.ClientError as e:
        logger.warning(f"Error fetching token from {url}: {e}")
        raise AuthenticationError(f"Error fetching token from {url}: {e}", provider=provider) from e
    except ValueError as e:
        raise AuthenticationError(f"Token endpoint {url} returned invalid JSON", provider=provider) from e

    token = None
    if isinstance(data, dict):
        token = data.get("token") or data.get("access_token")
    if not token:
        logger.error(f"Token endpoint {url} returned 200 but no token in response")
        raise AuthenticationError(f"Token endpoint {url} returned no token", provider=provider)

    logger.debug(f"Successfully obtained token from {url}")
    return token
