"""
Low-level HTTP request helper shared by all provider calls.
This module handles all HTTP requests with automatic retry on timeout and
turns non-success responses into typed errors the callers can react to.
"""
import asyncio
import logging

import aiohttp

from .const import REQUEST_ATTEMPTS, REQUEST_TIMEOUT, USER_AGENT

_LOGGER = logging.getLogger(__name__)

PAYLOAD_TOO_LARGE = 413


class ApiResponseError(Exception):
    """Exception raised when a provider returns a non-success response."""
    def __init__(self, status: int, body=None):
        self.status = status
        self.body = body
        super().__init__(f"API Error {status}: {body}")


class PayloadTooLargeError(ApiResponseError):
    """The provider refused the request because its body was too large (HTTP 413)."""


async def make_request(
    method: str,
    url: str,
    headers: dict = None,
    payload: dict = None,
    params: dict = None,
    data: str = None,
    timeout: int = REQUEST_TIMEOUT,
    max_attempts: int = REQUEST_ATTEMPTS,
):
    """
    Make an HTTP request with automatic retry on timeout.

    Args:
        method: HTTP method (GET or POST)
        url: Target URL for the request
        headers: HTTP headers dictionary (a User-Agent is added when missing)
        payload: JSON payload for POST requests (optional)
        params: URL query parameters (optional)
        data: raw text body for POST requests, used instead of payload (optional)
        timeout: Base timeout in seconds (multiplied by attempt number for each retry)
        max_attempts: Maximum number of attempts

    Returns:
        Parsed JSON response

    Raises:
        asyncio.TimeoutError: If all attempts time out
        PayloadTooLargeError: If the provider answers 413
        ApiResponseError: For any other non-200 response
        ValueError: If a successful response is not JSON
        aiohttp.ClientError: For connection-level failures (not retried)
    """
    method = method.upper()
    if method not in ("GET", "POST"):
        raise ValueError(f"Unsupported HTTP method: {method}")

    headers = dict(headers or {})
    headers.setdefault("User-Agent", USER_AGENT)
    body = {"data": data} if data is not None else {"json": payload}

    for attempt in range(max_attempts):
        # Timeout grows with each attempt
        timeout_config = aiohttp.ClientTimeout(total=timeout * (attempt + 1))
        try:
            async with aiohttp.ClientSession(timeout=timeout_config) as session:
                if method == "GET":
                    request = session.get(url, headers=headers, params=params)
                else:
                    request = session.post(url, headers=headers, params=params, **body)
                async with request as response:
                    return await _process_response(response, url)

        except (asyncio.TimeoutError, TimeoutError):
            if attempt < max_attempts - 1:
                _LOGGER.debug("Timeout on %s %s (attempt %s), retrying", method, url, attempt + 1)
                continue
            _LOGGER.warning(
                "Timeout on %s request to %s after %s attempts",
                method, url, max_attempts
            )
            raise

    return None


async def _process_response(response, url: str):
    """
    Process HTTP response and extract JSON data.

    Args:
        response: aiohttp response object
        url: Request URL (for logging)

    Returns:
        Parsed JSON response

    Raises:
        ValueError: If a successful response has an unexpected content type
        PayloadTooLargeError: On HTTP 413
        ApiResponseError: On any other error status
    """
    content_type = response.headers.get('Content-Type', '')

    if response.status == 200:
        if 'json' in content_type:
            return await response.json(content_type=None)
        text = await response.text()
        _LOGGER.warning(
            "Unexpected content type in successful response: %s from %s",
            content_type, url
        )
        raise ValueError(f"Expected JSON but got {content_type}: {text[:200]}")

    if 'json' in content_type:
        try:
            body = await response.json(content_type=None)
        except ValueError:
            body = None
    else:
        body = (await response.text())[:200]

    if response.status == PAYLOAD_TOO_LARGE:
        raise PayloadTooLargeError(response.status, body)

    _LOGGER.debug("HTTP %s from %s: %s", response.status, url, body)
    raise ApiResponseError(response.status, body)
