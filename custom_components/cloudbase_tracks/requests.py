"""
Low-level HTTP request library for JSON API communication (reference spreadsheet).
This module handles JSON requests with automatic retry on timeout and proper error handling.
Track feeds are not JSON and are fetched by api/feeds.py with a single attempt.
"""
import asyncio
import logging
import aiohttp


_LOGGER = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5  # seconds, multiplied by attempt number for each retry
REQUEST_ATTEMPTS = 3  # maximum number of retry attempts


class ApiResponseError(Exception):
    """Exception raised when API returns an error response."""
    def __init__(self, error_json: dict):
        self.error_json = error_json
        super().__init__(f"API Error: {error_json}")


async def make_request(
    url: str,
    headers: dict,
    params: dict = None,
    timeout: int = REQUEST_TIMEOUT,
    max_attempts: int = REQUEST_ATTEMPTS,
    session: aiohttp.ClientSession = None,
):
    """
    Make a GET request with automatic retry on timeout.

    Args:
        url: Target URL for the request
        headers: HTTP headers dictionary
        params: URL query parameters (optional)
        timeout: Base timeout in seconds (multiplied by attempt number for each retry)
        max_attempts: Maximum number of retry attempts
        session: Shared client session (optional); a private one is opened and closed otherwise

    Returns:
        Parsed JSON response

    Raises:
        asyncio.TimeoutError: If all retry attempts timeout
        ApiResponseError: If the API answers with a JSON error body
        ValueError: If response has unexpected content type
    """
    for attempt in range(max_attempts):
        # Timeout grows with each attempt
        timeout_config = aiohttp.ClientTimeout(total=timeout * (attempt + 1))
        own_session = session is None
        active_session = aiohttp.ClientSession(timeout=timeout_config) if own_session else session

        try:
            async with active_session.get(
                url,
                headers=headers,
                params=params,
                timeout=timeout_config,
            ) as response:
                return await _process_response(response, url)

        except (asyncio.TimeoutError, TimeoutError):
            if attempt < max_attempts - 1:
                continue
            _LOGGER.warning(
                "Timeout on GET request to %s after %s attempts",
                url, max_attempts
            )
            raise

        finally:
            if own_session:
                await active_session.close()

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
        ValueError: If response has unexpected content type
        ApiResponseError: For API errors with a JSON body
    """
    content_type = response.headers.get('Content-Type', '')

    if response.status == 200:
        if 'application/json' in content_type:
            return await response.json()
        _LOGGER.warning(
            "Unexpected content type in successful response: %s (status %s) from %s",
            content_type, response.status, url
        )
        text = await response.text()
        raise ValueError(f"Expected JSON but got {content_type}: {text[:200]}")

    if 'application/json' in content_type:
        error_json = await response.json()
        # Google APIs answer {"error": {"code": ..., "message": ...}}
        if error_json.get("error"):
            raise ApiResponseError(error_json)
        raise ValueError(f"HTTP {response.status} from {url}: {error_json}")

    # Non-JSON error response (e.g., HTML error page)
    text = await response.text()
    _LOGGER.warning(
        "Received non-JSON error response from %s: status %s, content-type: %s, body preview: %s",
        url, response.status, content_type, text[:200]
    )
    raise ValueError(
        f"HTTP {response.status} with {content_type} "
        f"(expected application/json) from {url}"
    )
