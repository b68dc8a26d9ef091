"""
Qualtrics API Client.

Handles authentication headers, HTTP requests, rate limiting and error
decoding for the Qualtrics v3 REST API. Endpoint-specific logic lives in
the export and question metadata clients built on top of it.
"""

import time
from typing import Optional

import requests

from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_errors import RemoteError
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_utils import (
    QualtricsConfig,
    get_logger,
)

logger = get_logger()


class QualtricsAPIClient:
    """
    HTTP client for the Qualtrics API authenticated with an API token.

    Handles:
    - X-API-TOKEN authentication header
    - Rate limiting (HTTP 429) with Retry-After
    - Turning failed responses into RemoteError with the Qualtrics error message
    """

    def __init__(
        self,
        api_token: str,
        session: Optional[requests.Session] = None,
        request_timeout: float = QualtricsConfig.REQUEST_TIMEOUT,
    ) -> None:
        """
        Initialize the API client.

        Args:
            api_token: Qualtrics API token, sent as the X-API-TOKEN header.
            session: Optional requests.Session or compatible HTTP session. Used for
                connection pooling and easier testing.
            request_timeout: Timeout in seconds for a single request.
        """
        if not api_token:
            raise ValueError("api_token is required")
        self.api_token = api_token
        self.request_timeout = request_timeout
        self._session = session or requests.Session()

    def _headers(self, is_retry: bool) -> dict:
        headers = {
            "X-API-TOKEN": self.api_token,
            "Content-Type": "application/json",
        }
        if is_retry:
            # Repeated status checks must reach the server, not a cache.
            headers["Cache-Control"] = "no-cache"
        return headers

    def _make_http_request(  # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        method: str,
        url: str,
        headers: dict,
        json_body: Optional[dict],
        timeout: float,
    ) -> requests.Response:
        """
        Execute the HTTP request using the session.

        Args:
            method: HTTP method (GET or POST)
            url: Full URL to request
            headers: Request headers including X-API-TOKEN
            json_body: JSON body for POST requests
            timeout: Request timeout in seconds

        Returns:
            requests.Response object
        """
        method = method.upper()
        if method == "GET":
            return self._session.get(url, headers=headers, timeout=timeout)
        if method == "POST":
            return self._session.post(url, headers=headers, json=json_body, timeout=timeout)
        raise ValueError(f"Unsupported HTTP method: {method}")

    def request(  # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        method: str,
        url: str,
        json_body: Optional[dict] = None,
        is_retry: bool = False,
        timeout: Optional[float] = None,
        max_retries: int = QualtricsConfig.MAX_HTTP_RETRIES,
    ) -> requests.Response:
        """
        Make an authenticated request and return the successful response.

        Only HTTP 429 is retried, after the server's Retry-After delay. Every
        other failure is raised immediately.

        Args:
            method: HTTP method (GET or POST)
            url: Full URL to request
            json_body: JSON body for POST requests
            is_retry: Marks a repeated call to the same endpoint (e.g. a status poll)
            timeout: Overrides the client's request timeout
            max_retries: Maximum waits on rate limiting before giving up

        Returns:
            requests.Response with a 2xx status

        Raises:
            RemoteError: On connection failure or a non-success status.
        """
        if is_retry:
            logger.debug(f"Retrying {method} {url}")

        headers = self._headers(is_retry)
        timeout = timeout or self.request_timeout

        for attempt in range(max_retries + 1):
            try:
                response = self._make_http_request(method, url, headers, json_body, timeout)
            except requests.exceptions.RequestException as e:
                raise RemoteError(f"{method} {url} failed: {e}") from e

            if response.status_code == 429 and attempt < max_retries:
                retry_after = _retry_after_seconds(response)
                logger.warning(f"Rate limited. Waiting {retry_after} seconds...")
                time.sleep(retry_after)
                continue

            if not response.ok:
                error_message = _extract_error_message(response)
                logger.error(f"API Error Response from {method} {url}: {error_message}")
                raise RemoteError(
                    f"{method} {url} failed",
                    status_code=response.status_code,
                    error_message=error_message,
                )
            return response

        raise RemoteError(f"{method} {url} still rate limited after {max_retries} retries")

    def request_json(  # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        method: str,
        url: str,
        json_body: Optional[dict] = None,
        is_retry: bool = False,
        timeout: Optional[float] = None,
    ) -> dict:
        """
        Make an authenticated request and decode the JSON object it returns.

        Raises:
            RemoteError: On a failed request or a body that is not a JSON object.
        """
        response = self.request(method, url, json_body=json_body, is_retry=is_retry, timeout=timeout)
        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteError(f"{method} {url} returned a body that is not JSON") from e
        if not isinstance(payload, dict):
            raise RemoteError(f"{method} {url} returned JSON that is not an object")
        return payload


def result_of(payload: dict, what: str) -> dict:
    """Return the ``result`` object of a Qualtrics response envelope, {} when absent."""
    result = payload.get("result")
    if result is None:
        return {}
    if not isinstance(result, dict):
        raise RemoteError(f"Unexpected response shape for {what}: result is not an object")
    return result


def _retry_after_seconds(response: requests.Response) -> float:
    value = response.headers.get("Retry-After")
    try:
        return float(value) if value is not None else QualtricsConfig.RATE_LIMIT_DEFAULT_WAIT
    except ValueError:
        return QualtricsConfig.RATE_LIMIT_DEFAULT_WAIT


def _extract_error_message(response: requests.Response) -> str:
    """Pull meta.error.errorMessage out of a Qualtrics error body, falling back to raw text."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    meta = body.get("meta") if isinstance(body, dict) else None
    if not isinstance(meta, dict):
        return response.text[:500]
    error = meta.get("error")
    if isinstance(error, dict):
        error_detail = str(error.get("errorMessage") or "")
    else:
        error_detail = str(error or "")
    http_status = str(meta.get("httpStatus") or "")
    if error_detail and http_status:
        return f"{http_status}: {error_detail}"
    return error_detail or http_status or response.text[:500]
