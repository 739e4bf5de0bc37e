"""
Test takers API wrapper for the sync system.

Provides a clean interface to the assessment API with:
- Rate limiting compliance
- Access token acquisition
- Offset/limit pagination of finished test takers
- Error handling
"""

from typing import Any, Optional

import requests
from ratelimit import limits, sleep_and_retry

from testtaker_notify.config import Config
from testtaker_notify.exceptions import ApiError, AuthenticationError
from testtaker_notify.models import TestTaker, TestTakerPage

CONTENT_TYPE_JSON = "application/json"

# Client-side throttle: 3 requests per second
RATE_LIMIT_CALLS = 3
RATE_LIMIT_PERIOD = 1  # second


class TestTakerAPI:
    """
    Wrapper around the test takers API with rate limiting.

    Handles:
    - Authentication (email/password -> bearer token)
    - Rate limiting (3 req/sec)
    - Listing pages of test takers, newest first
    - Turning transport, HTTP and API error payloads into ApiError
    """

    __test__ = False

    def __init__(self, config: Config, session: Optional[requests.Session] = None):
        """
        Initialize the API client.

        Args:
            config: Configuration instance with endpoints and credentials.
            session: Optional requests session (a new one is created otherwise).
        """
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update(
            {"Accept": CONTENT_TYPE_JSON, "Content-Type": CONTENT_TYPE_JSON}
        )
        self._request_count = 0

    @sleep_and_retry
    @limits(calls=RATE_LIMIT_CALLS, period=RATE_LIMIT_PERIOD)
    def _rate_limited_call(self, func, *args, **kwargs) -> Any:
        """Execute a rate-limited API call."""
        self._request_count += 1
        return func(*args, **kwargs)

    def authenticate(self) -> str:
        """
        Acquire an access token with the configured credentials.

        Returns:
            The bearer token to attach to listing requests.

        Raises:
            AuthenticationError: If the token could not be obtained.
        """
        try:
            data = self._request(
                "POST",
                self.config.api_auth_endpoint,
                json={
                    "email": self.config.api_auth_email,
                    "password": self.config.api_auth_password,
                },
            )
        except ApiError as e:
            raise AuthenticationError(f"could not fetch the access token: {e}") from e

        if data.get("error"):
            raise AuthenticationError(
                "api returned an error when fetching the access token",
                error_type=_error_type(data["error"]),
            )

        access_token = data.get("access_token")
        if not access_token:
            raise AuthenticationError("api response did not contain an access token")

        return access_token

    def list_page(self, access_token: str, limit: int, offset: int) -> TestTakerPage:
        """
        Get one page of finished test takers, newest first.

        Args:
            access_token: Token returned by authenticate().
            limit: Page size.
            offset: Number of records to skip.

        Returns:
            TestTakerPage with the records and the total the API reports.

        Raises:
            ApiError: On transport, HTTP or API errors, or a malformed payload.
        """
        data = self._request(
            "GET",
            self.config.api_test_takers_endpoint,
            params={"limit": limit, "offset": offset},
            headers={"Authorization": f"Bearer {access_token}"},
        )

        if data.get("error"):
            raise ApiError(
                "api returned an error when fetching test takers",
                error_type=_error_type(data["error"]),
            )

        items = data.get("test_takers") or []
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise ApiError(f"malformed test takers response at offset {offset}: expected a list of objects")

        try:
            test_takers = [TestTaker.from_api_response(item) for item in items]
            total = int(data.get("total") or 0)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ApiError(f"malformed test takers response at offset {offset}: {e}") from e

        return TestTakerPage(test_takers=test_takers, total=total)

    def _request(self, method: str, url: str, **kwargs) -> dict:
        """Send a request and decode the JSON body."""
        try:
            response = self._rate_limited_call(
                self.session.request,
                method,
                url,
                timeout=self.config.request_timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise ApiError(f"cannot execute {method} request for {url}: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            if not response.ok:
                raise ApiError(f"{method} {url} returned HTTP {response.status_code}") from e
            raise ApiError(f"cannot decode response from {url} as JSON: {e}") from e

        if not response.ok:
            error = data.get("error") if isinstance(data, dict) else None
            raise ApiError(
                f"{method} {url} returned HTTP {response.status_code}",
                error_type=_error_type(error) if error else None,
            )

        if not isinstance(data, dict):
            raise ApiError(f"unexpected response from {url}: expected a JSON object")

        return data

    @property
    def request_count(self) -> int:
        """Number of API requests made."""
        return self._request_count


def _error_type(error) -> Optional[str]:
    """Error type from an API error value, which is usually {"type": ...}."""
    if isinstance(error, dict):
        return error.get("type")
    return str(error)
