"""
Authenticated async HTTP transport for the Bahamut forum.

The crawler only needs ``fetch(url) -> bytes`` with the session cookies
attached. This module owns that client, the login handshake that fills the
cookie jar, and the retry policy for transient failures:

- Requests before ``login()`` raise SessionInactive
- 429 / 5xx responses and network errors are retried with exponential backoff
- Anything still failing after ``max_retries`` becomes TransientFetchError
"""

import asyncio
import logging
import re
from typing import Any, Optional

import httpx
import orjson

from .errors import LoginError, ParseError, SessionInactive, TransientFetchError

logger = logging.getLogger(__name__)

# Login handshake: the first page carries a hidden anti-bot token that has to
# be posted back with the credentials.
LOGIN_URL = "https://user.gamer.com.tw/login.php"
DO_LOGIN_URL = "https://user.gamer.com.tw/ajax/do_login.php"
ALTERNATIVE_CAPTCHA_RE = re.compile(
    r'<input type="hidden" name="alternativeCaptcha" value="(\w+)"'
)

USER_AGENT = "Mozilla/5.0"
GA_COOKIE = ("_ga", "c8763")

REQUEST_TIMEOUT = 30.0
REQUEST_DELAY = 0.0

MAX_RETRIES = 3
INITIAL_BACKOFF = 2.0

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class Transport:
    """
    Cookie-bearing HTTP client used by the crawler and the monitor.

    Usage:
        async with Transport() as transport:
            await transport.login(account, password)
            html = await transport.fetch(url)
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = REQUEST_TIMEOUT,
        request_delay: float = REQUEST_DELAY,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF,
        require_session: bool = True,
    ):
        """
        Args:
            client: Pre-built client (tests pass one with an httpx.MockTransport)
            timeout: Per-request timeout in seconds
            request_delay: Fixed pause before every GET
            max_retries: Retries after the first attempt for transient failures
            initial_backoff: First backoff delay, doubled on each retry
            require_session: When False, fetch() works without login()
        """
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self.request_delay = request_delay
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.is_session_active = not require_session

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def login(self, account: str, password: str) -> None:
        """
        Log in and keep the session cookies on the client.

        Raises:
            LoginError: if the login page has no token or a request fails
        """
        self.client.headers["User-agent"] = USER_AGENT
        self.client.cookies.set(*GA_COOKIE)

        try:
            response = await self.client.get(LOGIN_URL)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("GET %s failed: %s", LOGIN_URL, e)
            raise LoginError(f"could not load login page: {e}") from e

        match = ALTERNATIVE_CAPTCHA_RE.search(response.text)
        if not match:
            logger.error("alternativeCaptcha value not found")
            raise LoginError("alternativeCaptcha value not found")
        logger.info("Got alternativeCaptcha token")

        form = {
            "userid": account,
            "password": password,
            "alternativeCaptcha": match.group(1),
        }
        try:
            response = await self.client.post(DO_LOGIN_URL, data=form)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("POST %s failed: %s", DO_LOGIN_URL, e)
            raise LoginError(f"login request failed: {e}") from e

        self.is_session_active = True
        logger.info("Login success")

    async def fetch(self, url: str) -> bytes:
        """
        GET a URL and return the raw body.

        Raises:
            SessionInactive: if login() has not succeeded yet
            TransientFetchError: on HTTP/network failure after all retries
        """
        if not self.is_session_active:
            logger.error("Session is not active, call login() first")
            raise SessionInactive("session is not active")

        if self.request_delay > 0:
            await asyncio.sleep(self.request_delay)

        backoff = self.initial_backoff
        attempt = 0
        while True:
            try:
                response = await self.client.get(url)
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    logger.error("GET %s failed after %d attempts: %s", url, attempt + 1, e)
                    raise TransientFetchError(f"GET {url} failed: {e}", url=url) from e
                logger.warning("Request error for %s, retrying in %.1fs: %s", url, backoff, e)
            else:
                status = response.status_code
                if status not in RETRYABLE_STATUS_CODES:
                    if response.is_error:
                        logger.error("HTTP %d for %s", status, url)
                        raise TransientFetchError(
                            f"GET {url} returned HTTP {status}", url=url, status_code=status
                        )
                    return response.content
                if attempt >= self.max_retries:
                    logger.error("HTTP %d for %s after %d attempts", status, url, attempt + 1)
                    raise TransientFetchError(
                        f"GET {url} returned HTTP {status}", url=url, status_code=status
                    )
                logger.warning("HTTP %d for %s, retrying in %.1fs", status, url, backoff)

            await asyncio.sleep(backoff)
            backoff *= 2
            attempt += 1

    async def fetch_json(self, url: str) -> Any:
        """
        GET a URL and decode the body as JSON.

        Raises:
            ParseError: if the body is not valid JSON
        """
        body = await self.fetch(url)
        try:
            return orjson.loads(body)
        except orjson.JSONDecodeError as e:
            logger.error("Invalid JSON from %s: %s", url, e)
            raise ParseError(f"invalid JSON from {url}") from e
