"""
HTTP API Client for the AIOCENSOR console client.

This module provides the aiohttp transport used to talk to the console API,
including the anonymous login/refresh exchanges, retry logic for idempotent
calls, and the request/response middleware chain that the authentication
interceptors plug into.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Callable, Awaitable
from urllib.parse import urljoin

import aiohttp
from aiohttp import ClientSession, ClientTimeout, ClientError

from censor_shared.exceptions import (
    ConsoleClientError, ErrorCode, ServerError, TokenExpiredError, TransportError
)
from censor_shared.interfaces import IAuthAPI

logger = logging.getLogger(__name__)


@dataclass
class OutgoingRequest:
    """A request about to be dispatched. Request middleware may edit it."""
    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    data: Optional[Dict[str, Any]] = None
    params: Optional[Dict[str, Any]] = None
    anonymous: bool = False


@dataclass
class CompletedResponse:
    """A finished exchange as seen by response middleware."""
    request: OutgoingRequest
    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def detail(self, default: str) -> str:
        if isinstance(self.body, dict):
            for key in ('detail', 'message'):
                if self.body.get(key):
                    return str(self.body[key])
        if isinstance(self.body, str) and self.body:
            return self.body
        return default


RequestMiddleware = Callable[[OutgoingRequest], Awaitable[OutgoingRequest]]
ResponseMiddleware = Callable[[CompletedResponse], Awaitable[CompletedResponse]]


class RetryConfig:
    """Configuration for retry logic."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter: bool = True
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        if self.jitter:
            delay *= (0.5 + random.random() * 0.5)
        return delay


class ConsoleAPIClient(IAuthAPI):
    """
    HTTP API client for the AIOCENSOR console API.

    Every non-anonymous call runs the request middleware before dispatch and
    the response middleware after completion. The login and refresh exchanges
    are anonymous and bypass both.
    """

    def __init__(
        self,
        server_url: str,
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        login_path: str = '/api/login',
        refresh_path: str = '/api/refresh'
    ):
        self.server_url = server_url.rstrip('/') + '/'
        self.timeout = ClientTimeout(total=timeout)
        self.retry_config = retry_config or RetryConfig()
        self.login_path = login_path
        self.refresh_path = refresh_path

        self._session: Optional[ClientSession] = None
        self._request_middlewares: List[RequestMiddleware] = []
        self._response_middlewares: List[ResponseMiddleware] = []

        logger.info(f"API client initialized for server: {server_url}")

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def add_request_middleware(self, middleware: RequestMiddleware) -> None:
        """Register a hook that runs before each authenticated call, in order."""
        self._request_middlewares.append(middleware)

    def add_response_middleware(self, middleware: ResponseMiddleware) -> None:
        """Register a hook that runs after each authenticated call, in order."""
        self._response_middlewares.append(middleware)

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is available."""
        if self._session is None or self._session.closed:
            self._session = ClientSession(
                timeout=self.timeout,
                headers={
                    'User-Agent': 'AiocensorConsoleClient/1.0',
                    'Accept': 'application/json'
                }
            )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _dispatch(self, request: OutgoingRequest, retry: bool) -> CompletedResponse:
        """
        Send a request, retrying network failures with exponential backoff.

        Raises:
            TransportError: When the server cannot be reached
        """
        await self._ensure_session()

        url = urljoin(self.server_url, request.path.lstrip('/'))
        max_attempts = (self.retry_config.max_retries if retry else 0) + 1
        last_exception: Optional[BaseException] = None

        for attempt in range(max_attempts):
            try:
                logger.debug(f"{request.method} {url} (attempt {attempt + 1})")

                async with self._session.request(
                    method=request.method,
                    url=url,
                    json=request.data,
                    params=request.params,
                    headers=request.headers
                ) as response:
                    return CompletedResponse(
                        request=request,
                        status=response.status,
                        body=await self._read_body(response)
                    )

            except (ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                logger.warning(f"Network error on attempt {attempt + 1}: {e!r}")

                if attempt + 1 >= max_attempts:
                    break

                delay = self.retry_config.delay_for(attempt)
                logger.info(f"Retrying in {delay:.1f} seconds...")
                await asyncio.sleep(delay)

        if isinstance(last_exception, asyncio.TimeoutError):
            raise TransportError(
                f"Request to {request.path} timed out after {max_attempts} attempt(s)",
                error_code=ErrorCode.NETWORK_TIMEOUT,
                cause=last_exception
            )
        raise TransportError(
            f"Request to {request.path} failed after {max_attempts} attempt(s): {last_exception}",
            cause=last_exception
        )

    async def _read_body(self, response) -> Any:
        """Decode a JSON body, falling back to text."""
        try:
            return await response.json(content_type=None)
        except (ValueError, aiohttp.ContentTypeError):
            return await response.text()

    async def request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        anonymous: bool = False,
        retry: Optional[bool] = None
    ) -> Any:
        """
        Make an API call through the middleware chain.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: API path, relative to the server URL
            data: JSON request body
            params: Query parameters
            anonymous: Skip the credential middleware entirely
            retry: Retry network failures; defaults to True for GET only

        Returns:
            Decoded response body

        Raises:
            TokenExpiredError: On 401 (after response middleware has run)
            ServerError: On 5xx
            TransportError: When the server cannot be reached
            ConsoleClientError: On any other non-2xx status
        """
        if retry is None:
            retry = method.upper() == 'GET'

        outgoing = OutgoingRequest(
            method=method.upper(),
            path=path,
            data=data,
            params=params,
            anonymous=anonymous
        )

        if not anonymous:
            for middleware in self._request_middlewares:
                outgoing = await middleware(outgoing)

        response = await self._dispatch(outgoing, retry=retry)

        if not anonymous:
            for middleware in self._response_middlewares:
                response = await middleware(response)

        return self._handle_response(response)

    def _handle_response(self, response: CompletedResponse) -> Any:
        if response.ok:
            return response.body if response.body != '' else {}

        if response.status == 401:
            raise TokenExpiredError(
                f"Authentication failed: {response.detail('Unauthorized')}",
                context={'path': response.request.path}
            )

        if response.status >= 500:
            raise ServerError(
                f"Server error ({response.status}): {response.detail('Internal server error')}",
                status=response.status
            )

        raise ConsoleClientError(
            f"Request failed ({response.status}): {response.detail('Unknown error')}",
            error_code=ErrorCode.SERVER_REQUEST_FAILED,
            context={'status': response.status, 'path': response.request.path}
        )

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request('GET', path, params=params)

    async def post(self, path: str, data: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request('POST', path, data=data)

    async def _auth_exchange(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run an anonymous single-attempt exchange with the authenticator.

        Client errors (4xx) are rejections and are returned as a body with
        ``success`` false rather than raised.
        """
        response = await self._dispatch(
            OutgoingRequest(method='POST', path=path, data=payload, anonymous=True),
            retry=False
        )

        if response.status >= 500:
            raise ServerError(
                f"Server error ({response.status}): {response.detail('Internal server error')}",
                status=response.status
            )

        if isinstance(response.body, dict):
            body = dict(response.body)
            if not response.ok:
                body['success'] = False
            return body

        if response.ok:
            raise ConsoleClientError(
                f"Unexpected response body from {path}",
                error_code=ErrorCode.SERVER_REQUEST_FAILED,
                context={'status': response.status}
            )

        return {'success': False, 'message': response.detail(f"Request rejected ({response.status})")}

    async def post_login(self, password: str) -> Dict[str, Any]:
        """POST the password to the login endpoint and return the decoded body."""
        return await self._auth_exchange(self.login_path, {'password': password})

    async def post_refresh(self, refresh_token: Optional[str]) -> Dict[str, Any]:
        """POST the refresh token to the refresh endpoint and return the decoded body."""
        return await self._auth_exchange(self.refresh_path, {'refresh_token': refresh_token})
