"""Shared HTTP client for the backend API (httpx + retry/backoff).

Every screen and command goes through ``ApiClient`` so authentication,
failure classification, retries and forced logout behave the same everywhere.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt

from farmconsole.domain.config.client import ClientConfig
from farmconsole.domain.errors import ApiError, NetworkError, ParseError
from farmconsole.domain.models.request import HttpMethod, RequestDescriptor
from farmconsole.infrastructure.retry import (
    BackoffScheduler,
    SleepFunc,
    classified_error,
    retry_if_classified,
)
from farmconsole.infrastructure.signals import UnauthorizedSignal
from farmconsole.infrastructure.token_store import TokenStore

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


class ApiClient:
    """Resilient JSON API client.

    Structured calls are retried on network errors, 429 and 5xx with
    exponential backoff. A 401 clears the token store and emits the
    unauthorized signal before raising. Uploads are never retried.
    """

    def __init__(
        self,
        config: ClientConfig,
        token_store: TokenStore,
        unauthorized: Optional[UnauthorizedSignal] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        """Initialize client

        Args:
            config: Client configuration (base URL, retry policy)
            token_store: Where the bearer token is read from and cleared
            unauthorized: Signal emitted on 401 (a private one is created if None)
            transport: Optional httpx transport (tests use httpx.MockTransport)
            sleep: Optional coroutine used for backoff waits
        """
        self.config = config
        self.token_store = token_store
        self.unauthorized = unauthorized or UnauthorizedSignal()
        self.scheduler = BackoffScheduler(config.retry_delay_ms, config.max_delay_ms, sleep=sleep)
        self._client = httpx.AsyncClient(base_url=config.base_url.rstrip("/"), transport=transport)

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------ structured calls ------------
    async def execute(self, descriptor: RequestDescriptor) -> Any:
        """Run one logical call, retrying transient failures.

        Args:
            descriptor: What to call

        Returns:
            Parsed JSON body of the successful response (None if empty)

        Raises:
            ApiError: Terminal failure, already classified
        """
        max_retries = self.config.max_retries
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=self.scheduler,
            retry=retry_if_classified(max_retries),
            sleep=self.scheduler.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._attempt(descriptor, attempt.retry_state.attempt_number - 1)
        except ApiError as e:
            logger.error(f"{descriptor.method.value} {descriptor.endpoint} failed: {e.message}")
            raise
        return result

    async def _attempt(self, descriptor: RequestDescriptor, attempt: int) -> Any:
        headers = {"Content-Type": JSON_CONTENT_TYPE, **descriptor.headers}
        headers.update(self._auth_headers())

        logger.debug(f"HTTP {descriptor.method.value} {descriptor.endpoint} (attempt {attempt})")
        try:
            response = await self._client.request(
                descriptor.method.value,
                descriptor.endpoint,
                json=descriptor.body,
                params=descriptor.query or None,
                headers=headers,
            )
        except httpx.DecodingError as e:
            raise ParseError(f"Could not decode response: {e}", status=None) from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: {e}" if str(e) else "Network error occurred") from e

        if response.is_success:
            return self._parse_body(response)
        if response.status_code == 401:
            self._invalidate_session()
        raise classified_error(response)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        attempt = retry_state.attempt_number
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"API call failed (attempt {attempt}/{self.config.max_retries + 1}): {exception}. "
            f"Retrying in {delay:.2f}s..."
        )

    async def get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.execute(RequestDescriptor(HttpMethod.GET, endpoint, params=dict(params or {})))

    async def post(self, endpoint: str, data: Any = None) -> Any:
        return await self.execute(RequestDescriptor(HttpMethod.POST, endpoint, body=data))

    async def patch(self, endpoint: str, data: Any = None) -> Any:
        return await self.execute(RequestDescriptor(HttpMethod.PATCH, endpoint, body=data))

    async def put(self, endpoint: str, data: Any = None) -> Any:
        return await self.execute(RequestDescriptor(HttpMethod.PUT, endpoint, body=data))

    async def delete(self, endpoint: str) -> Any:
        return await self.execute(RequestDescriptor(HttpMethod.DELETE, endpoint))

    # ------------ uploads ------------
    async def upload(
        self,
        endpoint: str,
        files: Mapping[str, Any],
        data: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """POST a multipart payload. Single attempt, never retried.

        Args:
            endpoint: Path relative to the base URL
            files: httpx-style files mapping, e.g. {"file": ("nin.jpg", content, "image/jpeg")}
            data: Optional extra form fields

        Returns:
            Parsed JSON body of the successful response

        Raises:
            ApiError: Any failure, classified but not retried
        """
        logger.debug(f"HTTP upload POST {endpoint}")
        try:
            response = await self._client.post(
                endpoint,
                files=files,
                data=data,
                headers=self._auth_headers(),
            )
        except httpx.DecodingError as e:
            logger.error(f"Upload to {endpoint} returned an undecodable body: {e}")
            raise ParseError(f"Could not decode response: {e}", status=None) from e
        except httpx.RequestError as e:
            logger.error(f"Upload to {endpoint} failed: {e}")
            raise NetworkError(f"Upload failed: {e}" if str(e) else "Upload failed") from e

        if response.is_success:
            return self._parse_body(response)
        if response.status_code == 401:
            self._invalidate_session()
        error = classified_error(response)
        logger.error(f"Upload to {endpoint} failed: {error.message}")
        raise error

    # ------------ helpers ------------
    def _auth_headers(self) -> Dict[str, str]:
        token = self.token_store.get_value()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def _invalidate_session(self) -> None:
        logger.warning("Session rejected by server (401); clearing stored token")
        self.token_store.clear()
        self.unauthorized.emit()

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(
                f"Invalid JSON in response from {response.request.url.path}", status=response.status_code
            ) from e
