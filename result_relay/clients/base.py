"""Shared retry, timeout and error-classification logic for HTTP clients."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field

import aiohttp

from result_relay.config import RelayConfig
from result_relay.models.errors import (
    ApiFailure,
    NetworkFailure,
    RelayError,
    TimeoutFailure,
)
from result_relay.models.result import ClientResult

log = logging.getLogger(__name__)

type ResponseParser[T] = Callable[[aiohttp.ClientResponse], Awaitable[T]]


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay before the attempt following ``attempt`` (1-based).

    Exponential in the attempt number, capped at ``max_delay`` and jittered
    by up to ±25%.
    """
    capped = min(base_delay * 2 ** (attempt - 1), max_delay)
    jitter = capped * 0.25 * (rand() * 2 - 1)
    return max(0.0, capped + jitter)


def mask_secret(text: str, secret: str) -> str:
    """Replace every occurrence of ``secret`` in ``text`` with a masked form."""
    if len(secret) < 8:
        return text
    return text.replace(secret, f"{secret[:3]}...{secret[-4:]}")


async def ignore_body(response: aiohttp.ClientResponse) -> None:
    """Response parser for endpoints whose body is irrelevant."""
    await response.read()


@dataclass(frozen=True, kw_only=True)
class BaseClient:
    """Base for clients that deliver data with classified-error retries.

    Each attempt has its own timeout. Failures are returned as typed values
    and never raised.
    """

    config: RelayConfig
    session: aiohttp.ClientSession = field(repr=False)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    async def request_with_retry[T](
        self,
        method: str,
        url: str,
        *,
        parse: ResponseParser[T],
        data: bytes | None = None,
        headers: Mapping[str, str] | None = None,
        max_retries: int | None = None,
    ) -> ClientResult[T]:
        """Issue a request, retrying retryable failures with backoff.

        Args:
            method: HTTP method
            url: Absolute request URL
            parse: Coroutine turning a 2xx response into the result data
            data: Request body
            headers: Request headers
            max_retries: Override of the configured retry count

        Returns:
            Result with data on success, or the last classified error

        """
        retries = self.config.max_retries if max_retries is None else max_retries
        max_attempts = retries + 1
        loop = asyncio.get_running_loop()
        start = loop.time()
        retry_count = 0
        last_error: RelayError | None = None

        for attempt in range(1, max_attempts + 1):
            outcome = await self._attempt(method, url, parse, data, headers)

            if not isinstance(outcome, _Failed):
                return ClientResult(
                    success=True,
                    data=outcome.data,
                    latency=loop.time() - start,
                    retry_count=retry_count,
                    attempts=attempt,
                )

            last_error = outcome.error
            if not last_error.retryable:
                log.warning(
                    "%s %s failed with non-retryable %s error: %s",
                    method,
                    url,
                    last_error.kind,
                    last_error.message,
                )
                return ClientResult(
                    success=False,
                    error=last_error,
                    latency=loop.time() - start,
                    retry_count=retry_count,
                    attempts=attempt,
                )

            if attempt < max_attempts:
                retry_count += 1
                delay = backoff_delay(
                    attempt, self.config.retry_base_delay, self.config.retry_max_delay
                )
                log.debug(
                    "Attempt %d/%d failed (%s: %s), retrying in %.2fs",
                    attempt,
                    max_attempts,
                    last_error.kind,
                    last_error.message,
                    delay,
                )
                await self.sleep(delay)

        log.warning("%s %s failed after %d attempt(s)", method, url, max_attempts)
        return ClientResult(
            success=False,
            error=last_error,
            latency=loop.time() - start,
            retry_count=retry_count,
            attempts=max_attempts,
        )

    async def _attempt[T](
        self,
        method: str,
        url: str,
        parse: ResponseParser[T],
        data: bytes | None,
        headers: Mapping[str, str] | None,
    ) -> "_Succeeded[T] | _Failed":
        """Run one request and classify its outcome."""
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        try:
            async with self.session.request(
                method, url, data=data, headers=headers, timeout=timeout
            ) as response:
                if not 200 <= response.status < 300:
                    text = await response.text(errors="replace")
                    return _Failed(
                        error=ApiFailure(
                            message=self._mask(
                                text or response.reason or "Unknown error"
                            ),
                            status_code=response.status,
                        )
                    )
                try:
                    return _Succeeded(data=await parse(response))
                except (ValueError, aiohttp.ContentTypeError) as exc:
                    return _Failed(
                        error=ApiFailure(
                            message=self._mask(f"Invalid response body: {exc}"),
                            status_code=response.status,
                        )
                    )
        except TimeoutError:
            return _Failed(
                error=TimeoutFailure(
                    message=f"Request timed out after {self.config.timeout}s"
                )
            )
        except aiohttp.ClientError as exc:
            return _Failed(
                error=NetworkFailure(message=self._mask(str(exc) or type(exc).__name__))
            )

    def _mask(self, text: str) -> str:
        return mask_secret(text, self.config.api_key.get_secret_value())


@dataclass(frozen=True, kw_only=True)
class _Succeeded[T]:
    data: T


@dataclass(frozen=True, kw_only=True)
class _Failed:
    error: RelayError
