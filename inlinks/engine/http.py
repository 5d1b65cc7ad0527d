"""Timeout and retry wrapper around aiohttp, plus a bounded response cache.

Every network call made by the engine (document fetches, embedding and
generation requests) goes through :func:`fetch_with_retry`. A call carries
a total deadline; when it expires the request is cancelled and counts as a
failed attempt. Failed attempts are retried with exponential backoff when
the failure is transient (HTTP 429, HTTP 5xx, transport errors, timeouts).
Other 4xx responses are raised immediately.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import aiohttp

from .config import EngineConfig

logger = logging.getLogger(__name__)


class HTTPStatusError(Exception):
    """Raised when a response carries an error status code."""

    def __init__(self, url: str, status: int, body: str | None = None) -> None:
        super().__init__(f"HTTP error: {status} for {url}")
        self.url = url
        self.status = status
        self.body = body


def is_retryable_status(status: int) -> bool:
    return status == 429 or 500 <= status <= 599


def is_retryable_error(exc: BaseException) -> bool:
    """Return True for failures worth another attempt."""

    if isinstance(exc, HTTPStatusError):
        return is_retryable_status(exc.status)
    return isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError))


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: ``initial_delay * 2**n`` seconds, capped at ``max_delay``."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 8.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")

    def delay_for(self, attempt: int) -> float:
        """Delay after the zero-based ``attempt`` failed."""

        return min(self.initial_delay * (2 ** attempt), self.max_delay)

    @classmethod
    def from_config(cls, config: EngineConfig) -> "RetryPolicy":
        return cls(
            max_attempts=int(config.retry_setting("max_attempts", 3)),
            initial_delay=float(config.retry_setting("initial_delay", 1.0)),
            max_delay=float(config.retry_setting("max_delay", 8.0)),
        )


async def _safe_read_text(response: aiohttp.ClientResponse) -> str | None:
    try:
        return await response.text(errors="replace")
    except (aiohttp.ClientError, asyncio.TimeoutError):
        return None


async def _request_once(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    timeout: float,
    parse_json: bool,
    **kwargs: Any,
) -> Any:
    async with session.request(
        method,
        url,
        timeout=aiohttp.ClientTimeout(total=timeout),
        **kwargs,
    ) as response:
        if response.status >= 400:
            raise HTTPStatusError(url, response.status, await _safe_read_text(response))
        content_type = response.headers.get("Content-Type", "")
        if parse_json and "application/json" in content_type:
            return await response.json()
        return await response.text(errors="replace")


async def fetch_with_retry(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    *,
    timeout: float,
    retry: RetryPolicy | None = None,
    parse_json: bool = True,
    **kwargs: Any,
) -> Any:
    """Perform a request with a deadline, retrying transient failures.

    Returns the decoded JSON body when the response is JSON (and
    ``parse_json`` is set), otherwise the response text. Raises the last
    error once the attempts are exhausted.
    """

    policy = retry or RetryPolicy()
    for attempt in range(policy.max_attempts):
        try:
            return await _request_once(session, method, url, timeout, parse_json, **kwargs)
        except (HTTPStatusError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
            if not is_retryable_error(exc) or attempt + 1 >= policy.max_attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s %s failed (%s); retrying in %.1fs (attempt %d/%d)",
                method,
                url,
                exc.__class__.__name__,
                delay,
                attempt + 1,
                policy.max_attempts,
            )
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover


class ResponseCache:
    """Size-capped cache with TTL expiry and FIFO eviction on overflow."""

    def __init__(
        self,
        max_entries: int = 200,
        ttl: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = max_entries
        self.ttl = ttl
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self._clock(), value)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)


class Fetcher:
    """Shared network substrate: one session, one retry policy, one cache."""

    def __init__(
        self,
        *,
        timeout: float = 60.0,
        retry: RetryPolicy | None = None,
        cache: ResponseCache | None = None,
        headers: Dict[str, str] | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.timeout = timeout
        self.retry = retry or RetryPolicy()
        self.cache = cache
        self.headers = dict(headers or {})
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_config(cls, config: EngineConfig, session: aiohttp.ClientSession | None = None) -> "Fetcher":
        cache = ResponseCache(
            max_entries=int(config.cache_setting("max_entries", 200)),
            ttl=float(config.cache_setting("ttl", 3600.0)),
        )
        return cls(
            timeout=float(config.get("fetch_timeout", 60.0)),
            retry=RetryPolicy.from_config(config),
            cache=cache,
            headers={"User-Agent": config.get("user_agent", "InlinksBot/1.0")},
            session=session,
        )

    async def __aenter__(self) -> "Fetcher":
        if self._session is None:
            self._session = aiohttp.ClientSession(headers=self.headers)
            self._owns_session = True
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("Fetcher must be used as an async context manager.")
        return self._session

    async def get_text(self, url: str, *, timeout: Optional[float] = None, use_cache: bool = True) -> str:
        """GET ``url`` and return its body as text, served from cache when fresh."""

        if use_cache and self.cache is not None:
            cached = self.cache.get(url)
            if cached is not None:
                logger.debug("Cache hit: %s", url)
                return cached
        text = await fetch_with_retry(
            self.session,
            "GET",
            url,
            timeout=timeout or self.timeout,
            retry=self.retry,
            parse_json=False,
        )
        if use_cache and self.cache is not None:
            self.cache.set(url, text)
        return text

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> Any:
        """Send a request and return the decoded JSON body; never cached."""

        return await fetch_with_retry(
            self.session,
            method,
            url,
            timeout=timeout or self.timeout,
            retry=self.retry,
            **kwargs,
        )
