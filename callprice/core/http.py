from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import httpx

from callprice.core.errors import MalformedResponseError, NotFoundError, ProviderUnavailableError

TRANSIENT_STATUSES = (429, 500, 502, 503, 504)


@dataclass
class CircuitState:
    failures: int = 0
    open_until: float = 0.0


class ResilientHTTPClient:
    def __init__(
        self,
        timeout: float = 8.0,
        retries: int = 1,
        backoff_base: float = 0.4,
        breaker_threshold: int = 4,
        breaker_cooldown: int = 60,
        max_concurrency_per_host: int = 4,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.timeout = timeout
        self.retries = retries
        self.backoff_base = backoff_base
        self.breaker_threshold = breaker_threshold
        self.breaker_cooldown = breaker_cooldown
        self.max_concurrency_per_host = max_concurrency_per_host
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport, headers=headers)
        self._state: dict[str, CircuitState] = {}
        self._slots: dict[str, asyncio.Semaphore] = {}

    async def close(self) -> None:
        await self._client.aclose()

    def _is_open(self, host: str) -> bool:
        state = self._state.setdefault(host, CircuitState())
        return state.open_until > time.time()

    def _record_failure(self, host: str) -> None:
        state = self._state.setdefault(host, CircuitState())
        state.failures += 1
        if state.failures >= self.breaker_threshold:
            state.open_until = time.time() + self.breaker_cooldown

    def _record_success(self, host: str) -> None:
        self._state[host] = CircuitState()

    def _slot(self, host: str) -> asyncio.Semaphore:
        slot = self._slots.get(host)
        if slot is None:
            slot = asyncio.Semaphore(self.max_concurrency_per_host)
            self._slots[host] = slot
        return slot

    async def _request_json(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        host = httpx.URL(url).host or "unknown"
        if self._is_open(host):
            raise ProviderUnavailableError(f"Circuit open for {host}")

        last_error: Exception | None = None
        for attempt in range(self.retries + 1):
            try:
                async with self._slot(host):
                    response = await self._client.request(method, url, params=params, headers=headers)
            except httpx.HTTPError as exc:
                last_error = exc
                self._record_failure(host)
            else:
                if response.status_code in TRANSIENT_STATUSES:
                    last_error = ProviderUnavailableError(f"Transient status {response.status_code}")
                    self._record_failure(host)
                elif response.status_code == 404:
                    self._record_success(host)
                    raise NotFoundError(f"Not found: {url}")
                elif response.is_error:
                    # Auth/plan errors will not fix themselves on retry.
                    raise ProviderUnavailableError(f"Status {response.status_code} from {host}")
                else:
                    self._record_success(host)
                    try:
                        return response.json()
                    except ValueError as exc:
                        raise MalformedResponseError(f"Non-JSON body from {host}") from exc

            if attempt >= self.retries or self._is_open(host):
                break
            await asyncio.sleep(self.backoff_base * (2**attempt))

        raise ProviderUnavailableError(f"Failed to fetch {url}: {last_error}")

    async def get_json(
        self, url: str, params: dict[str, Any] | None = None, headers: dict[str, str] | None = None
    ) -> Any:
        return await self._request_json("GET", url, params=params, headers=headers)
