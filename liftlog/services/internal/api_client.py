import asyncio
from dataclasses import dataclass
from json import JSONDecodeError, loads
from typing import Any, Optional, Protocol

import httpx
from loguru import logger

from liftlog.exceptions import CandidateSourceError


class APIClientHTTPError(CandidateSourceError):
    def __init__(
        self,
        status: int,
        text: str,
        *,
        method: str,
        url: str,
        retryable: bool = False,
        reason: str | None = None,
    ) -> None:
        self.status = status
        self.text = text
        self.retryable = retryable
        self.reason = reason
        super().__init__(f"HTTP {status} on {method.upper()} {url}", status_code=status, details=text)


class APIClientTransportError(CandidateSourceError):
    pass


class APISettings(Protocol):
    API_URL: str | None
    API_KEY: str
    API_MAX_RETRIES: int
    API_RETRY_INITIAL_DELAY: float
    API_RETRY_BACKOFF_FACTOR: float
    API_RETRY_MAX_DELAY: float
    API_TIMEOUT: int


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int
    initial_delay: float
    backoff_factor: float
    max_delay: float

    @classmethod
    def from_settings(cls, settings: APISettings) -> "RetryPolicy":
        return cls(
            attempts=max(1, int(getattr(settings, "API_MAX_RETRIES", 0)) + 1),
            initial_delay=float(getattr(settings, "API_RETRY_INITIAL_DELAY", 0.0)),
            backoff_factor=float(getattr(settings, "API_RETRY_BACKOFF_FACTOR", 0.0)),
            max_delay=float(getattr(settings, "API_RETRY_MAX_DELAY", 0.0)),
        )

    def next_delay(self, current: float) -> float:
        if current <= 0:
            return self.initial_delay
        delay = current * self.backoff_factor
        return min(delay, self.max_delay) if self.max_delay else delay


class APIClient:
    """Base for services talking to the candidate API over a shared ``httpx.AsyncClient``.

    Requests are retried on 429, on 5xx (unless ``retry_server_errors`` is off)
    and on transport errors, with exponential backoff from settings. Anything
    else non-2xx raises ``APIClientHTTPError`` straight away.
    """

    def __init__(self, client: httpx.AsyncClient, settings: APISettings) -> None:
        self.client = client
        self.settings = settings
        self.api_url = (getattr(settings, "API_URL", "") or "").rstrip("/")
        self.api_key = getattr(settings, "API_KEY", "")
        self.default_timeout = getattr(settings, "API_TIMEOUT", 0)
        self.retry = RetryPolicy.from_settings(settings)

    async def aclose(self) -> None:
        try:
            await self.client.aclose()
        except Exception:  # pragma: no cover - best effort
            logger.exception("Failed to close httpx client")

    def _build_url(self, path: str) -> str:
        part = path.lstrip("/")
        # API_URL may already point at the /api root
        if self.api_url.split("://", 1)[-1].endswith("/api") and part.startswith("api/"):
            part = part[len("api/") :]
        return f"{self.api_url}/{part}"

    def _headers(self, extra: Optional[dict] = None) -> dict[str, str]:
        headers = dict(extra or {})
        if self.api_key:
            headers.setdefault("Authorization", f"Api-Key {self.api_key}")
        return headers

    @staticmethod
    def _is_retryable(status: int, retry_server_errors: bool) -> bool:
        return status == 429 or (retry_server_errors and status >= 500)

    async def _api_request(
        self,
        method: str,
        url: str,
        data: Optional[dict] = None,
        *,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
        timeout: int | None = None,
        allow_statuses: set[int] | None = None,
        retry_server_errors: bool = True,
    ) -> tuple[int, Any | None]:
        request_headers = self._headers(headers)
        timeout_value = timeout or self.default_timeout or None
        allowed = allow_statuses or set()
        attempts = self.retry.attempts
        target = f"{method.upper()} {url}"
        delay = self.retry.initial_delay

        for attempt in range(1, attempts + 1):
            final = attempt == attempts
            try:
                response = await self.client.request(
                    method,
                    url,
                    json=data,
                    params=params,
                    headers=request_headers,
                    timeout=timeout_value,
                )
            except httpx.RequestError as exc:
                if final:
                    raise APIClientTransportError(f"{type(exc).__name__} on {target}: {exc}") from exc
                logger.warning(
                    f"Retrying {target} after transport error {type(exc).__name__} (attempt {attempt}/{attempts})"
                )
            except Exception as exc:  # noqa: BLE001
                logger.exception(f"Unexpected error during {target}: {exc}")
                raise APIClientTransportError(f"Unexpected error on {target}: {exc}") from exc
            else:
                status = response.status_code
                if response.is_success or status in allowed:
                    return status, self._parse_response_json(response)
                retryable = self._is_retryable(status, retry_server_errors)
                if final or not retryable:
                    raise APIClientHTTPError(
                        status,
                        response.text,
                        method=method,
                        url=url,
                        retryable=retryable,
                        reason=self._extract_reason(response.text),
                    )
                logger.warning(f"Retrying {target} after HTTP {status} (attempt {attempt}/{attempts})")

            if delay > 0:
                await asyncio.sleep(delay)
            delay = self.retry.next_delay(delay)

        raise APIClientTransportError(f"Exhausted retries for {target}")

    @staticmethod
    def _parse_response_json(response: httpx.Response) -> Any | None:
        if not response.headers.get("content-type", "").startswith("application/json"):
            return None
        try:
            return response.json()
        except JSONDecodeError:
            logger.warning(f"Failed to decode JSON response from {response.request.url}")
            return None

    @staticmethod
    def _extract_reason(body: str) -> str | None:
        if not body:
            return None
        try:
            data = loads(body)
        except JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None
        for key in ("reason", "error", "detail"):
            value = data.get(key)
            if isinstance(value, str):
                return value
        return None
