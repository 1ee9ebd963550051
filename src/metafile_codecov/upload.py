"""Codecov bundle analysis upload.

Uploading is a two-step exchange:

1. POST the CI service parameters to the Codecov bundle analysis endpoint,
   authenticated with the OIDC token (``Authorization: token <jwt>``). The
   JSON response carries a presigned ``url``.
2. PUT the serialized payload to that presigned URL.

Each step is retried through `with_retry`: on a non-2xx response the request
is repeated after a fixed delay until the attempt budget (default 3) is spent,
then `RequestFailedError` surfaces with the last status. A 2xx presigned URL
response without ``url`` is a protocol error and is not retried.

`upload_bundle_stats` never raises; every failure is reported through
`UploadResult.error`.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, cast

import httpx
from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from .config import DEFAULT_API_URL, MAX_ATTEMPTS, RETRY_DELAY_MS
from .providers.github import GitHubActionsParams

logger = logging.getLogger(__name__)

__all__ = [
    "MalformedResponseError",
    "RequestFailedError",
    "UploadResult",
    "upload_bundle_stats",
    "with_retry",
]

T = TypeVar("T")


class RequestFailedError(RuntimeError):
    """A request kept returning a non-success HTTP status."""

    def __init__(self, status_code: int, status_text: str):
        super().__init__(f"Request failed: {status_code} {status_text}")
        self.status_code = status_code
        self.status_text = status_text


class MalformedResponseError(RuntimeError):
    """A successful response lacked a required field."""


class UploadResult(BaseModel):
    success: bool
    presignedUrl: Optional[str] = None
    error: Optional[str] = None


async def with_retry(
    attempt: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = MAX_ATTEMPTS,
    delay_ms: int = RETRY_DELAY_MS,
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
) -> T:
    """Run ``attempt`` until it succeeds or ``max_attempts`` is exhausted.

    Only `RequestFailedError` is retried, after a fixed ``delay_ms`` sleep.
    Other exceptions propagate on first occurrence. The last
    `RequestFailedError` is re-raised once the budget is spent.
    ``sleep`` replaces the asyncio sleep between attempts.
    """
    extra: Dict[str, Any] = {} if sleep is None else {"sleep": sleep}
    retrying = AsyncRetrying(
        reraise=True,
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(delay_ms / 1000),
        retry=retry_if_exception_type(RequestFailedError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        **extra,
    )
    return cast(T, await retrying(attempt))


def _raise_for_status(response: httpx.Response) -> httpx.Response:
    if not response.is_success:
        raise RequestFailedError(response.status_code, response.reason_phrase)
    return response


async def _get_presigned_url(
    client: httpx.AsyncClient,
    api_url: str,
    service_params: GitHubActionsParams,
    oidc_token: str,
    *,
    max_attempts: int,
    delay_ms: int,
) -> str:
    body = service_params.model_dump_json()

    async def _post() -> httpx.Response:
        response = await client.post(
            api_url,
            content=body,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"token {oidc_token}",
            },
        )
        return _raise_for_status(response)

    response = await with_retry(_post, max_attempts=max_attempts, delay_ms=delay_ms)
    try:
        data: Any = response.json()
    except ValueError as e:
        raise MalformedResponseError(f"Presigned URL response is not JSON: {e}") from e
    url = data.get("url") if isinstance(data, dict) else None
    if not url:
        raise MalformedResponseError("Presigned URL response missing 'url' field")
    return str(url)


async def _put_payload(
    client: httpx.AsyncClient,
    presigned_url: str,
    payload: str,
    *,
    max_attempts: int,
    delay_ms: int,
) -> None:
    async def _put() -> httpx.Response:
        response = await client.put(
            presigned_url,
            content=payload.encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )
        return _raise_for_status(response)

    await with_retry(_put, max_attempts=max_attempts, delay_ms=delay_ms)


async def upload_bundle_stats(
    payload: str,
    oidc_token: str,
    service_params: GitHubActionsParams,
    *,
    api_url: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    max_attempts: int = MAX_ATTEMPTS,
    retry_delay_ms: int = RETRY_DELAY_MS,
    timeout: float = 30.0,
) -> UploadResult:
    """Upload bundle analysis stats to Codecov.

    Args:
        payload: JSON string of the bundle stats payload.
        oidc_token: OIDC JWT issued by the CI host.
        service_params: Parameters gathered from the CI environment.
        api_url: Override of the Codecov endpoint (self-hosted or testing).
        client: HTTP client to use; when omitted one is created and closed
            for this call.
        max_attempts: Total attempts per request.
        retry_delay_ms: Fixed delay between attempts.
        timeout: Per-request timeout (seconds) for a created client.

    Returns:
        ``UploadResult(success=True, presignedUrl=...)`` on success, otherwise
        ``UploadResult(success=False, error=<message>)``.
    """
    endpoint = api_url or DEFAULT_API_URL
    owns_client = client is None
    http = client if client is not None else httpx.AsyncClient(timeout=timeout)
    try:
        logger.info("Requesting presigned upload URL from %s", endpoint)
        presigned_url = await _get_presigned_url(
            http,
            endpoint,
            service_params,
            oidc_token,
            max_attempts=max_attempts,
            delay_ms=retry_delay_ms,
        )
        logger.info("Uploading bundle stats (%d bytes)", len(payload))
        await _put_payload(
            http,
            presigned_url,
            payload,
            max_attempts=max_attempts,
            delay_ms=retry_delay_ms,
        )
        return UploadResult(success=True, presignedUrl=presigned_url)
    except Exception as e:
        logger.debug("Bundle stats upload failed", exc_info=True)
        return UploadResult(success=False, error=str(e) or type(e).__name__)
    finally:
        if owns_client:
            await http.aclose()
