from __future__ import annotations

from typing import Any

import httpx
import structlog

from nabd.config import settings

log = structlog.get_logger()

USER_AGENT = "nabd-assistant/0.1"


async def get_json(
    url: str,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float | None = None,
) -> Any:
    """GET a JSON document from a public data API.

    Raises ``httpx.HTTPError`` on timeouts, transport failures and non-2xx
    responses, and ``ValueError`` when the body is not JSON.
    """
    request_headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
    if headers:
        request_headers.update(headers)

    async with httpx.AsyncClient(
        timeout=timeout or settings.skill_request_timeout_seconds,
        follow_redirects=True,
    ) as client:
        resp = await client.get(url, params=params, headers=request_headers)
        resp.raise_for_status()
        data = resp.json()

    log.debug("http.get_json", url=url, status=resp.status_code)
    return data
