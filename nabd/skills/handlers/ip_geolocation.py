from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from nabd.config import settings
from nabd.connectors.http import get_json
from nabd.schemas.skill import SkillExecutionOutput
from nabd.skills.handlers.base import (
    UNAVAILABLE,
    BaseSkillHandler,
    register_handler,
    to_safe_string,
)

log = structlog.get_logger()

IPSTACK_URL = "https://api.ipstack.com/"
IPAPI_URL = "https://ipapi.co/"

_IP_CHARS_RE = re.compile(r"^[A-Za-z0-9:.]+$")


def _sanitize_ip(value: Any) -> str | None:
    ip = to_safe_string(value)
    if ip and _IP_CHARS_RE.match(ip):
        return ip
    return None


def _nested(data: dict[str, Any], key: str, field: str) -> Any:
    inner = data.get(key)
    return inner.get(field) if isinstance(inner, dict) else None


def _render(
    ip: str | None,
    city: Any,
    region: Any,
    country: Any,
    timezone: Any,
    latitude: Any,
    longitude: Any,
    isp: Any,
    currency: Any,
) -> str:
    city_region = ", ".join(str(p) for p in (city, region) if p)
    location = " - ".join(p for p in (city_region, str(country) if country else "") if p)
    if isinstance(latitude, (int, float)) and isinstance(longitude, (int, float)):
        coordinates = f"{latitude}, {longitude}"
    else:
        coordinates = UNAVAILABLE
    header = f"IP location details ({ip}):" if ip else "IP location details:"
    return "\n".join(
        [
            header,
            f"- Location: {location or UNAVAILABLE}",
            f"- Time zone: {timezone or UNAVAILABLE}",
            f"- Coordinates: {coordinates}",
            f"- Provider: {isp or UNAVAILABLE}",
            f"- Currency: {currency or UNAVAILABLE}",
        ]
    )


async def _lookup_ipstack(ip: str | None, api_key: str) -> SkillExecutionOutput | None:
    data = await get_json(
        IPSTACK_URL + quote(ip or "check", safe=""), params={"access_key": api_key}
    )
    if not isinstance(data, dict):
        return None
    timezone = _nested(data, "time_zone", "id")
    if not (data.get("country_name") or data.get("city") or timezone):
        return None
    return SkillExecutionOutput(
        text=_render(
            data.get("ip"),
            data.get("city"),
            data.get("region_name"),
            data.get("country_name"),
            timezone,
            data.get("latitude"),
            data.get("longitude"),
            _nested(data, "connection", "isp"),
            _nested(data, "currency", "code"),
        ),
        metadata={
            "source": "ipstack",
            "ip": data.get("ip") or ip or "current",
            "timezone": timezone,
            "country": data.get("country_name"),
        },
    )


class IpGeolocationHandler(BaseSkillHandler):
    name = "ip_geolocation"

    async def execute(self, args: dict[str, Any]) -> SkillExecutionOutput:
        ip = _sanitize_ip(args.get("ip"))
        api_key = to_safe_string(settings.ipstack_api_key)

        if api_key:
            try:
                result = await _lookup_ipstack(ip, api_key)
                if result is not None:
                    return result
            except (httpx.HTTPError, ValueError) as exc:
                log.warning("skills.ip_geolocation.ipstack_failed", error=str(exc))

        url = f"{IPAPI_URL}{quote(ip, safe='')}/json/" if ip else f"{IPAPI_URL}json/"
        data = await get_json(url)
        data = data if isinstance(data, dict) else {}

        return SkillExecutionOutput(
            text=_render(
                data.get("ip"),
                data.get("city"),
                data.get("region"),
                data.get("country_name"),
                data.get("timezone"),
                data.get("latitude"),
                data.get("longitude"),
                data.get("org"),
                data.get("currency"),
            ),
            metadata={
                "source": "ipapi-fallback" if api_key else "ipapi",
                "ip": data.get("ip") or ip or "current",
                "timezone": data.get("timezone"),
                "country": data.get("country_name"),
            },
        )


ip_geolocation = IpGeolocationHandler()

register_handler(ip_geolocation)
