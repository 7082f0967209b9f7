from __future__ import annotations

import math
from typing import Any

import httpx
import structlog

from nabd.connectors.http import get_json
from nabd.schemas.skill import SkillExecutionOutput
from nabd.skills.handlers.base import (
    BaseSkillHandler,
    format_amount,
    register_handler,
    to_safe_number,
    to_safe_string,
)

log = structlog.get_logger()

PRIMARY_URL = "https://api.exchangerate.host/convert"
FALLBACK_URL = "https://api.frankfurter.app/latest"


def _finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _format(amount: float, base: str, quote: str, result: float, rate: float, day: Any) -> str:
    lines = [
        "Current exchange rate:",
        f"- {format_amount(amount)} {base} = {result:.4f} {quote}",
        f"- Rate per 1 {base}: {rate:.6f} {quote}",
    ]
    if isinstance(day, str) and day:
        lines.append(f"- Data date: {day}")
    return "\n".join(lines)


class ExchangeRateHandler(BaseSkillHandler):
    name = "exchange_rate"

    async def execute(self, args: dict[str, Any]) -> SkillExecutionOutput:
        base = (to_safe_string(args.get("from")) or "USD").upper()
        quote = (to_safe_string(args.get("to")) or "SAR").upper()
        amount = to_safe_number(args.get("amount"), 1)
        if amount <= 0:
            amount = 1

        try:
            primary = await get_json(
                PRIMARY_URL, params={"from": base, "to": quote, "amount": amount}
            )
            if isinstance(primary, dict) and _finite(primary.get("result")):
                result = primary["result"]
                info = primary.get("info") if isinstance(primary.get("info"), dict) else {}
                rate = info.get("rate") if _finite(info.get("rate")) else result / amount
                return SkillExecutionOutput(
                    text=_format(amount, base, quote, result, rate, primary.get("date")),
                    metadata={
                        "source": "exchangerate.host",
                        "from": base,
                        "to": quote,
                        "amount": amount,
                        "result": result,
                        "rate": rate,
                    },
                )
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("skills.exchange_rate.primary_failed", error=str(exc))

        fallback = await get_json(
            FALLBACK_URL, params={"amount": amount, "from": base, "to": quote}
        )
        rates = fallback.get("rates") if isinstance(fallback, dict) else None
        value = rates.get(quote) if isinstance(rates, dict) else None
        if not _finite(value):
            return SkillExecutionOutput(
                text=f"Could not fetch the exchange rate between {base} and {quote} right now.",
                metadata={"source": "frankfurter", "from": base, "to": quote, "amount": amount},
            )

        rate = value / amount
        return SkillExecutionOutput(
            text=_format(amount, base, quote, value, rate, fallback.get("date")),
            metadata={
                "source": "frankfurter",
                "from": base,
                "to": quote,
                "amount": amount,
                "result": value,
                "rate": rate,
            },
        )


exchange_rate = ExchangeRateHandler()

register_handler(exchange_rate)
