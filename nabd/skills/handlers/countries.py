from __future__ import annotations

from typing import Any
from urllib.parse import quote

from nabd.connectors.http import get_json
from nabd.schemas.skill import SkillExecutionOutput
from nabd.skills.handlers.base import (
    UNAVAILABLE,
    BaseSkillHandler,
    register_handler,
    to_safe_string,
)

REST_COUNTRIES_URL = "https://restcountries.com/v3.1/name/"


def _currencies(raw: Any) -> str:
    if not isinstance(raw, dict) or not raw:
        return UNAVAILABLE
    parts = []
    for code, value in list(raw.items())[:3]:
        value = value if isinstance(value, dict) else {}
        name = to_safe_string(value.get("name")) or code
        symbol = to_safe_string(value.get("symbol"))
        parts.append(f"{name} ({symbol})" if symbol else name)
    return ", ".join(parts)


class RestCountriesHandler(BaseSkillHandler):
    name = "rest_countries"

    async def execute(self, args: dict[str, Any]) -> SkillExecutionOutput:
        country = to_safe_string(args.get("country"))
        if not country:
            return SkillExecutionOutput(text="Please name the country you want facts about.")

        data = await get_json(
            REST_COUNTRIES_URL + quote(country, safe=""), params={"fullText": "false"}
        )
        first = data[0] if isinstance(data, list) and data and isinstance(data[0], dict) else None
        if first is None:
            return SkillExecutionOutput(
                text=f'No reliable data found about "{country}".',
                metadata={"country": country, "source": "restcountries"},
            )

        names = first.get("name") if isinstance(first.get("name"), dict) else {}
        name = to_safe_string(names.get("common")) or country
        capitals = first.get("capital")
        capital = capitals[0] if isinstance(capitals, list) and capitals else UNAVAILABLE
        population = first.get("population")
        population_text = f"{population:,}" if isinstance(population, int) else UNAVAILABLE
        region = " / ".join(
            p
            for p in (to_safe_string(first.get("region")), to_safe_string(first.get("subregion")))
            if p
        )
        languages = first.get("languages")
        languages_text = (
            ", ".join(str(v) for v in list(languages.values())[:4])
            if isinstance(languages, dict) and languages
            else UNAVAILABLE
        )

        return SkillExecutionOutput(
            text="\n".join(
                [
                    f"Quick facts about {name}:",
                    f"- Capital: {capital}",
                    f"- Population: {population_text}",
                    f"- Region: {region or UNAVAILABLE}",
                    f"- Languages: {languages_text}",
                    f"- Currency: {_currencies(first.get('currencies'))}",
                ]
            ),
            metadata={"source": "restcountries", "country": name},
        )


rest_countries = RestCountriesHandler()

register_handler(rest_countries)
