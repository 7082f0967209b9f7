from __future__ import annotations

from typing import Any

from nabd.config import settings
from nabd.connectors.http import get_json
from nabd.schemas.skill import SkillExecutionOutput
from nabd.skills.handlers.base import (
    BaseSkillHandler,
    has_arabic,
    register_handler,
    strip_html,
    to_safe_string,
)

DEFAULT_QUERY = "artificial intelligence"
MAX_RESULTS = 3


def _wiki_language(query: str) -> str:
    return "ar" if has_arabic(query) else settings.wikipedia_language


class WebSearchHandler(BaseSkillHandler):
    """Quick encyclopedic search backed by the Wikipedia search API."""

    name = "web_search"

    async def execute(self, args: dict[str, Any]) -> SkillExecutionOutput:
        query = to_safe_string(args.get("query")) or DEFAULT_QUERY
        lang = _wiki_language(query)

        data = await get_json(
            f"https://{lang}.wikipedia.org/w/api.php",
            params={
                "action": "query",
                "list": "search",
                "format": "json",
                "utf8": 1,
                "srlimit": 5,
                "srsearch": query,
            },
        )
        query_block = data.get("query") if isinstance(data, dict) else None
        search = query_block.get("search") if isinstance(query_block, dict) else None
        if not isinstance(search, list):
            search = []
        hits = [h for h in search if isinstance(h, dict) and h.get("title")][:MAX_RESULTS]

        if not hits:
            return SkillExecutionOutput(
                text=f'No clear results found for "{query}" in the quick search.',
                metadata={"query": query, "source": "wikipedia", "count": 0},
            )

        lines = []
        for index, hit in enumerate(hits, start=1):
            snippet = strip_html(str(hit.get("snippet") or ""))
            url = f"https://{lang}.wikipedia.org/?curid={hit.get('pageid')}"
            lines.append(f"{index}. {hit['title']}\n{snippet}\nLink: {url}")

        return SkillExecutionOutput(
            text=f'Search results for "{query}":\n' + "\n\n".join(lines),
            metadata={"query": query, "count": len(hits), "source": "wikipedia", "language": lang},
        )


web_search = WebSearchHandler()

register_handler(web_search)
