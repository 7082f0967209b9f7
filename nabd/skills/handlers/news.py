from __future__ import annotations

from typing import Any

from nabd.config import settings
from nabd.connectors.http import get_json
from nabd.schemas.skill import SkillExecutionOutput
from nabd.skills.handlers.base import BaseSkillHandler, register_handler, to_safe_string

NEWS_API_URL = "https://newsapi.org/v2/everything"
DEFAULT_TOPIC = "artificial intelligence"
MAX_ARTICLES = 4


class NewsHeadlinesHandler(BaseSkillHandler):
    name = "news_headlines"

    async def execute(self, args: dict[str, Any]) -> SkillExecutionOutput:
        api_key = to_safe_string(settings.news_api_key)
        topic = to_safe_string(args.get("topic")) or DEFAULT_TOPIC
        language = (to_safe_string(args.get("language")) or "en").lower()

        if not api_key:
            return SkillExecutionOutput(
                text=(
                    "The news skill needs NEWS_API_KEY. "
                    "Add the key to the environment and restart the server."
                ),
                metadata={"topic": topic, "language": language, "configured": False},
            )

        data = await get_json(
            NEWS_API_URL,
            params={"sortBy": "publishedAt", "pageSize": 5, "language": language, "q": topic},
            headers={"X-Api-Key": api_key},
        )
        articles = data.get("articles") if isinstance(data, dict) else None
        items = [a for a in (articles or []) if isinstance(a, dict)][:MAX_ARTICLES]

        if not items:
            return SkillExecutionOutput(
                text=f'No headlines are available right now about "{topic}".',
                metadata={"topic": topic, "language": language, "count": 0, "source": "newsapi"},
            )

        blocks = []
        for index, item in enumerate(items, start=1):
            source = item.get("source") if isinstance(item.get("source"), dict) else {}
            source_name = to_safe_string(source.get("name"))
            title = to_safe_string(item.get("title")) or "Untitled"
            heading = f"{index}. {title} ({source_name})" if source_name else f"{index}. {title}"
            lines = [heading, to_safe_string(item.get("description")) or "No summary available."]
            if published := to_safe_string(item.get("publishedAt")):
                lines.append(f"Published: {published}")
            url = to_safe_string(item.get("url"))
            lines.append(f"Link: {url}" if url else "Link: not available")
            blocks.append("\n".join(lines))

        return SkillExecutionOutput(
            text=f'Latest headlines about "{topic}":\n' + "\n\n".join(blocks),
            metadata={
                "topic": topic,
                "language": language,
                "count": len(items),
                "source": "newsapi",
            },
        )


news_headlines = NewsHeadlinesHandler()

register_handler(news_headlines)
