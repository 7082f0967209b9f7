from __future__ import annotations

from nabd.schemas.knowledge import VectorStoreDocument

KNOWLEDGE_DOCUMENTS: list[VectorStoreDocument] = [
    VectorStoreDocument(
        id="nabd-capabilities",
        title="Nabd core capabilities",
        source="internal://nabd/capabilities",
        content=(
            "Nabd is an Arabic-first assistant that keeps the context of each conversation. "
            "It supports translation, smart search, content writing and voice transcription. "
            "It can call external tools to fetch up-to-date information when needed."
        ),
    ),
    VectorStoreDocument(
        id="nabd-tooling",
        title="Nabd tools",
        source="internal://nabd/tools",
        content=(
            "Built-in tools include weather for current conditions, web_search for quick lookups, "
            "date_time for the current date and time, exchange_rate, world_time, ip_geolocation, "
            "news_headlines, rest_countries and hijri_calendar. A multi-part request is split into "
            "steps and the results are merged into one answer."
        ),
    ),
    VectorStoreDocument(
        id="nabd-guidelines",
        title="Answer quality guidelines",
        source="internal://nabd/guidelines",
        content=(
            "A high quality answer is direct and clear, states its limits when data is missing "
            "and avoids claims without evidence. Tool results should be presented in an "
            "understandable form followed by a practical summary for the user."
        ),
    ),
]
