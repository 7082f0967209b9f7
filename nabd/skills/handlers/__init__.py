"""Compiled-in skill handlers.

Importing this package registers every handler; manifests on disk can only
bind to names present in ``SKILL_HANDLERS``.
"""

from nabd.skills.handlers import (  # noqa: F401 - register handlers
    clock,
    countries,
    exchange_rate,
    ip_geolocation,
    news,
    weather,
    web_search,
)
from nabd.skills.handlers.base import BaseSkillHandler, SkillHandler, all_handlers

SKILL_HANDLERS: dict[str, SkillHandler] = all_handlers()

__all__ = ["SKILL_HANDLERS", "BaseSkillHandler", "SkillHandler"]
