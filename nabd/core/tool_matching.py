from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import Any

import structlog

from nabd.schemas.plan import ToolPlanningMatch
from nabd.schemas.skill import PlannerExtractor
from nabd.skills.handlers.base import DEFAULT_CITY, DEFAULT_TIMEZONE, has_arabic
from nabd.skills.skill import LoadedSkill

log = structlog.get_logger()

DEFAULT_CURRENCY_FROM = "USD"
DEFAULT_CURRENCY_TO = "SAR"
DEFAULT_COUNTRY = "Saudi Arabia"
DEFAULT_NEWS_TOPIC = "artificial intelligence"

CITY_TIMEZONE_MAP: dict[str, str] = {
    "riyadh": "Asia/Riyadh",
    "الرياض": "Asia/Riyadh",
    "jeddah": "Asia/Riyadh",
    "جدة": "Asia/Riyadh",
    "mecca": "Asia/Riyadh",
    "makkah": "Asia/Riyadh",
    "مكة": "Asia/Riyadh",
    "medina": "Asia/Riyadh",
    "المدينة": "Asia/Riyadh",
    "dubai": "Asia/Dubai",
    "دبي": "Asia/Dubai",
    "abu dhabi": "Asia/Dubai",
    "أبوظبي": "Asia/Dubai",
    "cairo": "Africa/Cairo",
    "القاهرة": "Africa/Cairo",
    "tokyo": "Asia/Tokyo",
    "طوكيو": "Asia/Tokyo",
    "london": "Europe/London",
    "لندن": "Europe/London",
    "paris": "Europe/Paris",
    "باريس": "Europe/Paris",
    "new york": "America/New_York",
    "newyork": "America/New_York",
    "نيويورك": "America/New_York",
}

_ARABIC_INDIC_DIGITS = str.maketrans("٠١٢٣٤٥٦٧٨٩", "0123456789")

# A captured place/topic runs until punctuation or end of line.
_TAIL = r"([^\n،,.؟?!]+)"

_LOCATION_PATTERNS = [
    re.compile(r"(?:^|\s)(?:في|ب|in|at)\s+" + _TAIL, re.IGNORECASE),
    re.compile(r"(?:طقس|الطقس|weather|forecast)\s+" + _TAIL, re.IGNORECASE),
    re.compile(r"(?:مدينة|city)\s+" + _TAIL, re.IGNORECASE),
]

_SEARCH_PREFIXES = [
    re.compile(r"^ابحث(?:\s+لي)?(?:\s+عن)?"),
    re.compile(r"^(?:search|look\s+up)(?:\s+for)?", re.IGNORECASE),
    re.compile(r"^(?:اعطني|أعطني)(?:\s+معلومات)?(?:\s+عن)?"),
    re.compile(r"^(?:من هو|ما هو|ما هي)"),
    re.compile(r"^(?:tell me about|who is|what is)", re.IGNORECASE),
]

_EXPLICIT_TZ_RE = re.compile(r"([A-Za-z]+/[A-Za-z_+\-]+)")
_TZ_LOCATION_RE = re.compile(r"(?:^|\s)(?:في|ب|for|in)\s+" + _TAIL, re.IGNORECASE)

_CURRENCY_WITH_AMOUNT_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*([A-Z]{3})\s*(?:إلى|الى|TO|->|→)\s*([A-Z]{3})"
)
_CURRENCY_PAIR_RE = re.compile(r"(?:من|FROM)\s*([A-Z]{3})\s*(?:إلى|الى|TO)\s*([A-Z]{3})")
_CURRENCY_CODE_RE = re.compile(r"\b[A-Z]{3}\b")

_COUNTRY_PATTERNS = [
    re.compile(r"(?:^|\s)(?:عن|حول|داخل|في|about|in)\s+" + _TAIL, re.IGNORECASE),
    re.compile(r"(?:capital of|country)\s+" + _TAIL, re.IGNORECASE),
    re.compile(r"(?:دولة|بلد)\s+" + _TAIL),
]

_NEWS_PREFIXES = [
    re.compile(r"^(?:ما آخر أخبار|اعطني أخبار|أعطني أخبار|أخبار|خبر)\s*"),
    re.compile(r"^(?:latest news(?:\s+(?:about|on))?|news(?:\s+(?:about|on))?|headlines)\s*", re.IGNORECASE),
]

_IPV4_RE = re.compile(r"\b(?:(?:25[0-5]|2[0-4]\d|1?\d{1,2})\.){3}(?:25[0-5]|2[0-4]\d|1?\d{1,2})\b")
_IPV6_RE = re.compile(r"\b(?:[a-fA-F0-9]{1,4}:){2,7}[a-fA-F0-9]{1,4}\b")


def normalize_for_intent(text: str) -> str:
    return " ".join(text.lower().split())


def normalize_arabic_digits(text: str) -> str:
    return text.translate(_ARABIC_INDIC_DIGITS)


def _first_capture(patterns: Iterable[re.Pattern[str]], text: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def extract_location(text: str) -> str | None:
    return _first_capture(_LOCATION_PATTERNS, text.strip())


def extract_search_query(text: str) -> str:
    cleaned = text.strip()
    stripped = cleaned
    for pattern in _SEARCH_PREFIXES:
        stripped = pattern.sub("", stripped, count=1).strip()
    return stripped or cleaned


def extract_timezone(text: str) -> str | None:
    cleaned = text.strip()
    explicit = _EXPLICIT_TZ_RE.search(cleaned)
    if explicit:
        return explicit.group(1)

    location = _first_capture([_TZ_LOCATION_RE], cleaned)
    if location and location.lower() in CITY_TIMEZONE_MAP:
        return CITY_TIMEZONE_MAP[location.lower()]

    lowered = cleaned.lower()
    for city, zone in CITY_TIMEZONE_MAP.items():
        if city in lowered:
            return zone
    return None


def extract_currency(text: str) -> dict[str, Any]:
    cleaned = normalize_arabic_digits(text).upper()

    with_amount = _CURRENCY_WITH_AMOUNT_RE.search(cleaned)
    if with_amount:
        return {
            "from": with_amount.group(2),
            "to": with_amount.group(3),
            "amount": float(with_amount.group(1)),
        }

    pair = _CURRENCY_PAIR_RE.search(cleaned)
    if pair:
        return {"from": pair.group(1), "to": pair.group(2), "amount": 1}

    codes = _CURRENCY_CODE_RE.findall(cleaned)
    if len(codes) >= 2:
        return {"from": codes[0], "to": codes[1], "amount": 1}

    return {"from": DEFAULT_CURRENCY_FROM, "to": DEFAULT_CURRENCY_TO, "amount": 1}


def extract_country(text: str) -> str | None:
    return _first_capture(_COUNTRY_PATTERNS, text.strip())


def extract_news_topic(text: str) -> str:
    topic = text.strip()
    for pattern in _NEWS_PREFIXES:
        topic = pattern.sub("", topic, count=1).strip()
    return topic


def extract_ip(text: str) -> str | None:
    match = _IPV4_RE.search(text) or _IPV6_RE.search(text)
    return match.group(0) if match else None


def _news_input(segment: str) -> dict[str, Any]:
    topic = extract_news_topic(segment) or DEFAULT_NEWS_TOPIC
    return {"topic": topic, "language": "ar" if has_arabic(topic) else "en"}


def _ip_input(segment: str) -> dict[str, Any]:
    ip = extract_ip(segment)
    return {"ip": ip} if ip else {}


_EXTRACTORS: dict[str, Callable[[str], dict[str, Any]]] = {
    "location": lambda s: {"location": extract_location(s) or DEFAULT_CITY},
    "query": lambda s: {"query": extract_search_query(s)},
    "currency": extract_currency,
    "timezone": lambda s: {"timezone": extract_timezone(s) or DEFAULT_TIMEZONE},
    "country": lambda s: {"country": extract_country(s) or DEFAULT_COUNTRY},
    "news_topic": _news_input,
    "ip": _ip_input,
}


def build_tool_input(extractor: PlannerExtractor | None, segment: str) -> dict[str, Any]:
    """Turn a request segment into handler arguments. Never raises."""
    build = _EXTRACTORS.get(extractor or "none")
    if build is None:
        return {}
    return build(segment)


def compute_intent_score(segment: str, keywords: Iterable[str], patterns: Iterable[str] = ()) -> int:
    normalized = normalize_for_intent(segment)
    score = sum(1 for keyword in keywords if keyword and keyword.lower() in normalized)

    for pattern in patterns:
        try:
            if re.search(pattern, segment, re.IGNORECASE):
                score += 2
        except re.error:
            log.debug("planner.invalid_pattern", pattern=pattern)
    return score


def match_tool_for_segment(segment: str, skills: Iterable[LoadedSkill]) -> ToolPlanningMatch | None:
    """Pick the best-scoring executable skill for one request segment."""
    candidates: list[ToolPlanningMatch] = []

    for skill in skills:
        hints = skill.planner
        if not skill.is_executable or hints is None:
            continue
        base = compute_intent_score(segment, hints.keywords, hints.patterns or ())
        if base <= 0:
            continue
        objective = (
            hints.objective.replace("{segment}", segment)
            if hints.objective
            else f"Run the {skill.name} skill for this part of the request: {segment}"
        )
        candidates.append(
            ToolPlanningMatch(
                tool_name=skill.id,
                tool_input=build_tool_input(hints.extractor, segment),
                objective=objective,
                score=base + (hints.priority or 0) / 100,
            )
        )

    candidates.sort(key=lambda c: c.score, reverse=True)
    return candidates[0] if candidates else None
