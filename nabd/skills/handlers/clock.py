from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any
from urllib.parse import quote
from zoneinfo import ZoneInfo

from nabd.connectors.http import get_json
from nabd.schemas.skill import SkillExecutionOutput
from nabd.skills.handlers.base import (
    BaseSkillHandler,
    register_handler,
    resolve_timezone,
    to_safe_string,
)

WORLD_TIME_URL = "https://worldtimeapi.org/api/timezone/"

HIJRI_MONTHS = [
    "Muharram",
    "Safar",
    "Rabi al-Awwal",
    "Rabi al-Thani",
    "Jumada al-Ula",
    "Jumada al-Akhirah",
    "Rajab",
    "Shaban",
    "Ramadan",
    "Shawwal",
    "Dhu al-Qadah",
    "Dhu al-Hijjah",
]


def _format_date(moment: datetime | date) -> str:
    return moment.strftime("%A, %d %B %Y")


def _format_time(moment: datetime) -> str:
    return moment.strftime("%I:%M:%S %p")


HIJRI_EPOCH = date(622, 7, 19)


def _tdiv(a: int, b: int) -> int:
    # Integer division truncating toward zero.
    return a // b if a >= 0 else -(-a // b)


def to_hijri(day: date) -> tuple[int, int, int]:
    """Convert a Gregorian date with the tabular Islamic calendar.

    Returns ``(year, month, day)``. The arithmetic calendar can drift a day
    from sighting-based calendars such as Umm al-Qura.
    """
    jdn = day.toordinal() + 1721425
    n_days = jdn - 1948440 + 10632
    cycle = _tdiv(n_days - 1, 10631)
    n_days = n_days - 10631 * cycle + 354
    j = _tdiv(10985 - n_days, 5316) * _tdiv(50 * n_days, 17719) + _tdiv(n_days, 5670) * _tdiv(
        43 * n_days, 15238
    )
    n_days = (
        n_days
        - _tdiv(30 - j, 15) * _tdiv(17719 * j, 50)
        - _tdiv(j, 16) * _tdiv(15238 * j, 43)
        + 29
    )
    month = _tdiv(24 * n_days, 709)
    hijri_day = n_days - _tdiv(709 * month, 24)
    year = 30 * cycle + j - 30
    return year, month, hijri_day


class DateTimeHandler(BaseSkillHandler):
    name = "date_time"

    async def execute(self, args: dict[str, Any]) -> SkillExecutionOutput:
        timezone = resolve_timezone(args.get("timezone"))
        now = datetime.now(ZoneInfo(timezone))
        return SkillExecutionOutput(
            text=(
                f"The current time is {_format_time(now)}, "
                f"and the date is {_format_date(now)} (time zone: {timezone})."
            ),
            metadata={"timezone": timezone, "source": "local-clock"},
        )


class WorldTimeHandler(BaseSkillHandler):
    name = "world_time"

    async def execute(self, args: dict[str, Any]) -> SkillExecutionOutput:
        timezone = resolve_timezone(args.get("timezone"))
        path = "/".join(quote(part, safe="") for part in timezone.split("/"))
        data = await get_json(WORLD_TIME_URL + path)
        data = data if isinstance(data, dict) else {}

        iso = to_safe_string(data.get("datetime"))
        if not iso:
            return SkillExecutionOutput(
                text=f"Could not fetch the world time for {timezone}.",
                metadata={"timezone": timezone, "source": "worldtimeapi"},
            )

        try:
            instant = datetime.fromisoformat(iso).astimezone(ZoneInfo(timezone))
        except ValueError:
            return SkillExecutionOutput(
                text=f"The world time service returned an unreadable timestamp for {timezone}.",
                metadata={"timezone": timezone, "source": "worldtimeapi"},
            )

        label = to_safe_string(data.get("timezone")) or timezone
        lines = [
            f"Current time in {label}:",
            f"- {_format_time(instant)}",
            f"- {_format_date(instant)}",
        ]
        if utc_offset := to_safe_string(data.get("utc_offset")):
            lines.append(f"- UTC offset: {utc_offset}")

        return SkillExecutionOutput(
            text="\n".join(lines),
            metadata={
                "source": "worldtimeapi",
                "timezone": label,
                "day_of_week": data.get("day_of_week"),
            },
        )


class HijriCalendarHandler(BaseSkillHandler):
    name = "hijri_calendar"

    async def execute(self, args: dict[str, Any]) -> SkillExecutionOutput:
        date_input = to_safe_string(args.get("date"))
        if date_input:
            try:
                target = date.fromisoformat(date_input)
            except ValueError:
                return SkillExecutionOutput(
                    text=f'The date "{date_input}" is not valid. Use YYYY-MM-DD.'
                )
        else:
            target = datetime.now(UTC).date()

        if target < HIJRI_EPOCH:
            return SkillExecutionOutput(
                text=f"{target.isoformat()} falls before the start of the Hijri calendar."
            )

        year, month, day = to_hijri(target)
        hijri_text = f"{day} {HIJRI_MONTHS[month - 1]} {year} AH"
        return SkillExecutionOutput(
            text=f"Gregorian date: {_format_date(target)}\nHijri date: {hijri_text}",
            metadata={
                "source": "tabular-islamic-calendar",
                "date": target.isoformat(),
                "hijri": {"year": year, "month": month, "day": day},
            },
        )


date_time = DateTimeHandler()
world_time = WorldTimeHandler()
hijri_calendar = HijriCalendarHandler()

for _h in (date_time, world_time, hijri_calendar):
    register_handler(_h)
