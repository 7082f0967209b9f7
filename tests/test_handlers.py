"""Tests for compiled-in skill handlers (outbound HTTP mocked)."""

from datetime import date

import httpx
import pytest

import nabd.skills.handlers.clock as clock
import nabd.skills.handlers.countries as countries
import nabd.skills.handlers.exchange_rate as exchange_rate
import nabd.skills.handlers.ip_geolocation as ip_geolocation
import nabd.skills.handlers.news as news
import nabd.skills.handlers.weather as weather
import nabd.skills.handlers.web_search as web_search
from nabd.config import settings
from nabd.skills.handlers import SKILL_HANDLERS, BaseSkillHandler


def fake_get_json(responses, calls=None):
    """Return a get_json stand-in answering by URL prefix."""

    async def _get_json(url, params=None, headers=None, timeout=None):
        if calls is not None:
            calls.append((url, params, headers))
        for prefix, payload in responses.items():
            if url.startswith(prefix):
                if isinstance(payload, Exception):
                    raise payload
                return payload
        raise AssertionError(f"unexpected URL {url}")

    return _get_json


def test_all_handlers_registered():
    assert set(SKILL_HANDLERS) == {
        "date_time",
        "world_time",
        "hijri_calendar",
        "weather",
        "web_search",
        "exchange_rate",
        "ip_geolocation",
        "news_headlines",
        "rest_countries",
    }


def test_handlers_are_named_instances():
    for name, handler in SKILL_HANDLERS.items():
        assert isinstance(handler, BaseSkillHandler)
        assert handler.name == name


def test_hijri_epoch_and_year_boundary():
    assert clock.to_hijri(date(622, 7, 19)) == (1, 1, 1)
    assert clock.to_hijri(date(622, 7, 20)) == (1, 1, 2)


@pytest.mark.asyncio
async def test_hijri_calendar_handler():
    out = await clock.hijri_calendar({"date": "0622-07-19"})
    assert "1 Muharram 1 AH" in out.text
    assert out.metadata["hijri"] == {"year": 1, "month": 1, "day": 1}

    invalid = await clock.hijri_calendar({"date": "2024-13-40"})
    assert "not valid" in invalid.text

    early = await clock.hijri_calendar({"date": "0600-01-01"})
    assert "before the start" in early.text


@pytest.mark.asyncio
async def test_date_time_falls_back_to_default_zone():
    out = await clock.date_time({"timezone": "Not/AZone"})
    assert out.metadata["timezone"] == "Asia/Riyadh"


@pytest.mark.asyncio
async def test_world_time_degrades_on_missing_datetime(monkeypatch):
    monkeypatch.setattr(clock, "get_json", fake_get_json({clock.WORLD_TIME_URL: {}}))
    out = await clock.world_time({"timezone": "Europe/London"})
    assert "Could not fetch" in out.text


@pytest.mark.asyncio
async def test_world_time_formats_response(monkeypatch):
    payload = {
        "datetime": "2025-01-05T10:15:00+00:00",
        "timezone": "Europe/London",
        "utc_offset": "+00:00",
        "day_of_week": 0,
    }
    monkeypatch.setattr(clock, "get_json", fake_get_json({clock.WORLD_TIME_URL: payload}))
    out = await clock.world_time({"timezone": "Europe/London"})
    assert "Current time in Europe/London" in out.text
    assert "10:15:00 AM" in out.text
    assert "UTC offset: +00:00" in out.text


@pytest.mark.asyncio
async def test_weather_reports_conditions(monkeypatch):
    calls = []
    responses = {
        weather.GEOCODING_URL: {
            "results": [{"name": "Riyadh", "country": "Saudi Arabia", "latitude": 24.7, "longitude": 46.7}]
        },
        weather.FORECAST_URL: {
            "current": {
                "temperature_2m": 31.26,
                "apparent_temperature": 30,
                "relative_humidity_2m": 12,
                "weather_code": 0,
                "wind_speed_10m": 14.5,
            }
        },
    }
    monkeypatch.setattr(weather, "get_json", fake_get_json(responses, calls))

    out = await weather.weather({"location": "Riyadh"})

    assert "Current weather in Riyadh, Saudi Arabia" in out.text
    assert "clear sky" in out.text
    assert "31.3°C" in out.text
    assert calls[0][1]["name"] == "Riyadh"


@pytest.mark.asyncio
async def test_weather_unknown_place(monkeypatch):
    monkeypatch.setattr(weather, "get_json", fake_get_json({weather.GEOCODING_URL: {"results": []}}))
    out = await weather.weather({"location": "Atlantis"})
    assert 'Could not locate "Atlantis"' in out.text


@pytest.mark.asyncio
async def test_web_search_uses_arabic_wiki_for_arabic_query(monkeypatch):
    calls = []
    payload = {
        "query": {
            "search": [
                {"title": "ذكاء اصطناعي", "pageid": 1, "snippet": "<span>نص</span> قصير"},
                {"title": "تعلم آلي", "pageid": 2, "snippet": ""},
            ]
        }
    }
    monkeypatch.setattr(web_search, "get_json", fake_get_json({"https://ar.wikipedia.org": payload}, calls))

    out = await web_search.web_search({"query": "الذكاء الاصطناعي"})

    assert out.metadata == {"query": "الذكاء الاصطناعي", "count": 2, "source": "wikipedia", "language": "ar"}
    assert "<span>" not in out.text
    assert "https://ar.wikipedia.org/?curid=1" in out.text


@pytest.mark.asyncio
async def test_web_search_no_hits(monkeypatch):
    monkeypatch.setattr(
        web_search, "get_json", fake_get_json({"https://": {"query": {"search": []}}})
    )
    out = await web_search.web_search({"query": "zzzz"})
    assert out.metadata["count"] == 0


@pytest.mark.asyncio
async def test_web_search_tolerates_unexpected_query_shape(monkeypatch):
    monkeypatch.setattr(
        web_search, "get_json", fake_get_json({"https://": {"query": ["unexpected"]}})
    )
    out = await web_search.web_search({"query": "zzzz"})
    assert 'No clear results found for "zzzz"' in out.text
    assert out.metadata["count"] == 0


@pytest.mark.asyncio
async def test_exchange_rate_primary(monkeypatch):
    payload = {"result": 375.0, "info": {"rate": 3.75}, "date": "2025-01-05"}
    monkeypatch.setattr(exchange_rate, "get_json", fake_get_json({exchange_rate.PRIMARY_URL: payload}))

    out = await exchange_rate.exchange_rate({"from": "usd", "to": "sar", "amount": 100})

    assert "100 USD = 375.0000 SAR" in out.text
    assert out.metadata["source"] == "exchangerate.host"


@pytest.mark.asyncio
async def test_exchange_rate_falls_back_to_frankfurter(monkeypatch):
    request = httpx.Request("GET", exchange_rate.PRIMARY_URL)
    responses = {
        exchange_rate.PRIMARY_URL: httpx.ConnectError("down", request=request),
        exchange_rate.FALLBACK_URL: {"rates": {"EUR": 9.2}, "date": "2025-01-03"},
    }
    monkeypatch.setattr(exchange_rate, "get_json", fake_get_json(responses))

    out = await exchange_rate.exchange_rate({"from": "USD", "to": "EUR", "amount": 10})

    assert out.metadata["source"] == "frankfurter"
    assert out.metadata["rate"] == pytest.approx(0.92)


@pytest.mark.asyncio
async def test_ip_geolocation_without_key_uses_ipapi(monkeypatch):
    monkeypatch.setattr(settings, "ipstack_api_key", "")
    payload = {
        "ip": "8.8.8.8",
        "city": "Mountain View",
        "region": "California",
        "country_name": "United States",
        "timezone": "America/Los_Angeles",
        "latitude": 37.4,
        "longitude": -122.1,
        "org": "GOOGLE",
        "currency": "USD",
    }
    calls = []
    monkeypatch.setattr(ip_geolocation, "get_json", fake_get_json({ip_geolocation.IPAPI_URL: payload}, calls))

    out = await ip_geolocation.ip_geolocation({"ip": "8.8.8.8"})

    assert calls[0][0] == "https://ipapi.co/8.8.8.8/json/"
    assert "Mountain View, California - United States" in out.text
    assert out.metadata["source"] == "ipapi"


@pytest.mark.asyncio
async def test_news_without_key_returns_hint(monkeypatch):
    monkeypatch.setattr(settings, "news_api_key", "")
    out = await news.news_headlines({"topic": "space"})
    assert "NEWS_API_KEY" in out.text
    assert out.metadata["configured"] is False


@pytest.mark.asyncio
async def test_news_with_key_lists_articles(monkeypatch):
    monkeypatch.setattr(settings, "news_api_key", "k")
    calls = []
    payload = {
        "articles": [
            {"title": "Launch", "source": {"name": "Wire"}, "description": "Rocket up", "url": "https://example.com/a"}
        ]
    }
    monkeypatch.setattr(news, "get_json", fake_get_json({news.NEWS_API_URL: payload}, calls))

    out = await news.news_headlines({"topic": "space", "language": "EN"})

    assert "1. Launch (Wire)" in out.text
    assert calls[0][2] == {"X-Api-Key": "k"}
    assert calls[0][1]["language"] == "en"


@pytest.mark.asyncio
async def test_rest_countries(monkeypatch):
    payload = [
        {
            "name": {"common": "Japan"},
            "capital": ["Tokyo"],
            "population": 125836021,
            "region": "Asia",
            "subregion": "Eastern Asia",
            "languages": {"jpn": "Japanese"},
            "currencies": {"JPY": {"name": "Japanese yen", "symbol": "¥"}},
        }
    ]
    monkeypatch.setattr(countries, "get_json", fake_get_json({countries.REST_COUNTRIES_URL: payload}))

    out = await countries.rest_countries({"country": "Japan"})

    assert "- Capital: Tokyo" in out.text
    assert "- Population: 125,836,021" in out.text
    assert "Japanese yen (¥)" in out.text


@pytest.mark.asyncio
async def test_upstream_http_errors_propagate(monkeypatch):
    request = httpx.Request("GET", countries.REST_COUNTRIES_URL)
    response = httpx.Response(404, request=request)
    error = httpx.HTTPStatusError("not found", request=request, response=response)
    monkeypatch.setattr(countries, "get_json", fake_get_json({countries.REST_COUNTRIES_URL: error}))

    with pytest.raises(httpx.HTTPStatusError):
        await countries.rest_countries({"country": "Nowhere"})
