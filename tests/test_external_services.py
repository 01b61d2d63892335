"""Tests for the web search and social adapters against a mocked HTTP transport."""

import httpx
import pytest

from app.exceptions import ProviderNotConfiguredError
from app.services.search_service import SearchService
from app.services.social_service import SocialService


def _mock_client(handler):
    return lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def search_settings(settings):
    return settings.model_copy(update={"google_search_api_key": "key", "google_search_engine_id": "cx"})


@pytest.fixture
def social_settings(settings):
    return settings.model_copy(update={"twitter_bearer_token": "token"})


class TestSearchService:
    async def test_unconfigured(self, settings):
        service = SearchService(settings)

        assert not service.configured
        with pytest.raises(ProviderNotConfiguredError):
            await service.search("Nothing Phone 2")

    async def test_search_maps_items(self, search_settings, monkeypatch):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json={"items": [{
                "title": "Pixel 8 - Google Store",
                "link": "https://store.google.com/pixel_8",
                "snippet": "From $699",
                "displayLink": "store.google.com",
            }]})

        service = SearchService(search_settings)
        monkeypatch.setattr(service, "_client", _mock_client(handler))

        hits = await service.search("Nothing Phone 2 competitors", num=25, date_restrict="d30")

        assert hits[0].title == "Pixel 8 - Google Store"
        assert hits[0].source == "store.google.com"
        assert seen["num"] == "10"
        assert seen["dateRestrict"] == "d30"
        assert seen["cx"] == "cx"

    async def test_total_results(self, search_settings, monkeypatch):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"searchInformation": {"totalResults": "12345"}})

        service = SearchService(search_settings)
        monkeypatch.setattr(service, "_client", _mock_client(handler))

        assert await service.total_results("Nothing Phone 2", date_restrict="d90") == 12345

    async def test_http_error_propagates(self, search_settings, monkeypatch):
        service = SearchService(search_settings)
        monkeypatch.setattr(service, "_client", _mock_client(lambda request: httpx.Response(429)))

        with pytest.raises(httpx.HTTPStatusError):
            await service.search("Nothing Phone 2")


class TestSocialService:
    async def test_unconfigured(self, settings):
        with pytest.raises(ProviderNotConfiguredError):
            await SocialService(settings).recent_posts("Nothing Phone 2")

    async def test_recent_posts(self, social_settings, monkeypatch):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["query"] = request.url.params["query"]
            seen["max_results"] = request.url.params["max_results"]
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"data": [
                {"id": "1", "text": "Loving the glyph lights"},
                {"id": "2", "text": ""},
                {"id": "3", "text": "Battery could be better"},
            ]})

        service = SocialService(social_settings)
        monkeypatch.setattr(service, "_client", _mock_client(handler))

        posts = await service.recent_posts("Nothing Phone 2", limit=5)

        assert [p.id for p in posts] == ["1", "3"]
        assert all(p.source == "Twitter/X" for p in posts)
        assert seen["query"] == '"Nothing Phone 2" lang:en -is:retweet'
        assert seen["max_results"] == "10"
        assert seen["auth"] == "Bearer token"
