"""
Web Search Service

Thin adapter over the Google Custom Search JSON API. Producer agents use it
for review snippets, competitor listings and result-count trend estimates.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from app.config import Settings, get_settings
from app.exceptions import ProviderNotConfiguredError

logger = logging.getLogger(__name__)


@dataclass
class SearchHit:
    """One web search result."""
    title: str
    url: str
    snippet: str
    source: str = ""  # display host, e.g. "www.gsmarena.com"


class SearchService:
    """Google Custom Search client. `configured` is False without both keys."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return self.settings.search_provider_configured

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.external_call_timeout_seconds)

    async def _request(self, query: str, num: int, date_restrict: Optional[str]) -> dict:
        if not self.configured:
            raise ProviderNotConfiguredError("Google Custom Search is not configured")

        params = {
            "key": self.settings.google_search_api_key,
            "cx": self.settings.google_search_engine_id,
            "q": query,
            "num": max(1, min(num, 10)),  # API maximum per page
        }
        if date_restrict:
            params["dateRestrict"] = date_restrict

        async with self._client() as client:
            response = await client.get(self.settings.google_search_base_url, params=params)
            response.raise_for_status()
            return response.json()

    async def search(self, query: str, num: int = 10, date_restrict: Optional[str] = None) -> list[SearchHit]:
        """
        Run a web search.

        Args:
            query: Search terms
            num: Number of results (1-10)
            date_restrict: Optional window such as "d30" or "m3"

        Returns:
            Result hits, possibly empty
        """
        data = await self._request(query, num, date_restrict)
        hits = [
            SearchHit(
                title=item.get("title", ""),
                url=item.get("link", ""),
                snippet=item.get("snippet", ""),
                source=item.get("displayLink", ""),
            )
            for item in data.get("items", [])
        ]
        logger.debug(f"Search '{query}' returned {len(hits)} hits")
        return hits

    async def total_results(self, query: str, date_restrict: Optional[str] = None) -> int:
        """Estimated number of matching documents for the query."""
        data = await self._request(query, 1, date_restrict)
        raw = data.get("searchInformation", {}).get("totalResults", "0")
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning(f"Unexpected totalResults value for '{query}': {raw!r}")
            return 0
