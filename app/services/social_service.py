"""
Social Signal Service

Fetches recent public posts from the Twitter/X v2 recent-search endpoint with
an app-only bearer token.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from app.config import Settings, get_settings
from app.exceptions import ProviderNotConfiguredError

logger = logging.getLogger(__name__)


@dataclass
class SocialPost:
    id: str
    text: str
    source: str = "Twitter/X"


class SocialService:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return self.settings.social_provider_configured

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.external_call_timeout_seconds)

    async def recent_posts(self, query: str, limit: int = 10) -> list[SocialPost]:
        """
        Recent English posts mentioning the query, retweets excluded.

        Raises:
            ProviderNotConfiguredError: No bearer token
            httpx.HTTPError: Transport or non-2xx response
        """
        if not self.configured:
            raise ProviderNotConfiguredError("Twitter/X bearer token is not configured")

        params = {
            "query": f'"{query}" lang:en -is:retweet',
            # endpoint accepts 10-100
            "max_results": max(10, min(limit, 100)),
        }
        headers = {"Authorization": f"Bearer {self.settings.twitter_bearer_token}"}
        url = f"{self.settings.twitter_base_url.rstrip('/')}/tweets/search/recent"

        async with self._client() as client:
            response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()

        posts = [
            SocialPost(id=str(item.get("id", "")), text=item.get("text", ""))
            for item in data.get("data", [])
            if item.get("text")
        ]
        logger.debug(f"Twitter/X search '{query}' returned {len(posts)} posts")
        return posts[:limit]
