"""
HTTP article source.

Fetches candidate articles from the article service:

    GET {base_url}/articles?language=en&country=india[&category=sports]

The response body is a JSON array of article objects. Items that fail
validation are skipped; transport errors and non-2xx responses raise
ArticleSourceError so the orchestrator can fall back.
"""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from core.errors import ArticleSourceError
from core.logging import LoggerMixin
from personalization.models import Article


class HttpArticleSource(LoggerMixin):
    """
    ArticleSource over httpx.

    Usage:
        async with HttpArticleSource("http://localhost:4000") as source:
            articles = await source.fetch_candidate_articles("en", "india", "sports")
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    @classmethod
    def from_settings(cls, settings: Any, client: Optional[httpx.AsyncClient] = None) -> "HttpArticleSource":
        return cls(
            settings.article_api_base_url,
            timeout_seconds=settings.article_request_timeout_seconds,
            client=client,
        )

    async def fetch_candidate_articles(
        self,
        language: str,
        region: str,
        category: Optional[str] = None,
    ) -> List[Article]:
        params: Dict[str, str] = {"language": language, "country": region}
        if category:
            params["category"] = category

        try:
            response = await self._client.get(f"{self.base_url}/articles", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ArticleSourceError(
                f"Article service returned {e.response.status_code} for category={category}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ArticleSourceError(f"Article fetch failed for category={category}: {e}") from e

        if not isinstance(payload, list):
            raise ArticleSourceError("Article service returned a non-list body")

        articles: List[Article] = []
        skipped = 0
        for item in payload:
            try:
                articles.append(Article.model_validate(item))
            except ValidationError:
                skipped += 1

        if skipped:
            self.logger.warning("article_source.invalid_items", category=category, skipped=skipped)
        self.logger.debug("article_source.fetched", category=category, count=len(articles))
        return articles

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpArticleSource":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
