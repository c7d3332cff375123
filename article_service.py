#!/usr/bin/env python3
"""
Article Service Module for NoteBrain Sync
Fetches articles from the NoteBrain API, including paginated archived articles.
"""

import json
import logging
from typing import Any, Generator, List, Optional

import requests
from requests import Session

from config import auth_headers, is_valid_base_url
from data_parser import parse_archived_page, parse_articles
from models import ArchivedPage, Article

logger = logging.getLogger(__name__)


class ArticleServiceError(Exception):
    """Raised when articles can't be fetched from the server."""


class ArticleService:
    """Read side of the NoteBrain API."""

    def __init__(
        self,
        session: Session,
        base_url: Optional[str],
        api_token: Optional[str],
        timeout: float = 30.0,
    ):
        self.session = session
        self.base_url = base_url.rstrip("/") if base_url else base_url
        self.api_token = api_token
        self.timeout = timeout

    def _get(self, endpoint: str, params: Optional[dict] = None) -> Any:
        if not is_valid_base_url(self.base_url):
            raise ArticleServiceError(f"Bad base URL: {self.base_url!r}")

        try:
            response = self.session.get(
                f"{self.base_url}{endpoint}",
                params=params,
                headers=auth_headers(self.api_token),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ArticleServiceError(f"Network error fetching {endpoint}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ArticleServiceError(
                f"GET {endpoint} failed with status {response.status_code}"
            )

        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise ArticleServiceError(f"Invalid JSON from {endpoint}: {e}") from e

    def fetch_articles(self) -> List[Article]:
        """Fetch the full article list."""
        data = self._get("/api/articles")
        if isinstance(data, dict):
            # Some installations wrap the list the same way the archive does
            data = data.get("data")
        if not isinstance(data, list):
            raise ArticleServiceError("Unexpected article list payload")
        articles = parse_articles(data)
        logger.info(f"Fetched {len(articles)} articles")
        return articles

    def fetch_archived_articles(self, page: int = 1, page_size: int = 20) -> ArchivedPage:
        """Fetch one page of archived articles."""
        data = self._get(
            "/api/articles/archived", params={"page": page, "pageSize": page_size}
        )
        if not isinstance(data, dict):
            raise ArticleServiceError("Unexpected archived page payload")
        return parse_archived_page(data)

    def iter_archived_articles(
        self, page_size: int = 20, max_pages: Optional[int] = None
    ) -> Generator[Article, None, None]:
        """
        Walk every archived page.

        Args:
            page_size: Number of articles requested per page
            max_pages: Stop after this many pages (None for all)

        Yields:
            Article instances, page by page
        """
        page = 1
        pages_fetched = 0
        while True:
            if max_pages is not None and pages_fetched >= max_pages:
                logger.info(f"Reached maximum page limit: {max_pages}")
                break

            result = self.fetch_archived_articles(page=page, page_size=page_size)
            pages_fetched += 1
            logger.debug(
                f"Archived page {result.current_page}/{result.last_page}: "
                f"{len(result.data)} articles"
            )
            yield from result.data

            if not result.data or result.current_page >= result.last_page:
                break
            page = result.current_page + 1

    def refresh(self, cache) -> int:
        """
        Pull the full article list and merge it into the local cache.

        Returns:
            Number of articles received from the server
        """
        articles = self.fetch_articles()
        cache.merge_refresh(articles)
        return len(articles)


def create_article_service(config) -> Optional[ArticleService]:
    session = config.get_session()
    if not session:
        logger.error("No configured session available")
        return None

    return ArticleService(
        session=session,
        base_url=config.base_url,
        api_token=config.api_token,
        timeout=config.request_timeout,
    )
