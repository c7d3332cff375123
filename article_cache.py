import logging
from dataclasses import asdict, replace
from typing import Dict, Iterable, List, Optional

from data_parser import parse_article
from models import Article
from storage import load_raw_json, save_raw_json

logger = logging.getLogger(__name__)


class ArticleCache:
    """Local copy of the server's articles, stored as a JSON object keyed by id."""

    def __init__(self, path: str):
        self.path = path
        self._articles: Dict[int, Article] = self._load()

    def _load(self) -> Dict[int, Article]:
        raw = load_raw_json(self.path, default={})
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring unexpected cache contents in {self.path}")
            return {}
        articles = {}
        for record in raw.values():
            try:
                article = parse_article(record)
            except (ValueError, AttributeError) as e:
                logger.warning(f"Skipping cached article: {e}")
                continue
            articles[article.id] = article
        return articles

    def _save(self) -> bool:
        data = {str(article_id): asdict(a) for article_id, a in self._articles.items()}
        return save_raw_json(data, self.path)

    def get(self, article_id: int) -> Optional[Article]:
        return self._articles.get(article_id)

    def all(self) -> List[Article]:
        return sorted(self._articles.values(), key=lambda a: a.id)

    def __len__(self) -> int:
        return len(self._articles)

    def __contains__(self, article_id: int) -> bool:
        return article_id in self._articles

    def upsert(self, article: Article) -> bool:
        self._articles[article.id] = article
        return self._save()

    def update(self, article_id: int, **changes) -> Optional[Article]:
        article = self._articles.get(article_id)
        if article is None:
            return None
        updated = replace(article, **changes)
        self._articles[article_id] = updated
        self._save()
        return updated

    def remove(self, article_id: int) -> bool:
        if self._articles.pop(article_id, None) is None:
            return False
        return self._save()

    def merge_refresh(self, articles: Iterable[Article]) -> bool:
        """
        Merge a full server listing: every listed article is inserted or
        updated, cached articles the server no longer lists are dropped.
        """
        fresh = {a.id: a for a in articles}
        dropped = set(self._articles) - set(fresh)
        if dropped:
            logger.debug(f"Dropping {len(dropped)} articles missing from server")
        self._articles = fresh
        return self._save()

    def clear(self) -> bool:
        self._articles = {}
        return self._save()
