import logging
from datetime import datetime, timezone
from typing import Optional

from action_log import LogResult
from models import ActionKind, NEW_ARTICLE_ID

logger = logging.getLogger(__name__)


class ArticleActions:
    """
    User-facing article operations.

    Each one updates the local cache straight away so the change is visible
    offline, then queues the matching action for the server.
    """

    def __init__(self, cache, scheduler):
        self.cache = cache
        self.scheduler = scheduler

    def star(self, article_id: int) -> LogResult:
        self.cache.update(article_id, starred=True)
        return self.scheduler.add_action(article_id, ActionKind.STAR)

    def unstar(self, article_id: int) -> LogResult:
        self.cache.update(article_id, starred=False)
        return self.scheduler.add_action(article_id, ActionKind.UNSTAR)

    def toggle_star(self, article_id: int) -> Optional[LogResult]:
        article = self.cache.get(article_id)
        if article is None:
            logger.warning(f"Cannot star unknown article {article_id}")
            return None
        if article.starred:
            return self.unstar(article_id)
        return self.star(article_id)

    def perform(self, kind: ActionKind, target) -> Optional[LogResult]:
        """
        Run the operation for an action kind.

        Args:
            kind: action to perform
            target: article id, or the URL for ADD

        Returns:
            LogResult, or None when there was nothing to queue
        """
        kind = ActionKind(kind)
        if kind is ActionKind.ADD:
            return self.add_url(target)
        if kind is ActionKind.STAR:
            return self.star(target)
        if kind is ActionKind.UNSTAR:
            return self.unstar(target)
        if kind is ActionKind.ARCHIVE:
            return self.archive(target)
        if kind is ActionKind.DELETE:
            return self.delete(target)
        if kind is ActionKind.SUMMARIZE:
            return self.summarize(target)
        raise ValueError(f"Unknown action kind {kind!r}")

    def archive(self, article_id: int) -> LogResult:
        archived_at = datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"
        self.cache.update(article_id, status="archived", archived_at=archived_at)
        return self.scheduler.add_action(article_id, ActionKind.ARCHIVE)

    def delete(self, article_id: int) -> LogResult:
        result = self.scheduler.add_action(article_id, ActionKind.DELETE)
        self.cache.remove(article_id)
        return result

    def summarize(self, article_id: int) -> Optional[LogResult]:
        article = self.cache.get(article_id)
        if article is not None and article.has_summary:
            return None
        pending = self.scheduler.action_log.pending_of_kind(ActionKind.SUMMARIZE)
        if any(a.article_id == article_id for a in pending):
            logger.debug(f"Summary already requested for article {article_id}")
            return None
        return self.scheduler.add_action(article_id, ActionKind.SUMMARIZE)

    def add_url(self, url: str) -> LogResult:
        return self.scheduler.add_action(NEW_ARTICLE_ID, ActionKind.ADD, url=url)
