"""
Applied-Action Cleanup for NoteBrain Sync
Removes queued actions whose effect already shows in the refreshed article cache.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional

from article_service import ArticleServiceError
from models import ActionKind, NEW_ARTICLE_ID, PendingAction

logger = logging.getLogger(__name__)


def is_applied(action: PendingAction, article) -> bool:
    """Whether the cached article (None when absent) reflects the action."""
    kind = action.kind
    if kind is ActionKind.SUMMARIZE:
        return article is not None and bool(article.summary)
    if kind in (ActionKind.ARCHIVE, ActionKind.DELETE):
        return article is None
    if kind is ActionKind.STAR:
        return article is not None and article.starred is True
    if kind is ActionKind.UNSTAR:
        return article is not None and article.starred is False
    return False


def cleanup_applied_actions(action_log, cache) -> List[PendingAction]:
    """
    Delete every pending action that the cache shows as applied.

    Add-by-URL actions are left alone, there is no article to check yet.

    Returns:
        The actions that were removed
    """
    applied = []
    for action in action_log.list_pending():
        if action.article_id == NEW_ARTICLE_ID:
            continue
        if is_applied(action, cache.get(action.article_id)):
            applied.append(action)

    if not applied:
        return []

    result = action_log.delete_many(applied)
    if not result.ok:
        logger.error(f"Cleanup could not remove applied actions: {result.error}")
        return []
    logger.info(f"🧹 Removed {len(applied)} already-applied action(s)")
    return applied


class SummaryPoller:
    """
    Watches pending summarize requests until the summary shows up.

    Each article is polled for at most ``window`` seconds after its request is
    first seen; the cache is refreshed once per tick, not once per article.
    """

    def __init__(
        self,
        action_log,
        cache,
        article_service,
        state,
        interval: float = 15.0,
        window: float = 60.0,
        clock=time.monotonic,
    ):
        self.action_log = action_log
        self.cache = cache
        self.article_service = article_service
        self.state = state
        self.interval = interval
        self.window = window
        self.clock = clock
        self.started_at: Dict[int, float] = {}
        self._task: Optional[asyncio.Task] = None

    def _articles_to_poll(self) -> List[int]:
        now = self.clock()
        pending_ids = {a.article_id for a in self.action_log.pending_of_kind(ActionKind.SUMMARIZE)}

        # Forget articles whose request is gone
        for article_id in list(self.started_at):
            if article_id not in pending_ids:
                del self.started_at[article_id]

        due = []
        for article_id in sorted(pending_ids):
            started = self.started_at.setdefault(article_id, now)
            if now - started <= self.window:
                due.append(article_id)
        return due

    async def poll_once(self) -> List[PendingAction]:
        if not self.state.is_connected or self.state.is_syncing:
            return []

        due = self._articles_to_poll()
        if not due:
            return []

        logger.debug(f"Polling for summaries of articles {due}")
        # Hold the sync flag so no cycle writes the cache or log alongside us
        self.state.is_syncing = True
        try:
            try:
                await asyncio.to_thread(self.article_service.refresh, self.cache)
            except ArticleServiceError as e:
                logger.warning(f"Summary poll refresh failed: {e}")
                return []
            removed = cleanup_applied_actions(self.action_log, self.cache)
        finally:
            self.state.is_syncing = False

        for article_id in due:
            article = self.cache.get(article_id)
            if article is not None and article.has_summary:
                self.started_at.pop(article_id, None)
                logger.info(f"📝 Summary ready for article {article_id}")
        return removed

    async def run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
