#!/usr/bin/env python3
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
"""
Tests for applied-action cleanup and summary polling.
"""

import asyncio
import shutil
import tempfile
import threading
import unittest
from unittest.mock import MagicMock, patch

from action_log import ActionLog, LogResult
from article_cache import ArticleCache
from article_service import ArticleServiceError
from cleanup import SummaryPoller, cleanup_applied_actions, is_applied
from models import ActionKind, Article, NEW_ARTICLE_ID, PendingAction, SyncState
from sync_scheduler import SyncScheduler


class CleanupTestCase(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.log = ActionLog(os.path.join(self.tmpdir, "pending_actions.jsonl"))
        self.cache = ArticleCache(os.path.join(self.tmpdir, "articles.json"))

    def tearDown(self):
        shutil.rmtree(self.tmpdir)


class TestIsApplied(unittest.TestCase):
    def test_rules(self):
        starred = Article(id=1, starred=True)
        plain = Article(id=1, starred=False)
        summarized = Article(id=1, summary="done")
        empty_summary = Article(id=1, summary="")

        def action(kind):
            return PendingAction.for_article(1, kind)

        self.assertTrue(is_applied(action(ActionKind.STAR), starred))
        self.assertFalse(is_applied(action(ActionKind.STAR), plain))
        self.assertTrue(is_applied(action(ActionKind.UNSTAR), plain))
        self.assertFalse(is_applied(action(ActionKind.UNSTAR), starred))
        self.assertTrue(is_applied(action(ActionKind.SUMMARIZE), summarized))
        self.assertFalse(is_applied(action(ActionKind.SUMMARIZE), empty_summary))
        self.assertTrue(is_applied(action(ActionKind.ARCHIVE), None))
        self.assertFalse(is_applied(action(ActionKind.ARCHIVE), plain))
        self.assertTrue(is_applied(action(ActionKind.DELETE), None))

    def test_missing_article_leaves_star_and_summarize_pending(self):
        for kind in (ActionKind.STAR, ActionKind.UNSTAR, ActionKind.SUMMARIZE):
            self.assertFalse(is_applied(PendingAction.for_article(1, kind), None))


class TestCleanupAppliedActions(CleanupTestCase):
    def test_summary_present_removes_summarize(self):
        self.cache.upsert(Article(id=7, summary="A short summary"))
        self.log.append(7, ActionKind.SUMMARIZE)

        removed = cleanup_applied_actions(self.log, self.cache)

        self.assertEqual(len(removed), 1)
        self.assertEqual(self.log.count(), 0)

    def test_absent_article_removes_archive_but_not_unconfirmed_star(self):
        self.cache.upsert(Article(id=2, starred=False))
        archive = self.log.append(1, ActionKind.ARCHIVE).action
        star = self.log.append(2, ActionKind.STAR).action

        removed = cleanup_applied_actions(self.log, self.cache)

        self.assertEqual(removed, [archive])
        self.assertEqual(self.log.list_pending(), [star])

    def test_placeholder_actions_are_skipped(self):
        self.log.append(NEW_ARTICLE_ID, ActionKind.ADD, url="https://example.com")
        self.assertEqual(cleanup_applied_actions(self.log, self.cache), [])
        self.assertEqual(self.log.count(), 1)

    def test_empty_log(self):
        self.assertEqual(cleanup_applied_actions(self.log, self.cache), [])

    def test_delete_failure_reports_nothing_removed(self):
        self.log.append(1, ActionKind.DELETE)
        with patch.object(self.log, "delete_many", return_value=LogResult(ok=False, error="disk")):
            self.assertEqual(cleanup_applied_actions(self.log, self.cache), [])


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestSummaryPoller(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.log = ActionLog(os.path.join(self.tmpdir, "pending_actions.jsonl"))
        self.cache = ArticleCache(os.path.join(self.tmpdir, "articles.json"))
        self.cache.upsert(Article(id=7))
        self.service = MagicMock()
        self.state = SyncState(is_connected=True)
        self.clock = FakeClock()
        self.poller = SummaryPoller(
            self.log, self.cache, self.service, self.state,
            interval=0.01, window=60.0, clock=self.clock,
        )

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _summary_arrives(self, cache):
        cache.merge_refresh([Article(id=7, summary="Done")])
        return 1

    async def test_poll_removes_action_once_summary_arrives(self):
        self.log.append(7, ActionKind.SUMMARIZE)
        self.service.refresh.side_effect = self._summary_arrives

        removed = await self.poller.poll_once()

        self.assertEqual(len(removed), 1)
        self.assertEqual(self.log.count(), 0)
        self.assertNotIn(7, self.poller.started_at)

    async def test_poll_stops_after_window(self):
        self.log.append(7, ActionKind.SUMMARIZE)
        self.service.refresh.return_value = 1

        await self.poller.poll_once()
        self.assertEqual(self.service.refresh.call_count, 1)

        self.clock.now = 61.0
        await self.poller.poll_once()
        self.assertEqual(self.service.refresh.call_count, 1)
        self.assertEqual(self.log.count(), 1)

    async def test_poll_skipped_while_offline_or_syncing(self):
        self.log.append(7, ActionKind.SUMMARIZE)
        self.state.is_connected = False
        await self.poller.poll_once()
        self.state.is_connected = True
        self.state.is_syncing = True
        await self.poller.poll_once()
        self.service.refresh.assert_not_called()

    async def test_no_pending_summaries_means_no_refresh(self):
        self.log.append(7, ActionKind.STAR)
        await self.poller.poll_once()
        self.service.refresh.assert_not_called()

    async def test_refresh_failure_keeps_action(self):
        self.log.append(7, ActionKind.SUMMARIZE)
        self.service.refresh.side_effect = ArticleServiceError("down")
        self.assertEqual(await self.poller.poll_once(), [])
        self.assertEqual(self.log.count(), 1)

    async def test_sync_flag_released_after_failed_refresh(self):
        self.log.append(7, ActionKind.SUMMARIZE)
        self.service.refresh.side_effect = ArticleServiceError("down")
        await self.poller.poll_once()
        self.assertFalse(self.state.is_syncing)

    async def test_sync_trigger_dropped_while_poll_refresh_runs(self):
        self.log.append(7, ActionKind.SUMMARIZE)
        refresh_started = threading.Event()
        release = threading.Event()
        seen_syncing = []

        def slow_refresh(cache):
            seen_syncing.append(self.state.is_syncing)
            refresh_started.set()
            release.wait(2)
            return 1

        self.service.refresh.side_effect = slow_refresh
        scheduler = SyncScheduler(
            action_log=self.log,
            applier=MagicMock(),
            article_service=self.service,
            cache=self.cache,
            state=self.state,
        )

        poll = asyncio.ensure_future(self.poller.poll_once())
        await asyncio.to_thread(refresh_started.wait, 2)

        self.assertIsNone(scheduler.trigger("periodic-timer"))
        release.set()
        await poll

        self.assertEqual(seen_syncing, [True])
        self.assertEqual(self.service.refresh.call_count, 1)
        self.assertFalse(self.state.is_syncing)

    async def test_start_and_stop(self):
        task = self.poller.start()
        self.assertFalse(task.done())
        await self.poller.stop()
        self.assertTrue(task.cancelled())


if __name__ == "__main__":
    unittest.main()
