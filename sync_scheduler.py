#!/usr/bin/env python3
"""
Sync Scheduler for NoteBrain Sync
Runs one sync cycle at a time: reconcile the action log, replay it against the
server, refresh the article cache, then clean up applied actions.
"""

import asyncio
import logging
from typing import Optional

from action_log import ActionLog, LogResult
from article_cache import ArticleCache
from article_service import ArticleServiceError, create_article_service
from cleanup import SummaryPoller, cleanup_applied_actions
from connectivity import ConnectivityMonitor, http_probe
from models import ActionKind, ClearPolicy, SyncReport, SyncState, utcnow
from reconciler import AddPolicy, reconcile, superseded
from remote_applier import create_remote_applier

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Owns the sync-in-progress flag and the periodic trigger.

    Triggers arriving while a cycle runs, or while the server is unreachable,
    are dropped rather than queued. All methods must be called from the event
    loop that runs the cycles.
    """

    def __init__(
        self,
        action_log: ActionLog,
        applier,
        article_service,
        cache: ArticleCache,
        monitor: Optional[ConnectivityMonitor] = None,
        state: Optional[SyncState] = None,
        clear_policy: ClearPolicy = ClearPolicy.CLEAR_ON_SYNC_ATTEMPT,
        add_policy: AddPolicy = AddPolicy.SINGLE_PENDING_ADD,
        interval: float = 120.0,
        summary_poller: Optional[SummaryPoller] = None,
    ):
        self.action_log = action_log
        self.applier = applier
        self.article_service = article_service
        self.cache = cache
        self.monitor = monitor
        self.state = state or SyncState()
        self.clear_policy = ClearPolicy(clear_policy)
        self.add_policy = AddPolicy(add_policy)
        self.interval = interval
        self.summary_poller = summary_poller

        if self.monitor is not None:
            self.monitor.attach_state(self.state)
        self._listening = False
        self._timer_task: Optional[asyncio.Task] = None
        self._cycle_task: Optional[asyncio.Task] = None
        self._tail_task: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self.state.is_connected

    @property
    def is_syncing(self) -> bool:
        return self.state.is_syncing

    @property
    def current_cycle(self) -> Optional[asyncio.Task]:
        return self._cycle_task

    def trigger(self, reason: str = "explicit") -> Optional[asyncio.Task]:
        """
        Start a sync cycle unless one is running or the server is unreachable.

        Returns:
            The task running the cycle, or None if the trigger was dropped
        """
        if self.state.is_syncing:
            logger.debug(f"Sync already running, dropping {reason} trigger")
            return None
        if not self.state.is_connected:
            logger.info(f"Offline, {reason} sync deferred")
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, {reason} sync deferred")
            return None

        # Set before the first await so overlapping triggers see it
        self.state.is_syncing = True
        self.state.last_sync_attempt = utcnow()
        self._cycle_task = loop.create_task(self._run_cycle(reason))
        return self._cycle_task

    async def sync_now(self, reason: str = "explicit") -> Optional[SyncReport]:
        task = self.trigger(reason)
        if task is None:
            return None
        return await task

    def add_action(self, article_id: int, kind: ActionKind, url: Optional[str] = None) -> LogResult:
        """Queue a user intent and try to deliver it right away."""
        result = self.action_log.append(article_id, kind, url=url)
        if result.ok:
            self.trigger("new-action")
        return result

    async def _deliver(self, report: SyncReport) -> None:
        snapshot = self.action_log.list_pending()
        reconciled = reconcile(snapshot, self.add_policy)
        logger.info(
            f"🔄 Syncing {len(reconciled)} action(s) "
            f"({len(snapshot)} queued, reason: {report.reason})"
        )

        for key, action in reconciled.items():
            result = await asyncio.to_thread(self.applier.apply, action)
            if result.ok:
                report.applied.append(action)
            else:
                report.failed[key] = result.reason or "unknown"

        if self.clear_policy is ClearPolicy.CLEAR_ON_SYNC_ATTEMPT:
            count = self.action_log.count()
            result = self.action_log.clear_all()
            if result.ok:
                report.cleared = count
        else:
            doomed = superseded(snapshot, reconciled)
            doomed += [a for a in report.applied if a.is_new_url]
            result = self.action_log.delete_many(doomed)
            if result.ok:
                report.cleared = len(doomed)
        if not result.ok:
            logger.error(f"Could not clear delivered actions: {result.error}")

    async def _finish_cycle(self, report: SyncReport) -> SyncReport:
        try:
            try:
                await asyncio.to_thread(self.article_service.refresh, self.cache)
                report.refreshed = True
            except ArticleServiceError as e:
                logger.error(f"❌ Article refresh failed: {e}")

            report.cleaned = cleanup_applied_actions(self.action_log, self.cache)
            self.state.last_sync_completed = utcnow()
            logger.info(
                f"✅ Sync finished: {len(report.applied)} applied, "
                f"{len(report.failed)} failed, {self.action_log.count()} still pending"
            )
            return report
        finally:
            self.state.is_syncing = False

    async def _run_cycle(self, reason: str) -> SyncReport:
        report = SyncReport(reason=reason)
        tail_started = False
        try:
            await self._deliver(report)
            # Once the log is cleared the refresh must finish even if cancelled
            tail_started = True
            self._tail_task = asyncio.ensure_future(self._finish_cycle(report))
            return await asyncio.shield(self._tail_task)
        finally:
            if not tail_started:
                self.state.is_syncing = False

    async def sync_actions_once(self) -> Optional[SyncReport]:
        """Deliver and clear pending actions without refreshing articles."""
        if self.state.is_syncing or not self.state.is_connected:
            return None
        self.state.is_syncing = True
        self.state.last_sync_attempt = utcnow()
        report = SyncReport(reason="one-time")
        try:
            await self._deliver(report)
            return report
        finally:
            self.state.is_syncing = False

    def _on_connectivity_restored(self) -> None:
        self.trigger("connectivity-restored")

    async def _timer_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.state.is_connected:
                self.trigger("periodic-timer")

    def start(self) -> None:
        """Hook up connectivity events and start the periodic timer."""
        if self.monitor is not None:
            if not self._listening:
                self.monitor.add_listener(self._on_connectivity_restored)
                self._listening = True
            if self.monitor.probe is not None:
                self.monitor.start()
        if self._timer_task is None or self._timer_task.done():
            self._timer_task = asyncio.get_running_loop().create_task(self._timer_loop())
        if self.summary_poller is not None:
            self.summary_poller.start()
        logger.info(f"⏱️  Sync scheduler started (every {self.interval:.0f}s)")

    async def stop(self) -> None:
        """Cancel timers and pollers; a cycle past its clear step runs to the end."""
        timer, self._timer_task = self._timer_task, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
        if self.monitor is not None:
            await self.monitor.stop()
        if self.summary_poller is not None:
            await self.summary_poller.stop()

        cycle = self._cycle_task
        if cycle is not None and not cycle.done():
            if self._tail_task is None or self._tail_task.done():
                cycle.cancel()
            try:
                await cycle
            except asyncio.CancelledError:
                pass
        tail, self._tail_task = self._tail_task, None
        if tail is not None and not tail.done():
            await tail
        logger.info("Sync scheduler stopped")


def create_sync_scheduler(config) -> Optional[SyncScheduler]:
    """
    Build a scheduler and its collaborators from installation settings.

    Args:
        config: InstallationConfig instance

    Returns:
        SyncScheduler instance or None if the configuration is incomplete
    """
    applier = create_remote_applier(config)
    article_service = create_article_service(config)
    if applier is None or article_service is None:
        return None

    state = SyncState()
    action_log = ActionLog(config.data_path("pending_actions.jsonl"))
    cache = ArticleCache(config.data_path("articles.json"))
    monitor = ConnectivityMonitor(
        probe=http_probe(config.get_session(), config.base_url),
        interval=config.connectivity_interval,
        state=state,
    )
    poller = SummaryPoller(
        action_log,
        cache,
        article_service,
        state,
        interval=config.poll_interval,
        window=config.summary_poll_window,
    )
    return SyncScheduler(
        action_log=action_log,
        applier=applier,
        article_service=article_service,
        cache=cache,
        monitor=monitor,
        state=state,
        clear_policy=config.clear_policy,
        add_policy=config.add_policy,
        interval=config.sync_interval,
        summary_poller=poller,
    )
