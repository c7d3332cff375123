#!/usr/bin/env python3
"""
NoteBrain Sync Tool
Queues article actions offline and replays them against a NoteBrain server.
"""

import asyncio
import logging
import sys

from article_actions import ArticleActions
from article_service import ArticleServiceError
from config import setup_configuration
from models import ActionKind
from share_inbox import ShareInbox, extract_urls, process_shared_urls
from storage import get_file_summary
from sync_scheduler import create_sync_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def load_scheduler():
    config = setup_configuration()
    if not config:
        logger.error(
            "Configuration missing. Set NOTEBRAIN_INSTALLATION_URL and NOTEBRAIN_API_TOKEN."
        )
        sys.exit(1)
    scheduler = create_sync_scheduler(config)
    if not scheduler:
        logger.error("Failed to create sync scheduler. Exiting.")
        sys.exit(1)
    return config, scheduler


def print_report(report) -> None:
    print("\n" + "=" * 60)
    print("📊 SYNC SUMMARY")
    print("=" * 60)
    print(f"   Applied: {len(report.applied)}")
    print(f"   Failed: {len(report.failed)}")
    for key, reason in report.failed.items():
        print(f"     - {key}: {reason}")
    print(f"   Cleared from log: {report.cleared}")
    print(f"   Articles refreshed: {'yes' if report.refreshed else 'no'}")
    print(f"   Confirmed by cleanup: {len(report.cleaned)}")
    print("=" * 60)


async def run_sync(scheduler) -> int:
    if scheduler.monitor is not None:
        await scheduler.monitor.check_once()
    if not scheduler.is_connected:
        logger.warning(
            f"📴 Server unreachable, {scheduler.action_log.count()} action(s) stay queued"
        )
        return 1
    report = await scheduler.sync_now("explicit")
    if report is None:
        return 1
    print_report(report)
    return 0


async def run_service(config, scheduler) -> None:
    inbox = ShareInbox(config.share_inbox_path)
    scheduler.start()
    try:
        while True:
            process_shared_urls(inbox, scheduler)
            await asyncio.sleep(config.poll_interval)
    finally:
        await scheduler.stop()


async def redownload(scheduler, apply_pending: bool) -> int:
    if scheduler.monitor is not None:
        await scheduler.monitor.check_once()
    if apply_pending:
        report = await scheduler.sync_actions_once()
        if report is None:
            logger.warning("Could not apply pending actions right now")
        else:
            logger.info(f"Applied {len(report.applied)} pending action(s)")
    scheduler.cache.clear()
    try:
        count = await asyncio.to_thread(scheduler.article_service.refresh, scheduler.cache)
    except ArticleServiceError as e:
        logger.error(f"❌ Failed to redownload articles: {e}")
        return 1
    logger.info(f"✅ Redownloaded {count} articles")
    return 0


def queue_action(scheduler, action: str, target: str) -> int:
    kind = ActionKind(action)
    if kind is not ActionKind.ADD:
        try:
            target = int(target)
        except ValueError:
            logger.error(f"Article id must be a number, got {target!r}")
            return 1
    result = ArticleActions(scheduler.cache, scheduler).perform(kind, target)
    if result is None:
        print(f"Nothing to queue for {action} {target}")
        return 0
    if not result.ok:
        logger.error(f"❌ Could not queue {action}: {result.error}")
        return 1
    print(f"✅ Queued {action} ({scheduler.action_log.count()} pending)")
    return 0


def show_pending(scheduler) -> int:
    pending = scheduler.action_log.list_pending()
    if not pending:
        print("No pending actions")
        return 0
    print(f"📋 {len(pending)} pending action(s):")
    for action in pending:
        target = action.url if action.is_new_url else f"article {action.article_id}"
        print(f"   {action.timestamp:%Y-%m-%d %H:%M:%S}  {action.kind.value:<9}  {target}")
    summary = get_file_summary(scheduler.action_log.path)
    if "size_bytes" in summary:
        print(f"   Log file: {summary['file']} ({summary['size_bytes']:,} bytes)")
    return 0


def show_archived(scheduler, page: int, page_size: int, fetch_all: bool = False) -> int:
    try:
        if fetch_all:
            articles = list(scheduler.article_service.iter_archived_articles(page_size=page_size))
            print(f"📦 {len(articles)} archived articles")
        else:
            result = scheduler.article_service.fetch_archived_articles(
                page=page, page_size=page_size
            )
            articles = result.data
            print(
                f"📦 Archived page {result.current_page}/{result.last_page} "
                f"({result.total} total)"
            )
    except ArticleServiceError as e:
        logger.error(f"❌ Failed to load archived articles: {e}")
        return 1
    for article in articles:
        print(f"   [{article.id}] {article.title or article.url}")
    return 0


def main():
    import argparse
    parser = argparse.ArgumentParser(description="NoteBrain Sync Tool")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Run the sync service until interrupted")
    subparsers.add_parser("sync", help="Run one sync cycle now")
    subparsers.add_parser("pending", help="List queued actions")

    queue_parser = subparsers.add_parser("queue", help="Queue an article action")
    queue_parser.add_argument("action", choices=[k.value for k in ActionKind])
    queue_parser.add_argument("target", help="Article id, or URL for 'add'")

    share_parser = subparsers.add_parser("share", help="Drop URLs into the share inbox")
    share_parser.add_argument("text", nargs="+", help="URLs or text containing URLs")

    redownload_parser = subparsers.add_parser("redownload", help="Clear and redownload articles")
    redownload_parser.add_argument("--apply-pending", action="store_true",
                                   help="Deliver queued actions before redownloading")

    archived_parser = subparsers.add_parser("archived", help="List archived articles")
    archived_parser.add_argument("--page", type=int, default=1)
    archived_parser.add_argument("--page-size", type=int, default=20)
    archived_parser.add_argument("--all", action="store_true", dest="fetch_all",
                                 help="Walk every archived page")

    args = parser.parse_args()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config, scheduler = load_scheduler()

    if args.command == "run":
        try:
            asyncio.run(run_service(config, scheduler))
        except KeyboardInterrupt:
            logger.info("⏹️  Sync service interrupted by user")
        sys.exit(0)
    elif args.command == "sync":
        sys.exit(asyncio.run(run_sync(scheduler)))
    elif args.command == "pending":
        sys.exit(show_pending(scheduler))
    elif args.command == "queue":
        sys.exit(queue_action(scheduler, args.action, args.target))
    elif args.command == "share":
        urls = extract_urls(" ".join(args.text))
        if not urls:
            logger.error("No URLs found")
            sys.exit(1)
        ok = ShareInbox(config.share_inbox_path).save_pending_urls(urls)
        sys.exit(0 if ok else 1)
    elif args.command == "redownload":
        sys.exit(asyncio.run(redownload(scheduler, args.apply_pending)))
    elif args.command == "archived":
        sys.exit(show_archived(scheduler, args.page, args.page_size, args.fetch_all))


if __name__ == "__main__":
    main()
