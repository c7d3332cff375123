"""
Share inbox for NoteBrain Sync.

The share-capture process drops URLs into a JSON file at a shared location;
the app picks them up and queues one "add" action per URL.
"""

import logging
import re
from typing import List

from models import ActionKind, NEW_ARTICLE_ID
from storage import load_raw_json, save_raw_json

logger = logging.getLogger(__name__)

PENDING_URLS_KEY = "PendingURLs"
URL_PATTERN = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)


def extract_urls(text: str) -> List[str]:
    """Find http(s) URLs in shared text, in order, without duplicates."""
    if not text:
        return []
    urls = []
    for match in URL_PATTERN.findall(text):
        url = match.rstrip(".,;:!?)]}")
        if url not in urls:
            urls.append(url)
    return urls


class ShareInbox:
    def __init__(self, path: str):
        self.path = path

    def pending_urls(self) -> List[str]:
        data = load_raw_json(self.path, default={})
        urls = data.get(PENDING_URLS_KEY) if isinstance(data, dict) else None
        if not isinstance(urls, list):
            return []
        return [u for u in urls if isinstance(u, str) and u]

    def save_pending_urls(self, urls: List[str]) -> bool:
        pending = self.pending_urls()
        for url in urls:
            if url not in pending:
                pending.append(url)
        if not save_raw_json({PENDING_URLS_KEY: pending}, self.path):
            return False
        logger.info(f"Saved {len(urls)} URL(s) to share inbox. Total pending: {len(pending)}")
        return True

    def replace(self, urls: List[str]) -> bool:
        return save_raw_json({PENDING_URLS_KEY: list(urls)}, self.path)

    def remove(self, urls: List[str]) -> bool:
        """Drop the given URLs, keeping anything captured since they were read."""
        done = set(urls)
        remaining = [u for u in self.pending_urls() if u not in done]
        return self.replace(remaining)

    def clear(self) -> bool:
        return self.replace([])


def process_shared_urls(inbox: ShareInbox, scheduler) -> int:
    """
    Queue an add action for every captured URL and take it out of the inbox.

    URLs that already have a pending add action are only taken out of the
    inbox, so a pass whose inbox write failed does not queue them twice.

    Returns:
        Number of URLs queued
    """
    urls = inbox.pending_urls()
    if not urls:
        return 0

    logger.info(f"Found {len(urls)} pending URL(s) to process")
    already_queued = {a.url for a in scheduler.action_log.pending_of_kind(ActionKind.ADD)}
    handled = []
    queued = 0
    for url in urls:
        if url in already_queued:
            handled.append(url)
            continue
        result = scheduler.action_log.append(NEW_ARTICLE_ID, ActionKind.ADD, url=url)
        if result.ok:
            handled.append(url)
            queued += 1
        else:
            logger.error(f"Failed to queue shared URL {url}: {result.error}")

    if queued:
        scheduler.trigger("shared-urls")
    if handled and not inbox.remove(handled):
        logger.error(f"Could not remove {len(handled)} queued URL(s) from share inbox")
    return queued
