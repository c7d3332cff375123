import logging
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from models import Article, ArchivedPage, PendingAction, ActionKind

logger = logging.getLogger(__name__)


def normalize_time(ts) -> Optional[str]:
    """
    Normalize a server timestamp to an ISO 8601 UTC string ending in "Z".
    Accepts ISO strings (with or without fractional seconds) and Unix epochs.
    """
    if not ts:
        return None
    try:
        if isinstance(ts, (int, float)) or str(ts).isdigit():
            dt = datetime.fromtimestamp(int(ts), tz=timezone.utc)
        else:
            dt = datetime.fromisoformat(str(ts).replace("Z", "+00:00"))
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).replace(tzinfo=None).isoformat() + "Z"
    except (ValueError, TypeError, OverflowError):
        return None


def parse_article(raw: Dict[str, Any]) -> Article:
    """
    Parse a raw article dict from the NoteBrain API into an Article dataclass.
    Handles missing/null fields, type validation, and timestamp normalization.
    """

    def get_str(field):
        val = raw.get(field)
        return str(val) if val is not None else None

    def get_int(field):
        val = raw.get(field)
        try:
            return int(val) if val is not None else None
        except (ValueError, TypeError):
            return None

    article_id = get_int("id")
    if article_id is None:
        raise ValueError(f"Article payload without a usable id: {raw.get('id')!r}")

    return Article(
        id=article_id,
        url=get_str("url"),
        title=get_str("title"),
        status=get_str("status") or "inbox",
        starred=bool(raw.get("starred")),
        summary=get_str("summary"),
        archived_at=normalize_time(raw.get("archived_at")),
        summarized_at=normalize_time(raw.get("summarized_at")),
        read_at=normalize_time(raw.get("read_at")),
        created_at=normalize_time(raw.get("created_at")),
        updated_at=normalize_time(raw.get("updated_at")),
        user_id=get_int("user_id"),
        content=get_str("content"),
        excerpt=get_str("excerpt"),
        author=get_str("author"),
        site_name=get_str("site_name"),
        featured_image=get_str("featured_image"),
        google_drive_file_id=get_str("google_drive_file_id"),
    )


def parse_articles(raw_list) -> list:
    """Parse a list of raw articles, skipping entries that can't be parsed."""
    articles = []
    for raw in raw_list or []:
        try:
            articles.append(parse_article(raw))
        except (ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed article: {e}")
    return articles


def parse_archived_page(raw: Dict[str, Any]) -> ArchivedPage:
    return ArchivedPage(
        data=parse_articles(raw.get("data")),
        current_page=int(raw.get("current_page") or 1),
        last_page=int(raw.get("last_page") or 1),
        per_page=int(raw.get("per_page") or 0),
        total=int(raw.get("total") or 0),
    )


def parse_pending_action(raw: Dict[str, Any]) -> PendingAction:
    # Raises ValueError/KeyError on records that can't be trusted
    timestamp = datetime.fromisoformat(raw["timestamp"])
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return PendingAction(
        article_id=int(raw.get("article_id") or 0),
        kind=ActionKind(raw["action_type"]),
        timestamp=timestamp,
        url=raw.get("url"),
        action_id=raw["action_id"],
    )
