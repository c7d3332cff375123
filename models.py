import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List

# Placeholder article id for "add by URL" actions, the article doesn't exist yet
NEW_ARTICLE_ID = 0


class ActionKind(str, Enum):
    STAR = "star"
    UNSTAR = "unstar"
    ARCHIVE = "archive"
    DELETE = "delete"
    SUMMARIZE = "summarize"
    ADD = "add"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PendingAction:
    article_id: int
    kind: ActionKind
    timestamp: datetime = field(default_factory=utcnow)
    url: Optional[str] = None
    action_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        if not isinstance(self.kind, ActionKind):
            object.__setattr__(self, "kind", ActionKind(self.kind))
        if self.kind is ActionKind.ADD:
            if self.article_id != NEW_ARTICLE_ID or not self.url:
                raise ValueError("add actions need a url and no article id")
        elif self.article_id == NEW_ARTICLE_ID:
            raise ValueError(f"{self.kind.value} action needs an article id")

    @classmethod
    def for_article(cls, article_id: int, kind: ActionKind, **kwargs) -> "PendingAction":
        return cls(article_id=article_id, kind=ActionKind(kind), **kwargs)

    @classmethod
    def for_new_url(cls, url: str, **kwargs) -> "PendingAction":
        return cls(article_id=NEW_ARTICLE_ID, kind=ActionKind.ADD, url=url, **kwargs)

    @property
    def is_new_url(self) -> bool:
        return self.kind is ActionKind.ADD

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action_id": self.action_id,
            "article_id": self.article_id,
            "action_type": self.kind.value,
            "timestamp": self.timestamp.isoformat(),
            "url": self.url,
        }


@dataclass
class Article:
    id: int
    url: Optional[str] = None
    title: Optional[str] = None
    status: str = "inbox"
    starred: bool = False
    summary: Optional[str] = None
    archived_at: Optional[str] = None  # ISO 8601 string
    summarized_at: Optional[str] = None
    read_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    user_id: Optional[int] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    author: Optional[str] = None
    site_name: Optional[str] = None
    featured_image: Optional[str] = None
    google_drive_file_id: Optional[str] = None

    @property
    def has_summary(self) -> bool:
        return bool(self.summary)


@dataclass
class ArchivedPage:
    data: List[Article]
    current_page: int = 1
    last_page: int = 1
    per_page: int = 20
    total: int = 0


@dataclass
class SyncState:
    """Process-wide sync flags. Rebuilt on every start, never persisted."""

    is_connected: bool = False
    is_syncing: bool = False
    last_sync_attempt: Optional[datetime] = None
    last_sync_completed: Optional[datetime] = None


@dataclass
class SyncReport:
    reason: str = "explicit"
    applied: List[PendingAction] = field(default_factory=list)
    failed: Dict[Any, str] = field(default_factory=dict)
    cleared: int = 0
    refreshed: bool = False
    cleaned: List[PendingAction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason": self.reason,
            "applied": len(self.applied),
            "failed": len(self.failed),
            "cleared": self.cleared,
            "refreshed": self.refreshed,
            "cleaned": len(self.cleaned),
        }


class ClearPolicy(str, Enum):
    # Forget the whole log once a sync attempt has delivered it
    CLEAR_ON_SYNC_ATTEMPT = "clear_on_sync_attempt"
    # Keep actions until refreshed server state shows their effect
    CLEAR_ON_CONFIRMED_EFFECT = "clear_on_confirmed_effect"
