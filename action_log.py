"""
Action Log for NoteBrain Sync
Durable, append-only record of user intents waiting to reach the server.
"""

import logging
import os
from dataclasses import dataclass
from typing import Iterable, List, Optional

from data_parser import parse_pending_action
from models import ActionKind, PendingAction
from storage import load_records_jsonl, save_records_jsonl, remove_file

logger = logging.getLogger(__name__)


@dataclass
class LogResult:
    ok: bool
    error: Optional[str] = None
    action: Optional[PendingAction] = None


class ActionLog:
    """JSONL-backed queue of PendingAction records, one record per line."""

    def __init__(self, path: str):
        self.path = path
        self._actions: List[PendingAction] = self._load()

    def _load(self) -> List[PendingAction]:
        try:
            records = load_records_jsonl(self.path)
        except OSError as e:
            logger.error(f"Could not read action log {self.path}: {e}")
            return []

        actions = []
        for record in records:
            try:
                actions.append(parse_pending_action(record))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Dropping unreadable action record {record!r}: {e}")
        logger.debug(f"Loaded {len(actions)} pending actions from {self.path}")
        return actions

    def _persist(self, actions: List[PendingAction]) -> Optional[str]:
        if save_records_jsonl(actions, self.path):
            return None
        return f"could not write {self.path}"

    def append(
        self, article_id: int, kind: ActionKind, url: Optional[str] = None
    ) -> LogResult:
        """Record a new intent with the current timestamp and persist it."""
        try:
            kind = ActionKind(kind)
            if kind is ActionKind.ADD:
                action = PendingAction.for_new_url(url)
            else:
                action = PendingAction.for_article(article_id, kind)
        except ValueError as e:
            logger.error(f"Rejected action {kind!r} for article {article_id}: {e}")
            return LogResult(ok=False, error=str(e))

        error = self._persist(self._actions + [action])
        if error:
            logger.error(f"Failed to save {action.kind.value} action: {error}")
            return LogResult(ok=False, error=error, action=action)

        self._actions.append(action)
        logger.info(f"Queued {action.kind.value} for article {action.article_id}")
        return LogResult(ok=True, action=action)

    def list_pending(self) -> List[PendingAction]:
        """Pending actions, oldest first."""
        return sorted(self._actions, key=lambda a: a.timestamp)

    def pending_of_kind(self, kind: ActionKind) -> List[PendingAction]:
        kind = ActionKind(kind)
        return [a for a in self.list_pending() if a.kind is kind]

    def count(self) -> int:
        return len(self._actions)

    def delete(self, action: PendingAction) -> LogResult:
        return self.delete_many([action])

    def delete_many(self, actions: Iterable[PendingAction]) -> LogResult:
        doomed = {a.action_id for a in actions}
        if not doomed:
            return LogResult(ok=True)
        remaining = [a for a in self._actions if a.action_id not in doomed]
        if len(remaining) == len(self._actions):
            return LogResult(ok=True)

        error = self._persist(remaining)
        if error:
            logger.error(f"Failed to delete {len(doomed)} action(s): {error}")
            return LogResult(ok=False, error=error)
        self._actions = remaining
        return LogResult(ok=True)

    def clear_all(self) -> LogResult:
        error = remove_file(self.path)
        if error:
            return LogResult(ok=False, error=error)
        cleared = len(self._actions)
        self._actions = []
        logger.debug(f"Cleared {cleared} action(s) from {os.path.basename(self.path)}")
        return LogResult(ok=True)
