from enum import Enum
from typing import Dict, Iterable, List, Union

from models import PendingAction

ReconcileKey = Union[int, str]


class AddPolicy(str, Enum):
    # Every add shares the placeholder article id, so only the newest survives
    SINGLE_PENDING_ADD = "single_pending_add"
    # Adds are keyed by their URL, distinct URLs all survive
    KEY_BY_URL = "key_by_url"


def reconcile_key(
    action: PendingAction, add_policy: AddPolicy = AddPolicy.SINGLE_PENDING_ADD
) -> ReconcileKey:
    if action.is_new_url and add_policy is AddPolicy.KEY_BY_URL:
        return action.url
    return action.article_id


def reconcile(
    actions: Iterable[PendingAction],
    add_policy: AddPolicy = AddPolicy.SINGLE_PENDING_ADD,
) -> Dict[ReconcileKey, PendingAction]:
    """
    Collapse queued actions to one effective action per article.

    Input must already be ordered oldest first: the last action seen for a
    key wins, whatever its kind (star then delete ends as delete).
    """
    latest: Dict[ReconcileKey, PendingAction] = {}
    for action in actions:
        latest[reconcile_key(action, add_policy)] = action
    return latest


def superseded(
    actions: Iterable[PendingAction], reconciled: Dict[ReconcileKey, PendingAction]
) -> List[PendingAction]:
    """Actions that lost to a newer action for the same key."""
    survivors = {a.action_id for a in reconciled.values()}
    return [a for a in actions if a.action_id not in survivors]
