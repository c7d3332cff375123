#!/usr/bin/env python3
"""
Remote Applier Module for NoteBrain Sync
Turns one reconciled action into one request against the article server.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import requests
from requests import Session

from config import auth_headers, is_valid_base_url
from models import ActionKind, PendingAction

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    ok: bool
    reason: Optional[str] = None
    status_code: Optional[int] = None


def endpoint_for(action: PendingAction) -> Tuple[str, str]:
    """
    Map an action to its HTTP method and REST path.

    Returns:
        (method, path) tuple, e.g. ("POST", "/api/articles/42/star")
    """
    kind = action.kind
    article_path = f"/api/articles/{action.article_id}"
    if kind is ActionKind.STAR:
        return "POST", f"{article_path}/star"
    if kind is ActionKind.UNSTAR:
        return "POST", f"{article_path}/unstar"
    if kind is ActionKind.ARCHIVE:
        return "POST", f"{article_path}/read"
    if kind is ActionKind.DELETE:
        return "DELETE", article_path
    if kind is ActionKind.SUMMARIZE:
        return "POST", f"{article_path}/summarize"
    if kind is ActionKind.ADD:
        return "POST", "/api/articles"
    raise ValueError(f"No endpoint for action kind {kind!r}")


class RemoteApplier:
    """Delivers pending actions to the NoteBrain API, one request per action."""

    def __init__(
        self,
        session: Session,
        base_url: Optional[str],
        api_token: Optional[str],
        timeout: float = 30.0,
    ):
        self.session = session
        self.base_url = base_url.rstrip("/") if base_url else base_url
        self.api_token = api_token
        self.timeout = timeout

    def apply(self, action: PendingAction) -> ApplyResult:
        """
        Send a single action to the server. Never retries and never raises.

        Args:
            action: reconciled action to deliver

        Returns:
            ApplyResult, ok only for a 2xx response
        """
        if not is_valid_base_url(self.base_url):
            logger.error(f"Cannot apply {action.kind.value}: bad base URL {self.base_url!r}")
            return ApplyResult(ok=False, reason="bad_url")

        method, path = endpoint_for(action)
        url = f"{self.base_url}{path}"
        payload = {"url": action.url} if action.is_new_url else None

        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                headers=auth_headers(self.api_token),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.error(f"Request timeout: {method} {path}")
            return ApplyResult(ok=False, reason="timeout")
        except requests.exceptions.RequestException as e:
            logger.error(f"Network error during {method} {path}: {e}")
            return ApplyResult(ok=False, reason="transport")

        if 200 <= response.status_code < 300:
            logger.debug(f"{method} {path} -> {response.status_code}")
            return ApplyResult(ok=True, status_code=response.status_code)

        if response.status_code == 401:
            logger.error("Authentication failed. Check your API token.")
        elif response.status_code == 404:
            logger.warning(f"Article {action.article_id} not found on server")
        else:
            logger.error(
                f"{method} {path} failed with status {response.status_code}"
            )
        return ApplyResult(
            ok=False, reason=f"http_{response.status_code}", status_code=response.status_code
        )


def create_remote_applier(config) -> Optional[RemoteApplier]:
    """
    Create a remote applier from installation settings.

    Args:
        config: InstallationConfig instance

    Returns:
        RemoteApplier instance or None if no session is available
    """
    session = config.get_session()
    if not session:
        logger.error("No configured session available")
        return None

    return RemoteApplier(
        session=session,
        base_url=config.base_url,
        api_token=config.api_token,
        timeout=config.request_timeout,
    )
