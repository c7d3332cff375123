"""
Installation settings for NoteBrain Sync.
Values come from the environment, optionally seeded from a .env file.
"""

import os
import logging
from typing import Dict, Optional
from urllib.parse import urlparse

import requests
from dotenv import load_dotenv

from models import ClearPolicy
from reconciler import AddPolicy

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "notebrain_data"
DEFAULT_SYNC_INTERVAL = 120.0
DEFAULT_POLL_INTERVAL = 15.0
DEFAULT_SUMMARY_POLL_WINDOW = 60.0
DEFAULT_CONNECTIVITY_INTERVAL = 10.0
DEFAULT_REQUEST_TIMEOUT = 30.0


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def is_valid_base_url(base_url: Optional[str]) -> bool:
    if not base_url:
        return False
    parsed = urlparse(base_url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def auth_headers(api_token: Optional[str]) -> Dict[str, str]:
    headers = {"Accept": "application/json"}
    if api_token:
        headers["Authorization"] = f"Bearer {api_token}"
    return headers


class InstallationConfig:
    def __init__(self):
        self.installation_url: Optional[str] = None
        self.api_token: Optional[str] = None
        self.data_dir = DEFAULT_DATA_DIR
        self.share_inbox_path: Optional[str] = None
        self.sync_interval = DEFAULT_SYNC_INTERVAL
        self.poll_interval = DEFAULT_POLL_INTERVAL
        self.summary_poll_window = DEFAULT_SUMMARY_POLL_WINDOW
        self.connectivity_interval = DEFAULT_CONNECTIVITY_INTERVAL
        self.request_timeout = DEFAULT_REQUEST_TIMEOUT
        self.clear_policy = ClearPolicy.CLEAR_ON_SYNC_ATTEMPT
        self.add_policy = AddPolicy.SINGLE_PENDING_ADD
        self.session: Optional[requests.Session] = None

    def load_credentials(self) -> bool:
        self.installation_url = os.getenv("NOTEBRAIN_INSTALLATION_URL")
        self.api_token = os.getenv("NOTEBRAIN_API_TOKEN")
        self.data_dir = os.getenv("NOTEBRAIN_DATA_DIR") or DEFAULT_DATA_DIR
        self.share_inbox_path = os.getenv("NOTEBRAIN_SHARE_INBOX") or os.path.join(
            self.data_dir, "shared_urls.json"
        )
        self.sync_interval = _get_float("NOTEBRAIN_SYNC_INTERVAL", DEFAULT_SYNC_INTERVAL)
        self.poll_interval = _get_float("NOTEBRAIN_POLL_INTERVAL", DEFAULT_POLL_INTERVAL)
        self.summary_poll_window = _get_float(
            "NOTEBRAIN_SUMMARY_POLL_WINDOW", DEFAULT_SUMMARY_POLL_WINDOW
        )
        self.connectivity_interval = _get_float(
            "NOTEBRAIN_CONNECTIVITY_INTERVAL", DEFAULT_CONNECTIVITY_INTERVAL
        )
        self.request_timeout = _get_float(
            "NOTEBRAIN_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT
        )
        try:
            self.clear_policy = ClearPolicy(
                (os.getenv("NOTEBRAIN_CLEAR_POLICY") or ClearPolicy.CLEAR_ON_SYNC_ATTEMPT.value)
                .strip()
                .lower()
            )
        except ValueError:
            logger.warning("Unknown NOTEBRAIN_CLEAR_POLICY, keeping clear on sync attempt")
            self.clear_policy = ClearPolicy.CLEAR_ON_SYNC_ATTEMPT
        try:
            self.add_policy = AddPolicy(
                (os.getenv("NOTEBRAIN_ADD_POLICY") or AddPolicy.SINGLE_PENDING_ADD.value)
                .strip()
                .lower()
            )
        except ValueError:
            logger.warning("Unknown NOTEBRAIN_ADD_POLICY, keeping single pending add")
            self.add_policy = AddPolicy.SINGLE_PENDING_ADD

        if (
            not self.installation_url
            or not self.api_token
            or self.installation_url.strip() == ""
            or self.api_token.strip() == ""
        ):
            self.session = None
            return False
        self.installation_url = self.installation_url.strip().rstrip("/")
        self.api_token = self.api_token.strip()
        self.session = requests.Session()
        return True

    def get_session(self) -> Optional[requests.Session]:
        return self.session

    @property
    def base_url(self) -> Optional[str]:
        return self.installation_url

    def data_path(self, filename: str) -> str:
        return os.path.join(self.data_dir, filename)


def setup_configuration() -> Optional[InstallationConfig]:
    config = InstallationConfig()
    if config.load_credentials():
        return config
    return None
