"""
Configuration module for the PYLON usage reporter.
Holds account credentials, billing-period settings and API parameters,
and resolves stored account selections when no credentials are given.
"""

import json
import logging
import os
from typing import Optional

from error_handling import AccountSelectionError
from validators import AccountEntry

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.datasift.com"
DEFAULT_API_VERSION = "v1.3"
PAGE_LENGTH = 1000
# Points charged against the hourly /pylon/analyze limit per query.
ANALYSIS_QUOTA_COST = 25
DEFAULT_UTC_OFFSET_HOURS = -8
DEFAULT_ACCOUNTS_FILE = os.path.join("~", ".pylon", "accounts.json")


class ReporterConfig:
    """Configuration class for a single usage report run."""

    def __init__(
        self,
        username: str,
        api_key: str,
        billing_period_start: int = 1,
        api_url: str = DEFAULT_API_URL,
        api_version: str = DEFAULT_API_VERSION,
        page_size: int = PAGE_LENGTH,
        utc_offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
        analysis_quota_cost: int = ANALYSIS_QUOTA_COST
    ):
        """
        Initialize reporter configuration.

        Args:
            username: PYLON account username
            api_key: Account-level API key (identity keys are derived per query)
            billing_period_start: Day of month the billing period starts on (1-31)
            api_url: Base URL of the REST API
            api_version: API version path segment
            page_size: Records requested per listing page
            utc_offset_hours: Fixed offset used to localize billing dates
            analysis_quota_cost: Quota points consumed by one analysis query
        """
        self.username = username
        self.api_key = api_key
        self.billing_period_start = billing_period_start
        self.api_url = api_url
        self.api_version = api_version
        self.page_size = page_size
        self.utc_offset_hours = utc_offset_hours
        self.analysis_quota_cost = analysis_quota_cost

    def with_api_key(self, api_key: str) -> "ReporterConfig":
        """Return a copy of this configuration scoped to another API key."""
        return ReporterConfig(
            username=self.username,
            api_key=api_key,
            billing_period_start=self.billing_period_start,
            api_url=self.api_url,
            api_version=self.api_version,
            page_size=self.page_size,
            utc_offset_hours=self.utc_offset_hours,
            analysis_quota_cost=self.analysis_quota_cost
        )

    def to_dict(self):
        """Convert configuration to dictionary with the API key masked."""
        return {
            'username': self.username,
            'api_key': mask_api_key(self.api_key),
            'billing_period_start': self.billing_period_start,
            'api_url': self.api_url,
            'api_version': self.api_version,
            'page_size': self.page_size,
            'utc_offset_hours': self.utc_offset_hours,
            'analysis_quota_cost': self.analysis_quota_cost
        }


def mask_api_key(api_key: str) -> str:
    if not api_key:
        return ""
    return f"{api_key[:4]}{'*' * max(len(api_key) - 4, 0)}"


def _load_accounts_file(path: str) -> Optional[dict]:
    expanded = os.path.expanduser(path)
    if not os.path.exists(expanded):
        logger.info(f"Accounts file not found: {expanded}")
        return None

    try:
        with open(expanded, 'r') as f:
            accounts = json.load(f)
    except json.JSONDecodeError as exc:
        raise AccountSelectionError(f"Invalid JSON in accounts file {expanded}: {exc}") from exc

    if not isinstance(accounts, dict):
        raise AccountSelectionError(
            f"Expected an object of named accounts in {expanded}, got {type(accounts).__name__}"
        )
    return accounts


def select_account(account: str = "default", accounts_file: Optional[str] = None) -> AccountEntry:
    """
    Resolve stored credentials for a named account.

    The accounts file (``accounts_file``, then ``PYLON_ACCOUNTS_FILE``, then
    ``~/.pylon/accounts.json``) maps account names to
    ``{"username", "api_key", "billing_start"}``. When the file is absent the
    ``PYLON_USERNAME``, ``PYLON_API_KEY`` and ``PYLON_BILLING_START``
    environment variables are used.

    Raises:
        AccountSelectionError: If no credentials can be resolved.
    """
    path = accounts_file or os.getenv('PYLON_ACCOUNTS_FILE') or DEFAULT_ACCOUNTS_FILE
    accounts = _load_accounts_file(path)

    if accounts is not None:
        if account not in accounts:
            raise AccountSelectionError(
                f"Account '{account}' not found in {os.path.expanduser(path)}"
            )
        try:
            entry = AccountEntry.model_validate(accounts[account])
        except Exception as exc:
            raise AccountSelectionError(f"Invalid entry for account '{account}': {exc}") from exc
        logger.info(f"Selected account '{account}' ({entry.username}) from {path}")
        return entry

    username = os.getenv('PYLON_USERNAME')
    api_key = os.getenv('PYLON_API_KEY')
    if not username or not api_key:
        error_msg = "No accounts file found and PYLON_USERNAME / PYLON_API_KEY environment variables not set"
        logger.error(error_msg)
        raise AccountSelectionError(error_msg)

    billing_start = os.getenv('PYLON_BILLING_START')
    try:
        entry = AccountEntry(
            username=username,
            api_key=api_key,
            billing_start=int(billing_start) if billing_start else None,
        )
    except Exception as exc:
        raise AccountSelectionError(f"Invalid PYLON_BILLING_START value '{billing_start}': {exc}") from exc

    logger.info(f"Selected account {entry.username} from environment")
    return entry
