"""
Pydantic Validation Models for the PYLON Usage Reporter.
Provides input validation for report requests, stored accounts and raw
subscription records returned by the admin listing API.
"""

import logging
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from models import Index

logger = logging.getLogger(__name__)


class ReportRequest(BaseModel):
    """Validation model for the credentials and billing day of a run."""

    username: str = Field(min_length=1, description="PYLON account username")
    api_key: str = Field(min_length=1, description="Account API key")
    billing_period_start: int = Field(
        default=1,
        ge=1,
        le=31,
        description="Day of month the billing period starts on",
    )

    @field_validator("username", "api_key")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class AccountEntry(BaseModel):
    """Validation model for one stored account selection."""

    username: str = Field(min_length=1, description="PYLON account username")
    api_key: str = Field(min_length=1, description="Account API key")
    billing_start: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of month the billing period starts on",
    )


def validate_subscriptions(raw_subscriptions: List[dict]) -> tuple[List[Index], List[dict]]:
    """
    Validate raw subscription records, returning parsed indexes and rejects.

    Args:
        raw_subscriptions: Subscription dictionaries from one listing page.

    Returns:
        Tuple of (valid_indexes, invalid_records).
    """
    valid = []
    invalid = []

    for idx, subscription in enumerate(raw_subscriptions):
        try:
            valid.append(Index.model_validate(subscription))
        except Exception as exc:
            logger.warning(
                "[VALIDATION] Skipping invalid subscription at position %d: %s",
                idx,
                exc,
            )
            invalid.append({"index": idx, "data": subscription, "error": str(exc)})

    if invalid:
        logger.warning(
            "[VALIDATION] %d of %d subscriptions failed validation",
            len(invalid),
            len(raw_subscriptions),
        )

    return valid, invalid
