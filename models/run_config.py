"""
Run configuration schemas.

RunConfig is built once by the caller at run start and passed into the
reconciliation entry point. Nothing reads ambient settings mid-run.
"""

from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from models.base import FrozenSchema, BaseSchema


class CollisionPolicy(str, Enum):
    """What to do when two raw SKUs in one source normalize to the same key."""
    FIRST_WINS = "first_wins"  # keep first-seen, drop the rest from matching
    MERGE = "merge"  # sum quantities into the first-seen entry
    REJECT = "reject"  # abort the run


class NotificationConfig(FrozenSchema):
    """Who gets the report and when."""

    enabled: bool = True
    recipients: tuple[str, ...] = ()
    send_on_zero_discrepancies: bool = False
    max_discrepancies: int = Field(default=25, ge=0)

    def should_send(self, total_discrepancies: int) -> bool:
        """Send only when enabled, addressed, and there is something to say."""
        if not self.enabled or not self.recipients:
            return False
        return total_discrepancies > 0 or self.send_on_zero_discrepancies


class FetchConfig(FrozenSchema):
    """Network limits applied to every upstream request in a run."""

    timeout_seconds: float = Field(default=60, gt=0)
    max_retries: int = Field(default=2, ge=0)
    backoff_seconds: float = Field(default=2.0, ge=0)


class RunConfig(FrozenSchema):
    """Immutable per-run configuration."""

    ignored_skus: frozenset[str] = frozenset()
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    collision_policy: CollisionPolicy = CollisionPolicy.FIRST_WINS

    @field_validator("ignored_skus", mode="before")
    @classmethod
    def clean_ignored(cls, v):
        """Accept the raw newline-delimited setting or any iterable of SKUs."""
        if v is None:
            return frozenset()
        if isinstance(v, str):
            v = v.splitlines()
        return frozenset(s.strip() for s in v if s and s.strip())

    def is_ignored(self, sku: Optional[str]) -> bool:
        return sku is not None and sku in self.ignored_skus


class ScheduleConfig(FrozenSchema):
    """Cron schedule for unattended runs."""

    enabled: bool = False
    cron: str = "0 19 * * *"
    timezone: str = "America/New_York"

    @field_validator("cron")
    @classmethod
    def five_fields(cls, v: str) -> str:
        """Crontab must have exactly five fields."""
        v = " ".join(v.split())
        if len(v.split(" ")) != 5:
            raise ValueError("Cron schedule must have 5 space-separated fields")
        return v


# ===================
# API SCHEMAS
# ===================

class RunSettingsUpdate(BaseSchema):
    """
    Update reconciliation settings.

    All fields optional - only provided fields are written.
    """

    ignored_skus: Optional[list[str]] = None
    email_notifications: Optional[bool] = None
    email_recipients: Optional[list[str]] = None
    email_on_zero_discrepancies: Optional[bool] = None
    max_discrepancies_in_email: Optional[int] = Field(None, ge=0, le=1000)
    api_timeout_seconds: Optional[int] = Field(None, ge=1, le=600)
    api_max_retries: Optional[int] = Field(None, ge=0, le=10)
    sku_collision_policy: Optional[CollisionPolicy] = None
    cron_enabled: Optional[bool] = None
    cron_schedule: Optional[str] = None
    cron_timezone: Optional[str] = None

    @field_validator("cron_schedule")
    @classmethod
    def cron_five_fields(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v.split()) != 5:
            raise ValueError("Cron schedule must have 5 space-separated fields")
        return v


class RunSettingsResponse(BaseSchema):
    """Current run and schedule configuration."""

    run: RunConfig
    schedule: ScheduleConfig
