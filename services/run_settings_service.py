"""
Run settings service.

Settings are key-value rows in app_settings. They are read once at run
start and turned into an immutable RunConfig; nothing reads them mid-run.
"""

import re
from typing import Any, Optional
import structlog

from config import get_supabase_client
from config.settings import Settings, settings as app_settings
from exceptions import DatabaseError
from models.run_config import (
    CollisionPolicy,
    FetchConfig,
    NotificationConfig,
    RunConfig,
    RunSettingsResponse,
    RunSettingsUpdate,
    ScheduleConfig,
)

logger = structlog.get_logger(__name__)

RUN_SETTING_KEYS = [
    "ignored_skus",
    "email_notifications",
    "email_recipients",
    "email_on_zero_discrepancies",
    "max_discrepancies_in_email",
    "api_timeout_seconds",
    "api_max_retries",
    "sku_collision_policy",
]

SCHEDULE_SETTING_KEYS = [
    "cron_enabled",
    "cron_schedule",
    "cron_timezone",
]

_RECIPIENT_SEPARATORS = re.compile(r"[,;\n]")

# Free-text settings are never coerced; SKUs like "00123" must survive as written.
TEXT_SETTING_KEYS = frozenset({"ignored_skus", "email_recipients", "cron_schedule", "cron_timezone"})


def parse_setting_value(value: Any) -> Any:
    """
    Stored values are strings: "true"/"false" become bools, whole
    numbers become ints, anything else is kept.
    """
    if not isinstance(value, str):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    stripped = value.strip()
    if stripped and re.fullmatch(r"-?\d+", stripped):
        return int(stripped)
    return value


def parse_recipients(value: Any) -> tuple[str, ...]:
    """Comma, semicolon or newline separated addresses."""
    if not value or not isinstance(value, str):
        return ()
    return tuple(r.strip() for r in _RECIPIENT_SEPARATORS.split(value) if r.strip())


def serialize_setting_value(value: Any) -> str:
    """Inverse of parse_setting_value for writes."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, CollisionPolicy):
        return value.value
    if isinstance(value, (list, tuple)):
        return "\n".join(str(v) for v in value)
    return str(value)


class RunSettingsService:
    """
    Run settings business logic.

    Reads app_settings into RunConfig / ScheduleConfig and writes updates.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.db = get_supabase_client()
        self.table = "app_settings"
        self.config = config or app_settings

    # ===================
    # READ OPERATIONS
    # ===================

    def get_by_keys(self, keys: list[str]) -> dict[str, Any]:
        """
        Get multiple settings by keys, values parsed.

        Args:
            keys: List of setting keys

        Returns:
            Dictionary of key -> parsed value

        Raises:
            DatabaseError: If the query fails
        """
        logger.debug("getting_settings_bulk", keys=keys)

        try:
            response = (
                self.db.table(self.table)
                .select("key, value")
                .in_("key", keys)
                .execute()
            )

            return {
                row["key"]: row["value"] if row["key"] in TEXT_SETTING_KEYS else parse_setting_value(row["value"])
                for row in response.data or []
            }

        except Exception as e:
            logger.error("settings_bulk_get_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def _load(self, keys: list[str]) -> dict[str, Any]:
        try:
            return self.get_by_keys(keys)
        except DatabaseError as e:
            logger.warning("settings_unavailable_using_defaults", error=e.message)
            return {}

    def load_run_config(self) -> RunConfig:
        """
        Build the immutable configuration for one run.

        Missing or unreadable settings fall back to defaults.
        """
        values = self._load(RUN_SETTING_KEYS)

        notification = NotificationConfig(
            enabled=values.get("email_notifications") is not False,
            recipients=parse_recipients(values.get("email_recipients")),
            send_on_zero_discrepancies=values.get("email_on_zero_discrepancies") is True,
            max_discrepancies=self._int(values, "max_discrepancies_in_email", 25),
        )
        fetch = FetchConfig(
            timeout_seconds=self._int(values, "api_timeout_seconds", self.config.api_timeout_seconds, minimum=1),
            max_retries=self._int(values, "api_max_retries", self.config.api_max_retries),
            backoff_seconds=self.config.api_retry_backoff_seconds,
        )

        policy_value = values.get("sku_collision_policy")
        try:
            policy = CollisionPolicy(policy_value) if policy_value else CollisionPolicy.FIRST_WINS
        except ValueError:
            logger.warning("unknown_collision_policy", value=policy_value)
            policy = CollisionPolicy.FIRST_WINS

        ignored = values.get("ignored_skus")
        run_config = RunConfig(
            ignored_skus=ignored if isinstance(ignored, str) else None,
            notification=notification,
            fetch=fetch,
            collision_policy=policy,
        )

        logger.info(
            "run_config_loaded",
            ignored_skus=len(run_config.ignored_skus),
            recipients=len(notification.recipients),
            email_enabled=notification.enabled,
            collision_policy=policy.value
        )
        return run_config

    def load_schedule_config(self) -> ScheduleConfig:
        """Cron settings, defaulting to the process configuration."""
        values = self._load(SCHEDULE_SETTING_KEYS)
        cron = values.get("cron_schedule")
        timezone = values.get("cron_timezone")

        try:
            return ScheduleConfig(
                enabled=values.get("cron_enabled") is True,
                cron=cron if isinstance(cron, str) and cron.strip() else self.config.reconciliation_cron,
                timezone=timezone if isinstance(timezone, str) and timezone.strip() else self.config.reconciliation_timezone,
            )
        except ValueError as e:
            logger.warning("invalid_schedule_setting", cron=cron, error=str(e))
            return ScheduleConfig(
                enabled=False,
                cron=self.config.reconciliation_cron,
                timezone=self.config.reconciliation_timezone,
            )

    def get_current(self) -> RunSettingsResponse:
        """Current run and schedule configuration."""
        return RunSettingsResponse(
            run=self.load_run_config(),
            schedule=self.load_schedule_config(),
        )

    def _int(self, values: dict, key: str, default: int, minimum: int = 0) -> int:
        value = values.get(key)
        if isinstance(value, int) and not isinstance(value, bool) and value >= minimum:
            return value
        return default

    # ===================
    # UPDATE OPERATIONS
    # ===================

    def update_settings(self, data: RunSettingsUpdate) -> RunSettingsResponse:
        """
        Upsert provided settings.

        Args:
            data: Fields to write; None fields are left alone

        Returns:
            Configuration after the update

        Raises:
            DatabaseError: If the upsert fails
        """
        update_dict = data.model_dump(exclude_none=True)
        if not update_dict:
            return self.get_current()

        rows = [
            {"key": key, "value": serialize_setting_value(value)}
            for key, value in update_dict.items()
        ]
        logger.info("updating_run_settings", keys=list(update_dict))

        try:
            self.db.table(self.table).upsert(rows, on_conflict="key").execute()
        except Exception as e:
            logger.error("run_settings_update_failed", error=str(e))
            raise DatabaseError("upsert", str(e))

        logger.info("run_settings_updated", keys=list(update_dict))
        return self.get_current()


# Singleton instance
_run_settings_service: Optional[RunSettingsService] = None


def get_run_settings_service() -> RunSettingsService:
    """Get or create RunSettingsService instance."""
    global _run_settings_service
    if _run_settings_service is None:
        _run_settings_service = RunSettingsService()
    return _run_settings_service
