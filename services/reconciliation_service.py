"""
Reconciliation run orchestration.

fetch (both sources, concurrently) -> index -> match -> rank -> persist -> notify

Fetch, parse and collision errors abort the run before anything is
compared. Persist and notify failures are logged and never fail it.
Only one run executes per process at a time.
"""

import contextvars
import threading
import uuid
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, Optional

import structlog

from config.database import DatabaseConnectionError
from exceptions import (
    AppError,
    PersistError,
    ReconciliationAbortedError,
    ReconciliationCancelledError,
    ReconciliationInProgressError,
)
from integrations.brightpearl import BrightpearlClient
from integrations.http import InventorySourceClient
from integrations.infoplus import InfoplusClient
from models.inventory import InventorySnapshot
from models.reconciliation import ReconciliationResult
from models.run_config import FetchConfig, RunConfig
from services.matcher import match_inventories
from services.notification_service import get_notification_service
from services.report_builder import build_report
from services.report_service import get_report_service
from services.sku_normalizer import build_index
from utils.cancellation import CancellationToken

logger = structlog.get_logger(__name__)

ClientFactory = Callable[[FetchConfig, CancellationToken], InventorySourceClient]

# Single-flight guard shared by manual and scheduled triggers
_run_lock = threading.Lock()
_active_run_id: Optional[str] = None


def _brightpearl_factory(fetch_config: FetchConfig, token: CancellationToken) -> InventorySourceClient:
    return BrightpearlClient(fetch_config=fetch_config, token=token)


def _infoplus_factory(fetch_config: FetchConfig, token: CancellationToken) -> InventorySourceClient:
    return InfoplusClient(fetch_config=fetch_config, token=token)


class ReconciliationService:
    """
    Runs inventory comparisons between Brightpearl and Infoplus.

    Collaborators are injectable; defaults are the real clients and
    services.
    """

    def __init__(
        self,
        brightpearl_factory: ClientFactory = _brightpearl_factory,
        infoplus_factory: ClientFactory = _infoplus_factory,
        report_service=None,
        notification_service=None,
    ):
        self.brightpearl_factory = brightpearl_factory
        self.infoplus_factory = infoplus_factory
        self._report_service = report_service
        self._notification_service = notification_service

    @property
    def report_service(self):
        if self._report_service is None:
            self._report_service = get_report_service()
        return self._report_service

    @property
    def notification_service(self):
        if self._notification_service is None:
            self._notification_service = get_notification_service()
        return self._notification_service

    # ===================
    # STATUS
    # ===================

    def is_running(self) -> bool:
        return _run_lock.locked()

    def get_status(self) -> dict:
        return {"running": self.is_running(), "active_run_id": _active_run_id}

    # ===================
    # RUN
    # ===================

    def run(
        self,
        run_config: RunConfig,
        token: Optional[CancellationToken] = None
    ) -> ReconciliationResult:
        """
        Execute one reconciliation run.

        Args:
            run_config: Immutable configuration built by the caller
            token: Optional cancellation token

        Returns:
            ReconciliationResult (report_id is None if persisting failed)

        Raises:
            ReconciliationInProgressError: Another run is active
            ReconciliationAbortedError: A fetch, parse or collision error
            ReconciliationCancelledError: Token was cancelled
        """
        global _active_run_id

        if not _run_lock.acquire(blocking=False):
            logger.warning("reconciliation_already_running", active_run_id=_active_run_id)
            raise ReconciliationInProgressError(_active_run_id)

        run_id = uuid.uuid4().hex
        _active_run_id = run_id
        structlog.contextvars.bind_contextvars(run_id=run_id)
        try:
            return self._run(run_id, run_config, token or CancellationToken())
        finally:
            structlog.contextvars.unbind_contextvars("run_id")
            _active_run_id = None
            _run_lock.release()

    def _run(
        self,
        run_id: str,
        run_config: RunConfig,
        token: CancellationToken
    ) -> ReconciliationResult:
        logger.info(
            "reconciliation_started",
            ignored_skus=len(run_config.ignored_skus),
            collision_policy=run_config.collision_policy.value,
            timeout_seconds=run_config.fetch.timeout_seconds,
            max_retries=run_config.fetch.max_retries
        )

        try:
            snapshot_a, snapshot_b = self.fetch_snapshots(run_config.fetch, token)

            token.raise_if_cancelled("normalization")
            index_a = build_index(snapshot_a, run_config.collision_policy)
            index_b = build_index(snapshot_b, run_config.collision_policy)
        except ReconciliationCancelledError:
            logger.warning("reconciliation_cancelled")
            raise
        except AppError as e:
            logger.error(
                "reconciliation_aborted",
                error=e.message,
                code=e.code,
                source=getattr(e, "source", None)
            )
            raise ReconciliationAbortedError(e) from e

        token.raise_if_cancelled("matching")
        outcome = match_inventories(
            snapshot_a,
            snapshot_b,
            index_a,
            index_b,
            run_config.ignored_skus,
        )
        report = build_report(
            outcome,
            snapshot_a,
            snapshot_b,
            collisions=index_a.collisions + index_b.collisions,
        )

        token.raise_if_cancelled("persist")
        report_id = self.persist(report)
        notified = self.notify(report, run_config)

        result = ReconciliationResult(
            run_id=run_id,
            report=report,
            report_id=report_id,
            exact_matches=outcome.exact_matches,
            brightpearl_only=list(outcome.brightpearl_only),
            infoplus_only=list(outcome.infoplus_only),
            notified=notified,
        )

        logger.info(
            "reconciliation_complete",
            report_id=report_id,
            total_discrepancies=report.total_discrepancies,
            exact_matches=report.match_stats.exact_matches,
            strict_matches=report.match_stats.strict_matches,
            loose_matches=report.match_stats.loose_matches,
            brightpearl_only=len(result.brightpearl_only),
            infoplus_only=len(result.infoplus_only),
            notified=notified
        )
        return result

    def fetch_snapshots(
        self,
        fetch_config: FetchConfig,
        token: CancellationToken
    ) -> tuple[InventorySnapshot, InventorySnapshot]:
        """
        Fetch both sources concurrently.

        Both fetches finish (or fail) before returning, so a partial
        snapshot is never compared. The first failure cancels the other
        fetch. A caller cancellation wins over source errors, and
        Brightpearl's error wins when both sources fail on their own.
        """
        fetch_token = token.child()
        brightpearl = self.brightpearl_factory(fetch_config, fetch_token)
        infoplus = self.infoplus_factory(fetch_config, fetch_token)

        try:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="inventory-fetch") as pool:
                future_a = pool.submit(contextvars.copy_context().run, brightpearl.fetch_inventory)
                future_b = pool.submit(contextvars.copy_context().run, infoplus.fetch_inventory)

                done, _ = wait([future_a, future_b], return_when=FIRST_EXCEPTION)
                if any(f.exception() is not None for f in done):
                    logger.warning("fetch_failed_cancelling_other_source")
                    fetch_token.cancel()

                error_a = future_a.exception()
                error_b = future_b.exception()
        finally:
            brightpearl.close()
            infoplus.close()

        errors = [e for e in (error_a, error_b) if e is not None]
        cancellations = [e for e in errors if isinstance(e, ReconciliationCancelledError)]
        if token.cancelled and cancellations:
            raise cancellations[0]
        for error in errors:
            if not isinstance(error, ReconciliationCancelledError):
                raise error
        if cancellations:
            raise cancellations[0]

        snapshot_a = future_a.result()
        snapshot_b = future_b.result()
        logger.info(
            "snapshots_fetched",
            brightpearl=snapshot_a.item_count,
            infoplus=snapshot_b.item_count
        )
        return snapshot_a, snapshot_b

    # ===================
    # SIDE EFFECTS
    # ===================

    def persist(self, report) -> Optional[str]:
        """Store the report; failure is logged and yields None."""
        try:
            return self.report_service.persist(report)
        except (PersistError, DatabaseConnectionError) as e:
            logger.error("report_not_persisted", error=str(e))
            return None

    def notify(self, report, run_config: RunConfig) -> bool:
        """Best-effort notification; never raises."""
        try:
            return self.notification_service.notify(report, run_config.notification)
        except Exception as e:
            logger.error(
                "report_notification_failed",
                error=str(e),
                error_type=type(e).__name__
            )
            return False

    # ===================
    # CONNECTIONS
    # ===================

    def test_connections(self, fetch_config: Optional[FetchConfig] = None) -> dict:
        """Check credentials for both sources."""
        fetch_config = fetch_config or FetchConfig(max_retries=0)
        token = CancellationToken()
        results = {}
        for name, factory in (
            ("brightpearl", self.brightpearl_factory),
            ("infoplus", self.infoplus_factory),
        ):
            client = factory(fetch_config, token)
            try:
                results[name] = client.test_connection()
            finally:
                client.close()
        return results


# Singleton instance
_reconciliation_service: Optional[ReconciliationService] = None


def get_reconciliation_service() -> ReconciliationService:
    """Get or create ReconciliationService instance."""
    global _reconciliation_service
    if _reconciliation_service is None:
        _reconciliation_service = ReconciliationService()
    return _reconciliation_service
