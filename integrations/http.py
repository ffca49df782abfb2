"""
Shared HTTP plumbing for inventory source clients.

Classifies every failure into FetchError (with a reason) or ParseError
and retries only the transient ones through the run's RetryPolicy.
"""

import math
from typing import Any, Optional

import requests
import structlog
from pydantic import ValidationError

from exceptions import FetchError, ParseError
from models.inventory import InventoryItem, InventorySource
from models.run_config import FetchConfig
from utils.cancellation import CancellationToken
from utils.retry import RetryPolicy

logger = structlog.get_logger(__name__)


def mask_secret(value: Optional[str]) -> str:
    """Show the first 8 characters of a secret for log lines."""
    if not value:
        return "missing"
    return value[:8] + "***"


def is_transient(error: Exception) -> bool:
    """Retry predicate: timeouts, network errors and 5xx responses."""
    return isinstance(error, FetchError) and error.retryable


class InventorySourceClient:
    """
    Base client for a paginated inventory source.

    Subclasses set `source` and implement fetch_inventory().
    """

    source: InventorySource

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str],
        fetch_config: Optional[FetchConfig] = None,
        session: Optional[requests.Session] = None,
        token: Optional[CancellationToken] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = headers
        self.fetch_config = fetch_config or FetchConfig()
        self.session = session or requests.Session()
        self.token = token or CancellationToken()
        self.retry_policy = RetryPolicy(
            max_retries=self.fetch_config.max_retries,
            backoff_seconds=self.fetch_config.backoff_seconds,
        )

    # ===================
    # REQUESTS
    # ===================

    def get_json(self, path: str, params: Optional[dict] = None) -> Any:
        """
        GET a path relative to base_url and decode JSON, with retries.

        Raises:
            FetchError: Timeout, network, auth, 4xx, or 5xx after retries
            ParseError: Body is not JSON
        """
        request = self.retry_policy.wrap(
            self._get_once,
            should_retry=is_transient,
            sleep=self.token.sleep,
            operation=f"{self.source.value}_get",
        )
        return request(path, params)

    def _get_once(self, path: str, params: Optional[dict]) -> Any:
        self.token.raise_if_cancelled(f"{self.source.value}_fetch")
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug("source_request", source=self.source.value, url=url, params=params)

        try:
            response = self.session.get(
                url,
                params=params,
                headers=self.headers,
                timeout=self.fetch_config.timeout_seconds,
            )
        except requests.exceptions.Timeout as e:
            raise FetchError(
                self.source.value,
                "timeout",
                f"{self.source.value} request timed out after {self.fetch_config.timeout_seconds}s"
            ) from e
        except requests.exceptions.RequestException as e:
            raise FetchError(
                self.source.value,
                "network",
                f"{self.source.value} request failed: {e}"
            ) from e

        self._raise_for_status(response)

        try:
            return response.json()
        except ValueError as e:
            raise ParseError(
                self.source.value,
                f"{self.source.value} returned a non-JSON body",
                details={"url": url, "status": response.status_code}
            ) from e

    def _raise_for_status(self, response: requests.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        body = (response.text or "")[:500]
        logger.error(
            "source_request_failed",
            source=self.source.value,
            status=status,
            body=body
        )

        if status in (401, 403):
            reason = "auth"
        elif status >= 500:
            reason = "server"
        else:
            reason = "client"

        raise FetchError(
            self.source.value,
            reason,
            f"{self.source.value} API error: {status} - {body}",
            upstream_status=status,
        )

    # ===================
    # HELPERS
    # ===================

    def pause(self, seconds: float) -> None:
        """Rate-limit pause between pages; ends early when cancelled."""
        if seconds > 0:
            self.token.sleep(seconds)

    def parse_quantity(self, value: Any) -> int:
        """Non-negative whole quantity; null, blank or garbage counts as 0."""
        if value is None or value == "":
            return 0
        try:
            parsed = float(value)
        except (TypeError, ValueError):
            return 0
        if not math.isfinite(parsed):
            return 0
        return max(0, int(parsed))

    def build_item(self, sku: str, product_name: Any, quantity: int, record_ref: Any = None) -> InventoryItem:
        """
        Build one snapshot item from a source record.

        Raises:
            ParseError: A field has a type the item cannot hold
        """
        try:
            return InventoryItem(sku=sku, product_name=product_name, quantity=quantity)
        except ValidationError as e:
            raise ParseError(
                self.source.value,
                f"Record for SKU {sku!r} has invalid fields",
                details={
                    "record": str(record_ref)[:200],
                    "fields": [".".join(str(p) for p in err["loc"]) for err in e.errors()],
                }
            ) from e

    def close(self) -> None:
        self.session.close()
