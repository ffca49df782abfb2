"""
Infoplus (WMS) inventory fetcher - source B.

item/search is paged with 1-indexed `page` and `limit`, and returns a
flat JSON array. Server-side filters on this endpoint are unreliable,
so records are filtered to the configured line of business (lobId)
after each page arrives.
"""

from typing import Any, Optional

import requests
import structlog

from config.settings import Settings, settings as app_settings
from exceptions import AppError, ParseError
from integrations.http import InventorySourceClient, mask_secret
from models.inventory import (
    InventoryItem,
    InventorySnapshot,
    InventorySource,
    UNKNOWN_PRODUCT,
)
from models.run_config import FetchConfig
from utils.cancellation import CancellationToken

logger = structlog.get_logger(__name__)


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class InfoplusClient(InventorySourceClient):
    """Fetches a complete line-of-business inventory snapshot from Infoplus."""

    source = InventorySource.INFOPLUS

    def __init__(
        self,
        fetch_config: Optional[FetchConfig] = None,
        session: Optional[requests.Session] = None,
        token: Optional[CancellationToken] = None,
        config: Optional[Settings] = None,
    ):
        config = config or app_settings
        super().__init__(
            base_url=f"{config.infoplus_base_url}/{config.infoplus_api_version}",
            headers={
                "API-Key": config.infoplus_api_key or "",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            fetch_config=fetch_config,
            session=session,
            token=token,
        )
        self.lob_id = config.infoplus_lob_id
        self.page_size = config.infoplus_page_size
        self.max_pages = config.infoplus_max_pages
        self.page_delay = config.infoplus_page_delay_seconds

        logger.info(
            "infoplus_client_configured",
            base_url=config.infoplus_base_url,
            lob_id=self.lob_id,
            api_key=mask_secret(config.infoplus_api_key)
        )

    # ===================
    # ITEMS
    # ===================

    def fetch_items(self) -> list[dict]:
        """
        Page through item search and keep records for our line of business.

        Stops on an empty page, a short page, or the page cap. Records
        repeated across pages are dropped by id.
        """
        records: list[dict] = []
        page = 1
        has_more = True

        while has_more and page <= self.max_pages:
            self.token.raise_if_cancelled("infoplus_items")

            data = self.get_json("item/search", params={"limit": self.page_size, "page": page})
            if not isinstance(data, list):
                raise ParseError(
                    self.source.value,
                    "Item search did not return an array",
                    details={"page": page, "type": type(data).__name__}
                )
            if not data:
                logger.info("infoplus_empty_page", page=page)
                break

            for record in data:
                if not isinstance(record, dict):
                    raise ParseError(
                        self.source.value,
                        "Item search record is not an object",
                        details={"page": page, "record": str(record)[:200]}
                    )

            lob_records = [r for r in data if _as_int(r.get("lobId")) == self.lob_id]
            records.extend(lob_records)
            has_more = len(data) == self.page_size

            logger.info(
                "infoplus_page_fetched",
                page=page,
                count=len(data),
                lob_count=len(lob_records),
                total=len(records)
            )
            page += 1

            if has_more:
                self.pause(self.page_delay)

        if has_more and page > self.max_pages:
            logger.warning("infoplus_page_cap_reached", max_pages=self.max_pages)

        return self._dedupe(records)

    def _dedupe(self, records: list[dict]) -> list[dict]:
        seen: set = set()
        unique: list[dict] = []
        for record in records:
            item_id = record.get("id")
            if item_id is not None:
                if item_id in seen:
                    continue
                seen.add(item_id)
            unique.append(record)

        if len(unique) != len(records):
            logger.warning(
                "infoplus_duplicates_removed",
                records=len(records),
                unique=len(unique)
            )
        return unique

    # ===================
    # SNAPSHOT
    # ===================

    def fetch_inventory(self) -> InventorySnapshot:
        """
        Fetch the complete Infoplus inventory snapshot.

        Raises:
            FetchError: Any request failed after retries
            ParseError: A page could not be interpreted
        """
        logger.info("infoplus_fetch_started", lob_id=self.lob_id)

        items: list[InventoryItem] = []
        missing_sku = 0
        for record in self.fetch_items():
            sku = record.get("sku")
            if not isinstance(sku, str) or not sku.strip():
                missing_sku += 1
                continue

            items.append(
                self.build_item(
                    sku.strip(),
                    record.get("itemDescription") or UNKNOWN_PRODUCT,
                    self.parse_quantity(record.get("availableQuantity")),
                    record_ref=record.get("id"),
                )
            )

        snapshot = InventorySnapshot.from_items(self.source, items)
        logger.info(
            "infoplus_fetch_complete",
            items=snapshot.item_count,
            missing_sku=missing_sku,
            zero_quantity=sum(1 for i in snapshot.items.values() if i.quantity == 0)
        )
        return snapshot

    def test_connection(self) -> dict:
        """Check credentials with a one-item search."""
        try:
            data = self.get_json("item/search", params={"limit": 1, "page": 1})
            if isinstance(data, list):
                return {
                    "success": True,
                    "message": "Infoplus connection successful!"
                }
            return {
                "success": False,
                "message": "Connected but received unexpected response format"
            }
        except AppError as e:
            logger.error("infoplus_connection_test_failed", error=e.message)
            return {"success": False, "message": f"Connection failed: {e.message}"}
