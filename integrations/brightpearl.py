"""
Brightpearl (ERP) inventory fetcher - source A.

Two steps:
1. product-service/product-search, paged by firstResult (1-indexed) and
   filtered server-side to stock-tracked products.
2. warehouse-service/product-availability for batches of product ids,
   reading total.inStock as the available quantity.

Product-search rows are positional arrays; the column indices below
match the search response's column order.
"""

from typing import Any, Optional

import requests
import structlog

from config.settings import Settings, settings as app_settings
from exceptions import AppError, ParseError
from integrations.http import InventorySourceClient, mask_secret
from models.inventory import (
    InventorySnapshot,
    InventorySource,
    UNKNOWN_PRODUCT,
)
from models.run_config import FetchConfig
from utils.cancellation import CancellationToken

logger = structlog.get_logger(__name__)

# Product-search column indices
PRODUCT_ID_INDEX = 0
PRODUCT_NAME_INDEX = 1
SKU_INDEX = 2
STOCK_TRACKED_INDEX = 8

STOCK_TRACKED_FILTER = "stockTracked eq true"


class BrightpearlClient(InventorySourceClient):
    """Fetches a complete stock-tracked inventory snapshot from Brightpearl."""

    source = InventorySource.BRIGHTPEARL

    def __init__(
        self,
        fetch_config: Optional[FetchConfig] = None,
        session: Optional[requests.Session] = None,
        token: Optional[CancellationToken] = None,
        config: Optional[Settings] = None,
    ):
        config = config or app_settings
        super().__init__(
            base_url=f"{config.brightpearl_base_url.rstrip('/')}/{config.brightpearl_account}",
            headers={
                "brightpearl-app-ref": config.brightpearl_app_ref or "",
                "brightpearl-staff-token": config.brightpearl_token or "",
                "Content-Type": "application/json",
            },
            fetch_config=fetch_config,
            session=session,
            token=token,
        )
        self.page_size = config.brightpearl_page_size
        self.max_pages = config.brightpearl_max_pages
        self.batch_size = config.brightpearl_availability_batch_size
        self.page_delay = config.brightpearl_page_delay_seconds

        logger.info(
            "brightpearl_client_configured",
            base_url=config.brightpearl_base_url,
            account=config.brightpearl_account,
            app_ref=mask_secret(config.brightpearl_app_ref),
            token=mask_secret(config.brightpearl_token)
        )

    def get_json(self, path: str, params: Optional[dict] = None) -> Any:
        """Brightpearl wraps payloads in {"response": ...}; unwrap it."""
        data = super().get_json(path, params)
        if isinstance(data, dict) and "response" in data:
            return data["response"]
        return data

    # ===================
    # PRODUCTS
    # ===================

    def fetch_products(self) -> dict[str, dict]:
        """
        Page through product search and keep usable products.

        Stops when morePagesAvailable is false, a page is empty, or the
        page cap is reached. Products are keyed by id, so overlapping
        pages collapse.

        Returns:
            {product_id: {"id", "sku", "name"}}
        """
        raw_rows: list[list] = []
        page = 1
        has_more = True

        while has_more and page <= self.max_pages:
            self.token.raise_if_cancelled("brightpearl_products")
            first_result = (page - 1) * self.page_size + 1

            data = self.get_json(
                "product-service/product-search",
                params={
                    "pageSize": self.page_size,
                    "firstResult": first_result,
                    "filter": STOCK_TRACKED_FILTER,
                },
            )
            results, has_more = self._parse_search_page(data, page)

            if not results:
                logger.info("brightpearl_empty_page", page=page)
                break

            raw_rows.extend(results)
            logger.info(
                "brightpearl_page_fetched",
                page=page,
                count=len(results),
                total=len(raw_rows),
                more_pages=has_more
            )
            page += 1

            if has_more:
                self.pause(self.page_delay)

        if has_more and page > self.max_pages:
            logger.warning("brightpearl_page_cap_reached", max_pages=self.max_pages)

        products: dict[str, dict] = {}
        skipped = 0
        for row in raw_rows:
            product_id = row[PRODUCT_ID_INDEX]
            name = row[PRODUCT_NAME_INDEX]
            sku = row[SKU_INDEX]
            stock_tracked = row[STOCK_TRACKED_INDEX]

            if not product_id or not isinstance(sku, str) or not sku.strip() or not stock_tracked:
                skipped += 1
                continue

            products.setdefault(str(product_id), {
                "id": str(product_id),
                "sku": sku.strip(),
                "name": name or UNKNOWN_PRODUCT,
            })

        logger.info(
            "brightpearl_products_processed",
            rows=len(raw_rows),
            kept=len(products),
            skipped=skipped
        )
        return products

    def _parse_search_page(self, data: Any, page: int) -> tuple[list[list], bool]:
        if not isinstance(data, dict):
            raise ParseError(
                self.source.value,
                "Product search returned an unexpected payload",
                details={"page": page, "type": type(data).__name__}
            )

        results = data.get("results") or []
        if not isinstance(results, list):
            raise ParseError(
                self.source.value,
                "Product search results is not a list",
                details={"page": page}
            )
        for row in results:
            if not isinstance(row, list) or len(row) <= STOCK_TRACKED_INDEX:
                raise ParseError(
                    self.source.value,
                    "Product search row has unexpected shape",
                    details={"page": page, "row": str(row)[:200]}
                )

        meta = data.get("metaData") or {}
        has_more = bool(meta.get("morePagesAvailable", False))
        return results, has_more

    # ===================
    # AVAILABILITY
    # ===================

    def fetch_availability(self, product_ids: list[str]) -> dict[str, int]:
        """
        Look up in-stock quantity for each product id, in batches.

        A product missing from the response has 0 in stock. A failed
        batch fails the whole fetch.
        """
        availability: dict[str, int] = {}
        total_batches = (len(product_ids) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(product_ids), self.batch_size):
            self.token.raise_if_cancelled("brightpearl_availability")
            batch = product_ids[start:start + self.batch_size]
            batch_number = start // self.batch_size + 1

            data = self.get_json(
                f"warehouse-service/product-availability/{','.join(batch)}"
            )
            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise ParseError(
                    self.source.value,
                    "Availability returned an unexpected payload",
                    details={"batch": batch_number, "type": type(data).__name__}
                )

            for product_id in batch:
                availability[product_id] = self._in_stock(data.get(product_id))

            logger.debug(
                "brightpearl_availability_batch",
                batch=batch_number,
                total_batches=total_batches,
                returned=len(data)
            )

        logger.info(
            "brightpearl_availability_fetched",
            products=len(availability),
            total_stock=sum(availability.values()),
            with_stock=sum(1 for q in availability.values() if q > 0)
        )
        return availability

    def _in_stock(self, entry: Any) -> int:
        if not isinstance(entry, dict):
            return 0
        total = entry.get("total")
        if not isinstance(total, dict):
            return 0
        return self.parse_quantity(total.get("inStock"))

    # ===================
    # SNAPSHOT
    # ===================

    def fetch_inventory(self) -> InventorySnapshot:
        """
        Fetch the complete Brightpearl inventory snapshot.

        Raises:
            FetchError: Any request failed after retries
            ParseError: A page could not be interpreted
        """
        logger.info("brightpearl_fetch_started")

        products = self.fetch_products()
        if not products:
            logger.warning("brightpearl_no_products")
            return InventorySnapshot(source=self.source)

        availability = self.fetch_availability(list(products))

        items = [
            self.build_item(
                product["sku"],
                product["name"],
                availability.get(product_id, 0),
                record_ref=product_id,
            )
            for product_id, product in products.items()
        ]
        snapshot = InventorySnapshot.from_items(self.source, items)

        logger.info("brightpearl_fetch_complete", items=snapshot.item_count)
        return snapshot

    def test_connection(self) -> dict:
        """Check credentials with a one-row product search."""
        try:
            data = self.get_json("product-service/product-search", params={"pageSize": 1})
            if isinstance(data, dict) and ("results" in data or "metaData" in data):
                total = (data.get("metaData") or {}).get("resultsAvailable", 0)
                return {
                    "success": True,
                    "message": f"Brightpearl connection successful! Found {total} products available."
                }
            return {
                "success": False,
                "message": "Connected but received unexpected response format"
            }
        except AppError as e:
            logger.error("brightpearl_connection_test_failed", error=e.message)
            return {"success": False, "message": f"Connection failed: {e.message}"}
