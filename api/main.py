"""
FastAPI admin and scheduler surface for the auto discount engine.

This application provides:
1. Pass endpoints for a scheduler or an admin button (/passes, /passes/cleanup)
2. The read-only preview used by the rule editor (/preview)
3. Settings endpoints (/settings/...) which trigger a full pass on save
4. Product exclusion management and the dashboard statistics

Run with:
    uv run uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

from catalog.data_store import CatalogStore
from catalog.errors import CatalogAccessError
from catalog.models import Product
from discounts.errors import ConcurrentPassError, PreviewError
from discounts.hooks import DiscountHooks
from discounts.models import DiscountStats, PassResult, PreviewSample
from discounts.service import AutoDiscountService

logger = logging.getLogger("discount_api")


# Request / response models
class ExclusionUpdate(BaseModel):
    """Exclusion flag for a single product."""
    excluded: bool


class BulkExclusionUpdate(BaseModel):
    """Exclusion flag for many products at once."""
    product_ids: list[str] = Field(default_factory=list)
    excluded: bool


class BulkExclusionResult(BaseModel):
    updated: int


class CleanupResult(BaseModel):
    cleared: int


class PreviewResponse(BaseModel):
    """Preview report as shown next to the rule editor."""
    min_age_days: int
    respect_manual: bool
    count: int
    total_regular_value: Decimal
    sample: list[PreviewSample]
    remaining: int


class SettingsResponse(BaseModel):
    rules: list[dict[str, Any]]
    excluded_categories: list[int]


class SettingsUpdateResult(BaseModel):
    """Stored settings plus the pass the save triggered."""
    settings: SettingsResponse
    result: PassResult


class ProductSummary(BaseModel):
    id: str
    name: str
    status: str
    stock_status: str
    regular_price: Optional[Decimal] = None
    sale_price: Optional[Decimal] = None
    price: Optional[Decimal] = None
    excluded: bool


def get_service(request: Request) -> AutoDiscountService:
    return request.app.state.service


def get_hooks(request: Request) -> DiscountHooks:
    return request.app.state.hooks


def _pass_or_http_error(run) -> Any:
    """Run a pass and map engine errors to HTTP status codes."""
    try:
        return run()
    except ConcurrentPassError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CatalogAccessError as e:
        raise HTTPException(status_code=503, detail=f"Catalog unavailable: {e}")


def _settings(service: AutoDiscountService) -> SettingsResponse:
    return SettingsResponse(
        rules=service.get_rules(),
        excluded_categories=service.get_excluded_categories(),
    )


def _summary(service: AutoDiscountService, product: Product) -> ProductSummary:
    return ProductSummary(
        id=product.id,
        name=product.name,
        status=product.status,
        stock_status=product.stock_status,
        regular_price=product.regular_price,
        sale_price=product.sale_price,
        price=product.price,
        excluded=service.is_product_excluded(product.id),
    )


def create_app(service: Optional[AutoDiscountService] = None) -> FastAPI:
    """
    Build the API around one service instance.

    Args:
        service: Engine to expose. Defaults to one over the JSON fixtures in
                 ./data, with legacy settings migrated on startup.
    """
    if service is None:
        service = AutoDiscountService(CatalogStore())

    # Application lifespan
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown."""
        logger.info("Starting Auto Discounts API")
        migrated = service.migrate_legacy_settings()
        if migrated:
            logger.info(f"Migrated legacy settings: {', '.join(migrated)}")
        yield
        logger.info("Shutting down")

    app = FastAPI(
        title="Auto Discounts",
        description="""
    Age-based automatic discounts for a product catalog.

    ## Endpoints

    - `/passes` - Run a full recomputation pass (scheduler, admin)
    - `/passes/cleanup` - Remove engine discounts from out-of-stock products
    - `/preview` - Count products a rule would affect, without writing
    - `/settings/*` - Rules and excluded categories; saving runs a pass
    - `/products/*` - Per-product exclusion management
    - `/stats` - Discount statistics
    """,
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.hooks = DiscountHooks(service)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health", tags=["Health"])
    def health_check(service: AutoDiscountService = Depends(get_service)):
        """Health check endpoint."""
        return {"status": "healthy", "service": "auto-discounts", "pass_state": service.state}

    # =========================================================================
    # Passes
    # =========================================================================

    @app.post("/passes", response_model=PassResult, tags=["Passes"])
    def run_pass(service: AutoDiscountService = Depends(get_service)):
        """
        Run a full pass over the catalog.

        Returns 409 while another pass is running and 503 when the catalog
        fails mid-pass (pages already processed keep their prices).
        """
        return _pass_or_http_error(service.run_full_pass)

    @app.post("/passes/cleanup", response_model=CleanupResult, tags=["Passes"])
    def run_cleanup(service: AutoDiscountService = Depends(get_service)):
        """Remove engine discounts from out-of-stock products only."""
        cleared = _pass_or_http_error(service.cleanup_out_of_stock)
        return CleanupResult(cleared=cleared)

    # =========================================================================
    # Preview
    # =========================================================================

    @app.get("/preview", response_model=PreviewResponse, tags=["Preview"])
    def preview(
        min_age: int = Query(..., ge=0, description="Minimum product age in days"),
        respect_manual: bool = Query(False),
        service: AutoDiscountService = Depends(get_service),
    ):
        """Count in-stock products a rule with these settings would discount."""
        try:
            result = service.preview(min_age, respect_manual)
        except PreviewError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return PreviewResponse(
            min_age_days=min_age,
            respect_manual=respect_manual,
            count=result.count,
            total_regular_value=result.total_regular_value,
            sample=result.sample,
            remaining=result.remaining,
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    @app.get("/stats", response_model=DiscountStats, tags=["Statistics"])
    def stats(service: AutoDiscountService = Depends(get_service)):
        try:
            return service.get_stats()
        except CatalogAccessError as e:
            raise HTTPException(status_code=503, detail=f"Catalog unavailable: {e}")

    # =========================================================================
    # Settings
    # =========================================================================

    @app.get("/settings", response_model=SettingsResponse, tags=["Settings"])
    def get_settings(service: AutoDiscountService = Depends(get_service)):
        return _settings(service)

    @app.put("/settings/rules", response_model=SettingsUpdateResult, tags=["Settings"])
    def put_rules(
        rules: list[dict[str, Any]] = Body(...),
        service: AutoDiscountService = Depends(get_service),
        hooks: DiscountHooks = Depends(get_hooks),
    ):
        """
        Replace the rule set and run a pass.

        Values are coerced the way the admin form is: missing fields take
        defaults, discounts are clamped to 0-100.
        """
        result = _pass_or_http_error(lambda: hooks.on_rules_changed(rules))
        return SettingsUpdateResult(settings=_settings(service), result=result)

    @app.put("/settings/excluded-categories", response_model=SettingsUpdateResult, tags=["Settings"])
    def put_excluded_categories(
        category_ids: list[Any] = Body(...),
        service: AutoDiscountService = Depends(get_service),
        hooks: DiscountHooks = Depends(get_hooks),
    ):
        """Replace the excluded category set and run a pass."""
        result = _pass_or_http_error(lambda: hooks.on_excluded_categories_changed(category_ids))
        return SettingsUpdateResult(settings=_settings(service), result=result)

    # =========================================================================
    # Products
    # =========================================================================

    @app.get("/products", response_model=list[ProductSummary], tags=["Products"])
    def list_products(
        excluded: bool = Query(False, description="Only individually excluded products"),
        service: AutoDiscountService = Depends(get_service),
    ):
        if excluded:
            products = service.list_excluded_products()
        else:
            products = service.catalog.list_products()
        return [_summary(service, p) for p in products]

    @app.put("/products/{product_id}/exclusion", response_model=ProductSummary, tags=["Products"])
    def set_exclusion(
        product_id: str,
        update: ExclusionUpdate,
        service: AutoDiscountService = Depends(get_service),
    ):
        """Flag a product as excluded; its engine discount is removed at once."""
        product = service.set_product_exclusion(product_id, update.excluded)
        if product is None:
            raise HTTPException(status_code=404, detail=f"Product not found: {product_id}")
        return _summary(service, product)

    @app.post("/products/exclusion/bulk", response_model=BulkExclusionResult, tags=["Products"])
    def bulk_exclusion(
        update: BulkExclusionUpdate,
        service: AutoDiscountService = Depends(get_service),
    ):
        updated = service.bulk_set_exclusion(update.product_ids, update.excluded)
        return BulkExclusionResult(updated=updated)

    return app


app = create_app()
