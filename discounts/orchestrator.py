"""
Batch orchestrator for the discount engine.

Streams the catalog in fixed-size pages and runs every in-stock, published
product through the pipeline:

    exclusion -> manual discount -> age -> rule match -> price application

then sweeps out-of-stock products that still carry an engine discount.

Design decisions:
- Rules and the exclusion set are snapshotted once at pass start; edits made
  during a pass are picked up by the next one
- One pass at a time per orchestrator: a second request is rejected, not
  queued, so two passes never interleave writes on the same product
- A product that cannot be evaluated is logged, recorded and skipped
- Every engine write to a product happens under that product's lock, which
  exclusion management takes too; a product is re-read once its lock is held
- A catalog failure aborts the pass; pages already written stay written and
  the next trigger starts over from the beginning
- Optional worker threads process the products of one page in parallel; a
  page always completes before the next page and before the cleanup sweep
- Preview runs the same matching over a single synthetic rule and writes
  nothing, so it takes no lock
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterator, Optional

from catalog.models import Product, ProductStatus, StockStatus
from catalog.protocols import Catalog
from discounts.age import AgeCalculator
from discounts.applicator import ApplyOutcome, ClearReason, PriceApplicator
from discounts.config import EngineConfig
from discounts.errors import ConcurrentPassError, DataIncompleteError, PreviewError
from discounts.event_bus import EventBus
from discounts.events import pass_completed, pass_failed
from discounts.exclusions import resolve_exclusion
from discounts.manual import has_manual_discount
from discounts.matcher import match_rule, sort_rules
from discounts.models import PassError, PassResult, PreviewResult, PreviewSample, Rule
from discounts.provenance import ALL_MARKERS
from discounts.settings import load_excluded_categories, load_rules

logger = logging.getLogger("discount_orchestrator")


class PassState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"


ProductOutcome = tuple[Optional[ApplyOutcome], Optional[PassError]]


class BatchOrchestrator:
    """
    Runs full discount passes and previews over a catalog.

    Example:
        orchestrator = BatchOrchestrator(catalog)
        result = orchestrator.run_full_pass()
        print(result.applied, result.cleared, result.errors)

        report = orchestrator.preview(min_age_days=30, respect_manual=True)
    """

    def __init__(
        self,
        catalog: Catalog,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """
        Args:
            catalog: Catalog to read and write
            config: Engine tunables (batch size, workers, ...)
            clock: Current local time, used for ages and provenance timestamps
            event_bus: Optional bus receiving engine events
        """
        self.catalog = catalog
        self.config = config or EngineConfig()
        self.clock = clock or datetime.now
        self.event_bus = event_bus
        self.ages = AgeCalculator(catalog, clock=self.clock)
        self.applicator = PriceApplicator(catalog, clock=self.clock, event_bus=event_bus)

        self._pass_lock = threading.Lock()
        self._product_locks = _ProductLocks()
        self._state = PassState.IDLE
        self.last_result: Optional[PassResult] = None

    @property
    def state(self) -> PassState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == PassState.RUNNING

    def product_lock(self, product_id: str) -> threading.Lock:
        """Lock held around every read-decide-write on one product."""
        return self._product_locks.get(product_id)

    # =========================================================================
    # Full pass
    # =========================================================================

    def run_full_pass(self) -> PassResult:
        """
        Recompute discounts for the whole catalog.

        Raises:
            ConcurrentPassError: another pass is in progress
            CatalogAccessError: the catalog failed; the pass was aborted
        """
        with self._exclusive("pass"):
            self._state = PassState.RUNNING
            try:
                result = self._run_pass()
            except Exception as e:
                self._state = PassState.FAILED
                logger.error(f"Discount pass aborted: {e}")
                if self.event_bus is not None:
                    self.event_bus.publish(pass_failed(str(e)))
                raise
            self._state = PassState.IDLE
            self.last_result = result
            return result

    def _run_pass(self) -> PassResult:
        result = PassResult(started_at=self.clock())

        rules, rule_errors = load_rules(self.catalog)
        result.errors.extend(rule_errors)
        if not rules:
            logger.info("No discount rules configured, nothing to do")
            result.skipped_reason = "no_rules"
            result.finished_at = self.clock()
            return result

        rules = sort_rules(rules)
        excluded_categories = load_excluded_categories(self.catalog)
        logger.info(
            f"Starting discount pass: {len(rules)} rules, "
            f"{len(excluded_categories)} excluded categories"
        )

        executor = None
        if self.config.max_workers > 1:
            executor = ThreadPoolExecutor(
                max_workers=self.config.max_workers,
                thread_name_prefix="discount-pass",
            )
        try:
            for page in self._iter_pages():
                for outcome, error in self._process_page(page, rules, excluded_categories, executor):
                    self._tally(result, outcome, error)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        result.out_of_stock_cleared = self._cleanup_out_of_stock()
        result.cleared += result.out_of_stock_cleared
        result.finished_at = self.clock()

        logger.info(
            f"Discount pass complete: {result.applied} applied, "
            f"{result.unchanged} unchanged, {result.cleared} cleared, "
            f"{result.skipped} skipped"
        )
        if self.event_bus is not None:
            self.event_bus.publish(pass_completed(result.model_dump(
                mode="json",
                include={"applied", "unchanged", "cleared", "skipped", "out_of_stock_cleared"},
            )))
        return result

    def _iter_pages(self) -> Iterator[list[Product]]:
        """Yield pages of in-stock published products until a short page."""
        batch_size = self.config.batch_size
        offset = 0
        while True:
            page = self.catalog.list_products(
                status=ProductStatus.PUBLISH,
                stock_status=StockStatus.IN_STOCK,
                limit=batch_size,
                offset=offset,
            )
            if not page:
                return
            yield page
            if len(page) < batch_size:
                return
            offset += batch_size

    def _process_page(
        self,
        page: list[Product],
        rules: list[Rule],
        excluded_categories: frozenset[int],
        executor: Optional[ThreadPoolExecutor],
    ) -> list[ProductOutcome]:
        if executor is None:
            return [self.process_product(p, rules, excluded_categories) for p in page]
        return list(executor.map(
            lambda product: self.process_product(product, rules, excluded_categories),
            page,
        ))

    def process_product(
        self,
        product: Product,
        rules: list[Rule],
        excluded_categories: frozenset[int],
    ) -> ProductOutcome:
        """
        Run the pipeline for one product.

        Returns:
            (outcome, None) on success, (None, PassError) if skipped
        """
        with self.product_lock(product.id):
            product = self.catalog.get_product(product.id) or product
            try:
                if resolve_exclusion(self.catalog, product, excluded_categories):
                    return self.applicator.apply(product, None, ClearReason.EXCLUDED), None

                if not product.regular_price:
                    raise DataIncompleteError(product.id, "missing regular price")

                manual = has_manual_discount(self.catalog, product)
                age = self.ages.age_in_days(product)
                rule = match_rule(rules, age, manual, excluded=False)
                return self.applicator.apply(product, rule), None
            except DataIncompleteError as e:
                logger.warning(f"Skipping {product.id}: {e.reason}")
                return None, PassError(product_id=product.id, reason=e.reason)

    @staticmethod
    def _tally(result: PassResult, outcome: Optional[ApplyOutcome], error: Optional[PassError]):
        if error is not None:
            result.skipped += 1
            result.errors.append(error)
        elif outcome == ApplyOutcome.APPLIED:
            result.applied += 1
        elif outcome == ApplyOutcome.UNCHANGED:
            result.unchanged += 1
        elif outcome == ApplyOutcome.CLEARED:
            result.cleared += 1

    # =========================================================================
    # Out-of-stock cleanup
    # =========================================================================

    def cleanup_out_of_stock(self) -> int:
        """
        Remove engine discounts from out-of-stock products.

        Runs at the end of every full pass; can also be triggered alone,
        e.g. right after stock levels change.

        Returns:
            Number of products cleared

        Raises:
            ConcurrentPassError: a pass is in progress
        """
        with self._exclusive("cleanup"):
            return self._cleanup_out_of_stock()

    def _cleanup_out_of_stock(self) -> int:
        product_ids = self.catalog.find_product_ids_with_facts(
            ALL_MARKERS,
            status=ProductStatus.PUBLISH,
            stock_status=StockStatus.OUT_OF_STOCK,
        )
        cleared = 0
        for product_id in product_ids:
            with self.product_lock(product_id):
                product = self.catalog.get_product(product_id)
                if product is None:
                    continue
                if self.applicator.remove_auto_discount(product, ClearReason.OUT_OF_STOCK):
                    cleared += 1
        if cleared:
            logger.info(f"Cleared discounts on {cleared} out-of-stock products")
        return cleared

    # =========================================================================
    # Preview
    # =========================================================================

    def preview(self, min_age_days: int, respect_manual: bool = False) -> PreviewResult:
        """
        Count the in-stock products a rule with these settings would affect.

        Writes nothing: no prices, no provenance, not even the creation-date
        anchor.

        Raises:
            PreviewError: anything went wrong; no partial result is returned
        """
        candidate = Rule(
            priority=0,
            min_age_days=max(int(min_age_days), 0),
            discount_percent=0,
            active=True,
            respect_manual=respect_manual,
        )
        try:
            return self._preview(candidate)
        except Exception as e:
            logger.error(f"Preview failed: {e}")
            raise PreviewError(e) from e

    def _preview(self, candidate: Rule) -> PreviewResult:
        excluded_categories = load_excluded_categories(self.catalog)
        rules = [candidate]

        count = 0
        total = Decimal("0")
        sample: list[PreviewSample] = []
        for page in self._iter_pages():
            for product in page:
                if not self._preview_matches(product, rules, excluded_categories):
                    continue
                count += 1
                total += product.regular_price
                if len(sample) < self.config.preview_sample_size:
                    sample.append(PreviewSample(
                        id=product.id,
                        name=product.name,
                        price=product.regular_price,
                        link=self.config.edit_link(product.id),
                    ))

        logger.info(
            f"Preview (min age {candidate.min_age_days}, respect manual "
            f"{candidate.respect_manual}): {count} products, ${total}"
        )
        return PreviewResult(count=count, total_regular_value=total, sample=sample)

    def _preview_matches(
        self,
        product: Product,
        rules: list[Rule],
        excluded_categories: frozenset[int],
    ) -> bool:
        if resolve_exclusion(self.catalog, product, excluded_categories):
            return False
        if not product.regular_price:
            return False
        try:
            age = self.ages.age_in_days(product, persist=False)
        except DataIncompleteError as e:
            logger.debug(f"Preview skips {product.id}: {e.reason}")
            return False
        manual = has_manual_discount(self.catalog, product)
        return match_rule(rules, age, manual, excluded=False) is not None

    # =========================================================================
    # Pass lock
    # =========================================================================

    def _exclusive(self, what: str) -> "_PassGuard":
        return _PassGuard(self._pass_lock, what)


class _PassGuard:
    """Non-blocking hold on the pass lock; rejects instead of waiting."""

    def __init__(self, lock: threading.Lock, what: str):
        self._lock = lock
        self._what = what

    def __enter__(self):
        if not self._lock.acquire(blocking=False):
            logger.warning(f"Discount pass already running, rejecting {self._what}")
            raise ConcurrentPassError(f"A discount pass is already running ({self._what} rejected)")
        return self

    def __exit__(self, exc_type, exc, tb):
        self._lock.release()
        return False


class _ProductLocks:
    """One lock per product id, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, product_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(product_id, threading.Lock())
