"""
Shared pytest fixtures for the auto discounts tests.

These fixtures provide consistent test data and a fixed clock so product ages
are deterministic. Every test gets its own CatalogStore over the JSON
fixtures; writes stay in memory and never touch the files.

Fixture catalog at 2024-06-01 (rules: p1 90d/25%, p2 30d/10% respecting
manual discounts, p3 inactive; category 99 excluded):

    prod-001  Wireless Router X500   149.99  age 152          -> p1, 112.49
    prod-002  USB-C Hub               39.90  age 12           -> no rule
    prod-003  Mechanical Keyboard    100.00  manual sale 80   -> untouched
    prod-004  Gift Card 50            50.00  category 99      -> cleared
    prod-005  Limited Edition Mouse   60.00  flagged, legacy  -> cleared
    prod-006  Headphones             200.00  out of stock     -> swept
    prod-007  Webcam HD              (no regular price)       -> error
    prod-008  Desk Lamp               35.00  anchored age 92  -> p1, 26.25
    prod-009  Monitor Stand           80.00  no creation date -> error
    prod-010  Draft Cable             draft                   -> ignored
    prod-011  Laptop Sleeve           out of stock, manual    -> untouched
    prod-012  Ethernet Cable          12.00  legacy marker    -> p2, 10.80
"""

import shutil
from datetime import datetime
from pathlib import Path

import pytest

from catalog.data_store import CatalogStore
from discounts.age import AgeCalculator
from discounts.applicator import PriceApplicator
from discounts.config import EngineConfig
from discounts.event_bus import EventBus
from discounts.hooks import DiscountHooks
from discounts.orchestrator import BatchOrchestrator
from discounts.service import AutoDiscountService

NOW = datetime(2024, 6, 1, 3, 0, 0)


@pytest.fixture
def data_dir() -> Path:
    """Path to the fixture data directory."""
    return Path(__file__).parent.parent / "data"


@pytest.fixture
def data_store(data_dir: Path) -> CatalogStore:
    """
    Fresh CatalogStore instance for each test.

    Uses the real JSON fixtures but creates a new instance
    so tests don't interfere with each other.
    """
    return CatalogStore(data_dir=data_dir)


@pytest.fixture
def writable_data_dir(data_dir: Path, tmp_path: Path) -> Path:
    """Copy of the fixtures for tests that call save()."""
    target = tmp_path / "data"
    shutil.copytree(data_dir, target)
    return target


@pytest.fixture
def clock():
    """Fixed local time: 2024-06-01 03:00."""
    return lambda: NOW


@pytest.fixture
def event_bus() -> EventBus:
    """Fresh EventBus for each test."""
    return EventBus()


@pytest.fixture
def ages(data_store: CatalogStore, clock) -> AgeCalculator:
    return AgeCalculator(data_store, clock=clock)


@pytest.fixture
def applicator(data_store: CatalogStore, clock, event_bus: EventBus) -> PriceApplicator:
    return PriceApplicator(data_store, clock=clock, event_bus=event_bus)


@pytest.fixture
def orchestrator(data_store: CatalogStore, clock, event_bus: EventBus) -> BatchOrchestrator:
    """Orchestrator with a small page size so paging is exercised."""
    return BatchOrchestrator(
        data_store,
        config=EngineConfig(batch_size=4),
        clock=clock,
        event_bus=event_bus,
    )


@pytest.fixture
def service(data_store: CatalogStore, clock, event_bus: EventBus) -> AutoDiscountService:
    return AutoDiscountService(
        data_store,
        config=EngineConfig(batch_size=4),
        clock=clock,
        event_bus=event_bus,
    )


@pytest.fixture
def hooks(service: AutoDiscountService) -> DiscountHooks:
    return DiscountHooks(service)


# =============================================================================
# Product Fixtures
# =============================================================================

@pytest.fixture
def router_product_id() -> str:
    """Wireless Router X500: 149.99, 152 days old, matches the 25% rule."""
    return "prod-001"


@pytest.fixture
def hub_product_id() -> str:
    """USB-C Hub: 12 days old, too young for any active rule."""
    return "prod-002"


@pytest.fixture
def keyboard_product_id() -> str:
    """Mechanical Keyboard Elite: manual sale price 80.00, 61 days old."""
    return "prod-003"


@pytest.fixture
def gift_card_product_id() -> str:
    """Gift Card 50: excluded category 99, carries an engine discount."""
    return "prod-004"


@pytest.fixture
def mouse_product_id() -> str:
    """Limited Edition Mouse: flagged excluded, legacy `_wc_` marker."""
    return "prod-005"


@pytest.fixture
def headphones_product_id() -> str:
    """Noise Cancelling Headphones: out of stock with an engine discount."""
    return "prod-006"


@pytest.fixture
def lamp_product_id() -> str:
    """Desk Lamp: no listing date, anchored creation date 2024-03-01."""
    return "prod-008"


@pytest.fixture
def cable_product_id() -> str:
    """Ethernet Cable: 31 days old, legacy `_bdo_` marker."""
    return "prod-012"
