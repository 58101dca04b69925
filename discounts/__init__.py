"""
Age-based automatic discount engine.

This package recomputes sale prices from prioritized age rules:
- Exclusion resolver, manual discount detector and age calculator feed
- the rule matcher, whose decision the price applicator writes
- the batch orchestrator runs full passes, the out-of-stock sweep and previews
- AutoDiscountService ties it together for hosts; DiscountHooks adapts it to
  catalog events
"""

from discounts.applicator import ApplyOutcome, ClearReason, PriceApplicator, compute_sale_price
from discounts.config import EngineConfig
from discounts.errors import (
    CatalogAccessError,
    ConcurrentPassError,
    DataIncompleteError,
    DiscountEngineError,
    InvalidRuleError,
    PreviewError,
)
from discounts.event_bus import Event, EventBus
from discounts.hooks import DiscountHooks
from discounts.models import (
    DiscountStats,
    PassError,
    PassResult,
    PreviewResult,
    PreviewSample,
    Provenance,
    Rule,
    RuleUsage,
)
from discounts.orchestrator import BatchOrchestrator, PassState
from discounts.service import AutoDiscountService

__all__ = [
    "ApplyOutcome",
    "ClearReason",
    "PriceApplicator",
    "compute_sale_price",
    "EngineConfig",
    "CatalogAccessError",
    "ConcurrentPassError",
    "DataIncompleteError",
    "DiscountEngineError",
    "InvalidRuleError",
    "PreviewError",
    "Event",
    "EventBus",
    "DiscountHooks",
    "DiscountStats",
    "PassError",
    "PassResult",
    "PreviewResult",
    "PreviewSample",
    "Provenance",
    "Rule",
    "RuleUsage",
    "BatchOrchestrator",
    "PassState",
    "AutoDiscountService",
]
