"""
Models for the discount engine.

- Rule: one configured age-based discount
- Provenance: the marker recording that the engine set a product's sale price
- PassResult / PassError: outcome of a full recomputation pass
- PreviewResult / PreviewSample: outcome of a read-only preview
- DiscountStats / RuleUsage: catalog-wide discount report

Rules and provenance records are stored by the catalog as plain dicts. Records
written by older releases use different key names (`min_age`, `discount`,
`rule_id`, `applied_date`); the models accept those as aliases so stored data
keeps loading, but always serialize with the current names.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field


# =============================================================================
# Configuration Entities
# =============================================================================

class Rule(BaseModel):
    """
    An age-based discount rule.

    Lower `priority` numbers are evaluated first. Exactly one rule applies per
    product: the first active rule whose `min_age_days` the product has
    reached.
    """
    priority: int = Field(default=0, description="Evaluation order, ascending")
    min_age_days: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("min_age_days", "min_age"),
        description="Minimum product age in days",
    )
    discount_percent: float = Field(
        default=0.0,
        ge=0,
        le=100,
        validation_alias=AliasChoices("discount_percent", "discount"),
        description="Percentage taken off the regular price",
    )
    active: bool = Field(default=False, description="Inactive rules never match")
    respect_manual: bool = Field(
        default=False,
        description="Skip products whose sale price was set by hand",
    )

    model_config = ConfigDict(frozen=True)


class Provenance(BaseModel):
    """Which rule set a product's sale price, and when."""
    rule_priority: int = Field(validation_alias=AliasChoices("rule_priority", "rule_id"))
    discount_percent: float
    applied_at: datetime = Field(validation_alias=AliasChoices("applied_at", "applied_date"))

    def same_rule(self, rule: Rule) -> bool:
        return (
            self.rule_priority == rule.priority
            and self.discount_percent == rule.discount_percent
        )


# =============================================================================
# Pass Results
# =============================================================================

class PassError(BaseModel):
    """A product (or rule, when product_id is None) skipped during a pass."""
    product_id: Optional[str] = None
    reason: str


class PassResult(BaseModel):
    """
    Outcome of one full pass.

    applied:   products whose discount was written or rewritten
    unchanged: products already carrying the discount their rule gives
    cleared:   engine discounts removed (no match, excluded, out of stock)
    skipped:   products that could not be evaluated (see errors)
    """
    applied: int = 0
    unchanged: int = 0
    cleared: int = 0
    skipped: int = 0
    out_of_stock_cleared: int = 0
    errors: list[PassError] = Field(default_factory=list)
    skipped_reason: Optional[str] = Field(
        default=None,
        description="Set when the pass did nothing by design (e.g. no rules)",
    )
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def changed(self) -> int:
        """Number of products whose price or provenance was written."""
        return self.applied + self.cleared


# =============================================================================
# Preview
# =============================================================================

class PreviewSample(BaseModel):
    """One product shown in a preview sample."""
    id: str
    name: str
    price: Optional[Decimal] = Field(default=None, description="Regular price")
    link: str


class PreviewResult(BaseModel):
    """Products a candidate rule would affect, without writing anything."""
    count: int = 0
    total_regular_value: Decimal = Decimal("0")
    sample: list[PreviewSample] = Field(default_factory=list)

    @property
    def remaining(self) -> int:
        """Matching products not shown in the sample."""
        return self.count - len(self.sample)


# =============================================================================
# Statistics
# =============================================================================

class RuleUsage(BaseModel):
    """How many in-stock products currently carry a given rule's discount."""
    count: int = 0
    discount_percent: float = 0.0


class DiscountStats(BaseModel):
    """Catalog-wide discount report."""
    total_products: int = 0
    excluded_products: int = 0
    discounted_products: int = 0
    total_discount_amount: Decimal = Decimal("0")
    average_discount: Decimal = Decimal("0")
    rules_usage: dict[int, RuleUsage] = Field(default_factory=dict)
    active_rules: int = 0
    configured_rules: int = 0

    @computed_field
    @property
    def discounted_percentage(self) -> float:
        if self.total_products == 0:
            return 0.0
        return round(self.discounted_products / self.total_products * 100, 1)

    @computed_field
    @property
    def excluded_percentage(self) -> float:
        if self.total_products == 0:
            return 0.0
        return round(self.excluded_products / self.total_products * 100, 1)
