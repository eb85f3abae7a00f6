"""Subscription plan tiers and the limits they grant.

Plans are written by the billing side as free-form strings; everything here
normalizes through ``normalize_plan_name`` first.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional


@dataclass(frozen=True)
class PlanConfig:
    name: str
    max_products: int
    syncs_per_day: int
    competitors_per_product: int
    discovery_products_per_month: int

    @property
    def sync_cooldown(self) -> Optional[timedelta]:
        """Minimum gap between syncs, or None when the plan has no sync allowance."""
        if self.syncs_per_day <= 0:
            return None
        return timedelta(hours=24) / self.syncs_per_day


FREE_DEMO = "free_demo"
STARTER = "STARTER"
PRO = "PRO"
SCALE = "SCALE"

PLANS: Dict[str, PlanConfig] = {
    FREE_DEMO: PlanConfig(
        name=FREE_DEMO,
        max_products=50,
        syncs_per_day=0,
        competitors_per_product=1,
        discovery_products_per_month=500,
    ),
    STARTER: PlanConfig(
        name=STARTER,
        max_products=50,
        syncs_per_day=1,
        competitors_per_product=2,
        discovery_products_per_month=2000,
    ),
    PRO: PlanConfig(
        name=PRO,
        max_products=200,
        syncs_per_day=2,
        competitors_per_product=5,
        discovery_products_per_month=6000,
    ),
    SCALE: PlanConfig(
        name=SCALE,
        max_products=400,
        syncs_per_day=4,
        competitors_per_product=10,
        discovery_products_per_month=15000,
    ),
}

PLAN_ALIASES: Dict[str, str] = {
    "free_demo": FREE_DEMO,
    "demo": FREE_DEMO,
    "free": FREE_DEMO,
    "starter": STARTER,
    "basic": STARTER,
    "pro": PRO,
    "professional": PRO,
    "scale": SCALE,
    "ultra": SCALE,
    "enterprise": SCALE,
}


def normalize_plan_name(plan: Optional[str]) -> str:
    """Map any stored plan string onto a known tier. Unknown or empty -> free_demo."""
    if not plan:
        return FREE_DEMO
    key = plan.strip()
    if key in PLANS:
        return key
    return PLAN_ALIASES.get(key.lower(), FREE_DEMO)


def get_plan_config(plan: Optional[str]) -> PlanConfig:
    return PLANS[normalize_plan_name(plan)]
