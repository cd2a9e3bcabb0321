"""Plan and add-on pricing for the plan summary step.

Yearly billing applies the discount to twelve monthly payments.  Included
add-ons are free; organization-scoped add-ons are charged once,
branch-scoped add-ons once per branch.  Every amount is rounded to cents.
"""

from typing import Iterable

from app.schemas.subscription import (
    AddonPricingScope,
    CachedPlanData,
    Plan,
    PlanBillingCycle,
    SelectedAddon,
)


def _cents(amount: float) -> float:
    return round(amount, 2)


def _yearly(monthly: float, discount_percentage: float) -> float:
    return monthly * 12 * (1 - discount_percentage / 100)


def calculate_plan_price(plan: Plan, billing_cycle: PlanBillingCycle, branch_count: int) -> float:
    base = plan.monthly_price * branch_count
    if billing_cycle == PlanBillingCycle.YEARLY:
        return _cents(_yearly(base, plan.annual_discount_percentage))
    return _cents(base)


def calculate_addon_price(
    addon: SelectedAddon,
    billing_cycle: PlanBillingCycle,
    branch_count: int,
    addon_discount_percentage: float = 0,
) -> float:
    if addon.is_included:
        return 0.0

    price = addon.addon_price
    if billing_cycle == PlanBillingCycle.YEARLY:
        price = _yearly(price, addon_discount_percentage)

    if addon.pricing_scope == AddonPricingScope.ORGANIZATION:
        return _cents(price)
    return _cents(price * max(branch_count, 0))


def _scoped_total(
    addons: Iterable[SelectedAddon],
    scope: AddonPricingScope,
    billing_cycle: PlanBillingCycle,
    branch_count: int,
    addon_discount_percentage: float,
) -> float:
    return sum(
        calculate_addon_price(a, billing_cycle, branch_count, addon_discount_percentage)
        for a in addons
        if a.pricing_scope == scope
    )


def calculate_organization_addons_price(
    addons: Iterable[SelectedAddon],
    billing_cycle: PlanBillingCycle,
    branch_count: int,
    addon_discount_percentage: float = 0,
) -> float:
    return _scoped_total(
        addons, AddonPricingScope.ORGANIZATION, billing_cycle, branch_count, addon_discount_percentage
    )


def calculate_branch_addons_price(
    addons: Iterable[SelectedAddon],
    billing_cycle: PlanBillingCycle,
    branch_count: int,
    addon_discount_percentage: float = 0,
) -> float:
    return _scoped_total(
        addons, AddonPricingScope.BRANCH, billing_cycle, branch_count, addon_discount_percentage
    )


def calculate_total_addons_price(
    addons: list[SelectedAddon],
    billing_cycle: PlanBillingCycle,
    branch_count: int,
    addon_discount_percentage: float = 0,
) -> float:
    return _cents(
        calculate_organization_addons_price(addons, billing_cycle, branch_count, addon_discount_percentage)
        + calculate_branch_addons_price(addons, billing_cycle, branch_count, addon_discount_percentage)
    )


def calculate_total_price(
    plan: Plan,
    addons: list[SelectedAddon],
    billing_cycle: PlanBillingCycle,
    branch_count: int,
    addon_discount_percentage: float = 0,
) -> float:
    return _cents(
        calculate_plan_price(plan, billing_cycle, branch_count)
        + calculate_total_addons_price(addons, billing_cycle, branch_count, addon_discount_percentage)
    )


def calculate_monthly_savings(
    plan: Plan,
    addons: list[SelectedAddon],
    billing_cycle: PlanBillingCycle,
    branch_count: int,
    addon_discount_percentage: float = 0,
) -> float:
    """Undiscounted twelve-month cost minus the yearly total (0 for monthly billing)."""
    if billing_cycle != PlanBillingCycle.YEARLY:
        return 0.0

    undiscounted = plan.monthly_price * branch_count * 12
    for addon in addons:
        if addon.is_included:
            continue
        units = 1 if addon.pricing_scope == AddonPricingScope.ORGANIZATION else branch_count
        undiscounted += addon.addon_price * units * 12

    total = calculate_total_price(plan, addons, billing_cycle, branch_count, addon_discount_percentage)
    return _cents(undiscounted - total)


def calculate_single_addon_price(
    monthly_price: float,
    billing_cycle: PlanBillingCycle,
    discount_percentage: float = 0,
) -> float:
    if not monthly_price or monthly_price <= 0:
        return 0.0
    if billing_cycle == PlanBillingCycle.MONTHLY:
        return _cents(monthly_price)
    return _cents(_yearly(monthly_price, discount_percentage))


def summarize_plan(data: CachedPlanData, addon_discount_percentage: float = 0) -> dict:
    """Price breakdown shown on the plan summary step."""
    if data.selected_plan is None:
        raise ValueError("No plan selected")
    addons = data.selected_addons or []
    plan = data.selected_plan
    return {
        "plan_id": plan.id,
        "plan_name": plan.name,
        "billing_cycle": data.billing_cycle.value,
        "branch_count": data.branch_count,
        "plan_price": calculate_plan_price(plan, data.billing_cycle, data.branch_count),
        "organization_addons_price": _cents(calculate_organization_addons_price(
            addons, data.billing_cycle, data.branch_count, addon_discount_percentage
        )),
        "branch_addons_price": _cents(calculate_branch_addons_price(
            addons, data.billing_cycle, data.branch_count, addon_discount_percentage
        )),
        "total_price": calculate_total_price(
            plan, addons, data.billing_cycle, data.branch_count, addon_discount_percentage
        ),
        "savings": calculate_monthly_savings(
            plan, addons, data.billing_cycle, data.branch_count, addon_discount_percentage
        ),
    }
