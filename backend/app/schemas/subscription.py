"""Pydantic schemas for plan selection, add-on assignment and the cached
account-creation data.

Two families live here:
  - UI-side models (Plan, SelectedAddon, TenantSubmissionData, Cached*)
    describing what the front-end selected and what we persist per session.
  - API-side models (AddonAssignment, AssignPlanToTenant, *Response)
    describing the billing API payloads.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, computed_field


class PlanBillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class AddonPricingScope(str, Enum):
    ORGANIZATION = "organization"
    BRANCH = "branch"


FeatureLevel = Literal["basic", "premium", "custom"]

# Every assignment built from a UI selection is sent at this level
DEFAULT_FEATURE_LEVEL: FeatureLevel = "basic"


# ── Plans & add-on selection (UI model) ─────────────────────

class Plan(BaseModel):
    id: int
    name: str
    description: str | None = None
    monthly_price: float = 0.0
    annual_discount_percentage: float = 0.0
    included_branches_count: int | None = None
    is_active: bool = True
    is_custom: bool = False


class BranchSelection(BaseModel):
    branch_index: int
    branch_name: str = ""
    is_selected: bool = False


class SelectedAddon(BaseModel):
    """An add-on picked in the UI.

    `branches` only matters for branch-scoped add-ons; it is ignored for
    organization-scoped ones.
    """
    addon_id: int
    addon_name: str | None = None
    addon_price: float = 0.0
    pricing_scope: AddonPricingScope
    branches: list[BranchSelection] = []
    is_included: bool = False


class TenantSubmissionData(BaseModel):
    """In-memory selection submitted from the plan selection step."""
    selected_plan: Plan | None = None
    billing_cycle: PlanBillingCycle = PlanBillingCycle.MONTHLY
    branch_count: int = Field(default=1, ge=0)
    selected_addons: list[SelectedAddon] = []


# ── Cached (persisted) data ─────────────────────────────────

class CachedPlanData(BaseModel):
    """Snapshot of the last successfully assigned selection.

    `selected_addons is None` means add-ons were never configured; an empty
    list means they were configured with nothing selected.
    """
    selected_plan: Plan | None = None
    billing_cycle: PlanBillingCycle = PlanBillingCycle.MONTHLY
    branch_count: int = 1
    selected_addons: list[SelectedAddon] | None = None


class CachedPaymentStatus(BaseModel):
    payment_succeeded: bool = False
    completed_at: datetime | None = None
    retry_successful: bool = False


class VerificationStatus(BaseModel):
    email_verified: bool = False
    phone_verified: bool = False
    email_verified_at: datetime | None = None
    phone_verified_at: datetime | None = None

    @computed_field
    @property
    def both_verified(self) -> bool:
        return self.email_verified and self.phone_verified


# ── Billing API payloads ────────────────────────────────────

class AddonAssignment(BaseModel):
    addon_id: int = Field(gt=0)
    feature_level: FeatureLevel = DEFAULT_FEATURE_LEVEL


class BranchAddonAssignment(BaseModel):
    branch_id: int = Field(gt=0)
    addon_assignments: list[AddonAssignment] = []


class AssignPlanToTenant(BaseModel):
    """Payload for the plan assignment endpoint."""
    tenant_id: str = Field(min_length=1)
    plan_id: int = Field(gt=0)
    billing_cycle: PlanBillingCycle
    branches_count: int = Field(default=1, gt=0)
    organization_addon_assignments: list[AddonAssignment] = []
    branch_addon_assignments: list[BranchAddonAssignment] = []


class AssignPlanResponse(BaseModel):
    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    message: str = ""


class BasicInfoStatus(BaseModel):
    is_complete: bool = False
    validation_errors: list[str] = []


class TenantAccountStatus(BaseModel):
    tenant_info: dict[str, Any] = {}
    verification_status: VerificationStatus = VerificationStatus()
    basic_info_status: BasicInfoStatus = BasicInfoStatus()


class TenantStatusResponse(BaseModel):
    success: bool
    data: TenantAccountStatus | None = None
    message: str = ""
