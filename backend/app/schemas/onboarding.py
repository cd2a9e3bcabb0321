"""Request / response schemas for the onboarding endpoints."""

from pydantic import BaseModel, Field

from app.services.workflow import WorkflowStep


# ── Progress ────────────────────────────────────────────────

class OnboardingProgress(BaseModel):
    target_step: WorkflowStep
    completed_steps: list[WorkflowStep]
    tracked_steps: list[str] = []
    completion_progress: int = 0
    all_required_completed: bool = False


class NotificationOut(BaseModel):
    title: str
    description: str
    type: str


class RestoreResult(BaseModel):
    progress: OnboardingProgress
    notifications: list[NotificationOut] = []


# ── Plan submission ─────────────────────────────────────────

class PlanSubmissionResult(BaseModel):
    is_submitting: bool
    has_error: bool
    error_message: str | None = None
    succeeded: bool = False
    notifications: list[NotificationOut] = []


# ── Payment ─────────────────────────────────────────────────

class PaymentStatusUpdate(BaseModel):
    payment_succeeded: bool
    retry_successful: bool = False


# ── Plan summary ────────────────────────────────────────────

class PlanSummary(BaseModel):
    plan_id: int
    plan_name: str
    billing_cycle: str
    branch_count: int
    plan_price: float
    organization_addons_price: float
    branch_addons_price: float
    total_price: float
    savings: float


class CleanupResult(BaseModel):
    status: str = "ok"
    tenant_id: str | None = None


class TenantBinding(BaseModel):
    tenant_id: str = Field(..., min_length=1, max_length=128)
    tenant_info: dict | None = None
