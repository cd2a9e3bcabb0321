"""Account-creation onboarding for one browser session.

Endpoints (all require the X-Onboarding-Session header):
  GET    /api/onboarding/progress               → step progression from cached flags
  PUT    /api/onboarding/tenant                 → bind the created tenant to the session
  POST   /api/onboarding/restore                → rebuild progression from the tenant API
  POST   /api/onboarding/plan                   → assign plan + add-ons to the tenant
  POST   /api/onboarding/plan-summary/complete  → acknowledge the plan summary
  POST   /api/onboarding/payment                → record the payment outcome
  GET    /api/onboarding/summary                → price breakdown of the assigned plan
  DELETE /api/onboarding/                       → drop cached data (tenant id kept)

Design:
  - No "current step" is stored; every response recomputes it.
  - Domain outcomes come back as notifications in the response body, so a
    failed plan assignment is still HTTP 200 with has_error=true.
"""

import json
import logging

from fastapi import APIRouter, Depends

from app.deps import get_flag_store, get_step_tracker, get_tenant_api
from app.middleware.exceptions import WorkflowStateError
from app.schemas.onboarding import (
    CleanupResult,
    NotificationOut,
    OnboardingProgress,
    PaymentStatusUpdate,
    PlanSubmissionResult,
    PlanSummary,
    RestoreResult,
    TenantBinding,
)
from app.schemas.subscription import TenantSubmissionData
from app.services.notifications import ApiErrorPresenter, CollectingNotifier
from app.services.pricing import summarize_plan
from app.services.progression import (
    StepProgression,
    WorkflowRestorer,
    collect_local_evidence,
    progression_from_evidence,
)
from app.services.submission import TenantFormSubmission
from app.services.tenant_api import TenantApiClient
from app.services.workflow import (
    AccountCreationKeys,
    StepTracker,
    WorkflowStep,
    cleanup_account_creation_storage,
    get_tenant_id,
    load_cached_plan_data,
    mark_plan_summary_completed,
    record_payment_status,
    set_tenant_id,
)
from app.utils.flag_store import FlagStore

logger = logging.getLogger(__name__)

router = APIRouter()

_STEP_ORDER = list(WorkflowStep)


# ── Helpers ──────────────────────────────────────────────────

def _progress(progression: StepProgression, tracker: StepTracker) -> OnboardingProgress:
    return OnboardingProgress(
        target_step=progression.target_step,
        completed_steps=sorted(progression.completed_steps, key=_STEP_ORDER.index),
        tracked_steps=tracker.get_completed_steps(),
        completion_progress=tracker.get_completion_progress(),
        all_required_completed=tracker.are_all_steps_completed(),
    )


def _local_progress(store: FlagStore, tracker: StepTracker) -> OnboardingProgress:
    return _progress(progression_from_evidence(collect_local_evidence(store)), tracker)


def _notifications(notifier: CollectingNotifier) -> list[NotificationOut]:
    return [NotificationOut(**n) for n in notifier.to_list()]


# ── Progress ─────────────────────────────────────────────────

@router.get("/progress", response_model=OnboardingProgress)
async def get_progress(
    store: FlagStore = Depends(get_flag_store),
    tracker: StepTracker = Depends(get_step_tracker),
):
    return _local_progress(store, tracker)


@router.put("/tenant", response_model=OnboardingProgress)
async def bind_tenant(
    body: TenantBinding,
    store: FlagStore = Depends(get_flag_store),
    tracker: StepTracker = Depends(get_step_tracker),
):
    set_tenant_id(store, body.tenant_id)
    if body.tenant_info is not None:
        store.set(AccountCreationKeys.TENANT_FORM_DATA, json.dumps(body.tenant_info, default=str))
    logger.info(f"Tenant {body.tenant_id} bound to onboarding session")
    return _local_progress(store, tracker)


@router.post("/restore", response_model=RestoreResult)
async def restore_progress(
    store: FlagStore = Depends(get_flag_store),
    tracker: StepTracker = Depends(get_step_tracker),
    tenant_api: TenantApiClient = Depends(get_tenant_api),
):
    notifier = CollectingNotifier()
    restorer = WorkflowRestorer(store, tenant_api, ApiErrorPresenter(notifier), tracker)
    progression = await restorer.restore()
    return RestoreResult(
        progress=_progress(progression, tracker),
        notifications=_notifications(notifier),
    )


# ── Plan selection ───────────────────────────────────────────

@router.post("/plan", response_model=PlanSubmissionResult)
async def submit_plan(
    body: TenantSubmissionData,
    store: FlagStore = Depends(get_flag_store),
    tracker: StepTracker = Depends(get_step_tracker),
    tenant_api: TenantApiClient = Depends(get_tenant_api),
):
    notifier = CollectingNotifier()
    submission = TenantFormSubmission(
        store, tenant_api, notifier, ApiErrorPresenter(notifier), tracker=tracker
    )
    outcome = {"succeeded": False}

    def _on_success():
        outcome["succeeded"] = True

    await submission.submit_tenant_form(body, on_success=_on_success)
    status = submission.get_submission_status()
    return PlanSubmissionResult(
        is_submitting=status.is_submitting,
        has_error=status.has_error,
        error_message=status.error_message,
        succeeded=outcome["succeeded"],
        notifications=_notifications(notifier),
    )


@router.get("/summary", response_model=PlanSummary)
async def get_plan_summary(store: FlagStore = Depends(get_flag_store)):
    data = load_cached_plan_data(store)
    if data is None or data.selected_plan is None:
        raise WorkflowStateError("No plan has been assigned yet", error_code="PLAN_NOT_ASSIGNED")
    return PlanSummary(**summarize_plan(data))


@router.post("/plan-summary/complete", response_model=OnboardingProgress)
async def complete_plan_summary(
    store: FlagStore = Depends(get_flag_store),
    tracker: StepTracker = Depends(get_step_tracker),
):
    if load_cached_plan_data(store) is None:
        raise WorkflowStateError("No plan has been assigned yet", error_code="PLAN_NOT_ASSIGNED")
    mark_plan_summary_completed(store, tracker)
    return _local_progress(store, tracker)


# ── Payment ──────────────────────────────────────────────────

@router.post("/payment", response_model=OnboardingProgress)
async def update_payment_status(
    body: PaymentStatusUpdate,
    store: FlagStore = Depends(get_flag_store),
    tracker: StepTracker = Depends(get_step_tracker),
):
    if get_tenant_id(store) is None:
        raise WorkflowStateError("Tenant ID required before payment", error_code="TENANT_REQUIRED")
    record_payment_status(store, body.payment_succeeded, body.retry_successful)
    logger.info(
        f"Payment status recorded: succeeded={body.payment_succeeded}",
        extra={"retry_successful": body.retry_successful},
    )
    return _local_progress(store, tracker)


# ── Cleanup ──────────────────────────────────────────────────

@router.delete("/", response_model=CleanupResult)
async def reset_session(
    store: FlagStore = Depends(get_flag_store),
    tracker: StepTracker = Depends(get_step_tracker),
):
    cleanup_account_creation_storage(store)
    tracker.clear_all_step_completions()
    return CleanupResult(tenant_id=get_tenant_id(store))
