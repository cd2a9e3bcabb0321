"""Step progression for the account-creation workflow.

The server keeps no "current step".  The step to display is derived on
every load from independent completion signals:

  1. basic info or verification missing   → TENANT_INFO, nothing completed
  2. no plan assigned                      → PLAN_SELECTION
  3. add-ons never configured              → ADDON_SELECTION
  4. plan summary acknowledged             → PAYMENT
  5. payment succeeded                     → SUCCESS
  6. otherwise                             → PLAN_SUMMARY

The first matching rule wins.  Rule 4 is checked before rule 5, so a
session whose payment succeeded before the summary was acknowledged lands
on SUCCESS without PLAN_SUMMARY in its completed set.  Consumers must not
infer the earlier payment-path marks from the target step alone.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from app.schemas.subscription import CachedPlanData
from app.services.notifications import ErrorPresenter
from app.services.tenant_api import TenantStatusService
from app.services.workflow import (
    AccountCreationKeys,
    StepTracker,
    WorkflowStep,
    cleanup_account_creation_storage,
    get_cached_verification_status,
    get_payment_status,
    get_tenant_id,
    is_plan_summary_completed,
    load_cached_plan_data,
)
from app.utils.flag_store import FlagStore, FlagStoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepEvidence:
    basic_info_complete: bool = False
    verification_complete: bool = False
    assigned_plan_data: Optional[CachedPlanData] = None
    payment_succeeded: bool = False
    plan_summary_completed: bool = False


@dataclass(frozen=True)
class StepProgression:
    target_step: WorkflowStep
    completed_steps: frozenset[WorkflowStep] = frozenset()


INITIAL_PROGRESSION = StepProgression(target_step=WorkflowStep.TENANT_INFO)


def calculate_step_progression(
    basic_info_complete: bool,
    verification_complete: bool,
    assigned_plan_data: Optional[CachedPlanData],
    payment_succeeded: bool,
    plan_summary_completed: bool,
) -> StepProgression:
    """Pure and idempotent; safe to call on every render."""
    if not basic_info_complete or not verification_complete:
        return INITIAL_PROGRESSION

    completed = {WorkflowStep.TENANT_INFO}
    if assigned_plan_data is None:
        return StepProgression(WorkflowStep.PLAN_SELECTION, frozenset(completed))

    completed.add(WorkflowStep.PLAN_SELECTION)
    if assigned_plan_data.selected_addons is None:
        return StepProgression(WorkflowStep.ADDON_SELECTION, frozenset(completed))

    completed.add(WorkflowStep.ADDON_SELECTION)
    if plan_summary_completed:
        completed.add(WorkflowStep.PLAN_SUMMARY)
        return StepProgression(WorkflowStep.PAYMENT, frozenset(completed))

    if payment_succeeded:
        completed.add(WorkflowStep.PAYMENT)
        return StepProgression(WorkflowStep.SUCCESS, frozenset(completed))

    return StepProgression(WorkflowStep.PLAN_SUMMARY, frozenset(completed))


def progression_from_evidence(evidence: StepEvidence) -> StepProgression:
    return calculate_step_progression(
        evidence.basic_info_complete,
        evidence.verification_complete,
        evidence.assigned_plan_data,
        evidence.payment_succeeded,
        evidence.plan_summary_completed,
    )


def _has_tenant_form_data(store: FlagStore) -> bool:
    try:
        return bool(store.get(AccountCreationKeys.TENANT_FORM_DATA))
    except FlagStoreError as e:
        logger.error(f"Error reading tenant form data: {e}")
        return False


def collect_local_evidence(store: FlagStore) -> StepEvidence:
    """Build evidence from the session's cached flags only (no remote calls)."""
    basic_info = get_tenant_id(store) is not None and _has_tenant_form_data(store)
    return StepEvidence(
        basic_info_complete=basic_info,
        verification_complete=get_cached_verification_status(store).both_verified,
        assigned_plan_data=load_cached_plan_data(store),
        payment_succeeded=get_payment_status(store),
        plan_summary_completed=is_plan_summary_completed(store),
    )


class WorkflowRestorer:
    """Rebuilds workflow position on page load from the tenant status API.

    Server data (tenant info, verification status) is written back into the
    flag store before the calculator runs, so later local reads agree with it.
    An unrecoverable remote failure wipes the cached session data, keeping
    only the tenant id so the user can resume without re-creating the tenant.
    """

    def __init__(
        self,
        store: FlagStore,
        status_service: TenantStatusService,
        error_presenter: ErrorPresenter,
        tracker: Optional[StepTracker] = None,
    ):
        self.store = store
        self.status_service = status_service
        self.error_presenter = error_presenter
        self.tracker = tracker or StepTracker(store)

    async def restore(self) -> StepProgression:
        tenant_id = get_tenant_id(self.store)
        if not tenant_id:
            return INITIAL_PROGRESSION

        try:
            response = await self.status_service.check_tenant_account_status(tenant_id)
        except Exception as exc:
            logger.warning(f"Tenant status lookup failed for {tenant_id}: {exc}")
            cleanup_account_creation_storage(self.store)
            self.error_presenter.present(exc, title="Failed to load tenant data")
            return INITIAL_PROGRESSION

        if not response.success or response.data is None:
            logger.warning(f"Tenant status API error: {response.message}")
            return INITIAL_PROGRESSION

        status = response.data
        verification = status.verification_status
        try:
            self.store.set(AccountCreationKeys.TENANT_FORM_DATA, json.dumps(status.tenant_info, default=str))
            self.store.set(
                AccountCreationKeys.TENANT_VERIFICATION_DATA, verification.model_dump_json()
            )
        except FlagStoreError as e:
            logger.error(f"Failed to cache tenant status: {e}")

        if verification.email_verified:
            self.tracker.mark_step_completed(WorkflowStep.EMAIL_VERIFICATION)
        if verification.phone_verified:
            self.tracker.mark_step_completed(WorkflowStep.PHONE_VERIFICATION)

        basic_info_complete = status.basic_info_status.is_complete
        verification_complete = verification.both_verified
        if not basic_info_complete and status.basic_info_status.validation_errors:
            logger.warning(
                f"Basic info validation errors: {status.basic_info_status.validation_errors}"
            )

        assigned_plan_data = None
        if basic_info_complete and verification_complete:
            assigned_plan_data = load_cached_plan_data(self.store)

        progression = calculate_step_progression(
            basic_info_complete,
            verification_complete,
            assigned_plan_data,
            get_payment_status(self.store),
            is_plan_summary_completed(self.store),
        )

        if basic_info_complete and verification_complete:
            self.tracker.mark_step_completed(WorkflowStep.TENANT_INFO)

        logger.info(f"Step restored: {progression.target_step.value}")
        return progression
