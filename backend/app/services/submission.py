"""Plan + add-on submission for the account-creation workflow.

One attempt moves through:

    Idle → Validating ─┬─ Rejected (warning, no remote call)
                       └─ Submitting ─┬─ Succeeded
                                      └─ Failed

Callers observe SubmissionState and notifications; nothing raises past
submit_tenant_form.  Failures never roll back earlier steps or the cached
selection, and there is no automatic retry.

is_submitting is advisory (for disabling UI controls).  A second call
while one is in flight is not rejected; both reach the remote API and the
last to finish wins on state and cache.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from app.schemas.subscription import (
    AssignPlanToTenant,
    CachedPlanData,
    Plan,
    TenantSubmissionData,
)
from app.schemas.validators import (
    PredicateResult,
    validate_branch_count,
    validate_payload,
    validate_plan_selection,
)
from app.services.addons import format_branch_addons, format_organization_addons
from app.services.notifications import ErrorPresenter, Notification, NotificationType, Notifier
from app.services.tenant_api import PlanAssignmentService
from app.services.workflow import StepTracker, WorkflowStep, get_tenant_id, save_cached_plan_data
from app.utils.flag_store import FlagStore, FlagStoreError

logger = logging.getLogger(__name__)

PAYLOAD_LABEL = "Account Creation Form Payload"
FAILURE_TITLE = "Failed to assign plan to tenant"
DEFAULT_FAILURE_MESSAGE = "Failed to assign plan to tenant"

PlanValidator = Callable[[Optional[Plan]], PredicateResult]
BranchValidator = Callable[[int, Optional[int]], PredicateResult]
SuccessCallback = Callable[[], Union[None, Awaitable[None]]]


class PlanAssignmentError(Exception):
    """The billing API answered but reported the assignment as failed."""


@dataclass
class SubmissionState:
    is_submitting: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class SubmissionStatus:
    is_submitting: bool
    has_error: bool
    error_message: Optional[str]


class TenantFormSubmission:
    """Validates, formats and submits the plan selection for one tenant."""

    def __init__(
        self,
        store: FlagStore,
        tenant_api: PlanAssignmentService,
        notifier: Notifier,
        error_presenter: ErrorPresenter,
        tracker: Optional[StepTracker] = None,
        plan_validator: PlanValidator = validate_plan_selection,
        branch_validator: BranchValidator = validate_branch_count,
    ):
        self.store = store
        self.tenant_api = tenant_api
        self.notifier = notifier
        self.error_presenter = error_presenter
        self.tracker = tracker or StepTracker(store)
        self.plan_validator = plan_validator
        self.branch_validator = branch_validator
        self.state = SubmissionState()

    # ── Read-only views ─────────────────────────────────────

    @property
    def is_submitting(self) -> bool:
        return self.state.is_submitting

    @property
    def error(self) -> Optional[str]:
        return self.state.error

    @property
    def has_error(self) -> bool:
        return self.state.error is not None

    @property
    def can_submit(self) -> bool:
        return not self.state.is_submitting

    def get_submission_status(self) -> SubmissionStatus:
        return SubmissionStatus(
            is_submitting=self.state.is_submitting,
            has_error=self.state.error is not None,
            error_message=self.state.error,
        )

    def clear_error(self) -> None:
        self.state.error = None

    # ── Validation ──────────────────────────────────────────

    def _warn(self, title: str, description: str) -> None:
        self.notifier.notify(
            Notification(title=title, description=description, type=NotificationType.WARNING)
        )

    def validate_submission_data(self, data: TenantSubmissionData) -> bool:
        """Run the plan and branch predicates; warn on the first failure."""
        plan_check = self.plan_validator(data.selected_plan)
        if not plan_check.is_valid:
            self._warn(
                "Plan Selection Required",
                plan_check.message or "Please select a plan to continue",
            )
            return False

        included = data.selected_plan.included_branches_count if data.selected_plan else None
        branch_check = self.branch_validator(data.branch_count, included)
        if not branch_check.is_valid:
            self._warn(
                "Branch Configuration Error",
                branch_check.message or "Invalid branch count",
            )
            return False

        return True

    def build_payload(self, tenant_id: str, data: TenantSubmissionData) -> dict[str, Any]:
        return {
            "tenant_id": tenant_id,
            "plan_id": data.selected_plan.id if data.selected_plan else None,
            "billing_cycle": data.billing_cycle,
            "branches_count": data.branch_count,
            "organization_addon_assignments": format_organization_addons(data.selected_addons),
            "branch_addon_assignments": format_branch_addons(
                data.selected_addons, data.branch_count
            ),
        }

    # ── Submission ──────────────────────────────────────────

    async def submit_tenant_form(
        self,
        data: TenantSubmissionData,
        on_success: Optional[SuccessCallback] = None,
    ) -> None:
        self.state = SubmissionState()

        if not self.validate_submission_data(data):
            return

        tenant_id = get_tenant_id(self.store)
        if not tenant_id:
            self._warn(
                "Tenant ID Required",
                "Please complete the tenant information step before proceeding.",
            )
            return

        self.state = SubmissionState(is_submitting=True, error=None)

        payload = self.build_payload(tenant_id, data)
        validation = validate_payload(payload, AssignPlanToTenant, PAYLOAD_LABEL)
        if not validation.is_valid:
            self._warn(
                "Validation Error",
                validation.error_summary() or "Unknown validation error",
            )
            self.state.is_submitting = False
            return

        try:
            response = await self.tenant_api.assign_plan_to_tenant(validation.data)
            if not (response.success and response.data is not None):
                raise PlanAssignmentError(
                    response.error or response.message or DEFAULT_FAILURE_MESSAGE
                )
        except Exception as exc:
            self._fail(exc)
            return

        self._succeed(data)
        if on_success is None:
            return
        # The assignment stands; a failing callback only sets the error state
        try:
            result = on_success()
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            self._fail(exc)

    def _succeed(self, data: TenantSubmissionData) -> None:
        snapshot = CachedPlanData(
            selected_plan=data.selected_plan,
            billing_cycle=data.billing_cycle,
            branch_count=data.branch_count,
            selected_addons=data.selected_addons,
        )
        try:
            save_cached_plan_data(self.store, snapshot)
        except FlagStoreError as e:
            logger.error(f"Failed to cache submitted plan data: {e}")
        self.tracker.mark_step_completed(WorkflowStep.PLAN_SELECTION)

        plan_name = data.selected_plan.name if data.selected_plan else "Selected"
        self.notifier.notify(
            Notification(
                title="Plan Assigned Successfully",
                description=f"{plan_name} plan has been assigned to your tenant account.",
                type=NotificationType.SUCCESS,
            )
        )
        self.state = SubmissionState()

    def _fail(self, exc: Exception) -> None:
        logger.exception(f"{FAILURE_TITLE}: {exc}")
        self.state = SubmissionState(
            is_submitting=False,
            error=str(exc) or "Unknown error occurred",
        )
        self.error_presenter.present(exc, title=FAILURE_TITLE)
