"""Account-creation workflow: step identifiers, step tracking, cached flags.

Nothing here holds a "current step".  Each step that finishes leaves an
independent flag in the FlagStore, and the progression calculator
(app.services.progression) works out where the user is from those flags.

Storage policy: every reader in this module catches FlagStoreError and
malformed JSON, logs, and falls back to a safe default (False / [] / None).
Writers that are best-effort (step marking) log and swallow the same errors.
"""

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError

from app.schemas.subscription import CachedPaymentStatus, CachedPlanData, VerificationStatus
from app.utils.flag_store import FlagStore, FlagStoreError

logger = logging.getLogger(__name__)


class WorkflowStep(str, Enum):
    """Onboarding steps in intended traversal order."""
    TENANT_INFO = "TENANT_INFO"
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PHONE_VERIFICATION = "PHONE_VERIFICATION"
    PLAN_SELECTION = "PLAN_SELECTION"
    ADDON_SELECTION = "ADDON_SELECTION"
    PLAN_SUMMARY = "PLAN_SUMMARY"
    PAYMENT = "PAYMENT"
    SUCCESS = "SUCCESS"


# ── Storage keys ────────────────────────────────────────────

# Per-step completion flags.  PAYMENT and SUCCESS are tracked through
# payment_data rather than here.
STEP_TRACKING_KEYS: dict[WorkflowStep, str] = {
    WorkflowStep.TENANT_INFO: "tenant_step_info_completed",
    WorkflowStep.EMAIL_VERIFICATION: "tenant_step_email_verification_completed",
    WorkflowStep.PHONE_VERIFICATION: "tenant_step_phone_verification_completed",
    WorkflowStep.PLAN_SELECTION: "tenant_step_plan_selection_completed",
    WorkflowStep.ADDON_SELECTION: "tenant_step_addon_selection_completed",
    WorkflowStep.PLAN_SUMMARY: "tenant_step_plan_summary_completed",
}

# Ordered list of completed step names, mirrors the per-step flags
COMPLETED_STEPS_KEY = "tenant_completed_steps"

REQUIRED_STEPS = (
    WorkflowStep.TENANT_INFO,
    WorkflowStep.EMAIL_VERIFICATION,
    WorkflowStep.PHONE_VERIFICATION,
)


class AccountCreationKeys:
    TENANT_ID = "tenant_id"
    TENANT_FORM_DATA = "tenant_form_data"
    TENANT_VERIFICATION_DATA = "tenant_verification_data"
    SELECTED_PLAN_DATA = "selected_plan"
    PLAN_SUMMARY_COMPLETED = "plan_summary_completed"
    PAYMENT_DATA = "payment_data"
    PAYMENT_ACKNOWLEDGED = "payment_acknowledged"
    OTP_STATE = "otp_state"
    FAILED_PAYMENT_INTENT = "failed_payment_intent"


# Removed by cleanup; TENANT_ID is kept so a retry can resume
_CLEANUP_KEYS = (
    AccountCreationKeys.TENANT_FORM_DATA,
    AccountCreationKeys.TENANT_VERIFICATION_DATA,
    AccountCreationKeys.SELECTED_PLAN_DATA,
    AccountCreationKeys.PLAN_SUMMARY_COMPLETED,
    AccountCreationKeys.PAYMENT_DATA,
    AccountCreationKeys.PAYMENT_ACKNOWLEDGED,
    AccountCreationKeys.OTP_STATE,
)

StepKey = Union[WorkflowStep, str]


def _label(step_key: StepKey) -> str:
    return getattr(step_key, "value", step_key)


# ── Step tracking ───────────────────────────────────────────

class StepTracker:
    """Records completion of trackable steps in a FlagStore.

    Each step has its own "true" flag plus an entry in the aggregate
    COMPLETED_STEPS_KEY list.  Every mutation writes both so a reader never
    sees one without the other.

    Defaults on storage failure:
      mark_step_completed        no-op (logged)
      is_step_completed          False
      get_completed_steps        []
      clear_step_completion      no-op (logged)
      clear_all_step_completions no-op (logged)
      get_completion_progress    0
      are_all_steps_completed    False
    """

    def __init__(self, store: FlagStore):
        self.store = store

    @staticmethod
    def _step(step_key: StepKey) -> WorkflowStep:
        step = WorkflowStep(step_key)
        if step not in STEP_TRACKING_KEYS:
            raise KeyError(f"{step.value} is not a trackable step")
        return step

    def mark_step_completed(self, step_key: StepKey) -> None:
        try:
            step = self._step(step_key)
            self.store.set(STEP_TRACKING_KEYS[step], "true")
            completed = self.get_completed_steps()
            if step.value not in completed:
                completed.append(step.value)
                self.store.set(COMPLETED_STEPS_KEY, json.dumps(completed))
            logger.info(f"Step {step.value} marked as completed")
        except (FlagStoreError, KeyError, ValueError) as e:
            logger.error(f"Error marking step {_label(step_key)} as completed: {e}")

    def is_step_completed(self, step_key: StepKey) -> bool:
        try:
            step = self._step(step_key)
            return self.store.get(STEP_TRACKING_KEYS[step]) == "true"
        except (FlagStoreError, KeyError, ValueError) as e:
            logger.error(f"Error checking step completion for {_label(step_key)}: {e}")
            return False

    def get_completed_steps(self) -> list[str]:
        try:
            return self._read_completed_list()
        except (FlagStoreError, ValueError) as e:
            logger.error(f"Error getting completed steps: {e}")
            return []

    def clear_step_completion(self, step_key: StepKey) -> None:
        try:
            step = self._step(step_key)
            self.store.remove(STEP_TRACKING_KEYS[step])
            remaining = [s for s in self.get_completed_steps() if s != step.value]
            self.store.set(COMPLETED_STEPS_KEY, json.dumps(remaining))
            logger.info(f"Step {step.value} completion cleared")
        except (FlagStoreError, KeyError, ValueError) as e:
            logger.error(f"Error clearing step completion for {_label(step_key)}: {e}")

    def clear_all_step_completions(self) -> None:
        try:
            for key in (*STEP_TRACKING_KEYS.values(), COMPLETED_STEPS_KEY):
                self.store.remove(key)
            logger.info("All step completions cleared")
        except FlagStoreError as e:
            logger.error(f"Error clearing all step completions: {e}")

    def get_completion_progress(self) -> int:
        """Percentage (0-100) of trackable steps completed."""
        try:
            tracked = {s.value for s in STEP_TRACKING_KEYS}
            completed = len(tracked.intersection(self._read_completed_list()))
            return round(completed / len(STEP_TRACKING_KEYS) * 100)
        except (FlagStoreError, ValueError) as e:
            logger.error(f"Error calculating completion progress: {e}")
            return 0

    def are_all_steps_completed(self) -> bool:
        """True once tenant info and both verifications are done."""
        return all(self.is_step_completed(step) for step in REQUIRED_STEPS)

    def _read_completed_list(self) -> list[str]:
        raw = self.store.get(COMPLETED_STEPS_KEY)
        if not raw:
            return []
        parsed = json.loads(raw)
        if not isinstance(parsed, list):
            raise ValueError(f"{COMPLETED_STEPS_KEY} is not a list")
        return [str(s) for s in parsed]


# ── Cached account-creation data ────────────────────────────

def _safe_get(store: FlagStore, key: str) -> Optional[str]:
    try:
        return store.get(key)
    except FlagStoreError as e:
        logger.error(f"Error reading {key} from flag store: {e}")
        return None


def get_tenant_id(store: FlagStore) -> Optional[str]:
    return _safe_get(store, AccountCreationKeys.TENANT_ID) or None


def set_tenant_id(store: FlagStore, tenant_id: str) -> None:
    store.set(AccountCreationKeys.TENANT_ID, tenant_id)


def get_payment_status(store: FlagStore) -> bool:
    raw = _safe_get(store, AccountCreationKeys.PAYMENT_DATA)
    if not raw:
        return False
    try:
        return CachedPaymentStatus.model_validate_json(raw).payment_succeeded
    except ValidationError as e:
        logger.error(f"Failed to parse payment data: {e}")
        return False


def record_payment_status(
    store: FlagStore, succeeded: bool, retry_successful: bool = False
) -> CachedPaymentStatus:
    """Persist the outcome reported by the payment step."""
    status = CachedPaymentStatus(
        payment_succeeded=succeeded,
        completed_at=datetime.utcnow() if succeeded else None,
        retry_successful=retry_successful,
    )
    if succeeded:
        store.remove(AccountCreationKeys.FAILED_PAYMENT_INTENT)
    store.set(AccountCreationKeys.PAYMENT_DATA, status.model_dump_json())
    return status


def is_plan_summary_completed(store: FlagStore) -> bool:
    return bool(_safe_get(store, AccountCreationKeys.PLAN_SUMMARY_COMPLETED))


def mark_plan_summary_completed(store: FlagStore, tracker: Optional[StepTracker] = None) -> None:
    try:
        store.set(AccountCreationKeys.PLAN_SUMMARY_COMPLETED, "true")
    except FlagStoreError as e:
        logger.error(f"Failed to mark plan summary as completed: {e}")
        return
    (tracker or StepTracker(store)).mark_step_completed(WorkflowStep.PLAN_SUMMARY)


def get_cached_verification_status(store: FlagStore) -> VerificationStatus:
    raw = _safe_get(store, AccountCreationKeys.TENANT_VERIFICATION_DATA)
    if not raw:
        return VerificationStatus()
    try:
        return VerificationStatus.model_validate_json(raw)
    except ValidationError:
        return VerificationStatus()


def load_cached_plan_data(store: FlagStore) -> Optional[CachedPlanData]:
    raw = _safe_get(store, AccountCreationKeys.SELECTED_PLAN_DATA)
    if not raw:
        return None
    try:
        return CachedPlanData.model_validate_json(raw)
    except ValidationError as e:
        logger.error(f"Failed to parse cached plan data: {e}")
        return None


def save_cached_plan_data(store: FlagStore, data: CachedPlanData) -> None:
    store.set(AccountCreationKeys.SELECTED_PLAN_DATA, data.model_dump_json())


def cleanup_account_creation_storage(store: FlagStore) -> None:
    """Drop cached account-creation data, keeping tenant_id for a retry."""
    tenant_id = _safe_get(store, AccountCreationKeys.TENANT_ID)
    for key in _CLEANUP_KEYS:
        try:
            store.remove(key)
        except FlagStoreError as e:
            logger.error(f"Failed to remove {key} during cleanup: {e}")
    logger.info(f"Cleaned account creation storage, preserved tenant_id: {tenant_id}")


def clear_otp_state(store: FlagStore) -> None:
    try:
        store.remove(AccountCreationKeys.OTP_STATE)
    except FlagStoreError as e:
        logger.error(f"Failed to clear OTP state: {e}")
        return
    logger.info("Cleared OTP state")
