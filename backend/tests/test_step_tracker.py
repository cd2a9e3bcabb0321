"""Tests for step tracking and the cached account-creation flags."""

import json

import pytest

from app.schemas.subscription import CachedPlanData, VerificationStatus
from app.services.workflow import (
    COMPLETED_STEPS_KEY,
    STEP_TRACKING_KEYS,
    AccountCreationKeys,
    StepTracker,
    WorkflowStep,
    cleanup_account_creation_storage,
    clear_otp_state,
    get_cached_verification_status,
    get_payment_status,
    get_tenant_id,
    is_plan_summary_completed,
    load_cached_plan_data,
    mark_plan_summary_completed,
    record_payment_status,
    save_cached_plan_data,
)
from app.utils.flag_store import FlagStoreError


@pytest.mark.unit
class TestStepTracker:

    def test_mark_step_completed_writes_flag_and_list(self, store, tracker):
        tracker.mark_step_completed(WorkflowStep.TENANT_INFO)

        assert store.get("tenant_step_info_completed") == "true"
        assert json.loads(store.get(COMPLETED_STEPS_KEY)) == ["TENANT_INFO"]
        assert tracker.is_step_completed(WorkflowStep.TENANT_INFO)

    def test_accepts_step_names(self, tracker):
        tracker.mark_step_completed("EMAIL_VERIFICATION")
        assert tracker.is_step_completed(WorkflowStep.EMAIL_VERIFICATION)

    def test_marking_twice_does_not_duplicate(self, tracker):
        tracker.mark_step_completed(WorkflowStep.PLAN_SELECTION)
        tracker.mark_step_completed(WorkflowStep.PLAN_SELECTION)
        assert tracker.get_completed_steps() == ["PLAN_SELECTION"]

    def test_completed_steps_keep_completion_order(self, tracker):
        tracker.mark_step_completed(WorkflowStep.PHONE_VERIFICATION)
        tracker.mark_step_completed(WorkflowStep.TENANT_INFO)
        assert tracker.get_completed_steps() == ["PHONE_VERIFICATION", "TENANT_INFO"]

    @pytest.mark.parametrize("step", [WorkflowStep.PAYMENT, WorkflowStep.SUCCESS, "NOT_A_STEP"])
    def test_untracked_steps_are_ignored(self, store, tracker, step):
        tracker.mark_step_completed(step)

        assert store.get(COMPLETED_STEPS_KEY) is None
        assert tracker.is_step_completed(step) is False

    def test_clear_step_completion(self, store, tracker):
        tracker.mark_step_completed(WorkflowStep.TENANT_INFO)
        tracker.mark_step_completed(WorkflowStep.PLAN_SELECTION)

        tracker.clear_step_completion(WorkflowStep.TENANT_INFO)

        assert store.get("tenant_step_info_completed") is None
        assert tracker.get_completed_steps() == ["PLAN_SELECTION"]

    def test_clear_all_step_completions(self, store, tracker):
        for step in STEP_TRACKING_KEYS:
            tracker.mark_step_completed(step)

        tracker.clear_all_step_completions()

        assert tracker.get_completed_steps() == []
        assert all(store.get(key) is None for key in STEP_TRACKING_KEYS.values())

    def test_completion_progress_rounds(self, tracker):
        assert tracker.get_completion_progress() == 0
        tracker.mark_step_completed(WorkflowStep.TENANT_INFO)
        assert tracker.get_completion_progress() == 17
        tracker.mark_step_completed(WorkflowStep.EMAIL_VERIFICATION)
        assert tracker.get_completion_progress() == 33
        for step in STEP_TRACKING_KEYS:
            tracker.mark_step_completed(step)
        assert tracker.get_completion_progress() == 100

    def test_are_all_steps_completed_needs_info_and_both_verifications(self, tracker):
        tracker.mark_step_completed(WorkflowStep.TENANT_INFO)
        tracker.mark_step_completed(WorkflowStep.EMAIL_VERIFICATION)
        assert tracker.are_all_steps_completed() is False

        tracker.mark_step_completed(WorkflowStep.PHONE_VERIFICATION)
        assert tracker.are_all_steps_completed() is True

    def test_corrupt_completed_list_reads_as_empty(self, store, tracker):
        store.set(COMPLETED_STEPS_KEY, "{not json")
        assert tracker.get_completed_steps() == []
        assert tracker.get_completion_progress() == 0

        store.set(COMPLETED_STEPS_KEY, json.dumps({"a": 1}))
        assert tracker.get_completed_steps() == []

    def test_marking_repairs_corrupt_completed_list(self, store, tracker):
        store.set(COMPLETED_STEPS_KEY, "{not json")

        tracker.mark_step_completed(WorkflowStep.TENANT_INFO)

        assert tracker.is_step_completed(WorkflowStep.TENANT_INFO)
        assert json.loads(store.get(COMPLETED_STEPS_KEY)) == ["TENANT_INFO"]
        assert tracker.get_completed_steps() == ["TENANT_INFO"]

    def test_progress_ignores_foreign_and_duplicate_entries(self, store, tracker):
        names = [step.value for step in STEP_TRACKING_KEYS]
        store.set(COMPLETED_STEPS_KEY, json.dumps(names + names + ["PAYMENT", "BOGUS"]))
        assert tracker.get_completion_progress() == 100

        store.set(COMPLETED_STEPS_KEY, json.dumps(["TENANT_INFO", "TENANT_INFO", "BOGUS"]))
        assert tracker.get_completion_progress() == 17

    def test_errors_log_step_names(self, failing_store, caplog):
        tracker = StepTracker(failing_store)
        with caplog.at_level("ERROR"):
            tracker.mark_step_completed(WorkflowStep.TENANT_INFO)
            tracker.is_step_completed(WorkflowStep.EMAIL_VERIFICATION)

        assert "step TENANT_INFO as completed" in caplog.text
        assert "for EMAIL_VERIFICATION" in caplog.text
        assert "WorkflowStep." not in caplog.text


@pytest.mark.unit
class TestStepTrackerStorageFailure:
    """Storage failures are logged and degrade to safe defaults."""

    def test_defaults(self, failing_store):
        tracker = StepTracker(failing_store)

        tracker.mark_step_completed(WorkflowStep.TENANT_INFO)
        tracker.clear_step_completion(WorkflowStep.TENANT_INFO)
        tracker.clear_all_step_completions()

        assert tracker.is_step_completed(WorkflowStep.TENANT_INFO) is False
        assert tracker.get_completed_steps() == []
        assert tracker.get_completion_progress() == 0
        assert tracker.are_all_steps_completed() is False

    def test_readers_fall_back(self, failing_store):
        assert get_tenant_id(failing_store) is None
        assert get_payment_status(failing_store) is False
        assert is_plan_summary_completed(failing_store) is False
        assert load_cached_plan_data(failing_store) is None
        assert get_cached_verification_status(failing_store) == VerificationStatus()

    def test_best_effort_writers_do_not_raise(self, failing_store):
        mark_plan_summary_completed(failing_store)
        cleanup_account_creation_storage(failing_store)
        clear_otp_state(failing_store)

    def test_strict_writers_raise(self, failing_store):
        with pytest.raises(FlagStoreError):
            record_payment_status(failing_store, True)
        with pytest.raises(FlagStoreError):
            save_cached_plan_data(failing_store, CachedPlanData())


@pytest.mark.unit
class TestCachedFlags:

    def test_tenant_id_empty_string_is_missing(self, store):
        store.set(AccountCreationKeys.TENANT_ID, "")
        assert get_tenant_id(store) is None

    def test_payment_status(self, store):
        assert get_payment_status(store) is False

        status = record_payment_status(store, True, retry_successful=True)
        assert status.completed_at is not None
        assert get_payment_status(store) is True

        record_payment_status(store, False)
        assert get_payment_status(store) is False

    def test_successful_payment_clears_failed_intent(self, store):
        store.set(AccountCreationKeys.FAILED_PAYMENT_INTENT, "pi_123")
        record_payment_status(store, True)
        assert store.get(AccountCreationKeys.FAILED_PAYMENT_INTENT) is None

    def test_malformed_payment_data(self, store):
        store.set(AccountCreationKeys.PAYMENT_DATA, "garbage")
        assert get_payment_status(store) is False

    def test_plan_summary_flag_also_tracks_step(self, store, tracker):
        assert is_plan_summary_completed(store) is False
        mark_plan_summary_completed(store, tracker)

        assert is_plan_summary_completed(store) is True
        assert tracker.is_step_completed(WorkflowStep.PLAN_SUMMARY)

    def test_verification_status(self, store):
        assert get_cached_verification_status(store).both_verified is False

        store.set(
            AccountCreationKeys.TENANT_VERIFICATION_DATA,
            json.dumps({"email_verified": True, "phone_verified": True}),
        )
        assert get_cached_verification_status(store).both_verified is True

        store.set(AccountCreationKeys.TENANT_VERIFICATION_DATA, "[]")
        assert get_cached_verification_status(store).both_verified is False

    def test_plan_data_round_trip(self, store, basic_plan):
        assert load_cached_plan_data(store) is None

        save_cached_plan_data(store, CachedPlanData(selected_plan=basic_plan, branch_count=2))
        loaded = load_cached_plan_data(store)

        assert loaded.selected_plan.id == basic_plan.id
        assert loaded.branch_count == 2
        assert loaded.selected_addons is None

    def test_cleanup_keeps_tenant_id(self, store, tracker):
        store.set(AccountCreationKeys.TENANT_ID, "tenant-001")
        for key in (
            AccountCreationKeys.TENANT_FORM_DATA,
            AccountCreationKeys.SELECTED_PLAN_DATA,
            AccountCreationKeys.PAYMENT_DATA,
            AccountCreationKeys.OTP_STATE,
        ):
            store.set(key, "{}")

        cleanup_account_creation_storage(store)

        assert store.keys() == [AccountCreationKeys.TENANT_ID]

    def test_clear_otp_state(self, store):
        store.set(AccountCreationKeys.OTP_STATE, "{}")
        clear_otp_state(store)
        assert store.get(AccountCreationKeys.OTP_STATE) is None
