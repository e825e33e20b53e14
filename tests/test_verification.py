"""
Identity verification sequencer tests.

Tests verify:
1. Guardian pass only when a student's rent is paid by a guardian
2. Cancelled/failed results never advance and never complete
3. Completion is reported exactly once with the guardian result embedded
4. Every pass entry re-mounts the widget
5. Snapshot/restore round trip through graph state
"""

from unittest.mock import MagicMock

import pytest

from graph.errors import VerificationConfigError
from graph.verification import (
    VerificationPass,
    VerificationSequencer,
    VerificationStatus,
    WidgetEvent,
    result_from_widget,
)


@pytest.fixture
def on_complete():
    return MagicMock()


@pytest.fixture
def guardian_sequencer(on_complete):
    return VerificationSequencer("student", "guardian", "client", "flow", on_complete)


# =============================================================================
# PASS SELECTION
# =============================================================================

class TestPasses:

    def test_guardian_pass_first_when_guardian_pays(self, guardian_sequencer):
        assert guardian_sequencer.needs_guardian
        assert guardian_sequencer.current == VerificationPass.GUARDIAN

    @pytest.mark.parametrize("occupation,payer", [
        ("student", "student"),
        ("professional", None),
        ("entrepreneur", None),
    ])
    def test_single_applicant_pass(self, occupation, payer):
        sequencer = VerificationSequencer(occupation, payer, "client", "flow")
        assert not sequencer.needs_guardian
        assert sequencer.current == VerificationPass.APPLICANT


# =============================================================================
# EVENTS
# =============================================================================

class TestEvents:

    def test_cancelled_guardian_result_stays_on_guardian(self, guardian_sequencer, on_complete):
        notice = guardian_sequencer.handle(WidgetEvent.FINISHED, {"verificationId": "g-1", "status": "cancelled"})
        assert guardian_sequencer.current == VerificationPass.GUARDIAN
        assert notice.level == "warning"
        on_complete.assert_not_called()

    def test_cancel_event_restores_hidden_ui(self, guardian_sequencer, on_complete):
        guardian_sequencer.handle(WidgetEvent.STARTED)
        assert guardian_sequencer.widget_hidden

        notice = guardian_sequencer.handle(WidgetEvent.CANCELLED)
        assert not guardian_sequencer.widget_hidden
        assert not guardian_sequencer.in_progress
        assert guardian_sequencer.current == VerificationPass.GUARDIAN
        assert notice.title == "Verification Cancelled"
        on_complete.assert_not_called()

    def test_errors_are_support_notices(self, guardian_sequencer):
        assert guardian_sequencer.handle(WidgetEvent.AUTH_ERROR).title == "Authentication Error"
        assert guardian_sequencer.handle(WidgetEvent.ERROR, {"code": 500}).level == "error"
        assert guardian_sequencer.current == VerificationPass.GUARDIAN

    def test_full_guardian_sequence_completes_once(self, guardian_sequencer, on_complete):
        guardian_sequencer.handle(WidgetEvent.FINISHED, {"verificationId": "g-1", "identityId": "gi-1"})
        assert guardian_sequencer.current == VerificationPass.APPLICANT
        on_complete.assert_not_called()

        guardian_sequencer.handle(WidgetEvent.FINISHED, {"verificationId": "s-1"})
        assert guardian_sequencer.is_complete
        on_complete.assert_called_once()

        result = on_complete.call_args.args[0]
        assert result.verification_id == "s-1"
        assert result.metadata["guardian_verification"]["verification_id"] == "g-1"

        # Late events are ignored
        assert guardian_sequencer.handle(WidgetEvent.FINISHED, {"verificationId": "s-2"}) is None
        on_complete.assert_called_once()

    def test_single_pass_has_no_guardian_metadata(self, on_complete):
        sequencer = VerificationSequencer("professional", None, "client", "flow", on_complete)
        sequencer.handle(WidgetEvent.FINISHED, {"id": "p-1"})
        result = on_complete.call_args.args[0]
        assert result.verification_id == "p-1"
        assert "guardian_verification" not in result.metadata

    def test_result_without_id_is_failed(self):
        assert result_from_widget({}).status == VerificationStatus.FAILED
        assert result_from_widget({"verificationId": "v"}).status == VerificationStatus.COMPLETED


# =============================================================================
# WIDGET MOUNT
# =============================================================================

class TestWidgetConfig:

    def test_missing_ids_is_config_error(self):
        with pytest.raises(VerificationConfigError):
            VerificationSequencer("professional", None).widget_config()

    def test_mount_key_changes_between_passes(self, guardian_sequencer):
        first = guardian_sequencer.widget_config()
        assert first["metadata"]["verificationStep"] == "guardian"
        guardian_sequencer.handle(WidgetEvent.FINISHED, {"verificationId": "g-1"})
        second = guardian_sequencer.widget_config()
        assert second["metadata"]["verificationStep"] == "applicant"
        assert first["mount_key"] != second["mount_key"]


# =============================================================================
# PERSISTENCE
# =============================================================================

class TestSnapshot:

    def test_restore_continues_where_it_left_off(self, guardian_sequencer, on_complete):
        guardian_sequencer.handle(WidgetEvent.FINISHED, {"verificationId": "g-1"})
        restored = VerificationSequencer.restore(guardian_sequencer.snapshot(), "client", "flow", on_complete)
        assert restored.current == VerificationPass.APPLICANT
        assert restored.mount_key == guardian_sequencer.mount_key

        restored.handle(WidgetEvent.FINISHED, {"verificationId": "s-1"})
        result = on_complete.call_args.args[0]
        assert result.metadata["guardian_verification"]["verification_id"] == "g-1"
