"""Identity verification sequencer.

Drives one or two passes of the external verification widget (MetaMap):

    guardian ──completed──▶ applicant ──completed──▶ completed

The guardian pass exists only when a student's rent is paid by a guardian.
The widget is owned by the client; this module only sees its events
(started, finished, cancelled, error, auth_error) and decides what the next
mount looks like. A widget instance cannot be reused across passes, so every
pass entry bumps ``mount_key`` and the client must re-mount.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field

from graph.errors import VerificationConfigError

logger = logging.getLogger(__name__)


class VerificationStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class VerificationPass(str, Enum):
    GUARDIAN = "guardian"
    APPLICANT = "applicant"
    COMPLETED = "completed"


class WidgetEvent(str, Enum):
    STARTED = "started"
    FINISHED = "finished"
    CANCELLED = "cancelled"
    ERROR = "error"
    AUTH_ERROR = "auth_error"


class VerificationResult(BaseModel):
    verification_id: str
    status: VerificationStatus
    identity_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class Notice(BaseModel):
    level: str = Field(description="info | warning | error")
    title: str
    message: str


def result_from_widget(detail: Optional[Dict[str, Any]]) -> VerificationResult:
    """Normalise the widget's `finished` payload (id may come as verificationId or id)."""
    detail = dict(detail or {})
    raw_status = str(detail.get("status") or VerificationStatus.COMPLETED.value).lower()
    try:
        status = VerificationStatus(raw_status)
    except ValueError:
        status = VerificationStatus.FAILED
    verification_id = detail.get("verificationId") or detail.get("verification_id") or detail.get("id")
    if not verification_id:
        status = VerificationStatus.FAILED
    return VerificationResult(
        verification_id=str(verification_id or ""),
        status=status,
        identity_id=detail.get("identityId") or detail.get("identity_id"),
        metadata=detail,
    )


class VerificationSequencer:
    """State machine for the guardian/applicant verification passes."""

    def __init__(
        self,
        application_type: str,
        payment_responsible: Optional[str] = None,
        client_id: str = "",
        flow_id: str = "",
        on_complete: Optional[Callable[[VerificationResult], None]] = None,
    ):
        self.application_type = application_type
        self.payment_responsible = payment_responsible
        self.client_id = client_id
        self.flow_id = flow_id
        self.on_complete = on_complete
        self.current = VerificationPass.GUARDIAN if self.needs_guardian else VerificationPass.APPLICANT
        self.results: Dict[str, VerificationResult] = {}
        self.mount_key = 1
        self.in_progress = False
        self.widget_hidden = False
        self.completed_result: Optional[VerificationResult] = None

    @property
    def needs_guardian(self) -> bool:
        return self.application_type == "student" and self.payment_responsible == "guardian"

    @property
    def is_complete(self) -> bool:
        return self.current == VerificationPass.COMPLETED

    # ── widget mount ────────────────────────────────────────────────
    def widget_config(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """What the client needs to (re-)mount the widget for the active pass."""
        if not self.client_id or not self.flow_id:
            raise VerificationConfigError()
        if self.is_complete:
            raise RuntimeError("Verification already completed; nothing to mount")
        return {
            "client_id": self.client_id,
            "flow_id": self.flow_id,
            "mount_key": f"{self.current.value}-{self.mount_key}",
            "metadata": {
                "applicationType": self.application_type,
                "paymentResponsible": self.payment_responsible,
                "verificationStep": self.current.value,
                "timestamp": (now or datetime.now(timezone.utc)).isoformat(),
            },
        }

    # ── events ──────────────────────────────────────────────────────
    def handle(self, event: WidgetEvent, detail: Optional[Dict[str, Any]] = None) -> Optional[Notice]:
        event = WidgetEvent(event)
        if self.is_complete:
            logger.warning(f"Ignoring {event.value} event after verification completed")
            return None

        if event == WidgetEvent.STARTED:
            self.in_progress = True
            self.widget_hidden = True
            return None

        # Every other event ends the widget session; the wizard comes back.
        self.in_progress = False
        self.widget_hidden = False

        if event == WidgetEvent.CANCELLED:
            return Notice(
                level="warning",
                title="Verification Cancelled",
                message="Identity verification was cancelled. Please try again to complete your application.",
            )
        if event == WidgetEvent.AUTH_ERROR:
            logger.error(f"Verification widget auth error: {detail}")
            return Notice(
                level="error",
                title="Authentication Error",
                message="Identity verification could not authenticate. Please contact support.",
            )
        if event == WidgetEvent.ERROR:
            logger.error(f"Verification widget error: {detail}")
            return Notice(
                level="error",
                title="Verification Error",
                message="There was an error during identity verification. Please try again or contact support.",
            )
        return self._finished(result_from_widget(detail))

    def _finished(self, result: VerificationResult) -> Notice:
        if result.status != VerificationStatus.COMPLETED:
            who = "guardian " if self.current == VerificationPass.GUARDIAN else ""
            return Notice(
                level="warning",
                title="Verification Not Completed",
                message=f"The {who}identity verification was {result.status.value}. Please try again.",
            )

        if self.current == VerificationPass.GUARDIAN:
            self.results[VerificationPass.GUARDIAN.value] = result
            self._enter(VerificationPass.APPLICANT)
            logger.info(f"Guardian verification {result.verification_id} completed")
            return Notice(
                level="info",
                title="Guardian Verification Complete",
                message="Guardian identity verified successfully. Now please verify the student identity.",
            )

        self.results[VerificationPass.APPLICANT.value] = result
        combined = result
        guardian = self.results.get(VerificationPass.GUARDIAN.value)
        if guardian is not None:
            combined = result.model_copy(update={
                "metadata": {**(result.metadata or {}), "guardian_verification": guardian.model_dump(mode="json")},
            })
        self._enter(VerificationPass.COMPLETED)
        self.completed_result = combined
        logger.info(f"Identity verification {combined.verification_id} completed")
        if self.on_complete is not None:
            self.on_complete(combined)
        if guardian is not None:
            return Notice(
                level="info",
                title="All Verifications Complete!",
                message="Both guardian and student identities verified successfully. Submitting your application...",
            )
        return Notice(
            level="info",
            title="Verification Complete!",
            message="Identity verification successful. Submitting your application...",
        )

    def _enter(self, new_pass: VerificationPass) -> None:
        self.current = new_pass
        self.mount_key += 1

    # ── persistence (graph state) ───────────────────────────────────
    def snapshot(self) -> Dict[str, Any]:
        return {
            "application_type": self.application_type,
            "payment_responsible": self.payment_responsible,
            "current": self.current.value,
            "results": {k: v.model_dump(mode="json") for k, v in self.results.items()},
            "mount_key": self.mount_key,
            "in_progress": self.in_progress,
            "widget_hidden": self.widget_hidden,
            "completed_result": self.completed_result.model_dump(mode="json") if self.completed_result else None,
        }

    @classmethod
    def restore(
        cls,
        snapshot: Dict[str, Any],
        client_id: str = "",
        flow_id: str = "",
        on_complete: Optional[Callable[[VerificationResult], None]] = None,
    ) -> "VerificationSequencer":
        sequencer = cls(
            snapshot["application_type"],
            snapshot.get("payment_responsible"),
            client_id=client_id,
            flow_id=flow_id,
            on_complete=on_complete,
        )
        sequencer.current = VerificationPass(snapshot["current"])
        sequencer.results = {k: VerificationResult(**v) for k, v in snapshot.get("results", {}).items()}
        sequencer.mount_key = snapshot.get("mount_key", 1)
        sequencer.in_progress = snapshot.get("in_progress", False)
        sequencer.widget_hidden = snapshot.get("widget_hidden", False)
        if snapshot.get("completed_result"):
            sequencer.completed_result = VerificationResult(**snapshot["completed_result"])
        return sequencer
