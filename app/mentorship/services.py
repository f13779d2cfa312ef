"""
Session collaborator used by the payment subsystem.

SessionService owns the few session facts the ledger relies on:
- approve_mentor: approve a mentor and open their balance
- mark_session_paid: PENDING -> CONFIRMED once the payment succeeded
- complete_session: CONFIRMED -> COMPLETED, then credit the mentor

Usage:
    from mentorship.services import session_service

    result = session_service.complete_session(session.id)
    if not result.success:
        logger.warning(result.error)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.utils import timezone

from core.exceptions import BaseApplicationError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult

from mentorship.models import MentorProfile, Session, SessionStatus

if TYPE_CHECKING:
    import uuid

    from payments.services.mentor_ledger import MentorLedger

logger = logging.getLogger(__name__)


class SessionService(BaseService):
    """
    Session lifecycle operations that touch the payment ledger.

    The ledger is passed in explicitly; when omitted the module-level
    default ledger is used.
    """

    def __init__(self, ledger: MentorLedger | None = None):
        self._ledger = ledger

    @property
    def ledger(self) -> MentorLedger:
        if self._ledger is None:
            from payments.services.mentor_ledger import mentor_ledger

            self._ledger = mentor_ledger
        return self._ledger

    def approve_mentor(self, mentor_id: uuid.UUID) -> ServiceResult[MentorProfile]:
        """Approve a mentor and open a zero balance for them (idempotent)."""
        try:
            with self.atomic():
                try:
                    mentor = MentorProfile.objects.select_for_update().get(id=mentor_id)
                except MentorProfile.DoesNotExist:
                    raise NotFoundError(
                        f"Mentor {mentor_id} not found",
                        details={"mentor_id": str(mentor_id)},
                    )
                if not mentor.is_approved:
                    mentor.is_approved = True
                    mentor.approved_at = timezone.now()
                    mentor.save(update_fields=["is_approved", "approved_at", "updated_at"])
                self.ledger.open_balance(mentor)
        except BaseApplicationError as e:
            return ServiceResult.from_exception(e)

        self.get_logger().info(
            "Mentor approved",
            extra={"mentor_id": str(mentor_id)},
        )
        return ServiceResult.success(mentor)

    def mark_session_paid(self, session_id: uuid.UUID) -> ServiceResult[Session]:
        """
        Record that the session's payment succeeded.

        Idempotent: a session already paid is returned unchanged. A
        cancelled session keeps its status but still records paid_at so
        the refund path can find it.
        """
        try:
            with self.atomic():
                session = self._get_locked(session_id)
                if session.paid_at is None:
                    session.paid_at = timezone.now()
                    if session.status == SessionStatus.PENDING:
                        session.status = SessionStatus.CONFIRMED
                    session.save(update_fields=["paid_at", "status", "updated_at"])
                    self.get_logger().info(
                        "Session marked paid",
                        extra={"session_id": str(session_id)},
                    )
        except BaseApplicationError as e:
            return ServiceResult.from_exception(e)
        return ServiceResult.success(session)

    def complete_session(self, session_id: uuid.UUID) -> ServiceResult[Session]:
        """
        Mark a paid session completed and credit the mentor's earnings.

        Crediting is idempotent per session, so calling this for a session
        whose earnings were already credited at payment time is safe.
        """
        try:
            with self.atomic():
                session = self._get_locked(session_id)
                if session.status == SessionStatus.CANCELLED:
                    raise ValidationError(
                        "Cancelled sessions cannot be completed",
                        details={"session_id": str(session_id)},
                    )
                if session.paid_at is None:
                    raise ValidationError(
                        "Session has not been paid",
                        error_code="SESSION_NOT_PAID",
                        details={"session_id": str(session_id)},
                    )
                if session.status != SessionStatus.COMPLETED:
                    session.status = SessionStatus.COMPLETED
                    session.completed_at = timezone.now()
                    session.save(update_fields=["status", "completed_at", "updated_at"])

                self.ledger.credit_on_session_completion(session.id)
        except BaseApplicationError as e:
            return ServiceResult.from_exception(e)

        self.get_logger().info(
            "Session completed",
            extra={"session_id": str(session_id)},
        )
        return ServiceResult.success(Session.objects.get(id=session_id))

    def _get_locked(self, session_id: uuid.UUID) -> Session:
        try:
            return Session.objects.select_for_update().get(id=session_id)
        except Session.DoesNotExist:
            raise NotFoundError(
                f"Session {session_id} not found",
                details={"session_id": str(session_id)},
            )


session_service = SessionService()
